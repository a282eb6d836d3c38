# routes/audience.py

from flask import Blueprint, jsonify, current_app

import store
import logic
from errors import NotFoundError, VotingClosedError
from routes.auth import role_required, current_user_id

audience_bp = Blueprint('audience', __name__, url_prefix='/api/audience')


@audience_bp.route('/voting-status')
@role_required('audience')
def voting_status():
    voting_open = store.read('settings')['votingOpen']
    return jsonify({
        'votingOpen': voting_open,
        'message': 'Voting is currently open!' if voting_open else 'Voting is currently closed.',
    })


@audience_bp.route('/categories')
@role_required('audience')
def categories():
    return jsonify(store.read('categories'))


@audience_bp.route('/categories/<category_id>/contestants')
@role_required('audience')
def category_contestants(category_id):
    contestants = logic.contestants_in_category(store.read('contestants'), category_id)
    return jsonify({'contestants': contestants})


@audience_bp.route('/contestants/<contestant_id>')
@role_required('audience')
def contestant_detail(contestant_id):
    contestant = store.find_by_id(store.read('contestants')['list'], contestant_id)
    if not contestant:
        raise NotFoundError('Contestant not found')
    return jsonify({'contestant': contestant})


@audience_bp.route('/contestants/<contestant_id>/vote', methods=['POST'])
@role_required('audience')
def vote(contestant_id):
    audience_id = current_user_id()
    settings = store.read('settings')
    if not settings['votingOpen']:
        raise VotingClosedError()

    contestant = store.find_by_id(store.read('contestants')['list'], contestant_id)
    if not contestant:
        raise NotFoundError('Contestant not found')

    scores = store.read_scores()
    total_votes = logic.record_vote(scores, contestant_id, audience_id, settings['votingOpen'])
    store.write_scores(scores)

    current_app.logger.info('Audience %s voted for contestant %s (%d votes)',
                            audience_id, contestant_id, total_votes)
    return jsonify({
        'message': 'Vote submitted successfully!',
        'contestant': contestant.get('name'),
        'totalVotes': total_votes,
    })


@audience_bp.route('/my-votes')
@role_required('audience')
def my_votes():
    voted_ids = store.read_scores()['userVotes'].get(current_user_id(), [])
    contestants = store.read('contestants')['list']

    voted = []
    for contestant_id in voted_ids:
        contestant = store.find_by_id(contestants, contestant_id)
        if contestant:
            voted.append({
                'id': contestant['id'],
                'name': contestant.get('name'),
                'company': contestant.get('company'),
                'categoryId': contestant.get('categoryId'),
                'image': contestant.get('image'),
            })
    return jsonify({'votedContestants': voted, 'totalVotes': len(voted)})


@audience_bp.route('/contestants/<contestant_id>/can-vote')
@role_required('audience')
def can_vote(contestant_id):
    if not store.read('settings')['votingOpen']:
        return jsonify({'canVote': False, 'reason': 'Voting is currently closed'})
    if logic.has_voted(store.read_scores(), current_user_id(), contestant_id):
        return jsonify({'canVote': False, 'reason': 'Already voted for this contestant'})
    return jsonify({'canVote': True})


@audience_bp.route('/results')
@role_required('audience')
def results():
    settings = store.read('settings')
    view = logic.audience_results(
        settings,
        store.read('categories')['list'],
        store.read('contestants'),
        store.read_scores(),
        logic.score_weights_from_settings(settings),
        current_app.config['JUDGE_SCORE_SCALE'],
    )
    return jsonify(view)


@audience_bp.route('/categories/<category_id>/stats')
@role_required('audience')
def category_stats(category_id):
    if not store.read('settings')['votingOpen']:
        raise VotingClosedError('Statistics not available when voting is closed')

    votes = store.read_scores()['audienceVotes']
    stats = [{
        'id': c['id'],
        'name': c.get('name'),
        'company': c.get('company'),
        'votes': votes.get(c['id'], 0),
    } for c in logic.contestants_in_category(store.read('contestants'), category_id)]
    stats.sort(key=lambda s: s['votes'], reverse=True)
    return jsonify({'categoryId': category_id, 'stats': stats})
