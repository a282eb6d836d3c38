# routes/judge.py

from flask import Blueprint, jsonify, current_app

import store
import logic
from errors import NotFoundError
from routes.auth import role_required, current_user_id, json_body

judge_bp = Blueprint('judge', __name__, url_prefix='/api/judge')


def _get_category(category_id):
    category = store.find_by_id(store.read('categories')['list'], category_id)
    if not category:
        raise NotFoundError('Category not found')
    return category


def _get_contestant(contestant_id):
    contestant = store.find_by_id(store.read('contestants')['list'], contestant_id)
    if not contestant:
        raise NotFoundError('Contestant not found')
    return contestant


@judge_bp.route('/categories')
@role_required('judge')
def categories():
    return jsonify(store.read('categories'))


@judge_bp.route('/categories/<category_id>/contestants')
@role_required('judge')
def category_contestants(category_id):
    contestants = logic.contestants_in_category(store.read('contestants'), category_id)
    return jsonify({'contestants': contestants})


@judge_bp.route('/categories/<category_id>/criteria')
@role_required('judge')
def category_criteria(category_id):
    criteria = logic.category_criteria(store.read('criteria'), category_id)
    return jsonify({'categoryId': category_id, 'criteria': criteria})


@judge_bp.route('/categories/<category_id>/my-scores')
@role_required('judge')
def category_my_scores(category_id):
    judge_id = current_user_id()
    scores = store.read_scores()
    contestants = logic.contestants_in_category(store.read('contestants'), category_id)

    my_scores = {}
    for contestant in contestants:
        record = logic.judge_score(scores, contestant['id'], judge_id)
        if record:
            my_scores[contestant['id']] = record

    return jsonify({
        'categoryId': category_id,
        'scores': my_scores,
        'isFinalized': logic.is_category_finalized(scores, contestants, judge_id),
        'contestants': contestants,
    })


@judge_bp.route('/contestants/<contestant_id>')
@role_required('judge')
def contestant_detail(contestant_id):
    contestant = _get_contestant(contestant_id)
    criteria = logic.category_criteria(store.read('criteria'), contestant.get('categoryId'))
    current = logic.judge_score(store.read_scores(), contestant_id, current_user_id()) or {}
    return jsonify({'contestant': contestant, 'criteria': criteria, 'currentScores': current})


@judge_bp.route('/contestants/<contestant_id>/score', methods=['POST'])
@role_required('judge')
def submit_score(contestant_id):
    judge_id = current_user_id()
    data = json_body()

    contestant = _get_contestant(contestant_id)
    if not contestant.get('categoryId'):
        raise NotFoundError('Contestant has no category')
    _get_category(contestant['categoryId'])
    criteria = logic.category_criteria(store.read('criteria'), contestant['categoryId'])

    scores = store.read_scores()
    record = logic.submit_score(scores, contestant, criteria, judge_id,
                                data.get('criteriaScores'), data.get('comments'))
    store.write_scores(scores)

    current_app.logger.info('Judge %s scored contestant %s: %.2f / %.2f',
                            judge_id, contestant_id, record['totalScore'], record['maxPossibleScore'])
    return jsonify({
        'message': 'Score submitted successfully',
        'totalScore': record['totalScore'],
        'maxPossibleScore': record['maxPossibleScore'],
    })


@judge_bp.route('/categories/<category_id>/finalize', methods=['POST'])
@role_required('judge')
def finalize_category(category_id):
    judge_id = current_user_id()
    _get_category(category_id)
    contestants = logic.contestants_in_category(store.read('contestants'), category_id)

    scores = store.read_scores()
    finalized = logic.finalize_category(scores, contestants, judge_id)
    store.write_scores(scores)

    current_app.logger.info('Judge %s finalized category %s (%d contestants)',
                            judge_id, category_id, len(finalized))
    return jsonify({'message': 'Scores finalized successfully for this category',
                    'finalizedContestants': finalized})


@judge_bp.route('/categories/<category_id>/results')
@role_required('judge')
def category_results(category_id):
    contestants = logic.contestants_in_category(store.read('contestants'), category_id)
    podium = logic.finalized_podium(contestants, store.read('judges')['list'], store.read_scores())
    podium['categoryId'] = category_id
    return jsonify(podium)


@judge_bp.route('/contestants/<contestant_id>/other-scores')
@role_required('judge')
def other_scores(contestant_id):
    judge_id = current_user_id()
    by_judge = store.read_scores()['judgeScores'].get(contestant_id, {})

    others = []
    for judge in store.read('judges')['list']:
        record = by_judge.get(judge['id'])
        if judge['id'] != judge_id and record and record.get('finalized'):
            others.append({
                'judgeId': judge['id'],
                'judgeName': judge.get('name'),
                'totalScore': record['totalScore'],
                'criteriaScores': record['criteriaScores'],
                'comments': record.get('comments'),
                'finalizedAt': record.get('finalizedAt'),
            })
    return jsonify({'contestantId': contestant_id, 'otherScores': others})


@judge_bp.route('/my-scores')
@role_required('judge')
def my_scores():
    judge_id = current_user_id()
    scores = store.read_scores()
    contestants = store.read('contestants')['list']
    categories = store.read('categories')['list']

    rows = []
    for contestant_id, by_judge in scores['judgeScores'].items():
        record = by_judge.get(judge_id)
        contestant = store.find_by_id(contestants, contestant_id)
        if not record or not contestant:
            continue
        category = store.find_by_id(categories, contestant.get('categoryId'))
        rows.append({
            'contestantId': contestant_id,
            'contestantName': contestant.get('name'),
            'contestantCompany': contestant.get('company'),
            'categoryId': contestant.get('categoryId'),
            'categoryName': category['name'] if category else 'Unknown',
            'totalScore': record['totalScore'],
            'maxPossibleScore': record.get('maxPossibleScore'),
            'submittedAt': record.get('submittedAt'),
            'finalized': record.get('finalized', False),
            'criteriaScores': record.get('criteriaScores', {}),
            'comments': record.get('comments', ''),
        })

    # ISO timestamps sort chronologically
    rows.sort(key=lambda r: r['submittedAt'] or '', reverse=True)
    return jsonify({'scores': rows})


@judge_bp.route('/completion-status')
@role_required('judge')
def completion_status():
    status = logic.completion_status(store.read('judges')['list'],
                                     store.read('categories')['list'],
                                     store.read('contestants'),
                                     store.read_scores())
    return jsonify({'judges': status})
