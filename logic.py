# logic.py
# Scoring and results logic. Functions here work on in-memory copies of the
# store documents; routes load the documents, call in, and write back only
# when nothing was raised.

import math
from collections import namedtuple

from errors import (ValidationError, NotFoundError, VotingClosedError,
                    DuplicateVoteError, ScoreFinalizedError)
from store import utcnow_iso

PLACES = ('first', 'second', 'third')

ScoreWeights = namedtuple('ScoreWeights', ['judges', 'audience'])


def is_number(value):
    """True for finite ints and floats. NaN and Infinity are rejected."""
    return (isinstance(value, (int, float)) and not isinstance(value, bool)
            and math.isfinite(value))


def validate_score_weights(judges, audience):
    """Return a ScoreWeights, or raise if the split is not a valid 100% split."""
    if not is_number(judges) or not is_number(audience):
        raise ValidationError('Judge and audience weights must be numbers')
    if judges < 0 or audience < 0:
        raise ValidationError('Judge and audience weights cannot be negative')
    if abs(judges + audience - 100) > 0.01:
        raise ValidationError('Judge and audience weights must total 100%')
    return ScoreWeights(judges, audience)


def score_weights_from_settings(settings):
    weights = settings['scoreWeights']
    return ScoreWeights(weights['judges'], weights['audience'])


def contestants_in_category(contestants_doc, category_id):
    return [c for c in contestants_doc['list'] if c.get('categoryId') == category_id]


def category_criteria(criteria_doc, category_id):
    return criteria_doc['categories'].get(category_id, [])


# --- Judge scoring ---

def clean_criteria_scores(criteria_scores, criteria):
    """Check the raw scores a judge submitted and coerce them to numbers."""
    if criteria_scores is None:
        raise ValidationError('criteriaScores is required')
    if not isinstance(criteria_scores, dict):
        raise ValidationError('criteriaScores must be an object of criterion id to score')

    by_id = {c['id']: c for c in criteria}
    cleaned = {}
    for criterion_id, raw in criteria_scores.items():
        if isinstance(raw, str):
            try:
                raw = float(raw)
            except ValueError:
                raise ValidationError(f'Score for criterion "{criterion_id}" must be a number')
        if not is_number(raw):
            raise ValidationError(f'Score for criterion "{criterion_id}" must be a number')
        criterion = by_id.get(criterion_id)
        if criterion is not None and not 0 <= raw <= criterion['maxScore']:
            raise ValidationError(
                f'Score for "{criterion["name"]}" must be between 0 and {criterion["maxScore"]}')
        cleaned[criterion_id] = raw
    return cleaned


def calculate_weighted_score(criteria_scores, criteria):
    """Return (totalScore, maxPossibleScore) for the category's criteria."""
    total_score = 0
    max_possible_score = 0
    for criterion in criteria:
        weight = criterion['weight'] / 100
        total_score += criteria_scores.get(criterion['id'], 0) * weight
        max_possible_score += criterion['maxScore'] * weight
    return total_score, max_possible_score


def submit_score(scores_doc, contestant, criteria, judge_id, criteria_scores, comments=None):
    """
    Upsert the judge's score for a contestant. A record that was already
    finalized cannot be overwritten.
    """
    cleaned = clean_criteria_scores(criteria_scores, criteria)
    by_judge = scores_doc['judgeScores'].setdefault(contestant['id'], {})

    existing = by_judge.get(judge_id)
    if existing and existing.get('finalized'):
        raise ScoreFinalizedError()

    total_score, max_possible_score = calculate_weighted_score(cleaned, criteria)
    record = {
        'criteriaScores': cleaned,
        'comments': comments or '',
        'totalScore': total_score,
        'maxPossibleScore': max_possible_score,
        'categoryId': contestant.get('categoryId'),
        'submittedAt': utcnow_iso(),
        'finalized': False,
    }
    by_judge[judge_id] = record
    return record


def judge_score(scores_doc, contestant_id, judge_id):
    return scores_doc['judgeScores'].get(contestant_id, {}).get(judge_id)


def finalize_category(scores_doc, category_contestants, judge_id):
    """
    Lock every score of this judge in the category. All contestants must have
    been scored first; otherwise nothing is changed.
    """
    missing = [c for c in category_contestants
               if judge_score(scores_doc, c['id'], judge_id) is None]
    if missing:
        names = [c.get('name') or c['id'] for c in missing]
        raise ValidationError(
            f'Please score all contestants first. Missing scores for: {", ".join(names)}',
            payload={'missingContestants': [c['id'] for c in missing]})

    finalized_at = utcnow_iso()
    for contestant in category_contestants:
        record = judge_score(scores_doc, contestant['id'], judge_id)
        if not record.get('finalized'):
            record['finalized'] = True
            record['finalizedAt'] = finalized_at
    return [c['id'] for c in category_contestants]


def is_category_finalized(scores_doc, category_contestants, judge_id):
    return any((judge_score(scores_doc, c['id'], judge_id) or {}).get('finalized')
               for c in category_contestants)


# --- Audience votes ---

def has_voted(scores_doc, audience_id, contestant_id):
    return contestant_id in scores_doc['userVotes'].get(audience_id, [])


def record_vote(scores_doc, contestant_id, audience_id, voting_open):
    """Count one audience vote. Returns the contestant's new vote total."""
    if not voting_open:
        raise VotingClosedError()
    if has_voted(scores_doc, audience_id, contestant_id):
        raise DuplicateVoteError()

    votes = scores_doc['audienceVotes']
    votes[contestant_id] = votes.get(contestant_id, 0) + 1
    scores_doc['userVotes'].setdefault(audience_id, []).append(contestant_id)
    scores_doc['voteLog'].append({
        'audienceId': audience_id,
        'contestantId': contestant_id,
        'votedAt': utcnow_iso(),
    })
    return votes[contestant_id]


def total_distinct_voters(scores_doc):
    return len(scores_doc['userVotes'])


def participation_ratio(scores_doc, contestant_id):
    """Share of everyone who voted at all that voted for this contestant."""
    votes = scores_doc['audienceVotes'].get(contestant_id, 0)
    return votes / max(1, total_distinct_voters(scores_doc))


# --- Results ---

def contestant_result(contestant, scores_doc, weights, scale=10):
    judge_scores = scores_doc['judgeScores'].get(contestant['id'], {})
    breakdown = {}
    for judge_id, record in judge_scores.items():
        if record.get('totalScore') is not None:
            breakdown[judge_id] = {
                'score': record['totalScore'],
                'submittedAt': record.get('submittedAt'),
                'finalized': bool(record.get('finalized')),
            }
    judge_count = len(breakdown)
    avg_judge_score = (sum(b['score'] for b in breakdown.values()) / judge_count
                       if judge_count else 0)

    judge_percentage = avg_judge_score / scale * 100
    weighted_judge_score = judge_percentage * weights.judges / 100

    ratio = participation_ratio(scores_doc, contestant['id'])
    audience_percentage = ratio * 100
    weighted_audience_score = audience_percentage * weights.audience / 100

    return {
        'contestant': contestant,
        'judgeScore': avg_judge_score,
        'judgeCount': judge_count,
        'judgePercentage': judge_percentage,
        'weightedJudgeScore': weighted_judge_score,
        'audienceVotes': scores_doc['audienceVotes'].get(contestant['id'], 0),
        'totalActiveVoters': total_distinct_voters(scores_doc),
        'audienceParticipationRatio': ratio,
        'audiencePercentage': audience_percentage,
        'weightedAudienceScore': weighted_audience_score,
        'finalScore': weighted_judge_score + weighted_audience_score,
        'judgeBreakdown': breakdown,
    }


def compute_category_results(category_contestants, scores_doc, weights, scale=10):
    """Ranked results for one category, best first. Ties keep list order."""
    results = [contestant_result(c, scores_doc, weights, scale) for c in category_contestants]
    results.sort(key=lambda r: r['finalScore'], reverse=True)
    return results


def compute_results(categories, contestants_doc, scores_doc, weights, category_id=None, scale=10):
    """Results for every category, or just one when category_id is given."""
    if category_id is not None:
        categories = [c for c in categories if c['id'] == category_id]
        if not categories:
            raise NotFoundError('Category not found')

    results = {}
    for category in categories:
        results[category['id']] = {
            'category': category,
            'results': compute_category_results(
                contestants_in_category(contestants_doc, category['id']),
                scores_doc, weights, scale),
        }
    return results


def finalized_podium(category_contestants, judges, scores_doc):
    """
    Top 3 by average finalized judge score, only once every judge has
    finalized every contestant of the category.
    """
    rows = []
    for contestant in category_contestants:
        by_judge = scores_doc['judgeScores'].get(contestant['id'], {})
        finalized = [by_judge[j['id']] for j in judges
                     if by_judge.get(j['id'], {}).get('finalized')]
        if judges and len(finalized) == len(judges):
            rows.append({
                'contestant': contestant,
                'averageScore': sum(r.get('totalScore') or 0 for r in finalized) / len(finalized),
                'judgeCount': len(finalized),
            })
    rows.sort(key=lambda r: r['averageScore'], reverse=True)
    all_judged = bool(category_contestants) and len(rows) == len(category_contestants)
    return {
        'results': rows[:3] if all_judged else [],
        'allJudged': all_judged,
        'totalContestants': len(category_contestants),
        'totalJudges': len(judges),
    }


def completion_status(judges, categories, contestants_doc, scores_doc):
    status = []
    total_contestants = len(contestants_doc['list'])
    for judge in judges:
        progress = []
        for category in categories:
            in_category = contestants_in_category(contestants_doc, category['id'])
            done = sum(1 for c in in_category if judge_score(scores_doc, c['id'], judge['id']))
            progress.append({
                'categoryId': category['id'],
                'categoryName': category['name'],
                'totalContestants': len(in_category),
                'completedContestants': done,
                'percentage': round(done / len(in_category) * 100) if in_category else 0,
            })
        completed = sum(p['completedContestants'] for p in progress)
        status.append({
            'id': judge['id'],
            'name': judge.get('name'),
            'username': judge.get('username'),
            'categoryProgress': progress,
            'totalContestants': total_contestants,
            'completedScores': completed,
            'overallPercentage': round(completed / total_contestants * 100) if total_contestants else 0,
        })
    return status


# --- Winners and publication ---

def clean_winners(winners):
    if not isinstance(winners, dict):
        raise ValidationError('winners must be an object with first/second/third')
    cleaned = {place: winners.get(place) for place in PLACES if winners.get(place)}
    if not cleaned:
        raise ValidationError('At least one of first, second or third is required')
    return cleaned


def declared_winner_ids(entry):
    return {place: entry.get(place) for place in PLACES if entry and entry.get(place)}


def declare_winners(settings, category_id, winners):
    """Store explicit winners for a category; they override the ranking."""
    entry = settings['results']['winners'].setdefault(category_id, {})
    for place in PLACES:
        entry.pop(place, None)
    entry.update(clean_winners(winners))
    entry['declaredAt'] = utcnow_iso()
    return entry


def publish_category(settings, category_id, winners=None):
    entry = settings['results']['winners'].setdefault(category_id, {})
    if winners:
        for place in PLACES:
            entry.pop(place, None)
        entry.update(clean_winners(winners))
        entry['declaredAt'] = utcnow_iso()
    entry['publishedAt'] = utcnow_iso()
    settings['results']['published'] = True
    return entry


def unpublish(settings):
    settings['results']['published'] = False


def audience_results(settings, categories, contestants_doc, scores_doc, weights, scale=10):
    """The audience view of results: declared winners, else the live top 3."""
    results_state = settings['results']
    if not results_state['published']:
        return {'published': False, 'message': 'Results have not been published yet'}

    by_id = {c['id']: c for c in contestants_doc['list']}
    results = {}
    for category in categories:
        entry = results_state['winners'].get(category['id'])
        if not entry or not entry.get('publishedAt'):
            continue

        winner_ids = declared_winner_ids(entry)
        if winner_ids:
            results[category['id']] = {
                'category': category,
                'type': 'declared',
                'winnerIds': {place: winner_ids.get(place) for place in PLACES},
                'winners': {place: by_id.get(winner_ids[place]) if place in winner_ids else None
                            for place in PLACES},
                'declaredAt': entry.get('declaredAt'),
                'publishedAt': entry['publishedAt'],
            }
            continue

        ranked = compute_category_results(
            contestants_in_category(contestants_doc, category['id']), scores_doc, weights, scale)
        podium = [r['contestant'] for r in ranked[:3]]
        podium += [None] * (3 - len(podium))
        results[category['id']] = {
            'category': category,
            'type': 'calculated',
            'winnerIds': {place: c['id'] if c else None for place, c in zip(PLACES, podium)},
            'winners': dict(zip(PLACES, podium)),
            'scores': [{
                'contestant': r['contestant'],
                'finalScore': r['finalScore'],
                'judgeScore': r['judgeScore'],
                'audienceVotes': r['audienceVotes'],
            } for r in ranked],
            'publishedAt': entry['publishedAt'],
        }
    return {'published': True, 'results': results}
