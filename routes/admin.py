# routes/admin.py

import csv
import io

from flask import Blueprint, jsonify, request, current_app, Response
from werkzeug.security import generate_password_hash, check_password_hash

import store
import logic
from errors import ValidationError, NotFoundError, StateError, PermissionDeniedError
from routes.auth import (role_required, json_body, public_record, text_field,
                         current_user_id)

admin_bp = Blueprint('admin', __name__, url_prefix='/api/admin')

admin_required = role_required('admin')


def _number(value, field):
    if isinstance(value, str):
        try:
            number = float(value)
        except ValueError:
            raise ValidationError(f'{field} must be a number')
        value = int(number) if number.is_integer() else number
    # NaN and Infinity are parsed from JSON too
    if not logic.is_number(value):
        raise ValidationError(f'{field} must be a number')
    return value


def _find_or_404(items, item_id, label):
    item = store.find_by_id(items, item_id)
    if not item:
        raise NotFoundError(f'{label} not found')
    return item


def _generated_password():
    return store.generate_code(current_app.config['GENERATED_PASSWORD_LENGTH'])


def _password_field(data, field):
    # Passwords are taken as given, no stripping
    value = data.get(field)
    if value is None:
        return ''
    if not isinstance(value, str):
        raise ValidationError(f'{field} must be a string')
    return value


# --- Categories ---

@admin_bp.route('/categories', methods=['GET', 'POST'])
@admin_required
def manage_categories():
    categories = store.read('categories')
    if request.method == 'GET':
        return jsonify(categories)

    data = json_body()
    name = text_field(data, 'name')
    if not name:
        raise ValidationError('Category name is required')
    if any(c['name'].strip().lower() == name.lower() for c in categories['list']):
        raise ValidationError('Category name already exists')

    category = {
        'id': store.generate_id(),
        'name': name,
        'description': data.get('description') or '',
        'image': data.get('image'),
        'createdAt': store.utcnow_iso(),
    }
    categories['list'].append(category)
    store.write('categories', categories)
    current_app.logger.info('Category "%s" created', name)
    return jsonify(category), 201


@admin_bp.route('/categories/<category_id>', methods=['PUT', 'DELETE'])
@admin_required
def edit_category(category_id):
    categories = store.read('categories')
    category = _find_or_404(categories['list'], category_id, 'Category')

    if request.method == 'DELETE':
        # A category that still holds contestants cannot be removed
        in_use = logic.contestants_in_category(store.read('contestants'), category_id)
        if in_use:
            raise StateError(f'Cannot delete category "{category["name"]}" while it has '
                             f'{len(in_use)} contestant(s). Move or delete them first.')
        categories['list'].remove(category)
        store.write('categories', categories)

        criteria = store.read('criteria')
        if criteria['categories'].pop(category_id, None) is not None:
            store.write('criteria', criteria)
        return jsonify({'message': 'Category deleted successfully'})

    data = json_body()
    name = text_field(data, 'name')
    if name and any(c['id'] != category_id and c['name'].strip().lower() == name.lower()
                    for c in categories['list']):
        raise ValidationError('Category name already exists')
    category['name'] = name or category['name']
    if 'description' in data:
        category['description'] = data['description'] or ''
    if 'image' in data:
        category['image'] = data['image']
    category['updatedAt'] = store.utcnow_iso()
    store.write('categories', categories)
    return jsonify(category)


# --- Contestants ---

@admin_bp.route('/contestants', methods=['GET', 'POST'])
@admin_required
def manage_contestants():
    contestants = store.read('contestants')
    if request.method == 'GET':
        return jsonify(contestants)

    data = json_body()
    name = text_field(data, 'name')
    category_id = text_field(data, 'categoryId')
    if not name or not category_id:
        raise ValidationError('Contestant name and category are required')
    _find_or_404(store.read('categories')['list'], category_id, 'Category')

    contestant = {
        'id': store.generate_id(),
        'name': name,
        'company': text_field(data, 'company'),
        'description': data.get('description') or '',
        'categoryId': category_id,
        'image': data.get('image'),
        'createdAt': store.utcnow_iso(),
    }
    contestants['list'].append(contestant)
    store.write('contestants', contestants)
    current_app.logger.info('Contestant "%s" added to category %s', name, category_id)
    return jsonify(contestant), 201


@admin_bp.route('/contestants/<contestant_id>', methods=['PUT', 'DELETE'])
@admin_required
def edit_contestant(contestant_id):
    contestants = store.read('contestants')
    contestant = _find_or_404(contestants['list'], contestant_id, 'Contestant')

    if request.method == 'DELETE':
        contestants['list'].remove(contestant)
        store.write('contestants', contestants)
        return jsonify({'message': 'Contestant deleted successfully'})

    data = json_body()
    category_id = text_field(data, 'categoryId')
    if category_id:
        _find_or_404(store.read('categories')['list'], category_id, 'Category')
        contestant['categoryId'] = category_id
    name = text_field(data, 'name')
    if name:
        contestant['name'] = name
    # Optional fields can be cleared with an empty value
    for field in ('company', 'description'):
        if field in data:
            contestant[field] = data[field] or ''
    if 'image' in data:
        contestant['image'] = data['image'] or None
    contestant['updatedAt'] = store.utcnow_iso()
    store.write('contestants', contestants)
    return jsonify(contestant)


# --- Judges ---

@admin_bp.route('/judges', methods=['GET', 'POST'])
@admin_required
def manage_judges():
    judges = store.read('judges')
    if request.method == 'GET':
        return jsonify({'list': [public_record(j, 'password') for j in judges['list']]})

    data = json_body()
    name = text_field(data, 'name')
    username = text_field(data, 'username')
    if not name or not username:
        raise ValidationError('Judge name and username are required')
    if any(j.get('username') == username for j in judges['list']):
        raise ValidationError(f'Username "{username}" already exists')

    password = _generated_password()
    judge = {
        'id': store.generate_id(),
        'name': name,
        'username': username,
        'description': data.get('description') or '',
        'image': data.get('image'),
        'password': generate_password_hash(password),
        'createdAt': store.utcnow_iso(),
    }
    judges['list'].append(judge)
    store.write('judges', judges)

    # The plain password is only ever shown here
    body = public_record(judge, 'password')
    body['generatedPassword'] = password
    return jsonify(body), 201


@admin_bp.route('/judges/<judge_id>', methods=['PUT', 'DELETE'])
@admin_required
def edit_judge(judge_id):
    judges = store.read('judges')
    judge = _find_or_404(judges['list'], judge_id, 'Judge')

    if request.method == 'DELETE':
        judges['list'].remove(judge)
        store.write('judges', judges)
        return jsonify({'message': 'Judge deleted successfully'})

    data = json_body()
    username = text_field(data, 'username')
    if username and any(j['id'] != judge_id and j.get('username') == username
                        for j in judges['list']):
        raise ValidationError(f'Username "{username}" already exists')
    name = text_field(data, 'name')
    judge['name'] = name or judge.get('name')
    judge['username'] = username or judge['username']
    if 'description' in data:
        judge['description'] = data['description'] or ''
    if 'image' in data:
        judge['image'] = data['image'] or None
    judge['updatedAt'] = store.utcnow_iso()
    store.write('judges', judges)
    return jsonify(public_record(judge, 'password'))


@admin_bp.route('/judges/<judge_id>/reset-password', methods=['POST'])
@admin_required
def reset_judge_password(judge_id):
    judges = store.read('judges')
    judge = _find_or_404(judges['list'], judge_id, 'Judge')

    password = _generated_password()
    judge['password'] = generate_password_hash(password)
    judge['passwordResetAt'] = store.utcnow_iso()
    store.write('judges', judges)
    return jsonify({'message': 'Password reset successfully', 'generatedPassword': password})


# --- Admins ---

@admin_bp.route('/admins', methods=['GET', 'POST'])
@admin_required
def manage_admins():
    admins = store.read('admins')
    if request.method == 'GET':
        return jsonify({'list': [public_record(a, 'password') for a in admins['list']]})

    data = json_body()
    username = text_field(data, 'username')
    email = text_field(data, 'email')
    if not username:
        raise ValidationError('Username is required')
    if not store.is_valid_email(email):
        raise ValidationError('Invalid email format')
    if any(a.get('username') == username or (a.get('email') or '').lower() == email.lower()
           for a in admins['list']):
        raise ValidationError('Username or email already exists')

    password = _generated_password()
    admin = {
        'id': store.generate_id(),
        'username': username,
        'firstName': text_field(data, 'firstName'),
        'lastName': text_field(data, 'lastName'),
        'mobile': text_field(data, 'mobile'),
        'email': email,
        'password': generate_password_hash(password),
        'createdAt': store.utcnow_iso(),
    }
    admins['list'].append(admin)
    store.write('admins', admins)

    body = public_record(admin, 'password')
    body['generatedPassword'] = password
    return jsonify(body), 201


def _is_super_admin(admin):
    return admin.get('username') == current_app.config['DEFAULT_ADMIN_USERNAME']


def _acting_admin(admins):
    me = store.find_by_id(admins, current_user_id())
    if not me:
        raise PermissionDeniedError('Admin account no longer exists')
    return me


@admin_bp.route('/admins/<admin_id>', methods=['PUT', 'DELETE'])
@admin_required
def edit_admin(admin_id):
    """
    The super admin may edit and delete any other admin account. Other admins
    may only edit their own profile and never delete.
    """
    admins = store.read('admins')
    me = _acting_admin(admins['list'])
    admin = _find_or_404(admins['list'], admin_id, 'Admin user')

    if request.method == 'DELETE':
        if not _is_super_admin(me):
            raise PermissionDeniedError('Only the super administrator can delete admin users')
        if _is_super_admin(admin):
            raise PermissionDeniedError('Cannot delete the super administrator account')
        admins['list'].remove(admin)
        store.write('admins', admins)
        current_app.logger.info('Admin %s deleted by %s', admin['username'], me['username'])
        return jsonify({'message': 'Admin user deleted successfully'})

    if not _is_super_admin(me) and admin['id'] != me['id']:
        raise PermissionDeniedError('You can only edit your own profile')

    data = json_body()
    first_name = text_field(data, 'firstName')
    last_name = text_field(data, 'lastName')
    email = text_field(data, 'email')
    if not first_name or not last_name or not email:
        raise ValidationError('First name, last name, and email are required')
    if not store.is_valid_email(email):
        raise ValidationError('Invalid email format')
    if any(a['id'] != admin_id and (a.get('email') or '').lower() == email.lower()
           for a in admins['list']):
        raise ValidationError('Email already exists')

    admin.update({
        'firstName': first_name,
        'lastName': last_name,
        'email': email,
        'mobile': text_field(data, 'mobile'),
        'updatedAt': store.utcnow_iso(),
    })
    store.write('admins', admins)
    return jsonify({'message': 'Admin user updated successfully',
                    'user': public_record(admin, 'password')})


@admin_bp.route('/admins/<admin_id>/password', methods=['PUT'])
@admin_required
def change_admin_password(admin_id):
    """
    Admins change their own password with the current one. The super admin
    can reset anyone's password without it.
    """
    data = json_body()
    new_password = _password_field(data, 'newPassword')
    if not new_password:
        raise ValidationError('New password is required')

    admins = store.read('admins')
    me = _acting_admin(admins['list'])
    admin = _find_or_404(admins['list'], admin_id, 'Admin user')
    own_account = admin['id'] == me['id']

    if not own_account and not _is_super_admin(me):
        raise PermissionDeniedError('You can only change your own password. Only the super '
                                    "administrator can reset other users' passwords.")
    if own_account and not _is_super_admin(me):
        current_password = _password_field(data, 'currentPassword')
        if not current_password:
            raise ValidationError('Current password is required when changing your own password')
        if not check_password_hash(admin['password'], current_password):
            raise ValidationError('Current password is incorrect')

    admin['password'] = generate_password_hash(new_password)
    admin['updatedAt'] = store.utcnow_iso()
    store.write('admins', admins)

    current_app.logger.info('Password of admin %s changed by %s', admin['username'], me['username'])
    return jsonify({'message': 'Password changed successfully' if own_account
                    else 'Password reset successfully'})


# --- Audience ---

def _audience_fields(data, members, member_id=None):
    email = text_field(data, 'email')
    if not store.is_valid_email(email):
        raise ValidationError('Invalid email format')
    if any(m['id'] != member_id and (m.get('email') or '').lower() == email.lower()
           for m in members):
        raise ValidationError('Email already exists')
    return {
        'firstName': text_field(data, 'firstName'),
        'lastName': text_field(data, 'lastName'),
        'mobile': text_field(data, 'mobile'),
        'email': email,
        'company': text_field(data, 'company'),
    }


@admin_bp.route('/audience', methods=['GET', 'POST'])
@admin_required
def manage_audience():
    audience = store.read('audience')
    if request.method == 'GET':
        return jsonify({'list': [public_record(m, 'loginCode') for m in audience['list']]})

    fields = _audience_fields(json_body(), audience['list'])
    taken = {m.get('loginCode') for m in audience['list']}
    code = store.generate_code(current_app.config['LOGIN_CODE_LENGTH'])
    while code in taken:
        code = store.generate_code(current_app.config['LOGIN_CODE_LENGTH'])

    member = dict(fields, id=store.generate_id(), loginCode=code, createdAt=store.utcnow_iso())
    audience['list'].append(member)
    store.write('audience', audience)
    return jsonify(public_record(member, 'loginCode')), 201


@admin_bp.route('/audience/<member_id>', methods=['PUT', 'DELETE'])
@admin_required
def edit_audience_member(member_id):
    audience = store.read('audience')
    member = _find_or_404(audience['list'], member_id, 'Audience member')

    if request.method == 'DELETE':
        audience['list'].remove(member)
        store.write('audience', audience)
        return jsonify({'message': 'Audience member deleted successfully'})

    member.update(_audience_fields(json_body(), audience['list'], member_id))
    member['updatedAt'] = store.utcnow_iso()
    store.write('audience', audience)
    return jsonify(public_record(member, 'loginCode'))


@admin_bp.route('/audience/<member_id>/login-code')
@admin_required
def audience_login_code(member_id):
    member = _find_or_404(store.read('audience')['list'], member_id, 'Audience member')
    return jsonify({'id': member['id'], 'loginCode': member['loginCode']})


# --- Judging criteria ---

def _clean_criterion(data):
    name = text_field(data, 'name')
    if not name:
        raise ValidationError('Criterion name is required')
    weight = _number(data.get('weight'), 'weight')
    max_score = _number(data.get('maxScore'), 'maxScore')
    if not 0 <= weight <= 100:
        raise ValidationError('weight must be a percentage between 0 and 100')
    if max_score <= 0:
        raise ValidationError('maxScore must be greater than 0')
    return {
        'id': data.get('id') or store.generate_id(),
        'name': name,
        'description': data.get('description') or '',
        'weight': weight,
        'maxScore': max_score,
        'createdAt': data.get('createdAt') or store.utcnow_iso(),
    }


@admin_bp.route('/judging-criteria/<category_id>', methods=['GET', 'POST', 'PUT'])
@admin_required
def manage_criteria(category_id):
    criteria = store.read('criteria')
    if request.method == 'GET':
        return jsonify({'categoryId': category_id,
                        'criteria': logic.category_criteria(criteria, category_id)})

    _find_or_404(store.read('categories')['list'], category_id, 'Category')
    data = json_body()

    if request.method == 'POST':
        criterion = _clean_criterion(data)
        criteria['categories'].setdefault(category_id, []).append(criterion)
        store.write('criteria', criteria)
        return jsonify(criterion), 201

    items = data.get('criteria')
    if not isinstance(items, list):
        raise ValidationError('criteria must be a list')
    cleaned = [_clean_criterion(item if isinstance(item, dict) else {}) for item in items]
    criteria['categories'][category_id] = cleaned
    store.write('criteria', criteria)
    return jsonify({'categoryId': category_id, 'criteria': cleaned})


@admin_bp.route('/judging-criteria/<category_id>/<criterion_id>', methods=['DELETE'])
@admin_required
def delete_criterion(category_id, criterion_id):
    criteria = store.read('criteria')
    items = logic.category_criteria(criteria, category_id)
    criterion = _find_or_404(items, criterion_id, 'Criterion')

    # Refuse while judges have already scored against it
    for by_judge in store.read_scores()['judgeScores'].values():
        for record in by_judge.values():
            if record.get('categoryId') == category_id and criterion_id in record.get('criteriaScores', {}):
                raise StateError(f'Cannot delete criterion "{criterion["name"]}": '
                                 'judges have already scored against it.')

    items.remove(criterion)
    store.write('criteria', criteria)
    return jsonify({'message': 'Criterion deleted successfully'})


# --- Settings ---

@admin_bp.route('/settings', methods=['GET', 'POST'])
@admin_required
def manage_settings():
    settings = store.read('settings')
    if request.method == 'GET':
        return jsonify(settings)

    data = json_body()
    event_name = text_field(data, 'eventName')
    event_description = text_field(data, 'eventDescription')
    if not event_name or not event_description:
        raise ValidationError('Event name and description are required')

    settings['eventName'] = event_name
    settings['eventDescription'] = event_description
    if 'scoreWeights' in data:
        weights = data['scoreWeights'] if isinstance(data['scoreWeights'], dict) else {}
        settings['scoreWeights'] = logic.validate_score_weights(
            weights.get('judges'), weights.get('audience'))._asdict()
    if 'votingOpen' in data:
        if not isinstance(data['votingOpen'], bool):
            raise ValidationError('votingOpen must be true or false')
        settings['votingOpen'] = data['votingOpen']
    settings['updatedAt'] = store.utcnow_iso()

    store.write('settings', settings)
    return jsonify({'message': 'Settings saved successfully', 'settings': settings})


@admin_bp.route('/settings/voting', methods=['PUT'])
@admin_required
def update_voting():
    voting_open = json_body().get('votingOpen')
    if not isinstance(voting_open, bool):
        raise ValidationError('votingOpen must be true or false')

    settings = store.read('settings')
    settings['votingOpen'] = voting_open
    settings['votingStatusUpdatedAt'] = store.utcnow_iso()
    store.write('settings', settings)

    current_app.logger.info('Voting %s', 'opened' if voting_open else 'closed')
    return jsonify({'message': 'Voting status updated', 'votingOpen': voting_open})


@admin_bp.route('/settings/score-weights', methods=['PUT'])
@admin_required
def update_score_weights():
    data = json_body()
    weights = logic.validate_score_weights(data.get('judges'), data.get('audience'))

    settings = store.read('settings')
    settings['scoreWeights'] = weights._asdict()
    settings['scoreWeightsUpdatedAt'] = store.utcnow_iso()
    store.write('settings', settings)
    return jsonify({'message': 'Score weights updated', 'scoreWeights': settings['scoreWeights']})


# --- Results ---

@admin_bp.route('/results')
@admin_required
def admin_results_view():
    settings = store.read('settings')
    scores = store.read_scores()
    category_id = request.args.get('categoryId')
    if category_id == 'all':
        category_id = None

    results = logic.compute_results(
        store.read('categories')['list'],
        store.read('contestants'),
        scores,
        logic.score_weights_from_settings(settings),
        category_id=category_id,
        scale=current_app.config['JUDGE_SCORE_SCALE'],
    )

    active_judges = {judge_id for by_judge in scores['judgeScores'].values() for judge_id in by_judge}
    judges = [{'id': j['id'], 'name': j.get('name'), 'hasScored': j['id'] in active_judges}
              for j in store.read('judges')['list']]

    return jsonify({
        'results': results,
        'settings': settings['results'],
        'scoreWeights': settings['scoreWeights'],
        'activeJudges': sorted(active_judges),
        'judges': judges,
        'rawScores': scores['judgeScores'],
    })


@admin_bp.route('/results/declare-winner', methods=['POST'])
@admin_required
def declare_winner():
    data = json_body()
    category_id = data.get('categoryId')
    if not category_id:
        raise ValidationError('Category ID is required')
    _find_or_404(store.read('categories')['list'], category_id, 'Category')

    winners = data.get('winners')
    if winners is None:
        winners = {place: data.get(place) for place in logic.PLACES}

    settings = store.read('settings')
    entry = logic.declare_winners(settings, category_id, winners)
    store.write('settings', settings)

    current_app.logger.info('Winners declared for category %s: %s',
                            category_id, logic.declared_winner_ids(entry))
    return jsonify({'message': 'Winner declared successfully', 'winners': entry})


@admin_bp.route('/results/publish/<category_id>', methods=['POST'])
@admin_required
def publish_results(category_id):
    _find_or_404(store.read('categories')['list'], category_id, 'Category')
    winners = json_body().get('winners')

    settings = store.read('settings')
    entry = logic.publish_category(settings, category_id, winners)
    store.write('settings', settings)

    current_app.logger.info('Results published for category %s', category_id)
    return jsonify({'message': 'Results published successfully', 'winners': entry})


@admin_bp.route('/results/unpublish', methods=['POST'])
@admin_required
def unpublish_results():
    settings = store.read('settings')
    logic.unpublish(settings)
    store.write('settings', settings)

    current_app.logger.info('Results unpublished')
    return jsonify({'message': 'Results unpublished successfully'})


@admin_bp.route('/results/clear-votes', methods=['POST'])
@admin_required
def clear_votes():
    store.write_scores({'lastClearedAt': store.utcnow_iso()})

    settings = store.read('settings')
    settings['results']['winners'] = {}
    logic.unpublish(settings)
    store.write('settings', settings)

    current_app.logger.info('All judge scores and audience votes were cleared')
    return jsonify({'message': 'All votes cleared successfully'})


@admin_bp.route('/results/export')
@admin_required
def export_results():
    settings = store.read('settings')
    categories = store.read('categories')['list']
    contestants = store.read('contestants')
    scores = store.read_scores()
    results = logic.compute_results(categories, contestants, scores,
                                    logic.score_weights_from_settings(settings),
                                    scale=current_app.config['JUDGE_SCORE_SCALE'])
    winners = settings['results']['winners']

    if request.args.get('format') == 'csv':
        out = io.StringIO()
        writer = csv.writer(out)
        writer.writerow(['Category', 'Contestant', 'Average Judge Score', 'Audience Votes',
                         'Final Score', 'Place'])
        for category_id, bucket in results.items():
            declared = logic.declared_winner_ids(winners.get(category_id))
            places = {cid: place for place, cid in declared.items()}
            for row in bucket['results']:
                writer.writerow([
                    bucket['category']['name'],
                    row['contestant'].get('name'),
                    f'{row["judgeScore"]:.2f}',
                    row['audienceVotes'],
                    f'{row["finalScore"]:.2f}',
                    places.get(row['contestant']['id'], ''),
                ])
        return Response(out.getvalue(), mimetype='text/csv', headers={
            'Content-Disposition': 'attachment; filename=voting_results.csv'})

    return jsonify({
        'exportedAt': store.utcnow_iso(),
        'event': {'name': settings.get('eventName', ''),
                  'description': settings.get('eventDescription', '')},
        'categories': categories,
        'contestants': contestants['list'],
        'judges': [{'id': j['id'], 'name': j.get('name')} for j in store.read('judges')['list']],
        'audience': {'total': len(store.read('audience')['list'])},
        'scoreWeights': settings['scoreWeights'],
        'results': results,
        'scores': scores,
        'winners': winners,
    })
