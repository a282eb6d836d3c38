# routes/auth.py
# Login for admins, judges and audience members. The identity lives in the
# signed session cookie as user_id / user_role.

from functools import wraps

from flask import Blueprint, request, session, jsonify, current_app
from werkzeug.security import check_password_hash

import store
from errors import AuthenticationError, PermissionDeniedError, ValidationError

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')


def json_body():
    data = request.get_json(silent=True)
    if data is None:
        data = request.form.to_dict()
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


def text_field(data, field):
    """Stripped string value of a body field; '' when missing or null."""
    value = data.get(field)
    if value is None:
        return ''
    if not isinstance(value, str):
        raise ValidationError(f'{field} must be a string')
    return value.strip()


def login_required(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if 'user_id' not in session:
            raise AuthenticationError('Access token required')
        return f(*args, **kwargs)
    return decorated_function


def role_required(role):
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if 'user_id' not in session:
                raise AuthenticationError('Access token required')
            if session.get('user_role') != role:
                raise PermissionDeniedError(f'{role.capitalize()} access required')
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def current_user_id():
    return session['user_id']


def _start_session(user_id, role, name):
    session.clear()
    session['user_id'] = user_id
    session['user_role'] = role
    session['user_name'] = name
    current_app.logger.info('%s %s logged in', role, user_id)


def public_record(record, *hidden):
    return {k: v for k, v in record.items() if k not in hidden}


def _password_login(collection, role):
    data = json_body()
    username = text_field(data, 'username')
    password = data.get('password')
    if password is not None and not isinstance(password, str):
        raise ValidationError('password must be a string')
    if not username or not password:
        raise ValidationError('Username and password are required')

    users = store.read(collection)['list']
    user = next((u for u in users if u.get('username') == username), None)
    if not user or not check_password_hash(user['password'], password):
        raise AuthenticationError('Invalid credentials')

    _start_session(user['id'], role, user['username'])
    return jsonify({'message': 'Login successful',
                    'user': public_record(user, 'password')})


@auth_bp.route('/admin/login', methods=['POST'])
def admin_login():
    return _password_login('admins', 'admin')


@auth_bp.route('/judge/login', methods=['POST'])
def judge_login():
    return _password_login('judges', 'judge')


@auth_bp.route('/audience/login', methods=['POST'])
def audience_login():
    code = text_field(json_body(), 'loginCode').upper()
    if not code:
        raise ValidationError('Login code is required')

    members = store.read('audience')['list']
    member = next((m for m in members if m.get('loginCode') == code), None)
    if not member:
        raise AuthenticationError('Invalid login code')

    _start_session(member['id'], 'audience', member['loginCode'])
    return jsonify({
        'message': 'Login successful',
        'user': {
            'id': member['id'],
            'firstName': member.get('firstName'),
            'lastName': member.get('lastName'),
            'company': member.get('company'),
            'loginCode': member['loginCode'],
        },
    })


@auth_bp.route('/logout', methods=['POST'])
def logout():
    session.clear()
    return jsonify({'message': 'Logged out'})


@auth_bp.route('/me')
@login_required
def me():
    return jsonify({'id': session['user_id'], 'role': session['user_role'],
                    'name': session.get('user_name')})
