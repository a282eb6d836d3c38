# store.py
# Whole-document JSON store. Every read loads a full collection document and
# every write replaces it; there is no locking, the last writer wins.

import copy
import re
import secrets
import string
import uuid
from datetime import datetime, timezone

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm.attributes import flag_modified
from werkzeug.security import generate_password_hash

from extensions import db
from errors import PersistenceError
from models import Document

COLLECTIONS = ('admins', 'categories', 'contestants', 'judges', 'audience',
               'criteria', 'scores', 'settings')

CODE_ALPHABET = string.ascii_uppercase + string.digits
EMAIL_RE = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')


def utcnow_iso():
    return datetime.now(timezone.utc).isoformat()


def generate_id():
    return uuid.uuid4().hex[:12]


def generate_code(length=6):
    return ''.join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def is_valid_email(email):
    return bool(email) and EMAIL_RE.match(email) is not None


def find_by_id(items, item_id):
    for item in items:
        if item.get('id') == item_id:
            return item
    return None


# --- Normalization ---

def _list_document(data):
    if not isinstance(data.get('list'), list):
        data['list'] = []
    return data


def _criteria_document(data):
    if not isinstance(data.get('categories'), dict):
        data['categories'] = {}
    return data


def _scores_document(data):
    for key in ('judgeScores', 'audienceVotes', 'userVotes'):
        if not isinstance(data.get(key), dict):
            data[key] = {}
    if not isinstance(data.get('voteLog'), list):
        data['voteLog'] = []
    return data


def _settings_document(data):
    data.setdefault('votingOpen', False)
    weights = data.get('scoreWeights')
    if not isinstance(weights, dict) or 'judges' not in weights or 'audience' not in weights:
        data['scoreWeights'] = dict(current_app.config['DEFAULT_SCORE_WEIGHTS'])
    results = data.get('results')
    if not isinstance(results, dict):
        results = data['results'] = {}
    results.setdefault('published', False)
    if not isinstance(results.get('winners'), dict):
        results['winners'] = {}
    return data


NORMALIZERS = {
    'admins': _list_document,
    'categories': _list_document,
    'contestants': _list_document,
    'judges': _list_document,
    'audience': _list_document,
    'criteria': _criteria_document,
    'scores': _scores_document,
    'settings': _settings_document,
}


def normalize(collection, data):
    """Fill the default keys of a collection document in place."""
    if not isinstance(data, dict):
        data = {}
    return NORMALIZERS[collection](data)


def _check_collection(collection):
    if collection not in NORMALIZERS:
        raise PersistenceError(f'Unknown collection "{collection}"')


# --- Read / write ---

def read(collection):
    """Return a private, normalized copy of the whole document."""
    _check_collection(collection)
    try:
        row = db.session.get(Document, collection, populate_existing=True)
    except SQLAlchemyError as e:
        current_app.logger.exception('Error reading %s', collection)
        raise PersistenceError(f'Error reading {collection}') from e
    data = copy.deepcopy(row.data) if row is not None else {}
    return normalize(collection, data)


def write(collection, document):
    """Replace the whole document."""
    _check_collection(collection)
    data = normalize(collection, copy.deepcopy(document))
    try:
        row = db.session.get(Document, collection, populate_existing=True)
        if row is None:
            db.session.add(Document(collection=collection, data=data))
        else:
            row.data = data
            flag_modified(row, 'data')
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.exception('Error writing %s', collection)
        raise PersistenceError(f'Error writing {collection}') from e
    return True


def read_scores():
    return read('scores')


def write_scores(document):
    return write('scores', document)


# --- Initialization ---

def default_documents():
    config = current_app.config
    return {
        'admins': {'list': [{
            'id': 'admin1',
            'username': config['DEFAULT_ADMIN_USERNAME'],
            'password': generate_password_hash(config['DEFAULT_ADMIN_PASSWORD']),
            'firstName': 'System',
            'lastName': 'Administrator',
            'email': '',
            'mobile': '',
            'createdAt': utcnow_iso(),
        }]},
        'categories': {'list': []},
        'contestants': {'list': []},
        'judges': {'list': []},
        'audience': {'list': []},
        'criteria': {'categories': {}},
        'scores': {'judgeScores': {}, 'audienceVotes': {}, 'userVotes': {}, 'voteLog': []},
        'settings': {
            'votingOpen': False,
            'scoreWeights': dict(config['DEFAULT_SCORE_WEIGHTS']),
            'results': {'published': False, 'winners': {}},
        },
    }


def initialize_documents():
    """Create the table and any missing collection document."""
    db.create_all()
    created = []
    for collection, data in default_documents().items():
        if db.session.get(Document, collection) is None:
            write(collection, data)
            created.append(collection)
    if created:
        current_app.logger.info('Initialized documents: %s', ', '.join(created))
    return created
