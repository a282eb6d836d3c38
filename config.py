# config.py
# Flask application configuration

import os


class Config:
    # Absolute path to the instance folder with the SQLite store
    BASE_DIR = os.path.abspath(os.path.dirname(__file__))
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        'DATABASE_URL',
        f'sqlite:///{os.path.join(BASE_DIR, "instance", "voting.db")}'
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SECRET_KEY = os.environ.get('SECRET_KEY', 'change-me-in-production')

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # Create tables and default documents when the app starts
    AUTO_INIT_DATA = os.environ.get('AUTO_INIT_DATA', '1') == '1'

    # Defaults for a fresh store
    DEFAULT_SCORE_WEIGHTS = {'judges': 70, 'audience': 30}
    DEFAULT_ADMIN_USERNAME = os.environ.get('ADMIN_USERNAME', 'admin')
    DEFAULT_ADMIN_PASSWORD = os.environ.get('ADMIN_PASSWORD', 'admin123')

    LOGIN_CODE_LENGTH = 6
    GENERATED_PASSWORD_LENGTH = 8

    # Raw judge totals are normalized against this scale
    JUDGE_SCORE_SCALE = 10


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SECRET_KEY = 'test-secret-key'
    AUTO_INIT_DATA = True
    DEFAULT_ADMIN_PASSWORD = 'admin123'
    LOG_LEVEL = 'WARNING'
