# app.py
# Flask application built with the Application Factory pattern

import logging
import os

from flask import Flask, jsonify, request
from werkzeug.exceptions import HTTPException

from config import Config
from errors import AppError
from extensions import db, migrate

# Imported so that Flask-Migrate sees the table
from models import Document


def configure_logging(app):
    level = getattr(logging, str(app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO)
    app.logger.setLevel(level)


def register_error_handlers(app):
    @app.errorhandler(AppError)
    def handle_app_error(error):
        if error.status_code >= 500:
            app.logger.error('%s %s failed: %s', request.method, request.path, error.message)
        else:
            app.logger.warning('%s %s rejected (%s): %s', request.method, request.path,
                               error.status_code, error.message)
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error):
        return jsonify({'message': error.description}), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error):
        app.logger.exception('Unhandled error on %s %s', request.method, request.path)
        return jsonify({'message': 'Something went wrong!'}), 500


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)
    os.makedirs(app.instance_path, exist_ok=True)
    configure_logging(app)

    # --- Extensions ---
    db.init_app(app)
    migrate.init_app(app, db)

    # --- Blueprints ---
    from routes.auth import auth_bp
    from routes.admin import admin_bp
    from routes.judge import judge_bp
    from routes.audience import audience_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(judge_bp)
    app.register_blueprint(audience_bp)

    register_error_handlers(app)

    @app.route('/api/health')
    def health():
        return jsonify({'status': 'ok'})

    @app.cli.command('init-data')
    def init_data_command():
        """Create the documents table and the default documents."""
        from store import initialize_documents
        created = initialize_documents()
        print(f'Initialized: {", ".join(created) or "nothing to do"}')

    if app.config.get('AUTO_INIT_DATA'):
        from store import initialize_documents
        with app.app_context():
            initialize_documents()

    return app
