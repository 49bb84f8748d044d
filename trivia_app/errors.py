from flask import current_app, jsonify
from werkzeug.exceptions import HTTPException

from .models import db


def storage_error(exc, action):
    """Roll back and answer 500 with the database's message."""
    db.session.rollback()
    current_app.logger.exception(f'Failed to {action}: {exc}')
    return jsonify({'error': str(getattr(exc, 'orig', None) or exc)}), 500


def init_app(app):
    @app.errorhandler(HTTPException)
    def http_error(e):
        return jsonify({'error': e.name, 'message': e.description}), e.code
