# FILE: edutrack/errors/handlers.py
from flask import current_app, jsonify, request
from sqlalchemy.exc import DataError, DBAPIError, IntegrityError, SQLAlchemyError, StatementError
from werkzeug.exceptions import HTTPException

from edutrack import db, login
from edutrack.errors import bp
from edutrack.exceptions import APIError


@login.unauthorized_handler
def unauthorized():
    return jsonify({'error': 'Access token required'}), 401


@bp.app_errorhandler(APIError)
def handle_api_error(error):
    if error.status_code >= 500:
        current_app.logger.error(f'{request.method} {request.path} failed: {error.message}')
    return jsonify(error.to_dict()), error.status_code


@bp.app_errorhandler(HTTPException)
def handle_http_exception(error):
    message = error.description
    if error.code == 404 and request.url_rule is None and request.path.startswith('/api'):
        message = 'API endpoint not found'
    elif error.code == 429:
        if request.path.startswith('/api/auth'):
            message = 'Too many authentication attempts, please try again later.'
        else:
            message = 'Too many requests from this IP, please try again later.'
    return jsonify({'error': message}), error.code


@bp.app_errorhandler(IntegrityError)
def handle_integrity_error(error):
    db.session.rollback()
    current_app.logger.warning(f'Integrity error on {request.method} {request.path}: {error.orig}')
    return jsonify({'error': 'Duplicate field value entered'}), 409


@bp.app_errorhandler(StatementError)
def handle_statement_error(error):
    # Driver failures other than bad values are server errors
    if isinstance(error, DBAPIError) and not isinstance(error, DataError):
        return handle_database_error(error)
    db.session.rollback()
    current_app.logger.warning(f'Rejected malformed value on {request.method} {request.path}: {error.orig}')
    return jsonify({'error': 'Invalid ID format'}), 400


@bp.app_errorhandler(SQLAlchemyError)
def handle_database_error(error):
    db.session.rollback()
    current_app.logger.error(f'Database error on {request.method} {request.path}: {error}', exc_info=True)
    return jsonify({'error': _server_error_message(error)}), 500


@bp.app_errorhandler(Exception)
def handle_unexpected_error(error):
    db.session.rollback()
    current_app.logger.error(f'Unhandled error on {request.method} {request.path}: {error}', exc_info=True)
    return jsonify({'error': _server_error_message(error)}), 500


def _server_error_message(error):
    if current_app.config['APP_ENV'] == 'production':
        return 'Something went wrong!'
    return str(error)
