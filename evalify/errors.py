"""
API Errors
Exception types raised by services and routes, rendered as JSON
"""
import logging

from flask import jsonify
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

logger = logging.getLogger(__name__)


class ApiError(Exception):
    """Base error carrying an HTTP status code"""
    status_code = 500

    def __init__(self, message, status_code=None, payload=None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.payload = payload or {}

    def to_dict(self):
        body = dict(self.payload)
        body['error'] = self.message
        return body


class ValidationError(ApiError):
    status_code = 400


class AuthenticationError(ApiError):
    status_code = 401


class PermissionDenied(ApiError):
    status_code = 403


class NotFoundError(ApiError):
    status_code = 404


class ConflictError(ApiError):
    status_code = 409


class ExternalServiceError(ApiError):
    """An upstream service (evaluation worker, report generator) failed"""
    status_code = 502


def register_error_handlers(app):
    """Render every error as a JSON body"""

    @app.errorhandler(ApiError)
    def handle_api_error(error):
        if error.status_code >= 500:
            logger.error('API error %s: %s', error.status_code, error.message)
        return jsonify(error.to_dict()), error.status_code

    @app.errorhandler(HTTPException)
    def handle_http_exception(error):
        return jsonify({'error': error.description}), error.code

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(error):
        from evalify.extensions import db

        db.session.rollback()
        logger.exception('Database error: %s', error)
        return jsonify({'error': 'Database error'}), 500
