from flask import jsonify, current_app
from werkzeug.exceptions import HTTPException
from marshmallow import ValidationError
import logging

from services.exceptions import AuthError

logger = logging.getLogger(__name__)


def error_response(message: str, status: int):
    return jsonify({"error": {"message": message}}), status


def _first_validation_message(messages) -> str:
    """Flatten marshmallow's {field: [msg, ...]} into "field: msg"."""
    if isinstance(messages, dict):
        for field, value in messages.items():
            inner = _first_validation_message(value)
            return f"{field}: {inner}" if field != "_schema" else inner
    if isinstance(messages, (list, tuple)) and messages:
        return _first_validation_message(messages[0])
    return str(messages) if messages else "Validation error"


def register_error_handlers(app):
    # Closed taxonomy raised by the auth façade
    @app.errorhandler(AuthError)
    def handle_auth_error(err: AuthError):
        if current_app and current_app.debug:
            logger.debug("%s: %s", err.__class__.__name__, err.message)
        return error_response(err.message, err.status_code)

    # Marshmallow validation errors map to 400
    @app.errorhandler(ValidationError)
    def handle_validation_error(err: ValidationError):
        return error_response(_first_validation_message(err.messages), 400)

    # 404 Not Found
    @app.errorhandler(404)
    def not_found(e):
        return error_response("Resource not found", 404)

    # Werkzeug HTTPExceptions map to their status codes
    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        return error_response(err.description or err.name, err.code or 400)

    # 500 Internal Error (catch-all)
    @app.errorhandler(Exception)
    def internal_error(err: Exception):
        logger.exception("Unhandled exception", exc_info=err)
        return error_response("An unexpected error occurred", 500)
