import logging
import uuid
from http import HTTPStatus

from flask import Flask, g, jsonify, request, current_app
from flask.logging import default_handler
from marshmallow import ValidationError
from pythonjsonlogger import jsonlogger
from werkzeug.exceptions import HTTPException as WerkzeugHTTPException

from slot_be.config import Config
from slot_be.error_codes import ErrorCodes
from slot_be.exceptions import AppException
from slot_be.routes.config import config_bp
from slot_be.routes.slots import slots_bp
from slot_be.services.session_manager import SessionManager


# Custom Logging Filter for Request ID
class RequestIdFilter(logging.Filter):
    def filter(self, record):
        try:
            record.request_id = g.get('request_id', 'N/A')
        except RuntimeError:
            record.request_id = 'N/A'
        return True


def configure_logging(app):
    """JSON log lines in production, plain logging in debug mode."""
    level = getattr(logging, app.config.get('LOG_LEVEL', 'INFO'), logging.INFO)
    if not app.debug:
        handler = logging.StreamHandler()
        formatter = jsonlogger.JsonFormatter(
            '%(asctime)s %(levelname)s %(request_id)s %(name)s %(module)s %(funcName)s %(lineno)d %(message)s'
        )
        handler.setFormatter(formatter)
        handler.addFilter(RequestIdFilter())

        # app.logger ('slot_be.app') propagates into the package logger, which owns the handler.
        package_logger = logging.getLogger('slot_be')
        if package_logger.hasHandlers():
            package_logger.handlers.clear()
        package_logger.addHandler(handler)
        package_logger.setLevel(level)
        app.logger.removeHandler(default_handler)
        app.logger.setLevel(level)
    else:
        if not app.logger.handlers:
            logging.basicConfig(level=logging.DEBUG)


def _error_response(error_code, status_message, details, status_code, action_button=None):
    return jsonify({
        'request_id': g.get('request_id', 'N/A'),
        'status': False,
        'error_code': error_code,
        'status_message': status_message,
        'details': details,
        'action_button': action_button
    }), status_code


def register_error_handlers(app):
    @app.errorhandler(ValidationError)
    def handle_validation_error(e):
        # Marshmallow errors get the same envelope as our own ValidationException.
        current_app.logger.warning(
            f"Request ID: {g.get('request_id', 'N/A')} - Validation error: {e.messages} - Error Code: {ErrorCodes.VALIDATION_ERROR}"
        )
        return _error_response(
            ErrorCodes.VALIDATION_ERROR, 'Input validation failed.',
            {'errors': e.messages}, HTTPStatus.UNPROCESSABLE_ENTITY
        )

    @app.errorhandler(WerkzeugHTTPException)
    def handle_werkzeug_http_exception(e):
        error_code = ErrorCodes.GENERIC_ERROR
        if e.code == 404:
            error_code = ErrorCodes.NOT_FOUND
        elif e.code == 405:
            error_code = ErrorCodes.METHOD_NOT_ALLOWED
        elif e.code >= 500:
            error_code = ErrorCodes.INTERNAL_SERVER_ERROR

        current_app.logger.warning(
            f"Request ID: {g.get('request_id', 'N/A')} - Werkzeug HTTPException: {e.code} - {e.name}: {e.description} - Error Code: {error_code}"
        )
        details = {'description': e.description}
        if e.code == 404:
            details['path'] = request.path
        return _error_response(error_code, e.name, details, e.code)

    @app.errorhandler(Exception)
    def handle_global_exception(e):
        request_id = g.get('request_id', 'N/A')

        if isinstance(e, AppException):
            current_app.logger.error(
                f"Request ID: {request_id} - AppException: {e.error_code} - {e.status_message} - Details: {e.details}",
                exc_info=e.status_code >= 500
            )
            return _error_response(e.error_code, e.status_message, e.details, e.status_code, e.action_button)

        if isinstance(e, WerkzeugHTTPException):
            return handle_werkzeug_http_exception(e)

        current_app.logger.critical(
            f"Request ID: {request_id} - Unhandled Critical Exception. Error Code: {ErrorCodes.INTERNAL_SERVER_ERROR}",
            exc_info=True
        )
        return _error_response(
            ErrorCodes.INTERNAL_SERVER_ERROR,
            'An unexpected internal server error occurred. Please try again later.',
            {}, HTTPStatus.INTERNAL_SERVER_ERROR
        )


def create_app(config_class=Config, session_manager=None):
    """Application factory."""
    app = Flask(__name__)
    app.config.from_object(config_class)
    app.json.sort_keys = False

    configure_logging(app)

    @app.before_request
    def assign_request_id():
        g.request_id = request.headers.get('X-Request-ID') or str(uuid.uuid4())

    @app.after_request
    def add_response_headers(response):
        response.headers['X-Request-ID'] = g.get('request_id', 'N/A')
        response.headers['X-Content-Type-Options'] = 'nosniff'
        return response

    register_error_handlers(app)

    if session_manager is None:
        session_manager = SessionManager()
    session_manager.init_app(app)

    app.register_blueprint(config_bp)
    app.register_blueprint(slots_bp)

    @app.route('/health', methods=['GET'])
    def health():
        return jsonify({'status': True, 'sessions': len(app.session_manager.sessions)}), 200

    return app


if __name__ == '__main__':
    app = create_app()
    app.run(host='0.0.0.0', port=5000, debug=app.debug)
