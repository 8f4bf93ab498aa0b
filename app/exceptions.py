"""
Playdex - Custom Exceptions and Exception Handlers
"""
import structlog
from flask import jsonify
from werkzeug.exceptions import HTTPException

logger = structlog.get_logger('exceptions')


class PlaydexException(Exception):
    """Base exception for Playdex"""
    def __init__(self, message: str, code: str = "PLAYDEX_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)

    def to_dict(self):
        return {
            'error': True,
            'code': self.code,
            'message': self.message
        }


class NotFoundException(PlaydexException):
    """The upstream source has no record for the requested id. Never retried."""
    def __init__(self, message: str, source: str = None):
        super().__init__(message, code="NOT_FOUND")
        self.source = source
        logger.warning(f"Not found: {message}", source=source)


class UpstreamException(PlaydexException):
    """Network error, timeout, 5xx or malformed payload from an external source"""
    def __init__(self, message: str, source: str = None, status_code: int = None):
        super().__init__(message, code="UPSTREAM_ERROR")
        self.source = source
        self.status_code = status_code
        logger.error(f"Upstream error: {message}", source=source, status_code=status_code)

    def to_dict(self):
        data = super().to_dict()
        data['source'] = self.source
        return data


class RateLimitedException(UpstreamException):
    """Upstream answered 429. Callers should back off longer than for other upstream errors."""
    def __init__(self, message: str, source: str = None, retry_after: float = None):
        super().__init__(message, source=source, status_code=429)
        self.code = "RATE_LIMITED"
        self.retry_after = retry_after


class ValidationException(PlaydexException):
    """Malformed local input (bad dates, bad ids)"""
    def __init__(self, message: str):
        super().__init__(message, code="VALIDATION_ERROR")
        logger.warning(f"Validation error: {message}")


def register_exception_handlers(app):
    """Register exception handlers with Flask app"""

    @app.errorhandler(HTTPException)
    def handle_http_exception(e):
        """Handle HTTP exceptions"""
        return jsonify({
            'error': True,
            'code': e.name.upper().replace(' ', '_'),
            'message': e.description
        }), e.code

    @app.errorhandler(PlaydexException)
    def handle_playdex_exception(e):
        return jsonify(e.to_dict()), 400

    @app.errorhandler(NotFoundException)
    def handle_not_found_exception(e):
        return jsonify(e.to_dict()), 404

    @app.errorhandler(UpstreamException)
    def handle_upstream_exception(e):
        return jsonify(e.to_dict()), 502

    @app.errorhandler(RateLimitedException)
    def handle_rate_limited_exception(e):
        response = jsonify(e.to_dict())
        if e.retry_after:
            response.headers['Retry-After'] = str(int(e.retry_after))
        return response, 429

    @app.errorhandler(ValidationException)
    def handle_validation_exception(e):
        return jsonify(e.to_dict()), 400

    @app.errorhandler(Exception)
    def handle_generic_exception(e):
        """Handle all other exceptions"""
        logger.error(f"Unhandled exception: {e}", exc_info=True)
        return jsonify({
            'error': True,
            'code': 'INTERNAL_ERROR',
            'message': 'An unexpected error occurred'
        }), 500
