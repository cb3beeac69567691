from flask import current_app, request
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException


class MembershipError(Exception):
    """Base for errors reported to API callers with a stable ``kind``."""

    kind = "error"
    status_code = 400
    default_message = "The request could not be processed."

    def __init__(self, message=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message

    def to_dict(self):
        return {"success": False, "error": self.kind, "message": self.message}


class ValidationError(MembershipError):
    kind = "validation_error"
    status_code = 400
    default_message = "Validation failed."

    def __init__(self, errors=None, message=None):
        super().__init__(message)
        self.errors = dict(errors or {})

    def to_dict(self):
        payload = super().to_dict()
        payload["errors"] = self.errors
        return payload


class DuplicateApplication(MembershipError):
    kind = "duplicate_application"
    status_code = 409
    default_message = "An application with this email or ID number already exists."


class DuplicateAccount(MembershipError):
    kind = "duplicate_account"
    status_code = 409
    default_message = "User already exists with this email address."


class NotFound(MembershipError):
    kind = "not_found"
    status_code = 404
    default_message = "Not found."


class InvalidTransition(MembershipError):
    kind = "invalid_transition"
    status_code = 409
    default_message = "This application can no longer be changed."


class DependencyFailure(MembershipError):
    kind = "dependency_failure"
    status_code = 500
    default_message = "A required service is unavailable. Please try again later."


_HTTP_KINDS = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    413: "payload_too_large",
    429: "rate_limited",
}


def register_error_handlers(app):
    @app.errorhandler(MembershipError)
    def membership_error(e):
        if e.status_code >= 500:
            app.logger.error("%s on %s: %s", e.kind, request.path, e.message)
        return e.to_dict(), e.status_code

    @app.errorhandler(SQLAlchemyError)
    def storage_error(e):
        from .models import db

        db.session.rollback()
        app.logger.exception("Storage failure on %s", request.path)
        return DependencyFailure().to_dict(), DependencyFailure.status_code

    @app.errorhandler(HTTPException)
    def http_error(e):
        if e.code == 403:
            app.logger.warning("403 Forbidden: %s", request.path)
        kind = _HTTP_KINDS.get(e.code, "error")
        return {"success": False, "error": kind, "message": e.description}, e.code

    @app.errorhandler(500)
    def internal_error(e):
        app.logger.exception("Internal server error: %s", e)
        message = "Something went wrong!"
        if current_app.debug:
            message = f"{message} {getattr(e, 'original_exception', e)}"
        return {"success": False, "error": "server_error", "message": message}, 500
