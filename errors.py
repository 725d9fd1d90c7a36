# errors.py - error taxonomy + Flask handlers producing {error, details}
import traceback

from flask import current_app, jsonify
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge


class PortalError(Exception):
    kind = "internal_error"
    status = 500

    def __init__(self, details: str = "", state=None):
        super().__init__(details)
        self.details = details or self.kind.replace("_", " ")
        self.state = state

    def payload(self) -> dict:
        return {"error": self.kind, "details": self.details}


class ValidationError(PortalError):
    kind = "validation_error"
    status = 400


class TransportError(PortalError):
    """Malformed multipart or unreadable body."""
    kind = "transport_error"
    status = 400


class AuthError(PortalError):
    kind = "unauthorized"
    status = 401


class ForbiddenError(PortalError):
    kind = "forbidden"
    status = 403


class NotFoundError(PortalError):
    kind = "not_found"
    status = 404


class ConflictError(PortalError):
    kind = "conflict"
    status = 409


class StoreError(PortalError):
    kind = "store_error"
    status = 500


class StoreWriteError(StoreError):
    """Blob upload failed. Nothing was written; safe to retry."""
    kind = "store_write_error"


class StoreDeleteError(StoreError):
    kind = "store_delete_error"


class DatabaseWriteError(PortalError):
    """Insert failed after a successful store; the blob was removed again."""
    kind = "database_write_error"
    status = 500


class OrphanedBlobError(PortalError):
    """
    Insert failed and so did the compensating delete. The blob under
    `storage_key` has no artifact row; reconcile before retrying.
    """
    kind = "orphaned_blob"
    status = 500

    def __init__(self, storage_key: str, details: str = "", state=None):
        super().__init__(details or f"orphaned blob left at {storage_key}", state=state)
        self.storage_key = storage_key

    def payload(self) -> dict:
        d = super().payload()
        d["storageKey"] = self.storage_key
        return d


def _with_trace(body: dict, exc: Exception) -> dict:
    settings = current_app.extensions.get("portal.settings")
    if settings is not None and not settings.production:
        body["trace"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return body


def register_error_handlers(app):
    @app.errorhandler(PortalError)
    def _portal_error(e: PortalError):
        if e.status >= 500:
            app.logger.error("%s: %s", e.kind, e.details)
            return jsonify(_with_trace(e.payload(), e)), e.status
        return jsonify(e.payload()), e.status

    @app.errorhandler(RequestEntityTooLarge)
    def _too_large(e):
        return jsonify(error=ValidationError.kind, details="file too large"), 400

    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException):
        kind = (e.name or "error").lower().replace(" ", "_")
        return jsonify(error=kind, details=e.description), e.code

    @app.errorhandler(Exception)
    def _unexpected(e: Exception):
        app.logger.exception("unhandled error")
        return jsonify(_with_trace({"error": "internal_error", "details": str(e)}, e)), 500
