# dermreco/core/errors.py
"""
Typed HTTP errors with stable codes.

Codes follow "{category}/{specific_error}" so clients can branch on them
(e.g. "not_found/analysis_missing"). Every HttpError raised from a route or a
service is rendered by the handlers in core/handlers.py as:
  {"success": false, "error": {"code": ..., "message": ..., "details": ...}}
"""
from typing import Any, Optional


class ErrorCodes:
    # 400
    INVALID_INPUT = "bad_request/invalid_input"
    # 401
    MISSING_CREDENTIALS = "unauthorized/missing_credentials"
    # 404
    RESOURCE_NOT_FOUND = "not_found/resource_not_found"
    ANALYSIS_MISSING = "not_found/analysis_missing"
    ONBOARDING_MISSING = "not_found/onboarding_missing"
    # 500
    SERVER_ERROR = "internal/server_error"
    AI_SERVICE_ERROR = "internal/ai_service_error"


class HttpError(Exception):
    """Base error carrying an HTTP status and a machine-readable code."""

    def __init__(self, status_code: int, code: str, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details


class UnauthorizedError(HttpError):
    def __init__(self, message: str = "Unauthorized", code: str = ErrorCodes.MISSING_CREDENTIALS):
        super().__init__(401, code, message)


class NotFoundError(HttpError):
    def __init__(self, message: str = "Not found", code: str = ErrorCodes.RESOURCE_NOT_FOUND):
        super().__init__(404, code, message)


class InternalServerError(HttpError):
    def __init__(self, message: str = "Internal server error", code: str = ErrorCodes.SERVER_ERROR):
        super().__init__(500, code, message)
