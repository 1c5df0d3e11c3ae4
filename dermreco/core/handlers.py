# dermreco/core/handlers.py
import logging
import time
import uuid

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from dermreco.core.errors import ErrorCodes, HttpError
from dermreco.core.logging import request_id_var
from dermreco.domain.services.llm_svc import LLMError

logger = logging.getLogger(__name__)


def fail(status_code: int, code: str, message: str, details=None) -> JSONResponse:
    error = {"code": code, "message": message}
    if details is not None:
        error["details"] = details
    return JSONResponse(status_code=status_code, content={"success": False, "error": error})


def ok(data) -> dict:
    return {"success": True, "data": data}


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", None) or f"req_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


def register_error_handlers(app: FastAPI) -> None:
    """
    Render every failure as the {success: false, error: {...}} envelope.
    Stack traces stay in the logs, never in the response body.
    """

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        request.state.request_id = request.headers.get("X-Request-ID") or _request_id(request)
        token = request_id_var.set(request.state.request_id)
        try:
            response = await call_next(request)
        finally:
            request_id_var.reset(token)
        response.headers["X-Request-ID"] = request.state.request_id
        return response

    @app.exception_handler(HttpError)
    async def http_error_handler(request: Request, exc: HttpError):
        logger.warning(f"[{_request_id(request)}] {exc.status_code} {exc.code}: {exc.message}")
        return fail(exc.status_code, exc.code, exc.message, exc.details)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        details = [
            {"path": ".".join(str(p) for p in err.get("loc", ())), "message": err.get("msg")}
            for err in exc.errors()
        ]
        return fail(400, ErrorCodes.INVALID_INPUT, "Invalid request format", details)

    @app.exception_handler(LLMError)
    async def llm_error_handler(request: Request, exc: LLMError):
        logger.error(f"[{_request_id(request)}] {type(exc).__name__}: {exc} (cause={exc.__cause__!r})")
        return fail(500, ErrorCodes.AI_SERVICE_ERROR, f"AI service error: {exc}")

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        # exception text stays in the log; it can carry driver / connection details
        logger.exception(f"[{_request_id(request)}] Unhandled error: {exc}")
        return fail(500, ErrorCodes.SERVER_ERROR, "An unexpected error occurred")
