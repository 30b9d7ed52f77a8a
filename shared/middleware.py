"""FastAPI middleware for request ID injection and error handling."""

from collections.abc import Callable
from contextvars import ContextVar
from uuid import uuid4

import structlog
from fastapi import Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware

from shared.config import settings
from shared.exceptions import ProblemDetailError

PROBLEM_JSON = "application/problem+json"

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

logger = structlog.get_logger()


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Inject a unique request ID into every request, response and log line.

    Header name: X-Request-ID. A caller-supplied ID is propagated as-is.
    """

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Callable[..., Response]]
    ):
        rid = request.headers.get("X-Request-ID", str(uuid4()))
        request_id_var.set(rid)
        structlog.contextvars.bind_contextvars(request_id=rid)

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = rid
            return response
        finally:
            structlog.contextvars.unbind_contextvars("request_id")


def _problem_response(request: Request, status: int, body: dict) -> JSONResponse:
    body.setdefault("instance", str(request.url.path))
    return JSONResponse(status_code=status, content=body, media_type=PROBLEM_JSON)


async def problem_detail_handler(request: Request, exc: ProblemDetailError) -> JSONResponse:
    """Convert ProblemDetailError exceptions (incl. InvalidInputError) into RFC 9457."""
    body: dict = {
        "type": exc.type_uri,
        "title": exc.title,
        "status": exc.status,
        "detail": exc.detail,
    }
    if exc.violations:
        body["violations"] = exc.violations
    logger.info("problem_detail_returned", status=exc.status, title=exc.title)
    return _problem_response(request, exc.status, body)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Wrap pydantic request-shape errors in the same problem+json envelope.

    Domain-level rejections carry rule/reason pairs; shape errors carry the
    pydantic error type as the reason so clients can treat both uniformly.
    """
    violations = []
    for err in exc.errors():
        loc = err.get("loc", ())
        field = ".".join(str(part) for part in loc if part != "body")
        violations.append(
            {
                "field": field or "(root)",
                "rule": "schema",
                "reason": err.get("type", "validation"),
                "message": err.get("msg", "Validation error"),
            }
        )

    body = {
        "type": f"{settings.problem_base_uri}/validation-error",
        "title": "Validation Error",
        "status": 422,
        "detail": f"Request body contains {len(violations)} validation error(s)",
        "violations": violations,
    }
    return _problem_response(request, 422, body)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Convert generic HTTP exceptions into RFC 9457 format."""
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    body = {
        "type": "about:blank",
        "title": detail if isinstance(exc.detail, str) else "Error",
        "status": exc.status_code,
        "detail": detail,
    }
    return _problem_response(request, exc.status_code, body)
