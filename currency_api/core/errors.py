"""Service error types and their HTTP error handlers.

The conversion core raises the ServiceError subclasses below; the FastAPI
handlers at the bottom of this module map them to JSON error envelopes.
"""

from datetime import datetime, timezone
import logging
from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette import status

from .logging import current_request_id

logger = logging.getLogger("currency_api.errors")


class ServiceError(Exception):
    """Base class for failures surfaced to API callers."""

    code: str = "INTERNAL_ERROR"
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    label: str = "Internal error"

    def __init__(self, detail: str = ""):
        self.detail = detail
        super().__init__(f"{self.label}: {detail}" if detail else self.label)


class CountryNotFound(ServiceError):
    code = "COUNTRY_NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND
    label = "Country not found"

    def __init__(self, country: str):
        self.country = country
        super().__init__(country)


class InvalidCurrency(ServiceError):
    code = "INVALID_CURRENCY"
    status_code = status.HTTP_400_BAD_REQUEST
    label = "Invalid currency"


class RateLimitExceeded(ServiceError):
    code = "RATE_LIMIT_EXCEEDED"
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    label = "Rate limit exceeded"


class ExternalApiError(ServiceError):
    code = "SERVICE_UNAVAILABLE"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    label = "External API error"


class ServiceUnavailable(ServiceError):
    code = "SERVICE_UNAVAILABLE"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    label = "Service unavailable"


def error_body(message: str, code: str, details: Optional[Any] = None) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "error": message,
        "code": code,
        "request_id": current_request_id(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if details is not None:
        body["details"] = details
    return body


def service_error_handler(request: Request, exc: ServiceError):  # type: ignore
    if isinstance(exc, (ExternalApiError, ServiceUnavailable)):
        # Upstream specifics go in details; the headline stays generic
        logger.warning("upstream failure: %s", exc)
        content = error_body("Service temporarily unavailable", exc.code, str(exc))
    else:
        logger.info("request rejected: %s", exc)
        content = error_body(str(exc), exc.code)
    return JSONResponse(status_code=exc.status_code, content=content)


def not_found_handler(request: Request, exc):  # type: ignore
    if exc.status_code != status.HTTP_404_NOT_FOUND:
        return JSONResponse(
            status_code=exc.status_code,
            content=error_body(str(exc.detail), "HTTP_ERROR"),
        )
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content=error_body(
            f"No route for {request.method} {request.url.path}", "NOT_FOUND"
        ),
    )


def validation_error_handler(request: Request, exc: RequestValidationError):  # type: ignore
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=error_body(
            "Request validation failed",
            "VALIDATION_ERROR",
            jsonable_errors(exc),
        ),
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    # pydantic puts the raw exception object in ctx for custom validators
    out = []
    for err in exc.errors():
        err = dict(err)
        if "ctx" in err:
            err["ctx"] = {k: str(v) for k, v in err["ctx"].items()}
        out.append(err)
    return out


def server_error_handler(request: Request, exc: Exception):  # type: ignore
    logger.exception("unhandled exception")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("An unexpected error occurred.", "INTERNAL_ERROR"),
    )
