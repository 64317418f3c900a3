"""
Domain exceptions and the JSON error envelope.

Every error leaves the API as {"success": false, "error": ...}; validation
errors also carry a "details" list of "<location>.<field>: <message>".
"""
import logging
from typing import List

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class AIProviderError(Exception):
    """The generative-AI provider failed or timed out."""


class AIProviderNotConfigured(AIProviderError):
    """No provider credentials are configured."""


class QuestionGenerationError(Exception):
    """The provider answered, but not with usable questions."""


class TrialError(ValueError):
    """A trial could not be started."""

    def __init__(self, message: str, error_code: str):
        super().__init__(message)
        self.error_code = error_code


class AccountTokenError(ValueError):
    """A verification code or reset token was rejected."""

    def __init__(self, message: str, error_code: str, status_code: int = 400, remaining_attempts: int = None):
        super().__init__(message)
        self.error_code = error_code
        self.status_code = status_code
        self.remaining_attempts = remaining_attempts


def format_validation_errors(errors: List[dict]) -> List[str]:
    details = []
    for error in errors:
        loc = [str(part) for part in error.get("loc", ())]
        where = ".".join(loc) if loc else "request"
        details.append(f"{where}: {error.get('msg', 'Invalid value')}")
    return details


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    details = format_validation_errors(exc.errors())
    logger.info(f"Validation failed: path={request.url.path}, errors={details}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "error": "Validation failed", "details": details},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if isinstance(exc.detail, dict):
        content = {"success": False, **exc.detail}
        content.setdefault("error", "Request failed")
    else:
        content = {"success": False, "error": exc.detail}
    return JSONResponse(
        status_code=exc.status_code,
        content=content,
        headers=getattr(exc, "headers", None),
    )


async def unhandled_exception_handler(request: Request, exc: Exception):
    # Raw detail stays in the logs
    logger.exception(f"Unhandled error: method={request.method}, path={request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"success": False, "error": "Internal server error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
