"""
Domain error taxonomy and its HTTP rendering.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import status
from starlette.requests import Request
from starlette.responses import JSONResponse

logger = logging.getLogger(__name__)


class AssistLinkError(Exception):
    """Base class for typed domain failures surfaced to the caller."""

    code = "ERROR"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str = "", *, context: Optional[dict[str, Any]] = None):
        super().__init__(detail or self.code)
        self.detail = detail or self.code
        self.context = context or {}


class RequestValidationFailed(AssistLinkError):
    """Malformed or missing required fields at creation."""

    code = "VALIDATION_ERROR"
    status_code = 422


class RequestNotFound(AssistLinkError):
    code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND


class ActionForbidden(AssistLinkError):
    code = "FORBIDDEN"
    status_code = status.HTTP_403_FORBIDDEN


class InvalidTransition(AssistLinkError):
    code = "INVALID_TRANSITION"
    status_code = status.HTTP_409_CONFLICT


class AlreadyCommitted(AssistLinkError):
    """Another volunteer won the single commitment slot."""

    code = "ALREADY_COMMITTED"
    status_code = status.HTTP_409_CONFLICT


class DuplicateApplication(AssistLinkError):
    code = "DUPLICATE_APPLICATION"
    status_code = status.HTTP_409_CONFLICT


class SelfCommitForbidden(AssistLinkError):
    code = "SELF_COMMIT_FORBIDDEN"
    status_code = status.HTTP_403_FORBIDDEN


class EmptyUtterance(AssistLinkError):
    code = "EMPTY_UTTERANCE"
    status_code = status.HTTP_400_BAD_REQUEST


class ClassifierUnavailable(Exception):
    """Raised by the AI responder path; always recovered by the keyword fallback."""


async def domain_error_handler(request: Request, exc: AssistLinkError) -> JSONResponse:
    """Render a domain error as ``{"error": code, "detail": message}``."""
    logger.info(
        "Domain error %s on %s %s: %s",
        exc.code,
        request.method,
        request.url.path,
        exc.detail,
    )
    body: dict[str, Any] = {"error": exc.code, "detail": exc.detail}
    if exc.context:
        body["context"] = exc.context
    return JSONResponse(status_code=exc.status_code, content=body)


__all__ = [
    "AssistLinkError",
    "RequestValidationFailed",
    "RequestNotFound",
    "ActionForbidden",
    "InvalidTransition",
    "AlreadyCommitted",
    "DuplicateApplication",
    "SelfCommitForbidden",
    "EmptyUtterance",
    "ClassifierUnavailable",
    "domain_error_handler",
]
