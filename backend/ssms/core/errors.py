"""Error taxonomy shared by the gateway, the services and the HTTP layer.

Every failure surfaced to a caller is one of five codes. Services raise the
matching subclass; ``register_exception_handlers`` turns them into JSON
responses of the form ``{"code", "detail", "requirement"}``.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class SSMSError(Exception):
    """Base class for all classified failures."""

    code: str = "internal"
    status_code: int = 500

    def __init__(self, message: str, *, requirement: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.requirement = requirement

    def to_dict(self) -> dict:
        return {"code": self.code, "detail": self.message, "requirement": self.requirement}


class UnauthenticatedError(SSMSError):
    code = "unauthenticated"
    status_code = 401

    def __init__(self, message: str = "Authentication required.") -> None:
        super().__init__(message)


class PermissionDeniedError(SSMSError):
    """The principal is known but lacks the named requirement.

    ``message`` is pre-formatted for display to the end user.
    """

    code = "permission-denied"
    status_code = 403


class InvalidArgumentError(SSMSError):
    code = "invalid-argument"
    status_code = 400


class NotFoundError(SSMSError):
    code = "not-found"
    status_code = 404


class InternalError(SSMSError):
    code = "internal"
    status_code = 500

    def __init__(self, message: str = "An internal error occurred.") -> None:
        super().__init__(message)


SELF_MODIFICATION_FORBIDDEN = "self-modification-forbidden"


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(SSMSError)
    async def _ssms_error_handler(request: Request, exc: SSMSError) -> JSONResponse:
        if isinstance(exc, InternalError):
            # Detail was already logged where the failure happened
            logger.warning("Internal error returned for %s %s", request.method, request.url.path)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def _validation_error_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=InvalidArgumentError.status_code,
            content=InvalidArgumentError(describe_validation_error(exc.errors())).to_dict(),
        )


def describe_validation_error(errors: list[dict]) -> str:
    """Collapse pydantic error entries into one readable message."""
    parts = []
    for err in errors:
        loc = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path"))
        msg = str(err.get("msg", "Invalid value")).removeprefix("Value error, ")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts) or "Invalid request."
