"""
Error Handlers
API exceptions and the handlers that render them as
``{"error": {"message", "type", "details"}}`` bodies.
"""

import logging
from typing import Any, Optional, Union

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Base exception for API errors."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: dict = None,
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ResourceNotFoundError(APIError):
    """Job, proposal or catalog item does not exist (or is outside the caller's scope)."""

    def __init__(self, resource: str, resource_id: Union[int, str]):
        super().__init__(
            message=f"{resource} not found: {resource_id}",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id},
        )


class InvalidRequestError(APIError):
    """Exception raised for invalid requests (empty name, no sources, bad kind)."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message=message, status_code=status.HTTP_400_BAD_REQUEST, details=details)


class ProposalStateError(APIError):
    """Exception raised when a proposal transition is not allowed from its current status."""

    def __init__(self, proposal_id: str, current_status: str, action: str):
        super().__init__(
            message=f"Cannot {action} proposal {proposal_id}: already {current_status}",
            status_code=status.HTTP_409_CONFLICT,
            details={"id": proposal_id, "status": current_status, "action": action},
        )
        self.current_status = current_status


class AuthenticationError(APIError):
    def __init__(self, message: str = "Bearer token is required"):
        super().__init__(message=message, status_code=status.HTTP_401_UNAUTHORIZED)


class AuthorizationError(APIError):
    def __init__(self, message: str = "Invalid bearer token"):
        super().__init__(message=message, status_code=status.HTTP_403_FORBIDDEN)


def error_response(
    status_code: int,
    message: str,
    error_type: str,
    details: Optional[Any] = None,
    headers: Optional[dict] = None,
) -> JSONResponse:
    body = {"message": message, "type": error_type}
    if details:
        body["details"] = details
    return JSONResponse(status_code=status_code, content={"error": body}, headers=headers)


def setup_error_handlers(app: FastAPI) -> None:
    """
    Register exception handlers on the app.

    Every error, including framework 404/405s and validation failures,
    leaves the API in the same body shape so clients read one field.
    """

    @app.exception_handler(APIError)
    async def api_error_handler(request: Request, exc: APIError):
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(
            f"{exc.__class__.__name__}: {exc.message}",
            extra={
                "status_code": exc.status_code,
                "details": exc.details,
                "path": request.url.path,
            },
        )
        headers = None
        if exc.status_code == status.HTTP_401_UNAUTHORIZED:
            headers = {"WWW-Authenticate": "Bearer"}
        return error_response(
            exc.status_code, exc.message, exc.__class__.__name__, exc.details, headers=headers
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return error_response(
            exc.status_code, str(exc.detail), "HTTPError", headers=getattr(exc, "headers", None)
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Validation error: {exc}", extra={"path": request.url.path})

        # loc tuples and ctx objects are not JSON-serializable as-is
        errors = [
            {
                "loc": list(error.get("loc", [])),
                "msg": str(error.get("msg", "")),
                "type": error.get("type", ""),
            }
            for error in exc.errors()
        ]
        return error_response(
            status.HTTP_422_UNPROCESSABLE_ENTITY, "Request validation failed", "ValidationError", errors
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.error(f"Unexpected error: {exc}", exc_info=True, extra={"path": request.url.path})
        return error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR, "An unexpected error occurred", "InternalServerError"
        )
