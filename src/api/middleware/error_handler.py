"""Error middleware and the API error hierarchy.

Services raise subclasses of APIError (see src/services/exceptions.py); the
middleware turns them into an ErrorResponse with the class's status code.
Anything else is logged with its traceback and returned as a generic 500.
"""

import logging
import traceback
from typing import Any, Callable

from fastapi import HTTPException, Request, Response, status
from fastapi.responses import JSONResponse

from src.schemas.common import ErrorResponse

logger = logging.getLogger(__name__)


class APIError(Exception):
    """Base exception for errors returned to the client.

    Subclasses set status_code, error_type and default_message; callers
    pass a message and optional details.
    """

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_type: str = "api_error"
    default_message: str = "Request failed"

    def __init__(self, message: str | None = None, details: list[dict[str, Any]] | None = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class NotFoundError(APIError):
    """Order, payment or receipt does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    error_type = "not_found"
    default_message = "Resource not found"


class BadRequestError(APIError):
    """Request was understood but cannot be processed as sent."""

    status_code = status.HTTP_400_BAD_REQUEST
    error_type = "bad_request"
    default_message = "Bad request"


class ConflictError(APIError):
    """Request conflicts with the current payment or shift state."""

    status_code = status.HTTP_409_CONFLICT
    error_type = "conflict"
    default_message = "Conflict"


class AuthenticationError(APIError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error_type = "authentication_error"
    default_message = "Authentication required"


class AuthorizationError(APIError):
    status_code = status.HTTP_403_FORBIDDEN
    error_type = "authorization_error"
    default_message = "Access denied"


class ExternalServiceError(APIError):
    """LiqPay or Checkbox failed while handling the request."""

    status_code = status.HTTP_502_BAD_GATEWAY
    error_type = "external_service_error"
    default_message = "External service error"


class ServiceUnavailableError(APIError):
    """A required provider is not configured."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error_type = "service_unavailable"
    default_message = "Service unavailable"


def create_error_response(
    error_type: str,
    message: str,
    status_code: int,
    details: list[dict[str, Any]] | None = None,
    request_id: str | None = None,
) -> JSONResponse:
    """Build the JSON body shared by every error status."""
    body = ErrorResponse.build(error_type, message, details=details, request_id=request_id)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", exclude_none=True),
    )


async def error_handler_middleware(request: Request, call_next: Callable[[Request], Any]) -> Response:
    """Format errors raised by routes and services.

    APIError and HTTPException are expected outcomes and are logged at
    warning level. Unexpected exceptions are logged with a traceback and the
    client only sees a generic message.
    """
    request_id = request.headers.get("X-Request-ID")

    try:
        return await call_next(request)

    except APIError as e:
        logger.warning(
            "%s %s failed: %s - %s",
            request.method,
            request.url.path,
            e.error_type,
            e.message,
            extra={"request_id": request_id, "status_code": e.status_code},
        )
        return create_error_response(e.error_type, e.message, e.status_code, e.details, request_id)

    except HTTPException as e:
        logger.warning("HTTP exception: %s - %s", e.status_code, e.detail, extra={"request_id": request_id})
        return create_error_response("http_error", str(e.detail), e.status_code, request_id=request_id)

    except Exception as e:
        logger.error(
            "Unhandled exception on %s %s: %s\n%s",
            request.method,
            request.url.path,
            str(e),
            traceback.format_exc(),
            extra={"request_id": request_id},
        )
        return create_error_response(
            "internal_error",
            "An unexpected error occurred",
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            request_id=request_id,
        )
