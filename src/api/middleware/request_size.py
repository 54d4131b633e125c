"""Request body size limiting middleware."""

import logging
from typing import Callable

from fastapi import Request, Response, status

from src.api.middleware.error_handler import create_error_response
from src.core.config import get_settings

logger = logging.getLogger(__name__)


async def request_size_limit_middleware(
    request: Request,
    call_next: Callable[[Request], Response],
) -> Response:
    """Reject requests whose declared Content-Length exceeds the limit.

    LiqPay callbacks and admin requests are small; anything over
    MAX_REQUEST_BODY_SIZE gets a 413 in the standard error format.
    """
    max_size = get_settings().max_request_body_size

    content_length = request.headers.get("content-length")
    if content_length and content_length.isdigit() and int(content_length) > max_size:
        logger.warning(
            "Rejected %s %s: body of %s bytes exceeds %d",
            request.method,
            request.url.path,
            content_length,
            max_size,
        )
        return create_error_response(
            error_type="request_too_large",
            message=f"Request body exceeds maximum size of {max_size} bytes",
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            request_id=request.headers.get("X-Request-ID"),
        )

    return await call_next(request)
