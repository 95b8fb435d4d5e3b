"""
Boundary helpers shared by the blueprints: argument parsing, request
deadlines, and rendering classified errors as JSON responses.
"""

import asyncio
import logging
from typing import Any, Awaitable, Optional, TypeVar

from flask import jsonify, request

from politician_service.errors import ClassifiedError, from_exception, transient_error, validation_error

logger = logging.getLogger(__name__)

T = TypeVar("T")


def query_int(name: str, default: int) -> int:
    """Integer query argument; a non-integer value is a validation error."""
    raw = request.args.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise validation_error(f"{name} must be an integer", field=name) from None


def query_float(name: str, default: float) -> float:
    raw = request.args.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise validation_error(f"{name} must be a number", field=name) from None


async def with_deadline(awaitable: Awaitable[T], timeout_seconds: Optional[float]) -> T:
    """Await ``awaitable`` under the request deadline.

    Expiry cancels the pending work, including a retry wait in progress, and
    surfaces as a transient backend error.
    """
    if not timeout_seconds or timeout_seconds <= 0:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout=timeout_seconds)
    except asyncio.TimeoutError:
        raise transient_error(
            f"Request exceeded {timeout_seconds:.1f}s deadline",
            user_message="The request took too long. Please try again.",
            timeout_seconds=timeout_seconds,
        ) from None


def error_response(exc: BaseException, **extra: Any):
    """Log ``exc`` and render it as ``{success: false, error, code}``.

    Only the user-facing message is rendered; internal messages stay in the log.
    """
    error: ClassifiedError = from_exception(exc, path=request.path)
    if error.is_operational:
        logger.warning(f"{request.method} {request.path} failed: {error.kind.value}: {error.message}")
    else:
        logger.error(
            f"{request.method} {request.path} failed: {error.to_dict()}",
            exc_info=(type(exc), exc, exc.__traceback__),
        )

    body = {
        "success": False,
        "error": error.user_message,
        "code": error.kind.value,
    }
    body.update(extra)
    return jsonify(body), error.http_status
