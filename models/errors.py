"""Structured error codes returned in API error bodies.

Error bodies follow the format::

    {ERROR_CODE}: {human_readable_detail}
"""

from __future__ import annotations

from enum import Enum

from errors import HamForgeError, PoolLoadError, SessionNotFoundError


class ErrorCode(str, Enum):
    """Stable error codes shared with API clients."""

    INVALID_REQUEST = "INVALID_REQUEST"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    POOL_UNAVAILABLE = "POOL_UNAVAILABLE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


def format_error(code: ErrorCode, detail: str) -> str:
    """Format an error for an API ``detail`` field.

    Returns:
        ``{ERROR_CODE}: {detail}``
    """
    return f"{code.value}: {detail}"


def classify_error(exc: Exception) -> ErrorCode:
    """Map a raised exception onto its API error code."""
    if isinstance(exc, SessionNotFoundError):
        return ErrorCode.SESSION_NOT_FOUND
    if isinstance(exc, PoolLoadError):
        return ErrorCode.POOL_UNAVAILABLE
    if isinstance(exc, (ValueError, HamForgeError)):
        return ErrorCode.INVALID_REQUEST
    return ErrorCode.INTERNAL_ERROR
