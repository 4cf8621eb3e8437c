"""Fail-soft helpers: map an expected failure to a default value at the smallest scope."""
import asyncio
import logging
from typing import Any, Awaitable, Callable, TypeVar

import httpx

logger = logging.getLogger("mission_control.degrade")

T = TypeVar("T")

# Failures that mean "this one field / agent / file is unavailable".
# Anything else is a bug and reaches the outermost handler.
SOFT_ERRORS = (
    OSError,
    ValueError,
    LookupError,
    TypeError,
    RecursionError,
    httpx.HTTPError,
    asyncio.TimeoutError,
)


def soften(fn: Callable[..., T], *args: Any, default: Callable[[], T], what: str) -> T:
    try:
        return fn(*args)
    except SOFT_ERRORS as exc:
        logger.warning("%s unavailable, using default: %s", what, exc)
        return default()


async def soften_async(awaitable: Awaitable[T], default: Callable[[], T], what: str) -> T:
    try:
        return await awaitable
    except SOFT_ERRORS as exc:
        logger.warning("%s unavailable, using default: %s", what, exc)
        return default()


async def isolate_async(awaitable: Awaitable[T], default: Callable[[], T], what: str) -> T:
    """Like soften_async, but no failure of any kind escapes.

    For independent measurements combined into one response, where one
    broken field must never sink the others.
    """
    try:
        return await awaitable
    except SOFT_ERRORS as exc:
        logger.warning("%s unavailable, using default: %s", what, exc)
        return default()
    except Exception:
        logger.exception("%s failed unexpectedly, using default", what)
        return default()
