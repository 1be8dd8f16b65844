"""Helpers for calling user callbacks that may be sync or async."""

import inspect
from typing import Any


async def maybe_await(value: Any) -> Any:
    """Await ``value`` when it is awaitable, otherwise return it unchanged."""
    if inspect.isawaitable(value):
        return await value
    return value
