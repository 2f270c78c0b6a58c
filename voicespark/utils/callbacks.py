"""Helpers for user-supplied callbacks."""

import inspect
from typing import Any, Callable, Optional


Callback = Optional[Callable[..., Any]]


async def emit(callback: Callback, *args) -> None:
    """Invoke a plain or async callback, if one is set."""
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result
