"""Computation protocol - zero-argument units of work."""

from __future__ import annotations

import functools
import inspect
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, TypeVar

T_co = TypeVar("T_co", covariant=True)


class Computation(Protocol[T_co]):
    """A zero-argument unit of work that may suspend and may fail.

    Coroutine functions satisfy this directly. Plain callables are accepted
    as well; their return value is used as-is unless it is awaitable.
    """

    def __call__(self) -> Awaitable[T_co] | T_co: ...


async def invoke(fn: Callable[..., Any], *args: Any) -> Any:
    """Call ``fn`` and await the outcome when it is awaitable."""
    outcome = fn(*args)
    if inspect.isawaitable(outcome):
        outcome = await outcome
    return outcome


def describe(fn: Callable[..., Any]) -> str:
    """Human-readable name of a callable, for traces and task names."""
    if isinstance(fn, functools.partial):
        fn = fn.func
    name = getattr(fn, "__qualname__", None) or getattr(fn, "__name__", None)
    if name:
        return name
    return type(fn).__name__
