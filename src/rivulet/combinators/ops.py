"""Combinator primitives: eager_start, lazy_start, memoized_lazy_start, suspend_zip."""

# Combinators satisfy the following laws:
#
# 1. Exactly once: eager_start(s, c) and lazy_start(s, c) invoke c at most once,
#    however many times the handle is awaited
#
# 2. Laziness: lazy_start(s, c) invokes nothing until the handle is observed;
#    an unobserved lazy handle never runs
#
# 3. Positional fan-in: suspend_zip(s, a, b, f) == f(await a(), await b())
#    whatever order a and b complete in
#
# 4. All-or-nothing: if any branch of suspend_zip fails, f is never applied and
#    every branch still running is cancelled before the failure is re-raised


from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar, overload

from rivulet.kernel import Computation, Deferred, LazyDeferred, Scope, invoke

from .lazy import Lazy

T = TypeVar("T")
T1 = TypeVar("T1")
T2 = TypeVar("T2")
T3 = TypeVar("T3")
T4 = TypeVar("T4")
T5 = TypeVar("T5")
T6 = TypeVar("T6")
T7 = TypeVar("T7")
R = TypeVar("R")

MIN_ARITY = 2
MAX_ARITY = 7


def eager_start(scope: Scope, computation: Computation[T]) -> Deferred[T]:
    """Start a computation in ``scope`` now and return its handle.

    Returns without suspending. A failure of the computation is captured in
    the handle and raised to whoever awaits it.

    Raises:
        ScopeClosedError: If ``scope`` does not accept children
    """
    return Deferred(scope, computation)


def lazy_start(scope: Scope, computation: Computation[T]) -> LazyDeferred[T]:
    """Declare a computation in ``scope`` that starts on first observation.

    Raises:
        ScopeClosedError: If ``scope`` is not open
    """
    return LazyDeferred(scope, computation)


def memoized_lazy_start(scope: Scope, computation: Computation[T]) -> Lazy[LazyDeferred[T]]:
    """Cell holding a lazily constructed lazy_start handle.

    The handle is built once, on first ``.value`` access, and that same
    handle is returned by every later access.
    """
    return Lazy(lambda: lazy_start(scope, computation))


@overload
async def suspend_zip(
    scope: Scope,
    first: Computation[T1],
    second: Computation[T2],
    combine: Callable[[T1, T2], Awaitable[R] | R],
    /,
) -> R: ...


@overload
async def suspend_zip(
    scope: Scope,
    first: Computation[T1],
    second: Computation[T2],
    third: Computation[T3],
    combine: Callable[[T1, T2, T3], Awaitable[R] | R],
    /,
) -> R: ...


@overload
async def suspend_zip(
    scope: Scope,
    first: Computation[T1],
    second: Computation[T2],
    third: Computation[T3],
    fourth: Computation[T4],
    combine: Callable[[T1, T2, T3, T4], Awaitable[R] | R],
    /,
) -> R: ...


@overload
async def suspend_zip(
    scope: Scope,
    first: Computation[T1],
    second: Computation[T2],
    third: Computation[T3],
    fourth: Computation[T4],
    fifth: Computation[T5],
    combine: Callable[[T1, T2, T3, T4, T5], Awaitable[R] | R],
    /,
) -> R: ...


@overload
async def suspend_zip(
    scope: Scope,
    first: Computation[T1],
    second: Computation[T2],
    third: Computation[T3],
    fourth: Computation[T4],
    fifth: Computation[T5],
    sixth: Computation[T6],
    combine: Callable[[T1, T2, T3, T4, T5, T6], Awaitable[R] | R],
    /,
) -> R: ...


@overload
async def suspend_zip(
    scope: Scope,
    first: Computation[T1],
    second: Computation[T2],
    third: Computation[T3],
    fourth: Computation[T4],
    fifth: Computation[T5],
    sixth: Computation[T6],
    seventh: Computation[T7],
    combine: Callable[[T1, T2, T3, T4, T5, T6, T7], Awaitable[R] | R],
    /,
) -> R: ...


async def suspend_zip(scope: Scope, *args: Any) -> Any:
    """Run 2 to 7 computations concurrently and combine their results.

    Semantics:
        - Open a nested scope under ``scope``
        - Start every computation in it, in argument order, before awaiting any
        - Await the handles in argument order
        - Apply ``combine`` (plain or async) to the values in argument order
        - A failing branch cancels the others; the failure is re-raised as-is

    Trace behavior:
        - Records "zip_begin" with the arity once the nested scope is open
        - Records each branch as "branch_<i>" with its final state
        - Records "zip_end" with the outcome

    Args:
        scope: Scope the nested scope is opened under.
        *args: The computations followed by the combining function.

    Returns:
        Whatever ``combine`` returns.

    Raises:
        ValueError: If fewer than 2 or more than 7 computations are given
        TypeError: If the last argument is not callable
        ScopeClosedError: If ``scope`` is not open
    """
    if len(args) - 1 < MIN_ARITY or len(args) - 1 > MAX_ARITY:
        raise ValueError(
            f"suspend_zip takes {MIN_ARITY} to {MAX_ARITY} computations, got {max(len(args) - 1, 0)}"
        )
    *computations, combine = args
    if not callable(combine):
        raise TypeError(f"combine must be callable, got {type(combine).__name__}")

    trace = scope.trace
    zip_id: int | None = None
    start_time = time.perf_counter()

    handles: list[Deferred[Any]] = []
    outcome = "ok"
    try:
        async with scope.child("zip") as inner:
            if trace is not None:
                zip_id = trace.record("zip_begin", info={"arity": len(computations)}, parent_id=scope.event_id)
            handles.extend(eager_start(inner, computation) for computation in computations)
            values = [await handle for handle in handles]
            return await invoke(combine, *values)
    except Exception:
        outcome = "error"
        failure = _first_failure(handles)
        if failure is None:
            raise
        raise failure
    except BaseException:
        outcome = "cancelled"
        raise
    finally:
        if trace is not None and zip_id is not None:
            for i, handle in enumerate(handles):
                trace.record(f"branch_{i}", info={"state": handle.state}, parent_id=zip_id)
            trace.record(
                "zip_end",
                info={"outcome": outcome},
                parent_id=zip_id,
                duration_ms=(time.perf_counter() - start_time) * 1000,
            )


def _first_failure(handles: list[Deferred[Any]]) -> BaseException | None:
    """Failure of the lowest-positioned failed handle, if any."""
    for handle in handles:
        failure = handle.exception()
        if failure is not None:
            return failure
    return None
