"""Deferred handles - single-resolution results of scoped computations."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Generator
from typing import Any, ClassVar, Generic, Literal, TypeVar

from rivulet.kernel.computation import Computation, describe, invoke
from rivulet.kernel.errors import ScopeClosedError, SiblingCancelledError
from rivulet.kernel.scope import Scope

logger = logging.getLogger(__name__)

T = TypeVar("T")

DeferredState = Literal["pending", "resolved", "failed", "cancelled"]


def _observer_cancelling() -> bool:
    task = asyncio.current_task()
    return task is not None and task.cancelling() > 0


class Deferred(Generic[T]):
    """Handle to a computation running as a child of a Scope.

    The computation is submitted on construction and invoked exactly once.
    Awaiting the handle any number of times, from any number of tasks,
    yields the same value or re-raises the same exception object.

    States:
    - pending: submitted (or, for lazy handles, not yet submitted)
    - resolved: the computation returned a value
    - failed: the computation raised
    - cancelled: the owning scope cancelled the computation
    """

    lazy: ClassVar[bool] = False

    def __init__(self, scope: Scope, computation: Computation[T]) -> None:
        if not scope.is_open:
            raise ScopeClosedError(scope.name)
        self._scope = scope
        self._computation = computation
        self._task: asyncio.Task[T] | None = None
        self._event_id: int | None = None
        if not self.lazy:
            self.start()

    @property
    def name(self) -> str:
        return describe(self._computation)

    @property
    def scope(self) -> Scope:
        return self._scope

    @property
    def is_started(self) -> bool:
        return self._task is not None

    @property
    def state(self) -> DeferredState:
        task = self._task
        if task is None or not task.done():
            return "pending"
        if task.cancelled():
            return "cancelled"
        if task.exception() is not None:
            return "failed"
        return "resolved"

    def done(self) -> bool:
        return self.state != "pending"

    def exception(self) -> BaseException | None:
        """The stored failure if the handle failed, otherwise None."""
        task = self._task
        if task is None or not task.done() or task.cancelled():
            return None
        return task.exception()

    def start(self) -> bool:
        """Submit the computation unless it is already running.

        Synchronous, so racing first observers on the event loop cannot
        submit twice.

        Returns:
            True if this call submitted the computation

        Raises:
            ScopeClosedError: If the scope no longer accepts children
        """
        if self._task is not None:
            return False
        self._ensure_task()
        return True

    def _submit(self) -> asyncio.Task[T]:
        # Recorded first: an eager task factory runs _run() inside submit()
        trace = self._scope.trace
        if trace is not None:
            self._event_id = trace.record(
                "submit",
                info={"computation": self.name, "lazy": self.lazy},
                parent_id=self._scope.event_id,
            )
        try:
            self._task = self._scope.submit(self._run(), name=self.name)
        except ScopeClosedError as exc:
            if trace is not None:
                trace.record("reject", info={"reason": exc.reason}, parent_id=self._event_id)
            raise
        return self._task

    def _ensure_task(self) -> asyncio.Task[T]:
        if self._task is not None:
            return self._task
        task = self._submit()
        if self.lazy:
            logger.debug("scope %s: lazy %s started on first observation", self._scope.name, self.name)
        return task

    async def _run(self) -> T:
        trace = self._scope.trace
        start_time = time.perf_counter()
        try:
            value = await invoke(self._computation)
        except asyncio.CancelledError:
            if trace is not None:
                trace.record("cancel", parent_id=self._event_id, duration_ms=self._elapsed(start_time))
            raise
        except Exception as exc:
            if trace is not None:
                trace.record(
                    "fail",
                    info={"error": repr(exc)},
                    parent_id=self._event_id,
                    duration_ms=self._elapsed(start_time),
                )
            raise
        if trace is not None:
            trace.record("resolve", parent_id=self._event_id, duration_ms=self._elapsed(start_time))
        return value

    @staticmethod
    def _elapsed(start_time: float) -> float:
        return (time.perf_counter() - start_time) * 1000

    async def wait(self) -> T:
        """Suspend until the computation finishes and return its value.

        Cancelling the waiting task does not cancel the computation; other
        observers keep waiting on it.

        Raises:
            SiblingCancelledError: If the scope cancelled the computation
            Exception: Whatever the computation raised, as the same object
        """
        task = self._ensure_task()
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled() and not _observer_cancelling():
                raise SiblingCancelledError(self.name) from None
            raise

    async def join(self) -> None:
        """Suspend until the computation finishes, without raising its outcome."""
        await asyncio.wait([self._ensure_task()])

    def __await__(self) -> Generator[Any, None, T]:
        return self.wait().__await__()

    def __repr__(self) -> str:
        kind = "LazyDeferred" if self.lazy else "Deferred"
        return f"<{kind} {self.name} state={self.state}>"


class LazyDeferred(Deferred[T]):
    """Deferred whose computation is submitted on first observation.

    Awaiting, wait(), join() and start() all count as observations. A handle
    that is never observed never runs and never holds its scope open.
    """

    lazy: ClassVar[bool] = True
