"""Structured concurrency scope built on asyncio.TaskGroup."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Coroutine
from types import TracebackType
from typing import Any, Literal, TypeVar

from rivulet.kernel.config import ScopeConfig
from rivulet.kernel.errors import ScopeClosedError
from rivulet.kernel.trace import Trace

logger = logging.getLogger(__name__)

T = TypeVar("T")

ScopeStatus = Literal["new", "open", "closing", "closed"]


class Scope:
    """Ownership boundary for child tasks.

    Use as ``async with Scope() as scope:``. Every task submitted to the
    scope is joined before the ``async with`` block exits.

    Semantics:
        - Children may be submitted while the scope is open, and while it is
          closing as long as no child has failed
        - The first child failure cancels the remaining children and the
          scope body
        - That failure is re-raised unwrapped on exit; any other failures
          are listed in a note on it
        - Cancellation of the task running the scope cancels all children

    Nested scopes created with child() share the parent's trace and name.
    The parent owns every entered child scope, whichever task runs it: a
    failure or cancellation of the parent cancels the child's host task,
    and the parent does not finish closing until each child has closed.
    """

    def __init__(
        self,
        config: ScopeConfig | None = None,
        *,
        trace: Trace | None = None,
        parent: Scope | None = None,
    ) -> None:
        self.config = config or ScopeConfig()
        if trace is None and self.config.trace:
            trace = Trace()
        self.trace = trace
        self.parent = parent
        self._group = asyncio.TaskGroup()
        self._status: ScopeStatus = "new"
        self._event_id: int | None = None
        self._opened_at: float | None = None
        self._host: asyncio.Task[Any] | None = None
        self._tasks: set[asyncio.Task[Any]] = set()
        self._children: set[Scope] = set()
        self._closed = asyncio.Event()
        self._host_cancel_requested = False

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def status(self) -> ScopeStatus:
        return self._status

    @property
    def is_open(self) -> bool:
        """Whether the scope currently accepts children."""
        return self._status in ("open", "closing")

    @property
    def event_id(self) -> int | None:
        """Trace id of this scope's ``scope_open`` event."""
        return self._event_id

    def child(self, name: str = "child") -> Scope:
        """Create a nested scope; enter it with ``async with``.

        Raises:
            ScopeClosedError: If this scope is not open
        """
        if not self.is_open:
            raise ScopeClosedError(self.name, f"cannot open nested scope '{name}'")
        return Scope(self.config.nested(name), trace=self.trace, parent=self)

    def submit(self, coro: Coroutine[Any, Any, T], *, name: str | None = None) -> asyncio.Task[T]:
        """Schedule ``coro`` as a child task without suspending the caller.

        Raises:
            ScopeClosedError: If the scope does not accept children
        """
        if not self.is_open:
            coro.close()
            raise ScopeClosedError(self.name)
        try:
            task = self._group.create_task(coro, name=name)
        except RuntimeError as exc:
            # TaskGroup refuses new tasks once it is aborting or finished
            coro.close()
            raise ScopeClosedError(self.name, "scope is shutting down") from exc
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        logger.debug("scope %s: submitted %s", self.name, task.get_name())
        return task

    def _on_task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled() or task.exception() is None:
            return
        # The TaskGroup aborts its own tasks; child scopes hosted elsewhere need a push
        self._cancel_children()

    def _cancel_children(self) -> None:
        for child in list(self._children):
            host = child._host
            if host is None or host.done() or child._host_cancel_requested:
                continue
            # Tasks of this scope and its own body are cancelled by the TaskGroup
            if host is self._host or host in self._tasks:
                continue
            child._host_cancel_requested = True
            logger.debug("scope %s: cancelling host of nested scope %s", self.name, child.name)
            host.cancel()

    async def _join_children(self, cancel: bool) -> None:
        """Wait until every entered child scope has closed.

        Children run by this scope's own tasks are already joined by the
        TaskGroup; this covers scopes entered from other tasks. A
        cancellation arriving while waiting turns the join into a cancel
        and is re-raised once all children are gone.
        """
        interrupted: asyncio.CancelledError | None = None
        while self._children:
            if cancel:
                self._cancel_children()
            child = next(iter(self._children))
            try:
                await child._closed.wait()
            except asyncio.CancelledError as exc:
                interrupted = exc
                cancel = True
        if interrupted is not None:
            raise interrupted

    async def __aenter__(self) -> Scope:
        if self._status != "new":
            raise RuntimeError(f"Scope '{self.name}' has already been entered")
        if self.parent is not None and not self.parent.is_open:
            raise ScopeClosedError(self.parent.name, f"cannot open nested scope '{self.name}'")
        await self._group.__aenter__()
        self._host = asyncio.current_task()
        if self.parent is not None:
            self.parent._children.add(self)
        self._status = "open"
        self._opened_at = time.perf_counter()
        if self.trace is not None:
            parent_id = self.parent.event_id if self.parent is not None else None
            self._event_id = self.trace.record(
                "scope_open",
                info={"scope": self.name},
                parent_id=parent_id,
            )
        logger.debug("scope %s: opened", self.name)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool | None:
        self._status = "closing"
        outcome = "ok"
        surfaced: BaseException | None = None
        try:
            suppress = await self._group.__aexit__(exc_type, exc, tb)
        except BaseExceptionGroup as group:
            outcome = "error"
            surfaced = self._surface(group)
        except BaseException:
            outcome = "cancelled"
            raise
        finally:
            try:
                await self._join_children(cancel=outcome != "ok")
            finally:
                self._status = "closed"
                self._closed.set()
                if self.parent is not None:
                    self.parent._children.discard(self)
                self._record_close(outcome)

        if surfaced is not None:
            raise surfaced
        return suppress

    def _surface(self, group: BaseExceptionGroup) -> BaseException:
        """Pick the failure to re-raise from the TaskGroup's group.

        Items of the group are the original exceptions in arrival order.
        """
        first, *rest = group.exceptions
        if rest and self.config.annotate_suppressed:
            suppressed = ", ".join(repr(err) for err in rest)
            first.add_note(f"{len(rest)} more failure(s) in scope '{self.name}' suppressed: {suppressed}")
        return first

    def _record_close(self, outcome: str) -> None:
        logger.debug("scope %s: closed (%s)", self.name, outcome)
        if self.trace is None or self._opened_at is None:
            return
        self.trace.record(
            "scope_close",
            info={"scope": self.name, "outcome": outcome},
            parent_id=self._event_id,
            duration_ms=(time.perf_counter() - self._opened_at) * 1000,
        )

    def __repr__(self) -> str:
        return f"<Scope {self.name!r} status={self._status}>"
