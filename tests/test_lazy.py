import asyncio
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from rivulet import (
    Lazy,
    LazyDeferred,
    Scope,
    ScopeClosedError,
    lazy_deferred,
    lazy_start,
    memoized_lazy_start,
)
from fakes import CountingComputation


def test_lazy_start_waits_for_first_observation() -> None:
    async def run():
        flag = {"set": False}

        async def computation() -> str:
            flag["set"] = True
            return "done"

        async with Scope() as scope:
            handle = lazy_start(scope, computation)
            await asyncio.sleep(0.01)
            before = flag["set"]
            started_before = handle.is_started
            value = await handle
        return before, started_before, flag["set"], value

    before, started_before, after, value = asyncio.run(run())
    assert before is False
    assert started_before is False
    assert after is True
    assert value == "done"


def test_lazy_start_runs_exactly_once() -> None:
    async def run():
        computation = CountingComputation(value="x")
        async with Scope() as scope:
            handle = lazy_start(scope, computation)
            values = [await handle for _ in range(5)]
        return values, computation.calls

    values, calls = asyncio.run(run())
    assert values == ["x"] * 5
    assert calls == 1


def test_concurrent_first_observers_share_one_run() -> None:
    async def run():
        computation = CountingComputation(value="shared", delay=0.05)
        async with Scope() as scope:
            handle = lazy_start(scope, computation)
            values = await asyncio.gather(*(handle.wait() for _ in range(5)))
        return values, computation.calls

    values, calls = asyncio.run(run())
    assert values == ["shared"] * 5
    assert calls == 1


def test_join_counts_as_observation() -> None:
    async def run():
        computation = CountingComputation(value=3)
        async with Scope() as scope:
            handle = lazy_start(scope, computation)
            await handle.join()
            return handle.state, computation.calls

    state, calls = asyncio.run(run())
    assert state == "resolved"
    assert calls == 1


def test_unobserved_lazy_handle_never_runs() -> None:
    async def run():
        computation = CountingComputation(value=1, delay=1.0)
        start = time.perf_counter()
        async with Scope() as scope:
            handle = lazy_start(scope, computation)
        return handle, computation.calls, time.perf_counter() - start

    handle, calls, elapsed = asyncio.run(run())
    assert calls == 0
    assert handle.state == "pending"
    assert elapsed < 0.5


def test_lazy_observed_after_scope_closed_raises() -> None:
    async def run():
        computation = CountingComputation(value=1)
        async with Scope() as scope:
            handle = lazy_start(scope, computation)
        with pytest.raises(ScopeClosedError):
            await handle
        return computation.calls

    assert asyncio.run(run()) == 0


def test_memoized_lazy_start_returns_same_handle() -> None:
    async def run():
        computation = CountingComputation(value=5)
        async with Scope() as scope:
            cell = memoized_lazy_start(scope, computation)
            initialized_before = cell.is_initialized()
            first = cell.value
            second = cell.value
            third = cell()
            calls_before_await = computation.calls
            value = await first
        return initialized_before, first, second, third, calls_before_await, value, computation.calls

    initialized_before, first, second, third, calls_before, value, calls = asyncio.run(run())
    assert initialized_before is False
    assert isinstance(first, LazyDeferred)
    assert first is second
    assert first is third
    assert calls_before == 0
    assert value == 5
    assert calls == 1


def test_lazy_cell_factory_runs_once_across_threads() -> None:
    calls = []

    def factory() -> object:
        calls.append(1)
        time.sleep(0.05)
        return object()

    cell = Lazy(factory)
    with ThreadPoolExecutor(max_workers=8) as pool:
        values = list(pool.map(lambda _: cell.value, range(8)))

    assert len(calls) == 1
    assert all(v is values[0] for v in values)
    assert cell.is_initialized()


def test_lazy_cell_repr() -> None:
    cell = Lazy(lambda: 3)
    assert repr(cell) == "Lazy(<not initialized>)"
    assert cell.value == 3
    assert repr(cell) == "Lazy(3)"


class Dashboard:
    def __init__(self, scope: Scope) -> None:
        self.scope = scope
        self.calls = 0

    @lazy_deferred
    async def total(self) -> int:
        self.calls += 1
        return 10


class Report:
    def __init__(self, tasks: Scope) -> None:
        self.tasks = tasks

    @lazy_deferred(scope_attr="tasks")
    def title(self) -> str:
        return "weekly"


def test_lazy_deferred_property_is_memoized_per_instance() -> None:
    async def run():
        async with Scope() as scope:
            board = Dashboard(scope)
            other = Dashboard(scope)
            handle = board.total
            same = board.total
            started_before = handle.is_started
            values = [await board.total, await board.total]
            distinct = other.total is not handle
        return board, handle, same, started_before, values, distinct

    board, handle, same, started_before, values, distinct = asyncio.run(run())
    assert isinstance(handle, LazyDeferred)
    assert handle is same
    assert started_before is False
    assert values == [10, 10]
    assert board.calls == 1
    assert distinct


def test_lazy_deferred_property_custom_scope_attribute() -> None:
    async def run():
        async with Scope() as tasks:
            report = Report(tasks)
            return await report.title, report.title.name

    value, name = asyncio.run(run())
    assert value == "weekly"
    assert name == "Report.title"
