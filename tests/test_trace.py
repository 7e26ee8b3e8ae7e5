"""Test lifecycle tracing and scope configuration."""

import asyncio

import pytest
from pydantic import ValidationError

from rivulet import Scope, ScopeClosedError, ScopeConfig, Trace, eager_start, lazy_start, suspend_zip
from fakes import CountingComputation, FailingComputation


def test_trace_record_and_query():
    trace = Trace()
    root = trace.record("scope_open", info={"scope": "root"})
    child = trace.record("submit", parent_id=root)
    trace.record("resolve", parent_id=child, duration_ms=1.5)

    assert len(trace) == 3
    assert [ev.action for ev in trace.get_events()] == ["scope_open", "submit", "resolve"]
    assert trace.find("resolve")[0].duration_ms == 1.5
    assert trace.as_tree() == {None: [0], 0: [1], 1: [2]}

    trace.clear()
    assert len(trace) == 0
    assert trace.record("again") == 0


def test_disabled_trace_records_nothing():
    trace = Trace(enabled=False)
    assert trace.record("scope_open") is None
    assert len(trace) == 0


def test_zip_records_lifecycle():
    async def run():
        async with Scope(ScopeConfig(name="root", trace=True)) as scope:
            await suspend_zip(
                scope,
                CountingComputation(value=1),
                CountingComputation(value=2),
                lambda a, b: a + b,
            )
        return scope.trace

    trace = asyncio.run(run())
    actions = [ev.action for ev in trace.get_events()]

    assert actions[0] == "scope_open"
    assert actions[-1] == "scope_close"
    assert actions.count("submit") == 2
    assert actions.count("resolve") == 2
    assert "branch_0" in actions and "branch_1" in actions

    root_open, zip_open = trace.find("scope_open")
    assert zip_open.info["scope"] == "root.zip"
    assert zip_open.parent_id == root_open.id

    zip_begin = trace.find("zip_begin")[0]
    assert zip_begin.info == {"arity": 2}
    zip_end = trace.find("zip_end")[0]
    assert zip_end.parent_id == zip_begin.id
    assert zip_end.info == {"outcome": "ok"}
    assert zip_end.duration_ms is not None

    for submit in trace.find("submit"):
        assert submit.parent_id == zip_open.id
        assert submit.info["lazy"] is False


def test_failure_and_cancellation_are_recorded():
    async def run():
        trace = Trace()
        with pytest.raises(ValueError):
            async with Scope(trace=trace) as scope:
                eager_start(scope, CountingComputation(value=1, delay=1.0))
                eager_start(scope, FailingComputation(ValueError("boom"), delay=0.01))
                await asyncio.sleep(1.0)
        return trace

    trace = asyncio.run(run())
    fail = trace.find("fail")[0]
    assert fail.info["error"] == "ValueError('boom')"
    assert len(trace.find("cancel")) == 1
    assert trace.find("scope_close")[0].info["outcome"] == "error"


def test_lazy_submit_is_recorded_on_observation():
    async def run():
        async with Scope(ScopeConfig(trace=True)) as scope:
            handle = lazy_start(scope, CountingComputation(value=1))
            before = len(scope.trace.find("submit"))
            await handle
            after = scope.trace.find("submit")
        return before, after

    before, after = asyncio.run(run())
    assert before == 0
    assert len(after) == 1
    assert after[0].info["lazy"] is True


@pytest.mark.skipif(not hasattr(asyncio, "eager_task_factory"), reason="needs eager task factory")
def test_eager_tasks_attach_outcome_to_submit():
    async def run():
        asyncio.get_running_loop().set_task_factory(asyncio.eager_task_factory)
        async with Scope(ScopeConfig(trace=True)) as scope:
            value = await eager_start(scope, lambda: 1)
        return value, scope.trace

    value, trace = asyncio.run(run())
    assert value == 1
    submit = trace.find("submit")[0]
    resolve = trace.find("resolve")[0]
    assert resolve.parent_id == submit.id
    assert submit.id < resolve.id


def test_rejected_lazy_start_is_recorded():
    async def run():
        async with Scope(ScopeConfig(trace=True)) as scope:
            handle = lazy_start(scope, CountingComputation(value=1))
        with pytest.raises(ScopeClosedError):
            await handle
        return scope.trace

    trace = asyncio.run(run())
    submit = trace.find("submit")[0]
    reject = trace.find("reject")[0]
    assert reject.parent_id == submit.id
    assert reject.info == {"reason": "scope is closed"}


def test_zip_on_closed_scope_records_nothing():
    async def run():
        async with Scope(ScopeConfig(trace=True)) as scope:
            pass
        with pytest.raises(ScopeClosedError):
            await suspend_zip(scope, CountingComputation(value=1), CountingComputation(value=2), lambda a, b: a + b)
        return scope.trace

    trace = asyncio.run(run())
    assert trace.find("zip_begin") == []
    assert trace.find("zip_end") == []


def test_scope_config_defaults_and_nesting():
    config = ScopeConfig()
    assert config.name == "scope"
    assert config.trace is False
    assert config.annotate_suppressed is True
    assert config.nested("zip").name == "scope.zip"


def test_scope_config_validation():
    with pytest.raises(ValidationError):
        ScopeConfig(name="")

    config = ScopeConfig(name="frozen")
    with pytest.raises(ValidationError):
        config.name = "changed"
