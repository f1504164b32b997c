"""Tests for tariff_sync.scheduler (PriceScheduler)."""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

import pytest

from tariff_sync.core.exceptions import (
    ConfigError,
    InvalidArgumentError,
    UnauthorizedError,
    UpstreamUnavailableError,
)
from tariff_sync.core.models import SchedulerState
from tariff_sync.scheduler import PriceScheduler


class FakeOperation:
    """Counts calls and tracks how many are in flight at once."""

    def __init__(self, duration: float = 0.0, error: Exception | None = None):
        self.calls = 0
        self.completed = 0
        self.in_flight = 0
        self.max_in_flight = 0
        self._duration = duration
        self._error = error

    async def update(self):
        self.calls += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self._duration:
                await asyncio.sleep(self._duration)
            if self._error is not None:
                raise self._error
            self.completed += 1
        finally:
            self.in_flight -= 1


class ScopeRecorder:
    """Scope factory that yields one operation and records enter/exit."""

    def __init__(self, operation: FakeOperation):
        self.operation = operation
        self.entered = 0
        self.exited = 0

    @asynccontextmanager
    async def __call__(self):
        self.entered += 1
        try:
            yield self.operation
        finally:
            self.exited += 1


@pytest.fixture
def scope():
    return ScopeRecorder(FakeOperation())


class TestStart:
    async def test_runs_immediately(self, scope):
        scheduler = PriceScheduler(scope)
        scheduler.start(60)
        await asyncio.sleep(0.05)
        assert scope.operation.calls == 1
        assert scheduler.state == SchedulerState.RUNNING
        await scheduler.stop()

    async def test_runs_on_fixed_interval(self, scope):
        scheduler = PriceScheduler(scope)
        scheduler.start(0.2)
        await asyncio.sleep(0.5)
        await scheduler.stop()
        # Ticks at 0.0, 0.2 and 0.4
        assert 2 <= scope.operation.calls <= 4
        assert scheduler.run_count == scope.operation.calls

    @pytest.mark.parametrize("interval", [0, -1, -0.5])
    async def test_non_positive_interval_rejected(self, scope, interval):
        scheduler = PriceScheduler(scope)
        with pytest.raises(InvalidArgumentError, match="interval_seconds") as exc_info:
            scheduler.start(interval)
        assert exc_info.value.context["argument"] == "interval_seconds"
        assert scheduler.state == SchedulerState.NOT_STARTED

    async def test_start_while_running_is_noop(self, scope, caplog):
        caplog.set_level(logging.WARNING, logger="tariff_sync.scheduler")
        scheduler = PriceScheduler(scope)
        scheduler.start(60)
        await asyncio.sleep(0.05)

        scheduler.start(60)
        await asyncio.sleep(0.05)

        assert scope.operation.calls == 1
        assert "already running" in caplog.text
        await scheduler.stop()

    def test_start_without_event_loop_leaves_not_started(self, scope):
        scheduler = PriceScheduler(scope)
        with pytest.raises(RuntimeError):
            scheduler.start(5)
        assert scheduler.state == SchedulerState.NOT_STARTED
        assert scheduler.run_count == 0

    async def test_restart_after_stop_rejected(self, scope):
        scheduler = PriceScheduler(scope)
        scheduler.start(60)
        await scheduler.stop()
        with pytest.raises(InvalidArgumentError, match="Cannot restart"):
            scheduler.start(60)


class TestStop:
    async def test_stop_before_start_is_noop(self, scope):
        scheduler = PriceScheduler(scope)
        await scheduler.stop()
        assert scheduler.state == SchedulerState.NOT_STARTED

    async def test_no_runs_after_stop(self, scope):
        scheduler = PriceScheduler(scope)
        scheduler.start(0.1)
        await asyncio.sleep(0.05)
        await scheduler.stop()
        calls = scope.operation.calls

        await asyncio.sleep(0.3)

        assert scope.operation.calls == calls
        assert scheduler.state == SchedulerState.STOPPED

    async def test_stop_is_idempotent(self, scope):
        scheduler = PriceScheduler(scope)
        scheduler.start(60)
        await scheduler.stop()
        await scheduler.stop()
        assert scheduler.state == SchedulerState.STOPPED

    async def test_in_flight_run_completes(self):
        scope = ScopeRecorder(FakeOperation(duration=0.2))
        scheduler = PriceScheduler(scope)
        scheduler.start(60)
        await asyncio.sleep(0.05)
        assert scope.operation.in_flight == 1

        stopping = asyncio.create_task(scheduler.stop())
        await asyncio.sleep(0.01)
        assert scheduler.state == SchedulerState.STOPPING
        assert scope.operation.in_flight == 1

        await stopping

        assert scheduler.state == SchedulerState.STOPPED
        assert scope.operation.completed == 1
        assert scope.exited == 1

    async def test_wait_returns_after_stop(self, scope):
        scheduler = PriceScheduler(scope)
        scheduler.start(60)
        waiter = asyncio.create_task(scheduler.wait())
        await asyncio.sleep(0.05)
        assert not waiter.done()

        await scheduler.stop()
        await asyncio.wait_for(waiter, timeout=1)


class TestNonOverlap:
    async def test_slow_runs_never_overlap(self, caplog):
        caplog.set_level(logging.WARNING, logger="tariff_sync.scheduler")
        scope = ScopeRecorder(FakeOperation(duration=0.15))
        scheduler = PriceScheduler(scope)
        scheduler.start(0.05)
        await asyncio.sleep(0.5)
        await scheduler.stop()

        assert scope.operation.calls >= 2
        assert scope.operation.max_in_flight == 1
        assert "overran its interval" in caplog.text

    async def test_scope_per_run(self):
        scope = ScopeRecorder(FakeOperation())
        scheduler = PriceScheduler(scope)
        scheduler.start(0.1)
        await asyncio.sleep(0.25)
        await scheduler.stop()

        assert scope.entered == scope.operation.calls
        assert scope.exited == scope.entered


class TestErrorPolicy:
    @pytest.mark.parametrize(
        ("error", "level"),
        [
            (UpstreamUnavailableError("upstream down"), logging.WARNING),
            (UnauthorizedError("bad token"), logging.ERROR),
            (ConfigError("bad table"), logging.ERROR),
            (RuntimeError("boom"), logging.ERROR),
        ],
    )
    async def test_failure_logged_and_loop_continues(self, caplog, error, level):
        caplog.set_level(logging.DEBUG, logger="tariff_sync.scheduler")
        scope = ScopeRecorder(FakeOperation(error=error))
        scheduler = PriceScheduler(scope)
        scheduler.start(0.1)
        await asyncio.sleep(0.25)

        assert scheduler.state == SchedulerState.RUNNING
        await scheduler.stop()

        assert scope.operation.calls >= 2
        assert scope.exited == scope.entered
        failures = [r for r in caplog.records if r.getMessage().startswith("Failed to run")]
        assert failures
        assert all(r.levelno == level for r in failures)

    async def test_unexpected_error_logged_with_traceback(self, caplog):
        caplog.set_level(logging.ERROR, logger="tariff_sync.scheduler")
        scope = ScopeRecorder(FakeOperation(error=RuntimeError("boom")))
        scheduler = PriceScheduler(scope)
        scheduler.start(60)
        await asyncio.sleep(0.05)
        await scheduler.stop()

        assert any(r.exc_info for r in caplog.records)

    async def test_invalid_argument_ends_loop(self, caplog):
        caplog.set_level(logging.CRITICAL, logger="tariff_sync.scheduler")
        scope = ScopeRecorder(FakeOperation(error=InvalidArgumentError("bad window")))
        scheduler = PriceScheduler(scope)
        scheduler.start(0.05)

        with pytest.raises(InvalidArgumentError, match="bad window"):
            await asyncio.wait_for(scheduler.wait(), timeout=1)

        assert scheduler.state == SchedulerState.STOPPED
        assert scope.operation.calls == 1
        assert scope.exited == 1
        assert any(r.levelno == logging.CRITICAL for r in caplog.records)
