"""Fixed-rate background scheduler for the price update operation.

One asyncio task drives a single timeline of ticks. Each tick enters a fresh
execution scope, runs the update, and leaves the scope whatever the outcome.
Ticks never overlap: the next tick is computed only after the current run
returns, as ``previous scheduled tick + interval``, clamped to now when a run
overruns.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import AbstractAsyncContextManager
from typing import Any, Callable, Protocol

from tariff_sync.core.exceptions import (
    ConfigError,
    InvalidArgumentError,
    UnauthorizedError,
    UpstreamUnavailableError,
)
from tariff_sync.core.models import SchedulerState

logger = logging.getLogger(__name__)


class UpdateOperation(Protocol):
    """The unit of work executed on each tick."""

    async def update(self) -> Any: ...


ScopeFactory = Callable[[], AbstractAsyncContextManager[UpdateOperation]]


class PriceScheduler:
    """Runs an update operation once per interval until stopped.

    Parameters
    ----------
    scope_factory : ScopeFactory
        Called once per run; returns an async context manager yielding the
        operation. Entered at run start, exited on every exit path.
    operation_name : str
        Used in log messages.

    ``start()`` on a running scheduler is a no-op. A scheduler is single use:
    ``start()`` after ``stop()`` raises InvalidArgumentError.
    """

    def __init__(self, scope_factory: ScopeFactory, operation_name: str = "price update") -> None:
        self._scope_factory = scope_factory
        self._operation_name = operation_name
        self._state = SchedulerState.NOT_STARTED
        self._interval = 0.0
        self._run_count = 0
        self._lock = asyncio.Lock()
        self._stop_event: asyncio.Event | None = None
        self._task: asyncio.Task | None = None

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def run_count(self) -> int:
        """Number of runs attempted so far, successful or not."""
        return self._run_count

    def start(self, interval_seconds: float) -> None:
        """Schedule the first run now and one every ``interval_seconds`` after.

        Must be called from within a running event loop.

        Raises:
            InvalidArgumentError: ``interval_seconds <= 0``, or the scheduler
                has already been stopped.
            RuntimeError: No event loop is running; the scheduler is left
                NOT_STARTED.
        """
        if self._state == SchedulerState.RUNNING:
            logger.warning("Price scheduler is already running; start ignored")
            return
        if self._state != SchedulerState.NOT_STARTED:
            raise InvalidArgumentError(
                f"Cannot restart a scheduler in state '{self._state.value}'",
                context={"argument": "state", "value": self._state.value},
            )
        if interval_seconds <= 0:
            raise InvalidArgumentError(
                f"interval_seconds must be greater than 0, got {interval_seconds}",
                context={"argument": "interval_seconds", "value": interval_seconds},
            )

        loop = asyncio.get_running_loop()

        logger.info("Price scheduler is starting (interval %ss)", interval_seconds)
        self._interval = float(interval_seconds)
        self._stop_event = asyncio.Event()
        self._task = loop.create_task(self._run_loop(), name="price-scheduler")
        self._state = SchedulerState.RUNNING

    async def stop(self) -> None:
        """Stop scheduling. An in-flight run is allowed to finish. Idempotent."""
        if self._task is None or self._state == SchedulerState.STOPPED:
            return
        if self._state == SchedulerState.RUNNING:
            logger.info("Price scheduler is stopping")
            self._state = SchedulerState.STOPPING
            self._stop_event.set()
        await asyncio.wait({self._task})

    async def wait(self) -> None:
        """Wait for the scheduler loop to end.

        Re-raises InvalidArgumentError if a run ended the loop with one.
        """
        if self._task is not None:
            await self._task

    async def _run_loop(self) -> None:
        loop = asyncio.get_running_loop()
        next_tick = loop.time()
        try:
            while not self._stop_event.is_set():
                await self._run_once()
                if self._stop_event.is_set():
                    break

                next_tick += self._interval
                now = loop.time()
                if next_tick < now:
                    logger.warning(
                        "%s overran its interval by %.1fs", self._operation_name, now - next_tick
                    )
                    next_tick = now
                logger.info("Waiting %.0f seconds until next update", next_tick - now)
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=next_tick - now)
                except TimeoutError:
                    pass
        finally:
            self._state = SchedulerState.STOPPED
            logger.info("Price scheduler stopped after %d runs", self._run_count)

    async def _run_once(self) -> None:
        """Execute one run inside a fresh scope, containing its failures."""
        async with self._lock:
            self._run_count += 1
            logger.debug("Running %s (run %d)", self._operation_name, self._run_count)
            try:
                async with self._scope_factory() as operation:
                    await operation.update()
                logger.debug("%s complete", self._operation_name)
            except InvalidArgumentError as e:
                logger.critical(
                    "Failed to run %s: %s %s", self._operation_name, e, e.context, exc_info=True
                )
                raise
            except (ConfigError, UnauthorizedError) as e:
                logger.error(
                    "Failed to run %s, operator action needed: %s %s",
                    self._operation_name, e, e.context,
                )
            except UpstreamUnavailableError as e:
                logger.warning(
                    "Failed to run %s, will retry next tick: %s %s",
                    self._operation_name, e, e.context,
                )
            except Exception:
                logger.exception("Failed to run %s", self._operation_name)
