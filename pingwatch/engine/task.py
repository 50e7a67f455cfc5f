"""Endpoint task — the repeating check loop and status state machine of one endpoint.

Each cycle: wait ``schedule.interval``, run the retry policy against the
bound checker, advance the endpoint status, and put a ``StatusEvent`` on the
shared event queue (blocking while the queue is full; events are never
dropped). A failing check only drives the status to NOK. The loop exits
solely on the shutdown signal, which it observes between cycles.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from concurrent.futures import Executor
from datetime import datetime, timezone

from pingwatch.checks.base import Checker
from pingwatch.endpoints.durations import format_duration
from pingwatch.engine.models import CheckOutcome, EndpointStatus, Schedule, StatusEvent
from pingwatch.engine.retry import SleepFn, run_attempts

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EndpointTask:
    """Owns one endpoint's check loop and its ``EndpointStatus``.

    The status is only ever replaced as a whole (the values are frozen) and
    carries the latest output inside its outcome, so ``status`` and
    ``latest_output`` always come from the same completed cycle.
    """

    def __init__(
        self,
        name: str,
        checker: Checker,
        schedule: Schedule,
        events: asyncio.Queue[StatusEvent | None],
        executor: Executor | None = None,
        sleep: SleepFn | None = None,
        clock: Callable[[], datetime] | None = None,
        check_type: str = "",
    ) -> None:
        self.name = name
        self.checker = checker
        self.schedule = schedule
        self.check_type = check_type or checker.type_name
        self._events = events
        self._executor = executor
        self._sleep = sleep or asyncio.sleep
        self._clock = clock or utcnow
        self._status = EndpointStatus.initial()
        self.cycles = 0

    # -- snapshot accessors -----------------------------------------------------

    @property
    def status(self) -> EndpointStatus:
        return self._status

    @property
    def latest_output(self) -> bytes | None:
        # read from the same snapshot as the status
        return self._status.latest_outcome.output

    # -- loop ---------------------------------------------------------------------

    async def run(self, stop: asyncio.Event) -> None:
        """Run check cycles until ``stop`` is set."""
        s = self.schedule
        logger.info(
            "[%s] started. interval: %s, attempts: %d, delay: %s, backoff: %s",
            self.name, format_duration(s.interval), s.attempts,
            format_duration(s.retry_delay), s.exponential_backoff,
        )
        while not stop.is_set():
            logger.debug("[%s] waiting %s before next run ...", self.name, format_duration(s.interval))
            if await _wait_or_stop(stop, s.interval):
                break
            await self.run_cycle()
        logger.info("[%s] stopped after %d cycles", self.name, self.cycles)

    async def run_cycle(self) -> StatusEvent:
        """Perform one full cycle: retry policy, status update, event emit."""
        logger.info("[%s] checking ...", self.name)
        outcome, attempts = await run_attempts(
            self._attempt, self.schedule, sleep=self._sleep, label=self.name,
        )
        self._status = self._status.advance(outcome, self._clock())
        self.cycles += 1
        logger.info(
            "[%s] status: %s (consecutive=%d, attempts=%d)",
            self.name, self._status.status.value, self._status.consecutive, attempts,
        )

        event = StatusEvent(endpoint_name=self.name, status=self._status)
        # blocks while the dispatcher is behind
        await self._events.put(event)
        return event

    async def _attempt(self) -> CheckOutcome:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self._check_safely)

    def _check_safely(self) -> CheckOutcome:
        try:
            return self.checker.check()
        except Exception as e:
            logger.exception("[%s] checker raised", self.name)
            return CheckOutcome.nok(f"check failed: {type(e).__name__}: {e}")


async def _wait_or_stop(stop: asyncio.Event, seconds: float) -> bool:
    """Sleep ``seconds``; return True early if ``stop`` gets set meanwhile."""
    try:
        await asyncio.wait_for(stop.wait(), timeout=seconds)
    except asyncio.TimeoutError:
        return False
    return True
