"""Retry policy for a single check cycle.

Attempts stop at the first OK outcome. Failing attempts are separated by
``retry_delay`` seconds, doubling each time when exponential backoff is
enabled (delay before attempt k is ``retry_delay * 2**(k-2)``). Only the
final attempt's outcome is returned.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from .models import CheckOutcome, CheckStatus, Schedule

logger = logging.getLogger(__name__)

SleepFn = Callable[[float], Awaitable[None]]


def retry_delays(schedule: Schedule) -> list[float]:
    """Delays waited before attempts 2..N of a fully failing cycle."""
    delays = []
    delay = schedule.retry_delay
    for _ in range(schedule.effective_attempts - 1):
        delays.append(delay)
        if schedule.exponential_backoff:
            delay *= 2
    return delays


async def run_attempts(
    attempt: Callable[[], Awaitable[CheckOutcome]],
    schedule: Schedule,
    sleep: SleepFn | None = None,
    label: str = "",
) -> tuple[CheckOutcome, int]:
    """Run ``attempt`` per the schedule's retry policy.

    Returns the outcome of the last attempt made and the number of attempts.
    """
    sleep = sleep or asyncio.sleep
    delays = retry_delays(schedule)
    max_attempts = schedule.effective_attempts

    outcome = None
    for n in range(1, max_attempts + 1):
        logger.debug("[%s] attempt %d/%d ...", label, n, max_attempts)
        outcome = await attempt()
        logger.debug("[%s] attempt %d result: %s", label, n, outcome)
        if outcome.status == CheckStatus.OK:
            return outcome, n
        if n < max_attempts:
            await sleep(delays[n - 1])

    return outcome, max_attempts
