"""Test doubles shared across the suite."""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone

from pingwatch.alerts.base import AlertRecord, AlertSink
from pingwatch.checks.base import Checker, CheckPayload
from pingwatch.engine.models import CheckOutcome, CheckStatus

T0 = datetime(2025, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

OK = CheckOutcome(CheckStatus.OK, None, b"all good\n")
NOK = CheckOutcome(CheckStatus.NOK, "expected status code (200) differs from actual (503)")


class ScriptedChecker(Checker):
    """Returns a scripted sequence of outcomes; repeats the last one forever."""

    type_name = "scripted"
    payload_model = CheckPayload

    def __init__(self, outcomes: Iterable[CheckOutcome | Exception]) -> None:
        self.outcomes = list(outcomes)
        self.calls = 0

    def check(self) -> CheckOutcome:
        idx = min(self.calls, len(self.outcomes) - 1)
        self.calls += 1
        outcome = self.outcomes[idx]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class RecordingSink(AlertSink):
    name = "recording"

    def __init__(self) -> None:
        self.records: list[AlertRecord] = []
        self.closed = False

    async def send(self, record: AlertRecord) -> bool:
        self.records.append(record)
        return True

    async def close(self) -> None:
        self.closed = True


class FailingSink(AlertSink):
    name = "failing"

    def __init__(self, raises: bool = True) -> None:
        self.raises = raises
        self.calls = 0

    async def send(self, record: AlertRecord) -> bool:
        self.calls += 1
        if self.raises:
            raise ConnectionError("smtp server unreachable")
        return False


class SlowSink(AlertSink):
    """Blocks until ``release`` is set."""

    name = "slow"

    def __init__(self) -> None:
        self.release = asyncio.Event()
        self.started = 0
        self.finished = 0

    async def send(self, record: AlertRecord) -> bool:
        self.started += 1
        await self.release.wait()
        self.finished += 1
        return True


class FakeClock:
    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class SleepRecorder:
    """Stand-in for asyncio.sleep that records the requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)
