"""Tests for the per-endpoint check loop."""

from __future__ import annotations

import asyncio

from helpers import NOK, OK, FakeClock, ScriptedChecker, SleepRecorder
from pingwatch.engine.models import CheckOutcome, CheckStatus, Schedule, StatusEvent
from pingwatch.engine.task import EndpointTask


def make_task(checker, clock=None, sleeps=None, schedule=None, maxsize=0):
    events: asyncio.Queue[StatusEvent | None] = asyncio.Queue(maxsize=maxsize)
    task = EndpointTask(
        "api",
        checker,
        schedule or Schedule(interval=0.01, attempts=1, retry_delay=0),
        events,
        sleep=sleeps,
        clock=clock,
    )
    return task, events


class TestEndpointTask:
    def test_initial_snapshot(self) -> None:
        task, _ = make_task(ScriptedChecker([OK]))
        assert task.status.status == CheckStatus.UNKNOWN
        assert task.latest_output is None
        assert task.check_type == "scripted"

    def test_cycle_emits_event(self, clock: FakeClock) -> None:
        async def go():
            task, events = make_task(ScriptedChecker([OK]), clock=clock)
            event = await task.run_cycle()
            return task, event, events.get_nowait()

        task, event, queued = asyncio.run(go())
        assert queued is event
        assert event.endpoint_name == "api"
        assert event.status.status == CheckStatus.OK
        assert event.status.latest_ok_at == clock.now
        assert task.latest_output == b"all good\n"
        assert task.cycles == 1

    def test_consecutive_across_cycles(self, clock: FakeClock) -> None:
        async def go():
            task, _ = make_task(ScriptedChecker([NOK, NOK, OK]), clock=clock)
            seen = []
            for _ in range(3):
                event = await task.run_cycle()
                seen.append((event.status.status, event.status.consecutive))
            return seen

        assert asyncio.run(go()) == [
            (CheckStatus.NOK, 1),
            (CheckStatus.NOK, 2),
            (CheckStatus.OK, 1),
        ]

    def test_retries_within_one_cycle(self, sleeps: SleepRecorder) -> None:
        checker = ScriptedChecker([NOK, NOK, OK])
        schedule = Schedule(interval=60, attempts=3, retry_delay=2.0, exponential_backoff=True)

        async def go():
            task, _ = make_task(checker, sleeps=sleeps, schedule=schedule)
            return await task.run_cycle()

        event = asyncio.run(go())
        assert event.status.status == CheckStatus.OK
        assert checker.calls == 3
        assert sleeps.delays == [2.0, 4.0]

    def test_checker_exception_becomes_nok(self) -> None:
        async def go():
            task, _ = make_task(ScriptedChecker([RuntimeError("boom")]))
            return await task.run_cycle()

        event = asyncio.run(go())
        assert event.status.status == CheckStatus.NOK
        assert event.status.latest_outcome.error == "check failed: RuntimeError: boom"

    def test_output_cleared_when_outcome_has_none(self) -> None:
        async def go():
            task, _ = make_task(ScriptedChecker([OK, NOK]))
            await task.run_cycle()
            await task.run_cycle()
            return task

        task = asyncio.run(go())
        assert task.latest_output is None

    def test_output_and_status_from_same_cycle(self) -> None:
        failing = CheckOutcome.nok("expected exit code (0) differs from actual (3)", b"disk full\n")

        async def go():
            task, _ = make_task(ScriptedChecker([failing, OK]))
            await task.run_cycle()
            first = (task.status, task.latest_output)
            await task.run_cycle()
            return first, (task.status, task.latest_output)

        (s1, out1), (s2, out2) = asyncio.run(go())
        assert s1.status == CheckStatus.NOK
        assert out1 == b"disk full\n"
        assert s2.status == CheckStatus.OK
        assert out2 == b"all good\n"
        assert out2 is s2.latest_outcome.output

    def test_snapshot_reads_are_stable(self) -> None:
        async def go():
            task, _ = make_task(ScriptedChecker([NOK]))
            await task.run_cycle()
            return task

        task = asyncio.run(go())
        assert task.status == task.status
        assert task.status is task.status

    def test_full_queue_blocks_producer(self) -> None:
        async def go():
            task, events = make_task(ScriptedChecker([OK]), maxsize=1)
            await task.run_cycle()
            second = asyncio.create_task(task.run_cycle())
            await asyncio.sleep(0.05)
            blocked = not second.done()
            # consuming one event unblocks the producer; nothing is dropped
            first = events.get_nowait()
            await asyncio.wait_for(second, timeout=1)
            return blocked, first, events.get_nowait()

        blocked, first, second = asyncio.run(go())
        assert blocked
        assert first.status.consecutive == 1
        assert second.status.consecutive == 2

    def test_run_loops_until_stopped(self) -> None:
        async def go():
            task, events = make_task(ScriptedChecker([OK]))
            stop = asyncio.Event()
            loop = asyncio.create_task(task.run(stop))
            while task.cycles < 3:
                await asyncio.sleep(0.01)
            stop.set()
            await asyncio.wait_for(loop, timeout=1)
            return task, events

        task, events = asyncio.run(go())
        assert task.cycles >= 3
        assert events.qsize() == task.cycles

    def test_stop_during_interval_exits_promptly(self) -> None:
        checker = ScriptedChecker([OK])

        async def go():
            task, _ = make_task(checker, schedule=Schedule(interval=3600, attempts=1))
            stop = asyncio.Event()
            loop = asyncio.create_task(task.run(stop))
            await asyncio.sleep(0.01)
            stop.set()
            await asyncio.wait_for(loop, timeout=1)
            return task

        task = asyncio.run(go())
        assert task.cycles == 0
        assert checker.calls == 0
