"""Alert dispatcher — single consumer of status events.

Decides which events deserve an alert and fans the alert out to every sink:

- **Transition**: ``consecutive == 1`` and the status is not UNKNOWN.
  Fires on every UNKNOWN→OK/NOK, OK→NOK and NOK→OK change.
- **Reminder**: a repeated NOK alerts again once ``reminder_delay`` has
  passed since the last alert for that endpoint (or if it has none).
- Everything else is suppressed.

The alert history records *attempted* dispatch: it is stamped as soon as an
alert is decided, whatever the sinks later report.

Sink sends run as tracked background tasks, so a slow or failing sink
never holds up other sinks or the next event. At most ``max_inflight``
sends are pending at once; further sends are dropped with a warning.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from datetime import datetime, timedelta

from pingwatch.alerts.base import AlertRecord, AlertSink
from pingwatch.engine.models import CheckStatus, StatusEvent
from pingwatch.engine.task import utcnow

logger = logging.getLogger(__name__)

DEFAULT_REMINDER_DELAY = 3600.0
DEFAULT_MAX_INFLIGHT = 64
DEFAULT_SEND_TIMEOUT = 30.0


def is_transition(event: StatusEvent) -> bool:
    # UNKNOWN is the initial state, not a transition target
    status = event.status
    return status.consecutive == 1 and status.status != CheckStatus.UNKNOWN


def output_url(base_url: str, endpoint_name: str) -> str:
    return f"{base_url.rstrip('/')}/endpoints/{endpoint_name}/output"


class Dispatcher:
    """Consumes ``StatusEvent``s and pushes alert-worthy ones to sinks."""

    def __init__(
        self,
        events: asyncio.Queue[StatusEvent | None],
        sinks: Sequence[AlertSink],
        reminder_delay: float = DEFAULT_REMINDER_DELAY,
        base_url: str = "",
        clock: Callable[[], datetime] | None = None,
        max_inflight: int = DEFAULT_MAX_INFLIGHT,
        send_timeout: float = DEFAULT_SEND_TIMEOUT,
    ) -> None:
        self._events = events
        self.sinks = list(sinks)
        self.reminder_delay = timedelta(seconds=reminder_delay)
        self.base_url = base_url
        self._clock = clock or utcnow
        self._max_inflight = max(max_inflight, 1)
        self._send_timeout = send_timeout
        self._inflight: set[asyncio.Task[None]] = set()
        self.alert_history: dict[str, datetime] = {}
        self.dropped = 0

    # -- decision -----------------------------------------------------------------

    def should_alert(self, event: StatusEvent, now: datetime) -> bool:
        name = event.endpoint_name
        if is_transition(event):
            logger.debug("state transition on [%s]", name)
            return True

        if event.status.status == CheckStatus.NOK:
            last = self.alert_history.get(name)
            if last is None:
                return True
            until_reminder = self.reminder_delay - (now - last)
            logger.debug("time until reminder for [%s]: %s", name, until_reminder)
            return until_reminder <= timedelta(0)

        return False

    # -- consumer loop ------------------------------------------------------------

    async def run(self) -> None:
        """Consume events until a ``None`` sentinel arrives."""
        logger.info("Dispatcher started with %d sinks", len(self.sinks))
        while True:
            event = await self._events.get()
            try:
                if event is None:
                    break
                self.handle(event)
            except Exception:
                logger.exception("Dispatcher failed to handle event")
            finally:
                self._events.task_done()
        logger.info("Dispatcher stopped")

    def handle(self, event: StatusEvent) -> AlertRecord | None:
        """Apply the suppression policy to one event; dispatch if warranted."""
        now = self._clock()
        if not self.should_alert(event, now):
            logger.debug("suppressing: %s %s", event.endpoint_name, event.status.status.value)
            return None

        self.alert_history[event.endpoint_name] = now
        record = AlertRecord.from_event(event, output_url(self.base_url, event.endpoint_name))
        self.dispatch(record)
        return record

    def dispatch(self, record: AlertRecord) -> None:
        logger.info(
            "dispatching alert: %s is %s (consecutive=%d)",
            record.endpoint_name, record.status_text, record.consecutive,
        )
        for sink in self.sinks:
            if len(self._inflight) >= self._max_inflight:
                self.dropped += 1
                logger.warning(
                    "alert to %s for %s dropped: %d sends already pending",
                    sink.name, record.endpoint_name, len(self._inflight),
                )
                continue
            task = asyncio.create_task(
                self._send(sink, record), name=f"alert-{sink.name}-{record.endpoint_name}",
            )
            self._inflight.add(task)
            task.add_done_callback(self._inflight.discard)

    async def _send(self, sink: AlertSink, record: AlertRecord) -> None:
        try:
            ok = await asyncio.wait_for(sink.send(record), timeout=self._send_timeout)
        except asyncio.TimeoutError:
            logger.error("alert to %s for %s timed out after %.0fs",
                         sink.name, record.endpoint_name, self._send_timeout)
            return
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("alert to %s for %s failed: %s", sink.name, record.endpoint_name, e)
            return
        if not ok:
            logger.error("alert to %s for %s failed", sink.name, record.endpoint_name)

    # -- shutdown -----------------------------------------------------------------

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    async def drain(self) -> None:
        """Wait for every pending sink send to finish."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    async def aclose(self, timeout: float = 10.0) -> None:
        """Give pending sends ``timeout`` seconds, cancel the rest, close sinks."""
        if self._inflight:
            _, pending = await asyncio.wait(list(self._inflight), timeout=timeout)
            for task in pending:
                task.cancel()
            if pending:
                logger.warning("cancelled %d pending alert sends", len(pending))
                await asyncio.gather(*pending, return_exceptions=True)
        for sink in self.sinks:
            try:
                await sink.close()
            except Exception:
                logger.exception("failed to close sink %s", sink.name)
