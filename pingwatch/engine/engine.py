"""Engine — builds and drives the full set of endpoint tasks plus the dispatcher.

Lifecycle:
    engine = Engine.build(config, settings)   # fails fast on any bad endpoint
    engine.start()                            # inside a running event loop
    ...
    engine.stop()
    await engine.await_shutdown()
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import TYPE_CHECKING

from pingwatch.alerts import AlertSink, build_sinks
from pingwatch.checks import CheckerError, build_checker
from pingwatch.config import Settings
from pingwatch.engine.dispatcher import Dispatcher
from pingwatch.engine.models import EndpointStatus, StatusEvent
from pingwatch.engine.retry import SleepFn
from pingwatch.engine.task import EndpointTask

if TYPE_CHECKING:
    from pingwatch.endpoints.registry import EngineConfig

logger = logging.getLogger(__name__)


class EngineBuildError(RuntimeError):
    """Raised when the engine cannot be constructed from its config."""


class EndpointNotFoundError(KeyError):
    """Raised when a snapshot is requested for an endpoint that does not exist."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(name)

    def __str__(self) -> str:
        return f"endpoint does not exist: {self.name}"


def configured_base_url(config: EngineConfig, settings: Settings) -> str:
    """Base URL for alert output links from the advertised address in config or settings.

    Returns "" when no host is configured anywhere; links are then relative.
    """
    host = config.alerter.advertised_host or settings.advertised_host
    if not host:
        return ""
    port = config.alerter.advertised_port or settings.advertised_port or settings.api_port
    scheme = "https" if settings.use_tls else "http"
    return f"{scheme}://{host}:{port}"


class Engine:
    """Owns every endpoint task, the shared event queue and the dispatcher."""

    def __init__(
        self,
        tasks: dict[str, EndpointTask],
        events: asyncio.Queue[StatusEvent | None],
        dispatcher: Dispatcher,
        executor: ThreadPoolExecutor | None = None,
    ) -> None:
        self.tasks = tasks
        self.events = events
        self.dispatcher = dispatcher
        self._executor = executor
        self._stop = asyncio.Event()
        self._loops: list[asyncio.Task[None]] = []
        self._dispatch_loop: asyncio.Task[None] | None = None
        self._running = False

    # -- construction -------------------------------------------------------------

    @classmethod
    def build(
        cls,
        config: EngineConfig,
        settings: Settings | None = None,
        sinks: Sequence[AlertSink] | None = None,
        base_url: str = "",
        sleep: SleepFn | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> Engine:
        """Construct checkers, schedules, tasks and dispatcher for ``config``.

        Any endpoint that fails to construct aborts the whole build.
        """
        settings = settings or Settings()
        events: asyncio.Queue[StatusEvent | None] = asyncio.Queue(maxsize=settings.event_queue_size)
        # at least one worker per endpoint
        workers = max(len(config.endpoints), settings.check_workers)
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="check")

        tasks: dict[str, EndpointTask] = {}
        try:
            for ep in config.endpoints:
                logger.debug("instantiating %s checker for [%s]", ep.type, ep.name)
                try:
                    checker = build_checker(ep.type, ep.check)
                except CheckerError as e:
                    raise EngineBuildError(f"endpoint '{ep.name}': failed to instantiate checker: {e}") from e
                tasks[ep.name] = EndpointTask(
                    name=ep.name,
                    checker=checker,
                    schedule=config.schedule_for(ep),
                    events=events,
                    executor=executor,
                    sleep=sleep,
                    clock=clock,
                    check_type=ep.type,
                )

            if sinks is None:
                sinks = build_sinks(config.alerter)
        except Exception:
            executor.shutdown(wait=False)
            raise

        if not base_url:
            base_url = configured_base_url(config, settings)
            if not base_url:
                logger.warning("no advertised host configured: alert output links will be relative")

        dispatcher = Dispatcher(
            events,
            sinks,
            reminder_delay=config.alerter.reminder_delay,
            base_url=base_url,
            clock=clock,
            max_inflight=settings.max_inflight_alerts,
            send_timeout=settings.alert_send_timeout,
        )
        logger.info("engine set up with %d endpoints and %d alert sinks", len(tasks), len(dispatcher.sinks))
        return cls(tasks, events, dispatcher, executor)

    # -- lifecycle ----------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        """Launch every endpoint loop and the dispatcher loop; does not block."""
        if self._running:
            return
        self._running = True
        self._dispatch_loop = asyncio.create_task(self.dispatcher.run(), name="dispatcher")
        for name, task in self.tasks.items():
            self._loops.append(asyncio.create_task(task.run(self._stop), name=f"endpoint-{name}"))
        logger.info("engine started: %d endpoint loops", len(self._loops))

    def stop(self) -> None:
        """Signal shutdown; endpoint loops exit at their next wake-up."""
        self._stop.set()

    async def await_shutdown(self) -> None:
        """Block until every endpoint loop has exited, then wind down dispatch."""
        if self._loops:
            await asyncio.gather(*self._loops, return_exceptions=True)
            self._loops.clear()
        if self._dispatch_loop is not None:
            # endpoints are done producing; let the dispatcher drain what is queued
            await self.events.put(None)
            await self._dispatch_loop
            self._dispatch_loop = None
        await self.dispatcher.aclose()
        if self._executor is not None:
            self._executor.shutdown(wait=False)
        self._running = False
        logger.info("engine stopped")

    async def shutdown(self) -> None:
        self.stop()
        await self.await_shutdown()

    # -- snapshot reads -------------------------------------------------------------

    def _task(self, name: str) -> EndpointTask:
        try:
            return self.tasks[name]
        except KeyError:
            raise EndpointNotFoundError(name) from None

    def get_status(self, name: str) -> EndpointStatus:
        return self._task(name).status

    def get_latest_output(self, name: str) -> bytes | None:
        """Latest check output, or None if none has been recorded yet."""
        return self._task(name).latest_output

    def list_endpoint_names(self) -> list[str]:
        return list(self.tasks)
