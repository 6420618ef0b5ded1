"""
AuthorFeed Fleet Scheduler
==========================

Periodic coordination of source refreshes.

A fleet pass loads every curated source and dispatches one asyncio task per
source. Failures are captured per task, so one source raising never affects
the others. A source whose previous refresh is still in flight is skipped for
the pass.

``RecurringTask`` owns the timer: it fires once on start and then on every
wall-clock multiple of its interval (``*/15`` in cron terms) until stopped.
"""

import asyncio
import inspect
import time
from typing import Any, Awaitable, Callable, Optional, Set, Union

from ..config.settings import AuthorFeedSettings, get_settings
from ..database.connection import get_db_manager
from ..database.models import CuratedSource, FleetPassResult, RefreshResult
from ..database.schema import DatabaseSchema
from ..ingestion.feed_fetcher import FeedFetcher
from ..processing.aggregator import AuthorAggregator
from ..processing.cache_writer import RetentionCacheWriter
from ..storage.post_repository import PostRepository
from ..storage.source_repository import SourceRepository
from ..utils.exceptions import handle_exception
from ..utils.logging import PerformanceLogger, get_logger_for_component

Callback = Callable[[], Union[Awaitable[Any], Any]]


class FleetScheduler:
    """Dispatches one refresh per curated source per pass."""

    def __init__(
        self,
        aggregator: AuthorAggregator,
        source_repository: SourceRepository,
        settings: Optional[AuthorFeedSettings] = None,
    ):
        self.aggregator = aggregator
        self.sources = source_repository
        self.settings = settings or get_settings()
        self.skip_if_running = self.settings.scheduler.skip_if_running
        self.logger = get_logger_for_component("scheduler")

        self._in_flight: Set[int] = set()
        self._tasks: Set[asyncio.Task] = set()

    @property
    def in_flight(self) -> Set[int]:
        """IDs of sources whose refresh has not finished yet."""
        return set(self._in_flight)

    async def run_fleet_pass(self, wait: bool = False) -> FleetPassResult:
        """Dispatch a refresh for every curated source.

        Args:
            wait: Gather the dispatched refreshes before returning. By default
                the pass returns as soon as every task is scheduled.

        Returns:
            FleetPassResult; ``results`` is only populated when ``wait`` is set
        """
        result = FleetPassResult()

        try:
            sources = await asyncio.to_thread(self.sources.list_all_sources)
        except Exception as e:
            error = handle_exception(e, self.logger, "fleet pass")
            result.error = str(error)
            self.logger.error("Fleet pass aborted, will retry at the next interval")
            return result

        result.sources_total = len(sources)
        dispatched = []

        for source in sources:
            if self.skip_if_running and source.id in self._in_flight:
                result.sources_skipped += 1
                self.logger.warning(
                    f"Skipping '{source.name}': previous refresh still running",
                    extra={"source_id": source.id},
                )
                continue

            self._in_flight.add(source.id)
            task = asyncio.create_task(
                self._refresh_one(source), name=f"refresh-source-{source.id}"
            )
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            dispatched.append(task)

        result.sources_dispatched = len(dispatched)
        self.logger.info(
            f"Fleet pass dispatched {result.sources_dispatched}/{result.sources_total} sources "
            f"({result.sources_skipped} skipped)"
        )

        if wait and dispatched:
            outcomes = await asyncio.gather(*dispatched, return_exceptions=True)
            for outcome in outcomes:
                if isinstance(outcome, RefreshResult):
                    result.results.append(outcome)
                else:
                    # _refresh_one only lets cancellation escape
                    self.logger.warning(f"Refresh task ended abnormally: {outcome!r}")

        return result

    async def _refresh_one(self, source: CuratedSource) -> RefreshResult:
        """Run one source refresh with its failure captured."""
        try:
            return await self.aggregator.refresh(source)
        except Exception as e:
            error = handle_exception(
                e, self.logger, "source refresh",
                context={"source_id": source.id, "source_name": source.name},
            )
            return RefreshResult(source_id=source.id, source_name=source.name, error=str(error))
        finally:
            self._in_flight.discard(source.id)

    async def wait_for_pending(self) -> None:
        """Wait for every dispatched refresh to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


class RecurringTask:
    """Runs a callback immediately and then on every interval boundary."""

    def __init__(
        self,
        interval_seconds: float,
        callback: Callback,
        run_immediately: bool = True,
        align_to_clock: bool = True,
        name: str = "recurring-task",
    ):
        """Initialize recurring task.

        Args:
            interval_seconds: Seconds between runs
            callback: Sync or async callable run on every tick
            run_immediately: Run once as soon as the task starts
            align_to_clock: Fire on wall-clock multiples of the interval
                instead of ``interval_seconds`` after the previous run
            name: Name used in logs and for the asyncio task
        """
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")

        self.interval = interval_seconds
        self.callback = callback
        self.run_immediately = run_immediately
        self.align_to_clock = align_to_clock
        self.name = name
        self.logger = get_logger_for_component("scheduler")

        self.runs = 0
        self.failures = 0
        self._stop_event: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def seconds_until_next_run(self, now: Optional[float] = None) -> float:
        """Delay before the next tick."""
        if not self.align_to_clock:
            return self.interval
        now = time.time() if now is None else now
        next_boundary = (now // self.interval + 1) * self.interval
        return max(next_boundary - now, 0.0)

    async def _tick(self) -> None:
        self.runs += 1
        try:
            outcome = self.callback()
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            self.failures += 1
            self.logger.error(f"{self.name} run #{self.runs} failed: {e}", exc_info=True)

    async def run_forever(self) -> None:
        """Run until :meth:`stop` is called."""
        self._stop_event = self._stop_event or asyncio.Event()
        self.logger.info(f"Starting {self.name} (every {self.interval:.0f}s)")

        if self.run_immediately:
            await self._tick()

        while not self._stop_event.is_set():
            delay = self.seconds_until_next_run()
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
            except asyncio.TimeoutError:
                await self._tick()

        self.logger.info(f"Stopped {self.name} after {self.runs} runs ({self.failures} failed)")

    def start(self) -> asyncio.Task:
        """Schedule :meth:`run_forever` on the running loop."""
        if self.running:
            return self._task
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self.run_forever(), name=self.name)
        return self._task

    async def stop(self) -> None:
        """Stop the schedule and wait for an in-progress tick to finish."""
        if self._stop_event is not None:
            self._stop_event.set()
        if self._task is not None:
            await self._task
            self._task = None


def build_fleet_scheduler(settings: Optional[AuthorFeedSettings] = None) -> FleetScheduler:
    """Wire a FleetScheduler against the configured database."""
    settings = settings or get_settings()

    DatabaseSchema(settings.database.path).create_tables()
    db = get_db_manager(settings.database.path, settings.database.pool_size)

    source_repository = SourceRepository(db)
    aggregator = AuthorAggregator(
        fetcher=FeedFetcher(settings),
        cache_writer=RetentionCacheWriter(PostRepository(db), settings),
        source_repository=source_repository,
        settings=settings,
    )
    return FleetScheduler(aggregator, source_repository, settings)


async def run_service(settings: Optional[AuthorFeedSettings] = None) -> None:
    """Run fleet passes on the configured schedule until cancelled."""
    settings = settings or get_settings()
    scheduler = build_fleet_scheduler(settings)
    logger = get_logger_for_component("scheduler")

    async def fleet_pass() -> None:
        with PerformanceLogger(logger, "fleet pass dispatch"):
            await scheduler.run_fleet_pass()

    task = RecurringTask(
        settings.scheduler_interval_seconds,
        fleet_pass,
        run_immediately=settings.scheduler.run_on_startup,
        align_to_clock=settings.scheduler.align_to_clock,
        name="fleet-pass",
    )

    task.start()
    try:
        await asyncio.Event().wait()
    finally:
        await task.stop()
        await scheduler.wait_for_pending()
