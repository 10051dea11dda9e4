import asyncio
import dataclasses
import logging
from enum import Enum
from typing import Dict, Iterable, List, Optional

import aiohttp

from github_exporter.application.fetcher import RepositoryFetcher
from github_exporter.application.metric_cache import MetricCache, target_sort_key
from github_exporter.domain.exceptions import AuthError, FetchError, RateLimited
from github_exporter.domain.models import Target
from github_exporter.infrastructure.clock import Clock, SYSTEM_CLOCK

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 300
DEFAULT_CONCURRENCY = 4
DEFAULT_MAX_BACKOFF = 3600
DEFAULT_SHUTDOWN_GRACE = 10
# Upper bound on how long the dispatch loop sleeps between checks
POLL_TICK = 1.0
# Limit concurrent connections to avoid overwhelming GitHub's servers
CONNECTOR_LIMIT = 10


class Phase(str, Enum):
    IDLE = "idle"
    FETCHING = "fetching"
    UPDATING = "updating"
    BACKING_OFF = "backing_off"


@dataclasses.dataclass
class TargetSchedule:
    target: Target
    phase: Phase = Phase.IDLE
    consecutive_failures: int = 0
    next_due: float = 0.0
    last_delay: float = 0.0
    task: Optional[asyncio.Task] = dataclasses.field(default=None, repr=False, compare=False)


class Scheduler:
    """
    Drives periodic refreshes of every target.

    Each target runs its own IDLE -> FETCHING -> (UPDATING | BACKING_OFF) -> IDLE
    cycle with at most one fetch in flight; a semaphore caps how many targets
    are FETCHING at once across the whole process. All timing goes through the
    injected clock.
    """

    def __init__(
        self,
        targets: Iterable[Target],
        fetcher: RepositoryFetcher,
        cache: MetricCache,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        concurrency: int = DEFAULT_CONCURRENCY,
        max_backoff: float = DEFAULT_MAX_BACKOFF,
        shutdown_grace: float = DEFAULT_SHUTDOWN_GRACE,
        clock: Clock = SYSTEM_CLOCK,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")

        self.fetcher = fetcher
        self.cache = cache
        self.poll_interval = poll_interval
        self.concurrency = concurrency
        self.max_backoff = max(max_backoff, poll_interval)
        self.shutdown_grace = shutdown_grace
        self.clock = clock

        self._schedules: Dict[Target, TargetSchedule] = {
            target: TargetSchedule(target=target) for target in sorted(targets, key=target_sort_key)
        }
        self._semaphore = asyncio.Semaphore(concurrency)
        self._fetching = 0
        self._stopping = False
        self._discard = False

    @property
    def fetching(self) -> int:
        """Number of targets currently in FETCHING."""
        return self._fetching

    def state_of(self, target: Target) -> TargetSchedule:
        """Copy of the target's scheduling state."""
        return dataclasses.replace(self._schedules[target])

    def backoff_delay(self, failures: int) -> float:
        """Delay before the next attempt after ``failures`` consecutive failures."""
        if failures <= 0:
            return self.poll_interval
        return min(self.poll_interval * (1 + failures), self.max_backoff)

    async def run(self, stop: asyncio.Event) -> None:
        """Dispatches due targets until ``stop`` is set, then drains in-flight fetches."""
        logger.info(
            f"Starting scheduler for {len(self._schedules)} target(s), "
            f"interval {self.poll_interval}s, concurrency {self.concurrency}."
        )

        async with aiohttp.ClientSession(
            connector=aiohttp.TCPConnector(limit=CONNECTOR_LIMIT),
        ) as session:
            while not stop.is_set():
                self.dispatch_due(session)
                await self._wait(stop, self._seconds_until_next_due())

            self._stopping = True
            await self._drain()

        logger.info("Scheduler stopped.")

    def dispatch_due(self, session: Optional[aiohttp.ClientSession]) -> List[asyncio.Task]:
        """Starts a fetch for every target whose next attempt is due and none is in flight."""
        if self._stopping:
            return []

        now = self.clock.monotonic()
        tasks = []
        for schedule in self._schedules.values():
            if schedule.task is not None or schedule.next_due > now:
                continue
            schedule.phase = Phase.IDLE
            schedule.task = asyncio.create_task(self._run_target(session, schedule))
            tasks.append(schedule.task)
        return tasks

    async def _run_target(self, session, schedule: TargetSchedule) -> None:
        try:
            async with self._semaphore:
                if self._stopping:
                    return

                schedule.phase = Phase.FETCHING
                self._fetching += 1
                try:
                    samples = await self.fetcher.fetch(session, schedule.target)
                except FetchError as e:
                    self._on_failure(schedule, e)
                    return
                except Exception as e:
                    logger.exception(f"Unexpected error fetching {schedule.target}: {e}")
                    self._on_failure(schedule, e)
                    return
                finally:
                    self._fetching -= 1

                self._on_success(schedule, samples)
        finally:
            schedule.task = None

    def _on_success(self, schedule: TargetSchedule, samples) -> None:
        if self._discard:
            return

        schedule.phase = Phase.UPDATING
        self.cache.update(schedule.target, samples)

        schedule.consecutive_failures = 0
        schedule.last_delay = self.poll_interval
        schedule.next_due = self.clock.monotonic() + self.poll_interval
        schedule.phase = Phase.IDLE

        logger.info(f"Fetched {len(samples)} sample(s) for {schedule.target}.")

    def _on_failure(self, schedule: TargetSchedule, error: Exception) -> None:
        if self._discard:
            return

        self.cache.update_failure(schedule.target, error)

        schedule.consecutive_failures += 1
        delay = self.backoff_delay(schedule.consecutive_failures)
        if isinstance(error, RateLimited) and error.reset_at is not None:
            delay = max(delay, error.reset_at - self.clock.time())

        schedule.last_delay = delay
        schedule.next_due = self.clock.monotonic() + delay
        schedule.phase = Phase.BACKING_OFF

        if isinstance(error, AuthError):
            logger.critical(f"Authentication failed for {schedule.target}: {error}. Check the GitHub token.")
        logger.warning(
            f"Fetch of {schedule.target} failed ({type(error).__name__}: {error}). "
            f"Backing off {delay:.0f}s after {schedule.consecutive_failures} consecutive failure(s)."
        )

    def _seconds_until_next_due(self) -> float:
        now = self.clock.monotonic()
        waiting = [s.next_due - now for s in self._schedules.values() if s.task is None]
        if not waiting:
            return POLL_TICK
        return min(max(min(waiting), 0.0), POLL_TICK)

    async def _wait(self, stop: asyncio.Event, seconds: float) -> None:
        sleeper = asyncio.ensure_future(self.clock.sleep(seconds))
        stopper = asyncio.ensure_future(stop.wait())
        try:
            await asyncio.wait({sleeper, stopper}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            sleeper.cancel()
            stopper.cancel()

    async def _drain(self) -> None:
        in_flight = [s.task for s in self._schedules.values() if s.task is not None]
        if not in_flight:
            return

        logger.info(f"Waiting up to {self.shutdown_grace}s for {len(in_flight)} in-flight fetch(es)...")
        _, pending = await asyncio.wait(in_flight, timeout=self.shutdown_grace)
        if pending:
            # Results of abandoned fetches must never reach the cache
            self._discard = True
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            logger.warning(f"Abandoned {len(pending)} fetch(es) after the shutdown grace period.")
