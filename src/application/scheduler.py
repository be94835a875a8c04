import asyncio
import logging
import time
from collections import deque
from enum import Enum
from typing import Callable, Deque, List, Optional

from src.application.update_cycle import UpdateCycle
from src.config import AppConfig
from src.domain.models import RepositoryIdentity
from src.infrastructure.memory_store import RepoInfoStore

logger = logging.getLogger(__name__)


class SchedulerState(str, Enum):
    IDLE = "idle"
    INITIAL_LOADING = "initial_loading"
    RUNNING = "running"


def order_by_recency(repos: List[RepositoryIdentity], store: RepoInfoStore) -> List[RepositoryIdentity]:
    """
    Sorts repositories by descending last activity. Repositories without a known
    activity timestamp keep their configured slot; the others are reordered
    among the remaining slots, ties keeping configured order.
    """
    known = [i for i, repo in enumerate(repos) if _pushed_at(repo, store) is not None]
    ranked = sorted((repos[i] for i in known), key=lambda repo: _pushed_at(repo, store), reverse=True)
    ordered = list(repos)
    for slot, repo in zip(known, ranked):
        ordered[slot] = repo
    return ordered


def _pushed_at(repo: RepositoryIdentity, store: RepoInfoStore):
    info = store.get_info(repo.id)
    return info.pushed_at if info else None


def next_deadline(deadline: float, interval: float, now: float) -> float:
    """
    Next fixed-rate firing strictly after `now`. Firings missed while a tick
    overran are dropped, not queued.
    """
    deadline += interval
    if deadline <= now:
        deadline += ((now - deadline) // interval + 1) * interval
    return deadline


class UpdateScheduler:
    """
    Drives periodic repository updates.

    After an initial concurrent load of every repository, a fixed-period timer
    processes one repository per tick, taken from a queue ordered by recent
    activity. The global feed is rebuilt after every cycle.
    """

    def __init__(
            self,
            config: AppConfig,
            store: RepoInfoStore,
            update_cycle: UpdateCycle,
            rebuild_feed: Callable[[AppConfig, RepoInfoStore], object],
    ):
        self.config = config
        self.store = store
        self.update_cycle = update_cycle
        self.rebuild_feed = rebuild_feed
        self.state = SchedulerState.IDLE
        self.queue: Deque[RepositoryIdentity] = deque()
        self._timer: Optional[asyncio.Task] = None
        self._tick_lock = asyncio.Lock()

    async def initial_load(self) -> None:
        self.state = SchedulerState.INITIAL_LOADING
        logger.info(f"[Scheduler] Initial load for {len(self.config.repos)} repos...")
        t0 = time.monotonic()

        results = await asyncio.gather(
            *(self.update_cycle.update_repository(repo) for repo in self.config.repos),
            return_exceptions=True,
        )
        for repo, result in zip(self.config.repos, results):
            if isinstance(result, Exception):
                logger.error(f"[Scheduler] Initial load failed for {repo.name}: {result!r}")

        try:
            self.rebuild_feed(self.config, self.store)
        except Exception as e:
            logger.exception(f"[Scheduler] Feed rebuild after initial load failed: {e}")
        logger.info(f"[Scheduler] Initial load in {(time.monotonic() - t0) * 1000:.0f}ms.")
        self.start()

    def build_queue(self) -> None:
        self.queue = deque(order_by_recency(self.config.repos, self.store))
        top = ", ".join(repo.name for repo in list(self.queue)[:3])
        logger.info(f"[Scheduler] Queue rebuilt. Top: {top}...")

    def start(self) -> None:
        """Builds the queue and arms the periodic timer, replacing any previous one."""
        if self._timer is not None:
            self._timer.cancel()
        self.build_queue()
        self.state = SchedulerState.RUNNING
        logger.info(
            f"[Scheduler] Periodic updates every {self.config.repo_update_interval_seconds}s per repo."
        )
        self._timer = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()
            try:
                await timer
            except asyncio.CancelledError:
                pass
        self.state = SchedulerState.IDLE

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        interval = self.config.repo_update_interval_seconds
        deadline = loop.time() + interval
        while True:
            await asyncio.sleep(max(deadline - loop.time(), 0))
            try:
                await self.tick()
            except Exception as e:
                logger.exception(f"[Scheduler] Tick failed: {e}")
            deadline = next_deadline(deadline, interval, loop.time())

    async def tick(self) -> Optional[RepositoryIdentity]:
        """
        Processes exactly one repository and then rebuilds the feed.
        Ticks never overlap.

        Returns:
            Optional[RepositoryIdentity]: The repository processed, if any.
        """
        async with self._tick_lock:
            if not self.queue:
                self.build_queue()
            if not self.queue:
                return None
            repo = self.queue.popleft()
            await self.update_cycle.update_repository(repo)
            self.rebuild_feed(self.config, self.store)
            return repo
