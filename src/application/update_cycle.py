import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Dict, List, Optional

from src.application.review_gate import ReviewGate
from src.domain.models import EventRecord, RepositoryIdentity
from src.infrastructure.github_client import GitHubRestClient
from src.infrastructure.memory_store import RepoInfoStore, commit_key

logger = logging.getLogger(__name__)

# Per-cycle fan-out bounds
MAX_STAT_FETCHES = 5
MAX_REVIEWS = 2


def collect_push_commits(events: List[EventRecord]) -> Dict[str, Optional[str]]:
    """
    Returns `sha -> message` for every commit carried by the push events,
    in event order, keeping the first occurrence of a repeated sha.
    """
    commits: Dict[str, Optional[str]] = {}
    for event in events:
        for stub in event.commit_stubs():
            if stub.sha not in commits or commits[stub.sha] is None:
                commits[stub.sha] = stub.message
    return commits


class UpdateCycle:
    """
    Refreshes a single repository: metadata and events, then commit statistics
    and reviews for a bounded number of newly seen commits.

    Every sub-fetch settles independently; one failing never skips the others.
    """

    def __init__(
            self,
            store: RepoInfoStore,
            github_client: GitHubRestClient,
            review_gate: Optional[ReviewGate] = None,
    ):
        self.store = store
        self.github_client = github_client
        self.review_gate = review_gate

    async def update_repository(self, repo: RepositoryIdentity) -> None:
        t0 = time.monotonic()
        logger.info(f"[Update] Updating {repo.name} ({repo.id})...")
        try:
            info_res, events_res = await asyncio.gather(
                self.github_client.get_repo_info(repo.id),
                self.github_client.get_repo_events(repo.id),
                return_exceptions=True,
            )

            if isinstance(info_res, BaseException):
                logger.error(f"[Update] Info failed for {repo.name}: {info_res!r}")
            else:
                self.store.set_info(repo.id, info_res.model_copy(update={"display_name": repo.name}))

            if isinstance(events_res, BaseException):
                logger.error(f"[Update] Events failed for {repo.name}: {events_res!r}")
            else:
                self.store.set_events(repo.id, events_res)
                await self._enrich_commits(repo, events_res)

            rl = self.github_client.rate_limit
            reset_time = datetime.fromtimestamp(rl.reset, tz=timezone.utc).strftime("%H:%M:%S")
            logger.info(
                f"[Update] Finished {repo.name} in {(time.monotonic() - t0) * 1000:.0f}ms. "
                f"RL: {rl.remaining}/{rl.limit} (reset {reset_time} UTC)"
            )
        except Exception as e:
            logger.exception(f"[Update] Unhandled error for {repo.name}: {e}")

    async def _enrich_commits(self, repo: RepositoryIdentity, events: List[EventRecord]) -> None:
        messages = collect_push_commits(events)
        to_fetch = [
            sha for sha in messages
            if commit_key(repo.id, sha) not in self.store.commit_stats
        ][:MAX_STAT_FETCHES]

        results = await asyncio.gather(
            *(self.github_client.get_commit_stats(repo.id, sha) for sha in to_fetch),
            return_exceptions=True,
        )
        for sha, result in zip(to_fetch, results):
            if isinstance(result, BaseException):
                logger.warning(f"[Update] Commit stat failed ({repo.id}@{sha}): {result!r}")
            else:
                self.store.add_commit_stats(repo.id, result)

        if self.review_gate is None:
            return
        reviewable = to_fetch[:MAX_REVIEWS]
        reviews = await asyncio.gather(
            *(self.review_gate.review_commit(repo.id, sha, messages.get(sha)) for sha in reviewable),
            return_exceptions=True,
        )
        for sha, result in zip(reviewable, reviews):
            if isinstance(result, BaseException):
                logger.warning(f"[Update] Review failed ({repo.id}@{sha}): {result!r}")
