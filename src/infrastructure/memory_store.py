from typing import Dict, Generic, Iterator, List, Optional, Tuple, TypeVar

from src.domain.models import (
    CommitReview,
    CommitStats,
    EventRecord,
    FeedItem,
    RepositoryInfo,
)

V = TypeVar("V")


def commit_key(repo_id: str, sha: str) -> str:
    return f"{repo_id}@{sha}"


class WriteOnceCache(Generic[V]):
    """
    Keyed map whose only write primitive is insert-if-absent.
    Entries are never replaced once present.
    """

    def __init__(self) -> None:
        self._items: Dict[str, V] = {}

    def get(self, key: str) -> Optional[V]:
        return self._items.get(key)

    def insert_if_absent(self, key: str, value: V) -> V:
        """
        Stores `value` under `key` unless an entry already exists.

        Returns:
            V: The value held under `key` after the call.
        """
        return self._items.setdefault(key, value)

    def items(self) -> List[Tuple[str, V]]:
        return list(self._items.items())

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._items))


class RepoInfoStore:
    """
    In-memory store of everything the scheduler has learned about the tracked
    repositories. No cross-store transactions: readers may observe the info and
    events of one repository from different cycles.
    """

    def __init__(self) -> None:
        self._infos: Dict[str, RepositoryInfo] = {}
        self._events: Dict[str, List[EventRecord]] = {}
        self.commit_stats: WriteOnceCache[CommitStats] = WriteOnceCache()
        self.commit_reviews: WriteOnceCache[CommitReview] = WriteOnceCache()
        self._feed_items: List[FeedItem] = []

    def get_info(self, repo_id: str) -> Optional[RepositoryInfo]:
        return self._infos.get(repo_id)

    def set_info(self, repo_id: str, info: RepositoryInfo) -> None:
        self._infos[repo_id] = info

    def get_events(self, repo_id: str) -> Optional[List[EventRecord]]:
        return self._events.get(repo_id)

    def set_events(self, repo_id: str, events: List[EventRecord]) -> bool:
        """
        Replaces the events of a repository, unless `events` is empty and an
        entry already exists (stale-but-present). A first empty fetch is stored.

        Returns:
            bool: True if the stored value changed.
        """
        if not events and repo_id in self._events:
            return False
        self._events[repo_id] = list(events)
        return True

    def get_commit_stats(self, repo_id: str, sha: str) -> Optional[CommitStats]:
        return self.commit_stats.get(commit_key(repo_id, sha))

    def add_commit_stats(self, repo_id: str, stats: CommitStats) -> CommitStats:
        return self.commit_stats.insert_if_absent(commit_key(repo_id, stats.sha), stats)

    def get_review(self, repo_id: str, sha: str) -> Optional[CommitReview]:
        return self.commit_reviews.get(commit_key(repo_id, sha))

    def add_review(self, review: CommitReview) -> CommitReview:
        return self.commit_reviews.insert_if_absent(commit_key(review.repo, review.sha), review)

    @property
    def feed_items(self) -> List[FeedItem]:
        return self._feed_items

    def replace_feed(self, items: List[FeedItem]) -> None:
        # Rebinding keeps a reader's previously obtained list intact.
        self._feed_items = list(items)
