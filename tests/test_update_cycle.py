import unittest
from datetime import datetime, timezone

from src.application.review_gate import ReviewGate
from src.application.update_cycle import MAX_REVIEWS, MAX_STAT_FETCHES, UpdateCycle, collect_push_commits
from src.config import AppConfig
from src.domain.exceptions import GitHubApiException
from src.domain.models import CommitStats, EventRecord, RateLimitInfo, RepositoryIdentity, RepositoryInfo
from src.infrastructure.memory_store import RepoInfoStore

REPO = RepositoryIdentity(id="octocat/hello-world", name="Hello World")


def _push(event_id, *shas):
    return EventRecord(
        id=event_id,
        type="PushEvent",
        created_at=datetime(2024, 1, 2, tzinfo=timezone.utc),
        payload={"commits": [{"sha": sha, "message": f"msg {sha}"} for sha in shas]},
    )


class _FakeGitHubClient:
    def __init__(self, info=None, events=None, info_error=None, events_error=None, failing_shas=()) -> None:
        self.info = info or RepositoryInfo(
            repo=REPO.id, stargazers_count=7, pushed_at=datetime(2024, 1, 2, tzinfo=timezone.utc),
        )
        self.events = events if events is not None else []
        self.info_error = info_error
        self.events_error = events_error
        self.failing_shas = set(failing_shas)
        self.stat_calls = []
        self.rate_limit = RateLimitInfo(limit=5000, remaining=4990, reset=1700000000)

    async def get_repo_info(self, repo_id):
        if self.info_error:
            raise self.info_error
        return self.info

    async def get_repo_events(self, repo_id):
        if self.events_error:
            raise self.events_error
        return self.events

    async def get_commit_stats(self, repo_id, sha):
        self.stat_calls.append(sha)
        if sha in self.failing_shas:
            raise GitHubApiException(status=500, url=f"/repos/{repo_id}/commits/{sha}")
        return CommitStats(sha=sha, additions=len(self.stat_calls), deletions=1, files_changed=1)

    async def get_commit_diff(self, repo_id, sha):
        return f"diff --git a/{sha}.py b/{sha}.py\n+pass\n"


class _FakeLLMClient:
    def __init__(self) -> None:
        self.calls = 0

    async def complete(self, messages, temperature=0.2):
        self.calls += 1
        return '{"grade": "good", "score": 3, "summary": "ok", "risks": [], "suggestions": []}'


class _FakeReviewGate:
    def __init__(self, error_for=()) -> None:
        self.calls = []
        self.error_for = set(error_for)

    async def review_commit(self, repo_id, sha, message_hint=None):
        self.calls.append((repo_id, sha, message_hint))
        if sha in self.error_for:
            raise RuntimeError("boom")
        return None


class TestCollectPushCommits(unittest.TestCase):
    def test_collects_messages_in_order_without_duplicates(self) -> None:
        events = [_push("2", "c", "b"), EventRecord(id="x", type="WatchEvent"), _push("1", "b", "a")]

        commits = collect_push_commits(events)

        self.assertEqual(list(commits), ["c", "b", "a"])
        self.assertEqual(commits["a"], "msg a")

    def test_non_string_message_is_dropped(self) -> None:
        event = EventRecord(id="1", type="PushEvent", payload={"commits": [{"sha": "a", "message": {"text": "x"}}]})

        self.assertEqual(collect_push_commits([event]), {"a": None})


class TestUpdateCycle(unittest.IsolatedAsyncioTestCase):
    async def test_info_is_tagged_with_display_name(self) -> None:
        store = RepoInfoStore()
        github = _FakeGitHubClient()

        await UpdateCycle(store, github).update_repository(REPO)

        self.assertEqual(store.get_info(REPO.id), github.info.model_copy(update={"display_name": "Hello World"}))

    async def test_info_failure_keeps_previous_entry_and_events_still_update(self) -> None:
        store = RepoInfoStore()
        previous = RepositoryInfo(repo=REPO.id, display_name="Hello World", stargazers_count=1)
        store.set_info(REPO.id, previous)
        github = _FakeGitHubClient(events=[_push("1", "a")], info_error=GitHubApiException(502, "/repos"))

        await UpdateCycle(store, github).update_repository(REPO)

        self.assertIs(store.get_info(REPO.id), previous)
        self.assertEqual(len(store.get_events(REPO.id)), 1)
        self.assertEqual(github.stat_calls, ["a"])

    async def test_empty_events_keep_previous_events(self) -> None:
        store = RepoInfoStore()
        previous = [_push("1", "a")]
        store.set_events(REPO.id, previous)

        await UpdateCycle(store, _FakeGitHubClient(events=[])).update_repository(REPO)

        self.assertEqual(store.get_events(REPO.id), previous)

    async def test_events_failure_skips_commit_enrichment(self) -> None:
        store = RepoInfoStore()
        github = _FakeGitHubClient(events_error=GitHubApiException(500, "/events"))
        gate = _FakeReviewGate()

        await UpdateCycle(store, github, gate).update_repository(REPO)

        self.assertIsNone(store.get_events(REPO.id))
        self.assertIsNotNone(store.get_info(REPO.id))
        self.assertEqual(github.stat_calls, [])
        self.assertEqual(gate.calls, [])

    async def test_stat_fetches_and_reviews_are_bounded(self) -> None:
        store = RepoInfoStore()
        store.add_commit_stats(REPO.id, CommitStats(sha="s0", additions=1, deletions=1, files_changed=1))
        shas = [f"s{i}" for i in range(8)]
        github = _FakeGitHubClient(events=[_push("1", *shas)])
        gate = _FakeReviewGate()

        await UpdateCycle(store, github, gate).update_repository(REPO)

        self.assertEqual(github.stat_calls, shas[1:1 + MAX_STAT_FETCHES])
        self.assertEqual(
            gate.calls,
            [(REPO.id, sha, f"msg {sha}") for sha in shas[1:1 + MAX_REVIEWS]],
        )

    async def test_failed_stat_fetch_is_isolated_and_retried_next_cycle(self) -> None:
        store = RepoInfoStore()
        github = _FakeGitHubClient(events=[_push("1", "a", "b")], failing_shas={"a"})
        gate = _FakeReviewGate(error_for={"a"})

        await UpdateCycle(store, github, gate).update_repository(REPO)

        self.assertIsNone(store.get_commit_stats(REPO.id, "a"))
        self.assertIsNotNone(store.get_commit_stats(REPO.id, "b"))
        self.assertEqual(len(gate.calls), 2)

        github.failing_shas.clear()
        await UpdateCycle(store, github, gate).update_repository(REPO)

        self.assertEqual(github.stat_calls, ["a", "b", "a"])
        self.assertIsNotNone(store.get_commit_stats(REPO.id, "a"))

    async def test_stored_commit_stats_survive_second_cycle(self) -> None:
        store = RepoInfoStore()
        github = _FakeGitHubClient(events=[_push("1", "a")])
        cycle = UpdateCycle(store, github)

        await cycle.update_repository(REPO)
        first = store.get_commit_stats(REPO.id, "a").model_dump_json()
        await cycle.update_repository(REPO)

        self.assertEqual(store.get_commit_stats(REPO.id, "a").model_dump_json(), first)
        self.assertEqual(github.stat_calls, ["a"])

    async def test_unexpected_error_is_contained(self) -> None:
        store = RepoInfoStore()
        github = _FakeGitHubClient(events=[_push("1", "a")])
        github.rate_limit = None

        with self.assertLogs("src.application.update_cycle", level="ERROR"):
            await UpdateCycle(store, github).update_repository(REPO)

        self.assertIsNotNone(store.get_commit_stats(REPO.id, "a"))

    async def test_stored_review_survives_second_cycle(self) -> None:
        store = RepoInfoStore()
        github = _FakeGitHubClient(events=[_push("1", "a")])
        llm = _FakeLLMClient()
        config = AppConfig(
            repos=[REPO],
            ai_review_enabled=True,
            ai_review_api_url="https://llm.example",
            ai_review_api_key="key",
            ai_review_model="review-model",
        )
        cycle = UpdateCycle(store, github, ReviewGate(config, store, github, llm))

        await cycle.update_repository(REPO)
        first = store.get_review(REPO.id, "a").model_dump_json()
        await cycle.update_repository(REPO)

        self.assertEqual(store.get_review(REPO.id, "a").model_dump_json(), first)
        self.assertEqual(llm.calls, 1)
