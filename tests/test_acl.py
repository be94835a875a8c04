import unittest
from datetime import datetime, timezone

from src.infrastructure.acl import GitHubTranslator


class TestGitHubTranslator(unittest.TestCase):
    def test_to_repository_info_parses_counters_and_pushed_at(self) -> None:
        raw = {
            "full_name": "octocat/hello-world",
            "html_url": "https://github.com/octocat/hello-world",
            "description": None,
            "stargazers_count": 123,
            "forks_count": 4,
            "open_issues_count": 2,
            "pushed_at": "2024-01-02T03:04:05Z",
            "default_branch": "master",
        }

        info = GitHubTranslator.to_repository_info(raw)

        self.assertEqual(info.repo, "octocat/hello-world")
        self.assertEqual(info.stargazers_count, 123)
        self.assertEqual(info.default_branch, "master")
        self.assertEqual(info.pushed_at, datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc))
        self.assertEqual(info.display_name, "")

    def test_missing_full_name_raises(self) -> None:
        with self.assertRaises(ValueError):
            GitHubTranslator.to_repository_info({"stargazers_count": 1})

    def test_to_events_keeps_order_and_push_commits(self) -> None:
        raw_events = [
            {
                "id": "2",
                "type": "PushEvent",
                "actor": {"login": "octocat"},
                "created_at": "2024-01-02T03:04:05Z",
                "payload": {"commits": [{"sha": "abc", "message": "fix"}, {"message": "no sha"}]},
            },
            {"id": "1", "type": "WatchEvent", "payload": {}},
            {"id": "0"},
        ]

        events = GitHubTranslator.to_events(raw_events)

        self.assertEqual([e.id for e in events], ["2", "1"])
        self.assertEqual(events[0].actor, "octocat")
        stubs = events[0].commit_stubs()
        self.assertEqual([(s.sha, s.message) for s in stubs], [("abc", "fix")])
        self.assertEqual(events[1].commit_stubs(), [])

    def test_to_commit_stats_counts_files(self) -> None:
        raw = {
            "sha": "abc",
            "stats": {"additions": 10, "deletions": 5, "total": 15},
            "files": [{"filename": "a.py"}, {"filename": "b.py"}, {"filename": "c.py"}],
        }

        stats = GitHubTranslator.to_commit_stats(raw)

        self.assertEqual((stats.additions, stats.deletions, stats.files_changed), (10, 5, 3))
