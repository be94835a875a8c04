import os
import unittest
from unittest.mock import patch

from src.config import load_config, parse_repos
from src.domain.exceptions import ConfigurationException


class TestParseRepos(unittest.TestCase):
    def test_display_names(self) -> None:
        repos = parse_repos("octocat/hello-world=Hello World, torvalds/linux ,")

        self.assertEqual([(r.id, r.name) for r in repos], [
            ("octocat/hello-world", "Hello World"),
            ("torvalds/linux", "linux"),
        ])

    def test_invalid_entry_raises(self) -> None:
        with self.assertRaises(ConfigurationException):
            parse_repos("not-a-repo")


class TestLoadConfig(unittest.TestCase):
    def test_reads_environment(self) -> None:
        env = {
            "REPOS": "o/a,o/b",
            "REPO_UPDATE_INTERVAL_SECONDS": "30",
            "AI_REVIEW_ENABLED": "true",
            "AI_REVIEW_API_URL": "https://llm.example",
            "AI_REVIEW_API_KEY": "key",
            "AI_REVIEW_MODEL": "model",
            "AI_REVIEW_MAX_FILES": "4",
        }
        with patch.dict(os.environ, env, clear=True):
            config = load_config()

        self.assertEqual(len(config.repos), 2)
        self.assertEqual(config.repo_update_interval_seconds, 30)
        self.assertEqual(config.ai_review_max_files, 4)
        self.assertEqual(config.feed_limit, 100)
        self.assertTrue(config.ai_review_active)

    def test_review_inactive_without_key(self) -> None:
        env = {"REPOS": "o/a", "AI_REVIEW_ENABLED": "1", "AI_REVIEW_API_URL": "u", "AI_REVIEW_MODEL": "m"}
        with patch.dict(os.environ, env, clear=True):
            self.assertFalse(load_config().ai_review_active)

    def test_missing_repos_raises(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            with self.assertRaises(ConfigurationException):
                load_config()

    def test_invalid_number_raises(self) -> None:
        with patch.dict(os.environ, {"REPOS": "o/a", "FEED_LIMIT": "lots"}, clear=True):
            with self.assertRaises(ConfigurationException):
                load_config()
