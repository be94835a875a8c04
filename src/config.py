import os
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from src.domain.exceptions import ConfigurationException
from src.domain.models import RepositoryIdentity


class AppConfig(BaseModel):
    """
    Runtime configuration, read from the environment by `load_config`.
    """
    model_config = ConfigDict(frozen=True)

    repos: List[RepositoryIdentity] = Field(..., min_length=1)
    github_token: Optional[str] = None
    global_refresh_seconds: int = Field(300, gt=0, description="Refresh hint for the feed display layer; unused by the scheduler")
    repo_update_interval_seconds: int = Field(60, gt=0)
    feed_limit: int = Field(100, gt=0)

    ai_review_enabled: bool = False
    ai_review_api_url: Optional[str] = None
    ai_review_api_key: Optional[str] = None
    ai_review_model: Optional[str] = None
    ai_review_max_files: int = Field(10, ge=0)
    ai_review_max_changes: int = Field(300, ge=0)
    ai_review_diff_max_chars: int = Field(12_000, gt=0)
    ai_review_timeout_ms: int = Field(20_000, gt=0)

    @property
    def ai_review_active(self) -> bool:
        return bool(
            self.ai_review_enabled
            and self.ai_review_api_url
            and self.ai_review_api_key
            and self.ai_review_model
        )


def parse_repos(raw: str) -> List[RepositoryIdentity]:
    """
    Parses `owner/name[=Display Name]` entries separated by commas.
    Without an explicit display name the repository name is used.
    """
    repos = []
    for entry in raw.split(","):
        entry = entry.strip()
        if not entry:
            continue
        repo_id, _, display = entry.partition("=")
        repo_id = repo_id.strip()
        if repo_id.count("/") != 1 or repo_id.startswith("/") or repo_id.endswith("/"):
            raise ConfigurationException(f"Invalid repository '{repo_id}', expected 'owner/name'.")
        repos.append(RepositoryIdentity(id=repo_id, name=display.strip() or repo_id.split("/")[1]))
    return repos


def _env_bool(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in {"1", "true", "yes", "on"}


def load_config() -> AppConfig:
    """
    Builds the AppConfig from environment variables. Call `load_dotenv()` first
    to pick up a local .env file.

    Raises:
        ConfigurationException: If a value is missing or invalid.
    """
    repos = parse_repos(os.getenv("REPOS", ""))
    if not repos:
        raise ConfigurationException("REPOS is not set in the environment.")

    values = {
        "repos": repos,
        "github_token": os.getenv("GITHUB_TOKEN") or None,
        "ai_review_enabled": _env_bool(os.getenv("AI_REVIEW_ENABLED")),
        "ai_review_api_url": os.getenv("AI_REVIEW_API_URL") or None,
        "ai_review_api_key": os.getenv("AI_REVIEW_API_KEY") or None,
        "ai_review_model": os.getenv("AI_REVIEW_MODEL") or None,
    }
    numeric = {
        "global_refresh_seconds": "GLOBAL_REFRESH_SECONDS",
        "repo_update_interval_seconds": "REPO_UPDATE_INTERVAL_SECONDS",
        "feed_limit": "FEED_LIMIT",
        "ai_review_max_files": "AI_REVIEW_MAX_FILES",
        "ai_review_max_changes": "AI_REVIEW_MAX_CHANGES",
        "ai_review_diff_max_chars": "AI_REVIEW_DIFF_MAX_CHARS",
        "ai_review_timeout_ms": "AI_REVIEW_TIMEOUT_MS",
    }
    for field, env_name in numeric.items():
        raw = os.getenv(env_name)
        if raw:
            values[field] = raw

    try:
        return AppConfig(**values)
    except ValidationError as e:
        raise ConfigurationException(f"Invalid configuration: {e}") from e
