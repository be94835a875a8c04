import aiohttp
import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from src.domain.exceptions import FeedException, GitHubApiException, RateLimitExceededException
from src.domain.models import CommitStats, EventRecord, RateLimitInfo, RepositoryInfo
from src.infrastructure.acl import GitHubTranslator

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"
JSON_ACCEPT = "application/vnd.github+json"
DIFF_ACCEPT = "application/vnd.github.diff"
EVENTS_PER_PAGE = 30
REQUEST_TIMEOUT = aiohttp.ClientTimeout(total=60, connect=10)


class GitHubRestClient:
    """
    Client for the GitHub REST API.
    Handles authentication, ETag conditional requests and rate limit bookkeeping.
    """

    def __init__(self, session: aiohttp.ClientSession, token: Optional[str] = None, api_url: str = GITHUB_API_URL):
        self.session = session
        self.headers = {
            "Accept": JSON_ACCEPT,
            "User-Agent": "repo-activity-feed",
            "X-GitHub-Api-Version": "2022-11-28",
        }
        if token:
            self.headers["Authorization"] = f"Bearer {token}"
        self.api_url = api_url.rstrip("/")
        self.rate_limit = RateLimitInfo()
        # (url, accept) -> (etag, body)
        self._etag_cache: Dict[Tuple[str, str], Tuple[str, Any]] = {}

    def _record_rate_limit(self, headers) -> None:
        try:
            self.rate_limit = RateLimitInfo(
                limit=int(headers["X-RateLimit-Limit"]),
                remaining=int(headers["X-RateLimit-Remaining"]),
                reset=int(headers["X-RateLimit-Reset"]),
            )
        except (KeyError, TypeError, ValueError):
            pass

    def rate_limit_reset_at(self) -> str:
        return datetime.fromtimestamp(self.rate_limit.reset, tz=timezone.utc).isoformat()

    async def _get(self, path: str, accept: str = JSON_ACCEPT, conditional: bool = True) -> Any:
        """
        Performs a GET and returns the decoded body.
        JSON is decoded for the default media type; anything else is returned as text.
        With `conditional`, the ETag and body are cached and a 304 answer returns
        the cached body. Immutable resources pass `conditional=False` and are not cached.
        """
        url = f"{self.api_url}{path}"
        key = (url, accept)
        headers = {**self.headers, "Accept": accept}
        cached = self._etag_cache.get(key) if conditional else None
        if cached:
            headers["If-None-Match"] = cached[0]

        async with self.session.get(url, headers=headers, timeout=REQUEST_TIMEOUT) as response:
            self._record_rate_limit(response.headers)

            if response.status == 304 and cached:
                return cached[1]

            if response.status in {403, 429} and response.headers.get("X-RateLimit-Remaining") == "0":
                raise RateLimitExceededException(reset_at=self.rate_limit_reset_at())

            if response.status >= 400:
                raise GitHubApiException(status=response.status, url=url)

            body = await response.json() if accept == JSON_ACCEPT else await response.text()

            etag = response.headers.get("ETag")
            if etag and conditional:
                self._etag_cache[key] = (etag, body)
            return body

    async def get_repo_info(self, repo_id: str) -> RepositoryInfo:
        raw = await self._get(f"/repos/{repo_id}")
        return GitHubTranslator.to_repository_info(raw)

    async def get_repo_events(self, repo_id: str) -> List[EventRecord]:
        """Most recent activity window of a repository; may legitimately be empty."""
        raw = await self._get(f"/repos/{repo_id}/events?per_page={EVENTS_PER_PAGE}")
        return GitHubTranslator.to_events(raw)

    async def get_commit_stats(self, repo_id: str, sha: str) -> CommitStats:
        raw = await self._get(f"/repos/{repo_id}/commits/{sha}", conditional=False)
        return GitHubTranslator.to_commit_stats(raw)

    async def get_commit_diff(self, repo_id: str, sha: str) -> Optional[str]:
        """
        Fetches the unified diff of a commit.

        Returns:
            Optional[str]: The diff text, or None if it could not be fetched.
        """
        try:
            diff = await self._get(f"/repos/{repo_id}/commits/{sha}", accept=DIFF_ACCEPT, conditional=False)
        except (FeedException, aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"Diff unavailable for {repo_id}@{sha}: {e}")
            return None
        return diff or None
