from datetime import datetime
from typing import Any, Dict, List, Optional

from src.domain.models import CommitStats, EventRecord, RepositoryInfo


def _parse_timestamp(raw: Optional[str]) -> Optional[datetime]:
    if not raw:
        return None
    return datetime.fromisoformat(raw.replace("Z", "+00:00"))


class GitHubTranslator:
    """
    Anti-corruption layer that translates raw GitHub REST JSON responses into domain models.
    """

    @staticmethod
    def to_repository_info(raw: Dict[str, Any]) -> RepositoryInfo:
        """
        Transforms a `GET /repos/{owner}/{repo}` response into a RepositoryInfo.

        Args:
            raw (Dict[str, Any]): The raw JSON object returned by GitHub.

        Returns:
            RepositoryInfo: The metadata snapshot. `display_name` is left empty;
            the caller tags it with the configured name.
        """
        full_name = raw.get('full_name')
        if not full_name:
            raise ValueError("full_name is required to build RepositoryInfo.")

        return RepositoryInfo(
            repo=full_name,
            html_url=raw.get('html_url') or '',
            description=raw.get('description'),
            stargazers_count=raw.get('stargazers_count') or 0,
            forks_count=raw.get('forks_count') or 0,
            open_issues_count=raw.get('open_issues_count') or 0,
            pushed_at=_parse_timestamp(raw.get('pushed_at')),
            default_branch=raw.get('default_branch') or 'main',
        )

    @staticmethod
    def to_events(raw_events: List[Dict[str, Any]]) -> List[EventRecord]:
        """Transforms a `GET /repos/{owner}/{repo}/events` page, keeping GitHub's order."""
        events = []
        for raw in raw_events or []:
            if not raw or not raw.get('type'):
                continue
            events.append(EventRecord(
                id=str(raw.get('id', '')),
                type=raw['type'],
                actor=(raw.get('actor') or {}).get('login'),
                created_at=_parse_timestamp(raw.get('created_at')),
                payload=raw.get('payload') or {},
            ))
        return events

    @staticmethod
    def to_commit_stats(raw: Dict[str, Any]) -> CommitStats:
        """Transforms a `GET /repos/{owner}/{repo}/commits/{sha}` response into CommitStats."""
        sha = raw.get('sha')
        if not sha:
            raise ValueError("sha is required to build CommitStats.")

        stats = raw.get('stats') or {}
        return CommitStats(
            sha=sha,
            additions=stats.get('additions', 0),
            deletions=stats.get('deletions', 0),
            files_changed=len(raw.get('files') or []),
        )
