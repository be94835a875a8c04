import logging
from datetime import datetime, timezone
from typing import List, Optional

from src.config import AppConfig
from src.domain.models import EventRecord, FeedItem, RepositoryIdentity
from src.infrastructure.memory_store import RepoInfoStore

logger = logging.getLogger(__name__)

GITHUB_WEB_URL = "https://github.com"
_EPOCH = datetime.fromtimestamp(0, tz=timezone.utc)

EVENT_ICONS = {
    "PushEvent": "📝",
    "CreateEvent": "🌱",
    "ReleaseEvent": "🚀",
    "IssuesEvent": "🐛",
    "PullRequestEvent": "🔀",
    "ForkEvent": "🍴",
    "WatchEvent": "⭐",
}


def _first_line(text: Optional[str]) -> str:
    lines = (text or "").strip().splitlines()
    return lines[0] if lines else ""


def _commit_items(repo: RepositoryIdentity, event: EventRecord, store: RepoInfoStore) -> List[FeedItem]:
    items = []
    for stub in event.commit_stubs():
        items.append(FeedItem(
            type="commit",
            icon=EVENT_ICONS["PushEvent"],
            when=event.created_at or _EPOCH,
            repo=repo.id,
            actor=event.actor,
            title=_first_line(stub.message) or stub.sha[:7],
            url=f"{GITHUB_WEB_URL}/{repo.id}/commit/{stub.sha}",
            extra=event.payload.get("ref"),
            sha=stub.sha,
            stats=store.get_commit_stats(repo.id, stub.sha),
            review=store.get_review(repo.id, stub.sha),
        ))
    return items


def _event_item(repo: RepositoryIdentity, event: EventRecord) -> Optional[FeedItem]:
    payload = event.payload
    repo_url = f"{GITHUB_WEB_URL}/{repo.id}"

    if event.type == "CreateEvent":
        ref_type = payload.get("ref_type") or "ref"
        title, url = f"Created {ref_type} {payload.get('ref') or ''}".strip(), repo_url
    elif event.type == "ReleaseEvent":
        release = payload.get("release") or {}
        title = f"Released {release.get('name') or release.get('tag_name') or ''}".strip()
        url = release.get("html_url") or repo_url
    elif event.type == "IssuesEvent":
        issue = payload.get("issue") or {}
        title = f"Issue {payload.get('action', '')}: {issue.get('title', '')}"
        url = issue.get("html_url") or repo_url
    elif event.type == "PullRequestEvent":
        pr = payload.get("pull_request") or {}
        title = f"PR {payload.get('action', '')}: {pr.get('title', '')}"
        url = pr.get("html_url") or repo_url
    elif event.type == "ForkEvent":
        forkee = payload.get("forkee") or {}
        title, url = f"Forked to {forkee.get('full_name', '')}", forkee.get("html_url") or repo_url
    elif event.type == "WatchEvent":
        title, url = "Starred", repo_url
    else:
        return None

    return FeedItem(
        type=event.type,
        icon=EVENT_ICONS[event.type],
        when=event.created_at or _EPOCH,
        repo=repo.id,
        actor=event.actor,
        title=title,
        url=url,
    )


def rebuild_global_feed(config: AppConfig, store: RepoInfoStore) -> List[FeedItem]:
    """
    Rebuilds the global feed from the current store contents: newest first,
    capped at `config.feed_limit`, each item tagged with its repository's
    display name. The previous feed is replaced wholesale.
    """
    items: List[FeedItem] = []
    for repo in config.repos:
        info = store.get_info(repo.id)
        display_name = info.display_name if info and info.display_name else repo.name
        for event in store.get_events(repo.id) or []:
            if event.type == "PushEvent":
                produced = _commit_items(repo, event, store)
            else:
                item = _event_item(repo, event)
                produced = [item] if item else []
            items.extend(item.model_copy(update={"display_name": display_name}) for item in produced)

    items.sort(key=lambda item: item.when, reverse=True)
    feed = items[:config.feed_limit]
    store.replace_feed(feed)
    logger.debug(f"[Feed] Rebuilt with {len(feed)} items.")
    return feed
