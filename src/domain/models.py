from datetime import datetime
from typing import Any, Dict, List, Literal, Optional
from pydantic import BaseModel, Field, ConfigDict


class RepositoryIdentity(BaseModel):
    """
    A tracked repository as configured: the `owner/name` id plus a human label.
    Defines queue membership for the scheduler.
    """
    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Repository full name, e.g. 'octocat/hello-world'")
    name: str = Field(..., description="Display name used in the feed")


class RepositoryInfo(BaseModel):
    """
    Latest known metadata snapshot for a repository.
    Overwritten wholesale on every successful fetch, never merged.
    """
    model_config = ConfigDict(frozen=True)

    repo: str = Field(..., description="Repository full name")
    display_name: str = Field("", description="Configured display name")
    html_url: str = ""
    description: Optional[str] = None
    stargazers_count: int = Field(0, ge=0)
    forks_count: int = Field(0, ge=0)
    open_issues_count: int = Field(0, ge=0)
    pushed_at: Optional[datetime] = Field(None, description="Last observed activity timestamp")
    default_branch: str = "main"


class CommitStub(BaseModel):
    """Commit reference embedded in a push event payload."""
    model_config = ConfigDict(frozen=True)

    sha: str
    message: Optional[str] = None


class EventRecord(BaseModel):
    """A single activity event; `payload` is type-specific and kept as raw JSON."""
    model_config = ConfigDict(frozen=True)

    id: str
    type: str
    actor: Optional[str] = None
    created_at: Optional[datetime] = None
    payload: Dict[str, Any] = Field(default_factory=dict)

    def commit_stubs(self) -> List[CommitStub]:
        """Commit stubs carried by a push event; empty for every other type."""
        if self.type != "PushEvent":
            return []
        stubs = []
        for raw in self.payload.get("commits") or []:
            sha = raw.get("sha") if isinstance(raw, dict) else None
            if sha:
                message = raw.get("message")
                if not isinstance(message, str) or not message:
                    message = None
                stubs.append(CommitStub(sha=str(sha), message=message))
        return stubs


class CommitStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    sha: str
    additions: int = Field(0, ge=0)
    deletions: int = Field(0, ge=0)
    files_changed: int = Field(0, ge=0)


class CommitReview(BaseModel):
    """
    Normalized result of one automated review of a commit diff.
    Cached write-once under `repo@sha`.
    """
    model_config = ConfigDict(frozen=True)

    repo: str
    sha: str
    grade: Literal["good", "mixed", "bad"]
    score: Literal[1, 2, 3] = Field(..., description="3 = good, 2 = mixed, 1 = questionable")
    summary: str = Field("", max_length=280)
    risks: List[str] = Field(default_factory=list, max_length=8)
    suggestions: List[str] = Field(default_factory=list, max_length=8)
    created_at: datetime
    model: str


class RateLimitInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    limit: int = 0
    remaining: int = 0
    reset: int = Field(0, description="Epoch seconds at which the window resets")


class FeedItem(BaseModel):
    """One rendered entry of the global activity feed."""
    model_config = ConfigDict(frozen=True)

    type: str
    icon: str
    when: datetime
    repo: str
    title: str
    url: str
    actor: Optional[str] = None
    extra: Optional[str] = None
    sha: Optional[str] = None
    stats: Optional[CommitStats] = None
    review: Optional[CommitReview] = None
    display_name: Optional[str] = None
