import json
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from src.config import AppConfig
from src.domain.exceptions import ReviewEndpointException
from src.domain.models import CommitReview
from src.infrastructure.github_client import GitHubRestClient
from src.infrastructure.llm_client import ChatCompletionClient
from src.infrastructure.memory_store import RepoInfoStore

logger = logging.getLogger(__name__)

SUMMARY_MAX_CHARS = 280
MAX_LIST_ENTRIES = 8
GRADES = ("good", "mixed", "bad")
GRADE_BY_SCORE = {3: "good", 2: "mixed", 1: "bad"}

GOOD_WORDS = ("good", "pass", "green", "🟢")
MIXED_WORDS = ("mix", "yellow", "🟡")
GOOD_LETTER = "a"
MIXED_LETTER = "b"

_TRAILING_OBJECT = re.compile(r"\{[\s\S]*\}$", re.MULTILINE)
_ANY_OBJECT = re.compile(r"\{[\s\S]*\}")

SYSTEM_PROMPT = """You are a strict code review bot. Review the change described by the commit message and unified diff the user provides. Point out risks, readability and complexity problems, testability problems, security and performance concerns, and give brief suggestions for improvement. The output must be JSON:
{
  "grade": "good|mixed|bad",
  "score": 1|2|3,
  "summary": "one sentence overall verdict",
  "risks": ["..."],
  "suggestions": ["..."]
}
score is three-tier: 3 = good, 2 = acceptable, 1 = questionable.
Output strict JSON only, without any additional explanation."""


def extract_json_object(text: Any) -> Optional[Dict[str, Any]]:
    """
    Locates a JSON object inside free-form model output and parses it.

    A candidate anchored at the end of a line is preferred, falling back to the
    widest brace-delimited span anywhere; without any braces the whole text is
    tried. Returns None for non-text input or when no candidate parses to
    a JSON object.
    """
    if not isinstance(text, str) or not text:
        return None
    match = _TRAILING_OBJECT.search(text) or _ANY_OBJECT.search(text)
    candidate = match.group(0) if match else text
    try:
        parsed = json.loads(candidate)
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None


def to_score3(grade: Any) -> int:
    """Maps a numeric or textual grade onto the 3-tier score (3 good, 2 mixed, 1 otherwise)."""
    if isinstance(grade, bool):
        grade = str(grade)
    if isinstance(grade, str):
        try:
            grade = float(grade.strip())
        except ValueError:
            pass
    if isinstance(grade, (int, float)):
        if grade >= 3:
            return 3
        if grade >= 2:
            return 2
        return 1

    text = str(grade).lower()
    tokens = re.findall(r"[a-z]+", text)
    if any(word in text for word in GOOD_WORDS) or GOOD_LETTER in tokens:
        return 3
    if any(word in text for word in MIXED_WORDS) or MIXED_LETTER in tokens:
        return 2
    return 1


def _clip_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(entry) for entry in value[:MAX_LIST_ENTRIES]]


def _normalize_grade(raw: Any, score: int) -> str:
    grade = str(raw if raw is not None else "mixed").strip().lower()
    if grade in GRADES:
        return grade
    return GRADE_BY_SCORE[score]


class ReviewGate:
    """
    Decides whether a commit is small enough for an automated review and, if so,
    requests one from the chat-completion endpoint. Results are cached per commit
    and never recomputed.
    """

    def __init__(
            self,
            config: AppConfig,
            store: RepoInfoStore,
            github_client: GitHubRestClient,
            llm_client: Optional[ChatCompletionClient] = None,
    ):
        self.config = config
        self.store = store
        self.github_client = github_client
        self.llm_client = llm_client

    @property
    def enabled(self) -> bool:
        return self.config.ai_review_active and self.llm_client is not None

    def within_heuristics(self, repo_id: str, sha: str) -> bool:
        stats = self.store.get_commit_stats(repo_id, sha)
        if stats is None:
            return False
        if stats.files_changed > self.config.ai_review_max_files:
            return False
        if stats.additions + stats.deletions > self.config.ai_review_max_changes:
            return False
        return True

    def build_messages(self, repo_id: str, sha: str, diff: str, message_hint: Optional[str] = None) -> List[Dict[str, str]]:
        header = f"Commit: {repo_id}@{sha}\nMessage: {message_hint or ''}\n\n"
        budget = max(self.config.ai_review_diff_max_chars - len(header), 0)
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": header + diff[:budget]},
        ]

    async def review_commit(self, repo_id: str, sha: str, message_hint: Optional[str] = None) -> Optional[CommitReview]:
        """
        Reviews one commit.

        Returns:
            Optional[CommitReview]: The cached or freshly computed review, or None if
            the feature is disabled, the commit is ineligible, or the endpoint gave
            no usable answer. Nothing is cached for a None result.
        """
        if not self.enabled:
            return None
        if not self.within_heuristics(repo_id, sha):
            return None

        cached = self.store.get_review(repo_id, sha)
        if cached is not None:
            return cached

        diff = await self.github_client.get_commit_diff(repo_id, sha)
        if not diff:
            return None

        messages = self.build_messages(repo_id, sha, diff, message_hint)
        try:
            content = await self.llm_client.complete(messages)
        except ReviewEndpointException as e:
            logger.warning(f"[Review] {repo_id}@{sha}: {e}")
            return None

        parsed = extract_json_object(content)
        if parsed is None:
            logger.warning(f"[Review] No JSON object in response for {repo_id}@{sha}.")
            return None

        score = to_score3(parsed.get("score") if parsed.get("score") is not None else parsed.get("grade"))
        summary = parsed.get("summary")
        review = CommitReview(
            repo=repo_id,
            sha=sha,
            grade=_normalize_grade(parsed.get("grade"), score),
            score=score,
            summary=("" if summary is None else str(summary))[:SUMMARY_MAX_CHARS],
            risks=_clip_list(parsed.get("risks")),
            suggestions=_clip_list(parsed.get("suggestions")),
            created_at=datetime.now(timezone.utc),
            model=self.config.ai_review_model,
        )
        logger.info(f"[Review] {repo_id}@{sha[:7]} graded {review.grade} ({review.score}/3).")
        return self.store.add_review(review)
