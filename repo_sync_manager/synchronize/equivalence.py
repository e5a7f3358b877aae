"""Best-effort search for a target commit representing the same change as a source commit.

Histories mirrored through rebases, squashes or cherry-picks end up with different SHAs for the same
change. The matcher looks through the target's recent commits with four strategies, most confident
first, and returns the first hit. A match is a hint for placing releases and tags, never a claim that
two commits are identical.
"""

import re
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum

import structlog

from repo_sync_manager.endpoints.abc import RepositoryEndpointBase
from repo_sync_manager.schemas.entities import CommitInfo
from repo_sync_manager.schemas.sync_config import EquivalenceSettings
from repo_sync_manager.utils.constants import COMMIT_MESSAGE_STOPWORDS, SEMANTIC_COMMIT_PATTERNS
from repo_sync_manager.utils.helpers import ensure_aware

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

_PUNCTUATION_PATTERN = re.compile(r"[^\w\s]")
_MAX_KEYWORDS = 10


class MatchStrategy(str, Enum):
    """Strategy that produced an equivalence match."""

    EXACT = "exact"
    FUZZY = "fuzzy"
    TREE = "tree"
    SEMANTIC = "semantic"


@dataclass(frozen=True)
class EquivalenceMatch:
    """A target commit considered equivalent to a source commit."""

    sha: str
    strategy: MatchStrategy
    score: float


def calculate_message_similarity(first: str, second: str) -> float:
    """Score two commit messages between 0.0 and 1.0.

    The score weighs word-set Jaccard similarity at 0.7 and length similarity at 0.3.
    """
    if first == second:
        return 1.0
    if not first or not second:
        return 0.0

    first_words = set(first.lower().split())
    second_words = set(second.lower().split())
    union = first_words | second_words
    jaccard = len(first_words & second_words) / len(union) if union else 0.0
    length_ratio = 1 - abs(len(first) - len(second)) / max(len(first), len(second))
    return 0.7 * jaccard + 0.3 * length_ratio


def extract_keywords(message: str) -> list[str]:
    """Return up to ten meaningful lowercase words of a commit message."""
    words = _PUNCTUATION_PATTERN.sub(" ", message.lower()).split()
    return [word for word in words if len(word) > 2 and word not in COMMIT_MESSAGE_STOPWORDS][:_MAX_KEYWORDS]


def have_similar_semantic_patterns(source_message: str, target_message: str) -> bool:
    """Return True if both messages describe the same kind of change."""
    source_lower = source_message.lower()
    target_lower = target_message.lower()
    for pattern in SEMANTIC_COMMIT_PATTERNS:
        if pattern.search(source_lower) and pattern.search(target_lower):
            return True

    source_keywords = extract_keywords(source_message)
    common = set(source_keywords) & set(extract_keywords(target_message))
    return len(common) >= 2 or (len(common) >= 1 and len(source_keywords) <= 3)


class CommitEquivalenceMatcher:
    """Find a commit on the target equivalent to a commit missing from it."""

    def __init__(self, settings: EquivalenceSettings | None = None) -> None:
        """Initialize the matcher with tunable thresholds."""
        self.settings = settings or EquivalenceSettings()

    async def find_equivalent(self, source_commit: CommitInfo, target: RepositoryEndpointBase, branch: str = "main") -> str | None:
        """Return the SHA of an equivalent commit on the target branch, or None.

        Args:
            source_commit: Commit that is missing from the target
            target: Endpoint to search
            branch: Target branch whose recent history is searched

        Returns:
            SHA of the first match, or None if no strategy matched or the history could not be read.
        """
        try:
            target_commits = await target.get_recent_commits(branch, self.settings.recent_commit_limit)
        except Exception as exc:
            logger.warning("Could not read target history for equivalence search", branch=branch, sha=source_commit.sha, error=str(exc))
            return None

        match = self.match(source_commit, target_commits)
        if match is None:
            logger.info("No equivalent commit found", sha=source_commit.sha, branch=branch, searched=len(target_commits))
            return None
        logger.info(
            "Found equivalent commit",
            sha=source_commit.sha,
            equivalent_sha=match.sha,
            strategy=match.strategy.value,
            score=round(match.score, 3),
        )
        return match.sha

    def match(self, source_commit: CommitInfo, target_commits: list[CommitInfo]) -> EquivalenceMatch | None:
        """Run the strategies in order of confidence against already fetched commits."""
        if not target_commits:
            return None
        return (
            self._find_exact_match(source_commit, target_commits)
            or self._find_similar_match(source_commit, target_commits)
            or self._find_tree_match(source_commit, target_commits)
            or self._find_semantic_match(source_commit, target_commits)
        )

    def _find_exact_match(self, source_commit: CommitInfo, target_commits: list[CommitInfo]) -> EquivalenceMatch | None:
        message = source_commit.message.strip()
        for commit in target_commits:
            if commit.message.strip() == message and commit.author == source_commit.author:
                return EquivalenceMatch(commit.sha, MatchStrategy.EXACT, 1.0)
        return None

    def _find_similar_match(self, source_commit: CommitInfo, target_commits: list[CommitInfo]) -> EquivalenceMatch | None:
        author = source_commit.author.lower()
        message = source_commit.message.lower().strip()
        best: EquivalenceMatch | None = None
        for commit in target_commits:
            if commit.author.lower() != author:
                continue
            score = calculate_message_similarity(message, commit.message.lower().strip())
            if score > self.settings.fuzzy_threshold and (best is None or score > best.score):
                best = EquivalenceMatch(commit.sha, MatchStrategy.FUZZY, score)
        return best

    def _find_tree_match(self, source_commit: CommitInfo, target_commits: list[CommitInfo]) -> EquivalenceMatch | None:
        # Message and date proximity stand in for comparing trees.
        window = timedelta(days=self.settings.tree_window_days)
        candidates = [commit for commit in target_commits if commit.author == source_commit.author]
        for commit in candidates[: self.settings.tree_candidate_limit]:
            score = calculate_message_similarity(source_commit.message, commit.message)
            if score > self.settings.tree_similarity_threshold and _date_distance(source_commit, commit) < window:
                return EquivalenceMatch(commit.sha, MatchStrategy.TREE, score)
        return None

    def _find_semantic_match(self, source_commit: CommitInfo, target_commits: list[CommitInfo]) -> EquivalenceMatch | None:
        window = timedelta(days=self.settings.semantic_window_days)
        candidates = [commit for commit in target_commits if have_similar_semantic_patterns(source_commit.message, commit.message)]
        for commit in candidates[: self.settings.semantic_candidate_limit]:
            if _date_distance(source_commit, commit) >= window:
                continue
            score = calculate_message_similarity(source_commit.message, commit.message)
            same_author = commit.author == source_commit.author
            if score > self.settings.semantic_similarity_threshold or (score > self.settings.semantic_author_similarity_threshold and same_author):
                return EquivalenceMatch(commit.sha, MatchStrategy.SEMANTIC, score)
        return None


def _date_distance(first: CommitInfo, second: CommitInfo) -> timedelta:
    return abs(ensure_aware(first.date) - ensure_aware(second.date))
