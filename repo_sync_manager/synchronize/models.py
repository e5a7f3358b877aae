"""Internal data models produced while reconciling two repositories."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, TypeVar

from repo_sync_manager.schemas.entities import Release

T = TypeVar("T")


class SyncDecision(Enum):
    """Enum for sync decisions."""

    CREATE = "create"
    UPDATE = "update"
    SKIP = "skip"
    CLOSE = "close"


class ReleaseStrategy(str, Enum):
    """How a release is anchored on the target."""

    NORMAL = "normal"
    POINT_TO_LATEST = "point-to-latest"
    SKIP_DIVERGED = "skip-diverged"


@dataclass
class Comparison(Generic[T]):
    """Action computed for one source item against its target counterpart."""

    key: str
    source_item: T
    target_item: T | None
    action: SyncDecision
    reason: str = ""


@dataclass
class TimelineDivergence:
    """Ancestry relationship between the source and target heads of one branch."""

    has_common_history: bool
    merge_base: str | None = None
    source_unique_commits: list[str] = field(default_factory=list)
    target_unique_commits: list[str] = field(default_factory=list)

    @property
    def target_has_diverged(self) -> bool:
        """True when the target holds commits the source does not, or when histories are unrelated."""
        return not self.has_common_history or bool(self.target_unique_commits)


@dataclass
class ReleaseAnalysis:
    """Placement decision for one source release."""

    release: Release
    action: SyncDecision
    reason: str
    commit_exists: bool | None
    is_latest: bool
    strategy: ReleaseStrategy
    anchor_sha: str | None = None
    target_release: Release | None = None
