"""Models for configuration between CLI arguments, environment variables and the sync config file."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from repo_sync_manager.schemas.sync_config import SyncConfigFile


class PlatformType(str, Enum):
    """Enum for the supported hosting platforms."""

    GITHUB = "github"
    GITLAB = "gitlab"

    @property
    def display_name(self) -> str:
        """Human-readable platform name used in synced content."""
        return "GitHub" if self is PlatformType.GITHUB else "GitLab"


class DivergentCommitStrategy(str, Enum):
    """How to place a release or tag whose commit is unreachable on the target."""

    SKIP = "skip"
    CREATE_ANYWAY = "create-anyway"
    POINT_TO_LATEST = "point-to-latest"


class CommentFormat(str, Enum):
    """Rendering styles for mirrored comments."""

    QUOTED = "quoted"
    INLINE = "inline"
    MINIMAL = "minimal"


class ConflictPolicy(str, Enum):
    """What to do when the target already holds a different version of an item."""

    SOURCE_WINS = "source-wins"
    SKIP = "skip"


class BotBranchStrategy(str, Enum):
    """Whether branches matching the bot branch patterns are synced."""

    SYNC = "sync"
    SKIP = "skip"


@dataclass
class SyncRunConfig:
    """Fully reconciled configuration for one sync run."""

    config: "SyncConfigFile"
    github_token: str | None
    gitlab_token: str | None
    github_api_url: str
    gitlab_url: str
    dry_run: bool = False
    config_path: Path | None = None
