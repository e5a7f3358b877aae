"""Pydantic schema for the sync configuration file."""

from pydantic import BaseModel, ConfigDict, Field, model_validator

from repo_sync_manager.configuration.models import BotBranchStrategy, CommentFormat, ConflictPolicy, DivergentCommitStrategy
from repo_sync_manager.utils.constants import DEFAULT_BOT_BRANCH_PATTERNS


class StrictModel(BaseModel):
    """Base model that rejects unknown keys so typos in the config file surface early."""

    model_config = ConfigDict(extra="forbid")


class BotBranchConfig(StrictModel):
    """Pydantic model for bot branch handling."""

    strategy: BotBranchStrategy = BotBranchStrategy.SKIP
    patterns: list[str] = Field(default_factory=lambda: list(DEFAULT_BOT_BRANCH_PATTERNS))


class BranchSyncConfig(StrictModel):
    """Pydantic model for branch sync settings."""

    enabled: bool = True
    protected: bool = True
    pattern: str = "*"
    conflict_policy: ConflictPolicy = ConflictPolicy.SOURCE_WINS
    bot_branches: BotBranchConfig = Field(default_factory=BotBranchConfig)


class CommentSyncConfig(StrictModel):
    """Pydantic model for comment mirroring settings."""

    enabled: bool = False
    format: CommentFormat = CommentFormat.QUOTED
    include_author: bool = True
    include_timestamp: bool = True
    include_source_link: bool = True
    handle_updates: bool = True
    preserve_formatting: bool = True


class PullRequestSyncConfig(StrictModel):
    """Pydantic model for pull request sync settings."""

    enabled: bool = False
    conflict_policy: ConflictPolicy = ConflictPolicy.SOURCE_WINS


class IssueSyncConfig(StrictModel):
    """Pydantic model for issue sync settings."""

    enabled: bool = False
    conflict_policy: ConflictPolicy = ConflictPolicy.SOURCE_WINS
    comments: CommentSyncConfig = Field(default_factory=CommentSyncConfig)


class ReleaseSyncConfig(StrictModel):
    """Pydantic model for release sync settings."""

    enabled: bool = True
    divergent_commit_strategy: DivergentCommitStrategy = DivergentCommitStrategy.SKIP
    latest_release_strategy: DivergentCommitStrategy | None = None
    skip_pre_releases: bool = False
    pattern: str = "*"
    include_assets: bool = True

    def strategy_for(self, is_latest: bool) -> DivergentCommitStrategy:
        """Return the placement policy for a release, honoring the override for the newest one."""
        if is_latest and self.latest_release_strategy is not None:
            return self.latest_release_strategy
        return self.divergent_commit_strategy


class TagSyncConfig(StrictModel):
    """Pydantic model for tag sync settings."""

    enabled: bool = True
    pattern: str = "*"
    divergent_commit_strategy: DivergentCommitStrategy = DivergentCommitStrategy.SKIP
    conflict_policy: ConflictPolicy = ConflictPolicy.SOURCE_WINS


class SyncConfig(StrictModel):
    """Pydantic model for the entity sync settings of one source platform."""

    branches: BranchSyncConfig = Field(default_factory=BranchSyncConfig)
    pull_requests: PullRequestSyncConfig = Field(default_factory=PullRequestSyncConfig)
    issues: IssueSyncConfig = Field(default_factory=IssueSyncConfig)
    releases: ReleaseSyncConfig = Field(default_factory=ReleaseSyncConfig)
    tags: TagSyncConfig = Field(default_factory=TagSyncConfig)


class EquivalenceSettings(StrictModel):
    """Pydantic model for the commit equivalence thresholds."""

    recent_commit_limit: int = Field(default=100, ge=1)
    fuzzy_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    tree_similarity_threshold: float = Field(default=0.9, ge=0.0, le=1.0)
    tree_window_days: int = Field(default=7, ge=0)
    tree_candidate_limit: int = Field(default=20, ge=1)
    semantic_similarity_threshold: float = Field(default=0.85, ge=0.0, le=1.0)
    semantic_author_similarity_threshold: float = Field(default=0.7, ge=0.0, le=1.0)
    semantic_window_days: int = Field(default=30, ge=0)
    semantic_candidate_limit: int = Field(default=10, ge=1)


class GitHubConfig(StrictModel):
    """Pydantic model for the GitHub side of the pair."""

    enabled: bool = True
    owner: str = ""
    repo: str = ""
    token: str | None = None
    api_url: str | None = None
    sync: SyncConfig = Field(default_factory=SyncConfig)


class GitLabConfig(StrictModel):
    """Pydantic model for the GitLab side of the pair."""

    enabled: bool = True
    host: str = "gitlab.com"
    project_id: int | None = None
    owner: str = ""
    repo: str = ""
    token: str | None = None
    sync: SyncConfig = Field(default_factory=SyncConfig)

    @property
    def project_path(self) -> str | int:
        """Identifier passed to python-gitlab: the numeric ID when set, else 'owner/repo'."""
        if self.project_id is not None:
            return self.project_id
        return f"{self.owner}/{self.repo}"


class SyncConfigFile(StrictModel):
    """Pydantic model for the whole sync configuration file."""

    github: GitHubConfig = Field(default_factory=GitHubConfig)
    gitlab: GitLabConfig = Field(default_factory=GitLabConfig)
    equivalence: EquivalenceSettings = Field(default_factory=EquivalenceSettings)

    @model_validator(mode="after")
    def check_repositories(self) -> "SyncConfigFile":
        """Ensure every enabled platform names its repository."""
        if self.github.enabled and not (self.github.owner and self.github.repo):
            raise ValueError("github.owner and github.repo are required when GitHub is enabled")
        if self.gitlab.enabled and self.gitlab.project_id is None and not (self.gitlab.owner and self.gitlab.repo):
            raise ValueError("gitlab.project_id or gitlab.owner and gitlab.repo are required when GitLab is enabled")
        return self
