"""Pydantic models for the platform-neutral entities compared and synced between repositories."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class RepoInfo(BaseModel):
    """Pydantic model for repository coordinates used in provenance links."""

    url: str
    owner: str
    repo: str


class Branch(BaseModel):
    """Pydantic model for a branch head."""

    name: str
    sha: str
    protected: bool = False
    last_commit_date: datetime | None = None


class CommitInfo(BaseModel):
    """Pydantic model for a commit as seen from one endpoint."""

    sha: str
    message: str
    author: str
    date: datetime
    exists: bool = True


class Comment(BaseModel):
    """Pydantic model for an issue comment (GitHub) or note (GitLab)."""

    id: int | None = None
    body: str
    author: str = "unknown"
    created_at: datetime | None = None
    updated_at: datetime | None = None
    source_url: str | None = None


class Issue(BaseModel):
    """Pydantic model for an issue."""

    title: str
    body: str = ""
    labels: list[str] = Field(default_factory=list)
    number: int | None = None
    state: Literal["open", "closed"] = "open"


class PullRequest(BaseModel):
    """Pydantic model for a pull request (GitHub) or merge request (GitLab)."""

    title: str
    description: str = ""
    source_branch: str
    target_branch: str
    labels: list[str] = Field(default_factory=list)
    number: int | None = None
    state: Literal["open", "closed", "merged"] = "open"


class ReleaseAsset(BaseModel):
    """Pydantic model for a file attached to a release."""

    id: str | None = None
    name: str
    url: str
    size: int = 0
    content_type: str = "application/octet-stream"


class Release(BaseModel):
    """Pydantic model for a release."""

    tag: str
    name: str = ""
    body: str = ""
    draft: bool = False
    prerelease: bool = False
    created_at: datetime
    published_at: datetime | None = None
    commit_sha: str | None = None
    assets: list[ReleaseAsset] = Field(default_factory=list)


class Tag(BaseModel):
    """Pydantic model for a tag."""

    name: str
    commit_sha: str
    created_at: datetime | None = None
