"""Base ABC for repository endpoints."""

from abc import ABC, abstractmethod

from repo_sync_manager.configuration.models import PlatformType
from repo_sync_manager.schemas.entities import Branch, Comment, CommitInfo, Issue, PullRequest, Release, ReleaseAsset, RepoInfo, Tag


class RepositoryEndpointBase(ABC):
    """One side of a synced repository pair.

    Implementations wrap a single platform client created for the current run. Sync logic dispatches
    through this interface only.
    """

    @property
    @abstractmethod
    def platform(self) -> PlatformType:
        """Platform hosting this repository."""
        pass

    @property
    @abstractmethod
    def clone_url(self) -> str:
        """Authenticated HTTPS URL usable by git fetch and push."""
        pass

    # Repository
    @abstractmethod
    async def get_repo_info(self) -> RepoInfo:
        """Get the web URL, owner and name of the repository."""
        pass

    @abstractmethod
    async def get_default_branch(self) -> str:
        """Get the name of the default branch."""
        pass

    @abstractmethod
    def issue_url(self, number: int) -> str:
        """Build the web URL of an issue."""
        pass

    @abstractmethod
    def comment_url(self, issue_number: int, comment_id: int) -> str:
        """Build the web URL of an issue comment."""
        pass

    # Branches and commits
    @abstractmethod
    async def list_branches(self, pattern: str = "*", include_protected: bool = True) -> list[Branch]:
        """List branches whose name matches the pattern."""
        pass

    @abstractmethod
    async def get_branch_head(self, branch: str) -> str:
        """Get the commit SHA the branch currently points at."""
        pass

    @abstractmethod
    async def create_branch(self, name: str, sha: str, source: "RepositoryEndpointBase") -> None:
        """Create a branch, pushing the commit from the source when the target lacks it."""
        pass

    @abstractmethod
    async def update_branch(self, name: str, sha: str, source: "RepositoryEndpointBase") -> None:
        """Force a branch to a commit, pushing the commit from the source when the target lacks it."""
        pass

    @abstractmethod
    async def commit_exists(self, sha: str) -> bool:
        """Check whether a commit exists in this repository."""
        pass

    @abstractmethod
    async def get_commit(self, sha: str) -> CommitInfo | None:
        """Get a commit, or None if it does not exist."""
        pass

    @abstractmethod
    async def get_recent_commits(self, branch: str, limit: int = 100) -> list[CommitInfo]:
        """Get the most recent commits of a branch, newest first."""
        pass

    # Issues
    @abstractmethod
    async def list_issues(self) -> list[Issue]:
        """List all issues, open and closed, excluding pull requests."""
        pass

    @abstractmethod
    async def create_issue(self, issue: Issue) -> Issue:
        """Create an issue."""
        pass

    @abstractmethod
    async def update_issue(self, number: int, issue: Issue) -> Issue:
        """Update title, body, labels and state of an issue."""
        pass

    @abstractmethod
    async def list_issue_comments(self, number: int) -> list[Comment]:
        """List the user comments of an issue."""
        pass

    @abstractmethod
    async def create_issue_comment(self, number: int, body: str) -> Comment:
        """Create a comment on an issue."""
        pass

    @abstractmethod
    async def update_issue_comment(self, number: int, comment_id: int, body: str) -> Comment:
        """Replace the body of an issue comment."""
        pass

    # Pull requests
    @abstractmethod
    async def list_pull_requests(self) -> list[PullRequest]:
        """List all pull requests, open, closed and merged."""
        pass

    @abstractmethod
    async def create_pull_request(self, pull_request: PullRequest) -> PullRequest:
        """Create a pull request."""
        pass

    @abstractmethod
    async def update_pull_request(self, number: int, pull_request: PullRequest) -> PullRequest:
        """Update description, labels and state of a pull request."""
        pass

    @abstractmethod
    async def close_pull_request(self, number: int) -> None:
        """Close a pull request without merging it."""
        pass

    # Releases
    @abstractmethod
    async def list_releases(self) -> list[Release]:
        """List releases with the commit their tag points at."""
        pass

    @abstractmethod
    async def create_release(self, release: Release, target_commitish: str | None = None) -> Release:
        """Create a release, creating its tag at target_commitish (or the default branch) if needed."""
        pass

    @abstractmethod
    async def update_release(self, release: Release, target_commitish: str | None = None) -> Release:
        """Update the release with the same tag."""
        pass

    @abstractmethod
    async def download_release_asset(self, asset: ReleaseAsset) -> bytes:
        """Download the content of a release asset."""
        pass

    @abstractmethod
    async def upload_release_asset(self, release: Release, asset: ReleaseAsset, content: bytes) -> ReleaseAsset:
        """Attach an asset to the release with the same tag."""
        pass

    # Tags
    @abstractmethod
    async def list_tags(self) -> list[Tag]:
        """List tags with their commit and commit date."""
        pass

    @abstractmethod
    async def create_tag(self, name: str, sha: str) -> Tag:
        """Create a lightweight tag."""
        pass

    @abstractmethod
    async def update_tag(self, name: str, sha: str) -> Tag:
        """Move a tag to another commit."""
        pass
