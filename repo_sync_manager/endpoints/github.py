"""Repository endpoint backed by the githubkit library."""

import asyncio
from functools import wraps
from typing import Any, Awaitable, Callable, Self, TypeVar
from urllib.parse import urlsplit

import structlog
from githubkit import GitHub
from githubkit.exception import RequestFailed

from repo_sync_manager.configuration.models import PlatformType
from repo_sync_manager.schemas.entities import Branch, Comment, CommitInfo, Issue, PullRequest, Release, ReleaseAsset, RepoInfo, Tag
from repo_sync_manager.utils.helpers import matches_pattern, omit_null_parameters, parse_datetime
from repo_sync_manager.utils.retry import retry_on_rate_limit

from .abc import RepositoryEndpointBase
from .client import get_github_client
from .exceptions import EndpointError, ProtectedBranchError
from .git_push import push_commit_to_branch

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])

_TAG_DATE_CONCURRENCY = 10


def handle_github_422(func: F) -> F:
    """Decorator to log GitHub 422 Unprocessable Entity errors and re-raise them with details."""

    @wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return await func(*args, **kwargs)
        except RequestFailed as exc:
            if exc.response.status_code != 422:
                raise
            try:
                error_data = exc.response.json()
            except ValueError:
                error_data = {}
            message = error_data.get("message", "Unprocessable Entity")
            errors = error_data.get("errors", [])
            logger.error("GitHub 422 Unprocessable Entity", function=func.__name__, message=message, errors=errors, status_code=422)
            raise EndpointError(f"GitHub 422 error in {func.__name__}: {message} | errors: {errors}") from exc

    return wrapper  # type: ignore


def web_host_from_api_url(api_url: str) -> str:
    """Derive the web host from a GitHub API URL (api.github.com or an Enterprise /api/v3 URL)."""
    host = urlsplit(api_url).netloc
    if host == "api.github.com":
        return "github.com"
    return host


def _label_names(labels: list[Any]) -> list[str]:
    names = []
    for label in labels or []:
        if isinstance(label, str):
            names.append(label)
        elif getattr(label, "name", None):
            names.append(label.name)
    return names


def _commit_from_json(data: dict[str, Any]) -> CommitInfo:
    commit = data.get("commit", {})
    author = commit.get("author") or {}
    return CommitInfo(
        sha=data["sha"],
        message=commit.get("message", ""),
        author=author.get("name") or "unknown",
        date=parse_datetime(author.get("date")),
    )


class GitHubEndpoint(RepositoryEndpointBase):
    """Repository endpoint for a GitHub repository."""

    def __init__(self, client: GitHub, owner: str, repo_name: str, token: str, api_url: str = "https://api.github.com") -> None:
        """Initialize the endpoint with an already-initialized client."""
        self.client = client
        self.owner = owner
        self.repo_name = repo_name
        self._token = token
        self.web_host = web_host_from_api_url(api_url)
        self.web_url = f"https://{self.web_host}/{owner}/{repo_name}"
        self._default_branch: str | None = None

    @classmethod
    async def create(cls, owner: str, repo_name: str, token: str, api_url: str = "https://api.github.com") -> Self:
        """Create a GitHub endpoint with its own client.

        Args:
            owner: Repository owner (user or organization)
            repo_name: Repository name
            token: Personal access token
            api_url: GitHub API URL (defaults to https://api.github.com)

        Returns:
            Configured GitHubEndpoint instance
        """
        logger.info("Creating client for GitHub instance and repository", github_api_url=api_url, owner=owner, repo_name=repo_name)
        return cls(get_github_client(token, api_url), owner, repo_name, token, api_url)

    @property
    def platform(self) -> PlatformType:
        """Platform hosting this repository."""
        return PlatformType.GITHUB

    @property
    def clone_url(self) -> str:
        """Authenticated HTTPS URL usable by git fetch and push."""
        return f"https://x-access-token:{self._token}@{self.web_host}/{self.owner}/{self.repo_name}.git"

    # Repository
    async def get_repo_info(self) -> RepoInfo:
        """Get the web URL, owner and name of the repository."""
        return RepoInfo(url=self.web_url, owner=self.owner, repo=self.repo_name)

    @retry_on_rate_limit()
    async def get_default_branch(self) -> str:
        """Get the name of the default branch."""
        if self._default_branch is None:
            response = await self.client.rest.repos.async_get(owner=self.owner, repo=self.repo_name)
            self._default_branch = response.parsed_data.default_branch
        return self._default_branch

    def issue_url(self, number: int) -> str:
        """Build the web URL of an issue."""
        return f"{self.web_url}/issues/{number}"

    def comment_url(self, issue_number: int, comment_id: int) -> str:
        """Build the web URL of an issue comment."""
        return f"{self.issue_url(issue_number)}#issuecomment-{comment_id}"

    # Branches and commits
    @retry_on_rate_limit()
    async def list_branches(self, pattern: str = "*", include_protected: bool = True, per_page: int = 100) -> list[Branch]:
        """List branches whose name matches the pattern, handling pagination."""
        branches: list[Branch] = []
        page = 1
        while True:
            response = await self.client.rest.repos.async_list_branches(owner=self.owner, repo=self.repo_name, per_page=per_page, page=page)
            batch = response.parsed_data
            for item in batch:
                if not include_protected and item.protected:
                    continue
                if matches_pattern(item.name, pattern):
                    branches.append(Branch(name=item.name, sha=item.commit.sha, protected=bool(item.protected)))
            if len(batch) < per_page:
                break
            page += 1
        return branches

    @retry_on_rate_limit()
    async def get_branch_head(self, branch: str) -> str:
        """Get the commit SHA the branch currently points at."""
        response = await self.client.rest.repos.async_get_branch(owner=self.owner, repo=self.repo_name, branch=branch)
        return response.parsed_data.commit.sha

    @handle_github_422
    @retry_on_rate_limit()
    async def create_branch(self, name: str, sha: str, source: RepositoryEndpointBase) -> None:
        """Create a branch, pushing the commit from the source when this repository lacks it."""
        if not await self.commit_exists(sha):
            await push_commit_to_branch(source.clone_url, self.clone_url, sha, name, force=False)
            return
        await self.client.rest.git.async_create_ref(owner=self.owner, repo=self.repo_name, ref=f"refs/heads/{name}", sha=sha)

    @retry_on_rate_limit()
    async def update_branch(self, name: str, sha: str, source: RepositoryEndpointBase) -> None:
        """Force a branch to a commit, pushing the commit from the source when this repository lacks it."""
        if not await self.commit_exists(sha):
            await push_commit_to_branch(source.clone_url, self.clone_url, sha, name, force=True)
            return
        try:
            await self.client.rest.git.async_update_ref(owner=self.owner, repo=self.repo_name, ref=f"heads/{name}", sha=sha, force=True)
        except RequestFailed as exc:
            if exc.response.status_code == 422 and "protected" in str(exc).lower():
                raise ProtectedBranchError(name) from exc
            raise

    @retry_on_rate_limit()
    async def commit_exists(self, sha: str) -> bool:
        """Check whether a commit exists in this repository."""
        return await self.get_commit(sha) is not None

    @retry_on_rate_limit()
    async def get_commit(self, sha: str) -> CommitInfo | None:
        """Get a commit, or None if it does not exist."""
        try:
            response = await self.client.rest.repos.async_get_commit(owner=self.owner, repo=self.repo_name, ref=sha)
        except RequestFailed as exc:
            if exc.response.status_code in (404, 422):
                return None
            raise
        # Raw JSON avoids validation of the full commit payload, which is much larger than needed.
        return _commit_from_json(response.json())

    @retry_on_rate_limit()
    async def get_recent_commits(self, branch: str, limit: int = 100) -> list[CommitInfo]:
        """Get the most recent commits of a branch, newest first."""
        response = await self.client.rest.repos.async_list_commits(owner=self.owner, repo=self.repo_name, sha=branch, per_page=min(limit, 100))
        return [_commit_from_json(item) for item in response.json()][:limit]

    # Issues
    @retry_on_rate_limit()
    async def list_issues(self, per_page: int = 100) -> list[Issue]:
        """List all issues, open and closed, handling pagination and skipping pull requests."""
        issues: list[Issue] = []
        page = 1
        while True:
            response = await self.client.rest.issues.async_list_for_repo(owner=self.owner, repo=self.repo_name, state="all", per_page=per_page, page=page)
            batch = response.parsed_data
            for item in batch:
                if getattr(item, "pull_request", None):
                    continue
                issues.append(
                    Issue(
                        title=item.title,
                        body=item.body or "",
                        labels=_label_names(item.labels),
                        number=item.number,
                        state="closed" if item.state == "closed" else "open",
                    )
                )
            if len(batch) < per_page:
                break
            page += 1
        return issues

    @handle_github_422
    @retry_on_rate_limit()
    async def create_issue(self, issue: Issue) -> Issue:
        """Create an issue, closing it afterwards when the desired state is closed."""
        response = await self.client.rest.issues.async_create(owner=self.owner, repo=self.repo_name, title=issue.title, body=issue.body, labels=issue.labels)
        number = response.parsed_data.number
        if issue.state == "closed":
            await self.client.rest.issues.async_update(owner=self.owner, repo=self.repo_name, issue_number=number, state="closed")
        return issue.model_copy(update={"number": number})

    @handle_github_422
    @retry_on_rate_limit()
    async def update_issue(self, number: int, issue: Issue) -> Issue:
        """Update title, body, labels and state of an issue."""
        await self.client.rest.issues.async_update(
            owner=self.owner,
            repo=self.repo_name,
            issue_number=number,
            title=issue.title,
            body=issue.body,
            labels=issue.labels,
            state=issue.state,
        )
        return issue.model_copy(update={"number": number})

    @retry_on_rate_limit()
    async def list_issue_comments(self, number: int, per_page: int = 100) -> list[Comment]:
        """List the comments of an issue, handling pagination."""
        comments: list[Comment] = []
        page = 1
        while True:
            response = await self.client.rest.issues.async_list_comments(
                owner=self.owner, repo=self.repo_name, issue_number=number, per_page=per_page, page=page
            )
            batch = response.parsed_data
            comments.extend(
                Comment(
                    id=item.id,
                    body=item.body or "",
                    author=item.user.login if item.user else "unknown",
                    created_at=item.created_at,
                    updated_at=item.updated_at,
                    source_url=item.html_url,
                )
                for item in batch
            )
            if len(batch) < per_page:
                break
            page += 1
        return comments

    @handle_github_422
    @retry_on_rate_limit()
    async def create_issue_comment(self, number: int, body: str) -> Comment:
        """Create a comment on an issue."""
        response = await self.client.rest.issues.async_create_comment(owner=self.owner, repo=self.repo_name, issue_number=number, body=body)
        return Comment(id=response.parsed_data.id, body=body)

    @handle_github_422
    @retry_on_rate_limit()
    async def update_issue_comment(self, number: int, comment_id: int, body: str) -> Comment:
        """Replace the body of an issue comment."""
        await self.client.rest.issues.async_update_comment(owner=self.owner, repo=self.repo_name, comment_id=comment_id, body=body)
        return Comment(id=comment_id, body=body)

    # Pull requests
    @retry_on_rate_limit()
    async def list_pull_requests(self, per_page: int = 100) -> list[PullRequest]:
        """List all pull requests, open, closed and merged, handling pagination."""
        pull_requests: list[PullRequest] = []
        page = 1
        while True:
            response = await self.client.rest.pulls.async_list(owner=self.owner, repo=self.repo_name, state="all", per_page=per_page, page=page)
            batch = response.parsed_data
            for item in batch:
                if item.merged_at:
                    state = "merged"
                else:
                    state = "closed" if item.state == "closed" else "open"
                pull_requests.append(
                    PullRequest(
                        title=item.title,
                        description=item.body or "",
                        source_branch=item.head.ref,
                        target_branch=item.base.ref,
                        labels=_label_names(item.labels),
                        number=item.number,
                        state=state,
                    )
                )
            if len(batch) < per_page:
                break
            page += 1
        return pull_requests

    @handle_github_422
    @retry_on_rate_limit()
    async def create_pull_request(self, pull_request: PullRequest) -> PullRequest:
        """Create a pull request and apply its labels."""
        response = await self.client.rest.pulls.async_create(
            owner=self.owner,
            repo=self.repo_name,
            title=pull_request.title,
            head=pull_request.source_branch,
            base=pull_request.target_branch,
            body=pull_request.description,
        )
        number = response.parsed_data.number
        if pull_request.labels:
            await self.client.rest.issues.async_update(owner=self.owner, repo=self.repo_name, issue_number=number, labels=pull_request.labels)
        return pull_request.model_copy(update={"number": number, "state": "open"})

    @handle_github_422
    @retry_on_rate_limit()
    async def update_pull_request(self, number: int, pull_request: PullRequest) -> PullRequest:
        """Update description, labels and state of a pull request."""
        state = "open" if pull_request.state == "open" else "closed"
        await self.client.rest.pulls.async_update(owner=self.owner, repo=self.repo_name, pull_number=number, body=pull_request.description, state=state)
        await self.client.rest.issues.async_update(owner=self.owner, repo=self.repo_name, issue_number=number, labels=pull_request.labels)
        return pull_request.model_copy(update={"number": number, "state": state})

    @handle_github_422
    @retry_on_rate_limit()
    async def close_pull_request(self, number: int) -> None:
        """Close a pull request without merging it."""
        await self.client.rest.pulls.async_update(owner=self.owner, repo=self.repo_name, pull_number=number, state="closed")

    # Releases
    @retry_on_rate_limit()
    async def list_releases(self, per_page: int = 100) -> list[Release]:
        """List releases, resolving the commit of each release tag."""
        tag_commits = {tag.name: tag.commit_sha for tag in await self._list_tag_refs()}
        releases: list[Release] = []
        page = 1
        while True:
            response = await self.client.rest.repos.async_list_releases(owner=self.owner, repo=self.repo_name, per_page=per_page, page=page)
            batch = response.parsed_data
            for item in batch:
                releases.append(
                    Release(
                        tag=item.tag_name,
                        name=item.name or item.tag_name,
                        body=item.body or "",
                        draft=item.draft,
                        prerelease=item.prerelease,
                        created_at=item.created_at,
                        published_at=item.published_at,
                        commit_sha=tag_commits.get(item.tag_name),
                        assets=[
                            ReleaseAsset(
                                id=str(asset.id),
                                name=asset.name,
                                url=asset.browser_download_url,
                                size=asset.size,
                                content_type=asset.content_type,
                            )
                            for asset in item.assets
                        ],
                    )
                )
            if len(batch) < per_page:
                break
            page += 1
        return releases

    @handle_github_422
    @retry_on_rate_limit()
    async def create_release(self, release: Release, target_commitish: str | None = None) -> Release:
        """Create a release, creating its tag at target_commitish (or the default branch) if needed."""
        params = omit_null_parameters(target_commitish=target_commitish)
        await self.client.rest.repos.async_create_release(
            owner=self.owner,
            repo=self.repo_name,
            tag_name=release.tag,
            name=release.name or release.tag,
            body=release.body,
            draft=release.draft,
            prerelease=release.prerelease,
            **params,
        )
        return release

    @handle_github_422
    @retry_on_rate_limit()
    async def update_release(self, release: Release, target_commitish: str | None = None) -> Release:
        """Update the release with the same tag."""
        response = await self.client.rest.repos.async_get_release_by_tag(owner=self.owner, repo=self.repo_name, tag=release.tag)
        params = omit_null_parameters(target_commitish=target_commitish)
        await self.client.rest.repos.async_update_release(
            owner=self.owner,
            repo=self.repo_name,
            release_id=response.parsed_data.id,
            name=release.name or release.tag,
            body=release.body,
            draft=release.draft,
            prerelease=release.prerelease,
            **params,
        )
        return release

    @retry_on_rate_limit()
    async def download_release_asset(self, asset: ReleaseAsset) -> bytes:
        """Download the content of a release asset through the API."""
        if asset.id is None:
            raise EndpointError(f"Release asset {asset.name!r} has no ID")
        response = await self.client.arequest(
            "GET",
            f"/repos/{self.owner}/{self.repo_name}/releases/assets/{asset.id}",
            headers={"Accept": "application/octet-stream"},
        )
        return response.content

    @handle_github_422
    @retry_on_rate_limit()
    async def upload_release_asset(self, release: Release, asset: ReleaseAsset, content: bytes) -> ReleaseAsset:
        """Attach an asset to the release with the same tag."""
        response = await self.client.rest.repos.async_get_release_by_tag(owner=self.owner, repo=self.repo_name, tag=release.tag)
        upload_url = response.parsed_data.upload_url.split("{", 1)[0]
        uploaded = await self.client.arequest(
            "POST",
            upload_url,
            params={"name": asset.name},
            content=content,
            headers={"Content-Type": asset.content_type},
        )
        data = uploaded.json()
        return ReleaseAsset(id=str(data["id"]), name=data["name"], url=data["browser_download_url"], size=data["size"], content_type=asset.content_type)

    # Tags
    @retry_on_rate_limit()
    async def _list_tag_refs(self, per_page: int = 100) -> list[Tag]:
        tags: list[Tag] = []
        page = 1
        while True:
            response = await self.client.rest.repos.async_list_tags(owner=self.owner, repo=self.repo_name, per_page=per_page, page=page)
            batch = response.parsed_data
            tags.extend(Tag(name=item.name, commit_sha=item.commit.sha) for item in batch)
            if len(batch) < per_page:
                break
            page += 1
        return tags

    async def list_tags(self) -> list[Tag]:
        """List tags with the date of the commit they point at."""
        tags = await self._list_tag_refs()
        dates: dict[str, CommitInfo | None] = {}
        shas = list(dict.fromkeys(tag.commit_sha for tag in tags))
        for start in range(0, len(shas), _TAG_DATE_CONCURRENCY):
            chunk = shas[start : start + _TAG_DATE_CONCURRENCY]
            commits = await asyncio.gather(*(self.get_commit(sha) for sha in chunk))
            dates.update(zip(chunk, commits))
        for tag in tags:
            commit = dates.get(tag.commit_sha)
            if commit is not None:
                tag.created_at = commit.date
        return tags

    @handle_github_422
    @retry_on_rate_limit()
    async def create_tag(self, name: str, sha: str) -> Tag:
        """Create a lightweight tag."""
        await self.client.rest.git.async_create_ref(owner=self.owner, repo=self.repo_name, ref=f"refs/tags/{name}", sha=sha)
        return Tag(name=name, commit_sha=sha)

    @handle_github_422
    @retry_on_rate_limit()
    async def update_tag(self, name: str, sha: str) -> Tag:
        """Move a tag to another commit."""
        await self.client.rest.git.async_update_ref(owner=self.owner, repo=self.repo_name, ref=f"tags/{name}", sha=sha, force=True)
        return Tag(name=name, commit_sha=sha)
