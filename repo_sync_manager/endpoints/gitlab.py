"""Repository endpoint backed by the python-gitlab library.

python-gitlab is synchronous, so every API call runs in a worker thread.
"""

import asyncio
from functools import partial
from typing import Any, Callable, Self, TypeVar
from urllib.parse import urlsplit

import gitlab
import httpx
import structlog
from gitlab.exceptions import GitlabGetError

from repo_sync_manager.configuration.models import PlatformType
from repo_sync_manager.schemas.entities import Branch, Comment, CommitInfo, Issue, PullRequest, Release, ReleaseAsset, RepoInfo, Tag
from repo_sync_manager.utils.helpers import matches_pattern, parse_datetime

from .abc import RepositoryEndpointBase
from .client import get_gitlab_client
from .git_push import push_commit_to_branch

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

T = TypeVar("T")

_MERGE_REQUEST_STATES = {"opened": "open", "closed": "closed", "locked": "closed", "merged": "merged"}


def _join_labels(labels: list[str]) -> str:
    # GitLab expects a comma-separated string; an empty string clears labels on update.
    return ",".join(labels)


def _commit_from_api(commit: Any) -> CommitInfo:
    return CommitInfo(
        sha=commit.id,
        message=commit.message or commit.title or "",
        author=commit.author_name or "unknown",
        date=parse_datetime(commit.authored_date or commit.committed_date),
    )


class GitLabEndpoint(RepositoryEndpointBase):
    """Repository endpoint for a GitLab project."""

    def __init__(self, client: gitlab.Gitlab, project: Any, token: str) -> None:
        """Initialize the endpoint with an already-loaded project."""
        self.client = client
        self.project = project
        self._token = token
        self.web_url: str = project.web_url
        self.path_with_namespace: str = project.path_with_namespace

    @classmethod
    async def create(cls, url: str, project_path: str | int, token: str) -> Self:
        """Create a GitLab endpoint with its own client.

        Args:
            url: GitLab instance URL, e.g. https://gitlab.com
            project_path: Numeric project ID or 'group/project' path
            token: Personal or project access token

        Returns:
            Configured GitLabEndpoint instance
        """
        logger.info("Creating client for GitLab instance and project", gitlab_url=url, project=project_path)
        client = get_gitlab_client(url, token)
        project = await asyncio.to_thread(client.projects.get, project_path)
        return cls(client, project, token)

    async def _call(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        return await asyncio.to_thread(partial(func, *args, **kwargs))

    @property
    def platform(self) -> PlatformType:
        """Platform hosting this repository."""
        return PlatformType.GITLAB

    @property
    def clone_url(self) -> str:
        """Authenticated HTTPS URL usable by git fetch and push."""
        host = urlsplit(self.web_url).netloc
        return f"https://oauth2:{self._token}@{host}/{self.path_with_namespace}.git"

    # Repository
    async def get_repo_info(self) -> RepoInfo:
        """Get the web URL, namespace and name of the project."""
        owner, _, repo = self.path_with_namespace.rpartition("/")
        return RepoInfo(url=self.web_url, owner=owner, repo=repo)

    async def get_default_branch(self) -> str:
        """Get the name of the default branch."""
        return self.project.default_branch or "main"

    def issue_url(self, number: int) -> str:
        """Build the web URL of an issue."""
        return f"{self.web_url}/-/issues/{number}"

    def comment_url(self, issue_number: int, comment_id: int) -> str:
        """Build the web URL of an issue note."""
        return f"{self.issue_url(issue_number)}#note_{comment_id}"

    # Branches and commits
    async def list_branches(self, pattern: str = "*", include_protected: bool = True) -> list[Branch]:
        """List branches whose name matches the pattern."""
        items = await self._call(self.project.branches.list, get_all=True)
        branches = []
        for item in items:
            if not include_protected and item.protected:
                continue
            if matches_pattern(item.name, pattern):
                branches.append(
                    Branch(
                        name=item.name,
                        sha=item.commit["id"],
                        protected=bool(item.protected),
                        last_commit_date=parse_datetime(item.commit.get("committed_date")),
                    )
                )
        return branches

    async def get_branch_head(self, branch: str) -> str:
        """Get the commit SHA the branch currently points at."""
        item = await self._call(self.project.branches.get, branch)
        return item.commit["id"]

    async def create_branch(self, name: str, sha: str, source: RepositoryEndpointBase) -> None:
        """Create a branch, pushing the commit from the source when this project lacks it."""
        if not await self.commit_exists(sha):
            await push_commit_to_branch(source.clone_url, self.clone_url, sha, name, force=False)
            return
        await self._call(self.project.branches.create, {"branch": name, "ref": sha})

    async def update_branch(self, name: str, sha: str, source: RepositoryEndpointBase) -> None:
        """Force a branch to a commit with git, since the API cannot move an existing branch."""
        await push_commit_to_branch(source.clone_url, self.clone_url, sha, name, force=True)

    async def commit_exists(self, sha: str) -> bool:
        """Check whether a commit exists in this project."""
        return await self.get_commit(sha) is not None

    async def get_commit(self, sha: str) -> CommitInfo | None:
        """Get a commit, or None if it does not exist."""
        try:
            commit = await self._call(self.project.commits.get, sha)
        except GitlabGetError as exc:
            if exc.response_code == 404:
                return None
            raise
        return _commit_from_api(commit)

    async def get_recent_commits(self, branch: str, limit: int = 100) -> list[CommitInfo]:
        """Get the most recent commits of a branch, newest first."""
        commits = await self._call(self.project.commits.list, ref_name=branch, per_page=min(limit, 100), get_all=False)
        return [_commit_from_api(commit) for commit in commits][:limit]

    # Issues
    async def list_issues(self) -> list[Issue]:
        """List all issues, open and closed."""
        items = await self._call(self.project.issues.list, get_all=True, per_page=100)
        return [
            Issue(
                title=item.title,
                body=item.description or "",
                labels=list(item.labels or []),
                number=item.iid,
                state="closed" if item.state == "closed" else "open",
            )
            for item in items
        ]

    async def create_issue(self, issue: Issue) -> Issue:
        """Create an issue, closing it afterwards when the desired state is closed."""
        payload: dict[str, Any] = {"title": issue.title, "description": issue.body}
        if issue.labels:
            payload["labels"] = _join_labels(issue.labels)
        created = await self._call(self.project.issues.create, payload)
        if issue.state == "closed":
            created.state_event = "close"
            await self._call(created.save)
        return issue.model_copy(update={"number": created.iid})

    async def update_issue(self, number: int, issue: Issue) -> Issue:
        """Update title, body, labels and state of an issue."""
        item = await self._call(self.project.issues.get, number)
        item.title = issue.title
        item.description = issue.body
        item.labels = _join_labels(issue.labels)
        current_state = "closed" if item.state == "closed" else "open"
        if current_state != issue.state:
            item.state_event = "close" if issue.state == "closed" else "reopen"
        await self._call(item.save)
        return issue.model_copy(update={"number": number})

    async def list_issue_comments(self, number: int) -> list[Comment]:
        """List the user notes of an issue, skipping system notes."""
        item = await self._call(self.project.issues.get, number, lazy=True)
        notes = await self._call(item.notes.list, get_all=True, per_page=100)
        return [
            Comment(
                id=note.id,
                body=note.body or "",
                author=(note.author or {}).get("username", "unknown"),
                created_at=parse_datetime(note.created_at),
                updated_at=parse_datetime(note.updated_at),
                source_url=self.comment_url(number, note.id),
            )
            for note in notes
            if not getattr(note, "system", False)
        ]

    async def create_issue_comment(self, number: int, body: str) -> Comment:
        """Create a note on an issue."""
        item = await self._call(self.project.issues.get, number, lazy=True)
        note = await self._call(item.notes.create, {"body": body})
        return Comment(id=note.id, body=body)

    async def update_issue_comment(self, number: int, comment_id: int, body: str) -> Comment:
        """Replace the body of an issue note."""
        item = await self._call(self.project.issues.get, number, lazy=True)
        note = await self._call(item.notes.get, comment_id)
        note.body = body
        await self._call(note.save)
        return Comment(id=comment_id, body=body)

    # Merge requests
    async def list_pull_requests(self) -> list[PullRequest]:
        """List all merge requests, open, closed and merged."""
        items = await self._call(self.project.mergerequests.list, get_all=True, state="all", per_page=100)
        return [
            PullRequest(
                title=item.title,
                description=item.description or "",
                source_branch=item.source_branch,
                target_branch=item.target_branch,
                labels=list(item.labels or []),
                number=item.iid,
                state=_MERGE_REQUEST_STATES.get(item.state, "open"),
            )
            for item in items
        ]

    async def create_pull_request(self, pull_request: PullRequest) -> PullRequest:
        """Create a merge request."""
        payload: dict[str, Any] = {
            "source_branch": pull_request.source_branch,
            "target_branch": pull_request.target_branch,
            "title": pull_request.title,
            "description": pull_request.description,
        }
        if pull_request.labels:
            payload["labels"] = _join_labels(pull_request.labels)
        created = await self._call(self.project.mergerequests.create, payload)
        return pull_request.model_copy(update={"number": created.iid, "state": "open"})

    async def update_pull_request(self, number: int, pull_request: PullRequest) -> PullRequest:
        """Update description, labels and state of a merge request."""
        item = await self._call(self.project.mergerequests.get, number)
        item.description = pull_request.description
        item.labels = _join_labels(pull_request.labels)
        current_state = _MERGE_REQUEST_STATES.get(item.state, "open")
        if pull_request.state == "open" and current_state == "closed":
            item.state_event = "reopen"
        elif pull_request.state != "open" and current_state == "open":
            item.state_event = "close"
        await self._call(item.save)
        return pull_request.model_copy(update={"number": number})

    async def close_pull_request(self, number: int) -> None:
        """Close a merge request without merging it."""
        item = await self._call(self.project.mergerequests.get, number)
        item.state_event = "close"
        await self._call(item.save)

    # Releases
    async def list_releases(self) -> list[Release]:
        """List releases with the commit their tag points at."""
        items = await self._call(self.project.releases.list, get_all=True, per_page=100)
        releases = []
        for item in items:
            links = (getattr(item, "assets", None) or {}).get("links", [])
            releases.append(
                Release(
                    tag=item.tag_name,
                    name=item.name or item.tag_name,
                    body=item.description or "",
                    prerelease=bool(getattr(item, "upcoming_release", False)),
                    created_at=parse_datetime(item.created_at),
                    published_at=parse_datetime(getattr(item, "released_at", None)),
                    commit_sha=(getattr(item, "commit", None) or {}).get("id"),
                    assets=[
                        ReleaseAsset(id=str(link["id"]), name=link["name"], url=link.get("direct_asset_url") or link["url"])
                        for link in links
                    ],
                )
            )
        return releases

    async def create_release(self, release: Release, target_commitish: str | None = None) -> Release:
        """Create a release, creating its tag at target_commitish (or the default branch) if needed."""
        ref = target_commitish or await self.get_default_branch()
        await self._call(
            self.project.releases.create,
            {"tag_name": release.tag, "name": release.name or release.tag, "description": release.body, "ref": ref},
        )
        return release

    async def update_release(self, release: Release, target_commitish: str | None = None) -> Release:
        """Update name and description of the release with the same tag.

        GitLab releases follow their tag, so target_commitish is ignored here.
        """
        await self._call(self.project.releases.update, release.tag, {"name": release.name or release.tag, "description": release.body})
        return release

    async def download_release_asset(self, asset: ReleaseAsset) -> bytes:
        """Download the content of a release asset link."""
        async with httpx.AsyncClient(follow_redirects=True, headers={"PRIVATE-TOKEN": self._token}) as client:
            response = await client.get(asset.url)
            response.raise_for_status()
            return response.content

    async def upload_release_asset(self, release: Release, asset: ReleaseAsset, content: bytes) -> ReleaseAsset:
        """Upload the file to the project and link it from the release."""
        uploaded = await self._call(self.project.upload, asset.name, filedata=content)
        url = f"{self.web_url}{uploaded['url']}"
        target_release = await self._call(self.project.releases.get, release.tag)
        link = await self._call(target_release.links.create, {"name": asset.name, "url": url, "link_type": "other"})
        return ReleaseAsset(id=str(link.id), name=asset.name, url=url, size=len(content), content_type=asset.content_type)

    # Tags
    async def list_tags(self) -> list[Tag]:
        """List tags with the date of the commit they point at."""
        items = await self._call(self.project.tags.list, get_all=True, per_page=100)
        return [
            Tag(
                name=item.name,
                commit_sha=item.commit["id"],
                created_at=parse_datetime(item.commit.get("created_at") or item.commit.get("committed_date")),
            )
            for item in items
        ]

    async def create_tag(self, name: str, sha: str) -> Tag:
        """Create a lightweight tag."""
        await self._call(self.project.tags.create, {"tag_name": name, "ref": sha})
        return Tag(name=name, commit_sha=sha)

    async def update_tag(self, name: str, sha: str) -> Tag:
        """Move a tag by deleting and recreating it."""
        await self._call(self.project.tags.delete, name)
        await self._call(self.project.tags.create, {"tag_name": name, "ref": sha})
        return Tag(name=name, commit_sha=sha)
