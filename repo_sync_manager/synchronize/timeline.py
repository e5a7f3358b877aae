"""Ancestry analysis of a branch across the two repositories.

Both branch heads are fetched into a disposable bare repository. Analysis is advisory: any git or
network failure is logged and reported as "no common history" so that the sync itself can continue.
"""

import asyncio
from pathlib import Path

import structlog

from repo_sync_manager.endpoints.abc import RepositoryEndpointBase
from repo_sync_manager.synchronize.models import TimelineDivergence
from repo_sync_manager.utils.git import GitWorkspace, WorkspaceState

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


class TimelineAnalyzer:
    """Compare the history of one branch across a source and a target endpoint.

    Every call works in its own freshly created workspace, so concurrent analyses of different
    branches never share a directory.
    """

    def __init__(self, workspace_root: Path | None = None) -> None:
        """Initialize the analyzer.

        Args:
            workspace_root: Directory for temporary workspaces, defaults to the system temporary directory
        """
        self.workspace_root = workspace_root
        self.last_state: WorkspaceState = WorkspaceState.UNINITIALIZED

    async def find_merge_base(self, source: RepositoryEndpointBase, target: RepositoryEndpointBase, branch: str = "main") -> str | None:
        """Return the merge base of the branch on both sides, or None when there is none."""
        divergence = await self._analyze(source, target, branch, include_unique_commits=False)
        return divergence.merge_base

    async def analyze_divergence(self, source: RepositoryEndpointBase, target: RepositoryEndpointBase, branch: str = "main") -> TimelineDivergence:
        """Return the merge base and the commits unique to each side of the branch."""
        return await self._analyze(source, target, branch, include_unique_commits=True)

    async def commit_exists(self, endpoint: RepositoryEndpointBase, sha: str) -> bool:
        """Ask the endpoint whether it has a commit, treating lookup failures as absence."""
        try:
            return await endpoint.commit_exists(sha)
        except Exception as exc:
            logger.warning("Commit existence check failed", platform=endpoint.platform.value, sha=sha, error=str(exc))
            return False

    async def _analyze(
        self,
        source: RepositoryEndpointBase,
        target: RepositoryEndpointBase,
        branch: str,
        include_unique_commits: bool,
    ) -> TimelineDivergence:
        try:
            return await asyncio.to_thread(self._analyze_blocking, source.clone_url, target.clone_url, branch, include_unique_commits)
        except Exception as exc:
            logger.warning(
                "Timeline analysis failed, assuming no common history",
                branch=branch,
                source=source.platform.value,
                target=target.platform.value,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return TimelineDivergence(has_common_history=False)

    def _analyze_blocking(self, source_url: str, target_url: str, branch: str, include_unique_commits: bool) -> TimelineDivergence:
        workspace = GitWorkspace(self.workspace_root)
        try:
            with workspace:
                workspace.add_remotes(source=source_url, target=target_url)
                source_ref = workspace.fetch_branch("source", branch)
                target_ref = workspace.fetch_branch("target", branch)

                merge_base = workspace.merge_base(source_ref, target_ref)
                if merge_base is None:
                    logger.info("Branch histories are unrelated", branch=branch)
                    workspace.mark_analyzed()
                    return TimelineDivergence(has_common_history=False)

                divergence = TimelineDivergence(has_common_history=True, merge_base=merge_base)
                if include_unique_commits:
                    divergence.source_unique_commits = workspace.rev_list(f"{target_ref}..{source_ref}")
                    divergence.target_unique_commits = workspace.rev_list(f"{source_ref}..{target_ref}")
                workspace.mark_analyzed()
                logger.info(
                    "Analyzed branch divergence",
                    branch=branch,
                    merge_base=merge_base,
                    source_unique=len(divergence.source_unique_commits),
                    target_unique=len(divergence.target_unique_commits),
                )
                return divergence
        finally:
            self.last_state = workspace.state
