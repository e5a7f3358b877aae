"""Moves commits between platforms with git when the target does not have them yet."""

import asyncio

import structlog
from git import GitCommandError

from repo_sync_manager.endpoints.exceptions import EndpointError, ProtectedBranchError
from repo_sync_manager.utils.git import GitWorkspace
from repo_sync_manager.utils.helpers import redact_url

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

_PROTECTED_BRANCH_HINTS = ("protected branch", "gh006", "pre-receive hook declined")


def _push_blocking(source_url: str, target_url: str, source_branch: str, sha: str, target_branch: str, force: bool) -> None:
    with GitWorkspace() as workspace:
        workspace.add_remotes(source=source_url, target=target_url)
        workspace.fetch_branch("source", source_branch)
        try:
            workspace.push("target", f"{sha}:refs/heads/{target_branch}", force=force)
        except GitCommandError as exc:
            stderr = str(exc.stderr or "").strip()
            if any(hint in stderr.lower() for hint in _PROTECTED_BRANCH_HINTS):
                raise ProtectedBranchError(target_branch, stderr) from exc
            raise EndpointError(f"git push of {sha[:7]} to {target_branch!r} failed: {stderr}") from exc


async def push_commit_to_branch(source_url: str, target_url: str, sha: str, branch: str, force: bool = True) -> None:
    """Push a commit from the source repository to a branch of the target repository.

    The commit is fetched through the branch of the same name on the source.

    Raises:
        ProtectedBranchError: If the target rejects the push because the branch is protected
        EndpointError: If the push fails for any other reason
    """
    logger.info("Pushing commit across platforms", branch=branch, sha=sha, source=redact_url(source_url), target=redact_url(target_url))
    await asyncio.to_thread(_push_blocking, source_url, target_url, branch, sha, branch, force)
