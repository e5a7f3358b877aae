"""Unit tests for pushing commits across platforms with git."""

from typing import Generator
from unittest.mock import MagicMock, patch

import pytest
from git import GitCommandError

from repo_sync_manager.endpoints.exceptions import EndpointError, ProtectedBranchError
from repo_sync_manager.endpoints.git_push import push_commit_to_branch

SOURCE_URL = "https://oauth2:gl@gitlab.com/acme/widgets.git"
TARGET_URL = "https://x-access-token:gh@github.com/acme/widgets.git"


@pytest.fixture
def workspace() -> Generator[MagicMock, None, None]:
    """The GitWorkspace entered by the push, with its class patched."""
    with patch("repo_sync_manager.endpoints.git_push.GitWorkspace") as mock_workspace_class:
        yield mock_workspace_class.return_value.__enter__.return_value


@pytest.mark.asyncio
async def test_push_fetches_source_branch_and_pushes_commit(workspace: MagicMock) -> None:
    """The commit is fetched through the source branch and pushed by SHA."""
    await push_commit_to_branch(SOURCE_URL, TARGET_URL, "abc123", "feature", force=False)

    workspace.add_remotes.assert_called_once_with(source=SOURCE_URL, target=TARGET_URL)
    workspace.fetch_branch.assert_called_once_with("source", "feature")
    workspace.push.assert_called_once_with("target", "abc123:refs/heads/feature", force=False)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "stderr",
    [
        pytest.param("remote: error: GH006: Protected branch update failed for refs/heads/main.", id="github"),
        pytest.param("remote: GitLab: You are not allowed to force push code to a protected branch on this project.", id="gitlab"),
    ],
)
async def test_protected_branch_rejection(workspace: MagicMock, stderr: str) -> None:
    """Rejections because of branch protection are reported as such."""
    workspace.push.side_effect = GitCommandError(["git", "push"], 1, stderr=stderr)

    with pytest.raises(ProtectedBranchError) as exc_info:
        await push_commit_to_branch(SOURCE_URL, TARGET_URL, "abc123", "main")

    assert exc_info.value.branch == "main"


@pytest.mark.asyncio
async def test_other_push_failures_are_endpoint_errors(workspace: MagicMock) -> None:
    """Any other push failure names the commit and the branch."""
    workspace.push.side_effect = GitCommandError(["git", "push"], 128, stderr="fatal: unable to access remote")

    with pytest.raises(EndpointError, match="abc123d") as exc_info:
        await push_commit_to_branch(SOURCE_URL, TARGET_URL, "abc123def", "main")

    assert not isinstance(exc_info.value, ProtectedBranchError)
