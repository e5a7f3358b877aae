"""Unit tests for the synchronize timeline module, run against real local git repositories."""

from pathlib import Path
from typing import Callable
from unittest.mock import MagicMock, patch

import pytest
from git import Actor, Repo

from repo_sync_manager.configuration.models import PlatformType
from repo_sync_manager.synchronize.timeline import TimelineAnalyzer
from repo_sync_manager.utils.git import GitWorkspace, WorkspaceState

ACTOR = Actor("Test User", "test@example.com")


def _commit(repo: Repo, filename: str) -> str:
    path = Path(repo.working_tree_dir or "") / filename
    path.write_text(f"{filename}\n", encoding="utf-8")
    repo.index.add([filename])
    return repo.index.commit(f"add {filename}", author=ACTOR, committer=ACTOR).hexsha


def _new_repo(path: Path, filename: str) -> tuple[Repo, str]:
    repo = Repo.init(path)
    sha = _commit(repo, filename)
    repo.git.branch("-M", "main")
    return repo, sha


@pytest.fixture
def workspace_root(tmp_path: Path) -> Path:
    """Directory that receives the temporary timeline workspaces."""
    root = tmp_path / "workspaces"
    root.mkdir()
    return root


def _endpoints(make_endpoint: Callable[[PlatformType], MagicMock], source_path: Path, target_path: Path) -> tuple[MagicMock, MagicMock]:
    source = make_endpoint(PlatformType.GITHUB)
    source.clone_url = str(source_path)
    target = make_endpoint(PlatformType.GITLAB)
    target.clone_url = str(target_path)
    return source, target


@pytest.mark.asyncio
async def test_diverged_branch_reports_merge_base_and_unique_commits(
    tmp_path: Path, workspace_root: Path, make_endpoint: Callable[[PlatformType], MagicMock]
) -> None:
    """Commits made on each side after the shared base are listed per side."""
    source_repo, base_sha = _new_repo(tmp_path / "source", "base.txt")
    target_repo = source_repo.clone(str(tmp_path / "target"))
    target_sha = _commit(target_repo, "target.txt")
    source_sha = _commit(source_repo, "source.txt")
    source, target = _endpoints(make_endpoint, tmp_path / "source", tmp_path / "target")

    analyzer = TimelineAnalyzer(workspace_root)
    divergence = await analyzer.analyze_divergence(source, target, "main")

    assert divergence.has_common_history is True
    assert divergence.merge_base == base_sha
    assert divergence.source_unique_commits == [source_sha]
    assert divergence.target_unique_commits == [target_sha]
    assert divergence.target_has_diverged is True
    assert analyzer.last_state is WorkspaceState.CLEANED_UP
    assert list(workspace_root.iterdir()) == []


@pytest.mark.asyncio
async def test_fast_forward_branch_has_not_diverged(tmp_path: Path, workspace_root: Path, make_endpoint: Callable[[PlatformType], MagicMock]) -> None:
    """A target that is behind the source has common history and nothing of its own."""
    source_repo, base_sha = _new_repo(tmp_path / "source", "base.txt")
    source_repo.clone(str(tmp_path / "target"))
    _commit(source_repo, "next.txt")
    source, target = _endpoints(make_endpoint, tmp_path / "source", tmp_path / "target")

    analyzer = TimelineAnalyzer(workspace_root)

    assert await analyzer.find_merge_base(source, target, "main") == base_sha
    divergence = await analyzer.analyze_divergence(source, target, "main")
    assert divergence.target_has_diverged is False
    assert len(divergence.source_unique_commits) == 1


@pytest.mark.asyncio
async def test_unrelated_histories_have_no_common_history(tmp_path: Path, workspace_root: Path, make_endpoint: Callable[[PlatformType], MagicMock]) -> None:
    """Two repositories created independently share no merge base."""
    _new_repo(tmp_path / "source", "a.txt")
    _new_repo(tmp_path / "target", "b.txt")
    source, target = _endpoints(make_endpoint, tmp_path / "source", tmp_path / "target")

    divergence = await TimelineAnalyzer(workspace_root).analyze_divergence(source, target, "main")

    assert divergence.has_common_history is False
    assert divergence.merge_base is None


@pytest.mark.asyncio
async def test_fetch_failure_degrades_and_cleans_up(tmp_path: Path, workspace_root: Path, make_endpoint: Callable[[PlatformType], MagicMock]) -> None:
    """An unreachable remote is reported as no common history and the workspace is removed."""
    _new_repo(tmp_path / "source", "a.txt")
    source, target = _endpoints(make_endpoint, tmp_path / "source", tmp_path / "missing")

    analyzer = TimelineAnalyzer(workspace_root)
    divergence = await analyzer.analyze_divergence(source, target, "main")

    assert divergence.has_common_history is False
    assert analyzer.last_state is WorkspaceState.CLEANED_UP
    assert list(workspace_root.iterdir()) == []


def test_workspace_is_removed_when_initialization_fails(workspace_root: Path) -> None:
    """The temporary directory does not outlive a failed repository init."""
    with patch("repo_sync_manager.utils.git.Repo.init", side_effect=RuntimeError("init failed")):
        workspace = GitWorkspace(workspace_root)
        with pytest.raises(RuntimeError, match="init failed"):
            with workspace:
                pass

    assert workspace.state is WorkspaceState.CLEANED_UP
    assert list(workspace_root.iterdir()) == []


@pytest.mark.asyncio
async def test_commit_exists_treats_errors_as_absence(github_endpoint: MagicMock) -> None:
    """A failing existence check means the commit is treated as missing."""
    github_endpoint.commit_exists.side_effect = RuntimeError("network down")

    assert await TimelineAnalyzer().commit_exists(github_endpoint, "abc") is False
