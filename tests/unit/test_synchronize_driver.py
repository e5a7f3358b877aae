"""Unit tests for the synchronize driver module."""

from unittest.mock import AsyncMock, MagicMock, call, patch

import pytest

from repo_sync_manager.configuration.models import SyncRunConfig
from repo_sync_manager.schemas.entities import RepoInfo
from repo_sync_manager.schemas.sync_config import EquivalenceSettings, SyncConfig, SyncConfigFile
from repo_sync_manager.synchronize.driver import create_endpoints, run_sync_workflow, run_timeline_analysis, sync_direction
from repo_sync_manager.synchronize.results import SyncRunReport

DRIVER = "repo_sync_manager.synchronize.driver"


def _run_config(**file_changes: dict) -> SyncRunConfig:
    data = {"github": {"owner": "acme", "repo": "widgets"}, "gitlab": {"owner": "acme", "repo": "widgets"}}
    for key, value in file_changes.items():
        data[key].update(value)
    return SyncRunConfig(
        config=SyncConfigFile.model_validate(data),
        github_token="gh-token",
        gitlab_token="gl-token",
        github_api_url="https://api.github.com",
        gitlab_url="https://gitlab.com",
    )


@pytest.mark.asyncio
async def test_entity_kinds_run_in_dependency_order(github_endpoint: MagicMock, gitlab_endpoint: MagicMock) -> None:
    """Branches come first and tags last, each with its own report."""
    order: list[str] = []
    sync_config = SyncConfig.model_validate({"issues": {"enabled": True}, "pull_requests": {"enabled": True}})
    report = SyncRunReport()

    def recorder(name: str) -> AsyncMock:
        return AsyncMock(side_effect=lambda *args, **kwargs: order.append(name))

    with (
        patch(f"{DRIVER}.sync_branches", recorder("branches")),
        patch(f"{DRIVER}.sync_issues", recorder("issues")),
        patch(f"{DRIVER}.sync_pull_requests", recorder("pull requests")),
        patch(f"{DRIVER}.sync_releases", recorder("releases")),
        patch(f"{DRIVER}.sync_tags", recorder("tags")),
    ):
        await sync_direction(github_endpoint, gitlab_endpoint, sync_config, EquivalenceSettings(), report)

    assert order == ["branches", "issues", "pull requests", "releases", "tags"]
    assert [entity_report.entity_kind for entity_report in report.reports] == order
    assert {entity_report.direction for entity_report in report.reports} == {"GitHub -> GitLab"}


@pytest.mark.asyncio
async def test_failure_of_one_kind_does_not_stop_the_rest(github_endpoint: MagicMock, gitlab_endpoint: MagicMock) -> None:
    """A kind that cannot be listed is recorded as failed and the next kind still runs."""
    sync_config = SyncConfig.model_validate({"tags": {"enabled": False}})
    report = SyncRunReport()
    mock_releases = AsyncMock()

    with (
        patch(f"{DRIVER}.sync_branches", AsyncMock(side_effect=RuntimeError("listing branches failed"))),
        patch(f"{DRIVER}.sync_releases", mock_releases),
        patch(f"{DRIVER}.sync_tags", AsyncMock()) as mock_tags,
    ):
        await sync_direction(gitlab_endpoint, github_endpoint, sync_config, EquivalenceSettings(), report)

    mock_releases.assert_awaited_once()
    mock_tags.assert_not_awaited()
    assert report.has_failures
    assert report.reports[0].entity_kind == "branches"
    assert report.reports[0].failed[0].error == "listing branches failed"
    assert report.reports[0].direction == "GitLab -> GitHub"


@pytest.mark.asyncio
async def test_run_sync_workflow_runs_both_directions(github_endpoint: MagicMock, gitlab_endpoint: MagicMock) -> None:
    """GitHub to GitLab runs first with GitHub's settings, then the reverse with GitLab's."""
    run_config = _run_config(gitlab={"sync": {"tags": {"enabled": False}}})
    github_endpoint.get_repo_info.return_value = RepoInfo(url="https://github.com/acme/widgets", owner="acme", repo="widgets")
    gitlab_endpoint.get_repo_info.return_value = RepoInfo(url="https://gitlab.com/acme/widgets", owner="acme", repo="widgets")

    with (
        patch(f"{DRIVER}.create_endpoints", AsyncMock(return_value=(github_endpoint, gitlab_endpoint))),
        patch(f"{DRIVER}.sync_direction", new_callable=AsyncMock) as mock_direction,
    ):
        report = await run_sync_workflow(run_config)

    config = run_config.config
    assert mock_direction.await_args_list == [
        call(github_endpoint, gitlab_endpoint, config.github.sync, config.equivalence, report, False),
        call(gitlab_endpoint, github_endpoint, config.gitlab.sync, config.equivalence, report, False),
    ]


@pytest.mark.asyncio
async def test_run_sync_workflow_needs_both_platforms(github_endpoint: MagicMock) -> None:
    """With one platform disabled nothing is synced."""
    with (
        patch(f"{DRIVER}.create_endpoints", AsyncMock(return_value=(github_endpoint, None))),
        patch(f"{DRIVER}.sync_direction", new_callable=AsyncMock) as mock_direction,
    ):
        report = await run_sync_workflow(_run_config(gitlab={"enabled": False}))

    mock_direction.assert_not_awaited()
    assert report.reports == []


@pytest.mark.asyncio
async def test_create_endpoints_skips_disabled_platforms() -> None:
    """Only enabled platforms get an endpoint, built from the reconciled values."""
    run_config = _run_config(gitlab={"enabled": False})
    sentinel = MagicMock()

    with (
        patch(f"{DRIVER}.GitHubEndpoint.create", AsyncMock(return_value=sentinel)) as mock_github,
        patch(f"{DRIVER}.GitLabEndpoint.create", new_callable=AsyncMock) as mock_gitlab,
    ):
        github, gitlab = await create_endpoints(run_config)

    assert github is sentinel
    assert gitlab is None
    mock_github.assert_awaited_once_with(owner="acme", repo_name="widgets", token="gh-token", api_url="https://api.github.com")
    mock_gitlab.assert_not_awaited()


@pytest.mark.asyncio
async def test_create_endpoints_uses_gitlab_project_path() -> None:
    """The GitLab endpoint is created from the instance URL and the project path."""
    run_config = _run_config(github={"enabled": False}, gitlab={"project_id": 42})

    with patch(f"{DRIVER}.GitLabEndpoint.create", new_callable=AsyncMock) as mock_gitlab:
        await create_endpoints(run_config)

    mock_gitlab.assert_awaited_once_with(url="https://gitlab.com", project_path=42, token="gl-token")


@pytest.mark.asyncio
async def test_timeline_analysis_needs_both_platforms() -> None:
    """Timeline analysis compares two repositories, so one is not enough."""
    with patch(f"{DRIVER}.create_endpoints", AsyncMock(return_value=(None, MagicMock()))):
        with pytest.raises(ValueError, match="needs both GitHub and GitLab"):
            await run_timeline_analysis(_run_config(), "main")
