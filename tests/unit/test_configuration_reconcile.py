"""Unit tests for the configuration reconciliation process."""

from pathlib import Path

import pytest

from repo_sync_manager.configuration.driver import get_sync_run_config
from repo_sync_manager.configuration.exceptions import RequiredConfigurationElementError, SyncConfigurationFileError
from repo_sync_manager.configuration.reconcile import apply_feature_dependencies, load_sync_config_file, reconcile_sync_configuration
from repo_sync_manager.schemas.sync_config import SyncConfig

ENV_VARS = ("DEBUG", "GITHUB_TOKEN", "GITLAB_TOKEN", "GITHUB_API_URL", "GITLAB_URL", "SYNC_CONFIG_PATH")

CONFIG_YAML = """\
github:
  owner: acme
  repo: widgets
  token: yaml-github-token
  sync:
    releases:
      enabled: true
    tags:
      enabled: false
gitlab:
  host: gitlab.example.com
  owner: acme
  repo: widgets
  sync:
    issues:
      enabled: true
    branches:
      enabled: false
"""


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Run every test in an empty directory without sync-related environment variables."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def config_path(tmp_path: Path) -> Path:
    """A sync configuration file naming both repositories."""
    path = tmp_path / "sync-config.yml"
    path.write_text(CONFIG_YAML, encoding="utf-8")
    return path


@pytest.mark.parametrize(
    "changes,expected_messages",
    [
        pytest.param(
            {"releases": {"enabled": True}, "tags": {"enabled": False}},
            ["tags enabled because releases are enabled"],
            id="releases-need-tags",
        ),
        pytest.param(
            {"pull_requests": {"enabled": True}, "branches": {"enabled": False}},
            ["branches enabled because pull requests or issues are enabled"],
            id="pull-requests-need-branches",
        ),
        pytest.param(
            {"issues": {"enabled": True}, "branches": {"enabled": False}},
            ["branches enabled because pull requests or issues are enabled"],
            id="issues-need-branches",
        ),
        pytest.param({}, [], id="defaults-are-consistent"),
    ],
)
def test_apply_feature_dependencies(changes: dict, expected_messages: list[str]) -> None:
    """Enabled entity kinds force on the kinds they depend on."""
    sync_config = SyncConfig.model_validate(changes)

    assert apply_feature_dependencies(sync_config) == expected_messages
    if sync_config.releases.enabled:
        assert sync_config.tags.enabled
    if sync_config.issues.enabled or sync_config.pull_requests.enabled:
        assert sync_config.branches.enabled


@pytest.mark.asyncio
async def test_reconcile_with_cli_arguments(config_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """CLI values beat environment variables, which beat the configuration file."""
    monkeypatch.setenv("GITHUB_TOKEN", "env-github-token")
    monkeypatch.setenv("GITLAB_TOKEN", "env-gitlab-token")

    result = await reconcile_sync_configuration(
        cli_config_path=config_path,
        cli_github_token="cli-github-token",
        cli_github_api_url="https://ghe.example.com/api/v3/",
        cli_dry_run=True,
    )

    assert result.github_token == "cli-github-token"
    assert result.gitlab_token == "env-gitlab-token"
    assert result.github_api_url == "https://ghe.example.com/api/v3"
    assert result.gitlab_url == "https://gitlab.example.com"
    assert result.dry_run is True
    assert result.config_path == config_path


@pytest.mark.asyncio
async def test_reconcile_falls_back_to_configuration_file(config_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Without CLI or environment values the file's token and defaults are used."""
    monkeypatch.setenv("GITLAB_TOKEN", "env-gitlab-token")
    monkeypatch.setenv("GITLAB_URL", "https://gitlab.internal")

    result = await reconcile_sync_configuration(cli_config_path=config_path)

    assert result.github_token == "yaml-github-token"
    assert result.github_api_url == "https://api.github.com"
    assert result.gitlab_url == "https://gitlab.internal"
    assert result.dry_run is False


@pytest.mark.asyncio
async def test_reconcile_applies_dependencies_per_platform(config_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Dependency rules run for each platform's sync settings."""
    monkeypatch.setenv("GITLAB_TOKEN", "env-gitlab-token")

    result = await reconcile_sync_configuration(cli_config_path=config_path)

    assert result.config.github.sync.tags.enabled is True
    assert result.config.gitlab.sync.branches.enabled is True


@pytest.mark.asyncio
async def test_missing_token_names_cli_and_environment(config_path: Path) -> None:
    """A missing token for an enabled platform is reported with both ways to set it."""
    with pytest.raises(RequiredConfigurationElementError) as exc_info:
        await reconcile_sync_configuration(cli_config_path=config_path)

    assert exc_info.value.cli_name == "--gitlab-token"
    assert exc_info.value.env_name == "GITLAB_TOKEN"


@pytest.mark.asyncio
async def test_missing_token_is_allowed_when_not_required(config_path: Path) -> None:
    """Validation-only runs do not need tokens."""
    result = await reconcile_sync_configuration(cli_config_path=config_path, require_tokens=False)

    assert result.gitlab_token is None


@pytest.mark.asyncio
async def test_default_path_comes_from_environment(config_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """SYNC_CONFIG_PATH selects the configuration file when no CLI path is given."""
    monkeypatch.setenv("SYNC_CONFIG_PATH", str(config_path))

    result = await reconcile_sync_configuration(require_tokens=False)

    assert result.config_path == config_path
    assert result.config.github.owner == "acme"


def test_missing_file_uses_defaults_which_still_need_repositories(tmp_path: Path) -> None:
    """Defaults enable both platforms, so a missing file fails validation on the repository names."""
    with pytest.raises(SyncConfigurationFileError, match="github.owner and github.repo are required"):
        load_sync_config_file(tmp_path / "missing.yml")


@pytest.mark.parametrize(
    "content,reason",
    [
        pytest.param("github: [unclosed", "not valid YAML", id="invalid-yaml"),
        pytest.param("- a\n- b\n", "top level must be a mapping", id="not-a-mapping"),
        pytest.param("github:\n  owner: a\n  repo: b\n  colour: red\ngitlab:\n  enabled: false\n", "colour", id="unknown-key"),
    ],
)
def test_invalid_files_are_reported(tmp_path: Path, content: str, reason: str) -> None:
    """Parse and validation errors name the file."""
    path = tmp_path / "sync-config.yml"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(SyncConfigurationFileError, match=reason) as exc_info:
        load_sync_config_file(path)

    assert exc_info.value.path == str(path)


def test_driver_runs_reconciliation_synchronously(config_path: Path) -> None:
    """The synchronous driver returns the reconciled configuration."""
    result = get_sync_run_config(config_path=config_path, github_token="gh", gitlab_token="gl")

    assert result.github_token == "gh"
    assert result.gitlab_token == "gl"
