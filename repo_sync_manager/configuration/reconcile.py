"""Reconcile CLI arguments, environment variables and the sync configuration file."""

from pathlib import Path

import structlog
from pydantic import ValidationError
from ruamel.yaml.error import YAMLError

from repo_sync_manager.configuration.env import Settings
from repo_sync_manager.configuration.exceptions import RequiredConfigurationElementError, SyncConfigurationFileError
from repo_sync_manager.configuration.models import SyncRunConfig
from repo_sync_manager.schemas.sync_config import SyncConfig, SyncConfigFile
from repo_sync_manager.utils.yaml import load_yaml_file

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


def apply_feature_dependencies(sync_config: SyncConfig, platform: str = "") -> list[str]:
    """Enable the entity kinds other enabled kinds depend on.

    Releases need their tags on the target, and pull requests and issues reference branches, so
    enabling either forces the dependency on.

    Args:
        sync_config: Per-platform sync settings, modified in place.
        platform: Platform name used in the log context.

    Returns:
        One message per setting that was changed.
    """
    changes: list[str] = []
    if sync_config.releases.enabled and not sync_config.tags.enabled:
        sync_config.tags.enabled = True
        changes.append("tags enabled because releases are enabled")
    if (sync_config.pull_requests.enabled or sync_config.issues.enabled) and not sync_config.branches.enabled:
        sync_config.branches.enabled = True
        changes.append("branches enabled because pull requests or issues are enabled")
    for change in changes:
        logger.warning("Adjusted sync configuration", platform=platform, change=change)
    return changes


def load_sync_config_file(path: Path) -> SyncConfigFile:
    """Load and validate the sync configuration file.

    A missing file yields the defaults, which still have to name both repositories.

    Raises:
        SyncConfigurationFileError: If the file cannot be parsed or does not validate.
    """
    if not path.exists():
        logger.info("Sync configuration file not found, using defaults", path=str(path))
        content: dict = {}
    else:
        try:
            content = load_yaml_file(path)
        except YAMLError as exc:
            raise SyncConfigurationFileError(str(path), f"not valid YAML: {exc}") from exc
        if not isinstance(content, dict):
            raise SyncConfigurationFileError(str(path), "top level must be a mapping")

    try:
        return SyncConfigFile.model_validate(content)
    except ValidationError as exc:
        raise SyncConfigurationFileError(str(path), str(exc)) from exc


def validate_tokens(config: SyncConfigFile, github_token: str | None, gitlab_token: str | None) -> None:
    """Ensure every enabled platform has a token.

    Raises:
        RequiredConfigurationElementError: For the first enabled platform without a token.
    """
    missing_settings: list[dict[str, str]] = []
    if config.github.enabled and not github_token:
        missing_settings.append({"name": "GitHub token", "cli_name": "--github-token", "env_name": "GITHUB_TOKEN"})
    if config.gitlab.enabled and not gitlab_token:
        missing_settings.append({"name": "GitLab token", "cli_name": "--gitlab-token", "env_name": "GITLAB_TOKEN"})
    if missing_settings:
        setting = missing_settings[0]
        raise RequiredConfigurationElementError(name=setting["name"], cli_name=setting["cli_name"], env_name=setting["env_name"])


async def reconcile_sync_configuration(
    cli_config_path: Path | None = None,
    cli_github_token: str | None = None,
    cli_gitlab_token: str | None = None,
    cli_github_api_url: str | None = None,
    cli_gitlab_url: str | None = None,
    cli_dry_run: bool = False,
    require_tokens: bool = True,
) -> SyncRunConfig:
    """Reconciles the sync configuration from CLI arguments, environment variables and the config file.

    CLI arguments take precedence over environment variables, which take precedence over the
    configuration file.

    Args:
        cli_config_path (Path | None): Path to the sync configuration file.
        cli_github_token (str | None): GitHub token given on the command line.
        cli_gitlab_token (str | None): GitLab token given on the command line.
        cli_github_api_url (str | None): GitHub API URL given on the command line.
        cli_gitlab_url (str | None): GitLab instance URL given on the command line.
        cli_dry_run (bool): Whether the run only plans actions.
        require_tokens (bool): Whether a missing token is an error.

    Raises:
        SyncConfigurationFileError: If the configuration file is invalid.
        RequiredConfigurationElementError: If a token is missing for an enabled platform.

    Returns:
        SyncRunConfig: The reconciled configuration.
    """
    settings = Settings()
    config_path = cli_config_path or settings.SYNC_CONFIG_PATH
    config = load_sync_config_file(config_path)

    for platform, platform_config in (("github", config.github), ("gitlab", config.gitlab)):
        if platform_config.enabled:
            apply_feature_dependencies(platform_config.sync, platform)

    github_token = cli_github_token or settings.GITHUB_TOKEN or config.github.token
    gitlab_token = cli_gitlab_token or settings.GITLAB_TOKEN or config.gitlab.token
    if require_tokens:
        validate_tokens(config, github_token, gitlab_token)

    # GITHUB_API_URL always has a default, so only an explicitly set one outranks the file.
    if cli_github_api_url:
        github_api_url = cli_github_api_url
    elif "GITHUB_API_URL" in settings.model_fields_set or not config.github.api_url:
        github_api_url = settings.GITHUB_API_URL
    else:
        github_api_url = config.github.api_url
    gitlab_url = cli_gitlab_url or settings.GITLAB_URL or f"https://{config.gitlab.host}"

    return SyncRunConfig(
        config=config,
        github_token=github_token,
        gitlab_token=gitlab_token,
        github_api_url=github_api_url.rstrip("/"),
        gitlab_url=gitlab_url.rstrip("/"),
        dry_run=cli_dry_run,
        config_path=config_path,
    )
