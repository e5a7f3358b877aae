"""Defines the Command Line Interface (CLI) using Typer."""

import asyncio
import logging
import sys
from pathlib import Path

import structlog
import typer
from dotenv import load_dotenv
from typer import Argument, Option
from typing_extensions import Annotated

from repo_sync_manager.configuration.driver import get_sync_run_config
from repo_sync_manager.configuration.exceptions import RequiredConfigurationElementError, SyncConfigurationFileError
from repo_sync_manager.configuration.models import SyncRunConfig
from repo_sync_manager.synchronize.driver import run_sync_workflow, run_timeline_analysis
from repo_sync_manager.utils.yaml import dump_yaml_to_string

load_dotenv()

typer_app = typer.Typer(pretty_exceptions_show_locals=False, help="Keep a GitHub repository and a GitLab project in sync.")

ConfigOption = Annotated[Path | None, Option("--config", help="Path to the sync configuration file.")]
GitHubTokenOption = Annotated[str | None, Option(help="GitHub token, overrides GITHUB_TOKEN.")]
GitLabTokenOption = Annotated[str | None, Option(help="GitLab token, overrides GITLAB_TOKEN.")]
GitHubApiUrlOption = Annotated[str | None, Option(help="GitHub API URL, overrides GITHUB_API_URL.")]
GitLabUrlOption = Annotated[str | None, Option(help="GitLab instance URL, overrides GITLAB_URL.")]
DebugOption = Annotated[bool, Option(envvar="DEBUG", help="Enable debug logging.")]


def configure_logging(debug: bool = False) -> None:
    """Route structlog through the standard library logger at INFO, or DEBUG when requested."""
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=logging.DEBUG if debug else logging.INFO)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def load_run_config(
    config_path: Path | None,
    github_token: str | None,
    gitlab_token: str | None,
    github_api_url: str | None,
    gitlab_url: str | None,
    dry_run: bool = False,
    require_tokens: bool = True,
) -> SyncRunConfig:
    """Reconcile the configuration, turning configuration errors into a clean exit."""
    try:
        return get_sync_run_config(
            config_path=config_path,
            github_token=github_token,
            gitlab_token=gitlab_token,
            github_api_url=github_api_url,
            gitlab_url=gitlab_url,
            dry_run=dry_run,
            require_tokens=require_tokens,
        )
    except (SyncConfigurationFileError, RequiredConfigurationElementError) as exc:
        typer.echo(f"Configuration error: {exc}", err=True)
        raise typer.Exit(1) from exc


@typer_app.command(name="sync")
def sync_cli(
    config: ConfigOption = None,
    github_token: GitHubTokenOption = None,
    gitlab_token: GitLabTokenOption = None,
    github_api_url: GitHubApiUrlOption = None,
    gitlab_url: GitLabUrlOption = None,
    dry_run: Annotated[bool, Option(help="Plan actions without writing to either platform.")] = False,
    debug: DebugOption = False,
) -> None:
    """Sync branches, issues, pull requests, releases and tags in both directions."""
    configure_logging(debug)
    run_config = load_run_config(config, github_token, gitlab_token, github_api_url, gitlab_url, dry_run=dry_run)
    if dry_run:
        typer.echo("Dry run - no changes will be written")

    report = asyncio.run(run_sync_workflow(run_config))
    for line in report.lines():
        typer.echo(line)
    if report.has_failures:
        typer.echo("Sync finished with failures", err=True)
        raise typer.Exit(1)


@typer_app.command(name="timeline")
def timeline_cli(
    branch: Annotated[str, Argument(help="Branch to compare between GitHub and GitLab.")],
    config: ConfigOption = None,
    github_token: GitHubTokenOption = None,
    gitlab_token: GitLabTokenOption = None,
    github_api_url: GitHubApiUrlOption = None,
    gitlab_url: GitLabUrlOption = None,
    debug: DebugOption = False,
) -> None:
    """Show how a branch has diverged between GitHub and GitLab."""
    configure_logging(debug)
    run_config = load_run_config(config, github_token, gitlab_token, github_api_url, gitlab_url)
    divergence = asyncio.run(run_timeline_analysis(run_config, branch))

    typer.echo(f"Branch: {branch}")
    typer.echo(f"Common history: {'yes' if divergence.has_common_history else 'no'}")
    typer.echo(f"Merge base: {divergence.merge_base or '-'}")
    typer.echo(f"Commits only on GitHub: {len(divergence.source_unique_commits)}")
    for sha in divergence.source_unique_commits:
        typer.echo(f"  {sha}")
    typer.echo(f"Commits only on GitLab: {len(divergence.target_unique_commits)}")
    for sha in divergence.target_unique_commits:
        typer.echo(f"  {sha}")


@typer_app.command(name="validate-config")
def validate_config_cli(
    config: ConfigOption = None,
    github_token: GitHubTokenOption = None,
    gitlab_token: GitLabTokenOption = None,
    github_api_url: GitHubApiUrlOption = None,
    gitlab_url: GitLabUrlOption = None,
    debug: DebugOption = False,
) -> None:
    """Load and reconcile the configuration, then print the effective settings."""
    configure_logging(debug)
    run_config = load_run_config(config, github_token, gitlab_token, github_api_url, gitlab_url, require_tokens=False)

    effective = run_config.config.model_dump(mode="json", exclude={"github": {"token"}, "gitlab": {"token"}})
    typer.echo(f"Configuration file: {run_config.config_path}")
    typer.echo(f"GitHub API URL: {run_config.github_api_url}")
    typer.echo(f"GitLab URL: {run_config.gitlab_url}")
    typer.echo(f"GitHub token: {'set' if run_config.github_token else 'missing'}")
    typer.echo(f"GitLab token: {'set' if run_config.gitlab_token else 'missing'}")
    typer.echo(dump_yaml_to_string(effective))


if __name__ == "__main__":
    typer_app()
