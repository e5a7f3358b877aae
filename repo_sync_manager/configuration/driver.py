"""Synchronous driver for configuration reconciliation for the CLI entry point."""

import asyncio
from pathlib import Path

from repo_sync_manager.configuration import reconcile
from repo_sync_manager.configuration.models import SyncRunConfig


def get_sync_run_config(
    config_path: Path | None = None,
    github_token: str | None = None,
    gitlab_token: str | None = None,
    github_api_url: str | None = None,
    gitlab_url: str | None = None,
    dry_run: bool = False,
    require_tokens: bool = True,
) -> SyncRunConfig:
    """Synchronously get the reconciled sync run configuration."""
    return asyncio.run(
        reconcile.reconcile_sync_configuration(
            cli_config_path=config_path,
            cli_github_token=github_token,
            cli_gitlab_token=gitlab_token,
            cli_github_api_url=github_api_url,
            cli_gitlab_url=gitlab_url,
            cli_dry_run=dry_run,
            require_tokens=require_tokens,
        )
    )
