"""Orchestrates the bidirectional synchronization of a GitHub repository and a GitLab project."""

import time
from typing import Awaitable, Callable

import structlog

from repo_sync_manager.configuration.models import SyncRunConfig
from repo_sync_manager.endpoints.abc import RepositoryEndpointBase
from repo_sync_manager.endpoints.github import GitHubEndpoint
from repo_sync_manager.endpoints.gitlab import GitLabEndpoint
from repo_sync_manager.schemas.sync_config import EquivalenceSettings, SyncConfig
from repo_sync_manager.synchronize.branches import sync_branches
from repo_sync_manager.synchronize.equivalence import CommitEquivalenceMatcher
from repo_sync_manager.synchronize.issues import sync_issues
from repo_sync_manager.synchronize.models import TimelineDivergence
from repo_sync_manager.synchronize.pull_requests import sync_pull_requests
from repo_sync_manager.synchronize.releases import ReleaseStrategyResolver, sync_releases
from repo_sync_manager.synchronize.results import EntitySyncReport, SyncRunReport
from repo_sync_manager.synchronize.tags import sync_tags
from repo_sync_manager.synchronize.timeline import TimelineAnalyzer

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


async def create_endpoints(run_config: SyncRunConfig) -> tuple[GitHubEndpoint | None, GitLabEndpoint | None]:
    """Create an endpoint for every enabled platform."""
    config = run_config.config
    github: GitHubEndpoint | None = None
    gitlab: GitLabEndpoint | None = None
    if config.github.enabled and run_config.github_token:
        github = await GitHubEndpoint.create(
            owner=config.github.owner,
            repo_name=config.github.repo,
            token=run_config.github_token,
            api_url=run_config.github_api_url,
        )
    if config.gitlab.enabled and run_config.gitlab_token:
        gitlab = await GitLabEndpoint.create(
            url=run_config.gitlab_url,
            project_path=config.gitlab.project_path,
            token=run_config.gitlab_token,
        )
    return github, gitlab


async def sync_direction(
    source: RepositoryEndpointBase,
    target: RepositoryEndpointBase,
    sync_config: SyncConfig,
    equivalence: EquivalenceSettings,
    report: SyncRunReport,
    dry_run: bool = False,
) -> None:
    """Sync every enabled entity kind from source to target.

    Entity kinds run in dependency order: branches, issues, pull requests, releases, then tags. A
    failure to read one kind is recorded and does not stop the kinds after it.

    Args:
        source: Endpoint whose state is copied
        target: Endpoint that is written to
        sync_config: Sync settings of the source platform
        equivalence: Thresholds for commit equivalence matching
        report: Run report the per-kind reports are added to
        dry_run: Only plan actions, never write to the target
    """
    direction = f"{source.platform.display_name} -> {target.platform.display_name}"
    timeline = TimelineAnalyzer()
    resolver = ReleaseStrategyResolver(CommitEquivalenceMatcher(equivalence), timeline)

    steps: list[tuple[str, bool, Callable[[EntitySyncReport], Awaitable[object]]]] = [
        (
            "branches",
            sync_config.branches.enabled,
            lambda entity_report: sync_branches(source, target, sync_config.branches, timeline, entity_report, dry_run),
        ),
        (
            "issues",
            sync_config.issues.enabled,
            lambda entity_report: sync_issues(source, target, sync_config.issues, entity_report, dry_run),
        ),
        (
            "pull requests",
            sync_config.pull_requests.enabled,
            lambda entity_report: sync_pull_requests(source, target, sync_config.pull_requests, entity_report, dry_run),
        ),
        (
            "releases",
            sync_config.releases.enabled,
            lambda entity_report: sync_releases(source, target, sync_config.releases, resolver, entity_report, dry_run),
        ),
        (
            "tags",
            sync_config.tags.enabled,
            lambda entity_report: sync_tags(source, target, sync_config.tags, resolver, entity_report, dry_run),
        ),
    ]

    for entity_kind, enabled, run_step in steps:
        if not enabled:
            logger.debug("Entity sync disabled", direction=direction, entity_kind=entity_kind)
            continue
        entity_report = report.add(EntitySyncReport(entity_kind, direction, dry_run))
        start_time = time.time()
        try:
            await run_step(entity_report)
        except Exception as exc:
            logger.error("Entity sync failed", direction=direction, entity_kind=entity_kind, error=str(exc))
            entity_report.record_failure(entity_kind, str(exc))
        logger.info(
            "Synced entity kind",
            direction=direction,
            entity_kind=entity_kind,
            duration=round(time.time() - start_time, 2),
            summary=entity_report.summary(),
        )


async def run_sync_workflow(run_config: SyncRunConfig) -> SyncRunReport:
    """Run the full sync: GitHub to GitLab first, then GitLab to GitHub.

    Each direction uses the sync settings of its source platform. Both directions need both
    platforms enabled.
    """
    report = SyncRunReport()
    github, gitlab = await create_endpoints(run_config)
    if github is None or gitlab is None:
        logger.warning("Both GitHub and GitLab must be enabled to sync", github_enabled=github is not None, gitlab_enabled=gitlab is not None)
        return report

    config = run_config.config
    github_info = await github.get_repo_info()
    gitlab_info = await gitlab.get_repo_info()
    logger.info("Starting sync", github_repo=github_info.url, gitlab_project=gitlab_info.url, dry_run=run_config.dry_run)
    await sync_direction(github, gitlab, config.github.sync, config.equivalence, report, run_config.dry_run)
    await sync_direction(gitlab, github, config.gitlab.sync, config.equivalence, report, run_config.dry_run)
    logger.info("Finished sync", has_failures=report.has_failures)
    return report


async def run_timeline_analysis(run_config: SyncRunConfig, branch: str) -> TimelineDivergence:
    """Analyze how a branch has diverged between GitHub (source) and GitLab (target)."""
    github, gitlab = await create_endpoints(run_config)
    if github is None or gitlab is None:
        raise ValueError("Timeline analysis needs both GitHub and GitLab enabled")
    return await TimelineAnalyzer().analyze_divergence(github, gitlab, branch)
