"""Contains synchronization logic for pull requests and merge requests."""

import structlog

from repo_sync_manager.configuration.models import ConflictPolicy
from repo_sync_manager.endpoints.abc import RepositoryEndpointBase
from repo_sync_manager.schemas.entities import PullRequest
from repo_sync_manager.schemas.sync_config import PullRequestSyncConfig
from repo_sync_manager.synchronize.batch import run_batches
from repo_sync_manager.synchronize.comparator import compare_pull_requests
from repo_sync_manager.synchronize.models import Comparison, SyncDecision
from repo_sync_manager.synchronize.results import EntitySyncReport
from repo_sync_manager.utils.constants import ENTITY_BATCH_SIZE

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


def drop_duplicate_titles(pull_requests: list[PullRequest], side: str) -> list[PullRequest]:
    """Keep one pull request per title, preferring an open one and then the highest number.

    Titles are the matching key, and both platforms list pull requests in every state, so repeated
    titles such as recurring dependency bumps are common.
    """
    kept: dict[str, PullRequest] = {}
    for pull_request in pull_requests:
        current = kept.get(pull_request.title)
        if current is None or _preference(pull_request) > _preference(current):
            kept[pull_request.title] = pull_request

    unique = []
    for pull_request in pull_requests:
        if kept[pull_request.title] is pull_request:
            unique.append(pull_request)
        else:
            logger.warning("Ignoring pull request with duplicate title", side=side, pr_title=pull_request.title, pr_number=pull_request.number)
    return unique


def _preference(pull_request: PullRequest) -> tuple[bool, int]:
    return pull_request.state == "open", pull_request.number or 0


def skip_closed_creations(comparisons: list[Comparison[PullRequest]]) -> list[Comparison[PullRequest]]:
    """Do not open pull requests on the target for work that is already closed or merged on the source."""
    for comparison in comparisons:
        if comparison.action is SyncDecision.CREATE and comparison.source_item.state != "open":
            comparison.action = SyncDecision.SKIP
            comparison.reason = f"source is {comparison.source_item.state}"
    return comparisons


async def sync_pull_requests(
    source: RepositoryEndpointBase,
    target: RepositoryEndpointBase,
    config: PullRequestSyncConfig,
    report: EntitySyncReport,
    dry_run: bool = False,
) -> list[Comparison[PullRequest]]:
    """Reconcile pull requests from source to target.

    Returns:
        The comparisons that drove the sync.
    """
    source_prs = drop_duplicate_titles(await source.list_pull_requests(), "source")
    target_prs = drop_duplicate_titles(await target.list_pull_requests(), "target")
    comparisons = skip_closed_creations(compare_pull_requests(source_prs, target_prs))

    if config.conflict_policy is ConflictPolicy.SKIP:
        for comparison in comparisons:
            if comparison.action is SyncDecision.UPDATE:
                comparison.action = SyncDecision.SKIP
                comparison.reason = "updates disabled by conflict policy"

    actionable = []
    for comparison in comparisons:
        if comparison.action is SyncDecision.SKIP:
            report.record(SyncDecision.SKIP)
        else:
            actionable.append(comparison)

    if dry_run:
        for comparison in actionable:
            logger.info("Planned pull request action", pr_title=comparison.key, action=comparison.action.value, reason=comparison.reason)
            report.record(comparison.action)
        return comparisons

    async def apply(comparison: Comparison[PullRequest]) -> SyncDecision:
        pull_request = comparison.source_item
        if comparison.action is SyncDecision.CREATE:
            created = await target.create_pull_request(pull_request)
            logger.info("Created pull request", pr_title=pull_request.title, pr_number=created.number)
            return SyncDecision.CREATE

        target_number = comparison.target_item.number if comparison.target_item else None
        if target_number is None:
            raise ValueError(f"Target pull request for {comparison.key!r} has no number")
        if comparison.action is SyncDecision.CLOSE:
            await target.close_pull_request(target_number)
            logger.info("Closed pull request", pr_title=pull_request.title, pr_number=target_number, reason=comparison.reason)
        else:
            await target.update_pull_request(target_number, pull_request)
            logger.info("Updated pull request", pr_title=pull_request.title, pr_number=target_number, reason=comparison.reason)
        return comparison.action

    result = await run_batches(actionable, ENTITY_BATCH_SIZE, apply, key=lambda comparison: comparison.key)
    for _, action in result.succeeded:
        report.record(action)
    report.record_batch_failures(result.failed)
    return comparisons
