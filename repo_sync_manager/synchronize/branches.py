"""Contains synchronization logic for branches."""

import structlog

from repo_sync_manager.configuration.models import BotBranchStrategy, ConflictPolicy
from repo_sync_manager.endpoints.abc import RepositoryEndpointBase
from repo_sync_manager.endpoints.exceptions import ProtectedBranchError
from repo_sync_manager.schemas.entities import Branch
from repo_sync_manager.schemas.sync_config import BranchSyncConfig
from repo_sync_manager.synchronize.batch import run_batches
from repo_sync_manager.synchronize.comparator import compare_branches
from repo_sync_manager.synchronize.models import Comparison, SyncDecision
from repo_sync_manager.synchronize.results import EntitySyncReport
from repo_sync_manager.synchronize.timeline import TimelineAnalyzer
from repo_sync_manager.utils.constants import BRANCH_BATCH_SIZE, PROTECTED_BRANCH_NAMES
from repo_sync_manager.utils.helpers import matches_any_pattern

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


def is_bot_branch(name: str, patterns: list[str]) -> bool:
    """Return True if the branch looks machine- or short-lived, never for well-known long-lived names."""
    if name in PROTECTED_BRANCH_NAMES:
        return False
    return matches_any_pattern(name, patterns)


def filter_branches(branches: list[Branch], config: BranchSyncConfig) -> list[Branch]:
    """Drop bot branches unless configured to sync them."""
    if config.bot_branches.strategy is BotBranchStrategy.SYNC:
        return branches
    selected = []
    for branch in branches:
        if is_bot_branch(branch.name, config.bot_branches.patterns):
            logger.debug("Skipping bot branch", branch=branch.name)
            continue
        selected.append(branch)
    return selected


async def apply_conflict_policy(
    comparisons: list[Comparison[Branch]],
    source: RepositoryEndpointBase,
    target: RepositoryEndpointBase,
    policy: ConflictPolicy,
    timeline: TimelineAnalyzer,
) -> list[Comparison[Branch]]:
    """Downgrade updates of diverged branches to skips when the policy does not let the source win."""
    if policy is ConflictPolicy.SOURCE_WINS:
        return comparisons
    for comparison in comparisons:
        if comparison.action is not SyncDecision.UPDATE:
            continue
        divergence = await timeline.analyze_divergence(source, target, comparison.key)
        if divergence.target_has_diverged:
            logger.warning(
                "Target branch has diverged, leaving it untouched",
                branch=comparison.key,
                has_common_history=divergence.has_common_history,
                target_unique_commits=len(divergence.target_unique_commits),
            )
            comparison.action = SyncDecision.SKIP
            comparison.reason = "target has diverged"
    return comparisons


async def sync_branches(
    source: RepositoryEndpointBase,
    target: RepositoryEndpointBase,
    config: BranchSyncConfig,
    timeline: TimelineAnalyzer,
    report: EntitySyncReport,
    dry_run: bool = False,
) -> list[Comparison[Branch]]:
    """Reconcile branches from source to target.

    Returns:
        The comparisons that drove the sync.
    """
    source_branches = filter_branches(await source.list_branches(config.pattern, config.protected), config)
    target_branches = await target.list_branches()

    comparisons = compare_branches(source_branches, target_branches)
    comparisons = await apply_conflict_policy(comparisons, source, target, config.conflict_policy, timeline)

    actionable = []
    for comparison in comparisons:
        if comparison.action is SyncDecision.SKIP:
            report.record(SyncDecision.SKIP)
        else:
            actionable.append(comparison)

    if dry_run:
        for comparison in actionable:
            logger.info("Planned branch action", branch=comparison.key, action=comparison.action.value, reason=comparison.reason)
            report.record(comparison.action)
        return comparisons

    async def apply(comparison: Comparison[Branch]) -> SyncDecision:
        branch = comparison.source_item
        try:
            if comparison.action is SyncDecision.CREATE:
                await target.create_branch(branch.name, branch.sha, source)
                logger.info("Created branch", branch=branch.name, sha=branch.sha)
            else:
                await target.update_branch(branch.name, branch.sha, source)
                logger.info("Updated branch", branch=branch.name, sha=branch.sha)
        except ProtectedBranchError as exc:
            logger.warning("Target refused to move protected branch", branch=branch.name, error=str(exc))
            return SyncDecision.SKIP
        return comparison.action

    result = await run_batches(actionable, BRANCH_BATCH_SIZE, apply, key=lambda comparison: comparison.key)
    for _, action in result.succeeded:
        report.record(action)
    report.record_batch_failures(result.failed)
    return comparisons
