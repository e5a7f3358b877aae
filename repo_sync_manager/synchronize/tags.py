"""Contains synchronization logic for tags."""

import structlog

from repo_sync_manager.configuration.models import ConflictPolicy
from repo_sync_manager.endpoints.abc import RepositoryEndpointBase
from repo_sync_manager.schemas.entities import Tag
from repo_sync_manager.schemas.sync_config import TagSyncConfig
from repo_sync_manager.synchronize.batch import run_batches
from repo_sync_manager.synchronize.comparator import compare_tags
from repo_sync_manager.synchronize.models import Comparison, ReleaseStrategy, SyncDecision
from repo_sync_manager.synchronize.releases import Placement, ReleaseStrategyResolver
from repo_sync_manager.synchronize.results import EntitySyncReport
from repo_sync_manager.utils.constants import ENTITY_BATCH_SIZE
from repo_sync_manager.utils.helpers import matches_pattern

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


def newest_tag_name(tags: list[Tag]) -> str | None:
    """Return the name of the most recently created tag, if any tag has a date."""
    dated = [tag for tag in tags if tag.created_at is not None]
    if not dated:
        return None
    return max(dated, key=lambda tag: tag.created_at).name  # type: ignore[arg-type,return-value]


async def place_tags(
    comparisons: list[Comparison[Tag]],
    source: RepositoryEndpointBase,
    target: RepositoryEndpointBase,
    config: TagSyncConfig,
    resolver: ReleaseStrategyResolver,
) -> list[tuple[Comparison[Tag], Placement]]:
    """Resolve the commit each created or moved tag points at on the target."""
    latest = newest_tag_name([comparison.source_item for comparison in comparisons])
    placements: list[tuple[Comparison[Tag], Placement]] = []
    if all(comparison.action is SyncDecision.SKIP for comparison in comparisons):
        return placements
    branch = await target.get_default_branch()
    for comparison in comparisons:
        if comparison.action is SyncDecision.SKIP:
            continue
        tag = comparison.source_item
        placement = await resolver.place(
            comparison.action,
            tag.commit_sha,
            source,
            target,
            config.divergent_commit_strategy,
            is_latest=tag.name == latest,
            branch=branch,
        )
        if placement.action is not SyncDecision.SKIP and placement.strategy is ReleaseStrategy.NORMAL and placement.anchor_sha is None:
            logger.warning("A tag needs a commit, skipping tag with unreachable commit", tag=tag.name, sha=tag.commit_sha)
            placement = Placement(SyncDecision.SKIP, ReleaseStrategy.SKIP_DIVERGED, "tag commit unreachable on target", False, None)
        if placement.action is SyncDecision.SKIP:
            comparison.action = SyncDecision.SKIP
            comparison.reason = placement.reason
        placements.append((comparison, placement))
    return placements


async def sync_tags(
    source: RepositoryEndpointBase,
    target: RepositoryEndpointBase,
    config: TagSyncConfig,
    resolver: ReleaseStrategyResolver,
    report: EntitySyncReport,
    dry_run: bool = False,
) -> list[Comparison[Tag]]:
    """Reconcile tags from source to target.

    Returns:
        The comparisons that drove the sync.
    """
    source_tags = [tag for tag in await source.list_tags() if matches_pattern(tag.name, config.pattern)]
    target_tags = await target.list_tags()
    comparisons = compare_tags(source_tags, target_tags)

    if config.conflict_policy is ConflictPolicy.SKIP:
        for comparison in comparisons:
            if comparison.action is SyncDecision.UPDATE:
                comparison.action = SyncDecision.SKIP
                comparison.reason = "updates disabled by conflict policy"

    placements = await place_tags(comparisons, source, target, config, resolver)
    actionable = [(comparison, placement) for comparison, placement in placements if comparison.action is not SyncDecision.SKIP]
    for comparison in comparisons:
        if comparison.action is SyncDecision.SKIP:
            report.record(SyncDecision.SKIP)

    if dry_run:
        for comparison, placement in actionable:
            logger.info("Planned tag action", tag=comparison.key, action=comparison.action.value, strategy=placement.strategy.value)
            report.record(comparison.action)
        return comparisons

    async def apply(item: tuple[Comparison[Tag], Placement]) -> SyncDecision:
        comparison, placement = item
        sha = placement.anchor_sha
        if placement.strategy is ReleaseStrategy.POINT_TO_LATEST:
            sha = await target.get_branch_head(await target.get_default_branch())
        if sha is None:
            raise ValueError(f"No commit resolved for tag {comparison.key!r}")
        if comparison.action is SyncDecision.CREATE:
            await target.create_tag(comparison.key, sha)
            logger.info("Created tag", tag=comparison.key, sha=sha, strategy=placement.strategy.value)
        else:
            await target.update_tag(comparison.key, sha)
            logger.info("Moved tag", tag=comparison.key, sha=sha, strategy=placement.strategy.value)
        return comparison.action

    result = await run_batches(actionable, ENTITY_BATCH_SIZE, apply, key=lambda item: item[0].key)
    for _, action in result.succeeded:
        report.record(action)
    report.record_batch_failures(result.failed)
    return comparisons
