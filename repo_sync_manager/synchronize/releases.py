"""Release placement and synchronization.

A release can only be recreated on the target if the commit its tag points at exists there. When it
does not, the resolver looks for an equivalent commit and otherwise falls back to the configured
placement policy.
"""

from dataclasses import dataclass

import structlog

from repo_sync_manager.configuration.models import DivergentCommitStrategy
from repo_sync_manager.endpoints.abc import RepositoryEndpointBase
from repo_sync_manager.schemas.entities import Release, ReleaseAsset
from repo_sync_manager.schemas.sync_config import ReleaseSyncConfig
from repo_sync_manager.synchronize.batch import run_batches
from repo_sync_manager.synchronize.comparator import compare_releases
from repo_sync_manager.synchronize.equivalence import CommitEquivalenceMatcher
from repo_sync_manager.synchronize.models import ReleaseAnalysis, ReleaseStrategy, SyncDecision
from repo_sync_manager.synchronize.results import EntitySyncReport
from repo_sync_manager.synchronize.timeline import TimelineAnalyzer
from repo_sync_manager.utils.constants import ASSET_BATCH_SIZE, RELEASE_BATCH_SIZE
from repo_sync_manager.utils.helpers import matches_pattern

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Placement:
    """Where a release or tag can be anchored on the target."""

    action: SyncDecision
    strategy: ReleaseStrategy
    reason: str
    commit_exists: bool
    anchor_sha: str | None


class ReleaseStrategyResolver:
    """Decide how each source release is placed on the target."""

    def __init__(self, matcher: CommitEquivalenceMatcher, timeline: TimelineAnalyzer | None = None) -> None:
        """Initialize the resolver with the equivalence matcher and the analyzer used for existence checks."""
        self.matcher = matcher
        self.timeline = timeline or TimelineAnalyzer()

    async def analyze(
        self,
        source_releases: list[Release],
        target_releases: list[Release],
        source: RepositoryEndpointBase,
        target: RepositoryEndpointBase,
        policy: ReleaseSyncConfig,
    ) -> list[ReleaseAnalysis]:
        """Produce one ReleaseAnalysis per source release, newest first.

        Args:
            source_releases: Releases on the source side
            target_releases: Releases on the target side
            source: Source endpoint, used to read the original commit
            target: Target endpoint, searched for the commit or an equivalent
            policy: Placement policy for unreachable commits

        Returns:
            Analyses ordered by source creation time, newest first.
        """
        ordered = sorted(source_releases, key=lambda release: release.created_at, reverse=True)
        comparisons = {comparison.key: comparison for comparison in compare_releases(ordered, target_releases)}
        default_branch: str | None = None

        analyses: list[ReleaseAnalysis] = []
        for index, release in enumerate(ordered):
            is_latest = index == 0
            comparison = comparisons[release.tag]
            if comparison.action is SyncDecision.SKIP:
                analyses.append(
                    ReleaseAnalysis(
                        release=release,
                        action=SyncDecision.SKIP,
                        reason=comparison.reason,
                        commit_exists=None,
                        is_latest=is_latest,
                        strategy=ReleaseStrategy.NORMAL,
                        target_release=comparison.target_item,
                    )
                )
                continue

            if default_branch is None:
                default_branch = await self._default_branch(target)
            placement = await self.place(
                comparison.action,
                release.commit_sha,
                source,
                target,
                policy.strategy_for(is_latest),
                is_latest=is_latest,
                branch=default_branch,
            )
            analyses.append(
                ReleaseAnalysis(
                    release=release,
                    action=placement.action,
                    reason=placement.reason,
                    commit_exists=placement.commit_exists,
                    is_latest=is_latest,
                    strategy=placement.strategy,
                    anchor_sha=placement.anchor_sha,
                    target_release=comparison.target_item,
                )
            )
            logger.info(
                "Analyzed release",
                tag=release.tag,
                action=placement.action.value,
                strategy=placement.strategy.value,
                is_latest=is_latest,
                reason=placement.reason,
            )
        return analyses

    async def place(
        self,
        action: SyncDecision,
        commit_sha: str | None,
        source: RepositoryEndpointBase,
        target: RepositoryEndpointBase,
        strategy: DivergentCommitStrategy,
        is_latest: bool,
        branch: str,
    ) -> Placement:
        """Resolve the anchor for a create or update.

        Args:
            action: Candidate action from the comparator
            commit_sha: Commit the source item points at, if known
            source: Source endpoint
            target: Target endpoint
            strategy: Policy to apply when neither the commit nor an equivalent exists
            is_latest: Whether the item is the newest of its kind, required for point-to-latest
            branch: Target branch searched for equivalent commits

        Returns:
            The placement, whose action is SKIP when the policy declines to act.
        """
        if commit_sha and await self.timeline.commit_exists(target, commit_sha):
            return Placement(action, ReleaseStrategy.NORMAL, "commit exists on target", True, commit_sha)

        if commit_sha:
            equivalent = await self._find_equivalent(commit_sha, source, target, branch)
            if equivalent is not None:
                return Placement(action, ReleaseStrategy.NORMAL, f"using equivalent commit {equivalent[:7]} for {commit_sha[:7]}", False, equivalent)

        if strategy is DivergentCommitStrategy.POINT_TO_LATEST and is_latest:
            return Placement(action, ReleaseStrategy.POINT_TO_LATEST, "commit unreachable, pointing latest release at target branch head", False, None)
        if strategy is DivergentCommitStrategy.CREATE_ANYWAY:
            return Placement(action, ReleaseStrategy.NORMAL, "commit unreachable, creating at the platform default ref", False, None)
        return Placement(SyncDecision.SKIP, ReleaseStrategy.SKIP_DIVERGED, "commit unreachable on target and no equivalent found", False, None)

    async def _find_equivalent(self, commit_sha: str, source: RepositoryEndpointBase, target: RepositoryEndpointBase, branch: str) -> str | None:
        try:
            source_commit = await source.get_commit(commit_sha)
        except Exception as exc:
            logger.warning("Could not read source commit", sha=commit_sha, error=str(exc))
            return None
        if source_commit is None:
            return None
        return await self.matcher.find_equivalent(source_commit, target, branch)

    async def _default_branch(self, target: RepositoryEndpointBase) -> str:
        try:
            return await target.get_default_branch()
        except Exception as exc:
            logger.warning("Could not read target default branch, assuming main", error=str(exc))
            return "main"


def filter_releases(releases: list[Release], config: ReleaseSyncConfig) -> list[Release]:
    """Drop drafts, filtered pre-releases and tags outside the configured pattern."""
    selected = []
    for release in releases:
        if release.draft:
            continue
        if config.skip_pre_releases and release.prerelease:
            continue
        if not matches_pattern(release.tag, config.pattern):
            continue
        selected.append(release)
    return selected


async def resolve_anchor(analysis: ReleaseAnalysis, target: RepositoryEndpointBase) -> str | None:
    """Return the commit a release should be created at, reading the target branch tip for point-to-latest."""
    if analysis.strategy is ReleaseStrategy.POINT_TO_LATEST:
        branch = await target.get_default_branch()
        head = await target.get_branch_head(branch)
        logger.info("Resolved point-to-latest anchor", tag=analysis.release.tag, branch=branch, sha=head)
        return head
    return analysis.anchor_sha


async def sync_release_assets(
    release: Release,
    target_release: Release | None,
    source: RepositoryEndpointBase,
    target: RepositoryEndpointBase,
    report: EntitySyncReport,
) -> None:
    """Copy the assets missing on the target release."""
    existing = {asset.name for asset in target_release.assets} if target_release else set()
    missing = [asset for asset in release.assets if asset.name not in existing]
    if not missing:
        return

    async def copy_asset(asset: ReleaseAsset) -> ReleaseAsset:
        content = await source.download_release_asset(asset)
        uploaded = await target.upload_release_asset(release, asset, content)
        logger.info("Copied release asset", tag=release.tag, asset=asset.name, size=len(content))
        return uploaded

    result = await run_batches(missing, ASSET_BATCH_SIZE, copy_asset, key=lambda asset: f"{release.tag}/{asset.name}")
    report.record_batch_failures(result.failed)


async def sync_releases(
    source: RepositoryEndpointBase,
    target: RepositoryEndpointBase,
    config: ReleaseSyncConfig,
    resolver: ReleaseStrategyResolver,
    report: EntitySyncReport,
    dry_run: bool = False,
) -> list[ReleaseAnalysis]:
    """Reconcile releases from source to target.

    Returns:
        The analyses that drove the sync.
    """
    source_releases = filter_releases(await source.list_releases(), config)
    target_releases = await target.list_releases()
    analyses = await resolver.analyze(source_releases, target_releases, source, target, config)

    actionable = []
    for analysis in analyses:
        if analysis.action is SyncDecision.SKIP:
            report.record(SyncDecision.SKIP)
        else:
            actionable.append(analysis)

    if dry_run:
        for analysis in actionable:
            report.record(analysis.action)
        return analyses

    async def apply(analysis: ReleaseAnalysis) -> SyncDecision:
        anchor = await resolve_anchor(analysis, target)
        if analysis.action is SyncDecision.CREATE:
            await target.create_release(analysis.release, target_commitish=anchor)
            logger.info("Created release", tag=analysis.release.tag, anchor=anchor, strategy=analysis.strategy.value)
        else:
            await target.update_release(analysis.release, target_commitish=anchor)
            logger.info("Updated release", tag=analysis.release.tag, anchor=anchor, strategy=analysis.strategy.value)
        if config.include_assets:
            await sync_release_assets(analysis.release, analysis.target_release, source, target, report)
        return analysis.action

    result = await run_batches(actionable, RELEASE_BATCH_SIZE, apply, key=lambda analysis: analysis.release.tag)
    for _, action in result.succeeded:
        report.record(action)
    report.record_batch_failures(result.failed)
    return analyses
