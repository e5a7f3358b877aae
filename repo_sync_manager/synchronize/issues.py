"""Contains synchronization logic for issues and their comments."""

import structlog

from repo_sync_manager.configuration.models import ConflictPolicy
from repo_sync_manager.endpoints.abc import RepositoryEndpointBase
from repo_sync_manager.schemas.entities import Comment, Issue
from repo_sync_manager.schemas.sync_config import CommentSyncConfig, IssueSyncConfig
from repo_sync_manager.synchronize.batch import run_batches
from repo_sync_manager.synchronize.comparator import compare_issues
from repo_sync_manager.synchronize.markers import (
    embed_issue_provenance,
    embed_marker,
    extract_issue_origin,
    extract_marker,
    is_marked,
    needs_update,
)
from repo_sync_manager.synchronize.models import Comparison, SyncDecision
from repo_sync_manager.synchronize.results import EntitySyncReport
from repo_sync_manager.utils.constants import ENTITY_BATCH_SIZE, SYNCED_LABEL

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


def drop_duplicate_titles(issues: list[Issue], side: str) -> list[Issue]:
    """Keep the first issue of each title, since titles are the matching key."""
    seen: set[str] = set()
    unique = []
    for issue in issues:
        if issue.title in seen:
            logger.warning("Ignoring issue with duplicate title", side=side, issue_title=issue.title, issue_number=issue.number)
            continue
        seen.add(issue.title)
        unique.append(issue)
    return unique


def select_source_issues(issues: list[Issue], target: RepositoryEndpointBase) -> list[Issue]:
    """Drop source issues that are themselves mirrors of target issues."""
    selected = []
    for issue in issues:
        origin = extract_issue_origin(issue.body)
        if origin is not None and origin[0] is target.platform:
            continue
        selected.append(issue)
    return selected


def build_target_issue(source_issue: Issue, source: RepositoryEndpointBase) -> Issue:
    """Render the issue to write on the target, with provenance and the synced label."""
    body = source_issue.body
    if source_issue.number is not None:
        body = embed_issue_provenance(source_issue.body, source_issue.number, source.platform, source_issue.title, source.issue_url(source_issue.number))
    labels = list(dict.fromkeys([*source_issue.labels, SYNCED_LABEL]))
    return Issue(title=source_issue.title, body=body, labels=labels, state=source_issue.state)


def compare_comments(source_comments: list[Comment], target_comments: list[Comment], handle_updates: bool = True) -> list[Comparison[Comment]]:
    """Match source comments to their mirrors on the target by origin ID.

    Comments on the source that are themselves mirrors are ignored, so comments never bounce back and
    forth between the two platforms.
    """
    mirrors: dict[int, Comment] = {}
    for comment in target_comments:
        marker = extract_marker(comment.body)
        if marker is not None and marker.origin_id is not None:
            mirrors.setdefault(marker.origin_id, comment)

    comparisons: list[Comparison[Comment]] = []
    for comment in source_comments:
        if comment.id is None or is_marked(comment.body):
            continue
        mirror = mirrors.get(comment.id)
        if mirror is None:
            comparisons.append(Comparison(str(comment.id), comment, None, SyncDecision.CREATE, "not mirrored yet"))
        elif handle_updates and needs_update(comment, mirror):
            comparisons.append(Comparison(str(comment.id), comment, mirror, SyncDecision.UPDATE, "source comment changed"))
        else:
            comparisons.append(Comparison(str(comment.id), comment, mirror, SyncDecision.SKIP, "mirror up to date"))
    return comparisons


async def sync_issue_comments(
    source_number: int | None,
    target_number: int | None,
    source: RepositoryEndpointBase,
    target: RepositoryEndpointBase,
    config: CommentSyncConfig,
    report: EntitySyncReport,
) -> None:
    """Mirror the comments of one source issue onto its target issue."""
    if source_number is None or target_number is None:
        logger.warning("Cannot sync comments without both issue numbers", source_number=source_number, target_number=target_number)
        return

    source_comments = await source.list_issue_comments(source_number)
    target_comments = await target.list_issue_comments(target_number)
    for comparison in compare_comments(source_comments, target_comments, config.handle_updates):
        comment = comparison.source_item
        if comparison.action is SyncDecision.SKIP or comment.id is None:
            continue
        body = embed_marker(
            comment.body,
            origin_id=comment.id,
            origin_author=comment.author,
            origin_platform=source.platform,
            format=config.format,
            source_url=comment.source_url or source.comment_url(source_number, comment.id),
            synced_at=comment.created_at,
            include_author=config.include_author,
            include_timestamp=config.include_timestamp,
            include_source_link=config.include_source_link,
            preserve_formatting=config.preserve_formatting,
        )
        try:
            if comparison.action is SyncDecision.CREATE:
                await target.create_issue_comment(target_number, body)
                logger.info("Mirrored comment", source_issue=source_number, target_issue=target_number, comment_id=comment.id)
            else:
                mirror_id = comparison.target_item.id if comparison.target_item else None
                if mirror_id is None:
                    logger.warning("Mirrored comment has no ID, cannot update it", source_issue=source_number, comment_id=comment.id)
                    continue
                await target.update_issue_comment(target_number, mirror_id, body)
                logger.info("Updated mirrored comment", source_issue=source_number, target_issue=target_number, comment_id=comment.id)
        except Exception as exc:
            logger.error("Failed to mirror comment", source_issue=source_number, comment_id=comment.id, error=str(exc))
            report.record_failure(f"#{source_number}/comment-{comment.id}", str(exc))


async def sync_issues(
    source: RepositoryEndpointBase,
    target: RepositoryEndpointBase,
    config: IssueSyncConfig,
    report: EntitySyncReport,
    dry_run: bool = False,
) -> list[Comparison[Issue]]:
    """Reconcile issues, and optionally their comments, from source to target.

    Returns:
        The comparisons that drove the sync.
    """
    source_issues = drop_duplicate_titles(select_source_issues(await source.list_issues(), target), "source")
    target_issues = drop_duplicate_titles(await target.list_issues(), "target")
    comparisons = compare_issues(source_issues, target_issues, source_platform=source.platform)

    if config.conflict_policy is ConflictPolicy.SKIP:
        for comparison in comparisons:
            if comparison.action is SyncDecision.UPDATE:
                comparison.action = SyncDecision.SKIP
                comparison.reason = "updates disabled by conflict policy"

    if dry_run:
        for comparison in comparisons:
            report.record(comparison.action)
        return comparisons

    async def apply(comparison: Comparison[Issue]) -> SyncDecision:
        source_issue = comparison.source_item
        target_issue = comparison.target_item
        if comparison.action is SyncDecision.CREATE:
            target_issue = await target.create_issue(build_target_issue(source_issue, source))
            logger.info("Created issue", issue_title=source_issue.title, issue_number=target_issue.number)
        elif comparison.action is SyncDecision.UPDATE:
            if target_issue is None or target_issue.number is None:
                raise ValueError(f"Target issue for {comparison.key!r} has no number")
            await target.update_issue(target_issue.number, build_target_issue(source_issue, source))
            logger.info("Updated issue", issue_title=source_issue.title, issue_number=target_issue.number, reason=comparison.reason)
        else:
            logger.debug("Issue is up to date", issue_title=source_issue.title)

        if config.comments.enabled:
            await sync_issue_comments(
                source_issue.number,
                target_issue.number if target_issue else None,
                source,
                target,
                config.comments,
                report,
            )
        return comparison.action

    result = await run_batches(comparisons, ENTITY_BATCH_SIZE, apply, key=lambda comparison: comparison.key)
    for _, action in result.succeeded:
        report.record(action)
    report.record_batch_failures(result.failed)
    return comparisons
