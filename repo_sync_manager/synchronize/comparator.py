"""Pure comparison of source and target entity collections.

Every function here maps two collections of the same entity kind to one Comparison per source item.
Target-only items never produce a comparison. No function performs I/O.
"""

from typing import Callable, Iterable, TypeVar

from repo_sync_manager.configuration.models import PlatformType
from repo_sync_manager.schemas.entities import Branch, Issue, PullRequest, Release, Tag
from repo_sync_manager.synchronize.markers import extract_issue_origin, strip_issue_provenance
from repo_sync_manager.synchronize.models import Comparison, SyncDecision
from repo_sync_manager.synchronize.utils import compare_field, compare_label_sets, normalize_body

T = TypeVar("T")


class DuplicateEntityKeyError(ValueError):
    """Raised when two items on the same side share a stable key."""

    def __init__(self, key: str, side: str) -> None:
        """Initializes the exception with the duplicated key."""
        super().__init__(f"Duplicate {side} key: {key!r}")
        self.key = key
        self.side = side


def index_by_key(items: Iterable[T], key: Callable[[T], str], side: str = "target") -> dict[str, T]:
    """Build a lookup of items by stable key, rejecting duplicates."""
    index: dict[str, T] = {}
    for item in items:
        item_key = key(item)
        if item_key in index:
            raise DuplicateEntityKeyError(item_key, side)
        index[item_key] = item
    return index


def compare_entities(
    source_items: Iterable[T],
    target_items: Iterable[T],
    key: Callable[[T], str],
    decide: Callable[[T, T], tuple[SyncDecision, str]],
) -> list[Comparison[T]]:
    """Compare two collections by stable key.

    Args:
        source_items: Items on the source side
        target_items: Items on the target side
        key: Function returning the stable key of an item
        decide: Function deciding the action for a source item that has a target match

    Returns:
        One Comparison per source item, in source order.

    Raises:
        DuplicateEntityKeyError: If either side contains the same key twice
    """
    source_list = list(source_items)
    index_by_key(source_list, key, side="source")
    target_index = index_by_key(target_items, key, side="target")

    comparisons: list[Comparison[T]] = []
    for source_item in source_list:
        item_key = key(source_item)
        target_item = target_index.get(item_key)
        if target_item is None:
            comparisons.append(Comparison(item_key, source_item, None, SyncDecision.CREATE, "missing on target"))
            continue
        action, reason = decide(source_item, target_item)
        comparisons.append(Comparison(item_key, source_item, target_item, action, reason))
    return comparisons


def decide_branch_action(source: Branch, target: Branch) -> tuple[SyncDecision, str]:
    """Update whenever the heads differ."""
    if source.sha != target.sha:
        return SyncDecision.UPDATE, f"head differs ({target.sha[:7]} -> {source.sha[:7]})"
    return SyncDecision.SKIP, "heads match"


def compare_branches(source_branches: Iterable[Branch], target_branches: Iterable[Branch]) -> list[Comparison[Branch]]:
    """Compare branches by name."""
    return compare_entities(source_branches, target_branches, key=lambda branch: branch.name, decide=decide_branch_action)


def decide_issue_action(source: Issue, target: Issue) -> tuple[SyncDecision, str]:
    """Compare title, body, labels and state of a linked issue pair."""
    differences = []
    if source.title != target.title:
        differences.append("title")
    if not compare_field(normalize_body(source.body), normalize_body(strip_issue_provenance(target.body))):
        differences.append("body")
    if not compare_label_sets(source.labels, target.labels):
        differences.append("labels")
    if source.state != target.state:
        differences.append("state")
    if differences:
        return SyncDecision.UPDATE, f"{', '.join(differences)} differ"
    return SyncDecision.SKIP, "up to date"


def compare_issues(
    source_issues: Iterable[Issue],
    target_issues: Iterable[Issue],
    source_platform: PlatformType | None = None,
) -> list[Comparison[Issue]]:
    """Compare issues by title, or by number when the target issue already links back to its origin.

    Args:
        source_issues: Issues on the source side
        target_issues: Issues on the target side
        source_platform: Platform of the source side, used to follow provenance markers

    Returns:
        One Comparison per source issue.
    """
    source_list = list(source_issues)
    target_list = list(target_issues)

    linked: dict[int, Issue] = {}
    if source_platform is not None:
        for target_issue in target_list:
            origin = extract_issue_origin(target_issue.body)
            if origin is not None and origin[0] is source_platform:
                linked.setdefault(origin[1], target_issue)

    def issue_key(issue: Issue) -> str:
        return issue.title

    linked_ids = {id(issue) for issue in linked.values()}
    index_by_key(source_list, issue_key, side="source")
    title_index = index_by_key((issue for issue in target_list if id(issue) not in linked_ids), issue_key)

    comparisons: list[Comparison[Issue]] = []
    for source_issue in source_list:
        target_issue = linked.get(source_issue.number) if source_issue.number is not None else None
        key = f"#{source_issue.number}" if target_issue is not None else source_issue.title
        if target_issue is None:
            target_issue = title_index.get(source_issue.title)
        if target_issue is None:
            comparisons.append(Comparison(key, source_issue, None, SyncDecision.CREATE, "missing on target"))
            continue
        action, reason = decide_issue_action(source_issue, target_issue)
        comparisons.append(Comparison(key, source_issue, target_issue, action, reason))
    return comparisons


def _normalized_pr_state(state: str) -> str:
    return "closed" if state in ("closed", "merged") else state


def decide_pull_request_action(source: PullRequest, target: PullRequest) -> tuple[SyncDecision, str]:
    """Close the target when the source was closed or merged, otherwise compare content."""
    source_state = _normalized_pr_state(source.state)
    target_state = _normalized_pr_state(target.state)
    if source_state == "closed" and target_state == "open":
        return SyncDecision.CLOSE, f"source is {source.state}"

    differences = []
    if not compare_field(normalize_body(source.description), normalize_body(target.description)):
        differences.append("description")
    if not compare_label_sets(source.labels, target.labels):
        differences.append("labels")
    if source_state != target_state:
        differences.append("state")
    if differences:
        return SyncDecision.UPDATE, f"{', '.join(differences)} differ"
    return SyncDecision.SKIP, "up to date"


def compare_pull_requests(source_prs: Iterable[PullRequest], target_prs: Iterable[PullRequest]) -> list[Comparison[PullRequest]]:
    """Compare pull requests by title."""
    return compare_entities(source_prs, target_prs, key=lambda pr: pr.title, decide=decide_pull_request_action)


def decide_release_action(source: Release, target: Release) -> tuple[SyncDecision, str]:
    """Act only when the source release is strictly newer."""
    if source.created_at > target.created_at:
        return SyncDecision.UPDATE, "source release is newer"
    return SyncDecision.SKIP, "target release is up to date"


def compare_releases(source_releases: Iterable[Release], target_releases: Iterable[Release]) -> list[Comparison[Release]]:
    """Compare releases by tag."""
    return compare_entities(source_releases, target_releases, key=lambda release: release.tag, decide=decide_release_action)


def decide_tag_action(source: Tag, target: Tag) -> tuple[SyncDecision, str]:
    """Move the tag only when it points elsewhere and the source tag is strictly newer."""
    if source.commit_sha == target.commit_sha:
        return SyncDecision.SKIP, "tag points at the same commit"
    if source.created_at is not None and target.created_at is not None and source.created_at > target.created_at:
        return SyncDecision.UPDATE, "source tag is newer"
    return SyncDecision.SKIP, "target tag is up to date"


def compare_tags(source_tags: Iterable[Tag], target_tags: Iterable[Tag]) -> list[Comparison[Tag]]:
    """Compare tags by name."""
    return compare_entities(source_tags, target_tags, key=lambda tag: tag.name, decide=decide_tag_action)
