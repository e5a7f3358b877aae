"""Idempotency markers embedded in mirrored issues and comments.

Nothing is persisted between runs, so the only record that a comment or issue was already mirrored is a
marker written into the mirrored body itself. Every body written by this module ends with an HTML comment
such as::

    <!-- repo-sync:origin format=quoted platform=github id=123 v=1 -->

The HTML comment is invisible when rendered on both platforms and carries everything needed to find the
origin again. Bodies written before markers were versioned only carried the human-readable attribution
(``💬 Comment by @...`` or ``Synced from ...``) and a source link, so those are still recognized. The
origin ID of such a legacy body can only be recovered when its source link survived. Changing the marker
layout makes older markers unrecoverable, so any new layout must bump ``MARKER_VERSION`` and keep
matching the previous one.
"""

import re
from dataclasses import dataclass
from datetime import datetime

from repo_sync_manager.configuration.models import CommentFormat, PlatformType
from repo_sync_manager.schemas.entities import Comment
from repo_sync_manager.utils.constants import (
    COMMENT_MARKER_PATTERN,
    ISSUE_MARKER_PATTERN,
    LEGACY_COMMENT_ID_PATTERN,
    LEGACY_COMMENT_SIGNATURES,
    MARKER_VERSION,
)

_MENTION_PATTERN = re.compile(r"@(?=\w)")
_REFERENCE_PATTERN = re.compile(r"#(?=\d)")
_ESCAPED_PATTERN = re.compile(r"\\([\\@#])")
_QUOTED_FOOTER_PATTERN = re.compile(r"\n---\n\*Synced from (?:GitHub|GitLab) on [^*]*\*$")
_INLINE_PREFIX_PATTERN = re.compile(r"^\*\*@[^*\n]+\*\* \((?:GitHub|GitLab)\): (?:\[🔗\]\([^)\s]*\) )?", re.DOTALL)
_MINIMAL_SUFFIX_PATTERN = re.compile(r" — @\S+$")
_ISSUE_PROVENANCE_PATTERN = re.compile(r"\n*(?:---\n)?\*\*Original Issue\*\*: \[[^\n]*\]\([^)\s]*\)\n?" + ISSUE_MARKER_PATTERN.pattern + r"\s*$")


@dataclass(frozen=True)
class IdempotencyMarker:
    """Origin details recovered from a mirrored body."""

    origin_format: CommentFormat | None
    origin_id: int | None
    origin_platform: PlatformType | None


def _comment_marker(origin_id: int, origin_platform: PlatformType, format: CommentFormat) -> str:
    return f"<!-- repo-sync:origin format={format.value} platform={origin_platform.value} id={origin_id} v={MARKER_VERSION} -->"


def escape_mentions(body: str) -> str:
    """Escape @mentions and #references so mirrored text does not notify users or cross-link issues."""
    # Backslashes are doubled first so text that was already escaped survives the round trip.
    body = body.replace("\\", "\\\\")
    body = _MENTION_PATTERN.sub(r"\\@", body)
    return _REFERENCE_PATTERN.sub(r"\\#", body)


def unescape_mentions(body: str) -> str:
    """Reverse escape_mentions."""
    return _ESCAPED_PATTERN.sub(r"\1", body)


def is_marked(body: str | None) -> bool:
    """Return True if the body carries a comment marker or a legacy sync signature."""
    if not body:
        return False
    if COMMENT_MARKER_PATTERN.search(body):
        return True
    return any(signature in body for signature in LEGACY_COMMENT_SIGNATURES)


def extract_marker(body: str | None) -> IdempotencyMarker | None:
    """Recover the origin details of a mirrored comment, or None if the body is not marked."""
    if not body:
        return None
    match = COMMENT_MARKER_PATTERN.search(body)
    if match:
        return IdempotencyMarker(
            origin_format=CommentFormat(match.group("format")),
            origin_id=int(match.group("id")),
            origin_platform=PlatformType(match.group("platform")),
        )
    if not is_marked(body):
        return None
    legacy = LEGACY_COMMENT_ID_PATTERN.search(body)
    if legacy is None:
        return IdempotencyMarker(origin_format=None, origin_id=None, origin_platform=None)
    github_id, gitlab_id = legacy.groups()
    if github_id is not None:
        return IdempotencyMarker(origin_format=None, origin_id=int(github_id), origin_platform=PlatformType.GITHUB)
    return IdempotencyMarker(origin_format=None, origin_id=int(gitlab_id), origin_platform=PlatformType.GITLAB)


def extract_origin_id(body: str | None) -> int | None:
    """Return the origin comment ID embedded in a mirrored body."""
    marker = extract_marker(body)
    return marker.origin_id if marker else None


def embed_marker(
    body: str,
    origin_id: int,
    origin_author: str,
    origin_platform: PlatformType,
    format: CommentFormat = CommentFormat.QUOTED,
    source_url: str | None = None,
    synced_at: datetime | None = None,
    include_author: bool = True,
    include_timestamp: bool = True,
    include_source_link: bool = True,
    preserve_formatting: bool = True,
) -> str:
    """Render a source comment for the target and append its origin marker.

    Args:
        body: Raw comment body from the source platform
        origin_id: Comment (GitHub) or note (GitLab) ID on the source platform
        origin_author: Username of the comment author
        origin_platform: Platform the comment was written on
        format: Rendering style for the attribution
        source_url: Link back to the original comment
        synced_at: Timestamp shown in the quoted footer, defaults to now
        include_author: Add the author attribution (minimal format only, the others always name the author)
        include_timestamp: Add the "Synced from" footer (quoted format only)
        include_source_link: Link back to the original comment when a URL is known
        preserve_formatting: Escape @mentions and #references

    Returns:
        The body to write on the target platform.
    """
    content = escape_mentions(body) if preserve_formatting else body
    platform_name = origin_platform.display_name
    link = source_url if include_source_link and source_url else None

    if format is CommentFormat.QUOTED:
        header = f"**💬 Comment by @{origin_author} on {platform_name}**"
        if link:
            header += f" ([original]({link}))"
        quoted = "\n".join(f"> {line}" if line else ">" for line in content.split("\n"))
        rendered = f"{header}\n\n{quoted}"
        if include_timestamp:
            date = (synced_at or datetime.now()).strftime("%Y-%m-%d")
            rendered += f"\n\n---\n*Synced from {platform_name} on {date}*"
    elif format is CommentFormat.INLINE:
        rendered = f"**@{origin_author}** ({platform_name}): "
        if link:
            rendered += f"[🔗]({link}) "
        rendered += content
    else:
        rendered = content
        if include_author:
            rendered += f" — @{origin_author}"

    return f"{rendered}\n\n{_comment_marker(origin_id, origin_platform, format)}"


def strip_marker(body: str | None) -> str | None:
    """Recover the original comment text from a body written by embed_marker.

    Returns None when the body carries no versioned marker, since legacy bodies cannot be unwrapped
    reliably.
    """
    if not body:
        return None
    match = COMMENT_MARKER_PATTERN.search(body)
    if match is None:
        return None
    format = CommentFormat(match.group("format"))
    rendered = body[: match.start()].rstrip("\n")

    if format is CommentFormat.QUOTED:
        rendered = _QUOTED_FOOTER_PATTERN.sub("", rendered)
        lines = rendered.split("\n")
        quoted = [line for line in lines if line.startswith(">")]
        if not quoted:
            return None
        content = "\n".join(line[2:] if line.startswith("> ") else line[1:] for line in quoted)
    elif format is CommentFormat.INLINE:
        prefix = _INLINE_PREFIX_PATTERN.match(rendered)
        if prefix is None:
            return None
        content = rendered[prefix.end() :]
    else:
        content = _MINIMAL_SUFFIX_PATTERN.sub("", rendered)

    return unescape_mentions(content)


def needs_update(source_comment: Comment, target_comment: Comment) -> bool:
    """Return True if the mirrored target comment no longer matches its source.

    When the target body cannot be unwrapped the answer is True, preferring an overwrite over a
    silently missed edit.
    """
    original = strip_marker(target_comment.body)
    if original is None:
        return True
    return original.strip() != source_comment.body.strip()


def embed_issue_provenance(body: str, origin_number: int, origin_platform: PlatformType, title: str, source_url: str) -> str:
    """Append the original issue link and the issue marker to a mirrored issue body."""
    footer = f"**Original Issue**: [{title}]({source_url})"
    marker = f"<!-- repo-sync:issue platform={origin_platform.value} number={origin_number} v={MARKER_VERSION} -->"
    if body:
        return f"{body}\n\n---\n{footer}\n{marker}"
    return f"{footer}\n{marker}"


def extract_issue_origin(body: str | None) -> tuple[PlatformType, int] | None:
    """Return the platform and number of the issue a mirrored issue was created from."""
    if not body:
        return None
    match = ISSUE_MARKER_PATTERN.search(body)
    if match is None:
        return None
    return PlatformType(match.group("platform")), int(match.group("number"))


def strip_issue_provenance(body: str | None) -> str:
    """Remove the provenance footer from a mirrored issue body."""
    if not body:
        return ""
    return _ISSUE_PROVENANCE_PATTERN.sub("", body)
