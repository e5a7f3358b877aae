"""Utility modules for shared functionality."""

from .constants import (
    COMMENT_MARKER_PATTERN,
    ISSUE_MARKER_PATTERN,
    MARKER_VERSION,
    SYNCED_LABEL,
)
from .helpers import matches_any_pattern, matches_pattern, parse_datetime, redact_url
from .retry import retry_on_rate_limit

__all__ = [
    "COMMENT_MARKER_PATTERN",
    "ISSUE_MARKER_PATTERN",
    "MARKER_VERSION",
    "SYNCED_LABEL",
    "matches_pattern",
    "matches_any_pattern",
    "parse_datetime",
    "redact_url",
    "retry_on_rate_limit",
]
