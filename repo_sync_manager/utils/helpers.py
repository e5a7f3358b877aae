"""General utility functions and helper classes."""

import fnmatch
import re
from datetime import datetime, timezone
from typing import Any
from urllib.parse import urlsplit, urlunsplit


def matches_pattern(name: str, pattern: str) -> bool:
    """Match a name against a glob, or against a regular expression when the pattern starts with '^'."""
    if pattern.startswith("^"):
        return re.match(pattern, name) is not None
    return fnmatch.fnmatchcase(name, pattern)


def matches_any_pattern(name: str, patterns: list[str]) -> bool:
    """Return True if the name matches at least one of the patterns."""
    return any(matches_pattern(name, pattern) for pattern in patterns)


def ensure_aware(value: datetime) -> datetime:
    """Attach UTC to naive datetimes so that values from both platforms compare cleanly."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_datetime(value: Any) -> datetime | None:
    """Parse an ISO 8601 timestamp (or pass through a datetime) into an aware datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_aware(value)
    text = str(value)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return ensure_aware(datetime.fromisoformat(text))


def redact_url(url: str) -> str:
    """Remove credentials from a URL so it can be logged."""
    parts = urlsplit(url)
    if not parts.username and not parts.password:
        return url
    host = parts.hostname or ""
    if parts.port:
        host = f"{host}:{parts.port}"
    return urlunsplit((parts.scheme, f"***@{host}", parts.path, parts.query, parts.fragment))


def omit_null_parameters(**kwargs: Any) -> dict[str, Any]:
    """Omit parameters that are None."""
    return {k: v for k, v in kwargs.items() if v is not None}
