"""Utility functions for synchronization logic."""

from typing import Any

from repo_sync_manager.utils.constants import SYNCED_LABEL


def compare_field(source_value: Any, target_value: Any) -> bool:
    """Return True if the values are equal, treating None and empty values as equal."""
    if source_value in (None, "", []) and target_value in (None, "", []):
        return True
    return bool(source_value == target_value)


def normalize_labels(labels: list[str] | None, ignore: tuple[str, ...] = (SYNCED_LABEL,)) -> set[str]:
    """Return the label set with bookkeeping labels removed."""
    return {label for label in labels or [] if label not in ignore}


def compare_label_sets(source_labels: list[str] | None, target_labels: list[str] | None) -> bool:
    """Return True if the label sets match regardless of order."""
    return normalize_labels(source_labels) == normalize_labels(target_labels)


def normalize_body(body: str | None) -> str:
    """Normalize line endings and surrounding whitespace before comparing bodies."""
    return (body or "").replace("\r\n", "\n").strip()
