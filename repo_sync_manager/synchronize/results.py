"""Contains results of sync runs."""

from typing import Iterable

from repo_sync_manager.synchronize.batch import BatchFailure
from repo_sync_manager.synchronize.models import SyncDecision


class FailedItem:
    """An item that could not be synced."""

    def __init__(self, key: str, error: str) -> None:
        """Initialize the failure with the item key and the error text."""
        self.key = key
        self.error = error

    def __repr__(self) -> str:
        return f"FailedItem(key={self.key!r}, error={self.error!r})"


class EntitySyncReport:
    """Counts of what happened to one entity kind in one direction."""

    def __init__(self, entity_kind: str, direction: str, dry_run: bool = False) -> None:
        """Initialize an empty report."""
        self.entity_kind = entity_kind
        self.direction = direction
        self.dry_run = dry_run
        self.created = 0
        self.updated = 0
        self.closed = 0
        self.skipped = 0
        self.failed: list[FailedItem] = []

    def record(self, action: SyncDecision) -> None:
        """Count an applied (or, in a dry run, planned) action."""
        if action is SyncDecision.CREATE:
            self.created += 1
        elif action is SyncDecision.UPDATE:
            self.updated += 1
        elif action is SyncDecision.CLOSE:
            self.closed += 1
        else:
            self.skipped += 1

    def record_failure(self, key: str, error: str) -> None:
        """Record an item that could not be synced."""
        self.failed.append(FailedItem(key, error))

    def record_batch_failures(self, failures: Iterable[BatchFailure]) -> None:
        """Record every failure of a run_batches call."""
        for failure in failures:
            self.record_failure(failure.key, failure.error)

    @property
    def has_failures(self) -> bool:
        """True if at least one item failed."""
        return bool(self.failed)

    def summary(self) -> str:
        """One-line human-readable summary."""
        prefix = "[dry run] " if self.dry_run else ""
        return (
            f"{prefix}{self.direction} {self.entity_kind}: "
            f"{self.created} created, {self.updated} updated, {self.closed} closed, "
            f"{self.skipped} skipped, {len(self.failed)} failed"
        )


class SyncRunReport:
    """Aggregate report of one sync run across directions and entity kinds."""

    def __init__(self, reports: list[EntitySyncReport] | None = None) -> None:
        """Initialize the report with per-entity reports."""
        self.reports = reports or []

    def add(self, report: EntitySyncReport) -> EntitySyncReport:
        """Append a per-entity report and return it."""
        self.reports.append(report)
        return report

    @property
    def has_failures(self) -> bool:
        """True if any entity kind recorded a failure."""
        return any(report.has_failures for report in self.reports)

    def lines(self) -> list[str]:
        """Summary lines followed by one line per failed item."""
        output = [report.summary() for report in self.reports]
        for report in self.reports:
            for failure in report.failed:
                output.append(f"  FAILED {report.direction} {report.entity_kind} {failure.key}: {failure.error}")
        return output
