"""Pydantic models for the sync engine.

Defines the data contracts shared by the engine, the resolvers and the
reporter:

- ``SyncState``: Derived per-document state.
- ``SyncAction``: What the engine did (or would do) for one document.
- ``ConflictStrategy``: How conflicts are settled.
- ``SyncOptions``: Caller-supplied switches for one run.
- ``SyncStatus``: Result of classifying one document.
- ``SyncResult``: Outcome of syncing one document.
- ``SyncReport``: Aggregate results for a batch run.
- ``ConflictInfo``: Details handed to a conflict resolver.

All models are frozen (immutable) for safety.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel

from spec_sync.models import RemoteRef

# Leading text of the conflict reason for an identity mismatch.
IDENTITY_MISMATCH_PREFIX = "UUID mismatch"


class SyncState(str, Enum):
    """Derived sync state of one document."""

    UNKNOWN = "unknown"
    DRAFT = "draft"
    SYNCED = "synced"
    CONFLICT = "conflict"


class SyncAction(str, Enum):
    """Possible outcomes for one document."""

    CREATE = "create"
    UPDATE = "update"
    SKIP = "skip"
    CONFLICT = "conflict"
    PULL = "pull"
    ERROR = "error"


class ConflictStrategy(str, Enum):
    """Conflict strategies accepted in config and options."""

    MANUAL = "manual"
    THEIRS = "theirs"
    OURS = "ours"
    INTERACTIVE = "interactive"


class SyncOptions(BaseModel):
    """Switches for a sync run.

    Attributes:
        dry_run: Report what would happen without mutating anything.
        force: Push even when unchanged, and override identity mismatches.
        conflict_strategy: How to settle conflicts (``None`` means manual).
        verbose: Include conflict details in status output.
    """

    dry_run: bool = False
    force: bool = False
    conflict_strategy: ConflictStrategy | None = None
    verbose: bool = False

    model_config = {"frozen": True}


class SyncStatus(BaseModel):
    """Classification of one document against its remote record.

    Attributes:
        status: Derived state.
        has_changes: Whether a push is needed.
        remote_id: Platform id of the bound record, if any.
        last_sync: Timestamp of the last successful sync, if any.
        conflicts: Human-readable conflict reasons.
    """

    status: SyncState
    has_changes: bool
    remote_id: int | str | None = None
    last_sync: datetime | None = None
    conflicts: list[str] = []

    model_config = {"frozen": True}


class SyncResult(BaseModel):
    """Outcome of syncing one document.

    Attributes:
        spec_name: Spec folder name.
        action: What was (or would be) done.
        success: Whether the operation succeeded.
        message: Short human-readable outcome.
        remote_ref: Bound remote record after a push or pull.
        error: Redacted error message when ``success`` is False.
        error_category: Category from ``classify_error``.
        dry_run: True when nothing was mutated.
    """

    spec_name: str
    action: SyncAction
    success: bool
    message: str = ""
    remote_ref: RemoteRef | None = None
    error: str | None = None
    error_category: str | None = None
    dry_run: bool = False

    model_config = {"frozen": True}


class ConflictInfo(BaseModel):
    """Details about one conflicting document.

    Attributes:
        spec_name: Spec folder name.
        remote_id: Platform id of the conflicting record.
        conflicts: Human-readable conflict reasons.
    """

    spec_name: str
    remote_id: int | str | None = None
    conflicts: list[str] = []

    model_config = {"frozen": True}


class SyncReport(BaseModel):
    """Aggregate report for a batch run.

    Attributes:
        results: One result per scanned document.
        dry_run: Whether this was a dry run.
        started_at: When the run started (UTC).
        completed_at: When the run finished (UTC).
        message: Optional run-level note (e.g. authentication failure).
    """

    results: list[SyncResult] = []
    dry_run: bool = False
    started_at: datetime
    completed_at: datetime | None = None
    message: str | None = None

    model_config = {"frozen": True}

    def _names(self, action: SyncAction) -> list[str]:
        return [
            r.spec_name
            for r in self.results
            if r.action == action and r.success
        ]

    @property
    def created(self) -> list[str]:
        """Names of specs whose remote record was created."""
        return self._names(SyncAction.CREATE)

    @property
    def updated(self) -> list[str]:
        """Names of specs whose remote record was updated."""
        return self._names(SyncAction.UPDATE)

    @property
    def skipped(self) -> list[str]:
        """Names of specs that were already up to date."""
        return self._names(SyncAction.SKIP)

    @property
    def pulled(self) -> list[str]:
        """Names of specs overwritten from the remote side."""
        return self._names(SyncAction.PULL)

    @property
    def conflicts(self) -> list[SyncResult]:
        """Results left in conflict."""
        return [
            r for r in self.results if r.action == SyncAction.CONFLICT
        ]

    @property
    def errors(self) -> list[SyncResult]:
        """Results where success is False."""
        return [r for r in self.results if not r.success]

    @property
    def success(self) -> bool:
        return not self.errors

    def summary(self) -> str:
        """Format a human-readable summary of the run.

        Returns:
            Multi-line summary string with counts by action.
        """
        lines = [
            "Sync report" + (" (dry run)" if self.dry_run else ""),
            f"  Created:   {len(self.created)}",
            f"  Updated:   {len(self.updated)}",
            f"  Pulled:    {len(self.pulled)}",
            f"  Skipped:   {len(self.skipped)}",
            f"  Conflicts: {len(self.conflicts)}",
            f"  Errors:    {len(self.errors)}",
            f"  Total:     {len(self.results)}",
        ]
        if self.message:
            lines.insert(1, f"  {self.message}")
        return "\n".join(lines)
