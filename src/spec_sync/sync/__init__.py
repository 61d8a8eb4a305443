"""Spec-to-record sync engine.

Public API for keeping local spec folders (``specs/NNN-name/spec.md``)
in sync with records on a remote tracker.

Architecture
------------
Identity is **UUID-first**: every ``spec.md`` carries a ``spec_id`` in its
frontmatter and the same UUID is embedded in the remote body as an HTML
comment.  The platform id stored in frontmatter is only a fallback.
Change detection compares the body fingerprint against ``sync_hash``
from the last successful sync.

Modules:

- ``engine``    -- ``SyncEngine``: status, push, pull and batch runs.
- ``models``    -- ``SyncState``, ``SyncAction``, ``SyncOptions``,
  ``SyncStatus``, ``SyncResult``, ``SyncReport``: core data contracts.
- ``resolver``  -- Conflict resolution strategies (ours, theirs, manual,
  interactive).
- ``reporter``  -- Human-readable and JSON report formatting.

Usage example
-------------
::

    from spec_sync.adapters import create_adapter
    from spec_sync.config_loader import load_sync_config
    from spec_sync.core.scanner import SpecScanner
    from spec_sync.sync import (
        SyncEngine,
        SyncOptions,
        format_dry_run_preview,
        format_sync_report,
    )

    config = load_sync_config()
    engine = SyncEngine(
        create_adapter(config),
        SpecScanner(config.specs_root),
        conflict_strategy=config.conflict_strategy,
    )

    # Dry-run first to preview changes
    preview = await engine.sync_all(SyncOptions(dry_run=True))
    print(format_dry_run_preview(preview))

    report = await engine.sync_all()
    print(format_sync_report(report))
"""

from .engine import SyncEngine
from .models import (
    ConflictInfo,
    ConflictStrategy,
    SyncAction,
    SyncOptions,
    SyncReport,
    SyncResult,
    SyncState,
    SyncStatus,
)
from .reporter import (
    format_dry_run_preview,
    format_status_table,
    format_sync_report,
    report_to_json,
)
from .resolver import create_resolver

__all__ = [
    "ConflictInfo",
    "ConflictStrategy",
    "SyncAction",
    "SyncEngine",
    "SyncOptions",
    "SyncReport",
    "SyncResult",
    "SyncState",
    "SyncStatus",
    "create_resolver",
    "format_dry_run_preview",
    "format_status_table",
    "format_sync_report",
    "report_to_json",
]
