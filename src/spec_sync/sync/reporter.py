"""Sync report formatting functions.

Provides human-readable and machine-readable output for sync operations:

- ``format_sync_report`` -- full post-sync summary.
- ``format_dry_run_preview`` -- dry-run preview grouped by action.
- ``format_status_table`` -- one line per spec with its sync state.
- ``report_to_json`` -- structured dict for JSON output.
"""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from spec_sync.models import SpecDocument

    from .models import SyncReport, SyncResult, SyncStatus

from .models import SyncAction

# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def _target(result: SyncResult) -> str:
    if result.remote_ref is None:
        return ""
    ref = result.remote_ref
    return f" -> {ref.url or ref.id}"


def format_sync_report(report: SyncReport) -> str:
    """Format a complete sync report as human-readable text.

    Sections are only included when they contain at least one result.
    Skipped specs are summarised by count only.

    Args:
        report: The completed sync report.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []

    header = "Sync report"
    if report.dry_run:
        header += " (DRY RUN)"
    lines.append(header)
    lines.append(f"Started: {report.started_at}")
    if report.completed_at:
        lines.append(f"Completed: {report.completed_at}")
    if report.message:
        lines.append(report.message)
    lines.append("")

    lines.append(
        f"Synced {len(report.results)} specs: "
        f"{len(report.created)} created, {len(report.updated)} updated, "
        f"{len(report.pulled)} pulled, {len(report.conflicts)} conflicts, "
        f"{len(report.errors)} errors"
    )
    lines.append("")

    sections = [
        ("Created:", SyncAction.CREATE),
        ("Updated:", SyncAction.UPDATE),
        ("Pulled:", SyncAction.PULL),
    ]
    for title, action in sections:
        done = [
            r for r in report.results if r.action == action and r.success
        ]
        if not done:
            continue
        lines.append(title)
        for r in done:
            lines.append(f"  {r.spec_name}{_target(r)}")
        lines.append("")

    if report.conflicts:
        lines.append("Conflicts:")
        for r in report.conflicts:
            desc = r.error or r.message or "local and remote diverged"
            lines.append(f"  {r.spec_name}: {desc}")
        lines.append("")

    failed = [r for r in report.errors if r.action != SyncAction.CONFLICT]
    if failed:
        lines.append("Errors:")
        for r in failed:
            lines.append(f"  {r.spec_name}: {r.error or r.message}")
        lines.append("")

    if report.skipped:
        lines.append(f"Skipped: {len(report.skipped)} specs (up to date)")
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Dry-run preview
# ------------------------------------------------------------------


def format_dry_run_preview(report: SyncReport) -> str:
    """Format a dry-run preview grouped by action type.

    Each proposed action is shown as ``[ACTION]`` followed by the spec
    names it applies to.

    Args:
        report: A dry-run sync report (``dry_run=True``).

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = ["DRY RUN -- No changes will be made", ""]

    groups: dict[SyncAction, list[SyncResult]] = defaultdict(list)
    for r in report.results:
        groups[r.action].append(r)

    display_order = [
        SyncAction.CREATE,
        SyncAction.UPDATE,
        SyncAction.PULL,
        SyncAction.CONFLICT,
        SyncAction.ERROR,
    ]
    for action in display_order:
        if action not in groups:
            continue
        lines.append(f"[{action.value.upper()}]")
        for r in groups[action]:
            detail = f": {r.message}" if r.message else ""
            lines.append(f"  {r.spec_name}{detail}")
        lines.append("")

    skip_count = len(groups.get(SyncAction.SKIP, []))
    if skip_count > 0:
        lines.append(f"Skipped: {skip_count} specs (unchanged)")
        lines.append("")

    if not any(a != SyncAction.SKIP for a in groups):
        lines.append("No changes needed.")
        lines.append("")

    return "\n".join(lines).rstrip()


# ------------------------------------------------------------------
# Status table
# ------------------------------------------------------------------


def format_status_table(
    statuses: list[tuple[SpecDocument, SyncStatus]],
    verbose: bool = False,
) -> str:
    """Format ``SyncEngine.status_all()`` output as an aligned table.

    Args:
        statuses: ``(document, status)`` pairs.
        verbose: Also list conflict reasons under each spec.

    Returns:
        Multi-line formatted string.
    """
    if not statuses:
        return "No specs found."

    width = max(len(doc.name) for doc, _ in statuses)
    lines: list[str] = []
    for doc, status in statuses:
        remote = f"#{status.remote_id}" if status.remote_id else "-"
        marker = "*" if status.has_changes else " "
        lines.append(
            f"{marker} {doc.name:<{width}}  "
            f"{status.status.value:<8}  {remote}"
        )
        if verbose:
            for reason in status.conflicts:
                lines.append(f"    {reason}")
    return "\n".join(lines)


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def report_to_json(report: SyncReport) -> dict:
    """Convert a sync report to a structured dict for JSON serialisation.

    Args:
        report: The sync report.

    Returns:
        Dict with run info, counts, and per-result details.
    """
    results_list = []
    for r in report.results:
        entry: dict = {
            "spec_name": r.spec_name,
            "action": r.action.value,
            "success": r.success,
        }
        if r.message:
            entry["message"] = r.message
        if r.remote_ref is not None:
            entry["remote"] = r.remote_ref.model_dump(exclude_none=True)
        if r.error:
            entry["error"] = r.error
            entry["error_category"] = r.error_category
        results_list.append(entry)

    return {
        "dry_run": report.dry_run,
        "success": report.success,
        "started_at": report.started_at.isoformat(),
        "completed_at": (
            report.completed_at.isoformat() if report.completed_at else None
        ),
        "counts": {
            "total": len(report.results),
            "created": len(report.created),
            "updated": len(report.updated),
            "pulled": len(report.pulled),
            "conflicts": len(report.conflicts),
            "errors": len(report.errors),
            "skipped": len(report.skipped),
        },
        "results": results_list,
    }
