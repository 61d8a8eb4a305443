"""Sync engine: drives status, push, pull and conflict handling.

The engine owns the local side.  Adapters only talk to the remote
platform; after every successful push or pull the engine writes the new
``sync_hash``, ``last_sync`` and platform binding back to ``spec.md``.

A failure in one document never stops the others: ``sync_all`` collects
one ``SyncResult`` per document and returns them in a ``SyncReport``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from spec_sync.core import identity
from spec_sync.core import frontmatter as codec
from spec_sync.core.scanner import SpecScanner
from spec_sync.errors import (
    FileOperationError,
    IdentityMismatchError,
    classify_error,
)
from spec_sync.models import (
    CANONICAL_FILENAME,
    RemoteRef,
    SpecDocument,
    SpecFile,
)
from spec_sync.sync.models import (
    IDENTITY_MISMATCH_PREFIX,
    ConflictInfo,
    ConflictStrategy,
    SyncAction,
    SyncOptions,
    SyncReport,
    SyncResult,
    SyncState,
    SyncStatus,
)
from spec_sync.sync.resolver import LOCAL, REMOTE, UNAVAILABLE, create_resolver

if TYPE_CHECKING:
    from spec_sync.adapters.base import SyncAdapter

logger = logging.getLogger(__name__)

INTERACTIVE_UNAVAILABLE = (
    "Interactive conflict resolution is not yet implemented"
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


class SyncEngine:
    """Synchronise local spec folders with one remote platform.

    Args:
        adapter: Platform adapter.
        scanner: Scanner rooted at the specs directory.
        conflict_strategy: Fallback when ``SyncOptions.conflict_strategy``
            is unset.  ``None`` means manual.
    """

    def __init__(
        self,
        adapter: SyncAdapter,
        scanner: SpecScanner,
        conflict_strategy: ConflictStrategy | str | None = None,
    ) -> None:
        self.adapter = adapter
        self.scanner = scanner
        self.conflict_strategy = conflict_strategy

    # ------------------------------------------------------------------
    # Read-only operations
    # ------------------------------------------------------------------

    async def scan_all(self) -> list[SpecDocument]:
        return await self.scanner.scan_all()

    async def get_status(self, doc: SpecDocument) -> SyncStatus:
        """Classify *doc*; platform errors become an ``unknown`` status."""
        if doc.canonical is None:
            return SyncStatus(status=SyncState.UNKNOWN, has_changes=False)
        try:
            return await self.adapter.get_status(doc)
        except Exception as exc:
            info = classify_error(exc)
            logger.error("Status check failed for %s: %s", doc.name, info)
            return SyncStatus(
                status=SyncState.UNKNOWN,
                has_changes=False,
                conflicts=[info.message],
            )

    async def status_all(self) -> list[tuple[SpecDocument, SyncStatus]]:
        """Status of every scanned document, in scan order."""
        documents = await self.scan_all()
        return [(doc, await self.get_status(doc)) for doc in documents]

    async def dry_run(
        self, doc: SpecDocument, options: SyncOptions | None = None
    ) -> SyncResult:
        """Report what ``sync_one`` would do without mutating anything."""
        options = options or SyncOptions()
        if doc.canonical is None:
            return self._missing_canonical(doc, dry_run=True)

        status = await self.get_status(doc)
        if status.status == SyncState.UNKNOWN:
            return SyncResult(
                spec_name=doc.name,
                action=SyncAction.ERROR,
                success=False,
                message="Could not determine sync status",
                error="; ".join(status.conflicts) or None,
                dry_run=True,
            )

        action = self._planned_action(status, options)
        messages = {
            SyncAction.SKIP: "Up to date",
            SyncAction.CONFLICT: "; ".join(status.conflicts) or "Conflict",
            SyncAction.CREATE: "Would create a new record",
            SyncAction.UPDATE: f"Would update record {status.remote_id}",
        }
        return SyncResult(
            spec_name=doc.name,
            action=action,
            success=True,
            message=messages[action],
            dry_run=True,
        )

    @staticmethod
    def _planned_action(
        status: SyncStatus, options: SyncOptions
    ) -> SyncAction:
        if not options.force and not status.has_changes:
            return SyncAction.SKIP
        if status.status == SyncState.CONFLICT and not options.force:
            return SyncAction.CONFLICT
        if status.remote_id is None:
            return SyncAction.CREATE
        return SyncAction.UPDATE

    # ------------------------------------------------------------------
    # Sync
    # ------------------------------------------------------------------

    async def sync_one(
        self, doc: SpecDocument, options: SyncOptions | None = None
    ) -> SyncResult:
        """Sync one document and persist the new sync state locally.

        Never raises for platform or file errors; they come back as a
        failed ``SyncResult``.
        """
        options = options or SyncOptions()
        if options.dry_run:
            return await self.dry_run(doc, options)
        if doc.canonical is None:
            return self._missing_canonical(doc)
        if not await self._check_auth():
            return self._auth_failure(doc.name)

        status = await self.get_status(doc)
        return await self._sync_with_status(doc, status, options)

    async def _sync_with_status(
        self, doc: SpecDocument, status: SyncStatus, options: SyncOptions
    ) -> SyncResult:
        if status.status == SyncState.UNKNOWN:
            return SyncResult(
                spec_name=doc.name,
                action=SyncAction.ERROR,
                success=False,
                message="Could not determine sync status",
                error="; ".join(status.conflicts) or None,
            )
        if not options.force and not status.has_changes:
            return SyncResult(
                spec_name=doc.name,
                action=SyncAction.SKIP,
                success=True,
                message="Up to date",
            )
        if status.status == SyncState.CONFLICT and not options.force:
            return await self._handle_conflict(doc, status, options)
        return await self._push_one(doc, status, options)

    async def sync_all(self, options: SyncOptions | None = None) -> SyncReport:
        """Sync every document under the specs root.

        Unchanged documents are skipped.  When the adapter supports batch
        operations and more than one document needs a push, the pushes go
        through ``push_batch``; otherwise they run one at a time.
        """
        options = options or SyncOptions()
        started = _now()
        documents = await self.scan_all()
        scan_failures = self._scan_failures()

        if options.dry_run:
            previews = [await self.dry_run(doc, options) for doc in documents]
            return self._report(scan_failures + previews, options, started)

        if documents and not await self._check_auth():
            failures = [self._auth_failure(doc.name) for doc in documents]
            return self._report(
                scan_failures + failures,
                options,
                started,
                f"Authentication failed for {self.adapter.platform}",
            )

        results: list[SyncResult | None] = [None] * len(documents)
        pending: list[tuple[int, SpecDocument, SyncStatus]] = []

        for index, doc in enumerate(documents):
            if doc.canonical is None:
                results[index] = self._missing_canonical(doc)
                continue
            status = await self.get_status(doc)
            if self._needs_push(status, options):
                pending.append((index, doc, status))
            else:
                results[index] = await self._sync_with_status(
                    doc, status, options
                )

        if pending:
            for index, result in await self._push_pending(pending, options):
                results[index] = result

        return self._report(
            scan_failures + [r for r in results if r is not None],
            options,
            started,
        )

    @staticmethod
    def _needs_push(status: SyncStatus, options: SyncOptions) -> bool:
        if status.status == SyncState.UNKNOWN:
            return False
        if not options.force and not status.has_changes:
            return False
        return options.force or status.status != SyncState.CONFLICT

    async def _push_pending(
        self,
        pending: list[tuple[int, SpecDocument, SyncStatus]],
        options: SyncOptions,
    ) -> list[tuple[int, SyncResult]]:
        if not (
            self.adapter.capabilities().supports_batch and len(pending) > 1
        ):
            return [
                (index, await self._push_one(doc, status, options))
                for index, doc, status in pending
            ]

        docs = [doc for _, doc, _ in pending]
        try:
            outcomes = await self.adapter.push_batch(docs, options)
        except Exception as exc:
            logger.error("Batch push failed: %s", exc)
            outcomes = [exc] * len(docs)

        results: list[tuple[int, SyncResult]] = []
        for (index, doc, status), outcome in zip(pending, outcomes):
            if isinstance(outcome, Exception):
                results.append((index, self._failure(doc.name, outcome)))
            else:
                action = self._push_action(status)
                results.append(
                    (index, await self._record_push(doc, outcome, action))
                )
        return results

    @staticmethod
    def _push_action(status: SyncStatus) -> SyncAction:
        if status.remote_id is None:
            return SyncAction.CREATE
        return SyncAction.UPDATE

    async def _push_one(
        self,
        doc: SpecDocument,
        status: SyncStatus,
        options: SyncOptions,
        force: bool = False,
    ) -> SyncResult:
        if force and not options.force:
            options = options.model_copy(update={"force": True})
        try:
            ref = await self.adapter.push(doc, options)
        except Exception as exc:
            return self._failure(doc.name, exc)
        return await self._record_push(doc, ref, self._push_action(status))

    async def _record_push(
        self, doc: SpecDocument, ref: RemoteRef, action: SyncAction
    ) -> SyncResult:
        canonical = doc.canonical
        self.adapter.bind_remote_id(canonical.frontmatter, ref)
        codec.mark_synced(canonical, issue_type="parent")
        verb = "Created" if action == SyncAction.CREATE else "Updated"
        return await self._persist(
            doc.name,
            canonical,
            ref,
            action,
            f"{verb} {self.adapter.platform} record {ref.id}",
        )

    async def _persist(
        self,
        spec_name: str,
        file: SpecFile,
        ref: RemoteRef,
        action: SyncAction,
        message: str,
    ) -> SyncResult:
        try:
            await self.scanner.write_spec_file(file)
        except FileOperationError as exc:
            logger.error(
                "Synced %s but could not save %s: %s",
                spec_name,
                file.path,
                exc,
            )
            return SyncResult(
                spec_name=spec_name,
                action=action,
                success=False,
                message=f"{message}, but sync state was not saved",
                remote_ref=ref,
                error=f"Could not write {file.path}: {exc}",
                error_category="filesystem",
            )
        logger.info("%s: %s", spec_name, message)
        return SyncResult(
            spec_name=spec_name,
            action=action,
            success=True,
            message=message,
            remote_ref=ref,
        )

    # ------------------------------------------------------------------
    # Conflicts
    # ------------------------------------------------------------------

    async def _handle_conflict(
        self, doc: SpecDocument, status: SyncStatus, options: SyncOptions
    ) -> SyncResult:
        strategy = options.conflict_strategy or self.conflict_strategy
        try:
            resolver = create_resolver(strategy)
        except ValueError as exc:
            return self._failure(doc.name, exc, SyncAction.CONFLICT)

        conflict = ConflictInfo(
            spec_name=doc.name,
            remote_id=status.remote_id,
            conflicts=status.conflicts,
        )
        decision = resolver.resolve(conflict)

        if decision == LOCAL:
            return await self._push_one(doc, status, options, force=True)
        if decision == REMOTE:
            return await self._take_remote(doc, status, options)
        if decision == UNAVAILABLE:
            return SyncResult(
                spec_name=doc.name,
                action=SyncAction.CONFLICT,
                success=False,
                message=INTERACTIVE_UNAVAILABLE,
                error=INTERACTIVE_UNAVAILABLE,
                error_category="conflict",
            )

        reason = "; ".join(status.conflicts) or "Local and remote diverged"
        return SyncResult(
            spec_name=doc.name,
            action=SyncAction.CONFLICT,
            success=False,
            message="Conflict requires manual resolution",
            error=reason,
            error_category="conflict",
        )

    async def _take_remote(
        self, doc: SpecDocument, status: SyncStatus, options: SyncOptions
    ) -> SyncResult:
        """Overwrite the local ``spec.md`` body with the remote content."""
        mismatch = any(
            c.startswith(IDENTITY_MISMATCH_PREFIX) for c in status.conflicts
        )
        if mismatch:
            # spec_id never changes once assigned
            message = (
                "Remote record belongs to a different spec_id; "
                "resolve with 'ours' or fix the binding by hand"
            )
            return SyncResult(
                spec_name=doc.name,
                action=SyncAction.CONFLICT,
                success=False,
                message=message,
                error="; ".join(status.conflicts),
                error_category="conflict",
            )

        ref = RemoteRef(id=status.remote_id)
        try:
            remote = await self.adapter.pull(ref, options)
            winner = await self.adapter.resolve_conflict(
                doc, remote, ConflictStrategy.THEIRS.value
            )
        except Exception as exc:
            return self._failure(doc.name, exc)

        canonical = doc.canonical
        canonical.markdown = winner.canonical.markdown
        self.adapter.bind_remote_id(canonical.frontmatter, ref)
        codec.mark_synced(canonical, issue_type="parent")
        return await self._persist(
            doc.name,
            canonical,
            ref,
            SyncAction.PULL,
            f"Replaced local content with {self.adapter.platform} "
            f"record {ref.id}",
        )

    # ------------------------------------------------------------------
    # Pull
    # ------------------------------------------------------------------

    async def pull(
        self, ref: RemoteRef, options: SyncOptions | None = None
    ) -> SyncResult:
        """Write a remote record to the local tree.

        The target folder is the local spec with the same spec_id, then
        the one bound to the same platform id.  When neither exists a new
        ``NNN-<name>`` folder is created.  Local edits that were never
        synced are kept unless ``options.force`` is set.
        """
        options = options or SyncOptions()
        label = f"{self.adapter.platform}#{ref.id}"
        try:
            remote = await self.adapter.pull(ref, options)
        except Exception as exc:
            return self._failure(label, exc)

        remote_file = remote.canonical
        local = await self._find_local(ref, remote_file.frontmatter.spec_id)

        if local is None:
            return await self._pull_new(ref, remote, options)

        canonical = local.canonical
        if canonical is None:
            canonical = SpecFile(
                path=local.path / CANONICAL_FILENAME,
                filename=CANONICAL_FILENAME,
                content="",
                markdown="",
                frontmatter=remote_file.frontmatter.model_copy(deep=True),
            )
        elif (
            not options.force
            and codec.has_changed(canonical)
            and canonical.markdown.strip() != remote_file.markdown.strip()
        ):
            return SyncResult(
                spec_name=local.name,
                action=SyncAction.CONFLICT,
                success=False,
                message="Local changes have not been pushed",
                error=(
                    f"{canonical.path} has unsynced edits; "
                    "push first or pull with force"
                ),
                error_category="conflict",
                dry_run=options.dry_run,
            )

        if options.dry_run:
            return SyncResult(
                spec_name=local.name,
                action=SyncAction.PULL,
                success=True,
                message=f"Would update {canonical.path} from {label}",
                remote_ref=ref,
                dry_run=True,
            )

        canonical.markdown = remote_file.markdown
        if not identity.is_valid(canonical.frontmatter.spec_id):
            canonical.frontmatter.spec_id = (
                remote_file.frontmatter.spec_id or identity.generate()
            )
        self.adapter.bind_remote_id(canonical.frontmatter, ref)
        codec.mark_synced(canonical, issue_type="parent")
        return await self._persist(
            local.name,
            canonical,
            ref,
            SyncAction.PULL,
            f"Pulled {label} into {local.name}",
        )

    async def _find_local(
        self, ref: RemoteRef, spec_id: str | None
    ) -> SpecDocument | None:
        if spec_id:
            doc = await self.scanner.find_by_spec_id(spec_id)
            if doc is not None:
                return doc
        doc = await self.scanner.find_by_remote_id(
            ref.id, platform=self.adapter.platform
        )
        if doc is None:
            return None
        if spec_id and doc.spec_id and doc.spec_id != spec_id:
            # Matched by folder number only; it is a different spec
            logger.debug(
                "%s matches record %s by number but not by spec_id",
                doc.name,
                ref.id,
            )
            return None
        return doc

    async def _pull_new(
        self, ref: RemoteRef, remote: SpecDocument, options: SyncOptions
    ) -> SyncResult:
        number = self.scanner.next_directory_number()
        name = f"{number:03d}-{remote.name}"
        label = f"{self.adapter.platform}#{ref.id}"

        if options.dry_run:
            return SyncResult(
                spec_name=name,
                action=SyncAction.PULL,
                success=True,
                message=f"Would create {name} from {label}",
                remote_ref=ref,
                dry_run=True,
            )

        try:
            folder = await self.scanner.create_spec_directory(name)
        except FileOperationError as exc:
            return self._failure(name, exc)

        fm = remote.canonical.frontmatter.model_copy(deep=True)
        if not identity.is_valid(fm.spec_id):
            fm.spec_id = identity.generate()
        spec_file = SpecFile(
            path=folder / CANONICAL_FILENAME,
            filename=CANONICAL_FILENAME,
            content="",
            markdown=remote.canonical.markdown,
            frontmatter=fm,
        )
        self.adapter.bind_remote_id(fm, ref)
        codec.mark_synced(spec_file, issue_type="parent")
        return await self._persist(
            name,
            spec_file,
            ref,
            SyncAction.PULL,
            f"Created {name} from {label}",
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _check_auth(self) -> bool:
        try:
            return await self.adapter.check_auth()
        except Exception as exc:
            logger.error("Auth check raised: %s", classify_error(exc))
            return False

    def _auth_failure(self, spec_name: str) -> SyncResult:
        message = f"Authentication failed for {self.adapter.platform}"
        return SyncResult(
            spec_name=spec_name,
            action=SyncAction.ERROR,
            success=False,
            message=message,
            error=message,
            error_category="auth",
        )

    @staticmethod
    def _missing_canonical(
        doc: SpecDocument, dry_run: bool = False
    ) -> SyncResult:
        return SyncResult(
            spec_name=doc.name,
            action=SyncAction.ERROR,
            success=False,
            message=f"No {CANONICAL_FILENAME} in {doc.path}",
            error=f"No {CANONICAL_FILENAME} file found",
            error_category="validation",
            dry_run=dry_run,
        )

    @staticmethod
    def _failure(
        spec_name: str,
        exc: BaseException,
        action: SyncAction | None = None,
    ) -> SyncResult:
        info = classify_error(exc)
        if action is None:
            action = (
                SyncAction.CONFLICT
                if isinstance(exc, IdentityMismatchError)
                else SyncAction.ERROR
            )
        logger.error("Sync failed for %s: %s", spec_name, info.message)
        return SyncResult(
            spec_name=spec_name,
            action=action,
            success=False,
            message=info.message,
            error=info.message,
            error_category=info.category,
        )

    def _scan_failures(self) -> list[SyncResult]:
        results = []
        for exc in self.scanner.errors:
            name = str(exc)
            if exc.path is not None:
                name = exc.path.parent.name
            results.append(self._failure(name, exc))
        return results

    @staticmethod
    def _report(
        results: list[SyncResult],
        options: SyncOptions,
        started: datetime,
        message: str | None = None,
    ) -> SyncReport:
        report = SyncReport(
            results=results,
            dry_run=options.dry_run,
            started_at=started,
            completed_at=_now(),
            message=message,
        )
        logger.info("Sync finished: %s", report.summary())
        return report
