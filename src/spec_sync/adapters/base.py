"""Remote adapter contract and the record-based implementation.

``SyncAdapter`` is the interface the engine depends on.  Optional
behaviour (batch pushes, subtasks, comments, close/reopen) is advertised
through ``capabilities()`` so the engine never inspects adapter types.

``RecordAdapter`` implements the whole contract on top of a handful of
record primitives (search by spec_id, fetch, create, update).  Concrete
platforms only supply those primitives.  Identity resolution is
UUID-first:

1. Search for a record whose body embeds the local ``spec_id`` marker.
   A hit is authoritative whatever the stored platform id says.
2. Otherwise fetch the record by the stored platform id.
3. If that record embeds a *different* spec_id, the document is in
   identity conflict: ``push`` refuses unless ``force`` is set, in which
   case the record is taken over and its marker rewritten.
4. Nothing found: the document is new.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Literal

from pydantic import BaseModel

from spec_sync.adapters.mapper import SpecMapper
from spec_sync.config_schema import GitHubLabels, LabelValue
from spec_sync.core import frontmatter as codec
from spec_sync.core import identity
from spec_sync.core.async_utils import gather_limited
from spec_sync.errors import (
    AdapterError,
    ConflictError,
    IdentityMismatchError,
    UnsupportedOperationError,
)
from spec_sync.models import (
    SUBTASK_FILES,
    AdapterCapabilities,
    RemoteRecord,
    RemoteRef,
    SpecDocument,
    SpecFile,
    file_type_for,
)
from spec_sync.schemas import Frontmatter
from spec_sync.sync.models import (
    IDENTITY_MISMATCH_PREFIX,
    SyncOptions,
    SyncState,
    SyncStatus,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENT_CREATES = 5


class IdentityResolution(BaseModel):
    """Outcome of the UUID-first lookup for one canonical file.

    Attributes:
        record: The bound remote record, if any.
        matched_by: Which step found it.
        mismatch_spec_id: spec_id embedded in a record found by platform id
            that disagrees with the local one.
    """

    record: RemoteRecord | None = None
    matched_by: Literal["spec_id", "remote_id"] | None = None
    mismatch_spec_id: str | None = None

    model_config = {"frozen": True}

    @property
    def found(self) -> bool:
        return self.record is not None

    @property
    def mismatch(self) -> bool:
        return self.mismatch_spec_id is not None


def normalize_list(value: LabelValue | None) -> list[str]:
    if not value:
        return []
    return [value] if isinstance(value, str) else list(value)


# ---------------------------------------------------------------------------
# Contract
# ---------------------------------------------------------------------------


class SyncAdapter(ABC):
    """Interface for one remote platform."""

    platform: str = ""

    @abstractmethod
    async def check_auth(self) -> bool:
        """Return True when the platform credentials work."""

    @abstractmethod
    async def push(
        self, doc: SpecDocument, options: SyncOptions | None = None
    ) -> RemoteRef:
        """Create or update the record bound to *doc*."""

    @abstractmethod
    async def pull(
        self, ref: RemoteRef, options: SyncOptions | None = None
    ) -> SpecDocument:
        """Materialise a ``SpecDocument`` from a remote record."""

    @abstractmethod
    async def get_status(self, doc: SpecDocument) -> SyncStatus:
        """Classify *doc* against its remote record (read-only)."""

    @abstractmethod
    async def resolve_conflict(
        self,
        local: SpecDocument,
        remote: SpecDocument,
        strategy: str | None = None,
    ) -> SpecDocument:
        """Return the winning document for *strategy*."""

    @abstractmethod
    def capabilities(self) -> AdapterCapabilities:
        """Describe the optional behaviour this adapter supports."""

    # ------------------------------------------------------------------
    # Optional operations
    # ------------------------------------------------------------------

    async def push_batch(
        self, docs: list[SpecDocument], options: SyncOptions | None = None
    ) -> list[RemoteRef | Exception]:
        """Push documents one by one.

        Returns one entry per input document, in input order: the bound
        ``RemoteRef`` or the exception that document failed with.
        """
        results: list[RemoteRef | Exception] = []
        for doc in docs:
            try:
                results.append(await self.push(doc, options))
            except Exception as exc:
                logger.error("Push failed for %s: %s", doc.name, exc)
                results.append(exc)
        return results

    async def pull_batch(
        self, refs: list[RemoteRef], options: SyncOptions | None = None
    ) -> list[SpecDocument | Exception]:
        results: list[SpecDocument | Exception] = []
        for ref in refs:
            try:
                results.append(await self.pull(ref, options))
            except Exception as exc:
                logger.error("Pull failed for %s: %s", ref.id, exc)
                results.append(exc)
        return results

    async def create_subtask(
        self,
        parent: RemoteRef,
        title: str,
        body: str,
        file_type: str = "task",
    ) -> RemoteRef:
        raise UnsupportedOperationError(
            f"Subtasks not supported by the {self.platform} adapter"
        )

    async def get_subtasks(self, parent: RemoteRef) -> list[RemoteRef]:
        return []

    async def add_comment(self, ref: RemoteRef, body: str) -> None:
        raise UnsupportedOperationError(
            f"Comments not supported by the {self.platform} adapter"
        )

    async def close(self, ref: RemoteRef) -> None:
        raise UnsupportedOperationError(
            f"State management not supported by the {self.platform} adapter"
        )

    async def reopen(self, ref: RemoteRef) -> None:
        raise UnsupportedOperationError(
            f"State management not supported by the {self.platform} adapter"
        )

    # ------------------------------------------------------------------
    # Frontmatter binding
    # ------------------------------------------------------------------

    def stored_remote_id(self, fm: Frontmatter) -> int | str | None:
        """Platform id stored in *fm*, or None."""
        return None

    def bind_remote_id(self, fm: Frontmatter, ref: RemoteRef) -> None:
        """Store *ref*'s id in *fm*'s platform block."""


# ---------------------------------------------------------------------------
# Record-based implementation
# ---------------------------------------------------------------------------


class RecordAdapter(SyncAdapter):
    """``SyncAdapter`` built on record primitives.

    Args:
        mapper: Converts between spec documents and record title/body.
        labels: Labels per file type; ``common`` goes on every record.
        assignees: Assignees applied during batch metadata updates.
        max_concurrent_creates: Upper bound on parallel record creations
            in ``push_batch``.
    """

    def __init__(
        self,
        mapper: SpecMapper,
        labels: GitHubLabels | None = None,
        assignees: LabelValue | None = None,
        max_concurrent_creates: int = DEFAULT_MAX_CONCURRENT_CREATES,
    ) -> None:
        if max_concurrent_creates < 1:
            raise ValueError("max_concurrent_creates must be at least 1")
        self.mapper = mapper
        self.labels = labels or GitHubLabels()
        self.assignees = normalize_list(assignees)
        self.max_concurrent_creates = max_concurrent_creates

    # ------------------------------------------------------------------
    # Primitives supplied by each platform
    # ------------------------------------------------------------------

    @abstractmethod
    async def search_by_spec_id(self, spec_id: str) -> RemoteRecord | None:
        """Find the record whose body embeds the marker for *spec_id*."""

    @abstractmethod
    async def fetch_record(self, record_id: int | str) -> RemoteRecord | None:
        """Fetch a record by platform id; None when it does not exist."""

    @abstractmethod
    async def create_record(
        self, title: str, body: str, labels: list[str]
    ) -> int | str:
        """Create a record and return its platform id."""

    @abstractmethod
    async def update_record(
        self, record_id: int | str, title: str, body: str
    ) -> None:
        """Replace a record's title and body."""

    @abstractmethod
    def record_url(self, record_id: int | str) -> str | None:
        """Browser URL for a record."""

    async def batch_update_metadata(
        self,
        record_ids: list[int | str],
        labels: list[str],
        assignees: list[str],
    ) -> None:
        raise UnsupportedOperationError(
            "Batch metadata updates not supported by the "
            f"{self.platform} adapter"
        )

    async def ensure_labels(self, labels: list[str]) -> None:
        """Make sure *labels* exist remotely (no-op by default)."""

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def labels_for(self, file_type: str) -> list[str]:
        common = normalize_list(self.labels.common)
        specific = normalize_list(getattr(self.labels, file_type, None))
        merged = common + (specific or [file_type])
        return list(dict.fromkeys(merged))

    def _ref(self, record_id: int | str, kind: str = "parent") -> RemoteRef:
        return RemoteRef(
            id=record_id, type=kind, url=self.record_url(record_id)
        )

    @staticmethod
    def _canonical(doc: SpecDocument) -> SpecFile:
        canonical = doc.canonical
        if canonical is None:
            raise AdapterError(f"No spec.md file found in {doc.name}")
        return canonical

    def _render(
        self, doc: SpecDocument, canonical: SpecFile
    ) -> tuple[str, str]:
        title = self.mapper.generate_title(doc.name, "spec")
        body = self.mapper.generate_body(canonical.markdown, doc)
        spec_id = canonical.frontmatter.spec_id
        if identity.is_valid(spec_id):
            body = identity.embed(body, spec_id)
        return title, body

    # ------------------------------------------------------------------
    # Identity resolution
    # ------------------------------------------------------------------

    async def resolve_identity(
        self, canonical: SpecFile
    ) -> IdentityResolution:
        """Locate the record bound to *canonical* (UUID first)."""
        fm = canonical.frontmatter
        spec_id = fm.spec_id.lower() if identity.is_valid(fm.spec_id) else None
        stored_id = self.stored_remote_id(fm)

        if spec_id:
            record = await self.search_by_spec_id(spec_id)
            if record is not None:
                logger.debug("Matched %s by spec_id", record.id)
                return IdentityResolution(record=record, matched_by="spec_id")

        if stored_id is not None:
            record = await self.fetch_record(stored_id)
            if record is not None:
                remote_spec_id = identity.extract(record.body)
                mismatch = (
                    remote_spec_id
                    if spec_id and remote_spec_id and remote_spec_id != spec_id
                    else None
                )
                return IdentityResolution(
                    record=record,
                    matched_by="remote_id",
                    mismatch_spec_id=mismatch,
                )

        return IdentityResolution()

    def _check_mismatch(
        self,
        canonical: SpecFile,
        resolution: IdentityResolution,
        options: SyncOptions,
    ) -> None:
        if not resolution.mismatch:
            return
        record_id = resolution.record.id
        local_id = canonical.frontmatter.spec_id or ""
        if not options.force:
            raise IdentityMismatchError(
                local_id, resolution.mismatch_spec_id, record_id
            )
        logger.warning(
            "Overriding spec_id %s on record %s with %s (force)",
            resolution.mismatch_spec_id,
            record_id,
            local_id,
        )

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------

    async def push(
        self, doc: SpecDocument, options: SyncOptions | None = None
    ) -> RemoteRef:
        """Create or update the record for *doc*.

        Raises:
            IdentityMismatchError: If the record found by platform id
                embeds another spec_id and ``options.force`` is not set.
            AdapterError: If the document has no ``spec.md`` or the
                platform call fails.
        """
        options = options or SyncOptions()
        canonical = self._canonical(doc)
        resolution = await self.resolve_identity(canonical)
        self._check_mismatch(canonical, resolution, options)

        title, body = self._render(doc, canonical)
        if resolution.found:
            record_id = resolution.record.id
            await self.update_record(record_id, title, body)
            logger.info(
                "Updated %s record %s for %s",
                self.platform,
                record_id,
                doc.name,
            )
            return self._ref(record_id)

        labels = self.labels_for("spec")
        await self.ensure_labels(labels)
        return await self._create(doc, title, body, labels)

    async def _create(
        self, doc: SpecDocument, title: str, body: str, labels: list[str]
    ) -> RemoteRef:
        record_id = await self.create_record(title, body, labels)
        logger.info(
            "Created %s record %s for %s",
            self.platform,
            record_id,
            doc.name,
        )
        ref = self._ref(record_id)
        if self.capabilities().supports_subtasks:
            await self._create_subtasks(doc, ref)
        return ref

    async def _create_subtasks(
        self, doc: SpecDocument, parent: RemoteRef
    ) -> None:
        present = [name for name in SUBTASK_FILES if name in doc.files]
        if not present:
            return
        wanted: list[str] = []
        for name in present:
            wanted.extend(self.labels_for(file_type_for(name)))
        await self.ensure_labels(list(dict.fromkeys(wanted)))

        for name in present:
            file_type = file_type_for(name)
            title = self.mapper.generate_title(doc.name, file_type)
            body = self.mapper.generate_body(doc.files[name].markdown, doc)
            try:
                await self.create_subtask(parent, title, body, file_type)
            except AdapterError as exc:
                # Parent stays bound; the subtask is retried on a forced push
                logger.warning(
                    "Could not create %s subtask for %s: %s",
                    name,
                    doc.name,
                    exc,
                )

    async def pull(
        self, ref: RemoteRef, options: SyncOptions | None = None
    ) -> SpecDocument:
        record = await self.fetch_record(ref.id)
        if record is None:
            raise AdapterError(f"{self.platform} record {ref.id} not found")
        return self.mapper.record_to_spec(record, self.platform)

    async def get_status(self, doc: SpecDocument) -> SyncStatus:
        canonical = doc.canonical
        if canonical is None:
            return SyncStatus(status=SyncState.UNKNOWN, has_changes=False)

        resolution = await self.resolve_identity(canonical)
        fm = canonical.frontmatter

        if resolution.mismatch:
            return SyncStatus(
                status=SyncState.CONFLICT,
                has_changes=True,
                remote_id=resolution.record.id,
                last_sync=fm.last_sync,
                conflicts=[
                    f"{IDENTITY_MISMATCH_PREFIX}: local={fm.spec_id}, "
                    f"remote={resolution.mismatch_spec_id}"
                ],
            )
        if not resolution.found:
            return SyncStatus(status=SyncState.DRAFT, has_changes=True)

        remote_id = resolution.record.id
        if not codec.has_changed(canonical):
            return SyncStatus(
                status=SyncState.SYNCED,
                has_changes=False,
                remote_id=remote_id,
                last_sync=fm.last_sync,
            )
        if fm.last_sync is None:
            return SyncStatus(
                status=SyncState.CONFLICT,
                has_changes=True,
                remote_id=remote_id,
                conflicts=[
                    "Local content differs from the remote record and "
                    "there is no previous sync to compare against"
                ],
            )
        return SyncStatus(
            status=SyncState.DRAFT,
            has_changes=True,
            remote_id=remote_id,
            last_sync=fm.last_sync,
        )

    async def resolve_conflict(
        self,
        local: SpecDocument,
        remote: SpecDocument,
        strategy: str | None = None,
    ) -> SpecDocument:
        if strategy == "theirs":
            return remote
        if strategy == "ours":
            return local
        raise ConflictError(
            f"Manual conflict resolution required for {local.name}"
        )

    # ------------------------------------------------------------------
    # Batch push
    # ------------------------------------------------------------------

    async def push_batch(
        self, docs: list[SpecDocument], options: SyncOptions | None = None
    ) -> list[RemoteRef | Exception]:
        """Push many documents with bounded concurrency.

        Existing records get one coalesced metadata call (labels and
        assignees) plus one content update each.  New records are created
        with at most ``max_concurrent_creates`` in flight.  A failing
        document gets its exception in the result list; the rest carry on.
        """
        options = options or SyncOptions()
        results: list[RemoteRef | Exception | None] = [None] * len(docs)
        to_update: list[tuple[int, RemoteRecord]] = []
        to_create: list[int] = []

        for index, doc in enumerate(docs):
            try:
                canonical = self._canonical(doc)
                resolution = await self.resolve_identity(canonical)
                self._check_mismatch(canonical, resolution, options)
            except Exception as exc:
                logger.error("Cannot push %s: %s", doc.name, exc)
                results[index] = exc
                continue
            if resolution.found:
                to_update.append((index, resolution.record))
            else:
                to_create.append(index)

        if to_update:
            await self._apply_batch_metadata(
                [record.id for _, record in to_update]
            )
            for index, record in to_update:
                doc = docs[index]
                try:
                    title, body = self._render(doc, self._canonical(doc))
                    await self.update_record(record.id, title, body)
                    results[index] = self._ref(record.id)
                except Exception as exc:
                    logger.error("Update failed for %s: %s", doc.name, exc)
                    results[index] = exc

        if to_create:
            labels = self.labels_for("spec")
            await self.ensure_labels(labels)
            created = await gather_limited(
                [self._create_rendered(docs[i], labels) for i in to_create],
                limit=self.max_concurrent_creates,
                return_exceptions=True,
            )
            for index, outcome in zip(to_create, created):
                if isinstance(outcome, Exception):
                    logger.error(
                        "Create failed for %s: %s", docs[index].name, outcome
                    )
                results[index] = outcome

        return results  # type: ignore[return-value]

    async def _create_rendered(
        self, doc: SpecDocument, labels: list[str]
    ) -> RemoteRef:
        title, body = self._render(doc, self._canonical(doc))
        return await self._create(doc, title, body, labels)

    async def _apply_batch_metadata(self, record_ids: list[int | str]) -> None:
        labels = self.labels_for("spec")
        if not (labels or self.assignees):
            return
        if not self.capabilities().supports_batch:
            return
        try:
            await self.batch_update_metadata(
                record_ids, labels, self.assignees
            )
        except AdapterError as exc:
            # Content updates still go ahead; metadata is re-applied next run
            logger.warning("Batch metadata update failed: %s", exc)


__all__ = [
    "DEFAULT_MAX_CONCURRENT_CREATES",
    "AdapterCapabilities",
    "IdentityResolution",
    "RecordAdapter",
    "RemoteRecord",
    "RemoteRef",
    "SyncAdapter",
    "normalize_list",
]
