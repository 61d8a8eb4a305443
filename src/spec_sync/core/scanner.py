"""Spec folder scanner.

Walks ``<specs_root>/<NNN-name>/`` folders and builds one ``SpecDocument``
per folder.  The canonical ``spec.md`` is guaranteed to carry a valid
``spec_id`` once a scan returns: a missing or malformed id is replaced and
written back before the document is handed out.

Identity persistence is best effort.  If the write fails the document
keeps the new id in memory, the failure is logged and recorded in
``SpecDocument.warnings``, and a later scan may pick a different id.
Two scanners assigning an id to the same file at the same time both get a
valid id; the last atomic write wins on disk.
"""

from __future__ import annotations

import logging
from pathlib import Path

from spec_sync.core import frontmatter, identity
from spec_sync.errors import FileOperationError, FrontmatterError
from spec_sync.file_handler import read_file_async, write_file_async
from spec_sync.models import (
    CONTRACTS_DIRNAME,
    SpecDocument,
    SpecFile,
    parse_numeric_prefix,
)

logger = logging.getLogger(__name__)

# Frontmatter attribute holding the platform-native id, per platform.
_PLATFORM_ID_FIELDS: dict[str, tuple[str, str]] = {
    "github": ("github", "issue_number"),
    "trac": ("trac", "ticket_id"),
}


class SpecScanner:
    """Build ``SpecDocument`` values from a specs root directory.

    Args:
        specs_root: Directory holding one sub-folder per spec.

    Attributes:
        errors: ``FrontmatterError`` or ``FileOperationError`` instances
            from the last ``scan_all``, one per folder that was skipped.
    """

    def __init__(self, specs_root: Path | str = "specs") -> None:
        self.specs_root = Path(specs_root)
        self.errors: list[FrontmatterError | FileOperationError] = []

    # ------------------------------------------------------------------
    # Scanning
    # ------------------------------------------------------------------

    async def scan_all(self) -> list[SpecDocument]:
        """Scan every non-hidden sub-folder, sorted by name.

        A missing root yields ``[]``.  Folders that fail to decode are
        skipped and their errors collected in ``self.errors``.
        """
        self.errors = []
        if not self.specs_root.is_dir():
            logger.warning("Specs directory not found: %s", self.specs_root)
            return []

        documents: list[SpecDocument] = []
        for entry in sorted(self.specs_root.iterdir()):
            if not entry.is_dir() or entry.name.startswith("."):
                continue
            try:
                doc = await self.scan_directory(entry)
            except (FrontmatterError, FileOperationError) as exc:
                logger.error("Skipping %s: %s", entry.name, exc)
                self.errors.append(exc)
                continue
            if doc is not None:
                documents.append(doc)

        logger.debug(
            "Scanned %d spec folder(s) under %s",
            len(documents),
            self.specs_root,
        )
        return documents

    async def scan_directory(self, path: Path | str) -> SpecDocument | None:
        """Scan one spec folder.

        Returns:
            The document, or ``None`` when the folder holds no files.

        Raises:
            FrontmatterError: If a markdown file has invalid frontmatter.
            FileOperationError: If a file cannot be read.
        """
        folder = Path(path)
        files: dict[str, SpecFile] = {}

        for md_path in sorted(folder.glob("*.md")):
            if not md_path.is_file():
                continue
            content, _encoding = await read_file_async(md_path)
            files[md_path.name] = frontmatter.decode(content, md_path)

        contracts = folder / CONTRACTS_DIRNAME
        if contracts.is_dir():
            for contract_path in sorted(contracts.iterdir()):
                if not contract_path.is_file():
                    continue
                content, _encoding = await read_file_async(contract_path)
                files[f"{CONTRACTS_DIRNAME}/{contract_path.name}"] = SpecFile(
                    path=contract_path,
                    filename=contract_path.name,
                    content=content,
                    markdown=content,
                )

        if not files:
            return None

        doc = SpecDocument(
            name=folder.name,
            path=folder,
            remote_id=parse_numeric_prefix(folder.name),
            files=files,
        )
        canonical = doc.canonical
        if canonical is not None:
            await self._ensure_identity(doc, canonical)
        return doc

    async def _ensure_identity(
        self, doc: SpecDocument, canonical: SpecFile
    ) -> str:
        current = canonical.frontmatter.spec_id
        if identity.is_valid(current):
            return current

        new_id = identity.generate()
        if current:
            logger.warning(
                "Replacing malformed spec_id %r in %s", current, canonical.path
            )
        canonical.frontmatter.spec_id = new_id
        try:
            await self.write_spec_file(canonical)
        except FileOperationError as exc:
            message = f"Could not persist spec_id for {canonical.path}: {exc}"
            logger.warning(message)
            doc.warnings.append(message)
        else:
            logger.info("Assigned spec_id %s to %s", new_id, doc.name)
        return new_id

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    async def find_by_remote_id(
        self, remote_id: int | str, platform: str = "github"
    ) -> SpecDocument | None:
        """Find a spec by folder number, then by stored platform id.

        Only local data is consulted.
        """
        documents = await self.scan_all()
        wanted = str(remote_id)

        for doc in documents:
            if doc.remote_id is not None and str(doc.remote_id) == wanted:
                return doc

        block_name, field = _PLATFORM_ID_FIELDS.get(
            platform, (platform, "id")
        )
        for doc in documents:
            canonical = doc.canonical
            if canonical is None:
                continue
            block = getattr(canonical.frontmatter, block_name, None)
            stored = getattr(block, field, None) if block else None
            if stored is not None and str(stored) == wanted:
                return doc
        return None

    async def find_by_spec_id(self, spec_id: str) -> SpecDocument | None:
        documents = await self.scan_all()
        wanted = spec_id.lower()
        for doc in documents:
            if doc.spec_id and doc.spec_id.lower() == wanted:
                return doc
        return None

    async def get_spec_file(
        self, spec_path: Path | str, filename: str
    ) -> SpecFile | None:
        """Read and decode one file, or None when it does not exist."""
        file_path = Path(spec_path) / filename
        if not file_path.is_file():
            return None
        content, _encoding = await read_file_async(file_path)
        return frontmatter.decode(content, file_path)

    # ------------------------------------------------------------------
    # Writing
    # ------------------------------------------------------------------

    async def write_spec_file(self, file: SpecFile) -> str:
        """Encode *file* and write it atomically.

        Updates ``file.content`` and returns the written text.

        Raises:
            FileOperationError: If the write fails.
        """
        content = frontmatter.encode(file)
        await write_file_async(file.path, content)
        file.content = content
        return content

    async def create_spec_directory(self, name: str) -> Path:
        folder = self.specs_root / name
        try:
            folder.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise FileOperationError(
                f"Cannot create directory ({exc})", folder
            ) from exc
        return folder

    def next_directory_number(self) -> int:
        """Return one more than the highest ``NNN-`` prefix under the root."""
        highest = 0
        if self.specs_root.is_dir():
            for entry in self.specs_root.iterdir():
                number = parse_numeric_prefix(entry.name)
                if entry.is_dir() and number is not None:
                    highest = max(highest, number)
        return highest + 1
