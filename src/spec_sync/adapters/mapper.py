"""Mapping between spec documents and remote record title/body.

Record titles carry a per-file prefix (``Feature Specification: User
Auth``, ``Plan: User Auth``...).  Record bodies are the file's markdown
followed by a footer naming the spec folder::

    <markdown>

    ---

    **Spec:** `001-user-auth`
    **Path:** `specs/001-user-auth`
    **Synced:** 2024-05-01T12:00:00+00:00

Pulling reverses both: the spec_id marker and the footer are stripped so
the body round-trips to the local markdown.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from pathlib import Path

from spec_sync.core import frontmatter as codec
from spec_sync.core import identity
from spec_sync.models import (
    CANONICAL_FILENAME,
    SPEC_FILE_TITLES,
    RemoteRecord,
    SpecDocument,
    SpecFile,
    humanize_spec_name,
)
from spec_sync.schemas import Frontmatter, GitHubMeta, TracMeta

logger = logging.getLogger(__name__)

_TITLE_PREFIX = re.compile(
    r"^(?:"
    + "|".join(re.escape(t) for t in SPEC_FILE_TITLES.values())
    + r"):\s*(.*)$",
    re.IGNORECASE,
)
_FOOTER = re.compile(
    r"\n*^---[ \t]*\n+\*\*Spec:\*\*[^\n]*"
    r"(?:\n\*\*(?:Path|Synced):\*\*[^\n]*)*\s*\Z",
    re.MULTILINE,
)
_LEADING_BLANK_LINES = re.compile(r"\A(?:[ \t]*\r?\n)+")


def _trim_blank_edges(text: str) -> str:
    return _LEADING_BLANK_LINES.sub("", text).rstrip()


def slugify(text: str) -> str:
    """``User Authentication`` -> ``user-authentication``."""
    slug = re.sub(r"\s+", "-", text.strip().lower())
    return re.sub(r"[^a-z0-9-]", "", slug)


class SpecMapper:
    """Convert spec files to record title/body and records back to specs.

    Args:
        specs_root: Root used for the paths of pulled documents.
    """

    def __init__(self, specs_root: Path | str = "specs") -> None:
        self.specs_root = Path(specs_root)

    # ------------------------------------------------------------------
    # Spec -> record
    # ------------------------------------------------------------------

    def generate_title(self, spec_name: str, file_type: str) -> str:
        name = humanize_spec_name(spec_name)
        prefix = SPEC_FILE_TITLES.get(file_type.replace("-", ""), file_type)
        return f"{prefix}: {name}"

    def generate_body(
        self,
        markdown: str,
        doc: SpecDocument,
        synced_at: datetime | None = None,
    ) -> str:
        """Render a record body: markdown plus metadata footer.

        Any frontmatter block left inside *markdown* is dropped.  Blank
        lines around the body are trimmed; everything else, indentation
        included, is kept.
        """
        block, body = codec.split(markdown.lstrip("\r\n"))
        clean = _trim_blank_edges(body if block is not None else markdown)
        return f"{clean}\n\n---\n\n{self._footer(doc, synced_at)}"

    @staticmethod
    def _footer(doc: SpecDocument, synced_at: datetime | None) -> str:
        when = (synced_at or datetime.now(timezone.utc)).isoformat()
        return "  \n".join(
            [
                f"**Spec:** `{doc.name}`",
                f"**Path:** `{doc.path.as_posix()}`",
                f"**Synced:** {when}",
            ]
        )

    # ------------------------------------------------------------------
    # Record -> spec
    # ------------------------------------------------------------------

    def strip_footer(self, body: str) -> str:
        return _FOOTER.sub("", body)

    def extract_markdown(self, body: str) -> str:
        """Record body without spec_id marker or footer."""
        return _trim_blank_edges(self.strip_footer(identity.strip(body)))

    def extract_spec_name(self, title: str) -> str:
        """``Feature Specification: User Auth`` -> ``user-auth``."""
        match = _TITLE_PREFIX.match(title.strip())
        return slugify(match.group(1) if match else title)

    def record_to_spec(
        self, record: RemoteRecord, platform: str
    ) -> SpecDocument:
        """Build a single-file ``SpecDocument`` from a remote record.

        The result is marked synced: its ``sync_hash`` matches the pulled
        body.
        """
        name = self.extract_spec_name(record.title) or f"record-{record.id}"
        folder = self.specs_root / name
        markdown = self.extract_markdown(record.body)
        if markdown:
            markdown += "\n"

        fm = Frontmatter(
            spec_id=identity.extract(record.body),
            issue_type="parent",
            auto_sync=True,
        )
        if platform == "github":
            fm.github = GitHubMeta(
                issue_number=int(record.id),
                labels=record.labels or None,
                assignees=record.assignees or None,
            )
        elif platform == "trac":
            fm.trac = TracMeta(
                ticket_id=int(record.id),
                keywords=record.labels or None,
                owner=record.assignees[0] if record.assignees else None,
            )
        else:
            logger.debug("No frontmatter block for platform %s", platform)

        spec_file = SpecFile(
            path=folder / CANONICAL_FILENAME,
            filename=CANONICAL_FILENAME,
            content="",
            markdown=markdown,
            frontmatter=fm,
        )
        codec.mark_synced(spec_file)
        spec_file.content = codec.encode(spec_file)

        remote_id = record.id if isinstance(record.id, int) else None
        return SpecDocument(
            name=name,
            path=folder,
            remote_id=remote_id,
            files={CANONICAL_FILENAME: spec_file},
        )
