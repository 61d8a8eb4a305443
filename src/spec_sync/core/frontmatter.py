"""Frontmatter codec for spec markdown files.

On-disk shape::

    ---
    spec_id: 550e8400-e29b-41d4-a716-446655440000
    sync_status: synced
    ---
    # Feature body...

The block is YAML between a first line ``---`` and the next line that is
exactly ``---``.  Everything after the closing line is the body, kept
byte-for-byte.  A file without a block decodes to an empty ``Frontmatter``,
and an empty ``Frontmatter`` encodes to the body alone.

Splitting and rendering go through python-frontmatter with
``SpecYAMLHandler``; the stock ``YAMLHandler`` accepts any run of dashes,
swallows blank lines after the closing delimiter and strips the post.
"""

from __future__ import annotations

import hashlib
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import frontmatter as fm_lib
import yaml
from frontmatter.default_handlers import YAMLHandler
from pydantic import ValidationError

from spec_sync.errors import FrontmatterError
from spec_sync.models import SpecFile
from spec_sync.schemas import Frontmatter, validate_frontmatter

logger = logging.getLogger(__name__)

DELIMITER = "---"
FINGERPRINT_LENGTH = 12


class SpecYAMLHandler(YAMLHandler):
    """YAML handler with exact ``---`` delimiters and an untouched body."""

    FM_BOUNDARY = re.compile(r"^---\r?$", re.MULTILINE)
    START_DELIMITER = END_DELIMITER = DELIMITER

    def format(self, post: fm_lib.Post, **kwargs: Any) -> str:
        metadata = self.export(post.metadata, **kwargs)
        return (
            f"{self.START_DELIMITER}\n{metadata}\n"
            f"{self.END_DELIMITER}\n{post.content}"
        )


HANDLER = SpecYAMLHandler()


# ---------------------------------------------------------------------------
# Splitting
# ---------------------------------------------------------------------------


def split(content: str) -> tuple[str | None, str]:
    """Split raw text into (yaml_block, body).

    Returns ``(None, content)`` when there is no complete block.  CRLF
    line endings are tolerated on the delimiter lines.
    """
    if not HANDLER.detect(content):
        return None, content
    try:
        block, body = HANDLER.split(content)
    except ValueError:
        # Unterminated block is ordinary body text
        return None, content
    # The closing delimiter's line break belongs to the delimiter
    if body.startswith("\n"):
        body = body[1:]
    return block, body


def _field_locations(exc: ValidationError) -> list[str]:
    return [
        ".".join(str(part) for part in err["loc"]) or "<root>"
        for err in exc.errors()
    ]


# ---------------------------------------------------------------------------
# Codec
# ---------------------------------------------------------------------------


def parse_block(block: str, path: Path | str | None = None) -> Frontmatter:
    """Parse and validate a YAML metadata block.

    Raises:
        FrontmatterError: On YAML syntax errors, a non-mapping root, or
            schema violations.
    """
    try:
        data = HANDLER.load(block)
    except yaml.YAMLError as exc:
        raise FrontmatterError(f"Invalid YAML ({exc})", path) from exc

    if data is None:
        return Frontmatter()
    if not isinstance(data, dict):
        raise FrontmatterError(
            f"Frontmatter must be a mapping, got {type(data).__name__}",
            path,
        )
    try:
        return validate_frontmatter(data)
    except ValidationError as exc:
        raise FrontmatterError(
            "Frontmatter failed validation",
            path,
            fields=_field_locations(exc),
        ) from exc


def decode(content: str, path: Path | str | None = None) -> SpecFile:
    """Decode raw file text into a ``SpecFile``.

    Args:
        content: Full on-disk text.
        path: Source path, used for the ``SpecFile`` and error messages.

    Raises:
        FrontmatterError: If the metadata block is present but invalid.
    """
    file_path = Path(path) if path is not None else Path("spec.md")
    block, body = split(content)
    frontmatter = (
        parse_block(block, path) if block is not None else Frontmatter()
    )
    return SpecFile(
        path=file_path,
        filename=file_path.name,
        content=content,
        markdown=body,
        frontmatter=frontmatter,
    )


def _metadata(frontmatter: Frontmatter) -> dict[str, Any]:
    return frontmatter.model_dump(mode="json", exclude_none=True)


def encode(file: SpecFile) -> str:
    """Serialize frontmatter and body back into on-disk text."""
    if file.frontmatter.is_empty() and split(file.markdown)[0] is None:
        return file.markdown
    # An empty block still renders when the body itself opens with a
    # delimited block, so decoding cannot mistake it for metadata
    post = fm_lib.Post(file.markdown)
    post.metadata.update(_metadata(file.frontmatter))
    return fm_lib.dumps(post, handler=HANDLER, sort_keys=False)


# ---------------------------------------------------------------------------
# Change detection
# ---------------------------------------------------------------------------


def fingerprint(text: str) -> str:
    """First 12 hex chars of the SHA-256 of *text* as UTF-8."""
    digest = hashlib.sha256(text.encode("utf-8")).hexdigest()
    return digest[:FINGERPRINT_LENGTH]


def has_changed(file: SpecFile) -> bool:
    """True when the body differs from the last synced fingerprint.

    A file that has never been synced (no ``sync_hash``) counts as changed.
    """
    stored = file.frontmatter.sync_hash
    if not stored:
        return True
    return fingerprint(file.markdown) != stored


def mark_synced(
    file: SpecFile,
    *,
    status: str = "synced",
    when: datetime | None = None,
    **updates: Any,
) -> SpecFile:
    """Record a successful sync on *file* in memory.

    ``sync_hash`` and ``last_sync`` are always set together.  Extra keyword
    arguments are assigned to frontmatter fields (``issue_type``,
    ``github``, ``trac``...).

    Returns:
        The same ``SpecFile``, for chaining.
    """
    fm = file.frontmatter
    for key, value in updates.items():
        setattr(fm, key, value)
    fm.sync_hash = fingerprint(file.markdown)
    fm.last_sync = when or datetime.now(timezone.utc)
    fm.sync_status = status
    logger.debug("Marked %s as %s (%s)", file.path, status, fm.sync_hash)
    return file


__all__ = [
    "decode",
    "encode",
    "fingerprint",
    "has_changed",
    "mark_synced",
    "parse_block",
    "split",
    "validate_frontmatter",
]
