"""File handler module: encoding-aware reads and atomic writes.

Provides the file I/O used by the scanner and the sync engine.  The sync
functions do blocking I/O; the async wrappers push them onto a worker
thread via ``run_sync()``.  ``OSError`` is re-raised as
``FileOperationError`` so callers deal with a single error type.
"""

import logging
import os
import tempfile
from pathlib import Path

from charset_normalizer import from_bytes

from spec_sync.core.async_utils import run_sync
from spec_sync.errors import FileOperationError

logger = logging.getLogger(__name__)


# =============================================================================
# File Read/Write
# =============================================================================


def read_file_with_encoding(path: Path) -> tuple[str, str]:
    """Read a file with automatic encoding detection.

    Reads raw bytes first, then uses charset-normalizer to detect encoding.
    Valid UTF-8 is taken as-is; detection only runs for other encodings.

    Args:
        path: Path to the file to read.

    Returns:
        Tuple of (content_string, detected_encoding).

    Raises:
        FileOperationError: If the file cannot be read.
    """
    try:
        raw = path.read_bytes()
    except OSError as exc:
        raise FileOperationError(f"Cannot read file ({exc})", path) from exc

    if not raw:
        return ("", "utf-8")

    try:
        return (raw.decode("utf-8"), "utf-8")
    except UnicodeDecodeError:
        pass

    result = from_bytes(raw).best()
    if result is None:
        # Detection failed, fall back to utf-8
        logger.warning("Encoding detection failed for %s", path)
        return (raw.decode("utf-8", errors="replace"), "utf-8")

    encoding = result.encoding
    if encoding == "ascii":
        encoding = "utf-8"
    return (str(result), encoding)


def write_file_atomic(
    path: Path, content: str, encoding: str = "utf-8"
) -> int:
    """Write content to a file atomically.

    Writes to a temporary file in the target directory and then calls
    ``os.replace()`` so concurrent readers never observe a partial file.
    Parent directories are created as needed.

    Args:
        path: Path to the output file.
        content: String content to write.
        encoding: Encoding to use (default: utf-8).

    Returns:
        Number of bytes written.

    Raises:
        FileOperationError: If the directory or file cannot be written.
    """
    encoded = content.encode(encoding)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=str(path.parent), prefix=f".{path.name}.", suffix=".tmp"
        )
    except OSError as exc:
        raise FileOperationError(f"Cannot write file ({exc})", path) from exc

    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(encoded)
        os.replace(tmp_path, path)
    except OSError as exc:
        try:
            os.unlink(tmp_path)
        except OSError:
            logger.debug("Could not remove temp file %s", tmp_path)
        raise FileOperationError(f"Cannot write file ({exc})", path) from exc
    return len(encoded)


# =============================================================================
# Async Wrappers
# =============================================================================


async def read_file_async(path: Path) -> tuple[str, str]:
    """Async wrapper around ``read_file_with_encoding``."""
    return await run_sync(read_file_with_encoding, path)


async def write_file_async(
    path: Path, content: str, encoding: str = "utf-8"
) -> int:
    """Async wrapper around ``write_file_atomic``."""
    return await run_sync(write_file_atomic, path, content, encoding)
