"""Hook-triggered sync of a single spec folder.

Editors and coding agents call ``run_hook()`` after a file changes.  The
spec folder holding the file is synced when:

- the file is markdown inside a spec folder under ``specs_root``,
- ``auto_sync`` is on in the project config, and
- the changed file's frontmatter does not set ``auto_sync: false``.

A hook must never break the tool that fired it, so failures are written
to the hook log and ``None`` is returned.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml

from spec_sync.adapters import create_adapter
from spec_sync.adapters.base import SyncAdapter
from spec_sync.config_loader import load_sync_config
from spec_sync.config_schema import SyncConfig
from spec_sync.core.scanner import SpecScanner
from spec_sync.errors import SpecSyncError, classify_error
from spec_sync.logger import configure_logging
from spec_sync.sync.engine import SyncEngine
from spec_sync.sync.models import SyncOptions, SyncResult

logger = logging.getLogger(__name__)

CONTRACTS_DIR = "contracts"


def hook_target(
    file_path: Path | str,
    config: SyncConfig,
    base_dir: Path | None = None,
) -> tuple[Path, str] | None:
    """Locate the spec folder a changed file belongs to.

    Returns:
        ``(folder, key)`` where *key* names the file inside
        ``SpecDocument.files``, or ``None`` when the hook should not sync.
    """
    if not config.auto_sync:
        return None
    path = Path(file_path)
    if path.suffix != ".md":
        return None

    base = base_dir or Path.cwd()
    root = (base / config.specs_root).resolve()
    resolved = (base / path).resolve()
    folder = resolved.parent
    key = resolved.name
    if folder.name == CONTRACTS_DIR:
        key = f"{CONTRACTS_DIR}/{key}"
        folder = folder.parent
    if folder.parent != root:
        return None
    return folder, key


async def run_hook(
    file_path: Path | str,
    config: SyncConfig | None = None,
    base_dir: Path | None = None,
    adapter: SyncAdapter | None = None,
) -> SyncResult | None:
    """Sync the spec folder of *file_path* if hooks may touch it.

    Args:
        file_path: Changed file, absolute or relative to *base_dir*.
        config: Sync config; discovered from *base_dir* when omitted.
        base_dir: Project directory (default: CWD).
        adapter: Platform adapter; built from *config* when omitted.

    Returns:
        The sync result, or ``None`` when nothing was synced.
    """
    base = Path(base_dir) if base_dir is not None else Path.cwd()
    if config is None:
        try:
            config = load_sync_config(base_dir=base)
        except (OSError, ValueError, yaml.YAMLError) as exc:
            logger.error("Cannot load sync config: %s", exc)
            return None
    configure_logging(config, mode="hook")

    target = hook_target(file_path, config, base)
    if target is None:
        logger.debug("Hook ignoring %s", file_path)
        return None
    folder, key = target

    scanner = SpecScanner(base / config.specs_root)
    try:
        doc = await scanner.scan_directory(folder)
    except SpecSyncError as exc:
        logger.error(
            "Hook scan of %s failed: %s", folder, classify_error(exc).message
        )
        return None
    if doc is None:
        return None

    changed = doc.files.get(key)
    if changed is not None and changed.frontmatter.auto_sync is False:
        logger.info("%s opts out of auto sync", changed.path)
        return None

    if adapter is None:
        try:
            adapter = create_adapter(config)
        except ValueError as exc:
            logger.error("Cannot create %s adapter: %s", config.platform, exc)
            return None

    engine = SyncEngine(
        adapter, scanner, conflict_strategy=config.conflict_strategy
    )
    result = await engine.sync_one(doc, SyncOptions())
    if result.success:
        logger.info("Hook synced %s: %s", doc.name, result.message)
    else:
        logger.warning(
            "Hook sync of %s failed: %s",
            doc.name,
            result.error or result.message,
        )
    return result
