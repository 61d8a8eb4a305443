"""Remote platform adapters.

- ``base``    -- ``SyncAdapter`` contract and ``RecordAdapter``, which
  implements UUID-first identity resolution and batch pushes on top of
  record primitives.
- ``mapper``  -- ``SpecMapper``: spec <-> record title/body conversion.
- ``github``  -- ``GitHubAdapter`` over the ``gh`` CLI.
- ``trac``    -- ``TracAdapter`` over Trac XML-RPC.

``create_adapter()`` builds the adapter selected by a ``SyncConfig``.
"""

from __future__ import annotations

import logging

from spec_sync.config import load_trac_connection, resolve_github_target
from spec_sync.config_schema import GitHubConfig, SyncConfig

from .base import IdentityResolution, RecordAdapter, SyncAdapter
from .github import GitHubAdapter, GitHubClient
from .mapper import SpecMapper
from .trac import TracAdapter, TracClient

logger = logging.getLogger(__name__)


def create_adapter(config: SyncConfig) -> SyncAdapter:
    """Build the adapter for ``config.platform``.

    Environment variables are read for credentials, so call
    ``load_dotenv()`` first when a ``.env`` file should apply.

    Raises:
        ValueError: If the platform is unknown or its connection
            settings are incomplete.
    """
    mapper = SpecMapper(config.specs_root)

    if config.platform == "github":
        section = config.github or GitHubConfig()
        target = resolve_github_target(section)
        logger.debug("Using GitHub repository %s", target.slug or "<auto>")
        return GitHubAdapter(
            GitHubClient(target.owner, target.repo, token=target.token),
            mapper,
            labels=section.labels,
            assignees=section.assignees,
            max_concurrent_creates=config.max_concurrent_creates,
        )

    if config.platform == "trac":
        connection = load_trac_connection(config.trac)
        logger.debug("Using Trac instance %s", connection.trac_url)
        return TracAdapter(
            TracClient(connection),
            mapper,
            labels=config.trac.labels if config.trac else None,
            assignees=config.trac.assignees if config.trac else None,
            max_concurrent_creates=config.max_concurrent_creates,
        )

    raise ValueError(f"Unsupported platform: '{config.platform}'")


__all__ = [
    "GitHubAdapter",
    "IdentityResolution",
    "RecordAdapter",
    "SpecMapper",
    "SyncAdapter",
    "TracAdapter",
    "create_adapter",
]
