"""Configuration schema for spec-sync.

Pydantic models for the sync configuration file (``.specify/sync.config.yml``)
with one section per remote platform plus logging.

Usage:
    from spec_sync.config_loader import load_hierarchical_config
    from spec_sync.config_schema import build_config

    config = build_config(load_hierarchical_config())
    print(config.platform, config.conflict_strategy)
"""

from __future__ import annotations

import logging
from typing import Literal

from pydantic import BaseModel, Field, model_validator

logger = logging.getLogger(__name__)

LabelValue = str | list[str]


# ---------------------------------------------------------------------------
# Platform sections
# ---------------------------------------------------------------------------


class GitHubLabels(BaseModel):
    """Labels applied per file type; ``common`` is added to every record."""

    spec: LabelValue | None = None
    plan: LabelValue | None = None
    research: LabelValue | None = None
    tasks: LabelValue | None = None
    quickstart: LabelValue | None = None
    datamodel: LabelValue | None = None
    contracts: LabelValue | None = None
    common: LabelValue | None = None

    model_config = {"frozen": True}


class GitHubConfig(BaseModel):
    """GitHub repository settings.

    ``owner`` and ``repo`` may be left empty to let the ``gh`` CLI detect
    the repository from the current git checkout.
    """

    owner: str = Field(default="", description="Repository owner")
    repo: str = Field(default="", description="Repository name")
    auth: Literal["cli", "token", "app"] = Field(
        default="cli", description="Authentication mode"
    )
    token: str | None = Field(default=None, description="API token")
    labels: GitHubLabels = Field(default_factory=GitHubLabels)
    assignees: LabelValue | None = Field(
        default=None,
        description="Assignees added to every record in batch updates",
    )

    model_config = {"frozen": True}


class TracConfig(BaseModel):
    """Trac server connection settings.

    Credentials are optional here; environment variables can supply them
    at runtime instead (see ``spec_sync.config``).
    """

    url: str | None = Field(default=None, description="Trac server URL")
    username: str | None = Field(
        default=None, description="Trac username"
    )
    password: str | None = Field(
        default=None, description="Trac password"
    )
    insecure: bool = Field(
        default=False,
        description="Disable SSL verification (development only)",
    )
    ticket_type: str = Field(
        default="task", description="Ticket type for new records"
    )
    labels: GitHubLabels = Field(
        default_factory=GitHubLabels,
        description="Ticket keywords per file type",
    )
    assignees: LabelValue | None = Field(
        default=None, description="First entry owns new tickets"
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------


class SyncConfig(BaseModel):
    """Top-level sync configuration.

    Every field has a default so ``SyncConfig()`` describes a GitHub sync
    against the repository of the current checkout.
    """

    platform: Literal["github", "trac"] = Field(
        default="github", description="Remote platform to sync with"
    )
    specs_root: str = Field(
        default="specs", description="Directory holding spec folders"
    )
    auto_sync: bool = Field(
        default=True, description="Allow hook-triggered syncs"
    )
    conflict_strategy: Literal[
        "manual", "theirs", "ours", "interactive"
    ] = Field(default="manual", description="Default conflict strategy")
    max_concurrent_creates: int = Field(
        default=5,
        ge=1,
        le=20,
        description="Parallel record creations during batch push (1-20)",
    )
    github: GitHubConfig | None = None
    trac: TracConfig | None = None
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_platform_section(self) -> "SyncConfig":
        if self.platform == "trac":
            if self.trac is None:
                raise ValueError(
                    "Trac configuration requires a 'trac' section"
                )
        if self.platform == "github" and self.github is not None:
            if bool(self.github.owner) != bool(self.github.repo):
                raise ValueError(
                    "GitHub configuration requires both owner and repo"
                )
        return self


def build_config(raw_data: dict | None) -> SyncConfig:
    """Construct a ``SyncConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Accepts camelCase keys (``autoSync``, ``conflictStrategy``,
    ``specsRoot``) written by older tooling.

    Args:
        raw_data: Merged configuration dictionary.

    Returns:
        Validated ``SyncConfig`` instance.

    Raises:
        pydantic.ValidationError: If the data violates the schema.
    """
    if not raw_data:
        return SyncConfig()

    aliases = {
        "autoSync": "auto_sync",
        "conflictStrategy": "conflict_strategy",
        "specsRoot": "specs_root",
        "maxConcurrentCreates": "max_concurrent_creates",
    }
    data = dict(raw_data)
    for old, new in aliases.items():
        if old in data:
            data.setdefault(new, data.pop(old))
    return SyncConfig(**data)
