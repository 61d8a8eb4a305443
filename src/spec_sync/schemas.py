"""Pydantic schema for spec file frontmatter.

Only ``spec.md`` carries identity and sync-state fields; the other files in
a spec folder usually have empty frontmatter.  Unknown keys (``title``,
editor metadata, ...) are kept as model extras and written back unchanged.

``spec_id`` is a plain string here on purpose: a malformed id must still
decode so the scanner can replace it.  Format checks live in
``spec_sync.core.identity``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PositiveInt,
    StrictBool,
    StrictStr,
)

SYNC_HASH_PATTERN = r"^[a-f0-9]{12}$"


# ---------------------------------------------------------------------------
# Platform blocks
# ---------------------------------------------------------------------------


class GitHubMeta(BaseModel):
    """GitHub issue binding for a spec."""

    issue_number: PositiveInt | None = None
    parent_issue: PositiveInt | None = None
    updated_at: datetime | None = None
    labels: list[StrictStr] | None = None
    assignees: list[StrictStr] | None = None
    milestone: int | None = None

    model_config = ConfigDict(extra="allow")


class TracMeta(BaseModel):
    """Trac ticket binding for a spec."""

    ticket_id: PositiveInt | None = None
    parent_ticket: PositiveInt | None = None
    keywords: list[StrictStr] | None = None
    owner: StrictStr | None = None
    milestone: StrictStr | None = None

    model_config = ConfigDict(extra="allow")


class JiraMeta(BaseModel):
    issue_key: StrictStr | None = None
    epic_key: StrictStr | None = None
    issue_type: StrictStr | None = None
    updated: datetime | None = None

    model_config = ConfigDict(extra="allow")


class AsanaMeta(BaseModel):
    task_gid: StrictStr | None = None
    project_gid: StrictStr | None = None
    parent_task: StrictStr | None = None
    modified_at: datetime | None = None

    model_config = ConfigDict(extra="allow")


# ---------------------------------------------------------------------------
# Frontmatter
# ---------------------------------------------------------------------------


class Frontmatter(BaseModel):
    """Structured metadata block at the top of a spec markdown file.

    Attributes:
        spec_id: Durable UUID v4 identity; never regenerated once valid.
        sync_hash: 12-hex fingerprint of the body at the last sync.
        last_sync: UTC timestamp of the last successful push/pull.
        sync_status: Summarised state written after each sync.
        issue_type: ``parent`` for ``spec.md``, ``subtask`` for artifacts.
        auto_sync: Opt-out flag for hook-triggered syncs.
    """

    spec_id: StrictStr | None = None
    sync_hash: StrictStr | None = Field(
        default=None, pattern=SYNC_HASH_PATTERN
    )
    last_sync: datetime | None = None
    sync_status: Literal["draft", "synced", "conflict"] | None = None
    issue_type: Literal["parent", "subtask"] | None = None
    auto_sync: StrictBool | None = None

    github: GitHubMeta | None = None
    trac: TracMeta | None = None
    jira: JiraMeta | None = None
    asana: AsanaMeta | None = None

    model_config = ConfigDict(extra="allow", validate_assignment=True)

    def is_empty(self) -> bool:
        """True when no field (declared or extra) holds a value."""
        return not self.model_dump(exclude_none=True)


def validate_frontmatter(data: dict) -> Frontmatter:
    """Validate a raw mapping against the schema.

    Raises:
        pydantic.ValidationError: On any schema violation.
    """
    return Frontmatter.model_validate(data)
