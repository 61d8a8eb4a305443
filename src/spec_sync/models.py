"""Document model: local spec folders and the remote records they map to.

- ``SpecFile``: one markdown file with its decoded frontmatter.
- ``SpecDocument``: one spec folder, keyed by relative filename.
- ``RemoteRef`` / ``RemoteRecord``: handles to issues or tickets.
- ``AdapterCapabilities``: optional behaviour an adapter advertises.

Spec documents are rebuilt on every scan; only frontmatter fields persist
on disk.  They are mutable because the engine updates the canonical
file's frontmatter in place after a successful sync.  The remote models
are frozen.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field

from spec_sync.schemas import Frontmatter

CANONICAL_FILENAME = "spec.md"
CONTRACTS_DIRNAME = "contracts"

# Artifacts pushed as subtask records of the spec's parent record.
SUBTASK_FILES: tuple[str, ...] = (
    "plan.md",
    "research.md",
    "quickstart.md",
    "data-model.md",
    "tasks.md",
)

SPEC_FILE_TITLES: dict[str, str] = {
    "spec": "Feature Specification",
    "plan": "Plan",
    "research": "Research",
    "quickstart": "Quickstart",
    "datamodel": "Data Model",
    "tasks": "Tasks",
    "contracts": "API Contracts",
}

_NUMERIC_PREFIX = re.compile(r"^(\d+)-")


def file_type_for(filename: str) -> str:
    """Map ``data-model.md`` -> ``datamodel``, ``spec.md`` -> ``spec``."""
    if filename.startswith(f"{CONTRACTS_DIRNAME}/"):
        return "contracts"
    return filename.removesuffix(".md").replace("-", "")


def parse_numeric_prefix(name: str) -> int | None:
    """Return the leading number of ``001-feature-name`` style names."""
    match = _NUMERIC_PREFIX.match(name)
    return int(match.group(1)) if match else None


def humanize_spec_name(name: str) -> str:
    """``003-user-auth`` -> ``User Auth``."""
    bare = _NUMERIC_PREFIX.sub("", name, count=1)
    return " ".join(
        word[:1].upper() + word[1:] for word in bare.split("-") if word
    )


class SpecFile(BaseModel):
    """One markdown file of a spec.

    Attributes:
        path: Absolute path on disk.
        filename: Name relative to the spec folder.
        content: Raw on-disk text including the frontmatter block.
        markdown: Body text without the frontmatter block.
        frontmatter: Decoded metadata.
    """

    path: Path
    filename: str
    content: str
    markdown: str
    frontmatter: Frontmatter = Field(default_factory=Frontmatter)


class SpecDocument(BaseModel):
    """One spec folder.

    Attributes:
        name: Folder name, e.g. ``001-user-auth``.
        path: Folder path.
        remote_id: Numeric prefix of the folder name, used as a lookup hint.
        files: Files keyed by relative name (``contracts/<file>`` for
            contract files).
        warnings: Non-fatal problems found while scanning.
    """

    name: str
    path: Path
    remote_id: int | None = None
    files: dict[str, SpecFile] = Field(default_factory=dict)
    warnings: list[str] = Field(default_factory=list)

    @property
    def canonical(self) -> SpecFile | None:
        """The ``spec.md`` file, if present."""
        return self.files.get(CANONICAL_FILENAME)

    @property
    def spec_id(self) -> str | None:
        canonical = self.canonical
        return canonical.frontmatter.spec_id if canonical else None

    @property
    def feature_name(self) -> str:
        return humanize_spec_name(self.name)


# ---------------------------------------------------------------------------
# Remote side
# ---------------------------------------------------------------------------


class RemoteRef(BaseModel):
    """Platform-neutral handle to a remote record."""

    id: int | str
    type: Literal["parent", "subtask"] = "parent"
    url: str | None = None

    model_config = {"frozen": True}


class RemoteRecord(BaseModel):
    """A remote issue or ticket as returned by a platform client.

    Attributes:
        id: Platform-native id (issue number, ticket id).
        title: Record title.
        body: Free-text body, possibly carrying a spec_id marker.
        state: Platform state string (``OPEN``, ``closed``, ``new``...).
        labels: Label names (Trac keywords).
        assignees: Assignee logins (Trac owner).
        url: Browser URL.
        milestone: Milestone number or name.
    """

    id: int | str
    title: str = ""
    body: str = ""
    state: str | None = None
    labels: list[str] = Field(default_factory=list)
    assignees: list[str] = Field(default_factory=list)
    url: str | None = None
    milestone: int | str | None = None

    model_config = {"frozen": True}


class AdapterCapabilities(BaseModel):
    """Optional behaviour an adapter supports."""

    supports_batch: bool = False
    supports_subtasks: bool = False
    supports_labels: bool = False
    supports_assignees: bool = False
    supports_milestones: bool = False
    supports_comments: bool = False
    supports_state: bool = False
    supports_conflict_resolution: bool = False

    model_config = {"frozen": True}
