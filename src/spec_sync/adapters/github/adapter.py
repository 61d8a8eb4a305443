"""GitHub issues adapter.

Each spec maps to one issue; ``plan.md``, ``tasks.md`` and the other
artifacts become sub-issues when the parent is first created.  Binding
data lives in the ``github`` frontmatter block (``issue_number``).
"""

from __future__ import annotations

import logging

from spec_sync.adapters.base import (
    DEFAULT_MAX_CONCURRENT_CREATES,
    RecordAdapter,
)
from spec_sync.adapters.github.client import GitHubCLIError, GitHubClient
from spec_sync.adapters.mapper import SpecMapper
from spec_sync.config_schema import GitHubLabels, LabelValue
from spec_sync.core.async_utils import run_sync
from spec_sync.models import AdapterCapabilities, RemoteRecord, RemoteRef
from spec_sync.schemas import Frontmatter, GitHubMeta

logger = logging.getLogger(__name__)


class GitHubAdapter(RecordAdapter):
    """Sync specs with GitHub issues through the ``gh`` CLI.

    Args:
        client: Configured ``GitHubClient``.
        mapper: Spec/issue mapper.
        labels: Labels per file type.
        assignees: Assignees added to every pushed issue in batch runs.
        max_concurrent_creates: Parallel issue creations in batch pushes.
    """

    platform = "github"

    def __init__(
        self,
        client: GitHubClient,
        mapper: SpecMapper | None = None,
        labels: GitHubLabels | None = None,
        assignees: LabelValue | None = None,
        max_concurrent_creates: int = DEFAULT_MAX_CONCURRENT_CREATES,
    ) -> None:
        super().__init__(
            mapper or SpecMapper(),
            labels=labels,
            assignees=assignees,
            max_concurrent_creates=max_concurrent_creates,
        )
        self.client = client

    def capabilities(self) -> AdapterCapabilities:
        return AdapterCapabilities(
            supports_batch=True,
            supports_subtasks=True,
            supports_labels=True,
            supports_assignees=True,
            supports_milestones=True,
            supports_comments=True,
            supports_state=True,
            supports_conflict_resolution=True,
        )

    async def check_auth(self) -> bool:
        return await run_sync(self.client.check_auth)

    # ------------------------------------------------------------------
    # Frontmatter binding
    # ------------------------------------------------------------------

    def stored_remote_id(self, fm: Frontmatter) -> int | None:
        return fm.github.issue_number if fm.github else None

    def bind_remote_id(self, fm: Frontmatter, ref: RemoteRef) -> None:
        block = fm.github or GitHubMeta()
        block.issue_number = int(ref.id)
        fm.github = block

    # ------------------------------------------------------------------
    # Record primitives
    # ------------------------------------------------------------------

    @staticmethod
    def _to_record(issue: dict | None) -> RemoteRecord | None:
        if issue is None:
            return None
        return RemoteRecord(
            id=issue["number"],
            title=issue["title"],
            body=issue["body"],
            state=issue["state"],
            labels=issue["labels"],
            assignees=issue["assignees"],
            url=issue["url"],
            milestone=issue["milestone"],
        )

    async def search_by_spec_id(self, spec_id: str) -> RemoteRecord | None:
        issue = await run_sync(self.client.search_issue_by_spec_id, spec_id)
        return self._to_record(issue)

    async def fetch_record(self, record_id: int | str) -> RemoteRecord | None:
        issue = await run_sync(self.client.get_issue, int(record_id))
        return self._to_record(issue)

    async def create_record(
        self, title: str, body: str, labels: list[str]
    ) -> int:
        return await run_sync(self.client.create_issue, title, body, labels)

    async def update_record(
        self, record_id: int | str, title: str, body: str
    ) -> None:
        await run_sync(
            self.client.update_issue, int(record_id), title=title, body=body
        )

    def record_url(self, record_id: int | str) -> str | None:
        if self.client.owner and self.client.repo:
            return (
                f"https://github.com/{self.client.owner}/"
                f"{self.client.repo}/issues/{record_id}"
            )
        return None

    async def batch_update_metadata(
        self,
        record_ids: list[int | str],
        labels: list[str],
        assignees: list[str],
    ) -> None:
        await run_sync(
            self.client.batch_update_issues,
            [int(r) for r in record_ids],
            labels=labels,
            assignees=assignees,
        )

    async def ensure_labels(self, labels: list[str]) -> None:
        if not labels:
            return
        try:
            await run_sync(self.client.ensure_labels_exist, labels)
        except GitHubCLIError as exc:
            # Issue creation reports missing labels itself
            logger.warning("Failed to ensure labels exist: %s", exc)

    # ------------------------------------------------------------------
    # Optional operations
    # ------------------------------------------------------------------

    async def create_subtask(
        self,
        parent: RemoteRef,
        title: str,
        body: str,
        file_type: str = "task",
    ) -> RemoteRef:
        labels = self.labels_for(file_type)
        await self.ensure_labels(labels)
        number = await run_sync(
            self.client.create_subtask, int(parent.id), title, body, labels
        )
        return self._ref(number, "subtask")

    async def get_subtasks(self, parent: RemoteRef) -> list[RemoteRef]:
        numbers = await run_sync(self.client.get_subtasks, int(parent.id))
        return [self._ref(n, "subtask") for n in numbers]

    async def add_comment(self, ref: RemoteRef, body: str) -> None:
        await run_sync(self.client.add_comment, int(ref.id), body)

    async def close(self, ref: RemoteRef) -> None:
        await run_sync(self.client.close_issue, int(ref.id))

    async def reopen(self, ref: RemoteRef) -> None:
        await run_sync(self.client.reopen_issue, int(ref.id))
