"""Trac ticket adapter.

One ticket per spec.  Labels become the ticket ``keywords`` and the first
configured assignee becomes its ``owner``.  Binding data lives in the
``trac`` frontmatter block (``ticket_id``).

Trac has no batch edit or sub-ticket API, so the adapter advertises
neither and the engine pushes documents one at a time.
"""

from __future__ import annotations

import logging
import xmlrpc.client
from typing import Any, Callable

import requests

from spec_sync.adapters.base import (
    DEFAULT_MAX_CONCURRENT_CREATES,
    RecordAdapter,
)
from spec_sync.adapters.mapper import SpecMapper
from spec_sync.adapters.trac.client import TracClient
from spec_sync.config_schema import GitHubLabels, LabelValue
from spec_sync.core import identity
from spec_sync.core.async_utils import run_sync
from spec_sync.errors import AdapterError
from spec_sync.models import AdapterCapabilities, RemoteRecord, RemoteRef
from spec_sync.schemas import Frontmatter, TracMeta

logger = logging.getLogger(__name__)


class TracRPCError(AdapterError):
    """A Trac XML-RPC call failed (fault or HTTP error)."""


def _split_keywords(value: str | None) -> list[str]:
    if not value:
        return []
    return [k for k in value.replace(",", " ").split() if k]


class TracAdapter(RecordAdapter):
    """Sync specs with Trac tickets over XML-RPC.

    Args:
        client: Configured ``TracClient``.
        mapper: Spec/ticket mapper.
        labels: Keywords per file type.
        assignees: First entry becomes the owner of new tickets.
    """

    platform = "trac"

    def __init__(
        self,
        client: TracClient,
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
            supports_labels=True,
            supports_assignees=True,
            supports_milestones=True,
            supports_comments=True,
            supports_state=True,
            supports_conflict_resolution=True,
        )

    async def _call(self, func: Callable[..., Any], *args, **kwargs) -> Any:
        try:
            return await run_sync(func, *args, **kwargs)
        except xmlrpc.client.Fault as exc:
            raise TracRPCError(
                f"Trac fault {exc.faultCode}: {exc.faultString}"
            ) from exc
        except requests.RequestException as exc:
            raise TracRPCError(f"Trac request failed: {exc}") from exc

    async def check_auth(self) -> bool:
        try:
            version = await self._call(self.client.validate_connection)
        except TracRPCError as exc:
            logger.warning("Trac auth check failed: %s", exc)
            return False
        logger.debug("Trac XML-RPC API version %s", version)
        return True

    # ------------------------------------------------------------------
    # Frontmatter binding
    # ------------------------------------------------------------------

    def stored_remote_id(self, fm: Frontmatter) -> int | None:
        return fm.trac.ticket_id if fm.trac else None

    def bind_remote_id(self, fm: Frontmatter, ref: RemoteRef) -> None:
        block = fm.trac or TracMeta()
        block.ticket_id = int(ref.id)
        fm.trac = block

    # ------------------------------------------------------------------
    # Record primitives
    # ------------------------------------------------------------------

    def _to_record(self, ticket: list[Any]) -> RemoteRecord:
        ticket_id, _created, _modified, attrs = ticket[:4]
        owner = attrs.get("owner")
        return RemoteRecord(
            id=int(ticket_id),
            title=attrs.get("summary") or "",
            body=attrs.get("description") or "",
            state=attrs.get("status"),
            labels=_split_keywords(attrs.get("keywords")),
            assignees=[owner] if owner else [],
            url=self.client.ticket_url(int(ticket_id)),
            milestone=attrs.get("milestone") or None,
        )

    async def search_by_spec_id(self, spec_id: str) -> RemoteRecord | None:
        ids = await self._call(
            self.client.search_tickets, f"description~={spec_id}&max=0"
        )
        for ticket_id in ids:
            record = await self.fetch_record(ticket_id)
            if record and identity.extract(record.body) == spec_id:
                return record
        return None

    async def fetch_record(self, record_id: int | str) -> RemoteRecord | None:
        try:
            ticket = await run_sync(self.client.get_ticket, int(record_id))
        except xmlrpc.client.Fault as exc:
            if "does not exist" in str(exc.faultString).lower():
                logger.debug("Ticket #%s not found", record_id)
                return None
            raise TracRPCError(
                f"Trac fault {exc.faultCode}: {exc.faultString}"
            ) from exc
        except requests.RequestException as exc:
            raise TracRPCError(f"Trac request failed: {exc}") from exc
        return self._to_record(ticket)

    async def create_record(
        self, title: str, body: str, labels: list[str]
    ) -> int:
        attributes: dict[str, Any] = {}
        if labels:
            attributes["keywords"] = " ".join(labels)
        if self.assignees:
            attributes["owner"] = self.assignees[0]
        return await self._call(
            self.client.create_ticket, title, body, attributes=attributes
        )

    async def update_record(
        self, record_id: int | str, title: str, body: str
    ) -> None:
        await self._call(
            self.client.update_ticket,
            int(record_id),
            attributes={"summary": title, "description": body},
        )

    def record_url(self, record_id: int | str) -> str | None:
        return self.client.ticket_url(int(record_id))

    # ------------------------------------------------------------------
    # Optional operations
    # ------------------------------------------------------------------

    async def add_comment(self, ref: RemoteRef, body: str) -> None:
        await self._call(self.client.update_ticket, int(ref.id), comment=body)

    async def close(self, ref: RemoteRef) -> None:
        await self._call(
            self.client.update_ticket,
            int(ref.id),
            attributes={
                "action": "resolve",
                "action_resolve_resolve_resolution": "fixed",
            },
        )

    async def reopen(self, ref: RemoteRef) -> None:
        await self._call(
            self.client.update_ticket,
            int(ref.id),
            attributes={"action": "reopen"},
        )
