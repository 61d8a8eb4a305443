"""Shared pytest fixtures for spec-sync tests."""

from pathlib import Path
from unittest.mock import Mock

import pytest
from dotenv import load_dotenv

from spec_sync.adapters.base import RecordAdapter
from spec_sync.adapters.mapper import SpecMapper
from spec_sync.config import TracConnection
from spec_sync.core import identity
from spec_sync.errors import AdapterError
from spec_sync.models import AdapterCapabilities, RemoteRecord, RemoteRef
from spec_sync.schemas import Frontmatter, GitHubMeta

load_dotenv()


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that require a live GitHub repository or Trac",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "live: mark test as requiring a live GitHub repository or Trac",
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


@pytest.fixture
def trac_connection():
    """TracConnection pointing at a fake Trac instance."""
    return TracConnection(
        trac_url="https://trac.example.com/trac",
        username="testuser",
        password="testpass",
        insecure=False,
    )


@pytest.fixture
def mock_xml_response():
    """Factory fixture for creating XML-RPC response mocks."""

    def _create_response(content):
        mock_response = Mock()
        mock_response.status_code = 200
        mock_response.content = (
            content.encode() if isinstance(content, str) else content
        )
        return mock_response

    return _create_response


@pytest.fixture
def specs_root(tmp_path) -> Path:
    """Empty specs directory."""
    root = tmp_path / "specs"
    root.mkdir()
    return root


@pytest.fixture
def write_spec(specs_root):
    """Factory fixture writing ``<specs_root>/<name>/<filename>``."""

    def _write(name: str, content: str, filename: str = "spec.md") -> Path:
        path = specs_root / name / filename
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _write


class InMemoryRecordAdapter(RecordAdapter):
    """RecordAdapter over a dict of records, recording every call."""

    platform = "github"

    def __init__(self, supports_batch=False, authed=True, **kwargs):
        kwargs.setdefault("mapper", SpecMapper("specs"))
        super().__init__(**kwargs)
        self.records: dict[int, RemoteRecord] = {}
        self.supports_batch = supports_batch
        self.authed = authed
        self.calls: list[tuple] = []
        self.fail_on: dict[str, Exception] = {}
        self.fail_titles: set[str] = set()
        self._next_id = 1

    def _maybe_fail(self, op: str) -> None:
        if op in self.fail_on:
            raise self.fail_on[op]

    def capabilities(self) -> AdapterCapabilities:
        return AdapterCapabilities(
            supports_batch=self.supports_batch,
            supports_labels=True,
            supports_assignees=True,
            supports_conflict_resolution=True,
        )

    async def check_auth(self) -> bool:
        self.calls.append(("check_auth",))
        return self.authed

    def stored_remote_id(self, fm: Frontmatter):
        return fm.github.issue_number if fm.github else None

    def bind_remote_id(self, fm: Frontmatter, ref: RemoteRef) -> None:
        block = fm.github or GitHubMeta()
        block.issue_number = int(ref.id)
        fm.github = block

    def add(self, body: str, title: str = "Feature Specification: X"):
        record_id = self._next_id
        self._next_id += 1
        self.records[record_id] = RemoteRecord(
            id=record_id, title=title, body=body
        )
        return record_id

    async def search_by_spec_id(self, spec_id):
        self.calls.append(("search", spec_id))
        self._maybe_fail("search")
        for record in self.records.values():
            if identity.extract(record.body) == spec_id:
                return record
        return None

    async def fetch_record(self, record_id):
        self.calls.append(("fetch", record_id))
        self._maybe_fail("fetch")
        return self.records.get(int(record_id))

    async def create_record(self, title, body, labels):
        self.calls.append(("create", title))
        self._maybe_fail("create")
        if title in self.fail_titles:
            raise AdapterError(f"create rejected: {title}")
        record_id = self._next_id
        self._next_id += 1
        self.records[record_id] = RemoteRecord(
            id=record_id, title=title, body=body, labels=labels
        )
        return record_id

    async def update_record(self, record_id, title, body):
        self.calls.append(("update", record_id))
        self._maybe_fail("update")
        old = self.records[int(record_id)]
        self.records[int(record_id)] = old.model_copy(
            update={"title": title, "body": body}
        )

    async def batch_update_metadata(self, record_ids, labels, assignees):
        self.calls.append(("batch_metadata", tuple(record_ids)))
        self._maybe_fail("batch_metadata")

    def record_url(self, record_id):
        return f"https://example.com/issues/{record_id}"

    def ops(self, name: str) -> list[tuple]:
        return [call for call in self.calls if call[0] == name]


@pytest.fixture
def memory_adapter():
    """Factory for ``InMemoryRecordAdapter`` instances."""

    def _create(**kwargs) -> InMemoryRecordAdapter:
        return InMemoryRecordAdapter(**kwargs)

    return _create
