"""Tests for GitHubAdapter over a mocked gh client."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from spec_sync.adapters.github import GitHubAdapter, GitHubCLIError
from spec_sync.adapters.mapper import SpecMapper
from spec_sync.core import identity
from spec_sync.models import RemoteRef, SpecDocument, SpecFile
from spec_sync.schemas import Frontmatter, GitHubMeta

SPEC_ID = "3f2b8a9c-1d4e-4f6a-9b7c-2e5d8f1a3c4b"


def _make_client(owner: str = "o", repo: str = "r") -> MagicMock:
    client = MagicMock()
    client.owner = owner
    client.repo = repo
    client.search_issue_by_spec_id.return_value = None
    client.get_issue.return_value = None
    client.check_auth.return_value = True
    return client


def _make_issue(number: int = 5, body: str = "# Auth\n") -> dict:
    return {
        "number": number,
        "title": "Feature Specification: User Auth",
        "body": body,
        "state": "OPEN",
        "labels": ["spec"],
        "assignees": ["octocat"],
        "milestone": None,
        "url": f"https://github.com/o/r/issues/{number}",
    }


def _make_doc(extra: dict[str, str] | None = None, **fm) -> SpecDocument:
    fm.setdefault("spec_id", SPEC_ID)
    folder = Path("specs/001-user-auth")
    files = {
        "spec.md": SpecFile(
            path=folder / "spec.md",
            filename="spec.md",
            content="",
            markdown="# Auth\n",
            frontmatter=Frontmatter(**fm),
        )
    }
    for name, text in (extra or {}).items():
        files[name] = SpecFile(
            path=folder / name, filename=name, content=text, markdown=text
        )
    return SpecDocument(name="001-user-auth", path=folder, files=files)


@pytest.fixture
def client():
    return _make_client()


@pytest.fixture
def adapter(client):
    return GitHubAdapter(client, SpecMapper("specs"))


# ---------------------------------------------------------------------------
# Basics
# ---------------------------------------------------------------------------


class TestBasics:
    def test_capabilities(self, adapter):
        caps = adapter.capabilities()
        assert caps.supports_batch
        assert caps.supports_subtasks

    def test_binding_uses_issue_number(self, adapter):
        fm = Frontmatter()
        assert adapter.stored_remote_id(fm) is None

        adapter.bind_remote_id(fm, RemoteRef(id=42))
        assert fm.github.issue_number == 42
        assert adapter.stored_remote_id(fm) == 42

    def test_bind_keeps_other_github_fields(self, adapter):
        fm = Frontmatter(github=GitHubMeta(issue_number=1, labels=["x"]))
        adapter.bind_remote_id(fm, RemoteRef(id=2))
        assert fm.github.labels == ["x"]

    def test_record_url(self, adapter):
        assert adapter.record_url(3) == "https://github.com/o/r/issues/3"

    def test_record_url_unknown_repo(self):
        adapter = GitHubAdapter(_make_client(owner="", repo=""))
        assert adapter.record_url(3) is None

    async def test_check_auth(self, adapter, client):
        assert await adapter.check_auth()
        client.check_auth.assert_called_once()


# ---------------------------------------------------------------------------
# Push
# ---------------------------------------------------------------------------


class TestPush:
    async def test_create_embeds_marker_and_subtasks(self, adapter, client):
        client.create_issue.return_value = 12
        client.create_subtask.return_value = 13
        doc = _make_doc(extra={"plan.md": "# Plan\n"})

        ref = await adapter.push(doc)

        assert ref == RemoteRef(
            id=12, url="https://github.com/o/r/issues/12"
        )
        title, body, labels = client.create_issue.call_args.args
        assert title == "Feature Specification: User Auth"
        assert identity.extract(body) == SPEC_ID
        assert labels == ["spec"]

        parent, sub_title, _, sub_labels = client.create_subtask.call_args.args
        assert parent == 12
        assert sub_title == "Plan: User Auth"
        assert sub_labels == ["plan"]

    async def test_update_when_found_by_spec_id(self, adapter, client):
        client.search_issue_by_spec_id.return_value = _make_issue(
            7, body=identity.marker(SPEC_ID)
        )

        ref = await adapter.push(_make_doc())

        assert ref.id == 7
        client.update_issue.assert_called_once()
        assert client.update_issue.call_args.args == (7,)
        assert "title" in client.update_issue.call_args.kwargs
        client.create_issue.assert_not_called()

    async def test_label_failure_does_not_block_create(self, adapter, client):
        client.ensure_labels_exist.side_effect = GitHubCLIError("HTTP 403")
        client.create_issue.return_value = 4

        ref = await adapter.push(_make_doc())

        assert ref.id == 4

    async def test_create_failure_propagates(self, adapter, client):
        client.create_issue.side_effect = GitHubCLIError("HTTP 502")

        with pytest.raises(GitHubCLIError):
            await adapter.push(_make_doc())


# ---------------------------------------------------------------------------
# Pull and batch
# ---------------------------------------------------------------------------


class TestPullAndBatch:
    async def test_pull_builds_bound_document(self, adapter, client):
        body = f"{identity.marker(SPEC_ID)}\n\n# Auth\n\nDetails"
        client.get_issue.return_value = _make_issue(5, body=body)

        doc = await adapter.pull(RemoteRef(id=5))

        fm = doc.canonical.frontmatter
        assert doc.name == "user-auth"
        assert fm.spec_id == SPEC_ID
        assert fm.github.issue_number == 5
        assert fm.github.assignees == ["octocat"]
        assert doc.canonical.markdown == "# Auth\n\nDetails\n"

    async def test_batch_metadata_single_call(self, client):
        adapter = GitHubAdapter(client, assignees="octocat")
        client.get_issue.side_effect = lambda n: _make_issue(n)
        docs = [
            _make_doc(spec_id=None, github=GitHubMeta(issue_number=n))
            for n in (1, 2)
        ]

        results = await adapter.push_batch(docs)

        assert [r.id for r in results] == [1, 2]
        client.batch_update_issues.assert_called_once_with(
            [1, 2], labels=["spec"], assignees=["octocat"]
        )
        assert client.update_issue.call_count == 2

    async def test_subtask_listing(self, adapter, client):
        client.get_subtasks.return_value = [8, 9]

        refs = await adapter.get_subtasks(RemoteRef(id=1))

        assert [(r.id, r.type) for r in refs] == [
            (8, "subtask"),
            (9, "subtask"),
        ]

    async def test_state_operations(self, adapter, client):
        await adapter.close(RemoteRef(id=3))
        await adapter.reopen(RemoteRef(id=3))
        await adapter.add_comment(RemoteRef(id=3), "note")

        client.close_issue.assert_called_once_with(3)
        client.reopen_issue.assert_called_once_with(3)
        client.add_comment.assert_called_once_with(3, "note")
