"""Tests for create_adapter()."""

from __future__ import annotations

import pytest

from spec_sync.adapters import GitHubAdapter, TracAdapter, create_adapter
from spec_sync.config_schema import GitHubConfig, SyncConfig, TracConfig

_ENV_KEYS = (
    "GITHUB_OWNER",
    "GITHUB_REPO",
    "GITHUB_TOKEN",
    "TRAC_URL",
    "TRAC_USERNAME",
    "TRAC_PASSWORD",
    "TRAC_INSECURE",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


class TestCreateAdapter:
    def test_default_is_github_autodetect(self):
        adapter = create_adapter(SyncConfig())

        assert isinstance(adapter, GitHubAdapter)
        assert adapter.client.owner == ""
        assert adapter.client.token is None
        assert adapter.max_concurrent_creates == 5

    def test_github_section(self):
        config = SyncConfig(
            specs_root="docs/specs",
            max_concurrent_creates=3,
            github=GitHubConfig(
                owner="acme",
                repo="widgets",
                auth="token",
                token="t0ken",
                assignees="octocat",
            ),
        )

        adapter = create_adapter(config)

        assert adapter.client.repo_slug() == "acme/widgets"
        assert adapter.client.token == "t0ken"
        assert adapter.assignees == ["octocat"]
        assert adapter.max_concurrent_creates == 3
        assert str(adapter.mapper.specs_root) == "docs/specs"

    def test_env_overrides_github_section(self, monkeypatch):
        monkeypatch.setenv("GITHUB_OWNER", "env-owner")
        monkeypatch.setenv("GITHUB_REPO", "env-repo")

        adapter = create_adapter(
            SyncConfig(github=GitHubConfig(owner="acme", repo="widgets"))
        )

        assert adapter.client.repo_slug() == "env-owner/env-repo"

    def test_trac(self):
        config = SyncConfig(
            platform="trac",
            trac=TracConfig(
                url="https://trac.example.com/",
                username="alice",
                password="secret",
                assignees=["alice"],
            ),
        )

        adapter = create_adapter(config)

        assert isinstance(adapter, TracAdapter)
        assert adapter.client.rpc_url == "https://trac.example.com/login/rpc"
        assert adapter.assignees == ["alice"]

    def test_trac_missing_credentials(self):
        config = SyncConfig(
            platform="trac", trac=TracConfig(url="https://trac.example.com")
        )
        with pytest.raises(ValueError, match="username not found"):
            create_adapter(config)

    def test_unsupported_platform(self):
        config = SyncConfig().model_copy(update={"platform": "jira"})
        with pytest.raises(ValueError, match="Unsupported platform"):
            create_adapter(config)
