"""Tests for the sync config schema.

Covers the Pydantic models in config_schema.py (SyncConfig, GitHubConfig,
TracConfig, GitHubLabels, LoggingConfig) and the build_config() factory.
"""

import pytest
from pydantic import ValidationError

from spec_sync.config_schema import (
    GitHubConfig,
    GitHubLabels,
    LoggingConfig,
    SyncConfig,
    TracConfig,
    build_config,
)

# ---------------------------------------------------------------------------
# SyncConfig tests
# ---------------------------------------------------------------------------


class TestSyncConfig:
    """Tests for the top-level SyncConfig model."""

    def test_empty_config_produces_valid_defaults(self):
        """No arguments describes a GitHub sync of ./specs."""
        config = SyncConfig()
        assert config.platform == "github"
        assert config.specs_root == "specs"
        assert config.auto_sync is True
        assert config.conflict_strategy == "manual"
        assert config.max_concurrent_creates == 5
        assert config.github is None
        assert config.trac is None
        assert config.logging.level == "INFO"

    def test_full_config_with_all_sections(self):
        config = SyncConfig(
            platform="trac",
            specs_root="docs/specs",
            conflict_strategy="theirs",
            max_concurrent_creates=10,
            trac=TracConfig(
                url="https://trac.example.com",
                username="admin",
                password="secret",
                labels=GitHubLabels(common="specs"),
            ),
            logging=LoggingConfig(level="DEBUG", file="/tmp/sync.log"),
        )
        assert config.trac.url == "https://trac.example.com"
        assert config.trac.labels.common == "specs"
        assert config.conflict_strategy == "theirs"
        assert config.logging.file == "/tmp/sync.log"

    def test_unknown_sections_ignored(self):
        """Unknown sections are ignored (forward compatibility)."""
        raw: dict[str, object] = {
            "platform": "github",
            "jira": {"url": "https://jira.example.com"},
        }
        config = SyncConfig(**raw)  # type: ignore[arg-type]
        assert not hasattr(config, "jira")

    def test_frozen_model_prevents_mutation(self):
        config = SyncConfig()
        with pytest.raises(ValidationError):
            config.platform = "trac"

    def test_trac_platform_requires_section(self):
        with pytest.raises(ValidationError, match="'trac' section"):
            SyncConfig(platform="trac")

    def test_github_owner_without_repo_rejected(self):
        with pytest.raises(ValidationError, match="both owner and repo"):
            SyncConfig(github=GitHubConfig(owner="acme"))

    def test_github_autodetect_allowed(self):
        config = SyncConfig(github=GitHubConfig())
        assert config.github.owner == ""

    @pytest.mark.parametrize("value", [0, 21, -1])
    def test_max_concurrent_creates_bounds(self, value):
        with pytest.raises(ValidationError):
            SyncConfig(max_concurrent_creates=value)

    @pytest.mark.parametrize("value", [1, 20])
    def test_max_concurrent_creates_limits_valid(self, value):
        assert (
            SyncConfig(max_concurrent_creates=value).max_concurrent_creates
            == value
        )

    def test_conflict_strategy_rejects_unknown(self):
        with pytest.raises(ValidationError):
            SyncConfig(conflict_strategy="merge")

    def test_platform_rejects_unknown(self):
        with pytest.raises(ValidationError):
            SyncConfig(platform="asana")


# ---------------------------------------------------------------------------
# Section tests
# ---------------------------------------------------------------------------


class TestGitHubConfig:
    def test_defaults(self):
        config = GitHubConfig()
        assert config.owner == ""
        assert config.repo == ""
        assert config.auth == "cli"
        assert config.token is None
        assert config.labels == GitHubLabels()

    def test_auth_mode_validated(self):
        with pytest.raises(ValidationError):
            GitHubConfig(auth="oauth")

    def test_labels_accept_string_or_list(self):
        labels = GitHubLabels(spec="feature", common=["specs", "docs"])
        assert labels.spec == "feature"
        assert labels.common == ["specs", "docs"]


class TestTracConfig:
    def test_all_fields_optional_zero_config(self):
        config = TracConfig()
        assert config.url is None
        assert config.username is None
        assert config.password is None
        assert config.insecure is False
        assert config.ticket_type == "task"
        assert config.assignees is None

    def test_frozen_model(self):
        config = TracConfig(url="https://trac.example.com")
        with pytest.raises(ValidationError):
            config.url = "https://changed.example.com"


class TestLoggingConfig:
    def test_defaults(self):
        config = LoggingConfig()
        assert config.level == "INFO"
        assert config.file is None

    def test_custom_values(self):
        config = LoggingConfig(level="DEBUG", file="/var/log/sync.log")
        assert config.level == "DEBUG"
        assert config.file == "/var/log/sync.log"


# ---------------------------------------------------------------------------
# build_config tests
# ---------------------------------------------------------------------------


class TestBuildConfig:
    """Tests for build_config() factory function."""

    def test_empty_dict_returns_defaults(self):
        assert build_config({}) == SyncConfig()

    def test_none_like_empty(self):
        assert build_config(None) == SyncConfig()

    def test_partial_sections_fill_defaults(self):
        config = build_config({"github": {"owner": "acme", "repo": "w"}})
        assert config.github.owner == "acme"
        assert config.github.auth == "cli"
        assert config.logging.level == "INFO"

    def test_camel_case_aliases(self):
        config = build_config(
            {
                "autoSync": False,
                "conflictStrategy": "ours",
                "specsRoot": "specifications",
                "maxConcurrentCreates": 2,
            }
        )
        assert config.auto_sync is False
        assert config.conflict_strategy == "ours"
        assert config.specs_root == "specifications"
        assert config.max_concurrent_creates == 2

    def test_snake_case_wins_over_alias(self):
        config = build_config(
            {"conflict_strategy": "theirs", "conflictStrategy": "ours"}
        )
        assert config.conflict_strategy == "theirs"

    def test_full_raw_dict(self):
        config = build_config(
            {
                "platform": "trac",
                "trac": {
                    "url": "https://trac.example.com",
                    "labels": {"spec": ["spec", "feature"]},
                    "assignees": "alice",
                },
                "logging": {"level": "WARNING"},
            }
        )
        assert config.platform == "trac"
        assert config.trac.labels.spec == ["spec", "feature"]
        assert config.trac.assignees == "alice"
        assert config.logging.level == "WARNING"

    def test_invalid_data_raises(self):
        with pytest.raises(ValidationError):
            build_config({"max_concurrent_creates": "many"})
