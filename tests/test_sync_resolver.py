"""Tests for sync conflict resolver strategies."""

from __future__ import annotations

import logging

import pytest

from spec_sync.sync.models import ConflictInfo, ConflictStrategy
from spec_sync.sync.resolver import (
    InteractiveResolver,
    LocalWinsResolver,
    ManualResolver,
    RemoteWinsResolver,
    create_resolver,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_conflict(*reasons: str) -> ConflictInfo:
    """Build a minimal ConflictInfo for testing."""
    return ConflictInfo(
        spec_name="001-user-auth",
        remote_id=12,
        conflicts=list(reasons),
    )


# ---------------------------------------------------------------------------
# Resolvers
# ---------------------------------------------------------------------------


class TestResolvers:
    def test_local_wins(self) -> None:
        assert LocalWinsResolver().resolve(_make_conflict()) == "local"

    def test_remote_wins(self) -> None:
        assert RemoteWinsResolver().resolve(_make_conflict()) == "remote"

    def test_interactive_unavailable(self) -> None:
        assert (
            InteractiveResolver().resolve(_make_conflict()) == "unavailable"
        )

    def test_manual_leaves_conflict_and_warns(self, caplog) -> None:
        conflict = _make_conflict("UUID mismatch: local=a, remote=b")

        with caplog.at_level(logging.WARNING, logger="spec_sync.sync"):
            assert ManualResolver().resolve(conflict) == "manual"

        assert "UUID mismatch: local=a, remote=b" in caplog.text


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


class TestCreateResolver:
    @pytest.mark.parametrize(
        ("strategy", "expected"),
        [
            ("ours", LocalWinsResolver),
            ("theirs", RemoteWinsResolver),
            ("manual", ManualResolver),
            ("interactive", InteractiveResolver),
            (ConflictStrategy.THEIRS, RemoteWinsResolver),
            (None, ManualResolver),
        ],
    )
    def test_strategy_mapping(self, strategy, expected) -> None:
        assert isinstance(create_resolver(strategy), expected)

    def test_fresh_instance_each_call(self) -> None:
        assert create_resolver("manual") is not create_resolver("manual")

    def test_unknown_strategy(self) -> None:
        with pytest.raises(ValueError, match="Unknown conflict strategy"):
            create_resolver("merge")
