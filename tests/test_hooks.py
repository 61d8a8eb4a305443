"""Tests for hook-triggered syncs."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from spec_sync.config_schema import SyncConfig
from spec_sync.core import frontmatter as codec
from spec_sync.hooks import hook_target, run_hook
from spec_sync.sync.models import SyncAction

SPEC_ID = "3f2b8a9c-1d4e-4f6a-9b7c-2e5d8f1a3c4b"


@pytest.fixture(autouse=True)
def no_logging_setup():
    """Keep run_hook() from touching the root logger."""
    with patch("spec_sync.hooks.configure_logging") as mock_configure:
        yield mock_configure


# ---------------------------------------------------------------------------
# hook_target
# ---------------------------------------------------------------------------


class TestHookTarget:
    """Tests for hook_target()."""

    def test_spec_markdown(self, tmp_path, write_spec):
        path = write_spec("001-a", "# A\n")

        folder, key = hook_target(path, SyncConfig(), tmp_path)

        assert folder == path.parent.resolve()
        assert key == "spec.md"

    def test_relative_path(self, tmp_path, write_spec):
        write_spec("001-a", "# Plan\n", filename="plan.md")

        folder, key = hook_target(
            "specs/001-a/plan.md", SyncConfig(), tmp_path
        )

        assert folder.name == "001-a"
        assert key == "plan.md"

    def test_contract_file_maps_to_spec_folder(self, tmp_path, write_spec):
        path = write_spec("001-a", "# API\n", filename="contracts/api.md")

        folder, key = hook_target(path, SyncConfig(), tmp_path)

        assert folder.name == "001-a"
        assert key == "contracts/api.md"

    @pytest.mark.parametrize(
        "relative",
        ["specs/001-a/notes.txt", "docs/001-a/spec.md", "specs/spec.md"],
    )
    def test_outside_spec_folders_ignored(self, tmp_path, relative):
        assert hook_target(relative, SyncConfig(), tmp_path) is None

    def test_auto_sync_off_ignores_everything(self, tmp_path, write_spec):
        path = write_spec("001-a", "# A\n")
        config = SyncConfig(auto_sync=False)

        assert hook_target(path, config, tmp_path) is None


# ---------------------------------------------------------------------------
# run_hook
# ---------------------------------------------------------------------------


class TestRunHook:
    """Tests for run_hook()."""

    async def test_syncs_changed_spec(
        self, tmp_path, write_spec, memory_adapter, no_logging_setup
    ):
        path = write_spec("001-a", f"---\nspec_id: {SPEC_ID}\n---\n# A\n")
        adapter = memory_adapter()
        config = SyncConfig()

        result = await run_hook(
            path, config=config, base_dir=tmp_path, adapter=adapter
        )

        assert result.success
        assert result.action == SyncAction.CREATE
        assert len(adapter.ops("create")) == 1
        assert not codec.has_changed(codec.decode(path.read_text()))
        no_logging_setup.assert_called_once_with(config, mode="hook")

    async def test_file_opt_out(self, tmp_path, write_spec, memory_adapter):
        path = write_spec(
            "001-a", f"---\nspec_id: {SPEC_ID}\nauto_sync: false\n---\n# A\n"
        )
        adapter = memory_adapter()

        result = await run_hook(
            path, config=SyncConfig(), base_dir=tmp_path, adapter=adapter
        )

        assert result is None
        assert adapter.calls == []

    async def test_config_opt_out(self, tmp_path, write_spec, memory_adapter):
        path = write_spec("001-a", "# A\n")
        adapter = memory_adapter()

        result = await run_hook(
            path,
            config=SyncConfig(auto_sync=False),
            base_dir=tmp_path,
            adapter=adapter,
        )

        assert result is None
        assert adapter.calls == []

    async def test_config_discovered_from_base_dir(
        self, tmp_path, write_spec, memory_adapter, monkeypatch
    ):
        monkeypatch.delenv("SPEC_SYNC_CONFIG", raising=False)
        monkeypatch.setenv("HOME", str(tmp_path / "home"))
        config_file = tmp_path / ".specify" / "sync.config.yml"
        config_file.parent.mkdir()
        config_file.write_text("autoSync: false\n")
        path = write_spec("001-a", "# A\n")
        adapter = memory_adapter()

        result = await run_hook(path, base_dir=tmp_path, adapter=adapter)

        assert result is None
        assert adapter.calls == []

    async def test_broken_config_returns_none(
        self, tmp_path, write_spec, memory_adapter, monkeypatch
    ):
        monkeypatch.delenv("SPEC_SYNC_CONFIG", raising=False)
        monkeypatch.setenv("HOME", str(tmp_path / "home"))
        config_file = tmp_path / ".specify" / "sync.config.yml"
        config_file.parent.mkdir()
        config_file.write_text("conflict_strategy: merge\n")
        path = write_spec("001-a", "# A\n")

        result = await run_hook(
            path, base_dir=tmp_path, adapter=memory_adapter()
        )

        assert result is None

    async def test_bad_frontmatter_returns_none(
        self, tmp_path, write_spec, memory_adapter
    ):
        path = write_spec("001-a", "---\nsync_hash: XYZ\n---\n# A\n")
        adapter = memory_adapter()

        result = await run_hook(
            path, config=SyncConfig(), base_dir=tmp_path, adapter=adapter
        )

        assert result is None
        assert adapter.calls == []

    async def test_failed_sync_is_returned(
        self, tmp_path, write_spec, memory_adapter
    ):
        path = write_spec("001-a", f"---\nspec_id: {SPEC_ID}\n---\n# A\n")
        adapter = memory_adapter(authed=False)

        result = await run_hook(
            path, config=SyncConfig(), base_dir=tmp_path, adapter=adapter
        )

        assert not result.success
        assert result.error_category == "auth"
