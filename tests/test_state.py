from __future__ import annotations

from pathlib import Path

import pytest

from orgchart.stores.state import find_state_dir, resolve_state_dir, scaffold_state_dir


def test_find_state_dir_walks_upward(tmp_path: Path) -> None:
    (tmp_path / ".orgchart").mkdir()
    nested = tmp_path / "a" / "b"
    nested.mkdir(parents=True)

    assert find_state_dir(nested) == (tmp_path / ".orgchart").resolve()


def test_resolve_without_create_has_no_side_effects(tmp_path: Path) -> None:
    assert find_state_dir(tmp_path) is None

    resolved = resolve_state_dir(tmp_path, create=False)

    assert resolved == tmp_path.resolve() / ".orgchart"
    assert not resolved.exists()


def test_env_override_is_returned_even_if_missing(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    target = tmp_path / "elsewhere"
    monkeypatch.setenv("ORGCHART_STATE_DIR", str(target))

    assert find_state_dir(tmp_path) == target.resolve()
    assert resolve_state_dir(tmp_path).is_dir()


def test_scaffold_keeps_existing_config_unless_forced(tmp_path: Path) -> None:
    state_dir = scaffold_state_dir(tmp_path, config_text="# first\n")
    (state_dir / "config.toml").write_text("# edited\n", encoding="utf-8")

    scaffold_state_dir(tmp_path, config_text="# second\n")
    assert (state_dir / "config.toml").read_text(encoding="utf-8") == "# edited\n"
    assert (state_dir / "activity.jsonl").exists()

    scaffold_state_dir(tmp_path, config_text="# second\n", force=True)
    assert (state_dir / "config.toml").read_text(encoding="utf-8") == "# second\n"
