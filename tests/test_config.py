from __future__ import annotations

import tomllib
from pathlib import Path

from orgchart.config import (
    DEFAULT_PORT,
    DepartmentsFileConfig,
    ServerFileConfig,
    load_config,
    render_default_config,
)
from orgchart.departments import DEPARTMENT_ORDER


def _write_config(tmp_path: Path, body: str) -> None:
    path = tmp_path / ".orgchart" / "config.toml"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(body.strip() + "\n", encoding="utf-8")


def test_load_config_defaults_when_file_is_missing(tmp_path: Path) -> None:
    cfg = load_config(tmp_path)

    assert cfg.error is None
    assert cfg.departments == DepartmentsFileConfig()
    assert cfg.server == ServerFileConfig(host="127.0.0.1", port=DEFAULT_PORT)
    assert cfg.log_level == "INFO"
    assert not (tmp_path / ".orgchart").exists()


def test_load_config_reads_all_tables(tmp_path: Path) -> None:
    _write_config(
        tmp_path,
        """
[departments]
order = ["Board of Trustees", "Finance"]
other_label = "Unassigned"

[server]
host = "0.0.0.0"
port = 9000

[logging]
level = "debug"
""",
    )

    cfg = load_config(tmp_path)

    assert cfg.error is None
    assert cfg.departments.order == ("Board of Trustees", "Finance")
    assert cfg.departments.other_label == "Unassigned"
    assert cfg.server == ServerFileConfig(host="0.0.0.0", port=9000)
    assert cfg.log_level == "DEBUG"


def test_load_config_reports_invalid_toml(tmp_path: Path) -> None:
    _write_config(tmp_path, "[departments\norder = 1")

    cfg = load_config(tmp_path)

    assert cfg.error is not None
    assert "invalid TOML" in cfg.error
    assert cfg.departments.order == DEPARTMENT_ORDER


def test_load_config_reports_invalid_values(tmp_path: Path) -> None:
    _write_config(tmp_path, "[server]\nport = 70000\n")
    assert "[server].port must be between 1 and 65535" in (load_config(tmp_path).error or "")

    _write_config(tmp_path, '[departments]\norder = ["Finance", "Finance"]\n')
    assert "more than once" in (load_config(tmp_path).error or "")

    _write_config(tmp_path, '[logging]\nlevel = "LOUD"\n')
    assert "[logging].level" in (load_config(tmp_path).error or "")

    _write_config(tmp_path, 'departments = "Finance"\n')
    assert "[departments] must be a table" in (load_config(tmp_path).error or "")


def test_rendered_default_config_round_trips(tmp_path: Path) -> None:
    raw = tomllib.loads(render_default_config())
    assert tuple(raw["departments"]["order"]) == DEPARTMENT_ORDER

    _write_config(tmp_path, render_default_config())
    cfg = load_config(tmp_path)
    assert cfg.error is None
    assert cfg.departments == DepartmentsFileConfig()
    assert cfg.server.port == DEFAULT_PORT


def test_state_dir_env_wins(tmp_path: Path, monkeypatch) -> None:
    state_dir = tmp_path / "state"
    state_dir.mkdir()
    (state_dir / "config.toml").write_text("[server]\nport = 8111\n", encoding="utf-8")
    monkeypatch.setenv("ORGCHART_STATE_DIR", str(state_dir))

    assert load_config(tmp_path / "anywhere").server.port == 8111
