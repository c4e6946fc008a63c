from __future__ import annotations

import os
import time
from pathlib import Path

STATE_DIRNAME = ".orgchart"
STATE_DIR_ENV = "ORGCHART_STATE_DIR"

CONFIG_FILENAME = "config.toml"
DB_FILENAME = "team.sqlite3"
ACTIVITY_FILENAME = "activity.jsonl"


def now_ms() -> int:
    return int(time.time() * 1000)


def find_state_dir(cwd: Path | None = None) -> Path | None:
    """Return an existing state directory without creating anything.

    ``ORGCHART_STATE_DIR`` wins even when it does not exist yet; otherwise
    the nearest ``.orgchart`` from ``cwd`` upward.
    """
    raw = os.environ.get(STATE_DIR_ENV, "").strip()
    if raw:
        return Path(raw).expanduser().resolve()
    start = (cwd or Path.cwd()).resolve()
    for base in (start, *start.parents):
        candidate = base / STATE_DIRNAME
        if candidate.is_dir():
            return candidate
    return None


def resolve_state_dir(cwd: Path | None = None, *, create: bool = True) -> Path:
    """Return the state directory, falling back to ``cwd/.orgchart``."""
    state_dir = find_state_dir(cwd) or (cwd or Path.cwd()).resolve() / STATE_DIRNAME
    if create:
        state_dir.mkdir(parents=True, exist_ok=True)
    return state_dir


def scaffold_state_dir(cwd: Path, *, config_text: str, force: bool = False) -> Path:
    """Create ``cwd/.orgchart`` with a config file and an empty activity log.

    The sqlite schema is created by the store on first connect.
    """
    state_dir = cwd / STATE_DIRNAME
    state_dir.mkdir(parents=True, exist_ok=True)
    config = state_dir / CONFIG_FILENAME
    if force or not config.exists():
        config.write_text(config_text, encoding="utf-8")
    (state_dir / ACTIVITY_FILENAME).touch()
    return state_dir
