from __future__ import annotations

from .state import find_state_dir, now_ms, resolve_state_dir, scaffold_state_dir
from .team import REPORT_TYPES, TeamStore

__all__ = [
    "REPORT_TYPES",
    "TeamStore",
    "find_state_dir",
    "now_ms",
    "resolve_state_dir",
    "scaffold_state_dir",
]
