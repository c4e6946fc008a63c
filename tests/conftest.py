from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from orgchart.hooks import Actor
from orgchart.stores.team import TeamStore


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("ORGCHART_STATE_DIR", "ORGCHART_ACTOR", "ORGCHART_OUTPUT"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def actor() -> Actor:
    return Actor(id="u-admin", email="admin@example.org", name="Admin")


@pytest.fixture
def store(tmp_path: Path) -> TeamStore:
    return TeamStore(tmp_path / ".orgchart")


def member(
    member_id: str,
    name: str | None = None,
    *,
    parent_id: str | None = None,
    sort_order: int = 0,
    department: str | None = None,
    is_active: bool = True,
) -> dict[str, Any]:
    return {
        "id": member_id,
        "name": name or member_id.upper(),
        "position": "",
        "department": department,
        "sort_order": sort_order,
        "parent_id": parent_id,
        "is_active": is_active,
    }


def edge(
    member_id: str,
    manager_id: str,
    *,
    report_type: str = "dotted",
    is_primary: bool = False,
) -> dict[str, Any]:
    return {
        "id": f"rel-{member_id}-{manager_id}",
        "member_id": member_id,
        "manager_id": manager_id,
        "is_primary": is_primary,
        "report_type": report_type,
        "notes": None,
    }
