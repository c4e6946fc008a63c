"""Cycle-safe candidate selection for primary managers.

Only the primary edge (mirrored by ``parent_id``) shapes the canonical tree,
so dotted-line relationships are ignored here.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any


def _children_by_parent(members: Iterable[dict[str, Any]]) -> dict[str, list[str]]:
    children: dict[str, list[str]] = {}
    for member in members:
        parent_id = member.get("parent_id")
        member_id = str(member["id"])
        if parent_id and parent_id != member_id:
            children.setdefault(str(parent_id), []).append(member_id)
    return children


def descendant_ids(members: Iterable[dict[str, Any]], member_id: str) -> set[str]:
    """Ids whose primary chain passes through ``member_id`` (excluding itself)."""
    children_by_parent = _children_by_parent(members)
    visited: set[str] = {member_id}
    found: set[str] = set()
    queue = [member_id]
    cursor = 0
    while cursor < len(queue):
        current = queue[cursor]
        cursor += 1
        for child_id in sorted(children_by_parent.get(current, [])):
            if child_id in visited:
                continue
            visited.add(child_id)
            found.add(child_id)
            queue.append(child_id)
    return found


def excluded_parent_ids(members: Iterable[dict[str, Any]], exclude_id: str) -> set[str]:
    return {exclude_id} | descendant_ids(members, exclude_id)


def _candidate_key(member: dict[str, Any]) -> tuple[bool, str, int, str, str]:
    department = member.get("department")
    return (
        department is None,
        str(department or ""),
        int(member.get("sort_order") or 0),
        str(member.get("name") or ""),
        str(member.get("id") or ""),
    )


def potential_parents(
    members: Iterable[dict[str, Any]],
    exclude_id: str | None = None,
) -> list[dict[str, Any]]:
    """Active members that can be offered as someone's primary manager.

    With ``exclude_id`` the member itself and all of its primary descendants
    are left out, so picking any returned member cannot close a cycle.
    """
    rows = list(members)
    excluded = excluded_parent_ids(rows, exclude_id) if exclude_id else set()
    candidates = [
        member
        for member in rows
        if member.get("is_active") is not False and str(member["id"]) not in excluded
    ]
    candidates.sort(key=_candidate_key)
    return candidates


def creates_cycle(
    members: Iterable[dict[str, Any]],
    member_id: str,
    manager_id: str,
) -> bool:
    """True when making ``manager_id`` the primary manager would close a loop."""
    if member_id == manager_id:
        return True
    return manager_id in descendant_ids(members, member_id)
