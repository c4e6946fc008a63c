"""Department grouping for the by-department view of the team."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

DEPARTMENT_ORDER: tuple[str, ...] = (
    "Board of Directors",
    "Board of Trustees",
    "Executive Leadership",
    "Executive",
    "Management",
    "Program Management",
    "Finance & Administration",
    "Finance",
    "Operations",
    "Communications & PR",
    "Communications",
    "Strategic Partnerships",
    "Human Resources",
)
OTHER_DEPARTMENT = "Other"


def department_label(member: dict[str, Any], *, other_label: str = OTHER_DEPARTMENT) -> str:
    raw = member.get("department")
    if raw is None:
        return other_label
    text = str(raw).strip()
    return text or other_label


def _member_key(member: dict[str, Any]) -> tuple[int, str, str]:
    return (
        int(member.get("sort_order") or 0),
        str(member.get("name") or ""),
        str(member.get("id") or ""),
    )


def group_by_department(
    members: Iterable[dict[str, Any]],
    *,
    order: Sequence[str] = DEPARTMENT_ORDER,
    other_label: str = OTHER_DEPARTMENT,
) -> dict[str, list[dict[str, Any]]]:
    """Group active members by department label.

    Groups follow ``order`` first, then departments missing from it in the
    order they were first seen, then the ``other_label`` bucket for members
    without a department (unless ``order`` places it explicitly).
    """
    groups: dict[str, list[dict[str, Any]]] = {}
    for member in members:
        if member.get("is_active") is False:
            continue
        groups.setdefault(department_label(member, other_label=other_label), []).append(member)

    for bucket in groups.values():
        bucket.sort(key=_member_key)

    ordered: dict[str, list[dict[str, Any]]] = {}
    for name in order:
        if name in groups:
            ordered[name] = groups[name]
    for name, bucket in groups.items():
        if name == other_label or name in ordered:
            continue
        ordered[name] = bucket
    if other_label in groups and other_label not in ordered:
        ordered[other_label] = groups[other_label]
    return ordered


def list_departments(members: Iterable[dict[str, Any]]) -> list[str]:
    """Distinct non-empty department labels in first-seen order."""
    seen: list[str] = []
    for member in members:
        text = str(member.get("department") or "").strip()
        if text and text not in seen:
            seen.append(text)
    return seen
