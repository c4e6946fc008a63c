"""Read-time org chart assembly.

The primary edges form a forest. Non-primary edges are consulted only to
detect shared children: members that report to more than one root.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class OrgNode:
    member: dict[str, Any]
    children: list[OrgNode] = field(default_factory=list)
    additional_managers: list[dict[str, Any]] = field(default_factory=list)

    @property
    def id(self) -> str:
        return str(self.member["id"])

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.member,
            "additional_managers": [dict(edge) for edge in self.additional_managers],
            "children": [child.to_dict() for child in self.children],
        }

    def walk(self) -> Iterator[OrgNode]:
        yield self
        for child in self.children:
            yield from child.walk()


@dataclass
class SharedChild:
    child: OrgNode
    parent_ids: list[str]

    def to_dict(self) -> dict[str, Any]:
        return {"child": self.child.to_dict(), "parent_ids": list(self.parent_ids)}


@dataclass
class Hierarchy:
    roots: list[OrgNode] = field(default_factory=list)
    shared_children: list[SharedChild] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "roots": [root.to_dict() for root in self.roots],
            "shared_children": [shared.to_dict() for shared in self.shared_children],
        }

    def flatten(self) -> list[OrgNode]:
        nodes: list[OrgNode] = []
        for root in self.roots:
            nodes.extend(root.walk())
        for shared in self.shared_children:
            nodes.extend(shared.child.walk())
        return nodes


def _sibling_key(member: dict[str, Any]) -> tuple[int, str, str]:
    return (
        int(member.get("sort_order") or 0),
        str(member.get("name") or ""),
        str(member["id"]),
    )


def _active(members: Iterable[dict[str, Any]]) -> dict[str, dict[str, Any]]:
    by_id: dict[str, dict[str, Any]] = {}
    for member in members:
        if member.get("is_active") is False:
            continue
        by_id[str(member["id"])] = member
    return by_id


def _primary_parents(by_id: dict[str, dict[str, Any]]) -> dict[str, str]:
    parents: dict[str, str] = {}
    for member_id, member in by_id.items():
        parent_id = member.get("parent_id")
        if parent_id and parent_id != member_id and parent_id in by_id:
            parents[member_id] = str(parent_id)
    return parents


def _cycle_members(parents: dict[str, str]) -> set[str]:
    state: dict[str, int] = {}
    on_cycle: set[str] = set()
    for start in sorted(parents):
        if state.get(start):
            continue
        path: list[str] = []
        index_by_id: dict[str, int] = {}
        current: str | None = start
        while current is not None and not state.get(current):
            state[current] = 1
            index_by_id[current] = len(path)
            path.append(current)
            current = parents.get(current)
        if current is not None and current in index_by_id:
            on_cycle.update(path[index_by_id[current] :])
        for member_id in path:
            state[member_id] = 2
    return on_cycle


def resolve_parents(members: Iterable[dict[str, Any]]) -> dict[str, str | None]:
    """Map each active member id to its effective tree parent.

    A member whose primary chain loops back on itself has no valid root and
    is treated as a root of its own.
    """
    by_id = _active(members)
    parents = _primary_parents(by_id)
    looped = _cycle_members(parents)
    if looped:
        logger.warning("primary edges form a cycle through %s", ", ".join(sorted(looped)))
    return {
        member_id: (None if member_id in looped else parents.get(member_id))
        for member_id in by_id
    }


def build_hierarchy(
    members: Iterable[dict[str, Any]],
    relationships: Iterable[dict[str, Any]] = (),
) -> Hierarchy:
    by_id = _active(members)
    parents = resolve_parents(by_id.values())

    additional: dict[str, list[dict[str, Any]]] = {}
    for edge in relationships:
        if edge.get("is_primary"):
            continue
        member_id = str(edge.get("member_id") or "")
        manager_id = str(edge.get("manager_id") or "")
        if member_id not in by_id or manager_id not in by_id or member_id == manager_id:
            continue
        additional.setdefault(member_id, []).append(edge)
    for edges in additional.values():
        edges.sort(key=lambda edge: (str(edge["manager_id"]), str(edge.get("id") or "")))

    nodes = {
        member_id: OrgNode(member=member, additional_managers=additional.get(member_id, []))
        for member_id, member in by_id.items()
    }
    root_ids = {member_id for member_id, parent_id in parents.items() if parent_id is None}
    roots = sorted((nodes[root_id] for root_id in root_ids), key=lambda n: _sibling_key(n.member))
    root_rank = {node.id: rank for rank, node in enumerate(roots)}

    shared: list[SharedChild] = []
    for member_id, node in nodes.items():
        if member_id in root_ids:
            continue
        managers: set[str] = set()
        parent_id = parents[member_id]
        if parent_id in root_ids:
            managers.add(parent_id)
        for edge in node.additional_managers:
            if edge["manager_id"] in root_ids:
                managers.add(str(edge["manager_id"]))
        if len(managers) > 1:
            shared.append(
                SharedChild(child=node, parent_ids=sorted(managers, key=root_rank.__getitem__))
            )
            continue
        nodes[parent_id].children.append(node)

    for node in nodes.values():
        node.children.sort(key=lambda n: _sibling_key(n.member))
    shared.sort(key=lambda item: _sibling_key(item.child.member))
    return Hierarchy(roots=roots, shared_children=shared)


def hierarchy_levels(members: Iterable[dict[str, Any]]) -> dict[str, int]:
    """Depth of each active member in the primary forest (roots are 0)."""
    parents = resolve_parents(members)
    levels: dict[str, int] = {}
    for member_id in sorted(parents):
        chain: list[str] = []
        current: str | None = member_id
        while current is not None and current not in levels:
            chain.append(current)
            current = parents[current]
        base = -1 if current is None else levels[current]
        for offset, chained_id in enumerate(reversed(chain), start=1):
            levels[chained_id] = base + offset
    return levels


def direct_reports(members: Iterable[dict[str, Any]], parent_id: str) -> list[dict[str, Any]]:
    rows = [
        member
        for member in members
        if member.get("is_active") is not False and member.get("parent_id") == parent_id
    ]
    rows.sort(key=_sibling_key)
    return rows
