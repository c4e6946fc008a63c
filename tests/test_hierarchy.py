from __future__ import annotations

import logging
import random
from typing import Any

import pytest
from conftest import edge, member

from orgchart.hierarchy import build_hierarchy, direct_reports, hierarchy_levels, resolve_parents


def test_shared_child_scenario() -> None:
    a = member("a", "A", sort_order=1)
    b = member("b", "B", sort_order=2)
    c = member("c", "C", parent_id="a")

    tree = build_hierarchy([a, b, c], [edge("c", "b", report_type="dotted")])

    assert [root.id for root in tree.roots] == ["a", "b"]
    assert [(shared.child.id, shared.parent_ids) for shared in tree.shared_children] == [
        ("c", ["a", "b"])
    ]
    assert tree.roots[0].children == []
    assert tree.roots[1].children == []


def test_flatten_contains_each_active_member_once() -> None:
    rng = random.Random(1234)
    for _ in range(40):
        rows: list[dict[str, Any]] = []
        for idx in range(rng.randint(1, 20)):
            parent = rng.choice(rows)["id"] if rows and rng.random() < 0.75 else None
            rows.append(
                member(
                    f"m{idx:02d}",
                    parent_id=parent,
                    sort_order=rng.randint(0, 2),
                    is_active=rng.random() > 0.15,
                )
            )
        edges = []
        for row in rows:
            for other in rng.sample(rows, k=min(2, len(rows))):
                if other["id"] not in (row["id"], row["parent_id"]):
                    edges.append(edge(row["id"], other["id"]))

        tree = build_hierarchy(rows, edges)

        flat = [node.id for node in tree.flatten()]
        active = [row["id"] for row in rows if row["is_active"]]
        assert len(flat) == len(set(flat))
        assert sorted(flat) == sorted(active)


def test_roots_and_children_follow_sort_order_then_name() -> None:
    rows = [
        member("r2", "Root Two", sort_order=2),
        member("r1", "Root One", sort_order=1),
        member("k3", "Zoe", parent_id="r1", sort_order=0),
        member("k2", "Bea", parent_id="r1", sort_order=1),
        member("k1", "Abe", parent_id="r1", sort_order=1),
    ]

    tree = build_hierarchy(rows)

    assert [root.id for root in tree.roots] == ["r1", "r2"]
    assert [child.id for child in tree.roots[0].children] == ["k3", "k1", "k2"]


def test_inactive_and_dangling_parents_surface_as_roots() -> None:
    rows = [
        member("a", sort_order=1),
        member("b", parent_id="a", is_active=False),
        member("c", parent_id="b", sort_order=2),
        member("d", parent_id="tm-deleted", sort_order=3),
    ]

    tree = build_hierarchy(rows)

    assert [root.id for root in tree.roots] == ["a", "c", "d"]
    assert tree.shared_children == []


def test_primary_cycle_members_become_roots(caplog: pytest.LogCaptureFixture) -> None:
    rows = [
        member("a", parent_id="b", sort_order=1),
        member("b", parent_id="a", sort_order=2),
        member("c", parent_id="a"),
    ]

    with caplog.at_level(logging.WARNING, logger="orgchart.hierarchy"):
        tree = build_hierarchy(rows)

    assert [root.id for root in tree.roots] == ["a", "b"]
    assert [child.id for child in tree.roots[0].children] == ["c"]
    assert "cycle" in caplog.text
    assert resolve_parents(rows) == {"a": None, "b": None, "c": "a"}


def test_shared_child_keeps_its_own_subtree() -> None:
    rows = [
        member("a", sort_order=1),
        member("b", sort_order=2),
        member("c", parent_id="a"),
        member("e", parent_id="c"),
    ]

    tree = build_hierarchy(rows, [edge("c", "b")])

    assert [shared.child.id for shared in tree.shared_children] == ["c"]
    assert [child.id for child in tree.shared_children[0].child.children] == ["e"]


def test_dotted_line_to_non_root_is_not_shared() -> None:
    rows = [
        member("a"),
        member("b", parent_id="a", sort_order=1),
        member("c", parent_id="a", sort_order=2),
    ]

    tree = build_hierarchy(rows, [edge("c", "b")])

    assert tree.shared_children == []
    assert [child.id for child in tree.roots[0].children] == ["b", "c"]
    assert [e["manager_id"] for e in tree.roots[0].children[1].additional_managers] == ["b"]


def test_member_below_a_manager_can_still_be_shared_between_roots() -> None:
    rows = [
        member("a", sort_order=1),
        member("b", sort_order=2),
        member("x", parent_id="a"),
        member("c", parent_id="x"),
    ]

    tree = build_hierarchy(rows, [edge("c", "a"), edge("c", "b")])

    assert [(s.child.id, s.parent_ids) for s in tree.shared_children] == [("c", ["a", "b"])]
    assert tree.roots[0].children[0].id == "x"
    assert tree.roots[0].children[0].children == []


def test_roots_are_never_shared() -> None:
    rows = [member("a", sort_order=1), member("b", sort_order=2), member("c", sort_order=3)]

    tree = build_hierarchy(rows, [edge("a", "b"), edge("a", "c")])

    assert [root.id for root in tree.roots] == ["a", "b", "c"]
    assert tree.shared_children == []


def test_edges_touching_inactive_members_are_ignored() -> None:
    rows = [
        member("a", sort_order=1),
        member("b", sort_order=2, is_active=False),
        member("c", parent_id="a"),
    ]

    tree = build_hierarchy(rows, [edge("c", "b")])

    assert tree.shared_children == []
    assert tree.roots[0].children[0].additional_managers == []


def test_to_dict_exposes_rendering_contract() -> None:
    rows = [member("a", sort_order=1), member("b", sort_order=2), member("c", parent_id="a")]

    payload = build_hierarchy(rows, [edge("c", "b")]).to_dict()

    assert [root["id"] for root in payload["roots"]] == ["a", "b"]
    assert payload["roots"][0]["children"] == []
    shared = payload["shared_children"][0]
    assert shared["parent_ids"] == ["a", "b"]
    assert shared["child"]["id"] == "c"
    assert shared["child"]["additional_managers"][0]["manager_id"] == "b"


def test_hierarchy_levels_and_direct_reports() -> None:
    rows = [
        member("a"),
        member("b", parent_id="a", sort_order=2),
        member("c", parent_id="a", sort_order=1),
        member("d", parent_id="b"),
        member("e", parent_id="a", is_active=False),
    ]

    assert hierarchy_levels(rows) == {"a": 0, "b": 1, "c": 1, "d": 2}
    assert [row["id"] for row in direct_reports(rows, "a")] == ["c", "b"]


def test_package_exports_resolve_lazily() -> None:
    import orgchart

    assert orgchart.build_hierarchy is build_hierarchy
    assert orgchart.TeamStore.__name__ == "TeamStore"
    with pytest.raises(AttributeError):
        getattr(orgchart, "missing")
