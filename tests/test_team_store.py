from __future__ import annotations

from pathlib import Path

import pytest

from orgchart.errors import (
    DuplicateRelationshipError,
    HierarchyCycleError,
    InvalidFieldError,
    NotFoundError,
    SelfReferenceError,
    UnauthorizedError,
)
from orgchart.hierarchy import build_hierarchy
from orgchart.hooks import Actor, HookSet
from orgchart.stores.team import TeamStore


def test_create_member_without_manager_is_a_root(store: TeamStore, actor: Actor) -> None:
    row = store.create_member("Ana Chair", actor=actor, position="Chair")

    assert row["id"].startswith("tm-")
    assert row["parent_id"] is None
    assert row["is_active"] is True
    assert row["position"] == "Chair"
    assert store.list_relationships(row["id"]) == []


def test_create_member_with_manager_writes_primary_edge(store: TeamStore, actor: Actor) -> None:
    boss = store.create_member("Boss", actor=actor)
    report = store.create_member("Report", actor=actor, parent_id=boss["id"])

    assert report["parent_id"] == boss["id"]
    edges = store.list_relationships(report["id"])
    assert len(edges) == 1
    assert edges[0]["member_id"] == report["id"]
    assert edges[0]["manager_id"] == boss["id"]
    assert edges[0]["is_primary"] is True
    assert edges[0]["report_type"] == "direct"


def test_create_member_rejects_unknown_manager_before_writing(
    store: TeamStore, actor: Actor
) -> None:
    with pytest.raises(NotFoundError):
        store.create_member("Orphan", actor=actor, parent_id="tm-missing")

    assert store.list_members() == []


def test_mutations_require_an_actor(store: TeamStore, actor: Actor) -> None:
    with pytest.raises(UnauthorizedError):
        store.create_member("Nobody", actor=None)
    with pytest.raises(UnauthorizedError):
        store.create_member("Nobody", actor=Actor(id="  "))

    row = store.create_member("Somebody", actor=actor)
    with pytest.raises(UnauthorizedError):
        store.update_member(row["id"], actor=None, name="Renamed")
    with pytest.raises(UnauthorizedError):
        store.delete_member(row["id"], actor=None)

    assert [m["name"] for m in store.list_members()] == ["Somebody"]


def test_create_member_validates_fields(store: TeamStore, actor: Actor) -> None:
    with pytest.raises(InvalidFieldError):
        store.create_member("   ", actor=actor)
    with pytest.raises(InvalidFieldError):
        store.create_member("Ana", actor=actor, sort_order="first")  # type: ignore[arg-type]
    with pytest.raises(InvalidFieldError):
        store.create_member("Ana", actor=actor, position={"en": 3})  # type: ignore[dict-item]


def test_localized_position_and_bio_round_trip(store: TeamStore, actor: Actor) -> None:
    row = store.create_member(
        "Sokha",
        actor=actor,
        position={"en": "Treasurer", "km": "ហេរញ្ញិក"},
        bio="Keeps the books.",
    )

    fetched = store.get_member(row["id"])
    assert fetched is not None
    assert fetched["position"] == {"en": "Treasurer", "km": "ហេរញ្ញិក"}
    assert fetched["bio"] == "Keeps the books."


def test_list_members_orders_and_filters(store: TeamStore, actor: Actor) -> None:
    store.create_member("Zed", actor=actor, sort_order=1, department="Finance")
    store.create_member("Amy", actor=actor, sort_order=1, department="Operations")
    store.create_member("Bob", actor=actor, sort_order=0, department="Finance")
    store.create_member("Cat", actor=actor, sort_order=0, is_active=False)

    assert [m["name"] for m in store.list_members()] == ["Bob", "Cat", "Amy", "Zed"]
    assert [m["name"] for m in store.list_members(department="Finance")] == ["Bob", "Zed"]
    assert [m["name"] for m in store.list_members(active=False)] == ["Cat"]
    assert [m["name"] for m in store.list_members(active=True)] == ["Bob", "Amy", "Zed"]


def test_reads_on_missing_database_do_not_create_it(tmp_path: Path) -> None:
    store = TeamStore(tmp_path / ".orgchart", create_on_connect=False)

    assert store.list_members() == []
    assert store.get_member("tm-1") is None
    assert store.list_relationships() == []
    assert store.snapshot() == {"members": [], "relationships": []}
    assert not (tmp_path / ".orgchart").exists()


def test_update_member_writes_only_given_fields(store: TeamStore, actor: Actor) -> None:
    row = store.create_member("Ana", actor=actor, position="Chair", email="ana@example.org")

    updated = store.update_member(row["id"], actor=actor, department="Board of Trustees")

    assert updated["department"] == "Board of Trustees"
    assert updated["position"] == "Chair"
    assert updated["email"] == "ana@example.org"

    cleared = store.update_member(row["id"], actor=actor, email=None)
    assert cleared["email"] is None


def test_update_member_rejects_unknown_fields(store: TeamStore, actor: Actor) -> None:
    row = store.create_member("Ana", actor=actor)

    with pytest.raises(InvalidFieldError, match="salary"):
        store.update_member(row["id"], actor=actor, salary=10)


def test_update_member_refuses_self_and_cycles(store: TeamStore, actor: Actor) -> None:
    a = store.create_member("A", actor=actor)
    b = store.create_member("B", actor=actor, parent_id=a["id"])
    c = store.create_member("C", actor=actor, parent_id=b["id"])

    with pytest.raises(SelfReferenceError):
        store.update_member(a["id"], actor=actor, parent_id=a["id"])
    with pytest.raises(HierarchyCycleError):
        store.update_member(a["id"], actor=actor, parent_id=c["id"])

    assert store.get_member(a["id"])["parent_id"] is None  # type: ignore[index]
    assert [e["manager_id"] for e in store.list_relationships() if e["member_id"] == a["id"]] == []


def test_update_missing_member_is_not_found(store: TeamStore, actor: Actor) -> None:
    with pytest.raises(NotFoundError):
        store.update_member("tm-nope", actor=actor, name="X")
    with pytest.raises(NotFoundError):
        store.delete_member("tm-nope", actor=actor)


def test_create_relationship_validation(store: TeamStore, actor: Actor) -> None:
    a = store.create_member("A", actor=actor)
    b = store.create_member("B", actor=actor)

    store.create_relationship(b["id"], a["id"], actor=actor, report_type="dotted")

    with pytest.raises(DuplicateRelationshipError):
        store.create_relationship(b["id"], a["id"], actor=actor, report_type="functional")
    with pytest.raises(SelfReferenceError):
        store.create_relationship(a["id"], a["id"], actor=actor)
    with pytest.raises(NotFoundError):
        store.create_relationship(a["id"], "tm-missing", actor=actor)
    with pytest.raises(InvalidFieldError):
        store.create_relationship(a["id"], b["id"], actor=actor, report_type="sideways")

    assert len(store.list_relationships()) == 1


def test_reverse_dotted_edge_is_not_a_duplicate(store: TeamStore, actor: Actor) -> None:
    a = store.create_member("A", actor=actor)
    b = store.create_member("B", actor=actor)

    store.create_relationship(b["id"], a["id"], actor=actor, report_type="dotted")
    store.create_relationship(a["id"], b["id"], actor=actor, report_type="project")

    assert len(store.list_relationships()) == 2


def test_update_relationship_changes_type_and_notes(store: TeamStore, actor: Actor) -> None:
    a = store.create_member("A", actor=actor)
    b = store.create_member("B", actor=actor)
    rel = store.create_relationship(b["id"], a["id"], actor=actor, report_type="dotted")

    updated = store.update_relationship(
        rel["id"], actor=actor, report_type="project", notes="Gala 2025"
    )

    assert updated["report_type"] == "project"
    assert updated["notes"] == "Gala 2025"
    assert updated["is_primary"] is False
    assert store.get_relationship(rel["id"]) == updated
    assert store.get_relationship("rel-missing") is None
    with pytest.raises(NotFoundError):
        store.update_relationship("rel-missing", actor=actor, notes="x")
    with pytest.raises(InvalidFieldError):
        store.update_relationship(rel["id"], actor=actor, manager_id=b["id"])


def test_delete_member_cascades_edges_and_orphans_reports(
    store: TeamStore, actor: Actor
) -> None:
    a = store.create_member("A", actor=actor, sort_order=1)
    b = store.create_member("B", actor=actor, parent_id=a["id"])
    c = store.create_member("C", actor=actor, parent_id=b["id"])
    d = store.create_member("D", actor=actor, sort_order=2)
    store.create_relationship(d["id"], a["id"], actor=actor, report_type="dotted")

    result = store.delete_member(a["id"], actor=actor)

    assert result["deleted"] is True
    assert result["orphaned"] == [b["id"]]
    assert result["relationships_removed"] == 2
    assert store.get_member(a["id"]) is None
    for rel in store.list_relationships():
        assert a["id"] not in (rel["member_id"], rel["manager_id"])
    assert store.get_member(b["id"])["parent_id"] is None  # type: ignore[index]
    assert store.get_member(c["id"])["parent_id"] == b["id"]  # type: ignore[index]

    snapshot = store.snapshot()
    tree = build_hierarchy(snapshot["members"], snapshot["relationships"])
    assert [root.id for root in tree.roots] == [b["id"], d["id"]]
    assert [child.id for child in tree.roots[0].children] == [c["id"]]


def test_departments_and_direct_reports(store: TeamStore, actor: Actor) -> None:
    lead = store.create_member("Lead", actor=actor, department="Operations")
    store.create_member("Ops 2", actor=actor, department="Operations", parent_id=lead["id"], sort_order=2)
    store.create_member("Ops 1", actor=actor, department="Operations", parent_id=lead["id"], sort_order=1)
    store.create_member("Gone", actor=actor, parent_id=lead["id"], is_active=False)
    store.create_member("Cash", actor=actor, department="Finance", sort_order=5)
    store.create_member("Blank", actor=actor, department="  ")

    assert store.departments() == ["Operations", "Finance"]
    assert [m["name"] for m in store.direct_reports(lead["id"])] == ["Ops 1", "Ops 2"]


def test_hooks_receive_activity_and_structural_notifications(tmp_path: Path, actor: Actor) -> None:
    hooks = HookSet()
    activity: list[str] = []
    notifications: list[tuple[str, str]] = []
    hooks.on_activity(lambda mutation: activity.append(mutation.summary))
    hooks.on_notification(lambda change, mutation: notifications.append((change.kind, change.action)))
    store = TeamStore(tmp_path / ".orgchart", hooks=hooks)

    boss = store.create_member("Boss", actor=actor, position="Director")
    worker = store.create_member("Worker", actor=actor)
    store.update_member(worker["id"], actor=actor, email="worker@example.org")
    store.update_member(worker["id"], actor=actor, position="Coordinator")
    store.update_member(worker["id"], actor=actor, parent_id=boss["id"])
    store.delete_member(worker["id"], actor=actor)

    assert activity == [
        "Created team member: Boss",
        "Created team member: Worker",
        "Updated team member: Worker",
        "Updated team member: Worker",
        "Updated team member: Worker",
        "Deleted team member: Worker",
    ]
    assert notifications == [
        ("team_update", "added"),
        ("team_update", "added"),
        ("team_update", "position_changed"),
        ("org_chart_update", "hierarchy"),
        ("team_update", "removed"),
    ]


def test_failing_hook_never_fails_the_mutation(tmp_path: Path, actor: Actor) -> None:
    hooks = HookSet()

    @hooks.on_activity
    def broken(mutation) -> None:
        raise RuntimeError("mail server down")

    @hooks.on_notification
    def also_broken(change, mutation) -> None:
        raise RuntimeError("push failed")

    store = TeamStore(tmp_path / ".orgchart", hooks=hooks)
    row = store.create_member("Resilient", actor=actor)

    assert store.get_member(row["id"]) is not None


def test_rejected_mutation_dispatches_nothing(tmp_path: Path, actor: Actor) -> None:
    seen: list[str] = []
    hooks = HookSet()
    hooks.on_activity(lambda mutation: seen.append(mutation.action))
    store = TeamStore(tmp_path / ".orgchart", hooks=hooks)
    a = store.create_member("A", actor=actor)

    with pytest.raises(SelfReferenceError):
        store.create_relationship(a["id"], a["id"], actor=actor)

    assert seen == ["member.create"]


def test_from_workdir_honours_state_dir_env(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, actor: Actor
) -> None:
    state_dir = tmp_path / "elsewhere"
    monkeypatch.setenv("ORGCHART_STATE_DIR", str(state_dir))

    store = TeamStore.from_workdir(tmp_path / "project")
    store.create_member("Ana", actor=actor)

    assert (state_dir / "team.sqlite3").exists()


def test_flags_must_be_booleans(store: TeamStore, actor: Actor) -> None:
    a = store.create_member("A", actor=actor)
    b = store.create_member("B", actor=actor, parent_id=a["id"])
    rel = store.find_relationship(b["id"], a["id"])
    assert rel is not None

    with pytest.raises(InvalidFieldError, match="is_active"):
        store.update_member(b["id"], actor=actor, is_active=None)
    with pytest.raises(InvalidFieldError, match="is_primary"):
        store.update_relationship(rel["id"], actor=actor, is_primary=None)
    with pytest.raises(InvalidFieldError, match="is_active"):
        store.create_member("C", actor=actor, is_active="no")

    assert store.get_member(b["id"])["parent_id"] == a["id"]  # type: ignore[index]
    assert store.get_member(b["id"])["is_active"] is True  # type: ignore[index]
