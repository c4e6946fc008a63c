from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from collections.abc import Iterator
from contextlib import closing, contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .. import hooks as hook_events
from ..errors import (
    DuplicateRelationshipError,
    HierarchyCycleError,
    InvalidFieldError,
    NotFoundError,
    SelfReferenceError,
    UnauthorizedError,
)
from ..guard import creates_cycle
from ..hooks import Actor, ChangeDescriptor, HookSet, Mutation
from .state import DB_FILENAME, now_ms, resolve_state_dir

logger = logging.getLogger(__name__)

REPORT_TYPES = (
    "direct",
    "dotted",
    "functional",
    "project",
)
MEMBER_FIELDS = (
    "name",
    "position",
    "department",
    "bio",
    "image",
    "email",
    "phone",
    "linkedin",
    "sort_order",
    "parent_id",
    "is_active",
)
RELATIONSHIP_FIELDS = (
    "is_primary",
    "report_type",
    "notes",
)
_CONTACT_FIELDS = ("department", "image", "email", "phone", "linkedin")
_LOCALIZED_FIELDS = ("position", "bio")


_SCHEMA = """
PRAGMA journal_mode=WAL;
CREATE TABLE IF NOT EXISTS members (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    position TEXT NOT NULL DEFAULT '""',
    department TEXT,
    bio TEXT,
    image TEXT,
    email TEXT,
    phone TEXT,
    linkedin TEXT,
    sort_order INTEGER NOT NULL DEFAULT 0,
    parent_id TEXT,
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at INTEGER NOT NULL,
    updated_at INTEGER NOT NULL,
    CHECK (parent_id IS NULL OR parent_id <> id),
    FOREIGN KEY(parent_id) REFERENCES members(id) ON DELETE SET NULL
);
CREATE TABLE IF NOT EXISTS reporting_relationships (
    id TEXT PRIMARY KEY,
    member_id TEXT NOT NULL,
    manager_id TEXT NOT NULL,
    is_primary INTEGER NOT NULL DEFAULT 0,
    report_type TEXT NOT NULL DEFAULT 'direct',
    notes TEXT,
    created_at INTEGER NOT NULL,
    updated_at INTEGER NOT NULL,
    UNIQUE(member_id, manager_id),
    CHECK (member_id <> manager_id),
    FOREIGN KEY(member_id) REFERENCES members(id) ON DELETE CASCADE,
    FOREIGN KEY(manager_id) REFERENCES members(id) ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS idx_members_order ON members(sort_order, name);
CREATE INDEX IF NOT EXISTS idx_members_parent ON members(parent_id);
CREATE UNIQUE INDEX IF NOT EXISTS idx_relationships_one_primary
    ON reporting_relationships(member_id) WHERE is_primary = 1;
CREATE INDEX IF NOT EXISTS idx_relationships_manager
    ON reporting_relationships(manager_id);
"""

_MEMBER_COLUMNS = (
    "id, name, position, department, bio, image, email, phone, linkedin, "
    "sort_order, parent_id, is_active, created_at, updated_at"
)
_RELATIONSHIP_COLUMNS = (
    "id, member_id, manager_id, is_primary, report_type, notes, created_at, updated_at"
)


def _new_member_id() -> str:
    return f"tm-{uuid.uuid4().hex[:8]}"


def _new_relationship_id() -> str:
    return f"rel-{uuid.uuid4().hex[:8]}"


def _normalize_key(value: object, *, label: str) -> str:
    key = str(value or "").strip()
    if not key:
        raise InvalidFieldError(f"{label} cannot be empty")
    return key


def _optional_key(value: object) -> str | None:
    if value is None:
        return None
    key = str(value).strip()
    return key or None


def _normalize_name(name: object) -> str:
    text = str(name or "").strip()
    if not text:
        raise InvalidFieldError("name cannot be empty")
    return text


def _optional_text(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _normalize_sort_order(value: object) -> int:
    if isinstance(value, bool):
        raise InvalidFieldError("sort_order must be an integer")
    try:
        return int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise InvalidFieldError("sort_order must be an integer") from exc


def _normalize_flag(value: object, *, field: str) -> bool:
    if not isinstance(value, bool):
        raise InvalidFieldError(f"{field} must be true or false")
    return value


def _normalize_report_type(report_type: object) -> str:
    value = str(report_type or "").strip().lower()
    if value not in REPORT_TYPES:
        raise InvalidFieldError(
            f"invalid report type: {report_type} (expected one of: {', '.join(REPORT_TYPES)})"
        )
    return value


def _serialize_localized(value: object, *, field: str) -> str | None:
    if value is None:
        return None
    if isinstance(value, str):
        return json.dumps(value, ensure_ascii=False)
    if isinstance(value, dict):
        for locale, text in value.items():
            if not isinstance(locale, str) or not isinstance(text, str):
                raise InvalidFieldError(f"{field} translations must map locale to text")
        return json.dumps(value, ensure_ascii=False, sort_keys=True)
    raise InvalidFieldError(f"{field} must be text or a locale-to-text mapping")


def _deserialize_localized(value: object) -> str | dict[str, str] | None:
    if value is None:
        return None
    text = str(value)
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        return text
    if isinstance(payload, (str, dict)):
        return payload
    return text


def _member_from_row(row: sqlite3.Row) -> dict[str, Any]:
    return {
        "id": str(row["id"]),
        "name": str(row["name"]),
        "position": _deserialize_localized(row["position"]) or "",
        "department": row["department"],
        "bio": _deserialize_localized(row["bio"]),
        "image": row["image"],
        "email": row["email"],
        "phone": row["phone"],
        "linkedin": row["linkedin"],
        "sort_order": int(row["sort_order"]),
        "parent_id": row["parent_id"],
        "is_active": bool(row["is_active"]),
        "created_at": int(row["created_at"]),
        "updated_at": int(row["updated_at"]),
    }


def _relationship_from_row(row: sqlite3.Row) -> dict[str, Any]:
    return {
        "id": str(row["id"]),
        "member_id": str(row["member_id"]),
        "manager_id": str(row["manager_id"]),
        "is_primary": bool(row["is_primary"]),
        "report_type": str(row["report_type"]),
        "notes": row["notes"],
        "created_at": int(row["created_at"]),
        "updated_at": int(row["updated_at"]),
    }


def require_actor(actor: Actor | None) -> Actor:
    if actor is None or not str(actor.id or "").strip():
        raise UnauthorizedError("an authenticated actor is required for this change")
    return actor


@dataclass
class TeamStore:
    root: Path
    create_on_connect: bool = True
    hooks: HookSet = field(default_factory=HookSet)
    busy_timeout_s: float = 6.0

    @classmethod
    def from_workdir(
        cls,
        cwd: Path | None = None,
        *,
        create: bool = True,
        hooks: HookSet | None = None,
    ) -> "TeamStore":
        return cls(
            resolve_state_dir(cwd, create=create),
            create_on_connect=create,
            hooks=hooks or HookSet(),
        )

    @property
    def db_path(self) -> Path:
        return self.root / DB_FILENAME

    def ensure_schema(self) -> Path:
        with closing(self._connect()):
            pass
        return self.db_path

    def _connect(self) -> sqlite3.Connection:
        if self.create_on_connect:
            self.root.mkdir(parents=True, exist_ok=True)
        elif not self.db_path.exists():
            raise FileNotFoundError(str(self.db_path))
        conn = sqlite3.connect(
            self.db_path,
            timeout=self.busy_timeout_s,
            isolation_level=None,
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys=ON")
        conn.executescript(_SCHEMA)
        return conn

    @contextmanager
    def _transaction(self, *, write: bool = True) -> Iterator[sqlite3.Connection]:
        # IMMEDIATE takes the write lock up front so read-then-write checks
        # cannot interleave with another writer.
        with closing(self._connect()) as conn:
            conn.execute("BEGIN IMMEDIATE" if write else "BEGIN")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")

    def _dispatch(self, mutations: list[Mutation]) -> None:
        for mutation in mutations:
            logger.debug(
                "%s %s by %s", mutation.action, mutation.subject_id, mutation.actor.label
            )
            self.hooks.dispatch(mutation)

    # -- reads ---------------------------------------------------------------

    def _get_member(self, conn: sqlite3.Connection, member_id: str) -> dict[str, Any] | None:
        row = conn.execute(
            f"SELECT {_MEMBER_COLUMNS} FROM members WHERE id = ?",
            (member_id,),
        ).fetchone()
        return _member_from_row(row) if row is not None else None

    def _require_member(
        self,
        conn: sqlite3.Connection,
        member_id: str,
        *,
        label: str = "team member",
    ) -> dict[str, Any]:
        member = self._get_member(conn, member_id)
        if member is None:
            raise NotFoundError(f"unknown {label}: {member_id}")
        return member

    def _all_members(self, conn: sqlite3.Connection) -> list[dict[str, Any]]:
        rows = conn.execute(
            f"SELECT {_MEMBER_COLUMNS} FROM members ORDER BY sort_order ASC, name ASC, id ASC"
        ).fetchall()
        return [_member_from_row(row) for row in rows]

    def _get_relationship(
        self, conn: sqlite3.Connection, relationship_id: str
    ) -> dict[str, Any] | None:
        row = conn.execute(
            f"SELECT {_RELATIONSHIP_COLUMNS} FROM reporting_relationships WHERE id = ?",
            (relationship_id,),
        ).fetchone()
        return _relationship_from_row(row) if row is not None else None

    def _find_relationship(
        self, conn: sqlite3.Connection, member_id: str, manager_id: str
    ) -> dict[str, Any] | None:
        row = conn.execute(
            f"""
            SELECT {_RELATIONSHIP_COLUMNS}
            FROM reporting_relationships
            WHERE member_id = ? AND manager_id = ?
            """,
            (member_id, manager_id),
        ).fetchone()
        return _relationship_from_row(row) if row is not None else None

    def _all_relationships(self, conn: sqlite3.Connection) -> list[dict[str, Any]]:
        rows = conn.execute(
            f"""
            SELECT {_RELATIONSHIP_COLUMNS}
            FROM reporting_relationships
            ORDER BY member_id ASC, is_primary DESC, created_at ASC, id ASC
            """
        ).fetchall()
        return [_relationship_from_row(row) for row in rows]

    def get_member(self, member_id: str) -> dict[str, Any] | None:
        key = str(member_id or "").strip()
        if not key or not self.db_path.exists():
            return None
        with closing(self._connect()) as conn:
            return self._get_member(conn, key)

    def list_members(
        self,
        *,
        department: str | None = None,
        active: bool | None = None,
    ) -> list[dict[str, Any]]:
        if not self.db_path.exists():
            return []

        where: list[str] = []
        params: list[Any] = []
        if active is not None:
            where.append("is_active = ?")
            params.append(1 if active else 0)
        if department:
            where.append("department = ?")
            params.append(department.strip())

        query = f"SELECT {_MEMBER_COLUMNS} FROM members"
        if where:
            query += " WHERE " + " AND ".join(where)
        query += " ORDER BY sort_order ASC, name ASC, id ASC"

        with closing(self._connect()) as conn:
            rows = conn.execute(query, tuple(params)).fetchall()
        return [_member_from_row(row) for row in rows]

    def departments(self) -> list[str]:
        if not self.db_path.exists():
            return []
        with closing(self._connect()) as conn:
            rows = conn.execute(
                """
                SELECT department, MIN(sort_order) AS first_order
                FROM members
                WHERE department IS NOT NULL AND TRIM(department) <> ''
                GROUP BY department
                ORDER BY first_order ASC, department ASC
                """
            ).fetchall()
        return [str(row["department"]) for row in rows]

    def direct_reports(self, member_id: str) -> list[dict[str, Any]]:
        key = str(member_id or "").strip()
        if not key or not self.db_path.exists():
            return []
        with closing(self._connect()) as conn:
            rows = conn.execute(
                f"""
                SELECT {_MEMBER_COLUMNS}
                FROM members
                WHERE parent_id = ? AND is_active = 1
                ORDER BY sort_order ASC, name ASC, id ASC
                """,
                (key,),
            ).fetchall()
        return [_member_from_row(row) for row in rows]

    def get_relationship(self, relationship_id: str) -> dict[str, Any] | None:
        key = str(relationship_id or "").strip()
        if not key or not self.db_path.exists():
            return None
        with closing(self._connect()) as conn:
            return self._get_relationship(conn, key)

    def find_relationship(self, member_id: str, manager_id: str) -> dict[str, Any] | None:
        member_key = str(member_id or "").strip()
        manager_key = str(manager_id or "").strip()
        if not member_key or not manager_key or not self.db_path.exists():
            return None
        with closing(self._connect()) as conn:
            return self._find_relationship(conn, member_key, manager_key)

    def list_relationships(self, member_id: str | None = None) -> list[dict[str, Any]]:
        if not self.db_path.exists():
            return []
        with closing(self._connect()) as conn:
            if member_id is None:
                return self._all_relationships(conn)
            rows = conn.execute(
                f"""
                SELECT {_RELATIONSHIP_COLUMNS}
                FROM reporting_relationships
                WHERE member_id = ? OR manager_id = ?
                ORDER BY is_primary DESC, created_at ASC, id ASC
                """,
                (member_id.strip(), member_id.strip()),
            ).fetchall()
        return [_relationship_from_row(row) for row in rows]

    def snapshot(self) -> dict[str, list[dict[str, Any]]]:
        """Members and relationships read from one consistent transaction."""
        if not self.db_path.exists():
            return {"members": [], "relationships": []}
        with self._transaction(write=False) as conn:
            return {
                "members": self._all_members(conn),
                "relationships": self._all_relationships(conn),
            }

    # -- primary edge synchronization ----------------------------------------

    def _sync_primary(
        self,
        conn: sqlite3.Connection,
        member_id: str,
        manager_id: str | None,
        now: int,
        *,
        prune_direct: bool = True,
    ) -> bool:
        """Point the member's unique primary edge at ``manager_id``.

        Edges only; the caller writes ``parent_id`` in the same transaction.
        A demoted ``direct`` edge is removed when ``prune_direct`` is set,
        other report types stay behind as secondary lines.
        """
        current = conn.execute(
            f"""
            SELECT {_RELATIONSHIP_COLUMNS}
            FROM reporting_relationships
            WHERE member_id = ? AND is_primary = 1
            """,
            (member_id,),
        ).fetchall()
        primaries = [_relationship_from_row(row) for row in current]
        if manager_id is not None and [edge["manager_id"] for edge in primaries] == [manager_id]:
            return False
        if manager_id is None and not primaries:
            return False

        for edge in primaries:
            if prune_direct and edge["report_type"] == "direct" and edge["manager_id"] != manager_id:
                conn.execute("DELETE FROM reporting_relationships WHERE id = ?", (edge["id"],))
            else:
                conn.execute(
                    "UPDATE reporting_relationships SET is_primary = 0, updated_at = ? WHERE id = ?",
                    (now, edge["id"]),
                )

        if manager_id is None:
            return True

        existing = self._find_relationship(conn, member_id, manager_id)
        if existing is not None:
            conn.execute(
                "UPDATE reporting_relationships SET is_primary = 1, updated_at = ? WHERE id = ?",
                (now, existing["id"]),
            )
        else:
            conn.execute(
                """
                INSERT INTO reporting_relationships(
                    id, member_id, manager_id, is_primary, report_type, notes, created_at, updated_at
                )
                VALUES(?, ?, ?, 1, 'direct', NULL, ?, ?)
                """,
                (_new_relationship_id(), member_id, manager_id, now, now),
            )
        return True

    def _set_parent(
        self,
        conn: sqlite3.Connection,
        member_id: str,
        manager_id: str | None,
        now: int,
    ) -> bool:
        cur = conn.execute(
            "UPDATE members SET parent_id = ?, updated_at = ? WHERE id = ? AND parent_id IS NOT ?",
            (manager_id, now, member_id, manager_id),
        )
        return cur.rowcount > 0

    def _check_primary_manager(
        self,
        conn: sqlite3.Connection,
        member_id: str,
        manager_id: str,
    ) -> dict[str, Any]:
        if manager_id == member_id:
            raise SelfReferenceError("a team member cannot report to themselves")
        manager = self._require_member(conn, manager_id, label="manager")
        if creates_cycle(self._all_members(conn), member_id, manager_id):
            raise HierarchyCycleError(
                f"{manager_id} reports to {member_id}; choosing it as manager would create a cycle"
            )
        return manager

    def sync_primary_manager(
        self,
        member_id: str,
        manager_id: str | None,
        *,
        actor: Actor | None,
    ) -> dict[str, Any]:
        """Make ``manager_id`` the member's primary manager (or clear it).

        The edge flip and the ``parent_id`` write commit together.
        """
        who = require_actor(actor)
        member_key = _normalize_key(member_id, label="member id")
        manager_key = _optional_key(manager_id)

        mutations: list[Mutation] = []
        with self._transaction() as conn:
            member = self._require_member(conn, member_key)
            if manager_key is not None:
                self._check_primary_manager(conn, member_key, manager_key)
            now = now_ms()
            edges_changed = self._sync_primary(conn, member_key, manager_key, now)
            parent_changed = self._set_parent(conn, member_key, manager_key, now)
            updated = self._require_member(conn, member_key)
            if edges_changed or parent_changed:
                mutations.append(
                    Mutation(
                        action="relationship.sync_primary",
                        summary=f"Updated primary manager for team member: {member['name']}",
                        actor=who,
                        subject_type="team_members",
                        subject_id=member_key,
                        before=member,
                        after=updated,
                        change=hook_events.hierarchy_changed(updated),
                    )
                )

        self._dispatch(mutations)
        return updated

    # -- member mutations -----------------------------------------------------

    def create_member(
        self,
        name: str,
        *,
        actor: Actor | None,
        position: str | dict[str, str] = "",
        department: str | None = None,
        bio: str | dict[str, str] | None = None,
        image: str | None = None,
        email: str | None = None,
        phone: str | None = None,
        linkedin: str | None = None,
        sort_order: int = 0,
        parent_id: str | None = None,
        is_active: bool = True,
    ) -> dict[str, Any]:
        who = require_actor(actor)
        member_name = _normalize_name(name)
        position_json = _serialize_localized(position or "", field="position")
        bio_json = _serialize_localized(bio, field="bio")
        order = _normalize_sort_order(sort_order)
        active = _normalize_flag(is_active, field="is_active")
        manager_key = _optional_key(parent_id)
        member_id = _new_member_id()

        mutations: list[Mutation] = []
        with self._transaction() as conn:
            if manager_key is not None:
                self._require_member(conn, manager_key, label="manager")
            now = now_ms()
            conn.execute(
                f"""
                INSERT INTO members({_MEMBER_COLUMNS})
                VALUES(?, ?, ?, ?, ?, ?, ?, ?, ?, ?, NULL, ?, ?, ?)
                """,
                (
                    member_id,
                    member_name,
                    position_json,
                    _optional_text(department),
                    bio_json,
                    _optional_text(image),
                    _optional_text(email),
                    _optional_text(phone),
                    _optional_text(linkedin),
                    order,
                    1 if active else 0,
                    now,
                    now,
                ),
            )
            if manager_key is not None:
                self._sync_primary(conn, member_id, manager_key, now)
                self._set_parent(conn, member_id, manager_key, now)
            member = self._require_member(conn, member_id)
            mutations.append(
                Mutation(
                    action="member.create",
                    summary=f"Created team member: {member_name}",
                    actor=who,
                    subject_type="team_members",
                    subject_id=member_id,
                    after=member,
                    change=hook_events.member_added(member),
                )
            )

        self._dispatch(mutations)
        return member

    def update_member(
        self,
        member_id: str,
        *,
        actor: Actor | None,
        **changes: Any,
    ) -> dict[str, Any]:
        """Apply a partial update; keys present in ``changes`` are written.

        A changed ``parent_id`` re-routes the primary edge in the same
        transaction.
        """
        who = require_actor(actor)
        member_key = _normalize_key(member_id, label="member id")
        unknown = sorted(set(changes) - set(MEMBER_FIELDS))
        if unknown:
            raise InvalidFieldError(f"unknown team member field(s): {', '.join(unknown)}")

        set_parts: list[str] = []
        params: list[Any] = []
        if "name" in changes:
            set_parts.append("name = ?")
            params.append(_normalize_name(changes["name"]))
        for key in _LOCALIZED_FIELDS:
            if key in changes:
                value = changes[key]
                if key == "position" and value is None:
                    value = ""
                set_parts.append(f"{key} = ?")
                params.append(_serialize_localized(value, field=key))
        for key in _CONTACT_FIELDS:
            if key in changes:
                set_parts.append(f"{key} = ?")
                params.append(_optional_text(changes[key]))
        if "sort_order" in changes:
            set_parts.append("sort_order = ?")
            params.append(_normalize_sort_order(changes["sort_order"]))
        if "is_active" in changes:
            set_parts.append("is_active = ?")
            params.append(1 if _normalize_flag(changes["is_active"], field="is_active") else 0)

        parent_provided = "parent_id" in changes
        manager_key = _optional_key(changes.get("parent_id"))

        mutations: list[Mutation] = []
        with self._transaction() as conn:
            current = self._require_member(conn, member_key)
            parent_changed = parent_provided and manager_key != current["parent_id"]
            if parent_changed and manager_key is not None:
                self._check_primary_manager(conn, member_key, manager_key)

            if not set_parts and not parent_changed:
                return current

            now = now_ms()
            if set_parts:
                conn.execute(
                    f"UPDATE members SET {', '.join(set_parts)}, updated_at = ? WHERE id = ?",
                    (*params, now, member_key),
                )
            if parent_changed:
                self._sync_primary(conn, member_key, manager_key, now)
                self._set_parent(conn, member_key, manager_key, now)
            updated = self._require_member(conn, member_key)
            mutations.append(
                Mutation(
                    action="member.update",
                    summary=f"Updated team member: {current['name']}",
                    actor=who,
                    subject_type="team_members",
                    subject_id=member_key,
                    before=current,
                    after=updated,
                    change=self._member_change(current, updated, parent_changed=parent_changed),
                )
            )

        self._dispatch(mutations)
        return updated

    def _member_change(
        self,
        before: dict[str, Any],
        after: dict[str, Any],
        *,
        parent_changed: bool,
    ) -> ChangeDescriptor | None:
        if after["position"] != before["position"]:
            return hook_events.position_changed(before, after)
        if parent_changed:
            return hook_events.hierarchy_changed(after)
        if after["is_active"] != before["is_active"]:
            state = "reactivated" if after["is_active"] else "deactivated"
            return hook_events.hierarchy_changed(after, details=f"{after['name']} {state}")
        return None

    def delete_member(self, member_id: str, *, actor: Actor | None) -> dict[str, Any]:
        """Delete a member together with every edge touching it.

        Former direct reports lose their primary edge and become roots.
        """
        who = require_actor(actor)
        member_key = _normalize_key(member_id, label="member id")

        mutations: list[Mutation] = []
        with self._transaction() as conn:
            current = self._require_member(conn, member_key)
            orphaned = [
                str(row["id"])
                for row in conn.execute(
                    "SELECT id FROM members WHERE parent_id = ? ORDER BY sort_order, name, id",
                    (member_key,),
                ).fetchall()
            ]
            cur = conn.execute(
                "DELETE FROM reporting_relationships WHERE member_id = ? OR manager_id = ?",
                (member_key, member_key),
            )
            removed_edges = cur.rowcount
            now = now_ms()
            conn.execute(
                "UPDATE members SET parent_id = NULL, updated_at = ? WHERE parent_id = ?",
                (now, member_key),
            )
            conn.execute("DELETE FROM members WHERE id = ?", (member_key,))
            mutations.append(
                Mutation(
                    action="member.delete",
                    summary=f"Deleted team member: {current['name']}",
                    actor=who,
                    subject_type="team_members",
                    subject_id=member_key,
                    before=current,
                    change=hook_events.member_removed(current),
                )
            )

        self._dispatch(mutations)
        return {
            "id": member_key,
            "deleted": True,
            "orphaned": orphaned,
            "relationships_removed": removed_edges,
        }

    # -- relationship mutations -----------------------------------------------

    def create_relationship(
        self,
        member_id: str,
        manager_id: str,
        *,
        actor: Actor | None,
        is_primary: bool = False,
        report_type: str = "direct",
        notes: str | None = None,
    ) -> dict[str, Any]:
        who = require_actor(actor)
        member_key = _normalize_key(member_id, label="member id")
        manager_key = _normalize_key(manager_id, label="manager id")
        if member_key == manager_key:
            raise SelfReferenceError("a team member cannot report to themselves")
        kind = _normalize_report_type(report_type)
        is_primary = _normalize_flag(is_primary, field="is_primary")

        mutations: list[Mutation] = []
        with self._transaction() as conn:
            member = self._require_member(conn, member_key)
            manager = self._require_member(conn, manager_key, label="manager")
            if self._find_relationship(conn, member_key, manager_key) is not None:
                raise DuplicateRelationshipError(
                    f"{member['name']} already has a relationship with {manager['name']}"
                )
            if is_primary:
                self._check_primary_manager(conn, member_key, manager_key)

            now = now_ms()
            relationship_id = _new_relationship_id()
            conn.execute(
                f"""
                INSERT INTO reporting_relationships({_RELATIONSHIP_COLUMNS})
                VALUES(?, ?, ?, 0, ?, ?, ?, ?)
                """,
                (relationship_id, member_key, manager_key, kind, _optional_text(notes), now, now),
            )
            if is_primary:
                self._sync_primary(conn, member_key, manager_key, now)
                self._set_parent(conn, member_key, manager_key, now)
            relationship = self._get_relationship(conn, relationship_id)
            assert relationship is not None
            label = "primary" if is_primary else kind
            mutations.append(
                Mutation(
                    action="relationship.create",
                    summary=f"Added {label} reporting line: {member['name']} -> {manager['name']}",
                    actor=who,
                    subject_type="reporting_relationships",
                    subject_id=relationship_id,
                    after=relationship,
                    change=hook_events.hierarchy_changed(
                        member,
                        details=f"{member['name']} now reports to {manager['name']} ({label})",
                    ),
                )
            )

        self._dispatch(mutations)
        return relationship

    def update_relationship(
        self,
        relationship_id: str,
        *,
        actor: Actor | None,
        **changes: Any,
    ) -> dict[str, Any]:
        who = require_actor(actor)
        key = _normalize_key(relationship_id, label="relationship id")
        unknown = sorted(set(changes) - set(RELATIONSHIP_FIELDS))
        if unknown:
            raise InvalidFieldError(f"unknown relationship field(s): {', '.join(unknown)}")

        set_parts: list[str] = []
        params: list[Any] = []
        if "report_type" in changes:
            set_parts.append("report_type = ?")
            params.append(_normalize_report_type(changes["report_type"]))
        if "notes" in changes:
            set_parts.append("notes = ?")
            params.append(_optional_text(changes["notes"]))
        primary_flag: bool | None = None
        if "is_primary" in changes:
            primary_flag = _normalize_flag(changes["is_primary"], field="is_primary")

        mutations: list[Mutation] = []
        with self._transaction() as conn:
            current = self._get_relationship(conn, key)
            if current is None:
                raise NotFoundError(f"unknown relationship: {key}")
            member_key = current["member_id"]
            manager_key = current["manager_id"]

            primary_target: bool | None = None
            if primary_flag is not None and primary_flag != current["is_primary"]:
                primary_target = primary_flag
                if primary_target:
                    self._check_primary_manager(conn, member_key, manager_key)

            if not set_parts and primary_target is None:
                return current

            now = now_ms()
            if set_parts:
                conn.execute(
                    f"UPDATE reporting_relationships SET {', '.join(set_parts)}, updated_at = ? WHERE id = ?",
                    (*params, now, key),
                )
            if primary_target is not None:
                # Demoting keeps the edited edge as a secondary line.
                target = manager_key if primary_target else None
                self._sync_primary(conn, member_key, target, now, prune_direct=primary_target)
                self._set_parent(conn, member_key, target, now)

            updated = self._get_relationship(conn, key)
            assert updated is not None
            member = self._require_member(conn, member_key)
            change = None
            if primary_target is not None or updated["report_type"] != current["report_type"]:
                change = hook_events.hierarchy_changed(member)
            mutations.append(
                Mutation(
                    action="relationship.update",
                    summary=f"Updated reporting line for team member: {member['name']}",
                    actor=who,
                    subject_type="reporting_relationships",
                    subject_id=key,
                    before=current,
                    after=updated,
                    change=change,
                )
            )

        self._dispatch(mutations)
        return updated

    def delete_relationship(self, relationship_id: str, *, actor: Actor | None) -> dict[str, Any]:
        who = require_actor(actor)
        key = _normalize_key(relationship_id, label="relationship id")

        mutations: list[Mutation] = []
        with self._transaction() as conn:
            current = self._get_relationship(conn, key)
            if current is None:
                raise NotFoundError(f"unknown relationship: {key}")
            conn.execute("DELETE FROM reporting_relationships WHERE id = ?", (key,))
            member = self._require_member(conn, current["member_id"])
            if current["is_primary"]:
                self._set_parent(conn, current["member_id"], None, now_ms())
                member = self._require_member(conn, current["member_id"])
            mutations.append(
                Mutation(
                    action="relationship.delete",
                    summary=f"Removed reporting line for team member: {member['name']}",
                    actor=who,
                    subject_type="reporting_relationships",
                    subject_id=key,
                    before=current,
                    change=hook_events.hierarchy_changed(member),
                )
            )

        self._dispatch(mutations)
        return {"id": key, "deleted": True, "member": member}
