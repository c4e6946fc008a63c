"""One-time team initializer fed from a JSON or YAML roster.

The roster names members by a local ``key``; managers are resolved after
every member exists, the way a directory import resolves manager links in
a second pass::

    {
      "members": [
        {"key": "chair", "name": "Ana", "position": "Chair", "department": "Board of Trustees"},
        {"key": "ed", "name": "Ben", "position": "Executive Director", "manager": "chair"}
      ],
      "relationships": [
        {"member": "ed", "manager": "chair", "report_type": "dotted"}
      ]
    }
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import yaml

from .errors import InvalidFieldError
from .hooks import Actor
from .stores.team import MEMBER_FIELDS, REPORT_TYPES, TeamStore, require_actor

logger = logging.getLogger(__name__)

_MEMBER_KEYS = set(MEMBER_FIELDS) - {"parent_id"} | {"key", "manager"}
_RELATIONSHIP_KEYS = {"member", "manager", "report_type", "is_primary", "notes"}


def load_roster(path: Path) -> dict[str, list[dict[str, Any]]]:
    """Read a roster file; ``.yaml`` and ``.yml`` are parsed as YAML, anything else as JSON."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise InvalidFieldError(f"cannot read roster {path}: {exc}") from exc
    if path.suffix.lower() in {".yaml", ".yml"}:
        try:
            raw = yaml.safe_load(text)
        except yaml.YAMLError as exc:
            raise InvalidFieldError(f"invalid YAML in {path}: {exc}") from exc
    else:
        try:
            raw = json.loads(text)
        except json.JSONDecodeError as exc:
            raise InvalidFieldError(f"invalid JSON in {path}: {exc}") from exc
    return parse_roster(raw)


def _roster_key(entry: dict[str, Any]) -> str:
    return str(entry.get("key") or entry.get("name") or "").strip()


def _check_member_fields(entry: dict[str, Any], *, where: str) -> None:
    for field in ("position", "bio"):
        value = entry.get(field)
        if value is None or isinstance(value, str):
            continue
        if not isinstance(value, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in value.items()
        ):
            raise InvalidFieldError(f"{where}.{field} must be text or a locale-to-text mapping")
    order = entry.get("sort_order", 0)
    if isinstance(order, bool) or not isinstance(order, int):
        raise InvalidFieldError(f"{where}.sort_order must be an integer")
    if not isinstance(entry.get("is_active", True), bool):
        raise InvalidFieldError(f"{where}.is_active must be true or false")


def _check_manager_cycles(managers: dict[str, str]) -> None:
    done: set[str] = set()
    for start in sorted(managers):
        path: list[str] = []
        current: str | None = start
        while current is not None and current not in done:
            if current in path:
                loop = path[path.index(current) :]
                raise InvalidFieldError(
                    f"roster managers form a cycle: {' -> '.join([*loop, current])}"
                )
            path.append(current)
            current = managers.get(current)
        done.update(path)


def parse_roster(raw: object) -> dict[str, list[dict[str, Any]]]:
    """Validate a roster completely so seeding can fail before touching the team."""
    if isinstance(raw, list):
        raw = {"members": raw}
    if not isinstance(raw, dict):
        raise InvalidFieldError("roster must be an object or a list of members")

    members = raw.get("members") or []
    relationships = raw.get("relationships") or []
    if not isinstance(members, list) or not isinstance(relationships, list):
        raise InvalidFieldError("roster members and relationships must be lists")

    keys: set[str] = set()
    for idx, entry in enumerate(members):
        if not isinstance(entry, dict):
            raise InvalidFieldError(f"members[{idx}] must be an object")
        unknown = sorted(set(entry) - _MEMBER_KEYS)
        if unknown:
            raise InvalidFieldError(f"members[{idx}] has unknown field(s): {', '.join(unknown)}")
        key = _roster_key(entry)
        if not key:
            raise InvalidFieldError(f"members[{idx}] needs a key or a name")
        if key in keys:
            raise InvalidFieldError(f"duplicate roster key: {key}")
        _check_member_fields(entry, where=f"members[{idx}]")
        keys.add(key)

    def resolve(ref: object, *, where: str) -> str:
        key = str(ref or "").strip()
        if key not in keys:
            raise InvalidFieldError(f"{where} refers to unknown roster key: {key}")
        return key

    managers: dict[str, str] = {}
    for entry in members:
        if not entry.get("manager"):
            continue
        key = _roster_key(entry)
        managers[key] = resolve(entry["manager"], where=f"manager of {key}")
        if managers[key] == key:
            raise InvalidFieldError(f"{key} cannot report to themselves")

    pairs = set(managers.items())
    for idx, entry in enumerate(relationships):
        where = f"relationships[{idx}]"
        if not isinstance(entry, dict):
            raise InvalidFieldError(f"{where} must be an object")
        unknown = sorted(set(entry) - _RELATIONSHIP_KEYS)
        if unknown:
            raise InvalidFieldError(f"{where} has unknown field(s): {', '.join(unknown)}")
        member = resolve(entry.get("member"), where=f"{where}.member")
        manager = resolve(entry.get("manager"), where=f"{where}.manager")
        if member == manager:
            raise InvalidFieldError(f"{where}: {member} cannot report to themselves")
        if (member, manager) in pairs:
            raise InvalidFieldError(f"{where}: {member} already reports to {manager}")
        pairs.add((member, manager))
        if str(entry.get("report_type") or "dotted").strip().lower() not in REPORT_TYPES:
            raise InvalidFieldError(
                f"{where}.report_type must be one of: {', '.join(REPORT_TYPES)}"
            )
        is_primary = entry.get("is_primary", False)
        if not isinstance(is_primary, bool):
            raise InvalidFieldError(f"{where}.is_primary must be true or false")
        if is_primary:
            if member in managers:
                raise InvalidFieldError(f"{where}: {member} already has a primary manager")
            managers[member] = manager

    _check_manager_cycles(managers)
    return {"members": members, "relationships": relationships}


def seed_team(
    store: TeamStore,
    roster: dict[str, list[dict[str, Any]]],
    *,
    actor: Actor | None,
    replace: bool = False,
) -> dict[str, Any]:
    # The roster is revalidated here so a hand-built one cannot fail halfway.
    roster = parse_roster(roster)
    who = require_actor(actor)
    existing = store.list_members()
    if existing and not replace:
        raise InvalidFieldError(
            f"team already has {len(existing)} member(s); pass replace=True to start over"
        )
    for member in existing:
        if store.get_member(member["id"]) is not None:
            store.delete_member(member["id"], actor=who)

    ids: dict[str, str] = {}
    for entry in roster["members"]:
        key = _roster_key(entry)
        fields = {k: v for k, v in entry.items() if k not in {"key", "manager", "name"}}
        created = store.create_member(str(entry.get("name") or key), actor=who, **fields)
        ids[key] = created["id"]

    for entry in roster["members"]:
        if not entry.get("manager"):
            continue
        key = _roster_key(entry)
        store.update_member(ids[key], actor=who, parent_id=ids[str(entry["manager"]).strip()])

    relationships = 0
    for entry in roster["relationships"]:
        store.create_relationship(
            ids[str(entry["member"]).strip()],
            ids[str(entry["manager"]).strip()],
            actor=who,
            is_primary=entry.get("is_primary", False),
            report_type=str(entry.get("report_type") or "dotted"),
            notes=entry.get("notes"),
        )
        relationships += 1

    logger.info("seeded %d member(s), %d extra reporting line(s)", len(ids), relationships)
    return {
        "members": len(ids),
        "relationships": relationships,
        "replaced": len(existing),
        "ids": ids,
    }
