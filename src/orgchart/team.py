from __future__ import annotations

import argparse
import logging
import os
import sys
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .activity import ActivityLog
from .config import DepartmentsFileConfig, load_config
from .departments import group_by_department
from .errors import ForbiddenError, InvalidFieldError, OrgchartError, UnauthorizedError
from .guard import potential_parents
from .hierarchy import Hierarchy, build_hierarchy
from .hooks import Actor, HookSet
from .stores.team import MEMBER_FIELDS, REPORT_TYPES, RELATIONSHIP_FIELDS, TeamStore, require_actor
from .ui import (
    ACTIVITY_HEADERS,
    EMPTY_TEAM,
    MEMBER_HEADERS,
    RELATIONSHIP_HEADERS,
    activity_columns,
    add_output_mode_argument,
    emit_json,
    member_columns,
    print_departments,
    print_hierarchy,
    print_member_details,
    print_member_line,
    print_rows,
    relationship_columns,
    render_rich_help,
    resolve_output_mode,
)

logger = logging.getLogger(__name__)


@dataclass
class Team:
    """Service facade: reads return data, mutations return structured results."""

    store: TeamStore
    departments_config: DepartmentsFileConfig = field(default_factory=DepartmentsFileConfig)
    activity: ActivityLog | None = None

    @classmethod
    def from_workdir(
        cls,
        cwd: Path | None = None,
        *,
        create: bool = True,
    ) -> "Team":
        config = load_config(cwd)
        if config.error:
            logger.warning("%s; using default settings", config.error)
        activity = ActivityLog.from_workdir(cwd, create=create)
        store = TeamStore.from_workdir(cwd, create=create, hooks=activity.attach(HookSet()))
        return cls(store, departments_config=config.departments, activity=activity)

    def _attempt(self, actor: Actor | None, call: Callable[[Actor], dict[str, Any]]) -> dict[str, Any]:
        # Auth failures propagate; everything else becomes a failed result.
        who = require_actor(actor)
        try:
            return {"success": True, **call(who)}
        except (UnauthorizedError, ForbiddenError):
            raise
        except OrgchartError as exc:
            logger.debug("rejected change by %s: %s", who.label, exc)
            return exc.to_result()

    # -- reads ---------------------------------------------------------------

    def list_members(
        self,
        *,
        department: str | None = None,
        active: bool | None = None,
    ) -> list[dict[str, Any]]:
        return self.store.list_members(department=department, active=active)

    def show_member(self, member_id: str) -> dict[str, Any] | None:
        member = self.store.get_member(member_id)
        if member is None:
            return None
        return {
            **member,
            "relationships": self.store.list_relationships(member["id"]),
            "direct_reports": self.store.direct_reports(member["id"]),
        }

    def list_relationships(self, member_id: str | None = None) -> list[dict[str, Any]]:
        return self.store.list_relationships(member_id)

    def potential_parents(self, exclude_id: str | None = None) -> list[dict[str, Any]]:
        return potential_parents(self.store.list_members(), exclude_id or None)

    def hierarchy(self) -> Hierarchy:
        snapshot = self.store.snapshot()
        return build_hierarchy(snapshot["members"], snapshot["relationships"])

    def departments(self) -> dict[str, list[dict[str, Any]]]:
        return group_by_department(
            self.store.list_members(active=True),
            order=self.departments_config.order,
            other_label=self.departments_config.other_label,
        )

    def department_names(self) -> list[str]:
        return self.store.departments()

    def direct_reports(self, member_id: str) -> list[dict[str, Any]]:
        return self.store.direct_reports(member_id)

    def activity_entries(self, *, topic: str | None = None, limit: int = 50) -> list[dict[str, Any]]:
        if self.activity is None:
            return []
        return self.activity.read(topic=topic, limit=limit)

    # -- mutations -----------------------------------------------------------

    def create_member(self, payload: Mapping[str, Any], actor: Actor | None) -> dict[str, Any]:
        def call(who: Actor) -> dict[str, Any]:
            fields = dict(payload)
            name = fields.pop("name", None)
            _reject_unknown(fields, MEMBER_FIELDS, kind="team member")
            return {"member": self.store.create_member(name, actor=who, **fields)}

        return self._attempt(actor, call)

    def update_member(
        self, member_id: str, patch: Mapping[str, Any], actor: Actor | None
    ) -> dict[str, Any]:
        return self._attempt(
            actor,
            lambda who: {"member": self.store.update_member(member_id, actor=who, **dict(patch))},
        )

    def delete_member(self, member_id: str, actor: Actor | None) -> dict[str, Any]:
        return self._attempt(actor, lambda who: self.store.delete_member(member_id, actor=who))

    def add_relationship(self, payload: Mapping[str, Any], actor: Actor | None) -> dict[str, Any]:
        def call(who: Actor) -> dict[str, Any]:
            fields = dict(payload)
            member_id = fields.pop("member_id", None)
            manager_id = fields.pop("manager_id", None)
            _reject_unknown(fields, RELATIONSHIP_FIELDS, kind="relationship")
            row = self.store.create_relationship(member_id, manager_id, actor=who, **fields)
            return {"relationship": row}

        return self._attempt(actor, call)

    def update_relationship(
        self, relationship_id: str, patch: Mapping[str, Any], actor: Actor | None
    ) -> dict[str, Any]:
        return self._attempt(
            actor,
            lambda who: {
                "relationship": self.store.update_relationship(
                    relationship_id, actor=who, **dict(patch)
                )
            },
        )

    def remove_relationship(self, relationship_id: str, actor: Actor | None) -> dict[str, Any]:
        return self._attempt(
            actor, lambda who: self.store.delete_relationship(relationship_id, actor=who)
        )

    def set_primary_manager(
        self, member_id: str, manager_id: str | None, actor: Actor | None
    ) -> dict[str, Any]:
        return self._attempt(
            actor,
            lambda who: {
                "member": self.store.sync_primary_manager(member_id, manager_id, actor=who)
            },
        )


def _reject_unknown(fields: Mapping[str, Any], allowed: tuple[str, ...], *, kind: str) -> None:
    unknown = sorted(set(fields) - set(allowed))
    if unknown:
        raise InvalidFieldError(f"unknown {kind} field(s): {', '.join(unknown)}")


def parse_actor(raw: str | None) -> Actor | None:
    """Parse ``"Name <email>"``, a bare email, or a bare id."""
    text = str(raw or "").strip()
    if not text:
        return None
    if text.endswith(">") and "<" in text:
        name, _, rest = text.partition("<")
        email = rest[:-1].strip()
        return Actor(id=email or name.strip(), email=email, name=name.strip())
    if "@" in text:
        return Actor(id=text, email=text)
    return Actor(id=text, name=text)


def _print_help_rich() -> None:
    render_rich_help(
        command="orgchart team",
        summary="team members and reporting lines",
        usage=("orgchart team <command> [ARGS]",),
        sections=(
            (
                "Commands",
                (
                    ("list", "list team members"),
                    ("show <id>", "member details, reporting lines, direct reports"),
                    ("new <name> [flags]", "create a team member"),
                    ("edit <id> [flags]", "update fields; --parent re-routes the primary line"),
                    ("delete <id...> --yes", "delete members and their reporting lines"),
                    ("rels <id>", "reporting lines touching a member"),
                    ("rel add <member> <manager>", "add a reporting line"),
                    ("rel edit <rel-id> [flags]", "change type, notes or primary flag"),
                    ("rel rm <rel-id...>", "remove reporting lines"),
                    ("parents [--exclude <id>]", "members that can be a primary manager"),
                    ("tree", "render the org chart"),
                    ("departments", "members grouped by department"),
                    ("activity", "recent changes and notifications"),
                ),
            ),
            (
                "Options",
                (
                    ("--json", "emit machine-stable JSON payloads"),
                    ("--output MODE", "auto|plain|rich (or ORGCHART_OUTPUT)"),
                    ("--actor WHO", "attribution for changes (or ORGCHART_ACTOR)"),
                    ("-h, --help", "show this help"),
                ),
            ),
        ),
        examples=(
            (
                "orgchart team new \"Ada Lovelace\" -p Treasurer -d Finance --parent tm-1a2b3c4d",
                "add a member under a manager",
            ),
            (
                "orgchart team rel add tm-5e6f7a8b tm-1a2b3c4d --type dotted",
                "record a dotted reporting line",
            ),
            ("orgchart team tree --output rich", "show the chart"),
        ),
    )


def _add_actor_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--actor",
        help="Who is making the change: email, id or 'Name <email>' (or ORGCHART_ACTOR)",
    )


def _add_member_fields(parser: argparse.ArgumentParser, *, editing: bool) -> None:
    parser.add_argument("-p", "--position", help="Position title")
    parser.add_argument("-d", "--department", help="Department label")
    parser.add_argument("--bio", help="Short biography")
    parser.add_argument("--email", help="Contact email")
    parser.add_argument("--phone", help="Contact phone")
    parser.add_argument("--linkedin", help="LinkedIn profile URL")
    parser.add_argument("--image", help="Portrait image URL")
    parser.add_argument(
        "--order",
        type=int,
        default=None if editing else 0,
        help="Sort order among siblings" + ("" if editing else " (default: 0)"),
    )
    parser.add_argument("--parent", help="Primary manager id")
    if editing:
        parser.add_argument("--name", help="New name")
        parser.add_argument(
            "--no-parent",
            action="store_true",
            help="Clear the primary manager (member becomes a root)",
        )
        state = parser.add_mutually_exclusive_group()
        state.add_argument("--active", dest="active", action="store_true", default=None)
        state.add_argument("--inactive", dest="active", action="store_false", default=None)
    else:
        parser.add_argument("--inactive", action="store_true", help="Create as inactive")


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="orgchart team",
        description="Manage team members and reporting lines.",
    )
    sub = p.add_subparsers(dest="command", required=True, metavar="command")

    ls = sub.add_parser("list", help="List team members")
    ls.add_argument("--department", help="Filter by department")
    ls.add_argument(
        "--status",
        choices=("all", "active", "inactive"),
        default="all",
        help="Filter by active flag (default: all)",
    )
    ls.add_argument("--json", action="store_true", help="Output JSON")
    add_output_mode_argument(ls)

    show = sub.add_parser("show", help="Show one member with details")
    show.add_argument("id", help="Member id")
    show.add_argument("--json", action="store_true", help="Output JSON")
    add_output_mode_argument(show)

    new = sub.add_parser("new", help="Create a team member")
    new.add_argument("name", help="Full name")
    _add_member_fields(new, editing=False)
    _add_actor_argument(new)
    new.add_argument("--json", action="store_true", help="Output JSON")

    edit = sub.add_parser("edit", help="Edit member fields")
    edit.add_argument("id", help="Member id")
    _add_member_fields(edit, editing=True)
    _add_actor_argument(edit)
    edit.add_argument("--json", action="store_true", help="Output JSON")

    delete = sub.add_parser("delete", help="Delete team member(s)")
    delete.add_argument("id", nargs="+", help="Member id(s)")
    delete.add_argument("--yes", action="store_true", help="Confirm deletion")
    _add_actor_argument(delete)
    delete.add_argument("--json", action="store_true", help="Output JSON")

    rels = sub.add_parser("rels", help="List reporting lines touching a member")
    rels.add_argument("id", nargs="?", help="Member id (default: all reporting lines)")
    rels.add_argument("--json", action="store_true", help="Output JSON")
    add_output_mode_argument(rels)

    rel = sub.add_parser("rel", help="Reporting line operations")
    rel_sub = rel.add_subparsers(dest="rel_cmd", required=True, metavar="rel_cmd")
    rel_add = rel_sub.add_parser("add", help="Add a reporting line")
    rel_add.add_argument("member_id", help="Subordinate member id")
    rel_add.add_argument("manager_id", help="Manager member id")
    rel_add.add_argument("--type", choices=REPORT_TYPES, default="direct", help="Report type")
    rel_add.add_argument("--primary", action="store_true", help="Make this the primary line")
    rel_add.add_argument("--notes", help="Free-form notes")
    _add_actor_argument(rel_add)
    rel_add.add_argument("--json", action="store_true", help="Output JSON")

    rel_edit = rel_sub.add_parser("edit", help="Edit a reporting line")
    rel_edit.add_argument("id", help="Relationship id")
    rel_edit.add_argument("--type", choices=REPORT_TYPES, help="Report type")
    rel_edit.add_argument("--notes", help="Free-form notes")
    primary = rel_edit.add_mutually_exclusive_group()
    primary.add_argument("--primary", dest="primary", action="store_true", default=None)
    primary.add_argument("--secondary", dest="primary", action="store_false", default=None)
    _add_actor_argument(rel_edit)
    rel_edit.add_argument("--json", action="store_true", help="Output JSON")

    rel_rm = rel_sub.add_parser("rm", help="Remove reporting line(s)")
    rel_rm.add_argument("id", nargs="+", help="Relationship id(s)")
    _add_actor_argument(rel_rm)
    rel_rm.add_argument("--json", action="store_true", help="Output JSON")

    parents = sub.add_parser("parents", help="List possible primary managers")
    parents.add_argument("--exclude", help="Member being re-parented")
    parents.add_argument("--json", action="store_true", help="Output JSON")
    add_output_mode_argument(parents)

    tree = sub.add_parser("tree", help="Render the org chart")
    tree.add_argument("--json", action="store_true", help="Output JSON")
    add_output_mode_argument(tree)

    departments = sub.add_parser("departments", help="Members grouped by department")
    departments.add_argument("--json", action="store_true", help="Output JSON")
    add_output_mode_argument(departments)

    activity = sub.add_parser("activity", help="Recent changes and notifications")
    activity.add_argument("--topic", choices=("activity", "notification"), help="Filter by topic")
    activity.add_argument("--limit", type=int, default=20, help="Max rows (default: 20)")
    activity.add_argument("--json", action="store_true", help="Output JSON")
    add_output_mode_argument(activity)
    return p


def _member_payload(args: argparse.Namespace, *, editing: bool) -> dict[str, Any]:
    payload: dict[str, Any] = {}
    mapping = {
        "position": "position",
        "department": "department",
        "bio": "bio",
        "email": "email",
        "phone": "phone",
        "linkedin": "linkedin",
        "image": "image",
        "order": "sort_order",
        "parent": "parent_id",
    }
    for arg_name, key in mapping.items():
        value = getattr(args, arg_name)
        if value is not None:
            payload[key] = value
    if editing:
        if args.name is not None:
            payload["name"] = args.name
        if args.no_parent:
            if args.parent is not None:
                raise InvalidFieldError("--parent and --no-parent cannot be combined")
            payload["parent_id"] = None
        if args.active is not None:
            payload["is_active"] = args.active
    else:
        payload["name"] = args.name
        payload["is_active"] = not args.inactive
    return payload


def _unwrap(result: dict[str, Any]) -> dict[str, Any]:
    if not result.get("success"):
        raise OrgchartError(str(result.get("error") or "operation failed"))
    return result


def main(argv: list[str] | None = None) -> None:
    raw_argv = list(argv) if argv is not None else sys.argv[1:]
    if raw_argv in (["-h"], ["--help"]):
        try:
            help_output_mode = resolve_output_mode(
                is_tty=getattr(sys.stdout, "isatty", lambda: False)(),
            )
        except ValueError as exc:
            print(f"error: {exc}", file=sys.stderr)
            raise SystemExit(2) from exc
        if help_output_mode == "rich":
            _print_help_rich()
            raise SystemExit(0)

    args = _build_parser().parse_args(raw_argv)

    read_only = {"list", "show", "rels", "parents", "tree", "departments", "activity"}
    team = Team.from_workdir(Path.cwd(), create=args.command not in read_only)
    output_mode = "plain"
    if hasattr(args, "output"):
        try:
            output_mode = resolve_output_mode(getattr(args, "output", None))
        except ValueError as exc:
            print(f"error: {exc}", file=sys.stderr)
            raise SystemExit(2)
    actor = parse_actor(getattr(args, "actor", None) or os.environ.get("ORGCHART_ACTOR"))

    try:
        if args.command == "list":
            active = {"all": None, "active": True, "inactive": False}[args.status]
            rows = team.list_members(department=args.department, active=active)
            if args.json:
                emit_json(rows)
            else:
                print_rows(
                    rows,
                    headers=MEMBER_HEADERS,
                    columns=member_columns,
                    title="Team",
                    empty=EMPTY_TEAM,
                    output_mode=output_mode,
                )
            return

        if args.command == "show":
            row = team.show_member(args.id)
            if row is None:
                print(f"error: team member not found: {args.id}", file=sys.stderr)
                raise SystemExit(1)
            if args.json:
                emit_json(row)
            else:
                print_member_details(row, output_mode=output_mode)
            return

        if args.command == "new":
            member = _unwrap(team.create_member(_member_payload(args, editing=False), actor))[
                "member"
            ]
            if args.json:
                emit_json(member)
            else:
                print(member["id"])
            return

        if args.command == "edit":
            payload = _member_payload(args, editing=True)
            member = _unwrap(team.update_member(args.id, payload, actor))["member"]
            if args.json:
                emit_json(member)
            else:
                print_member_line(member)
            return

        if args.command == "delete":
            if not args.yes:
                print("error: refusing to delete without --yes", file=sys.stderr)
                raise SystemExit(1)
            rows = [_unwrap(team.delete_member(member_id, actor)) for member_id in args.id]
            if args.json:
                emit_json(rows)
            else:
                for row in rows:
                    print(f"deleted: {row['id']}")
                    for orphan in row.get("orphaned") or []:
                        print(f"  now a root: {orphan}")
            return

        if args.command == "rels":
            rows = team.list_relationships(args.id)
            if args.json:
                emit_json(rows)
            else:
                print_rows(
                    rows,
                    headers=RELATIONSHIP_HEADERS,
                    columns=relationship_columns,
                    title=f"Reporting lines: {args.id}" if args.id else "Reporting lines",
                    empty="(no reporting lines)",
                    output_mode=output_mode,
                )
            return

        if args.command == "rel" and args.rel_cmd == "add":
            payload = {
                "member_id": args.member_id,
                "manager_id": args.manager_id,
                "report_type": args.type,
                "is_primary": args.primary,
                "notes": args.notes,
            }
            row = _unwrap(team.add_relationship(payload, actor))["relationship"]
            if args.json:
                emit_json(row)
            else:
                print(row["id"])
            return

        if args.command == "rel" and args.rel_cmd == "edit":
            patch: dict[str, Any] = {}
            if args.type is not None:
                patch["report_type"] = args.type
            if args.notes is not None:
                patch["notes"] = args.notes
            if args.primary is not None:
                patch["is_primary"] = args.primary
            row = _unwrap(team.update_relationship(args.id, patch, actor))["relationship"]
            if args.json:
                emit_json(row)
            else:
                print(f"{row['id']}  {row['member_id']} -> {row['manager_id']}  {row['report_type']}")
            return

        if args.command == "rel" and args.rel_cmd == "rm":
            rows = [_unwrap(team.remove_relationship(rel_id, actor)) for rel_id in args.id]
            if args.json:
                emit_json(rows)
            else:
                for row in rows:
                    print(f"removed: {row['id']}")
            return

        if args.command == "parents":
            rows = team.potential_parents(args.exclude)
            if args.json:
                emit_json(rows)
            else:
                print_rows(
                    rows,
                    headers=MEMBER_HEADERS,
                    columns=member_columns,
                    title="Possible managers",
                    empty="(no candidates)",
                    output_mode=output_mode,
                )
            return

        if args.command == "tree":
            tree = team.hierarchy()
            if args.json:
                emit_json(tree.to_dict())
            else:
                print_hierarchy(tree, output_mode=output_mode)
            return

        if args.command == "departments":
            groups = team.departments()
            if args.json:
                emit_json(groups)
            else:
                print_departments(groups, output_mode=output_mode)
            return

        if args.command == "activity":
            rows = team.activity_entries(topic=args.topic, limit=max(1, int(args.limit)))
            if args.json:
                emit_json(rows)
            else:
                print_rows(
                    rows,
                    headers=ACTIVITY_HEADERS,
                    columns=activity_columns,
                    title="Activity",
                    empty="(no activity)",
                    output_mode=output_mode,
                )
            return
    except ValueError as exc:
        print(f"error: {exc}", file=sys.stderr)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
