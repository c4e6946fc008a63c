"""Terminal rendering for the team CLI: plain text for pipes, rich for ttys."""

from __future__ import annotations

import argparse
import json
import os
import sys
from collections.abc import Callable, Sequence
from datetime import datetime, timezone
from typing import Any, Literal

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

from .hierarchy import Hierarchy, OrgNode
from .hooks import plain_text

OUTPUT_CHOICES = ("auto", "plain", "rich")
OutputMode = Literal["plain", "rich"]

MEMBER_HEADERS = ("ID", "NAME", "POSITION", "DEPARTMENT", "MANAGER", "ORDER", "ACTIVE")
RELATIONSHIP_HEADERS = ("ID", "MEMBER", "MANAGER", "TYPE", "PRIMARY", "NOTES")
ACTIVITY_HEADERS = ("WHEN", "TOPIC", "AUTHOR", "SUMMARY")

EMPTY_TEAM = "(no team members)"


def add_output_mode_argument(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--output",
        choices=OUTPUT_CHOICES,
        help="Output mode: auto (default), plain, or rich (or ORGCHART_OUTPUT).",
    )


def _normalize_choice(raw: str | None, *, source: str) -> str | None:
    if raw is None:
        return None
    value = raw.strip().lower()
    if not value:
        return None
    if value not in OUTPUT_CHOICES:
        expected = ", ".join(OUTPUT_CHOICES)
        raise ValueError(f"invalid {source} value {raw!r}; expected one of: {expected}")
    return value


def resolve_output_mode(
    requested: str | None = None,
    *,
    is_tty: bool | None = None,
) -> OutputMode:
    """``--output`` beats ``ORGCHART_OUTPUT``; ``auto`` means rich on a tty."""
    selected = _normalize_choice(requested, source="--output") or _normalize_choice(
        os.environ.get("ORGCHART_OUTPUT"), source="ORGCHART_OUTPUT"
    )
    if selected in (None, "auto"):
        if is_tty is None:
            probe = getattr(sys.stdout, "isatty", None)
            is_tty = bool(probe()) if callable(probe) else False
        return "rich" if is_tty else "plain"
    return "rich" if selected == "rich" else "plain"


def make_console(mode: OutputMode, *, stderr: bool = False) -> Console:
    return Console(
        file=sys.stderr if stderr else sys.stdout,
        force_terminal=mode == "rich",
        no_color=mode != "rich",
        highlight=False,
    )


# -- JSON ----------------------------------------------------------------------


def iso_from_epoch_ms(value: object) -> str | None:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    try:
        dt = datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None
    return dt.strftime("%Y-%m-%dT%H:%M:%SZ")


def with_iso_timestamps(payload: Any) -> Any:
    """Copy ``payload`` adding ``<key>_iso`` next to every epoch-ms ``*_at`` key."""
    if isinstance(payload, dict):
        out: dict[str, Any] = {}
        for key, value in payload.items():
            out[key] = with_iso_timestamps(value)
            if key.endswith("_at"):
                iso = iso_from_epoch_ms(value)
                if iso:
                    out[f"{key}_iso"] = iso
        return out
    if isinstance(payload, list):
        return [with_iso_timestamps(item) for item in payload]
    return payload


def emit_json(payload: Any) -> None:
    print(json.dumps(with_iso_timestamps(payload), ensure_ascii=False, indent=2))


# -- rows ----------------------------------------------------------------------


def truncate(value: object, limit: int) -> str:
    text = str(value or "").strip()
    if len(text) <= limit:
        return text
    if limit <= 3:
        return text[:limit]
    return text[: limit - 3] + "..."


def member_columns(member: dict[str, Any]) -> tuple[str, ...]:
    return (
        str(member.get("id") or ""),
        truncate(member.get("name"), 32),
        truncate(plain_text(member.get("position")), 36),
        truncate(member.get("department"), 28),
        str(member.get("parent_id") or "-"),
        str(member.get("sort_order") or 0),
        "yes" if member.get("is_active", True) else "no",
    )


def relationship_columns(row: dict[str, Any]) -> tuple[str, ...]:
    return (
        str(row.get("id") or ""),
        str(row.get("member_id") or ""),
        str(row.get("manager_id") or ""),
        str(row.get("report_type") or ""),
        "yes" if row.get("is_primary") else "no",
        truncate(row.get("notes"), 40),
    )


def activity_columns(row: dict[str, Any]) -> tuple[str, ...]:
    body = row.get("body") or {}
    summary = body.get("summary") or body.get("message") or ""
    return (
        iso_from_epoch_ms(row.get("created_at")) or "-",
        str(row.get("topic") or ""),
        str(row.get("author") or ""),
        truncate(summary, 72),
    )


def _rich_table(
    *,
    headers: Sequence[str],
    rows: Sequence[Sequence[object]],
    title: str | None = None,
    no_wrap_columns: Sequence[int] = (0,),
) -> Table:
    table = Table(title=title)
    no_wrap = set(no_wrap_columns)
    for idx, header in enumerate(headers):
        table.add_column(str(header), no_wrap=idx in no_wrap)
    for row in rows:
        table.add_row(*(escape(str(value or "")) for value in row))
    return table


def _print_plain_table(headers: Sequence[str], values: list[tuple[str, ...]]) -> None:
    widths = [len(item) for item in headers]
    for row in values:
        for idx, col in enumerate(row):
            widths[idx] = max(widths[idx], len(col))
    print("  ".join(h.ljust(w) for h, w in zip(headers, widths)).rstrip())
    print("  ".join("-" * w for w in widths))
    for row in values:
        print("  ".join(col.ljust(w) for col, w in zip(row, widths)).rstrip())


def print_rows(
    rows: list[dict[str, Any]],
    *,
    headers: Sequence[str],
    columns: Callable[[dict[str, Any]], tuple[str, ...]],
    title: str,
    empty: str,
    output_mode: OutputMode,
) -> None:
    if output_mode == "rich":
        console = make_console("rich")
        if not rows:
            console.print(Panel(empty, title=title))
        else:
            console.print(
                _rich_table(title=title, headers=headers, rows=[columns(row) for row in rows])
            )
        return
    if not rows:
        print(empty)
        return
    _print_plain_table(headers, [columns(row) for row in rows])


def print_member_line(member: dict[str, Any]) -> None:
    row = member_columns(member)
    print(f"{row[0]}  {row[1]}  {row[2]}".rstrip())


def print_member_details(member: dict[str, Any], *, output_mode: OutputMode) -> None:
    lines = [
        f"name: {member['name']}",
        f"position: {plain_text(member.get('position')) or '-'}",
        f"department: {member.get('department') or '-'}",
        f"manager: {member.get('parent_id') or '-'}",
        f"order: {member.get('sort_order') or 0}",
        f"active: {'yes' if member.get('is_active', True) else 'no'}",
    ]
    for key in ("email", "phone", "linkedin", "image"):
        if member.get(key):
            lines.append(f"{key}: {member[key]}")
    bio = plain_text(member.get("bio"))
    if bio:
        lines.extend(("", bio))
    relationships = member.get("relationships") or []
    reports = member.get("direct_reports") or []

    if output_mode == "rich":
        console = make_console("rich")
        console.print(Panel(escape("\n".join(lines)), title=f"[bold]{member['id']}[/bold]"))
        if relationships:
            console.print(
                _rich_table(
                    title="Reporting lines",
                    headers=RELATIONSHIP_HEADERS,
                    rows=[relationship_columns(row) for row in relationships],
                    no_wrap_columns=(0, 1, 2),
                )
            )
        if reports:
            console.print(
                _rich_table(
                    title="Direct reports",
                    headers=MEMBER_HEADERS,
                    rows=[member_columns(row) for row in reports],
                )
            )
        return

    print(member["id"])
    for line in lines:
        print(line)
    if relationships:
        print()
        print("reporting lines:")
        for row in relationships:
            flag = " primary" if row["is_primary"] else ""
            print(f"  {row['member_id']} -> {row['manager_id']} ({row['report_type']}{flag})")
    if reports:
        print()
        print("direct reports:")
        for row in reports:
            print(f"  {row['id']}  {row['name']}")


# -- org chart -----------------------------------------------------------------


def _node_label(node: OrgNode) -> str:
    label = str(node.member["name"])
    position = plain_text(node.member.get("position"))
    if position:
        label += f" ({position})"
    return label


def _extra_managers(node: OrgNode, names: dict[str, str]) -> str:
    return ", ".join(
        f"{edge['report_type']}: {names.get(edge['manager_id'], edge['manager_id'])}"
        for edge in node.additional_managers
    )


def _print_hierarchy_plain(tree: Hierarchy, names: dict[str, str]) -> None:
    def emit(node: OrgNode, depth: int) -> None:
        extra = _extra_managers(node, names)
        suffix = f" [{extra}]" if extra else ""
        print(f"{'  ' * depth}{_node_label(node)}  {node.id}{suffix}")
        for child in node.children:
            emit(child, depth + 1)

    for root in tree.roots:
        emit(root, 0)
    if tree.shared_children:
        print()
        print("shared:")
        for shared in tree.shared_children:
            managers = ", ".join(names.get(pid, pid) for pid in shared.parent_ids)
            print(f"  {_node_label(shared.child)}  {shared.child.id}  <- {managers}")
            for child in shared.child.children:
                emit(child, 2)


def _print_hierarchy_rich(tree: Hierarchy, names: dict[str, str]) -> None:
    def attach(branch: Tree, node: OrgNode) -> None:
        label = f"[bold]{escape(str(node.member['name']))}[/bold]"
        position = plain_text(node.member.get("position"))
        if position:
            label += f" {escape(position)}"
        extra = _extra_managers(node, names)
        if extra:
            label += f" [dim]{escape('[' + extra + ']')}[/dim]"
        sub = branch.add(label)
        for child in node.children:
            attach(sub, child)

    chart = Tree("[bold blue]Org chart[/bold blue]")
    for node in tree.roots:
        attach(chart, node)
    if tree.shared_children:
        shared_branch = chart.add("[italic]Shared[/italic]")
        for shared in tree.shared_children:
            managers = ", ".join(names.get(pid, pid) for pid in shared.parent_ids)
            sub = shared_branch.add(
                f"[bold]{escape(str(shared.child.member['name']))}[/bold] <- {escape(managers)}"
            )
            for child in shared.child.children:
                attach(sub, child)
    make_console("rich").print(chart)


def print_hierarchy(tree: Hierarchy, *, output_mode: OutputMode) -> None:
    if not tree.roots:
        if output_mode == "rich":
            make_console("rich").print(Panel(EMPTY_TEAM, title="Org chart"))
        else:
            print(EMPTY_TEAM)
        return
    names = {node.id: str(node.member["name"]) for node in tree.flatten()}
    if output_mode == "rich":
        _print_hierarchy_rich(tree, names)
    else:
        _print_hierarchy_plain(tree, names)


def print_departments(
    groups: dict[str, list[dict[str, Any]]], *, output_mode: OutputMode
) -> None:
    if not groups:
        print(EMPTY_TEAM)
        return
    if output_mode == "rich":
        console = make_console("rich")
        for name, members in groups.items():
            console.print(
                _rich_table(
                    title=escape(f"{name} ({len(members)})"),
                    headers=MEMBER_HEADERS,
                    rows=[member_columns(row) for row in members],
                )
            )
        return
    for idx, (name, members) in enumerate(groups.items()):
        if idx:
            print()
        print(f"{name} ({len(members)})")
        for member in members:
            print(f"  {member['id']}  {member['name']}")


# -- help ----------------------------------------------------------------------


def render_rich_help(
    *,
    command: str,
    summary: str,
    usage: Sequence[str],
    sections: Sequence[tuple[str, Sequence[tuple[str, str]]]],
    examples: Sequence[tuple[str, str]] = (),
    stderr: bool = False,
) -> None:
    console = make_console("rich", stderr=stderr)
    console.print(Panel(summary, title=f"[bold blue]{command}[/bold blue]"))
    console.print()
    console.print("[bold]Usage[/bold]")
    for line in usage:
        console.print(f"  {line}", markup=False)
    for title, rows in sections:
        if rows:
            console.print()
            console.print(_rich_table(title=title, headers=("Item", "Description"), rows=rows))
    if examples:
        console.print()
        console.print(_rich_table(title="Examples", headers=("Command", "Purpose"), rows=examples))
