"""Outbound extension points invoked after committed mutations."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Any, Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Actor:
    """Opaque attribution token supplied by the identity collaborator."""

    id: str
    email: str = ""
    name: str = ""

    @property
    def label(self) -> str:
        return self.name or self.email or self.id

    def to_dict(self) -> dict[str, str]:
        return {"id": self.id, "email": self.email, "name": self.name}


@dataclass(frozen=True)
class ChangeDescriptor:
    kind: str  # "team_update" or "org_chart_update"
    action: str  # added | removed | position_changed | hierarchy
    message: str
    member_id: str | None = None
    member_name: str | None = None
    details: str | None = None
    affected_count: int = 1

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class Mutation:
    action: str
    summary: str
    actor: Actor
    subject_type: str
    subject_id: str
    before: dict[str, Any] | None = None
    after: dict[str, Any] | None = None
    change: ChangeDescriptor | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action,
            "summary": self.summary,
            "actor": self.actor.to_dict(),
            "subject_type": self.subject_type,
            "subject_id": self.subject_id,
            "before": self.before,
            "after": self.after,
            "change": self.change.to_dict() if self.change else None,
        }


ActivityHook = Callable[[Mutation], None]
NotificationHook = Callable[[ChangeDescriptor, Mutation], None]


@dataclass
class HookSet:
    activity: list[ActivityHook] = field(default_factory=list)
    notification: list[NotificationHook] = field(default_factory=list)

    def on_activity(self, hook: ActivityHook) -> ActivityHook:
        self.activity.append(hook)
        return hook

    def on_notification(self, hook: NotificationHook) -> NotificationHook:
        self.notification.append(hook)
        return hook

    def dispatch(self, mutation: Mutation) -> None:
        # Hook failures are logged and never propagate into the committed operation.
        for hook in list(self.activity):
            try:
                hook(mutation)
            except Exception:
                logger.warning(
                    "activity hook %r failed for %s", hook, mutation.action, exc_info=True
                )
        if mutation.change is None:
            return
        for hook in list(self.notification):
            try:
                hook(mutation.change, mutation)
            except Exception:
                logger.warning(
                    "notification hook %r failed for %s",
                    hook,
                    mutation.action,
                    exc_info=True,
                )


def member_added(member: dict[str, Any]) -> ChangeDescriptor:
    name = str(member.get("name") or "")
    return ChangeDescriptor(
        kind="team_update",
        action="added",
        message=f"{name} has been added to the team.",
        member_id=str(member.get("id") or ""),
        member_name=name,
        details=plain_text(member.get("position")),
    )


def member_removed(member: dict[str, Any]) -> ChangeDescriptor:
    name = str(member.get("name") or "")
    return ChangeDescriptor(
        kind="team_update",
        action="removed",
        message=f"{name} has been removed from the team.",
        member_id=str(member.get("id") or ""),
        member_name=name,
    )


def position_changed(before: dict[str, Any], after: dict[str, Any]) -> ChangeDescriptor:
    name = str(after.get("name") or before.get("name") or "")
    details = f"{plain_text(before.get('position'))} -> {plain_text(after.get('position'))}"
    return ChangeDescriptor(
        kind="team_update",
        action="position_changed",
        message=f"{name}'s position has been changed: {details}.",
        member_id=str(after.get("id") or ""),
        member_name=name,
        details=details,
    )


def hierarchy_changed(
    member: dict[str, Any] | None,
    *,
    affected_count: int = 1,
    details: str | None = None,
) -> ChangeDescriptor:
    name = str(member.get("name") or "") if member else None
    return ChangeDescriptor(
        kind="org_chart_update",
        action="hierarchy",
        message=(
            "Organization hierarchy has been updated. "
            f"{affected_count} position(s) affected."
        ),
        member_id=str(member.get("id") or "") if member else None,
        member_name=name,
        details=details or (f"{name}'s reporting structure updated" if name else None),
        affected_count=affected_count,
    )


def plain_text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, dict):
        for key in ("en", *sorted(value)):
            text = value.get(key)
            if isinstance(text, str) and text.strip():
                return text.strip()
        return ""
    return str(value)
