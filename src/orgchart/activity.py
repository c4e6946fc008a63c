"""JSONL-backed activity log used as the default hook sink."""

from __future__ import annotations

from pathlib import Path

from .hooks import ChangeDescriptor, HookSet, Mutation
from .jsonl import append_jsonl, iter_jsonl, read_jsonl
from .stores.state import ACTIVITY_FILENAME, now_ms, resolve_state_dir

ACTIVITY_TOPIC = "activity"
NOTIFICATION_TOPIC = "notification"


class ActivityLog:
    """Topic/body/author entries stored in .orgchart/activity.jsonl."""

    def __init__(self, path: Path) -> None:
        self.path = path

    @classmethod
    def from_workdir(cls, root: Path | None = None, *, create: bool = True) -> ActivityLog:
        return cls(resolve_state_dir(root, create=create) / ACTIVITY_FILENAME)

    def post(self, topic: str, body: dict, author: str = "system") -> dict:
        entry = {
            "topic": topic,
            "body": body,
            "author": author,
            "created_at": now_ms(),
        }
        append_jsonl(self.path, entry)
        return entry

    def read(self, topic: str | None = None, limit: int = 50) -> list[dict]:
        rows = read_jsonl(self.path)
        if topic:
            rows = [row for row in rows if row.get("topic") == topic]
        return rows[-max(1, int(limit)) :]

    def topics(self) -> list[dict]:
        """Return topic metadata sorted by most-recent activity."""
        by_topic: dict[str, dict] = {}
        for row in iter_jsonl(self.path):
            topic = row.get("topic")
            if not topic:
                continue
            entry = by_topic.setdefault(topic, {"topic": topic, "messages": 0, "last_at": 0})
            entry["messages"] += 1
            entry["last_at"] = max(entry["last_at"], int(row.get("created_at", 0)))
        return sorted(
            by_topic.values(),
            key=lambda item: (item["last_at"], item["topic"]),
            reverse=True,
        )

    def record_activity(self, mutation: Mutation) -> None:
        self.post(
            ACTIVITY_TOPIC,
            {
                "action": mutation.action,
                "summary": mutation.summary,
                "subject_type": mutation.subject_type,
                "subject_id": mutation.subject_id,
                "actor": mutation.actor.to_dict(),
            },
            author=mutation.actor.email or mutation.actor.id,
        )

    def record_notification(self, change: ChangeDescriptor, mutation: Mutation) -> None:
        self.post(
            NOTIFICATION_TOPIC,
            change.to_dict(),
            author=mutation.actor.email or mutation.actor.id,
        )

    def attach(self, hooks: HookSet) -> HookSet:
        hooks.on_activity(self.record_activity)
        hooks.on_notification(self.record_notification)
        return hooks
