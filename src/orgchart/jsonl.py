"""Append-only JSONL helpers for the activity log."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from pathlib import Path

logger = logging.getLogger(__name__)


def iter_jsonl(path: Path) -> Iterator[dict]:
    """Yield object rows; a torn line from an interrupted append is skipped."""
    if not path.exists():
        return
    with open(path, encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                row = json.loads(line)
            except json.JSONDecodeError:
                logger.warning("skipping unreadable line %d in %s", lineno, path)
                continue
            if isinstance(row, dict):
                yield row


def read_jsonl(path: Path) -> list[dict]:
    return list(iter_jsonl(path))


def append_jsonl(path: Path, row: dict) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "a", encoding="utf-8") as f:
        f.write(json.dumps(row, ensure_ascii=False, separators=(",", ":")) + "\n")
