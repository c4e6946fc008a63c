from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

import tomllib

from .departments import DEPARTMENT_ORDER, OTHER_DEPARTMENT
from .stores.state import CONFIG_FILENAME, resolve_state_dir

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8430


@dataclass(frozen=True)
class DepartmentsFileConfig:
    order: tuple[str, ...] = DEPARTMENT_ORDER
    other_label: str = OTHER_DEPARTMENT


@dataclass(frozen=True)
class ServerFileConfig:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT


@dataclass(frozen=True)
class OrgchartFileConfig:
    path: Path
    departments: DepartmentsFileConfig = DepartmentsFileConfig()
    server: ServerFileConfig = ServerFileConfig()
    log_level: str = "INFO"
    error: str | None = None


class ConfigValidationError(ValueError):
    pass


def _as_str(value: object) -> str | None:
    if not isinstance(value, str):
        return None
    stripped = value.strip()
    if not stripped:
        return None
    return stripped


def _as_str_tuple(value: object, *, field: str) -> tuple[str, ...]:
    if not isinstance(value, list):
        raise ConfigValidationError(f"{field} must be an array of strings")

    out: list[str] = []
    for idx, item in enumerate(value):
        text = _as_str(item)
        if text is None:
            raise ConfigValidationError(f"{field}[{idx}] must be a non-empty string")
        if text in out:
            raise ConfigValidationError(f"{field} lists {text!r} more than once")
        out.append(text)
    return tuple(out)


def _as_table(value: object, *, field: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigValidationError(f"[{field}] must be a table")
    return value


def _parse_departments(raw: object) -> DepartmentsFileConfig:
    table = _as_table(raw, field="departments")
    order = DEPARTMENT_ORDER
    if "order" in table:
        order = _as_str_tuple(table["order"], field="[departments].order")

    other_label = OTHER_DEPARTMENT
    if "other_label" in table:
        other_label = _as_str(table["other_label"]) or ""
        if not other_label:
            raise ConfigValidationError("[departments].other_label must be a non-empty string")
    return DepartmentsFileConfig(order=order, other_label=other_label)


def _parse_server(raw: object) -> ServerFileConfig:
    table = _as_table(raw, field="server")
    host = DEFAULT_HOST
    if "host" in table:
        host = _as_str(table["host"]) or ""
        if not host:
            raise ConfigValidationError("[server].host must be a non-empty string")

    port = DEFAULT_PORT
    if "port" in table:
        value = table["port"]
        if isinstance(value, bool) or not isinstance(value, int):
            raise ConfigValidationError("[server].port must be an integer")
        if value < 1 or value > 65535:
            raise ConfigValidationError("[server].port must be between 1 and 65535")
        port = value
    return ServerFileConfig(host=host, port=port)


def _parse_log_level(raw: object) -> str:
    table = _as_table(raw, field="logging")
    if "level" not in table:
        return "INFO"
    level = (_as_str(table["level"]) or "").upper()
    if level not in LOG_LEVELS:
        raise ConfigValidationError(
            f"[logging].level must be one of: {', '.join(LOG_LEVELS)}"
        )
    return level


def config_path(root: Path | None = None) -> Path:
    return resolve_state_dir(root, create=False) / CONFIG_FILENAME


def load_config(root: Path | None = None) -> OrgchartFileConfig:
    path = config_path(root)
    if not path.exists():
        return OrgchartFileConfig(path=path)

    try:
        raw = tomllib.loads(path.read_text(encoding="utf-8"))
    except (OSError, tomllib.TOMLDecodeError) as exc:
        return OrgchartFileConfig(path=path, error=f"invalid TOML in {path}: {exc}")

    try:
        return OrgchartFileConfig(
            path=path,
            departments=_parse_departments(raw.get("departments")),
            server=_parse_server(raw.get("server")),
            log_level=_parse_log_level(raw.get("logging")),
        )
    except ConfigValidationError as exc:
        return OrgchartFileConfig(path=path, error=f"{path}: {exc}")


DEFAULT_CONFIG_TOML = """\
[departments]
# Canonical display order; departments not listed follow in first-seen order.
order = [
{order}
]
other_label = "{other}"

[server]
host = "{host}"
port = {port}

[logging]
level = "INFO"
"""


def render_default_config() -> str:
    return DEFAULT_CONFIG_TOML.format(
        order="\n".join(f'    "{name}",' for name in DEPARTMENT_ORDER),
        other=OTHER_DEPARTMENT,
        host=DEFAULT_HOST,
        port=DEFAULT_PORT,
    )
