from __future__ import annotations

from typing import TYPE_CHECKING

__all__ = [
    "__version__",
    "Actor",
    "Hierarchy",
    "Team",
    "TeamStore",
    "build_hierarchy",
    "group_by_department",
    "potential_parents",
]

__version__ = "0.1.0"

if TYPE_CHECKING:
    from .departments import group_by_department
    from .guard import potential_parents
    from .hierarchy import Hierarchy, build_hierarchy
    from .hooks import Actor
    from .stores.team import TeamStore
    from .team import Team


def __getattr__(name: str):
    if name == "Actor":
        from .hooks import Actor

        return Actor
    if name in {"Hierarchy", "build_hierarchy"}:
        from .hierarchy import Hierarchy, build_hierarchy

        return {"Hierarchy": Hierarchy, "build_hierarchy": build_hierarchy}[name]
    if name == "group_by_department":
        from .departments import group_by_department

        return group_by_department
    if name == "potential_parents":
        from .guard import potential_parents

        return potential_parents
    if name == "TeamStore":
        from .stores.team import TeamStore

        return TeamStore
    if name == "Team":
        from .team import Team

        return Team
    raise AttributeError(f"module 'orgchart' has no attribute {name!r}")
