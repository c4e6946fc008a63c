"""JSON API routes for the team directory and org chart."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from .. import __version__
from ..hierarchy import hierarchy_levels
from ..hooks import Actor
from ..team import Team

router = APIRouter(prefix="/api")

Localized = str | dict[str, str]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _team(req: Request) -> Team:
    return req.app.state.team


def actor_from_headers(
    x_actor_id: str | None = Header(default=None),
    x_actor_email: str | None = Header(default=None),
    x_actor_name: str | None = Header(default=None),
) -> Actor | None:
    """Attribution supplied by the identity layer; None means anonymous."""
    ident = (x_actor_id or x_actor_email or "").strip()
    if not ident:
        return None
    return Actor(id=ident, email=(x_actor_email or "").strip(), name=(x_actor_name or "").strip())


def _respond(result: dict[str, Any]) -> Any:
    if result.get("success"):
        return result
    status = 404 if result.get("code") == "not_found" else 400
    return JSONResponse(result, status_code=status)


def _not_found(kind: str, ident: str) -> JSONResponse:
    return JSONResponse(
        {"success": False, "error": f"unknown {kind}: {ident}", "code": "not_found"},
        status_code=404,
    )


# ---------------------------------------------------------------------------
# Read API
# ---------------------------------------------------------------------------


@router.get("/status")
async def api_status(request: Request):
    team = _team(request)
    members = team.list_members()
    return {
        "version": __version__,
        "members": len(members),
        "active_members": sum(1 for m in members if m["is_active"]),
        "relationships": len(team.list_relationships()),
        "db_path": str(team.store.db_path),
        "activity": team.activity.topics() if team.activity else [],
    }


@router.get("/members")
async def api_members(
    request: Request,
    department: str | None = None,
    active: bool | None = None,
):
    return _team(request).list_members(department=department, active=active)


@router.get("/members/{member_id}")
async def api_member(request: Request, member_id: str):
    member = _team(request).show_member(member_id)
    if member is None:
        return _not_found("team member", member_id)
    return member


@router.get("/members/{member_id}/relationships")
async def api_member_relationships(request: Request, member_id: str):
    return _team(request).list_relationships(member_id)


@router.get("/members/{member_id}/reports")
async def api_member_reports(request: Request, member_id: str):
    return _team(request).direct_reports(member_id)


@router.get("/potential-parents")
async def api_potential_parents(request: Request, exclude: str | None = None):
    return _team(request).potential_parents(exclude)


@router.get("/hierarchy")
async def api_hierarchy(request: Request):
    team = _team(request)
    tree = team.hierarchy()
    return {
        **tree.to_dict(),
        "levels": hierarchy_levels(node.member for node in tree.flatten()),
    }


@router.get("/departments")
async def api_departments(request: Request):
    team = _team(request)
    groups = team.departments()
    return {
        "names": team.department_names(),
        "groups": [
            {"department": name, "members": members} for name, members in groups.items()
        ],
    }


@router.get("/activity")
async def api_activity(request: Request, topic: str | None = None, limit: int = 50):
    return _team(request).activity_entries(topic=topic, limit=max(1, limit))


# ---------------------------------------------------------------------------
# Actions API (JSON, mutating)
# ---------------------------------------------------------------------------


class MemberCreate(BaseModel):
    name: str
    position: Localized = ""
    department: str | None = None
    bio: Localized | None = None
    image: str | None = None
    email: str | None = None
    phone: str | None = None
    linkedin: str | None = None
    sort_order: int = 0
    parent_id: str | None = None
    is_active: bool = True


class MemberUpdate(BaseModel):
    name: str | None = None
    position: Localized | None = None
    department: str | None = None
    bio: Localized | None = None
    image: str | None = None
    email: str | None = None
    phone: str | None = None
    linkedin: str | None = None
    sort_order: int | None = None
    parent_id: str | None = None
    is_active: bool | None = None


class PrimaryManager(BaseModel):
    manager_id: str | None = None


class RelationshipCreate(BaseModel):
    member_id: str
    manager_id: str
    is_primary: bool = False
    report_type: str = "direct"
    notes: str | None = None


class RelationshipUpdate(BaseModel):
    is_primary: bool | None = None
    report_type: str | None = None
    notes: str | None = None


@router.post("/members")
async def api_create_member(
    request: Request,
    body: MemberCreate,
    actor: Actor | None = Depends(actor_from_headers),
):
    return _respond(_team(request).create_member(body.model_dump(), actor))


@router.patch("/members/{member_id}")
async def api_update_member(
    request: Request,
    member_id: str,
    body: MemberUpdate,
    actor: Actor | None = Depends(actor_from_headers),
):
    # Only fields present in the request body are written; an explicit
    # null parent_id clears the primary manager.
    patch = body.model_dump(exclude_unset=True)
    return _respond(_team(request).update_member(member_id, patch, actor))


@router.put("/members/{member_id}/manager")
async def api_set_manager(
    request: Request,
    member_id: str,
    body: PrimaryManager,
    actor: Actor | None = Depends(actor_from_headers),
):
    return _respond(_team(request).set_primary_manager(member_id, body.manager_id, actor))


@router.delete("/members/{member_id}")
async def api_delete_member(
    request: Request,
    member_id: str,
    actor: Actor | None = Depends(actor_from_headers),
):
    return _respond(_team(request).delete_member(member_id, actor))


@router.post("/relationships")
async def api_create_relationship(
    request: Request,
    body: RelationshipCreate,
    actor: Actor | None = Depends(actor_from_headers),
):
    return _respond(_team(request).add_relationship(body.model_dump(), actor))


@router.patch("/relationships/{relationship_id}")
async def api_update_relationship(
    request: Request,
    relationship_id: str,
    body: RelationshipUpdate,
    actor: Actor | None = Depends(actor_from_headers),
):
    patch = body.model_dump(exclude_unset=True)
    return _respond(_team(request).update_relationship(relationship_id, patch, actor))


@router.delete("/relationships/{relationship_id}")
async def api_delete_relationship(
    request: Request,
    relationship_id: str,
    actor: Actor | None = Depends(actor_from_headers),
):
    return _respond(_team(request).remove_relationship(relationship_id, actor))
