"""
Project visibility for the aggregation views.

A user sees a project when they own it or when a member row links them to it.
The dashboard and calendar additionally count invitations addressed to the
user's own email that have not been claimed yet.

Invariants:
    - the visible uuid list holds each project once, in first-seen order
    - an owned record wins over a member-sourced record for the same project
    - an assigned task wins over the plain project variant of the same task
"""

import asyncio
from typing import Any, Dict, Iterable, List, Optional

from supabase import AsyncClient

from app.database.gateway import fetch_rows

Row = Dict[str, Any]


def unique_in_order(values: Iterable[Any]) -> List[Any]:
    seen = set()
    result = []
    for value in values:
        if value is None or value in seen:
            continue
        seen.add(value)
        result.append(value)
    return result


async def _no_rows() -> List[Row]:
    return []


async def get_visible_project_uuids(
    supabase: AsyncClient, user_id: int, email: Optional[str] = None
) -> List[str]:
    """Owned projects, then projects the user is a member of, deduplicated."""
    owned_query = supabase.table("projects").select("project_uuid").eq("owner_id", user_id)
    member_query = supabase.table("project_members").select("project_uuid").eq("user_id", user_id)

    if email:
        invited = fetch_rows(
            supabase.table("project_members")
                .select("project_uuid")
                .is_("user_id", "null")
                .eq("member_email", email.strip().lower()),
            "fetch pending invitations",
        )
    else:
        invited = _no_rows()

    owned, member, pending = await asyncio.gather(
        fetch_rows(owned_query, "fetch owned projects"),
        fetch_rows(member_query, "fetch member projects"),
        invited,
    )
    return unique_in_order(row.get("project_uuid") for row in [*owned, *member, *pending])


def merge_projects(owned: List[Row], member: List[Row]) -> List[Row]:
    """Merge owned and member-sourced project records keyed by project_uuid; owned wins."""
    merged: Dict[str, Row] = {}
    for project in member:
        merged.setdefault(project["project_uuid"], project)
    for project in owned:
        merged[project["project_uuid"]] = project
    order = unique_in_order(p["project_uuid"] for p in [*owned, *member])
    return [merged[uuid] for uuid in order]


def merge_tasks(assigned: List[Row], plain: List[Row]) -> List[Row]:
    """Merge task records keyed by task_id; the assigned variant wins."""
    merged: Dict[Any, Row] = {}
    for task in plain:
        merged.setdefault(task["task_id"], task)
    for task in assigned:
        merged[task["task_id"]] = task
    order = unique_in_order(t["task_id"] for t in [*assigned, *plain])
    return [merged[task_id] for task_id in order]


def project_summary_map(projects: Iterable[Row]) -> Dict[str, Row]:
    """project_uuid -> {project_id, project_uuid, name}, built once per request."""
    return {
        p["project_uuid"]: {
            "project_id": p.get("project_id"),
            "project_uuid": p["project_uuid"],
            "name": p.get("name"),
        }
        for p in projects
        if p and p.get("project_uuid")
    }
