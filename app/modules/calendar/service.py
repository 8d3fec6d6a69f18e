"""
Calendar aggregation: the user's projects and tasks, optionally inside a date window.

Invariants:
    - the window narrows the project list (overlap test) and the plain project
      tasks (due_date inside it); it never narrows the set of visible projects
    - assigned tasks are kept whatever their due date, as long as their project
      is visible
    - memberProjects counts member-sourced records in the window before the
      merge with owned projects
"""

import asyncio
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from supabase import AsyncClient

from app.core.dates import parse_date
from app.core.visibility import merge_projects, merge_tasks, project_summary_map, unique_in_order
from app.database.gateway import fetch_rows

Row = Dict[str, Any]

CALENDAR_PROJECT_COLUMNS = "project_id, project_uuid, name, description, status, priority, start_date, end_date, owner_id, created_at"
CALENDAR_TASK_COLUMNS = "task_id, project_uuid, title, description, status, priority, due_date, created_at"


def filter_projects_in_window(
    projects: Iterable[Row], start_date: Optional[date], end_date: Optional[date]
) -> List[Row]:
    """Projects overlapping [start_date, end_date]; everything when either bound is missing."""
    projects = list(projects)
    if start_date is None or end_date is None:
        return projects
    kept = []
    for project in projects:
        project_start = parse_date(project.get("start_date"))
        project_end = parse_date(project.get("end_date"))
        if project_start is None or project_end is None:
            continue
        if project_end >= start_date and project_start <= end_date:
            kept.append(project)
    return kept


def format_task(task: Row, summaries: Dict[str, Row], assigned_at: Any = None, assigned: bool = False) -> Row:
    shaped = {**task, "name": task.get("title"), "projects": summaries.get(task.get("project_uuid"))}
    if assigned:
        shaped["assigned_at"] = assigned_at
    shaped["isAssigned"] = assigned
    return shaped


def empty_calendar() -> Row:
    return {
        "projects": [],
        "tasks": [],
        "summary": {
            "totalProjects": 0,
            "ownedProjects": 0,
            "memberProjects": 0,
            "totalTasks": 0,
            "assignedTasks": 0,
        },
    }


def build_calendar(
    owned: List[Row],
    member_rows: List[Row],
    assignment_rows: List[Row],
    project_tasks: List[Row],
    start_date: Optional[date],
    end_date: Optional[date],
) -> Row:
    member_records = [
        {**row["projects"], "role": row.get("role"), "isOwner": False}
        for row in member_rows
        if row.get("projects")
    ]
    owned_records = [{**p, "role": "owner", "isOwner": True} for p in owned]

    visible = set(unique_in_order(p["project_uuid"] for p in [*owned_records, *member_records]))
    summaries = project_summary_map([*owned_records, *member_records])

    owned_in_window = filter_projects_in_window(owned_records, start_date, end_date)
    member_in_window = filter_projects_in_window(member_records, start_date, end_date)
    projects = merge_projects(owned_in_window, member_in_window)

    assigned = [
        format_task(row["tasks"], summaries, row.get("assigned_at"), assigned=True)
        for row in assignment_rows
        if row.get("tasks") and row["tasks"].get("project_uuid") in visible
    ]
    plain = [format_task(t, summaries) for t in project_tasks]
    tasks = merge_tasks(assigned, plain)

    return {
        "projects": projects,
        "tasks": tasks,
        "summary": {
            "totalProjects": len(projects),
            "ownedProjects": len(owned_in_window),
            "memberProjects": len(member_in_window),
            "totalTasks": len(tasks),
            "assignedTasks": len(assigned),
        },
    }


class CalendarService:
    def __init__(self, supabase: AsyncClient):
        self.supabase = supabase

    async def _pending_invitations(self, email: Optional[str]) -> List[Row]:
        if not email:
            return []
        return await fetch_rows(
            self.supabase.table("project_members")
                .select(f"project_uuid, role, projects:project_uuid({CALENDAR_PROJECT_COLUMNS})")
                .is_("user_id", "null")
                .eq("member_email", email.strip().lower()),
            "fetch pending invitations",
        )

    async def get_calendar(
        self, user_data: dict, start_date: Optional[date] = None, end_date: Optional[date] = None
    ) -> Row:
        user_id = user_data["user_id"]
        owned, member_rows, pending_rows, assignment_rows = await asyncio.gather(
            fetch_rows(
                self.supabase.table("projects").select(CALENDAR_PROJECT_COLUMNS).eq("owner_id", user_id),
                "fetch owned projects",
            ),
            fetch_rows(
                self.supabase.table("project_members")
                    .select(f"project_uuid, role, projects:project_uuid({CALENDAR_PROJECT_COLUMNS})")
                    .eq("user_id", user_id),
                "fetch member projects",
            ),
            self._pending_invitations(user_data.get("email")),
            fetch_rows(
                self.supabase.table("task_assignments")
                    .select(f"task_id, assigned_at, tasks:task_id({CALENDAR_TASK_COLUMNS})")
                    .eq("user_id", user_id),
                "fetch assigned tasks",
            ),
        )
        member_rows = [*member_rows, *pending_rows]

        visible = unique_in_order(
            [p.get("project_uuid") for p in owned]
            + [(r.get("projects") or {}).get("project_uuid") for r in member_rows]
        )
        if not visible:
            return empty_calendar()

        query = self.supabase.table("tasks").select(CALENDAR_TASK_COLUMNS).in_("project_uuid", visible)
        if start_date and end_date:
            query = query \
                .gte("due_date", start_date.isoformat()) \
                .lte("due_date", end_date.isoformat()) \
                .not_.is_("due_date", "null")
        project_tasks = await fetch_rows(query, "fetch project tasks")

        return build_calendar(owned, member_rows, assignment_rows, project_tasks, start_date, end_date)
