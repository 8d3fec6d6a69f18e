"""
Dashboard aggregation.

The store pre-filters, sorts and limits the task candidates; the selection
rules are applied again here so the response holds them for any store answer.

Invariants:
    - completedProjects counts projects whose end_date is strictly before today
    - upcomingDeadlines never holds a task without a due date, or one due
      before today or after today + 14 days
    - an invited email that belongs to a registered user is counted once
"""

import asyncio
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional

from supabase import AsyncClient

from app.core.dates import parse_date, parse_timestamp
from app.core.visibility import get_visible_project_uuids, project_summary_map
from app.database.gateway import fetch_rows
from app.modules.members.service import find_user_ids_by_email, normalize_email

Row = Dict[str, Any]

RECENT_DAYS = 7
UPCOMING_DAYS = 14
TASK_LIMIT = 10

DASHBOARD_PROJECT_COLUMNS = "project_id, project_uuid, name, status, priority, end_date, owner_id, created_at"
DASHBOARD_TASK_COLUMNS = "task_id, project_uuid, title, description, status, priority, due_date, created_at"


def count_completed_projects(projects: Iterable[Row], today: date) -> int:
    """Projects whose end date has passed. Time of day plays no part."""
    count = 0
    for project in projects:
        end_date = parse_date(project.get("end_date"))
        if end_date is not None and end_date < today:
            count += 1
    return count


def estimate_team_size(
    projects: Iterable[Row], members: Iterable[Row], registered: Mapping[str, int]
) -> int:
    """
    People touching the projects: known user ids plus invited emails without an account.

    `registered` maps lower-cased email -> user_id for the member emails that
    belong to registered users.
    """
    user_ids = {p["owner_id"] for p in projects if p.get("owner_id") is not None}
    emails = set()
    for member in members:
        if member.get("user_id") is not None:
            user_ids.add(member["user_id"])
        email = normalize_email(member.get("member_email"))
        if email:
            emails.add(email)

    unregistered = 0
    for email in emails:
        if email in registered:
            user_ids.add(registered[email])
        else:
            unregistered += 1
    return len(user_ids) + unregistered


def histogram(rows: Iterable[Row], key: str) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for row in rows:
        value = row.get(key)
        bucket = "null" if value is None else str(value)
        counts[bucket] = counts.get(bucket, 0) + 1
    return counts


def select_recent_tasks(tasks: Iterable[Row], now: datetime, limit: int = TASK_LIMIT) -> List[Row]:
    since = now - timedelta(days=RECENT_DAYS)
    recent = []
    for task in tasks:
        created_at = parse_timestamp(task.get("created_at"))
        if created_at is not None and created_at >= since:
            recent.append((created_at, task))
    recent.sort(key=lambda pair: pair[0], reverse=True)
    return [task for _, task in recent[:limit]]


def select_upcoming_deadlines(tasks: Iterable[Row], today: date, limit: int = TASK_LIMIT) -> List[Row]:
    until = today + timedelta(days=UPCOMING_DAYS)
    upcoming = []
    for task in tasks:
        due_date = parse_date(task.get("due_date"))
        if due_date is not None and today <= due_date <= until:
            upcoming.append((due_date, task))
    upcoming.sort(key=lambda pair: (pair[0], pair[1].get("task_id") or 0))
    return [task for _, task in upcoming[:limit]]


def format_task(task: Row, summaries: Mapping[str, Row]) -> Row:
    summary = summaries.get(task.get("project_uuid"))
    return {
        "task_id": task.get("task_id"),
        "project_id": summary["project_id"] if summary else None,
        "project_uuid": task.get("project_uuid"),
        "name": task.get("title"),
        "title": task.get("title"),
        "description": task.get("description"),
        "status": task.get("status"),
        "priority": task.get("priority"),
        "due_date": task.get("due_date"),
        "created_at": task.get("created_at"),
        "project": summary,
    }


def empty_dashboard() -> Row:
    return {
        "completedProjects": 0,
        "totalProjects": 0,
        "totalTeamMembers": 0,
        "recentTasks": [],
        "upcomingDeadlines": [],
        "stats": {"projectsByStatus": {}, "tasksByStatus": {}, "projectsByPriority": {}},
    }


def build_dashboard(
    projects: List[Row],
    members: List[Row],
    registered: Mapping[str, int],
    recent_candidates: List[Row],
    upcoming_candidates: List[Row],
    all_tasks: List[Row],
    now: datetime,
) -> Row:
    today = now.date()
    summaries = project_summary_map(projects)
    return {
        "completedProjects": count_completed_projects(projects, today),
        "totalProjects": len(projects),
        "totalTeamMembers": estimate_team_size(projects, members, registered),
        "recentTasks": [format_task(t, summaries) for t in select_recent_tasks(recent_candidates, now)],
        "upcomingDeadlines": [format_task(t, summaries) for t in select_upcoming_deadlines(upcoming_candidates, today)],
        "stats": {
            "projectsByStatus": histogram(projects, "status"),
            "tasksByStatus": histogram(all_tasks, "status"),
            "projectsByPriority": histogram(projects, "priority"),
        },
    }


class DashboardService:
    def __init__(self, supabase: AsyncClient):
        self.supabase = supabase

    def _task_query(self, project_uuids: List[str]):
        return self.supabase.table("tasks").select(DASHBOARD_TASK_COLUMNS).in_("project_uuid", project_uuids)

    async def get_dashboard(self, user_data: dict, now: Optional[datetime] = None) -> Row:
        now = now or datetime.now(timezone.utc)
        today = now.date()

        visible = await get_visible_project_uuids(
            self.supabase, user_data["user_id"], user_data.get("email")
        )
        if not visible:
            return empty_dashboard()

        projects, members, recent, upcoming, all_tasks = await asyncio.gather(
            fetch_rows(
                self.supabase.table("projects").select(DASHBOARD_PROJECT_COLUMNS).in_("project_uuid", visible),
                "fetch projects",
            ),
            fetch_rows(
                self.supabase.table("project_members").select("member_email, user_id").in_("project_uuid", visible),
                "fetch team members",
            ),
            fetch_rows(
                self._task_query(visible)
                    .gte("created_at", (now - timedelta(days=RECENT_DAYS)).isoformat())
                    .order("created_at", desc=True)
                    .limit(TASK_LIMIT),
                "fetch recent tasks",
            ),
            fetch_rows(
                self._task_query(visible)
                    .gte("due_date", today.isoformat())
                    .lte("due_date", (today + timedelta(days=UPCOMING_DAYS)).isoformat())
                    .not_.is_("due_date", "null")
                    .order("due_date")
                    .limit(TASK_LIMIT),
                "fetch upcoming deadlines",
            ),
            fetch_rows(
                self.supabase.table("tasks").select("task_id, status").in_("project_uuid", visible),
                "fetch tasks",
            ),
        )

        member_emails = sorted({normalize_email(m.get("member_email")) for m in members} - {""})
        registered = await find_user_ids_by_email(self.supabase, member_emails)

        return build_dashboard(projects, members, registered, recent, upcoming, all_tasks, now)
