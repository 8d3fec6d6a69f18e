from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import logging

from fastapi import HTTPException
from supabase import AsyncClient

from app.core.errors import StoreError
from app.core.visibility import get_visible_project_uuids, unique_in_order
from app.database.gateway import execute_write, fetch_first, fetch_rows
from app.modules.tasks.schemas import AssignmentCreate, TaskCreate, TaskUpdate

logger = logging.getLogger(__name__)

TASK_COLUMNS = "task_id, project_uuid, title, description, status, priority, due_date, created_by, created_at, updated_at"


def shape_assignee(row: Dict[str, Any], with_assigned_at: bool = False) -> Dict[str, Any]:
    user = row.get("users") or {}
    assignee = {"user_id": row["user_id"], "name": user.get("name"), "email": user.get("email")}
    if with_assigned_at:
        assignee["assigned_at"] = row.get("assigned_at")
    return assignee


class TaskService:
    def __init__(self, supabase: AsyncClient):
        self.supabase = supabase

    async def _assignees_by_task(self, task_ids: List[int]) -> Dict[int, List[Dict[str, Any]]]:
        if not task_ids:
            return {}
        rows = await fetch_rows(
            self.supabase.table("task_assignments")
                .select("task_id, user_id, users:user_id(name, email)")
                .in_("task_id", task_ids),
            "fetch task assignments",
        )
        grouped: Dict[int, List[Dict[str, Any]]] = defaultdict(list)
        for row in rows:
            grouped[row["task_id"]].append(shape_assignee(row))
        return grouped

    async def list_tasks(self, user_id: int, project_uuid: Optional[str] = None) -> List[Dict[str, Any]]:
        """Tasks of one project, or of every project the user owns or belongs to, newest first"""
        query = self.supabase.table("tasks").select(f"{TASK_COLUMNS}, project:project_uuid(name)")
        if project_uuid:
            query = query.eq("project_uuid", project_uuid)
        else:
            visible = await get_visible_project_uuids(self.supabase, user_id)
            if not visible:
                return []
            query = query.in_("project_uuid", visible)

        tasks = await fetch_rows(query.order("task_id", desc=True), "fetch tasks")
        assignees = await self._assignees_by_task([t["task_id"] for t in tasks])
        return [{**t, "assignees": assignees.get(t["task_id"], [])} for t in tasks]

    async def get_task(self, task: Dict[str, Any]) -> Dict[str, Any]:
        rows = await fetch_rows(
            self.supabase.table("task_assignments")
                .select("task_id, user_id, assigned_at, users:user_id(name, email)")
                .eq("task_id", task["task_id"]),
            "fetch task assignments",
        )
        return {**task, "assignees": [shape_assignee(r, with_assigned_at=True) for r in rows]}

    async def _assign_users(self, task_id: int, user_ids: List[int]) -> None:
        """Best-effort: a failed assignment insert is logged, the task write stands"""
        user_ids = unique_in_order(user_ids)
        if not user_ids:
            return
        try:
            await execute_write(
                self.supabase.table("task_assignments").insert(
                    [{"task_id": task_id, "user_id": uid} for uid in user_ids]
                ),
                "assign users to task",
            )
        except StoreError as e:
            logger.error(f"Failed to assign users {user_ids} to task {task_id}: {e.payload()}")

    async def create_task(self, task_data: TaskCreate, user_id: int) -> Dict[str, Any]:
        payload = task_data.model_dump(mode="json", exclude={"assigned_user_ids"})
        payload["created_by"] = user_id

        rows = await execute_write(self.supabase.table("tasks").insert(payload), "create task")
        if not rows:
            raise HTTPException(status_code=500, detail="Failed to create task")
        task = rows[0]

        if task_data.assigned_user_ids:
            await self._assign_users(task["task_id"], task_data.assigned_user_ids)
        return task

    async def update_task(self, task: Dict[str, Any], task_data: TaskUpdate) -> Dict[str, Any]:
        """Update fields and/or replace the assignee set"""
        task_id = task["task_id"]
        update_data = task_data.model_dump(mode="json", exclude_unset=True, exclude={"assigned_user_ids"})
        if not update_data and task_data.assigned_user_ids is None:
            raise HTTPException(status_code=400, detail="No fields to update")

        if update_data:
            update_data["updated_at"] = datetime.now(timezone.utc).isoformat()
            rows = await execute_write(
                self.supabase.table("tasks").update(update_data).eq("task_id", task_id),
                "update task",
            )
            if rows:
                task = rows[0]

        if task_data.assigned_user_ids is not None:
            await execute_write(
                self.supabase.table("task_assignments").delete().eq("task_id", task_id),
                "clear task assignments",
            )
            await self._assign_users(task_id, task_data.assigned_user_ids)

        return task

    async def delete_task(self, task_id: int) -> None:
        await execute_write(
            self.supabase.table("task_assignments").delete().eq("task_id", task_id),
            "delete task assignments",
        )
        await execute_write(
            self.supabase.table("tasks").delete().eq("task_id", task_id),
            "delete task",
        )

    async def list_assignments(self, task_id: int) -> List[Dict[str, Any]]:
        rows = await fetch_rows(
            self.supabase.table("task_assignments")
                .select("task_id, user_id, assigned_at, users:user_id(name, email, avatar_url)")
                .eq("task_id", task_id),
            "fetch task assignments",
        )
        return [
            {
                "task_id": r["task_id"],
                "user_id": r["user_id"],
                "assigned_at": r.get("assigned_at"),
                "user": r.get("users"),
            }
            for r in rows
        ]

    async def assign_user(self, task_id: int, assignment: AssignmentCreate) -> Dict[str, Any]:
        existing = await fetch_first(
            self.supabase.table("task_assignments")
                .select("task_id, user_id")
                .eq("task_id", task_id)
                .eq("user_id", assignment.user_id),
            "check task assignment",
        )
        if existing:
            raise HTTPException(status_code=409, detail="User is already assigned to this task")

        await execute_write(
            self.supabase.table("task_assignments").insert({"task_id": task_id, "user_id": assignment.user_id}),
            "assign user to task",
        )
        return await fetch_first(
            self.supabase.table("task_assignments")
                .select("task_id, user_id, assigned_at, users:user_id(name, email)")
                .eq("task_id", task_id)
                .eq("user_id", assignment.user_id),
            "fetch task assignment",
        )

    async def unassign_user(self, task_id: int, user_id: int) -> None:
        await execute_write(
            self.supabase.table("task_assignments")
                .delete()
                .eq("task_id", task_id)
                .eq("user_id", user_id),
            "unassign user from task",
        )
