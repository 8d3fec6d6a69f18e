import asyncio
from collections import defaultdict
from datetime import datetime, timezone
from typing import Any, Dict, List
import logging

from fastapi import BackgroundTasks, HTTPException
from supabase import AsyncClient

from app.core.dependencies import is_project_uuid
from app.core.errors import StoreError
from app.core.visibility import merge_projects, unique_in_order
from app.database.gateway import execute_write, fetch_rows
from app.modules.members.service import (
    find_user_ids_by_email, normalize_email, normalize_emails, project_invite
)
from app.modules.notifications.email_service import EmailService, dispatch_project_invites
from app.modules.projects.models import MemberRole
from app.modules.projects.schemas import ProjectCreate, ProjectInvites, ProjectUpdate

logger = logging.getLogger(__name__)

PROJECT_COLUMNS = "project_id, project_uuid, name, description, status, priority, start_date, end_date, owner_id, created_at"


class ProjectService:
    def __init__(self, supabase: AsyncClient, email_service: EmailService):
        self.supabase = supabase
        self.email_service = email_service

    async def _member_emails_by_project(self, project_uuids: List[str]) -> Dict[str, List[str]]:
        if not project_uuids:
            return {}
        rows = await fetch_rows(
            self.supabase.table("project_members")
                .select("project_uuid, member_email")
                .in_("project_uuid", project_uuids),
            "fetch project members",
        )
        emails: Dict[str, List[str]] = defaultdict(list)
        for row in rows:
            if row.get("member_email"):
                emails[row["project_uuid"]].append(row["member_email"])
        return emails

    async def list_projects(self, user_id: int) -> List[Dict[str, Any]]:
        """Owned and member projects, each once, with memberEmails, sorted by project_id"""
        owned, member_rows = await asyncio.gather(
            fetch_rows(
                self.supabase.table("projects")
                    .select(PROJECT_COLUMNS)
                    .eq("owner_id", user_id)
                    .order("project_id"),
                "fetch owned projects",
            ),
            fetch_rows(
                self.supabase.table("project_members")
                    .select(f"projects:project_uuid({PROJECT_COLUMNS})")
                    .eq("user_id", user_id),
                "fetch member projects",
            ),
        )
        member_projects = [row["projects"] for row in member_rows if row.get("projects")]
        projects = merge_projects(owned, member_projects)
        if not projects:
            return []

        emails = await self._member_emails_by_project([p["project_uuid"] for p in projects])
        result = [{**p, "memberEmails": emails.get(p["project_uuid"], [])} for p in projects]
        result.sort(key=lambda p: p.get("project_id") or 0)
        return result

    def project_with_members(self, access: Dict[str, Any]) -> Dict[str, Any]:
        project = access["project"]
        return {
            **project,
            "memberEmails": [m["member_email"] for m in access["members"] if m.get("member_email")],
        }

    async def _delete_project_row(self, project_uuid: str) -> None:
        """Compensating delete after a failed follow-up write"""
        try:
            await execute_write(
                self.supabase.table("projects").delete().eq("project_uuid", project_uuid),
                "roll back project",
            )
            logger.warning(f"Rolled back project {project_uuid} after member insert failure")
        except StoreError as e:
            logger.error(f"Rollback of project {project_uuid} failed: {e.payload()}")

    async def create_project(
        self, project_data: ProjectCreate, user_data: dict, background_tasks: BackgroundTasks
    ) -> Dict[str, Any]:
        """Create a project owned by the caller, optionally with members (all as viewers)"""
        payload = project_data.model_dump(mode="json", exclude={"member_emails"})
        payload["owner_id"] = user_data["user_id"]

        rows = await execute_write(self.supabase.table("projects").insert(payload), "create project")
        project = rows[0] if rows else None
        if not project or not project.get("project_uuid"):
            raise HTTPException(status_code=500, detail="Project created but missing project_uuid")
        project_uuid = project["project_uuid"]

        emails = normalize_emails(project_data.member_emails)
        if not emails:
            return {"project": {**project, "memberEmails": []}, "membersAdded": 0, "emailsSent": 0}

        try:
            user_ids = await find_user_ids_by_email(self.supabase, emails)
            member_rows = await execute_write(
                self.supabase.table("project_members").insert([
                    {
                        "project_uuid": project_uuid,
                        "user_id": user_ids.get(email),
                        "member_email": email,
                        "role": MemberRole.VIEWER.value,
                    }
                    for email in emails
                ]),
                "add project members",
            )
        except StoreError:
            await self._delete_project_row(project_uuid)
            raise

        to_invite = [e for e in emails if e not in user_ids]
        emails_sent = dispatch_project_invites(
            background_tasks, self.email_service, to_invite, project_invite(project, user_data)
        )
        return {
            "project": {**project, "memberEmails": emails},
            "membersAdded": len(member_rows),
            "emailsSent": emails_sent,
        }

    async def update_project(
        self,
        access: Dict[str, Any],
        project_data: ProjectUpdate,
        user_data: dict,
        background_tasks: BackgroundTasks,
    ) -> Dict[str, Any]:
        """Update fields; memberEmails, when given, becomes the new member set"""
        project = access["project"]
        project_uuid = project["project_uuid"]

        update_data = project_data.model_dump(mode="json", exclude_unset=True, exclude={"member_emails"})
        if update_data:
            update_data["updated_at"] = datetime.now(timezone.utc).isoformat()
            rows = await execute_write(
                self.supabase.table("projects").update(update_data).eq("project_uuid", project_uuid),
                "update project",
            )
            if rows:
                project = rows[0]

        if project_data.member_emails is not None:
            await self._replace_members(project, access["members"], project_data.member_emails, user_data, background_tasks)

        emails = await self._member_emails_by_project([project_uuid])
        return {**project, "memberEmails": emails.get(project_uuid, [])}

    async def _replace_members(
        self,
        project: Dict[str, Any],
        current: List[Dict[str, Any]],
        member_emails: List[str],
        user_data: dict,
        background_tasks: BackgroundTasks,
    ) -> None:
        project_uuid = project["project_uuid"]
        desired = normalize_emails(member_emails)
        desired_set = set(desired)
        current_emails = {normalize_email(m.get("member_email")) for m in current}

        removed_ids = [m["id"] for m in current if normalize_email(m.get("member_email")) not in desired_set]
        added = [e for e in desired if e not in current_emails]

        if removed_ids:
            await execute_write(
                self.supabase.table("project_members").delete().in_("id", removed_ids),
                "remove project members",
            )
        if not added:
            return

        user_ids = await find_user_ids_by_email(self.supabase, added)
        await execute_write(
            self.supabase.table("project_members").insert([
                {
                    "project_uuid": project_uuid,
                    "user_id": user_ids.get(email),
                    "member_email": email,
                    "role": MemberRole.VIEWER.value,
                }
                for email in added
            ]),
            "add project members",
        )
        to_invite = [e for e in added if e not in user_ids]
        dispatch_project_invites(
            background_tasks, self.email_service, to_invite, project_invite(project, user_data)
        )

    async def delete_projects(self, project_uuids: List[str], user_id: int) -> int:
        """
        Delete projects owned by the caller, children first.

        The batch is all-or-nothing: an unknown uuid fails it with 404, a project
        owned by someone else fails it with 403, and nothing is deleted either way.
        """
        uuids = unique_in_order(project_uuids)
        if not all(is_project_uuid(u) for u in uuids):
            raise HTTPException(status_code=404, detail="Project not found")
        projects = await fetch_rows(
            self.supabase.table("projects")
                .select("project_id, project_uuid, owner_id")
                .in_("project_uuid", uuids),
            "fetch projects",
        )
        found = {p["project_uuid"] for p in projects}
        if any(uuid not in found for uuid in uuids):
            raise HTTPException(status_code=404, detail="Project not found")
        if any(p.get("owner_id") != user_id for p in projects):
            raise HTTPException(status_code=403, detail="Access denied. You can only delete projects you own.")

        tasks = await fetch_rows(
            self.supabase.table("tasks").select("task_id").in_("project_uuid", uuids),
            "fetch project tasks",
        )
        task_ids = [t["task_id"] for t in tasks]
        if task_ids:
            await execute_write(
                self.supabase.table("task_assignments").delete().in_("task_id", task_ids),
                "delete task assignments",
            )
            await execute_write(
                self.supabase.table("tasks").delete().in_("project_uuid", uuids),
                "delete project tasks",
            )
        await execute_write(
            self.supabase.table("project_members").delete().in_("project_uuid", uuids),
            "delete project members",
        )
        await execute_write(
            self.supabase.table("projects").delete().in_("project_uuid", uuids),
            "delete projects",
        )
        logger.info(f"User {user_id} deleted {len(uuids)} project(s)")
        return len(uuids)

    async def send_invites(
        self,
        project: Dict[str, Any],
        invites: ProjectInvites,
        user_data: dict,
        background_tasks: BackgroundTasks,
    ) -> int:
        """Invite arbitrary emails to a project without adding member rows"""
        emails = normalize_emails(invites.member_emails)
        if not emails:
            raise HTTPException(status_code=400, detail="No valid email addresses provided")
        return dispatch_project_invites(
            background_tasks, self.email_service, emails, project_invite(project, user_data)
        )
