from typing import Any, Dict, Iterable, List, Optional
import logging

from fastapi import BackgroundTasks, HTTPException
from supabase import AsyncClient

from app.core.visibility import unique_in_order
from app.database.gateway import execute_write, fetch_first, fetch_rows
from app.modules.members.schemas import MemberAdd, MemberBulkAdd, MemberRoleUpdate
from app.modules.notifications.email_service import (
    EmailService, ProjectInvite, dispatch_project_invites, inviter_display_name
)

logger = logging.getLogger(__name__)

MEMBER_COLUMNS = "id, project_uuid, user_id, member_email, role, added_at, users:user_id(name, email, avatar_url)"


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def normalize_emails(emails: Optional[Iterable[str]]) -> List[str]:
    """Trim, lower-case, drop blanks and duplicates; first occurrence keeps its position."""
    return unique_in_order(normalize_email(e) or None for e in (emails or []))


def shape_member(row: Dict[str, Any]) -> Dict[str, Any]:
    member = dict(row)
    member["user"] = member.pop("users", None)
    return member


def project_invite(project: Dict[str, Any], user_data: dict) -> ProjectInvite:
    return ProjectInvite(
        project_name=project.get("name") or "Untitled Project",
        project_uuid=project["project_uuid"],
        inviter_name=inviter_display_name(user_data),
        description=project.get("description") or None,
    )


async def find_user_ids_by_email(supabase: AsyncClient, emails: List[str]) -> Dict[str, int]:
    """Registered users among the given emails, as lower-cased email -> user_id."""
    if not emails:
        return {}
    users = await fetch_rows(
        supabase.table("users").select("user_id, email").in_("email", emails),
        "look up users by email",
    )
    return {
        u["email"].lower(): u["user_id"]
        for u in users
        if u.get("email") and u.get("user_id") is not None
    }


class MemberService:
    def __init__(self, supabase: AsyncClient, email_service: EmailService):
        self.supabase = supabase
        self.email_service = email_service

    async def list_members(self, project_uuid: str) -> List[Dict[str, Any]]:
        rows = await fetch_rows(
            self.supabase.table("project_members")
                .select(MEMBER_COLUMNS)
                .eq("project_uuid", project_uuid)
                .order("added_at"),
            "fetch project members",
        )
        return [shape_member(r) for r in rows]

    async def get_member(self, project_uuid: str, member_id: int) -> Optional[Dict[str, Any]]:
        row = await fetch_first(
            self.supabase.table("project_members")
                .select(MEMBER_COLUMNS)
                .eq("id", member_id)
                .eq("project_uuid", project_uuid),
            "fetch project member",
        )
        return shape_member(row) if row else None

    async def add_member(
        self,
        project: Dict[str, Any],
        member_data: MemberAdd,
        user_data: dict,
        background_tasks: BackgroundTasks,
    ) -> Dict[str, Any]:
        """Add one member by email; unregistered emails get an invitation"""
        project_uuid = project["project_uuid"]
        email = normalize_email(member_data.member_email)
        if not email:
            raise HTTPException(status_code=400, detail="member_email is required")

        existing = await fetch_first(
            self.supabase.table("project_members")
                .select("id")
                .eq("project_uuid", project_uuid)
                .eq("member_email", email),
            "check existing member",
        )
        if existing:
            raise HTTPException(status_code=409, detail="Member already exists in this project")

        user_ids = await find_user_ids_by_email(self.supabase, [email])
        user_id = user_ids.get(email)

        rows = await execute_write(
            self.supabase.table("project_members").insert({
                "project_uuid": project_uuid,
                "user_id": user_id,
                "member_email": email,
                "role": member_data.role.value,
            }),
            "add project member",
        )
        if not rows:
            raise HTTPException(status_code=500, detail="Failed to add project member")

        if user_id is None:
            dispatch_project_invites(
                background_tasks, self.email_service, [email], project_invite(project, user_data)
            )

        return await self.get_member(project_uuid, rows[0]["id"]) or shape_member(rows[0])

    async def bulk_add_members(
        self,
        project: Dict[str, Any],
        bulk_data: MemberBulkAdd,
        user_data: dict,
        background_tasks: BackgroundTasks,
    ) -> Dict[str, Any]:
        """Add the new subset of a list of emails. Returns {membersAdded, emailsSent, members}."""
        project_uuid = project["project_uuid"]
        emails = normalize_emails(bulk_data.member_emails)
        if not emails:
            raise HTTPException(status_code=400, detail="No valid email addresses provided")

        existing_rows = await fetch_rows(
            self.supabase.table("project_members")
                .select("member_email")
                .eq("project_uuid", project_uuid),
            "fetch project members",
        )
        existing = {normalize_email(m.get("member_email")) for m in existing_rows}
        new_emails = [e for e in emails if e not in existing]
        if not new_emails:
            raise HTTPException(status_code=409, detail="All provided emails are already members of this project")

        user_ids = await find_user_ids_by_email(self.supabase, new_emails)
        rows = await execute_write(
            self.supabase.table("project_members").insert([
                {
                    "project_uuid": project_uuid,
                    "user_id": user_ids.get(email),
                    "member_email": email,
                    "role": bulk_data.default_role.value,
                }
                for email in new_emails
            ]),
            "add project members",
        )

        to_invite = [e for e in new_emails if e not in user_ids]
        emails_sent = dispatch_project_invites(
            background_tasks, self.email_service, to_invite, project_invite(project, user_data)
        )
        return {"membersAdded": len(rows), "emailsSent": emails_sent, "members": rows}

    async def update_member_role(
        self, project_uuid: str, member_id: int, role_data: MemberRoleUpdate
    ) -> Dict[str, Any]:
        if await self.get_member(project_uuid, member_id) is None:
            raise HTTPException(status_code=404, detail="Member not found")

        await execute_write(
            self.supabase.table("project_members")
                .update({"role": role_data.role.value})
                .eq("id", member_id)
                .eq("project_uuid", project_uuid),
            "update member role",
        )
        return await self.get_member(project_uuid, member_id)

    async def remove_member(self, project_uuid: str, member_id: int) -> None:
        if await self.get_member(project_uuid, member_id) is None:
            raise HTTPException(status_code=404, detail="Member not found")

        await execute_write(
            self.supabase.table("project_members")
                .delete()
                .eq("id", member_id)
                .eq("project_uuid", project_uuid),
            "remove project member",
        )
        logger.info(f"Removed member {member_id} from project {project_uuid}")
