"""
Core dependencies for route protection and project access checks
"""

import uuid
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from supabase import AsyncClient

from app.config import settings
from app.database.gateway import fetch_first
from app.database.supabase_client import get_supabase
from app.modules.auth.service import AuthService, ClerkIdentityVerifier
import logging

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)

ADMIN_ROLES = ("owner", "admin")

_verifier: Optional[ClerkIdentityVerifier] = None


def get_identity_verifier() -> ClerkIdentityVerifier:
    global _verifier
    if _verifier is None:
        _verifier = ClerkIdentityVerifier(settings.clerk_secret_key, settings.clerk_api_url)
    return _verifier


def get_auth_service(
    supabase: AsyncClient = Depends(get_supabase),
    verifier: ClerkIdentityVerifier = Depends(get_identity_verifier),
) -> AuthService:
    return AuthService(supabase, verifier)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
    auth_service: AuthService = Depends(get_auth_service),
) -> dict:
    """Resolve the bearer token to {user_id, clerk_user_id, email, name}"""
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No token provided",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return await auth_service.get_current_user(credentials.credentials)


def is_project_uuid(value: Any) -> bool:
    """Project ids are UUIDs; anything else cannot name a project."""
    try:
        uuid.UUID(str(value))
    except ValueError:
        return False
    return True


async def get_project_access(project_uuid: str, user_id: int, supabase: AsyncClient) -> Dict[str, Any]:
    """
    Fetch a project with its member rows in one query and work out the caller's access.

    Returns {"project", "members", "is_owner", "member"} where member is the caller's
    own member row (None when the caller only owns the project or has no row).
    Member rows without a user_id never grant access.
    """
    if not is_project_uuid(project_uuid):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")

    project = await fetch_first(
        supabase.table("projects")
            .select("*, project_members(id, user_id, member_email, role)")
            .eq("project_uuid", project_uuid),
        "fetch project",
    )
    if not project:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found")

    members = project.pop("project_members", None) or []
    member = next(
        (m for m in members if m.get("user_id") is not None and m.get("user_id") == user_id),
        None,
    )
    return {
        "project": project,
        "members": members,
        "is_owner": project.get("owner_id") == user_id,
        "member": member,
    }


async def check_project_member(
    project_uuid: str,
    user_data: dict = Depends(get_current_user),
    supabase: AsyncClient = Depends(get_supabase),
) -> Dict[str, Any]:
    """Owner or registered member of the project"""
    access = await get_project_access(project_uuid, user_data["user_id"], supabase)
    if access["is_owner"] or access["member"] is not None:
        return access
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Access denied. You are not a member of this project.",
    )


async def check_project_admin(
    project_uuid: str,
    user_data: dict = Depends(get_current_user),
    supabase: AsyncClient = Depends(get_supabase),
) -> Dict[str, Any]:
    """Owner of the project, or a member holding the admin/owner role"""
    access = await get_project_access(project_uuid, user_data["user_id"], supabase)
    member = access["member"]
    if access["is_owner"] or (member is not None and member.get("role") in ADMIN_ROLES):
        return access
    raise HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail="Access denied. Only project owners and admins can manage members.",
    )


async def check_task_access(
    task_id: int,
    user_data: dict = Depends(get_current_user),
    supabase: AsyncClient = Depends(get_supabase),
) -> Dict[str, Any]:
    """Fetch the task and require membership in its project. Returns the access dict plus "task"."""
    task = await fetch_first(
        supabase.table("tasks").select("*").eq("task_id", task_id),
        "fetch task",
    )
    if not task:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Task not found")

    access = await check_project_member(task["project_uuid"], user_data, supabase)
    return {**access, "task": task}
