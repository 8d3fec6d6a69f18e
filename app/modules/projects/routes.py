from fastapi import APIRouter, BackgroundTasks, Body, Depends, HTTPException, status
from app.database.supabase_client import get_supabase
from app.modules.projects.schemas import ProjectCreate, ProjectUpdate, ProjectBulkDelete, ProjectInvites
from app.modules.projects.service import ProjectService
from app.modules.notifications.email_service import EmailService, get_email_service
from app.core.dependencies import get_current_user, check_project_member, ADMIN_ROLES
from supabase import AsyncClient
from typing import Dict, Optional

router = APIRouter(prefix="/projects", tags=["projects"])


def get_project_service(
    supabase: AsyncClient = Depends(get_supabase),
    email_service: EmailService = Depends(get_email_service),
) -> ProjectService:
    return ProjectService(supabase, email_service)


@router.get("")
async def list_projects(
    user_data: Dict = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service)
):
    """Projects the user owns or is a member of"""
    return {"success": True, "projects": await service.list_projects(user_data["user_id"])}


@router.post("", status_code=201)
async def create_project(
    project_data: ProjectCreate,
    background_tasks: BackgroundTasks,
    user_data: Dict = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service)
):
    """Create a project; the caller becomes its owner"""
    result = await service.create_project(project_data, user_data, background_tasks)
    return {"success": True, **result}


@router.get("/{project_uuid}")
async def get_project(
    access: Dict = Depends(check_project_member),
    service: ProjectService = Depends(get_project_service)
):
    """Get project by UUID (members only)"""
    return {"success": True, "project": service.project_with_members(access)}


@router.put("/{project_uuid}")
async def update_project(
    project_data: ProjectUpdate,
    background_tasks: BackgroundTasks,
    access: Dict = Depends(check_project_member),
    user_data: Dict = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service)
):
    """Update project (members only; changing memberEmails needs owner or admin)"""
    if project_data.member_emails is not None:
        member = access["member"]
        if not access["is_owner"] and (member is None or member.get("role") not in ADMIN_ROLES):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Access denied. Only project owners and admins can manage members.",
            )
    project = await service.update_project(access, project_data, user_data, background_tasks)
    return {"success": True, "project": project}


@router.delete("/{project_uuid}")
async def delete_project(
    project_uuid: str,
    bulk: Optional[ProjectBulkDelete] = Body(default=None),
    user_data: Dict = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service)
):
    """Delete a project, or every project in {projectIds} when a body is sent (owner only)"""
    uuids = bulk.project_ids if bulk and bulk.project_ids else [project_uuid]
    deleted = await service.delete_projects(uuids, user_data["user_id"])
    return {"success": True, "deletedCount": deleted}


@router.post("/{project_uuid}/invites")
async def send_project_invites(
    invites: ProjectInvites,
    background_tasks: BackgroundTasks,
    access: Dict = Depends(check_project_member),
    user_data: Dict = Depends(get_current_user),
    service: ProjectService = Depends(get_project_service)
):
    """Email invitations to a project without adding members"""
    emails_sent = await service.send_invites(access["project"], invites, user_data, background_tasks)
    return {"success": True, "message": "Invitations sent successfully", "emailsSent": emails_sent}
