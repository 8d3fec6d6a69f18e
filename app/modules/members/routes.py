from fastapi import APIRouter, BackgroundTasks, Depends
from app.database.supabase_client import get_supabase
from app.modules.members.schemas import MemberAdd, MemberBulkAdd, MemberRoleUpdate
from app.modules.members.service import MemberService
from app.modules.notifications.email_service import EmailService, get_email_service
from app.core.dependencies import get_current_user, check_project_admin, check_project_member
from supabase import AsyncClient
from typing import Dict

router = APIRouter(prefix="/projects/{project_uuid}/members", tags=["members"])


def get_member_service(
    supabase: AsyncClient = Depends(get_supabase),
    email_service: EmailService = Depends(get_email_service),
) -> MemberService:
    return MemberService(supabase, email_service)


@router.get("")
async def list_members(
    project_uuid: str,
    access: Dict = Depends(check_project_member),
    service: MemberService = Depends(get_member_service)
):
    """List project members, oldest first (members only)"""
    return {"success": True, "members": await service.list_members(project_uuid)}


@router.post("", status_code=201)
async def add_member(
    member_data: MemberAdd,
    background_tasks: BackgroundTasks,
    access: Dict = Depends(check_project_admin),
    user_data: Dict = Depends(get_current_user),
    service: MemberService = Depends(get_member_service)
):
    """Add a member by email (owner or admin)"""
    member = await service.add_member(access["project"], member_data, user_data, background_tasks)
    return {"success": True, "member": member}


@router.post("/bulk", status_code=201)
async def bulk_add_members(
    bulk_data: MemberBulkAdd,
    background_tasks: BackgroundTasks,
    access: Dict = Depends(check_project_admin),
    user_data: Dict = Depends(get_current_user),
    service: MemberService = Depends(get_member_service)
):
    """Add several members at once (owner or admin)"""
    result = await service.bulk_add_members(access["project"], bulk_data, user_data, background_tasks)
    return {"success": True, **result}


@router.put("/{member_id}")
async def update_member_role(
    project_uuid: str,
    member_id: int,
    role_data: MemberRoleUpdate,
    access: Dict = Depends(check_project_admin),
    service: MemberService = Depends(get_member_service)
):
    """Change a member's role (owner or admin)"""
    return {"success": True, "member": await service.update_member_role(project_uuid, member_id, role_data)}


@router.delete("/{member_id}")
async def remove_member(
    project_uuid: str,
    member_id: int,
    access: Dict = Depends(check_project_admin),
    service: MemberService = Depends(get_member_service)
):
    """Remove a member (owner or admin)"""
    await service.remove_member(project_uuid, member_id)
    return {"success": True, "message": "Member removed from project"}
