from fastapi import APIRouter, Depends, Query
from app.database.supabase_client import get_supabase
from app.modules.tasks.schemas import TaskCreate, TaskUpdate, AssignmentCreate
from app.modules.tasks.service import TaskService
from app.core.dependencies import get_current_user, check_project_member, check_task_access
from supabase import AsyncClient
from typing import Dict, Optional

router = APIRouter(prefix="/tasks", tags=["tasks"])


def get_task_service(supabase: AsyncClient = Depends(get_supabase)) -> TaskService:
    return TaskService(supabase)


@router.get("")
async def list_tasks(
    project_uuid: Optional[str] = Query(default=None, alias="projectUuid"),
    user_data: Dict = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
    supabase: AsyncClient = Depends(get_supabase)
):
    """List tasks of one project (members only) or of every visible project"""
    if project_uuid:
        await check_project_member(project_uuid, user_data, supabase)
    return {"success": True, "tasks": await service.list_tasks(user_data["user_id"], project_uuid)}


@router.post("", status_code=201)
async def create_task(
    task_data: TaskCreate,
    user_data: Dict = Depends(get_current_user),
    service: TaskService = Depends(get_task_service),
    supabase: AsyncClient = Depends(get_supabase)
):
    """Create a task in a project the user belongs to"""
    await check_project_member(task_data.project_uuid, user_data, supabase)
    return {"success": True, "task": await service.create_task(task_data, user_data["user_id"])}


@router.get("/{task_id}")
async def get_task(
    access: Dict = Depends(check_task_access),
    service: TaskService = Depends(get_task_service)
):
    return {"success": True, "task": await service.get_task(access["task"])}


@router.put("/{task_id}")
async def update_task(
    task_data: TaskUpdate,
    access: Dict = Depends(check_task_access),
    service: TaskService = Depends(get_task_service)
):
    return {"success": True, "task": await service.update_task(access["task"], task_data)}


@router.delete("/{task_id}")
async def delete_task(
    task_id: int,
    access: Dict = Depends(check_task_access),
    service: TaskService = Depends(get_task_service)
):
    await service.delete_task(task_id)
    return {"success": True, "message": "Task deleted successfully"}


@router.get("/{task_id}/assignments")
async def list_assignments(
    task_id: int,
    access: Dict = Depends(check_task_access),
    service: TaskService = Depends(get_task_service)
):
    return {"success": True, "assignees": await service.list_assignments(task_id)}


@router.post("/{task_id}/assignments", status_code=201)
async def assign_user(
    task_id: int,
    assignment: AssignmentCreate,
    access: Dict = Depends(check_task_access),
    service: TaskService = Depends(get_task_service)
):
    return {"success": True, "assignment": await service.assign_user(task_id, assignment)}


@router.delete("/{task_id}/assignments/{user_id}")
async def unassign_user(
    task_id: int,
    user_id: int,
    access: Dict = Depends(check_task_access),
    service: TaskService = Depends(get_task_service)
):
    await service.unassign_user(task_id, user_id)
    return {"success": True, "message": "User unassigned from task"}
