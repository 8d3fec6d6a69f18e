from fastapi import APIRouter, Depends
from app.database.supabase_client import get_supabase
from app.modules.dashboard.service import DashboardService
from app.core.dependencies import get_current_user
from supabase import AsyncClient
from typing import Dict

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


def get_dashboard_service(supabase: AsyncClient = Depends(get_supabase)) -> DashboardService:
    return DashboardService(supabase)


@router.get("")
async def get_dashboard(
    user_data: Dict = Depends(get_current_user),
    service: DashboardService = Depends(get_dashboard_service)
):
    """Project and task summary across every project the user can see"""
    return {"success": True, "data": await service.get_dashboard(user_data)}
