from fastapi import APIRouter, Depends
from app.database.supabase_client import get_supabase
from app.modules.calendar.service import CalendarService
from app.core.dependencies import get_current_user
from supabase import AsyncClient
from typing import Dict, Optional
from datetime import date

router = APIRouter(prefix="/calendar", tags=["calendar"])


def get_calendar_service(supabase: AsyncClient = Depends(get_supabase)) -> CalendarService:
    return CalendarService(supabase)


@router.get("")
async def get_calendar(
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    user_data: Dict = Depends(get_current_user),
    service: CalendarService = Depends(get_calendar_service)
):
    """Projects and tasks for the calendar; the window applies only when both bounds are given"""
    return {"success": True, "data": await service.get_calendar(user_data, start_date, end_date)}
