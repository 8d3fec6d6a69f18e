from fastapi import APIRouter, Depends
from app.database.supabase_client import get_supabase
from app.modules.users.schemas import (
    UserCreate, UserUpdate, UserEnvelope, UserListEnvelope, UserSearchEnvelope
)
from app.modules.users.service import UserService
from app.modules.auth.service import ClerkIdentityVerifier
from app.core.dependencies import get_current_user, get_identity_verifier
from supabase import AsyncClient
from typing import Dict

router = APIRouter(prefix="/users", tags=["users"])


def get_user_service(
    supabase: AsyncClient = Depends(get_supabase),
    verifier: ClerkIdentityVerifier = Depends(get_identity_verifier),
) -> UserService:
    return UserService(supabase, verifier)


@router.get("", response_model=UserListEnvelope)
async def list_users(
    user_data: Dict = Depends(get_current_user),
    service: UserService = Depends(get_user_service)
):
    """List all users"""
    return {"success": True, "users": await service.list_users()}


@router.get("/me", response_model=UserEnvelope)
async def get_me(
    user_data: Dict = Depends(get_current_user),
    service: UserService = Depends(get_user_service)
):
    """Current user's profile"""
    return {"success": True, "user": await service.get_user_by_id(user_data["user_id"])}


@router.get("/search", response_model=UserSearchEnvelope)
async def search_users(
    q: str = "",
    user_data: Dict = Depends(get_current_user),
    service: UserService = Depends(get_user_service)
):
    """Search users by email"""
    return {"success": True, "users": await service.search_users(q)}


@router.get("/clerk/{clerk_id}", response_model=UserEnvelope)
async def get_user_by_clerk_id(
    clerk_id: str,
    user_data: Dict = Depends(get_current_user),
    service: UserService = Depends(get_user_service)
):
    return {"success": True, "user": await service.get_user_by_clerk_id(clerk_id)}


@router.get("/{user_id}", response_model=UserEnvelope)
async def get_user(
    user_id: int,
    user_data: Dict = Depends(get_current_user),
    service: UserService = Depends(get_user_service)
):
    return {"success": True, "user": await service.get_user_by_id(user_id)}


@router.post("", response_model=UserEnvelope, status_code=201)
async def create_user(
    user_data_body: UserCreate,
    user_data: Dict = Depends(get_current_user),
    service: UserService = Depends(get_user_service)
):
    """Create user (manual sync from Clerk)"""
    return {"success": True, "user": await service.create_user(user_data_body)}


@router.put("/{user_id}", response_model=UserEnvelope)
async def update_user(
    user_id: int,
    user_data_body: UserUpdate,
    user_data: Dict = Depends(get_current_user),
    service: UserService = Depends(get_user_service)
):
    """Update user (self only)"""
    return {"success": True, "user": await service.update_user(user_id, user_data["user_id"], user_data_body)}


@router.delete("/{user_id}")
async def delete_user(
    user_id: int,
    user_data: Dict = Depends(get_current_user),
    service: UserService = Depends(get_user_service)
):
    """Delete user (self only)"""
    await service.delete_user(user_id, user_data["user_id"])
    return {"success": True, "message": "User deleted successfully"}
