from datetime import datetime, timezone
from typing import Any, Dict, List
import logging

import httpx
from fastapi import HTTPException
from supabase import AsyncClient

from app.database.gateway import execute_write, fetch_first, fetch_rows
from app.modules.auth.service import USER_COLUMNS, ClerkIdentityVerifier
from app.modules.users.schemas import UserCreate, UserUpdate

logger = logging.getLogger(__name__)

SEARCH_COLUMNS = "user_id, name, email, avatar_url"
SEARCH_LIMIT = 10


class UserService:
    def __init__(self, supabase: AsyncClient, verifier: ClerkIdentityVerifier):
        self.supabase = supabase
        self.verifier = verifier

    async def list_users(self) -> List[Dict[str, Any]]:
        """All users ordered by user_id"""
        return await fetch_rows(
            self.supabase.table("users").select(USER_COLUMNS).order("user_id"),
            "fetch users",
        )

    async def get_user_by_id(self, user_id: int) -> Dict[str, Any]:
        user = await fetch_first(
            self.supabase.table("users").select(USER_COLUMNS).eq("user_id", user_id),
            "fetch user",
        )
        if not user:
            raise HTTPException(status_code=404, detail="User not found")
        return user

    async def get_user_by_clerk_id(self, clerk_user_id: str) -> Dict[str, Any]:
        user = await fetch_first(
            self.supabase.table("users").select(USER_COLUMNS).eq("clerk_user_id", clerk_user_id),
            "fetch user",
        )
        if not user:
            raise HTTPException(status_code=404, detail="User not found")
        return user

    async def create_user(self, user_data: UserCreate) -> Dict[str, Any]:
        """Manual sync of a Clerk user; the Clerk id must exist upstream"""
        try:
            await self.verifier.get_user_profile(user_data.clerk_user_id)
        except httpx.HTTPError:
            raise HTTPException(status_code=400, detail="Invalid Clerk user ID")

        existing = await fetch_first(
            self.supabase.table("users").select("user_id").eq("clerk_user_id", user_data.clerk_user_id),
            "fetch user",
        )
        if existing:
            raise HTTPException(status_code=409, detail="User already exists")

        rows = await execute_write(
            self.supabase.table("users").insert({
                "clerk_user_id": user_data.clerk_user_id,
                "name": user_data.name,
                "email": str(user_data.email).lower(),
                "avatar_url": user_data.avatar_url or None,
            }),
            "create user",
        )
        if not rows:
            raise HTTPException(status_code=500, detail="Failed to create user")
        return rows[0]

    async def update_user(self, user_id: int, current_user_id: int, user_data: UserUpdate) -> Dict[str, Any]:
        """Update own profile"""
        if user_id != current_user_id:
            raise HTTPException(status_code=403, detail="You can only update your own profile")

        update_data = user_data.model_dump(exclude_unset=True)
        if "email" in update_data and update_data["email"] is not None:
            update_data["email"] = str(update_data["email"]).lower()
        if not update_data:
            raise HTTPException(status_code=400, detail="No fields to update")
        update_data["updated_at"] = datetime.now(timezone.utc).isoformat()

        rows = await execute_write(
            self.supabase.table("users").update(update_data).eq("user_id", user_id),
            "update user",
        )
        if not rows:
            raise HTTPException(status_code=404, detail="User not found")
        return rows[0]

    async def delete_user(self, user_id: int, current_user_id: int) -> None:
        """Delete own account along with its assignments and memberships"""
        if user_id != current_user_id:
            raise HTTPException(status_code=403, detail="You can only delete your own account")

        await execute_write(
            self.supabase.table("task_assignments").delete().eq("user_id", user_id),
            "delete user assignments",
        )
        await execute_write(
            self.supabase.table("project_members").delete().eq("user_id", user_id),
            "delete user memberships",
        )
        await execute_write(
            self.supabase.table("users").delete().eq("user_id", user_id),
            "delete user",
        )
        logger.info(f"User {user_id} deleted their account")

    async def search_users(self, query: str) -> List[Dict[str, Any]]:
        """Case-insensitive substring match on email, at most 10 rows"""
        query = (query or "").strip()
        if not query:
            return []
        return await fetch_rows(
            self.supabase.table("users")
                .select(SEARCH_COLUMNS)
                .ilike("email", f"%{query}%")
                .limit(SEARCH_LIMIT),
            "search users",
        )
