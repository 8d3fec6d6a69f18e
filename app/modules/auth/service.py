import asyncio
import logging
from typing import Any, Dict, Optional

import httpx
import jwt
from fastapi import HTTPException
from supabase import AsyncClient

from app.core.errors import StoreError
from app.database.gateway import execute_write, fetch_first

logger = logging.getLogger(__name__)

USER_COLUMNS = "user_id, clerk_user_id, name, email, avatar_url, created_at, updated_at"


class ClerkIdentityVerifier:
    """Verifies Clerk session tokens against the instance JWKS and reads user profiles."""

    def __init__(
        self,
        secret_key: str,
        api_url: str = "https://api.clerk.com/v1",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.secret_key = secret_key
        self.api_url = api_url.rstrip("/")
        self.transport = transport
        self._jwks_client = jwt.PyJWKClient(
            f"{self.api_url}/jwks",
            headers={"Authorization": f"Bearer {secret_key}"},
        )

    async def verify_token(self, token: str) -> str:
        """Return the token subject (the Clerk user id). Raises 401 on any verification failure."""
        try:
            signing_key = await asyncio.to_thread(self._jwks_client.get_signing_key_from_jwt, token)
            claims = jwt.decode(
                token,
                signing_key.key,
                algorithms=["RS256"],
                leeway=5,
                options={"verify_aud": False},
            )
        except jwt.PyJWTError as e:
            logger.info(f"Token verification failed: {e}")
            raise HTTPException(status_code=401, detail="Invalid token")
        subject = claims.get("sub")
        if not subject:
            raise HTTPException(status_code=401, detail="Invalid token")
        return subject

    async def get_user_profile(self, clerk_user_id: str) -> Dict[str, Any]:
        """Fetch a user from the Clerk Backend API and reduce it to name/email/avatar_url."""
        async with httpx.AsyncClient(transport=self.transport, timeout=10.0) as client:
            response = await client.get(
                f"{self.api_url}/users/{clerk_user_id}",
                headers={"Authorization": f"Bearer {self.secret_key}"},
            )
        response.raise_for_status()
        return profile_from_clerk_user(response.json())


def profile_from_clerk_user(clerk_user: Dict[str, Any]) -> Dict[str, Any]:
    emails = clerk_user.get("email_addresses") or []
    primary_id = clerk_user.get("primary_email_address_id")
    primary = next((e for e in emails if e.get("id") == primary_id), emails[0] if emails else None)
    email = (primary or {}).get("email_address") or ""

    first_name = clerk_user.get("first_name")
    last_name = clerk_user.get("last_name")
    if first_name and last_name:
        name = f"{first_name} {last_name}".strip()
    else:
        name = clerk_user.get("username") or email or "Unknown"

    return {
        "name": name,
        "email": email.strip().lower(),
        "avatar_url": clerk_user.get("image_url") or None,
    }


class AuthService:
    def __init__(self, supabase: AsyncClient, verifier: ClerkIdentityVerifier):
        self.supabase = supabase
        self.verifier = verifier

    async def get_current_user(self, token: str) -> Dict[str, Any]:
        """Resolve a bearer token to the internal user record, provisioning it on first sight."""
        clerk_user_id = await self.verifier.verify_token(token)

        user = await self._find_user(clerk_user_id)
        if user is None:
            user = await self._provision_user(clerk_user_id)

        return {
            "user_id": user["user_id"],
            "clerk_user_id": user["clerk_user_id"],
            "email": user.get("email") or "",
            "name": user.get("name") or "",
        }

    async def _find_user(self, clerk_user_id: str) -> Optional[Dict[str, Any]]:
        return await fetch_first(
            self.supabase.table("users")
                .select(USER_COLUMNS)
                .eq("clerk_user_id", clerk_user_id),
            "fetch user",
        )

    async def _provision_user(self, clerk_user_id: str) -> Dict[str, Any]:
        try:
            profile = await self.verifier.get_user_profile(clerk_user_id)
        except httpx.HTTPError as e:
            logger.error(f"Failed to fetch user {clerk_user_id} from Clerk: {e}")
            raise HTTPException(status_code=401, detail="Failed to verify user")

        try:
            rows = await execute_write(
                self.supabase.table("users").insert({"clerk_user_id": clerk_user_id, **profile}),
                "create user",
            )
        except StoreError as e:
            if e.status_code == 409:
                # Created by a concurrent request for the same identity
                existing = await self._find_user(clerk_user_id)
                if existing:
                    return existing
            logger.error(f"Failed to create user {clerk_user_id}: {e.payload()}")
            raise HTTPException(status_code=500, detail="Failed to sync user with database")

        if not rows:
            raise HTTPException(status_code=500, detail="Failed to sync user with database")

        user = rows[0]
        logger.info(f"Provisioned user {user['user_id']} for Clerk user {clerk_user_id}")
        if user.get("email"):
            await claim_pending_invitations(self.supabase, user["user_id"], user["email"])
        return user


async def claim_pending_invitations(supabase: AsyncClient, user_id: int, email: str) -> int:
    """Attach email-only member rows addressed to this email to the user. Returns rows claimed."""
    try:
        rows = await execute_write(
            supabase.table("project_members")
                .update({"user_id": user_id})
                .eq("member_email", email.strip().lower())
                .is_("user_id", "null"),
            "claim pending invitations",
        )
    except StoreError as e:
        logger.warning(f"Could not claim invitations for user {user_id}: {e.payload()}")
        return 0
    if rows:
        logger.info(f"User {user_id} claimed {len(rows)} pending project invitation(s)")
    return len(rows)
