"""Clerk token verification and just-in-time user provisioning.

Invariants:
    - Only RS256 tokens signed by the instance key and not expired yield a subject
    - First sight of a Clerk id creates exactly one user row
    - Provisioning claims email-only invitations addressed to the new user
    - Failing to read the Clerk profile is 401, never a half-created user
"""

import time
from types import SimpleNamespace

import httpx
import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi import HTTPException

from app.modules.auth.service import AuthService, ClerkIdentityVerifier, profile_from_clerk_user


@pytest.fixture(scope="module")
def rsa_key():
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture
def clerk_verifier(rsa_key):
    """Verifier whose JWKS lookup returns the test key instead of calling Clerk."""
    verifier = ClerkIdentityVerifier("sk_test_fake", "https://clerk.test/v1")

    class StaticJWKS:
        def get_signing_key_from_jwt(self, token):
            return SimpleNamespace(key=rsa_key.public_key())

    verifier._jwks_client = StaticJWKS()
    return verifier


def sign(rsa_key, **claims):
    now = int(time.time())
    payload = {"iat": now, "exp": now + 60, **claims}
    return jwt.encode(payload, rsa_key, algorithm="RS256", headers={"kid": "test"})


async def test_verify_token_returns_subject(clerk_verifier, rsa_key):
    assert await clerk_verifier.verify_token(sign(rsa_key, sub="user_abc")) == "user_abc"


async def test_expired_token_rejected(clerk_verifier, rsa_key):
    token = sign(rsa_key, sub="user_abc", exp=int(time.time()) - 120)

    with pytest.raises(HTTPException) as exc:
        await clerk_verifier.verify_token(token)
    assert exc.value.status_code == 401


async def test_token_signed_by_other_key_rejected(clerk_verifier):
    other = rsa.generate_private_key(public_exponent=65537, key_size=2048)

    with pytest.raises(HTTPException) as exc:
        await clerk_verifier.verify_token(sign(other, sub="user_abc"))
    assert exc.value.detail == "Invalid token"


async def test_token_without_subject_rejected(clerk_verifier, rsa_key):
    with pytest.raises(HTTPException):
        await clerk_verifier.verify_token(sign(rsa_key))


async def test_get_user_profile_reads_backend_api():
    seen = {}

    def handler(request: httpx.Request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        return httpx.Response(200, json={
            "first_name": "Ada",
            "last_name": "Lovelace",
            "primary_email_address_id": "e2",
            "email_addresses": [
                {"id": "e1", "email_address": "old@example.com"},
                {"id": "e2", "email_address": "Ada@Example.com"},
            ],
            "image_url": "https://img.test/ada.png",
        })

    verifier = ClerkIdentityVerifier("sk_test_fake", "https://clerk.test/v1", transport=httpx.MockTransport(handler))
    profile = await verifier.get_user_profile("user_ada")

    assert seen == {"url": "https://clerk.test/v1/users/user_ada", "auth": "Bearer sk_test_fake"}
    assert profile == {"name": "Ada Lovelace", "email": "ada@example.com", "avatar_url": "https://img.test/ada.png"}


async def test_get_user_profile_raises_on_missing_user():
    verifier = ClerkIdentityVerifier(
        "sk_test_fake", "https://clerk.test/v1",
        transport=httpx.MockTransport(lambda request: httpx.Response(404, json={"errors": []})),
    )
    with pytest.raises(httpx.HTTPStatusError):
        await verifier.get_user_profile("user_missing")


def test_profile_name_falls_back_to_username_then_email():
    assert profile_from_clerk_user({"username": "ada", "first_name": "Ada"})["name"] == "ada"
    assert profile_from_clerk_user({"email_addresses": [{"id": "x", "email_address": "a@b.io"}]})["name"] == "a@b.io"
    assert profile_from_clerk_user({})["name"] == "Unknown"


async def test_first_request_provisions_user_and_claims_invites(db, verifier, make_user, make_project):
    bob = make_user("Bob")
    project = make_project(bob, members=["newbie@example.com"])
    verifier.register("fresh", "user_new", {"name": "Newbie", "email": "newbie@example.com", "avatar_url": None})

    user = await AuthService(db, verifier).get_current_user("fresh")

    assert user["email"] == "newbie@example.com"
    assert [u["clerk_user_id"] for u in db.rows("users")].count("user_new") == 1
    member = next(m for m in db.rows("project_members") if m["project_uuid"] == project["project_uuid"])
    assert member["user_id"] == user["user_id"]


async def test_second_request_reuses_user(db, verifier):
    verifier.register("fresh", "user_new", {"name": "Newbie", "email": "newbie@example.com", "avatar_url": None})
    service = AuthService(db, verifier)

    first = await service.get_current_user("fresh")
    second = await service.get_current_user("fresh")

    assert first == second
    assert len(db.rows("users")) == 1


async def test_profile_failure_is_401(db, verifier):
    verifier.register("ghost", "user_ghost")

    with pytest.raises(HTTPException) as exc:
        await AuthService(db, verifier).get_current_user("ghost")
    assert exc.value.status_code == 401
    assert exc.value.detail == "Failed to verify user"
    assert db.rows("users") == []


async def test_failed_claim_does_not_block_sign_in(db, verifier):
    verifier.register("fresh", "user_new", {"name": "Newbie", "email": "newbie@example.com", "avatar_url": None})
    db.fail("project_members", "update")

    user = await AuthService(db, verifier).get_current_user("fresh")

    assert user["name"] == "Newbie"
