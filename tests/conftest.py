"""Shared fixtures: in-memory store, fake identity provider, recording mailer, test client.

Invariants:
    - Every test gets a fresh FakeSupabase; nothing reaches a real Supabase, Clerk or SMTP server
    - Tokens are opaque strings mapped to Clerk ids by FakeVerifier
    - Dependency overrides are cleared after each client fixture

Design Decisions:
    - Identity is faked at the verifier seam, so AuthService (lookup, provisioning,
      invitation claiming) still runs for every request
    - Background tasks run before the test client returns, so the mailer can be
      inspected right after the response
"""

import os

# Settings are read at import time; keep tests away from real credentials
os.environ.setdefault("SUPABASE_URL", "http://supabase.test")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "service-role-test-key")
os.environ.setdefault("CLERK_SECRET_KEY", "sk_test_fake")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("NODE_ENV", "test")

import httpx
import pytest
from fastapi import HTTPException
from httpx import ASGITransport, AsyncClient

from app.config import settings
from app.core.dependencies import get_identity_verifier
from app.database.supabase_client import get_supabase
from app.main import app
from app.modules.notifications.email_service import EmailService, get_email_service

from fake_supabase import FakeSupabase


class FakeVerifier:
    """Token -> Clerk id, and Clerk id -> profile, without any network."""

    def __init__(self):
        self.tokens = {}
        self.profiles = {}

    def register(self, token, clerk_user_id, profile=None):
        self.tokens[token] = clerk_user_id
        if profile is not None:
            self.profiles[clerk_user_id] = profile

    async def verify_token(self, token):
        if token not in self.tokens:
            raise HTTPException(status_code=401, detail="Invalid token")
        return self.tokens[token]

    async def get_user_profile(self, clerk_user_id):
        if clerk_user_id not in self.profiles:
            raise httpx.HTTPError(f"Clerk user {clerk_user_id} not found")
        return dict(self.profiles[clerk_user_id])


class RecordingEmailService(EmailService):
    """Captures invitation batches instead of talking SMTP."""

    def __init__(self):
        super().__init__(settings)
        self.batches = []
        self.fail = False

    def send_batch_project_invites(self, emails, invite):
        self.batches.append((list(emails), invite))
        if self.fail:
            raise RuntimeError("SMTP unavailable")
        return {"successful": len(emails), "failed": 0}

    @property
    def recipients(self):
        return [email for emails, _ in self.batches for email in emails]


@pytest.fixture
def db():
    return FakeSupabase()


@pytest.fixture
def verifier():
    return FakeVerifier()


@pytest.fixture
def mailer():
    return RecordingEmailService()


@pytest.fixture
def make_user(db, verifier):
    """Insert a registered user and return {user_id, email, name, headers}."""
    counter = {"n": 0}

    def _make_user(name="Alice", email=None):
        counter["n"] += 1
        n = counter["n"]
        email = (email or f"user{n}@example.com").lower()
        clerk_id = f"user_clerk_{n}"
        row = db.insert_rows("users", [{"clerk_user_id": clerk_id, "name": name, "email": email}])[0]
        token = f"token-{n}"
        verifier.register(token, clerk_id)
        return {
            "user_id": row["user_id"],
            "clerk_user_id": clerk_id,
            "email": email,
            "name": name,
            "headers": {"Authorization": f"Bearer {token}"},
        }

    return _make_user


@pytest.fixture
def make_project(db):
    """Insert a project row (and optional member rows) directly into the store."""

    def _make_project(owner, name="Apollo", start_date="2024-01-01", end_date="2099-12-31", members=(), **fields):
        project = db.insert_rows("projects", [{
            "name": name,
            "start_date": start_date,
            "end_date": end_date,
            "owner_id": owner["user_id"],
            **fields,
        }])[0]
        for member in members:
            if isinstance(member, str):
                member = {"member_email": member}
            db.insert_rows("project_members", [{"project_uuid": project["project_uuid"], **member}])
        return project

    return _make_project


@pytest.fixture
async def client(db, verifier, mailer):
    """FastAPI test client with store, identity and mail dependencies overridden."""
    app.dependency_overrides[get_supabase] = lambda: db
    app.dependency_overrides[get_identity_verifier] = lambda: verifier
    app.dependency_overrides[get_email_service] = lambda: mailer

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
