"""
Shared fixtures: a fresh SQLite database per test, user/org factories and an
API client whose sessions point at that database.
"""

from __future__ import annotations

import os

# Settings are cached on first use; point them at SQLite before app imports.
os.environ.setdefault("VO_DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("VO_SECRET_KEY", "vaultorg-test-secret-key-0123456789abcdef")

import uuid
from typing import Optional

import bcrypt
import jwt
import pytest
from httpx import ASGITransport, AsyncClient

from app.core.config import get_settings
from app.core.database import build_engine, build_session_factory, get_session, init_db
from app.main import app
from app.models.collection import CollectionGrant
from app.models.membership import Membership
from app.models.user import User
from app.services import organizations as org_service
from vaultorg_shared.schemas.common import MembershipRole, MembershipStatus

TEST_PASSWORD = "correct horse battery staple"


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'vaultorg.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def reload(session_factory):
    """Read a row back through a new session, bypassing any identity map."""

    async def _reload(model, pk):
        async with session_factory() as s:
            return await s.get(model, pk)

    return _reload


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

@pytest.fixture
def make_user(session_factory):
    async def _make_user(email: Optional[str] = None, name: Optional[str] = None) -> User:
        email = email or f"user-{uuid.uuid4().hex[:8]}@example.com"
        hashed = bcrypt.hashpw(TEST_PASSWORD.encode(), bcrypt.gensalt(rounds=4)).decode()
        async with session_factory() as s:
            user = User(email=email.lower(), name=name, password_hash=hashed)
            s.add(user)
            await s.commit()
        return user

    return _make_user


@pytest.fixture
def make_org(session_factory, make_user):
    """Create an org through the service. Returns (org, owner)."""

    async def _make_org(owner: Optional[User] = None, name: str = "Acme", collection_name=None):
        owner = owner or await make_user()
        async with session_factory() as s:
            org = await org_service.create_org(
                owner.id, name, "billing@acme.test", collection_name, "owner-key", s
            )
        return org, owner

    return _make_org


@pytest.fixture
def add_member(session_factory, make_user):
    """Insert a membership row directly, bypassing invite/confirm."""

    async def _add_member(
        org_id: uuid.UUID,
        user: Optional[User] = None,
        role: MembershipRole = MembershipRole.USER,
        status: MembershipStatus = MembershipStatus.CONFIRMED,
        access_all: bool = False,
    ) -> Membership:
        user = user or await make_user()
        async with session_factory() as s:
            membership = Membership(
                user_id=user.id,
                org_id=org_id,
                role=role.value,
                status=status.value,
                access_all=access_all,
                key="member-key" if status == MembershipStatus.CONFIRMED else None,
            )
            s.add(membership)
            await s.commit()
        return membership

    return _add_member


@pytest.fixture
def add_grant(session_factory):
    async def _add_grant(collection_id: uuid.UUID, user_id: uuid.UUID, read_only: bool = False):
        async with session_factory() as s:
            grant = CollectionGrant(collection_id=collection_id, user_id=user_id, read_only=read_only)
            s.add(grant)
            await s.commit()
        return grant

    return _add_grant


# ---------------------------------------------------------------------------
# API client
# ---------------------------------------------------------------------------

@pytest.fixture
def auth_headers():
    def _auth_headers(user: User) -> dict:
        settings = get_settings()
        token = jwt.encode(
            {"sub": str(user.id)}, settings.secret_key, algorithm=settings.jwt_algorithm
        )
        return {"Authorization": f"Bearer {token}"}

    return _auth_headers


@pytest.fixture
async def client(session_factory):
    """FastAPI test client with the session dependency overridden."""

    async def override_get_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def password():
    """Plain-text password of every user built by ``make_user``."""
    return TEST_PASSWORD
