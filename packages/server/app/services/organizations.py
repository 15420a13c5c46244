"""
Organization service: business logic for org creation, update and deletion.
"""

from __future__ import annotations

import uuid
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.config import get_settings
from app.core.errors import InvalidCredentials, InvalidInput, NotFound
from app.core.locking import org_write_scope, transaction
from app.models.collection import Collection, CollectionGrant
from app.models.membership import Membership
from app.models.organization import Organization
from vaultorg_shared.schemas.common import MembershipRole, MembershipStatus

log = structlog.get_logger()


async def create_org(
    creator_id: uuid.UUID,
    name: str,
    billing_email: str,
    collection_name: Optional[str],
    member_key: str,
    session: AsyncSession,
) -> Organization:
    """Create an org, its founding owner membership and its first collection.

    The three rows are committed together or not at all.
    """
    if not member_key or not member_key.strip():
        raise InvalidInput("Organization key is required")
    if not name or not name.strip():
        raise InvalidInput("Organization name is required")
    collection_name = (collection_name or "").strip() or get_settings().default_collection_name

    async with transaction(session, "create_org"):
        org = Organization(name=name.strip(), billing_email=billing_email)
        session.add(org)
        await session.flush()

        membership = Membership(
            user_id=creator_id,
            org_id=org.id,
            role=MembershipRole.OWNER.value,
            status=MembershipStatus.CONFIRMED.value,
            access_all=True,
            key=member_key,
        )
        collection = Collection(org_id=org.id, name=collection_name)
        session.add(membership)
        session.add(collection)
        await session.flush()

    log.info("org.created", org_id=str(org.id), creator=str(creator_id))
    return org


async def get_org(org_id: uuid.UUID, session: AsyncSession) -> Organization:
    """Get an org by id; raises NotFound if absent."""
    result = await session.execute(
        select(Organization)
        .where(Organization.id == org_id)
        .execution_options(populate_existing=True)
    )
    org = result.scalar_one_or_none()
    if not org:
        raise NotFound("Organization not found")
    return org


async def update_org(
    org_id: uuid.UUID,
    name: str,
    billing_email: str,
    session: AsyncSession,
) -> Organization:
    """Update org name and billing email. Caller has verified owner access."""
    if not name or not name.strip():
        raise InvalidInput("Organization name is required")

    async with org_write_scope(session, org_id, "update_org") as org:
        org.name = name.strip()
        org.billing_email = billing_email
        org.touch()
        session.add(org)
        await session.flush()

    log.info("org.updated", org_id=str(org_id))
    return org


async def delete_org(
    org_id: uuid.UUID,
    requesting_user_id: uuid.UUID,
    password_verified: bool,
    session: AsyncSession,
) -> None:
    """Delete an org with all its memberships, collections and grants.

    Children are removed leaf-first (grants, memberships, collections) before
    the org row, inside one transaction.
    """
    if not password_verified:
        raise InvalidCredentials()

    async with org_write_scope(session, org_id, "delete_org") as org:
        collections = (
            await session.execute(select(Collection).where(Collection.org_id == org_id))
        ).scalars().all()
        collection_ids = [c.id for c in collections]

        grant_count = 0
        if collection_ids:
            grants = (
                await session.execute(
                    select(CollectionGrant).where(
                        CollectionGrant.collection_id.in_(collection_ids)
                    )
                )
            ).scalars().all()
            for grant in grants:
                await session.delete(grant)
            grant_count = len(grants)
        await session.flush()

        memberships = (
            await session.execute(select(Membership).where(Membership.org_id == org_id))
        ).scalars().all()
        for membership in memberships:
            await session.delete(membership)
        await session.flush()

        for collection in collections:
            await session.delete(collection)
        await session.flush()

        await session.delete(org)
        await session.flush()

    log.info(
        "org.deleted",
        org_id=str(org_id),
        deleted_by=str(requesting_user_id),
        memberships=len(memberships),
        collections=len(collection_ids),
        grants=grant_count,
    )
