"""
Collection service: collection CRUD and per-member access resolution.

A member's access comes from two independent stored signals:
- ``Membership.access_all``: every collection of the org, writable
- ``CollectionGrant`` rows: explicit (collection, user, read_only) grants

access_all always wins. Grants may still be stored for an access_all member
(they are inert until access_all is cleared), so effective access is always
computed from both signals and never inferred from grants being absent.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Sequence

import structlog
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import InvalidInput, NotFound
from app.core.locking import org_write_scope
from app.models.collection import Collection, CollectionGrant
from app.models.membership import Membership
from vaultorg_shared.schemas.common import CollectionGrantSpec, MembershipStatus

log = structlog.get_logger()


@dataclass(frozen=True)
class CollectionAccess:
    collection: Collection
    read_only: bool


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def get_collection(
    org_id: uuid.UUID, collection_id: uuid.UUID, session: AsyncSession
) -> Collection:
    """Get a collection owned by this org; NotFound otherwise."""
    collection = await session.get(Collection, collection_id)
    if not collection or collection.org_id != org_id:
        raise NotFound("Collection not found in Organization")
    return collection


async def list_org_collections(org_id: uuid.UUID, session: AsyncSession) -> list[Collection]:
    result = await session.execute(
        select(Collection)
        .where(Collection.org_id == org_id)
        .order_by(Collection.name, Collection.id)
    )
    return list(result.scalars().all())


async def list_user_grants(
    org_id: uuid.UUID, user_id: uuid.UUID, session: AsyncSession
) -> list[CollectionGrant]:
    """Every grant the user holds on collections of this org."""
    result = await session.execute(
        select(CollectionGrant)
        .join(Collection, Collection.id == CollectionGrant.collection_id)
        .where(Collection.org_id == org_id, CollectionGrant.user_id == user_id)
        .order_by(Collection.name)
        .execution_options(populate_existing=True)
    )
    return list(result.scalars().all())


async def _grants_for_collection(
    collection_id: uuid.UUID, session: AsyncSession
) -> list[CollectionGrant]:
    result = await session.execute(
        select(CollectionGrant).where(CollectionGrant.collection_id == collection_id)
    )
    return list(result.scalars().all())


async def delete_user_grants(
    org_id: uuid.UUID, user_id: uuid.UUID, session: AsyncSession
) -> int:
    """Delete the user's grants within one org. Caller owns the transaction."""
    grants = await list_user_grants(org_id, user_id, session)
    for grant in grants:
        await session.delete(grant)
    await session.flush()
    return len(grants)


# ---------------------------------------------------------------------------
# Access resolution
# ---------------------------------------------------------------------------


async def effective_collections(
    membership: Membership, session: AsyncSession
) -> list[CollectionAccess]:
    """Collections the membership can see, sorted by name.

    access_all: every collection of the org (writable), regardless of stored
    grants. Otherwise exactly the granted collections with their read_only flag.
    """
    if membership.access_all:
        collections = await list_org_collections(membership.org_id, session)
        return [CollectionAccess(collection=c, read_only=False) for c in collections]

    result = await session.execute(
        select(Collection, CollectionGrant.read_only)
        .join(CollectionGrant, CollectionGrant.collection_id == Collection.id)
        .where(
            Collection.org_id == membership.org_id,
            CollectionGrant.user_id == membership.user_id,
        )
        .order_by(Collection.name, Collection.id)
    )
    return [
        CollectionAccess(collection=collection, read_only=read_only)
        for collection, read_only in result.all()
    ]


async def list_user_collections(
    user_id: uuid.UUID, session: AsyncSession
) -> list[CollectionAccess]:
    """Effective collections across every org where the user is confirmed."""
    result = await session.execute(
        select(Membership)
        .where(
            Membership.user_id == user_id,
            Membership.status == MembershipStatus.CONFIRMED.value,
        )
        .order_by(Membership.created_at)
    )
    access: list[CollectionAccess] = []
    for membership in result.scalars().all():
        access.extend(await effective_collections(membership, session))
    return access


async def list_collection_users(
    org_id: uuid.UUID, collection_id: uuid.UUID, session: AsyncSession
) -> list[tuple[Membership, bool]]:
    """(membership, read_only) for every member who can reach the collection.

    access_all members are listed as writable even if an inert read-only grant
    is stored for them.
    """
    await get_collection(org_id, collection_id, session)

    grants = {
        g.user_id: g.read_only
        for g in await _grants_for_collection(collection_id, session)
    }
    result = await session.execute(
        select(Membership)
        .where(Membership.org_id == org_id)
        .order_by(Membership.created_at, Membership.id)
    )
    users: list[tuple[Membership, bool]] = []
    for membership in result.scalars().all():
        if membership.access_all:
            users.append((membership, False))
        elif membership.user_id in grants:
            users.append((membership, grants[membership.user_id]))
    return users


# ---------------------------------------------------------------------------
# Grant assignment
# ---------------------------------------------------------------------------


async def apply_grants(
    org_id: uuid.UUID,
    membership: Membership,
    grants: Sequence[CollectionGrantSpec],
    session: AsyncSession,
) -> None:
    """Replace the member's grants. Caller must hold the org write scope.

    Existing grants in the org are always deleted. Nothing is written when the
    membership has access_all.
    """
    await delete_user_grants(org_id, membership.user_id, session)
    if membership.access_all:
        return

    seen: set[uuid.UUID] = set()
    for spec in grants:
        if spec.collection_id in seen:
            raise InvalidInput("Collection listed more than once")
        seen.add(spec.collection_id)

        collection = await get_collection(org_id, spec.collection_id, session)
        session.add(
            CollectionGrant(
                collection_id=collection.id,
                user_id=membership.user_id,
                read_only=spec.read_only,
            )
        )
    await session.flush()


async def replace_grants(
    org_id: uuid.UUID,
    membership_id: uuid.UUID,
    grants: Sequence[CollectionGrantSpec],
    session: AsyncSession,
) -> None:
    """Replace a member's explicit collection grants."""
    async with org_write_scope(session, org_id, "replace_grants"):
        result = await session.execute(
            select(Membership)
            .where(Membership.id == membership_id)
            .execution_options(populate_existing=True)
        )
        membership = result.scalar_one_or_none()
        if not membership or membership.org_id != org_id:
            raise NotFound("User isn't member of the organization")
        await apply_grants(org_id, membership, grants, session)

    log.info(
        "grants.replaced",
        membership_id=str(membership_id),
        org_id=str(org_id),
        count=0 if membership.access_all else len(grants),
    )


# ---------------------------------------------------------------------------
# Collection CRUD
# ---------------------------------------------------------------------------


def _clean_name(name: str) -> str:
    name = (name or "").strip()
    if not name:
        raise InvalidInput("Collection name is required")
    return name


async def create_collection(
    org_id: uuid.UUID, name: str, session: AsyncSession
) -> Collection:
    name = _clean_name(name)
    async with org_write_scope(session, org_id, "create_collection"):
        collection = Collection(org_id=org_id, name=name)
        session.add(collection)
        await session.flush()

    log.info("collection.created", collection_id=str(collection.id), org_id=str(org_id))
    return collection


async def rename_collection(
    org_id: uuid.UUID, collection_id: uuid.UUID, name: str, session: AsyncSession
) -> Collection:
    name = _clean_name(name)
    async with org_write_scope(session, org_id, "rename_collection"):
        collection = await get_collection(org_id, collection_id, session)
        collection.name = name
        session.add(collection)
        await session.flush()

    log.info("collection.renamed", collection_id=str(collection_id), org_id=str(org_id))
    return collection


async def delete_collection(
    org_id: uuid.UUID, collection_id: uuid.UUID, session: AsyncSession
) -> None:
    """Delete a collection and every grant referencing it."""
    async with org_write_scope(session, org_id, "delete_collection"):
        collection = await get_collection(org_id, collection_id, session)
        for grant in await _grants_for_collection(collection_id, session):
            await session.delete(grant)
        await session.flush()
        await session.delete(collection)
        await session.flush()

    log.info("collection.deleted", collection_id=str(collection_id), org_id=str(org_id))


async def remove_collection_user(
    org_id: uuid.UUID,
    collection_id: uuid.UUID,
    membership_id: uuid.UUID,
    session: AsyncSession,
) -> None:
    """Revoke one member's explicit grant on one collection."""
    async with org_write_scope(session, org_id, "remove_collection_user"):
        collection = await get_collection(org_id, collection_id, session)
        membership = await session.get(Membership, membership_id)
        if not membership or membership.org_id != org_id:
            raise NotFound("User not found in organization")
        grant = await session.get(CollectionGrant, (collection.id, membership.user_id))
        if not grant:
            raise NotFound("User not assigned to collection")
        await session.delete(grant)
        await session.flush()

    log.info(
        "collection.user_removed",
        collection_id=str(collection_id),
        membership_id=str(membership_id),
        org_id=str(org_id),
    )
