"""
Collection API endpoints.

GET    /api/v1/collections                                              Caller's collections across orgs
GET    /api/v1/orgs/{orgId}/collections                                 List org collections (Admin)
POST   /api/v1/orgs/{orgId}/collections                                 Create collection (Admin)
GET    /api/v1/orgs/{orgId}/collections/{collectionId}                  Collection details (Admin)
PATCH  /api/v1/orgs/{orgId}/collections/{collectionId}                  Rename collection (Admin)
DELETE /api/v1/orgs/{orgId}/collections/{collectionId}                  Delete collection (Admin)
GET    /api/v1/orgs/{orgId}/collections/{collectionId}/users            Members with access (Admin)
DELETE /api/v1/orgs/{orgId}/collections/{collectionId}/users/{memberId} Revoke a grant (Admin)
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import AuthenticatedMember, get_current_user, require_admin
from app.core.database import get_session
from app.models.user import User
from app.services import collections as collection_service
from vaultorg_shared.schemas.collections import (
    CollectionAccessListResponse,
    CollectionAccessResponse,
    CollectionCreateRequest,
    CollectionListResponse,
    CollectionResponse,
    CollectionUpdateRequest,
    CollectionUserListResponse,
    CollectionUserResponse,
)

# ---------------------------------------------------------------------------
# Non-org-scoped routes
# ---------------------------------------------------------------------------
router_global = APIRouter()


@router_global.get("/collections", response_model=CollectionAccessListResponse, tags=["Collections"])
async def list_my_collections(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Collections the caller can reach in every org where they are confirmed."""
    access = await collection_service.list_user_collections(user.id, session)
    return CollectionAccessListResponse(
        data=[
            CollectionAccessResponse(
                id=a.collection.id,
                org_id=a.collection.org_id,
                name=a.collection.name,
                read_only=a.read_only,
            )
            for a in access
        ]
    )


# ---------------------------------------------------------------------------
# Org-scoped routes
# ---------------------------------------------------------------------------
router = APIRouter()


@router.get("", response_model=CollectionListResponse, tags=["Collections"])
async def list_collections(
    auth: AuthenticatedMember = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    collections = await collection_service.list_org_collections(auth.org_id, session)
    return CollectionListResponse(
        data=[CollectionResponse.model_validate(c) for c in collections]
    )


@router.post("", response_model=CollectionResponse, status_code=201, tags=["Collections"])
async def create_collection(
    body: CollectionCreateRequest,
    auth: AuthenticatedMember = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    collection = await collection_service.create_collection(auth.org_id, body.name, session)
    return CollectionResponse.model_validate(collection)


@router.get("/{collectionId}", response_model=CollectionResponse, tags=["Collections"])
async def get_collection(
    collectionId: uuid.UUID,
    auth: AuthenticatedMember = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    collection = await collection_service.get_collection(auth.org_id, collectionId, session)
    return CollectionResponse.model_validate(collection)


@router.patch("/{collectionId}", response_model=CollectionResponse, tags=["Collections"])
async def rename_collection(
    collectionId: uuid.UUID,
    body: CollectionUpdateRequest,
    auth: AuthenticatedMember = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    collection = await collection_service.rename_collection(
        auth.org_id, collectionId, body.name, session
    )
    return CollectionResponse.model_validate(collection)


@router.delete("/{collectionId}", status_code=204, tags=["Collections"])
async def delete_collection(
    collectionId: uuid.UUID,
    auth: AuthenticatedMember = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Delete a collection and all grants on it."""
    await collection_service.delete_collection(auth.org_id, collectionId, session)


@router.get("/{collectionId}/users", response_model=CollectionUserListResponse, tags=["Collections"])
async def list_collection_users(
    collectionId: uuid.UUID,
    auth: AuthenticatedMember = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Members who can reach the collection, via a grant or access_all."""
    users = await collection_service.list_collection_users(auth.org_id, collectionId, session)
    return CollectionUserListResponse(
        data=[
            CollectionUserResponse(
                membership_id=m.id,
                user_id=m.user_id,
                role=m.role,
                status=m.status,
                access_all=m.access_all,
                read_only=read_only,
            )
            for m, read_only in users
        ]
    )


@router.delete("/{collectionId}/users/{memberId}", status_code=204, tags=["Collections"])
async def remove_collection_user(
    collectionId: uuid.UUID,
    memberId: uuid.UUID,
    auth: AuthenticatedMember = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
):
    """Revoke one member's explicit grant on the collection."""
    await collection_service.remove_collection_user(auth.org_id, collectionId, memberId, session)
