"""
Organization API endpoints.

GET    /api/v1/orgs                   List orgs for authenticated user
POST   /api/v1/orgs                   Create a new org (creator becomes owner)
GET    /api/v1/orgs/{orgId}           Get org details (Owner)
PATCH  /api/v1/orgs/{orgId}           Update org name/billing email (Owner)
POST   /api/v1/orgs/{orgId}/delete    Delete org and everything in it (Owner, password)
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import (
    AuthenticatedMember,
    get_current_user,
    require_owner,
    verify_password,
)
from app.core.database import get_session
from app.models.user import User
from app.services import memberships as membership_service
from app.services import organizations as org_service
from vaultorg_shared.schemas.organizations import (
    OrgCreateRequest,
    OrgDeleteRequest,
    OrgListResponse,
    OrgResponse,
    OrgUpdateRequest,
)

# ---------------------------------------------------------------------------
# Non-org-scoped routes (no orgId in path)
# ---------------------------------------------------------------------------
router_global = APIRouter()


@router_global.get("/orgs", response_model=OrgListResponse, tags=["Organizations"])
async def list_orgs(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """List orgs the authenticated user belongs to, with role and status."""
    items = await membership_service.list_user_organizations(user.id, session)
    return OrgListResponse(data=items)


@router_global.post("/orgs", response_model=OrgResponse, status_code=201, tags=["Organizations"])
async def create_org(
    body: OrgCreateRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    """Create a new organization. The creator becomes its confirmed owner."""
    org = await org_service.create_org(
        user.id,
        body.name,
        body.billing_email,
        body.collection_name,
        body.key,
        session,
    )
    return OrgResponse.model_validate(org)


# ---------------------------------------------------------------------------
# Org-scoped routes (orgId in path)
# ---------------------------------------------------------------------------
router_scoped = APIRouter()


@router_scoped.get("", response_model=OrgResponse, tags=["Organizations"])
async def get_org(
    auth: AuthenticatedMember = Depends(require_owner),
    session: AsyncSession = Depends(get_session),
):
    """Get org details (Owner only)."""
    org = await org_service.get_org(auth.org_id, session)
    return OrgResponse.model_validate(org)


@router_scoped.patch("", response_model=OrgResponse, tags=["Organizations"])
async def update_org(
    body: OrgUpdateRequest,
    auth: AuthenticatedMember = Depends(require_owner),
    session: AsyncSession = Depends(get_session),
):
    """Update org name and billing email (Owner only)."""
    org = await org_service.update_org(auth.org_id, body.name, body.billing_email, session)
    return OrgResponse.model_validate(org)


@router_scoped.post("/delete", status_code=204, tags=["Organizations"])
async def delete_org(
    body: OrgDeleteRequest,
    auth: AuthenticatedMember = Depends(require_owner),
    session: AsyncSession = Depends(get_session),
):
    """Delete the org with all memberships, collections and grants (Owner, password)."""
    verified = verify_password(body.password, auth.user.password_hash)
    await org_service.delete_org(auth.org_id, auth.user_id, verified, session)
