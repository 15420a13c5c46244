"""
API v1 Router

All org-scoped endpoints are prefixed with /orgs/{orgId}.
"""

from fastapi import APIRouter
from . import collections, members
from .organizations import router_global as orgs_global_router
from .organizations import router_scoped as orgs_scoped_router

router = APIRouter()

# Organization routes (non-org-scoped: list, create)
router.include_router(orgs_global_router)

# Organization routes (org-scoped: get, update, delete)
router.include_router(orgs_scoped_router, prefix="/orgs/{orgId}", tags=["Organizations"])

# Caller's own collections across orgs
router.include_router(collections.router_global)

# Org-scoped resource routers
router.include_router(members.router, prefix="/orgs/{orgId}/members", tags=["Members"])
router.include_router(collections.router, prefix="/orgs/{orgId}/collections", tags=["Collections"])


@router.get("/", tags=["API"])
async def api_root():
    """API root: returns version and available endpoints."""
    return {
        "api": "v1",
        "version": "0.1.0",
        "endpoints": [
            "/orgs",
            "/collections",
            "/orgs/{orgId}",
            "/orgs/{orgId}/members",
            "/orgs/{orgId}/collections",
        ],
    }
