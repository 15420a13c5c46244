"""
Transactions and per-organization write serialization.

Membership writes (role change, removal, confirm, invite) check invariants
that span several rows: the last-owner rule and (user, org) uniqueness.
``org_write_scope`` makes that read-check-write sequence exclusive per
organization:

- a process-local ``asyncio.Lock`` per org id serializes writers in this process
- ``SELECT ... FOR UPDATE`` on the organization row serializes writers across
  processes (PostgreSQL; SQLite ignores the clause)
- the transaction commits before either lock is released
- the lock of a deleted org is forgotten so the table only holds live orgs

Read-only queries never take these locks.
"""

from __future__ import annotations

import asyncio
import uuid
from collections import defaultdict
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from sqlalchemy import inspect
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.errors import NotFound, StorageFailure
from app.models.organization import Organization

log = structlog.get_logger()

_org_locks: defaultdict[uuid.UUID, asyncio.Lock] = defaultdict(asyncio.Lock)


def org_lock(org_id: uuid.UUID) -> asyncio.Lock:
    return _org_locks[org_id]


@asynccontextmanager
async def transaction(session: AsyncSession, operation: str) -> AsyncIterator[AsyncSession]:
    """Commit everything done in the block, or nothing.

    Domain errors propagate unchanged after rollback; store errors are
    re-raised as StorageFailure with the original as ``__cause__``.
    """
    try:
        yield session
        await session.commit()
    except SQLAlchemyError as exc:
        await session.rollback()
        log.error("storage.failed", operation=operation, error=str(exc))
        raise StorageFailure(operation) from exc
    except BaseException:
        await session.rollback()
        raise


@asynccontextmanager
async def org_write_scope(
    session: AsyncSession, org_id: uuid.UUID, operation: str
) -> AsyncIterator[Organization]:
    """Hold the org's write lock for one transaction. Yields the locked org.

    The lock entry is dropped once the org is known to be gone (absent, or
    deleted and committed by this scope); any later writer gets NotFound.
    """
    async with org_lock(org_id):
        async with transaction(session, operation):
            result = await session.execute(
                select(Organization)
                .where(Organization.id == org_id)
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            org = result.scalar_one_or_none()
            if not org:
                _org_locks.pop(org_id, None)
                raise NotFound("Organization not found")
            yield org

    if inspect(org).was_deleted:
        _org_locks.pop(org_id, None)
