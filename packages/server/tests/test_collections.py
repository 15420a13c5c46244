"""
Collection access tests.

Tests cover:
- Effective access from access_all and explicit grants (access_all wins)
- Replacing a member's grants
- Listing the members who can reach a collection
- Collection CRUD and per-user revocation
- Foreign keys enforced by the store
"""

from __future__ import annotations

import uuid

import pytest
from sqlalchemy.exc import IntegrityError

from app.core.errors import InvalidInput, NotFound, StorageFailure
from app.core.locking import transaction
from app.models.collection import Collection, CollectionGrant
from app.models.membership import Membership
from app.services import collections as collection_service
from vaultorg_shared.schemas.common import CollectionGrantSpec, MembershipStatus


@pytest.fixture
def make_collections(session_factory):
    async def _make_collections(org_id, *names):
        created = []
        async with session_factory() as s:
            for name in names:
                created.append(await collection_service.create_collection(org_id, name, s))
        return created

    return _make_collections


# ---------------------------------------------------------------------------
# Effective access
# ---------------------------------------------------------------------------

class TestEffectiveCollections:

    async def test_access_all_sees_everything(self, session, make_org, add_member, add_grant, make_collections):
        org, _ = await make_org(collection_name="Alpha")
        beta, gamma = await make_collections(org.id, "Beta", "Gamma")
        member = await add_member(org.id, access_all=True)
        # Inert grant stored alongside access_all
        await add_grant(beta.id, member.user_id, read_only=True)

        access = await collection_service.effective_collections(member, session)

        assert [(a.collection.name, a.read_only) for a in access] == [
            ("Alpha", False),
            ("Beta", False),
            ("Gamma", False),
        ]

    async def test_grants_define_exact_set(self, session, make_org, add_member, add_grant, make_collections):
        org, _ = await make_org(collection_name="Alpha")
        beta, gamma = await make_collections(org.id, "Beta", "Gamma")
        member = await add_member(org.id)
        await add_grant(gamma.id, member.user_id, read_only=True)
        await add_grant(beta.id, member.user_id)

        access = await collection_service.effective_collections(member, session)

        assert [(a.collection.name, a.read_only) for a in access] == [
            ("Beta", False),
            ("Gamma", True),
        ]

    async def test_no_grants_no_access(self, session, make_org, add_member):
        org, _ = await make_org()
        member = await add_member(org.id)
        assert await collection_service.effective_collections(member, session) == []

    async def test_inert_grant_resurfaces_when_access_all_cleared(
        self, session, session_factory, make_org, add_member, add_grant, make_collections
    ):
        org, _ = await make_org(collection_name="Alpha")
        (beta,) = await make_collections(org.id, "Beta")
        member = await add_member(org.id, access_all=True)
        await add_grant(beta.id, member.user_id, read_only=True)

        async with session_factory() as s:
            stored = await s.get(Membership, member.id)
            stored.access_all = False
            s.add(stored)
            await s.commit()

        access = await collection_service.effective_collections(stored, session)
        assert [(a.collection.name, a.read_only) for a in access] == [("Beta", True)]

    async def test_list_user_collections_only_confirmed(
        self, session, make_user, make_org, add_member, add_grant, make_collections
    ):
        user = await make_user()
        acme, _ = await make_org(owner=user, name="Acme", collection_name="Acme Vault")
        globex, _ = await make_org(name="Globex")
        (globex_vault,) = await make_collections(globex.id, "Globex Vault")
        await add_member(globex.id, user=user, status=MembershipStatus.ACCEPTED)
        await add_grant(globex_vault.id, user.id)

        access = await collection_service.list_user_collections(user.id, session)

        assert [a.collection.name for a in access] == ["Acme Vault"]


# ---------------------------------------------------------------------------
# Grant replacement
# ---------------------------------------------------------------------------

class TestReplaceGrants:

    async def test_replaces_existing(self, session, make_org, add_member, add_grant, make_collections, reload):
        org, _ = await make_org(collection_name="Alpha")
        beta, gamma = await make_collections(org.id, "Beta", "Gamma")
        member = await add_member(org.id)
        await add_grant(beta.id, member.user_id)

        await collection_service.replace_grants(
            org.id,
            member.id,
            [CollectionGrantSpec(collection_id=gamma.id, read_only=True)],
            session,
        )

        assert await reload(CollectionGrant, (beta.id, member.user_id)) is None
        grant = await reload(CollectionGrant, (gamma.id, member.user_id))
        assert grant.read_only is True

    async def test_access_all_writes_nothing(self, session, make_org, add_member, add_grant, make_collections, reload):
        org, _ = await make_org()
        beta, gamma = await make_collections(org.id, "Beta", "Gamma")
        member = await add_member(org.id, access_all=True)
        await add_grant(beta.id, member.user_id)

        await collection_service.replace_grants(
            org.id, member.id, [CollectionGrantSpec(collection_id=gamma.id)], session
        )

        assert await reload(CollectionGrant, (beta.id, member.user_id)) is None
        assert await reload(CollectionGrant, (gamma.id, member.user_id)) is None

    async def test_foreign_collection_keeps_old_grants(
        self, session, make_org, add_member, add_grant, make_collections, reload
    ):
        org, _ = await make_org()
        other, _ = await make_org(name="Globex")
        (beta,) = await make_collections(org.id, "Beta")
        (foreign,) = await make_collections(other.id, "Foreign")
        member = await add_member(org.id)
        await add_grant(beta.id, member.user_id)

        with pytest.raises(NotFound):
            await collection_service.replace_grants(
                org.id, member.id, [CollectionGrantSpec(collection_id=foreign.id)], session
            )

        assert await reload(CollectionGrant, (beta.id, member.user_id)) is not None

    async def test_duplicate_collection(self, session, make_org, add_member, make_collections):
        org, _ = await make_org()
        (beta,) = await make_collections(org.id, "Beta")
        member = await add_member(org.id)
        spec = CollectionGrantSpec(collection_id=beta.id)
        with pytest.raises(InvalidInput):
            await collection_service.replace_grants(org.id, member.id, [spec, spec], session)

    async def test_membership_in_other_org(self, session, make_org, add_member):
        org, _ = await make_org()
        other, _ = await make_org(name="Globex")
        stranger = await add_member(other.id)
        with pytest.raises(NotFound):
            await collection_service.replace_grants(org.id, stranger.id, [], session)


# ---------------------------------------------------------------------------
# Collection users
# ---------------------------------------------------------------------------

class TestListCollectionUsers:

    async def test_grants_and_access_all(
        self, session, session_factory, make_org, add_member, add_grant, make_collections
    ):
        org, owner = await make_org()
        (beta,) = await make_collections(org.id, "Beta")
        reader = await add_member(org.id)
        outsider = await add_member(org.id)
        everything = await add_member(org.id, access_all=True)
        await add_grant(beta.id, reader.user_id, read_only=True)
        await add_grant(beta.id, everything.user_id, read_only=True)

        users = await collection_service.list_collection_users(org.id, beta.id, session)

        by_user = {m.user_id: read_only for m, read_only in users}
        assert by_user == {
            owner.id: False,
            reader.user_id: True,
            everything.user_id: False,
        }
        assert outsider.user_id not in by_user

    async def test_foreign_collection(self, session, make_org, make_collections):
        org, _ = await make_org()
        other, _ = await make_org(name="Globex")
        (foreign,) = await make_collections(other.id, "Foreign")
        with pytest.raises(NotFound):
            await collection_service.list_collection_users(org.id, foreign.id, session)


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------

class TestCollectionCrud:

    async def test_create_and_rename(self, session, make_org, reload):
        org, _ = await make_org()
        collection = await collection_service.create_collection(org.id, " Finance ", session)
        assert collection.name == "Finance"

        await collection_service.rename_collection(org.id, collection.id, "Accounting", session)
        assert (await reload(Collection, collection.id)).name == "Accounting"

    async def test_blank_name(self, session, make_org):
        org, _ = await make_org()
        with pytest.raises(InvalidInput):
            await collection_service.create_collection(org.id, "   ", session)

    async def test_create_in_missing_org(self, session):
        with pytest.raises(NotFound):
            await collection_service.create_collection(uuid.uuid4(), "Finance", session)

    async def test_get_from_other_org(self, session, make_org, make_collections):
        org, _ = await make_org()
        other, _ = await make_org(name="Globex")
        (foreign,) = await make_collections(other.id, "Foreign")
        with pytest.raises(NotFound):
            await collection_service.get_collection(org.id, foreign.id, session)

    async def test_delete_cascades_grants(self, session, make_org, add_member, add_grant, make_collections, reload):
        org, _ = await make_org()
        (beta,) = await make_collections(org.id, "Beta")
        member = await add_member(org.id)
        await add_grant(beta.id, member.user_id)

        await collection_service.delete_collection(org.id, beta.id, session)

        assert await reload(Collection, beta.id) is None
        assert await reload(CollectionGrant, (beta.id, member.user_id)) is None


class TestRemoveCollectionUser:

    async def test_revokes_grant(self, session, make_org, add_member, add_grant, make_collections, reload):
        org, _ = await make_org()
        (beta,) = await make_collections(org.id, "Beta")
        member = await add_member(org.id)
        await add_grant(beta.id, member.user_id)

        await collection_service.remove_collection_user(org.id, beta.id, member.id, session)

        assert await reload(CollectionGrant, (beta.id, member.user_id)) is None
        assert await reload(Membership, member.id) is not None

    async def test_no_grant(self, session, make_org, add_member, make_collections):
        org, _ = await make_org()
        (beta,) = await make_collections(org.id, "Beta")
        member = await add_member(org.id)
        with pytest.raises(NotFound):
            await collection_service.remove_collection_user(org.id, beta.id, member.id, session)


# ---------------------------------------------------------------------------
# Referential integrity
# ---------------------------------------------------------------------------

class TestForeignKeys:

    async def test_grant_on_unknown_collection_rejected(self, session, make_user):
        user = await make_user()
        with pytest.raises(StorageFailure) as exc_info:
            async with transaction(session, "add_grant"):
                session.add(CollectionGrant(collection_id=uuid.uuid4(), user_id=user.id))
                await session.flush()
        assert isinstance(exc_info.value.__cause__, IntegrityError)

    async def test_collection_in_use_cannot_be_dropped_alone(
        self, session, make_org, add_member, add_grant, make_collections, reload
    ):
        org, _ = await make_org()
        (beta,) = await make_collections(org.id, "Beta")
        member = await add_member(org.id)
        await add_grant(beta.id, member.user_id)

        stored = await session.get(Collection, beta.id)
        with pytest.raises(StorageFailure):
            async with transaction(session, "drop_collection"):
                await session.delete(stored)
                await session.flush()

        assert await reload(Collection, beta.id) is not None
