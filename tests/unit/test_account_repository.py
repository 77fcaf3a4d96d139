"""Unit tests for the account repositories (in-memory and MongoDB)."""

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from repositories.account_repository import MongoAccountRepository
from repositories.errors import DuplicateAccountError, StaleAccountError
from repositories.memory_account_repository import InMemoryAccountRepository
from schemas.models.account import AccountDoc, AuthProvider, Role


def _account(**overrides) -> AccountDoc:
    base = dict(
        email="Ann@X.com",
        password_hash="$argon2id$placeholder",
        display_name="Ann",
        role=Role.SEEKER,
    )
    base.update(overrides)
    return AccountDoc(**base)


# ── InMemoryAccountRepository ─────────────────────────────────────────────────


class TestInMemoryRepository:
    async def test_insert_assigns_id_and_version(self):
        repo = InMemoryAccountRepository()
        saved = await repo.save(_account())
        assert isinstance(saved.id, ObjectId)
        assert saved.version == 1
        assert saved.email == "ann@x.com"
        assert saved.created_at is not None

    async def test_find_by_email_case_insensitive(self):
        repo = InMemoryAccountRepository()
        await repo.save(_account())
        found = await repo.find_by_email(" ANN@x.com")
        assert found is not None
        assert found.display_name == "Ann"
        assert await repo.exists_by_email("ann@X.COM") is True
        assert await repo.exists_by_email("bob@x.com") is False

    async def test_duplicate_email_rejected(self):
        repo = InMemoryAccountRepository()
        await repo.save(_account())
        with pytest.raises(DuplicateAccountError):
            await repo.save(_account(email="ann@x.com"))

    async def test_returned_copies_are_detached(self):
        repo = InMemoryAccountRepository()
        saved = await repo.save(_account())
        found = await repo.find_by_id(str(saved.id))
        found.account_locked = True
        again = await repo.find_by_id(str(saved.id))
        assert again.account_locked is False

    async def test_update_bumps_version(self):
        repo = InMemoryAccountRepository()
        saved = await repo.save(_account())
        found = await repo.find_by_email("ann@x.com")
        found.failed_login_attempts = 2
        updated = await repo.save(found)
        assert updated.version == 2
        assert (await repo.find_by_id(str(saved.id))).failed_login_attempts == 2

    async def test_stale_write_rejected(self):
        repo = InMemoryAccountRepository()
        await repo.save(_account())
        first = await repo.find_by_email("ann@x.com")
        second = await repo.find_by_email("ann@x.com")
        first.failed_login_attempts = 1
        await repo.save(first)
        second.failed_login_attempts = 1
        with pytest.raises(StaleAccountError):
            await repo.save(second)

    async def test_find_by_reset_token_hash(self):
        repo = InMemoryAccountRepository()
        account = _account()
        account.set_password_reset("digest", datetime(2025, 1, 1, tzinfo=timezone.utc))
        await repo.save(account)
        assert (await repo.find_by_reset_token_hash("digest")).email == "ann@x.com"
        assert await repo.find_by_reset_token_hash("other") is None
        assert await repo.find_by_reset_token_hash("") is None

    async def test_find_by_unknown_id(self):
        repo = InMemoryAccountRepository()
        assert await repo.find_by_id(str(ObjectId())) is None

    async def test_mark_email_verified_ignores_read_version(self):
        repo = InMemoryAccountRepository()
        saved = await repo.save(_account())
        stale = await repo.find_by_email("ann@x.com")
        stale.failed_login_attempts = 1
        await repo.save(stale)

        verified = await repo.mark_email_verified(saved.id)
        assert verified.email_verified is True
        assert verified.version == 3
        assert verified.failed_login_attempts == 1
        with pytest.raises(StaleAccountError):
            await repo.save(saved)

    async def test_mark_email_verified_unknown_id(self):
        repo = InMemoryAccountRepository()
        assert await repo.mark_email_verified(ObjectId()) is None


# ── MongoAccountRepository ────────────────────────────────────────────────────


def _mongo_repo():
    collection = MagicMock()
    collection.find_one = AsyncMock(return_value=None)
    collection.count_documents = AsyncMock(return_value=0)
    collection.insert_one = AsyncMock()
    collection.replace_one = AsyncMock()
    collection.find_one_and_update = AsyncMock(return_value=None)
    collection.create_index = AsyncMock()
    db = MagicMock()
    db.__getitem__.return_value = collection
    return MongoAccountRepository(db), collection


class TestMongoAccountRepository:
    async def test_find_by_email_normalises(self):
        repo, collection = _mongo_repo()
        await repo.find_by_email("ANN@x.com ")
        collection.find_one.assert_awaited_once_with({"email": "ann@x.com"})

    async def test_find_by_email_builds_model(self):
        repo, collection = _mongo_repo()
        oid = ObjectId()
        collection.find_one.return_value = {
            "_id": oid,
            "email": "ann@x.com",
            "display_name": "Ann",
            "role": "RECRUITER",
            "auth_provider": "GITHUB",
            "email_verified": True,
            "created_at": datetime(2025, 1, 1),
            "version": 4,
        }
        account = await repo.find_by_email("ann@x.com")
        assert account.id == oid
        assert account.role is Role.RECRUITER
        assert account.auth_provider is AuthProvider.GITHUB
        assert account.created_at.tzinfo == timezone.utc

    async def test_find_by_invalid_id(self):
        repo, collection = _mongo_repo()
        assert await repo.find_by_id("not-an-oid") is None
        collection.find_one.assert_not_awaited()

    async def test_insert_sets_id_and_version(self):
        repo, collection = _mongo_repo()
        oid = ObjectId()
        collection.insert_one.return_value = MagicMock(inserted_id=oid)
        saved = await repo.save(_account())
        doc = collection.insert_one.call_args.args[0]
        assert "_id" not in doc
        assert doc["email"] == "ann@x.com"
        assert doc["role"] == "SEEKER"
        assert doc["auth_provider"] == "LOCAL"
        assert doc["version"] == 1
        assert saved.id == oid

    async def test_duplicate_key_maps_to_domain_error(self):
        repo, collection = _mongo_repo()
        collection.insert_one.side_effect = DuplicateKeyError("E11000")
        with pytest.raises(DuplicateAccountError):
            await repo.save(_account())

    async def test_replace_guards_on_version(self):
        repo, collection = _mongo_repo()
        collection.replace_one.return_value = MagicMock(matched_count=1)
        oid = ObjectId()
        account = _account(id=oid, version=3)
        saved = await repo.save(account)
        filter_, doc = collection.replace_one.call_args.args
        assert filter_ == {"_id": oid, "version": 3}
        assert doc["version"] == 4
        assert saved.version == 4

    async def test_lost_race_raises_stale(self):
        repo, collection = _mongo_repo()
        collection.replace_one.return_value = MagicMock(matched_count=0)
        with pytest.raises(StaleAccountError):
            await repo.save(_account(id=ObjectId(), version=3))

    async def test_exists_by_email(self):
        repo, collection = _mongo_repo()
        collection.count_documents.return_value = 1
        assert await repo.exists_by_email("ann@x.com") is True

    async def test_ensure_indexes(self):
        repo, collection = _mongo_repo()
        await repo.ensure_indexes()
        names = {c.kwargs["name"] for c in collection.create_index.call_args_list}
        assert names == {"email_unique", "password_reset_token_hash"}

    async def test_mark_email_verified_is_unconditional(self):
        repo, collection = _mongo_repo()
        oid = ObjectId()
        collection.find_one_and_update.return_value = {
            "_id": oid,
            "email": "ann@x.com",
            "display_name": "Ann",
            "email_verified": True,
            "version": 5,
        }
        account = await repo.mark_email_verified(oid)
        filter_, update = collection.find_one_and_update.call_args.args
        assert filter_ == {"_id": oid}
        assert update["$set"]["email_verified"] is True
        assert update["$inc"] == {"version": 1}
        assert (
            collection.find_one_and_update.call_args.kwargs["return_document"]
            is ReturnDocument.AFTER
        )
        assert account.email_verified is True
        assert account.version == 5
