"""Account persistence.

AccountStore is the protocol the auth service depends on.
MongoAccountRepository is the production implementation on the async pymongo
client; repositories/memory_account_repository.py provides the in-process one.

save() is insert-or-replace:
- an account without an id is inserted; the unique index on `email` turns a
  concurrent duplicate into DuplicateAccountError;
- an account with an id is replaced only if the stored `version` still
  equals the one the caller read, otherwise StaleAccountError.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol

from bson import ObjectId
from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from repositories.errors import DuplicateAccountError, StaleAccountError
from schemas.models.account import AccountDoc
from shared.datetime_utils import utc_now
from shared.logging import get_logger
from shared.validators import normalize_email

log = get_logger(__name__)

ACCOUNTS_COLLECTION = "accounts"


class AccountStore(Protocol):
    async def find_by_email(self, email: str) -> Optional[AccountDoc]: ...

    async def find_by_id(self, account_id: str) -> Optional[AccountDoc]: ...

    async def find_by_reset_token_hash(
        self, token_hash: str
    ) -> Optional[AccountDoc]: ...

    async def exists_by_email(self, email: str) -> bool: ...

    async def save(self, account: AccountDoc) -> AccountDoc: ...

    async def mark_email_verified(self, account_id: Any) -> Optional[AccountDoc]: ...


class MongoAccountRepository:
    def __init__(self, db: Any) -> None:
        self._collection = db[ACCOUNTS_COLLECTION]

    async def ensure_indexes(self) -> None:
        await self._collection.create_index(
            [("email", ASCENDING)], unique=True, name="email_unique"
        )
        await self._collection.create_index(
            [("password_reset_token_hash", ASCENDING)],
            sparse=True,
            name="password_reset_token_hash",
        )
        log.info("account_indexes_ensured", collection=ACCOUNTS_COLLECTION)

    async def find_by_email(self, email: str) -> Optional[AccountDoc]:
        doc = await self._collection.find_one({"email": normalize_email(email)})
        return AccountDoc.from_mongo(doc)

    async def find_by_id(self, account_id: str) -> Optional[AccountDoc]:
        if not ObjectId.is_valid(account_id):
            return None
        doc = await self._collection.find_one({"_id": ObjectId(account_id)})
        return AccountDoc.from_mongo(doc)

    async def find_by_reset_token_hash(self, token_hash: str) -> Optional[AccountDoc]:
        doc = await self._collection.find_one(
            {"password_reset_token_hash": token_hash}
        )
        return AccountDoc.from_mongo(doc)

    async def exists_by_email(self, email: str) -> bool:
        count = await self._collection.count_documents(
            {"email": normalize_email(email)}, limit=1
        )
        return count > 0

    async def save(self, account: AccountDoc) -> AccountDoc:
        now = utc_now()
        account.email = normalize_email(account.email)
        account.updated_at = now

        if account.id is None:
            account.created_at = account.created_at or now
            account.version = 1
            try:
                result = await self._collection.insert_one(account.to_mongo())
            except DuplicateKeyError:
                log.warning("account_insert_duplicate", reason="email_exists")
                raise DuplicateAccountError(account.email)
            account.id = result.inserted_id
            return account

        expected_version = account.version
        guard = account.version_guard()
        doc = account.to_mongo()
        doc["version"] = expected_version + 1
        result = await self._collection.replace_one(guard, doc)
        if result.matched_count == 0:
            log.warning(
                "account_save_conflict",
                account_id=str(account.id),
                expected_version=expected_version,
            )
            raise StaleAccountError(str(account.id), expected_version)
        account.version = expected_version + 1
        return account

    async def mark_email_verified(self, account_id: Any) -> Optional[AccountDoc]:
        """Set email_verified without a version check.

        The flag only moves from false to true, so no concurrent writer can
        invalidate it. The version is still bumped so that writer's own
        compare-and-swap fails and re-reads the flag.
        """
        doc = await self._collection.find_one_and_update(
            {"_id": ObjectId(str(account_id))},
            {
                "$set": {"email_verified": True, "updated_at": utc_now()},
                "$inc": {"version": 1},
            },
            return_document=ReturnDocument.AFTER,
        )
        return AccountDoc.from_mongo(doc)
