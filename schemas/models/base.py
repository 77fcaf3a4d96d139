"""
Base models for MongoDB documents.

PyObjectId lets pydantic validate and serialise BSON ObjectIds.
MongoBaseModel maps `_id` to `id` and converts to and from raw pymongo dicts.
VersionedDocument adds the audit timestamps and the `version` counter that
repositories compare on every replace.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, GetCoreSchemaHandler, field_validator
from pydantic_core import core_schema

from shared.datetime_utils import ensure_utc


class PyObjectId(ObjectId):
    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        return core_schema.no_info_plain_validator_function(
            cls._validate,
            serialization=core_schema.to_string_ser_schema(),
        )

    @classmethod
    def _validate(cls, v: Any) -> ObjectId:
        if isinstance(v, ObjectId):
            return v
        if isinstance(v, str) and ObjectId.is_valid(v):
            return ObjectId(v)
        raise ValueError(f"Invalid ObjectId: {v!r}")


class MongoBaseModel(BaseModel):
    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
        validate_assignment=True,
    )

    id: Optional[PyObjectId] = Field(default=None, alias="_id")

    def to_mongo(self) -> dict:
        """Dump to a pymongo-ready dict. An unset `_id` is left out so the
        server assigns one on insert."""
        data = self.model_dump(by_alias=True, mode="python")
        if data.get("_id") is None:
            data.pop("_id", None)
        return data

    @classmethod
    def from_mongo(cls, data: Optional[dict]):
        """Build an instance from a find_one() result; None stays None."""
        if data is None:
            return None
        return cls.model_validate(data)


class VersionedDocument(MongoBaseModel):
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    # Bumped on every successful save; 0 means never stored
    version: int = Field(default=0, ge=0)

    @field_validator("created_at", "updated_at")
    @classmethod
    def _timestamps_as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value)

    def version_guard(self) -> dict:
        """Filter matching this document only at the version it was read at."""
        return {"_id": self.id, "version": self.version}
