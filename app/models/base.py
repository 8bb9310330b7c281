from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Annotated

from bson import ObjectId
from pydantic import BaseModel, BeforeValidator, Field, ConfigDict

from app.core.exceptions import PaymentValidationError
from app.utils.money import coerce_decimal


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _to_utc(value: Any) -> Any:
    if isinstance(value, datetime):
        return as_utc(value)
    return value


Money = Annotated[Decimal, BeforeValidator(coerce_decimal)]
UTCDateTime = Annotated[datetime, BeforeValidator(_to_utc)]


class PyObjectId(ObjectId):
    @classmethod
    def __get_pydantic_core_schema__(cls, source_type: Any, handler: Any):
        from pydantic_core import core_schema

        return core_schema.no_info_plain_validator_function(
            cls.validate,
            serialization=core_schema.plain_serializer_function_ser_schema(
                str, when_used="json"
            ),
        )

    @classmethod
    def validate(cls, value: Any) -> ObjectId:
        if isinstance(value, ObjectId):
            return value
        if isinstance(value, str) and ObjectId.is_valid(value):
            return ObjectId(value)
        raise ValueError("Invalid ObjectId")


def parse_object_id(value: Any) -> ObjectId | None:
    """Return an ObjectId for a well-formed id, else None."""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


class MongoModel(BaseModel):
    id: PyObjectId = Field(default_factory=PyObjectId, alias="_id")
    created_at: UTCDateTime = Field(default_factory=_utcnow)
    updated_at: UTCDateTime = Field(default_factory=_utcnow)

    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
        from_attributes=True
    )

    def to_document(self) -> dict:
        """Dump to a dict ready for insert_one (keeps ObjectId/Decimal types)."""
        return self.model_dump(by_alias=True, mode="python")


def require_object_id(value: Any, entity: str) -> ObjectId:
    """parse_object_id, but a malformed id is a validation failure."""
    oid = parse_object_id(value)
    if oid is None:
        raise PaymentValidationError([f"Invalid {entity} ID format"])
    return oid
