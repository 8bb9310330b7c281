import logging
from datetime import timezone
from decimal import Decimal
from typing import Any, Awaitable, Callable, Optional, TypeVar

from bson.codec_options import CodecOptions, TypeCodec, TypeRegistry
from bson.decimal128 import Decimal128
from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorClientSession,
    AsyncIOMotorDatabase,
)

from app.core.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


class DecimalCodec(TypeCodec):
    """Store Decimal amounts as Decimal128 and read them back as Decimal."""

    python_type = Decimal
    bson_type = Decimal128

    def transform_python(self, value: Decimal) -> Decimal128:
        return Decimal128(value)

    def transform_bson(self, value: Decimal128) -> Decimal:
        return value.to_decimal()


CODEC_OPTIONS = CodecOptions(
    type_registry=TypeRegistry([DecimalCodec()]),
    tz_aware=True,
    tzinfo=timezone.utc,
)


class MongoDatabase:
    """MongoDB connection manager."""

    client: AsyncIOMotorClient = None
    db: AsyncIOMotorDatabase = None

mongodb = MongoDatabase()

async def connect_to_mongo():
    """Connect to MongoDB."""
    mongodb.client = AsyncIOMotorClient(settings.MONGODB_URI)
    mongodb.db = mongodb.client.get_database(
        settings.MONGODB_DB, codec_options=CODEC_OPTIONS
    )

    await create_indexes(mongodb.db)
    logger.info("Connected to MongoDB: %s", settings.MONGODB_DB)
    if not settings.MONGODB_TRANSACTIONS:
        logger.warning(
            "MongoDB transactions disabled: concurrent payments for the same "
            "client are not serialised"
        )

async def close_mongo_connection():
    """Disconnect from MongoDB."""
    if mongodb.client is not None:
        mongodb.client.close()
    logger.info("Disconnected from MongoDB")

async def create_indexes(db: AsyncIOMotorDatabase):
    """Create database indexes."""
    # Client indexes
    await db["clients"].create_index("customer_code", unique=True)
    await db["clients"].create_index("company_name")

    # Invoice indexes
    await db["invoices"].create_index("number", unique=True)
    await db["invoices"].create_index("client")
    await db["invoices"].create_index([("date", -1)])

    # Payment indexes
    await db["payments"].create_index("client")
    await db["payments"].create_index("invoice")
    await db["payments"].create_index([("date", -1)])

def get_db() -> AsyncIOMotorDatabase:
    """Get database instance."""
    return mongodb.db


async def run_in_transaction(
    db: AsyncIOMotorDatabase,
    callback: Callable[[Optional[AsyncIOMotorClientSession]], Awaitable[T]],
) -> T:
    """
    Run ``callback(session)`` as one unit of work.

    with_transaction re-runs the callback on transient errors such as write
    conflicts, so the callback must re-read everything it depends on. With
    transactions disabled the callback gets ``None`` and runs unguarded.
    """
    if not settings.MONGODB_TRANSACTIONS:
        return await callback(None)

    async with await db.client.start_session() as session:
        return await session.with_transaction(callback)
