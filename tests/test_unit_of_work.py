"""Tests for run_in_transaction and the Decimal codec."""
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson.decimal128 import Decimal128

from app.core.config import settings
from app.db.mongo import DecimalCodec, run_in_transaction


def mock_db_with_session():
    session = MagicMock()
    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=False)

    async def with_transaction(callback):
        return await callback(session)

    session.with_transaction = AsyncMock(side_effect=with_transaction)

    db = MagicMock()
    db.client.start_session = AsyncMock(return_value=session)
    return db, session


@pytest.mark.asyncio
async def test_callback_runs_inside_session(monkeypatch):
    monkeypatch.setattr(settings, "MONGODB_TRANSACTIONS", True)
    db, session = mock_db_with_session()
    seen = []

    async def callback(s):
        seen.append(s)
        return "done"

    assert await run_in_transaction(db, callback) == "done"
    assert seen == [session]
    db.client.start_session.assert_awaited_once()
    session.__aexit__.assert_awaited_once()


@pytest.mark.asyncio
async def test_errors_propagate_out_of_transaction(monkeypatch):
    monkeypatch.setattr(settings, "MONGODB_TRANSACTIONS", True)
    db, session = mock_db_with_session()

    async def callback(s):
        raise RuntimeError("abort")

    with pytest.raises(RuntimeError, match="abort"):
        await run_in_transaction(db, callback)


@pytest.mark.asyncio
async def test_without_transactions_no_session_is_opened(no_transactions):
    db = MagicMock()
    db.client.start_session = AsyncMock()
    callback = AsyncMock(return_value=42)

    assert await run_in_transaction(db, callback) == 42

    callback.assert_awaited_once_with(None)
    db.client.start_session.assert_not_called()


def test_decimal_codec_round_trip_keeps_cents():
    codec = DecimalCodec()

    stored = codec.transform_python(Decimal("100.01"))

    assert isinstance(stored, Decimal128)
    assert codec.transform_bson(stored) == Decimal("100.01")
