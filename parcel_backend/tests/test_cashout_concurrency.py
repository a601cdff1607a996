"""
Cash-out under concurrency.

Each request gets its own connection to a file-backed SQLite database so
competing cash-outs really race on the same row.
"""

import asyncio
import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

from parcel_backend.app.db.session import Base
from parcel_backend.app.domain.lifecycle.manager import ParcelLifecycleManager
from parcel_backend.app.core.exceptions import ConflictError
from parcel_backend.app.models.parcel import Parcel
from parcel_backend.app.models.parcel_enums import CashoutStatus
from parcel_backend.app.models.rider import Rider
from parcel_backend.app.schemas.parcel import ParcelCreate
from parcel_backend.tests.factories import ADMIN_EMAIL, SENDER_EMAIL, create_rider, parcel_payload


async def _open_file_engine(path, immediate: bool):
    engine = create_async_engine(f"sqlite+aiosqlite:///{path}", connect_args={"timeout": 30})

    if immediate:
        # Take the write lock when the transaction starts so competing
        # writers queue on the busy timeout instead of failing to upgrade.
        @event.listens_for(engine.sync_engine, "connect")
        def _disable_driver_transactions(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine.sync_engine, "begin")
        def _begin_immediate(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    return engine


async def _seed_delivered_parcel(session_factory):
    async with session_factory() as session:
        manager = ParcelLifecycleManager(session)
        rider = await create_rider(session)
        parcel = await manager.create_parcel(SENDER_EMAIL, ParcelCreate(**parcel_payload()).model_dump())
        await manager.assign(parcel.id, rider.id, ADMIN_EMAIL)
        await manager.advance(parcel.id, "delivered", rider.email)
        return parcel.id, rider.id


async def _load(session_factory, model, pk):
    async with session_factory() as session:
        return await session.get(model, pk)


@pytest.fixture
async def immediate_engine(tmp_path):
    engine = await _open_file_engine(tmp_path / "cashout_race.db", immediate=True)
    yield engine
    await engine.dispose()


@pytest.fixture
async def deferred_engine(tmp_path):
    engine = await _open_file_engine(tmp_path / "cashout_interleave.db", immediate=False)
    yield engine
    await engine.dispose()


@pytest.mark.asyncio
async def test_concurrent_cash_outs_credit_rider_once(immediate_engine):
    session_factory = async_sessionmaker(immediate_engine, class_=AsyncSession, expire_on_commit=False)
    parcel_id, rider_id = await _seed_delivered_parcel(session_factory)

    async def attempt():
        async with session_factory() as session:
            try:
                await ParcelLifecycleManager(session).cash_out(parcel_id)
                return "cashed_out"
            except ConflictError:
                return "conflict"

    results = await asyncio.gather(*(attempt() for _ in range(6)))

    assert results.count("cashed_out") == 1
    assert results.count("conflict") == 5

    rider = await _load(session_factory, Rider, rider_id)
    parcel = await _load(session_factory, Parcel, parcel_id)
    assert rider.total_earnings == 800
    assert parcel.cashed_out_status == CashoutStatus.CASHED_OUT
    assert parcel.rider_earning == 800


class _InterleavingManager(ParcelLifecycleManager):
    """Lets a competing cash-out commit right after this manager first reads the parcel."""

    def __init__(self, db, competitor):
        super().__init__(db)
        self._competitor = competitor

    async def get_parcel(self, parcel_id):
        parcel = await super().get_parcel(parcel_id)
        if self._competitor is not None:
            competitor, self._competitor = self._competitor, None
            await competitor()
        return parcel


@pytest.mark.asyncio
async def test_stale_read_cash_out_loses(deferred_engine):
    session_factory = async_sessionmaker(deferred_engine, class_=AsyncSession, expire_on_commit=False)
    parcel_id, rider_id = await _seed_delivered_parcel(session_factory)

    async def competing_cash_out():
        async with session_factory() as session:
            await ParcelLifecycleManager(session).cash_out(parcel_id)

    async with session_factory() as session:
        slow = _InterleavingManager(session, competing_cash_out)
        with pytest.raises(ConflictError):
            await slow.cash_out(parcel_id)

    rider = await _load(session_factory, Rider, rider_id)
    assert rider.total_earnings == 800
