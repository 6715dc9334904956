from datetime import datetime, timedelta

import mongomock
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

from proverbs.db.mongodb import ensure_rating_indexes
from proverbs.models.rating import Rating  # noqa: F401
from proverbs.repositories import MongoRatingsRepository, SQLRatingsRepository


class FakeClock:
    def __init__(self, start=datetime(2024, 5, 1, 12, 0, 0)):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def clock():
    return FakeClock()

@pytest_asyncio.fixture(scope="function")
async def async_engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test-ratings.db'}", echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)  # ลบตารางก่อน
        await conn.run_sync(SQLModel.metadata.create_all)  # สร้างตารางใหม่
    yield engine
    await engine.dispose()

@pytest_asyncio.fixture
async def session_factory(async_engine):
    return sessionmaker(
        bind=async_engine,
        class_=AsyncSession,
        expire_on_commit=False
    )

@pytest_asyncio.fixture
async def sql_repository(session_factory, clock):
    return SQLRatingsRepository(session_factory, clock=clock)

@pytest.fixture
def mongo_collection():
    collection = mongomock.MongoClient().db.ratings
    ensure_rating_indexes(collection)
    return collection

@pytest.fixture
def mongo_repository(mongo_collection, clock):
    return MongoRatingsRepository(mongo_collection, clock=clock)
