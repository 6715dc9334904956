from sqlmodel import SQLModel
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker

from proverbs.models.rating import Rating  # noqa: F401  registers the table

engine = None


def init_db(settings):
    global engine

    engine = create_async_engine(
        settings.DATABASE_URL,
        echo=settings.SQL_ECHO,
        future=True,
    )


def get_session_factory():
    if engine is None:
        raise RuntimeError("Database engine is not initialized")
    return sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def create_tables():
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)


async def close_session():
    global engine
    if engine is None:
        raise RuntimeError("Database engine is not initialized")
    await engine.dispose()
    engine = None
