import logging
from typing import Callable, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from ..core.errors import StorageError
from ..models.rating import ProverbRatingStats, Rating, RatingRead, UserRating
from ..utils.utils import utcnow
from .base import RatingsRepository, validate_rating_value

logger = logging.getLogger(__name__)


def _insert_for(dialect_name: str):
    if dialect_name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect_name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise StorageError(f"Upsert is not supported on {dialect_name} databases")
    return insert


def _to_read(row: Rating) -> RatingRead:
    return RatingRead(
        id=str(row.id),
        item_id=row.item_id,
        session_id=row.session_id,
        value=row.value,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


class SQLRatingsRepository(RatingsRepository):
    """Ratings stored in a relational table with a unique (item_id, session_id) key.

    ``session_factory`` is an async sessionmaker; every operation opens its own
    session so the repository can be shared by all requests.
    """

    def __init__(self, session_factory, clock: Callable = utcnow):
        self._session_factory = session_factory
        self._clock = clock

    async def upsert_rating(self, item_id: str, session_id: str, value: int) -> RatingRead:
        validate_rating_value(value)
        now = self._clock()
        table = Rating.__table__

        try:
            async with self._session_factory() as session:
                insert = _insert_for(session.bind.dialect.name)
                stmt = (
                    insert(table)
                    .values(
                        item_id=item_id,
                        session_id=session_id,
                        value=value,
                        created_at=now,
                        updated_at=now,
                    )
                    .on_conflict_do_update(
                        index_elements=[table.c.item_id, table.c.session_id],
                        set_={"value": value, "updated_at": now},
                    )
                    .returning(*table.c)
                )
                # the row this statement wrote, not whatever a later writer left behind
                row = (await session.execute(stmt)).one()
                rating = _to_read(row)
                await session.commit()
        except SQLAlchemyError as e:
            logger.exception("Failed to upsert rating for item %s", item_id)
            raise StorageError(f"Failed to upsert rating: {e.__class__.__name__}") from e

        return rating

    async def get_rating_stats(self, item_ids: Iterable[str]) -> List[ProverbRatingStats]:
        ids = list(set(item_ids))
        if not ids:
            return []

        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(
                        Rating.item_id,
                        func.avg(Rating.value).label("average_rating"),
                        func.count(Rating.id).label("total_votes"),
                    )
                    .where(Rating.item_id.in_(ids))
                    .group_by(Rating.item_id)
                )
                rows = result.all()
        except SQLAlchemyError as e:
            logger.exception("Failed to aggregate ratings")
            raise StorageError(f"Failed to fetch rating stats: {e.__class__.__name__}") from e

        return [
            ProverbRatingStats(
                item_id=item_id,
                average_rating=float(average_rating),
                total_votes=total_votes,
            )
            for item_id, average_rating, total_votes in rows
        ]

    async def get_user_ratings(self, session_id: str) -> List[UserRating]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Rating.item_id, Rating.value).where(Rating.session_id == session_id)
                )
                rows = result.all()
        except SQLAlchemyError as e:
            logger.exception("Failed to fetch ratings for a session")
            raise StorageError(f"Failed to fetch user ratings: {e.__class__.__name__}") from e

        return [UserRating(item_id=item_id, value=value) for item_id, value in rows]

    async def get_rating(self, item_id: str, session_id: str) -> Optional[RatingRead]:
        try:
            async with self._session_factory() as session:
                row = await self._fetch(session, item_id, session_id)
        except SQLAlchemyError as e:
            logger.exception("Failed to fetch rating for item %s", item_id)
            raise StorageError(f"Failed to fetch rating: {e.__class__.__name__}") from e

        return _to_read(row) if row is not None else None

    async def _fetch(self, session, item_id: str, session_id: str) -> Optional[Rating]:
        result = await session.execute(
            select(Rating)
            .where(Rating.item_id == item_id, Rating.session_id == session_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()
