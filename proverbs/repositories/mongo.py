import logging
import warnings
from typing import Callable, Iterable, List, Optional

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, OperationFailure, PyMongoError

from ..core.errors import AggregationFallbackUsed, StorageError
from ..models.rating import ProverbRatingStats, RatingRead, UserRating
from ..utils.utils import utcnow
from .base import RatingsRepository, aggregate_ratings, validate_rating_value

logger = logging.getLogger(__name__)


def _to_read(doc) -> RatingRead:
    return RatingRead(
        id=str(doc["_id"]),
        item_id=doc["item_id"],
        session_id=doc["session_id"],
        value=doc["value"],
        created_at=doc["created_at"],
        updated_at=doc["updated_at"],
    )


class MongoRatingsRepository(RatingsRepository):
    """Ratings stored as documents in a collection with a unique (item_id, session_id) index.

    Statistics prefer a server-side ``$group`` pipeline. When the server
    refuses it, or ``server_aggregate`` is off, the matching documents are
    fetched and reduced here instead; both paths give the same numbers.
    """

    def __init__(self, collection, server_aggregate: bool = True, clock: Callable = utcnow):
        self.collection = collection
        self.server_aggregate = server_aggregate
        self._clock = clock

    async def upsert_rating(self, item_id: str, session_id: str, value: int) -> RatingRead:
        validate_rating_value(value)
        now = self._clock()

        try:
            doc = self._find_and_upsert(item_id, session_id, value, now)
        except DuplicateKeyError:
            # a concurrent upsert for the same pair inserted first; the unique
            # index turned our insert into a conflict, so this write is now an update
            try:
                doc = self._find_and_upsert(item_id, session_id, value, now)
            except PyMongoError as e:
                logger.exception("Failed to upsert rating for item %s", item_id)
                raise StorageError(f"Failed to upsert rating: {e.__class__.__name__}") from e
        except PyMongoError as e:
            logger.exception("Failed to upsert rating for item %s", item_id)
            raise StorageError(f"Failed to upsert rating: {e.__class__.__name__}") from e

        return _to_read(doc)

    def _find_and_upsert(self, item_id, session_id, value, now):
        return self.collection.find_one_and_update(
            {"item_id": item_id, "session_id": session_id},
            {
                "$set": {"value": value, "updated_at": now},
                "$setOnInsert": {"created_at": now},
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )

    async def get_rating_stats(self, item_ids: Iterable[str]) -> List[ProverbRatingStats]:
        ids = list(set(item_ids))
        if not ids:
            return []

        if self.server_aggregate:
            try:
                return self._aggregate_on_server(ids)
            except OperationFailure as e:
                logger.warning("Server-side rating aggregation unavailable (%s), aggregating manually", e)
                warnings.warn(
                    "rating stats computed with client-side aggregation",
                    AggregationFallbackUsed,
                    stacklevel=2,
                )
            except PyMongoError as e:
                logger.exception("Failed to aggregate ratings")
                raise StorageError(f"Failed to fetch rating stats: {e.__class__.__name__}") from e

        return self._aggregate_manually(ids)

    def _aggregate_on_server(self, ids: List[str]) -> List[ProverbRatingStats]:
        pipeline = [
            {"$match": {"item_id": {"$in": ids}}},
            {
                "$group": {
                    "_id": "$item_id",
                    "average_rating": {"$avg": "$value"},
                    "total_votes": {"$sum": 1},
                }
            },
        ]
        return [
            ProverbRatingStats(
                item_id=row["_id"],
                average_rating=float(row["average_rating"]),
                total_votes=row["total_votes"],
            )
            for row in self.collection.aggregate(pipeline)
        ]

    def _aggregate_manually(self, ids: List[str]) -> List[ProverbRatingStats]:
        try:
            cursor = self.collection.find(
                {"item_id": {"$in": ids}},
                {"_id": 0, "item_id": 1, "value": 1},
            )
            rows = [(doc["item_id"], doc["value"]) for doc in cursor]
        except PyMongoError as e:
            logger.exception("Failed to fetch ratings for manual aggregation")
            raise StorageError(f"Failed to fetch ratings: {e.__class__.__name__}") from e

        return aggregate_ratings(rows)

    async def get_user_ratings(self, session_id: str) -> List[UserRating]:
        try:
            cursor = self.collection.find(
                {"session_id": session_id},
                {"_id": 0, "item_id": 1, "value": 1},
            )
            return [UserRating(item_id=doc["item_id"], value=doc["value"]) for doc in cursor]
        except PyMongoError as e:
            logger.exception("Failed to fetch ratings for a session")
            raise StorageError(f"Failed to fetch user ratings: {e.__class__.__name__}") from e

    async def get_rating(self, item_id: str, session_id: str) -> Optional[RatingRead]:
        try:
            doc = self.collection.find_one({"item_id": item_id, "session_id": session_id})
        except PyMongoError as e:
            logger.exception("Failed to fetch rating for item %s", item_id)
            raise StorageError(f"Failed to fetch rating: {e.__class__.__name__}") from e

        return _to_read(doc) if doc is not None else None
