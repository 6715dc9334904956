"""Storage contract shared by every ratings backend.

Each backend is selected once at process start and is expected to behave
identically from the caller's side: one row per (item_id, session_id),
last write wins, statistics computed on read.
"""
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional, Tuple

from ..core.errors import InvalidArgument
from ..models.rating import (
    MAX_RATING,
    MIN_RATING,
    ProverbRatingStats,
    RatingRead,
    UserRating,
    is_valid_rating_value,
)


def validate_rating_value(value) -> int:
    if not is_valid_rating_value(value):
        raise InvalidArgument(
            f"rating must be an integer between {MIN_RATING} and {MAX_RATING}"
        )
    return value


def aggregate_ratings(rows: Iterable[Tuple[str, int]]) -> List[ProverbRatingStats]:
    """Group (item_id, value) pairs by item and average them.

    Used when the store cannot aggregate server-side. Items without rows
    never appear in the result.
    """
    totals: Dict[str, List[int]] = {}
    for item_id, value in rows:
        entry = totals.setdefault(item_id, [0, 0])
        entry[0] += value
        entry[1] += 1

    return [
        ProverbRatingStats(
            item_id=item_id,
            average_rating=float(total) / count,
            total_votes=count,
        )
        for item_id, (total, count) in totals.items()
    ]


class RatingsRepository(ABC):

    @abstractmethod
    async def upsert_rating(self, item_id: str, session_id: str, value: int) -> RatingRead:
        """Insert or replace the rating of ``session_id`` for ``item_id``."""

    @abstractmethod
    async def get_rating_stats(self, item_ids: Iterable[str]) -> List[ProverbRatingStats]:
        """Return stats for every item in ``item_ids`` that has at least one vote."""

    @abstractmethod
    async def get_user_ratings(self, session_id: str) -> List[UserRating]:
        ...

    @abstractmethod
    async def get_rating(self, item_id: str, session_id: str) -> Optional[RatingRead]:
        ...
