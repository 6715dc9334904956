"""Rating submission and aggregation.

A submission moves through validation, range check, authorization, upsert
and stats refresh in that order; the first failing step ends the request
and nothing after it runs. The service keeps no state between calls, all of
it lives in the repository.
"""
import logging
from typing import Any, Callable, Iterable, List, Optional

from ..core.errors import InvalidArgument, RatingsError, StorageError, Unauthorized
from ..models.rating import (
    ProverbRatingStats,
    RatingSubmitResponse,
    UserRating,
)
from ..repositories.base import RatingsRepository, validate_rating_value

logger = logging.getLogger(__name__)


def _is_blank(value: Any) -> bool:
    return not isinstance(value, str) or not value.strip()


def parse_item_ids(raw: Optional[str]) -> List[str]:
    """Split a comma-separated ``item_ids`` query value, dropping blanks and repeats."""
    if not raw:
        return []
    seen = []
    for part in raw.split(","):
        part = part.strip()
        if part and part not in seen:
            seen.append(part)
    return seen


class RatingsService:

    def __init__(self, repository: RatingsRepository, verify_token: Callable[[str], bool]):
        self.repository = repository
        self._verify_token = verify_token

    def authorize(self, token: Optional[str]):
        if not token or not self._verify_token(token):
            raise Unauthorized("Authentication required")

    async def submit(self, item_id: Any, session_id: Any, value: Any, token: Optional[str]) -> RatingSubmitResponse:
        if _is_blank(item_id) or _is_blank(session_id) or value is None:
            raise InvalidArgument("item_id, session_id, and value are required")
        validate_rating_value(value)
        self.authorize(token)

        rating = await self._call_store(self.repository.upsert_rating(item_id, session_id, value))

        stats = await self._call_store(self.repository.get_rating_stats([item_id]))
        item_stats = next((s for s in stats if s.item_id == item_id), None)
        if item_stats is None:
            logger.warning("No stats visible for item %s right after a write, using the submitted vote", item_id)
            item_stats = ProverbRatingStats(item_id=item_id, average_rating=float(value), total_votes=1)

        logger.info("Accepted rating %s for item %s", value, item_id)
        return RatingSubmitResponse(rating=rating, stats=item_stats)

    async def stats(self, item_ids: Iterable[str], token: Optional[str]) -> List[ProverbRatingStats]:
        self.authorize(token)
        return await self._call_store(self.repository.get_rating_stats(item_ids))

    async def user_ratings(self, session_id: Any, token: Optional[str]) -> List[UserRating]:
        self.authorize(token)
        if _is_blank(session_id):
            raise InvalidArgument("session_id is required")
        return await self._call_store(self.repository.get_user_ratings(session_id))

    async def _call_store(self, operation):
        try:
            return await operation
        except RatingsError:
            raise
        except Exception as e:
            logger.exception("Ratings store call failed")
            raise StorageError("Ratings storage is unavailable") from e
