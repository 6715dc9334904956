"""Optimistic star-rating state for one item.

A click shows its effect at once (the speculative view), then the vote is
sent to the server. The server's answer replaces the speculative numbers
verbatim; a failure puts back exactly what was shown before the click.

    IDLE -> PENDING -> CONFIRMED | ROLLED_BACK

Each widget serialises its own submissions through ``pending``. Widgets for
different items do not coordinate.
"""
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Dict, Iterable, Optional

from ..models.rating import (
    MAX_RATING,
    MIN_RATING,
    ProverbRatingStats,
    RatingSubmitResponse,
    is_valid_rating_value,
)

logger = logging.getLogger(__name__)

SubmitRating = Callable[[str, int], Awaitable[RatingSubmitResponse]]


class WidgetState(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"


@dataclass(frozen=True)
class RatingView:
    user_rating: Optional[int]
    average: float
    votes: int


def optimistic_view(view: RatingView, value: int) -> RatingView:
    """Best guess at the aggregate once ``value`` lands, before the server says so."""
    if view.user_rating is None:
        votes = view.votes + 1
        return RatingView(user_rating=value, average=(view.average * view.votes + value) / votes, votes=votes)
    if view.votes <= 0:
        # own vote known but no aggregate loaded for the item yet
        return RatingView(user_rating=value, average=float(value), votes=1)

    average = (view.average * view.votes - view.user_rating + value) / view.votes
    return RatingView(user_rating=value, average=average, votes=view.votes)


class RatingWidget:

    def __init__(
        self,
        item_id: str,
        submit: SubmitRating,
        average: float = 0.0,
        votes: int = 0,
        user_rating: Optional[int] = None,
    ):
        self.item_id = item_id
        self._submit = submit
        self.view = RatingView(user_rating=user_rating, average=average, votes=votes)
        self.state = WidgetState.IDLE
        self.error: Optional[str] = None
        self.hovered: Optional[int] = None

    @property
    def pending(self) -> bool:
        return self.state == WidgetState.PENDING

    @property
    def has_voted(self) -> bool:
        return self.view.user_rating is not None

    @property
    def hover_enabled(self) -> bool:
        return not self.pending and not self.has_voted

    @property
    def displayed_rating(self) -> float:
        if self.hovered is not None:
            return float(self.hovered)
        if self.view.user_rating is not None:
            return float(self.view.user_rating)
        return self.view.average

    def hover(self, value: int):
        if self.hover_enabled:
            self.hovered = value

    def leave(self):
        self.hovered = None

    def click(self, value: int) -> Optional["asyncio.Task[bool]"]:
        """Apply the speculative update now and start submitting ``value``.

        Returns the submission task, or None when a submission for this item
        is already in flight and the click is ignored.
        """
        if not is_valid_rating_value(value):
            raise ValueError(f"rating must be an integer between {MIN_RATING} and {MAX_RATING}")
        if self.pending:
            logger.debug("Ignoring click on item %s, a vote is already in flight", self.item_id)
            return None

        snapshot = self.view
        self.view = optimistic_view(snapshot, value)
        self.state = WidgetState.PENDING
        self.error = None
        self.hovered = None
        return asyncio.ensure_future(self._send(value, snapshot))

    async def rate(self, value: int) -> bool:
        task = self.click(value)
        if task is None:
            return False
        return await task

    def sync(self, stats: Optional[ProverbRatingStats] = None, user_rating: Optional[int] = None):
        """Adopt freshly loaded server values; ignored while a vote is in flight."""
        if self.pending:
            return
        self.view = RatingView(
            user_rating=user_rating if user_rating is not None else self.view.user_rating,
            average=stats.average_rating if stats is not None else self.view.average,
            votes=stats.total_votes if stats is not None else self.view.votes,
        )

    async def _send(self, value: int, snapshot: RatingView) -> bool:
        try:
            result = await self._submit(self.item_id, value)
        except asyncio.CancelledError:
            self._roll_back(snapshot, "Rating submission was cancelled")
            raise
        except Exception as e:
            self._roll_back(snapshot, str(e) or e.__class__.__name__)
            return False

        self.view = RatingView(
            user_rating=result.rating.value,
            average=result.stats.average_rating,
            votes=result.stats.total_votes,
        )
        self.state = WidgetState.CONFIRMED
        return True

    def _roll_back(self, snapshot: RatingView, message: str):
        logger.warning("Rating for item %s failed, rolling back: %s", self.item_id, message)
        self.view = snapshot
        self.error = message
        self.state = WidgetState.ROLLED_BACK


class RatingBoard:
    """One widget per item, fed from a single stats query and the session's own votes."""

    def __init__(self, api):
        self.api = api
        self.widgets: Dict[str, RatingWidget] = {}

    async def load(self, item_ids: Iterable[str]) -> Dict[str, RatingWidget]:
        ids = list(dict.fromkeys(item_ids))
        stats = await self.api.get_rating_stats(ids)
        own = await self.api.get_user_ratings()

        for item_id in ids:
            widget = self.widgets.get(item_id)
            if widget is None:
                item_stats = stats.get(item_id)
                self.widgets[item_id] = RatingWidget(
                    item_id,
                    self.api.submit_rating,
                    average=item_stats.average_rating if item_stats else 0.0,
                    votes=item_stats.total_votes if item_stats else 0,
                    user_rating=own.get(item_id),
                )
            else:
                widget.sync(stats.get(item_id), own.get(item_id))
        return self.widgets

    def widget(self, item_id: str) -> RatingWidget:
        return self.widgets[item_id]
