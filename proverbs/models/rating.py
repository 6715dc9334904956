from pydantic import BaseModel, ConfigDict
from sqlalchemy import CheckConstraint, Column, DateTime, UniqueConstraint
from sqlmodel import SQLModel, Field
from typing import Any, List, Optional
from datetime import datetime

from ..utils.utils import utcnow

MIN_RATING = 1
MAX_RATING = 5


def is_valid_rating_value(value) -> bool:
    # bool is an int subclass but never a star count
    return (
        isinstance(value, int)
        and not isinstance(value, bool)
        and MIN_RATING <= value <= MAX_RATING
    )


class Rating(SQLModel, table=True):
    __tablename__ = "ratings"
    __table_args__ = (
        UniqueConstraint("item_id", "session_id", name="uq_ratings_item_session"),
        CheckConstraint("value >= 1 AND value <= 5", name="ck_ratings_value_range"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    item_id: str = Field(max_length=255, index=True)
    session_id: str = Field(max_length=255, index=True)
    value: int
    # naive UTC columns, stored and read back exactly as the clock produced them
    created_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime(timezone=False), nullable=False))
    updated_at: datetime = Field(default_factory=utcnow, sa_column=Column(DateTime(timezone=False), nullable=False))


class RatingCreate(BaseModel):
    # presence and range are checked by RatingsService, not here
    item_id: Optional[str] = None
    session_id: Optional[str] = None
    value: Optional[Any] = None


class RatingRead(BaseModel):
    id: str
    item_id: str
    session_id: str
    value: int
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ProverbRatingStats(BaseModel):
    item_id: str
    average_rating: float
    total_votes: int


class UserRating(BaseModel):
    item_id: str
    value: int


class RatingSubmitResponse(BaseModel):
    rating: RatingRead
    stats: ProverbRatingStats


class RatingStatsResponse(BaseModel):
    stats: List[ProverbRatingStats]


class UserRatingsResponse(BaseModel):
    ratings: List[UserRating]
