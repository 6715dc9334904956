from .base import RatingsRepository, aggregate_ratings, validate_rating_value
from .mongo import MongoRatingsRepository
from .sql import SQLRatingsRepository

__all__ = [
    "RatingsRepository",
    "MongoRatingsRepository",
    "SQLRatingsRepository",
    "aggregate_ratings",
    "validate_rating_value",
]
