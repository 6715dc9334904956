from .api import RatingsAPI, RatingsAPIError
from .session import ClientSession
from .widget import RatingBoard, RatingView, RatingWidget, WidgetState, optimistic_view

__all__ = [
    "ClientSession",
    "RatingBoard",
    "RatingView",
    "RatingWidget",
    "RatingsAPI",
    "RatingsAPIError",
    "WidgetState",
    "optimistic_view",
]
