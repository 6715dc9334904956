from functools import partial
from typing import Optional, Union

from fastapi import APIRouter, Depends, Request

from ..core.errors import InvalidArgument
from ..models.rating import (
    RatingCreate,
    RatingStatsResponse,
    RatingSubmitResponse,
    UserRatingsResponse,
)
from ..services.ratings import RatingsService, parse_item_ids
from ..utils.auth import oauth2_scheme, verify_token

router = APIRouter()


def get_ratings_service(request: Request) -> RatingsService:
    return RatingsService(
        request.app.state.ratings_repository,
        partial(verify_token, settings=request.app.state.settings),
    )


@router.post("", response_model=RatingSubmitResponse)
async def submit_rating(
    rating: RatingCreate,
    token: Optional[str] = Depends(oauth2_scheme),
    service: RatingsService = Depends(get_ratings_service),
):
    return await service.submit(rating.item_id, rating.session_id, rating.value, token)


@router.get("", response_model=Union[RatingStatsResponse, UserRatingsResponse])
async def get_ratings(
    item_ids: Optional[str] = None,
    session_id: Optional[str] = None,
    token: Optional[str] = Depends(oauth2_scheme),
    service: RatingsService = Depends(get_ratings_service),
):
    if session_id is not None:
        ratings = await service.user_ratings(session_id, token)
        return UserRatingsResponse(ratings=ratings)

    if item_ids is not None:
        stats = await service.stats(parse_item_ids(item_ids), token)
        return RatingStatsResponse(stats=stats)

    service.authorize(token)
    raise InvalidArgument("Either item_ids or session_id query parameter is required")
