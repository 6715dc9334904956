import logging
from typing import Dict, Iterable, Optional

import httpx

from ..models.rating import (
    ProverbRatingStats,
    RatingStatsResponse,
    RatingSubmitResponse,
    UserRatingsResponse,
)
from .session import ClientSession

logger = logging.getLogger(__name__)


class RatingsAPIError(Exception):
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class RatingsAPI:
    """Async HTTP client for the auth and ratings endpoints.

    No retries and no timeout of its own; both are left to the transport.
    """

    def __init__(self, session: ClientSession, base_url: str = "", http_client: Optional[httpx.AsyncClient] = None):
        self.session = session
        self._http = http_client or httpx.AsyncClient(base_url=base_url)

    async def aclose(self):
        await self._http.aclose()

    async def login(self, pin: str):
        data = await self._request("POST", "/api/auth", json={"pin": pin}, authenticated=False)
        self.session.store_token(data["token"], data.get("expires_in"))

    def logout(self):
        self.session.clear()

    async def submit_rating(self, item_id: str, value: int) -> RatingSubmitResponse:
        data = await self._request(
            "POST",
            "/api/ratings",
            json={"item_id": item_id, "session_id": self.session.session_id, "value": value},
        )
        return RatingSubmitResponse.model_validate(data)

    async def get_rating_stats(self, item_ids: Iterable[str]) -> Dict[str, ProverbRatingStats]:
        ids = [item_id for item_id in item_ids if item_id]
        if not ids:
            return {}
        # the query is a comma-separated list, so an id containing a comma cannot be sent intact
        unsendable = [item_id for item_id in ids if "," in item_id]
        if unsendable:
            raise ValueError(f"item ids must not contain commas: {unsendable!r}")
        data = await self._request("GET", "/api/ratings", params={"item_ids": ",".join(ids)})
        return {stats.item_id: stats for stats in RatingStatsResponse.model_validate(data).stats}

    async def get_user_ratings(self) -> Dict[str, int]:
        data = await self._request("GET", "/api/ratings", params={"session_id": self.session.session_id})
        return {r.item_id: r.value for r in UserRatingsResponse.model_validate(data).ratings}

    async def _request(self, method: str, url: str, authenticated: bool = True, **kwargs):
        headers = {}
        if authenticated:
            token = self.session.token
            if token is None:
                raise RatingsAPIError("Not logged in", status_code=401)
            headers["Authorization"] = f"Bearer {token}"

        try:
            response = await self._http.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            logger.error("%s %s failed: %s", method, url, e)
            raise RatingsAPIError(f"Request failed: {e.__class__.__name__}") from e

        if response.status_code == 401 and authenticated:
            # the server no longer accepts our token
            self.session.clear()

        if response.is_error:
            try:
                body = response.json()
            except ValueError:
                body = None
            detail = body.get("detail") if isinstance(body, dict) else None
            raise RatingsAPIError(
                detail or f"HTTP error! status: {response.status_code}",
                status_code=response.status_code,
            )

        return response.json()
