# src/seerr_gateway/aggregator.py

import asyncio
import logging
from datetime import date, datetime, timezone
from typing import Any, Callable, Dict, Optional

from .exceptions import UpstreamError
from .media import hydrate_items, hydrate_requests, normalize_items, with_results
from .models import UpstreamResult
from .upstream import UpstreamClient

logger = logging.getLogger(__name__)


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


class DashboardAggregator:
    """
    Builds the discovery lists and the combined dashboard payload.

    Each list is a branch: one upstream call followed by normalization or
    hydration. A branch raises UpstreamError when its upstream call fails;
    `dashboard()` runs all five together and reports a failed branch as None
    without disturbing the others.
    """

    # (payload slot, branch method)
    BRANCHES = (
        ("recent", "recently_added"),
        ("trending", "trending"),
        ("popularMovies", "popular_movies"),
        ("popularTv", "popular_tv"),
        ("recentRequests", "recent_requests"),
    )

    def __init__(
            self,
            client: UpstreamClient,
            recently_added_take: int = 20,
            recent_requests_take: int = 10,
            today: Callable[[], date] = _utc_today,
    ):
        self._client = client
        self._recently_added_take = recently_added_take
        self._recent_requests_take = recent_requests_take
        self._today = today

    async def _fetch_list(self, endpoint: str, what: str) -> Any:
        result = await self._client.request(endpoint)
        if not (result.success and result.data is not None):
            raise UpstreamError(result, f"Failed to fetch {what}")
        if not isinstance(result.data, dict):
            raise UpstreamError(
                UpstreamResult(success=False, message=f"Unexpected response for {what}", status_code=result.status_code)
            )
        return result.data

    async def recently_added(self) -> Dict[str, Any]:
        data = await self._fetch_list(
            f"/api/v1/media?filter=allavailable&take={self._recently_added_take}&sort=mediaAdded",
            "recent",
        )
        return with_results(data, await hydrate_items(self._client, data.get("results")))

    async def trending(self) -> Dict[str, Any]:
        data = await self._fetch_list("/api/v1/discover/trending?page=1", "trending")
        return with_results(data, normalize_items(data.get("results")))

    async def popular_movies(self) -> Dict[str, Any]:
        release_date = self._today().isoformat()
        data = await self._fetch_list(
            f"/api/v1/discover/movies?page=1&primaryReleaseDateGte={release_date}",
            "popular movies",
        )
        return with_results(data, normalize_items(data.get("results")))

    async def popular_tv(self) -> Dict[str, Any]:
        data = await self._fetch_list("/api/v1/discover/tv?page=1", "popular tv")
        return with_results(data, normalize_items(data.get("results")))

    async def recent_requests(self) -> Dict[str, Any]:
        data = await self._fetch_list(
            f"/api/v1/request?filter=all&take={self._recent_requests_take}&sort=modified&skip=0",
            "recent requests",
        )
        return with_results(data, await hydrate_requests(self._client, data.get("results")))

    async def dashboard(self) -> Dict[str, Optional[Dict[str, Any]]]:
        branches = [getattr(self, method)() for _, method in self.BRANCHES]
        outcomes = await asyncio.gather(*branches, return_exceptions=True)

        payload: Dict[str, Optional[Dict[str, Any]]] = {}
        for (slot, _), outcome in zip(self.BRANCHES, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning("Dashboard branch '%s' failed: %s", slot, outcome)
                payload[slot] = None
            else:
                payload[slot] = outcome
        return payload
