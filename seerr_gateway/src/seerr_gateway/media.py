# src/seerr_gateway/media.py

import asyncio
import logging
from typing import Any, Dict, List, Optional

from .upstream import UpstreamClient

logger = logging.getLogger(__name__)

DEFAULT_MEDIA_TYPE = "movie"


def media_id(item: Dict[str, Any]) -> Optional[Any]:
    return item.get("tmdbId") or item.get("id")


def normalize_items(results: Any) -> List[Any]:
    """Promote `tmdbId` from `id` where missing; everything else passes through."""
    if not isinstance(results, list):
        return []
    normalized = []
    for item in results:
        if isinstance(item, dict):
            tmdb_id = media_id(item)
            if tmdb_id:
                item = {**item, "tmdbId": tmdb_id}
        normalized.append(item)
    return normalized


def with_results(data: Any, results: List[Any]) -> Dict[str, Any]:
    """Copy an upstream list envelope (page info and such) with new results."""
    envelope = dict(data) if isinstance(data, dict) else {}
    envelope["results"] = results
    return envelope


async def _hydrate_item(client: UpstreamClient, item: Any) -> Any:
    if not isinstance(item, dict):
        return item
    tmdb_id = media_id(item)
    if not tmdb_id:
        return item

    media_type = item.get("mediaType") or DEFAULT_MEDIA_TYPE
    try:
        detail = await client.request(f"/api/v1/{media_type}/{tmdb_id}")
    except Exception:
        logger.exception("Detail fetch for %s/%s raised", media_type, tmdb_id)
        return item

    if detail.success and isinstance(detail.data, dict):
        merged = {**item, **detail.data}
        merged["tmdbId"] = tmdb_id
        return merged
    return item


async def hydrate_items(client: UpstreamClient, results: Any) -> List[Any]:
    """
    Enrich each list entry with its full detail record.

    One detail call per item, all in flight together. Items without an id
    and items whose detail call fails come back unchanged; output length
    and order always match the input.
    """
    if not isinstance(results, list):
        return []
    return list(await asyncio.gather(*(_hydrate_item(client, item) for item in results)))


async def _hydrate_request(client: UpstreamClient, request: Any) -> Any:
    if not isinstance(request, dict):
        return request
    media = request.get("media")
    tmdb_id = media.get("tmdbId") if isinstance(media, dict) else None
    request_type = request.get("type")
    if not tmdb_id or not request_type:
        return request

    try:
        detail = await client.request(f"/api/v1/{request_type}/{tmdb_id}")
    except Exception:
        logger.exception("Detail fetch for request %s raised", request.get("id"))
        return request

    if detail.success and isinstance(detail.data, dict):
        return {**request, "mediaMetadata": {**detail.data, "mediaType": request_type}}
    return request


async def hydrate_requests(client: UpstreamClient, results: Any) -> List[Any]:
    """Attach the detail record of each request's media under `mediaMetadata`."""
    if not isinstance(results, list):
        return []
    return list(await asyncio.gather(*(_hydrate_request(client, request) for request in results)))
