# Incremental-loading client for GET /api/spots.

import asyncio
from dataclasses import dataclass
from typing import Dict, List, Optional

import httpx
import structlog
from pydantic import ValidationError

from spotmap.models.dto import BoundingBox, Spot, SpotsResponse
from spotmap.services.pagination import next_offset

logger = structlog.get_logger(__name__)


class SpotsFetchError(Exception):
    """A page could not be fetched; the caller may retry."""


@dataclass(frozen=True)
class QueryKey:
    """Identity of a listing: pages fetched under another key are not mixed in."""
    bounds: Optional[BoundingBox] = None
    search: str = ""
    limit: int = 100

    def params(self, offset: int) -> Dict[str, str]:
        params = {"limit": str(self.limit), "offset": str(offset)}
        if self.search:
            params["search"] = self.search
        if self.bounds is not None:
            params["minLat"] = repr(self.bounds.min_lat)
            params["maxLat"] = repr(self.bounds.max_lat)
            params["minLon"] = repr(self.bounds.min_lon)
            params["maxLon"] = repr(self.bounds.max_lon)
        return params


class SpotsClient:
    """Thin async wrapper around httpx for the spots endpoint."""

    def __init__(self, base_url: str = "", client: Optional[httpx.AsyncClient] = None, timeout: float = 10.0):
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def fetch_page(self, key: QueryKey, offset: int) -> SpotsResponse:
        try:
            response = await self._client.get("/api/spots", params=key.params(offset))
            response.raise_for_status()
            return SpotsResponse.model_validate(response.json())
        except httpx.TimeoutException as e:
            logger.warning("spots_fetch_timeout", offset=offset)
            raise SpotsFetchError("Timed out loading spots") from e
        except httpx.HTTPStatusError as e:
            logger.warning("spots_fetch_failed", status_code=e.response.status_code, offset=offset)
            raise SpotsFetchError("Failed to fetch spots") from e
        except (httpx.HTTPError, ValueError, ValidationError) as e:
            logger.warning("spots_fetch_failed", error=str(e), offset=offset)
            raise SpotsFetchError("Failed to fetch spots") from e

    async def aclose(self) -> None:
        await self._client.aclose()


class InfiniteSpotsLoader:
    """
    Accumulates pages of one listing.

    ``load_more`` calls are serialized by a lock, so two requests never claim
    the same offset. ``reset`` starts a new listing; any response that comes
    back for an older listing is dropped on arrival. A failed page leaves the
    already-loaded pages untouched and records ``error`` until the next
    successful load.
    """

    def __init__(self, client: SpotsClient):
        self.client = client
        self.key: Optional[QueryKey] = None
        self.error: Optional[str] = None
        self.loading = False
        self._pages: List[SpotsResponse] = []
        self._next_offset: Optional[int] = None
        self._generation = 0
        self._lock = asyncio.Lock()

    @property
    def has_more(self) -> bool:
        return self.key is not None and self._next_offset is not None

    @property
    def spots(self) -> List[Spot]:
        """All loaded spots, de-duplicated by id (first occurrence wins)."""
        seen = set()
        merged = []
        for page in self._pages:
            for spot in page.spots:
                if spot.id not in seen:
                    seen.add(spot.id)
                    merged.append(spot)
        return merged

    async def reset(self, key: QueryKey) -> bool:
        self._generation += 1
        self.key = key
        self._pages = []
        self._next_offset = 0
        self.error = None
        return await self.load_more()

    async def load_more(self) -> bool:
        """Fetch the next page. Returns True when a page was merged."""
        async with self._lock:
            generation, key, offset = self._generation, self.key, self._next_offset
            if key is None or offset is None:
                return False

            self.loading = True
            try:
                page = await self.client.fetch_page(key, offset)
            except SpotsFetchError as e:
                if generation == self._generation:
                    self.error = str(e)
                return False
            finally:
                self.loading = False

            if generation != self._generation:
                logger.debug("spots_page_discarded", offset=offset)
                return False

            self._pages.append(page)
            self._next_offset = next_offset(
                page.pagination.offset, len(page.spots), page.pagination.has_more
            )
            self.error = None
            return True

    async def retry(self) -> bool:
        if self.key is not None and not self._pages:
            return await self.reset(self.key)
        return await self.load_more()
