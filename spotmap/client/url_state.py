"""
URL state codec.

Projects the navigable part of the client state (viewport bounds, search
text, equipment filters, selected spot) to and from a query string, so that
browser history entries restore the same view. The URL is never the source
of truth for spot data.

Encoding:
  minLat, maxLat, minLon, maxLon   bounds, fixed 6 decimals, all or none
  q                                search text
  bars, rings, track               "1" when the filter is on, absent otherwise
  spot                             selected spot id
"""
import math
from typing import Optional
from urllib.parse import parse_qs, urlencode

from pydantic import BaseModel, Field

from spotmap.models.dto import BoundingBox

BOUNDS_PARAMS = (
    ("minLat", "min_lat"),
    ("maxLat", "max_lat"),
    ("minLon", "min_lon"),
    ("maxLon", "max_lon"),
)

FILTER_PARAMS = (
    ("bars", "has_bars"),
    ("rings", "has_rings"),
    ("track", "has_track"),
)


class FilterOptions(BaseModel):
    has_bars: bool = False
    has_rings: bool = False
    has_track: bool = False

    @property
    def any(self) -> bool:
        return self.has_bars or self.has_rings or self.has_track


class UrlState(BaseModel):
    bounds: Optional[BoundingBox] = None
    search_query: str = ""
    filters: FilterOptions = Field(default_factory=FilterOptions)
    selected_spot_id: Optional[int] = None


def encode_url_state(state: UrlState) -> str:
    """Serialize state to a query string (without the leading '?')."""
    params = []
    if state.bounds is not None:
        for param, attr in BOUNDS_PARAMS:
            params.append((param, f"{getattr(state.bounds, attr):.6f}"))
    if state.search_query:
        params.append(("q", state.search_query))
    for param, attr in FILTER_PARAMS:
        if getattr(state.filters, attr):
            params.append((param, "1"))
    if state.selected_spot_id is not None:
        params.append(("spot", str(state.selected_spot_id)))
    return urlencode(params)


def _float(value: Optional[str]) -> Optional[float]:
    if not value:
        return None
    try:
        number = float(value)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def decode_url_state(query: str) -> UrlState:
    """Parse a query string; missing or unreadable values fall back to defaults."""
    raw = {key: values[-1] for key, values in parse_qs(query.lstrip("?")).items()}

    bounds = None
    coords = {attr: _float(raw.get(param)) for param, attr in BOUNDS_PARAMS}
    if all(value is not None for value in coords.values()):
        try:
            bounds = BoundingBox(**coords)
        except ValueError:
            bounds = None

    filters = FilterOptions(**{attr: raw.get(param) == "1" for param, attr in FILTER_PARAMS})

    selected_spot_id = None
    spot = raw.get("spot", "").strip()
    if spot.lstrip("+-").isdecimal():
        try:
            selected_spot_id = int(spot)
        except ValueError:
            selected_spot_id = None

    return UrlState(
        bounds=bounds,
        search_query=raw.get("q", ""),
        filters=filters,
        selected_spot_id=selected_spot_id,
    )
