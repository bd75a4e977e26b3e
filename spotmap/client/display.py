# Client-side display pipeline: distance from the user, text search and
# equipment quick filters over the spots already loaded.

from typing import List, Optional, Tuple

from pydantic import BaseModel

from spotmap.client.url_state import FilterOptions
from spotmap.models.dto import Spot
from spotmap.utils.haversine import haversine

BAR_KEYWORDS = ("bar", "pull-up", "calisthenics park")
RING_KEYWORDS = ("ring",)
TRACK_KEYWORDS = ("track", "tartan")


class SpotWithDistance(BaseModel):
    spot: Spot
    distance_km: Optional[float] = None


def with_distances(spots: List[Spot], user_location: Optional[Tuple[float, float]]) -> List[SpotWithDistance]:
    """
    Attach great-circle distance (km, one decimal) and sort nearest first.
    Spots without coordinates keep their relative order at the end. Without
    a user location the input order is kept.
    """
    if user_location is None:
        return [SpotWithDistance(spot=s) for s in spots]

    user_lat, user_lon = user_location
    annotated = []
    for spot in spots:
        distance = None
        if spot.lat is not None and spot.lon is not None:
            distance = round(haversine(user_lat, user_lon, spot.lat, spot.lon), 1)
        annotated.append(SpotWithDistance(spot=spot, distance_km=distance))

    return sorted(annotated, key=lambda s: (s.distance_km is None, s.distance_km or 0.0))


def _matches_search(spot: Spot, query: str) -> bool:
    return any(
        value is not None and query in value.lower()
        for value in (spot.title, spot.name, spot.address)
    )


def _matches_filters(spot: Spot, filters: FilterOptions) -> bool:
    equipment = spot.details.equipment if spot.details else None
    if not equipment:
        return False
    text = " ".join(e.lower() for e in equipment)
    if filters.has_bars and not any(k in text for k in BAR_KEYWORDS):
        return False
    if filters.has_rings and not any(k in text for k in RING_KEYWORDS):
        return False
    if filters.has_track and not any(k in text for k in TRACK_KEYWORDS):
        return False
    return True


def filter_spots(
    spots: List[SpotWithDistance],
    search_query: str,
    filters: FilterOptions,
) -> List[SpotWithDistance]:
    query = search_query.strip().lower()
    filtered = spots
    if query:
        filtered = [s for s in filtered if _matches_search(s.spot, query)]
    if filters.any:
        filtered = [s for s in filtered if _matches_filters(s.spot, filters)]
    return filtered


def prepare_for_display(
    spots: List[Spot],
    user_location: Optional[Tuple[float, float]],
    search_query: str,
    filters: FilterOptions,
) -> List[SpotWithDistance]:
    return filter_spots(with_distances(spots, user_location), search_query, filters)
