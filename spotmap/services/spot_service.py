# Spot query service: filter criteria -> store query -> public records.
#
# Ordering with a bounding box is by planar squared distance from the box
# centroid, (lat - cLat)^2 + (lon - cLon)^2, with no latitude scaling and no
# tie-break. Clients depend on this ordering; keep it as is.

import json
from dataclasses import dataclass
from typing import Any, List, Optional, Tuple

import structlog
from sqlalchemy import and_, func, or_, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from spotmap.models.dto import FilterCriteria, Spot, SpotDetails, SpotFeatures
from spotmap.services.pagination import PageWindow
from spotmap.services.spot_store import spots_table

logger = structlog.get_logger(__name__)

_MALFORMED = object()


class SpotStoreError(Exception):
    """The record store could not answer a query."""


@dataclass
class SpotPage:
    spots: List[Spot]
    has_more: bool
    total: Optional[int] = None


def parse_or_default(raw: Any, fallback: Any) -> Any:
    """Decode a JSON-encoded column, returning ``fallback`` if it cannot be decoded."""
    if raw is None:
        return fallback
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        return fallback


def _string_list(raw: Any, *, as_set: bool) -> Any:
    """Decode a list-of-strings column. Returns None when absent, _MALFORMED when unusable."""
    if raw is None:
        return None
    value = parse_or_default(raw, _MALFORMED)
    if value is _MALFORMED or not isinstance(value, list):
        return _MALFORMED
    if not all(isinstance(item, str) for item in value):
        return _MALFORMED
    if not as_set:
        return value
    seen = []
    for item in value:
        if item and item not in seen:
            seen.append(item)
    return seen


def row_to_spot(row: Any) -> Optional[Spot]:
    """
    Shape a ``spots`` row into the public record.

    Corrupt list columns degrade to an absent field instead of failing the
    page; every such record is logged once as a data-quality event. A blank
    title falls back to the secondary name; with neither, the record is
    left out of the page (returns None).
    """
    bad_fields: List[str] = []

    title = (row["title"] or "").strip()
    if not title:
        bad_fields.append("title")
        title = (row["name"] or "").strip()

    def decode(column: str, as_set: bool):
        value = _string_list(row[column], as_set=as_set)
        if value is _MALFORMED:
            bad_fields.append(column)
            return None
        return value

    equipment = decode("equipment", as_set=True)
    disciplines = decode("disciplines", as_set=True)
    images = decode("images", as_set=False)

    lat, lon = row["lat"], row["lon"]
    if lat is None or lon is None:
        if lat is not None or lon is not None:
            bad_fields.append("lat/lon")
        lat = lon = None

    rating = row["rating"]
    if rating is not None and not (isinstance(rating, (int, float)) and 0 <= rating <= 100):
        bad_fields.append("rating")
        rating = None

    if bad_fields:
        logger.warning("spot_record_malformed", spot_id=row["id"], fields=bad_fields, dropped=not title)
    if not title:
        return None

    details = SpotDetails(
        equipment=equipment,
        disciplines=disciplines,
        description=row["description"],
        images=images,
        features=SpotFeatures(type=row["features_type"]) if row["features_type"] else None,
        rating=rating,
    )

    return Spot(
        id=row["id"],
        title=title,
        name=row["name"],
        lat=lat,
        lon=lon,
        address=row["address"],
        details=details,
    )


class SpotService:
    """Runs filtered, ordered, windowed queries against the spot store."""

    def __init__(self, engine: Engine, include_total: bool = False):
        self.engine = engine
        self.include_total = include_total

    def _predicates(self, criteria: FilterCriteria) -> list:
        t = spots_table.c
        predicates = []
        if criteria.bounds is not None:
            b = criteria.bounds
            predicates.append(
                and_(t.lat.between(b.min_lat, b.max_lat), t.lon.between(b.min_lon, b.max_lon))
            )
        if criteria.search:
            predicates.append(
                or_(
                    t.title.icontains(criteria.search, autoescape=True),
                    t.address.icontains(criteria.search, autoescape=True),
                )
            )
        return predicates

    def _ordering(self, criteria: FilterCriteria):
        t = spots_table.c
        if criteria.bounds is None:
            return t.id.asc()
        d_lat = t.lat - criteria.bounds.center_lat
        d_lon = t.lon - criteria.bounds.center_lon
        return (d_lat * d_lat + d_lon * d_lon).asc()

    def query(self, criteria: FilterCriteria) -> SpotPage:
        window = PageWindow(limit=criteria.limit, offset=criteria.offset)
        predicates = self._predicates(criteria)

        stmt = (
            select(spots_table)
            .where(*predicates)
            .order_by(self._ordering(criteria))
            .limit(window.fetch_size)
            .offset(window.offset)
        )

        try:
            with self.engine.connect() as conn:
                rows = conn.execute(stmt).mappings().all()
                total = None
                if self.include_total:
                    count_stmt = select(func.count()).select_from(spots_table).where(*predicates)
                    total = int(conn.execute(count_stmt).scalar_one())
        except SQLAlchemyError as e:
            logger.error(
                "spot_query_failed",
                error_type=type(e).__name__,
                limit=criteria.limit,
                offset=criteria.offset,
                bounded=criteria.bounds is not None,
                searched=criteria.search is not None,
            )
            raise SpotStoreError("spot query failed") from e

        page_rows, has_more = window.trim(rows)
        spots = [spot for spot in (row_to_spot(r) for r in page_rows) if spot is not None]
        return SpotPage(spots=spots, has_more=has_more, total=total)

    def ping(self) -> bool:
        try:
            with self.engine.connect() as conn:
                conn.execute(select(1))
            return True
        except SQLAlchemyError as e:
            logger.error("spot_store_unreachable", error_type=type(e).__name__)
            return False
