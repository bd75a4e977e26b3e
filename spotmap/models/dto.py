# Data models shared by the query endpoint and the client-side sync layer.

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator
from pydantic_core import PydanticCustomError
from typing import Any, List, Mapping, Optional

from spotmap.core.config import settings

BOUNDS_KEYS = ("minLat", "maxLat", "minLon", "maxLon")

# Largest value SQLite binds as INTEGER.
SQL_INTEGER_MAX = 2**63 - 1

# --- Geographic filter ---

class BoundingBox(BaseModel):
    """Rectangular lat/lon region; also the shape of a client viewport."""
    model_config = ConfigDict(populate_by_name=True, frozen=True, allow_inf_nan=False)

    min_lat: float = Field(..., alias="minLat", ge=-90, le=90)
    max_lat: float = Field(..., alias="maxLat", ge=-90, le=90)
    min_lon: float = Field(..., alias="minLon", ge=-180, le=180)
    max_lon: float = Field(..., alias="maxLon", ge=-180, le=180)

    @property
    def center_lat(self) -> float:
        return (self.min_lat + self.max_lat) / 2

    @property
    def center_lon(self) -> float:
        return (self.min_lon + self.max_lon) / 2

class FilterCriteria(BaseModel):
    """Validated, typed representation of one query request."""
    model_config = ConfigDict(frozen=True)

    limit: int = Field(100, ge=1)
    offset: int = Field(0, ge=0)
    search: Optional[str] = None
    bounds: Optional[BoundingBox] = None

class SpotsQuery(BaseModel):
    """
    Raw GET /api/spots parameters.

    Blank values count as absent and the four bounds keys are only used as a
    complete quartet. Paging limits are read from the validation context
    (``max_limit``, ``max_search_length``) and default to the settings.
    """
    model_config = ConfigDict(frozen=True)

    limit: Optional[int] = Field(None, description="Page size, clamped into [1, max_limit].")
    offset: int = Field(0, ge=0, description="Number of matching records to skip.")
    search: Optional[str] = Field(None, description="Literal substring matched against title and address.")
    bounds: Optional[BoundingBox] = Field(None, description="Viewport filter.")

    @model_validator(mode="before")
    @classmethod
    def gather_params(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        values = {}
        for key, value in data.items():
            if isinstance(value, str):
                value = value.strip()
            if value is None or value == "":
                continue
            values[key] = value
        quartet = {key: values.pop(key) for key in BOUNDS_KEYS if key in values}
        if len(quartet) == len(BOUNDS_KEYS):
            values["bounds"] = quartet
        return values

    @field_validator("limit")
    @classmethod
    def clamp_limit(cls, value: Optional[int], info: ValidationInfo) -> Optional[int]:
        if value is None:
            return None
        max_limit = (info.context or {}).get("max_limit", settings.MAX_PAGE_LIMIT)
        return min(max(value, 1), max_limit)

    @field_validator("offset")
    @classmethod
    def cap_offset(cls, value: int, info: ValidationInfo) -> int:
        max_limit = (info.context or {}).get("max_limit", settings.MAX_PAGE_LIMIT)
        # offset + (limit + 1) lookahead must still bind as a SQL integer
        ceiling = SQL_INTEGER_MAX - (max_limit + 1)
        if value > ceiling:
            raise PydanticCustomError("offset_too_large", "must be at most {ceiling}", {"ceiling": ceiling})
        return value

    @field_validator("search")
    @classmethod
    def check_search_length(cls, value: Optional[str], info: ValidationInfo) -> Optional[str]:
        max_length = (info.context or {}).get("max_search_length", settings.MAX_SEARCH_LENGTH)
        if value is not None and len(value) > max_length:
            raise PydanticCustomError(
                "search_too_long", "must be at most {max_length} characters", {"max_length": max_length}
            )
        return value

# --- Public spot record ---

class SpotFeatures(BaseModel):
    type: str

class SpotDetails(BaseModel):
    equipment: Optional[List[str]] = None
    disciplines: Optional[List[str]] = None
    description: Optional[str] = None
    images: Optional[List[str]] = None
    features: Optional[SpotFeatures] = None
    rating: Optional[float] = Field(None, ge=0, le=100)

class Spot(BaseModel):
    """Public spot record. Coordinates are either both present or both absent."""
    id: int
    title: str = Field(..., min_length=1)
    name: Optional[str] = None
    lat: Optional[float] = None
    lon: Optional[float] = None
    address: Optional[str] = None
    details: Optional[SpotDetails] = None

# --- Query endpoint response ---

class Pagination(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    limit: int
    offset: int
    has_more: bool = Field(..., alias="hasMore")
    total: Optional[int] = None

class SpotsResponse(BaseModel):
    """Body of GET /api/spots."""
    spots: List[Spot]
    pagination: Pagination

# --- Error Response Model ---

class FieldViolation(BaseModel):
    field: str = Field(..., description="Query parameter that failed validation.")
    message: str = Field(..., description="Why the value was rejected.")

class ErrorResponse(BaseModel):
    """Standardized error response model."""
    error: str = Field(..., description="A machine-readable error code.")
    detail: str = Field(..., description="A human-readable explanation.")
    retry_after_seconds: Optional[int] = Field(None, description="Time until retry is allowed (for rate-limiting).")
    violations: Optional[List[FieldViolation]] = Field(None, description="Every rejected query parameter.")
    error_id: Optional[str] = Field(None, description="Correlation id for unexpected failures.")
