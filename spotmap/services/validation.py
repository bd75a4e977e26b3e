"""
Query parameter validation for the spots endpoint.

Raw query parameters arrive as strings (or not at all). ``parse_filter_criteria``
runs them through the ``SpotsQuery`` model and turns the result into a typed
``FilterCriteria``, or raises ``QueryValidationError`` carrying every violation
found, so a client can fix all of them in one go.
"""
from typing import List, Mapping, Optional

from pydantic import ValidationError

from spotmap.core.config import settings
from spotmap.models.dto import BoundingBox, FieldViolation, FilterCriteria, SpotsQuery


class QueryValidationError(Exception):
    """Raised with the complete list of rejected parameters."""

    def __init__(self, violations: List[FieldViolation]):
        self.violations = violations
        super().__init__("; ".join(f"{v.field}: {v.message}" for v in violations))


def _to_violations(error: ValidationError) -> List[FieldViolation]:
    # Nested bounds errors are located as ("bounds", "minLat"); report the parameter name.
    return [
        FieldViolation(field=str(err["loc"][-1]) if err["loc"] else "query", message=err["msg"])
        for err in error.errors(include_url=False)
    ]


def _ordering_violations(bounds: Optional[BoundingBox]) -> List[FieldViolation]:
    if bounds is None:
        return []
    violations = []
    if bounds.min_lat > bounds.max_lat:
        violations.append(FieldViolation(field="minLat", message="must not exceed maxLat"))
    if bounds.min_lon > bounds.max_lon:
        violations.append(FieldViolation(field="minLon", message="must not exceed maxLon"))
    return violations


def parse_filter_criteria(
    raw: Mapping[str, Optional[str]],
    *,
    default_limit: Optional[int] = None,
    max_limit: Optional[int] = None,
    max_search_length: Optional[int] = None,
) -> FilterCriteria:
    """
    Validate raw request parameters into filter criteria.

    Rules:
    - ``limit`` defaults when absent and is clamped into [1, max_limit];
      non-integer input is rejected.
    - ``offset`` defaults to 0; negative, non-integer or out-of-range input
      is rejected.
    - ``search`` is trimmed, empty means absent, over-long input is rejected.
    - Bounds are only considered as a complete quartet. A partial set is
      ignored. Each value must be a finite number inside its range and
      each axis must satisfy min <= max. Nothing is clamped.
    """
    context = {
        "max_limit": max_limit or settings.MAX_PAGE_LIMIT,
        "max_search_length": max_search_length or settings.MAX_SEARCH_LENGTH,
    }
    try:
        query = SpotsQuery.model_validate(dict(raw), context=context)
    except ValidationError as e:
        raise QueryValidationError(_to_violations(e)) from e

    violations = _ordering_violations(query.bounds)
    if violations:
        raise QueryValidationError(violations)

    limit = query.limit if query.limit is not None else (default_limit or settings.DEFAULT_PAGE_LIMIT)
    return FilterCriteria(limit=limit, offset=query.offset, search=query.search, bounds=query.bounds)
