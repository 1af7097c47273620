"""Query filter parsing for toy and wish searches.

Browsers send the same filter either once (`?condition=Good`), repeated
(`?condition=Good&condition=New`) or comma separated
(`?condition=Good,New`). `parse_toy_filters` folds all of these into a
`ToyFilters` value with list-valued categorical fields, so the
repository layer can turn each non-empty list into a SQL `IN` predicate.

Tags and free-text search are matched in Python because tags live in a
JSON column; see `matches_tags` and `matches_search`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from .geo import parse_coordinate, valid_coordinates

IGNORED_VALUES = {"all", "any"}
TRUE_VALUES = {"true", "1", "yes"}
FALSE_VALUES = {"false", "0", "no"}


@dataclass
class ToyFilters:
    locations: List[str] = field(default_factory=list)
    age_ranges: List[str] = field(default_factory=list)
    conditions: List[str] = field(default_factory=list)
    categories: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    statuses: List[str] = field(default_factory=list)
    search: Optional[str] = None
    is_available: Optional[bool] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    distance: Optional[float] = None
    user_id: Optional[int] = None

    @property
    def has_geo(self) -> bool:
        return self.latitude is not None and self.longitude is not None and self.distance is not None


def as_list(value, split: bool = True) -> List[str]:
    """Normalize a scalar, comma-separated string or list into a clean list.

    Blank entries and the `all`/`any` sentinels are dropped; duplicates
    are removed while keeping first-seen order. With `split=False` each
    value is kept whole, for free text such as "Seattle, WA".
    """
    if value is None:
        return []
    if isinstance(value, str):
        raw: Iterable = [value]
    else:
        raw = value
    out: List[str] = []
    for item in raw:
        if item is None:
            continue
        parts = str(item).split(",") if split else [str(item)]
        for part in parts:
            part = part.strip()
            if not part or part.lower() in IGNORED_VALUES:
                continue
            if part not in out:
                out.append(part)
    return out


def _get_all(params, *keys) -> List[str]:
    values: List[str] = []
    for key in keys:
        if hasattr(params, "getlist"):
            values.extend(params.getlist(key))
            continue
        v = params.get(key)
        if v is None:
            continue
        if isinstance(v, (list, tuple)):
            values.extend(v)
        else:
            values.append(v)
    return values


def _get_one(params, *keys) -> Optional[str]:
    for v in _get_all(params, *keys):
        if v is not None and str(v).strip():
            return str(v).strip()
    return None


def parse_bool(value: Optional[str]) -> Optional[bool]:
    """Parse a query-string boolean; None stays None."""
    if value is None:
        return None
    lowered = value.strip().lower()
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    raise ValueError(f"invalid boolean value: {value}")


def parse_toy_filters(params, default_distance: float = 10.0) -> ToyFilters:
    """Build `ToyFilters` from a multi-valued mapping of query parameters.

    Both camelCase and snake_case parameter names are accepted. Raises
    ValueError for malformed booleans, coordinates or distances.
    """
    filters = ToyFilters(
        locations=as_list(_get_all(params, "location"), split=False),
        age_ranges=as_list(_get_all(params, "ageRange", "age_range")),
        conditions=as_list(_get_all(params, "condition")),
        categories=as_list(_get_all(params, "category")),
        tags=as_list(_get_all(params, "tags", "tag")),
        statuses=as_list(_get_all(params, "status")),
        search=_get_one(params, "search", "q"),
        is_available=parse_bool(_get_one(params, "isAvailable", "is_available")),
    )

    user_id = _get_one(params, "userId", "user_id")
    if user_id is not None:
        try:
            filters.user_id = int(user_id)
        except ValueError:
            raise ValueError(f"invalid user id: {user_id}")

    raw_lat = _get_one(params, "latitude", "lat")
    raw_lon = _get_one(params, "longitude", "lng", "lon")
    if raw_lat is not None and raw_lon is not None:
        lat = parse_coordinate(raw_lat)
        lon = parse_coordinate(raw_lon)
        if not valid_coordinates(lat, lon):
            raise ValueError("latitude/longitude out of range or not numeric")
        raw_distance = _get_one(params, "distance", "radius")
        if raw_distance is None:
            distance = default_distance
        else:
            distance = parse_coordinate(raw_distance)
            if distance is None or distance <= 0:
                raise ValueError(f"invalid distance: {raw_distance}")
        filters.latitude = lat
        filters.longitude = lon
        filters.distance = distance
    return filters


def matches_tags(item_tags, wanted: List[str]) -> bool:
    """True when `wanted` is empty or the item carries any wanted tag."""
    if not wanted:
        return True
    tags = item_tags if isinstance(item_tags, list) else []
    return any(t in tags for t in wanted)


def matches_search(item, term: Optional[str]) -> bool:
    """Case-insensitive substring match over title, description and tags."""
    if not term:
        return True
    needle = term.lower()
    if needle in (getattr(item, "title", "") or "").lower():
        return True
    if needle in (getattr(item, "description", "") or "").lower():
        return True
    tags = getattr(item, "tags", None)
    tags = tags if isinstance(tags, list) else []
    return any(needle in str(t).lower() for t in tags)
