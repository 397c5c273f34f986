import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, NamedTuple, Optional, Sequence, Union

ELLIPSIS = "..."


# Page size variant
class Fixed(NamedTuple):
    size: int


class Unbounded:
    def __repr__(self):
        return "Unbounded"

    def __eq__(self, other):
        return isinstance(other, Unbounded)

    def __hash__(self):
        return hash("Unbounded")


UNBOUNDED = Unbounded()
PageSize = Union[Fixed, Unbounded]


def parse_page_size(value: Union[str, int, None], default: PageSize = Fixed(3)) -> PageSize:
    if value is None or value == "":
        return default
    if isinstance(value, str) and value.lower() == "all":
        return UNBOUNDED
    size = int(value)
    if size <= 0:
        raise ValueError("Please enter a valid number greater than 0")
    return Fixed(size)


def field_value(item: Any, key: str) -> Any:
    if isinstance(item, dict):
        return item.get(key)
    return getattr(item, key, None)


# Range filters
def _as_datetime(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value))
        except ValueError:
            return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def _comparable(value: Any, bound: Any):
    # numbers compare as numbers, anything else is tried as an ISO date
    try:
        return float(value), float(bound)
    except (TypeError, ValueError):
        pass
    value_dt, bound_dt = _as_datetime(value), _as_datetime(bound)
    if value_dt is not None and bound_dt is not None:
        return value_dt, bound_dt
    return str(value), str(bound)


@dataclass(frozen=True)
class RangeFilter:
    field: str
    from_: Any = None
    to: Any = None

    def is_active(self) -> bool:
        return self.from_ not in (None, "") or self.to not in (None, "")

    def matches(self, item: Any) -> bool:
        value = field_value(item, self.field)
        if self.from_ not in (None, ""):
            if value is None:
                return False
            v, b = _comparable(value, self.from_)
            if v < b:
                return False
        if self.to not in (None, ""):
            if value is None:
                return False
            v, b = _comparable(value, self.to)
            if v > b:
                return False
        return True


# Sorting
@dataclass(frozen=True)
class SortConfig:
    key: str = "id"
    direction: str = "asc"

    def toggle(self, key: str) -> "SortConfig":
        if key == self.key:
            return SortConfig(key, "desc" if self.direction == "asc" else "asc")
        return SortConfig(key, "asc")


def compare(a: Any, b: Any) -> int:
    # missing or incomparable values are treated as equal
    if a is None or b is None:
        return 0
    try:
        if a < b:
            return -1
        if a > b:
            return 1
    except TypeError:
        return 0
    return 0


def stable_sort(items: Sequence[Any], key: str, direction: str = "asc") -> List[Any]:
    """Merge sort on one field; equal keys keep their input order."""
    sign = -1 if direction == "desc" else 1
    items = list(items)
    if len(items) <= 1:
        return items
    middle = len(items) // 2
    left = stable_sort(items[:middle], key, direction)
    right = stable_sort(items[middle:], key, direction)
    merged = []
    i = j = 0
    while i < len(left) and j < len(right):
        # ties take from the left run first
        if sign * compare(field_value(right[j], key), field_value(left[i], key)) < 0:
            merged.append(right[j])
            j += 1
        else:
            merged.append(left[i])
            i += 1
    merged.extend(left[i:])
    merged.extend(right[j:])
    return merged


def generate_pagination(current: int, total: int, visible: int = 5) -> List[Union[int, str]]:
    if total <= visible:
        return list(range(1, total + 1))
    if current <= math.ceil(visible / 2):
        return list(range(1, visible)) + [ELLIPSIS, total]
    if current > total - visible // 2:
        return [1, ELLIPSIS] + [total - visible + i + 2 for i in range(visible - 1)]
    return [1, ELLIPSIS, current - 1, current, current + 1, ELLIPSIS, total]


# Search field resolvers: each returns the strings a row can be found by
SearchField = Callable[[Any], Iterable[Optional[str]]]


def by_attr(name: str) -> SearchField:
    return lambda item: [field_value(item, name)]


def by_lookup(name: str, names: Dict[int, str]) -> SearchField:
    return lambda item: [names.get(field_value(item, name))]


def by_lookup_many(name: str, names: Dict[int, str]) -> SearchField:
    return lambda item: [names.get(i) for i in (field_value(item, name) or [])]


@dataclass
class ListViewController:
    """
    Full collection plus the parameters that derive the rendered rows.

    The filtered, sorted and paginated views are recomputed from scratch on
    every read, so they never drift from ``items``.
    """

    items: List[Any] = field(default_factory=list)
    search_fields: Dict[str, SearchField] = field(default_factory=dict)
    search: str = ""
    search_by: Optional[str] = None
    filters: List[RangeFilter] = field(default_factory=list)
    sort: Optional[SortConfig] = field(default_factory=SortConfig)
    page_size: PageSize = Fixed(3)
    page: int = 1

    def __post_init__(self):
        self.items = list(self.items)
        if self.search_by is None and self.search_fields:
            self.search_by = next(iter(self.search_fields))

    # derivation
    def _matches_search(self, item: Any) -> bool:
        needle = self.search.strip().lower()
        if not needle:
            return True
        resolver = self.search_fields.get(self.search_by)
        if resolver is None:
            return True
        return any(value is not None and needle in str(value).lower() for value in resolver(item))

    @property
    def filtered(self) -> List[Any]:
        rows = [item for item in self.items if self._matches_search(item)]
        for f in self.filters:
            if f.is_active():
                rows = [item for item in rows if f.matches(item)]
        if self.sort is None:
            return rows
        return stable_sort(rows, self.sort.key, self.sort.direction)

    @property
    def total_pages(self) -> int:
        if isinstance(self.page_size, Unbounded):
            return 1
        return max(1, math.ceil(len(self.filtered) / self.page_size.size))

    @property
    def view(self) -> List[Any]:
        rows = self.filtered
        if isinstance(self.page_size, Unbounded):
            return rows
        start = (self.page - 1) * self.page_size.size
        return rows[start:start + self.page_size.size]

    def pagination(self) -> List[Union[int, str]]:
        return generate_pagination(self.page, self.total_pages)

    # parameter changes
    def set_items(self, items: Iterable[Any]):
        self.items = list(items)

    def set_search(self, search: str, search_by: Optional[str] = None):
        if search_by is not None:
            if search_by not in self.search_fields:
                raise ValueError(f"Unknown search field: {search_by}")
            self.search_by = search_by
        self.search = search or ""
        self.page = 1

    def set_filters(self, filters: Iterable[RangeFilter]):
        self.filters = list(filters)
        self.page = 1

    def reset_filters(self):
        self.set_filters([replace(f, from_=None, to=None) for f in self.filters])

    def set_page_size(self, page_size: PageSize):
        self.page_size = page_size
        self.page = 1

    def sort_by(self, key: str):
        self.sort = (self.sort or SortConfig(key, "desc")).toggle(key)

    def go_to(self, page: int):
        self.page = min(max(1, int(page)), self.total_pages)

    def next_page(self):
        self.go_to(self.page + 1)

    def previous_page(self):
        self.go_to(self.page - 1)

    def remove(self, item_id: Any):
        self.items = [item for item in self.items if field_value(item, "id") != item_id]

    def state(self) -> dict:
        return {
            "search": self.search,
            "searchBy": self.search_by,
            "filters": [{"field": f.field, "from": f.from_, "to": f.to} for f in self.filters],
            "sort": {"key": self.sort.key, "direction": self.sort.direction} if self.sort else None,
            "pageSize": "all" if isinstance(self.page_size, Unbounded) else self.page_size.size,
            "page": self.page,
            "totalPages": self.total_pages,
            "pagination": self.pagination(),
        }
