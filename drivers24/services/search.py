"""
Driver search: query building and paginated result handling.

A search is always the full description ``city + active filters + page``;
page changes re-issue the query behind the results on screen, and applying
or clearing filters starts again from page 1. Results replace the current
list wholesale. A failed search for a different city or filter set clears
the list, so drivers are never shown under criteria that did not produce them.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any

from drivers24.config import settings
from drivers24.exceptions import SearchError
from drivers24.schemas import DriverProfile
from drivers24.services.api_client import Err, ErrorKind, Result
from drivers24.services.validators import is_blank, parse_whole_number

NO_RESULTS = "No drivers found matching your criteria"
FETCH_FAILED = "Failed to fetch drivers"
CITY_REQUIRED = "Please enter a city"

# filter attribute -> (query parameter, label)
FILTER_PARAMS = {
    "min_salary": ("minSalary", "Minimum salary"),
    "max_salary": ("maxSalary", "Maximum salary"),
    "min_experience": ("minExperience", "Minimum experience"),
    "max_experience": ("maxExperience", "Maximum experience"),
}


@dataclass(frozen=True)
class SearchFilters:
    min_salary: int | None = None
    max_salary: int | None = None
    min_experience: int | None = None
    max_experience: int | None = None

    @classmethod
    def parse(cls, **raw: Any) -> "SearchFilters":
        """Build filters from raw input; blanks are dropped, anything but a whole number rejected.

        ``min > max`` is deliberately passed through: range checks belong to
        the backend.
        """
        values = {}
        for name, value in raw.items():
            if name not in FILTER_PARAMS:
                raise SearchError(f"Unknown filter: {name}")
            if is_blank(value):
                continue
            number = parse_whole_number(value)
            if number is None:
                raise SearchError(f"{FILTER_PARAMS[name][1]} must be a whole number")
            values[name] = number
        return cls(**values)

    def to_params(self) -> dict[str, int]:
        return {
            param: getattr(self, name)
            for name, (param, _) in FILTER_PARAMS.items()
            if getattr(self, name) is not None
        }

    def is_empty(self) -> bool:
        return not self.to_params()


@dataclass(frozen=True)
class SearchQuery:
    city: str
    params: dict[str, Any]
    filters: SearchFilters = field(default_factory=SearchFilters)

    def same_criteria(self, other: "SearchQuery | None") -> bool:
        """True when *other* searches the same city with the same filters."""
        return other is not None and (self.city, self.filters) == (other.city, other.filters)


def build_query(
    city: str | None,
    filters: SearchFilters | None = None,
    page: int = 1,
    limit: int | None = None,
) -> SearchQuery:
    """Deterministic query for one page of drivers in *city*."""
    if is_blank(city):
        raise SearchError(CITY_REQUIRED)
    params: dict[str, Any] = {
        "page": max(1, int(page)),
        "limit": limit or settings.SEARCH_PAGE_LIMIT,
    }
    filters = filters or SearchFilters()
    params.update(filters.to_params())
    return SearchQuery(city=city.strip(), params=params, filters=filters)


@dataclass
class SearchState:
    """Render-ready search results plus everything needed to re-issue the query."""
    city: str = ""
    filters: SearchFilters = field(default_factory=SearchFilters)
    limit: int = field(default_factory=lambda: settings.SEARCH_PAGE_LIMIT)
    drivers: list[DriverProfile] = field(default_factory=list)
    current_page: int = 1
    total_pages: int = 1
    total_count: int = 0
    feedback: str | None = None
    is_error: bool = False
    # query that produced ``drivers``; None until a search succeeds
    shown: SearchQuery | None = None

    # ── Query construction ────────────────────────────────

    def query(self, page: int | None = None) -> SearchQuery:
        return build_query(self.city, self.filters, page or self.current_page, self.limit)

    def new_search(self, city: str) -> SearchQuery:
        """Start a search in *city* keeping the active filters."""
        query = build_query(city, self.filters, 1, self.limit)
        self.city = query.city
        return query

    def apply_filters(self, **raw: Any) -> SearchQuery:
        self.filters = SearchFilters.parse(**raw)
        return self.query(1)

    def update_filter(self, name: str, value: Any) -> SearchQuery:
        """Set or clear one filter, leaving the others untouched; back to page 1."""
        parsed = SearchFilters.parse(**{name: value})
        self.filters = replace(self.filters, **{name: getattr(parsed, name)})
        return self.query(1)

    def clear_filters(self) -> SearchQuery:
        self.filters = SearchFilters()
        return self.query(1)

    def page_query(self, page: int) -> SearchQuery:
        """Another page of the results on screen, whatever was typed since."""
        if self.shown is None:
            raise SearchError("There are no results to page through")
        if page < 1 or page > max(self.total_pages, 1):
            raise SearchError(f"Page {page} is out of range")
        return build_query(self.shown.city, self.shown.filters, page, self.limit)

    # ── Result interpretation ─────────────────────────────

    @property
    def has_previous(self) -> bool:
        return self.current_page > 1

    @property
    def has_next(self) -> bool:
        return self.current_page < self.total_pages

    def apply_result(self, query: SearchQuery, result: Result) -> None:
        """Replace results from *result*.

        A failure keeps the old list only when *query* asked for the same city
        and filters (a page change); otherwise the list and pagination are
        cleared.
        """
        if isinstance(result, Err):
            if not query.same_criteria(self.shown):
                self._clear_results()
            self.is_error = True
            if result.kind == ErrorKind.TRANSPORT:
                self.feedback = FETCH_FAILED
            else:
                self.feedback = result.reason or FETCH_FAILED
            return

        self.drivers = list(result.value or [])
        self.shown = query
        self.current_page = query.params["page"]
        if result.pagination is not None:
            self.total_pages = max(result.pagination.total_pages, 1)
            self.total_count = result.pagination.total_count
        else:
            self.total_pages = 1
            self.total_count = len(self.drivers)
        self.is_error = False
        self.feedback = NO_RESULTS if not self.drivers else None

    def _clear_results(self) -> None:
        self.drivers = []
        self.shown = None
        self.current_page = 1
        self.total_pages = 1
        self.total_count = 0

    def find_driver(self, driver_id: str) -> DriverProfile | None:
        return next((d for d in self.drivers if d.id == driver_id), None)

    # ── FSM storage ───────────────────────────────────────

    def to_dict(self) -> dict:
        return {
            "city": self.city,
            "filters": self.filters.to_params(),
            "limit": self.limit,
            "drivers": [d.model_dump(mode="json") for d in self.drivers],
            "current_page": self.current_page,
            "total_pages": self.total_pages,
            "total_count": self.total_count,
            "feedback": self.feedback,
            "is_error": self.is_error,
            "shown": _query_to_dict(self.shown),
        }

    @classmethod
    def from_dict(cls, data: dict | None) -> "SearchState":
        if not data:
            return cls()
        filters = _filters_from_params(data.get("filters"))
        limit = data.get("limit") or settings.SEARCH_PAGE_LIMIT
        shown = data.get("shown")
        current_page = data.get("current_page", 1)
        return cls(
            city=data.get("city", ""),
            filters=filters,
            limit=limit,
            drivers=[DriverProfile.model_validate(d) for d in data.get("drivers", [])],
            current_page=current_page,
            total_pages=data.get("total_pages", 1),
            total_count=data.get("total_count", 0),
            feedback=data.get("feedback"),
            is_error=data.get("is_error", False),
            shown=build_query(
                shown["city"], _filters_from_params(shown.get("filters")), current_page, limit,
            ) if shown else None,
        )


def _filters_from_params(params: dict | None) -> SearchFilters:
    by_param = {param: name for name, (param, _) in FILTER_PARAMS.items()}
    return SearchFilters(**{by_param[k]: v for k, v in (params or {}).items()})


def _query_to_dict(query: SearchQuery | None) -> dict | None:
    if query is None:
        return None
    return {"city": query.city, "filters": query.filters.to_params()}
