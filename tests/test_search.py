"""Tests for driver search query building and result handling."""

import pytest

from drivers24.exceptions import SearchError
from drivers24.schemas import DriverProfile, Pagination
from drivers24.services.api_client import Err, ErrorKind, Ok
from drivers24.services.search import (
    FETCH_FAILED,
    NO_RESULTS,
    SearchFilters,
    SearchState,
    build_query,
)


def _drivers(*ids):
    return [DriverProfile(id=i, name=f"Driver {i}", city="Mumbai") for i in ids]


def test_first_page_query_without_filters():
    """city="Mumbai", no filters, page 1 → page and limit only."""
    query = build_query("Mumbai", SearchFilters(), page=1, limit=10)
    assert query.city == "Mumbai"
    assert query.params == {"page": 1, "limit": 10}


def test_blank_city_is_rejected():
    with pytest.raises(SearchError, match="Please enter a city"):
        build_query("  ")


def test_blank_filters_never_sent():
    filters = SearchFilters.parse(min_salary="", max_salary=None, min_experience="  ", max_experience="3")
    assert build_query("Pune", filters).params == {"page": 1, "limit": 10, "maxExperience": 3}


def test_min_greater_than_max_sent_unchanged():
    filters = SearchFilters.parse(min_salary="30000", max_salary="20000")
    params = build_query("Pune", filters).params
    assert params["minSalary"] == 30000
    assert params["maxSalary"] == 20000


def test_non_numeric_filter_rejected():
    with pytest.raises(SearchError, match="Minimum salary must be a whole number"):
        SearchFilters.parse(min_salary="lots")


@pytest.mark.parametrize("value", ["inf", "-inf", "nan", "1e400", float("inf"), float("nan")])
def test_non_finite_filter_rejected(value):
    """Overflowing or non-finite input is a bad filter, not a crash."""
    with pytest.raises(SearchError, match="Maximum salary must be a whole number"):
        SearchFilters.parse(max_salary=value)


def test_fractional_filter_rejected():
    with pytest.raises(SearchError, match="Minimum experience must be a whole number"):
        SearchFilters.parse(min_experience="2.5")


def test_whole_float_filter_accepted():
    assert SearchFilters.parse(min_experience="3.0").min_experience == 3


def test_same_inputs_same_params():
    """Query building is deterministic."""
    filters = SearchFilters.parse(min_experience="2")
    assert build_query("Delhi", filters, 3).params == build_query("Delhi", filters, 3).params


def test_empty_result_is_not_an_error():
    state = SearchState()
    query = state.new_search("Mumbai")
    state.apply_result(query, Ok([], pagination=Pagination(page=1, total_count=0, total_pages=0)))
    assert state.drivers == []
    assert state.feedback == NO_RESULTS
    assert not state.is_error
    assert not state.has_previous
    assert not state.has_next


def test_results_replace_previous_list():
    state = SearchState()
    query = state.new_search("Mumbai")
    state.apply_result(query, Ok(_drivers("a", "b"), pagination=Pagination(total_count=12, total_pages=2)))
    next_page = state.page_query(2)
    state.apply_result(next_page, Ok(_drivers("c"), pagination=Pagination(page=2, total_count=12, total_pages=2)))

    assert [d.id for d in state.drivers] == ["c"]
    assert state.current_page == 2
    assert state.has_previous
    assert not state.has_next


def test_transport_failure_keeps_results():
    state = SearchState()
    query = state.new_search("Mumbai")
    state.apply_result(query, Ok(_drivers("a")))
    state.apply_result(state.query(1), Err("boom", ErrorKind.TRANSPORT))
    assert state.feedback == FETCH_FAILED
    assert state.is_error
    assert [d.id for d in state.drivers] == ["a"]


def test_backend_error_shown_verbatim():
    state = SearchState()
    query = state.new_search("Mumbai")
    state.apply_result(query, Err("City not served yet"))
    assert state.feedback == "City not served yet"


def test_filter_changes_reset_to_first_page():
    state = SearchState()
    query = state.new_search("Mumbai")
    state.apply_result(query, Ok(_drivers("a"), pagination=Pagination(total_count=30, total_pages=3)))
    state.apply_result(state.page_query(3), Ok(_drivers("z"), pagination=Pagination(total_count=30, total_pages=3)))

    query = state.update_filter("min_salary", "15000")
    assert query.params == {"page": 1, "limit": 10, "minSalary": 15000}

    query = state.update_filter("min_salary", None)
    assert query.params == {"page": 1, "limit": 10}

    state.apply_filters(min_experience="4")
    assert state.clear_filters().params == {"page": 1, "limit": 10}


def test_page_change_keeps_city_and_filters():
    state = SearchState()
    state.new_search("Mumbai")
    query = state.apply_filters(max_salary="25000")
    state.apply_result(query, Ok(_drivers("a"), pagination=Pagination(total_count=40, total_pages=4)))
    assert state.page_query(2).params == {"page": 2, "limit": 10, "maxSalary": 25000}
    with pytest.raises(SearchError):
        state.page_query(5)


def test_state_survives_fsm_storage():
    state = SearchState()
    query = state.new_search("Mumbai")
    state.apply_filters(min_salary="10000")
    state.apply_result(query, Ok(_drivers("a", "b"), pagination=Pagination(total_count=2, total_pages=1)))

    restored = SearchState.from_dict(state.to_dict())
    assert restored.city == "Mumbai"
    assert restored.filters == state.filters
    assert restored.find_driver("b").name == "Driver b"
    assert restored.query(1).params == state.query(1).params


def test_no_pages_before_any_results():
    state = SearchState()
    state.new_search("Mumbai")
    with pytest.raises(SearchError, match="no results"):
        state.page_query(1)


def test_failed_search_in_new_city_clears_old_results():
    """Mumbai drivers must not stay on screen under a failed Pune search."""
    state = SearchState()
    query = state.new_search("Mumbai")
    state.apply_result(query, Ok(_drivers("a", "b"), pagination=Pagination(total_count=30, total_pages=3)))
    assert state.has_next

    query = state.new_search("Pune")
    state.apply_result(query, Err("boom", ErrorKind.TRANSPORT))

    assert state.feedback == FETCH_FAILED
    assert state.drivers == []
    assert state.total_count == 0
    assert not state.has_next
    assert not state.has_previous
    with pytest.raises(SearchError):
        state.page_query(2)


def test_failed_filter_change_clears_old_results():
    state = SearchState()
    query = state.new_search("Mumbai")
    state.apply_result(query, Ok(_drivers("a"), pagination=Pagination(total_count=20, total_pages=2)))

    query = state.update_filter("min_salary", "15000")
    state.apply_result(query, Err("Invalid filter"))

    assert state.feedback == "Invalid filter"
    assert state.drivers == []
    assert state.find_driver("a") is None


def test_failed_page_change_keeps_current_page():
    state = SearchState()
    query = state.new_search("Mumbai")
    state.apply_result(query, Ok(_drivers("a"), pagination=Pagination(total_count=30, total_pages=3)))

    state.apply_result(state.page_query(2), Err("boom", ErrorKind.TRANSPORT))

    assert [d.id for d in state.drivers] == ["a"]
    assert state.current_page == 1
    assert state.has_next


def test_pages_follow_shown_results_not_typed_city():
    """Typing a new city that has not loaded yet does not redirect paging."""
    state = SearchState()
    query = state.new_search("Mumbai")
    state.apply_result(query, Ok(_drivers("a"), pagination=Pagination(total_count=30, total_pages=3)))

    state.new_search("Pune")
    assert state.page_query(2).city == "Mumbai"


def test_shown_query_survives_fsm_storage():
    state = SearchState()
    state.new_search("Mumbai")
    query = state.apply_filters(min_experience="2")
    state.apply_result(query, Ok(_drivers("a"), pagination=Pagination(total_count=20, total_pages=2)))
    state.new_search("Pune")

    restored = SearchState.from_dict(state.to_dict())
    assert restored.city == "Pune"
    page_two = restored.page_query(2)
    assert page_two.city == "Mumbai"
    assert page_two.params == {"page": 2, "limit": 10, "minExperience": 2}
