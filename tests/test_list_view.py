import pytest

from list_view import (
    ELLIPSIS, UNBOUNDED, Fixed, ListViewController, RangeFilter, SortConfig, by_attr, by_lookup,
    by_lookup_many, generate_pagination, parse_page_size, stable_sort,
)

POSTS = [
    {"id": 1, "title": "Intro to Rust", "authorId": 10, "categoryIds": [1], "create_at": "2024-01-05T10:00:00"},
    {"id": 2, "title": "Async Python", "authorId": 11, "categoryIds": [2], "create_at": "2024-02-10T10:00:00"},
    {"id": 3, "title": "rust macros", "authorId": 10, "categoryIds": [1, 2], "create_at": "2024-03-15T10:00:00"},
    {"id": 4, "title": "Gardening", "authorId": None, "categoryIds": [], "create_at": "2024-04-20T10:00:00"},
]
AUTHORS = {10: "Alice", 11: "Bob"}
CATEGORIES = {1: "Systems", 2: "Languages"}


def make_view(**kwargs):
    fields = {
        "blog": by_attr("title"),
        "author": by_lookup("authorId", AUTHORS),
        "category": by_lookup_many("categoryIds", CATEGORIES),
    }
    return ListViewController(items=POSTS, search_fields=fields, **kwargs)


def ids(rows):
    return [row["id"] for row in rows]


def test_search_is_case_insensitive_substring():
    view = make_view(page_size=UNBOUNDED)
    view.set_search("RUST")
    assert ids(view.view) == [1, 3]


def test_search_through_lookups():
    view = make_view(page_size=UNBOUNDED)
    view.set_search("ali", "author")
    assert ids(view.view) == [1, 3]
    view.set_search("lang", "category")
    assert ids(view.view) == [2, 3]


def test_rows_with_missing_lookup_never_match_non_empty_search():
    view = make_view(page_size=UNBOUNDED)
    view.set_search("a", "author")
    assert 4 not in ids(view.view)


def test_unknown_search_field_is_rejected():
    with pytest.raises(ValueError):
        make_view().set_search("x", "nope")


def test_stable_sort_keeps_input_order_for_ties():
    rows = [{"id": 1, "k": 2}, {"id": 2, "k": 1}, {"id": 3, "k": 2}, {"id": 4, "k": 1}]
    assert ids(stable_sort(rows, "k")) == [2, 4, 1, 3]
    assert ids(stable_sort(rows, "k", "desc")) == [1, 3, 2, 4]


def test_sort_treats_missing_values_as_equal():
    rows = [{"id": 1, "k": None}, {"id": 2, "k": 5}, {"id": 3, "k": None}]
    assert ids(stable_sort(rows, "k")) == [1, 2, 3]


def test_sort_toggle():
    view = make_view(page_size=UNBOUNDED)
    assert view.sort == SortConfig("id", "asc")
    view.sort_by("id")
    assert ids(view.view) == [4, 3, 2, 1]
    view.sort_by("title")
    assert view.sort == SortConfig("title", "asc")


def test_sort_change_keeps_current_page():
    view = make_view(page_size=Fixed(1))
    view.go_to(3)
    view.sort_by("id")
    assert view.page == 3


def test_pagination_slices_and_clamps():
    view = make_view(page_size=Fixed(3))
    assert ids(view.view) == [1, 2, 3]
    assert view.total_pages == 2
    view.next_page()
    assert ids(view.view) == [4]
    view.next_page()
    assert view.page == 2
    view.go_to(0)
    assert view.page == 1
    view.previous_page()
    assert view.page == 1


def test_page_resets_on_search_filter_and_size_change():
    view = make_view(page_size=Fixed(1))
    view.go_to(3)
    view.set_search("")
    assert view.page == 1
    view.go_to(2)
    view.set_filters([RangeFilter("id", 1, 4)])
    assert view.page == 1
    view.go_to(2)
    view.set_page_size(Fixed(2))
    assert view.page == 1


def test_empty_result_still_has_one_page():
    view = make_view()
    view.set_search("no such title")
    assert view.view == []
    assert view.total_pages == 1
    assert view.pagination() == [1]


def test_unbounded_page_size_shows_everything():
    view = make_view(page_size=UNBOUNDED)
    assert ids(view.view) == [1, 2, 3, 4]
    assert view.state()["pageSize"] == "all"


def test_numeric_range_is_inclusive():
    view = make_view(page_size=UNBOUNDED)
    view.set_filters([RangeFilter("id", 2, 3)])
    assert ids(view.view) == [2, 3]


def test_date_range_filter():
    view = make_view(page_size=UNBOUNDED)
    view.set_filters([RangeFilter("create_at", "2024-02-01", "2024-03-31")])
    assert ids(view.view) == [2, 3]


def test_half_open_range_and_reset():
    view = make_view(page_size=UNBOUNDED)
    view.set_filters([RangeFilter("id", from_=3)])
    assert ids(view.view) == [3, 4]
    view.reset_filters()
    assert ids(view.view) == [1, 2, 3, 4]
    assert view.filters == [RangeFilter("id")]


def test_range_excludes_rows_without_the_field():
    rows = [{"id": 1, "n": 5}, {"id": 2}]
    assert not RangeFilter("n", 1, 10).matches(rows[1])
    assert RangeFilter("n").matches(rows[1])


def test_remove_drops_row_locally():
    view = make_view(page_size=UNBOUNDED)
    view.remove(2)
    assert ids(view.view) == [1, 3, 4]
    assert len(POSTS) == 4


def test_no_sort_keeps_backend_order():
    rows = [{"id": 3}, {"id": 1}, {"id": 2}]
    view = ListViewController(items=rows, sort=None, page_size=UNBOUNDED)
    assert ids(view.view) == [3, 1, 2]
    view.sort_by("id")
    assert view.sort == SortConfig("id", "asc")


@pytest.mark.parametrize("current,total,expected", [
    (1, 3, [1, 2, 3]),
    (1, 5, [1, 2, 3, 4, 5]),
    (1, 10, [1, 2, 3, 4, ELLIPSIS, 10]),
    (3, 10, [1, 2, 3, 4, ELLIPSIS, 10]),
    (9, 10, [1, ELLIPSIS, 7, 8, 9, 10]),
    (10, 10, [1, ELLIPSIS, 7, 8, 9, 10]),
    (5, 10, [1, ELLIPSIS, 4, 5, 6, ELLIPSIS, 10]),
])
def test_generate_pagination(current, total, expected):
    assert generate_pagination(current, total) == expected


def test_parse_page_size():
    assert parse_page_size("all") == UNBOUNDED
    assert parse_page_size("4") == Fixed(4)
    assert parse_page_size(None) == Fixed(3)
    assert parse_page_size("", default=Fixed(6)) == Fixed(6)
    with pytest.raises(ValueError, match="greater than 0"):
        parse_page_size("0")
    with pytest.raises(ValueError):
        parse_page_size("-2")


def test_view_is_recomputed_without_touching_items():
    view = make_view(page_size=Fixed(2))
    view.set_search("rust")
    view.set_filters([RangeFilter("id", 1, 3)])
    view.sort_by("id")
    before = [dict(item) for item in view.items]
    assert view.view == view.view
    assert ids(view.view) == [3, 1]
    assert view.items == before


def test_removing_a_filtered_out_row_keeps_view_length():
    view = make_view(page_size=UNBOUNDED)
    view.set_search("rust")
    shown = len(view.view)
    view.remove(2)
    assert len(view.view) == shown
    assert 2 not in ids(view.items)
    view.remove(3)
    assert len(view.view) == shown - 1
    assert 3 not in ids(view.view)
