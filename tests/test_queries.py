from datetime import datetime

import pytest
from pymongo import ASCENDING, DESCENDING

from errors import ValidationError
from queries import (
    build_search_filter,
    paginate,
    parse_date_range,
    parse_list_params,
    parse_positive_int,
    parse_sort,
    total_pages,
)


def test_parse_positive_int_defaults_when_missing():
    assert parse_positive_int(None, "page", 1) == 1
    assert parse_positive_int("", "limit", 10) == 10
    assert parse_positive_int("25", "limit", 10) == 25


@pytest.mark.parametrize("value", ["abc", "1.5", "0", "-3"])
def test_parse_positive_int_rejects_bad_values(value):
    with pytest.raises(ValidationError) as exc:
        parse_positive_int(value, "page", 1)
    assert exc.value.status_code == 400
    assert "page" in exc.value.message


def test_parse_sort():
    assert parse_sort("name:desc") == [("name", DESCENDING)]
    assert parse_sort("email:asc") == [("email", ASCENDING)]
    assert parse_sort("email") == [("email", ASCENDING)]
    assert parse_sort("email:DESC") == [("email", ASCENDING)]


@pytest.mark.parametrize("value", [None, "", ":desc", "$where:asc"])
def test_parse_sort_ignores_unusable_fields(value):
    assert parse_sort(value) is None


def test_build_search_filter():
    assert build_search_filter(None, ("name", "email")) == {}
    assert build_search_filter("jo", ("name", "email")) == {
        "$or": [
            {"name": {"$regex": "jo", "$options": "i"}},
            {"email": {"$regex": "jo", "$options": "i"}},
        ]
    }


def test_build_search_filter_escapes_regex():
    filt = build_search_filter("a.b+", ("name",))
    assert filt["$or"][0]["name"]["$regex"] == r"a\.b\+"


def test_list_params_skip():
    params = parse_list_params(search="x", sort_by="name:desc", page="3", limit="5")
    assert params.skip == 10
    assert params.sort == [("name", DESCENDING)]


def test_total_pages():
    assert total_pages(0, 10) == 0
    assert total_pages(10, 10) == 1
    assert total_pages(11, 10) == 2


def test_paginate_caps_items_and_counts(db):
    for i in range(23):
        db["customer"].insert_one({"name": f"Customer {i:02d}"})
    params = parse_list_params(sort_by="name:asc", page="3", limit="10")
    page = paginate(db["customer"], {}, params)
    assert page.total == 23
    assert page.total_pages == 3
    assert page.current_page == 3
    assert [c["name"] for c in page.items] == ["Customer 20", "Customer 21", "Customer 22"]


def test_parse_date_range_end_date_covers_whole_day():
    start, end = parse_date_range("2024-01-01", "2024-01-31")
    assert start == datetime(2024, 1, 1)
    assert end.date() == datetime(2024, 1, 31).date()
    assert end > datetime(2024, 1, 31, 23, 59, 59)


def test_parse_date_range_converts_aware_datetimes_to_utc():
    start, end = parse_date_range("2024-01-01T02:00:00+02:00", None)
    assert start == datetime(2024, 1, 1, 0, 0, 0)
    assert end is None


def test_parse_date_range_rejects_bad_input():
    with pytest.raises(ValidationError):
        parse_date_range("yesterday", None)
    with pytest.raises(ValidationError):
        parse_date_range("2024-02-01", "2024-01-01")


@pytest.mark.parametrize("value", ["1_0", "١٠", "+3", "1e2"])
def test_parse_positive_int_accepts_only_ascii_digits(value):
    with pytest.raises(ValidationError):
        parse_positive_int(value, "limit", 10)


def test_parse_sort_reads_order_from_second_segment():
    assert parse_sort("name:desc:x") == [("name", DESCENDING)]
    assert parse_sort("name:asc:desc") == [("name", ASCENDING)]
