import pytest

from constants import SEARCH_SORT_COLUMNS
from utils.filter_builder import POSTGRES, Predicate
from utils.query_builder import (
    Page,
    SortSpec,
    build_search_queries,
    build_select,
    clamp_page,
    resolve_sort,
)


def test_unknown_sort_falls_back_to_default_column_and_direction():
    sort = resolve_sort("list_price; DROP TABLE properties", "asc", SEARCH_SORT_COLUMNS)
    assert sort == SortSpec("price_to_rent_ratio", "DESC")


def test_missing_sort_uses_default():
    assert resolve_sort(None, None, SEARCH_SORT_COLUMNS) == SortSpec("price_to_rent_ratio", "DESC")


def test_allowed_sort_direction():
    assert resolve_sort("list_price", "ASC", SEARCH_SORT_COLUMNS).direction == "ASC"
    assert resolve_sort("list_price", "sideways", SEARCH_SORT_COLUMNS).direction == "DESC"
    assert resolve_sort("list_price_dollars", "asc", SEARCH_SORT_COLUMNS).column == "list_price"


def test_default_column_must_be_allowed():
    with pytest.raises(ValueError):
        resolve_sort(None, None, {"city": "city"})


def test_clamp_page():
    assert clamp_page(None, None, default_limit=50, max_limit=100) == Page(50, 0)
    assert clamp_page(500, -3, default_limit=50, max_limit=100) == Page(100, 0)
    assert clamp_page(0, 5, default_limit=50, max_limit=100) == Page(1, 5)
    assert clamp_page(10, 10**30, default_limit=50, max_limit=100) == Page(10, 2**31 - 1)


def test_primary_and_count_share_where_clause():
    queries = build_search_queries(
        columns=("id", "list_price"),
        table="properties",
        predicates=[Predicate.raw("is_active = true"), Predicate("bedrooms", "=", 2)],
        sort=SortSpec("price_to_rent_ratio", "DESC"),
        page=Page(25, 50),
    )

    where = "WHERE is_active = true AND bedrooms = :p1"
    assert where in queries.primary.sql
    assert where in queries.count.sql
    assert "ORDER BY price_to_rent_ratio DESC NULLS LAST, id ASC" in queries.primary.sql
    assert queries.primary.sql.endswith("LIMIT :p2 OFFSET :p3")
    assert queries.count.sql.startswith("SELECT COUNT(*) AS total")
    assert "ORDER BY" not in queries.count.sql

    assert queries.primary.params == (2, 25, 50)
    assert queries.count.params == (2,)
    assert queries.primary.bind_params() == {"p1": 2, "p2": 25, "p3": 50}


def test_positional_dialect_numbers_limit_after_filters():
    queries = build_search_queries(
        columns=("id",),
        table="properties",
        predicates=[Predicate("state", "ieq", "TX")],
        sort=SortSpec("list_price", "ASC"),
        page=Page(10, 0),
        dialect=POSTGRES,
    )
    assert queries.primary.sql.endswith("LIMIT $2 OFFSET $3")
    assert queries.primary.bind_params() == ["TX", 10, 0]


def test_build_select_without_predicates():
    statement = build_select(columns=("id",), table="properties", predicates=[], limit=5)
    assert statement.sql == "SELECT\n    id\nFROM properties\nLIMIT :p1"
    assert statement.bind_params() == {"p1": 5}
