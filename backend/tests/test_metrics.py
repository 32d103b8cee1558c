import random

import pytest

from constants import INSUFFICIENT_DATA
from services.metrics import (
    cap_rate,
    gross_rent_multiplier,
    investment_metrics,
    median,
    percentile,
    percentile_rank,
    price_to_rent_ratio,
    summarize,
)


def test_price_to_rent_ratio_rounds_to_two_places():
    assert price_to_rent_ratio(300_000, 2_500) == 0.83


def test_ratio_is_unitless_for_cents():
    assert price_to_rent_ratio(30_000_000, 250_000) == price_to_rent_ratio(300_000, 2_500)


@pytest.mark.parametrize("price,rent", [(0, 2500), (300000, 0), (-1, 2500), (None, 2500), (300000, None)])
def test_ratios_null_for_non_positive_inputs(price, rent):
    assert price_to_rent_ratio(price, rent) is None
    assert cap_rate(price, rent) is None
    assert gross_rent_multiplier(price, rent) is None


def test_cap_rate_and_grm():
    assert cap_rate(300_000, 2_500) == 10.0
    assert gross_rent_multiplier(300_000, 2_500) == 10.0


def test_median_even_and_odd():
    assert median([3, 1, 2]) == 2
    assert median([1, 2, 3, 4]) == 2.5
    assert median([]) is None


def test_percentile_linear_interpolation():
    assert percentile([1, 2, 3, 4, 5], 25) == 2
    assert percentile([1, 2, 3, 4], 50) == 2.5
    assert percentile([7], 90) == 7
    assert percentile([], 50) is None


@pytest.mark.parametrize("size", [1, 2, 3, 4, 5, 10, 11, 50, 51])
def test_fiftieth_percentile_equals_median(size):
    rng = random.Random(size)
    for _ in range(50):
        values = [round(rng.uniform(-50, 50), 2) for _ in range(size)]
        assert percentile(sorted(values), 50) == pytest.approx(median(values))


def test_fiftieth_percentile_equals_median_with_ties():
    values = [0.9, 0.4, 0.9, 0.4, 0.7, 0.4]
    assert median(values) == pytest.approx(0.55)
    assert percentile(sorted(values), 50) == pytest.approx(0.55)


def test_percentile_rank_counts_ties_as_below():
    assert percentile_rank([1, 2, 3, 4], 2) == 50.0
    assert percentile_rank([1, 2, 3, 4], 0) == 0.0
    assert percentile_rank([], 1) is None


def test_summarize_degrades_below_min_sample():
    result = summarize([1, 2], min_sample=3)
    assert result == {"status": INSUFFICIENT_DATA, "count": 2, "min_sample": 3}


def test_summarize_drops_non_numeric_values():
    result = summarize([3, "x", None, 1, 2], min_sample=3)
    assert result["status"] == "ok"
    assert result["count"] == 3
    assert result["median"] == 2
    assert result["p25"] == 1.5
    assert result["p75"] == 2.5
    assert (result["min"], result["max"]) == (1, 3)


def test_investment_metrics_default_expenses():
    result = investment_metrics(300_000, 2_500)

    assert result["status"] == "ok"
    assert result["monthly_expenses"]["total"] == 575.0
    assert result["monthly_net_cash_flow"] == 1925.0
    assert result["annual_net_income"] == 23100.0
    assert result["net_cap_rate"] == 7.7
    assert result["one_percent_rule"] is False
    assert result["fifty_percent_rule"] is True


def test_investment_metrics_without_rent():
    assert investment_metrics(300_000, None) == {"status": INSUFFICIENT_DATA}
