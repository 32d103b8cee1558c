"""
Investment Metrics - Pure Functions for Testing

All functions are pure (no I/O, no database access). Inputs are dollars
(or cents, as long as price and rent share a unit; the ratios are unitless).

Usage:
    from services.metrics import (
        price_to_rent_ratio,
        cap_rate,
        percentile,
        summarize,
    )
"""

import math
from typing import Any, Dict, Iterable, List, Optional

from constants import INSUFFICIENT_DATA


# =============================================================================
# CONFIGURATION
# =============================================================================

# Default operating expenses as a share of monthly rent
DEFAULT_MAINTENANCE_RATE = 0.10
DEFAULT_VACANCY_RATE = 0.05
DEFAULT_MANAGEMENT_RATE = 0.08


def _positive(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or number <= 0:
        return None
    return number


# =============================================================================
# RATIOS
# =============================================================================

def price_to_rent_ratio(list_price: Any, monthly_rent: Any) -> Optional[float]:
    """
    Monthly rent as a percentage of list price, rounded to 2 places.

    Returns None if either input is absent or non-positive.

    Example:
        >>> price_to_rent_ratio(300000, 2500)
        0.83
    """
    price = _positive(list_price)
    rent = _positive(monthly_rent)
    if price is None or rent is None:
        return None
    return round((rent / price) * 100, 2)


def cap_rate(list_price: Any, monthly_rent: Any) -> Optional[float]:
    """
    Gross cap rate: annual rent as a percentage of list price.

    Example:
        >>> cap_rate(300000, 2500)
        10.0
    """
    price = _positive(list_price)
    rent = _positive(monthly_rent)
    if price is None or rent is None:
        return None
    return round((rent * 12 / price) * 100, 2)


def gross_rent_multiplier(list_price: Any, monthly_rent: Any) -> Optional[float]:
    """List price divided by annual rent."""
    price = _positive(list_price)
    rent = _positive(monthly_rent)
    if price is None or rent is None:
        return None
    return round(price / (rent * 12), 2)


# =============================================================================
# DISTRIBUTION STATISTICS
# =============================================================================

def median(values: Iterable[float]) -> Optional[float]:
    """Median after sorting ascending; None for an empty input."""
    ordered = sorted(values)
    n = len(ordered)
    if n == 0:
        return None
    mid = n // 2
    if n % 2 == 0:
        return (ordered[mid - 1] + ordered[mid]) / 2
    return ordered[mid]


def percentile(sorted_values: List[float], p: float) -> Optional[float]:
    """
    Linear-interpolation percentile.

    index = p/100 * (n-1); the result interpolates between the floor and
    ceil elements by the fractional part of index. Input must be sorted
    ascending. Returns None for an empty input.
    """
    n = len(sorted_values)
    if n == 0:
        return None
    if n == 1:
        return sorted_values[0]
    p = min(max(p, 0.0), 100.0)
    index = (p / 100) * (n - 1)
    lower = math.floor(index)
    upper = math.ceil(index)
    weight = index - lower
    return sorted_values[lower] * (1 - weight) + sorted_values[upper] * weight


def percentile_rank(sorted_values: List[float], value: float) -> Optional[float]:
    """Share of values <= value, scaled to 0-100. None for an empty input."""
    n = len(sorted_values)
    if n == 0 or value is None:
        return None
    count = sum(1 for v in sorted_values if v <= value)
    return (count / n) * 100


def mean(values: Iterable[float]) -> Optional[float]:
    items = list(values)
    if not items:
        return None
    return sum(items) / len(items)


def summarize(values: Iterable[Any], min_sample: int = 3) -> Dict[str, Any]:
    """
    Market aggregate for one group of values.

    Non-numeric and missing values are dropped first. Groups smaller than
    min_sample degrade to an insufficient-data result instead of a stat.

    Returns:
        {"status": "ok", "count", "mean", "median", "p25", "p75", "min", "max"}
        or {"status": "insufficient_data", "count", "min_sample"}
    """
    numbers: List[float] = []
    for v in values:
        if v is None or isinstance(v, bool):
            continue
        try:
            number = float(v)
        except (TypeError, ValueError):
            continue
        if not math.isnan(number):
            numbers.append(number)

    numbers.sort()
    if len(numbers) < max(min_sample, 1):
        return {
            "status": INSUFFICIENT_DATA,
            "count": len(numbers),
            "min_sample": min_sample,
        }

    return {
        "status": "ok",
        "count": len(numbers),
        "mean": mean(numbers),
        "median": median(numbers),
        "p25": percentile(numbers, 25),
        "p75": percentile(numbers, 75),
        "min": numbers[0],
        "max": numbers[-1],
    }


# =============================================================================
# INVESTMENT METRICS
# =============================================================================

def investment_metrics(
    list_price: Any,
    monthly_rent: Any,
    expenses: Optional[Dict[str, float]] = None,
) -> Dict[str, Any]:
    """
    Unlevered investment metrics for one property.

    Expense keys (monthly, dollars): property_tax, insurance, maintenance,
    vacancy, management. Missing maintenance/vacancy/management default to
    10%/5%/8% of rent.

    Returns an insufficient-data result when price or rent is unusable.
    """
    price = _positive(list_price)
    rent = _positive(monthly_rent)
    if price is None or rent is None:
        return {"status": INSUFFICIENT_DATA}

    expenses = expenses or {}
    property_tax = float(expenses.get("property_tax") or 0)
    insurance = float(expenses.get("insurance") or 0)
    maintenance = expenses.get("maintenance")
    vacancy = expenses.get("vacancy")
    management = expenses.get("management")
    maintenance = rent * DEFAULT_MAINTENANCE_RATE if maintenance is None else float(maintenance)
    vacancy = rent * DEFAULT_VACANCY_RATE if vacancy is None else float(vacancy)
    management = rent * DEFAULT_MANAGEMENT_RATE if management is None else float(management)

    monthly_expenses = property_tax + insurance + maintenance + vacancy + management
    net_monthly_income = rent - monthly_expenses
    annual_net_income = net_monthly_income * 12

    return {
        "status": "ok",
        "price_to_rent_ratio": price_to_rent_ratio(price, rent),
        "gross_rent_multiplier": gross_rent_multiplier(price, rent),
        "gross_cap_rate": cap_rate(price, rent),
        "net_cap_rate": round((annual_net_income / price) * 100, 2),
        "monthly_gross_cash_flow": round(rent, 2),
        "monthly_net_cash_flow": round(net_monthly_income, 2),
        "annual_net_income": round(annual_net_income, 2),
        "monthly_expenses": {
            "total": round(monthly_expenses, 2),
            "property_tax": round(property_tax, 2),
            "insurance": round(insurance, 2),
            "maintenance": round(maintenance, 2),
            "vacancy": round(vacancy, 2),
            "management": round(management, 2),
        },
        "one_percent_rule": (rent / price) >= 0.01,
        "two_percent_rule": (rent / price) >= 0.02,
        "fifty_percent_rule": monthly_expenses <= rent * 0.5,
    }
