import pytest

from utils.normalize import (
    clean_str,
    lenient_float,
    lenient_int,
    split_csv,
    strict_true,
    to_number,
)
from decimal import Decimal


@pytest.mark.parametrize("raw", [None, "", "  ", "abc", "nan", "inf", True])
def test_lenient_float_drops_junk(raw):
    assert lenient_float(raw) is None


def test_lenient_int_rejects_fractions():
    assert lenient_int("3") == 3
    assert lenient_int("3.0") == 3
    assert lenient_int("3.5") is None


def test_strict_true_only_accepts_true():
    assert strict_true("true") is True
    assert strict_true(" TRUE ") is True
    assert strict_true("1") is False
    assert strict_true("yes") is False
    assert strict_true(True) is True


def test_split_csv_flattens_lists():
    assert split_csv("a, b,,c") == ["a", "b", "c"]
    assert split_csv(["a", "b,c"]) == ["a", "b", "c"]
    assert split_csv(None) == []


def test_clean_str_and_to_number():
    assert clean_str("  Austin ") == "Austin"
    assert clean_str("   ") is None
    assert to_number(Decimal("1.25")) == 1.25
    assert to_number("x") is None
