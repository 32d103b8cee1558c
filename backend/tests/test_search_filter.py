import pytest
from werkzeug.datastructures import MultiDict

from schemas.search_filter import SearchFilter, parse_search_filter
from utils.normalize import ValidationError


def test_empty_input_yields_empty_filter():
    f = parse_search_filter(None)
    assert f == SearchFilter()
    assert f.echo() == {}


def test_zip_codes_validated_and_deduplicated():
    f = parse_search_filter({"zipCode": "78701, 02134-1234, abc, 78701"})
    assert f.zip_codes == ("78701", "02134")


def test_repeated_zip_params_are_combined():
    f = parse_search_filter(MultiDict([("zipCode", "78701"), ("zipCode", "78702")]))
    assert f.zip_codes == ("78701", "78702")


def test_malformed_numbers_are_dropped_not_rejected():
    f = parse_search_filter({"minPrice": "abc", "maxPrice": "250000", "bedrooms": "3.5"})
    assert f.min_price is None
    assert f.max_price == 250000.0
    assert f.bedrooms is None


def test_snake_case_aliases():
    f = parse_search_filter({"min_ratio": "0.8", "sort_by": "cap_rate", "sort_order": "ASC"})
    assert f.min_ratio == 0.8
    assert f.sort_by == "cap_rate"
    assert f.sort_order == "asc"


def test_property_type_normalized_and_placeholder_values_ignored():
    assert parse_search_filter({"propertyType": "Single Family"}).property_type == "single_family"
    assert parse_search_filter({"propertyType": "Any"}).property_type is None
    assert parse_search_filter({"propertyType": "all"}).property_type is None


def test_state_uppercased_and_required_when_asked():
    assert parse_search_filter({"state": "tx"}).state == "TX"
    with pytest.raises(ValidationError) as exc:
        parse_search_filter({"city": "Austin"}, require_state=True)
    assert str(exc.value) == "State parameter is required"
    assert exc.value.field == "state"


def test_anomalies_only_requires_literal_true():
    assert parse_search_filter({"anomaliesOnly": "true"}).anomalies_only is True
    assert parse_search_filter({"anomaliesOnly": "yes"}).anomalies_only is False
    assert parse_search_filter({"anomaliesOnly": "1"}).anomalies_only is False


def test_echo_uses_client_names():
    f = parse_search_filter({"zipCode": "78701", "minPrice": "100000", "limit": "10"})
    assert f.echo() == {"zipCode": ["78701"], "minPrice": 100000.0}
    assert f.cache_params()["limit"] == 10


def test_out_of_range_numbers_are_dropped():
    f = parse_search_filter({
        "minPrice": "1e30",
        "maxRent": "-1e15",
        "maxRatio": "1e9",
        "bedrooms": "1e30",
        "minSqft": "3000000000",
        "maxPrice": "1e12",
    })
    assert f.min_price is None
    assert f.max_rent is None
    assert f.max_ratio is None
    assert f.bedrooms is None
    assert f.min_sqft is None
    assert f.max_price == 1e12
    assert "minPrice" not in f.echo()


@pytest.mark.parametrize("raw", ["zipCode", ["78701"], 42, True])
def test_non_object_input_yields_empty_filter(raw):
    assert parse_search_filter(raw) == SearchFilter()
