# backend/tests/test_routes_properties.py
"""
Search, detail and market endpoints against the seeded SQLite market.
"""
import pytest


def _ratios(body):
    return [p['price_to_rent_ratio'] for p in body['properties']]


def test_search_defaults(client, seeded):
    r = client.get('/api/properties')
    assert r.status_code == 200
    body = r.get_json()

    assert body['pagination'] == {'total': 7, 'limit': 50, 'offset': 0, 'hasMore': False}
    assert _ratios(body) == [1.5, 1.0, 0.9, 0.8, 0.7, 0.6, 0.6]
    assert body['filters'] == {}


def test_search_never_returns_inactive(client, seeded):
    body = client.get('/api/properties?limit=100').get_json()
    ids = [p['id'] for p in body['properties']]
    assert seeded['inactive'].id not in ids
    assert 5.0 not in _ratios(body)


def test_search_enriches_against_peer_group(client, seeded):
    best = client.get('/api/properties').get_json()['properties'][0]

    assert best['id'] == seeded['best'].id
    assert best['list_price'] == 100000.0
    assert best['estimated_rent'] == 1500.0
    assert best['ratio_vs_market_percent'] == 76.47
    assert best['peer_count'] == 6
    assert best['deal_quality'] == 'excellent'
    assert best['is_exceptional_deal'] is True


def test_search_min_ratio(client, seeded):
    body = client.get('/api/properties?minRatio=0.85').get_json()
    assert _ratios(body) == [1.5, 1.0, 0.9]
    assert body['filters'] == {'minRatio': 0.85}


def test_search_zip_keeps_leading_zero(client, seeded):
    body = client.get('/api/properties?zipCode=02134').get_json()
    assert body['pagination']['total'] == 1
    assert body['properties'][0]['zip_code'] == '02134'
    assert body['properties'][0]['deal_quality'] == 'unknown'


@pytest.mark.parametrize("query,total", [
    ("state=ma", 1),
    ("city=aus", 6),
    ("maxPrice=200000", 3),
    ("minRent=2000&maxRent=2050", 2),
    ("bedrooms=3", 1),
    ("propertyType=condo", 0),
    ("minPrice=abc", 7),
    ("anomaliesOnly=true", 1),
    ("anomaliesOnly=yes", 7),
])
def test_search_filters(client, seeded, query, total):
    body = client.get(f'/api/properties?{query}').get_json()
    assert body['pagination']['total'] == total
    assert len(body['properties']) == total


def test_sort_injection_falls_back_to_default(client, seeded):
    r = client.get('/api/properties', query_string={
        'sortBy': 'list_price; DROP TABLE properties',
        'sortOrder': 'asc',
    })
    assert r.status_code == 200
    assert _ratios(r.get_json())[0] == 1.5


def test_sort_by_price_ascending_breaks_ties_by_id(client, seeded):
    body = client.get('/api/properties?sortBy=list_price&sortOrder=asc').get_json()
    prices = [p['list_price'] for p in body['properties']]
    assert prices == sorted(prices)
    ids = [p['id'] for p in body['properties'] if p['list_price'] == 200000.0]
    assert ids == sorted(ids)


def test_pagination(client, seeded):
    body = client.get('/api/properties?limit=2&offset=2').get_json()
    assert body['pagination'] == {'total': 7, 'limit': 2, 'offset': 2, 'hasMore': True}
    assert _ratios(body) == [0.9, 0.8]

    assert client.get('/api/properties?limit=1000').get_json()['pagination']['limit'] == 100


def test_property_detail(client, seeded):
    r = client.get(f"/api/properties/{seeded['best'].id}")
    assert r.status_code == 200
    body = r.get_json()

    assert body['property']['id'] == seeded['best'].id
    assert body['property']['score']['total_score'] > 0
    assert len(body['comparables']) == 5
    assert seeded['best'].id not in [c['id'] for c in body['comparables']]
    assert body['nearbyComps'][0]['monthly_rent'] == 1950.0
    assert body['marketPosition']['status'] == 'ok'
    assert body['marketPosition']['comparable_count'] == 5


def test_property_detail_not_found(client, seeded):
    for property_id in (seeded['inactive'].id, 99999):
        r = client.get(f'/api/properties/{property_id}')
        assert r.status_code == 404
        body = r.get_json()
        assert body['error'] == 'Property not found'
        assert body['code'] == 'NOT_FOUND'
        assert body['requestId']


def test_market_statistics(client, seeded):
    body = client.get('/api/properties/market/tx/austin').get_json()

    assert body['market']['state'] == 'TX'
    stats = body['statistics']
    assert stats['totalProperties'] == 6
    assert stats['averagePrice'] == 225000
    assert stats['maxRatio'] == 1.5
    assert stats['mostCommonType'] == 'single_family'
    assert stats['ratioDistribution']['status'] == 'ok'
    assert [b['range'] for b in body['priceDistribution']] == ['$100K-$200K', '$200K-$300K', '$300K-$500K']


def test_market_not_found(client, seeded):
    r = client.get('/api/properties/market/ZZ/nowhere')
    assert r.status_code == 404
    assert r.get_json()['error'] == 'Market not found'
