# backend/tests/test_routes_misc.py
"""
Pricing data, heatmap, export, health and the shared error envelope.
"""
from sqlalchemy.exc import OperationalError

from services.response_cache import TTLCache


def test_pricing_data_requires_state(client, seeded):
    r = client.get('/api/data/pricing-data')
    assert r.status_code == 400
    body = r.get_json()
    assert body['error'] == 'Invalid parameter'
    assert body['message'] == 'State parameter is required'
    assert body['code'] == 'INVALID_PARAMS'
    assert body['field'] == 'state'


def test_pricing_data_by_zip(client, seeded):
    body = client.get('/api/data/pricing-data?state=tx').get_json()

    assert body['total'] == 1
    row = body['data'][0]
    assert row['zip_code'] == '78701'
    assert row['county'] == 'Travis'
    assert row['property_count'] == 6
    assert row['median_price'] == 225000.0
    assert row['median_rent'] == 1900.0
    assert body['source'] == 'properties'


def test_pricing_data_bounds_apply_to_medians(client, seeded):
    assert client.get('/api/data/pricing-data?state=TX&minPrice=300000').get_json()['total'] == 0
    assert client.get('/api/data/pricing-data?state=TX&county=travis').get_json()['total'] == 1
    body = client.get('/api/data/pricing-data?state=TX&county=Suffolk').get_json()
    assert body['total'] == 0
    assert body['filters'] == {'state': 'TX', 'county': 'Suffolk'}


def test_states(client):
    states = client.get('/api/data/states').get_json()['states']
    assert 'TX' in states and 'DC' in states


def test_heatmap_bounds_and_zoom(client, seeded):
    body = client.get('/api/map/heatmap?bounds=31,-97,30,-98&zoomLevel=10').get_json()
    assert body['total_points'] == 6
    assert body['limit'] == 500
    assert body['bounds_used'] == [31.0, -97.0, 30.0, -98.0]
    assert body['points'][0]['ratio'] == 1.5
    assert body['points'][0]['price'] == 100000.0


def test_heatmap_ignores_malformed_bounds(client, seeded):
    body = client.get('/api/map/heatmap?bounds=1,2&zoomLevel=13').get_json()
    assert body['bounds_used'] is None
    assert body['total_points'] == 7
    assert body['limit'] == 1000


def test_export_csv(client, seeded):
    r = client.post('/api/export/csv', json={'state': 'TX'})
    assert r.status_code == 200
    assert r.mimetype == 'text/csv'
    disposition = r.headers['Content-Disposition']
    assert disposition.startswith('attachment; filename="roiscout-properties-')
    assert disposition.endswith('.csv"')

    lines = r.get_data(as_text=True).strip().split('\n')
    assert lines[0].startswith('Address,City,State,Zip Code')
    assert len(lines) == 7


def test_export_pdf_without_body(client, seeded):
    r = client.post('/api/export/pdf')
    assert r.status_code == 200
    assert r.mimetype == 'application/pdf'
    assert r.data.startswith(b'%PDF')


def test_health(client, app):
    r = client.get('/api/health')
    assert r.status_code == 200
    body = r.get_json()
    assert body['status'] == 'healthy'
    assert body['database'] == 'ok'
    assert body['cache']['ttl'] == 0


def test_unknown_route_uses_error_envelope(client):
    r = client.get('/api/nope')
    assert r.status_code == 404
    assert r.get_json()['code'] == 'NOT_FOUND'

    r = client.post('/api/properties')
    assert r.status_code == 405
    assert r.get_json()['code'] == 'METHOD_NOT_ALLOWED'


def test_request_id_round_trip(client, seeded):
    r = client.get('/api/properties', headers={'X-Request-ID': 'abc-123'})
    assert r.headers['X-Request-ID'] == 'abc-123'

    r = client.get('/api/properties/99999', headers={'X-Request-ID': 'bad id!'})
    request_id = r.headers['X-Request-ID']
    assert request_id != 'bad id!'
    assert r.get_json()['requestId'] == request_id


class BrokenRepository:
    def __init__(self, error):
        self.error = error

    def fetch_page(self, queries):
        raise self.error

    fetch_rows = fetch_page


def test_database_failure_returns_generic_500(app, client):
    error = OperationalError("SELECT secret_column FROM properties", {}, Exception("connection refused"))
    app.extensions['roiscout']['repository'] = BrokenRepository(error)

    r = client.get('/api/properties')
    assert r.status_code == 500
    body = r.get_json()
    assert body['error'] == 'Database error'
    assert body['message'] == 'Unable to retrieve properties'
    assert body['code'] == 'DATABASE_ERROR'
    assert 'secret_column' not in r.get_data(as_text=True)

    r = client.post('/api/export/csv', json={})
    assert r.status_code == 500
    assert r.get_json()['message'] == 'Unable to export CSV'


def test_unexpected_failure_returns_internal_error(app, client):
    app.extensions['roiscout']['repository'] = BrokenRepository(RuntimeError("boom"))

    r = client.get('/api/properties')
    assert r.status_code == 500
    body = r.get_json()
    assert body['error'] == 'Internal server error'
    assert body['message'] == 'An unexpected error occurred'


def test_response_cache_shares_entries_across_spellings(app, client, seeded):
    cache = TTLCache(maxsize=10, ttl=60)
    app.extensions['roiscout']['cache'] = cache

    first = client.get('/api/properties?minRatio=0.85').get_json()
    second = client.get('/api/properties?min_ratio=0.85').get_json()

    assert first == second
    assert cache.hits == 1
    assert cache.misses == 1


def test_counties_for_state(client, seeded):
    body = client.get('/api/data/counties/tx').get_json()
    assert body['state'] == 'TX'
    assert body['data'] == [{'name': 'Travis', 'zip_count': 1, 'property_count': 6}]
    assert body['total'] == 1


def test_counties_rejects_unknown_state(client, seeded):
    r = client.get('/api/data/counties/XX')
    assert r.status_code == 400
    body = r.get_json()
    assert body['code'] == 'INVALID_PARAMS'
    assert body['field'] == 'state'


def test_zip_codes_for_county(client, seeded):
    body = client.get('/api/data/zipcodes/travis?state=TX').get_json()
    assert body['total'] == 1
    assert body['state'] == 'TX'
    assert body['data'] == [{
        'code': '78701',
        'state': 'TX',
        'property_count': 6,
        'median_price': 225000.0,
        'median_rent': 1900.0,
    }]

    assert client.get('/api/data/zipcodes/Travis?state=MA').get_json()['total'] == 0
    assert client.get('/api/data/zipcodes/Nowhere').get_json()['data'] == []


def test_clusters_group_by_grid_cell(client, seeded):
    body = client.get('/api/map/clusters?zoomLevel=5').get_json()
    assert body['zoom_level'] == 5
    assert body['grid_size'] == 0.1
    assert body['total_clusters'] == 2

    austin = body['clusters'][0]
    assert (austin['lat'], austin['lng']) == (30.3, -97.7)
    assert austin['count'] == 6
    assert austin['avg_ratio'] == 0.92
    assert austin['avg_price'] == 208333.33
    assert body['clusters'][1]['count'] == 1


def test_clusters_split_at_close_zoom(client, seeded):
    body = client.get('/api/map/clusters?zoomLevel=12').get_json()
    assert body['grid_size'] == 0.001
    assert body['total_clusters'] == 7
    assert {c['count'] for c in body['clusters']} == {1}


def test_clusters_default_zoom_and_bounds(client, seeded):
    body = client.get('/api/map/clusters?bounds=31,-97,30,-98').get_json()
    assert body['zoom_level'] == 8
    assert body['grid_size'] == 0.01
    assert sum(c['count'] for c in body['clusters']) == 6


def test_oversized_numbers_are_ignored(client, seeded):
    r = client.get('/api/properties?offset=1e30')
    assert r.status_code == 200
    body = r.get_json()
    assert body['properties'] == []
    assert body['pagination']['offset'] == 2**31 - 1
    assert body['pagination']['total'] == 7
    assert body['pagination']['hasMore'] is False

    body = client.get('/api/properties?minPrice=1e30&maxRent=-1e30').get_json()
    assert body['pagination']['total'] == 7
    assert body['filters'] == {}

    r = client.post('/api/export/csv', json={'maxPrice': 1e20, 'minSqft': 1e30})
    assert r.status_code == 200
    assert len(r.get_data(as_text=True).strip().split('\n')) == 8


def test_non_object_json_body_is_an_empty_filter(client, seeded):
    r = client.post('/api/export/csv', json='zipCode')
    assert r.status_code == 200
    assert len(r.get_data(as_text=True).strip().split('\n')) == 8

    assert client.post('/api/export/pdf', json=['78701']).status_code == 200


def test_csv_export_escapes_formula_cells(client, make_property):
    make_property(200_000, 2_000, address='=HYPERLINK("http://evil")', city='@Austin')

    lines = client.post('/api/export/csv', json={}).get_data(as_text=True).strip().split('\n')
    assert lines[1].startswith('"\'=HYPERLINK(""http://evil"")",\'@Austin,')
