import pytest
from click.testing import CliRunner

import cli
from models.database import db
from models.property import Property

CSV_TEXT = (
    "external_id,address,city,state,zip_code,bedrooms,list_price,estimated_rent\n"
    "mls-1,1 Main St,Austin,tx,78701,2,300000,2500\n"
    "mls-2,,Austin,TX,78701,2,250000,2000\n"
)


@pytest.fixture
def runner(app, monkeypatch):
    monkeypatch.setattr(cli, 'get_app_context', app.app_context)
    return CliRunner()


def test_listing_from_csv_row_converts_dollars_to_cents():
    listing = cli.listing_from_csv_row({
        'external_id': 'mls-1',
        'address': '1 Main St',
        'city': 'Austin',
        'state': 'TX',
        'zip_code': '78701',
        'bedrooms': '3',
        'bathrooms': '2.5',
        'list_price': '300000',
        'estimated_rent': '2500.50',
    }, default_source='csv')

    assert listing['list_price'] == 30_000_000
    assert listing['estimated_rent'] == 250_050
    assert listing['bedrooms'] == 3
    assert listing['bathrooms'] == 2.5
    assert listing['data_source'] == 'csv'


def test_listing_from_csv_row_requires_location():
    assert cli.listing_from_csv_row({'external_id': 'x', 'address': '', 'city': 'Austin'}) is None


def test_import_listings_dry_run(tmp_path):
    path = tmp_path / "listings.csv"
    path.write_text(CSV_TEXT)

    result = CliRunner().invoke(cli.cli, ['import-listings', str(path), '--dry-run'])
    assert result.exit_code == 0
    assert "Parsed 2 rows: 1 valid, 1 skipped" in result.output
    assert "Dry run" in result.output


def test_import_listings(runner, tmp_path):
    path = tmp_path / "listings.csv"
    path.write_text(CSV_TEXT)

    result = runner.invoke(cli.cli, ['import-listings', str(path), '--source', 'mls'])
    assert result.exit_code == 0, result.output
    assert "Imported 1 listings (1 new, 0 updated)" in result.output

    prop = Property.query.filter_by(external_id='mls-1').one()
    assert prop.state == 'TX'
    assert prop.data_source == 'mls'
    assert float(prop.price_to_rent_ratio) == 0.83


def test_recompute_metrics(runner, seeded):
    result = runner.invoke(cli.cli, ['recompute-metrics'])
    assert result.exit_code == 0, result.output
    assert "Updated 7 listings (6 with enough peers)" in result.output

    db.session.expire_all()
    best = db.session.get(Property, seeded['best'].id)
    boston = db.session.get(Property, seeded['boston'].id)
    assert float(best.ratio_vs_market_percent) == 76.47
    assert boston.ratio_vs_market_percent is None


def test_cli_reports_installed_script_name(runner):
    result = runner.invoke(cli.cli, ['--version'])
    assert result.exit_code == 0
    assert result.output.startswith("roiscout-cli")
    assert 'recompute-metrics' in cli.cli.commands


def test_deactivate_stale_dry_run(runner, seeded):
    result = runner.invoke(cli.cli, ['deactivate-stale', '--days', '30', '--dry-run'])
    assert result.exit_code == 0, result.output
    assert "would deactivate 0 listings" in result.output
