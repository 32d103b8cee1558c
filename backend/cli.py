#!/usr/bin/env python3
"""
CLI for listing maintenance

Commands:
    import-listings     - Upsert listings from a CSV export (prices in dollars)
    recompute-metrics   - Refresh stored ratio_vs_market_percent from peer groups
    deactivate-stale    - Soft-delete listings not refreshed within N days

Usage:
    python cli.py import-listings data/listings.csv --source zillow
    python cli.py recompute-metrics
    python cli.py deactivate-stale --days 30 --dry-run
"""

import csv
import sys

import click

from utils.filter_builder import dollars_to_cents
from utils.normalize import clean_str, lenient_float, lenient_int

# CSV header -> (model field, parser)
CSV_FIELDS = {
    'external_id': ('external_id', clean_str),
    'address': ('address', clean_str),
    'city': ('city', clean_str),
    'state': ('state', clean_str),
    'zip_code': ('zip_code', clean_str),
    'county': ('county', clean_str),
    'latitude': ('latitude', lenient_float),
    'longitude': ('longitude', lenient_float),
    'bedrooms': ('bedrooms', lenient_int),
    'bathrooms': ('bathrooms', lenient_float),
    'square_feet': ('square_feet', lenient_int),
    'property_type': ('property_type', clean_str),
    'list_price': ('list_price', lenient_float),
    'estimated_rent': ('estimated_rent', lenient_float),
    'data_source': ('data_source', clean_str),
}

MONEY_COLUMNS = ('list_price', 'estimated_rent')


def get_app_context():
    """Get Flask app context for database access."""
    from app import create_app
    app = create_app()
    return app.app_context()


def listing_from_csv_row(row, default_source=None):
    """
    Parse one CSV row into an upsert payload.

    Dollar amounts become cents. Returns None when the row has no
    external_id, address, city, state or zip code.
    """
    listing = {}
    for header, (field, parse) in CSV_FIELDS.items():
        if header in row:
            listing[field] = parse(row[header])
    for column in MONEY_COLUMNS:
        if listing.get(column) is not None:
            listing[column] = dollars_to_cents(listing[column])
    if not listing.get('data_source') and default_source:
        listing['data_source'] = default_source

    required = ('external_id', 'address', 'city', 'state', 'zip_code')
    if any(not listing.get(field) for field in required):
        return None
    return listing


@click.group()
@click.version_option(version="1.0.0", prog_name="roiscout-cli")
def cli():
    """ROIscout CLI - listing import and maintenance."""
    pass


@cli.command("import-listings")
@click.argument("file_path", type=click.Path(exists=True))
@click.option("--source", default=None, help="data_source for rows that do not set one")
@click.option("--dry-run", is_flag=True, help="Parse and report without writing")
def import_listings(file_path, source, dry_run):
    """
    Upsert listings from a CSV file keyed by external_id.

    FILE_PATH: CSV with a header row (list_price and estimated_rent in dollars)
    """
    with open(file_path, newline='', encoding='utf-8') as handle:
        rows = list(csv.DictReader(handle))

    listings = [listing_from_csv_row(row, source) for row in rows]
    valid = [listing for listing in listings if listing is not None]
    skipped = len(listings) - len(valid)
    click.echo(f"Parsed {len(rows)} rows: {len(valid)} valid, {skipped} skipped")

    if dry_run:
        click.secho("Dry run - nothing written", fg="yellow")
        return

    with get_app_context():
        from models.database import db
        from models.property import Property

        created = 0
        try:
            for listing in valid:
                _, is_new = Property.upsert_from_listing(listing)
                created += int(is_new)
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            click.secho(f"Error: {e}", fg="red")
            sys.exit(1)

    click.secho(f"Imported {len(valid)} listings ({created} new, {len(valid) - created} updated)", fg="green")


@cli.command("recompute-metrics")
def recompute_metrics():
    """Recompute ratio_vs_market_percent for every active listing."""
    with get_app_context():
        from flask import current_app
        from models.database import db
        from services.market_service import recompute_market_percent

        ext = current_app.extensions['roiscout']
        try:
            result = recompute_market_percent(ext['repository'], ext['settings'])
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            click.secho(f"Error: {e}", fg="red")
            sys.exit(1)

    click.secho(
        f"Updated {result['rows']} listings ({result['with_market_data']} with enough peers)",
        fg="green",
    )


@cli.command("deactivate-stale")
@click.option("--days", type=int, default=None, help="Retention window (default STALE_RETENTION_DAYS)")
@click.option("--dry-run", is_flag=True, help="Roll back instead of committing")
def deactivate_stale(days, dry_run):
    """Soft-delete listings whose last_updated is older than the retention window."""
    with get_app_context():
        from flask import current_app
        from models.database import db
        from models.property import Property

        if days is None:
            days = current_app.extensions['roiscout']['settings'].stale_retention_days
        count = Property.deactivate_stale(days)
        if dry_run:
            db.session.rollback()
            click.secho(f"Dry run - would deactivate {count} listings older than {days} days", fg="yellow")
            return
        db.session.commit()

    click.secho(f"Deactivated {count} listings older than {days} days", fg="green")


if __name__ == "__main__":
    cli()
