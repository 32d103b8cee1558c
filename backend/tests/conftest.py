"""
Root pytest configuration for backend tests.

Provides:
- Shared fixtures (app, client, settings)
- A seeded in-memory SQLite market (Austin 78701 peer group + one Boston row)
"""

import sys
from pathlib import Path

# Add backend directory to Python path so imports like
# `from db.sql import ...` and `from utils.normalize import ...` work
backend_dir = Path(__file__).parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from datetime import date

import pytest


def _dollars(value):
    return int(round(value * 100))


@pytest.fixture
def settings():
    from config import SearchSettings
    return SearchSettings()


@pytest.fixture
def app():
    """Create test Flask application on an in-memory database."""
    from app import create_app
    from config import TestConfig
    from models.database import db

    app = create_app(TestConfig)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture
def make_property(app):
    """Insert one listing; price and rent are given in dollars."""
    from models.database import db
    from models.property import Property

    counter = {'n': 0}

    def _make(price, rent, **overrides):
        counter['n'] += 1
        fields = {
            'external_id': f"test-{counter['n']}",
            'address': f"{100 + counter['n']} Congress Ave",
            'city': 'Austin',
            'state': 'TX',
            'zip_code': '78701',
            'county': 'Travis',
            'latitude': 30.27 + counter['n'] / 1000,
            'longitude': -97.74,
            'bedrooms': 2,
            'bathrooms': 2.0,
            'square_feet': 1100,
            'property_type': 'single_family',
            'data_source': 'test',
            'is_active': True,
        }
        fields.update(overrides)
        prop = Property(list_price=_dollars(price), estimated_rent=_dollars(rent), **fields)
        db.session.add(prop)
        db.session.commit()
        return prop

    return _make


@pytest.fixture
def seeded(app, make_property):
    """
    Six active Austin listings sharing the (78701, 2 bed) peer group,
    one inactive Austin listing and one Boston listing.

    Ratios: 1.0, 0.9, 0.8, 0.7, 0.6, 1.5 (Austin), 0.6 (Boston).
    """
    from models.database import db
    from models.rental_comp import RentalComp

    austin = [
        make_property(200_000, 2_000),
        make_property(200_000, 1_800),
        make_property(250_000, 2_000),
        make_property(300_000, 2_100),
        make_property(300_000, 1_800),
        make_property(100_000, 1_500, ratio_vs_market_percent=76.47),
    ]
    inactive = make_property(100_000, 5_000, is_active=False)
    boston = make_property(
        500_000, 3_000,
        address='9 Beacon St', city='Boston', state='MA', zip_code='02134',
        county='Suffolk', latitude=42.35, longitude=-71.06, bedrooms=3,
    )

    db.session.add(RentalComp(
        external_id='comp-1',
        address='200 Congress Ave',
        city='Austin',
        state='TX',
        zip_code='78701',
        latitude=30.275,
        longitude=-97.741,
        bedrooms=2,
        bathrooms=2.0,
        square_feet=1000,
        monthly_rent=_dollars(1_950),
        listing_date=date(2024, 3, 1),
        data_source='test',
    ))
    db.session.commit()

    return {
        'austin': austin,
        'best': austin[-1],
        'inactive': inactive,
        'boston': boston,
    }
