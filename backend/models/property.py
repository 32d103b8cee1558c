"""
Property Model - one for-sale listing with ROI metrics

Money columns are integer cents:
  list_price       → asking price
  estimated_rent   → estimated monthly rent

Derived columns (nullable until computable):
  price_to_rent_ratio      → monthly rent / list price * 100
  cap_rate                 → annual rent / list price * 100
  ratio_vs_market_percent  → % above the (zip_code, bedrooms) peer median,
                             refreshed by `roiscout-cli recompute-metrics`

Listings are created/updated by ingestion through upsert_from_listing()
and soft-deleted by deactivate_stale(); rows are never hard-deleted here.
"""
from datetime import datetime, timedelta, timezone

from sqlalchemy import event

from constants import normalize_property_type
from db.sql import only_active
from models.database import db
from services import metrics


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


# Columns ingestion may set on upsert (external_id is the lookup key)
LISTING_FIELDS = (
    'address', 'city', 'state', 'zip_code', 'county',
    'latitude', 'longitude',
    'bedrooms', 'bathrooms', 'square_feet', 'property_type',
    'list_price', 'estimated_rent', 'data_source',
)


class Property(db.Model):
    __tablename__ = 'properties'

    id = db.Column(db.Integer, primary_key=True)
    external_id = db.Column(db.String(100), unique=True, nullable=False, index=True)

    # === Location ===
    address = db.Column(db.String(255), nullable=False)
    city = db.Column(db.String(100), nullable=False, index=True)
    state = db.Column(db.String(2), nullable=False, index=True)
    zip_code = db.Column(db.String(10), nullable=False, index=True)  # string: leading zeros
    county = db.Column(db.String(100))
    latitude = db.Column(db.Numeric(10, 8))
    longitude = db.Column(db.Numeric(11, 8))

    # === Structure ===
    bedrooms = db.Column(db.Integer, index=True)
    bathrooms = db.Column(db.Numeric(3, 1))
    square_feet = db.Column(db.Integer)
    property_type = db.Column(db.String(50), default='unknown', index=True)

    # === Financials (cents) ===
    list_price = db.Column(db.BigInteger)
    estimated_rent = db.Column(db.Integer)

    # === Derived ===
    price_to_rent_ratio = db.Column(db.Numeric(6, 2), index=True)
    cap_rate = db.Column(db.Numeric(6, 2))
    ratio_vs_market_percent = db.Column(db.Numeric(7, 2), index=True)

    data_source = db.Column(db.String(50))
    created_at = db.Column(db.DateTime, default=_utcnow)
    last_updated = db.Column(db.DateTime, default=_utcnow, index=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)

    __table_args__ = (
        db.Index('ix_properties_zip_bedrooms', 'zip_code', 'bedrooms'),
        db.Index('ix_properties_city_state', 'city', 'state'),
    )

    def apply_financials(self):
        """Recompute ratio and cap rate from the current price/rent (null unless both > 0)."""
        self.price_to_rent_ratio = metrics.price_to_rent_ratio(self.list_price, self.estimated_rent)
        self.cap_rate = metrics.cap_rate(self.list_price, self.estimated_rent)
        return self

    @classmethod
    def upsert_from_listing(cls, listing):
        """
        Create or update a listing keyed by external_id.

        Updates the listing fields present in `listing`, recomputes the
        financials, refreshes last_updated and reactivates the row.
        Caller commits.

        Returns:
            (Property, created: bool)
        """
        external_id = str(listing['external_id'])
        prop = cls.query.filter_by(external_id=external_id).first()
        created = prop is None
        if created:
            prop = cls(external_id=external_id)
            db.session.add(prop)

        for field in LISTING_FIELDS:
            if field in listing:
                setattr(prop, field, listing[field])
        if 'state' in listing and listing['state']:
            prop.state = str(listing['state']).upper()
        if 'property_type' in listing:
            prop.property_type = normalize_property_type(listing['property_type'])

        prop.apply_financials()
        prop.last_updated = _utcnow()
        prop.is_active = True
        return prop, created

    @classmethod
    def deactivate_stale(cls, retention_days, now=None):
        """
        Soft-delete listings not refreshed within retention_days.

        Returns:
            Number of rows deactivated. Caller commits.
        """
        cutoff = (now or _utcnow()) - timedelta(days=retention_days)
        return cls.query.filter(
            only_active(cls),
            cls.last_updated < cutoff,
        ).update({cls.is_active: False}, synchronize_session=False)


@event.listens_for(Property, 'before_insert')
@event.listens_for(Property, 'before_update')
def _keep_financials_current(mapper, connection, target):
    # Writes that bypass upsert_from_listing still keep the derived columns in sync
    target.apply_financials()
