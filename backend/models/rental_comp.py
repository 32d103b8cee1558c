"""
RentalComp Model - observed rental listings used as comparables

Read-only from the API's perspective; populated by ingestion.
monthly_rent is integer cents.
"""
from datetime import datetime, timezone

from models.database import db


class RentalComp(db.Model):
    __tablename__ = 'rental_comps'

    id = db.Column(db.Integer, primary_key=True)
    external_id = db.Column(db.String(100), unique=True)

    address = db.Column(db.String(255))
    city = db.Column(db.String(100), index=True)
    state = db.Column(db.String(2), index=True)
    zip_code = db.Column(db.String(10), index=True)
    latitude = db.Column(db.Numeric(10, 8))
    longitude = db.Column(db.Numeric(11, 8))

    bedrooms = db.Column(db.Integer)
    bathrooms = db.Column(db.Numeric(3, 1))
    square_feet = db.Column(db.Integer)
    property_type = db.Column(db.String(50))

    monthly_rent = db.Column(db.Integer, nullable=False)
    listing_date = db.Column(db.Date)
    data_source = db.Column(db.String(50))
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc).replace(tzinfo=None))
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    __table_args__ = (
        db.Index('ix_rental_comps_zip_bedrooms', 'zip_code', 'bedrooms'),
    )
