"""
Models package - SQLAlchemy models
"""
from models.database import db
from models.property import Property
from models.rental_comp import RentalComp

__all__ = [
    'db',
    'Property',
    'RentalComp',
]
