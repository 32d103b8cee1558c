"""
Utility modules for the backend.
"""
from .normalize import (
    ValidationError,
    lenient_float,
    lenient_int,
    strict_true,
    clean_str,
    split_csv,
    to_number,
)

__all__ = [
    'ValidationError',
    'lenient_float',
    'lenient_int',
    'strict_true',
    'clean_str',
    'split_csv',
    'to_number',
]
