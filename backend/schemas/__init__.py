# Request schema package
from .search_filter import (
    SearchFilter,
    parse_search_filter,
)

__all__ = [
    'SearchFilter',
    'parse_search_filter',
]
