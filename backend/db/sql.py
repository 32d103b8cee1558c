"""
SQL execution helper with enforced best practices.

Best practices enforced:
1. Use :name param style only (SQLAlchemy bind params)
2. Never use percent-paren psycopg2-specific style
3. Listing queries filter on ACTIVE_FILTER (soft-deleted rows stay hidden)

Usage:
    from db.sql import run_sql, ACTIVE_FILTER

    rows = run_sql(
        db,
        f'''
        SELECT id, list_price, estimated_rent
        FROM properties
        WHERE zip_code = :zip_code
          AND {ACTIVE_FILTER}
        ''',
        zip_code='78701',
    )
"""
import re
from typing import Any, Dict, List, Optional
from sqlalchemy import text


PSYCOPG2_PARAM_PATTERN = re.compile(r'%\([a-zA-Z_][a-zA-Z0-9_]*\)s')


class SQLParamStyleError(Exception):
    """Raised when SQL uses incorrect parameter style."""
    pass


def validate_sql_text(sql: str) -> None:
    """
    Validate that SQL text uses correct :name param style.

    Raises SQLParamStyleError if psycopg2 percent-paren style is detected.
    """
    matches = PSYCOPG2_PARAM_PATTERN.findall(sql)
    if matches:
        raise SQLParamStyleError(
            f"SQL contains psycopg2-style params: {matches}. "
            f"Use SQLAlchemy :name style instead."
        )


def _execute(db, sql: str, validate: bool, params: Dict[str, Any]):
    if validate:
        validate_sql_text(sql)
    # Accept either the Flask-SQLAlchemy db object or a bare session
    session = getattr(db, 'session', db)
    return session.execute(text(sql), params)


def run_sql(
    db,
    sql: str,
    validate: bool = True,
    **params
) -> List[Dict[str, Any]]:
    """
    Execute SQL with validation and return rows as dicts.

    Args:
        db: SQLAlchemy database (or session with .execute)
        sql: SQL text using :name param style
        validate: Whether to check the SQL param style (default True)
        **params: Named parameters to pass to the query

    Raises:
        SQLParamStyleError: If SQL uses psycopg2 percent-paren style
    """
    result = _execute(db, sql, validate, params)
    return [dict(row) for row in result.mappings().all()]


def run_sql_scalar(
    db,
    sql: str,
    validate: bool = True,
    **params
) -> Any:
    """
    Execute SQL and return a single scalar value.

    Useful for COUNT(*), MAX(), etc.
    """
    row = _execute(db, sql, validate, params).fetchone()
    return row[0] if row else None


def run_sql_one(
    db,
    sql: str,
    validate: bool = True,
    **params
) -> Optional[Dict[str, Any]]:
    """Execute SQL and return a single row as a dict, or None."""
    row = _execute(db, sql, validate, params).mappings().first()
    return dict(row) if row is not None else None


# =============================================================================
# ACTIVE LISTINGS - CANONICAL PREDICATE
# =============================================================================
#
# Listings are soft-deleted (is_active = false), never removed. Every read
# path that returns listings to clients MUST filter on this predicate.
#
# For raw SQL:     Use ACTIVE_FILTER
# For SQLAlchemy:  Use only_active(Model)
#
# =============================================================================

ACTIVE_FILTER = "is_active = true"


def only_active(model_class):
    """
    SQLAlchemy filter clause for active rows.

    Usage:
        Property.query.filter(only_active(Property), Property.zip_code == '78701')
    """
    return model_class.is_active.is_(True)
