import pytest

from db.sql import (
    ACTIVE_FILTER,
    SQLParamStyleError,
    run_sql,
    run_sql_one,
    run_sql_scalar,
    validate_sql_text,
)


def test_rejects_psycopg2_param_style():
    with pytest.raises(SQLParamStyleError):
        validate_sql_text("SELECT * FROM properties WHERE id = %(id)s")


def test_accepts_named_params_and_casts():
    validate_sql_text("SELECT id::text FROM properties WHERE zip_code = :zip_code")


def test_run_sql_checks_param_style_before_executing(app):
    from models.database import db

    with pytest.raises(SQLParamStyleError):
        run_sql(db, "SELECT id FROM properties WHERE id = %(id)s", id=1)


def test_run_sql_returns_dicts(app, seeded):
    from models.database import db

    rows = run_sql(
        db,
        f"SELECT zip_code, bedrooms FROM properties WHERE state = :state AND {ACTIVE_FILTER}",
        state='MA',
    )
    assert rows == [{'zip_code': '02134', 'bedrooms': 3}]
    assert run_sql_scalar(db, f"SELECT COUNT(*) FROM properties WHERE {ACTIVE_FILTER}") == 7
    assert run_sql_one(db, "SELECT id FROM properties WHERE id = :id", id=-1) is None
