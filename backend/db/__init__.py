# Database utilities package
from .sql import (
    ACTIVE_FILTER,
    only_active,
    run_sql,
    run_sql_one,
    run_sql_scalar,
)
