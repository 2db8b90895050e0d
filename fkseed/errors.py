from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import psycopg2
from psycopg2 import errorcodes


class SeederError(Exception):
    pass


class ConfigError(SeederError):
    pass


class ConnectionFailedError(SeederError):
    pass


class TableNotFoundError(SeederError):
    def __init__(self, table_name: str):
        super().__init__(f"Table '{table_name}' not found in the database")
        self.table_name = table_name


# -------------------------
# Database error classification
# -------------------------
FOREIGN_KEY_VIOLATION = "foreign key violation"
UNIQUE_VIOLATION = "unique violation"
CHECK_VIOLATION = "check violation"
NOT_NULL_VIOLATION = "not-null violation"
DATA_EXCEPTION = "data exception"
CONNECTIVITY = "connectivity"
DATABASE_ERROR = "database error"

_CATEGORY_BY_CODE = {
    errorcodes.FOREIGN_KEY_VIOLATION: FOREIGN_KEY_VIOLATION,
    errorcodes.UNIQUE_VIOLATION: UNIQUE_VIOLATION,
    errorcodes.CHECK_VIOLATION: CHECK_VIOLATION,
    errorcodes.NOT_NULL_VIOLATION: NOT_NULL_VIOLATION,
}


@dataclass(frozen=True)
class DbErrorInfo:
    code: Optional[str]
    category: str
    message: str
    detail: Optional[str] = None


def classify_db_error(exc: psycopg2.Error) -> DbErrorInfo:
    """Map a psycopg2 error to a human-readable category using its SQLSTATE."""
    code = getattr(exc, "pgcode", None)
    message = (getattr(exc, "pgerror", None) or str(exc)).strip()
    detail = None
    diag = getattr(exc, "diag", None)
    if diag is not None:
        detail = getattr(diag, "message_detail", None)
        primary = getattr(diag, "message_primary", None)
        if primary:
            message = primary

    if code in _CATEGORY_BY_CODE:
        category = _CATEGORY_BY_CODE[code]
    elif code and code.startswith("22"):
        category = DATA_EXCEPTION
    elif (code and code.startswith("08")) or (
        code is None and isinstance(exc, (psycopg2.OperationalError, psycopg2.InterfaceError))
    ):
        category = CONNECTIVITY
    else:
        category = DATABASE_ERROR

    return DbErrorInfo(code=code, category=category, message=message, detail=detail)
