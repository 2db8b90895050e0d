from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

import psycopg2

from .models import (
    ColumnInfo,
    ColumnRole,
    DependencyEdge,
    InsertedRow,
    RequiredColumn,
    TableAnalysis,
    TableRef,
)

logger = logging.getLogger(__name__)

SYSTEM_SCHEMAS = ("information_schema", "pg_catalog", "pg_toast")

CHARACTER_TYPES = {"character varying", "varchar", "character", "char"}
NUMERIC_TYPES = {"numeric", "decimal"}
INTEGER_BITS = {"smallint": 16, "integer": 32, "bigint": 64}
TIMESTAMP_TYPES = {"timestamp", "timestamp with time zone", "timestamp without time zone"}


def quote_ident(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def qualified(schema: str, table: str) -> str:
    return f"{quote_ident(schema)}.{quote_ident(table)}"


def id_column_candidates(table: str) -> List[str]:
    return ["Id", "id", "ID", f"{table}Id", f"{table}_id", "uuid", "pk"]


def default_kind(column_default: Optional[str], is_identity: bool = False) -> str:
    if is_identity:
        return "auto_increment"
    if column_default is None:
        return "no_default"
    d = column_default.lower()
    if "nextval" in d:
        return "auto_increment"
    if "gen_random_uuid" in d or "uuid_generate" in d:
        return "auto_uuid"
    if "now()" in d or "current_timestamp" in d:
        return "auto_timestamp"
    return "has_default"


def size_limit(data_type: str, char_max_len=None, numeric_precision=None, datetime_precision=None) -> Optional[int]:
    dt = data_type.lower()
    if dt in CHARACTER_TYPES:
        return char_max_len
    if dt in NUMERIC_TYPES:
        return numeric_precision
    if dt in INTEGER_BITS:
        return INTEGER_BITS[dt]
    if dt in TIMESTAMP_TYPES:
        return datetime_precision
    return None


# -------------------------
# Discovery
# -------------------------
def discover_schemas(conn) -> List[str]:
    try:
        with conn.cursor() as cur:
            cur.execute(
                """
                SELECT schema_name
                FROM information_schema.schemata
                WHERE schema_name NOT IN %s
                  AND schema_name NOT LIKE 'pg\\_temp\\_%%'
                  AND schema_name NOT LIKE 'pg\\_toast\\_temp\\_%%'
                ORDER BY schema_name
                """,
                (SYSTEM_SCHEMAS,),
            )
            return [r[0] for r in cur.fetchall()]
    except psycopg2.Error as e:
        logger.error("Could not discover schemas: %s", e)
        return ["public"]


def find_table(conn, table_name: str) -> Optional[TableRef]:
    """
    Find a base table by name across schemas, case-insensitively.

    An exact-case match wins over case-insensitive ones; ties are broken by
    schema name.
    """
    pattern = table_name.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    with conn.cursor() as cur:
        cur.execute(
            """
            SELECT table_schema, table_name
            FROM information_schema.tables
            WHERE table_name ILIKE %s
              AND table_schema NOT IN ('information_schema', 'pg_catalog')
              AND table_type = 'BASE TABLE'
            ORDER BY
              CASE WHEN table_name = %s THEN 1 ELSE 2 END,
              table_schema
            """,
            (pattern, table_name),
        )
        rows = cur.fetchall()

    if not rows:
        return None
    if len(rows) > 1:
        logger.warning(
            "Multiple tables found for '%s': %s; using %s.%s",
            table_name,
            ", ".join(f"{s}.{t}" for s, t in rows),
            rows[0][0],
            rows[0][1],
        )
    return TableRef(schema=rows[0][0], table=rows[0][1])


def list_columns(conn, schema: str, table: str) -> List[ColumnInfo]:
    with conn.cursor() as cur:
        cur.execute(
            """
            SELECT
              column_name,
              data_type,
              is_nullable,
              column_default,
              is_identity,
              is_generated,
              character_maximum_length,
              numeric_precision,
              numeric_scale,
              datetime_precision
            FROM information_schema.columns
            WHERE table_schema = %s AND table_name = %s
            ORDER BY ordinal_position
            """,
            (schema, table),
        )
        out: List[ColumnInfo] = []
        for c, dt, nul, default, ident, gen, cmax, prec, scale, dtprec in cur.fetchall():
            kind = default_kind(default, is_identity=(ident == "YES"))
            if gen == "ALWAYS":
                kind = "has_default"
            out.append(
                ColumnInfo(
                    table=table,
                    column=c,
                    data_type=dt,
                    is_nullable=(nul == "YES"),
                    column_default=default,
                    default_kind=kind,
                    char_max_len=cmax,
                    numeric_precision=prec,
                    numeric_scale=scale,
                    datetime_precision=dtprec,
                )
            )
    return out


def fetch_fk_columns(conn, schema: str, table: str) -> Set[str]:
    with conn.cursor() as cur:
        cur.execute(
            """
            SELECT DISTINCT kcu.column_name
            FROM information_schema.table_constraints tc
            JOIN information_schema.key_column_usage kcu
              ON tc.constraint_name = kcu.constraint_name
             AND tc.table_schema = kcu.table_schema
            WHERE tc.constraint_type = 'FOREIGN KEY'
              AND kcu.table_schema = %s
              AND kcu.table_name = %s
            """,
            (schema, table),
        )
        return {r[0] for r in cur.fetchall()}


def analyze_table(conn, schema: str, table: str) -> TableAnalysis:
    cols = list_columns(conn, schema, table)
    fk_cols = fetch_fk_columns(conn, schema, table)
    return TableAnalysis(
        total_columns=len(cols),
        required_columns=tuple(c.column for c in cols if not c.is_nullable and c.default_kind == "no_default"),
        fk_columns=tuple(sorted(fk_cols)),
        auto_columns=tuple(c.column for c in cols if c.is_auto),
        optional_columns=tuple(c.column for c in cols if c.is_nullable or c.default_kind != "no_default"),
    )


_FK_SELECT = """
    SELECT
      kcu.table_schema AS source_schema,
      kcu.table_name AS source_table,
      kcu.column_name AS source_column,
      ccu.table_schema AS target_schema,
      ccu.table_name AS target_table,
      ccu.column_name AS target_column
    FROM information_schema.table_constraints tc
    JOIN information_schema.key_column_usage kcu
      ON tc.constraint_name = kcu.constraint_name
     AND tc.table_schema = kcu.table_schema
    JOIN information_schema.constraint_column_usage ccu
      ON ccu.constraint_name = tc.constraint_name
     AND ccu.constraint_schema = tc.constraint_schema
    WHERE tc.constraint_type = 'FOREIGN KEY'
      AND kcu.table_schema = %s
      AND kcu.table_name = %s
"""


def fetch_foreign_keys(conn, schema: str, table: str) -> List[DependencyEdge]:
    with conn.cursor() as cur:
        cur.execute(_FK_SELECT + " ORDER BY kcu.column_name", (schema, table))
        return [DependencyEdge(*r) for r in cur.fetchall()]


def find_fk_reference(conn, schema: str, table: str, column: str) -> Optional[DependencyEdge]:
    with conn.cursor() as cur:
        cur.execute(_FK_SELECT + " AND kcu.column_name = %s LIMIT 1", (schema, table, column))
        row = cur.fetchone()
    return DependencyEdge(*row) if row else None


def _required_sort_key(col: RequiredColumn) -> Tuple[int, str]:
    if col.column_name.lower().endswith("id") and col.data_type.lower() == "uuid":
        return (1, col.column_name)
    if col.is_foreign_key:
        return (2, col.column_name)
    return (3, col.column_name)


def fetch_required_columns(conn, schema: str, table: str) -> List[RequiredColumn]:
    """
    Columns an INSERT must fill: every NOT NULL column without a default,
    plus every FK column regardless of nullability.
    """
    fk_cols = fetch_fk_columns(conn, schema, table)
    out: List[RequiredColumn] = []
    for c in list_columns(conn, schema, table):
        is_fk = c.column in fk_cols
        mandatory = not c.is_nullable and c.default_kind == "no_default"
        if not (is_fk or mandatory):
            continue
        out.append(
            RequiredColumn(
                column_name=c.column,
                data_type=c.data_type,
                size_limit=size_limit(c.data_type, c.char_max_len, c.numeric_precision, c.datetime_precision),
                nullable=c.is_nullable,
                role=ColumnRole.FOREIGN_KEY if is_fk else ColumnRole.REQUIRED,
                has_default=c.default_kind != "no_default",
                scale=c.numeric_scale if c.data_type.lower() in NUMERIC_TYPES else None,
            )
        )
    out.sort(key=_required_sort_key)
    return out


def fetch_random_id(conn, schema: str, table: str) -> Optional[Any]:
    """
    Fetch one existing key value from schema.table, or None when it is empty.

    Tries the conventional id column names first, then falls back to the
    first column of a random row.
    """
    names = [c.column for c in list_columns(conn, schema, table)]
    id_col = next((n for n in id_column_candidates(table) if n in names), None)

    with conn.cursor() as cur:
        if id_col is not None:
            cur.execute(f"SELECT {quote_ident(id_col)} FROM {qualified(schema, table)} ORDER BY random() LIMIT 1")
        else:
            cur.execute(f"SELECT * FROM {qualified(schema, table)} ORDER BY random() LIMIT 1")
        row = cur.fetchone()

    if not row:
        logger.warning("No rows found in %s.%s", schema, table)
        return None
    return row[0]


def scan_types(conn) -> List[Tuple[str, Optional[int]]]:
    with conn.cursor() as cur:
        cur.execute(
            """
            SELECT DISTINCT
              data_type,
              CASE
                WHEN data_type IN ('character varying', 'varchar', 'character', 'char', 'text')
                  THEN character_maximum_length
                WHEN data_type IN ('numeric', 'decimal', 'integer', 'bigint', 'smallint')
                  THEN numeric_precision
                WHEN data_type IN ('timestamp', 'timestamp with time zone', 'timestamp without time zone', 'date')
                  THEN datetime_precision
                ELSE NULL
              END AS data_limit
            FROM information_schema.columns
            WHERE table_schema NOT IN ('pg_catalog', 'information_schema')
            ORDER BY data_type, data_limit
            """
        )
        return [(r[0], r[1]) for r in cur.fetchall()]


# -------------------------
# INSERT
# -------------------------
def build_insert_sql(schema: str, table: str, columns: Sequence[str]) -> str:
    if not columns:
        return f"INSERT INTO {qualified(schema, table)} DEFAULT VALUES RETURNING *"
    cols_sql = ", ".join(quote_ident(c) for c in columns)
    placeholders = ", ".join(["%s"] * len(columns))
    return f"INSERT INTO {qualified(schema, table)} ({cols_sql}) VALUES ({placeholders}) RETURNING *"


def insert_row(conn, schema: str, table: str, columns: Sequence[str], values: Sequence[Any]) -> InsertedRow:
    insert_sql = build_insert_sql(schema, table, columns)
    with conn.cursor() as cur:
        cur.execute(insert_sql, list(values))
        returned = cur.fetchone()
        names = [d[0] for d in (cur.description or [])]
    row: Dict[str, Any] = dict(zip(names, returned)) if returned else {}
    return InsertedRow(row=row, sql_text=insert_sql)


class Catalog:
    """The catalog and insert functions bound to one connection."""

    def __init__(self, conn):
        self.conn = conn

    def discover_schemas(self) -> List[str]:
        return discover_schemas(self.conn)

    def find_table(self, table_name: str) -> Optional[TableRef]:
        return find_table(self.conn, table_name)

    def list_columns(self, schema: str, table: str) -> List[ColumnInfo]:
        return list_columns(self.conn, schema, table)

    def analyze_table(self, schema: str, table: str) -> TableAnalysis:
        return analyze_table(self.conn, schema, table)

    def fetch_foreign_keys(self, schema: str, table: str) -> List[DependencyEdge]:
        return fetch_foreign_keys(self.conn, schema, table)

    def find_fk_reference(self, schema: str, table: str, column: str) -> Optional[DependencyEdge]:
        return find_fk_reference(self.conn, schema, table, column)

    def fetch_required_columns(self, schema: str, table: str) -> List[RequiredColumn]:
        return fetch_required_columns(self.conn, schema, table)

    def fetch_random_id(self, schema: str, table: str) -> Optional[Any]:
        return fetch_random_id(self.conn, schema, table)

    def scan_types(self) -> List[Tuple[str, Optional[int]]]:
        return scan_types(self.conn)

    def insert_row(self, schema: str, table: str, columns: Sequence[str], values: Sequence[Any]) -> InsertedRow:
        return insert_row(self.conn, schema, table, columns, values)
