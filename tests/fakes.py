"""In-memory stand-ins for the catalog and psycopg2 errors."""

from __future__ import annotations

from types import SimpleNamespace
from typing import Any, Dict, List, Optional, Sequence, Tuple

import psycopg2

from fkseed.catalog import build_insert_sql
from fkseed.models import (
    ColumnRole,
    DependencyEdge,
    InsertedRow,
    RequiredColumn,
    TableAnalysis,
    TableRef,
)


def make_pg_error(code: Optional[str], message: str = "boom", detail: Optional[str] = None,
                  base=psycopg2.Error) -> psycopg2.Error:
    attrs = {
        "pgcode": code,
        "pgerror": message,
        "diag": SimpleNamespace(message_primary=message, message_detail=detail),
    }
    cls = type("FakePgError", (base,), attrs)
    return cls(message)


def col(name: str, data_type: str = "integer", nullable: bool = False, fk: bool = False,
        limit: Optional[int] = None, default: bool = False, scale: Optional[int] = None) -> RequiredColumn:
    return RequiredColumn(
        column_name=name,
        data_type=data_type,
        size_limit=limit,
        nullable=nullable,
        role=ColumnRole.FOREIGN_KEY if fk else ColumnRole.REQUIRED,
        has_default=default,
        scale=scale,
    )


class FakeTable:
    def __init__(self, ref: TableRef, columns: List[RequiredColumn], pk: str = "id"):
        self.ref = ref
        self.columns = columns
        self.pk = pk
        self.rows: List[Dict[str, Any]] = []
        self.next_id = 1


class FakeCatalog:
    """
    Implements the Catalog surface over a dict of tables.

    Inserts enforce foreign keys, so a bad FK value fails the way
    PostgreSQL would.
    """

    def __init__(self):
        self.tables: Dict[Tuple[str, str], FakeTable] = {}
        self.fks: List[DependencyEdge] = []
        self.fail_tables: Dict[str, psycopg2.Error] = {}
        self.broken_fk_lookups: Dict[str, psycopg2.Error] = {}
        self.inserts: List[Tuple[str, Dict[str, Any]]] = []
        self.random_id_calls: List[str] = []
        self.fk_lookup_calls: List[str] = []
        self.find_fk_reference_calls: List[Tuple[str, str, str]] = []

    # -- schema building --
    def add_table(self, name: str, columns: Sequence[RequiredColumn] = (), schema: str = "public",
                  pk: str = "id") -> TableRef:
        ref = TableRef(schema, name)
        self.tables[(schema, name)] = FakeTable(ref, list(columns), pk)
        return ref

    def add_fk(self, table: str, column: str, ref_table: str, ref_column: str = "id",
               schema: str = "public", ref_schema: str = "public") -> DependencyEdge:
        edge = DependencyEdge(schema, table, column, ref_schema, ref_table, ref_column)
        self.fks.append(edge)
        return edge

    def add_row(self, table: str, schema: str = "public", **values) -> Dict[str, Any]:
        t = self.tables[(schema, table)]
        row = {t.pk: t.next_id}
        row.update(values)
        t.next_id += 1
        t.rows.append(row)
        return row

    def rows(self, table: str, schema: str = "public") -> List[Dict[str, Any]]:
        return self.tables[(schema, table)].rows

    # -- catalog surface --
    def discover_schemas(self) -> List[str]:
        return sorted({s for s, _ in self.tables})

    def find_table(self, table_name: str) -> Optional[TableRef]:
        exact = [t.ref for (s, n), t in self.tables.items() if n == table_name]
        if exact:
            return sorted(exact, key=lambda r: r.schema)[0]
        loose = [t.ref for (s, n), t in self.tables.items() if n.lower() == table_name.lower()]
        return sorted(loose, key=lambda r: r.schema)[0] if loose else None

    def analyze_table(self, schema: str, table: str) -> TableAnalysis:
        t = self.tables[(schema, table)]
        return TableAnalysis(
            total_columns=len(t.columns) + 1,
            required_columns=tuple(c.column_name for c in t.columns if not c.nullable),
            fk_columns=tuple(c.column_name for c in t.columns if c.is_foreign_key),
            auto_columns=(t.pk,),
            optional_columns=tuple(c.column_name for c in t.columns if c.nullable),
        )

    def fetch_foreign_keys(self, schema: str, table: str) -> List[DependencyEdge]:
        key = f"{schema}.{table}"
        self.fk_lookup_calls.append(key)
        if key in self.broken_fk_lookups:
            raise self.broken_fk_lookups[key]
        return [e for e in self.fks if e.from_schema == schema and e.from_table == table]

    def find_fk_reference(self, schema: str, table: str, column: str) -> Optional[DependencyEdge]:
        self.find_fk_reference_calls.append((schema, table, column))
        for e in self.fks:
            if e.from_schema == schema and e.from_table == table and e.from_column == column:
                return e
        return None

    def fetch_required_columns(self, schema: str, table: str) -> List[RequiredColumn]:
        return list(self.tables[(schema, table)].columns)

    def fetch_random_id(self, schema: str, table: str) -> Optional[Any]:
        self.random_id_calls.append(f"{schema}.{table}")
        t = self.tables[(schema, table)]
        return t.rows[0][t.pk] if t.rows else None

    def insert_row(self, schema: str, table: str, columns: Sequence[str], values: Sequence[Any]) -> InsertedRow:
        key = f"{schema}.{table}"
        if key in self.fail_tables:
            raise self.fail_tables[key]

        data = dict(zip(columns, values))
        for e in self.fks:
            if e.from_schema != schema or e.from_table != table:
                continue
            value = data.get(e.from_column)
            if value is None:
                continue
            target = self.tables[(e.to_schema, e.to_table)]
            if not any(r.get(e.to_column) == value for r in target.rows):
                raise make_pg_error(
                    "23503",
                    f'insert or update on table "{table}" violates foreign key constraint',
                    detail=f"Key ({e.from_column})=({value}) is not present in table \"{e.to_table}\".",
                )

        row = self.add_row(table, schema=schema, **data)
        self.inserts.append((key, dict(row)))
        return InsertedRow(row=dict(row), sql_text=build_insert_sql(schema, table, columns))
