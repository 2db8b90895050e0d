from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


# -------------------------
# Catalog shapes
# -------------------------
@dataclass(frozen=True)
class TableRef:
    schema: str
    table: str

    @property
    def qualified_name(self) -> str:
        return f"{self.schema}.{self.table}"

    def __str__(self) -> str:
        return self.qualified_name


@dataclass(frozen=True)
class ColumnInfo:
    table: str
    column: str
    data_type: str
    is_nullable: bool
    column_default: Optional[str]
    default_kind: str
    char_max_len: Optional[int] = None
    numeric_precision: Optional[int] = None
    numeric_scale: Optional[int] = None
    datetime_precision: Optional[int] = None

    @property
    def is_auto(self) -> bool:
        return self.default_kind.startswith("auto_")


@dataclass(frozen=True)
class TableAnalysis:
    total_columns: int
    required_columns: Tuple[str, ...]
    fk_columns: Tuple[str, ...]
    auto_columns: Tuple[str, ...]
    optional_columns: Tuple[str, ...]


# -------------------------
# Dependency tree
# -------------------------
@dataclass(frozen=True)
class DependencyEdge:
    """One foreign-key constraint: (from_schema, from_table, from_column) -> (to_schema, to_table, to_column)."""

    from_schema: str
    from_table: str
    from_column: str
    to_schema: str
    to_table: str
    to_column: str

    @property
    def identity(self) -> str:
        # column-agnostic: two FKs between the same tables share one identity
        return f"{self.from_schema}.{self.from_table}->{self.to_schema}.{self.to_table}"

    @property
    def target(self) -> TableRef:
        return TableRef(self.to_schema, self.to_table)

    def __str__(self) -> str:
        return (
            f"{self.from_schema}.{self.from_table}.{self.from_column} -> "
            f"{self.to_schema}.{self.to_table}.{self.to_column}"
        )


@dataclass
class DependencyNode:
    edge: DependencyEdge
    depth: int = 0
    children: List["DependencyNode"] = field(default_factory=list)

    @property
    def target(self) -> TableRef:
        return self.edge.target

    def walk(self):
        """Yield this node and every descendant, depth-first pre-order."""
        yield self
        for child in self.children:
            yield from child.walk()


# -------------------------
# Insertion
# -------------------------
class ColumnRole:
    FOREIGN_KEY = "foreignKey"
    REQUIRED = "required"


@dataclass(frozen=True)
class RequiredColumn:
    column_name: str
    data_type: str
    size_limit: Optional[int]
    nullable: bool
    role: str
    has_default: bool = False
    scale: Optional[int] = None

    @property
    def is_foreign_key(self) -> bool:
        return self.role == ColumnRole.FOREIGN_KEY


@dataclass(frozen=True)
class InsertedRow:
    row: Dict[str, Any]
    sql_text: str


@dataclass(frozen=True)
class InsertOutcome:
    success: bool
    table_name: str
    sql_text: Optional[str] = None
    generated_id: Any = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    error_category: Optional[str] = None
    error_detail: Optional[str] = None
    row: Optional[Dict[str, Any]] = None
