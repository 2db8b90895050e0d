from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

import psycopg2
from faker import Faker

from .cache import InsertedIdCache
from .catalog import build_insert_sql
from .config import SeederSettings
from .errors import TableNotFoundError, classify_db_error
from .graph import DependencyGraphBuilder
from .models import DependencyNode, InsertOutcome, TableRef
from .resolver import ColumnMappingTable, ForeignKeyResolver
from .values import synthesize_value

logger = logging.getLogger(__name__)


def id_column_names(table: str) -> List[str]:
    return ["Id", "id", "ID", f"{table}Id", f"{table}_id"]


def identify_primary_key(row: Mapping[str, Any], table: str) -> Any:
    """Pick the generated key out of a RETURNING * row."""
    for name in id_column_names(table):
        if name in row:
            return row[name]
    return next(iter(row.values()), None)


# -------------------------
# Insertion engine
# -------------------------
class InsertionEngine:
    """
    Post-order insertion over a dependency tree.

    Children are inserted before the table that references them. A failed
    insert is recorded as an outcome and never stops siblings or ancestors.
    """

    def __init__(
        self,
        catalog,
        resolver: ForeignKeyResolver,
        cache: InsertedIdCache,
        fake: Faker,
        throttle_seconds: float = 0.05,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.catalog = catalog
        self.resolver = resolver
        self.cache = cache
        self.fake = fake
        self.throttle_seconds = throttle_seconds
        self.sleep = sleep

    def insert_subtree(self, node: DependencyNode) -> List[InsertOutcome]:
        results: List[InsertOutcome] = []
        for child in node.children:
            results.extend(self.insert_subtree(child))

        outcome = self.insert_row(node.edge.to_schema, node.edge.to_table, subtree=node.children)
        if outcome is not None:
            results.append(outcome)
        return results

    def build_values(self, schema: str, table: str, required_cols, subtree: Sequence[DependencyNode]):
        columns: List[str] = []
        values: List[Any] = []
        for col in required_cols:
            fk_value = None
            if col.is_foreign_key:
                fk_value = self.resolver.resolve(col.column_name, schema, table, subtree=subtree)
                if fk_value is None and col.has_default:
                    # column default applies
                    continue
                if fk_value is None and col.nullable:
                    columns.append(col.column_name)
                    values.append(None)
                    continue
            columns.append(col.column_name)
            values.append(
                synthesize_value(self.fake, col.data_type, col.size_limit, fk_value, col.column_name, scale=col.scale)
            )
        return columns, values

    def insert_row(self, schema: str, table: str, subtree: Sequence[DependencyNode] = ()) -> Optional[InsertOutcome]:
        """
        Insert one synthetic row into schema.table.

        Returns None when the table has no columns that need a value.
        """
        table_key = f"{schema}.{table}"

        try:
            required_cols = self.catalog.fetch_required_columns(schema, table)
        except psycopg2.Error as e:
            return self._failure(table_key, None, e)

        if not required_cols:
            logger.info("No columns need a value for %s", table_key)
            return None

        logger.info("Preparing INSERT: %s (%d columns)", table_key, len(required_cols))
        columns, values = self.build_values(schema, table, required_cols, subtree)

        try:
            inserted = self.catalog.insert_row(schema, table, columns, values)
        except psycopg2.Error as e:
            return self._failure(table_key, build_insert_sql(schema, table, columns), e)

        generated_id = identify_primary_key(inserted.row, table) if inserted.row else None
        if generated_id is not None:
            self.cache.add(table_key, generated_id)
        logger.info("INSERT into %s succeeded, id: %s", table_key, generated_id)

        if self.throttle_seconds > 0:
            self.sleep(self.throttle_seconds)

        return InsertOutcome(
            success=True,
            table_name=table_key,
            sql_text=inserted.sql_text,
            generated_id=generated_id,
            row=inserted.row,
        )

    def _failure(self, table_key: str, sql_text: Optional[str], exc: psycopg2.Error) -> InsertOutcome:
        info = classify_db_error(exc)
        logger.error("INSERT into %s failed (%s, %s): %s", table_key, info.category, info.code, info.message)
        if info.detail:
            logger.error("Detail: %s", info.detail)
        return InsertOutcome(
            success=False,
            table_name=table_key,
            sql_text=sql_text,
            error=info.message,
            error_code=info.code,
            error_category=info.category,
            error_detail=info.detail,
        )


# -------------------------
# Run orchestration
# -------------------------
@dataclass
class RunContext:
    settings: SeederSettings
    mappings: ColumnMappingTable
    cache: InsertedIdCache = field(default_factory=InsertedIdCache)


@dataclass
class RunResult:
    requested: str
    target: Optional[TableRef] = None
    tree: List[DependencyNode] = field(default_factory=list)
    dependency_outcomes: List[InsertOutcome] = field(default_factory=list)
    main_outcome: Optional[InsertOutcome] = None
    cache_stats: Dict[str, int] = field(default_factory=dict)

    @property
    def found(self) -> bool:
        return self.target is not None

    @property
    def outcomes(self) -> List[InsertOutcome]:
        out = list(self.dependency_outcomes)
        if self.main_outcome is not None:
            out.append(self.main_outcome)
        return out

    @property
    def succeeded(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.success)

    @property
    def total(self) -> int:
        return len(self.outcomes)


class Seeder:
    """Runs one start table end to end: discover, build the tree, insert dependencies, insert the target."""

    def __init__(self, catalog, settings: Optional[SeederSettings] = None, fake: Optional[Faker] = None,
                 sleep: Callable[[float], None] = time.sleep):
        self.catalog = catalog
        self.settings = settings or SeederSettings()
        self.fake = fake or Faker()
        self.sleep = sleep
        self.mappings = ColumnMappingTable(self.settings.column_mappings)
        self.context: Optional[RunContext] = None

    def add_column_mapping(self, source_column: str, target_column: str) -> None:
        self.mappings.add(source_column, target_column)

    def new_context(self) -> RunContext:
        if self.context is not None:
            self.context.cache.clear()
        self.context = RunContext(settings=self.settings, mappings=self.mappings)
        return self.context

    def run(self, table_name: str) -> RunResult:
        ctx = self.new_context()
        if self.settings.seed is not None:
            random.seed(self.settings.seed)
            Faker.seed(self.settings.seed)

        result = RunResult(requested=table_name)
        try:
            target = self.locate(table_name)
        except TableNotFoundError as e:
            logger.error("%s", e)
            return result
        result.target = target
        logger.info("Table found: %s", target)

        self._log_analysis(target)

        builder = DependencyGraphBuilder(self.catalog, max_depth=self.settings.max_depth)
        result.tree = builder.build(target)
        if result.tree:
            logger.info("Found %d FK dependencies", len(result.tree))
        else:
            logger.info("No FK dependencies found")

        resolver = ForeignKeyResolver(self.catalog, ctx.cache, ctx.mappings)
        engine = InsertionEngine(
            self.catalog,
            resolver,
            ctx.cache,
            self.fake,
            throttle_seconds=self.settings.throttle_seconds,
            sleep=self.sleep,
        )

        for node in result.tree:
            logger.info("Dependency: %s", node.edge)
            result.dependency_outcomes.extend(engine.insert_subtree(node))

        result.main_outcome = engine.insert_row(target.schema, target.table, subtree=result.tree)
        result.cache_stats = ctx.cache.stats()
        return result

    def locate(self, table_name: str) -> TableRef:
        target = self.catalog.find_table(table_name)
        if target is None:
            raise TableNotFoundError(table_name)
        return target

    def _log_analysis(self, target: TableRef) -> None:
        try:
            analysis = self.catalog.analyze_table(target.schema, target.table)
        except psycopg2.Error as e:
            logger.error("Error analysing table %s: %s", target, e)
            return
        logger.info(
            "Table analysis: %d required, %d FK, %d auto-generated columns",
            len(analysis.required_columns),
            len(analysis.fk_columns),
            len(analysis.auto_columns),
        )
