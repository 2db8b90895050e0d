from __future__ import annotations

import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence

import psycopg2

from .cache import InsertedIdCache
from .graph import find_edge_node
from .models import DependencyEdge, DependencyNode

logger = logging.getLogger(__name__)

# FK column name -> the key column name it actually resolves against
DEFAULT_COLUMN_MAPPINGS: Dict[str, str] = {
    "EstadoCivilCaracteristicaId": "CaracteristicaId",
    "EstadoCaracteristicaId": "CaracteristicaId",
    "TipoCaracteristicaId": "CaracteristicaId",
}

SUFFIX_PATTERNS = (
    re.compile(r"Id$"),
    re.compile(r"_[Ii]d$"),
    re.compile(r"[Ii]d$"),
)


class ColumnMappingTable:
    """Known FK naming exceptions, seeded with defaults and extensible at runtime."""

    def __init__(self, mappings: Optional[Dict[str, str]] = None, include_defaults: bool = True):
        self._map: Dict[str, str] = dict(DEFAULT_COLUMN_MAPPINGS) if include_defaults else {}
        if mappings:
            self._map.update(mappings)

    def get(self, column: str) -> Optional[str]:
        return self._map.get(column)

    def add(self, source_column: str, target_column: str) -> None:
        self._map[source_column] = target_column
        logger.info("Mapping added: %s -> %s", source_column, target_column)

    def __contains__(self, column: str) -> bool:
        return column in self._map

    def __len__(self) -> int:
        return len(self._map)


# -------------------------
# Strategies
# -------------------------
# Each strategy answers "which FK edge backs this column?" or None to fall through.
class TreeEdgeStrategy:
    name = "tree"

    def locate(self, column: str, schema: str, table: str, subtree: Sequence[DependencyNode]) -> Optional[DependencyEdge]:
        node = find_edge_node(subtree, schema, table, column)
        return node.edge if node else None


class MappedNameStrategy:
    name = "mapping"

    def __init__(self, mappings: ColumnMappingTable):
        self.mappings = mappings

    def locate(self, column, schema, table, subtree):
        mapped = self.mappings.get(column)
        if not mapped:
            return None
        node = find_edge_node(subtree, schema, table, mapped)
        if node:
            logger.debug("Mapped column: %s -> %s", column, mapped)
            return node.edge
        return None


class SuffixStrippedStrategy:
    name = "pattern"

    @staticmethod
    def candidates(column: str) -> List[str]:
        out = []
        for pattern in SUFFIX_PATTERNS:
            stripped = pattern.sub("", column)
            if stripped != column and len(stripped) > 2:
                out.append(stripped)
        return out

    def locate(self, column, schema, table, subtree):
        for candidate in self.candidates(column):
            node = find_edge_node(subtree, schema, table, candidate)
            if node:
                logger.debug("Pattern match: %s -> %s", column, candidate)
                return node.edge
        return None


class CatalogConstraintStrategy:
    name = "catalog"

    def __init__(self, catalog):
        self.catalog = catalog

    def locate(self, column, schema, table, subtree):
        try:
            edge = self.catalog.find_fk_reference(schema, table, column)
        except psycopg2.Error as e:
            logger.error("Error discovering FK for %s.%s.%s: %s", schema, table, column, e)
            return None
        if edge is None:
            logger.debug("No FK found for %s - value will be generated", column)
            return None
        logger.debug("FK discovered: %s -> %s.%s.%s", column, edge.to_schema, edge.to_table, edge.to_column)
        return edge


def default_strategies(catalog, mappings: ColumnMappingTable) -> List:
    return [
        TreeEdgeStrategy(),
        MappedNameStrategy(mappings),
        SuffixStrippedStrategy(),
        CatalogConstraintStrategy(catalog),
    ]


# -------------------------
# Resolver
# -------------------------
class ForeignKeyResolver:
    """
    Decides where an FK column's value comes from.

    Order: the pre-matched tree edge, then each strategy in turn. Once an
    edge is located its target is final: the value is a random cached id
    for the target table, else one existing row's key, else None. The
    resolver only reads the cache.
    """

    def __init__(self, catalog, cache: InsertedIdCache, mappings: Optional[ColumnMappingTable] = None,
                 strategies: Optional[Iterable] = None):
        self.catalog = catalog
        self.cache = cache
        self.mappings = mappings if mappings is not None else ColumnMappingTable()
        self.strategies = list(strategies) if strategies is not None else default_strategies(catalog, self.mappings)

    def locate(self, column: str, schema: str, table: str,
               subtree: Sequence[DependencyNode] = ()) -> Optional[DependencyEdge]:
        for strategy in self.strategies:
            edge = strategy.locate(column, schema, table, subtree)
            if edge is not None:
                return edge
        return None

    def resolve(self, column: str, schema: str, table: str,
                matched_node: Optional[DependencyNode] = None,
                subtree: Sequence[DependencyNode] = ()) -> Any:
        edge = matched_node.edge if matched_node is not None else self.locate(column, schema, table, subtree)
        if edge is None:
            return None
        return self.value_for(edge, column)

    def value_for(self, edge: DependencyEdge, column: str) -> Any:
        target_key = edge.target.qualified_name

        if self.cache.has(target_key):
            value = self.cache.pick(target_key)
            logger.debug("Cache hit: %s = %s", column, value)
            return value

        try:
            value = self.catalog.fetch_random_id(edge.to_schema, edge.to_table)
        except psycopg2.Error as e:
            logger.error("Error fetching an id from %s for %s: %s", target_key, column, e)
            return None

        if value is None:
            logger.warning("Table %s is empty - FK %s will be NULL", target_key, column)
        else:
            logger.debug("DB hit: %s = %s", column, value)
        return value
