from __future__ import annotations

import logging
from collections import deque
from typing import Iterable, List, Optional, Set

import psycopg2

from .models import DependencyEdge, DependencyNode, TableRef

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 10


class VisitedEdgeSet:
    """Edge identities already expanded during one build."""

    def __init__(self):
        self._seen: Set[str] = set()

    def mark(self, edge: DependencyEdge) -> bool:
        """Record `edge`; False if its identity was already present."""
        key = edge.identity
        if key in self._seen:
            return False
        self._seen.add(key)
        return True

    def __contains__(self, edge: DependencyEdge) -> bool:
        return edge.identity in self._seen

    def __len__(self) -> int:
        return len(self._seen)


class DependencyGraphBuilder:
    """
    Expands a table's foreign keys outward into a tree of DependencyNodes.

    Each edge identity is expanded once per build, so cycles in the schema
    (including self-references) cannot recurse forever. Branches deeper than
    `max_depth` are truncated rather than failing the build.
    """

    def __init__(self, catalog, max_depth: int = DEFAULT_MAX_DEPTH):
        self.catalog = catalog
        self.max_depth = max_depth

    def build(self, start: TableRef) -> List[DependencyNode]:
        return self._explore(start, VisitedEdgeSet(), 0)

    def _explore(self, table: TableRef, visited: VisitedEdgeSet, depth: int) -> List[DependencyNode]:
        if depth > self.max_depth:
            logger.warning("Max depth (%d) reached for table: %s", self.max_depth, table)
            return []

        try:
            fks = self.catalog.fetch_foreign_keys(table.schema, table.table)
        except psycopg2.Error as e:
            logger.error("Error exploring FKs of table %s: %s", table, e)
            return []

        result: List[DependencyNode] = []
        for fk in fks:
            if not visited.mark(fk):
                continue
            node = DependencyNode(edge=fk, depth=depth)
            node.children = self._explore(fk.target, visited, depth + 1)
            result.append(node)
        return result


# -------------------------
# Tree lookup
# -------------------------
def find_edge_node(
    nodes: Iterable[DependencyNode], schema: str, table: str, column: str
) -> Optional[DependencyNode]:
    """Breadth-first search for the node whose edge starts at schema.table.column."""
    queue = deque(nodes)
    while queue:
        node = queue.popleft()
        edge = node.edge
        if edge.from_schema == schema and edge.from_table == table and edge.from_column == column:
            return node
        queue.extend(node.children)
    return None


def iter_nodes(nodes: Iterable[DependencyNode]):
    for node in nodes:
        yield from node.walk()


def tree_size(nodes: Iterable[DependencyNode]) -> int:
    return sum(1 for _ in iter_nodes(nodes))


def tree_depth(nodes: Iterable[DependencyNode]) -> int:
    return max((n.depth + 1 for n in iter_nodes(nodes)), default=0)
