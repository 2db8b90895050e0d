from __future__ import annotations

from typing import Iterable, List

from .engine import RunResult
from .graph import tree_depth, tree_size
from .models import DependencyNode, InsertOutcome

RULE = "=" * 60


def format_tree(nodes: Iterable[DependencyNode]) -> str:
    lines: List[str] = []

    def _walk(node: DependencyNode) -> None:
        lines.append(f"{'  ' * node.depth}- {node.edge}")
        for child in node.children:
            _walk(child)

    for node in nodes:
        _walk(node)
    return "\n".join(lines)


def format_outcome(outcome: InsertOutcome) -> str:
    if outcome.success:
        return f"OK    {outcome.table_name} (id: {outcome.generated_id})"
    line = f"FAIL  {outcome.table_name}: [{outcome.error_category}] {outcome.error}"
    if outcome.error_code:
        line += f" (SQLSTATE {outcome.error_code})"
    if outcome.error_detail:
        line += f"\n      detail: {outcome.error_detail}"
    return line


def format_report(result: RunResult) -> str:
    lines = [RULE, "FINAL REPORT", RULE, f"Target table: {result.requested}"]

    if not result.found:
        lines.append(f"Table '{result.requested}' not found in the database")
    else:
        lines.append(f"Resolved to: {result.target}")
        if result.tree:
            lines.append(f"Dependency edges: {tree_size(result.tree)} (depth {tree_depth(result.tree)})")
        for outcome in result.outcomes:
            lines.append(format_outcome(outcome))

    lines.append(f"Successful INSERTs: {result.succeeded}")
    lines.append(f"Failed INSERTs: {result.failed}")
    lines.append(f"Total processed: {result.total}")

    if result.succeeded:
        main_ok = 1 if (result.main_outcome and result.main_outcome.success) else 0
        lines.append(f"  Dependencies inserted: {result.succeeded - main_ok}")
        lines.append(f"  Target table inserted: {main_ok}")

    if result.cache_stats:
        lines.append("Cached ids:")
        for table, count in sorted(result.cache_stats.items()):
            lines.append(f"  {table}: {count}")

    if result.failed:
        lines.append(f"Warning: {result.failed} INSERTs failed; see the log above for details")

    lines.append(RULE)
    return "\n".join(lines)
