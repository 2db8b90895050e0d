from .cache import InsertedIdCache
from .catalog import Catalog
from .config import PostgresCreds, SeederSettings
from .engine import InsertionEngine, RunResult, Seeder
from .graph import DependencyGraphBuilder
from .models import DependencyEdge, DependencyNode, InsertOutcome, RequiredColumn, TableRef
from .resolver import ColumnMappingTable, ForeignKeyResolver

__version__ = "0.1.0"

__all__ = [
    "Catalog",
    "ColumnMappingTable",
    "DependencyEdge",
    "DependencyGraphBuilder",
    "DependencyNode",
    "ForeignKeyResolver",
    "InsertOutcome",
    "InsertedIdCache",
    "InsertionEngine",
    "PostgresCreds",
    "RequiredColumn",
    "RunResult",
    "Seeder",
    "SeederSettings",
    "TableRef",
]
