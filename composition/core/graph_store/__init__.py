"""
Graph store implementations for the composition engine.

Provides abstract base and concrete implementations for graph and cache
persistence.

Available backends:
- SQLiteGraphStore: Local file, survives restarts
- InMemoryGraphStore: Process-local, for one-shot renders and tests
"""

from composition.core.graph_store.base import GraphStore
from composition.core.graph_store.memory_store import InMemoryGraphStore
from composition.core.graph_store.sqlite_store import SQLiteGraphStore

__all__ = [
    "GraphStore",
    "InMemoryGraphStore",
    "SQLiteGraphStore",
]
