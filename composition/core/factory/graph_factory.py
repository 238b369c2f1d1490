"""
Factory for creating graph store backends.
"""

from composition.config import Config
from composition.core.graph_store.base import GraphStore
from composition.core.graph_store.memory_store import InMemoryGraphStore
from composition.core.graph_store.sqlite_store import SQLiteGraphStore
from composition.utils.exceptions import ConfigurationError


class GraphStoreFactory:
    """Factory for creating graph store backends from configuration."""

    @staticmethod
    def create(config: Config) -> GraphStore:
        """
        Create graph store from configuration.

        Raises:
            ConfigurationError: If backend is not supported
        """
        if config.cache.backend == "sqlite":
            return SQLiteGraphStore(db_path=config.cache.db_path)
        elif config.cache.backend == "memory":
            return InMemoryGraphStore()
        else:
            raise ConfigurationError(f"Unsupported cache backend: {config.cache.backend}")
