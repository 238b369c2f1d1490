"""
Factory modules for creating composition engine components.

Provides modular factories for LLM, Embedder and Graph Store.
"""

from composition.core.factory.embedder_factory import EmbedderFactory
from composition.core.factory.graph_factory import GraphStoreFactory
from composition.core.factory.llm_factory import LLMFactory

__all__ = [
    "LLMFactory",
    "EmbedderFactory",
    "GraphStoreFactory",
]
