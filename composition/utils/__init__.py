"""Utility modules for the composition engine."""

from composition.utils.concurrency import KeyedLock, SingleFlight
from composition.utils.exceptions import (
    CompositionError,
    ConfigurationError,
    CyclicDependency,
    EmbeddingError,
    GraphStoreError,
    LLMError,
    OptionalResourceFailed,
    ParseError,
    RendererError,
    RenderError,
    RenderTimeout,
    RequiredResourceFailed,
    ResourceIgnored,
    ResourceUnavailable,
    StoreError,
    ValidationError,
)
from composition.utils.logger import get_logger, setup_logging

__all__ = [
    # Logging
    "get_logger",
    "setup_logging",
    # Concurrency
    "KeyedLock",
    "SingleFlight",
    # Exceptions
    "CompositionError",
    "ResourceUnavailable",
    "ResourceIgnored",
    "CyclicDependency",
    "ParseError",
    "RenderError",
    "RendererError",
    "RenderTimeout",
    "RequiredResourceFailed",
    "OptionalResourceFailed",
    "StoreError",
    "GraphStoreError",
    "ValidationError",
    "ConfigurationError",
    "EmbeddingError",
    "LLMError",
]
