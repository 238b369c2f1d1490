"""
Factory for creating embedder providers.
"""

from composition.config import EmbedderConfig
from composition.core.embeddings.base import Embedder
from composition.core.embeddings.ollama import OllamaEmbedder
from composition.core.embeddings.openai import OpenAIEmbedder
from composition.utils.exceptions import ConfigurationError


class EmbedderFactory:
    """Factory for creating embedder providers from configuration."""

    @staticmethod
    def create(config: EmbedderConfig) -> Embedder:
        """
        Create embedder from configuration.

        Raises:
            ConfigurationError: If provider is not supported or misconfigured
        """
        if config.provider == "ollama":
            return OllamaEmbedder(
                host=config.base_url or "http://localhost:11434",
                model=config.model,
                timeout=config.timeout,
            )
        elif config.provider == "openai":
            if not config.api_key:
                raise ConfigurationError("OpenAI API key is required")
            return OpenAIEmbedder(
                api_key=config.api_key,
                model=config.model,
                base_url=config.base_url,
                timeout=config.timeout,
                dimensions=config.dimensions,
            )
        else:
            raise ConfigurationError(f"Unsupported embedder provider: {config.provider}")
