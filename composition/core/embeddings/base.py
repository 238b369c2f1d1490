"""
Abstract base class for embedding providers.
"""

from abc import ABC, abstractmethod


class Embedder(ABC):
    """
    Abstract base for embedding providers.

    Used by `::embed` directives; the vector is stored as the node's
    artifact and contributes no visible text.
    """

    model: str

    @property
    def model_name(self) -> str:
        return self.model

    @abstractmethod
    async def embed(self, text: str, **kwargs) -> list[float]:
        """
        Generate embedding vector for text.

        Args:
            text: Text to embed
            **kwargs: Provider-specific parameters

        Returns:
            List of floats representing the embedding vector

        Raises:
            ValidationError: If text is invalid
            EmbeddingError: If embedding generation fails
        """
        pass

    @abstractmethod
    async def close(self):
        """
        Close any open connections.
        """
        pass
