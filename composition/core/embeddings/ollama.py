"""
Ollama embedder for `::embed` directives, for local models.
"""

import ollama

from composition.core.embeddings.base import Embedder
from composition.utils.exceptions import EmbeddingError, ValidationError
from composition.utils.logger import get_logger

logger = get_logger(__name__)


class OllamaEmbedder(Embedder):
    """Embeds document content with a model served by a local Ollama daemon."""

    def __init__(
        self,
        host: str = "http://localhost:11434",
        model: str = "nomic-embed-text",
        timeout: float = 120.0,
    ):
        self.host = host
        self.model = model
        self.timeout = timeout
        self.client = ollama.AsyncClient(host=host, timeout=timeout)

    async def embed(self, text: str, **kwargs) -> list[float]:
        """
        Raises:
            ValidationError: If there is no text to embed
            EmbeddingError: If the daemon is unreachable or returns no vector
        """
        if not text or not text.strip():
            raise ValidationError("Text cannot be empty")

        try:
            response = await self.client.embeddings(model=self.model, prompt=text, **kwargs)
        except Exception as e:
            logger.error(
                f"Ollama embedding error: {e}",
                extra={"model": self.model, "host": self.host, "chars": len(text)},
            )
            raise EmbeddingError(
                f"Ollama embedding error: {e}", context={"host": self.host}
            ) from e

        vector = response.get("embedding") if response else None
        if not vector:
            raise EmbeddingError(
                "Ollama returned no embedding", context={"model": self.model, "host": self.host}
            )
        return list(vector)

    async def close(self):
        """The Ollama client holds no connection that needs closing."""
        pass
