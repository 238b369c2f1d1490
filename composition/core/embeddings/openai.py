"""
OpenAI embedder for `::embed` directives.

The vector becomes the embedding node's artifact. When `dimensions` is set
the model returns a shortened vector, so it is part of the cache key.
"""

from openai import AsyncOpenAI

from composition.core.embeddings.base import Embedder
from composition.utils.exceptions import EmbeddingError, ValidationError
from composition.utils.logger import get_logger

logger = get_logger(__name__)


class OpenAIEmbedder(Embedder):
    """Embeds the joined content of the documents an `::embed` directive names."""

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small",
        organization: str | None = None,
        base_url: str | None = None,
        timeout: float = 120.0,
        dimensions: int | None = None,
    ):
        """
        Initialize OpenAI embedder.

        Args:
            api_key: OpenAI API key
            model: Embedding model name (e.g., "text-embedding-3-small")
            organization: Optional organization ID
            base_url: Optional OpenAI-compatible endpoint
            timeout: Request timeout in seconds
            dimensions: Truncated vector size (text-embedding-3 models only)
        """
        self.model = model
        self.dimensions = dimensions
        self.client = AsyncOpenAI(
            api_key=api_key, organization=organization, base_url=base_url, timeout=timeout
        )

    @property
    def model_name(self) -> str:
        if self.dimensions:
            return f"{self.model}@{self.dimensions}"
        return self.model

    async def embed(self, text: str, **kwargs) -> list[float]:
        """
        Raises:
            ValidationError: If there is no text to embed
            EmbeddingError: If the API call fails or returns no vector
        """
        if not text or not text.strip():
            raise ValidationError("Text cannot be empty")

        params = {"model": self.model, "input": text, **kwargs}
        if self.dimensions:
            params["dimensions"] = self.dimensions

        try:
            response = await self.client.embeddings.create(**params)
        except Exception as e:
            logger.error(
                f"OpenAI embedding error: {e}",
                extra={
                    "model": self.model_name,
                    "chars": len(text),
                    "error_type": type(e).__name__,
                },
            )
            raise EmbeddingError(f"OpenAI embedding error: {e}") from e

        if not response.data:
            raise EmbeddingError("OpenAI returned no embedding", context={"model": self.model_name})
        vector = response.data[0].embedding
        logger.debug(
            f"Embedded {len(text)} chars into {len(vector)} dimensions",
            extra={"model": self.model_name},
        )
        return vector

    async def close(self):
        await self.client.close()
