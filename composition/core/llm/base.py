"""
Abstract base class for LLM providers.
Handles text generation for summaries, consolidations and topic extraction.
"""

from abc import ABC, abstractmethod


class LLMProvider(ABC):
    """
    Abstract base for LLM text generation providers.

    Responsibilities:
    - Text completion from a single prompt
    - Reporting the model name, which is part of a derived artifact's identity
    """

    model: str

    @property
    def model_name(self) -> str:
        return self.model

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        max_tokens: int = 2000,
        temperature: float = 0.0,
        **kwargs,
    ) -> str:
        """
        Generate completion from prompt.

        Args:
            prompt: The input prompt
            max_tokens: Maximum tokens to generate
            temperature: Sampling temperature (0.0 = deterministic, 1.0 = creative)
            **kwargs: Provider-specific parameters

        Returns:
            Generated text

        Raises:
            ValidationError: If the prompt is empty
            LLMError: Provider-specific errors
        """
        pass

    @abstractmethod
    async def close(self):
        """
        Close any open connections.
        """
