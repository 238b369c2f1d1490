"""
Tests for the Ollama LLM provider.
"""

from unittest.mock import AsyncMock, patch

import pytest

from composition.core.llm.ollama import OllamaLLM
from composition.utils.exceptions import LLMError, ValidationError


@pytest.fixture
def ollama_llm():
    """Create Ollama LLM for testing."""
    return OllamaLLM(host="http://localhost:11434", model="llama3.1:8b", timeout=120.0)


@pytest.mark.unit
@pytest.mark.asyncio
class TestOllamaLLM:
    """Test Ollama LLM provider."""

    async def test_initialization(self, ollama_llm):
        assert ollama_llm.host == "http://localhost:11434"
        assert ollama_llm.model_name == "llama3.1:8b"

    async def test_complete(self, ollama_llm):
        with patch.object(ollama_llm.client, "chat", new_callable=AsyncMock) as mock_chat:
            mock_chat.return_value = {"message": {"content": "a summary"}}

            result = await ollama_llm.complete("summarize this", max_tokens=42)

            assert result == "a summary"
            kwargs = mock_chat.call_args.kwargs
            assert kwargs["model"] == "llama3.1:8b"
            assert kwargs["options"] == {"temperature": 0.0, "num_predict": 42}

    async def test_extra_options_are_merged(self, ollama_llm):
        with patch.object(ollama_llm.client, "chat", new_callable=AsyncMock) as mock_chat:
            mock_chat.return_value = {"message": {"content": "ok"}}

            await ollama_llm.complete("prompt", options={"top_k": 5})

            assert mock_chat.call_args.kwargs["options"]["top_k"] == 5

    async def test_empty_prompt(self, ollama_llm):
        with pytest.raises(ValidationError):
            await ollama_llm.complete("")

    async def test_api_error_is_wrapped(self, ollama_llm):
        with patch.object(ollama_llm.client, "chat", new_callable=AsyncMock) as mock_chat:
            mock_chat.side_effect = ConnectionError("refused")

            with pytest.raises(LLMError, match="refused"):
                await ollama_llm.complete("prompt")

    async def test_empty_content(self, ollama_llm):
        with patch.object(ollama_llm.client, "chat", new_callable=AsyncMock) as mock_chat:
            mock_chat.return_value = {"message": {"content": ""}}

            with pytest.raises(LLMError):
                await ollama_llm.complete("prompt")
