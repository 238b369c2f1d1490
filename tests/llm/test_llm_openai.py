"""
Tests for the OpenAI LLM provider.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from composition.core.llm.openai import OpenAILLM
from composition.utils.exceptions import LLMError, ValidationError


@pytest.fixture
def openai_llm():
    """Create OpenAI LLM for testing."""
    return OpenAILLM(api_key="test-key", model="gpt-4o", timeout=120.0)


def _response(content):
    response = MagicMock()
    response.choices = [MagicMock(message=MagicMock(content=content))]
    return response


@pytest.mark.unit
@pytest.mark.asyncio
class TestOpenAILLM:
    """Test OpenAI LLM provider."""

    async def test_initialization(self, openai_llm):
        assert openai_llm.model_name == "gpt-4o"
        assert openai_llm.client is not None

    async def test_complete(self, openai_llm):
        with patch.object(
            openai_llm.client.chat.completions, "create", new_callable=AsyncMock
        ) as mock_create:
            mock_create.return_value = _response("a summary")

            result = await openai_llm.complete("summarize this", max_tokens=42, temperature=0.2)

            assert result == "a summary"
            kwargs = mock_create.call_args.kwargs
            assert kwargs["model"] == "gpt-4o"
            assert kwargs["max_tokens"] == 42
            assert kwargs["temperature"] == 0.2
            assert kwargs["messages"] == [{"role": "user", "content": "summarize this"}]

    async def test_empty_prompt(self, openai_llm):
        with pytest.raises(ValidationError):
            await openai_llm.complete("   ")

    async def test_api_error_is_wrapped(self, openai_llm):
        with patch.object(
            openai_llm.client.chat.completions, "create", new_callable=AsyncMock
        ) as mock_create:
            mock_create.side_effect = RuntimeError("rate limited")

            with pytest.raises(LLMError, match="rate limited"):
                await openai_llm.complete("prompt")

    async def test_empty_content(self, openai_llm):
        with patch.object(
            openai_llm.client.chat.completions, "create", new_callable=AsyncMock
        ) as mock_create:
            mock_create.return_value = _response(None)

            with pytest.raises(LLMError, match="empty content"):
                await openai_llm.complete("prompt")

    async def test_close(self, openai_llm):
        with patch.object(openai_llm.client, "close", new_callable=AsyncMock) as mock_close:
            await openai_llm.close()
            mock_close.assert_called_once()
