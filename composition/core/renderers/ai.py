"""
AI-derived renderers.

Derived nodes depend on the documents they reference; the orchestrator hands
their rendered content in through `RenderContext.dependencies`. The model
name is part of each renderer's cache key, so switching models re-renders.
"""

import json
from abc import abstractmethod
from typing import Any

from composition.core.embeddings.base import Embedder
from composition.core.llm.base import LLMProvider
from composition.core.renderers.base import RenderContext, Renderer
from composition.models.render import RenderResult
from composition.models.resource import ResourceKind
from composition.utils.exceptions import RendererError
from composition.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_TOKENS = 2000


def build_summarization_prompt(text: str, max_tokens: int | None = None) -> str:
    guidance = f" Keep the summary under {max_tokens} tokens." if max_tokens else ""
    return (
        f"Please provide a concise summary of the following text.{guidance}\n\n"
        f"Text to summarize:\n{text}"
    )


def _document_sections(documents: list[str]) -> str:
    return "".join(
        f"--- Document {index} ---\n{document}\n\n"
        for index, document in enumerate(documents, start=1)
    )


def build_consolidation_prompt(documents: list[str], max_tokens: int | None = None) -> str:
    guidance = (
        f" Keep the consolidated output under {max_tokens} tokens." if max_tokens else ""
    )
    return (
        f"Please consolidate the following {len(documents)} documents into a single, "
        "coherent document. Remove redundancies, merge related information, and "
        f"maintain a logical flow.{guidance}\n\n"
        f"{_document_sections(documents)}"
        "Please provide the consolidated document:"
    )


def build_topic_prompt(
    topic: str, documents: list[str], review: bool = False, max_tokens: int | None = None
) -> str:
    review_text = (
        " After extracting the relevant content, provide a brief analysis or review "
        "of the findings."
        if review
        else ""
    )
    guidance = f" Keep the output under {max_tokens} tokens." if max_tokens else ""
    return (
        f"Please extract all content related to the topic '{topic}' from the following "
        f"{len(documents)} documents. Include only the information that is directly "
        f"relevant to this topic.{review_text}{guidance}\n\n"
        f"{_document_sections(documents)}"
        f"Please provide the content related to '{topic}':"
    )


class LLMRenderer(Renderer):
    """Base for renderers that send one prompt to an LLM provider."""

    uses_state = True

    def __init__(self, llm: LLMProvider, temperature: float = 0.0):
        self.llm = llm
        self.temperature = temperature

    def cache_key(self) -> str:
        return self.llm.model_name

    @abstractmethod
    def build_prompt(
        self, documents: list[str], options: dict[str, Any], max_tokens: int | None
    ) -> str:
        """Prompt for the non-empty dependency contents, in edge order."""

    async def render(self, context: RenderContext) -> RenderResult:
        documents = [doc for doc in context.dependency_contents() if doc.strip()]
        if not documents:
            raise RendererError(
                f"No input content for {self.kind.value}",
                context={"resource_id": str(context.node.id)},
            )

        max_tokens = context.state.get("max_tokens")
        prompt = self.build_prompt(documents, context.node.options, max_tokens)
        logger.debug(
            f"Rendering {self.kind.value} from {len(documents)} document(s)",
            extra={"model": self.llm.model_name, "resource_id": str(context.node.id)},
        )
        completion = await self.llm.complete(
            prompt,
            max_tokens=max_tokens or DEFAULT_MAX_TOKENS,
            temperature=self.temperature,
        )
        return context.result(completion.strip())


class SummaryRenderer(LLMRenderer):
    kind = ResourceKind.SUMMARY

    def build_prompt(
        self, documents: list[str], options: dict[str, Any], max_tokens: int | None
    ) -> str:
        return build_summarization_prompt("\n\n".join(documents), max_tokens)


class ConsolidationRenderer(LLMRenderer):
    kind = ResourceKind.CONSOLIDATION

    def build_prompt(
        self, documents: list[str], options: dict[str, Any], max_tokens: int | None
    ) -> str:
        return build_consolidation_prompt(documents, max_tokens)


class TopicRenderer(LLMRenderer):
    kind = ResourceKind.TOPIC

    def build_prompt(
        self, documents: list[str], options: dict[str, Any], max_tokens: int | None
    ) -> str:
        topic = options.get("topic")
        if not topic:
            raise RendererError("Topic extraction requires a topic")
        return build_topic_prompt(topic, documents, bool(options.get("review")), max_tokens)


class EmbeddingRenderer(Renderer):
    """Stores the embedding vector as a JSON artifact; presents no text."""

    kind = ResourceKind.EMBEDDING

    def __init__(self, embedder: Embedder):
        self.embedder = embedder

    def cache_key(self) -> str:
        return self.embedder.model_name

    async def render(self, context: RenderContext) -> RenderResult:
        text = "\n\n".join(doc for doc in context.dependency_contents() if doc.strip())
        if not text:
            raise RendererError(
                "No input content to embed", context={"resource_id": str(context.node.id)}
            )
        vector = await self.embedder.embed(text)
        return context.result(json.dumps(vector))

    def present(self, content: str, options: dict[str, Any]) -> str:
        return ""
