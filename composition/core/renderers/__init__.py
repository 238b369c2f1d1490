"""
Renderers, one per resource kind.

- Renderer, RendererRegistry, RenderContext: the capability interface
- DocumentRenderer: directive substitution and assembly
- ImageRenderer, AudioRenderer: media tags
- TableRenderer: HTML tables and SVG charts
- SummaryRenderer, ConsolidationRenderer, TopicRenderer, EmbeddingRenderer: AI-derived
"""

from composition.core.embeddings.base import Embedder
from composition.core.llm.base import LLMProvider
from composition.core.parser.base import DocumentParser
from composition.core.renderers.ai import (
    ConsolidationRenderer,
    EmbeddingRenderer,
    SummaryRenderer,
    TopicRenderer,
)
from composition.core.renderers.base import RenderContext, Renderer, RendererRegistry
from composition.core.renderers.document import DocumentRenderer
from composition.core.renderers.media import AudioRenderer, ImageRenderer
from composition.core.renderers.table import TableRenderer


def default_registry(
    parser: DocumentParser,
    llm: LLMProvider | None = None,
    embedder: Embedder | None = None,
) -> RendererRegistry:
    """Registry with every built-in renderer; AI kinds only when a provider is given."""
    registry = RendererRegistry(
        [DocumentRenderer(parser), ImageRenderer(), AudioRenderer(), TableRenderer()]
    )
    if llm is not None:
        registry.register(SummaryRenderer(llm))
        registry.register(ConsolidationRenderer(llm))
        registry.register(TopicRenderer(llm))
    if embedder is not None:
        registry.register(EmbeddingRenderer(embedder))
    return registry


__all__ = [
    "AudioRenderer",
    "ConsolidationRenderer",
    "DocumentRenderer",
    "EmbeddingRenderer",
    "ImageRenderer",
    "RenderContext",
    "Renderer",
    "RendererRegistry",
    "SummaryRenderer",
    "TableRenderer",
    "TopicRenderer",
    "default_registry",
]
