"""
Document renderer: assembles a parsed document from its dependencies.
"""

from typing import Any

from composition.core.parser.base import DocumentParser
from composition.core.renderers.base import RenderContext, Renderer
from composition.models.render import RenderResult
from composition.models.resource import ResourceKind
from composition.utils.logger import get_logger

logger = get_logger(__name__)


def select_lines(content: str, start: int, end: int | None = None) -> str:
    """1-based inclusive line range; `end=None` runs to the end."""
    lines = content.splitlines(keepends=True)
    selected = lines[start - 1 : end]
    return "".join(selected)


class DocumentRenderer(Renderer):
    """
    Walks the parsed plain structure and substitutes each directive slot
    with the presented content of the dependency it references.
    """

    kind = ResourceKind.DOCUMENT

    def __init__(self, parser: DocumentParser):
        self.parser = parser

    async def render(self, context: RenderContext) -> RenderResult:
        parsed = await context.session.parse(context.node.id, self.parser)

        fragments: dict[int, str] = {}
        for edge in context.node.dependencies:
            if edge.directive_index >= len(parsed.directives):
                logger.warning(
                    f"Edge for {edge.target} has no matching directive",
                    extra={"resource_id": str(context.node.id), "slot": edge.directive_index},
                )
                continue
            directive = parsed.directives[edge.directive_index]
            content = context.dependencies.get(edge.target, "")
            fragments[edge.directive_index] = context.registry.present(
                edge.kind, content, directive.options
            )

        return context.result(parsed.assemble(fragments))

    def present(self, content: str, options: dict[str, Any]) -> str:
        line_range = options.get("lines")
        if not line_range:
            return content
        start, end = line_range
        return select_lines(content, start, end)
