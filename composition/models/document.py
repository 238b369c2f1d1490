"""
Parser output models: directives and the plain structure around them.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from composition.models.resource import Reference, Requirement, ResourceId, ResourceKind


class DirectiveKind(str, Enum):
    """DarkMatter block directives that reference other resources."""

    FILE = "file"
    SUMMARIZE = "summarize"
    CONSOLIDATE = "consolidate"
    TOPIC = "topic"
    TABLE = "table"
    CHART = "chart"
    AUDIO = "audio"
    IMAGE = "image"
    EMBED = "embed"

    @property
    def resource_kind(self) -> ResourceKind:
        """Kind of the node this directive introduces into the graph."""
        return _DIRECTIVE_RESOURCE_KINDS[self]


_DIRECTIVE_RESOURCE_KINDS = {
    DirectiveKind.FILE: ResourceKind.DOCUMENT,
    DirectiveKind.SUMMARIZE: ResourceKind.SUMMARY,
    DirectiveKind.CONSOLIDATE: ResourceKind.CONSOLIDATION,
    DirectiveKind.TOPIC: ResourceKind.TOPIC,
    DirectiveKind.TABLE: ResourceKind.TABLE_DATA,
    DirectiveKind.CHART: ResourceKind.TABLE_DATA,
    DirectiveKind.AUDIO: ResourceKind.AUDIO,
    DirectiveKind.IMAGE: ResourceKind.IMAGE,
    DirectiveKind.EMBED: ResourceKind.EMBEDDING,
}


class SourcePosition(BaseModel):
    """1-based location of a directive in its document."""

    line: int = Field(..., ge=1)
    column: int = Field(default=1, ge=1)

    def __str__(self) -> str:
        return f"{self.line}:{self.column}"


class Directive(BaseModel):
    """A reference directive extracted by the parser."""

    kind: DirectiveKind
    references: list[Reference] = Field(default_factory=list)
    options: dict[str, Any] = Field(default_factory=dict)
    position: SourcePosition

    @property
    def target_reference(self) -> str:
        return self.references[0].target if self.references else ""

    @property
    def requirement(self) -> Requirement:
        """Directive-level marker; multi-target directives take the strongest."""
        return Requirement.strongest(*(ref.requirement for ref in self.references))

    @property
    def cache_ttl(self) -> int | None:
        ttls = [ref.cache_ttl for ref in self.references if ref.cache_ttl is not None]
        return min(ttls) if ttls else None


class Segment(BaseModel):
    """Plain text, or a slot to be filled by a directive's rendered content."""

    text: str = ""
    directive_index: int | None = None
    line_ending: str = ""

    @property
    def is_directive(self) -> bool:
        return self.directive_index is not None


class ParsedDocument(BaseModel):
    """Parser collaborator output for one document."""

    resource_id: ResourceId | None = None
    frontmatter: dict[str, Any] = Field(default_factory=dict)
    directives: list[Directive] = Field(default_factory=list)
    segments: list[Segment] = Field(default_factory=list)

    def assemble(self, fragments: dict[int, str]) -> str:
        """
        Rebuild the document text, substituting each directive slot in
        original order. Slots with empty content disappear entirely.
        """
        parts: list[str] = []
        for segment in self.segments:
            if not segment.is_directive:
                parts.append(segment.text)
                continue
            fragment = fragments.get(segment.directive_index, "")
            if fragment:
                parts.append(fragment.rstrip("\n") + segment.line_ending)
        return "".join(parts)
