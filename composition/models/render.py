"""
Render-time models: per-node results, diagnostics and the final report.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from composition.models.diagnostic import Diagnostic, DiagnosticLevel
from composition.models.resource import ResourceId, ResourceKind
from composition.models.workplan import Workplan
from composition.utils.exceptions import CompositionError


class NodeState(str, Enum):
    """Lifecycle of a node within one render invocation."""

    PENDING = "pending"
    RENDERING = "rendering"
    RENDERED = "rendered"
    FAILED = "failed"
    SKIPPED = "skipped"  # every root reaching the node already failed

    @property
    def is_terminal(self) -> bool:
        return self is not NodeState.PENDING and self is not NodeState.RENDERING


class RenderResult(BaseModel):
    """Output of one renderer invocation, or of a cache hit."""

    resource_id: ResourceId
    content: str = ""
    content_hash: str = ""
    artifact_hash: str = ""
    diagnostics: list[Diagnostic] = Field(default_factory=list)
    from_cache: bool = False
    stale: bool = False


class Diagnostics(BaseModel):
    """
    Aggregated outcome of a render call.

    Counts of cached versus recomputed nodes per resource kind, plus every
    warning and error recorded along the way.
    """

    cached: dict[str, int] = Field(default_factory=dict)
    rendered: dict[str, int] = Field(default_factory=dict)
    rendered_ids: list[ResourceId] = Field(default_factory=list)
    warnings: list[Diagnostic] = Field(default_factory=list)
    errors: list[Diagnostic] = Field(default_factory=list)

    def record_cached(self, kind: ResourceKind) -> None:
        self.cached[kind.value] = self.cached.get(kind.value, 0) + 1

    def record_rendered(self, resource_id: ResourceId, kind: ResourceKind) -> None:
        self.rendered[kind.value] = self.rendered.get(kind.value, 0) + 1
        self.rendered_ids.append(resource_id)

    def add(self, diagnostic: Diagnostic) -> None:
        if diagnostic.level is DiagnosticLevel.ERROR:
            self.errors.append(diagnostic)
        else:
            self.warnings.append(diagnostic)

    def extend(self, diagnostics: list[Diagnostic]) -> None:
        for diagnostic in diagnostics:
            self.add(diagnostic)

    def warning_codes(self) -> list[str]:
        return [w.code for w in self.warnings]

    @property
    def total_cached(self) -> int:
        return sum(self.cached.values())

    @property
    def total_rendered(self) -> int:
        return sum(self.rendered.values())

    def summary(self) -> dict[str, Any]:
        return {
            "cached": dict(self.cached),
            "rendered": dict(self.rendered),
            "total_cached": self.total_cached,
            "total_rendered": self.total_rendered,
            "warnings": len(self.warnings),
            "errors": len(self.errors),
        }


class ComposedDocument(BaseModel):
    """Finished output for one root."""

    root: ResourceId
    content: str
    content_hash: str = ""
    frontmatter: dict[str, Any] = Field(default_factory=dict)


class RenderReport(BaseModel):
    """
    Result of `CompositionEngine.render`.

    A root appears either in `documents` or in `errors`, never both.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    documents: dict[ResourceId, ComposedDocument] = Field(default_factory=dict)
    errors: dict[ResourceId, CompositionError] = Field(default_factory=dict)
    node_states: dict[ResourceId, NodeState] = Field(default_factory=dict)
    diagnostics: Diagnostics = Field(default_factory=Diagnostics)
    workplan: Workplan | None = None

    @property
    def ok(self) -> bool:
        return not self.errors

    def raise_for_errors(self) -> None:
        """Raise the first fatal error, in root order."""
        for error in self.errors.values():
            raise error
