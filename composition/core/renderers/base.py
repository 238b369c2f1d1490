"""
Renderer capability interface and the per-kind registry.

Rendering is split in two steps:

- `render` produces the artifact for one resource. It is cached, shared by
  every document that references the resource, and is the only step that
  may perform I/O.
- `present` turns an artifact into the fragment for one directive, using
  that directive's options (alt text, heading row, line range, ...). It is
  pure and runs each time a parent document is assembled.
"""

from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from composition.core.resources.hasher import content_hash
from composition.core.resources.session import RenderSession
from composition.models.graph import ResourceNode
from composition.models.render import Diagnostic, RenderResult
from composition.models.resource import ResourceId, ResourceKind
from composition.utils.exceptions import RendererError


class RenderContext(BaseModel):
    """Everything a renderer may use to produce an artifact."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    node: ResourceNode
    session: RenderSession
    registry: "RendererRegistry"
    state: dict[str, Any] = Field(default_factory=dict, description="Inherited state")
    dependencies: dict[ResourceId, str] = Field(
        default_factory=dict, description="Content of each dependency; failed ones are empty"
    )

    @property
    def resource_id(self) -> ResourceId:
        return self.node.id

    def dependency_contents(self) -> list[str]:
        """Dependency contents in edge order, one per distinct target."""
        return [self.dependencies.get(target, "") for target in self.node.dependency_ids]

    def result(self, content: str, diagnostics: list[Diagnostic] | None = None) -> RenderResult:
        return RenderResult(
            resource_id=self.node.id,
            content=content,
            content_hash=self.node.content_hash or "",
            artifact_hash=content_hash(content),
            diagnostics=diagnostics or [],
        )


class Renderer(ABC):
    """One implementation per ResourceKind."""

    kind: ResourceKind
    uses_state: bool = False  # inherited state changes the artifact

    def cache_key(self) -> str:
        """
        Extra input that changes the artifact, such as a model name.

        Folded into the cache fingerprint of every node of this kind.
        """
        return ""

    @abstractmethod
    async def render(self, context: RenderContext) -> RenderResult:
        """
        Produce the artifact for `context.node`.

        Must be idempotent for identical inputs with a matching content hash.

        Raises:
            ResourceUnavailable: If the resource cannot be read
            RendererError: If rendering fails
        """
        pass

    def present(self, content: str, options: dict[str, Any]) -> str:
        """Fragment for one directive referencing this artifact."""
        return content


class RendererRegistry:
    """Closed mapping from ResourceKind to its renderer."""

    def __init__(self, renderers: list[Renderer] | None = None):
        self._renderers: dict[ResourceKind, Renderer] = {}
        for renderer in renderers or []:
            self.register(renderer)

    def register(self, renderer: Renderer) -> None:
        self._renderers[renderer.kind] = renderer

    def get(self, kind: ResourceKind) -> Renderer:
        renderer = self._renderers.get(kind)
        if renderer is None:
            raise RendererError(
                f"No renderer registered for {kind.value}", context={"kind": kind.value}
            )
        return renderer

    def has(self, kind: ResourceKind) -> bool:
        return kind in self._renderers

    def cache_key(self, kind: ResourceKind) -> str:
        renderer = self._renderers.get(kind)
        return renderer.cache_key() if renderer is not None else ""

    def uses_state(self, kind: ResourceKind) -> bool:
        renderer = self._renderers.get(kind)
        return renderer is not None and renderer.uses_state

    def present(self, kind: ResourceKind, content: str, options: dict[str, Any]) -> str:
        if not content:
            return ""
        return self.get(kind).present(content, options)

    def __contains__(self, kind: object) -> bool:
        return kind in self._renderers

    def __len__(self) -> int:
        return len(self._renderers)


RenderContext.model_rebuild()
