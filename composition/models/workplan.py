"""
Workplan models: ordered layers of dirty resources.
"""

from pydantic import BaseModel, Field

from composition.models.diagnostic import Diagnostic
from composition.models.resource import ResourceId


class Layer(BaseModel):
    """Resources that may render concurrently."""

    index: int = Field(..., ge=0)
    resources: list[ResourceId] = Field(default_factory=list)

    def __len__(self) -> int:
        return len(self.resources)


class Workplan(BaseModel):
    """
    Execution plan for one render request.

    Every node's layer index is strictly greater than the layer index of
    each dirty node it depends on. Fresh nodes are not scheduled at all.
    """

    layers: list[Layer] = Field(default_factory=list)
    fresh: set[ResourceId] = Field(default_factory=set)
    diagnostics: list[Diagnostic] = Field(
        default_factory=list, description="Warnings raised by freshness checks"
    )

    @property
    def total_tasks(self) -> int:
        return sum(len(layer) for layer in self.layers)

    @property
    def dirty(self) -> set[ResourceId]:
        return {resource for layer in self.layers for resource in layer.resources}

    def layer_of(self, resource_id: ResourceId) -> int | None:
        for layer in self.layers:
            if resource_id in layer.resources:
                return layer.index
        return None

    def is_empty(self) -> bool:
        return self.total_tasks == 0
