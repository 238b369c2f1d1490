"""
Warnings and errors attached to graph building, planning and rendering.
"""

from enum import Enum

from pydantic import BaseModel, Field

from composition.models.document import SourcePosition
from composition.models.resource import ResourceId


class DiagnosticLevel(str, Enum):
    WARNING = "warning"
    ERROR = "error"


class Diagnostic(BaseModel):
    """A warning or error attached to a render."""

    level: DiagnosticLevel = DiagnosticLevel.WARNING
    code: str = Field(..., description="Stable machine-readable code, e.g. resource-missing")
    message: str
    resource_id: ResourceId | None = None
    root: ResourceId | None = None
    position: SourcePosition | None = None

    def __str__(self) -> str:
        where = f" ({self.resource_id}" if self.resource_id else ""
        if where and self.position:
            where += f" at line {self.position.line}"
        if where:
            where += ")"
        return f"[{self.level.value}] {self.code}: {self.message}{where}"
