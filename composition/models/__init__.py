"""
Data models for the composition engine.

Core models:
- ResourceId, ResourceKind, ResourceSource: identity and classification
- Requirement, ConsistencyClass, Reference: reference markers and trust level
- Directive, ParsedDocument, Segment: parser output
- ResourceNode, DependencyEdge, DependencyGraph: the dependency graph
- CacheEntry: persisted render state per resource
- Workplan, Layer: ordered batches of dirty resources
- RenderResult, Diagnostic, Diagnostics, ComposedDocument, RenderReport
"""

from composition.models.cache import CacheEntry
from composition.models.document import (
    Directive,
    DirectiveKind,
    ParsedDocument,
    Segment,
    SourcePosition,
)
from composition.models.graph import DependencyEdge, DependencyGraph, ResourceNode
from composition.models.diagnostic import Diagnostic, DiagnosticLevel
from composition.models.render import (
    ComposedDocument,
    Diagnostics,
    NodeState,
    RenderReport,
    RenderResult,
)
from composition.models.resource import (
    ConsistencyClass,
    Reference,
    Requirement,
    ResourceId,
    ResourceKind,
    ResourceSource,
)
from composition.models.workplan import Layer, Workplan

__all__ = [
    # Identity
    "ResourceId",
    "ResourceKind",
    "ResourceSource",
    "Requirement",
    "ConsistencyClass",
    "Reference",
    # Parser output
    "Directive",
    "DirectiveKind",
    "ParsedDocument",
    "Segment",
    "SourcePosition",
    # Graph
    "DependencyEdge",
    "DependencyGraph",
    "ResourceNode",
    # Cache
    "CacheEntry",
    # Workplan
    "Layer",
    "Workplan",
    # Render
    "ComposedDocument",
    "Diagnostic",
    "DiagnosticLevel",
    "Diagnostics",
    "NodeState",
    "RenderReport",
    "RenderResult",
]
