"""
Services for the composition engine.

- CompositionEngine: public facade for build, plan, render and watch
- GraphBuilder: dependency graph expansion and persistence
- CacheStore, ConsistencyPolicy: cached artifacts and when to trust them
- WorkplanGenerator: layered plan of dirty resources
- RenderOrchestrator: concurrent layer-by-layer rendering
- DocumentWatcher: polling re-render on local changes
"""

from composition.services.cache_store import CacheStore, Freshness, FreshnessVerdict
from composition.services.consistency import ConsistencyPolicy
from composition.services.engine import CompositionEngine
from composition.services.graph_builder import GraphBuilder
from composition.services.orchestrator import RenderOrchestrator
from composition.services.watcher import DocumentWatcher
from composition.services.workplan import WorkplanGenerator, inherited_states

__all__ = [
    "CompositionEngine",
    "GraphBuilder",
    "CacheStore",
    "ConsistencyPolicy",
    "Freshness",
    "FreshnessVerdict",
    "WorkplanGenerator",
    "RenderOrchestrator",
    "DocumentWatcher",
    "inherited_states",
]
