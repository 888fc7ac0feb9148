"""
ENTITY GRAPH - Live graph of discovered entities with change notifications.

Central exports:
- GraphManager: node/edge registry, queries, snapshot builders
- EntityNode / EventEntityNode: the node contract
- EventNode / DebouncedEventNode: ready-made notifying nodes
- EventType / GraphEvent: the published event channels
"""
from entity_graph.core import (
    EntityNode,
    EventEntityNode,
    EventNode,
    DebouncedEventNode,
    GraphManager,
    GraphError,
    InvalidNodeError,
    NodeResolutionError,
    NodeStructure,
    EdgeStructure,
)
from entity_graph.infrastructure import (
    EventBus,
    EventType,
    GraphEvent,
    Scheduler,
    AsyncioScheduler,
    ManualScheduler,
    Settings,
    get_settings,
)

__version__ = "0.1.0"

__all__ = [
    # Core
    "EntityNode",
    "EventEntityNode",
    "EventNode",
    "DebouncedEventNode",
    "GraphManager",
    "GraphError",
    "InvalidNodeError",
    "NodeResolutionError",
    "NodeStructure",
    "EdgeStructure",
    # Infrastructure
    "EventBus",
    "EventType",
    "GraphEvent",
    "Scheduler",
    "AsyncioScheduler",
    "ManualScheduler",
    "Settings",
    "get_settings",
]
