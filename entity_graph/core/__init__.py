"""
ENTITY GRAPH CORE - Central exports for core functionality.

This module provides access to:
- The node contract (EntityNode, EventEntityNode)
- Notifying node implementations (EventNode, DebouncedEventNode)
- The graph manager and its snapshot types
"""

from entity_graph.core.ontology import (
    EntityNode,
    EventEntityNode,
    NodeChangeListener,
)
from entity_graph.core.event_node import (
    PropsNode,
    EventNode,
    DebouncedEventNode,
)
from entity_graph.core.schemas import (
    NodeStructure,
    EdgeStructure,
)
from entity_graph.core.graph_manager import (
    GraphManager,
    GraphError,
    InvalidNodeError,
    NodeResolutionError,
)

__all__ = [
    # Ontology
    "EntityNode",
    "EventEntityNode",
    "NodeChangeListener",
    # Nodes
    "PropsNode",
    "EventNode",
    "DebouncedEventNode",
    # Schemas
    "NodeStructure",
    "EdgeStructure",
    # Graph
    "GraphManager",
    "GraphError",
    "InvalidNodeError",
    "NodeResolutionError",
]
