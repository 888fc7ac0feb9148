"""
Pytest configuration and shared fixtures for the entity graph test suite.
"""
import sys
from pathlib import Path

import pytest

# Add project root (package) and tests dir (helpers) to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))
sys.path.insert(0, str(Path(__file__).parent))


@pytest.fixture(autouse=True)
def reset_global_state():
    """Reset process-wide settings and event bus around each test."""
    from entity_graph.infrastructure.config import reset_settings
    from entity_graph.infrastructure.event_bus import reset_event_bus

    reset_settings()
    reset_event_bus()

    yield

    reset_settings()
    reset_event_bus()


@pytest.fixture
def manager():
    """Provide a fresh GraphManager with its own event bus."""
    from entity_graph.core.graph_manager import GraphManager
    return GraphManager()


@pytest.fixture
def scheduler():
    """Provide a virtual-clock scheduler."""
    from entity_graph.infrastructure.scheduler import ManualScheduler
    return ManualScheduler()


@pytest.fixture
def recorder(manager):
    """
    Record every event published by `manager` as (type, payload) tuples.

    Payload is the node for node events, a (source, target) pair for edge
    events and None for GRAPH_UPDATED.
    """
    from entity_graph.infrastructure.event_bus import EventType

    events = []

    def record(event):
        if event.type in (EventType.NODE_UPDATED, EventType.NODE_REMOVED):
            events.append((event.type, event.node))
        elif event.type in (EventType.EDGE_ADDED, EventType.EDGE_REMOVED):
            events.append((event.type, (event.source_node, event.target_node)))
        else:
            events.append((event.type, None))

    for event_type in EventType:
        manager.subscribe(event_type, record)
    return events
