"""
ENTITY GRAPH INFRASTRUCTURE - System-Level Modules

This package contains infrastructure components:
- config: TOML-backed typed settings
- event_bus: Per-channel observer lists for graph events
- scheduler: Timer sources (asyncio loop, manual virtual clock)
"""

from entity_graph.infrastructure.config import (
    Settings,
    GraphSettings,
    NotifierSettings,
    get_settings,
    load_settings,
)
from entity_graph.infrastructure.event_bus import (
    EventBus,
    EventType,
    GraphEvent,
    get_event_bus,
)
from entity_graph.infrastructure.scheduler import (
    Scheduler,
    TimerHandle,
    AsyncioScheduler,
    ManualScheduler,
)

__all__ = [
    "Settings",
    "GraphSettings",
    "NotifierSettings",
    "get_settings",
    "load_settings",
    "EventBus",
    "EventType",
    "GraphEvent",
    "get_event_bus",
    "Scheduler",
    "TimerHandle",
    "AsyncioScheduler",
    "ManualScheduler",
]
