"""
Lightweight event bus for graph change notifications.

Follows publisher-subscriber pattern: the graph manager publishes, any number
of observers subscribe per event channel.

Design Principles:
- One observer list per event type, delivered in subscription order
- Supports both sync and async handlers
- Sync handlers run before publish() returns (blocking fan-out)
- Async handlers are scheduled on the running loop via create_task
- Typed events via msgspec

Architecture:
    GraphManager -> EventBus -> [renderers, exporters, audit loggers]

Usage:
    from entity_graph.infrastructure.event_bus import EventBus, EventType

    bus = EventBus()

    def on_edge_added(event: GraphEvent):
        print(event.source_node.get_node_id(), "->", event.target_node.get_node_id())

    bus.subscribe(EventType.EDGE_ADDED, on_edge_added)
"""
from typing import Callable, List, Dict, Any, Optional
from enum import Enum
import msgspec
import asyncio
from collections import defaultdict
import logging


logger = logging.getLogger("entity_graph.event_bus")


class EventType(str, Enum):
    """Channels published by the graph manager."""
    NODE_UPDATED = "node_updated"
    NODE_REMOVED = "node_removed"
    EDGE_ADDED = "edge_added"
    EDGE_REMOVED = "edge_removed"
    GRAPH_UPDATED = "graph_updated"


class GraphEvent(msgspec.Struct, kw_only=True):
    """
    Event emitted when the graph changes.

    Attributes:
        type: Channel of the event
        node: The affected node (NODE_UPDATED, NODE_REMOVED)
        source_node: Edge source (EDGE_ADDED, EDGE_REMOVED)
        target_node: Edge target (EDGE_ADDED, EDGE_REMOVED)
        timestamp: Unix timestamp when event occurred
        source: Name of the emitter ("graph_manager", ...)
    """
    type: EventType
    timestamp: float
    source: str
    node: Any = None
    source_node: Any = None
    target_node: Any = None


EventHandler = Callable[[GraphEvent], Any]


class EventBus:
    """
    Pub/sub channel set for graph change notifications.

    Thread Safety:
        NOT thread-safe. Meant for a single-threaded (asyncio) process.

    Performance:
        - O(n) notification per event type (where n = subscriber count)
        - Non-blocking for async handlers (fire-and-forget)
    """

    def __init__(self):
        """Initialize empty subscriber lists."""
        self._subscribers: Dict[EventType, List[EventHandler]] = defaultdict(list)
        self._async_subscribers: Dict[EventType, List[EventHandler]] = defaultdict(list)

    def subscribe(self, event_type: EventType, handler: Callable[[GraphEvent], None]):
        """
        Subscribe to events with a synchronous handler.

        Subscribing the same handler twice to one channel is a no-op.

        Args:
            event_type: Type of event to listen for
            handler: Callable that takes GraphEvent as argument
        """
        if handler not in self._subscribers[event_type]:
            self._subscribers[event_type].append(handler)
            logger.debug(f"Subscribed sync handler to {event_type.value}")

    def subscribe_async(self, event_type: EventType, handler: EventHandler):
        """
        Subscribe to events with an async handler.

        Args:
            event_type: Type of event to listen for
            handler: Async callable that takes GraphEvent as argument
        """
        if handler not in self._async_subscribers[event_type]:
            self._async_subscribers[event_type].append(handler)
            logger.debug(f"Subscribed async handler to {event_type.value}")

    def publish(self, event: GraphEvent):
        """
        Publish an event to all subscribers.

        Note:
            - Sync handlers run immediately (blocking), in subscription order
            - Async handlers are scheduled and run in the background
            - Exceptions in handlers are logged but don't propagate
        """
        logger.debug(f"Publishing {event.type.value} from {event.source}")

        # Copy so handlers may unsubscribe while being notified
        for handler in list(self._subscribers[event.type]):
            try:
                handler(event)
            except Exception as e:
                logger.error(
                    f"Error in sync handler for {event.type.value}: {e}",
                    exc_info=True
                )

        for handler in list(self._async_subscribers[event.type]):
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                logger.warning(
                    f"Cannot schedule async handler for {event.type.value}: "
                    "no event loop running"
                )
                continue
            try:
                loop.create_task(handler(event))
            except Exception as e:
                logger.error(
                    f"Error scheduling async handler for {event.type.value}: {e}",
                    exc_info=True
                )

    def unsubscribe(self, event_type: EventType, handler: EventHandler):
        """
        Unsubscribe from events.

        Args:
            event_type: Type of event to unsubscribe from
            handler: Handler to remove (must be same instance)
        """
        if handler in self._subscribers[event_type]:
            self._subscribers[event_type].remove(handler)
            logger.debug(f"Unsubscribed sync handler from {event_type.value}")

        if handler in self._async_subscribers[event_type]:
            self._async_subscribers[event_type].remove(handler)
            logger.debug(f"Unsubscribed async handler from {event_type.value}")

    def clear_subscribers(self, event_type: Optional[EventType] = None):
        """
        Clear all subscribers for an event type (or all types).

        Warning:
            This is primarily for testing. Use with caution in production.
        """
        if event_type is None:
            self._subscribers.clear()
            self._async_subscribers.clear()
            logger.info("Cleared all event subscribers")
        else:
            self._subscribers[event_type].clear()
            self._async_subscribers[event_type].clear()
            logger.info(f"Cleared subscribers for {event_type.value}")

    def subscriber_count(self, event_type: Optional[EventType] = None) -> int:
        """
        Get count of subscribers for an event type.

        Args:
            event_type: Event type to count (None = all types)

        Returns:
            Total number of subscribers (sync + async)
        """
        if event_type is None:
            total = sum(len(handlers) for handlers in self._subscribers.values())
            total += sum(len(handlers) for handlers in self._async_subscribers.values())
            return total
        return (
            len(self._subscribers[event_type]) +
            len(self._async_subscribers[event_type])
        )


# =============================================================================
# SINGLETON INSTANCE
# =============================================================================

_event_bus: Optional[EventBus] = None


def get_event_bus() -> EventBus:
    """
    Get the process-wide event bus (singleton).

    Graph managers only use it when it is passed to them explicitly; this lets
    several managers feed one set of observers.
    """
    global _event_bus
    if _event_bus is None:
        _event_bus = EventBus()
        logger.info("Initialized global event bus")
    return _event_bus


def reset_event_bus() -> None:
    """Drop the process-wide bus. Primarily for testing."""
    global _event_bus
    _event_bus = None
