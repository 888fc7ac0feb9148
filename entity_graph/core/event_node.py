"""
ENTITY GRAPH EVENT NODES - Ready-made change notifiers

Concrete EventEntityNode implementations that hold their property snapshot
in memory and announce replacements:

- EventNode: notifies synchronously on every set_node_props().
- DebouncedEventNode: coalesces a burst of set_node_props() calls into one
  notification, fired a fixed delay after the FIRST call of the burst.

Debounce timeline (delay=0.1):

    t=0.00  set_node_props(a)   -> props=a, timer armed for t=0.10
    t=0.05  set_node_props(b)   -> props=b, timer untouched
    t=0.10  timer fires         -> one "changed", readers see b
    t=0.12  set_node_props(c)   -> new burst, timer armed for t=0.22

Props are always visible immediately; only the notification is delayed.
"""
import logging
from typing import Hashable, Optional

from entity_graph.core.ontology import EventEntityNode, NodeProps
from entity_graph.infrastructure.config import get_settings
from entity_graph.infrastructure.scheduler import AsyncioScheduler, Scheduler, TimerHandle


logger = logging.getLogger("entity_graph.event_node")


class PropsNode(EventEntityNode):
    """EventEntityNode storing a synchronous property snapshot."""

    def __init__(self, node_type: Hashable, node_id: str, initial_props: NodeProps):
        super().__init__()
        self.node_type = node_type
        self._node_id = node_id
        self._node_props = initial_props

    def get_node_id(self) -> str:
        return self._node_id

    def get_node_props(self) -> NodeProps:
        return self._node_props

    def __repr__(self) -> str:
        return f"{type(self).__name__}(node_type={self.node_type!r}, node_id={self._node_id!r})"


class EventNode(PropsNode):
    """Node that notifies listeners immediately when its props are replaced."""

    def set_node_props(self, props: NodeProps, emit_changed: bool = True) -> None:
        """
        Replace the node properties.

        Args:
            props: The new property snapshot
            emit_changed: Notify listeners before returning (default True)
        """
        self._node_props = props
        if emit_changed:
            self._emit_changed()


class DebouncedEventNode(PropsNode):
    """
    Node that collapses bursts of updates into one delayed notification.

    The window starts at the first update after the previous notification
    and is never extended by later updates.
    """

    def __init__(
        self,
        node_type: Hashable,
        node_id: str,
        initial_props: NodeProps,
        scheduler: Optional[Scheduler] = None,
        delay: Optional[float] = None,
    ):
        """
        Args:
            scheduler: Timer source. Defaults to the running asyncio loop.
            delay: Default quiet window in seconds. Defaults to the
                   configured notifier.debounce_delay.
        """
        super().__init__(node_type, node_id, initial_props)
        self._scheduler = scheduler if scheduler is not None else AsyncioScheduler()
        self._delay = delay
        self._timer: Optional[TimerHandle] = None

    @property
    def is_pending(self) -> bool:
        """True while a notification is armed and has not fired yet."""
        return self._timer is not None

    def _resolve_delay(self, delay: Optional[float]) -> float:
        if delay is not None:
            return delay
        if self._delay is not None:
            return self._delay
        return get_settings().notifier.debounce_delay

    def set_node_props(self, props: NodeProps, delay: Optional[float] = None) -> None:
        """
        Replace the node properties and arm the notification if idle.

        Args:
            props: The new property snapshot, visible immediately
            delay: Quiet window for a newly armed timer. Ignored while a
                   timer is already pending.
        """
        if self._timer is None:
            # Arm first: a scheduler failure leaves the node untouched
            delay = self._resolve_delay(delay)
            self._timer = self._scheduler.call_later(delay, self._fire)
            logger.debug(f"Node {self._node_id}: change notification armed ({delay}s)")
        self._node_props = props

    def _fire(self) -> None:
        self._timer = None
        logger.debug(f"Node {self._node_id}: emitting coalesced change")
        self._emit_changed()

    def dispose(self) -> None:
        """Cancel a pending notification. The node stays usable."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
