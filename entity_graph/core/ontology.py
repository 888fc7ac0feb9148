"""
ENTITY GRAPH ONTOLOGY - What a node is

The graph never implements nodes; it consumes them through this contract:

- EntityNode: stable string id, a type tag, and a (possibly async) property
  snapshot accessor.
- EventEntityNode: an EntityNode that can also announce its own changes.

The richer capability is declared by subclassing EventEntityNode. The graph
manager checks the class, never probes for method names.

Type tags are domain specific (an IntEnum, plain ints, strings); the graph
only requires them to be hashable.
"""
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Hashable, List, Union


NodeProps = Any
NodeChangeListener = Callable[[], None]


class EntityNode(ABC):
    """
    Minimal capability set of a graph entity.

    Subclasses set `node_type` (class attribute or in __init__).
    """

    node_type: Hashable

    @abstractmethod
    def get_node_id(self) -> str:
        """Stable, non-empty identifier, unique within a graph."""

    @abstractmethod
    def get_node_props(self) -> Union[NodeProps, Awaitable[NodeProps]]:
        """Current property snapshot, or an awaitable resolving to it."""


class EventEntityNode(EntityNode):
    """
    EntityNode with a single "changed" channel.

    Listeners take no arguments and run synchronously, in subscription order,
    whenever the node calls _emit_changed().
    """

    def __init__(self):
        self._change_listeners: List[NodeChangeListener] = []

    def _listener_list(self) -> List[NodeChangeListener]:
        # Created on first use when a subclass skipped super().__init__()
        return vars(self).setdefault("_change_listeners", [])

    def on_changed(self, callback: NodeChangeListener) -> None:
        """Register a change listener. Registering twice is a no-op."""
        listeners = self._listener_list()
        if callback not in listeners:
            listeners.append(callback)

    def remove_changed(self, callback: NodeChangeListener) -> None:
        """Detach a change listener. Unknown callbacks are ignored."""
        listeners = self._listener_list()
        if callback in listeners:
            listeners.remove(callback)

    @property
    def listener_count(self) -> int:
        return len(self._listener_list())

    def _emit_changed(self) -> None:
        for callback in list(self._listener_list()):
            callback()
