"""
ENTITY GRAPH MANAGER - The live map of discovered entities

Tracks a mutable directed graph of entity nodes (services, processes, ...)
discovered incrementally, and publishes change events as nodes and edges come
and go.

Architecture (The Bridge Pattern):
  Caller Layer
  - Passes entity objects: manager.add_edge(nodejs, express)
  - Subscribes to EventType channels

  Bridge Layer (This File)
  - _node_map: Dict[str, int]   (node id -> arena index)
  - _inv_map:  Dict[int, str]   (arena index -> node id)
  - _type_index: Dict[type tag, ordered set of indices]
  - _listeners: Dict[int, callback] for event-capable nodes

  Arena (rustworkx.PyDiGraph, no parallel edges)
  - Node payload = the entity object itself
  - successors = target adjacency, predecessors = source adjacency.
    One edge record serves both directions, so they can never disagree.

Node arguments are resolved by id through _node_map. Nothing here raises
for "not found": mutations return False, queries return empty results.

Events (all synchronous, in subscription order):
  NODE_UPDATED, NODE_REMOVED, EDGE_ADDED, EDGE_REMOVED, and GRAPH_UPDATED
  after each of them. Inside batch() GRAPH_UPDATED is deferred and emitted
  once when the outermost batch exits, if anything changed.

Thread Safety:
  NOT thread-safe. All mutations are synchronous; the only await point is
  property resolution in get_node_structure().
"""
import asyncio
import inspect
import logging
import time
from contextlib import contextmanager
from typing import Any, Callable, Dict, Hashable, Iterable, Iterator, List, Optional, Set

import rustworkx as rx

from entity_graph.core.ontology import EntityNode, EventEntityNode, NodeProps
from entity_graph.core.schemas import EdgeStructure, NodeStructure
from entity_graph.infrastructure.config import get_settings
from entity_graph.infrastructure.event_bus import EventBus, EventHandler, EventType, GraphEvent


logger = logging.getLogger("entity_graph.graph_manager")


# =============================================================================
# CUSTOM EXCEPTIONS
# =============================================================================

class GraphError(Exception):
    """Base exception for graph operations."""
    pass


class InvalidNodeError(GraphError):
    """Raised when a node breaks the identity contract (e.g. empty id)."""
    def __init__(self, node: Any, reason: str):
        self.node = node
        super().__init__(f"Invalid node {node!r}: {reason}")


class NodeResolutionError(GraphError):
    """Raised when a node's property accessor fails during a snapshot build."""
    def __init__(self, node_id: str, error: BaseException):
        self.node_id = node_id
        super().__init__(f"Failed to resolve properties of node {node_id}: {error}")


# =============================================================================
# GRAPH MANAGER
# =============================================================================

class GraphManager:
    """
    In-memory entity graph with change notifications.

    Usage:
        manager = GraphManager()
        manager.subscribe(EventType.GRAPH_UPDATED, lambda event: redraw())

        manager.add_edge(nodejs, express)      # registers both nodes
        manager.get_targets(nodejs)            # [express]
        await manager.get_node_structure(nodejs, target_depth=10)
    """

    def __init__(self, event_bus: Optional[EventBus] = None, event_source: Optional[str] = None):
        """
        Args:
            event_bus: Bus to publish on. A private bus is created if omitted.
            event_source: Name stamped on events. Defaults to the configured
                          graph.event_source.
        """
        self._graph: rx.PyDiGraph = rx.PyDiGraph(multigraph=False)

        # The Bridge: id <-> arena index
        self._node_map: Dict[str, int] = {}
        self._inv_map: Dict[int, str] = {}

        # Type tag -> indices (dict used as an insertion-ordered set)
        self._type_index: Dict[Hashable, Dict[int, None]] = {}

        # Forwarding callbacks attached to event-capable nodes
        self._listeners: Dict[int, Callable[[], None]] = {}

        self._event_bus = event_bus if event_bus is not None else EventBus()
        self._event_source = event_source or get_settings().graph.event_source

        self._batch_depth = 0
        self._batch_dirty = False

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def event_bus(self) -> EventBus:
        return self._event_bus

    @property
    def node_count(self) -> int:
        """Number of nodes in the graph."""
        return len(self._node_map)

    @property
    def edge_count(self) -> int:
        """Number of edges in the graph."""
        return self._graph.num_edges()

    @property
    def is_empty(self) -> bool:
        """True if graph has no nodes."""
        return self.node_count == 0

    # =========================================================================
    # EVENTS
    # =========================================================================

    def subscribe(self, event_type: EventType, handler: Callable[[GraphEvent], None]) -> None:
        """Subscribe a synchronous handler to one event channel."""
        self._event_bus.subscribe(event_type, handler)

    def subscribe_async(self, event_type: EventType, handler: EventHandler) -> None:
        """Subscribe a coroutine handler; it is scheduled on the running loop."""
        self._event_bus.subscribe_async(event_type, handler)

    def unsubscribe(self, event_type: EventType, handler: EventHandler) -> None:
        self._event_bus.unsubscribe(event_type, handler)

    def _publish(self, event_type: EventType, **fields: Any) -> None:
        self._event_bus.publish(GraphEvent(
            type=event_type,
            timestamp=time.time(),
            source=self._event_source,
            **fields,
        ))

    def _graph_updated(self) -> None:
        if self._batch_depth > 0:
            self._batch_dirty = True
            return
        self._publish(EventType.GRAPH_UPDATED)

    def _emit(self, event_type: EventType, **fields: Any) -> None:
        """Publish a specific event followed by GRAPH_UPDATED."""
        self._publish(event_type, **fields)
        self._graph_updated()

    @contextmanager
    def batch(self) -> Iterator["GraphManager"]:
        """
        Defer GRAPH_UPDATED until the block exits.

        Node and edge events still fire one by one. GRAPH_UPDATED fires once
        at the end of the outermost batch, and only if something changed.

        Example:
            with manager.batch():
                manager.add_node(a)
                manager.add_edge(a, b)
        """
        self._batch_depth += 1
        try:
            yield self
        finally:
            self._batch_depth -= 1
            if self._batch_depth == 0 and self._batch_dirty:
                self._batch_dirty = False
                self._publish(EventType.GRAPH_UPDATED)

    # =========================================================================
    # NODE OPERATIONS
    # =========================================================================

    def _index_of(self, node: EntityNode) -> Optional[int]:
        return self._node_map.get(node.get_node_id())

    # rustworkx lists the newest neighbour first; these return link order.

    def _target_indices(self, idx: int) -> List[int]:
        return list(reversed(self._graph.successor_indices(idx)))

    def _source_indices(self, idx: int) -> List[int]:
        return list(reversed(self._graph.predecessor_indices(idx)))

    def add_node(self, node: EntityNode) -> bool:
        """
        Register a node under its id.

        If a different object already holds the id it is superseded: its
        edges are removed (EDGE_REMOVED each), its listener is detached, and
        no NODE_REMOVED is emitted for it.

        Args:
            node: The node to add

        Returns:
            True if the node was added or replaced an existing one, False if
            this exact object was already registered

        Raises:
            InvalidNodeError: If the node id is empty
        """
        node_id = node.get_node_id()
        if not node_id:
            raise InvalidNodeError(node, "node id must be a non-empty string")

        current_idx = self._node_map.get(node_id)
        if current_idx is not None:
            if self._graph[current_idx] is node:
                return False
            logger.debug(f"Replacing node {node_id} with a new object")
            self._detach_node(current_idx, emit_event=False)

        idx = self._graph.add_node(node)
        self._node_map[node_id] = idx
        self._inv_map[idx] = node_id
        self._type_index.setdefault(node.node_type, {})[idx] = None
        logger.debug(f"Added node {node_id} (type={node.node_type!r}, index={idx})")

        if isinstance(node, EventEntityNode):
            def forward_change() -> None:
                self._emit(EventType.NODE_UPDATED, node=node)

            self._listeners[idx] = forward_change
            node.on_changed(forward_change)

        self._emit(EventType.NODE_UPDATED, node=node)
        return True

    def remove_node(self, node: EntityNode) -> bool:
        """
        Remove a node and every edge touching it.

        Incoming edges are removed first, then outgoing ones, each emitting
        EDGE_REMOVED; NODE_REMOVED fires last.

        Args:
            node: The node to remove (matched by id)

        Returns:
            True if the node was removed, False if it did not exist
        """
        idx = self._index_of(node)
        if idx is None:
            return False
        self._detach_node(idx, emit_event=True)
        return True

    def _detach_node(self, idx: int, emit_event: bool) -> None:
        node = self._graph[idx]
        node_id = self._inv_map[idx]

        for source_idx in self._source_indices(idx):
            self._remove_edge_indices(source_idx, idx)
        for target_idx in self._target_indices(idx):
            self._remove_edge_indices(idx, target_idx)

        bucket = self._type_index.get(node.node_type)
        if bucket is not None:
            bucket.pop(idx, None)
            if not bucket:
                del self._type_index[node.node_type]

        del self._node_map[node_id]
        del self._inv_map[idx]
        self._graph.remove_node(idx)

        callback = self._listeners.pop(idx, None)
        if callback is not None:
            node.remove_changed(callback)

        logger.debug(f"Removed node {node_id} (index={idx})")
        if emit_event:
            self._emit(EventType.NODE_REMOVED, node=node)

    # =========================================================================
    # EDGE OPERATIONS
    # =========================================================================

    def add_edge(self, source: EntityNode, target: EntityNode) -> bool:
        """
        Link source -> target, registering either endpoint if needed.

        Returns:
            True if anything changed (an endpoint was added or the edge is
            new), False if both nodes and the edge already existed
        """
        changed = self.add_node(source)
        changed = self.add_node(target) or changed

        src_idx = self._node_map[source.get_node_id()]
        tgt_idx = self._node_map[target.get_node_id()]
        if self._graph.has_edge(src_idx, tgt_idx):
            return changed

        self._graph.add_edge(src_idx, tgt_idx, None)
        logger.debug(f"Added edge {self._inv_map[src_idx]} -> {self._inv_map[tgt_idx]}")
        self._emit(EventType.EDGE_ADDED, source_node=self._graph[src_idx], target_node=self._graph[tgt_idx])
        return True

    def remove_edge(self, source: EntityNode, target: EntityNode) -> bool:
        """
        Unlink source -> target. The endpoint nodes stay in the graph.

        Returns:
            True if the edge was removed, False if it did not exist
        """
        src_idx = self._index_of(source)
        tgt_idx = self._index_of(target)
        if src_idx is None or tgt_idx is None:
            return False
        return self._remove_edge_indices(src_idx, tgt_idx)

    def _remove_edge_indices(self, src_idx: int, tgt_idx: int) -> bool:
        if not self._graph.has_edge(src_idx, tgt_idx):
            return False
        self._graph.remove_edge(src_idx, tgt_idx)
        logger.debug(f"Removed edge {self._inv_map[src_idx]} -> {self._inv_map[tgt_idx]}")
        self._emit(EventType.EDGE_REMOVED, source_node=self._graph[src_idx], target_node=self._graph[tgt_idx])
        return True

    def add_edges(self, sources: Iterable[EntityNode], targets: Iterable[EntityNode]) -> bool:
        """
        Link every source to every target.

        EDGE_ADDED / NODE_UPDATED fire per pair; GRAPH_UPDATED fires once at
        the end if anything changed.

        Returns:
            True if any single add_edge changed the graph
        """
        targets = list(targets)
        changed = False
        with self.batch():
            for source in sources:
                for target in targets:
                    changed = self.add_edge(source, target) or changed
        return changed

    def remove_edges(self, sources: Iterable[EntityNode], targets: Iterable[EntityNode]) -> bool:
        """
        Unlink every source from every target.

        Returns:
            True if any edge was removed
        """
        targets = list(targets)
        changed = False
        with self.batch():
            for source in sources:
                for target in targets:
                    changed = self.remove_edge(source, target) or changed
        return changed

    # =========================================================================
    # QUERIES
    # =========================================================================

    def has_node(self, node_id: str) -> bool:
        """Check if a node id is registered."""
        return node_id in self._node_map

    def has_edge(self, source: EntityNode, target: EntityNode) -> bool:
        """Check if the edge source -> target exists."""
        src_idx = self._index_of(source)
        tgt_idx = self._index_of(target)
        if src_idx is None or tgt_idx is None:
            return False
        return self._graph.has_edge(src_idx, tgt_idx)

    def get_targets(self, node: EntityNode) -> List[EntityNode]:
        """Nodes this node points to (children). Empty if unknown."""
        idx = self._index_of(node)
        if idx is None:
            return []
        return [self._graph[i] for i in self._target_indices(idx)]

    def get_sources(self, node: EntityNode) -> List[EntityNode]:
        """Nodes pointing to this node (parents). Empty if unknown."""
        idx = self._index_of(node)
        if idx is None:
            return []
        return [self._graph[i] for i in self._source_indices(idx)]

    def get_all_nodes(self) -> List[EntityNode]:
        """All nodes, in registration order."""
        return [self._graph[idx] for idx in self._node_map.values()]

    def get_node_by_id(self, node_id: str) -> Optional[EntityNode]:
        """The node registered under node_id, or None."""
        idx = self._node_map.get(node_id)
        if idx is None:
            return None
        return self._graph[idx]

    def get_nodes_by_type(self, node_type: Hashable) -> List[EntityNode]:
        """All nodes with the given type tag, in registration order."""
        return [self._graph[idx] for idx in self._type_index.get(node_type, ())]

    def get_source_edge_count(self) -> int:
        """Total size of all incoming-edge sets."""
        return sum(self._graph.in_degree(idx) for idx in self._graph.node_indices())

    def get_target_edge_count(self) -> int:
        """Total size of all outgoing-edge sets."""
        return sum(self._graph.out_degree(idx) for idx in self._graph.node_indices())

    # =========================================================================
    # STRUCTURE BUILDERS
    # =========================================================================

    def _claim_neighbours(self, neighbour_indices: Iterable[int], visited: Set[int]) -> List[int]:
        """Select the unvisited neighbours and mark them visited."""
        claimed = [idx for idx in neighbour_indices if idx not in visited]
        visited.update(claimed)
        return claimed

    async def get_node_structure(
        self,
        node: EntityNode,
        target_depth: int = 0,
        source_depth: int = -1,
    ) -> NodeStructure:
        """
        Build a property snapshot of a node and its neighbourhood.

        Outgoing edges are followed while target_depth > 0 and incoming edges
        while source_depth > 0; every hop lowers both depths by one. A node
        already present in the snapshot is never expanded again, so cycles
        terminate.

        Props of the node and of all children at one level are resolved
        concurrently.

        Args:
            node: Starting node
            target_depth: Hops of outgoing expansion (<= 0 disables it)
            source_depth: Hops of incoming expansion (<= 0 disables it)

        Returns:
            NodeStructure tree; `targets` / `sources` are None when empty

        Raises:
            NodeResolutionError: If any node's property accessor fails
        """
        idx = self._index_of(node)
        visited: Set[int] = {idx} if idx is not None else set()
        return await self._build_node_structure(node, idx, target_depth, source_depth, visited)

    async def _build_node_structure(
        self,
        node: EntityNode,
        idx: Optional[int],
        target_depth: int,
        source_depth: int,
        visited: Set[int],
    ) -> NodeStructure:
        targets: List[int] = []
        sources: List[int] = []
        if idx is not None:
            if target_depth > 0:
                targets = self._claim_neighbours(self._target_indices(idx), visited)
            if source_depth > 0:
                sources = self._claim_neighbours(self._source_indices(idx), visited)

        tasks = [asyncio.ensure_future(self._resolve_props(node))]
        tasks.extend(
            asyncio.ensure_future(
                self._build_node_structure(self._graph[i], i, target_depth - 1, source_depth - 1, visited)
            )
            for i in targets + sources
        )
        try:
            props, *resolved = await asyncio.gather(*tasks)
        except BaseException:
            # First failure wins; stop the siblings and collect their errors
            for task in tasks:
                if task.done():
                    if not task.cancelled():
                        task.exception()
                else:
                    task.cancel()
            raise

        data = NodeStructure(type=node.node_type, id=node.get_node_id(), props=props)
        if targets:
            data.targets = resolved[:len(targets)]
        if sources:
            data.sources = resolved[len(targets):]
        return data

    async def _resolve_props(self, node: EntityNode) -> NodeProps:
        try:
            props = node.get_node_props()
            if inspect.isawaitable(props):
                props = await props
        except Exception as e:
            raise NodeResolutionError(node.get_node_id(), e) from e
        return props

    def get_edge_structure(self, node: EntityNode) -> EdgeStructure:
        """
        Build the id-only shape of everything reachable from a node.

        Both directions are followed without a depth limit; each node appears
        at most once. Built iteratively, so long chains do not hit the
        recursion limit.

        Returns:
            EdgeStructure tree; `targets` / `sources` are None when empty
        """
        root = EdgeStructure(id=node.get_node_id())
        idx = self._index_of(node)
        if idx is None:
            return root

        visited: Set[int] = {idx}
        stack = [(idx, root)]
        while stack:
            current, data = stack.pop()
            targets = self._claim_neighbours(self._target_indices(current), visited)
            sources = self._claim_neighbours(self._source_indices(current), visited)

            children = []
            if targets:
                data.targets = [EdgeStructure(id=self._inv_map[i]) for i in targets]
                children.extend(zip(targets, data.targets))
            if sources:
                data.sources = [EdgeStructure(id=self._inv_map[i]) for i in sources]
                children.extend(zip(sources, data.sources))
            # Depth-first, first target expanded first
            stack.extend(reversed(children))
        return root
