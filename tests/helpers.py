"""
Sample entity nodes shared by the tests.
"""
from enum import IntEnum

from entity_graph.core.ontology import EntityNode, EventEntityNode


class GraphType(IntEnum):
    """Type tags used by the sample nodes."""
    NODEJS = 0
    EXPRESS = 10


class NodeJSNode(EventEntityNode):
    """Event-capable node with async props."""
    node_type = GraphType.NODEJS

    def __init__(self, node_id: str = "nodejs", version: str = "18"):
        super().__init__()
        self._node_id = node_id
        self.version = version

    def get_node_id(self) -> str:
        return self._node_id

    async def get_node_props(self):
        return {"version": self.version}

    def changed(self):
        self._emit_changed()


class ExpressNode(EntityNode):
    """Plain node with async props."""
    node_type = GraphType.EXPRESS

    def __init__(self, node_id: str = "express", port: int = 3000):
        self._node_id = node_id
        self.port = port

    def get_node_id(self) -> str:
        return self._node_id

    async def get_node_props(self):
        return {"port": self.port, "status": "running"}


class SyncNode(EntityNode):
    """Plain node with synchronous props."""

    def __init__(self, node_id: str, node_type: int = 1, props=None):
        self._node_id = node_id
        self.node_type = node_type
        self.props = props if props is not None else {"name": node_id}

    def get_node_id(self) -> str:
        return self._node_id

    def get_node_props(self):
        return self.props


class FailingNode(EntityNode):
    """Node whose property accessor always fails."""
    node_type = 99

    def __init__(self, node_id: str = "broken"):
        self._node_id = node_id

    def get_node_id(self) -> str:
        return self._node_id

    async def get_node_props(self):
        raise ConnectionError("probe timed out")
