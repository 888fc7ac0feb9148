"""
ENTITY GRAPH SCHEMAS - Snapshot shapes

Snapshots are derived, read-only trees built by the graph manager:

- NodeStructure: type, id and resolved props per node, with optional
  `targets` / `sources` children (depth bounded).
- EdgeStructure: id only, full reachable topology (unbounded).

Children lists are None when there is nothing to expand, and are omitted
when encoded (omit_defaults), so consumers never see empty arrays.

The wire format is the caller's choice: to_dict() gives builtins that any
encoder (msgspec.json, msgpack, ...) accepts.
"""
import msgspec
from typing import Any, Dict, List, Optional


class NodeStructure(msgspec.Struct, kw_only=True, omit_defaults=True):
    """Property-bearing snapshot of a node and its expanded neighbours."""
    type: Any
    id: str
    props: Any
    targets: Optional[List["NodeStructure"]] = None
    sources: Optional[List["NodeStructure"]] = None

    def to_dict(self) -> Dict[str, Any]:
        return msgspec.to_builtins(self)


class EdgeStructure(msgspec.Struct, kw_only=True, omit_defaults=True):
    """Topology-only snapshot of a node and everything reachable from it."""
    id: str
    targets: Optional[List["EdgeStructure"]] = None
    sources: Optional[List["EdgeStructure"]] = None

    def to_dict(self) -> Dict[str, Any]:
        return msgspec.to_builtins(self)
