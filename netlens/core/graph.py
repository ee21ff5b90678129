"""Graph types for the network topology.

Nodes and edges are plain dataclasses so the presentation layer can
serialize them with ``to_dict`` and rebuild them with ``from_dict``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class Severity(str, Enum):
    """NSG risk severities, worst first."""

    CRITICAL = "Critical"
    HIGH = "High"
    MEDIUM = "Medium"

    @classmethod
    def values(cls) -> List[str]:
        return [m.value for m in cls]


class NodeKind(str, Enum):
    """Kinds of topology nodes."""

    VNET = "VNet"
    GATEWAY = "Gateway"
    HUB = "Hub"
    FIREWALL = "Firewall"
    ON_PREMISES = "OnPremises"
    CIRCUIT = "Circuit"
    UNKNOWN_VNET = "UnknownVNet"
    UNKNOWN_HUB = "UnknownHub"


class EdgeKind(str, Enum):
    """Kinds of topology edges."""

    PEERING = "Peering"
    GATEWAY_ATTACHMENT = "GatewayAttachment"
    FIREWALL_ATTACHMENT = "FirewallAttachment"
    S2S = "S2S"
    EXPRESSROUTE = "ExpressRoute"


@dataclass
class Node:
    """A topology node.

    Attributes:
        id: Synthetic node identifier, stable for a given input
        label: Display label
        kind: Node kind
        group: Subscription name, or "unknown" for placeholder nodes
        tooltip: Free-text tooltip payload
        color: Group color assigned by the build context
        properties: Additional resource attributes
    """

    id: str
    label: str
    kind: NodeKind
    group: str = "unknown"
    tooltip: str = ""
    color: Optional[str] = None
    properties: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "kind": self.kind.value,
            "group": self.group,
            "tooltip": self.tooltip,
            "color": self.color,
            "properties": dict(self.properties),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Node":
        return cls(
            id=data["id"],
            label=data.get("label", data["id"]),
            kind=NodeKind(data.get("kind", NodeKind.VNET.value)),
            group=data.get("group", "unknown"),
            tooltip=data.get("tooltip", ""),
            color=data.get("color"),
            properties=data.get("properties") or {},
        )


@dataclass
class Edge:
    """A topology edge.

    ``direction`` is a rendering hint: "to" points from ``src`` toward
    ``dst``, "from" points back toward ``src``, "both" is bidirectional and
    ``None`` leaves the edge undirected.
    """

    src: str
    dst: str
    kind: EdgeKind
    color: Optional[str] = None
    dashes: bool = False
    direction: Optional[str] = None
    label: str = ""
    properties: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "src": self.src,
            "dst": self.dst,
            "kind": self.kind.value,
            "color": self.color,
            "dashes": self.dashes,
            "direction": self.direction,
            "label": self.label,
            "properties": dict(self.properties),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Edge":
        return cls(
            src=data["src"],
            dst=data["dst"],
            kind=EdgeKind(data.get("kind", EdgeKind.PEERING.value)),
            color=data.get("color"),
            dashes=bool(data.get("dashes", False)),
            direction=data.get("direction"),
            label=data.get("label", ""),
            properties=data.get("properties") or {},
        )


@dataclass
class GraphData:
    """Container for topology nodes and edges.

    Node and edge order is insertion order, which the builder keeps
    deterministic for stable diagram ids.
    """

    nodes: List[Node] = field(default_factory=list)
    edges: List[Edge] = field(default_factory=list)
    meta: Dict[str, Any] = field(default_factory=dict)

    def add_node(self, node: Node) -> None:
        self.nodes.append(node)

    def add_edge(self, edge: Edge) -> None:
        self.edges.append(edge)

    def get_node(self, node_id: str) -> Optional[Node]:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def nodes_of_kind(self, kind: NodeKind) -> List[Node]:
        return [n for n in self.nodes if n.kind == kind]

    def edges_of_kind(self, kind: EdgeKind) -> List[Edge]:
        return [e for e in self.edges if e.kind == kind]

    def edges_between(self, a: str, b: str) -> List[Edge]:
        """Edges joining two nodes in either direction."""
        return [e for e in self.edges if {e.src, e.dst} == {a, b}]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "edges": [e.to_dict() for e in self.edges],
            "meta": dict(self.meta),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GraphData":
        return cls(
            nodes=[Node.from_dict(n) for n in data.get("nodes", [])],
            edges=[Edge.from_dict(e) for e in data.get("edges", [])],
            meta=data.get("meta") or {},
        )
