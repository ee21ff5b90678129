"""NetLens - Azure network topology and risk reporting.

Turns a collected Azure network inventory into:
- A deduplicated topology graph of VNets, hubs, gateways and firewalls
- Connectivity and NSG coverage aggregates per subscription
- NSG risk rows ordered for presentation
"""

__version__ = "0.1.0"

from netlens.core.graph import (
    Edge,
    EdgeKind,
    GraphData,
    Node,
    NodeKind,
    Severity,
)
from netlens.aggregate import NetworkSummary, aggregate
from netlens.normalizers.inventory import Inventory, load_inventory
from netlens.report import NetworkReport, build_report, build_report_from_raw
from netlens.topology import build_graph

__all__ = [
    "__version__",
    # Core graph types
    "Node",
    "Edge",
    "NodeKind",
    "EdgeKind",
    "GraphData",
    "Severity",
    # Pipeline
    "Inventory",
    "load_inventory",
    "build_graph",
    "aggregate",
    "NetworkSummary",
    "NetworkReport",
    "build_report",
    "build_report_from_raw",
]
