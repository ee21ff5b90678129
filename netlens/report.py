"""Report facade.

Runs the graph builder, the aggregator and risk ordering over one snapshot
and bundles the results for the presentation layer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from netlens.aggregate import NetworkSummary, aggregate
from netlens.core.context import BuildContext
from netlens.core.graph import GraphData
from netlens.core.records import AzureFirewall, VirtualWANHub, VNet
from netlens.normalizers.inventory import load_inventory
from netlens.risks import (
    RiskRow,
    collect_risks,
    highest_severity_by_subscription,
    highest_severity_by_vnet,
    sort_risks,
)
from netlens.topology import build_graph

logger = logging.getLogger(__name__)


@dataclass
class NetworkReport:
    """Everything the presentation layer renders for one snapshot.

    Attributes:
        graph: Topology graph
        summary: Aggregate counts
        risks: NSG risks in presentation order
        highest_by_vnet: (subscription, VNet) -> worst severity
        highest_by_subscription: Subscription -> worst severity
    """

    graph: GraphData
    summary: NetworkSummary
    risks: List[RiskRow] = field(default_factory=list)
    highest_by_vnet: Dict[Tuple[str, str], str] = field(default_factory=dict)
    highest_by_subscription: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "graph": self.graph.to_dict(),
            "summary": self.summary.to_dict(),
            "risks": [r.to_dict() for r in self.risks],
            "highest_by_vnet": [
                {"subscription_name": sub, "vnet_name": vnet, "severity": severity}
                for (sub, vnet), severity in self.highest_by_vnet.items()
            ],
            "highest_by_subscription": dict(self.highest_by_subscription),
        }


def build_report(
    vnets: Sequence[VNet],
    hubs: Sequence[VirtualWANHub] = (),
    firewalls: Sequence[AzureFirewall] = (),
    context: Optional[BuildContext] = None,
) -> NetworkReport:
    """Build the full report from canonical records.

    Args:
        vnets: VNet records
        hubs: Virtual-WAN hub records
        firewalls: Standalone firewall records
        context: Optional fresh build context

    Returns:
        NetworkReport
    """
    ctx = context or BuildContext()
    graph = build_graph(vnets, hubs, firewalls, context=ctx)
    summary = aggregate(vnets, hubs, firewalls, prefix=ctx.hub_proxy_prefix)
    risks = sort_risks(collect_risks(vnets, hubs, prefix=ctx.hub_proxy_prefix))
    return NetworkReport(
        graph=graph,
        summary=summary,
        risks=risks,
        highest_by_vnet=highest_severity_by_vnet(risks),
        highest_by_subscription=highest_severity_by_subscription(risks),
    )


def build_report_from_raw(
    raw: Mapping[str, Any],
    strict: bool = False,
    context: Optional[BuildContext] = None,
) -> NetworkReport:
    """Load a raw snapshot in either inventory format and build its report."""
    inventory = load_inventory(raw, strict=strict)
    if inventory.skipped:
        logger.warning(f"{inventory.skipped} inventory records were skipped; report is partial")
    return build_report(inventory.vnets, inventory.hubs, inventory.firewalls, context=context)
