"""Connectivity and risk aggregation.

Counts are computed bottom-up (subnet -> VNet -> subscription -> global)
from the same identity rules the graph builder uses, so a peering seen from
both sides, an NSG shared by several subnets or a firewall listed under its
host and again on its own is counted once.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set

from netlens.constants import (
    CONNECTED,
    GATEWAY_TYPE_EXPRESSROUTE,
    HUB_PROXY_PREFIX,
    NSG_EXEMPT_SUBNETS,
)
from netlens.core.graph import Severity
from netlens.core.records import AzureFirewall, Gateway, Subnet, VirtualWANHub, VNet
from netlens.identity import TopologyIndex, endpoint_key, vnet_identity
from netlens.risks import canonical_severity

logger = logging.getLogger(__name__)


def _empty_severities() -> Dict[str, int]:
    return {s.value: 0 for s in Severity}


def _add_severities(target: Dict[str, int], source: Dict[str, int]) -> None:
    for key, value in source.items():
        target[key] = target.get(key, 0) + value


def is_nsg_missing(subnet: Subnet) -> bool:
    """A subnet without an NSG, unless its name is in the exemption set."""
    return not subnet.nsg_id and subnet.name not in NSG_EXEMPT_SUBNETS


def count_missing_nsg(subnets: Iterable[Subnet]) -> int:
    return sum(1 for s in subnets if is_nsg_missing(s))


def _is_disconnected(status: Optional[str]) -> bool:
    return bool(status) and status != CONNECTED


@dataclass
class ConnectionCounts:
    s2s: int = 0
    expressroute: int = 0
    disconnected: int = 0

    def add(self, other: "ConnectionCounts") -> None:
        self.s2s += other.s2s
        self.expressroute += other.expressroute
        self.disconnected += other.disconnected


def count_gateway_connections(gateway: Gateway) -> ConnectionCounts:
    """S2S/ExpressRoute/disconnected counts for one classic gateway.

    An ExpressRoute gateway with no connection entries still counts as one
    ExpressRoute connection.
    """
    counts = ConnectionCounts()
    gateway_is_er = (gateway.gateway_type or "").lower() == GATEWAY_TYPE_EXPRESSROUTE.lower()
    if gateway_is_er and not gateway.connections:
        counts.expressroute += 1
        return counts
    for conn in gateway.connections:
        conn_type = (conn.connection_type or gateway.gateway_type or "").lower()
        if conn_type == GATEWAY_TYPE_EXPRESSROUTE.lower():
            counts.expressroute += 1
        else:
            counts.s2s += 1
        if _is_disconnected(conn.connection_status):
            counts.disconnected += 1
    return counts


def count_hub_connections(hub: VirtualWANHub) -> ConnectionCounts:
    counts = ConnectionCounts()
    for conn in hub.express_route_connections:
        counts.expressroute += 1
        if _is_disconnected(conn.connection_status):
            counts.disconnected += 1
    for conn in hub.vpn_connections:
        counts.s2s += 1
        if _is_disconnected(conn.connection_status):
            counts.disconnected += 1
    return counts


def unique_peering_keys(
    vnets: Sequence[VNet],
    hubs: Sequence[VirtualWANHub] = (),
    prefix: str = HUB_PROXY_PREFIX,
    index: Optional[TopologyIndex] = None,
) -> Set[str]:
    """Dedup keys of every peering, as the graph builder computes them."""
    index = index or TopologyIndex(vnets, hubs, prefix)
    keys: Set[str] = set()
    seen: Set[str] = set()
    for vnet in index.vnets:
        identity = vnet_identity(vnet)
        if identity in seen:
            continue
        seen.add(identity)
        local = index.local_endpoint(vnet)
        for peering in vnet.peerings:
            remote = index.remote_endpoint(peering, vnet.subscription_id)
            key = endpoint_key(local, remote) if remote is not None else None
            if key is not None:
                keys.add(key)
    for hub in index.hubs:
        local = index.hub_endpoint(hub)
        for peering in hub.peerings:
            remote = index.remote_endpoint(peering, hub.subscription_id)
            key = endpoint_key(local, remote) if remote is not None else None
            if key is not None:
                keys.add(key)
    return keys


@dataclass
class SubnetStats:
    name: str
    address_prefix: Optional[str] = None
    nsg_id: Optional[str] = None
    nsg_missing: bool = False
    devices: int = 0
    service_endpoints: int = 0
    risks_by_severity: Dict[str, int] = field(default_factory=_empty_severities)
    risk_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "address_prefix": self.address_prefix,
            "nsg_id": self.nsg_id,
            "nsg_missing": self.nsg_missing,
            "devices": self.devices,
            "service_endpoints": self.service_endpoints,
            "risks_by_severity": dict(self.risks_by_severity),
            "risk_count": self.risk_count,
        }


@dataclass
class VNetStats:
    name: str
    subscription_name: str = ""
    subnets: List[SubnetStats] = field(default_factory=list)
    nsg_ids: Set[str] = field(default_factory=set)
    gateways: int = 0
    peerings: int = 0
    firewalls: int = 0
    connections: ConnectionCounts = field(default_factory=ConnectionCounts)
    risks_by_severity: Dict[str, int] = field(default_factory=_empty_severities)

    @property
    def devices(self) -> int:
        return sum(s.devices for s in self.subnets)

    @property
    def missing_nsg(self) -> int:
        return sum(1 for s in self.subnets if s.nsg_missing)

    @property
    def service_endpoints(self) -> int:
        return sum(s.service_endpoints for s in self.subnets)

    @property
    def risk_count(self) -> int:
        return sum(s.risk_count for s in self.subnets)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "subscription_name": self.subscription_name,
            "subnet_count": len(self.subnets),
            "nsg_count": len(self.nsg_ids),
            "gateway_count": self.gateways,
            "peering_count": self.peerings,
            "firewall_count": self.firewalls,
            "device_count": self.devices,
            "missing_nsg": self.missing_nsg,
            "service_endpoints": self.service_endpoints,
            "risks_by_severity": dict(self.risks_by_severity),
            "risk_count": self.risk_count,
            "subnets": [s.to_dict() for s in self.subnets],
        }


@dataclass
class SubscriptionStats:
    name: str
    subscription_id: Optional[str] = None
    vnets: List[VNetStats] = field(default_factory=list)
    risks_by_severity: Dict[str, int] = field(default_factory=_empty_severities)

    @property
    def nsg_ids(self) -> Set[str]:
        ids: Set[str] = set()
        for vnet in self.vnets:
            ids |= vnet.nsg_ids
        return ids

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "subscription_id": self.subscription_id,
            "vnet_count": len(self.vnets),
            "subnet_count": sum(len(v.subnets) for v in self.vnets),
            "nsg_count": len(self.nsg_ids),
            "missing_nsg": sum(v.missing_nsg for v in self.vnets),
            "risks_by_severity": dict(self.risks_by_severity),
            "vnets": [v.to_dict() for v in self.vnets],
        }


@dataclass
class NetworkSummary:
    """Global aggregate record for the presentation layer."""

    total_vnets: int = 0
    total_subnets: int = 0
    total_nsgs: int = 0
    total_gateways: int = 0
    total_peerings: int = 0
    total_devices: int = 0
    total_risks: int = 0
    risks_by_severity: Dict[str, int] = field(default_factory=_empty_severities)
    s2s_connections: int = 0
    expressroute_connections: int = 0
    disconnected_connections: int = 0
    subnets_without_nsg: int = 0
    service_endpoints: int = 0
    total_hubs: int = 0
    total_firewalls: int = 0
    subscriptions: List[SubscriptionStats] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_vnets": self.total_vnets,
            "total_subnets": self.total_subnets,
            "total_nsgs": self.total_nsgs,
            "total_gateways": self.total_gateways,
            "total_peerings": self.total_peerings,
            "total_devices": self.total_devices,
            "total_risks": self.total_risks,
            "risks_by_severity": dict(self.risks_by_severity),
            "s2s_connections": self.s2s_connections,
            "expressroute_connections": self.expressroute_connections,
            "disconnected_connections": self.disconnected_connections,
            "subnets_without_nsg": self.subnets_without_nsg,
            "service_endpoints": self.service_endpoints,
            "total_hubs": self.total_hubs,
            "total_firewalls": self.total_firewalls,
            "subscriptions": [s.to_dict() for s in self.subscriptions],
        }


def subnet_stats(subnet: Subnet) -> SubnetStats:
    stats = SubnetStats(
        name=subnet.name,
        address_prefix=subnet.address_prefix,
        nsg_id=subnet.nsg_id,
        nsg_missing=is_nsg_missing(subnet),
        devices=len(subnet.connected_devices),
        service_endpoints=subnet.service_endpoint_count(),
    )
    for risk in subnet.nsg_risks:
        severity = canonical_severity(risk.severity)
        if severity is None:
            continue
        stats.risk_count += 1
        stats.risks_by_severity[severity] += 1
    return stats


def vnet_stats(vnet: VNet) -> VNetStats:
    stats = VNetStats(
        name=vnet.name,
        subscription_name=vnet.subscription_name or vnet.subscription_id or "",
        gateways=len(vnet.gateways),
        peerings=len(vnet.peerings),
        firewalls=len(vnet.firewalls),
    )
    for subnet in vnet.subnets:
        sub = subnet_stats(subnet)
        stats.subnets.append(sub)
        if subnet.nsg_id:
            stats.nsg_ids.add(subnet.nsg_id)
        _add_severities(stats.risks_by_severity, sub.risks_by_severity)
    for gateway in vnet.gateways:
        stats.connections.add(count_gateway_connections(gateway))
    return stats


def aggregate(
    vnets: Sequence[VNet],
    hubs: Sequence[VirtualWANHub] = (),
    firewalls: Sequence[AzureFirewall] = (),
    prefix: str = HUB_PROXY_PREFIX,
) -> NetworkSummary:
    """Compute the aggregate record without touching the input.

    Args:
        vnets: VNet records
        hubs: Virtual-WAN hub records
        firewalls: Standalone firewall records
        prefix: Hub proxy VNet name prefix

    Returns:
        NetworkSummary with global totals and per-subscription stats
    """
    index = TopologyIndex(vnets, hubs, prefix)
    summary = NetworkSummary()
    by_subscription: Dict[str, SubscriptionStats] = {}
    nsg_ids: Set[str] = set()
    firewall_ids: Set[str] = set()
    seen: Set[str] = set()
    connections = ConnectionCounts()

    for vnet in index.vnets:
        identity = vnet_identity(vnet)
        if identity in seen:
            logger.debug(f"Ignoring duplicate VNet record '{vnet.name}' in aggregates")
            continue
        seen.add(identity)
        for fw in vnet.firewalls:
            firewall_ids.add(fw.id.lower())
        if index.is_proxy(vnet):
            continue

        stats = vnet_stats(vnet)
        key = vnet.subscription_id or stats.subscription_name
        sub = by_subscription.get(key)
        if sub is None:
            sub = SubscriptionStats(name=stats.subscription_name, subscription_id=vnet.subscription_id)
            by_subscription[key] = sub
            summary.subscriptions.append(sub)
        sub.vnets.append(stats)
        _add_severities(sub.risks_by_severity, stats.risks_by_severity)

        summary.total_vnets += 1
        summary.total_subnets += len(stats.subnets)
        summary.total_gateways += stats.gateways
        summary.total_devices += stats.devices
        summary.total_risks += stats.risk_count
        summary.subnets_without_nsg += stats.missing_nsg
        summary.service_endpoints += stats.service_endpoints
        nsg_ids |= stats.nsg_ids
        connections.add(stats.connections)

    hub_names: Set[str] = set()
    for hub in index.hubs:
        if hub.name in hub_names:
            continue
        hub_names.add(hub.name)
        connections.add(count_hub_connections(hub))
        for fw in hub.firewalls:
            firewall_ids.add(fw.id.lower())
    for fw in firewalls:
        firewall_ids.add(fw.id.lower())

    for sub in summary.subscriptions:
        _add_severities(summary.risks_by_severity, sub.risks_by_severity)

    summary.total_nsgs = len(nsg_ids)
    summary.total_peerings = len(unique_peering_keys(vnets, hubs, prefix, index=index))
    summary.total_hubs = len(hub_names)
    summary.total_firewalls = len(firewall_ids)
    summary.s2s_connections = connections.s2s
    summary.expressroute_connections = connections.expressroute
    summary.disconnected_connections = connections.disconnected
    logger.info(
        f"Aggregated {summary.total_vnets} VNets across {len(summary.subscriptions)} subscriptions: "
        f"{summary.total_peerings} peerings, {summary.total_risks} risks"
    )
    return summary
