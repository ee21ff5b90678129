"""Topology graph builder.

Turns VNet, Virtual-WAN hub and firewall records into a deduplicated
node/edge graph. Every cross-reference (peering targets, gateway
counterparts, firewall hosts) is resolved through ``TopologyIndex``;
anything that cannot be resolved becomes a placeholder node or a coverage
gap in ``GraphData.meta`` instead of an error.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence, Set, Tuple

from netlens.constants import (
    COLOR_ATTACHMENT,
    COLOR_CONNECTED,
    COLOR_DISCONNECTED,
    COLOR_FIREWALL,
    COLOR_GATEWAY_TRANSIT,
    COLOR_PEERING,
    COLOR_UNKNOWN,
    CONNECTED,
    GATEWAY_TYPE_EXPRESSROUTE,
    NOT_AVAILABLE,
    UNKNOWN_CIRCUIT,
)
from netlens.core.context import BuildContext, slug
from netlens.core.graph import Edge, EdgeKind, GraphData, Node, NodeKind
from netlens.core.records import (
    AzureFirewall,
    ExpressRouteCircuit,
    Gateway,
    GatewayConnection,
    Peering,
    RemoteNetwork,
    VirtualWANHub,
    VNet,
)
from netlens.identity import (
    Endpoint,
    TopologyIndex,
    circuit_display_name,
    endpoint_key,
    vnet_identity,
)

logger = logging.getLogger(__name__)

_INVERSE_DIRECTION = {"to": "from", "from": "to", "both": "both", None: None}


def gateway_direction(peering: Peering) -> Optional[str]:
    """Direction hint for a peering, relative to the side that recorded it.

    "to": this side uses the remote gateway. "from": the remote side uses this
    side's gateway. "both": both flags set. None: no gateway transit.
    """
    if peering.use_remote_gateways and peering.allow_gateway_transit:
        return "both"
    if peering.use_remote_gateways:
        return "to"
    if peering.allow_gateway_transit:
        return "from"
    return None


def _text(value: object) -> str:
    if value is None or value == "" or value == []:
        return NOT_AVAILABLE
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return str(value)


def _tooltip(title: str, *rows: Tuple[str, object]) -> str:
    lines = [title]
    lines.extend(f"{label}: {_text(value)}" for label, value in rows)
    return "\n".join(lines)


def _status_style(status: Optional[str]) -> Tuple[str, bool]:
    if not status:
        return COLOR_UNKNOWN, False
    if status == CONNECTED:
        return COLOR_CONNECTED, False
    return COLOR_DISCONNECTED, True


class TopologyBuilder:
    """Builds one ``GraphData`` from an inventory snapshot.

    Usage:
        builder = TopologyBuilder(vnets, hubs, firewalls)
        graph = builder.build()
    """

    def __init__(
        self,
        vnets: Iterable[VNet],
        hubs: Iterable[VirtualWANHub],
        firewalls: Iterable[AzureFirewall] = (),
        context: Optional[BuildContext] = None,
    ):
        self.ctx = context or BuildContext()
        self.vnets: List[VNet] = list(vnets)
        self.hubs: List[VirtualWANHub] = list(hubs)
        self.firewalls: List[AzureFirewall] = list(firewalls)
        self.index = TopologyIndex(self.vnets, self.hubs, self.ctx.hub_proxy_prefix)
        self.graph = GraphData()
        self._used_ids: Set[str] = set()
        self._attached_firewalls: Set[str] = set()
        self._modeled_vnets: List[Tuple[VNet, str]] = []
        self._modeled_hubs: List[Tuple[VirtualWANHub, str]] = []

    # -- public -----------------------------------------------------------

    def build(self) -> GraphData:
        for hub in self.hubs:
            self._add_hub(hub)
        for vnet in self.vnets:
            self._add_vnet(vnet)

        for vnet, node_id in self._modeled_vnets:
            local = self.index.local_endpoint(vnet)
            for peering in vnet.peerings:
                self._add_peering(local, node_id, peering, vnet.subscription_id)
        for hub, hub_id in self._modeled_hubs:
            local = self.index.hub_endpoint(hub)
            for peering in hub.peerings:
                self._add_peering(local, hub_id, peering, hub.subscription_id)

        for vnet, _ in self._modeled_vnets:
            for gateway in vnet.gateways:
                gw_id = self.ctx.lookup(self._gateway_key(vnet, gateway))
                if gw_id is None:
                    continue
                for conn in gateway.connections:
                    self._add_gateway_connection(vnet, gateway, gw_id, conn)
        for hub, hub_id in self._modeled_hubs:
            self._add_hub_connections(hub, hub_id)

        for firewall in self.firewalls:
            self._add_standalone_firewall(firewall)

        self._finish_meta()
        logger.info(
            f"Built topology graph: {len(self.graph.nodes)} nodes, {len(self.graph.edges)} edges, "
            f"{len(self.ctx.unknown_names)} unresolved endpoints"
        )
        return self.graph

    # -- node helpers -----------------------------------------------------

    def _unique_id(self, candidate: str) -> str:
        node_id = candidate
        n = 2
        while node_id in self._used_ids:
            node_id = f"{candidate}-{n}"
            n += 1
        return node_id

    def _node(
        self,
        key: str,
        candidate_id: str,
        label: str,
        kind: NodeKind,
        group: Optional[str],
        tooltip: str,
        **properties: object,
    ) -> Tuple[str, bool]:
        """Create a node for ``key`` unless one is already assigned."""
        existing = self.ctx.lookup(key)
        if existing is not None:
            return existing, False
        node_id, _ = self.ctx.assign(key, self._unique_id(candidate_id))
        self._used_ids.add(node_id)
        group = group or self.ctx.unknown_group
        if kind in (NodeKind.UNKNOWN_VNET, NodeKind.UNKNOWN_HUB):
            color = COLOR_UNKNOWN
        else:
            color = self.ctx.color_for(group)
        self.graph.add_node(
            Node(
                id=node_id,
                label=label,
                kind=kind,
                group=group,
                tooltip=tooltip,
                color=color,
                properties={k: v for k, v in properties.items() if v is not None},
            )
        )
        return node_id, True

    @staticmethod
    def _group(subscription_name: Optional[str], subscription_id: Optional[str]) -> Optional[str]:
        return subscription_name or subscription_id

    @staticmethod
    def _hub_key(hub: VirtualWANHub) -> str:
        return f"hub:{hub.name}"

    @staticmethod
    def _vnet_key(vnet: VNet) -> str:
        return vnet_identity(vnet)

    @staticmethod
    def _gateway_key(vnet: VNet, gateway: Gateway) -> str:
        if gateway.id:
            return f"gw:{gateway.id.lower()}"
        return f"gw:{vnet.name}/{gateway.name}"

    # -- hubs, vnets, gateways --------------------------------------------

    def _add_hub(self, hub: VirtualWANHub) -> None:
        key = self._hub_key(hub)
        if self.ctx.lookup(key) is not None:
            logger.warning(f"Skipping duplicate Virtual-WAN hub '{hub.name}'")
            return
        group = self._group(hub.subscription_name, hub.subscription_id)
        hub_id, _ = self._node(
            key,
            f"hub:{slug(hub.name)}",
            hub.name,
            NodeKind.HUB,
            group,
            _tooltip(
                f"Virtual WAN Hub: {hub.name}",
                ("Subscription", group),
                ("Location", hub.location),
                ("Address prefix", hub.address_prefix),
                ("Routing preference", hub.routing_preference),
                ("ExpressRoute connections", len(hub.express_route_connections)),
                ("VPN connections", len(hub.vpn_connections)),
            ),
            resource_id=hub.id,
            location=hub.location,
            address_prefix=hub.address_prefix,
        )
        self._modeled_hubs.append((hub, hub_id))
        for firewall in hub.firewalls:
            self._attach_firewall(firewall, hub_id, group)

    def _add_vnet(self, vnet: VNet) -> None:
        if self.index.is_proxy(vnet):
            hub = self.index.proxy_hubs[vnet.name]
            hub_id = self.ctx.lookup(self._hub_key(hub))
            if hub_id is not None:
                self.ctx.hub_aliases[vnet.name] = hub_id
                self._modeled_vnets.append((vnet, hub_id))
                logger.debug(f"Proxy VNet '{vnet.name}' aliased to hub '{hub.name}'")
            return

        key = self._vnet_key(vnet)
        if self.ctx.lookup(key) is not None:
            logger.warning(f"Skipping duplicate VNet record '{vnet.name}' ({vnet.id or 'no id'})")
            return
        group = self._group(vnet.subscription_name, vnet.subscription_id)
        nsg_count = len({s.nsg_id for s in vnet.subnets if s.nsg_id})
        vnet_id, _ = self._node(
            key,
            f"vnet:{slug(vnet.name)}",
            vnet.name,
            NodeKind.VNET,
            group,
            _tooltip(
                f"VNet: {vnet.name}",
                ("Subscription", group),
                ("Location", vnet.location),
                ("Address space", vnet.address_space),
                ("Subnets", len(vnet.subnets)),
                ("NSGs", nsg_count),
                ("Peerings", len(vnet.peerings)),
            ),
            resource_id=vnet.id,
            subscription_id=vnet.subscription_id,
            location=vnet.location,
            address_space=list(vnet.address_space),
        )
        self._modeled_vnets.append((vnet, vnet_id))

        for gateway in vnet.gateways:
            self._add_gateway(vnet, gateway, vnet_id, group)
        for firewall in vnet.firewalls:
            self._attach_firewall(firewall, vnet_id, group)

    def _add_gateway(self, vnet: VNet, gateway: Gateway, vnet_id: str, group: Optional[str]) -> None:
        gw_id, created = self._node(
            self._gateway_key(vnet, gateway),
            f"gw:{slug(vnet.name)}:{slug(gateway.name)}",
            gateway.name,
            NodeKind.GATEWAY,
            group,
            _tooltip(
                f"Gateway: {gateway.name}",
                ("Type", gateway.gateway_type),
                ("SKU", gateway.sku),
                ("VPN type", gateway.vpn_type),
                ("Connections", len(gateway.connections)),
            ),
            gateway_type=gateway.gateway_type,
            sku=gateway.sku,
        )
        if not created:
            return
        self.graph.add_edge(
            Edge(
                src=vnet_id,
                dst=gw_id,
                kind=EdgeKind.GATEWAY_ATTACHMENT,
                color=COLOR_ATTACHMENT,
            )
        )

    # -- firewalls --------------------------------------------------------

    def _firewall_node(self, firewall: AzureFirewall, group: Optional[str]) -> str:
        group = self._group(firewall.subscription_name, firewall.subscription_id) or group
        fw_id, created = self._node(
            f"fw:{firewall.id.lower()}",
            f"fw:{slug(firewall.name)}",
            firewall.name,
            NodeKind.FIREWALL,
            group,
            _tooltip(
                f"Azure Firewall: {firewall.name}",
                ("SKU tier", firewall.sku_tier),
                ("Threat intel", firewall.threat_intel_mode),
                ("Private IP", firewall.private_ip),
                ("Public IPs", firewall.public_ips),
                ("Deployment", firewall.deployment_type),
            ),
            resource_id=firewall.id,
            sku_tier=firewall.sku_tier,
        )
        if not created:
            logger.warning(f"Duplicate firewall id '{firewall.id}' ('{firewall.name}'); reusing node {fw_id}")
        return fw_id

    def _attach_firewall(self, firewall: AzureFirewall, host_id: str, group: Optional[str]) -> None:
        fw_id = self._firewall_node(firewall, group)
        key = (host_id, fw_id)
        if key in self.ctx.attachment_keys:
            return
        self.ctx.attachment_keys.add(key)
        self._attached_firewalls.add(fw_id)
        self.graph.add_edge(
            Edge(
                src=host_id,
                dst=fw_id,
                kind=EdgeKind.FIREWALL_ATTACHMENT,
                color=COLOR_FIREWALL,
            )
        )

    def _add_standalone_firewall(self, firewall: AzureFirewall) -> None:
        fw_id = self._firewall_node(firewall, None)
        if fw_id in self._attached_firewalls:
            return

        host_id = None
        if firewall.vnet_name:
            if firewall.vnet_name in self.ctx.hub_aliases:
                host_id = self.ctx.hub_aliases[firewall.vnet_name]
            else:
                vnet = self.index.vnet_by_name(firewall.vnet_name, firewall.subscription_id)
                if vnet is not None:
                    host_id = self.ctx.lookup(self._vnet_key(vnet))
        if host_id is None and firewall.hub_name:
            hub = self.index.hub_for_name(firewall.hub_name, hub_hint=True)
            if hub is not None:
                host_id = self.ctx.lookup(self._hub_key(hub))

        if host_id is None:
            logger.debug(f"Firewall '{firewall.name}' has no resolvable host; left unattached")
            self.graph.meta.setdefault("unattached_firewalls", []).append(firewall.name)
            return
        self._attach_firewall(firewall, host_id, None)

    # -- peerings ---------------------------------------------------------

    def _unknown_node(self, name: str, is_hub: bool) -> str:
        existing = self.ctx.unknown_names.get(name)
        if existing is not None:
            return existing
        kind = NodeKind.UNKNOWN_HUB if is_hub else NodeKind.UNKNOWN_VNET
        prefix = "unknown-hub" if is_hub else "unknown-vnet"
        node_id, _ = self._node(
            f"unknown:{name}",
            f"{prefix}:{slug(name)}",
            name,
            kind,
            self.ctx.unknown_group,
            _tooltip(
                f"{'Hub' if is_hub else 'VNet'}: {name}",
                ("Visibility", "Outside the visible subscriptions; details unavailable"),
            ),
            unresolved=True,
        )
        self.ctx.unknown_names[name] = node_id
        return node_id

    def _endpoint_node(self, endpoint: Endpoint) -> Optional[str]:
        if endpoint.hub is not None:
            return self.ctx.lookup(self._hub_key(endpoint.hub))
        if endpoint.vnet is not None:
            return self.ctx.lookup(self._vnet_key(endpoint.vnet))
        return self._unknown_node(endpoint.name, endpoint.is_hub)

    @staticmethod
    def _merge_counterpart(edge: Edge, local_id: str, peering: Peering, direction: Optional[str]) -> None:
        """Fold the second side's gateway flags into an existing peering edge.

        A flag-less edge takes the counterpart's direction, mirrored. An edge
        that already carries a direction becomes "both" when the counterpart
        adds a flag the edge lacks or points the other way.
        """
        if direction is None:
            return
        props = edge.properties
        adds_flag = (peering.use_remote_gateways and not props.get("use_remote_gateways")) or (
            peering.allow_gateway_transit and not props.get("allow_gateway_transit")
        )
        mirrored = direction if edge.src == local_id else _INVERSE_DIRECTION[direction]
        if edge.direction is None:
            edge.direction = mirrored
        elif adds_flag or edge.direction != mirrored:
            edge.direction = "both"
        props["use_remote_gateways"] = bool(props.get("use_remote_gateways") or peering.use_remote_gateways)
        props["allow_gateway_transit"] = bool(props.get("allow_gateway_transit") or peering.allow_gateway_transit)
        if edge.color != COLOR_DISCONNECTED:
            edge.color = COLOR_GATEWAY_TRANSIT
        edge.label = "gateway transit"

    def _add_peering(
        self,
        local: Endpoint,
        local_id: str,
        peering: Peering,
        subscription_id: Optional[str],
    ) -> None:
        remote = self.index.remote_endpoint(peering, subscription_id)
        if remote is None:
            logger.warning(f"Peering '{peering.name or '?'}' on '{local.name}' names no remote network; skipped")
            return
        key = endpoint_key(local, remote)
        if key is None:
            logger.warning(f"Skipping self-referential peering on '{local.name}'")
            return

        direction = gateway_direction(peering)
        existing = self.ctx.peering_keys.get(key)
        if existing is not None:
            self._merge_counterpart(self.graph.edges[existing], local_id, peering, direction)
            return

        remote_id = self._endpoint_node(remote)
        if remote_id is None or remote_id == local_id:
            logger.warning(f"Skipping self-referential peering on '{local.name}'")
            return

        connected = (peering.peering_state or CONNECTED) == CONNECTED
        if not connected:
            color = COLOR_DISCONNECTED
        elif direction is not None:
            color = COLOR_GATEWAY_TRANSIT
        else:
            color = COLOR_PEERING
        self.ctx.peering_keys[key] = len(self.graph.edges)
        self.graph.add_edge(
            Edge(
                src=local_id,
                dst=remote_id,
                kind=EdgeKind.PEERING,
                color=color,
                dashes=not connected or not remote.resolved,
                direction=direction,
                label="gateway transit" if direction else "",
                properties={
                    "key": key,
                    "peering_state": peering.peering_state,
                    "use_remote_gateways": peering.use_remote_gateways,
                    "allow_gateway_transit": peering.allow_gateway_transit,
                    "allow_forwarded_traffic": peering.allow_forwarded_traffic,
                    "recorded_by": local.name,
                },
            )
        )

    # -- connections ------------------------------------------------------

    def _on_premises_node(self, name: str, remote: Optional[RemoteNetwork]) -> str:
        node_id, _ = self._node(
            f"onprem:{name}",
            f"onprem:{slug(name)}",
            name,
            NodeKind.ON_PREMISES,
            self.ctx.unknown_group,
            _tooltip(
                f"On-premises: {name}",
                ("Address space", remote.address_space if remote else None),
                ("Gateway IP", remote.gateway_ip if remote else None),
            ),
        )
        return node_id

    def _circuit_node(self, owner: str, connection: object) -> str:
        name = circuit_display_name(connection)
        circuit: Optional[ExpressRouteCircuit] = getattr(connection, "circuit", None)
        key = f"circuit:{name}"
        if name == UNKNOWN_CIRCUIT:
            key = f"circuit:{owner}/{getattr(connection, 'name', '')}"
        node_id, _ = self._node(
            key,
            f"circuit:{slug(name)}",
            name,
            NodeKind.CIRCUIT,
            self.ctx.unknown_group,
            _tooltip(
                f"ExpressRoute circuit: {name}",
                ("Provider", circuit.service_provider if circuit else None),
                ("Peering location", circuit.peering_location if circuit else None),
                ("Bandwidth", circuit.bandwidth if circuit else None),
                ("SKU", circuit.sku if circuit else None),
                ("Peer ASN", circuit.peer_asn if circuit else None),
            ),
        )
        return node_id

    def _vnet_gateway_node(self, name: Optional[str], subscription_id: Optional[str]) -> str:
        """Counterpart gateway of a VNet-to-VNet connection."""
        if not name:
            return self._unknown_node(NOT_AVAILABLE, False)
        if name in self.ctx.hub_aliases:
            return self.ctx.hub_aliases[name]
        vnet = self.index.vnet_by_name(name, subscription_id)
        if vnet is None:
            return self._unknown_node(name, False)
        for gateway in vnet.gateways:
            gw_id = self.ctx.lookup(self._gateway_key(vnet, gateway))
            if gw_id is not None:
                return gw_id
        return self.ctx.lookup(self._vnet_key(vnet)) or self._unknown_node(name, False)

    def _connection_edge(
        self,
        src: str,
        dst: str,
        kind: EdgeKind,
        name: str,
        status: Optional[str],
        key: Tuple[str, ...],
    ) -> None:
        if src == dst:
            logger.warning(f"Skipping self-referential connection '{name}'")
            return
        if key in self.ctx.connection_keys:
            return
        self.ctx.connection_keys.add(key)
        color, dashes = _status_style(status)
        self.graph.add_edge(
            Edge(
                src=src,
                dst=dst,
                kind=kind,
                color=color,
                dashes=dashes,
                label=name,
                properties={
                    "status": status or "Unknown",
                    "connected": status == CONNECTED,
                },
            )
        )

    def _add_gateway_connection(
        self,
        vnet: VNet,
        gateway: Gateway,
        gw_id: str,
        conn: GatewayConnection,
    ) -> None:
        conn_type = (conn.connection_type or gateway.gateway_type or "").lower()
        is_er = conn_type == GATEWAY_TYPE_EXPRESSROUTE.lower()
        kind = EdgeKind.EXPRESSROUTE if is_er else EdgeKind.S2S
        remote = conn.remote_network

        if remote is not None and remote.is_vnet:
            target = self._vnet_gateway_node(remote.name, vnet.subscription_id)
            key = (kind.value,) + tuple(sorted((gw_id, target)))
        elif is_er and (remote is None or not remote.name):
            target = self._circuit_node(gw_id, conn)
            key = (kind.value, gw_id, target, conn.name)
        else:
            name = (remote.name if remote else None) or conn.name or NOT_AVAILABLE
            target = self._on_premises_node(name, remote)
            key = (kind.value, gw_id, target, conn.name)
        self._connection_edge(gw_id, target, kind, conn.name, conn.connection_status, key)

    def _add_hub_connections(self, hub: VirtualWANHub, hub_id: str) -> None:
        for conn in hub.express_route_connections:
            target = self._circuit_node(hub_id, conn)
            self._connection_edge(
                hub_id, target, EdgeKind.EXPRESSROUTE, conn.name, conn.connection_status,
                (EdgeKind.EXPRESSROUTE.value, hub_id, target, conn.name),
            )
        for conn in hub.vpn_connections:
            site = conn.remote_site
            name = (site.name if site else None) or conn.name or NOT_AVAILABLE
            remote = RemoteNetwork(name=name, address_space=site.address_space) if site else None
            target = self._on_premises_node(name, remote)
            self._connection_edge(
                hub_id, target, EdgeKind.S2S, conn.name, conn.connection_status,
                (EdgeKind.S2S.value, hub_id, target, conn.name),
            )

    # -- meta -------------------------------------------------------------

    def _finish_meta(self) -> None:
        by_kind = {}
        for node in self.graph.nodes:
            by_kind[node.kind.value] = by_kind.get(node.kind.value, 0) + 1
        self.graph.meta.setdefault("unattached_firewalls", [])
        self.graph.meta.update(
            {
                "node_count": len(self.graph.nodes),
                "edge_count": len(self.graph.edges),
                "nodes_by_kind": by_kind,
                "unresolved_endpoints": list(self.ctx.unknown_names),
                "hub_aliases": dict(self.ctx.hub_aliases),
                "subscription_colors": dict(self.ctx.colors),
            }
        )


def build_graph(
    vnets: Sequence[VNet],
    hubs: Sequence[VirtualWANHub] = (),
    firewalls: Sequence[AzureFirewall] = (),
    context: Optional[BuildContext] = None,
) -> GraphData:
    """Build the topology graph for one inventory snapshot.

    Args:
        vnets: VNet records, in collection order
        hubs: Virtual-WAN hub records
        firewalls: Firewall records not necessarily nested under a VNet/hub
        context: Optional fresh build context; one is created if omitted

    Returns:
        GraphData with nodes and edges in deterministic insertion order
    """
    return TopologyBuilder(vnets, hubs, firewalls, context).build()
