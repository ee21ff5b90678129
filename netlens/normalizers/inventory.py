"""Inventory ingestion.

Collectors hand over records in one of two shapes:

- ``native``: the report collector's flat PascalCase records
  (``{"Name": ..., "Subnets": [...], "Peerings": [...]}``), validated as-is
  through the record aliases;
- ``arm``: Azure Resource Manager REST resources (``{"id", "name",
  "properties": {...}}``) with child collections the collector attaches
  (``gateways``, ``firewalls``, ``expressRouteConnections``, ...).

The format is resolved here, once per record. Everything downstream sees
only the canonical records in ``netlens.core.records``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, TypeVar

from pydantic import BaseModel, ValidationError

from netlens.constants import FIREWALL_DEPLOYMENT_VNET, FIREWALL_DEPLOYMENT_VWAN
from netlens.core.records import AzureFirewall, VirtualWANHub, VNet
from netlens.errors import InventoryError
from netlens.identity import is_hub_proxy_name, last_segment

logger = logging.getLogger(__name__)

_SUBSCRIPTION_RE = re.compile(r"/subscriptions/(?P<sub>[^/]+)", re.IGNORECASE)
_SEGMENT_AFTER = "/{}/(?P<name>[^/]+)"

RecordT = TypeVar("RecordT", bound=BaseModel)


class InventoryFormat(str, Enum):
    NATIVE = "native"
    ARM = "arm"


def detect_format(record: Mapping[str, Any]) -> InventoryFormat:
    """ARM resources nest their attributes under a ``properties`` object."""
    if isinstance(record.get("properties"), Mapping):
        return InventoryFormat.ARM
    return InventoryFormat.NATIVE


@dataclass
class Inventory:
    """Canonical records for one snapshot."""

    vnets: List[VNet] = field(default_factory=list)
    hubs: List[VirtualWANHub] = field(default_factory=list)
    firewalls: List[AzureFirewall] = field(default_factory=list)
    skipped: int = 0


# ---------------------------------------------------------------------------
# ARM helpers
# ---------------------------------------------------------------------------

def _props(raw: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    if not raw:
        return {}
    return raw.get("properties") or {}


def _ref_id(value: Any) -> Optional[str]:
    if isinstance(value, Mapping):
        return value.get("id")
    return None


def _subscription_of(resource_id: Optional[str]) -> Optional[str]:
    if not resource_id:
        return None
    match = _SUBSCRIPTION_RE.search(resource_id)
    return match.group("sub") if match else None


def _segment_after(resource_id: Optional[str], collection: str) -> Optional[str]:
    """Name following ``/<collection>/`` in a resource id."""
    if not resource_id:
        return None
    match = re.search(_SEGMENT_AFTER.format(collection), resource_id, re.IGNORECASE)
    return match.group("name") if match else None


def _prefixes(value: Any) -> List[str]:
    if isinstance(value, Mapping):
        value = value.get("addressPrefixes")
    return [p for p in (value or []) if p]


def _service_name(entry: Any) -> Optional[str]:
    if isinstance(entry, str):
        return entry
    if isinstance(entry, Mapping):
        return entry.get("service")
    return None


def _arm_subnet(raw: Mapping[str, Any]) -> Dict[str, Any]:
    props = _props(raw)
    nsg_id = _ref_id(props.get("networkSecurityGroup"))
    route_table_id = _ref_id(props.get("routeTable"))
    prefix = props.get("addressPrefix") or next(iter(props.get("addressPrefixes") or []), None)
    endpoints = [_service_name(e) for e in props.get("serviceEndpoints") or [] if _service_name(e)]
    devices = [c.get("id") for c in props.get("ipConfigurations") or [] if c.get("id")]
    return {
        "name": raw.get("name"),
        "address_prefix": prefix,
        "nsg_id": nsg_id,
        "nsg_name": last_segment(nsg_id),
        "nsg_risks": raw.get("nsgRisks") or [],
        "connected_devices": devices,
        "route_table_name": last_segment(route_table_id),
        "service_endpoint_list": endpoints,
    }


def _arm_peering(raw: Mapping[str, Any]) -> Dict[str, Any]:
    props = _props(raw)
    remote_id = _ref_id(props.get("remoteVirtualNetwork"))
    remote_name = last_segment(remote_id) or ""
    hub_id = remote_id if _segment_after(remote_id, "virtualHubs") else None
    return {
        "name": raw.get("name"),
        "remote_vnet_name": remote_name,
        "remote_vnet_id": remote_id,
        "remote_hub_id": hub_id,
        "peering_state": props.get("peeringState"),
        "use_remote_gateways": props.get("useRemoteGateways"),
        "allow_gateway_transit": props.get("allowGatewayTransit"),
        "allow_forwarded_traffic": props.get("allowForwardedTraffic"),
        "is_virtual_wan_hub": hub_id is not None or is_hub_proxy_name(remote_name),
    }


def _arm_remote_network(props: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    local_gw = props.get("localNetworkGateway2")
    if local_gw:
        local_props = _props(local_gw)
        return {
            "kind": "OnPremises",
            "name": local_gw.get("name") or last_segment(local_gw.get("id")),
            "address_space": _prefixes(local_props.get("localNetworkAddressSpace")),
            "gateway_ip": local_props.get("gatewayIpAddress"),
        }
    vnet_gw = props.get("virtualNetworkGateway2")
    if vnet_gw:
        configs = _props(vnet_gw).get("ipConfigurations") or []
        subnet_id = _ref_id(_props(configs[0]).get("subnet")) if configs else None
        return {
            "kind": "VNet",
            "name": _segment_after(subnet_id, "virtualNetworks") or vnet_gw.get("name")
            or last_segment(vnet_gw.get("id")),
        }
    return None


def _arm_gateway_connection(raw: Mapping[str, Any]) -> Dict[str, Any]:
    props = _props(raw)
    peer_id = _ref_id(props.get("peer"))
    return {
        "name": raw.get("name") or "",
        "connection_type": props.get("connectionType"),
        "connection_status": props.get("connectionStatus"),
        "remote_network": _arm_remote_network(props),
        "circuit_id": peer_id,
        "circuit_name": _segment_after(peer_id, "expressRouteCircuits"),
    }


def _arm_gateway(raw: Mapping[str, Any]) -> Dict[str, Any]:
    props = _props(raw)
    return {
        "id": raw.get("id"),
        "name": raw.get("name"),
        "gateway_type": props.get("gatewayType"),
        "sku": (props.get("sku") or {}).get("name"),
        "vpn_type": props.get("vpnType"),
        "connections": [_arm_gateway_connection(c) for c in raw.get("connections") or []],
    }


def _arm_firewall(raw: Mapping[str, Any]) -> Dict[str, Any]:
    props = _props(raw)
    hub_id = _ref_id(props.get("virtualHub"))
    configs = props.get("ipConfigurations") or []
    first = _props(configs[0]) if configs else {}
    hub_ips = props.get("hubIPAddresses") or {}
    public_ips = [
        last_segment(_ref_id(_props(c).get("publicIPAddress")))
        for c in configs
        if _ref_id(_props(c).get("publicIPAddress"))
    ]
    public_ips += [a.get("address") for a in (hub_ips.get("publicIPs") or {}).get("addresses") or []]
    return {
        "id": raw.get("id"),
        "name": raw.get("name"),
        "subscription_id": _subscription_of(raw.get("id")),
        "subscription_name": raw.get("subscriptionName"),
        "sku_tier": (props.get("sku") or {}).get("tier"),
        "threat_intel_mode": props.get("threatIntelMode"),
        "private_ip": first.get("privateIPAddress") or hub_ips.get("privateIPAddress"),
        "public_ips": [ip for ip in public_ips if ip],
        "deployment_type": FIREWALL_DEPLOYMENT_VWAN if hub_id else FIREWALL_DEPLOYMENT_VNET,
        "vnet_name": _segment_after(_ref_id(first.get("subnet")), "virtualNetworks"),
        "hub_name": last_segment(hub_id),
    }


def _arm_vnet(raw: Mapping[str, Any]) -> Dict[str, Any]:
    props = _props(raw)
    return {
        "id": raw.get("id"),
        "name": raw.get("name"),
        "subscription_id": _subscription_of(raw.get("id")),
        "subscription_name": raw.get("subscriptionName"),
        "location": raw.get("location"),
        "address_space": _prefixes(props.get("addressSpace")),
        "subnets": [_arm_subnet(s) for s in props.get("subnets") or []],
        "peerings": [_arm_peering(p) for p in props.get("virtualNetworkPeerings") or []],
        "gateways": [_arm_gateway(g) for g in raw.get("gateways") or []],
        "firewalls": [_arm_firewall(f) for f in raw.get("firewalls") or []],
    }


def _arm_hub(raw: Mapping[str, Any]) -> Dict[str, Any]:
    props = _props(raw)
    peerings = []
    for conn in props.get("virtualNetworkConnections") or raw.get("virtualNetworkConnections") or []:
        conn_props = _props(conn)
        remote_id = _ref_id(conn_props.get("remoteVirtualNetwork"))
        peerings.append(
            {
                "name": conn.get("name"),
                "remote_vnet_name": last_segment(remote_id) or "",
                "remote_vnet_id": remote_id,
                "peering_state": conn_props.get("connectivityStatus") or conn_props.get("peeringState"),
                # recorded from the hub side: spokes using the hub gateway is transit
                "allow_gateway_transit": conn_props.get("allowRemoteVnetToUseHubVnetGateways"),
                "allow_forwarded_traffic": conn_props.get("allowHubToRemoteVnetTransit"),
            }
        )
    er_connections = []
    for conn in raw.get("expressRouteConnections") or []:
        conn_props = _props(conn)
        peering_id = _ref_id(conn_props.get("expressRouteCircuitPeering"))
        circuit_name = _segment_after(peering_id, "expressRouteCircuits")
        circuit_id = peering_id.split("/peerings/")[0] if peering_id else None
        er_connections.append(
            {
                "name": conn.get("name") or "",
                "connection_status": conn_props.get("connectionStatus"),
                "circuit_name": circuit_name,
                "circuit_id": circuit_id,
            }
        )
    vpn_connections = []
    for conn in raw.get("vpnConnections") or []:
        conn_props = _props(conn)
        site_id = _ref_id(conn_props.get("remoteVpnSite"))
        vpn_connections.append(
            {
                "name": conn.get("name") or "",
                "connection_status": conn_props.get("connectionStatus"),
                "remote_site": {"name": last_segment(site_id)} if site_id else None,
            }
        )
    return {
        "id": raw.get("id"),
        "name": raw.get("name"),
        "subscription_id": _subscription_of(raw.get("id")),
        "subscription_name": raw.get("subscriptionName"),
        "location": raw.get("location"),
        "address_prefix": props.get("addressPrefix"),
        "routing_preference": props.get("hubRoutingPreference"),
        "peerings": peerings,
        "express_route_connections": er_connections,
        "vpn_connections": vpn_connections,
        "firewalls": [_arm_firewall(f) for f in raw.get("firewalls") or []],
    }


# ---------------------------------------------------------------------------
# Loaders
# ---------------------------------------------------------------------------

_ARM_MAPPERS: Dict[type, Callable[[Mapping[str, Any]], Dict[str, Any]]] = {
    VNet: _arm_vnet,
    VirtualWANHub: _arm_hub,
    AzureFirewall: _arm_firewall,
}


def _load(model: type, raw: Mapping[str, Any]) -> Any:
    if isinstance(raw, model):
        return raw
    if not isinstance(raw, Mapping):
        raise TypeError(f"expected a mapping, got {type(raw).__name__}")
    if detect_format(raw) is InventoryFormat.ARM:
        raw = _ARM_MAPPERS[model](raw)
    return model.model_validate(raw)


def load_vnet(raw: Mapping[str, Any]) -> VNet:
    return _load(VNet, raw)


def load_hub(raw: Mapping[str, Any]) -> VirtualWANHub:
    return _load(VirtualWANHub, raw)


def load_firewall(raw: Mapping[str, Any]) -> AzureFirewall:
    return _load(AzureFirewall, raw)


def _load_all(
    kind: str,
    loader: Callable[[Mapping[str, Any]], RecordT],
    records: Iterable[Mapping[str, Any]],
    strict: bool,
    inventory: Inventory,
) -> List[RecordT]:
    loaded: List[RecordT] = []
    for i, raw in enumerate(records or []):
        try:
            loaded.append(loader(raw))
        except ValidationError as e:
            if strict:
                raise InventoryError(kind, i, str(e)) from e
            inventory.skipped += 1
            logger.warning(f"Skipping invalid {kind} record at index {i}: {e.error_count()} validation errors")
        except (TypeError, AttributeError) as e:
            if strict:
                raise InventoryError(kind, i, f"malformed record: {e}") from e
            inventory.skipped += 1
            logger.warning(f"Skipping malformed {kind} record at index {i}: {e}")
    return loaded


def _first(raw: Mapping[str, Any], *keys: str) -> Iterable[Mapping[str, Any]]:
    for key in keys:
        if raw.get(key) is not None:
            return raw[key]
    return []


def load_inventory(raw: Mapping[str, Any], strict: bool = False) -> Inventory:
    """Load a raw snapshot into canonical records.

    Args:
        raw: Mapping with VNet, hub and firewall record lists. Keys may be
            snake_case (``vnets``, ``hubs``, ``firewalls``) or the
            collector's PascalCase (``VNets``, ``VirtualWANHubs``,
            ``Firewalls``).
        strict: Raise InventoryError on the first invalid record instead
            of skipping it

    Returns:
        Inventory with records in input order
    """
    inventory = Inventory()
    inventory.vnets = _load_all(
        "VNet", load_vnet, _first(raw, "vnets", "VNets", "virtualNetworks"), strict, inventory
    )
    inventory.hubs = _load_all(
        "VirtualWANHub", load_hub, _first(raw, "hubs", "VirtualWANHubs", "virtualHubs"), strict, inventory
    )
    inventory.firewalls = _load_all(
        "AzureFirewall", load_firewall, _first(raw, "firewalls", "Firewalls", "azureFirewalls"), strict, inventory
    )
    logger.debug(
        f"Loaded inventory: {len(inventory.vnets)} VNets, {len(inventory.hubs)} hubs, "
        f"{len(inventory.firewalls)} firewalls, {inventory.skipped} skipped"
    )
    return inventory
