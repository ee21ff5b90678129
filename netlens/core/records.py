"""Canonical inventory records consumed by the engine.

Records are immutable pydantic models. Field names are snake_case and
PascalCase aliases accept the report collector's native records as-is, so
``VNet.model_validate(raw)`` works on a collector dump and
``VNet(name="vnet-a", ...)`` works in code and tests.
"""

from __future__ import annotations

from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_pascal


class Record(BaseModel):
    """Base for all inventory records."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_pascal,
        extra="ignore",
    )


def _as_prefix_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [p.strip() for p in value.split(",") if p.strip()]
    return [str(p) for p in value if p]


class NsgRisk(Record):
    """A risky NSG rule reported by the external rule analyzer."""

    severity: str = ""
    rule_name: str = ""
    direction: str = ""
    port: Optional[str] = None
    port_name: Optional[str] = None
    source: Optional[str] = None
    destination: Optional[str] = None
    protocol: Optional[str] = None
    priority: Optional[Union[int, str]] = None
    description: str = ""
    nsg_name: Optional[str] = Field(default=None, alias="NSGName")

    @field_validator("port", mode="before")
    @classmethod
    def _port_as_text(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) else v


class Subnet(Record):
    name: str
    address_prefix: Optional[str] = None
    nsg_id: Optional[str] = Field(default=None, alias="NSGId")
    nsg_name: Optional[str] = Field(default=None, alias="NSGName")
    nsg_risks: List[NsgRisk] = Field(default_factory=list, alias="NSGRisks")
    connected_devices: List[Any] = Field(default_factory=list)
    route_table_name: Optional[str] = None
    service_endpoints: Optional[Union[str, List[str]]] = None
    service_endpoint_list: Optional[List[str]] = None

    @field_validator("nsg_risks", "connected_devices", mode="before")
    @classmethod
    def _none_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    def service_endpoint_count(self) -> int:
        """Count service endpoints, preferring the pre-parsed list."""
        if self.service_endpoint_list is not None:
            return len([s for s in self.service_endpoint_list if s and str(s).strip()])
        raw = self.service_endpoints
        if not raw:
            return 0
        if isinstance(raw, str):
            return len([s for s in raw.split(",") if s.strip()])
        return len([s for s in raw if s and str(s).strip()])


class Peering(Record):
    """One side of a peering, as recorded by its owner."""

    name: Optional[str] = None
    remote_vnet_name: str = Field(default="", alias="RemoteVNetName")
    remote_vnet_id: Optional[str] = Field(default=None, alias="RemoteVNetId")
    remote_hub_id: Optional[str] = None
    peering_state: Optional[str] = None
    use_remote_gateways: bool = False
    allow_gateway_transit: bool = False
    allow_forwarded_traffic: bool = False
    is_virtual_wan_hub: bool = Field(default=False, alias="IsVirtualWANHub")

    @field_validator("use_remote_gateways", "allow_gateway_transit",
                     "allow_forwarded_traffic", "is_virtual_wan_hub", mode="before")
    @classmethod
    def _none_as_false(cls, v: Any) -> Any:
        return False if v is None else v


class RemoteNetwork(Record):
    """Remote end of a gateway connection."""

    kind: str = Field(default="OnPremises", alias="Type")
    name: Optional[str] = None
    address_space: List[str] = Field(default_factory=list)
    gateway_ip: Optional[str] = Field(default=None, alias="GatewayIP")

    @field_validator("address_space", mode="before")
    @classmethod
    def _prefixes(cls, v: Any) -> List[str]:
        return _as_prefix_list(v)

    @property
    def is_vnet(self) -> bool:
        return (self.kind or "").lower() in ("vnet", "virtualnetwork")


class ExpressRouteCircuit(Record):
    name: Optional[str] = None
    service_provider: Optional[str] = None
    peering_location: Optional[str] = None
    bandwidth: Optional[Union[int, str]] = None
    sku: Optional[str] = None
    peer_asn: Optional[Union[int, str]] = Field(default=None, alias="PeerASN")


class GatewayConnection(Record):
    name: str = ""
    connection_type: Optional[str] = None
    connection_status: Optional[str] = None
    remote_network: Optional[RemoteNetwork] = None
    circuit_name: Optional[str] = None
    circuit_id: Optional[str] = None
    circuit: Optional[ExpressRouteCircuit] = None


class Gateway(Record):
    id: Optional[str] = None
    name: str
    gateway_type: Optional[str] = None
    sku: Optional[str] = None
    vpn_type: Optional[str] = None
    connections: List[GatewayConnection] = Field(default_factory=list)

    @field_validator("connections", mode="before")
    @classmethod
    def _none_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v


class ExpressRouteConnection(Record):
    name: str = ""
    connection_status: Optional[str] = None
    circuit_name: Optional[str] = None
    circuit_id: Optional[str] = None
    circuit: Optional[ExpressRouteCircuit] = None


class RemoteSite(Record):
    name: Optional[str] = None
    address_space: List[str] = Field(default_factory=list)

    @field_validator("address_space", mode="before")
    @classmethod
    def _prefixes(cls, v: Any) -> List[str]:
        return _as_prefix_list(v)


class VpnConnection(Record):
    name: str = ""
    connection_status: Optional[str] = None
    remote_site: Optional[RemoteSite] = None


class AzureFirewall(Record):
    id: str
    name: str
    subscription_id: Optional[str] = None
    subscription_name: Optional[str] = None
    sku_tier: Optional[str] = None
    threat_intel_mode: Optional[str] = None
    private_ip: Optional[str] = Field(default=None, alias="PrivateIP")
    public_ips: List[str] = Field(default_factory=list, alias="PublicIPs")
    deployment_type: Optional[str] = None
    vnet_name: Optional[str] = Field(default=None, alias="VNetName")
    hub_name: Optional[str] = None

    @field_validator("public_ips", mode="before")
    @classmethod
    def _ips(cls, v: Any) -> List[str]:
        return _as_prefix_list(v)


class VNet(Record):
    id: Optional[str] = None
    name: str
    subscription_id: Optional[str] = None
    subscription_name: Optional[str] = None
    location: Optional[str] = None
    address_space: List[str] = Field(default_factory=list)
    subnets: List[Subnet] = Field(default_factory=list)
    gateways: List[Gateway] = Field(default_factory=list)
    peerings: List[Peering] = Field(default_factory=list)
    firewalls: List[AzureFirewall] = Field(default_factory=list)

    @field_validator("address_space", mode="before")
    @classmethod
    def _prefixes(cls, v: Any) -> List[str]:
        return _as_prefix_list(v)

    @field_validator("subnets", "gateways", "peerings", "firewalls", mode="before")
    @classmethod
    def _none_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v


class VirtualWANHub(Record):
    id: Optional[str] = None
    name: str
    subscription_id: Optional[str] = None
    subscription_name: Optional[str] = None
    location: Optional[str] = None
    address_prefix: Optional[str] = None
    routing_preference: Optional[str] = None
    express_route_connections: List[ExpressRouteConnection] = Field(default_factory=list)
    vpn_connections: List[VpnConnection] = Field(default_factory=list)
    peerings: List[Peering] = Field(default_factory=list)
    firewalls: List[AzureFirewall] = Field(default_factory=list)

    @field_validator("express_route_connections", "vpn_connections",
                     "peerings", "firewalls", mode="before")
    @classmethod
    def _none_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v
