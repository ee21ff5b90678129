"""Identity normalization for partially observed network resources.

Virtual-WAN hubs show up twice in peering data: as the hub itself and as an
auto-generated proxy VNet named ``HV_<hub name>_<generated id>``. Circuit
names are sometimes missing. Peerings are reported once per side. This
module turns all of that into canonical names and dedup keys that the graph
builder and the aggregator share.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

from netlens.constants import (
    CIRCUIT_NAME_PLACEHOLDERS,
    HUB_PROXY_PREFIX,
    HUB_PROXY_SUFFIX_PATTERN,
    UNKNOWN_CIRCUIT,
)
from netlens.core.records import Peering, VirtualWANHub, VNet

logger = logging.getLogger(__name__)

_PROXY_SUFFIX = re.compile(HUB_PROXY_SUFFIX_PATTERN)


# ---------------------------------------------------------------------------
# Hub proxy names
# ---------------------------------------------------------------------------

def is_hub_proxy_name(name: Optional[str], prefix: str = HUB_PROXY_PREFIX) -> bool:
    """True when ``name`` follows the hub proxy VNet convention."""
    if not name or not prefix:
        return False
    return name.upper().startswith(prefix.upper()) and len(name) > len(prefix)


def strip_proxy_name(name: Optional[str], prefix: str = HUB_PROXY_PREFIX) -> str:
    """Remove the proxy prefix and the generated-id tail.

    'HV_contoso-hub-weu_9f1c2d3e-0000-4a4a' -> 'contoso-hub-weu'
    Names without the convention are returned unchanged apart from the tail.
    """
    if not name:
        return ""
    base = name
    if prefix and base.upper().startswith(prefix.upper()):
        base = base[len(prefix):]
    base = _PROXY_SUFFIX.sub("", base)
    return base.strip()


HubMatcher = Callable[[str, VirtualWANHub, str], bool]


def match_exact(name: str, hub: VirtualWANHub, prefix: str) -> bool:
    return name.lower() == hub.name.lower()


def match_stripped(name: str, hub: VirtualWANHub, prefix: str) -> bool:
    a = strip_proxy_name(name, prefix).lower()
    return bool(a) and a == strip_proxy_name(hub.name, prefix).lower()


def match_contained(name: str, hub: VirtualWANHub, prefix: str) -> bool:
    a = strip_proxy_name(name, prefix).lower()
    b = strip_proxy_name(hub.name, prefix).lower()
    return bool(a) and bool(b) and (a in b or b in a)


# Tried in order; the first matcher that accepts any hub wins.
HUB_MATCHERS: Sequence[HubMatcher] = (match_exact, match_stripped, match_contained)


def resolve_hub(
    name: Optional[str],
    hubs: Sequence[VirtualWANHub],
    prefix: str = HUB_PROXY_PREFIX,
    matchers: Sequence[HubMatcher] = HUB_MATCHERS,
) -> Optional[VirtualWANHub]:
    """Find the hub a (possibly proxy) name denotes.

    Each matcher is applied to every hub in input order before the next,
    weaker matcher is tried, so the result only depends on the input.
    """
    if not name:
        return None
    for matcher in matchers:
        for hub in hubs:
            if matcher(name, hub, prefix):
                logger.debug(f"Resolved '{name}' to hub '{hub.name}' via {matcher.__name__}")
                return hub
    return None


# ---------------------------------------------------------------------------
# Circuits
# ---------------------------------------------------------------------------

def _usable(value: Optional[str]) -> bool:
    return bool(value) and value.strip().lower() not in CIRCUIT_NAME_PLACEHOLDERS


def last_segment(resource_id: Optional[str]) -> Optional[str]:
    """Last path segment of an ARM resource id."""
    if not resource_id:
        return None
    segment = resource_id.rstrip("/").rsplit("/", 1)[-1].strip()
    return segment or None


def circuit_display_name(connection: Any) -> str:
    """Derive a display name for an ExpressRoute connection's circuit.

    Priority: attached circuit object name, explicit circuit name, last
    segment of the circuit id, then "Unknown Circuit".
    """
    circuit = getattr(connection, "circuit", None)
    if circuit is not None and _usable(getattr(circuit, "name", None)):
        return circuit.name
    explicit = getattr(connection, "circuit_name", None)
    if _usable(explicit):
        return explicit
    from_id = last_segment(getattr(connection, "circuit_id", None))
    if _usable(from_id):
        return from_id
    return UNKNOWN_CIRCUIT


# ---------------------------------------------------------------------------
# Peering keys
# ---------------------------------------------------------------------------

def peering_key(a: str, b: str) -> str:
    """Dedup key of a VNet-to-VNet peering: both names sorted and joined."""
    return "|".join(sorted((a, b)))


def hub_peering_key(vnet_name: str, hub_name: str) -> str:
    """Dedup key of a VNet-to-hub peering."""
    return f"hub:{vnet_name}|{hub_name}"


@dataclass(frozen=True)
class Endpoint:
    """One resolved end of a peering.

    ``vnet`` and ``hub`` are both None when the name is outside the visible
    inventory.
    """

    name: str
    is_hub: bool
    vnet: Optional[VNet] = None
    hub: Optional[VirtualWANHub] = None

    @property
    def resolved(self) -> bool:
        return self.vnet is not None or self.hub is not None


def endpoint_key(local: Endpoint, remote: Endpoint) -> Optional[str]:
    """Dedup key for a peering between two endpoints, None for self-peerings."""
    if local.name == remote.name and local.is_hub == remote.is_hub:
        return None
    if local.is_hub and remote.is_hub:
        return "hubs:" + peering_key(local.name, remote.name)
    if local.is_hub:
        return hub_peering_key(remote.name, local.name)
    if remote.is_hub:
        return hub_peering_key(local.name, remote.name)
    return peering_key(local.name, remote.name)


class TopologyIndex:
    """Name and id lookups over one inventory snapshot.

    Proxy VNets that resolve to a hub are kept out of the VNet index and
    answered as the hub instead.
    """

    def __init__(
        self,
        vnets: Iterable[VNet],
        hubs: Iterable[VirtualWANHub],
        prefix: str = HUB_PROXY_PREFIX,
    ):
        self.prefix = prefix
        self.hubs: List[VirtualWANHub] = list(hubs)
        self.vnets: List[VNet] = list(vnets)
        self._hub_by_id: Dict[str, VirtualWANHub] = {}
        self._hub_by_name: Dict[str, VirtualWANHub] = {}
        for hub in self.hubs:
            if hub.id:
                self._hub_by_id.setdefault(hub.id.lower(), hub)
            self._hub_by_name.setdefault(hub.name, hub)

        self.proxy_hubs: Dict[str, VirtualWANHub] = {}
        self._vnets_by_name: Dict[str, List[VNet]] = {}
        for vnet in self.vnets:
            if vnet.name in self.proxy_hubs:
                continue
            if is_hub_proxy_name(vnet.name, prefix):
                hub = resolve_hub(vnet.name, self.hubs, prefix)
                if hub is not None:
                    self.proxy_hubs[vnet.name] = hub
                    continue
            self._vnets_by_name.setdefault(vnet.name, []).append(vnet)

    def is_proxy(self, vnet: VNet) -> bool:
        return vnet.name in self.proxy_hubs

    def hub_by_id(self, hub_id: Optional[str]) -> Optional[VirtualWANHub]:
        if not hub_id:
            return None
        return self._hub_by_id.get(hub_id.lower())

    def vnet_by_name(self, name: str, subscription_id: Optional[str] = None) -> Optional[VNet]:
        """Visible VNet with this name, preferring the given subscription."""
        candidates = self._vnets_by_name.get(name)
        if not candidates:
            return None
        if subscription_id:
            for vnet in candidates:
                if vnet.subscription_id == subscription_id:
                    return vnet
        return candidates[0]

    def hub_for_name(self, name: str, hub_hint: bool = False) -> Optional[VirtualWANHub]:
        """Resolve a name to a hub.

        Plain names only match a hub exactly; proxy-shaped names, or names the
        caller flags as hubs, go through the full matcher chain.
        """
        if name in self.proxy_hubs:
            return self.proxy_hubs[name]
        if name in self._hub_by_name:
            return self._hub_by_name[name]
        if hub_hint or is_hub_proxy_name(name, self.prefix):
            return resolve_hub(name, self.hubs, self.prefix)
        return None

    def local_endpoint(self, vnet: VNet) -> Endpoint:
        hub = self.proxy_hubs.get(vnet.name)
        if hub is not None:
            return Endpoint(hub.name, True, hub=hub)
        return Endpoint(vnet.name, False, vnet=vnet)

    @staticmethod
    def hub_endpoint(hub: VirtualWANHub) -> Endpoint:
        return Endpoint(hub.name, True, hub=hub)

    def remote_endpoint(self, peering: Peering, subscription_id: Optional[str] = None) -> Optional[Endpoint]:
        """Resolve the remote side of a peering.

        Returns None when the peering names no remote at all.
        """
        hub = self.hub_by_id(peering.remote_hub_id)
        if hub is not None:
            return Endpoint(hub.name, True, hub=hub)

        name = (peering.remote_vnet_name or "").strip() or last_segment(peering.remote_vnet_id)
        if not name:
            return None

        if name not in self.proxy_hubs:
            vnet = self.vnet_by_name(name, subscription_id)
            if vnet is not None:
                return Endpoint(vnet.name, False, vnet=vnet)

        hub = self.hub_for_name(name, peering.is_virtual_wan_hub)
        if hub is not None:
            return Endpoint(hub.name, True, hub=hub)

        return Endpoint(name, peering.is_virtual_wan_hub)


def vnet_identity(vnet: VNet) -> str:
    """Key identifying one VNet record; duplicates share it."""
    if vnet.id:
        return f"vnet:{vnet.id.lower()}"
    return f"vnet:{vnet.subscription_id or ''}/{vnet.name}"
