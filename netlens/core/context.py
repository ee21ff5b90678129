"""Mutable state accumulated while building one topology graph.

A fresh ``BuildContext`` is created per build, so ``build_graph`` stays a
pure function of its input.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Optional, Set, Tuple

from netlens.constants import (
    HUB_PROXY_PREFIX,
    SUBSCRIPTION_PALETTE,
    UNKNOWN_GROUP,
)

if TYPE_CHECKING:
    from netlens.config import Settings

_ID_UNSAFE = re.compile(r"[^A-Za-z0-9_.:-]+")


def slug(value: str) -> str:
    """Reduce a resource name to a node-id friendly token."""
    cleaned = _ID_UNSAFE.sub("-", (value or "").strip()).strip("-")
    return cleaned.lower() or "unnamed"


@dataclass
class BuildContext:
    """Color, id and dedup bookkeeping for a single graph build.

    Attributes:
        hub_proxy_prefix: Name prefix of hub proxy VNets
        unknown_group: Group tag for placeholder nodes
        colors: Subscription name -> assigned color
        node_ids: Logical resource key -> node id; never reassigned
        hub_aliases: Proxy VNet name -> hub node id
        peering_keys: Dedup keys of peerings already drawn
        attachment_keys: (host node id, firewall id) pairs already drawn
        connection_keys: Dedup keys of gateway/hub connections already drawn
        unknown_names: Unresolved remote names already synthesized
    """

    hub_proxy_prefix: str = HUB_PROXY_PREFIX
    unknown_group: str = UNKNOWN_GROUP
    colors: Dict[str, str] = field(default_factory=dict)
    node_ids: Dict[str, str] = field(default_factory=dict)
    hub_aliases: Dict[str, str] = field(default_factory=dict)
    peering_keys: Dict[str, int] = field(default_factory=dict)
    attachment_keys: Set[Tuple[str, str]] = field(default_factory=set)
    connection_keys: Set[Tuple[str, ...]] = field(default_factory=set)
    unknown_names: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: "Settings") -> "BuildContext":
        return cls(
            hub_proxy_prefix=settings.hub_proxy_prefix,
            unknown_group=settings.unknown_group,
        )

    def color_for(self, group: Optional[str]) -> str:
        """Assign palette colors to subscriptions in order of first use."""
        key = group or self.unknown_group
        if key not in self.colors:
            self.colors[key] = SUBSCRIPTION_PALETTE[len(self.colors) % len(SUBSCRIPTION_PALETTE)]
        return self.colors[key]

    def assign(self, key: str, node_id: str) -> Tuple[str, bool]:
        """Bind a logical resource key to a node id.

        Returns:
            (node id, created) where the id is the previously bound one if the
            key was already assigned
        """
        existing = self.node_ids.get(key)
        if existing is not None:
            return existing, False
        self.node_ids[key] = node_id
        return node_id, True

    def lookup(self, key: str) -> Optional[str]:
        return self.node_ids.get(key)
