"""NSG risk ordering and severity roll-ups.

Risks are produced by an external NSG rule analyzer and attached to
subnets. This module flattens them into rows carrying their subscription,
VNet and subnet context, sorts them for presentation and computes the worst
severity per VNet and per subscription for summary badges.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from netlens.constants import HUB_PROXY_PREFIX, SEVERITY_RANKS, UNRANKED_SEVERITY
from netlens.core.graph import Severity
from netlens.core.records import NsgRisk, VirtualWANHub, VNet
from netlens.identity import TopologyIndex, vnet_identity


def canonical_severity(value: Optional[str]) -> Optional[str]:
    """Map a severity string onto Critical/High/Medium, or None."""
    if not value:
        return None
    lowered = value.strip().lower()
    for severity in Severity:
        if severity.value.lower() == lowered:
            return severity.value
    return None


def severity_rank(value: Optional[str]) -> int:
    """Critical=0, High=1, Medium=2; anything else sorts last."""
    canonical = canonical_severity(value)
    if canonical is None:
        return UNRANKED_SEVERITY
    return SEVERITY_RANKS[canonical]


def _priority_key(priority: Any) -> Tuple[int, int]:
    if isinstance(priority, bool):
        return (1, 0)
    if isinstance(priority, int):
        return (0, priority)
    try:
        return (0, int(str(priority).strip()))
    except (TypeError, ValueError):
        return (1, 0)


@dataclass(frozen=True)
class RiskRow:
    """One NSG risk with the context it was found in."""

    risk: NsgRisk
    subscription_name: str = ""
    subscription_id: Optional[str] = None
    vnet_name: str = ""
    subnet_name: str = ""

    @property
    def severity(self) -> str:
        return self.risk.severity

    @property
    def priority(self) -> Any:
        return self.risk.priority

    def sort_key(self) -> Tuple[Any, ...]:
        return (
            severity_rank(self.severity),
            self.subscription_name,
            self.vnet_name,
            self.subnet_name,
            _priority_key(self.priority),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = self.risk.model_dump()
        data.update(
            {
                "subscription_name": self.subscription_name,
                "subscription_id": self.subscription_id,
                "vnet_name": self.vnet_name,
                "subnet_name": self.subnet_name,
            }
        )
        return data


def collect_risks(
    vnets: Iterable[VNet],
    hubs: Iterable[VirtualWANHub] = (),
    prefix: str = HUB_PROXY_PREFIX,
) -> List[RiskRow]:
    """Flatten subnet risks into rows, in input order.

    Duplicate VNet records contribute once and hub proxy VNets not at all,
    matching the aggregate. Risks with severities outside the ranked set are
    kept.
    """
    index = TopologyIndex(vnets, hubs, prefix)
    rows: List[RiskRow] = []
    seen: Set[str] = set()
    for vnet in index.vnets:
        identity = vnet_identity(vnet)
        if identity in seen or index.is_proxy(vnet):
            continue
        seen.add(identity)
        subscription = vnet.subscription_name or vnet.subscription_id or ""
        for subnet in vnet.subnets:
            for risk in subnet.nsg_risks:
                rows.append(
                    RiskRow(
                        risk=risk,
                        subscription_name=subscription,
                        subscription_id=vnet.subscription_id,
                        vnet_name=vnet.name,
                        subnet_name=subnet.name,
                    )
                )
    return rows


def sort_risks(rows: Iterable[RiskRow]) -> List[RiskRow]:
    """Order risks by severity, subscription, VNet, subnet, then rule priority.

    ``sorted`` is stable, so rows tied on every key keep their input order.
    """
    return sorted(rows, key=RiskRow.sort_key)


def highest_severity(rows: Iterable[RiskRow]) -> Optional[str]:
    """Worst ranked severity among ``rows``, or None if none is ranked."""
    best = UNRANKED_SEVERITY
    for row in rows:
        best = min(best, severity_rank(row.severity))
    if best == UNRANKED_SEVERITY:
        return None
    return Severity.values()[best]


def highest_severity_by_vnet(rows: Iterable[RiskRow]) -> Dict[Tuple[str, str], str]:
    """Worst severity per (subscription, VNet)."""
    grouped: Dict[Tuple[str, str], List[RiskRow]] = {}
    for row in rows:
        grouped.setdefault((row.subscription_name, row.vnet_name), []).append(row)
    result: Dict[Tuple[str, str], str] = {}
    for key, group in grouped.items():
        worst = highest_severity(group)
        if worst is not None:
            result[key] = worst
    return result


def highest_severity_by_subscription(rows: Iterable[RiskRow]) -> Dict[str, str]:
    """Worst severity per subscription."""
    grouped: Dict[str, List[RiskRow]] = {}
    for row in rows:
        grouped.setdefault(row.subscription_name, []).append(row)
    result: Dict[str, str] = {}
    for key, group in grouped.items():
        worst = highest_severity(group)
        if worst is not None:
            result[key] = worst
    return result
