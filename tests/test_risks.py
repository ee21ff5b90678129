"""Tests for netlens.risks module."""

from __future__ import annotations

import pytest

from netlens.core.records import NsgRisk, Peering, Subnet, VirtualWANHub, VNet
from netlens.risks import (
    RiskRow,
    canonical_severity,
    collect_risks,
    highest_severity,
    highest_severity_by_subscription,
    highest_severity_by_vnet,
    severity_rank,
    sort_risks,
)


def _row(severity, sub="S1", vnet="v", subnet="s", priority=None, rule="r") -> RiskRow:
    return RiskRow(
        risk=NsgRisk(severity=severity, priority=priority, rule_name=rule),
        subscription_name=sub,
        vnet_name=vnet,
        subnet_name=subnet,
    )


class TestSeverityRank:
    """Tests for severity normalization and ranking."""

    def test_ranks(self):
        assert severity_rank("Critical") == 0
        assert severity_rank("High") == 1
        assert severity_rank("Medium") == 2
        assert severity_rank("Low") == 3
        assert severity_rank(None) == 3

    def test_case_insensitive(self):
        assert canonical_severity(" high ") == "High"
        assert canonical_severity("bogus") is None


class TestSortRisks:
    """Tests for presentation ordering."""

    def test_severity_order(self):
        rows = [_row("Medium"), _row("Critical"), _row("High"), _row("Critical")]
        assert [r.severity for r in sort_risks(rows)] == ["Critical", "Critical", "High", "Medium"]

    def test_stable_for_ties(self):
        rows = [_row("High", rule="first"), _row("High", rule="second")]
        assert [r.risk.rule_name for r in sort_risks(rows)] == ["first", "second"]

    def test_context_then_priority(self):
        rows = [
            _row("High", sub="S2"),
            _row("High", vnet="b", priority=200),
            _row("High", vnet="b", priority=100),
            _row("High", vnet="a"),
        ]
        ordered = sort_risks(rows)

        assert [(r.subscription_name, r.vnet_name, r.priority) for r in ordered] == [
            ("S1", "a", None),
            ("S1", "b", 100),
            ("S1", "b", 200),
            ("S2", "v", None),
        ]

    def test_numeric_priority_before_text(self):
        rows = [_row("High", priority="default"), _row("High", priority="4096"), _row("High", priority=300)]
        assert [r.priority for r in sort_risks(rows)] == [300, "4096", "default"]

    def test_unranked_last(self):
        rows = [_row("Low"), _row("Medium")]
        assert [r.severity for r in sort_risks(rows)] == ["Medium", "Low"]


class TestHighestSeverity:
    """Tests for worst-severity roll-ups."""

    def test_highest(self):
        assert highest_severity([_row("Medium"), _row("High")]) == "High"

    def test_none_when_empty_or_unranked(self):
        assert highest_severity([]) is None
        assert highest_severity([_row("Low")]) is None

    def test_by_vnet(self):
        rows = [_row("Medium", vnet="a"), _row("Critical", vnet="a"), _row("High", vnet="b")]
        assert highest_severity_by_vnet(rows) == {("S1", "a"): "Critical", ("S1", "b"): "High"}

    def test_by_subscription_skips_unranked(self):
        rows = [_row("High", sub="S1"), _row("Low", sub="S2")]
        assert highest_severity_by_subscription(rows) == {"S1": "High"}


class TestCollectRisks:
    """Tests for flattening subnet risks."""

    def test_rows_carry_context(self, native_vnet_record):
        rows = collect_risks([VNet.model_validate(native_vnet_record)])

        assert len(rows) == 1
        row = rows[0]
        assert (row.subscription_name, row.vnet_name, row.subnet_name) == ("Prod", "spoke-1", "web")
        assert row.to_dict()["rule_name"] == "allow-rdp"
        assert row.to_dict()["subscription_id"] == "sub-2"

    def test_duplicate_vnet_contributes_once(self):
        vnet = VNet(id="v1", name="v", subnets=[Subnet(name="s", nsg_risks=[NsgRisk(severity="High")])])
        assert len(collect_risks([vnet, vnet])) == 1

    def test_subscription_falls_back_to_id(self):
        vnet = VNet(name="v", subscription_id="sub-x",
                    subnets=[Subnet(name="s", nsg_risks=[NsgRisk(severity="High")])])
        assert collect_risks([vnet])[0].subscription_name == "sub-x"

    def test_hub_proxy_vnet_skipped(self):
        proxy = VNet(name="HV_hub1_6a7b8c9d", subnets=[Subnet(name="x", nsg_risks=[NsgRisk(severity="High")])])
        spoke = VNet(name="spoke", subnets=[Subnet(name="s", nsg_risks=[NsgRisk(severity="Medium")])],
                     peerings=[Peering(remote_vnet_name="HV_hub1_6a7b8c9d")])

        rows = collect_risks([proxy, spoke], [VirtualWANHub(name="hub1")])

        assert [r.vnet_name for r in rows] == ["spoke"]

    def test_unmatched_proxy_name_kept(self):
        vnet = VNet(name="HV_other_6a7b8c9d", subnets=[Subnet(name="x", nsg_risks=[NsgRisk(severity="High")])])
        assert len(collect_risks([vnet], [VirtualWANHub(name="hub1")])) == 1


class TestDeterminism:
    """Identical input yields an identical sorted risk list."""

    def test_repeated_runs_identical(self, native_vnet_record, scenario_vnets):
        vnets = [VNet.model_validate(native_vnet_record)] + scenario_vnets
        vnets.append(
            VNet(
                name="extra",
                subscription_name="Prod",
                subnets=[
                    Subnet(
                        name="db",
                        nsg_risks=[
                            NsgRisk(severity="Critical", priority="200", rule_name="a"),
                            NsgRisk(severity="Critical", priority="200", rule_name="b"),
                            NsgRisk(severity="Medium", priority="n/a", rule_name="c"),
                        ],
                    )
                ],
            )
        )

        first = sort_risks(collect_risks(vnets))
        second = sort_risks(collect_risks(vnets))

        assert [r.to_dict() for r in first] == [r.to_dict() for r in second]
        assert [r.risk.rule_name for r in first] == ["a", "b", "allow-rdp", "c"]
