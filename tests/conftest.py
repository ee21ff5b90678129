"""Pytest configuration and shared fixtures for NetLens tests.

This module provides common fixtures used across multiple test modules,
including mock Neo4j drivers and shared inventory data in both the native
collector shape and the ARM REST shape.
"""

from __future__ import annotations

import os
import pytest
from typing import Any, Dict, List
from unittest.mock import MagicMock

from netlens.config import get_settings
from netlens.core.records import Peering, Subnet, VirtualWANHub, VNet


# ============================================================================
# Custom Pytest Markers
# ============================================================================

def pytest_configure(config):
    """Register custom markers for test categorization."""
    config.addinivalue_line(
        "markers", "integration: marks tests requiring external services (Neo4j)"
    )


# ============================================================================
# Neo4j Mock Fixtures
# ============================================================================

@pytest.fixture
def mock_neo4j_driver() -> MagicMock:
    """Create a mock Neo4j driver with session context manager.

    Returns:
        Mock driver with properly configured session().run() chain
    """
    driver = MagicMock()
    session = MagicMock()

    # Configure context manager for 'with driver.session() as session:'
    driver.session.return_value.__enter__ = MagicMock(return_value=session)
    driver.session.return_value.__exit__ = MagicMock(return_value=None)

    return driver


@pytest.fixture
def mock_neo4j_session(mock_neo4j_driver: MagicMock) -> MagicMock:
    """Get the mock session from a mock driver."""
    return mock_neo4j_driver.session.return_value.__enter__.return_value


# ============================================================================
# Inventory Fixtures
# ============================================================================

@pytest.fixture
def scenario_vnets() -> List[VNet]:
    """Two peered VNets in separate subscriptions.

    vnet-a uses the remote gateway; vnet-b allows gateway transit on its own
    side of the peering. vnet-a has one subnet without an NSG.
    """
    vnet_a = VNet(
        id="/subscriptions/sub-1/resourceGroups/rg/providers/Microsoft.Network/virtualNetworks/vnet-a",
        name="vnet-a",
        subscription_id="sub-1",
        subscription_name="S1",
        address_space=["10.0.0.0/16"],
        subnets=[Subnet(name="web", address_prefix="10.0.1.0/24")],
        peerings=[
            Peering(
                name="a-to-b",
                remote_vnet_name="vnet-b",
                peering_state="Connected",
                use_remote_gateways=True,
            )
        ],
    )
    vnet_b = VNet(
        id="/subscriptions/sub-2/resourceGroups/rg/providers/Microsoft.Network/virtualNetworks/vnet-b",
        name="vnet-b",
        subscription_id="sub-2",
        subscription_name="S2",
        address_space=["10.1.0.0/16"],
        peerings=[
            Peering(
                name="b-to-a",
                remote_vnet_name="vnet-a",
                peering_state="Connected",
                allow_gateway_transit=True,
            )
        ],
    )
    return [vnet_a, vnet_b]


@pytest.fixture
def sample_hub() -> VirtualWANHub:
    """A Virtual-WAN hub with one ExpressRoute and one VPN connection."""
    return VirtualWANHub.model_validate(
        {
            "Id": "/subscriptions/sub-1/resourceGroups/rg/providers/Microsoft.Network/virtualHubs/hub1",
            "Name": "hub1",
            "SubscriptionId": "sub-1",
            "SubscriptionName": "S1",
            "AddressPrefix": "10.100.0.0/23",
            "ExpressRouteConnections": [
                {"Name": "er-conn", "ConnectionStatus": "Connected", "CircuitName": "circuit-ams"}
            ],
            "VpnConnections": [
                {"Name": "vpn-conn", "ConnectionStatus": "NotConnected", "RemoteSite": {"Name": "branch-1"}}
            ],
        }
    )


@pytest.fixture
def native_vnet_record() -> Dict[str, Any]:
    """A VNet as dumped by the report collector (PascalCase keys)."""
    return {
        "Id": "/subscriptions/sub-2/resourceGroups/rg/providers/Microsoft.Network/virtualNetworks/spoke-1",
        "Name": "spoke-1",
        "SubscriptionId": "sub-2",
        "SubscriptionName": "Prod",
        "Location": "westeurope",
        "AddressSpace": "10.2.0.0/16, 10.3.0.0/16",
        "Subnets": [
            {
                "Name": "web",
                "AddressPrefix": "10.2.1.0/24",
                "NSGId": "/subscriptions/sub-2/.../networkSecurityGroups/nsg-web",
                "NSGName": "nsg-web",
                "ConnectedDevices": ["nic-1", "nic-2"],
                "ServiceEndpoints": "Microsoft.Storage, Microsoft.Sql",
                "NSGRisks": [
                    {
                        "Severity": "High",
                        "RuleName": "allow-rdp",
                        "Direction": "Inbound",
                        "Port": 3389,
                        "Source": "*",
                        "Priority": 100,
                    }
                ],
            },
            {"Name": "GatewaySubnet", "AddressPrefix": "10.2.255.0/27"},
        ],
        "Gateways": [
            {
                "Id": "/subscriptions/sub-2/.../virtualNetworkGateways/gw-1",
                "Name": "gw-1",
                "GatewayType": "Vpn",
                "Connections": [
                    {
                        "Name": "to-dc",
                        "ConnectionType": "IPsec",
                        "ConnectionStatus": "Connected",
                        "RemoteNetwork": {"Type": "OnPremises", "Name": "dc-amsterdam", "GatewayIP": "203.0.113.10"},
                    }
                ],
            }
        ],
        "Peerings": [
            {"Name": "to-hub", "RemoteVNetName": "HV_hub1_6a7b8c9d", "PeeringState": "Connected", "IsVirtualWANHub": True}
        ],
    }


@pytest.fixture
def arm_vnet_resource() -> Dict[str, Any]:
    """A VNet in the ARM REST shape with attached gateway and firewall."""
    sub = "/subscriptions/sub-3/resourceGroups/rg-net/providers/Microsoft.Network"
    return {
        "id": f"{sub}/virtualNetworks/core-vnet",
        "name": "core-vnet",
        "location": "northeurope",
        "subscriptionName": "Core",
        "properties": {
            "addressSpace": {"addressPrefixes": ["10.10.0.0/16"]},
            "subnets": [
                {
                    "name": "apps",
                    "properties": {
                        "addressPrefix": "10.10.1.0/24",
                        "networkSecurityGroup": {"id": f"{sub}/networkSecurityGroups/nsg-apps"},
                        "routeTable": {"id": f"{sub}/routeTables/rt-apps"},
                        "serviceEndpoints": [{"service": "Microsoft.KeyVault"}],
                        "ipConfigurations": [{"id": f"{sub}/networkInterfaces/nic-1/ipConfigurations/ipconfig1"}],
                    },
                },
                {"name": "AzureFirewallSubnet", "properties": {"addressPrefix": "10.10.254.0/26"}},
            ],
            "virtualNetworkPeerings": [
                {
                    "name": "core-to-edge",
                    "properties": {
                        "remoteVirtualNetwork": {"id": "/subscriptions/sub-9/resourceGroups/x/providers/Microsoft.Network/virtualNetworks/edge-vnet"},
                        "peeringState": "Connected",
                        "allowGatewayTransit": True,
                        "useRemoteGateways": False,
                    },
                }
            ],
        },
        "gateways": [
            {
                "id": f"{sub}/virtualNetworkGateways/er-gw",
                "name": "er-gw",
                "properties": {"gatewayType": "ExpressRoute", "sku": {"name": "ErGw1AZ"}},
                "connections": [
                    {
                        "name": "er-conn-1",
                        "properties": {
                            "connectionType": "ExpressRoute",
                            "connectionStatus": "Connected",
                            "peer": {"id": f"{sub}/expressRouteCircuits/circuit-fra"},
                        },
                    }
                ],
            }
        ],
        "firewalls": [
            {
                "id": f"{sub}/azureFirewalls/fw-core",
                "name": "fw-core",
                "properties": {
                    "sku": {"tier": "Premium"},
                    "threatIntelMode": "Deny",
                    "ipConfigurations": [
                        {
                            "properties": {
                                "privateIPAddress": "10.10.254.4",
                                "subnet": {"id": f"{sub}/virtualNetworks/core-vnet/subnets/AzureFirewallSubnet"},
                                "publicIPAddress": {"id": f"{sub}/publicIPAddresses/pip-fw"},
                            }
                        }
                    ],
                },
            }
        ],
    }


@pytest.fixture
def arm_hub_resource() -> Dict[str, Any]:
    """A Virtual-WAN hub in the ARM REST shape."""
    sub = "/subscriptions/sub-3/resourceGroups/rg-wan/providers/Microsoft.Network"
    return {
        "id": f"{sub}/virtualHubs/hub-weu",
        "name": "hub-weu",
        "location": "westeurope",
        "properties": {
            "addressPrefix": "10.200.0.0/23",
            "hubRoutingPreference": "ExpressRoute",
            "virtualNetworkConnections": [
                {
                    "name": "conn-core",
                    "properties": {
                        "remoteVirtualNetwork": {"id": f"{sub}/virtualNetworks/core-vnet"},
                        "allowHubToRemoteVnetTransit": True,
                        "allowRemoteVnetToUseHubVnetGateways": True,
                    },
                }
            ],
        },
        "expressRouteConnections": [
            {
                "name": "er-hub",
                "properties": {
                    "expressRouteCircuitPeering": {
                        "id": f"{sub}/expressRouteCircuits/circuit-ams/peerings/AzurePrivatePeering"
                    }
                },
            }
        ],
        "vpnConnections": [
            {
                "name": "vpn-branch",
                "properties": {
                    "connectionStatus": "Connected",
                    "remoteVpnSite": {"id": f"{sub}/vpnSites/branch-oslo"},
                },
            }
        ],
    }


# ============================================================================
# Environment Fixtures
# ============================================================================

@pytest.fixture
def clean_environment():
    """Fixture that cleans NetLens environment variables.

    Removes NETLENS_* env vars before test and restores after.
    """
    saved = {k: v for k, v in os.environ.items() if k.startswith("NETLENS_")}
    for key in saved:
        del os.environ[key]
    get_settings.cache_clear()

    yield

    for key in [k for k in os.environ if k.startswith("NETLENS_")]:
        del os.environ[key]
    os.environ.update(saved)
    get_settings.cache_clear()
