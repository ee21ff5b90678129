"""NetLens constants and configuration values.

This module centralizes the naming conventions, placeholder values and
presentation defaults shared by the identity, topology and aggregation
layers.
"""

# Virtual-WAN hub proxy VNets: HV_<hub name>_<generated id>
HUB_PROXY_PREFIX = "HV_"
HUB_PROXY_SUFFIX_PATTERN = r"_[0-9a-fA-F-]{6,}$"

# Placeholders
UNKNOWN_CIRCUIT = "Unknown Circuit"
UNKNOWN_GROUP = "unknown"
NOT_AVAILABLE = "N/A"
CIRCUIT_NAME_PLACEHOLDERS = frozenset({"", "n/a", "unknown", "none", "null"})

# Connection status
CONNECTED = "Connected"

# Subnets not counted as missing an NSG. Application Gateway subnets are
# counted.
NSG_EXEMPT_SUBNETS = frozenset({"GatewaySubnet", "AzureBastionSubnet", "AzureFirewallSubnet"})

# Severity ranking (lower is worse)
SEVERITY_RANKS = {
    "Critical": 0,
    "High": 1,
    "Medium": 2,
}
UNRANKED_SEVERITY = len(SEVERITY_RANKS)

# Gateway types
GATEWAY_TYPE_EXPRESSROUTE = "ExpressRoute"

# Firewall deployment types
FIREWALL_DEPLOYMENT_VNET = "VNet"
FIREWALL_DEPLOYMENT_VWAN = "VirtualWAN"

# Edge colors
COLOR_CONNECTED = "#2e7d32"
COLOR_DISCONNECTED = "#c62828"
COLOR_PEERING = "#1565c0"
COLOR_GATEWAY_TRANSIT = "#6a1b9a"
COLOR_ATTACHMENT = "#757575"
COLOR_FIREWALL = "#ef6c00"
COLOR_UNKNOWN = "#9e9e9e"

# Subscription group colors, assigned in order of first appearance
SUBSCRIPTION_PALETTE = (
    "#4e79a7",
    "#f28e2b",
    "#59a14f",
    "#e15759",
    "#76b7b2",
    "#edc948",
    "#b07aa1",
    "#ff9da7",
    "#9c755f",
    "#bab0ac",
)

# Neo4j persistence
DEFAULT_BATCH_SIZE = 1000
