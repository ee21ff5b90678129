"""Inventory normalizers: raw collector output to canonical records."""

from netlens.normalizers.inventory import (
    Inventory,
    InventoryFormat,
    detect_format,
    load_firewall,
    load_hub,
    load_inventory,
    load_vnet,
)

__all__ = [
    "Inventory",
    "InventoryFormat",
    "detect_format",
    "load_firewall",
    "load_hub",
    "load_inventory",
    "load_vnet",
]
