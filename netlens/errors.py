"""Exceptions raised by NetLens.

Graph construction, aggregation and risk ordering never raise: missing or
inconsistent data degrades to placeholders. Only ingestion of raw records
and repository writes surface errors.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class NetLensError(Exception):
    """Base exception for NetLens errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class InventoryError(NetLensError):
    """Raised when a raw inventory record cannot be validated."""

    def __init__(self, kind: str, index: int, reason: str):
        super().__init__(
            f"Invalid {kind} record at index {index}: {reason}",
            details={"kind": kind, "index": index},
        )
        self.kind = kind
        self.index = index
