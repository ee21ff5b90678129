"""Abstract base class for topology persistence.

Graphs are stored as named snapshots so several inventory runs can live
side by side in the same database.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from netlens.core.graph import GraphData

SAVE_MODES = ("create", "overwrite", "merge")


class TopologyRepository(ABC):
    """Storage interface for built topology graphs.

    Example:
        >>> repo = Neo4jTopologyRepository(driver)
        >>> repo.save_topology("2024-06-01", report.graph)
        >>> graph = repo.get_topology("2024-06-01")
    """

    @abstractmethod
    def save_topology(self, name: str, graph: GraphData, mode: str = "create") -> Dict[str, Any]:
        """Persist a graph under a snapshot name.

        Args:
            name: Snapshot name
            graph: Graph to store
            mode: Save mode ('create', 'overwrite', 'merge')

        Returns:
            Dictionary with success status and counts

        Raises:
            ValueError: If the snapshot exists and mode is 'create', or the
                mode is unknown
        """
        pass

    @abstractmethod
    def get_topology(self, name: str) -> Optional[GraphData]:
        """Read a snapshot back.

        Returns:
            GraphData if found, None otherwise
        """
        pass

    @abstractmethod
    def delete_topology(self, name: str) -> bool:
        """Delete a snapshot.

        Returns:
            True if deleted, False if not found
        """
        pass

    @abstractmethod
    def list_topologies(self) -> List[Dict[str, Any]]:
        """List stored snapshots with node counts."""
        pass

    @abstractmethod
    def health_check(self) -> bool:
        """Check database connectivity."""
        pass
