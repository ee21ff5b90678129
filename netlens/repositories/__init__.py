"""Persistence layer for built topology graphs."""

from netlens.repositories.base import SAVE_MODES, TopologyRepository
from netlens.repositories.neo4j_repository import Neo4jTopologyRepository

__all__ = [
    "SAVE_MODES",
    "TopologyRepository",
    "Neo4jTopologyRepository",
]
