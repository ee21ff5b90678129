"""Neo4j implementation of the TopologyRepository interface.

Each snapshot is a ``:Snapshot {name}`` node plus ``:NetworkNode`` nodes and
``:CONNECTS`` relationships tagged with the snapshot name. Writes are batched
``UNWIND ... MERGE`` statements run inside write transactions.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence

from neo4j import Driver

from netlens.config import get_settings
from netlens.core.graph import Edge, GraphData, Node
from netlens.repositories.base import SAVE_MODES, TopologyRepository

logger = logging.getLogger(__name__)


def _chunk(items: Sequence[Any], size: int) -> Iterator[Sequence[Any]]:
    for i in range(0, len(items), size):
        yield items[i : i + size]


def _node_row(node: Node, seq: int) -> Dict[str, Any]:
    return {
        "id": node.id,
        "seq": seq,
        "label": node.label,
        "kind": node.kind.value,
        "group": node.group,
        "tooltip": node.tooltip,
        "color": node.color,
        "properties_json": json.dumps(node.properties, sort_keys=True, default=str),
    }


def _edge_row(edge: Edge, seq: int) -> Dict[str, Any]:
    return {
        "src": edge.src,
        "dst": edge.dst,
        "seq": seq,
        "kind": edge.kind.value,
        "color": edge.color,
        "dashes": edge.dashes,
        "direction": edge.direction,
        "label": edge.label,
        "properties_json": json.dumps(edge.properties, sort_keys=True, default=str),
    }


def _decode(record: Dict[str, Any]) -> Dict[str, Any]:
    data = dict(record)
    data["properties"] = json.loads(data.pop("properties_json", None) or "{}")
    return data


class Neo4jTopologyRepository(TopologyRepository):
    """Neo4j implementation of TopologyRepository.

    Attributes:
        driver: Neo4j driver instance
        batch_size: Rows per UNWIND statement
    """

    def __init__(self, driver: Driver, batch_size: Optional[int] = None):
        """Initialize the repository with a Neo4j driver.

        Args:
            driver: Configured Neo4j driver instance
            batch_size: Rows per write batch; defaults to NETLENS_NEO4J_BATCH_SIZE
        """
        self.driver = driver
        self.batch_size = batch_size or get_settings().neo4j_batch_size

    # -- write ------------------------------------------------------------

    def _exists(self, session, name: str) -> bool:
        result = session.run(
            "MATCH (s:Snapshot {name: $name}) RETURN count(s) AS count",
            {"name": name},
        )
        record = result.single()
        return bool(record and record["count"] > 0)

    @staticmethod
    def _delete(tx, name: str) -> None:
        tx.run(
            """
            MATCH (n:NetworkNode {snapshot: $name})
            DETACH DELETE n
            """,
            name=name,
        )
        tx.run("MATCH (s:Snapshot {name: $name}) DETACH DELETE s", name=name)

    @staticmethod
    def _merge_nodes(tx, name: str, rows: Iterable[Dict[str, Any]]) -> None:
        tx.run(
            """
            UNWIND $nodes AS n
            MERGE (node:NetworkNode {snapshot: $name, id: n.id})
            SET node += n
            """,
            nodes=list(rows),
            name=name,
        )

    @staticmethod
    def _merge_edges(tx, name: str, rows: Iterable[Dict[str, Any]]) -> None:
        tx.run(
            """
            UNWIND $edges AS e
            MATCH (src:NetworkNode {snapshot: $name, id: e.src})
            MATCH (dst:NetworkNode {snapshot: $name, id: e.dst})
            MERGE (src)-[rel:CONNECTS {snapshot: $name, kind: e.kind}]->(dst)
            SET rel += e
            """,
            edges=list(rows),
            name=name,
        )

    @staticmethod
    def _merge_snapshot(tx, name: str, meta_json: str, node_count: int, edge_count: int, now: str) -> None:
        tx.run(
            """
            MERGE (s:Snapshot {name: $name})
            SET s.meta_json = $meta_json,
                s.node_count = $node_count,
                s.edge_count = $edge_count,
                s.created_at = COALESCE(s.created_at, $now),
                s.updated_at = $now
            """,
            name=name,
            meta_json=meta_json,
            node_count=node_count,
            edge_count=edge_count,
            now=now,
        )

    def save_topology(self, name: str, graph: GraphData, mode: str = "create") -> Dict[str, Any]:
        """Save a graph snapshot to the database."""
        if mode not in SAVE_MODES:
            raise ValueError(f"Unknown save mode '{mode}'")
        now = datetime.now(timezone.utc).isoformat()
        node_rows = [_node_row(n, i) for i, n in enumerate(graph.nodes)]
        edge_rows = [_edge_row(e, i) for i, e in enumerate(graph.edges)]

        with self.driver.session() as session:
            exists = self._exists(session, name)
            if mode == "create" and exists:
                raise ValueError(f"Topology '{name}' already exists")
            if mode == "overwrite" and exists:
                session.execute_write(self._delete, name)

            for batch in _chunk(node_rows, self.batch_size):
                session.execute_write(self._merge_nodes, name, batch)
            for batch in _chunk(edge_rows, self.batch_size):
                session.execute_write(self._merge_edges, name, batch)
            session.execute_write(
                self._merge_snapshot,
                name,
                json.dumps(graph.meta, sort_keys=True, default=str),
                len(node_rows),
                len(edge_rows),
                now,
            )

        logger.info(f"Saved topology '{name}' ({mode}): {len(node_rows)} nodes, {len(edge_rows)} edges")
        return {
            "success": True,
            "name": name,
            "node_count": len(node_rows),
            "edge_count": len(edge_rows),
            "mode": mode,
        }

    # -- read -------------------------------------------------------------

    def get_topology(self, name: str) -> Optional[GraphData]:
        """Get a snapshot by name."""
        with self.driver.session() as session:
            snapshot = session.run(
                "MATCH (s:Snapshot {name: $name}) RETURN s.meta_json AS meta_json",
                {"name": name},
            ).single()
            if not snapshot:
                return None

            nodes_result = session.run(
                """
                MATCH (n:NetworkNode {snapshot: $name})
                RETURN n.id AS id, n.label AS label, n.kind AS kind, n.group AS group,
                       n.tooltip AS tooltip, n.color AS color, n.properties_json AS properties_json
                ORDER BY n.seq
                """,
                {"name": name},
            )
            nodes = [Node.from_dict(_decode(record.data())) for record in nodes_result]

            edges_result = session.run(
                """
                MATCH (a:NetworkNode {snapshot: $name})-[r:CONNECTS {snapshot: $name}]->(b)
                RETURN a.id AS src, b.id AS dst, r.kind AS kind, r.color AS color,
                       r.dashes AS dashes, r.direction AS direction, r.label AS label,
                       r.properties_json AS properties_json
                ORDER BY r.seq
                """,
                {"name": name},
            )
            edges = [Edge.from_dict(_decode(record.data())) for record in edges_result]

        meta = json.loads(snapshot["meta_json"] or "{}")
        return GraphData(nodes=nodes, edges=edges, meta=meta)

    def delete_topology(self, name: str) -> bool:
        """Delete a snapshot by name."""
        with self.driver.session() as session:
            if not self._exists(session, name):
                return False
            session.execute_write(self._delete, name)
        logger.info(f"Deleted topology '{name}'")
        return True

    def list_topologies(self) -> List[Dict[str, Any]]:
        """List all snapshots with metadata."""
        query = """
        MATCH (s:Snapshot)
        RETURN s.name AS name, s.node_count AS node_count, s.edge_count AS edge_count,
               s.created_at AS created_at, s.updated_at AS updated_at
        ORDER BY name
        """
        with self.driver.session() as session:
            result = session.run(query)
            return [
                {
                    "name": record["name"],
                    "node_count": record["node_count"],
                    "edge_count": record["edge_count"],
                    "created_at": record["created_at"],
                    "updated_at": record["updated_at"],
                }
                for record in result
            ]

    def health_check(self) -> bool:
        """Check database connectivity."""
        try:
            with self.driver.session() as session:
                session.run("RETURN 1")
            return True
        except Exception as e:
            logger.warning(f"Health check failed: {type(e).__name__}")
            return False
