"""Building subgraph traversal and one-hop node expansion.

Both queries project nodes by their application ``id`` property and
relationships by their store element id, then deduplicate in Python:
overlapping paths return the same node or relationship many times.
"""

import logging
import math
from typing import Optional

from config_loader import TraversalConfig, get_config
from database import db

logger = logging.getLogger(__name__)

# Variable-length bounds cannot be bound as parameters; the depth slot is
# only ever filled with an int produced by clamp_depth().
BUILDING_GRAPH_QUERY = """
MATCH (b:Building {id: $buildingId})
MATCH path = (b)-[*1..%d]-(connected)
WHERE all(i IN range(0, size(nodes(path)) - 2) WHERE NOT nodes(path)[i] IN nodes(path)[i + 1..])
  AND any(n IN nodes(path)[1..] WHERE any(label IN labels(n) WHERE label IN $allowedLabels))
RETURN
  [n IN nodes(path) | {id: n.id, labels: labels(n), properties: properties(n)}] AS pathNodes,
  [r IN relationships(path) | {
      id: elementId(r),
      type: type(r),
      from: startNode(r).id,
      to: endNode(r).id,
      properties: properties(r)
  }] AS pathRels
"""

EXPAND_NODE_QUERY = """
MATCH (n {id: $nodeId})-[r]-(connected)
RETURN
  [{id: connected.id, labels: labels(connected), properties: properties(connected)}] AS pathNodes,
  [{
      id: elementId(r),
      type: type(r),
      from: startNode(r).id,
      to: endNode(r).id,
      properties: properties(r)
  }] AS pathRels
"""


def _parse_depth(depth) -> Optional[int]:
    if depth is None or isinstance(depth, bool):
        return None
    if isinstance(depth, (int, float)):
        number = float(depth)
    else:
        try:
            number = float(str(depth).strip())
        except ValueError:
            return None
    if not math.isfinite(number):
        return None
    return int(number)


def clamp_depth(depth, traversal: Optional[TraversalConfig] = None) -> int:
    """Effective traversal depth.

    Numbers (or numeric strings) are truncated toward zero and clamped to
    the configured bounds; anything else falls back to the default depth.
    """
    traversal = traversal or get_config().traversal
    value = _parse_depth(depth)
    if value is None:
        return traversal.default_depth
    return max(traversal.min_depth, min(traversal.max_depth, value))


def merge_graph_rows(rows: list[dict]) -> dict:
    """Union the nodes and relationships of every row, keyed by id.

    First occurrence wins and keeps its position. Nodes without a business
    id cannot be referenced by clients and are dropped along with the
    relationships that touch them.
    """
    nodes: dict[str, dict] = {}
    relationships: dict[str, dict] = {}

    for row in rows:
        for node in row.get("pathNodes") or []:
            node_id = node.get("id")
            if node_id is None:
                continue
            node_id = str(node_id)
            if node_id not in nodes:
                nodes[node_id] = {
                    "id": node_id,
                    "labels": list(node.get("labels") or []),
                    "properties": node.get("properties") or {},
                }

        for rel in row.get("pathRels") or []:
            rel_id = rel.get("id")
            start, end = rel.get("from"), rel.get("to")
            if rel_id is None or start is None or end is None:
                continue
            rel_id = str(rel_id)
            if rel_id not in relationships:
                relationships[rel_id] = {
                    "id": rel_id,
                    "type": rel.get("type"),
                    "from": str(start),
                    "to": str(end),
                    "properties": rel.get("properties") or {},
                }

    return {"nodes": list(nodes.values()), "relationships": list(relationships.values())}


def fetch_building_graph(building_id: str, depth=None, view: Optional[str] = None) -> dict:
    """Stakeholder-filtered subgraph around a building.

    Args:
        building_id: Business id of the Building node
        depth: Requested hop count, clamped to the configured bounds
        view: Stakeholder view name; unknown views use the default view

    Returns:
        dict with nodes[] and relationships[] (both empty for unknown buildings)
    """
    config = get_config()
    effective_depth = clamp_depth(depth, config.traversal)
    allowed_labels = config.allowed_labels(view)

    rows = db.run_query(
        BUILDING_GRAPH_QUERY % effective_depth,
        {"buildingId": building_id, "allowedLabels": allowed_labels},
    )
    graph = merge_graph_rows(rows)
    logger.info(
        f"Building graph {building_id} (depth={effective_depth}, view={config.resolve_view(view)}): "
        f"{len(graph['nodes'])} nodes, {len(graph['relationships'])} relationships"
    )
    return graph


def expand_node(node_id: str) -> dict:
    """One-hop neighborhood of any node, in both directions.

    The clicked node itself is not repeated; callers merge the result into
    their current graph by node id and relationship id.
    """
    rows = db.run_query(EXPAND_NODE_QUERY, {"nodeId": node_id})
    return merge_graph_rows(rows)
