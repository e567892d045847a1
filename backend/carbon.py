"""Embodied-carbon (GWP) breakdown for a building.

The store sums ``gwp * coalesce(quantity, 1)`` per BuildingElement
category; totals, percentages and display rounding happen here.

Percentages are taken against the signed total. A building whose products
are net carbon-sequestering therefore has a negative total, and a category
that emits carbon gets a negative share of it. This mirrors the formula the
UI has always been fed and is kept as-is.
"""

import logging
import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from config_loader import CarbonConfig, get_config
from database import GraphQueryError, db
from db_result_helpers import result_value, to_number

logger = logging.getLogger(__name__)

CATEGORY_GWP_QUERY = """
MATCH (b:Building {id: $buildingId})-[:COMPOSED_OF]->(e:BuildingElement)-[:USES_PRODUCT]->(p:Product)
RETURN e.category AS category, sum(p.gwp * coalesce(p.quantity, 1)) AS categoryGWP
"""

BUILDING_NAME_QUERY = """
MATCH (b:Building {id: $buildingId})
RETURN b.name AS name
LIMIT 1
"""


def round_gwp(value: float) -> int:
    """Nearest whole kg CO2e, halves rounded up (-2.5 -> -2)."""
    return int(math.floor(value + 0.5))


def category_percentage(category_gwp: float, total_gwp: float) -> float:
    """Share of the signed total with one decimal, 0 when the total is 0."""
    if total_gwp == 0:
        return 0.0
    share = Decimal(repr(category_gwp * 100.0 / total_gwp))
    return float(share.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def build_breakdown(rows: list[dict], building_name: str, carbon: Optional[CarbonConfig] = None) -> dict:
    """Assemble the two-level breakdown from per-category rows."""
    carbon = carbon or get_config().carbon

    category_totals: dict[str, float] = {}
    for row in rows:
        name = row.get("category")
        name = str(name) if name is not None else carbon.uncategorized_label
        category_totals[name] = category_totals.get(name, 0) + to_number(row.get("categoryGWP"))

    total = sum(category_totals.values())
    ordered = sorted(category_totals.items(), key=lambda item: item[1], reverse=True)

    return {
        "name": building_name,
        "gwp": round_gwp(total),
        "percentage": 100,
        "children": [
            {
                "name": name,
                "gwp": round_gwp(gwp),
                "percentage": category_percentage(gwp, total),
            }
            for name, gwp in ordered
        ],
    }


def get_building_name(building_id: str, default: str) -> str:
    """Display name of a building. Lookup failures fall back to ``default``."""
    try:
        rows = db.run_query(BUILDING_NAME_QUERY, {"buildingId": building_id})
    except GraphQueryError as e:
        logger.warning(f"Building name lookup failed for {building_id}: {e}")
        return default
    name = result_value(rows, "name", default)
    return str(name) if name else default


def compute_carbon_breakdown(building_id: str) -> dict:
    """Total and per-category GWP for one building."""
    carbon = get_config().carbon
    rows = db.run_query(CATEGORY_GWP_QUERY, {"buildingId": building_id})
    name = get_building_name(building_id, carbon.default_building_name)
    return build_breakdown(rows, name, carbon)
