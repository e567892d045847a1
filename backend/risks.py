"""Supply-chain risk heuristics for a building.

Four detectors run in a fixed order and each contributes at most one
item. A detector whose query fails is skipped; the analysis as a whole
fails only when the store is unreachable or every detector failed.
"""

import logging
from datetime import date, timedelta
from typing import Callable, Optional

from config_loader import RisksConfig, get_config
from database import GraphQueryError, GraphUnavailableError, db
from db_result_helpers import to_number

logger = logging.getLogger(__name__)

SINGLE_SOURCE_QUERY = """
MATCH (b:Building {id: $buildingId})-[:COMPOSED_OF]->(:BuildingElement)-[:USES_PRODUCT]->(p:Product)-[:SUPPLIED_BY]->(m:Manufacturer)
WITH p, count(DISTINCT m) AS supplierCount
WHERE supplierCount = 1
MATCH (p)-[:SUPPLIED_BY]->(m:Manufacturer)
RETURN p.name AS product, m.name AS soleSupplier
"""

EXPIRING_CERT_QUERY = """
MATCH (b:Building {id: $buildingId})-[:COMPOSED_OF]->(:BuildingElement)-[:USES_PRODUCT]->(p:Product)-[:HAS_EPD]->(c:Certification)
WITH p, date(c.validUntil) AS expiry
WHERE expiry <= date($horizon)
RETURN p.name AS product, toString(expiry) AS expiryDate
ORDER BY expiry
LIMIT $limit
"""

CONCENTRATION_QUERY = """
MATCH (b:Building {id: $buildingId})-[:COMPOSED_OF]->(:BuildingElement)-[:USES_PRODUCT]->(p:Product)-[:SUPPLIED_BY]->(m:Manufacturer)
WITH m, count(p) AS productCount
WHERE productCount > $minProducts
RETURN m.name AS manufacturer, productCount
ORDER BY productCount DESC
LIMIT $limit
"""

GEOGRAPHIC_QUERY = """
MATCH (b:Building {id: $buildingId})-[:COMPOSED_OF]->(:BuildingElement)-[:USES_PRODUCT]->(p:Product)-[:MANUFACTURED_AT]->(:Plant)-[:LOCATED_IN]->(l:Location)
WITH l.country AS country, count(DISTINCT p) AS productCount
WHERE productCount > $minProducts
RETURN country, productCount
ORDER BY productCount DESC
LIMIT $limit
"""

UNNAMED = "(unnamed)"


def _name(value) -> str:
    return str(value) if value is not None else UNNAMED


def _by_count_desc(rows: list[dict]) -> list[dict]:
    return sorted(rows, key=lambda row: to_number(row.get("productCount")), reverse=True)


def detect_single_source(building_id: str, config: RisksConfig, today: date) -> Optional[dict]:
    """Products with exactly one supplying manufacturer."""
    rows = db.run_query(SINGLE_SOURCE_QUERY, {"buildingId": building_id})
    if not rows:
        return None
    count = len(rows)
    return {
        "type": "single_source",
        "severity": "high" if count > config.single_source.high_severity_above else "medium",
        "title": "Single Supplier Risk",
        "description": (
            f"{count} products have only one supplier. "
            "Supply disruptions could impact the project."
        ),
        "affectedProducts": [_name(row.get("product")) for row in rows],
    }


def detect_expiring_certifications(building_id: str, config: RisksConfig, today: date) -> Optional[dict]:
    """EPDs whose validity ends within the configured window, soonest first."""
    window = config.expiring_cert.window_days
    limit = config.expiring_cert.limit
    horizon = today + timedelta(days=window)
    rows = db.run_query(
        EXPIRING_CERT_QUERY,
        {"buildingId": building_id, "horizon": horizon.isoformat(), "limit": limit},
    )
    rows = sorted(rows, key=lambda row: str(row.get("expiryDate") or ""))[:limit]
    if not rows:
        return None
    return {
        "type": "expiring_cert",
        "severity": "medium",
        "title": "Expiring Certifications",
        "description": (
            f"{len(rows)} EPDs expire within {window} days. "
            "Products may lose compliance status."
        ),
        "affectedProducts": [_name(row.get("product")) for row in rows],
    }


def detect_supplier_concentration(building_id: str, config: RisksConfig, today: date) -> Optional[dict]:
    """The manufacturer supplying the most products, if it supplies enough of them."""
    settings = config.concentration
    rows = db.run_query(
        CONCENTRATION_QUERY,
        {"buildingId": building_id, "minProducts": settings.min_products, "limit": settings.limit},
    )
    rows = [row for row in rows if to_number(row.get("productCount")) > settings.min_products]
    if not rows:
        return None
    top = _by_count_desc(rows)[0]
    manufacturer = _name(top.get("manufacturer"))
    count = to_number(top.get("productCount"))
    return {
        "type": "concentration",
        "severity": "high" if count > settings.high_severity_above else "low",
        "title": "Supplier Concentration",
        "description": (
            f"{manufacturer} supplies {count} products. "
            "High dependency on single supplier."
        ),
        "affectedProducts": [manufacturer],
    }


def detect_geographic_concentration(building_id: str, config: RisksConfig, today: date) -> Optional[dict]:
    """The manufacturing country with the most distinct products, above the trigger."""
    settings = config.geographic
    rows = db.run_query(
        GEOGRAPHIC_QUERY,
        {"buildingId": building_id, "minProducts": settings.min_products, "limit": settings.limit},
    )
    if not rows:
        return None
    top = _by_count_desc(rows)[0]
    count = to_number(top.get("productCount"))
    if count <= settings.trigger_above:
        return None
    country = _name(top.get("country"))
    return {
        "type": "geographic",
        "severity": "medium",
        "title": "Geographic Concentration",
        "description": (
            f"{count} products sourced from {country}. "
            "Regional disruptions could affect supply."
        ),
        "affectedProducts": [f"{country} ({count} products)"],
    }


Detector = Callable[[str, RisksConfig, date], Optional[dict]]

# Evaluation order is part of the response contract.
DETECTORS: list[tuple[str, Detector]] = [
    ("single_source", detect_single_source),
    ("expiring_cert", detect_expiring_certifications),
    ("concentration", detect_supplier_concentration),
    ("geographic", detect_geographic_concentration),
]


def analyze_risks(building_id: str, today: Optional[date] = None) -> dict:
    """Run every detector and collect the items they emit.

    Args:
        building_id: Business id of the Building node
        today: Reference date for certificate expiry (defaults to today)

    Returns:
        dict with risks[] in detector order
    """
    config = get_config().risks
    today = today or date.today()
    risks = []
    failures: list[GraphQueryError] = []

    for name, detector in DETECTORS:
        try:
            item = detector(building_id, config, today)
        except GraphUnavailableError:
            raise
        except GraphQueryError as e:
            logger.warning(f"Risk detector '{name}' failed for {building_id}: {e}")
            failures.append(e)
            continue
        if item is not None:
            risks.append(item)

    if len(failures) == len(DETECTORS):
        raise failures[-1]
    return {"risks": risks}
