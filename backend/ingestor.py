"""EPD import pipeline: EC3 records -> passport graph nodes and relationships.

Node ids are derived from stable source keys (EPD number, manufacturer
name, country) so re-importing the same records updates nodes in place.
Upserts bind every property value as a parameter; only labels and
relationship types enter the query text, and those are checked against
an identifier pattern first.
"""

import logging
import re
from typing import Optional

import requests

from api_keys import api_keys_manager
from database import GraphConnection, db
from models import EC3Product, ImportNode, ImportRelationship

logger = logging.getLogger(__name__)

EC3_BASE_URL = "https://buildingtransparency.org/api"

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class EC3Error(Exception):
    """The EC3 API returned an error."""


# =============================================================================
# EC3 CLIENT
# =============================================================================

MOCK_PRODUCTS: dict[str, list[dict]] = {
    "Concrete": [{
        "id": "ec3-concrete-001",
        "name": "ECOPact Low Carbon Concrete C30/37",
        "manufacturer": {"name": "Holcim Belgium", "country": "Belgium"},
        "plant_or_group": {"name": "Obourg Plant", "latitude": 50.4667, "longitude": 3.9667},
        "gwp": 285,
        "declared_unit": "m³",
        "epd_url": "https://example.com/epd/holcim-concrete",
        "valid_until": "2029-01-15",
    }],
    "Steel": [{
        "id": "ec3-steel-001",
        "name": "Recycled Steel Rebar B500B",
        "manufacturer": {"name": "ArcelorMittal", "country": "Luxembourg"},
        "plant_or_group": {"name": "Gent Steelworks", "latitude": 51.0833, "longitude": 3.7167},
        "gwp": 0.87,
        "declared_unit": "kg",
        "epd_url": "https://example.com/epd/arcelor-rebar",
        "valid_until": "2029-03-01",
    }],
    "Insulation": [{
        "id": "ec3-insulation-001",
        "name": "Rockwool FlexiBatts",
        "manufacturer": {"name": "Rockwool", "country": "Belgium"},
        "plant_or_group": {"name": "Roermond Plant", "latitude": 51.1917, "longitude": 5.9875},
        "gwp": 1.2,
        "declared_unit": "m²",
        "epd_url": "https://example.com/epd/rockwool-flexi",
        "valid_until": "2028-06-01",
    }],
    "Glass": [{
        "id": "ec3-glass-001",
        "name": "AGC Planibel Clearvision",
        "manufacturer": {"name": "AGC Glass Europe", "country": "Belgium"},
        "plant_or_group": {"name": "Mol Plant", "latitude": 51.1833, "longitude": 5.1167},
        "gwp": 12.5,
        "declared_unit": "m²",
        "epd_url": "https://example.com/epd/agc-glass",
        "valid_until": "2028-09-01",
    }],
    "Wood": [{
        "id": "ec3-wood-001",
        "name": "CLT Panel 120mm",
        "manufacturer": {"name": "Stora Enso", "country": "Finland"},
        "plant_or_group": {"name": "Ybbs CLT Plant", "latitude": 48.1667, "longitude": 15.0833},
        "gwp": -718,
        "declared_unit": "m³",
        "epd_url": "https://example.com/epd/storaenso-clt",
        "valid_until": "2028-09-01",
    }],
}


def get_mock_products(category: str) -> list[EC3Product]:
    return [EC3Product.model_validate(p) for p in MOCK_PRODUCTS.get(category, [])]


class EC3Client:
    """Minimal client for the EC3 EPD search API."""

    def __init__(self, api_key: Optional[str] = None, base_url: str = EC3_BASE_URL, timeout: float = 30.0):
        self.api_key = api_key or api_keys_manager.get_key("ec3")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}

    def search_products(self, category: str, country: Optional[str] = None) -> list[EC3Product]:
        """Search EPDs by category. Without an API key, bundled fixture data is returned."""
        if not self.api_key:
            logger.warning("EC3_API_KEY not set. Using mock data.")
            return get_mock_products(category)

        params = {"category": category}
        if country:
            params["country"] = country
        response = requests.get(
            f"{self.base_url}/epds", params=params, headers=self._headers(), timeout=self.timeout
        )
        if not response.ok:
            raise EC3Error(f"EC3 API error: {response.status_code} {response.reason}")
        return [EC3Product.model_validate(p) for p in response.json()]

    def get_product(self, epd_id: str) -> Optional[EC3Product]:
        """A single EPD, or None without an API key or on any non-2xx response."""
        if not self.api_key:
            logger.warning("EC3_API_KEY not set.")
            return None
        response = requests.get(
            f"{self.base_url}/epds/{epd_id}", headers=self._headers(), timeout=self.timeout
        )
        if not response.ok:
            return None
        return EC3Product.model_validate(response.json())


# =============================================================================
# TRANSFORM
# =============================================================================

def slugify(text: str) -> str:
    """Lowercase, non-alphanumerics collapsed to single dashes, no edge dashes."""
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


def transform_product(product: EC3Product) -> tuple[list[ImportNode], list[ImportRelationship]]:
    """Nodes and relationships for one EPD record."""
    product_id = f"product-{slugify(product.id)}"
    manufacturer_id = f"manufacturer-{slugify(product.manufacturer.name)}"
    plant_id = f"plant-{slugify(product.manufacturer.name)}-{slugify(product.plant_or_group.name)}"
    certification_id = f"cert-{slugify(product.id)}"
    location_id = f"location-{slugify(product.manufacturer.country)}"

    nodes = [
        ImportNode(label="Product", properties={
            "id": product_id,
            "name": product.name,
            "gwp": product.gwp,
            "declaredUnit": product.declared_unit,
            "epdNumber": product.id,
        }),
        ImportNode(label="Manufacturer", properties={
            "id": manufacturer_id,
            "name": product.manufacturer.name,
            "country": product.manufacturer.country,
            "did": f"did:web:{slugify(product.manufacturer.name)}.example.com",
        }),
        ImportNode(label="Plant", properties={
            "id": plant_id,
            "name": product.plant_or_group.name,
            "latitude": product.plant_or_group.latitude,
            "longitude": product.plant_or_group.longitude,
        }),
        ImportNode(label="Certification", properties={
            "id": certification_id,
            "name": "Environmental Product Declaration",
            "type": "EPD",
            "issuer": "EC3",
            "validUntil": product.valid_until,
            "url": product.epd_url,
        }),
        ImportNode(label="Location", properties={
            "id": location_id,
            "country": product.manufacturer.country,
        }),
    ]

    relationships = [
        ImportRelationship(type="SUPPLIED_BY", from_=product_id, to=manufacturer_id),
        ImportRelationship(type="MANUFACTURED_AT", from_=product_id, to=plant_id),
        ImportRelationship(type="HAS_EPD", from_=product_id, to=certification_id),
        ImportRelationship(type="LOCATED_IN", from_=plant_id, to=location_id),
        ImportRelationship(type="LOCATED_IN", from_=manufacturer_id, to=location_id),
    ]
    return nodes, relationships


def transform_products(products: list[EC3Product]) -> tuple[list[ImportNode], list[ImportRelationship]]:
    """Transform many records; shared manufacturers, plants and locations appear once."""
    all_nodes: list[ImportNode] = []
    all_relationships: list[ImportRelationship] = []
    seen_nodes: set[str] = set()
    seen_relationships: set[tuple[str, str, str]] = set()

    for product in products:
        nodes, relationships = transform_product(product)
        for node in nodes:
            node_id = node.properties["id"]
            if node_id not in seen_nodes:
                seen_nodes.add(node_id)
                all_nodes.append(node)
        for rel in relationships:
            key = (rel.type, rel.from_, rel.to)
            if key not in seen_relationships:
                seen_relationships.add(key)
                all_relationships.append(rel)

    return all_nodes, all_relationships


# =============================================================================
# UPSERT
# =============================================================================

def _check_identifier(name: str) -> str:
    if not _IDENTIFIER.match(name or ""):
        raise ValueError(f"Invalid label or relationship type: {name!r}")
    return name


def node_upsert(node: ImportNode) -> tuple[str, dict]:
    """MERGE statement and parameters for one node, keyed on its id."""
    label = _check_identifier(node.label)
    node_id = node.properties.get("id")
    if not node_id:
        raise ValueError(f"{label} node must have an 'id' property")
    properties = {k: v for k, v in node.properties.items() if v is not None}
    cypher = f"MERGE (n:{label} {{id: $id}}) SET n += $props"
    return cypher, {"id": node_id, "props": properties}


def relationship_upsert(rel: ImportRelationship) -> tuple[str, dict]:
    """MERGE statement and parameters for one relationship between existing nodes."""
    rel_type = _check_identifier(rel.type)
    properties = {k: v for k, v in rel.properties.items() if v is not None}
    cypher = (
        "MATCH (a {id: $fromId}), (b {id: $toId}) "
        f"MERGE (a)-[r:{rel_type}]->(b) SET r += $props"
    )
    return cypher, {"fromId": rel.from_, "toId": rel.to, "props": properties}


def import_graph(nodes: list[ImportNode], relationships: list[ImportRelationship],
                 conn: Optional[GraphConnection] = None) -> dict:
    """Write nodes first, then relationships. Returns statement counts."""
    conn = conn or db
    for node in nodes:
        conn.run_write(*node_upsert(node))
    for rel in relationships:
        conn.run_write(*relationship_upsert(rel))
    logger.info(f"Imported {len(nodes)} nodes and {len(relationships)} relationships")
    return {"nodes": len(nodes), "relationships": len(relationships)}


def import_products(products: list[EC3Product], conn: Optional[GraphConnection] = None) -> dict:
    nodes, relationships = transform_products(products)
    return import_graph(nodes, relationships, conn=conn)
