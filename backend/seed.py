"""Seed script for the Glass Haus demo passport.

Seeds one building (building-001) with four element categories:
1. Foundation - low-carbon concrete and recycled rebar
2. Structure - CLT panels (net carbon sequestering)
3. Envelope - insulation, glazing and aluminium frames
4. Systems - heat pumps
"""

import logging
from datetime import date

from database import db
from ingestor import (
    get_mock_products,
    import_graph,
    slugify,
    transform_products,
)
from models import EC3Product, ImportNode, ImportRelationship

logger = logging.getLogger(__name__)

BUILDING_ID = "building-001"

EXTRA_PRODUCTS = [
    EC3Product.model_validate({
        "id": "ec3-frames-001",
        "name": "Reynaers CS 77 Frames",
        "manufacturer": {"name": "Reynaers Aluminium", "country": "Belgium"},
        "plant_or_group": {"name": "Duffel Plant", "latitude": 51.0956, "longitude": 4.5092},
        "gwp": 18.3,
        "declared_unit": "m",
        "valid_until": "2027-02-01",
    }),
    EC3Product.model_validate({
        "id": "ec3-heatpump-001",
        "name": "Daikin VRV IV Heat Pump",
        "manufacturer": {"name": "Daikin Europe", "country": "Belgium"},
        "plant_or_group": {"name": "Ostend Plant", "latitude": 51.2154, "longitude": 2.9274},
        "gwp": 2450,
        "declared_unit": "unit",
        "valid_until": "2027-11-30",
    }),
]

# element id -> (name, category, [(EPD number, quantity)])
ELEMENTS = {
    "element-foundation": ("Foundation Slab", "Foundation", [("ec3-concrete-001", 120), ("ec3-steel-001", 8500)]),
    "element-structure": ("CLT Frame", "Structure", [("ec3-wood-001", 85)]),
    "element-envelope": ("Building Envelope", "Envelope", [
        ("ec3-insulation-001", 640), ("ec3-glass-001", 420), ("ec3-frames-001", 310),
    ]),
    "element-systems": ("HVAC Systems", "Systems", [("ec3-heatpump-001", 2)]),
}


def _catalog() -> list[EC3Product]:
    products = []
    for category in ("Concrete", "Steel", "Insulation", "Glass", "Wood"):
        products.extend(get_mock_products(category))
    return products + EXTRA_PRODUCTS


def build_seed_graph() -> tuple[list[ImportNode], list[ImportRelationship]]:
    nodes, relationships = transform_products(_catalog())

    quantities = {epd: qty for _, _, items in ELEMENTS.values() for epd, qty in items}
    for node in nodes:
        if node.label == "Product":
            node.properties["quantity"] = quantities.get(node.properties["epdNumber"], 1)

    nodes.append(ImportNode(label="Building", properties={
        "id": BUILDING_ID,
        "name": "Glass Haus",
        "address": "Kortrijksesteenweg 1, 9000 Gent",
        "type": "Office",
        "completionDate": date(2025, 6, 30),
    }))
    for element_id, (name, category, items) in ELEMENTS.items():
        nodes.append(ImportNode(label="BuildingElement", properties={
            "id": element_id, "name": name, "category": category,
        }))
        relationships.append(ImportRelationship(type="COMPOSED_OF", from_=BUILDING_ID, to=element_id))
        for epd, _ in items:
            relationships.append(ImportRelationship(
                type="USES_PRODUCT", from_=element_id, to=f"product-{slugify(epd)}",
            ))
    return nodes, relationships


def seed():
    nodes, relationships = build_seed_graph()
    result = import_graph(nodes, relationships, conn=db)
    logger.info(f"Seeded {BUILDING_ID}: {result}")
    return result


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    seed()
    db.close()
