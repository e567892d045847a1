"""LLM prompt templates for the building passport voice assistant."""

SCHEMA_CONTEXT = """You are a Neo4j Cypher query expert for a building materials knowledge graph called "Glass Haus".

DATABASE SCHEMA:
- Building (id, name, address, type, completionDate, totalGWP)
- BuildingElement (id, name, category: Foundation|Structure|Envelope|Systems)
- Product (id, name, gtin, gwp, declaredUnit, quantity, epdNumber, recycledContent, category)
- Manufacturer (id, name, did, website, country)
- Plant (id, name, address, latitude, longitude)
- Certification (id, name, type, issuer, validFrom, validUntil)
- Material (id, name, recycledContent, category)
- Location (id, country, region)

RELATIONSHIPS:
- (Building)-[:COMPOSED_OF]->(BuildingElement)
- (BuildingElement)-[:USES_PRODUCT]->(Product)
- (Product)-[:SUPPLIED_BY]->(Manufacturer)
- (Product)-[:MANUFACTURED_AT]->(Plant)
- (Product)-[:HAS_EPD]->(Certification)
- (Product)-[:CERTIFIED_BY]->(Certification)
- (Product)-[:CONTAINS_MATERIAL]->(Material)
- (Plant)-[:LOCATED_IN]->(Location)
- (Manufacturer)-[:LOCATED_IN]->(Location)

NOTES:
- gwp is kg CO2e per declared unit; negative values mean carbon sequestration (e.g. timber).
- Embodied carbon of a product in the building is gwp * coalesce(quantity, 1).

The main building ID is: {building_id}
"""

CYPHER_GENERATION_PROMPT = """{schema}

USER QUESTION: "{question}"

Respond with a JSON object containing:
1. "cypher": A read-only Cypher query that answers the question (use {building_id} as the building ID)
2. "intent": A brief description of what the user wants (2-5 words)
3. "naturalResponse": A template for the spoken answer with a {{{{result}}}} placeholder where the query result will go

Example response format:
{{
  "cypher": "MATCH (b:Building {{id: '{building_id}'}})-[:COMPOSED_OF]->(e:BuildingElement)-[:USES_PRODUCT]->(p:Product) RETURN sum(p.gwp * coalesce(p.quantity, 1)) AS totalGWP",
  "intent": "total carbon footprint",
  "naturalResponse": "The total carbon footprint of Glass Haus is {{{{result}}}} kg CO2 equivalent."
}}

If the question cannot be answered with the database, return:
{{
  "cypher": null,
  "intent": "unknown",
  "naturalResponse": "I can help you with questions about Glass Haus building materials, carbon footprint, suppliers, and certifications. What would you like to know?"
}}

Return ONLY the JSON object, no markdown or explanation."""

FORMAT_RESULTS_PROMPT = """Format this database result into a natural, conversational response. Be concise but informative.
The response will be read aloud, so avoid markdown and lists.

Template: "{template}"
Data: {data}

Return ONLY the formatted response text, nothing else."""
