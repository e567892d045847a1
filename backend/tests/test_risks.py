"""Supply-chain risk detectors and the analysis that runs them."""

from datetime import date
from unittest.mock import patch

import pytest

from database import GraphQueryError, GraphUnavailableError
from risks import DETECTORS, analyze_risks

SINGLE = "supplierCount"
EXPIRING = "HAS_EPD"
CONCENTRATION = "m.name AS manufacturer"
GEOGRAPHIC = "LOCATED_IN"

TODAY = date(2028, 7, 1)


def _analyze(conn, building_id="building-001"):
    with patch("risks.db", conn):
        return analyze_risks(building_id, today=TODAY)["risks"]


class TestSingleSource:
    def test_three_products_is_medium(self, stub_connection):
        conn = stub_connection({SINGLE: [
            {"product": "CEM II Concrete", "soleSupplier": "Holcim"},
            {"product": "CLT Panel", "soleSupplier": "Stora Enso"},
            {"product": "Rebar B500B", "soleSupplier": "ArcelorMittal"},
        ]})
        risks = _analyze(conn)
        assert risks == [{
            "type": "single_source",
            "severity": "medium",
            "title": "Single Supplier Risk",
            "description": "3 products have only one supplier. Supply disruptions could impact the project.",
            "affectedProducts": ["CEM II Concrete", "CLT Panel", "Rebar B500B"],
        }]

    def test_only_sole_supplier_rows_are_reported(self, stub_connection):
        # Dual-supplier products never come back from the query
        conn = stub_connection({SINGLE: [
            {"product": "Glulam Beam", "soleSupplier": "Beam Maker"},
            {"product": "CLT", "soleSupplier": "Maker"},
            {"product": "Steel Connector", "soleSupplier": "Steel Maker"},
        ]})
        risk = _analyze(conn)[0]
        assert risk["severity"] == "medium"
        assert sorted(risk["affectedProducts"]) == ["CLT", "Glulam Beam", "Steel Connector"]
        cypher = conn.calls[0][0]
        assert "count(DISTINCT m) AS supplierCount" in cypher
        assert "WHERE supplierCount = 1" in cypher

    def test_more_than_five_is_high(self, stub_connection):
        conn = stub_connection({SINGLE: [{"product": f"P{i}", "soleSupplier": "M"} for i in range(6)]})
        assert _analyze(conn)[0]["severity"] == "high"

    def test_exactly_five_is_medium(self, stub_connection):
        conn = stub_connection({SINGLE: [{"product": f"P{i}", "soleSupplier": "M"} for i in range(5)]})
        assert _analyze(conn)[0]["severity"] == "medium"

    def test_unnamed_product(self, stub_connection):
        conn = stub_connection({SINGLE: [{"product": None, "soleSupplier": "M"}]})
        assert _analyze(conn)[0]["affectedProducts"] == ["(unnamed)"]


class TestExpiringCertifications:
    def test_horizon_and_limit_are_parameters(self, stub_connection):
        conn = stub_connection()
        _analyze(conn)
        params = next(p for cypher, p in conn.calls if EXPIRING in cypher)
        assert params == {"buildingId": "building-001", "horizon": "2028-09-29", "limit": 10}

    def test_capped_and_sorted_by_expiry(self, stub_connection):
        rows = [{"product": f"P{day:02d}", "expiryDate": f"2028-08-{day:02d}"} for day in range(12, 0, -1)]
        conn = stub_connection({EXPIRING: rows})
        item = _analyze(conn)[0]
        assert item["type"] == "expiring_cert"
        assert item["severity"] == "medium"
        assert item["affectedProducts"] == [f"P{day:02d}" for day in range(1, 11)]
        assert item["description"] == (
            "10 EPDs expire within 90 days. Products may lose compliance status."
        )

    def test_none_expiring(self, stub_connection):
        assert _analyze(stub_connection({EXPIRING: []})) == []


class TestSupplierConcentration:
    def test_four_products_is_low(self, stub_connection):
        conn = stub_connection({CONCENTRATION: [{"manufacturer": "Holcim", "productCount": 4}]})
        item = _analyze(conn)[0]
        assert item == {
            "type": "concentration",
            "severity": "low",
            "title": "Supplier Concentration",
            "description": "Holcim supplies 4 products. High dependency on single supplier.",
            "affectedProducts": ["Holcim"],
        }

    def test_top_manufacturer_only(self, stub_connection):
        conn = stub_connection({CONCENTRATION: [
            {"manufacturer": "Saint-Gobain", "productCount": 5},
            {"manufacturer": "Kingspan", "productCount": 12},
        ]})
        item = _analyze(conn)[0]
        assert item["affectedProducts"] == ["Kingspan"]
        assert item["severity"] == "high"

    def test_at_threshold_is_not_reported(self, stub_connection):
        conn = stub_connection({CONCENTRATION: [{"manufacturer": "Holcim", "productCount": 3}]})
        assert _analyze(conn) == []

    def test_threshold_is_a_parameter(self, stub_connection):
        conn = stub_connection()
        _analyze(conn)
        params = next(p for cypher, p in conn.calls if CONCENTRATION in cypher)
        assert params == {"buildingId": "building-001", "minProducts": 3, "limit": 5}


class TestGeographicConcentration:
    def test_eleven_products_triggers(self, stub_connection):
        conn = stub_connection({GEOGRAPHIC: [
            {"country": "Germany", "productCount": 11},
            {"country": "Sweden", "productCount": 6},
        ]})
        item = _analyze(conn)[0]
        assert item == {
            "type": "geographic",
            "severity": "medium",
            "title": "Geographic Concentration",
            "description": "11 products sourced from Germany. Regional disruptions could affect supply.",
            "affectedProducts": ["Germany (11 products)"],
        }

    def test_ten_products_does_not_trigger(self, stub_connection):
        conn = stub_connection({GEOGRAPHIC: [{"country": "Germany", "productCount": 10}]})
        assert _analyze(conn) == []


class TestAnalyzeRisks:
    def _all_rows(self):
        return {
            SINGLE: [{"product": "CLT Panel", "soleSupplier": "Stora Enso"}],
            EXPIRING: [{"product": "Rebar B500B", "expiryDate": "2028-08-01"}],
            CONCENTRATION: [{"manufacturer": "Holcim", "productCount": 4}],
            GEOGRAPHIC: [{"country": "Germany", "productCount": 11}],
        }

    def test_fixed_detector_order(self, stub_connection):
        risks = _analyze(stub_connection(self._all_rows()))
        assert [r["type"] for r in risks] == ["single_source", "expiring_cert", "concentration", "geographic"]
        assert [name for name, _ in DETECTORS] == [r["type"] for r in risks]

    def test_unknown_building_has_no_risks(self, stub_connection):
        assert _analyze(stub_connection(), "nonexistent-id") == []

    def test_failing_detector_is_skipped(self, stub_connection):
        routes = self._all_rows()
        routes[EXPIRING] = GraphQueryError("Invalid date format")
        risks = _analyze(stub_connection(routes))
        assert [r["type"] for r in risks] == ["single_source", "concentration", "geographic"]

    def test_unavailable_store_fails_the_analysis(self, stub_connection):
        routes = self._all_rows()
        routes[CONCENTRATION] = GraphUnavailableError("connection refused")
        with pytest.raises(GraphUnavailableError):
            _analyze(stub_connection(routes))

    def test_every_detector_failing_raises(self, stub_connection):
        routes = {marker: GraphQueryError("bad") for marker in (SINGLE, EXPIRING, CONCENTRATION, GEOGRAPHIC)}
        with pytest.raises(GraphQueryError):
            _analyze(stub_connection(routes))

    def test_defaults_to_today(self, stub_connection):
        conn = stub_connection()
        with patch("risks.db", conn):
            assert analyze_risks("building-001") == {"risks": []}
