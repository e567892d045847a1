"""Building subgraph fetch and node expansion."""

import re
from unittest.mock import patch

import pytest

from database import GraphQueryError
from subgraph import (
    BUILDING_GRAPH_QUERY,
    EXPAND_NODE_QUERY,
    clamp_depth,
    expand_node,
    fetch_building_graph,
    merge_graph_rows,
)


def _node(node_id, *labels, **props):
    return {"id": node_id, "labels": list(labels), "properties": {"id": node_id, **props}}


def _rel(rel_id, rel_type, start, end):
    return {"id": rel_id, "type": rel_type, "from": start, "to": end, "properties": {}}


BUILDING = _node("building-001", "Building", name="Glass Haus")
ELEMENT = _node("element-structure", "BuildingElement", category="Structure")
PRODUCT = _node("product-clt", "Product", gwp=-718)
MAKER = _node("manufacturer-stora-enso", "Manufacturer")

COMPOSED = _rel("5:abc:1", "COMPOSED_OF", "building-001", "element-structure")
USES = _rel("5:abc:2", "USES_PRODUCT", "element-structure", "product-clt")
SUPPLIED = _rel("5:abc:3", "SUPPLIED_BY", "product-clt", "manufacturer-stora-enso")

# Three overlapping paths from the building: length 1, 2 and 3
PATH_ROWS = [
    {"pathNodes": [BUILDING, ELEMENT], "pathRels": [COMPOSED]},
    {"pathNodes": [BUILDING, ELEMENT, PRODUCT], "pathRels": [COMPOSED, USES]},
    {"pathNodes": [BUILDING, ELEMENT, PRODUCT, MAKER], "pathRels": [COMPOSED, USES, SUPPLIED]},
]


def _depth_in(cypher: str) -> int:
    return int(re.search(r"\[\*1\.\.(\d+)\]", cypher).group(1))


class TestClampDepth:
    @pytest.mark.parametrize("requested,expected", [
        (-5, 1), (0, 1), (1, 1), (4, 4), (4.9, 4), (10, 4), (1000, 4),
        ("3", 3), ("4.9", 4), ("-2", 1), (" 2 ", 2),
    ])
    def test_numeric_input_clamped(self, requested, expected):
        assert clamp_depth(requested) == expected

    @pytest.mark.parametrize("requested", [None, "", "deep", "NaN", float("inf"), True])
    def test_non_numeric_input_defaults_to_two(self, requested):
        assert clamp_depth(requested) == 2


class TestMergeGraphRows:
    def test_overlapping_paths_deduplicated(self):
        graph = merge_graph_rows(PATH_ROWS)
        node_ids = [n["id"] for n in graph["nodes"]]
        rel_ids = [r["id"] for r in graph["relationships"]]
        assert node_ids == ["building-001", "element-structure", "product-clt", "manufacturer-stora-enso"]
        assert rel_ids == ["5:abc:1", "5:abc:2", "5:abc:3"]

    def test_relationship_projection(self):
        rel = merge_graph_rows(PATH_ROWS)["relationships"][1]
        assert rel == {
            "id": "5:abc:2",
            "type": "USES_PRODUCT",
            "from": "element-structure",
            "to": "product-clt",
            "properties": {},
        }

    def test_numeric_ids_rendered_as_strings(self):
        rows = [{"pathNodes": [_node(7, "Product")], "pathRels": [_rel(9007199254740993, "X", 7, 7)]}]
        graph = merge_graph_rows(rows)
        assert graph["nodes"][0]["id"] == "7"
        assert graph["relationships"][0]["id"] == "9007199254740993"

    def test_nodes_without_business_id_dropped(self):
        rows = [{
            "pathNodes": [BUILDING, {"id": None, "labels": ["Product"], "properties": {}}],
            "pathRels": [_rel("r1", "COMPOSED_OF", "building-001", None)],
        }]
        graph = merge_graph_rows(rows)
        assert [n["id"] for n in graph["nodes"]] == ["building-001"]
        assert graph["relationships"] == []

    def test_empty(self):
        assert merge_graph_rows([]) == {"nodes": [], "relationships": []}


class TestFetchBuildingGraph:
    def test_unknown_building_returns_empty_structures(self, stub_connection):
        conn = stub_connection()
        with patch("subgraph.db", conn):
            assert fetch_building_graph("nonexistent-id", 2, "consumer") == {"nodes": [], "relationships": []}

    def test_no_duplicate_ids_and_idempotent(self, stub_connection):
        conn = stub_connection({"MATCH path": PATH_ROWS})
        with patch("subgraph.db", conn):
            first = fetch_building_graph("building-001", 3, "consumer")
            second = fetch_building_graph("building-001", 3, "consumer")
        ids = [n["id"] for n in first["nodes"]]
        assert len(ids) == len(set(ids))
        assert {n["id"] for n in first["nodes"]} == {n["id"] for n in second["nodes"]}
        assert {r["id"] for r in first["relationships"]} == {r["id"] for r in second["relationships"]}

    @pytest.mark.parametrize("requested,effective", [(-5, 1), (0, 1), (4.9, 4), (1000, 4), (None, 2), ("x", 2)])
    def test_query_uses_clamped_depth(self, stub_connection, requested, effective):
        conn = stub_connection()
        with patch("subgraph.db", conn):
            fetch_building_graph("building-001", requested, "consumer")
        assert _depth_in(conn.calls[0][0]) == effective

    def test_values_are_bound_parameters(self, stub_connection):
        conn = stub_connection()
        hostile = "x'}) DETACH DELETE b //"
        with patch("subgraph.db", conn):
            fetch_building_graph(hostile, 2, "regulator")
        cypher, params = conn.calls[0]
        assert hostile not in cypher
        assert params["buildingId"] == hostile
        assert "Location" in params["allowedLabels"]

    def test_unknown_view_uses_consumer_labels(self, stub_connection, fresh_config):
        conn = stub_connection({"MATCH path": PATH_ROWS})
        with patch("subgraph.db", conn):
            unknown = fetch_building_graph("building-001", 2, "auditor")
            consumer = fetch_building_graph("building-001", 2, "consumer")
        assert conn.calls[0][1]["allowedLabels"] == fresh_config.views.labels["consumer"]
        assert conn.calls[0][1] == conn.calls[1][1]
        assert unknown == consumer

    def test_store_error_propagates(self, stub_connection):
        conn = stub_connection({"MATCH path": GraphQueryError("syntax")})
        with patch("subgraph.db", conn):
            with pytest.raises(GraphQueryError):
                fetch_building_graph("building-001")

    def test_query_filters_on_non_root_nodes(self):
        assert "nodes(path)[1..]" in BUILDING_GRAPH_QUERY
        assert "$allowedLabels" in BUILDING_GRAPH_QUERY


class TestExpandNode:
    def test_one_hop_neighbors(self, stub_connection):
        rows = [
            {"pathNodes": [ELEMENT], "pathRels": [USES]},
            {"pathNodes": [MAKER], "pathRels": [SUPPLIED]},
        ]
        conn = stub_connection({"connected": rows})
        with patch("subgraph.db", conn):
            graph = expand_node("product-clt")
        assert [n["id"] for n in graph["nodes"]] == ["element-structure", "manufacturer-stora-enso"]
        assert [r["type"] for r in graph["relationships"]] == ["USES_PRODUCT", "SUPPLIED_BY"]
        assert conn.calls[0][1] == {"nodeId": "product-clt"}

    def test_parallel_relationships_to_same_neighbor(self, stub_connection):
        second = _rel("5:abc:9", "CERTIFIED_BY", "product-clt", "manufacturer-stora-enso")
        rows = [
            {"pathNodes": [MAKER], "pathRels": [SUPPLIED]},
            {"pathNodes": [MAKER], "pathRels": [second]},
        ]
        conn = stub_connection({"connected": rows})
        with patch("subgraph.db", conn):
            graph = expand_node("product-clt")
        assert len(graph["nodes"]) == 1
        assert len(graph["relationships"]) == 2

    def test_unknown_node(self, stub_connection):
        conn = stub_connection()
        with patch("subgraph.db", conn):
            assert expand_node("nope") == {"nodes": [], "relationships": []}

    def test_expand_query_is_undirected_single_hop(self):
        assert "-[r]-" in EXPAND_NODE_QUERY
        assert "$nodeId" in EXPAND_NODE_QUERY


class TestPropertyMapsThroughTheClient:
    def test_date_like_properties_survive_to_the_graph(self, fake_driver):
        from database import GraphConnection

        node = _node("plaque-1", "Certification", year=2025, month=6, day=30)
        pair_like = _node("product-x", "Product", low=3, high=9, name="X")
        fake_driver.queued = [[[{"pathNodes": [BUILDING, node, pair_like], "pathRels": []}]]]
        conn = GraphConnection(uri="bolt://test:7687", user="neo4j", password="secret")
        with patch("database.GraphDatabase.driver", return_value=fake_driver), patch("subgraph.db", conn):
            graph = fetch_building_graph("building-001", 2, "regulator")
        by_id = {n["id"]: n for n in graph["nodes"]}
        assert by_id["plaque-1"]["properties"] == {"id": "plaque-1", "year": 2025, "month": 6, "day": 30}
        assert by_id["product-x"]["properties"]["low"] == 3
        assert by_id["product-x"]["properties"]["name"] == "X"
