"""Neo4j wire value normalization.

Every value that leaves the graph store passes through here before it
reaches application logic. Values arrive in a handful of shapes:

    * plain Python scalars (the bolt driver decodes integers natively)
    * 64-bit integers serialized as ``{"low": int, "high": int}`` pairs
      (JavaScript drivers and JSON exports)
    * dates, either ``neo4j.time.Date`` or ``{"year", "month", "day"}``
      structs whose parts may themselves be low/high pairs
    * graph objects (Node, Relationship, Path)
    * maps and lists of any of the above

``wire_kind`` tags a value with one of these shapes; the three public
converters dispatch on that tag:

    to_number(value)        # numeric context: null -> 0
    normalize_value(value)  # JSON-safe native value
    format_value(value)     # display string
"""

from __future__ import annotations

import datetime
import json
import math

from neo4j.graph import Node, Path, Relationship
from neo4j.time import Date, DateTime, Duration, Time

NULL = "null"
BOOL = "bool"
INT = "int"
FLOAT = "float"
STRING = "string"
INT_PAIR = "int_pair"
DATE_STRUCT = "date_struct"
DATE = "date"
TEMPORAL = "temporal"
NODE = "node"
RELATIONSHIP = "relationship"
PATH = "path"
MAP = "map"
LIST = "list"
OTHER = "other"

MISSING_DISPLAY = "—"


INT_PAIR_KEYS = frozenset({"low", "high"})
DATE_STRUCT_KEYS = frozenset({"year", "month", "day"})


def _is_plain_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_int_pair(value: dict) -> bool:
    return value.keys() == INT_PAIR_KEYS and all(_is_plain_int(v) for v in value.values())


def _is_date_struct(value: dict) -> bool:
    if value.keys() != DATE_STRUCT_KEYS:
        return False
    return all(_is_plain_int(v) or (isinstance(v, dict) and _is_int_pair(v)) for v in value.values())


def wire_kind(value) -> str:
    """Classify a raw store value. Order matters: bool before int, pairs before maps.

    A map is only read as an integer pair or a date struct when its key set
    is exactly that shape and every part is an integer; node and
    relationship property maps that merely contain such keys stay maps.
    """
    if value is None:
        return NULL
    if isinstance(value, bool):
        return BOOL
    if isinstance(value, int):
        return INT
    if isinstance(value, float):
        return FLOAT
    if isinstance(value, str):
        return STRING
    if isinstance(value, dict):
        if _is_int_pair(value):
            return INT_PAIR
        if _is_date_struct(value):
            return DATE_STRUCT
        return MAP
    if isinstance(value, (Date, datetime.date)) and not isinstance(value, (DateTime, datetime.datetime)):
        return DATE
    if isinstance(value, (DateTime, Time, Duration, datetime.datetime, datetime.time)):
        return TEMPORAL
    if isinstance(value, Node):
        return NODE
    if isinstance(value, Relationship):
        return RELATIONSHIP
    if isinstance(value, Path):
        return PATH
    if isinstance(value, (list, tuple)):
        return LIST
    return OTHER


def _pair_low(value: dict) -> int:
    # Values beyond 53 bits lose precision here; only the low word is read.
    return int(value["low"])


def _date_part(part) -> int:
    if wire_kind(part) == INT_PAIR:
        return _pair_low(part)
    return int(part)


def _format_date(year, month, day) -> str:
    return f"{_date_part(year)}-{_date_part(month):02d}-{_date_part(day):02d}"


def _format_number(value) -> str:
    """Thousands separators, at most three fraction digits."""
    if isinstance(value, float):
        if not math.isfinite(value):
            return str(value)
        if value.is_integer():
            return f"{int(value):,}"
        return f"{value:,.3f}".rstrip("0").rstrip(".")
    return f"{value:,}"


def to_number(value) -> int | float:
    """Numeric context conversion. Missing or unparseable values count as 0."""
    kind = wire_kind(value)
    if kind == BOOL:
        return int(value)
    if kind == INT:
        return value
    if kind == FLOAT:
        return value if math.isfinite(value) else 0
    if kind == INT_PAIR:
        return _pair_low(value)
    if kind == STRING:
        try:
            number = float(value)
        except ValueError:
            return 0
        if not math.isfinite(number):
            return 0
        return int(number) if number.is_integer() and "." not in value else number
    return 0


def normalize_value(value):
    """Convert a store value into plain JSON-safe Python data."""
    kind = wire_kind(value)
    if kind in (NULL, BOOL, INT, FLOAT, STRING):
        return value
    if kind == INT_PAIR:
        return _pair_low(value)
    if kind == DATE_STRUCT:
        return _format_date(value["year"], value["month"], value["day"])
    if kind == DATE:
        return _format_date(value.year, value.month, value.day)
    if kind == TEMPORAL:
        return value.iso_format() if hasattr(value, "iso_format") else value.isoformat()
    if kind == NODE:
        # Internal element ids are never exposed for nodes.
        return {"_labels": sorted(value.labels), **normalize_value(dict(value))}
    if kind == RELATIONSHIP:
        return {"_id": str(value.element_id), "_type": value.type, **normalize_value(dict(value))}
    if kind == PATH:
        return {
            "nodes": [normalize_value(n) for n in value.nodes],
            "relationships": [normalize_value(r) for r in value.relationships],
        }
    if kind == MAP:
        return {str(k): normalize_value(v) for k, v in value.items()}
    if kind == LIST:
        return [normalize_value(v) for v in value]
    return str(value)


def format_value(value) -> str:
    """Render a store value for display."""
    kind = wire_kind(value)
    if kind == NULL:
        return MISSING_DISPLAY
    if kind == BOOL:
        return "Yes" if value else "No"
    if kind in (INT, FLOAT):
        return _format_number(value)
    if kind == INT_PAIR:
        return _format_number(_pair_low(value))
    if kind == STRING:
        return value
    if kind in (DATE_STRUCT, DATE, TEMPORAL):
        return normalize_value(value)
    return json.dumps(normalize_value(value), default=str, ensure_ascii=False)


def normalize_record(record) -> dict:
    """Convert one driver record (or any mapping) into a plain dict."""
    return {key: normalize_value(record[key]) for key in record.keys()}


def result_single(rows: list[dict]) -> dict | None:
    """First row, or None if the query returned nothing."""
    return rows[0] if rows else None


def result_value(rows: list[dict], key: str, default=None):
    """A single column of the first row, or ``default`` when absent or null."""
    row = result_single(rows)
    if row is None:
        return default
    value = row.get(key)
    return default if value is None else value
