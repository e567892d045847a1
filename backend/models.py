"""Pydantic schemas for the building passport graph API."""

from datetime import date
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


# ========================================
# Graph projection
# ========================================

class GraphNode(BaseModel):
    """A node keyed by its application-assigned ``id`` property."""
    id: str
    labels: list[str] = Field(default_factory=list)
    properties: dict[str, Any] = Field(default_factory=dict)


class GraphRelationship(BaseModel):
    """A relationship between two nodes, referenced by their business ids."""
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., description="Store-internal relationship id, as a string")
    type: str
    from_: Optional[str] = Field(None, alias="from")
    to: Optional[str] = None
    properties: dict[str, Any] = Field(default_factory=dict)


class GraphData(BaseModel):
    nodes: list[GraphNode] = Field(default_factory=list)
    relationships: list[GraphRelationship] = Field(default_factory=list)


class GraphStats(BaseModel):
    nodes: int
    relationships: int
    connected: bool


# ========================================
# Carbon
# ========================================

class CarbonCategory(BaseModel):
    name: str
    gwp: int = Field(..., description="kg CO2e, rounded to a whole unit")
    percentage: float = Field(..., description="Share of the signed building total, one decimal")


class CarbonBreakdown(BaseModel):
    """Two-level GWP tree: the building total and one child per element category."""
    name: str
    gwp: int
    percentage: int = 100
    children: list[CarbonCategory] = Field(default_factory=list)


# ========================================
# Risks
# ========================================

class RiskType(str, Enum):
    SINGLE_SOURCE = "single_source"
    EXPIRING_CERT = "expiring_cert"
    CONCENTRATION = "concentration"
    GEOGRAPHIC = "geographic"


class RiskSeverity(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class RiskItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: RiskType
    severity: RiskSeverity
    title: str
    description: str
    affected_products: list[str] = Field(default_factory=list, alias="affectedProducts")


class RiskReport(BaseModel):
    risks: list[RiskItem] = Field(default_factory=list)


# ========================================
# Voice
# ========================================

class VoiceChatRequest(BaseModel):
    message: str = Field(..., min_length=1)


class VoiceChatResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    response: str
    intent: str
    cypher: Optional[str] = None
    result_count: int = Field(0, alias="resultCount")


class SpeakRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str = Field(..., min_length=1)
    voice_id: Optional[str] = Field(None, alias="voiceId")


# ========================================
# Errors
# ========================================

class ErrorResponse(BaseModel):
    error: str
    details: Optional[str] = None


# ========================================
# EPD import (EC3)
# ========================================

class EC3Manufacturer(BaseModel):
    name: str
    country: str


class EC3Plant(BaseModel):
    name: str
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class EC3Product(BaseModel):
    """One EPD record as returned by the EC3 API."""
    id: str
    name: str
    manufacturer: EC3Manufacturer
    plant_or_group: EC3Plant
    gwp: float
    declared_unit: str
    epd_url: Optional[str] = None
    valid_until: Optional[date] = None


class ImportNode(BaseModel):
    label: str
    properties: dict[str, Any]


class ImportRelationship(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    type: str
    from_: str = Field(..., alias="from")
    to: str
    properties: dict[str, Any] = Field(default_factory=dict)
