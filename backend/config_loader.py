"""Configuration loader for the passport graph API.

Static domain tables (stakeholder views, traversal bounds, risk thresholds)
live in ``config/passport.yaml`` and are validated into pydantic models.
Every field defaults to the built-in value, so a missing or partial file
still yields a complete configuration.
"""

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, model_validator

logger = logging.getLogger(__name__)

CONFIG_PATH = Path(__file__).parent / "config" / "passport.yaml"


# =============================================================================
# PYDANTIC MODELS FOR CONFIGURATION VALIDATION
# =============================================================================

def _default_views() -> dict[str, list[str]]:
    return {
        "consumer": ["Building", "BuildingElement", "Product", "Certification", "Manufacturer"],
        "manufacturer": ["Building", "BuildingElement", "Product", "Plant", "Manufacturer", "Material"],
        "recycler": ["Product", "Material", "Certification", "BuildingElement"],
        "regulator": ["Building", "BuildingElement", "Product", "Certification", "Manufacturer", "Plant", "Location"],
    }


class TraversalConfig(BaseModel):
    """Bounds for the building subgraph walk."""
    default_depth: int = 2
    min_depth: int = 1
    max_depth: int = 4

    @model_validator(mode="after")
    def _check_bounds(self):
        if not self.min_depth <= self.default_depth <= self.max_depth:
            raise ValueError("default_depth must lie within [min_depth, max_depth]")
        return self


class ViewsConfig(BaseModel):
    """Stakeholder view -> node labels that view may see."""
    default: str = "consumer"
    labels: dict[str, list[str]] = Field(default_factory=_default_views)

    @model_validator(mode="after")
    def _check_default(self):
        if self.default not in self.labels:
            raise ValueError(f"default view '{self.default}' has no label list")
        return self


class CarbonConfig(BaseModel):
    default_building_name: str = "Building"
    uncategorized_label: str = "Uncategorized"


class SingleSourceConfig(BaseModel):
    high_severity_above: int = 5


class ExpiringCertConfig(BaseModel):
    window_days: int = 90
    limit: int = 10


class ConcentrationConfig(BaseModel):
    min_products: int = 3
    limit: int = 5
    high_severity_above: int = 10


class GeographicConfig(BaseModel):
    min_products: int = 5
    limit: int = 3
    trigger_above: int = 10


class RisksConfig(BaseModel):
    single_source: SingleSourceConfig = Field(default_factory=SingleSourceConfig)
    expiring_cert: ExpiringCertConfig = Field(default_factory=ExpiringCertConfig)
    concentration: ConcentrationConfig = Field(default_factory=ConcentrationConfig)
    geographic: GeographicConfig = Field(default_factory=GeographicConfig)


class PassportConfig(BaseModel):
    """Root configuration object."""
    traversal: TraversalConfig = Field(default_factory=TraversalConfig)
    views: ViewsConfig = Field(default_factory=ViewsConfig)
    carbon: CarbonConfig = Field(default_factory=CarbonConfig)
    risks: RisksConfig = Field(default_factory=RisksConfig)

    def allowed_labels(self, view: Optional[str]) -> list[str]:
        """Label allow-list for a view; unknown or missing views get the default."""
        if view and view in self.views.labels:
            return list(self.views.labels[view])
        return list(self.views.labels[self.views.default])

    def resolve_view(self, view: Optional[str]) -> str:
        return view if view and view in self.views.labels else self.views.default


# =============================================================================
# LOADING
# =============================================================================

def _config_path() -> Path:
    override = os.getenv("PASSPORT_CONFIG_PATH")
    return Path(override) if override else CONFIG_PATH


def load_config(path: Optional[Path] = None) -> PassportConfig:
    """Load and validate a configuration file. A missing file yields defaults."""
    path = path or _config_path()
    if not path.exists():
        logger.warning(f"Config file {path} not found, using built-in defaults")
        return PassportConfig()
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    return PassportConfig.model_validate(data)


@lru_cache(maxsize=1)
def get_config() -> PassportConfig:
    return load_config()


def reload_config() -> PassportConfig:
    get_config.cache_clear()
    return get_config()
