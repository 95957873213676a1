"""Core domain types shared across all ocpexplorer modules."""

from ocpexplorer.core.errors import AIServiceFailure, DataUnavailable, OCPError, QueryInvalid
from ocpexplorer.core.types import (
    AIAnswerItem,
    AIMentionedItem,
    BoundaryCheck,
    GeoPoint,
    HeightRange,
    LandUseDesignation,
    LandUseItem,
    LocationInfo,
    LocationItem,
    Policy,
    PolicyItem,
    ResultItem,
    SearchResult,
    ZoningDistrict,
    ZoningItem,
)

__all__ = [
    "AIAnswerItem",
    "AIMentionedItem",
    "AIServiceFailure",
    "BoundaryCheck",
    "DataUnavailable",
    "GeoPoint",
    "HeightRange",
    "LandUseDesignation",
    "LandUseItem",
    "LocationInfo",
    "LocationItem",
    "OCPError",
    "Policy",
    "PolicyItem",
    "QueryInvalid",
    "ResultItem",
    "SearchResult",
    "ZoningDistrict",
    "ZoningItem",
]
