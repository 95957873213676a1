"""Domain types for the OCP explorer.

All shared dataclasses and type definitions live here to prevent
circular imports and establish a single source of truth for the
domain model. Every other module imports from here.
"""

from dataclasses import asdict, dataclass, field
from typing import ClassVar, Literal

# ---------------------------------------------------------------------------
# Boundary geometry
# ---------------------------------------------------------------------------

# GeoJSON order: (longitude, latitude)
Coordinate = tuple[float, float]
BoundaryRing = tuple[Coordinate, ...]
BoundarySet = tuple[BoundaryRing, ...]


@dataclass(frozen=True)
class BoundaryCheck:
    """Answer to a point-in-boundary query.

    ``approximate`` is True when the answer came from the fixed bounding box
    because no boundary rings are loaded.
    """

    inside: bool
    approximate: bool = False

    def __bool__(self) -> bool:
        return self.inside


# ---------------------------------------------------------------------------
# OCP tables
# ---------------------------------------------------------------------------

LAND_USE_CATEGORIES = (
    "residential",
    "commercial",
    "mixed-use",
    "employment",
    "environmental",
    "institutional",
)


@dataclass(frozen=True)
class LandUseDesignation:
    """A land-use designation from the OCP land-use map (e.g. RD, RM, MH)."""

    code: str
    name: str
    description: str = ""
    category: str = ""
    max_density: str = ""
    max_height: str | None = None
    principal_uses: tuple[str, ...] = ()
    complementary_uses: tuple[str, ...] = ()

    @classmethod
    def from_json(cls, code: str, raw: dict) -> "LandUseDesignation":
        return cls(
            code=code,
            name=raw.get("name", code),
            description=raw.get("description", ""),
            category=raw.get("category", ""),
            max_density=raw.get("maxDensity", ""),
            max_height=raw.get("maxHeight"),
            principal_uses=tuple(raw.get("principalUses") or ()),
            complementary_uses=tuple(raw.get("complementaryUses") or ()),
        )


@dataclass(frozen=True)
class ZoningDistrict:
    """A zoning district, nested under a zoning category in zoning.json."""

    code: str
    name: str
    category: str = ""
    max_height: str | None = None
    max_far: str | None = None
    lot_coverage: str | None = None

    @classmethod
    def from_json(cls, code: str, category: str, raw: dict) -> "ZoningDistrict":
        return cls(
            code=code,
            name=raw.get("name", code),
            category=category,
            max_height=raw.get("maxHeight"),
            max_far=raw.get("maxFAR"),
            lot_coverage=raw.get("lotCoverage"),
        )


@dataclass(frozen=True)
class Policy:
    """An OCP policy statement, addressed as ``{category}.{key}``."""

    category: str
    key: str
    title: str
    text: str = ""

    @property
    def path(self) -> str:
        return f"{self.category}.{self.key}"


@dataclass(frozen=True)
class HeightRange:
    """Requested building height range in metres; None means unbounded."""

    min_m: float | None = None
    max_m: float | None = None

    def contains(self, height_m: float) -> bool:
        if self.min_m is not None and height_m < self.min_m:
            return False
        if self.max_m is not None and height_m > self.max_m:
            return False
        return True


# ---------------------------------------------------------------------------
# Location lookup
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class GeoPoint:
    """A WGS84 coordinate supplied with a search."""

    lat: float
    lng: float


@dataclass(frozen=True)
class LocationInfo:
    """What applies at a coordinate. Built fresh per query."""

    lat: float
    lng: float
    within_boundary: bool
    boundary_approximate: bool = False
    land_use: LandUseDesignation | None = None
    zoning: ZoningDistrict | None = None
    policies: tuple[Policy, ...] = ()

    def to_dict(self) -> dict:
        return asdict(self)


# ---------------------------------------------------------------------------
# Search result items, one dataclass per discriminant
# ---------------------------------------------------------------------------

@dataclass(frozen=True, kw_only=True)
class _ResultItemBase:
    type: ClassVar[str]

    name: str
    description: str = ""
    code: str | None = None
    match_reason: str = ""

    @property
    def dedupe_key(self) -> tuple[str, str]:
        return (self.type, self.code or self.name)

    def to_dict(self) -> dict:
        return {"type": self.type, **asdict(self)}


@dataclass(frozen=True, kw_only=True)
class LandUseItem(_ResultItemBase):
    type: ClassVar[str] = "land-use"

    category: str = ""
    designation: LandUseDesignation


@dataclass(frozen=True, kw_only=True)
class ZoningItem(_ResultItemBase):
    type: ClassVar[str] = "zoning"

    category: str = ""
    height: str | None = None
    district: ZoningDistrict


@dataclass(frozen=True, kw_only=True)
class PolicyItem(_ResultItemBase):
    type: ClassVar[str] = "policy"

    category: str = ""
    policy: Policy


@dataclass(frozen=True, kw_only=True)
class LocationItem(_ResultItemBase):
    type: ClassVar[str] = "location-specific"

    location: LocationInfo


@dataclass(frozen=True, kw_only=True)
class AIAnswerItem(_ResultItemBase):
    type: ClassVar[str] = "ai-answer"

    confidence: float | None = None
    citations: tuple[str, ...] = ()


@dataclass(frozen=True, kw_only=True)
class AIMentionedItem(_ResultItemBase):
    type: ClassVar[str] = "ai-mentioned"

    designation: LandUseDesignation


ResultItem = LandUseItem | ZoningItem | PolicyItem | LocationItem | AIAnswerItem | AIMentionedItem


# ---------------------------------------------------------------------------
# Search results
# ---------------------------------------------------------------------------

SearchMode = Literal["auto", "local", "ai"]
SearchMethod = Literal["local", "ai", "error", "none", "not-ready"]


@dataclass
class SearchResult:
    """Normalized outcome of one orchestrator search."""

    results: list[ResultItem] = field(default_factory=list)
    method: SearchMethod = "none"
    query: str = ""
    total_found: int = 0
    ai_response: str | None = None
    confidence: float | None = None
    citations: list[str] = field(default_factory=list)
    fallback: bool = False
    ai_error: str | None = None
    error: str | None = None
    suggestion: str | None = None
    cached_at: float | None = None

    def to_dict(self) -> dict:
        return {
            "results": [item.to_dict() for item in self.results],
            "method": self.method,
            "query": self.query,
            "total_found": self.total_found,
            "ai_response": self.ai_response,
            "confidence": self.confidence,
            "citations": list(self.citations),
            "fallback": self.fallback,
            "ai_error": self.ai_error,
            "error": self.error,
            "suggestion": self.suggestion,
            "cached_at": self.cached_at,
        }
