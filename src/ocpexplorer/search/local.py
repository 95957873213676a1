"""Local search over the OCP tables: keywords, categories and height ranges.

Matching is an OR of token substrings against each item's searchable
text, so results come back in table order rather than ranked by
relevance. Category keywords ("housing", "retail", ...) pull in a couple
of designations per detected category, and height phrases such as
"over 10 storeys" filter zoning districts by their metre limit.
"""

import logging
import math
import re

import mlflow
from mlflow.entities import SpanType

from ocpexplorer.core.types import (
    GeoPoint,
    HeightRange,
    LandUseItem,
    LocationItem,
    PolicyItem,
    ResultItem,
    ZoningItem,
)
from ocpexplorer.data.repository import LocalDataRepository
from ocpexplorer.location.resolver import LocationResolver

logger = logging.getLogger(__name__)

CATEGORY_KEYWORDS: dict[str, list[str]] = {
    "residential": ["residential", "housing", "homes", "apartments", "condos", "houses"],
    "mixed-use": ["mixed", "mixed-use", "mixed use", "combined"],
    "commercial": ["commercial", "retail", "business", "shops", "stores"],
    "employment": ["employment", "industrial", "work", "jobs", "office"],
    "environmental": ["park", "green", "environmental", "nature"],
}

METRES_PER_STOREY = 3
KEYWORD_SHARE = 0.6
MAX_PER_CATEGORY = 2
MAX_HEIGHT_RESULTS = 3

_UNIT = r"(storey|floor|metre|meter|m)s?\b"
_OVER_RE = re.compile(r"\bover (\d+)\s*" + _UNIT)
_UNDER_RE = re.compile(r"\bunder (\d+)\s*" + _UNIT)
_BETWEEN_RE = re.compile(r"\bbetween (\d+) and (\d+)\s*" + _UNIT)

_STRIP_RE = re.compile(r"[^\w\s\-']")


def tokenize(query: str) -> list[str]:
    """Lower-case, strip punctuation and split on whitespace."""
    return _STRIP_RE.sub(" ", query.strip()).lower().split()


def _to_metres(value: str, unit: str) -> int:
    factor = METRES_PER_STOREY if unit in ("storey", "floor") else 1
    return int(value) * factor


def parse_height_query(query: str) -> HeightRange | None:
    """Parse 'over N', 'under N' and 'between N and M' height phrases.

    'over 10 storeys' → HeightRange(min_m=30, max_m=None)
    'under 20m' → HeightRange(min_m=None, max_m=20)
    'between 5 and 15 floors' → HeightRange(min_m=15, max_m=45)
    """
    text = query.lower()
    if match := _OVER_RE.search(text):
        return HeightRange(min_m=_to_metres(match.group(1), match.group(2)))
    if match := _UNDER_RE.search(text):
        return HeightRange(max_m=_to_metres(match.group(1), match.group(2)))
    if match := _BETWEEN_RE.search(text):
        unit = match.group(3)
        return HeightRange(
            min_m=_to_metres(match.group(1), unit),
            max_m=_to_metres(match.group(2), unit),
        )
    return None


def detect_categories(query: str) -> list[str]:
    text = query.lower()
    return [
        category
        for category, keywords in CATEGORY_KEYWORDS.items()
        if any(keyword in text for keyword in keywords)
    ]


def remove_duplicates(results: list[ResultItem]) -> list[ResultItem]:
    """Drop repeated (type, code-or-name) items, keeping the first occurrence."""
    seen: set[tuple[str, str]] = set()
    unique = []
    for item in results:
        if item.dedupe_key in seen:
            continue
        seen.add(item.dedupe_key)
        unique.append(item)
    return unique


def _first_match(tokens: list[str], text: str) -> str | None:
    return next((t for t in tokens if t in text), None)


class LocalSearchEngine:
    def __init__(self, repository: LocalDataRepository, resolver: LocationResolver):
        self.repository = repository
        self.resolver = resolver

    def search_by_keywords(self, query: str) -> list[ResultItem]:
        """Items whose searchable text contains any query token, in table order."""
        tokens = tokenize(query)
        if not tokens:
            return []

        results: list[ResultItem] = []
        for d in self.repository.land_uses():
            text = " ".join([
                d.code, d.name, d.description, d.category,
                *d.principal_uses, *d.complementary_uses,
            ]).lower()
            if token := _first_match(tokens, text):
                results.append(LandUseItem(
                    code=d.code, name=d.name, description=d.description,
                    category=d.category, designation=d,
                    match_reason=f"Keyword: {token}",
                ))

        for z in self.repository.zoning_districts():
            text = f"{z.code} {z.name} {z.category}".lower()
            if token := _first_match(tokens, text):
                results.append(ZoningItem(
                    code=z.code, name=z.name, description=_describe_zone(z),
                    category=z.category, height=z.max_height, district=z,
                    match_reason=f"Keyword: {token}",
                ))

        for p in self.repository.policies():
            text = f"{p.title} {p.text} {p.category}".lower()
            if token := _first_match(tokens, text):
                results.append(PolicyItem(
                    code=p.path, name=p.title, description=p.text,
                    category=p.category, policy=p,
                    match_reason=f"Keyword: {token}",
                ))
        return results

    def search_by_categories(self, query: str) -> list[ResultItem]:
        results: list[ResultItem] = []
        for category in detect_categories(query):
            for d in self.repository.search_by_category(category)[:MAX_PER_CATEGORY]:
                results.append(LandUseItem(
                    code=d.code, name=d.name, description=d.description,
                    category=d.category, designation=d,
                    match_reason=f"Category: {category}",
                ))
        return results

    def search_by_height(self, query: str) -> list[ResultItem]:
        height_range = parse_height_query(query)
        if height_range is None:
            return []
        districts = self.repository.search_by_height(height_range)
        return [
            ZoningItem(
                code=z.code, name=z.name, description=_describe_zone(z),
                category=z.category, height=z.max_height, district=z,
                match_reason=f"Height: {z.max_height}",
            )
            for z in districts[:MAX_HEIGHT_RESULTS]
        ]

    def location_item(self, location: GeoPoint) -> LocationItem | None:
        info = self.resolver.resolve(location.lat, location.lng)
        if info.land_use is None:
            return None
        return LocationItem(
            code=info.land_use.code,
            name=f"Current Location: {info.land_use.name}",
            description=info.land_use.description,
            location=info,
            match_reason="Your selected location",
        )

    def collect(
        self,
        query: str,
        max_results: int = 10,
        location: GeoPoint | None = None,
    ) -> list[ResultItem]:
        """Every deduplicated match, before truncation to max_results."""
        results: list[ResultItem] = []
        results.extend(self.search_by_keywords(query)[: math.floor(max_results * KEYWORD_SHARE)])
        results.extend(self.search_by_categories(query))
        results.extend(self.search_by_height(query))

        if location is not None:
            item = self.location_item(location)
            if item is not None:
                results.insert(0, item)

        return remove_duplicates(results)

    @mlflow.trace(name="local_search", span_type=SpanType.RETRIEVER)
    def search_page(
        self,
        query: str,
        max_results: int = 10,
        location: GeoPoint | None = None,
    ) -> tuple[list[ResultItem], int]:
        """Up to max_results items plus the match count before truncation."""
        results = self.collect(query, max_results, location)
        logger.debug("Local search %r: %d matches", query, len(results))
        return results[:max_results], len(results)

    def search(
        self,
        query: str,
        max_results: int = 10,
        location: GeoPoint | None = None,
    ) -> list[ResultItem]:
        return self.search_page(query, max_results, location)[0]


def _describe_zone(z) -> str:
    parts = []
    if z.max_height:
        parts.append(f"Max height {z.max_height}")
    if z.max_far:
        parts.append(f"FAR {z.max_far}")
    if z.lot_coverage:
        parts.append(f"lot coverage {z.lot_coverage}")
    return ", ".join(parts)
