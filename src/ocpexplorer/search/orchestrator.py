"""Search orchestrator — local vs. AI dispatch, fallback, caching and history.

Per call:
  1. Validate and normalize the query (empty → method "none", no caching)
  2. Wait for the OCP tables (unavailable → method "not-ready")
  3. Serve from the bounded cache when a fresh entry exists
  4. Dispatch: simple queries and mode="local" go to the local engine,
     everything else to the AI proxy with local fallback on any failure
  5. Cache the result and record the query in history

``search()`` never raises; unexpected errors come back as method "error".
"""

import logging
import re
import time
from collections import OrderedDict
from dataclasses import dataclass

import mlflow
from mlflow.entities import SpanType

from ocpexplorer.core.errors import DataUnavailable, QueryInvalid
from ocpexplorer.core.types import (
    LAND_USE_CATEGORIES,
    AIAnswerItem,
    AIMentionedItem,
    GeoPoint,
    ResultItem,
    SearchMode,
    SearchResult,
)
from ocpexplorer.data.repository import LocalDataRepository
from ocpexplorer.search.ai_client import AIProxyClient
from ocpexplorer.search.contract import AIProxyResponse
from ocpexplorer.search.local import LocalSearchEngine

logger = logging.getLogger(__name__)

MAX_QUERY_LENGTH = 500
DEFAULT_AI_CONFIDENCE = 0.8
ERROR_SUGGESTION = "Try simplifying your search or check your internet connection."

_CATEGORY_WORDS = "|".join(c.replace("-", ".?") for c in (*LAND_USE_CATEGORIES, "industrial"))

SIMPLE_QUERY_PATTERNS = [
    re.compile(rf"^({_CATEGORY_WORDS})$"),
    re.compile(r"^[a-z]{1,4}\d{1,2}$"),  # zone codes: r1, rs1, mu2
    re.compile(r"^\d+\s*(storey|floor|metre|meter)s?$"),
    re.compile(r"^(height|density|far|zoning|land.?use)$"),
]

DISALLOWED_PATTERNS = [
    re.compile(r"<\s*script", re.IGNORECASE),
    re.compile(r"javascript:", re.IGNORECASE),
]

COMMON_TERMS = [
    "residential areas", "commercial zones", "mixed-use buildings",
    "building heights", "zoning restrictions", "office space",
    "healthcare facilities", "transit areas", "industrial zones",
    "heritage buildings", "density limits", "special employment area",
]
MAX_SUGGESTIONS = 8

_STRIP_RE = re.compile(r"[^\w\s\-']")
_SPACE_RE = re.compile(r"\s+")


def validate_query(query: str) -> None:
    """Reject queries the AI proxy would refuse outright.

    Raises:
        QueryInvalid: when the query is too long or contains a script payload.
    """
    if len(query) > MAX_QUERY_LENGTH:
        raise QueryInvalid(f"Query too long (max {MAX_QUERY_LENGTH} characters)")
    if any(p.search(query) for p in DISALLOWED_PATTERNS):
        raise QueryInvalid("Query contains disallowed content")


def normalize_query(query: str) -> str:
    """Trim, drop special characters except hyphens/apostrophes, collapse spaces, lower-case."""
    cleaned = _STRIP_RE.sub(" ", query.strip())
    return _SPACE_RE.sub(" ", cleaned).strip().lower()


def is_simple_query(query: str) -> bool:
    return any(p.match(query.strip()) for p in SIMPLE_QUERY_PATTERNS)


def cache_key(query: str, location: GeoPoint | None) -> str:
    lat = location.lat if location else ""
    lng = location.lng if location else ""
    return f"{query}_{lat}_{lng}"


@dataclass(frozen=True)
class HistoryEntry:
    query: str
    method: str
    timestamp: float


class SearchOrchestrator:
    def __init__(
        self,
        repository: LocalDataRepository,
        engine: LocalSearchEngine,
        ai_client: AIProxyClient,
        cache_size: int = 50,
        cache_ttl_seconds: int = 1800,
        history_size: int = 20,
        default_max_results: int = 10,
        clock=time.time,
    ):
        self.repository = repository
        self.engine = engine
        self.ai_client = ai_client
        self.cache_size = cache_size
        self.cache_ttl_seconds = cache_ttl_seconds
        self.history_size = history_size
        self.default_max_results = default_max_results
        self._clock = clock
        self._cache: OrderedDict[str, SearchResult] = OrderedDict()
        self._history: list[HistoryEntry] = []

    @property
    def is_initialized(self) -> bool:
        return self.repository.is_loaded

    async def initialize(self) -> None:
        """Wait for the shared repository load. Raises DataUnavailable."""
        await self.repository.load()
        logger.info("Search engine initialized")

    @mlflow.trace(name="ocp_search", span_type=SpanType.CHAIN)
    async def search(
        self,
        query: str,
        location: GeoPoint | None = None,
        mode: SearchMode = "auto",
        max_results: int | None = None,
    ) -> SearchResult:
        if max_results is None:
            max_results = self.default_max_results
        max_results = max(1, max_results)
        try:
            validate_query(query)
            clean = normalize_query(query)
            if not clean:
                return SearchResult(method="none", error="Empty query")

            if not self.is_initialized:
                try:
                    await self.initialize()
                except DataUnavailable as e:
                    logger.error("Search requested before OCP data was available: %s", e)
                    return SearchResult(
                        method="not-ready", query=clean,
                        error=f"Search engine initializing: {e}",
                    )

            key = cache_key(clean, location)
            cached = self._cache_get(key)
            if cached is not None:
                logger.info("Search cache hit for: %s", clean[:40])
                self._add_to_history(clean, cached.method)
                return cached

            if mode == "local" or (mode == "auto" and is_simple_query(clean)):
                result = self.local_search(clean, location, max_results)
            else:
                try:
                    result = await self.ai_search(query.strip(), location, max_results)
                except Exception as e:
                    logger.warning("AI search failed, falling back to local search: %s", e)
                    result = self.local_search(clean, location, max_results)
                    result.fallback = True
                    result.ai_error = str(e)

            self._cache_put(key, result)
            self._add_to_history(clean, result.method)
            logger.info(
                "Search complete: %d results via %s", len(result.results), result.method,
                extra={"query": clean[:80], "method": result.method},
            )
            return result

        except QueryInvalid as e:
            logger.warning("Rejected query: %s", e)
            return SearchResult(method="error", error=str(e), suggestion=ERROR_SUGGESTION)
        except Exception as e:
            logger.exception("Search error")
            return SearchResult(method="error", error=str(e), suggestion=ERROR_SUGGESTION)

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    def local_search(
        self, query: str, location: GeoPoint | None, max_results: int,
    ) -> SearchResult:
        page, total = self.engine.search_page(query, max_results, location)
        return SearchResult(
            results=page,
            method="local",
            query=query,
            total_found=total,
        )

    async def ai_search(
        self, query: str, location: GeoPoint | None, max_results: int,
    ) -> SearchResult:
        context = self.build_ai_context(query, location)
        answer = await self.ai_client.ask(query, context, location, max_results)
        results = self.process_ai_results(answer, max_results)
        return SearchResult(
            results=results,
            method="ai",
            query=query,
            total_found=len(results),
            ai_response=answer.answer,
            confidence=answer.confidence if answer.confidence is not None else DEFAULT_AI_CONFIDENCE,
            citations=list(answer.citations),
        )

    def build_ai_context(self, query: str | None, location: GeoPoint | None) -> dict:
        """Summarize local data for the AI prompt."""
        context: dict = {
            "availableData": self.repository.data_summary(),
            "queryLocation": {"lat": location.lat, "lng": location.lng} if location else None,
            "userQuery": query,
            "relevantDesignations": [
                {"code": d.code, "name": d.name, "category": d.category, "maxHeight": d.max_height}
                for d in self.repository.search_by_category("residential")[:3]
            ],
            "relevantPolicies": [
                {"policy": p.path, "title": p.title}
                for p in self.repository.get_policies_by_category("economy")[:2]
            ],
        }
        if query:
            context["searchResults"] = [
                {"type": item.type, "code": item.code, "name": item.name,
                 "description": item.description}
                for item in self.engine.search_by_keywords(query)[:5]
            ]
        return context

    def process_ai_results(self, answer: AIProxyResponse, max_results: int) -> list[ResultItem]:
        results: list[ResultItem] = []
        for area in answer.mentioned_areas:
            designation = self.repository.get_land_use(area)
            if designation is not None:
                results.append(AIMentionedItem(
                    code=area,
                    name=designation.name,
                    description=designation.description,
                    designation=designation,
                    match_reason="Mentioned by AI",
                ))

        if answer.answer:
            results.insert(0, AIAnswerItem(
                name="AI Assistant Response",
                description=answer.answer,
                confidence=answer.confidence,
                citations=tuple(answer.citations),
                match_reason="Natural language processing",
            ))
        return results[:max_results]

    # ------------------------------------------------------------------
    # Cache: bounded, oldest-inserted evicted first
    # ------------------------------------------------------------------

    def _cache_get(self, key: str) -> SearchResult | None:
        result = self._cache.get(key)
        if result is None:
            return None
        if self.cache_ttl_seconds > 0 and result.cached_at is not None:
            if self._clock() - result.cached_at >= self.cache_ttl_seconds:
                del self._cache[key]
                return None
        return result

    def _cache_put(self, key: str, result: SearchResult) -> None:
        if self.cache_size <= 0:
            return
        self._cache.pop(key, None)
        if len(self._cache) >= self.cache_size:
            self._cache.popitem(last=False)
        result.cached_at = self._clock()
        self._cache[key] = result

    # ------------------------------------------------------------------
    # History, suggestions, stats
    # ------------------------------------------------------------------

    def _add_to_history(self, query: str, method: str) -> None:
        self._history.insert(0, HistoryEntry(query=query, method=method, timestamp=self._clock()))
        del self._history[self.history_size:]

    @property
    def history(self) -> list[HistoryEntry]:
        return list(self._history)

    def get_suggestions(self, partial: str) -> list[str]:
        if not partial or len(partial) < 2:
            return []
        needle = partial.lower()
        suggestions: dict[str, None] = {}
        for term in COMMON_TERMS:
            if needle in term:
                suggestions.setdefault(term, None)
        for entry in self._history:
            if needle in entry.query.lower():
                suggestions.setdefault(entry.query, None)
        return list(suggestions)[:MAX_SUGGESTIONS]

    def get_stats(self) -> dict:
        breakdown: dict[str, int] = {}
        for entry in self._history:
            breakdown[entry.method] = breakdown.get(entry.method, 0) + 1
        return {
            "total_searches": len(self._history),
            "method_breakdown": breakdown,
            "cache_size": len(self._cache),
            "recent_queries": [entry.query for entry in self._history[:5]],
        }

    def clear_history(self) -> None:
        self._history.clear()
        self._cache.clear()
