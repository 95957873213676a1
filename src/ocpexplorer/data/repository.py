"""Local OCP data repository — land use, zoning and policy tables.

Loads three static JSON documents once per process. Concurrent callers of
``load()`` share a single in-flight task, so the files are fetched exactly
once no matter how many components await readiness at startup. If any of
the three documents fails, nothing is published and every caller sees the
same DataUnavailable.

Read accessors never raise: before a successful load they return None or
an empty list, and callers are expected to check ``is_loaded``.
"""

import asyncio
import logging
import re
from dataclasses import dataclass

import httpx

from ocpexplorer.core.errors import DataUnavailable
from ocpexplorer.core.types import HeightRange, LandUseDesignation, Policy, ZoningDistrict
from ocpexplorer.data.sources import FETCH_TIMEOUT, fetch_json, join_source

logger = logging.getLogger(__name__)

LAND_USE_FILE = "land-use.json"
ZONING_FILE = "zoning.json"
POLICIES_FILE = "ocp-policies.json"

_HEIGHT_RE = re.compile(r"(\d+(?:\.\d+)?)\s*m\b", re.IGNORECASE)


def parse_height(height: str | None) -> float | None:
    """Extract the metre figure from a zoning height string.

    '12m' → 12.0
    '10.7m' → 10.7
    '3 storeys' → None
    """
    if not height:
        return None
    match = _HEIGHT_RE.search(height)
    return float(match.group(1)) if match else None


@dataclass(frozen=True)
class _Tables:
    land_use: dict[str, LandUseDesignation]
    zoning: dict[str, dict[str, ZoningDistrict]]
    policies: dict[str, dict[str, Policy]]
    guidelines: dict[str, dict]


def _build_tables(land_use_doc: dict, zoning_doc: dict, policies_doc: dict) -> _Tables:
    try:
        land_use = {
            code: LandUseDesignation.from_json(code, raw)
            for code, raw in land_use_doc["landUseDesignations"].items()
        }
        zoning = {
            category: {
                code: ZoningDistrict.from_json(code, category, raw)
                for code, raw in districts.items()
            }
            for category, districts in zoning_doc["zoningDistricts"].items()
        }
        policies = {
            category: {
                key: Policy(
                    category=category,
                    key=key,
                    title=raw.get("title", key),
                    text=raw.get("text", ""),
                )
                for key, raw in entries.items()
            }
            for category, entries in policies_doc["policies"].items()
        }
    except (KeyError, AttributeError, TypeError) as e:
        raise DataUnavailable(f"Malformed OCP data: {e}") from e

    return _Tables(
        land_use=land_use,
        zoning=zoning,
        policies=policies,
        guidelines=dict(policies_doc.get("developmentGuidelines") or {}),
    )


class LocalDataRepository:
    """Keyed, read-only access to the OCP land use, zoning and policy tables."""

    def __init__(self, source: str):
        self.source = source
        self._tables: _Tables | None = None
        self._load_task: asyncio.Task | None = None

    @property
    def is_loaded(self) -> bool:
        return self._tables is not None

    async def load(self) -> None:
        """Load all tables, sharing one in-flight load between concurrent callers.

        Raises:
            DataUnavailable: if any of the three documents cannot be loaded.
        """
        if self._load_task is None:
            self._load_task = asyncio.ensure_future(self._load_all())
        # Shielded so a cancelled caller does not cancel the shared load
        await asyncio.shield(self._load_task)

    async def _load_all(self) -> None:
        logger.info("Loading OCP data from %s", self.source)
        async with httpx.AsyncClient(timeout=FETCH_TIMEOUT) as client:
            land_use_doc, zoning_doc, policies_doc = await asyncio.gather(
                fetch_json(client, join_source(self.source, LAND_USE_FILE)),
                fetch_json(client, join_source(self.source, ZONING_FILE)),
                fetch_json(client, join_source(self.source, POLICIES_FILE)),
            )

        tables = _build_tables(land_use_doc, zoning_doc, policies_doc)
        self._tables = tables
        logger.info(
            "OCP data loaded: %d land use designations, %d zoning districts, %d policies",
            len(tables.land_use),
            sum(len(d) for d in tables.zoning.values()),
            sum(len(p) for p in tables.policies.values()),
        )

    # ------------------------------------------------------------------
    # Keyed lookups
    # ------------------------------------------------------------------

    def get_land_use(self, code: str) -> LandUseDesignation | None:
        if self._tables is None:
            logger.warning("OCP data not loaded yet")
            return None
        return self._tables.land_use.get(code)

    def get_zoning(self, code: str) -> ZoningDistrict | None:
        """Find a zone across all zoning categories. Codes are globally unique."""
        if self._tables is None:
            logger.warning("OCP data not loaded yet")
            return None
        for districts in self._tables.zoning.values():
            if code in districts:
                return districts[code]
        return None

    def get_policy(self, path: str) -> Policy | None:
        """Look up a policy by '{category}.{key}', e.g. 'economy.3.1'."""
        if self._tables is None:
            return None
        category, _, key = path.partition(".")
        return self._tables.policies.get(category, {}).get(key)

    def get_policies_by_category(self, category: str) -> list[Policy]:
        if self._tables is None:
            return []
        return list(self._tables.policies.get(category, {}).values())

    def get_development_guidelines(self, area: str) -> dict | None:
        if self._tables is None:
            return None
        return self._tables.guidelines.get(area)

    # ------------------------------------------------------------------
    # Filters and iteration
    # ------------------------------------------------------------------

    def land_uses(self) -> list[LandUseDesignation]:
        if self._tables is None:
            return []
        return list(self._tables.land_use.values())

    def zoning_districts(self) -> list[ZoningDistrict]:
        if self._tables is None:
            return []
        return [d for districts in self._tables.zoning.values() for d in districts.values()]

    def policies(self) -> list[Policy]:
        if self._tables is None:
            return []
        return [p for entries in self._tables.policies.values() for p in entries.values()]

    def search_by_category(self, category: str) -> list[LandUseDesignation]:
        """Land use designations in a category, in source order."""
        return [d for d in self.land_uses() if d.category == category]

    def search_by_height(self, height_range: HeightRange) -> list[ZoningDistrict]:
        """Zoning districts whose metre height limit falls within the range (inclusive)."""
        results = []
        for district in self.zoning_districts():
            height_m = parse_height(district.max_height)
            if height_m is not None and height_range.contains(height_m):
                results.append(district)
        return results

    # ------------------------------------------------------------------
    # Summaries
    # ------------------------------------------------------------------

    def unique_categories(self) -> list[str]:
        seen: dict[str, None] = {}
        for designation in self.land_uses():
            if designation.category:
                seen.setdefault(designation.category, None)
        return list(seen)

    def data_summary(self) -> dict | None:
        if self._tables is None:
            return None
        return {
            "land_use_designations": len(self._tables.land_use),
            "zoning_districts": len(self.zoning_districts()),
            "policies": len(self.policies()),
            "categories": self.unique_categories(),
        }
