"""City boundary geometry — GeoJSON polygons and point-in-boundary tests.

The boundary dataset is a FeatureCollection of Polygon / MultiPolygon
features (main city area plus the Queensborough enclave). Every ring is
kept in a flat list and a point is inside the city when any ring contains
it, so separate parts behave as a union.

Hole rings are not subtracted by default: a point inside a hole is still
inside its own ring and reported as within the boundary. Pass
``subtract_holes=True`` to treat interior rings as cut-outs instead.

The test is planar ray casting over (lng, lat) — no geodesic correction.
When no rings are loaded the store answers from a fixed bounding box and
flags the answer as approximate.
"""

import asyncio
import logging
from collections.abc import Mapping
from pathlib import Path

import httpx

from ocpexplorer.core.errors import DataUnavailable
from ocpexplorer.core.types import BoundaryCheck, BoundaryRing, BoundarySet
from ocpexplorer.data.sources import FETCH_TIMEOUT, fetch_json

logger = logging.getLogger(__name__)

# Approximate rectangle around New Westminster, used when geometry is missing
FALLBACK_BOUNDS = {
    "north": 49.23,
    "south": 49.19,
    "east": -122.88,
    "west": -122.95,
}

# Each polygon is (exterior, *holes)
Polygon = tuple[BoundaryRing, ...]


def point_in_ring(lat: float, lng: float, ring: BoundaryRing) -> bool:
    """Ray casting: count edge crossings of a ray running east from the point."""
    inside = False
    j = len(ring) - 1
    for i in range(len(ring)):
        xi, yi = ring[i]
        xj, yj = ring[j]
        if (yi > lat) != (yj > lat):
            x_cross = (xj - xi) * (lat - yi) / (yj - yi) + xi
            if lng < x_cross:
                inside = not inside
        j = i
    return inside


def in_fallback_bounds(lat: float, lng: float) -> bool:
    b = FALLBACK_BOUNDS
    return b["south"] <= lat <= b["north"] and b["west"] <= lng <= b["east"]


def _parse_ring(raw) -> BoundaryRing | None:
    points = tuple((float(p[0]), float(p[1])) for p in raw)
    if len(set(points)) < 3:
        return None
    if points[0] != points[-1]:
        points = points + (points[0],)
    return points


def _parse_polygon(raw_rings) -> Polygon | None:
    rings = [r for r in (_parse_ring(raw) for raw in raw_rings) if r is not None]
    return tuple(rings) if rings else None


def _iter_geometries(data: Mapping):
    kind = data.get("type")
    if kind == "FeatureCollection":
        for feature in data.get("features") or []:
            geometry = (feature or {}).get("geometry")
            if geometry:
                yield geometry
    elif kind == "Feature":
        if data.get("geometry"):
            yield data["geometry"]
    elif kind in ("Polygon", "MultiPolygon"):
        yield data
    else:
        raise DataUnavailable(f"Unsupported GeoJSON type: {kind!r}")


def parse_polygons(data: Mapping) -> tuple[Polygon, ...]:
    """Extract every polygon from a GeoJSON document.

    Non-polygon geometries are ignored. Degenerate rings (fewer than three
    distinct points) are dropped and unclosed rings are closed.

    Raises:
        DataUnavailable: if the document is not GeoJSON or coordinates are malformed.
    """
    polygons: list[Polygon] = []
    try:
        for geometry in _iter_geometries(data):
            kind = geometry.get("type")
            coords = geometry.get("coordinates") or []
            if kind == "Polygon":
                parts = [coords]
            elif kind == "MultiPolygon":
                parts = coords
            else:
                logger.debug("Skipping %s geometry in boundary data", kind)
                continue
            for raw_rings in parts:
                polygon = _parse_polygon(raw_rings)
                if polygon:
                    polygons.append(polygon)
    except (TypeError, ValueError, IndexError, AttributeError) as e:
        raise DataUnavailable(f"Malformed boundary geometry: {e}") from e
    return tuple(polygons)


class BoundaryStore:
    """Owns the city BoundarySet and answers point-in-boundary queries."""

    def __init__(self, subtract_holes: bool = False):
        self.subtract_holes = subtract_holes
        self._polygons: tuple[Polygon, ...] = ()
        self._pending: dict[str, asyncio.Future] = {}

    @property
    def rings(self) -> BoundarySet:
        return tuple(ring for polygon in self._polygons for ring in polygon)

    @property
    def degraded(self) -> bool:
        """True when answers come from the fallback bounding box."""
        return not self._polygons

    async def load(self, source: str | Path | Mapping) -> BoundarySet:
        """Load boundary polygons from a path, URL, or parsed GeoJSON mapping.

        Concurrent loads of the same path or URL share one in-flight fetch.
        The ring set is replaced wholesale on success and left untouched on
        failure.

        Raises:
            DataUnavailable: when the dataset cannot be fetched or parsed.
        """
        if isinstance(source, Mapping):
            return self._publish(parse_polygons(source))

        key = str(source)
        task = self._pending.get(key)
        if task is None:
            task = asyncio.ensure_future(self._fetch_and_publish(key))
            self._pending[key] = task
            task.add_done_callback(lambda _: self._pending.pop(key, None))
        # Shielded so a cancelled caller does not cancel the shared load
        return await asyncio.shield(task)

    async def _fetch_and_publish(self, source: str) -> BoundarySet:
        async with httpx.AsyncClient(timeout=FETCH_TIMEOUT) as client:
            data = await fetch_json(client, source)
        return self._publish(parse_polygons(data))

    def _publish(self, polygons: tuple[Polygon, ...]) -> BoundarySet:
        self._polygons = polygons
        if polygons:
            logger.info(
                "Loaded city boundary: %d polygons, %d rings",
                len(polygons), sum(len(p) for p in polygons),
            )
        else:
            logger.warning("Boundary dataset has no polygons, using bounding-box fallback")
        return self.rings

    def check(self, lat: float, lng: float) -> BoundaryCheck:
        if not self._polygons:
            return BoundaryCheck(inside=in_fallback_bounds(lat, lng), approximate=True)

        if self.subtract_holes:
            inside = any(
                point_in_ring(lat, lng, polygon[0])
                and not any(point_in_ring(lat, lng, hole) for hole in polygon[1:])
                for polygon in self._polygons
            )
        else:
            inside = any(point_in_ring(lat, lng, ring) for ring in self.rings)
        return BoundaryCheck(inside=inside)

    def contains(self, lat: float, lng: float) -> bool:
        return self.check(lat, lng).inside
