"""API route handlers for the OCP explorer.

GET    /api/v1/location             — OCP facts for a clicked coordinate
POST   /api/v1/search               — local / AI search with fallback
GET    /api/v1/search/suggestions   — autocomplete from common terms + history
GET    /api/v1/search/stats         — history and cache statistics
DELETE /api/v1/search/history       — clear history and cache
"""

import logging
import time

from fastapi import APIRouter, Query, Request

from ocpexplorer.api.schemas import SearchRequest, SuggestionsResponse
from ocpexplorer.core.types import GeoPoint
from ocpexplorer.services import ExplorerServices

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["explorer"])


def _services(request: Request) -> ExplorerServices:
    return request.app.state.services


@router.get("/location")
async def location(
    request: Request,
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
):
    """Boundary check plus land use, zoning and policies for a coordinate."""
    info = _services(request).resolver.resolve(lat, lng)
    logger.info(
        "Location resolved (within_boundary=%s)", info.within_boundary,
        extra={"lat": lat, "lng": lng},
    )
    return info.to_dict()


@router.post("/search")
async def search(request: Request, body: SearchRequest):
    """Run a search. Always 200; failures come back as an error-shaped result."""
    start = time.monotonic()
    location = GeoPoint(body.location.lat, body.location.lng) if body.location else None
    result = await _services(request).orchestrator.search(
        body.query, location=location, mode=body.mode, max_results=body.max_results,
    )
    logger.info(
        "Search served via %s", result.method,
        extra={
            "method": result.method,
            "duration_ms": round((time.monotonic() - start) * 1000, 1),
        },
    )
    return result.to_dict()


@router.get("/search/suggestions", response_model=SuggestionsResponse)
async def suggestions(request: Request, q: str = ""):
    return SuggestionsResponse(suggestions=_services(request).orchestrator.get_suggestions(q))


@router.get("/search/stats")
async def stats(request: Request):
    return _services(request).orchestrator.get_stats()


@router.delete("/search/history", status_code=204)
async def clear_history(request: Request):
    _services(request).orchestrator.clear_history()
    logger.info("Search history cleared")
