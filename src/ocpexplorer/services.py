"""Wire the explorer components together once per process.

The API lifespan and the CLI both call ``build_services`` and then
``initialize``; everything downstream receives its collaborators
explicitly rather than reaching for module globals.
"""

import asyncio
import logging
from dataclasses import dataclass, field

from ocpexplorer.config import Settings
from ocpexplorer.core.errors import DataUnavailable
from ocpexplorer.data.repository import LocalDataRepository
from ocpexplorer.geometry.boundary import BoundaryStore
from ocpexplorer.location.resolver import LocationResolver
from ocpexplorer.search.ai_client import AIProxyClient
from ocpexplorer.search.local import LocalSearchEngine
from ocpexplorer.search.orchestrator import SearchOrchestrator

logger = logging.getLogger(__name__)


@dataclass
class ExplorerServices:
    settings: Settings
    boundary: BoundaryStore
    repository: LocalDataRepository
    resolver: LocationResolver
    engine: LocalSearchEngine
    ai_client: AIProxyClient
    orchestrator: SearchOrchestrator
    _init_task: asyncio.Future | None = field(default=None, init=False, repr=False)

    async def initialize(self) -> None:
        """Load OCP tables and the city boundary, once per process.

        Concurrent and repeated calls share the first load. Failures are
        logged and the services keep running degraded: search reports
        "not-ready" and boundary checks use the bounding box.
        """
        if self._init_task is None:
            self._init_task = asyncio.ensure_future(self._load())
        await asyncio.shield(self._init_task)

    async def _load(self) -> None:
        try:
            await self.repository.load()
        except DataUnavailable as e:
            logger.error("OCP data unavailable, search will report not-ready: %s", e)
        try:
            await self.boundary.load(self.settings.boundary_source)
        except DataUnavailable as e:
            logger.error("City boundary unavailable, using bounding-box fallback: %s", e)

    def health_checks(self) -> dict[str, str]:
        return {
            "data": "ok" if self.repository.is_loaded else "unavailable",
            "boundary": "fallback" if self.boundary.degraded else "ok",
        }


def build_services(settings: Settings) -> ExplorerServices:
    boundary = BoundaryStore(subtract_holes=settings.boundary_subtract_holes)
    repository = LocalDataRepository(settings.data_dir)
    resolver = LocationResolver(boundary, repository)
    engine = LocalSearchEngine(repository, resolver)
    ai_client = AIProxyClient(
        settings.ai_proxy_url,
        origin=settings.ai_proxy_origin,
        timeout_seconds=settings.ai_timeout_seconds,
    )
    orchestrator = SearchOrchestrator(
        repository,
        engine,
        ai_client,
        cache_size=settings.search_cache_size,
        cache_ttl_seconds=settings.search_cache_ttl_seconds,
        history_size=settings.search_history_size,
        default_max_results=settings.search_max_results,
    )
    return ExplorerServices(
        settings=settings,
        boundary=boundary,
        repository=repository,
        resolver=resolver,
        engine=engine,
        ai_client=ai_client,
        orchestrator=orchestrator,
    )
