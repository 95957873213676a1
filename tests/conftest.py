"""Shared test fixtures."""

import mlflow
import pytest

from ocpexplorer.config import PACKAGE_DATA_DIR, Settings
from ocpexplorer.data.repository import LocalDataRepository
from ocpexplorer.geometry.boundary import BoundaryStore
from ocpexplorer.location.resolver import LocationResolver
from ocpexplorer.search.local import LocalSearchEngine

BOUNDARY_FILE = PACKAGE_DATA_DIR / "City_Boundary.geojson"


@pytest.fixture(autouse=True)
def _disable_mlflow_tracing():
    """Disable MLflow tracing during tests — no side effects, no mlruns/ writes."""
    mlflow.tracing.disable()
    yield
    mlflow.tracing.enable()


@pytest.fixture(autouse=True)
def _reset_rate_limits():
    from ocpexplorer.api.proxy import reset_rate_limits
    reset_rate_limits()
    yield
    reset_rate_limits()


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        data_dir=str(PACKAGE_DATA_DIR),
        gemini_api_key="",
        log_json=False,
        mlflow_tracking_uri=f"sqlite:///{tmp_path}/mlflow.db",
    )


@pytest.fixture
async def repository() -> LocalDataRepository:
    repo = LocalDataRepository(str(PACKAGE_DATA_DIR))
    await repo.load()
    return repo


@pytest.fixture
async def boundary() -> BoundaryStore:
    store = BoundaryStore()
    await store.load(BOUNDARY_FILE)
    return store


@pytest.fixture
def resolver(boundary, repository) -> LocationResolver:
    return LocationResolver(boundary, repository)


@pytest.fixture
def engine(repository, resolver) -> LocalSearchEngine:
    return LocalSearchEngine(repository, resolver)
