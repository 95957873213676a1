"""OCP Explorer configuration — data sources, AI proxy, cache sizes and logging."""

from pathlib import Path

from pydantic import model_validator
from pydantic_settings import BaseSettings

PACKAGE_DATA_DIR = Path(__file__).resolve().parent / "data"


class Settings(BaseSettings):
    # Static OCP data: a directory or an http(s) base URL
    data_dir: str = str(PACKAGE_DATA_DIR)
    boundary_source: str = ""
    boundary_subtract_holes: bool = False

    @model_validator(mode="after")
    def _default_boundary_source(self) -> "Settings":
        """Resolve the boundary GeoJSON next to the other data files when unset."""
        if not self.boundary_source:
            self.boundary_source = f"{self.data_dir.rstrip('/')}/City_Boundary.geojson"
        return self

    # AI proxy (the /api/v1/ai/search endpoint, usually served by this app)
    ai_proxy_url: str = "http://localhost:8000/api/v1/ai/search"
    ai_proxy_origin: str = "http://localhost:8000"
    ai_timeout_seconds: float = 30.0

    # Search orchestrator
    search_cache_size: int = 50
    search_cache_ttl_seconds: int = 1800
    search_history_size: int = 20
    search_max_results: int = 10

    # Upstream LLM used by the proxy
    gemini_api_key: str = ""

    @model_validator(mode="after")
    def _strip_api_keys(self) -> "Settings":
        """Strip whitespace/newlines from API keys — common paste error in dashboards."""
        if self.gemini_api_key and self.gemini_api_key != self.gemini_api_key.strip():
            self.gemini_api_key = self.gemini_api_key.strip()
        return self

    # Proxy security
    allowed_origins: list[str] = [
        "http://localhost:3000",
        "http://localhost:8080",
        "http://localhost:8888",
        "https://localhost:3000",
    ]
    rate_limit_requests: int = 30
    rate_limit_window_seconds: int = 3600

    # MLflow
    mlflow_tracking_uri: str = "sqlite:///mlruns/mlflow.db"
    mlflow_experiment_name: str = "ocp-explorer"

    # Logging
    log_json: bool = True
    log_level: str = "INFO"

    # CORS
    cors_origins: list[str] = ["http://localhost:3000", "http://localhost:8888"]

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
