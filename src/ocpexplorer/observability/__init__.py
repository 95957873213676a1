"""Observability — prompt registry, structured logging, and MLflow tracing setup."""

from ocpexplorer.observability.logging import get_correlation_id, setup_logging
from ocpexplorer.observability.prompts import get_active_prompt, get_prompt_version
from ocpexplorer.observability.tracing import init_tracing

__all__ = [
    "get_active_prompt",
    "get_correlation_id",
    "get_prompt_version",
    "init_tracing",
    "setup_logging",
]
