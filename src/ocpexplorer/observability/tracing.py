"""MLflow tracing setup shared by the API and the CLI.

Functions carry ``@mlflow.trace`` directly; this module only points MLflow
at the configured tracking store and experiment.
"""

import logging

import mlflow

from ocpexplorer.config import Settings

logger = logging.getLogger(__name__)


def init_tracing(settings: Settings) -> None:
    mlflow.set_tracking_uri(settings.mlflow_tracking_uri)
    mlflow.set_experiment(settings.mlflow_experiment_name)
    mlflow.config.enable_async_logging()
    logger.info("MLflow tracing enabled: %s", settings.mlflow_tracking_uri)
