"""MLflow experiment tracking for solver runs.

Tracking is optional: with mode ``"disabled"`` nothing is imported or logged.
"""

import logging
import os
from contextlib import contextmanager
from pathlib import Path

log = logging.getLogger(__name__)


def setup_mlflow_tracking(mode: str = "disabled") -> bool:
    """Configure MLflow tracking; return True if runs should be logged.

    Parameters
    ----------
    mode : str
        "disabled", "local" (./mlruns) or "databricks".
    """
    if mode == "disabled":
        return False

    import mlflow

    if mode == "databricks":
        try:
            mlflow.login(backend="databricks", interactive=False)
            mlflow.set_tracking_uri("databricks")
            log.info("Connected to Databricks MLflow tracking.")
        except Exception as e:
            raise RuntimeError(
                "MLflow Databricks setup failed. Ensure credentials are configured."
            ) from e
    elif mode == "local":
        mlruns_uri = (Path.cwd() / "mlruns").as_uri()
        mlflow.set_tracking_uri(mlruns_uri)
        log.info(f"Using local file-based MLflow tracking backend: {mlruns_uri}")
    else:
        log.warning(f"Unknown MLflow mode '{mode}'. Using existing URI: {mlflow.get_tracking_uri()}")
    return True


@contextmanager
def start_mlflow_run_context(experiment_name: str, run_name: str):
    """Start an MLflow run tagged with the execution environment."""
    import mlflow

    mlflow.set_experiment(experiment_name)
    with mlflow.start_run(run_name=run_name) as run:
        env = (
            "hpc"
            if os.environ.get("LSB_JOBID") or os.environ.get("SLURM_JOB_ID")
            else "local"
        )
        mlflow.set_tag("environment", env)
        log.info(f"Started MLflow run '{run.info.run_name}' ({run.info.run_id}) [{env}]")
        yield run


def log_parameters(params: dict):
    """Log a dictionary of parameters to the active MLflow run."""
    import mlflow

    mlflow.log_params(params)


def log_metrics_dict(metrics: dict):
    """Log a dictionary of metrics to the active MLflow run, filtering out None values."""
    import mlflow

    filtered_metrics = {k: v for k, v in metrics.items() if v is not None}
    mlflow.log_metrics(filtered_metrics)


def log_artifact_dir(path: Path, artifact_path: str = "checkpoints"):
    """Log a directory (e.g. rendered snapshots) as artifacts."""
    import mlflow

    if Path(path).is_dir():
        mlflow.log_artifacts(str(path), artifact_path=artifact_path)
    else:
        log.warning(f"Artifact directory not found at {path}")
