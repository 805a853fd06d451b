"""Tests for run metadata and MLflow tracking setup."""

from Heat import GlobalMetrics, GlobalParams
from Heat.tracking import setup_mlflow_tracking


def test_tracking_disabled():
    assert setup_mlflow_tracking("disabled") is False


def test_params_to_mlflow_bools_as_int():
    params = GlobalParams(M=8, N=8, use_numba=True)
    logged = params.to_mlflow()
    assert logged["use_numba"] == 1
    assert logged["M"] == 8
    assert logged["environment"] in ("local", "hpc")


def test_metrics_to_mlflow_drops_none():
    metrics = GlobalMetrics(iterations=11, wall_time=0.5)
    logged = metrics.to_mlflow()
    assert logged["iterations"] == 11
    assert "mlups" not in logged
