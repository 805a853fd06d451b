"""
Heat Solver Runner - runs in-process or spawns MPI based on n_ranks.

Usage:
    python run_solver.py M=512 N=512 max_iteration=1000 snapshot_frequency=100
    python run_solver.py n_ranks=4 halo_exchange=custom
    python run_solver.py n_ranks=1,4 --multirun
"""

import logging
import sys
from dataclasses import fields
from pathlib import Path

import hydra
from omegaconf import DictConfig, OmegaConf

log = logging.getLogger(__name__)


def _run_in_process(cfg: DictConfig) -> dict:
    """Run on a single rank inside this process."""
    from dataclasses import asdict
    from mpi4py import MPI
    from Heat import HeatSolver, load_params

    params = load_params(OmegaConf.to_container(cfg, resolve=True))
    solver = HeatSolver(params, MPI.COMM_WORLD)
    solver.warmup()
    solver.solve()
    solver.close()
    return {**asdict(params), **asdict(solver.metrics)}


def _run_mpi(cfg: DictConfig, n_ranks: int) -> dict:
    """Spawn mpiexec with the solver worker."""
    from Heat import run_solver

    options = {
        k: cfg.get(k)
        for k in ["max_iteration", "snapshot_frequency", "dt", "output_dir",
                  "halo_exchange", "use_numba", "experiment_name"]
        if cfg.get(k) is not None
    }
    return run_solver(cfg.M, cfg.N, n_ranks=n_ranks, **options)


def _log_results(cfg: DictConfig, result: dict, n_ranks: int):
    """Log results to MLflow (if enabled) and optionally render snapshots."""
    from Heat import GlobalMetrics, GlobalParams
    from Heat.tracking import (setup_mlflow_tracking, start_mlflow_run_context,
                               log_parameters, log_metrics_dict, log_artifact_dir)

    plot_dir = None
    if cfg.get("plot"):
        from Heat.postprocessing import plot_checkpoints
        plot_dir = Path(cfg.output_dir) / "plots"
        plots = plot_checkpoints(cfg.output_dir, cfg.M, cfg.N, plot_dir)
        log.info(f"Rendered {len(plots)} snapshot(s) to {plot_dir}")

    if not setup_mlflow_tracking(mode=cfg.mlflow.mode):
        return

    param_keys = {f.name for f in fields(GlobalParams) if f.init}
    metric_keys = {f.name for f in fields(GlobalMetrics)}
    params = GlobalParams(**{k: v for k, v in result.items() if k in param_keys})
    metrics = GlobalMetrics(**{k: v for k, v in result.items() if k in metric_keys})
    run_name = f"heat_{cfg.M}x{cfg.N}_p{n_ranks}_{cfg.halo_exchange}"

    with start_mlflow_run_context(params.experiment_name, run_name):
        log_parameters(params.to_mlflow())
        log_metrics_dict({k: float(v) for k, v in metrics.to_mlflow().items()})
        if plot_dir is not None:
            log_artifact_dir(plot_dir, artifact_path="plots")


@hydra.main(config_path="conf", config_name="config", version_base=None)
def main(cfg: DictConfig) -> None:
    """Entry point - runs in-process or spawns MPI based on n_ranks."""
    n_ranks = cfg.get("n_ranks", 1)
    log.info(f"heat, M={cfg.M}, N={cfg.N}, n_ranks={n_ranks}, halo={cfg.halo_exchange}")

    if n_ranks == 1:
        result = _run_in_process(cfg)
    else:
        result = _run_mpi(cfg, n_ranks)

    if "error" in result:
        log.error(f"MPI run failed:\n{result['error']}")
        sys.exit(1)

    log.info(f"Done: {result['iterations']} iterations, {result['snapshots_written']} snapshot(s), "
             f"time={result['wall_time']:.3f}s"
             + (f", {result['mlups']:.1f} Mlup/s" if result.get("mlups") else ""))

    _log_results(cfg, result, n_ranks)


if __name__ == "__main__":
    main()
