"""Explicit heat-diffusion solver (the time-stepping driver).

Single-Program-Multiple-Data: every rank runs the same loop on its own
subgrid. One iteration is the strict sequence

    halo exchange -> reflective boundary -> stencil -> (checkpoint) -> swap

The checkpoint of iteration k stores ``current`` before the swap, i.e. the
field after k updates, so snapshot 0 is the initial condition.
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import asdict, dataclass
from typing import Any, Optional

import numpy as np
import pandas as pd
from mpi4py import MPI

from .datastructures import GlobalMetrics, GlobalParams, LocalMetrics
from .errors import ResourceError, raise_if_any_failed
from .field import Field
from .kernels import create_kernel
from .mpi.checkpoint import CheckpointWriter
from .mpi.grid import DistributedGrid

log = logging.getLogger(__name__)


@dataclass
class SimulationContext:
    """Everything one rank needs for the run, built once at startup."""

    comm: MPI.Comm
    params: GlobalParams
    grid: DistributedGrid
    field: Field
    kernel: Any
    checkpoints: CheckpointWriter

    @property
    def rank(self) -> int:
        return self.comm.Get_rank()


class HeatSolver:
    """Parallel explicit solver for the 2D heat equation.

    Parameters
    ----------
    params : GlobalParams
        Validated run configuration, identical on every rank.
    comm : MPI.Comm
        Communicator of the ranks sharing the domain.

    Raises
    ------
    ConfigurationError
        If the domain does not divide evenly over the process grid.
    ResourceError
        If any rank fails to allocate its field.
    CheckpointError
        If the output directory cannot be created.
    """

    def __init__(self, params: GlobalParams, comm: MPI.Comm = MPI.COMM_WORLD):
        self.comm = comm
        self.rank = comm.Get_rank()
        self.size = comm.Get_size()
        self.params = params

        self.metrics = GlobalMetrics()
        self.timeseries = LocalMetrics()

        self.context = self._build_context()
        self.local_shape = self.context.grid.local_shape

    def _build_context(self) -> SimulationContext:
        p = self.params

        # Decomposition first: ConfigurationError before any allocation
        grid = DistributedGrid(p.M, p.N, self.comm, halo_exchange=p.halo_exchange)

        field, error = None, None
        try:
            field = grid.allocate_field()
        except ResourceError as exc:
            error = exc
        raise_if_any_failed(self.comm, error, ResourceError, "Field allocation")

        checkpoints = CheckpointWriter(
            p.output_dir,
            global_shape=(p.M, p.N),
            local_shape=grid.local_shape,
            offset=grid.offset,
            comm=grid.cart_comm,
            snapshot_frequency=p.snapshot_frequency,
        )
        checkpoints.prepare()

        if self.rank == 0:
            log.info(
                f"Grid {p.M}x{p.N} on {self.size} rank(s), process grid "
                f"{grid.dims[1]}x{grid.dims[0]}, local {grid.local_shape}, "
                f"halo exchange '{p.halo_exchange}' "
                f"({grid.get_halo_size_bytes()} bytes per exchange)"
            )

        return SimulationContext(
            comm=self.comm,
            params=p,
            grid=grid,
            field=field,
            kernel=create_kernel(p.use_numba, p.dt),
            checkpoints=checkpoints,
        )

    # ========================================================================
    # Solve interface
    # ========================================================================

    def warmup(self, warmup_size: int = 10):
        """Warmup kernel (trigger Numba JIT)."""
        self.context.kernel.warmup(warmup_size=warmup_size)

    def solve(self) -> GlobalMetrics:
        """Run max_iteration + 1 time steps."""
        ctx = self.context
        grid, field, kernel = ctx.grid, ctx.field, ctx.kernel
        checkpoints = ctx.checkpoints
        max_iteration = self.params.max_iteration

        self.timeseries.clear()
        self.comm.Barrier()
        t_start = MPI.Wtime()

        for iteration in range(max_iteration + 1):
            self.timeseries.max_abs_history.append(
                float(np.max(np.abs(field.interior(field.current))))
            )

            t0 = MPI.Wtime()
            grid.sync_halos(field.current)
            self.timeseries.halo_times.append(MPI.Wtime() - t0)

            t0 = MPI.Wtime()
            grid.apply_boundary_conditions(field.current)
            kernel.step(field.current, field.next, field.diffusivity)
            self.timeseries.compute_times.append(MPI.Wtime() - t0)

            if checkpoints.is_due(iteration):
                if self.rank == 0:
                    log.info(
                        f"Iteration {iteration} of {max_iteration} "
                        f"({100.0 * iteration / max(max_iteration, 1):.2f}% complete)"
                    )
                t0 = MPI.Wtime()
                checkpoints.write(field.current, iteration)
                self.timeseries.checkpoint_times.append(MPI.Wtime() - t0)

            field.swap()

        wall_time = MPI.Wtime() - t_start
        self._finalize(wall_time, iterations=max_iteration + 1)

        if self.rank == 0:
            log.info(f"Total elapsed time: {wall_time:.6f} seconds")
        return self.metrics

    def _finalize(self, wall_time: float, iterations: int):
        """Finalize metrics after solve (timing sums on rank 0)."""
        ctx = self.context
        self.metrics.iterations = iterations
        self.metrics.snapshots_written = len(ctx.checkpoints.written)
        self.metrics.wall_time = wall_time
        self.metrics.final_max_abs = ctx.grid.max_abs(ctx.field.current)

        if self.rank == 0:
            self.metrics.total_compute_time = sum(self.timeseries.compute_times)
            self.metrics.total_halo_time = sum(self.timeseries.halo_times)
            self.metrics.total_checkpoint_time = sum(self.timeseries.checkpoint_times)

        n_cells = self.params.M * self.params.N
        if iterations > 0 and wall_time > 0:
            self.metrics.mlups = n_cells * iterations / (wall_time * 1e6)

    # ========================================================================
    # Results
    # ========================================================================

    def gather_field(self) -> Optional[np.ndarray]:
        """Global M x N field after the last step on rank 0, None elsewhere."""
        return self.context.grid.gather(self.context.field.current)

    def gather_topology(self) -> Optional[list]:
        """Per-rank topology info on rank 0, None elsewhere."""
        info = self.context.grid.get_rank_info()
        return self.comm.gather(info, root=0)

    def save_hdf5(self, path: str) -> None:
        """Save config, results, and timeseries to HDF5 (rank 0 only)."""
        if self.rank != 0:
            return

        row = {**asdict(self.params), **asdict(self.metrics)}
        df_results = pd.DataFrame([row])

        # Convert string columns to avoid PyTables pickle warning
        for col in df_results.select_dtypes(include=["object"]).columns:
            df_results[col] = df_results[col].astype(str)

        with warnings.catch_warnings():
            warnings.simplefilter("ignore", pd.errors.PerformanceWarning)
            df_results.to_hdf(path, key="results", mode="w", format="table")

            # Rank 0 timeseries for per-iteration analysis
            ts_dict = asdict(self.timeseries)
            ts_data = {k: v for k, v in ts_dict.items() if v}
            if ts_data:
                max_len = max(len(v) for v in ts_data.values())
                for k, v in ts_data.items():
                    if len(v) < max_len:
                        ts_data[k] = v + [float("nan")] * (max_len - len(v))
                pd.DataFrame(ts_data).to_hdf(path, key="timeseries", mode="a", format="table")

    def close(self):
        """Release MPI resources held by the run."""
        self.context.checkpoints.free()
