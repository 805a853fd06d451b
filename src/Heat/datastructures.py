"""Data structures for solver configuration and results.

Architecture: 2x2 matrix of Params vs Metrics × Global vs Local

                 Params (input/config)         Metrics (output/results)
                 ─────────────────────         ────────────────────────
Global           GlobalParams                  GlobalMetrics
(same across     M, N, max_iteration,          wall_time, mlups,
ranks / agg)     snapshot_frequency, dt...     snapshots_written...

Local            LocalParams                   LocalMetrics
(per-rank)       rank, hostname,               compute_times[],
                 neighbors, local_shape...     halo_times[]...
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple


# Halo directions, in the order used for neighbor dicts and exchanges
DIRECTIONS = ("up", "down", "left", "right")


# ============================================================================
# Global (identical across ranks, or aggregated on rank 0)
# ============================================================================


@dataclass
class GlobalParams:
    """Run configuration - validated by Heat.config, broadcast from rank 0.

    Immutable configuration set before the run. Identical across all MPI ranks.
    """

    # Required: global domain (M rows, N columns)
    M: int
    N: int

    # Time stepping
    max_iteration: int = 100
    snapshot_frequency: int = 10
    dt: float = 0.1

    # Output
    output_dir: str = "data"

    # Parallelization
    n_ranks: int = 1
    halo_exchange: str = "numpy"  # "numpy" | "custom"

    # Kernel
    use_numba: bool = False

    # Experiment tracking
    experiment_name: str = "default"

    # Auto-detected at runtime (not from config)
    environment: str = field(init=False)

    def __post_init__(self):
        self.environment = (
            "hpc"
            if os.environ.get("LSB_JOBID") or os.environ.get("SLURM_JOB_ID")
            else "local"
        )

    def to_mlflow(self) -> dict:
        """Convert to MLflow-compatible params dict (bools as int)."""
        return {
            k: (int(v) if isinstance(v, bool) else v)
            for k, v in self.__dict__.items()
        }


@dataclass
class GlobalMetrics:
    """Aggregated results - logged to MLflow as metrics.

    Final results computed/aggregated on rank 0.
    """

    iterations: int = 0
    snapshots_written: int = 0
    wall_time: Optional[float] = None

    # Timing breakdown (sum across all iterations, rank 0)
    total_compute_time: Optional[float] = None
    total_halo_time: Optional[float] = None
    total_checkpoint_time: Optional[float] = None

    # Performance
    mlups: Optional[float] = None  # Million Lattice Updates per Second

    # Largest |T| over the global interior after the last step
    final_max_abs: Optional[float] = None

    def to_mlflow(self) -> dict:
        """Convert to MLflow-compatible dict (no None, bools as int)."""
        return {
            k: (int(v) if isinstance(v, bool) else v)
            for k, v in self.__dict__.items()
            if v is not None
        }


# ============================================================================
# Local (per-rank)
# ============================================================================


@dataclass
class LocalParams:
    """Per-rank topology information - gathered to rank 0 for reporting."""

    rank: int
    hostname: str = ""
    coords: Optional[Tuple[int, int]] = None
    neighbors: Dict[str, Optional[int]] = field(default_factory=dict)
    local_shape: Optional[Tuple[int, int]] = None
    offset: Optional[Tuple[int, int]] = None


@dataclass
class LocalMetrics:
    """Per-rank timeseries, accumulated during the time loop."""

    compute_times: List[float] = field(default_factory=list)
    halo_times: List[float] = field(default_factory=list)
    checkpoint_times: List[float] = field(default_factory=list)

    # max |T| over this rank's interior at the start of each iteration
    max_abs_history: List[float] = field(default_factory=list)

    def clear(self):
        """Clear all timeseries data."""
        self.compute_times.clear()
        self.halo_times.clear()
        self.checkpoint_times.clear()
        self.max_abs_history.clear()


# ============================================================================
# MPI Grid Geometry
# ============================================================================


@dataclass
class RankGeometry:
    """Per-rank subgrid geometry.

    ``coords`` follows the Cartesian communicator: ``coords[0]`` indexes column
    blocks (x), ``coords[1]`` indexes row blocks (y). Shapes and offsets are
    given as (rows, cols).
    """

    rank: int
    coords: Tuple[int, int]
    local_shape: Tuple[int, int]
    halo_shape: Tuple[int, int]
    offset: Tuple[int, int]
    neighbors: Dict[str, Optional[int]]
    is_boundary: Dict[str, bool]

    @property
    def global_end(self) -> Tuple[int, int]:
        """Exclusive (row, col) end of this subgrid in the global domain."""
        return (
            self.offset[0] + self.local_shape[0],
            self.offset[1] + self.local_shape[1],
        )

    @property
    def n_neighbors(self) -> int:
        return sum(1 for n in self.neighbors.values() if n is not None)
