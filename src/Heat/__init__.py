"""MPI heat-diffusion solver package.

Explicit finite-difference solver for the 2D heat equation on a rectangular
grid, distributed over a 2D Cartesian process topology. Each rank owns one
subgrid plus a one-cell halo, exchanges halos with its neighbors every
iteration, mirrors the interior at the global edges (zero-flux boundary) and
periodically writes the global field to a shared binary checkpoint with MPI-IO.

Components
----------
- DomainDecomposition / CartesianDecomposition: who owns which block
- Field: ping-pong temperature buffers and static diffusivity
- HaloExchanger: numpy (Sendrecv) or MPI datatype (Isend/Irecv) exchange
- apply_reflective_boundary: mirror condition at global edges
- NumPyKernel / NumbaKernel: five-point forward-Euler stencil
- CheckpointWriter: collective snapshots ``NNNNN.bin``
- HeatSolver: the time-stepping driver
"""

from .datastructures import (
    GlobalParams,
    GlobalMetrics,
    LocalParams,
    LocalMetrics,
    RankGeometry,
)
from .errors import (
    HeatError,
    ConfigurationError,
    ResourceError,
    CheckpointError,
    CommunicationError,
)
from .decomposition import DomainDecomposition, compute_dims
from .field import Field
from .boundary import apply_reflective_boundary
from .kernels import NumPyKernel, NumbaKernel, create_kernel
from .mpi import (
    DistributedGrid,
    CartesianDecomposition,
    NumpyHaloExchanger,
    DatatypeHaloExchanger,
    CheckpointWriter,
    checkpoint_name,
)
from .config import load_params, broadcast_params
from .solver import HeatSolver, SimulationContext
from .problems import (
    initial_temperature,
    thermal_diffusivity,
    global_initial_temperature,
)
from .postprocessing import load_checkpoint, list_checkpoints
from .runner import run_solver

__all__ = [
    # Data structures
    "GlobalParams",
    "GlobalMetrics",
    "LocalParams",
    "LocalMetrics",
    "RankGeometry",
    # Errors
    "HeatError",
    "ConfigurationError",
    "ResourceError",
    "CheckpointError",
    "CommunicationError",
    # Decomposition
    "DomainDecomposition",
    "CartesianDecomposition",
    "compute_dims",
    # Field, boundary, kernels
    "Field",
    "apply_reflective_boundary",
    "NumPyKernel",
    "NumbaKernel",
    "create_kernel",
    # MPI
    "DistributedGrid",
    "NumpyHaloExchanger",
    "DatatypeHaloExchanger",
    "CheckpointWriter",
    "checkpoint_name",
    # Solver
    "HeatSolver",
    "SimulationContext",
    "load_params",
    "broadcast_params",
    # Problem setup
    "initial_temperature",
    "thermal_diffusivity",
    "global_initial_temperature",
    # Post-processing and runs
    "load_checkpoint",
    "list_checkpoints",
    "run_solver",
]
