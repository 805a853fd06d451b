"""MPI domain decomposition, communication and parallel I/O.

This package provides:
- DistributedGrid: Unified interface for parallel grids
- CartesianDecomposition: Domain splitting with MPI topology
- HaloExchanger: Strategies for halo exchange (numpy/datatype)
- CheckpointWriter: Collective MPI-IO snapshots of the global field
"""

from .grid import DistributedGrid
from .decomposition import CartesianDecomposition
from .halo import HaloExchanger, NumpyHaloExchanger, DatatypeHaloExchanger
from .checkpoint import CheckpointWriter, checkpoint_name
from ..datastructures import RankGeometry

__all__ = [
    "DistributedGrid",
    "CartesianDecomposition",
    "HaloExchanger",
    "NumpyHaloExchanger",
    "DatatypeHaloExchanger",
    "CheckpointWriter",
    "checkpoint_name",
    "RankGeometry",
]
