"""One rank's view of the distributed M x N temperature grid.

DistributedGrid bundles what the time loop needs from MPI:

- the 2D Cartesian topology and this rank's block of the domain,
- halo exchange with the up/down/left/right neighbors,
- reflective edges, global reductions and reassembly on rank 0.

The solver only talks to this class; it never calls MPI directly.
"""

from __future__ import annotations

import numpy as np
from mpi4py import MPI

from ..boundary import apply_reflective_boundary
from ..datastructures import LocalParams
from ..field import Field
from .decomposition import CartesianDecomposition
from .halo import create_halo_exchanger


class DistributedGrid:
    """Unified distributed grid for the parallel heat solver.

    Parameters
    ----------
    M : int
        Global number of rows.
    N : int
        Global number of columns.
    comm : MPI.Comm
        MPI communicator
    halo_exchange : str
        'numpy' for buffer-based exchange (default)
        'custom' for MPI derived datatypes (zero-copy)

    Example
    -------
    >>> grid = DistributedGrid(M=64, N=64, comm=MPI.COMM_WORLD)
    >>> field = grid.allocate_field()   # initial condition filled in
    >>> grid.sync_halos(field.current)  # exchange with neighbors
    >>> grid.apply_boundary_conditions(field.current)
    """

    def __init__(
        self,
        M: int,
        N: int,
        comm: MPI.Comm = MPI.COMM_WORLD,
        halo_exchange: str = "numpy",
    ):
        self.M = M
        self.N = N
        self.comm = comm
        self.rank = self.comm.Get_rank()
        self.size = self.comm.Get_size()

        # Domain decomposition
        self._decomp = CartesianDecomposition(M, N, self.comm)

        # Copy decomposition attributes for direct access
        self.dims = self._decomp.dims
        self.cart_comm = self._decomp.cart_comm
        self.coords = self._decomp.coords
        self.neighbors = self._decomp.neighbors
        self.local_shape = self._decomp.local_shape
        self.halo_shape = self._decomp.halo_shape
        self.offset = self._decomp.offset
        self.is_boundary = self._decomp.is_boundary
        self.layout = self._decomp.layout

        # Halo exchange strategy
        self._halo_exchanger = create_halo_exchanger(halo_exchange)
        self._halo_exchanger.setup(self.local_shape)

    def allocate_field(self) -> Field:
        """Allocate this rank's field and fill the initial condition."""
        field = Field(self.local_shape)
        field.initialize(self.offset, self.N)
        return field

    def sync_halos(self, arr: np.ndarray):
        """Exchange halo data with all neighbors."""
        self._halo_exchanger.exchange(arr, self.cart_comm, self.neighbors)

    def apply_boundary_conditions(self, arr: np.ndarray):
        """Reflective boundary on the halos that lie on a global edge."""
        apply_reflective_boundary(arr, self.is_boundary)

    def gather(self, arr: np.ndarray, root: int = 0):
        """Reassemble the global M x N interior on ``root`` (None elsewhere)."""
        interior = np.ascontiguousarray(arr[1:-1, 1:-1])
        parts = self.cart_comm.gather((self.offset, interior), root=root)
        if self.cart_comm.Get_rank() != root:
            return None

        u_global = np.empty((self.M, self.N), dtype=arr.dtype)
        for (r0, c0), block in parts:
            u_global[r0:r0 + block.shape[0], c0:c0 + block.shape[1]] = block
        return u_global

    def max_abs(self, arr: np.ndarray) -> float:
        """Global max |T| over the interior (collective)."""
        local = float(np.max(np.abs(arr[1:-1, 1:-1])))
        return self.cart_comm.allreduce(local, op=MPI.MAX)

    def get_rank_info(self) -> LocalParams:
        """Get topology info for this rank."""
        return LocalParams(
            rank=self.rank,
            hostname=MPI.Get_processor_name(),
            coords=self.coords,
            neighbors=self.neighbors.copy(),
            local_shape=self.local_shape,
            offset=self.offset,
        )

    def get_halo_size_bytes(self) -> int:
        """Calculate total bytes transferred per halo exchange."""
        rows, cols = self.local_shape
        face = {"up": cols, "down": cols, "left": rows, "right": rows}
        return sum(
            face[d] * 8 * 2  # float64, send+recv
            for d, n in self.neighbors.items()
            if n is not None
        )
