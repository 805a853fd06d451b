"""Domain decomposition with MPI Cartesian topology."""

from __future__ import annotations

from mpi4py import MPI

from ..datastructures import RankGeometry
from ..decomposition import DomainDecomposition


class CartesianDecomposition:
    """Handles MPI Cartesian topology and domain splitting.

    Creates a non-periodic 2D Cartesian communicator and computes which
    part of the global M x N domain this rank owns.

    Parameters
    ----------
    M : int
        Global number of rows.
    N : int
        Global number of columns.
    comm : MPI.Comm
        MPI communicator.
    """

    def __init__(self, M: int, N: int, comm: MPI.Comm):
        self.M = M
        self.N = N
        self.comm = comm
        self.rank = comm.Get_rank()
        self.size = comm.Get_size()

        # Layout for all ranks (raises ConfigurationError before any allocation)
        self.layout = DomainDecomposition(M, N, self.size)
        self.dims = self.layout.dims
        self.px, self.py = self.dims

        # Create Cartesian topology
        self.cart_comm = comm.Create_cart(
            dims=list(self.dims), periods=[False, False], reorder=False
        )
        self.coords = tuple(self.cart_comm.Get_coords(self.cart_comm.Get_rank()))

        # Discover neighbors
        self.neighbors = self._find_neighbors()

        self.geometry = self._compute_local_domain()
        self.local_shape = self.geometry.local_shape
        self.halo_shape = self.geometry.halo_shape
        self.offset = self.geometry.offset
        self.is_boundary = self.geometry.is_boundary

    def _find_neighbors(self) -> dict[str, int | None]:
        """Use Cart_shift to find neighbor ranks."""
        neighbors = {}

        # X direction (cart direction 0): columns
        left, right = self.cart_comm.Shift(0, 1)
        neighbors["left"] = left if left != MPI.PROC_NULL else None
        neighbors["right"] = right if right != MPI.PROC_NULL else None

        # Y direction (cart direction 1): rows
        up, down = self.cart_comm.Shift(1, 1)
        neighbors["up"] = up if up != MPI.PROC_NULL else None
        neighbors["down"] = down if down != MPI.PROC_NULL else None

        return neighbors

    def _compute_local_domain(self) -> RankGeometry:
        """Take this rank's geometry from the layout, checked against the topology."""
        geometry = self.layout.get_rank_info(self.cart_comm.Get_rank())
        if geometry.coords != self.coords or geometry.neighbors != self.neighbors:
            raise RuntimeError(
                f"Cartesian topology disagrees with layout on rank {self.rank}: "
                f"{self.coords}/{self.neighbors} vs "
                f"{geometry.coords}/{geometry.neighbors}"
            )
        return geometry
