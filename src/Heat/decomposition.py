"""Domain decomposition for distributed parallel computation.

Provides a clean abstraction for partitioning a 2D grid across multiple ranks.
Pure geometric logic: the layout of every rank is computed locally, without
any MPI communication, so it can be queried for any rank (tests, reassembly
of checkpoints, reporting).
"""

from __future__ import annotations

from typing import Optional, Sequence

from mpi4py import MPI

from .datastructures import RankGeometry
from .errors import ConfigurationError


def compute_dims(size: int) -> tuple[int, int]:
    """Factor ``size`` into (column blocks, row blocks), as square as possible."""
    if size < 1:
        raise ConfigurationError(f"Process count must be >= 1, got {size}")
    px, py = MPI.Compute_dims(size, 2)
    return px, py


class DomainDecomposition:
    """Even 2D block decomposition of an M x N grid.

    Parameters
    ----------
    M : int
        Global number of rows.
    N : int
        Global number of columns.
    size : int
        Number of ranks.
    dims : sequence of int, optional
        Process grid (column blocks, row blocks). Defaults to
        :func:`compute_dims`.

    Raises
    ------
    ConfigurationError
        If the grid is smaller than 2x2, the dims do not multiply to ``size``
        or the extents are not evenly divisible by the process grid.

    Examples
    --------
    >>> decomp = DomainDecomposition(M=8, N=8, size=4)
    >>> decomp.dims
    (2, 2)
    >>> decomp.get_rank_info(3).offset
    (4, 4)
    """

    def __init__(self, M: int, N: int, size: int, dims: Optional[Sequence[int]] = None):
        self.M = M
        self.N = N
        self.size = size

        if M < 2 or N < 2:
            raise ConfigurationError(
                f"Grid must be at least 2x2 for the reflective boundary, got {M}x{N}"
            )

        self.dims = tuple(dims) if dims is not None else compute_dims(size)
        if len(self.dims) != 2 or self.dims[0] * self.dims[1] != size:
            raise ConfigurationError(
                f"Process grid {self.dims} does not match {size} ranks"
            )

        px, py = self.dims
        if M % py != 0 or N % px != 0:
            raise ConfigurationError(
                f"Grid {M}x{N} is not divisible by process grid "
                f"{py} rows x {px} cols of ranks"
            )

        self.local_shape = (M // py, N // px)
        self.halo_shape = (self.local_shape[0] + 2, self.local_shape[1] + 2)

        self._rank_info = [self._build_rank_info(rank) for rank in range(size)]

    # =========================================================================
    # Query Interface
    # =========================================================================

    def get_rank_info(self, rank: int) -> RankGeometry:
        """Get decomposition info for a specific rank."""
        return self._rank_info[rank]

    def get_all_rank_info(self) -> list[RankGeometry]:
        """Get decomposition info for all ranks."""
        return self._rank_info

    def coords_of(self, rank: int) -> tuple[int, int]:
        """Cartesian coords of ``rank`` (row-major, as MPI_Cart_create)."""
        return rank // self.dims[1], rank % self.dims[1]

    def rank_of(self, cx: int, cy: int) -> Optional[int]:
        """Rank at coords (cx, cy), or None outside the (non-periodic) grid."""
        px, py = self.dims
        if 0 <= cx < px and 0 <= cy < py:
            return cx * py + cy
        return None

    # =========================================================================
    # Internal Decomposition Logic
    # =========================================================================

    def _build_rank_info(self, rank: int) -> RankGeometry:
        cx, cy = self.coords_of(rank)
        px, py = self.dims
        rows, cols = self.local_shape

        neighbors = {
            "up": self.rank_of(cx, cy - 1),
            "down": self.rank_of(cx, cy + 1),
            "left": self.rank_of(cx - 1, cy),
            "right": self.rank_of(cx + 1, cy),
        }
        is_boundary = {
            "up": cy == 0,
            "down": cy == py - 1,
            "left": cx == 0,
            "right": cx == px - 1,
        }

        return RankGeometry(
            rank=rank,
            coords=(cx, cy),
            local_shape=self.local_shape,
            halo_shape=self.halo_shape,
            offset=(cy * rows, cx * cols),
            neighbors=neighbors,
            is_boundary=is_boundary,
        )
