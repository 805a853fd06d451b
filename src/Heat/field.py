"""Per-rank field storage: ping-pong temperature buffers plus diffusivity.

Layout of every buffer, shape (rows + 2, cols + 2)::

    halo    row 0            (top)
    interior rows 1..rows
    halo    row rows + 1     (bottom)

and the same for columns. Interior cells of a subgrid are therefore
``buf[1:-1, 1:-1]``.
"""

from __future__ import annotations

import numpy as np

from .errors import ResourceError
from .problems import global_indices, initial_temperature, thermal_diffusivity


class Field:
    """Temperature and diffusivity buffers for one subgrid.

    Parameters
    ----------
    local_shape : tuple of int
        Interior shape (rows, cols), without the halo ring.

    Raises
    ------
    ResourceError
        If the buffers cannot be allocated.
    """

    HALO = 1

    def __init__(self, local_shape: tuple[int, int]):
        rows, cols = local_shape
        self.local_shape = (rows, cols)
        self.halo_shape = (rows + 2 * self.HALO, cols + 2 * self.HALO)

        try:
            self._temp = (
                np.zeros(self.halo_shape, dtype=np.float64),
                np.zeros(self.halo_shape, dtype=np.float64),
            )
            self.diffusivity = np.zeros(self.halo_shape, dtype=np.float64)
        except MemoryError as exc:
            raise ResourceError(
                f"Could not allocate field buffers of shape {self.halo_shape}"
            ) from exc

        self._current = 0

    # ------------------------------------------------------------------
    # Double buffering
    # ------------------------------------------------------------------

    @property
    def current(self) -> np.ndarray:
        return self._temp[self._current]

    @property
    def next(self) -> np.ndarray:
        return self._temp[self._current ^ 1]

    def swap(self):
        """Make ``next`` the new ``current``."""
        self._current ^= 1

    # ------------------------------------------------------------------
    # Indexing
    # ------------------------------------------------------------------

    def flat_index(self, row: int, col: int) -> int:
        """Linear (row-major) index of halo-inclusive cell (row, col)."""
        assert 0 <= row < self.halo_shape[0], f"row {row} outside {self.halo_shape}"
        assert 0 <= col < self.halo_shape[1], f"col {col} outside {self.halo_shape}"
        return row * self.halo_shape[1] + col

    def at(self, row: int, col: int) -> float:
        """Value of ``current`` at halo-inclusive (row, col)."""
        return float(self.current.ravel()[self.flat_index(row, col)])

    @staticmethod
    def interior(buf: np.ndarray) -> np.ndarray:
        """Halo-stripped view of a buffer."""
        return buf[1:-1, 1:-1]

    # ------------------------------------------------------------------
    # Initialization
    # ------------------------------------------------------------------

    def initialize(self, offset: tuple[int, int], N: int):
        """Fill temperature and diffusivity for the subgrid at ``offset``.

        Parameters
        ----------
        offset : tuple of int
            Global (row, col) of the first interior cell.
        N : int
            Global number of columns.
        """
        Y, X = global_indices(None, N, offset=offset, shape=self.local_shape)

        temperature = initial_temperature(Y, X)
        for buf in self._temp:
            self.interior(buf)[...] = temperature
        self.diffusivity.flags.writeable = True
        self.interior(self.diffusivity)[...] = thermal_diffusivity(Y, X, N)
        self.diffusivity.flags.writeable = False

        self._current = 0
