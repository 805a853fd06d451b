"""Initial condition and material coefficients of the heat problem.

Both are functions of the zero-indexed global (row, col) position, so every
rank evaluates exactly the same values for the cells it owns.
"""

import numpy as np


def initial_temperature(rows: np.ndarray, cols: np.ndarray) -> np.ndarray:
    """T0(y, x) = 30 + 30 sin((x + y) / 20)."""
    return 30.0 + 30.0 * np.sin((cols + rows) / 20.0)


def thermal_diffusivity(rows: np.ndarray, cols: np.ndarray, N: int) -> np.ndarray:
    """K(y, x) = 0.05 + (30 + 30 sin((N - x + y) / 20)) / 605, in (0.05, 0.15)."""
    return 0.05 + (30.0 + 30.0 * np.sin((N - cols + rows) / 20.0)) / 605.0


def global_indices(M: int, N: int, offset=(0, 0), shape=None):
    """Return (rows, cols) index meshgrids for a block of the global domain."""
    if shape is None:
        shape = (M, N)
    r0, c0 = offset
    rows = np.arange(r0, r0 + shape[0], dtype=np.float64)
    cols = np.arange(c0, c0 + shape[1], dtype=np.float64)
    return np.meshgrid(rows, cols, indexing="ij")


def global_initial_temperature(M: int, N: int) -> np.ndarray:
    """Initial temperature of the whole M x N domain (reference solution)."""
    Y, X = global_indices(M, N)
    return initial_temperature(Y, X)
