"""Explicit heat-diffusion stencil kernels.

Simple kernel implementations - timing is handled by the solver.
Both kernels evaluate the same expression in the same order::

    next = c + K * dt * ((up + down + left + right) - 4 c)
"""

import numpy as np
from numba import njit


@njit(cache=True)
def _heat_step_numba(
    current: np.ndarray, nxt: np.ndarray, diffusivity: np.ndarray, dt: float
) -> None:
    """Numba JIT implementation of one forward-Euler step."""
    for i in range(1, current.shape[0] - 1):
        for j in range(1, current.shape[1] - 1):
            c = current[i, j]
            nxt[i, j] = c + diffusivity[i, j] * dt * (
                (current[i - 1, j] + current[i + 1, j] + current[i, j - 1] + current[i, j + 1])
                - 4.0 * c
            )


class NumPyKernel:
    """NumPy-based five-point stencil."""

    name = "numpy"

    def __init__(self, dt: float):
        self.dt = dt

    def step(self, current: np.ndarray, nxt: np.ndarray, diffusivity: np.ndarray):
        """Write the update of every interior cell of ``current`` into ``nxt``."""
        c = current[1:-1, 1:-1]
        nxt[1:-1, 1:-1] = c + diffusivity[1:-1, 1:-1] * self.dt * (
            (current[0:-2, 1:-1] + current[2:, 1:-1] + current[1:-1, 0:-2] + current[1:-1, 2:])
            - 4.0 * c
        )

    def warmup(self, warmup_size: int = 10):
        """No-op for NumPy kernel."""
        pass


class NumbaKernel:
    """Numba JIT-compiled five-point stencil (serial, one thread per rank)."""

    name = "numba"

    def __init__(self, dt: float):
        self.dt = dt

    def step(self, current: np.ndarray, nxt: np.ndarray, diffusivity: np.ndarray):
        """Write the update of every interior cell of ``current`` into ``nxt``."""
        _heat_step_numba(current, nxt, diffusivity, self.dt)

    def warmup(self, warmup_size: int = 10):
        """Trigger JIT compilation with a small problem."""
        u1 = np.random.rand(warmup_size, warmup_size)
        u2 = np.zeros_like(u1)
        k = np.full_like(u1, 0.1)
        _heat_step_numba(u1, u2, k, self.dt)


def create_kernel(use_numba: bool, dt: float):
    """Factory: Numba kernel if requested, NumPy otherwise."""
    return NumbaKernel(dt) if use_numba else NumPyKernel(dt)
