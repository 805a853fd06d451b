"""Tests for the five-point heat stencil kernels."""

import numpy as np
import pytest
from Heat import Field, NumPyKernel, NumbaKernel, apply_reflective_boundary, create_kernel


ALL_EDGES = {"up": True, "down": True, "left": True, "right": True}


def make_field(M=12, N=10):
    """Single-subgrid field covering the whole M x N domain."""
    field = Field((M, N))
    field.initialize((0, 0), N)
    apply_reflective_boundary(field.current, ALL_EDGES)
    return field


def run_steps(kernel, field, n_steps):
    """Run n_steps boundary + stencil updates with buffer swaps."""
    for _ in range(n_steps):
        apply_reflective_boundary(field.current, ALL_EDGES)
        kernel.step(field.current, field.next, field.diffusivity)
        field.swap()
    return field.current


def test_kernels_produce_identical_results():
    """NumPy and Numba kernels should agree to round-off."""
    numba_kernel = NumbaKernel(dt=0.1)
    numba_kernel.warmup()

    u_numpy = run_steps(NumPyKernel(dt=0.1), make_field(), 20).copy()
    u_numba = run_steps(numba_kernel, make_field(), 20).copy()

    assert np.allclose(u_numpy[1:-1, 1:-1], u_numba[1:-1, 1:-1], rtol=0, atol=1e-12)


def test_single_cell_update_formula():
    """Update is c + K * dt * (sum of four neighbors - 4c)."""
    current = np.zeros((3, 3))
    current[1, 1] = 2.0
    current[0, 1], current[2, 1], current[1, 0], current[1, 2] = 1.0, 3.0, 5.0, 7.0
    diffusivity = np.full((3, 3), 0.1)
    nxt = np.zeros((3, 3))

    NumPyKernel(dt=0.5).step(current, nxt, diffusivity)

    assert nxt[1, 1] == pytest.approx(2.0 + 0.1 * 0.5 * ((1.0 + 3.0 + 5.0 + 7.0) - 8.0))


@pytest.mark.parametrize("use_numba", [False, True])
def test_only_interior_written(use_numba):
    """Halo ring of the target buffer must not be touched."""
    current = np.random.rand(8, 9)
    diffusivity = np.full_like(current, 0.1)
    nxt = np.full_like(current, -7.0)

    create_kernel(use_numba, dt=0.1).step(current, nxt, diffusivity)

    assert np.all(nxt[0, :] == -7.0)
    assert np.all(nxt[-1, :] == -7.0)
    assert np.all(nxt[:, 0] == -7.0)
    assert np.all(nxt[:, -1] == -7.0)
    assert not np.any(nxt[1:-1, 1:-1] == -7.0)


@pytest.mark.parametrize("use_numba", [False, True])
def test_constant_field_is_steady(use_numba):
    """A uniform temperature stays uniform."""
    current = np.full((6, 6), 42.0)
    nxt = np.zeros_like(current)
    diffusivity = np.random.uniform(0.05, 0.15, size=current.shape)

    create_kernel(use_numba, dt=0.1).step(current, nxt, diffusivity)

    assert np.allclose(nxt[1:-1, 1:-1], 42.0)


def test_maximum_principle():
    """With K*dt <= 1/4 the field never leaves its initial range."""
    field = make_field(16, 16)
    lo = field.interior(field.current).min()
    hi = field.interior(field.current).max()

    u = run_steps(NumPyKernel(dt=0.1), field, 50)

    assert u[1:-1, 1:-1].min() >= lo - 1e-12
    assert u[1:-1, 1:-1].max() <= hi + 1e-12


def test_create_kernel():
    assert isinstance(create_kernel(False, 0.1), NumPyKernel)
    assert isinstance(create_kernel(True, 0.1), NumbaKernel)
    assert create_kernel(True, 0.25).dt == 0.25
