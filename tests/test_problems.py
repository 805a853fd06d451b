"""Tests for the initial condition and diffusivity."""

import numpy as np
import pytest
from Heat import global_initial_temperature, initial_temperature, thermal_diffusivity
from Heat.problems import global_indices


def test_origin_values():
    """T0(0, 0) = 30 and K(0, 0) = 0.05 + (30 + 30 sin(N/20)) / 605."""
    assert initial_temperature(0.0, 0.0) == pytest.approx(30.0)
    assert thermal_diffusivity(0.0, 0.0, 40) == pytest.approx(0.05 + (30 + 30 * np.sin(2.0)) / 605)


def test_temperature_depends_on_x_plus_y():
    T = global_initial_temperature(6, 6)
    assert T[1, 2] == pytest.approx(T[2, 1])
    assert T[0, 3] == pytest.approx(T[3, 0])


def test_temperature_range():
    T = global_initial_temperature(64, 64)
    assert T.min() >= 0.0
    assert T.max() <= 60.0


def test_global_indices_zero_indexed():
    """Rows vary along axis 0, columns along axis 1."""
    Y, X = global_indices(3, 4, offset=(2, 5), shape=(2, 3))
    assert Y.shape == (2, 3)
    assert Y[0, 0] == 2 and Y[1, 0] == 3
    assert X[0, 0] == 5 and X[0, 2] == 7
    assert Y.dtype == np.float64


def test_diffusivity_bounds():
    Y, X = global_indices(32, 48)
    K = thermal_diffusivity(Y, X, 48)
    assert np.all(K >= 0.05)
    assert np.all(K <= 0.05 + 60.0 / 605.0)
