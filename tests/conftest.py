from __future__ import annotations

import itertools

import numpy as np
import pytest

from dfsolve import Model


class FixedSource:
    """Direction source replaying the given vectors in a cycle."""

    def __init__(self, *vectors):
        self.vectors = [np.asarray(v, dtype=float) for v in vectors]
        self._it = itertools.cycle(self.vectors)
        self.calls = 0

    def next_gaussian_vector(self, n):
        self.calls += 1
        v = next(self._it)
        assert v.size == n
        return v.copy()


def quadratic_1d(x):
    return (x[0] - 3.0) ** 2


def rosenbrock(x):
    return (1.0 - x[0]) ** 2 + 100.0 * (x[1] - x[0] ** 2) ** 2


@pytest.fixture
def quad1d():
    return Model(quadratic_1d, np.array([0.0]), name="quad1d")


@pytest.fixture
def rosen():
    return Model(rosenbrock, np.array([-1.2, 1.0]), name="rosenbrock")


@pytest.fixture
def fixed_source():
    return FixedSource
