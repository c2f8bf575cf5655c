import os
import sys

import numpy as np
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from airway_generation.data_structures import ParticleSet


def _make_particles(positions, scales=None, hevec2=None, chest_types=None):
    positions = np.asarray(positions, dtype=float).reshape(-1, 3)
    n = len(positions)
    if scales is None:
        scales = np.ones(n)
    if hevec2 is None:
        hevec2 = np.tile([1.0, 0.0, 0.0], (n, 1))
    return ParticleSet(positions, scales, hevec2, chest_types)


@pytest.fixture
def make_particles():
    """Factory for particle sets; unit scales and x-aligned eigenvectors by default."""
    return _make_particles


@pytest.fixture
def chain_particles():
    """Five particles on the x axis, 1 mm apart, with decreasing scale."""
    positions = [[float(i), 0.0, 0.0] for i in range(5)]
    return _make_particles(positions, scales=[5.0, 4.5, 4.0, 3.5, 3.0])
