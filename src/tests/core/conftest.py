"""
Shared fixtures for lattice_inflator tests.

Every lattice is scaled to the cell [-2.5, 2.5]³ (period 5), the size the
reference thickness of 0.5 is tuned for.
"""

import numpy as np
import pytest

from lattice_inflator.builders import (
    build_bcc_wire,
    build_brick_wire,
    build_cube_wire,
    build_diamond_wire,
    build_pendant_wire,
    build_star_wire,
    build_subdivided_cube_wire,
)

CELL_MIN = [-2.5, -2.5, -2.5]
CELL_MAX = [2.5, 2.5, 2.5]

LATTICE_BUILDERS = {
    "cube": build_cube_wire,
    "brick5": lambda: build_brick_wire(5),
    "star": build_star_wire,
    "bcc": build_bcc_wire,
    "diamond": build_diamond_wire,
    "subdivided_cube": build_subdivided_cube_wire,
    "pendant": build_pendant_wire,
}


def make_lattice(name):
    network = LATTICE_BUILDERS[name]()
    network.scale_fit(CELL_MIN, CELL_MAX)
    return network


@pytest.fixture
def lattice():
    """Factory: lattice("star") → scaled network."""
    return make_lattice


@pytest.fixture
def cube():
    return make_lattice("cube")


@pytest.fixture
def brick5():
    return make_lattice("brick5")


@pytest.fixture
def star():
    return make_lattice("star")


@pytest.fixture
def diamond():
    return make_lattice("diamond")


@pytest.fixture
def pendant():
    return make_lattice("pendant")


@pytest.fixture
def rng():
    from lattice_inflator.spec.constants import DEFAULT_SEED
    return np.random.default_rng(DEFAULT_SEED)
