"""
LATTICE_INFLATOR - Periodic wire-lattice inflation
==================================================

Turns a periodic network of straight wires into a closed, watertight,
manifold triangle mesh that tiles space across its periodic cell.

Structure:
    spec/        - Constants, error kinds, output contract
    wires/       - Wire network, cross-section profiles, periodic quotient
    builders/    - Standard unit-cell lattices (cube, brick, star, diamond, ...)
    parameters/  - Orbit/modifier driven thickness and offset fields
    inflator/    - Junctions, tubes, periodic clipping, refinement, engine
    analysis/    - Mesh validation predicates
    logging_config.py - Package logger setup

Requirements:
    Python >= 3.9
    numpy >= 1.20
    scipy >= 1.11
    sympy >= 1.9

Jan 2026
"""

import sys

# Python version check
if sys.version_info < (3, 9):
    raise ImportError(f"lattice_inflator requires Python >= 3.9, got {sys.version}")

# scipy version check (scipy.spatial.QhullError is exported from 1.11 on)
import scipy
_scipy_version = tuple(int(p) for p in scipy.__version__.split('.')[:2] if p.isdigit())
if _scipy_version < (1, 11):
    raise ImportError(f"lattice_inflator requires scipy >= 1.11, got {scipy.__version__}")

# numpy version check
import numpy as np
_numpy_version = tuple(int(p) for p in np.__version__.split('.')[:2] if p.isdigit())
if _numpy_version < (1, 20):
    raise ImportError(f"lattice_inflator requires numpy >= 1.20, got {np.__version__}")

__version__ = "0.1.0"

from .logging_config import setup_logging
from .spec.constants import PER_EDGE, PER_VERTEX
from .spec.errors import (
    LatticeError,
    TopologyError,
    GeometryError,
    ParseError,
    ValidationError,
    StateError,
    InflationError,
)
from .wires import WireNetwork, WireProfile
from .parameters import ParameterManager
from .inflator import PeriodicInflator
from .analysis import (
    is_water_tight,
    is_manifold,
    is_periodic,
    face_source_is_valid,
    validate_mesh,
)
