"""
Spec layer - constants, error kinds and the inflation output contract.

Everything else depends on this package; it depends on nothing but numpy.
"""

from . import constants
from . import errors
from .structures import InflationOutput, canonical_face, create_output, validate_output
