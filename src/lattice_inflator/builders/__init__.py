"""
Lattice builders - standard unit-cell wire networks, connectivity computed.
"""

from .lattices import (
    build_bcc_wire,
    build_brick_wire,
    build_cube_wire,
    build_diamond_wire,
    build_pendant_wire,
    build_star_wire,
    build_subdivided_cube_wire,
)
