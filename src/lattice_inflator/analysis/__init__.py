"""
Analysis layer - mesh validation predicates.

Depends on spec and wires only; never on engine internals.
"""

from .validation import (
    face_source_is_valid,
    find_boundary_edges,
    find_nonmanifold_vertices,
    is_manifold,
    is_periodic,
    is_water_tight,
    validate_mesh,
)
