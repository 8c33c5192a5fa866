"""
Wire layer - networks, cross-section profiles and the periodic quotient.

EXPORTS:
- WireNetwork: vertices, edges, periodic cell, adjacency
- WireProfile, frame_for_direction: immutable 2D sweep loops
- build_periodic_graph, PeriodicGraph, TorusEdge: network modulo lattice translations
"""

from .network import WireNetwork
from .profile import WireProfile, frame_for_direction
from .periodic import (
    PeriodicGraph,
    TorusEdge,
    build_periodic_graph,
    find_crossing_wires,
    match_translated_points,
    minimum_image,
    periodic_point_segment_distance,
    wrap_coord,
    wrap_position,
)
