"""
Inflation layer - junctions, tube bodies, periodic clipping, refinement.

Entry point: PeriodicInflator (engine.py). The other modules are the
pipeline stages and are importable for testing.
"""

from .engine import PeriodicInflator
from .junction import JunctionPatch, build_junction, compute_junction_offset
from .clipping import choose_cut_planes, find_cut_plane, pair_boundary_faces
from .refinement import refine
