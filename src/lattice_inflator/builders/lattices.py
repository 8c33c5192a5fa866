"""
Standard Unit-Cell Wire Lattices
================================

Wire networks in the unit cell [0, 1]³ with connectivity computed.
Periodic copies of nodes on opposite cell faces are listed explicitly, the
way lattice files draw them; build_periodic_graph() folds them back.

LATTICES (torus counts = vertices / edges after periodic identification):
    - cube            : 8 corners, 12 edges        → 1 / 3   (degree 6)
    - brick(n)        : (n+1)³ grid nodes          → n³ / 3n³
    - star            : center + 8 corners         → 2 / 8   (degree 8)
    - bcc             : star + cube edges          → 2 / 11
    - diamond         : 18 nodes, 16 bonds         → 8 / 16  (degree 4)
    - subdivided cube : cube with edge midpoints   → 4 / 6   (straight degree-2 joints)
    - pendant         : cube + dangling wire       → 2 / 4   (one degree-1 end)

Jan 2026
"""

from itertools import product
from typing import List, Tuple

import numpy as np

from ..spec.constants import EPS_CLOSE
from ..wires.network import WireNetwork

UNIT_CELL = (np.zeros(3), np.ones(3))


def _edges_at_distance(vertices: np.ndarray, distance: float,
                       subset_a=None, subset_b=None) -> List[Tuple[int, int]]:
    """All vertex pairs (i < j) at the given distance, optionally restricted to two subsets."""
    n = len(vertices)
    subset_a = range(n) if subset_a is None else subset_a
    subset_b = set(range(n) if subset_b is None else subset_b)
    edges = set()
    for i in subset_a:
        for j in subset_b:
            if i == j:
                continue
            if abs(np.linalg.norm(vertices[i] - vertices[j]) - distance) < EPS_CLOSE:
                edges.add((min(i, j), max(i, j)))
    return sorted(edges)


def _axis_aligned_edges(vertices: np.ndarray, spacing: float) -> List[Tuple[int, int]]:
    """Pairs differing by `spacing` along exactly one axis."""
    edges = []
    for i, j in _edges_at_distance(vertices, spacing):
        diff = np.abs(vertices[i] - vertices[j])
        if np.count_nonzero(diff > EPS_CLOSE) == 1:
            edges.append((i, j))
    return edges


def build_cube_wire() -> WireNetwork:
    """
    Simple cubic lattice: the 12 edges of the unit cube.

    TOPOLOGY (torus):
        V = 1, E = 3 self-loops along x, y, z
    """
    vertices = np.array(sorted(product([0.0, 1.0], repeat=3)))
    edges = _axis_aligned_edges(vertices, 1.0)
    return WireNetwork.from_arrays(vertices, edges, UNIT_CELL)


def build_brick_wire(n: int = 5) -> WireNetwork:
    """
    n×n×n block of simple cubic cells ("brick5" for n = 5).

    TOPOLOGY (torus):
        V = n³, E = 3n³, every vertex degree 6
    """
    if n < 1:
        raise ValueError(f"brick needs n >= 1, got {n}")
    ticks = np.arange(n + 1) / n
    vertices = np.array(list(product(ticks, repeat=3)))
    edges = _axis_aligned_edges(vertices, 1.0 / n)
    return WireNetwork.from_arrays(vertices, edges, UNIT_CELL)


def build_star_wire() -> WireNetwork:
    """
    3D star: the cell center joined to all 8 corners.

    TOPOLOGY (torus):
        V = 2 (center, corner), E = 8 body diagonals, both vertices degree 8
    """
    corners = sorted(product([0.0, 1.0], repeat=3))
    vertices = np.array([(0.5, 0.5, 0.5)] + corners)
    edges = [(0, i) for i in range(1, 9)]
    return WireNetwork.from_arrays(vertices, edges, UNIT_CELL)


def build_bcc_wire() -> WireNetwork:
    """
    Body-centred cubic wires: star diagonals plus the cube edges.

    TOPOLOGY (torus):
        V = 2, E = 8 + 3, corner degree 14, center degree 8
    """
    star = build_star_wire()
    vertices = star.vertices
    corner_ids = list(range(1, 9))
    cube_edges = [e for e in _axis_aligned_edges(vertices, 1.0)
                  if e[0] in corner_ids and e[1] in corner_ids]
    edges = [tuple(e) for e in star.edges.tolist()] + cube_edges
    return WireNetwork.from_arrays(vertices, edges, UNIT_CELL)


def build_diamond_wire() -> WireNetwork:
    """
    Diamond cubic lattice: FCC sites bonded to the 4 interior sites.

    Interior sites at (1/4, 1/4, 1/4) + FCC translations; bond length √3/4.

    TOPOLOGY (torus):
        V = 8, E = 16, every vertex degree 4 (tetrahedral)
    """
    # corners (no 0.5 coordinate) and face centers (two 0.5 coordinates)
    fcc = [p for p in product([0.0, 0.5, 1.0], repeat=3)
           if sum(1 for x in p if x == 0.5) in (0, 2)]
    interior = [(0.25, 0.25, 0.25), (0.25, 0.75, 0.75),
                (0.75, 0.25, 0.75), (0.75, 0.75, 0.25)]
    vertices = np.array(sorted(fcc) + interior)
    n_fcc = len(fcc)
    edges = _edges_at_distance(vertices, np.sqrt(3.0) / 4.0,
                               subset_a=range(n_fcc, len(vertices)),
                               subset_b=range(n_fcc))
    return WireNetwork.from_arrays(vertices, edges, UNIT_CELL)


def build_subdivided_cube_wire() -> WireNetwork:
    """
    Cube lattice with every edge split at its midpoint.

    The midpoints are straight-through (collinear) degree-2 joints.

    TOPOLOGY (torus):
        V = 1 corner + 3 midpoints, E = 6
    """
    vertices = np.array(sorted(p for p in product([0.0, 0.5, 1.0], repeat=3)
                               if sum(1 for x in p if x == 0.5) <= 1))
    edges = _axis_aligned_edges(vertices, 0.5)
    return WireNetwork.from_arrays(vertices, edges, UNIT_CELL)


def build_pendant_wire() -> WireNetwork:
    """
    Cube lattice plus one dangling wire from the origin corner to the center.

    The center is a degree-1 end and gets a flat cap.

    TOPOLOGY (torus):
        V = 2, E = 4, corner degree 7, center degree 1
    """
    cube = build_cube_wire()
    vertices = np.vstack([cube.vertices, [[0.5, 0.5, 0.5]]])
    edges = [tuple(e) for e in cube.edges.tolist()] + [(0, len(vertices) - 1)]
    return WireNetwork.from_arrays(vertices, edges, UNIT_CELL)
