"""
Periodic Quotient of a Wire Network
===================================

A wire network drawn in its periodic cell usually repeats nodes and wires on
opposite faces of the cell (a cube lattice lists 8 corners and 12 edges, but
on the 3-torus it is ONE vertex with THREE self-loops).

build_periodic_graph() identifies vertices modulo the period and edges modulo
lattice translations:

    vertex class  : positions equal after wrap_position()
    torus edge    : (u, v, shift) with  x_v + shift·P - x_u = edge vector
                    canonical orientation: u < v, or u == v with shift ≥ -shift

Each class keeps the LOWEST original index of its members as its source id.

Also here: minimum-image helpers and tolerance-based point matching shared by
the clipping stage and the validators.

Jan 2026
"""

import logging
from dataclasses import dataclass, field
from itertools import product
from typing import Dict, List, Optional, Tuple

import numpy as np
from scipy.spatial import cKDTree

from ..spec.constants import EPS_CLOSE, WRAP_DECIMALS, DEFAULT_TOL_REL
from ..spec.errors import GeometryError, InflationError, TopologyError

logger = logging.getLogger(__name__)

# All 27 neighbouring lattice translations (including zero)
_IMAGE_SHIFTS = np.array(list(product((-1, 0, 1), repeat=3)), dtype=float)


def wrap_coord(x: float, origin: float, L: float) -> float:
    """Wrap coordinate to [origin, origin + L) with tolerance for numerical precision."""
    result = (x - origin) % L
    # Snap to 0 if very close to 0 or L (rounding noise on exact multiples)
    if abs(result) < EPS_CLOSE * L or abs(result - L) < EPS_CLOSE * L:
        result = 0.0
    return origin + result


def wrap_position(pos, origin, period) -> tuple:
    """
    Canonical key of a 3D position modulo the period.

    Fractional cell coordinates in [0, 1) rounded to WRAP_DECIMALS, so the
    identification precision is relative to the cell size.
    """
    key = []
    for x, o, L in zip(pos, origin, period):
        frac = (wrap_coord(float(x), float(o), float(L)) - o) / L
        key.append(round(frac, WRAP_DECIMALS) % 1.0)
    return tuple(key)


def minimum_image(delta, period) -> np.ndarray:
    """Shortest periodic representative of a displacement (or array of them)."""
    delta = np.asarray(delta, dtype=float)
    return delta - period * np.round(delta / period)


# =============================================================================
# Quotient graph
# =============================================================================

@dataclass
class TorusEdge:
    """One wire class on the 3-torus."""
    u: int
    v: int
    shift: Tuple[int, int, int]
    vector: np.ndarray        # x_v + shift·P - x_u
    source: int               # lowest original edge index in this class
    members: List[int] = field(default_factory=list)   # every original edge in this class

    @property
    def length(self) -> float:
        return float(np.linalg.norm(self.vector))


@dataclass
class PeriodicGraph:
    """
    Wire network modulo lattice translations.

    positions[u] is the wrapped position (inside [origin, origin + period)) of
    the lowest-index member of vertex class u. vertex_class and edge_class map
    every original vertex / edge to its class (a torus vertex / torus edge index).
    """
    origin: np.ndarray
    period: np.ndarray
    positions: np.ndarray
    vertex_sources: np.ndarray
    vertex_class: np.ndarray
    edges: List[TorusEdge] = field(default_factory=list)
    edge_class: Optional[np.ndarray] = None

    @property
    def num_vertices(self) -> int:
        return len(self.positions)

    @property
    def num_edges(self) -> int:
        return len(self.edges)

    @property
    def edge_sources(self) -> List[int]:
        return [e.source for e in self.edges]

    def ends(self) -> List[List[Tuple[int, int]]]:
        """
        For each torus vertex, its incident edge ends as (edge index, side).

        side 0 = the edge starts here (u end), side 1 = it ends here (v end).
        A self-loop contributes both of its ends to the same vertex.
        """
        ends = [[] for _ in range(self.num_vertices)]
        for idx, edge in enumerate(self.edges):
            ends[edge.u].append((idx, 0))
            ends[edge.v].append((idx, 1))
        return ends

    def end_direction(self, edge_idx: int, side: int) -> np.ndarray:
        """Unit direction pointing from the end's vertex along the wire."""
        vec = self.edges[edge_idx].vector
        d = vec / np.linalg.norm(vec)
        return d if side == 0 else -d


def build_periodic_graph(network) -> PeriodicGraph:
    """
    Build the periodic quotient graph of a wire network.

    Args:
        network: WireNetwork (its bbox is the periodic cell)

    Returns:
        PeriodicGraph

    Raises:
        GeometryError: if the cell has zero extent
        TopologyError: if an edge joins a vertex to itself on the torus
        InflationError: if no edge survives
    """
    origin, top = network.bbox
    period = top - origin
    if np.any(period <= 0):
        raise GeometryError(f"periodic cell is degenerate: {origin} .. {top}")

    V = network.vertices

    # Step 1: vertex classes (first occurrence = lowest index)
    class_of_key: Dict[tuple, int] = {}
    vertex_class = np.zeros(len(V), dtype=np.int64)
    sources = []
    positions = []
    for idx, pos in enumerate(V):
        key = wrap_position(pos, origin, period)
        if key not in class_of_key:
            class_of_key[key] = len(sources)
            sources.append(idx)
            positions.append([wrap_coord(x, o, L) for x, o, L in zip(pos, origin, period)])
        vertex_class[idx] = class_of_key[key]
    positions = np.array(positions, dtype=float).reshape(-1, 3)

    # Step 2: canonical torus edges, deduplicated across periodic images
    edge_of_key: Dict[tuple, int] = {}
    edges: List[TorusEdge] = []
    edge_class = np.zeros(network.num_edges, dtype=np.int64)
    for idx, (a, b) in enumerate(network.edges):
        ca, cb = int(vertex_class[a]), int(vertex_class[b])
        vec = V[b] - V[a]
        shift = np.round((positions[ca] + vec - positions[cb]) / period).astype(int)

        if ca > cb or (ca == cb and tuple(shift) < tuple(-shift)):
            ca, cb, shift = cb, ca, -shift
        if ca == cb and not np.any(shift):
            raise TopologyError(f"Edge {idx}: ({a},{b}) joins a vertex to itself on the torus")

        key = (ca, cb, tuple(int(s) for s in shift))
        if key in edge_of_key:
            edge_class[idx] = edge_of_key[key]
            edges[edge_of_key[key]].members.append(idx)
            continue
        edge_of_key[key] = len(edges)
        edge_class[idx] = len(edges)
        vector = positions[cb] + shift * period - positions[ca]
        edges.append(TorusEdge(ca, cb, key[2], vector, idx, [idx]))

    if not edges:
        raise InflationError("wire network has no edges to inflate")

    logger.debug("Periodic quotient: %d -> %d vertices, %d -> %d edges",
                 len(V), len(positions), network.num_edges, len(edges))

    return PeriodicGraph(origin=np.array(origin, dtype=float), period=period,
                         positions=positions, vertex_sources=np.array(sources, dtype=np.int64),
                         vertex_class=vertex_class, edges=edges, edge_class=edge_class)


# =============================================================================
# Distances and matching
# =============================================================================

def segment_distance(p1, q1, p2, q2) -> float:
    """Minimum distance between segments [p1, q1] and [p2, q2]."""
    d1 = q1 - p1
    d2 = q2 - p2
    r = p1 - p2
    a = float(np.dot(d1, d1))
    e = float(np.dot(d2, d2))
    f = float(np.dot(d2, r))

    if a <= EPS_CLOSE and e <= EPS_CLOSE:
        return float(np.linalg.norm(r))
    if a <= EPS_CLOSE:
        s, t = 0.0, np.clip(f / e, 0.0, 1.0)
    else:
        c = float(np.dot(d1, r))
        if e <= EPS_CLOSE:
            s, t = np.clip(-c / a, 0.0, 1.0), 0.0
        else:
            b = float(np.dot(d1, d2))
            denom = a * e - b * b
            s = np.clip((b * f - c * e) / denom, 0.0, 1.0) if denom > EPS_CLOSE else 0.0
            t = (b * s + f) / e
            if t < 0.0:
                s, t = np.clip(-c / a, 0.0, 1.0), 0.0
            elif t > 1.0:
                s, t = np.clip((b - c) / a, 0.0, 1.0), 1.0

    return float(np.linalg.norm((p1 + s * d1) - (p2 + t * d2)))


def periodic_point_segment_distance(points, a, b, period) -> np.ndarray:
    """
    Distance from each point to the nearest periodic image of segment [a, b].

    Points and segment are assumed to lie within one period of each other
    (at most one lattice translation apart on every axis).
    """
    points = np.atleast_2d(np.asarray(points, dtype=float))
    d = b - a
    dd = float(np.dot(d, d))
    best = np.full(len(points), np.inf)
    for shift in _IMAGE_SHIFTS * period:
        rel = points - (a + shift)
        if dd > EPS_CLOSE:
            t = np.clip(rel @ d / dd, 0.0, 1.0)
        else:
            t = np.zeros(len(points))
        dist = np.linalg.norm(rel - t[:, None] * d, axis=1)
        best = np.minimum(best, dist)
    return best


def find_crossing_wires(graph: PeriodicGraph, tol: float = None) -> List[Tuple[int, int]]:
    """
    Pairs of torus edges that touch or cross without sharing a vertex.

    Short wires (all shorter than a quarter cell): candidate pairs come from
    a periodic cKDTree over wrapped midpoints and only the minimum image can
    touch. Otherwise every pair is checked against the 27 nearest images.
    """
    period = graph.period
    if tol is None:
        tol = DEFAULT_TOL_REL * float(np.max(period))

    starts = graph.positions[[e.u for e in graph.edges]]
    vectors = np.array([e.vector for e in graph.edges])
    mids = starts + 0.5 * vectors
    half = 0.5 * np.linalg.norm(vectors, axis=1)

    radius = 2.0 * float(half.max()) + tol
    if radius < 0.5 * float(np.min(period)):
        wrapped = (mids - graph.origin) % period
        # cKDTree(boxsize) needs data strictly inside [0, boxsize)
        wrapped[wrapped >= period] = 0.0
        tree = cKDTree(wrapped, boxsize=period)
        candidates = tree.query_pairs(r=radius)
        shifts = np.zeros((1, 3))
    else:
        n = len(graph.edges)
        candidates = {(i, j) for i in range(n) for j in range(i + 1, n)}
        shifts = _IMAGE_SHIFTS * period

    crossing = []
    for i, j in sorted(candidates):
        ei, ej = graph.edges[i], graph.edges[j]
        if {ei.u, ei.v} & {ej.u, ej.v}:
            continue
        p1, q1 = starts[i], starts[i] + vectors[i]
        # image of wire j whose midpoint is nearest to wire i's midpoint
        base = starts[j] + minimum_image(mids[j] - mids[i], period) - (mids[j] - mids[i])
        dist = min(segment_distance(p1, q1, base + s, base + s + vectors[j]) for s in shifts)
        if dist < tol:
            crossing.append((i, j))
    return crossing


def match_translated_points(src, dst, shift, tol: float) -> np.ndarray:
    """
    For each src point, the index of the dst point at src + shift (or -1).

    Matching is within `tol` (Euclidean); ambiguous or missing matches give -1.
    """
    src = np.asarray(src, dtype=float).reshape(-1, 3)
    dst = np.asarray(dst, dtype=float).reshape(-1, 3)
    result = np.full(len(src), -1, dtype=np.int64)
    if len(src) == 0 or len(dst) == 0:
        return result
    tree = cKDTree(dst)
    dist, idx = tree.query(src + np.asarray(shift, dtype=float), k=1)
    ok = dist < tol
    result[ok] = idx[ok]
    return result
