"""
Junctions
=========

Surface patches that fuse the tubes meeting at one torus vertex.

Each incident wire end owns one profile ring, placed at the junction offset
s from the vertex along the wire. The patch is bounded by exactly those
rings, and the tubes are glued onto them.

BRANCHES:
    degree 1               → flat cap: fan over the best-fit plane of the ring
    degree 2, straight     → bridge: the two rings stitched directly
    otherwise              → convex hull of all rings, ring caps removed

OFFSET (why the hull works):
    Rings i, j with directions at angle θ and radii r_i, r_j. Ring j lies
    strictly below ring i's plane when  s·cos θ + r_j·sin θ < s,  i.e.
        s > r_j · cot(θ/2)
    so every ring is a face of the hull and the hull minus the ring caps is
    bounded by the rings alone.

All coordinates here are LOCAL (vertex at the origin).

Jan 2026
"""

import logging
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import List, Sequence

import numpy as np
from scipy.spatial import ConvexHull, QhullError

from ..spec.constants import (
    COLLINEAR_TOL,
    EPS_ZERO,
    JUNCTION_MARGIN,
    MIN_JUNCTION_ANGLE,
    MIN_OFFSET_RATIO,
)
from ..spec.errors import InflationError

logger = logging.getLogger(__name__)


@dataclass
class JunctionPatch:
    """
    Triangles over stacked local points.

    points[ring_slices[k]] is ring k (the input order); any extra points
    (cap centers) come after the rings.
    """
    points: np.ndarray
    triangles: np.ndarray
    ring_slices: List[slice]
    kind: str


# =============================================================================
# Offsets
# =============================================================================

def compute_junction_offset(directions: Sequence[np.ndarray], radii: Sequence[float]) -> float:
    """
    Common ring offset s for one vertex.

    Args:
        directions: unit vectors of the incident wire ends
        radii: ring radius of each end

    Returns:
        s ≥ MIN_OFFSET_RATIO · max(radii); 0 for a single (dangling) end

    Raises:
        InflationError: two incident wires closer than MIN_JUNCTION_ANGLE
    """
    if len(directions) == 1:
        return 0.0

    offset = MIN_OFFSET_RATIO * max(radii)
    for i in range(len(directions)):
        for j in range(i + 1, len(directions)):
            cos_theta = float(np.clip(np.dot(directions[i], directions[j]), -1.0, 1.0))
            theta = float(np.arccos(cos_theta))
            if theta < MIN_JUNCTION_ANGLE:
                raise InflationError(
                    f"incident wires overlap (angle {theta:.2e} rad < {MIN_JUNCTION_ANGLE})"
                )
            need = max(radii[i], radii[j]) / np.tan(theta / 2.0)
            offset = max(offset, (1.0 + JUNCTION_MARGIN) * need)
    return offset


# =============================================================================
# Orientation helpers
# =============================================================================

def newell_normal(points: np.ndarray) -> np.ndarray:
    """Area-weighted normal of a closed polygon (not normalized)."""
    nxt = np.roll(points, -1, axis=0)
    return 0.5 * np.sum(np.cross(points, nxt), axis=0)


def orient_consistently(triangles: np.ndarray, seed: int, flip_seed: bool) -> np.ndarray:
    """
    Propagate one triangle's orientation across a connected surface patch.

    Neighbours across an edge must traverse it in opposite directions; this
    holds even for zero-area triangles whose normals are meaningless.
    """
    tris = [list(t) for t in triangles]
    if flip_seed:
        tris[seed] = [tris[seed][0], tris[seed][2], tris[seed][1]]

    by_edge = defaultdict(list)
    for t, (a, b, c) in enumerate(tris):
        for u, v in ((a, b), (b, c), (c, a)):
            by_edge[(min(u, v), max(u, v))].append(t)

    visited = {seed}
    queue = deque([seed])
    while queue:
        t = queue.popleft()
        a, b, c = tris[t]
        for u, v in ((a, b), (b, c), (c, a)):
            for other in by_edge[(min(u, v), max(u, v))]:
                if other in visited:
                    continue
                o = tris[other]
                directed = {(o[0], o[1]), (o[1], o[2]), (o[2], o[0])}
                if (u, v) in directed:
                    tris[other] = [o[0], o[2], o[1]]
                visited.add(other)
                queue.append(other)

    if len(visited) != len(tris):
        raise InflationError("junction surface is not connected")
    return np.array(tris, dtype=np.int64).reshape(-1, 3)


def _ring_edges(ring_slices: List[slice]) -> set:
    edges = set()
    for sl in ring_slices:
        idx = list(range(sl.start, sl.stop))
        for k in range(len(idx)):
            a, b = idx[k], idx[(k + 1) % len(idx)]
            edges.add((min(a, b), max(a, b)))
    return edges


def _check_boundary(triangles: np.ndarray, ring_slices: List[slice], label):
    """The patch boundary must be exactly the ring cycles."""
    counts = defaultdict(int)
    for a, b, c in triangles:
        for u, v in ((a, b), (b, c), (c, a)):
            counts[(min(u, v), max(u, v))] += 1

    boundary = {e for e, n in counts.items() if n == 1}
    if any(n > 2 for n in counts.values()) or boundary != _ring_edges(ring_slices):
        raise InflationError(f"junction at vertex {label} does not close onto its rings")


# =============================================================================
# Branches
# =============================================================================

def _stack(rings: Sequence[np.ndarray]):
    slices, start = [], 0
    for ring in rings:
        slices.append(slice(start, start + len(ring)))
        start += len(ring)
    return np.vstack(rings), slices


def hull_junction(rings: Sequence[np.ndarray], label=None) -> JunctionPatch:
    """
    Convex hull of all rings with the ring caps removed.

    Raises:
        InflationError: Qhull failure, or a ring that is not a hull face
    """
    points, slices = _stack(rings)
    owner = np.concatenate([np.full(sl.stop - sl.start, k) for k, sl in enumerate(slices)])

    try:
        hull = ConvexHull(points)
    except QhullError as err:
        raise InflationError(f"convex hull failed at vertex {label}: {err}") from err

    if len(hull.vertices) != len(points):
        raise InflationError(f"junction at vertex {label}: a ring sample is hidden inside the hull")

    keep = [k for k, s in enumerate(hull.simplices)
            if not (owner[s[0]] == owner[s[1]] == owner[s[2]])]
    triangles = hull.simplices[keep]
    normals = hull.equations[keep, :3]

    # Seed = largest triangle, oriented by its facet normal
    p = points[triangles]
    cross = np.cross(p[:, 1] - p[:, 0], p[:, 2] - p[:, 0])
    seed = int(np.argmax(np.linalg.norm(cross, axis=1)))
    flip = float(np.dot(cross[seed], normals[seed])) < 0
    triangles = orient_consistently(triangles, seed, flip)

    _check_boundary(triangles, slices, label)
    return JunctionPatch(points, triangles, slices, "hull")


def align_rings(ring_a: np.ndarray, ring_b: np.ndarray) -> np.ndarray:
    """
    Reorder ring_b so that ring_b[k] sits across from ring_a[k].

    Tries every cyclic shift in both directions, comparing the samples
    projected onto the plane orthogonal to the ring-to-ring axis.

    Returns:
        index array into ring_b
    """
    n = len(ring_a)
    if len(ring_b) != n:
        raise InflationError(f"cannot bridge rings of {n} and {len(ring_b)} samples")

    axis = ring_b.mean(axis=0) - ring_a.mean(axis=0)
    axis_len = np.linalg.norm(axis)
    axis = axis / axis_len if axis_len > EPS_ZERO else np.zeros(3)

    def project(p):
        local = p - p.mean(axis=0)
        return local - np.outer(local @ axis, axis)

    pa, pb = project(ring_a), project(ring_b)
    best, best_cost = None, np.inf
    for direction in (1, -1):
        for shift in range(n):
            order = (shift + direction * np.arange(n)) % n
            cost = float(np.sum((pa - pb[order]) ** 2))
            if cost < best_cost - EPS_ZERO:
                best, best_cost = order, cost
    return best


def stitch_rings(points: np.ndarray, idx_a: Sequence[int], idx_b: Sequence[int]) -> np.ndarray:
    """
    Band of triangles between two aligned rings, oriented away from their axis.

    idx_a[k] must sit across from idx_b[k].
    """
    n = len(idx_a)
    tris = []
    for k in range(n):
        a0, a1 = idx_a[k], idx_a[(k + 1) % n]
        b0, b1 = idx_b[k], idx_b[(k + 1) % n]
        tris.append((a0, a1, b1))
        tris.append((a0, b1, b0))
    tris = np.array(tris, dtype=np.int64)

    ca = points[list(idx_a)].mean(axis=0)
    cb = points[list(idx_b)].mean(axis=0)
    axis = cb - ca
    p = points[tris]
    centroids = p.mean(axis=1)
    t = ((centroids - ca) @ axis) / max(float(axis @ axis), EPS_ZERO)
    radial = centroids - (ca + np.outer(t, axis))
    normals = np.cross(p[:, 1] - p[:, 0], p[:, 2] - p[:, 0])
    if float(np.sum(normals * radial)) < 0:
        tris = tris[:, [0, 2, 1]]
    return tris


def bridge_junction(ring_a: np.ndarray, ring_b: np.ndarray, label=None) -> JunctionPatch:
    """Straight-through degree-2 joint: stitch the two rings directly."""
    points, slices = _stack([ring_a, ring_b])
    order = align_rings(ring_a, ring_b)
    n = len(ring_a)
    triangles = stitch_rings(points, list(range(n)), list(n + order))
    _check_boundary(triangles, slices, label)
    return JunctionPatch(points, triangles, slices, "bridge")


def cap_junction(ring: np.ndarray, outward: np.ndarray, label=None) -> JunctionPatch:
    """
    Flat cap over a dangling wire end.

    The ring is fanned from its centroid projected onto the best-fit plane
    (SVD); the fan faces `outward`.
    """
    center = ring.mean(axis=0)
    _, _, vt = np.linalg.svd(ring - center)
    normal = vt[-1]
    if float(np.dot(normal, outward)) < 0:
        normal = -normal

    n = len(ring)
    points = np.vstack([ring, center[None, :]])
    tris = np.array([(n, k, (k + 1) % n) for k in range(n)], dtype=np.int64)
    if float(np.dot(newell_normal(ring), normal)) < 0:
        tris = tris[:, [0, 2, 1]]
    slices = [slice(0, n)]
    _check_boundary(tris, slices, label)
    return JunctionPatch(points, tris, slices, "cap")


def build_junction(rings: Sequence[np.ndarray], directions: Sequence[np.ndarray],
                   label=None) -> JunctionPatch:
    """
    Pick the junction branch for one vertex.

    Args:
        rings: local ring of each incident end
        directions: unit direction of each incident end (pointing away from the vertex)
        label: vertex id used in error messages
    """
    if len(rings) == 0:
        raise InflationError(f"vertex {label} has no incident wires")
    if len(rings) == 1:
        return cap_junction(rings[0], -np.asarray(directions[0]), label)
    if len(rings) == 2 and 1.0 + float(np.dot(directions[0], directions[1])) < COLLINEAR_TOL:
        return bridge_junction(rings[0], rings[1], label)
    return hull_junction(rings, label)
