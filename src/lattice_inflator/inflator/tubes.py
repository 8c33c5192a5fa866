"""
Tube Bodies
===========

The straight part of a wire between its two junction rings.

Ring A (at the u end) and ring B (at the v end) are placed with the SAME
frame, so A[k] and B[k] lie on one longitudinal line. The body is the convex
hull of the two rings (a frustum over the profile):

    ring A face   - outward towards u   (never emitted, glued to the junction)
    ring B face   - outward towards v   (never emitted, glued to the junction)
    N side quads  - A[k], A[k+1], B[k+1], B[k]  (planar trapezoids)

PER_EDGE rings share one radius; PER_VERTEX rings use the radius of their
own vertex, which makes the side linear in radius along the wire.

Bodies are kept as polygon faces over a growable VertexTable so the clipping
stage can split them into convex pieces.

Jan 2026
"""

from dataclasses import dataclass, field
from typing import Dict, List, Set, Tuple

import numpy as np

from ..spec.constants import MIN_TUBE_FRACTION
from ..spec.errors import InflationError
from .junction import newell_normal

SIDE = ("side",)
RING_A = ("ring", 0)
RING_B = ("ring", 1)


@dataclass
class Face:
    """Convex polygon, counter-clockwise seen from outside the body."""
    vids: Tuple[int, ...]
    kind: tuple

    @property
    def is_ring(self) -> bool:
        return self.kind[0] == "ring"

    @property
    def is_cap(self) -> bool:
        return self.kind[0] == "cap"


class VertexTable:
    """
    Growable vertex store for one tube body.

    planes[v] lists the cut planes (axis, value) vertex v lies on; those
    coordinates are exact.
    """

    def __init__(self):
        self.coords: List[np.ndarray] = []
        self.planes: Dict[int, Set[Tuple[int, float]]] = {}
        self._cuts: Dict[Tuple[int, int], int] = {}

    def __len__(self):
        return len(self.coords)

    def add(self, point, planes=()) -> int:
        self.coords.append(np.array(point, dtype=float))
        vid = len(self.coords) - 1
        if planes:
            self.planes[vid] = set(planes)
        return vid

    def points(self, vids) -> np.ndarray:
        return np.array([self.coords[v] for v in vids])

    def snap(self, vid: int, axis: int, value: float):
        self.coords[vid][axis] = value
        self.planes.setdefault(vid, set()).add((axis, value))

    def cut_edge(self, i: int, j: int, axis: int, value: float) -> int:
        """Vertex where segment (i, j) crosses the plane; shared by both faces of the edge."""
        key = (min(i, j), max(i, j))
        if key in self._cuts:
            return self._cuts[key]
        pi, pj = self.coords[i], self.coords[j]
        t = (value - pi[axis]) / (pj[axis] - pi[axis])
        point = pi + t * (pj - pi)
        point[axis] = value
        # Keep the planes the edge already lies on
        inherited = self.planes.get(i, set()) & self.planes.get(j, set())
        vid = self.add(point, inherited | {(axis, value)})
        for a, v in inherited:
            self.coords[vid][a] = v
        self._cuts[key] = vid
        return vid


@dataclass
class TubeBody:
    """One frustum: vertex table, its faces, and the vids of both rings."""
    table: VertexTable
    faces: List[Face]
    ring_a: List[int]
    ring_b: List[int]
    extent: Tuple[np.ndarray, np.ndarray] = field(default=None)


def check_tube_clearance(length: float, offset_u: float, offset_v: float, label=None):
    """
    Both junction offsets must leave a straight part on the wire.

    Raises:
        InflationError: if the wire is too short for its two junctions
    """
    if offset_u + offset_v > (1.0 - MIN_TUBE_FRACTION) * length:
        raise InflationError(
            f"wire {label} is too short ({length:.4g}) for its junction offsets "
            f"{offset_u:.4g} + {offset_v:.4g}; reduce the thickness"
        )


def _orient(table: VertexTable, vids: List[int], outward: np.ndarray) -> Tuple[int, ...]:
    if float(np.dot(newell_normal(table.points(vids)), outward)) < 0:
        vids = vids[::-1]
    return tuple(vids)


def build_tube_body(ring_a: np.ndarray, ring_b: np.ndarray) -> TubeBody:
    """
    Frustum between two aligned rings (same sample count, same frame).

    Args:
        ring_a: (N, 3) ring at the start of the wire
        ring_b: (N, 3) ring at the end of the wire
    """
    n = len(ring_a)
    if len(ring_b) != n:
        raise InflationError(f"tube rings differ in size: {n} vs {len(ring_b)}")

    table = VertexTable()
    ids_a = [table.add(p) for p in ring_a]
    ids_b = [table.add(p) for p in ring_b]

    ca, cb = ring_a.mean(axis=0), ring_b.mean(axis=0)
    axis = cb - ca
    axis_sq = float(axis @ axis)

    faces = [
        Face(_orient(table, ids_a, -axis), RING_A),
        Face(_orient(table, ids_b, axis), RING_B),
    ]
    for k in range(n):
        quad = [ids_a[k], ids_a[(k + 1) % n], ids_b[(k + 1) % n], ids_b[k]]
        centroid = table.points(quad).mean(axis=0)
        t = float((centroid - ca) @ axis) / axis_sq
        radial = centroid - (ca + t * axis)
        faces.append(Face(_orient(table, quad, radial), SIDE))

    points = np.vstack([ring_a, ring_b])
    return TubeBody(table, faces, ids_a, ids_b, (points.min(axis=0), points.max(axis=0)))
