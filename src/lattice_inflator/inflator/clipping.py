"""
Periodic Clipping
=================

Cuts the inflated torus surface open into one fundamental domain [c, c + P).

STEP 1 - cut planes:
    For each axis pick c_a so that no plane c_a + k·P_a touches any junction
    (rings included, plus CUT_CLEARANCE_REL · P_a). The network's own cell
    boundary is kept when it is free; otherwise the middle of the widest free
    gap is used.

STEP 2 - clip tube bodies:
    Planes then only cross tube bodies, which are convex frusta. Splitting a
    convex body by a plane gives two convex bodies whose new faces are the
    SAME section polygon with opposite orientations. Repeating this for every
    plane crossing the body leaves convex pieces, each inside one translate
    of the domain.

STEP 3 - pair boundary faces:
    After translation, sections sit on opposite domain faces. They are paired
    by position modulo the period (cKDTree, within tolerance); an unmatched
    face means the surface is not periodic.

Jan 2026
"""

import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np

from ..spec.constants import CUT_CLEARANCE_REL, EPS_ZERO
from ..spec.errors import InflationError
from ..wires.periodic import match_translated_points
from .tubes import Face, TubeBody, VertexTable

logger = logging.getLogger(__name__)


# =============================================================================
# Step 1: cut planes
# =============================================================================

def find_cut_plane(intervals: Sequence[Tuple[float, float]], origin: float,
                   period: float, clearance: float) -> float:
    """
    A coordinate c such that no c + k·period falls inside any interval.

    Args:
        intervals: forbidden (lo, hi) ranges, unwrapped
        origin: preferred cut (the network's cell minimum)
        period: cell period along this axis
        clearance: margin added on both sides of every interval

    Returns:
        origin when it is free, else the middle of the widest free gap

    Raises:
        InflationError: if the forbidden ranges cover the whole period
    """
    spans = []
    for lo, hi in intervals:
        lo, hi = lo - clearance, hi + clearance
        if hi - lo >= period:
            raise InflationError(f"a junction spans a whole period ({hi - lo:.4g} >= {period:.4g})")
        a = (lo - origin) % period
        b = a + (hi - lo)
        if b <= period:
            spans.append((a, b))
        else:
            spans.append((a, period))
            spans.append((0.0, b - period))

    if not spans:
        return origin

    spans.sort()
    merged = []
    for a, b in spans:
        if merged and a <= merged[-1][1]:
            merged[-1][1] = max(merged[-1][1], b)
        else:
            merged.append([a, b])

    if merged[0][0] > 0.0 and merged[-1][1] < period:
        return origin

    gaps = []
    for k in range(len(merged)):
        start = merged[k][1]
        end = merged[k + 1][0] if k + 1 < len(merged) else merged[0][0] + period
        if end > start:
            gaps.append((end - start, start))
    if not gaps:
        raise InflationError("junctions leave no room for a periodic cut plane")

    width, start = max(gaps, key=lambda g: (g[0], -g[1]))
    return origin + (start + 0.5 * width) % period


def choose_cut_planes(extent_lo: np.ndarray, extent_hi: np.ndarray,
                      origin: np.ndarray, period: np.ndarray) -> np.ndarray:
    """
    One cut coordinate per axis avoiding every junction extent.

    Args:
        extent_lo, extent_hi: (n, 3) bounding boxes of the junctions
        origin, period: the network's periodic cell

    Returns:
        (3,) cut coordinates c
    """
    cut = np.zeros(3)
    for axis in range(3):
        intervals = list(zip(extent_lo[:, axis], extent_hi[:, axis]))
        clearance = CUT_CLEARANCE_REL * period[axis]
        cut[axis] = find_cut_plane(intervals, origin[axis], period[axis], clearance)
    if not np.allclose(cut, origin):
        logger.info("Network cell boundary crosses a junction; fundamental domain starts at %s",
                    np.round(cut, 6).tolist())
    return cut


def wrap_into_domain(lo: np.ndarray, cut: np.ndarray, period: np.ndarray) -> np.ndarray:
    """Whole-period translation moving a point/box minimum into [cut, cut + period)."""
    return -np.floor((lo - cut) / period) * period


# =============================================================================
# Step 2: convex splitting
# =============================================================================

def split_piece(table: VertexTable, faces: List[Face], axis: int, value: float,
                eps: float) -> Tuple[Optional[List[Face]], Optional[List[Face]]]:
    """
    Split a convex piece by the plane x[axis] = value.

    Vertices within eps of the plane are snapped onto it.

    Returns:
        (below, above) faces; one side is None if the plane misses the piece
    """
    sign = {}
    for face in faces:
        for v in face.vids:
            if v in sign:
                continue
            d = table.coords[v][axis] - value
            if abs(d) <= eps:
                table.snap(v, axis, value)
                sign[v] = 0
            else:
                sign[v] = 1 if d > 0 else -1

    signs = set(sign.values())
    if 1 not in signs:
        return faces, None
    if -1 not in signs:
        return None, faces

    below, above, section = [], [], []
    for face in faces:
        lo_poly, hi_poly = [], []
        n = len(face.vids)
        for k in range(n):
            i, j = face.vids[k], face.vids[(k + 1) % n]
            si, sj = sign.get(i, 0), sign.get(j, 0)
            if si <= 0:
                lo_poly.append(i)
            if si >= 0:
                hi_poly.append(i)
            if si == 0 and i not in section:
                section.append(i)
            if si * sj < 0:
                m = table.cut_edge(i, j, axis, value)
                lo_poly.append(m)
                hi_poly.append(m)
                if m not in section:
                    section.append(m)
        if len(lo_poly) >= 3 and any(sign.get(v, 0) < 0 for v in lo_poly):
            below.append(Face(tuple(lo_poly), face.kind))
        if len(hi_poly) >= 3 and any(sign.get(v, 0) > 0 for v in hi_poly):
            above.append(Face(tuple(hi_poly), face.kind))

    if len(section) < 3:
        raise InflationError(f"degenerate section of a tube by plane x[{axis}] = {value:.6g}")

    # Counter-clockwise in the (axis+1, axis+2) plane means normal +axis
    a1, a2 = (axis + 1) % 3, (axis + 2) % 3
    pts = table.points(section)
    center = pts.mean(axis=0)
    angles = np.arctan2(pts[:, a2] - center[a2], pts[:, a1] - center[a1])
    ordered = tuple(section[k] for k in np.argsort(angles, kind="stable"))

    kind = ("cap", axis, value)
    below.append(Face(ordered, kind))
    above.append(Face(ordered[::-1], kind))
    return below, above


def tube_planes(body: TubeBody, cut: np.ndarray, period: np.ndarray) -> List[Tuple[int, float]]:
    """All (axis, value) cut planes strictly inside the body's extent."""
    lo, hi = body.extent
    planes = []
    for axis in range(3):
        k = np.ceil((lo[axis] - cut[axis]) / period[axis])
        value = cut[axis] + k * period[axis]
        while value < hi[axis]:
            if value > lo[axis]:
                planes.append((axis, float(value)))
            k += 1
            value = cut[axis] + k * period[axis]
    return planes


def clip_tube(body: TubeBody, cut: np.ndarray, period: np.ndarray,
              eps_rel: float) -> List[List[Face]]:
    """Split a tube body into convex pieces, one per domain translate."""
    pieces = [body.faces]
    for axis, value in tube_planes(body, cut, period):
        eps = eps_rel * period[axis]
        next_pieces = []
        for faces in pieces:
            below, above = split_piece(body.table, faces, axis, value, eps)
            if below is not None:
                next_pieces.append(below)
            if above is not None:
                next_pieces.append(above)
        pieces = next_pieces
    return pieces


def piece_image(table: VertexTable, faces: List[Face], cut: np.ndarray,
                period: np.ndarray) -> np.ndarray:
    """Integer translate index of a piece: floor((centroid - c) / P)."""
    vids = sorted({v for face in faces for v in face.vids})
    centroid = table.points(vids).mean(axis=0)
    return np.floor((centroid - cut) / period).astype(np.int64)


def _strictly_convex(points: np.ndarray) -> bool:
    prev = np.roll(points, 1, axis=0)
    nxt = np.roll(points, -1, axis=0)
    turns = np.linalg.norm(np.cross(points - prev, nxt - points), axis=1)
    scale = float(np.max(np.linalg.norm(points - points.mean(axis=0), axis=1))) ** 2
    return bool(np.all(turns > 1e-9 * max(scale, EPS_ZERO)))


def triangulate_face(table: VertexTable, face: Face) -> List[Tuple[int, int, int]]:
    """
    Triangles of a convex polygon face, same orientation.

    Section caps always fan from a new centroid vertex so that both copies of
    a section triangulate identically; other polygons fan from their first
    vertex unless they have collinear samples.
    """
    vids = list(face.vids)
    if len(vids) == 3 and not face.is_cap:
        return [tuple(vids)]
    pts = table.points(vids)
    if not face.is_cap and _strictly_convex(pts):
        return [(vids[0], vids[k], vids[k + 1]) for k in range(1, len(vids) - 1)]

    planes = ()
    if face.is_cap:
        planes = [(face.kind[1], face.kind[2])]
    center = table.add(pts.mean(axis=0), planes)
    if face.is_cap:
        table.coords[center][face.kind[1]] = face.kind[2]
    n = len(vids)
    return [(center, vids[k], vids[(k + 1) % n]) for k in range(n)]


# =============================================================================
# Step 3: pairing
# =============================================================================

def pair_boundary_faces(vertices: np.ndarray, faces: np.ndarray, labels: np.ndarray,
                        period: np.ndarray, tol: float) -> np.ndarray:
    """
    Pair every face on a domain min-plane with its translate on the max-plane.

    Args:
        labels: per face, -1 or 2·axis + (0 for min plane, 1 for max plane)

    Returns:
        (K, 3) rows (axis, min face, max face)

    Raises:
        InflationError: if any boundary face has no counterpart
    """
    pairs = []
    for axis in range(3):
        lo_faces = np.flatnonzero(labels == 2 * axis)
        hi_faces = np.flatnonzero(labels == 2 * axis + 1)
        if len(lo_faces) != len(hi_faces):
            raise InflationError(
                f"axis {axis}: {len(lo_faces)} faces on the min plane, {len(hi_faces)} on the max plane"
            )
        if len(lo_faces) == 0:
            continue

        lo_verts = np.unique(faces[lo_faces])
        hi_verts = np.unique(faces[hi_faces])
        shift = np.zeros(3)
        shift[axis] = period[axis]
        match = match_translated_points(vertices[lo_verts], vertices[hi_verts], shift, tol)
        if np.any(match < 0):
            raise InflationError(f"axis {axis}: boundary vertex without a periodic counterpart")
        to_hi = dict(zip(lo_verts.tolist(), hi_verts[match].tolist()))

        hi_by_key = {tuple(sorted(faces[f].tolist())): int(f) for f in hi_faces}
        for f in lo_faces:
            key = tuple(sorted(to_hi[v] for v in faces[f].tolist()))
            if key not in hi_by_key:
                raise InflationError(f"axis {axis}: boundary face {int(f)} has no periodic counterpart")
            pairs.append((axis, int(f), hi_by_key.pop(key)))

    return np.array(pairs, dtype=np.int64).reshape(-1, 3)
