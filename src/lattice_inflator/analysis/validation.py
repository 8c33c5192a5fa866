"""
Mesh Validation Predicates
==========================

Pure functions over (vertices, faces[, face_sources]) arrays. They never
touch engine state, so they are reentrant and can check any mesh.

PREDICATES:
    is_water_tight       - every undirected edge bounds exactly 2 faces
    is_manifold          - no duplicate/degenerate faces, each directed edge
                           used once, every vertex link a single cycle or path
    is_periodic          - faces on each min plane of the bbox map onto the
                           faces of the opposite max plane by one period
    face_source_is_valid - tags are integral, one per face, and (given the
                           network) near the wire element they name

validate_mesh() runs all of them and returns a findings report:

    {
      "ok": bool,
      "checks": {<check_id>: {"id", "ok", "count", "examples"}, ...},
      "meta": {"n_vertices", "n_faces", "bbox", "tol"}
    }

Jan 2026
"""

from collections import defaultdict
from typing import Dict, List, Optional

import numpy as np

from ..spec.constants import DEFAULT_TOL_REL, SOURCE_TOL_EDGE_FRACTION, decode_source
from ..spec.structures import canonical_face
from ..wires.periodic import match_translated_points, periodic_point_segment_distance

MAX_EXAMPLES = 5


def _as_arrays(vertices, faces):
    V = np.asarray(vertices, dtype=float).reshape(-1, 3)
    F = np.asarray(faces, dtype=np.int64).reshape(-1, 3)
    return V, F


def _undirected_edges(F: np.ndarray):
    half_edges = np.stack([F, np.roll(F, -1, axis=1)], axis=2).reshape(-1, 2)
    return np.unique(np.sort(half_edges, axis=1), axis=0, return_counts=True)


# =============================================================================
# Helpers
# =============================================================================

def find_boundary_edges(faces) -> np.ndarray:
    """Undirected edges bounding exactly one face, (K, 2)."""
    F = np.asarray(faces, dtype=np.int64).reshape(-1, 3)
    if len(F) == 0:
        return np.zeros((0, 2), dtype=np.int64)
    edges, counts = _undirected_edges(F)
    return edges[counts == 1]


def find_nonmanifold_vertices(faces) -> List[int]:
    """
    Vertices whose link is not a single cycle (closed fan) or single path (open fan).

    The link of v in face (v, a, b) is the directed link edge a → b.
    """
    F = np.asarray(faces, dtype=np.int64).reshape(-1, 3)
    links = defaultdict(list)
    for a, b, c in F.tolist():
        links[a].append((b, c))
        links[b].append((c, a))
        links[c].append((a, b))

    bad = []
    for v, link in links.items():
        succ, pred = {}, {}
        ok = True
        for x, y in link:
            if x in succ or y in pred or x == y:
                ok = False
                break
            succ[x] = y
            pred[y] = x
        if ok:
            # Walk from a path start if there is one, otherwise anywhere on the cycle
            starts = [x for x in succ if x not in pred]
            if len(starts) > 1:
                ok = False
            else:
                start = starts[0] if starts else link[0][0]
                seen, node = 0, start
                while node in succ and seen <= len(link):
                    node = succ[node]
                    seen += 1
                    if node == start:
                        break
                ok = seen == len(link)
        if not ok:
            bad.append(int(v))
    return sorted(bad)


# =============================================================================
# Predicates
# =============================================================================

def is_water_tight(vertices, faces) -> bool:
    """Every undirected edge is shared by exactly two faces."""
    _, F = _as_arrays(vertices, faces)
    if len(F) == 0:
        return False
    _, counts = _undirected_edges(F)
    return bool(np.all(counts == 2))


def is_manifold(vertices, faces) -> bool:
    """
    2-manifold check.

    Fails on degenerate faces, duplicate faces (any orientation), a directed
    edge used twice, an edge with more than two faces, or a vertex whose
    incident faces do not form one fan.
    """
    V, F = _as_arrays(vertices, faces)
    if len(F) == 0:
        return False
    if F.min() < 0 or F.max() >= len(V):
        return False
    if np.any((F[:, 0] == F[:, 1]) | (F[:, 1] == F[:, 2]) | (F[:, 0] == F[:, 2])):
        return False

    canon = {canonical_face(f)[0] for f in F.tolist()}
    if len(canon) != len(F):
        return False

    directed = np.stack([F, np.roll(F, -1, axis=1)], axis=2).reshape(-1, 2)
    if len(np.unique(directed, axis=0)) != len(directed):
        return False

    _, counts = _undirected_edges(F)
    if np.any(counts > 2):
        return False

    return not find_nonmanifold_vertices(F)


def is_periodic(vertices, faces, bbox=None, tol: Optional[float] = None) -> bool:
    """
    Faces on each min plane of the bbox are translates (by one period) of the
    faces on the opposite max plane, vertex for vertex.

    Args:
        bbox: (min, max) of the periodic domain; defaults to the mesh bbox
        tol: matching tolerance; defaults to DEFAULT_TOL_REL × largest extent
    """
    V, F = _as_arrays(vertices, faces)
    if len(F) == 0:
        return False
    used = np.unique(F)
    if bbox is None:
        lo, hi = V[used].min(axis=0), V[used].max(axis=0)
    else:
        lo, hi = np.asarray(bbox[0], dtype=float), np.asarray(bbox[1], dtype=float)
    period = hi - lo
    if np.any(period <= 0):
        return False
    if tol is None:
        tol = DEFAULT_TOL_REL * float(np.max(period))

    for axis in range(3):
        on_lo = np.abs(V[:, axis] - lo[axis]) < tol
        on_hi = np.abs(V[:, axis] - hi[axis]) < tol
        lo_verts, hi_verts = used[on_lo[used]], used[on_hi[used]]
        if len(lo_verts) != len(hi_verts):
            return False
        if len(lo_verts) == 0:
            continue

        shift = np.zeros(3)
        shift[axis] = period[axis]
        match = match_translated_points(V[lo_verts], V[hi_verts], shift, tol)
        if np.any(match < 0) or len(np.unique(match)) != len(match):
            return False
        to_hi = dict(zip(lo_verts.tolist(), hi_verts[match].tolist()))

        lo_faces = F[np.all(on_lo[F], axis=1)]
        hi_faces = F[np.all(on_hi[F], axis=1)]
        if len(lo_faces) != len(hi_faces):
            return False
        mapped = sorted(tuple(sorted(to_hi[v] for v in f)) for f in lo_faces.tolist())
        target = sorted(tuple(sorted(f)) for f in hi_faces.tolist())
        if mapped != target:
            return False

    return True


def face_source_is_valid(vertices, faces, face_sources, network=None,
                         tol: Optional[float] = None) -> bool:
    """
    Face-source tags are well formed and point at real wire elements.

    Always: one integral tag per face. Without a network that is ALL that is
    checked; any integer vector of the right length passes.
    With a network: edge tags < E, vertex tags < V, and each face centroid
    lies within `tol` of (a periodic image of) its source edge or vertex.
    Default tol is SOURCE_TOL_EDGE_FRACTION × the median wire length.
    """
    V, F = _as_arrays(vertices, faces)
    S = np.asarray(face_sources)
    if S.ndim != 1 or len(S) != len(F):
        return False
    if S.size and not np.all(np.isfinite(S.astype(float))):
        return False
    if S.size and not np.all(np.equal(np.mod(S.astype(float), 1.0), 0.0)):
        return False
    if network is None:
        return True

    S = S.astype(np.int64)
    WV, WE = network.vertices, network.edges
    period = network.cell_size
    if tol is None:
        lengths = network.edge_lengths()
        tol = SOURCE_TOL_EDGE_FRACTION * float(np.median(lengths)) if len(lengths) else 0.0

    centroids = V[F].mean(axis=1) if len(F) else np.zeros((0, 3))
    for tag in np.unique(S).tolist():
        kind, idx = decode_source(tag)
        if kind == "edge":
            if idx >= len(WE):
                return False
            a, b = WV[WE[idx, 0]], WV[WE[idx, 1]]
        else:
            if idx >= len(WV):
                return False
            a = b = WV[idx]
        dist = periodic_point_segment_distance(centroids[S == tag], a, b, period)
        if np.any(dist > tol):
            return False
    return True


# =============================================================================
# Report
# =============================================================================

def _finding(check_id: str, ok: bool, count: int = 0, examples=None) -> Dict:
    return {
        "id": check_id,
        "ok": bool(ok),
        "count": int(count),
        "examples": list(examples or [])[:MAX_EXAMPLES],
    }


def validate_mesh(vertices, faces, face_sources=None, network=None,
                  bbox=None, tol: Optional[float] = None) -> Dict:
    """
    Run every predicate and aggregate the findings.

    Returns:
        dict with "ok", "checks" and "meta" (see module docstring)
    """
    V, F = _as_arrays(vertices, faces)

    boundary = find_boundary_edges(F)
    checks = {
        "water_tight": _finding("water_tight", is_water_tight(V, F), len(boundary),
                                [tuple(e) for e in boundary.tolist()]),
    }

    nonmanifold = find_nonmanifold_vertices(F)
    checks["manifold"] = _finding("manifold", is_manifold(V, F), len(nonmanifold), nonmanifold)
    checks["periodic"] = _finding("periodic", is_periodic(V, F, bbox, tol))
    if face_sources is not None:
        checks["face_sources"] = _finding(
            "face_sources", face_source_is_valid(V, F, face_sources, network))

    if bbox is not None:
        bbox_meta = [np.asarray(b, dtype=float).tolist() for b in bbox]
    elif len(V):
        bbox_meta = [V.min(axis=0).tolist(), V.max(axis=0).tolist()]
    else:
        bbox_meta = None

    return {
        "ok": all(c["ok"] for c in checks.values()),
        "checks": checks,
        "meta": {
            "n_vertices": int(len(V)),
            "n_faces": int(len(F)),
            "bbox": bbox_meta,
            "tol": tol,
        },
    }
