"""
Surface Refinement
==================

1→4 subdivision of a triangle mesh, applied after periodic clipping.

SCHEMES:
    "simple" - midpoint split, positions unchanged
    "loop"   - Loop subdivision with creases

CREASES:
    An edge is a crease when its two faces carry different labels (a face on
    a domain plane vs. a free face, or two different domain planes) or when
    it has only one face. Crease rules keep the domain planes flat and make
    both copies of a section refine identically:

        crease edge point     : (a + b) / 2
        crease vertex (2)     : 3/4 v + 1/8 (n1 + n2)   (crease neighbours)
        corner (1 or ≥ 3)     : v
        smooth edge point     : 3/8 (a + b) + 1/8 (c + d)
        smooth vertex         : (1 - nβ) v + β Σ neighbours,
                                β = (5/8 - (3/8 + 1/4 cos(2π/n))²) / n

Children inherit the face-source tag and label of their parent.

Jan 2026
"""

import logging
from typing import Tuple

import numpy as np

from ..spec.constants import REFINEMENT_SCHEMES

logger = logging.getLogger(__name__)


def _edge_topology(faces: np.ndarray):
    """Unique undirected edges, per-face edge ids and per-half-edge opposite vertices."""
    half_edges = np.stack([faces, np.roll(faces, -1, axis=1)], axis=2).reshape(-1, 2)
    undirected = np.sort(half_edges, axis=1)
    edges, inverse = np.unique(undirected, axis=0, return_inverse=True)
    inverse = np.asarray(inverse).reshape(-1)
    opposite = np.roll(faces, -2, axis=1).reshape(-1)
    return edges, inverse, opposite


def _loop_weight(valence: np.ndarray) -> np.ndarray:
    n = np.maximum(valence, 1).astype(float)
    return (5.0 / 8.0 - (3.0 / 8.0 + 0.25 * np.cos(2.0 * np.pi / n)) ** 2) / n


def subdivide_once(vertices: np.ndarray, faces: np.ndarray, sources: np.ndarray,
                   labels: np.ndarray, scheme: str):
    """
    One 1→4 subdivision step.

    Returns:
        (vertices, faces, sources, labels) of the refined mesh
    """
    n_v = len(vertices)
    edges, inverse, opposite = _edge_topology(faces)
    n_e = len(edges)

    face_count = np.bincount(inverse, minlength=n_e)
    half_labels = np.repeat(labels, 3)
    lab_min = np.full(n_e, np.iinfo(np.int64).max)
    lab_max = np.full(n_e, np.iinfo(np.int64).min)
    np.minimum.at(lab_min, inverse, half_labels)
    np.maximum.at(lab_max, inverse, half_labels)
    crease = (face_count != 2) | (lab_min != lab_max)

    a, b = vertices[edges[:, 0]], vertices[edges[:, 1]]
    edge_points = 0.5 * (a + b)

    if scheme == "loop":
        opp_sum = np.zeros((n_e, 3))
        np.add.at(opp_sum, inverse, vertices[opposite])
        smooth = ~crease
        edge_points[smooth] = 0.375 * (a[smooth] + b[smooth]) + 0.125 * opp_sum[smooth]

        valence = np.bincount(edges.reshape(-1), minlength=n_v)
        nbr_sum = np.zeros((n_v, 3))
        np.add.at(nbr_sum, edges[:, 0], b)
        np.add.at(nbr_sum, edges[:, 1], a)

        c_edges = edges[crease]
        c_count = np.bincount(c_edges.reshape(-1), minlength=n_v)
        c_sum = np.zeros((n_v, 3))
        np.add.at(c_sum, c_edges[:, 0], vertices[c_edges[:, 1]])
        np.add.at(c_sum, c_edges[:, 1], vertices[c_edges[:, 0]])

        beta = _loop_weight(valence)[:, None]
        new_vertices = (1.0 - valence[:, None] * beta) * vertices + beta * nbr_sum
        on_crease = c_count == 2
        new_vertices[on_crease] = 0.75 * vertices[on_crease] + 0.125 * c_sum[on_crease]
        corner = (c_count > 0) & ~on_crease
        new_vertices[corner] = vertices[corner]
    else:
        new_vertices = vertices.copy()

    mids = n_v + inverse.reshape(-1, 3)
    m0, m1, m2 = mids[:, 0], mids[:, 1], mids[:, 2]
    v0, v1, v2 = faces[:, 0], faces[:, 1], faces[:, 2]
    children = np.stack([
        np.stack([v0, m0, m2], axis=1),
        np.stack([m0, v1, m1], axis=1),
        np.stack([m2, m1, v2], axis=1),
        np.stack([m0, m1, m2], axis=1),
    ], axis=1).reshape(-1, 3)

    return (np.vstack([new_vertices, edge_points]), children,
            np.repeat(sources, 4), np.repeat(labels, 4))


def refine(vertices: np.ndarray, faces: np.ndarray, sources: np.ndarray,
           labels: np.ndarray, scheme: str, order: int) -> Tuple[np.ndarray, ...]:
    """
    Apply `order` subdivision steps of the given scheme.

    Raises:
        ValueError: unknown scheme or negative order
    """
    if scheme not in REFINEMENT_SCHEMES:
        raise ValueError(f"unknown refinement scheme {scheme!r}; expected one of {REFINEMENT_SCHEMES}")
    if order < 0:
        raise ValueError(f"refinement order must be >= 0, got {order}")

    for step in range(order):
        vertices, faces, sources, labels = subdivide_once(vertices, faces, sources, labels, scheme)
        logger.debug("Refinement %s step %d: %d vertices, %d faces",
                     scheme, step + 1, len(vertices), len(faces))
    return vertices, faces, sources, labels
