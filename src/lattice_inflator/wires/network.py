"""
Wire Network
============

A periodic 3D graph of straight wire segments living in a periodic cell.

DATA:
    vertices : (V, 3) float   - positions, indices are stable
    edges    : (E, 2) int     - unordered vertex pairs
    bbox     : (min, max)     - the periodic cell; defaults to the vertex bbox

The cell bbox is NOT recomputed when vertices move (set_vertices /
offset_vertices): offsets displace nodes inside a fixed periodic cell.

Adjacency (incident edges, neighbours) exists only after
compute_connectivity(), which also validates endpoints and drops duplicate
edges. The inflation engine refuses networks without connectivity.

Jan 2026
"""

import logging
from typing import List, Optional, Tuple

import numpy as np

from ..spec.constants import EPS_ZERO
from ..spec.errors import GeometryError, TopologyError

logger = logging.getLogger(__name__)


def _as_vertices(vertices) -> np.ndarray:
    V = np.array(vertices, dtype=float)
    if V.size == 0:
        return np.zeros((0, 3))
    if V.ndim != 2 or V.shape[1] != 3:
        raise GeometryError(f"vertices must be (V, 3), got shape {V.shape}")
    if not np.all(np.isfinite(V)):
        raise GeometryError("vertices contain non-finite coordinates")
    return V


def _as_edges(edges) -> np.ndarray:
    E = np.array(edges)
    if E.size == 0:
        return np.zeros((0, 2), dtype=np.int64)
    if E.ndim != 2 or E.shape[1] != 2:
        raise TopologyError(f"edges must be (E, 2), got shape {E.shape}")
    if not np.issubdtype(E.dtype, np.integer):
        if not np.all(np.equal(np.mod(E, 1), 0)):
            raise TopologyError("edge endpoints must be integers")
    return E.astype(np.int64)


class WireNetwork:
    """
    Periodic wire network: vertices, edges and the periodic cell.

    Usage:
        network = WireNetwork(V, E)
        network.compute_connectivity()
        network.scale_fit([-2.5] * 3, [2.5] * 3)
    """

    def __init__(self, vertices, edges, bbox: Optional[Tuple] = None):
        self._vertices = _as_vertices(vertices)
        self._edges = _as_edges(edges)
        self._vertex_edges: Optional[List[List[int]]] = None

        if bbox is None:
            if len(self._vertices) > 0:
                bbox = (self._vertices.min(axis=0), self._vertices.max(axis=0))
            else:
                bbox = (np.zeros(3), np.zeros(3))
        self._set_bbox(*bbox)

    @classmethod
    def from_arrays(cls, vertices, edges, bbox=None, connect: bool = True) -> "WireNetwork":
        """Build a network and (by default) compute its connectivity."""
        network = cls(vertices, edges, bbox)
        if connect:
            network.compute_connectivity()
        return network

    def copy(self) -> "WireNetwork":
        other = WireNetwork(self._vertices.copy(), self._edges.copy(),
                            (self._bbox_min.copy(), self._bbox_max.copy()))
        if self._vertex_edges is not None:
            other._vertex_edges = [list(incident) for incident in self._vertex_edges]
        return other

    # =========================================================================
    # Accessors
    # =========================================================================

    @property
    def num_vertices(self) -> int:
        return len(self._vertices)

    @property
    def num_edges(self) -> int:
        return len(self._edges)

    @property
    def vertices(self) -> np.ndarray:
        return self._vertices

    @property
    def edges(self) -> np.ndarray:
        return self._edges

    @property
    def bbox(self) -> Tuple[np.ndarray, np.ndarray]:
        return self._bbox_min.copy(), self._bbox_max.copy()

    @property
    def cell_size(self) -> np.ndarray:
        """Period along each axis."""
        return self._bbox_max - self._bbox_min

    @property
    def has_connectivity(self) -> bool:
        return self._vertex_edges is not None

    def get_incident_edges(self, v: int) -> List[int]:
        self._require_connectivity()
        return list(self._vertex_edges[v])

    def get_vertex_neighbors(self, v: int) -> List[int]:
        self._require_connectivity()
        neighbors = []
        for e in self._vertex_edges[v]:
            a, b = self._edges[e]
            neighbors.append(int(b) if a == v else int(a))
        return neighbors

    def edge_lengths(self) -> np.ndarray:
        if self.num_edges == 0:
            return np.zeros(0)
        d = self._vertices[self._edges[:, 1]] - self._vertices[self._edges[:, 0]]
        return np.linalg.norm(d, axis=1)

    def _require_connectivity(self):
        if self._vertex_edges is None:
            raise TopologyError("connectivity has not been computed; call compute_connectivity()")

    def _set_bbox(self, bbox_min, bbox_max):
        lo = np.array(bbox_min, dtype=float).reshape(3)
        hi = np.array(bbox_max, dtype=float).reshape(3)
        self._bbox_min, self._bbox_max = lo, hi

    # =========================================================================
    # Connectivity
    # =========================================================================

    def compute_connectivity(self):
        """
        Validate edges and build vertex → incident-edge adjacency.

        Duplicate edges (same unordered pair) are dropped, first occurrence
        wins, so edge indices after this call are the ones every per-edge
        field must be sized against.

        Raises:
            TopologyError: endpoint out of range, self-edge or zero-length edge
        """
        V = self._vertices
        n_V = len(V)

        if len(self._edges) > 0:
            if self._edges.min() < 0 or self._edges.max() >= n_V:
                bad = int(np.argmax((self._edges < 0).any(axis=1) | (self._edges >= n_V).any(axis=1)))
                raise TopologyError(
                    f"Edge {bad}: {tuple(self._edges[bad])} has index out of bounds [0, {n_V - 1}]"
                )

        seen = set()
        kept = []
        for idx, (i, j) in enumerate(self._edges):
            i, j = int(i), int(j)
            if i == j:
                raise TopologyError(f"Edge {idx}: ({i},{j}) connects a vertex to itself")
            if np.linalg.norm(V[i] - V[j]) < EPS_ZERO:
                raise TopologyError(f"Edge {idx}: ({i},{j}) has zero length")
            key = (min(i, j), max(i, j))
            if key in seen:
                continue
            seen.add(key)
            kept.append((i, j))

        n_dropped = len(self._edges) - len(kept)
        if n_dropped:
            logger.warning("Dropped %d duplicate edge(s)", n_dropped)
        self._edges = np.array(kept, dtype=np.int64).reshape(-1, 2)

        vertex_edges = [[] for _ in range(n_V)]
        for e, (i, j) in enumerate(self._edges):
            vertex_edges[i].append(e)
            vertex_edges[j].append(e)
        self._vertex_edges = vertex_edges

        logger.debug("Connectivity: %d vertices, %d edges", n_V, len(self._edges))

    # =========================================================================
    # Geometry updates
    # =========================================================================

    def scale_fit(self, bbox_min, bbox_max):
        """
        Scale and translate (per axis) so the vertex bbox matches the target.

        The periodic cell becomes [bbox_min, bbox_max].

        Raises:
            GeometryError: if the network or the target has zero extent on an axis
        """
        lo = np.array(bbox_min, dtype=float).reshape(3)
        hi = np.array(bbox_max, dtype=float).reshape(3)
        if np.any(hi - lo <= EPS_ZERO):
            raise GeometryError(f"target bbox is degenerate: {lo} .. {hi}")
        if self.num_vertices == 0:
            raise GeometryError("cannot scale an empty network")

        vmin = self._vertices.min(axis=0)
        vmax = self._vertices.max(axis=0)
        extent = vmax - vmin
        if np.any(extent <= EPS_ZERO):
            raise GeometryError(f"network has zero extent along axis {int(np.argmin(extent))}")

        scale = (hi - lo) / extent
        self._vertices = (self._vertices - vmin) * scale + lo
        self._set_bbox(lo, hi)

    def set_vertices(self, vertices):
        """Replace vertex positions (same count); the periodic cell is unchanged."""
        V = _as_vertices(vertices)
        if V.shape != self._vertices.shape:
            raise GeometryError(f"expected vertices of shape {self._vertices.shape}, got {V.shape}")
        self._vertices = V

    def offset_vertices(self, offset):
        """Add a (V, 3) offset field to the vertex positions."""
        offset = np.asarray(offset, dtype=float)
        if offset.shape != self._vertices.shape:
            raise GeometryError(f"expected offset of shape {self._vertices.shape}, got {offset.shape}")
        self.set_vertices(self._vertices + offset)

    def __repr__(self):
        return f"WireNetwork(V={self.num_vertices}, E={self.num_edges})"
