"""
Periodic Inflator
=================

Inflates a periodic wire network into a closed triangle mesh of one
fundamental domain.

PIPELINE:
    1. Validate config; build the periodic quotient graph (3-torus)
    2. Junction offsets and one profile ring per wire end
    3. Junction patches (hull / bridge / cap)
    4. Cut planes avoiding every junction → fundamental domain [c, c + P)
    5. Tube bodies clipped into convex pieces, translated into the domain
    6. Optional refinement ("loop" / "simple")
    7. Boundary faces paired across the domain, output frozen

STATE:
    Configured ──inflate()──▶ Inflated
        ▲                        │
        └──── any set_*() ───────┘
    A failed inflate() leaves the engine Configured with no partial output.
    Result accessors raise StateError until inflate() succeeds.

The network is read, never mutated.

Jan 2026
"""

import logging
from typing import Dict, List, Optional, Tuple

import numpy as np

from ..spec.constants import (
    DEFAULT_PROFILE_SAMPLES,
    DEFAULT_TOL_REL,
    MIN_RADIUS_REL,
    PER_EDGE,
    PLANE_EPS_REL,
    REFINEMENT_SCHEMES,
    THICKNESS_TYPES,
    edge_source,
    vertex_source,
)
from ..spec.errors import GeometryError, InflationError, StateError, TopologyError, ValidationError
from ..spec.structures import InflationOutput, create_output
from ..wires.periodic import PeriodicGraph, build_periodic_graph, find_crossing_wires
from ..wires.profile import WireProfile, frame_for_direction
from .clipping import (
    choose_cut_planes,
    clip_tube,
    pair_boundary_faces,
    piece_image,
    triangulate_face,
    wrap_into_domain,
)
from .junction import JunctionPatch, build_junction, compute_junction_offset
from .refinement import refine
from .tubes import build_tube_body, check_tube_clearance

logger = logging.getLogger(__name__)

FREE_FACE = -1


class _MeshAssembler:
    """Accumulates vertices and tagged, labelled triangles."""

    def __init__(self):
        self._points: List[np.ndarray] = []
        self._faces: List[np.ndarray] = []
        self._sources: List[np.ndarray] = []
        self._labels: List[np.ndarray] = []
        self._count = 0

    def add_points(self, points: np.ndarray) -> np.ndarray:
        points = np.asarray(points, dtype=float).reshape(-1, 3)
        ids = np.arange(self._count, self._count + len(points))
        self._points.append(points)
        self._count += len(points)
        return ids

    def add_faces(self, faces, source: int, labels=FREE_FACE):
        faces = np.asarray(faces, dtype=np.int64).reshape(-1, 3)
        self._faces.append(faces)
        self._sources.append(np.full(len(faces), source, dtype=np.int64))
        self._labels.append(np.broadcast_to(np.asarray(labels, dtype=np.int64), (len(faces),)).copy())

    def arrays(self):
        V = np.vstack(self._points) if self._points else np.zeros((0, 3))
        F = np.vstack(self._faces) if self._faces else np.zeros((0, 3), dtype=np.int64)
        S = np.concatenate(self._sources) if self._sources else np.zeros(0, dtype=np.int64)
        L = np.concatenate(self._labels) if self._labels else np.zeros(0, dtype=np.int64)
        return V, F, S, L


class PeriodicInflator:
    """
    Periodic wire-network inflation engine.

    Usage:
        inflator = PeriodicInflator(network)
        inflator.set_thickness_type(PER_EDGE)
        inflator.set_thickness(np.full(network.num_edges, 0.5))
        inflator.with_refinement("loop", 1)
        inflator.inflate()
        V, F = inflator.get_vertices(), inflator.get_faces()
    """

    def __init__(self, network):
        self._network = network
        self._thickness_type = PER_EDGE
        self._thickness: Optional[np.ndarray] = None
        self._profile = WireProfile.create_isotropic(DEFAULT_PROFILE_SAMPLES)
        self._refinement: Optional[Tuple[str, int]] = None
        self._tol_rel = DEFAULT_TOL_REL
        self._output: Optional[InflationOutput] = None

    # =========================================================================
    # Configuration
    # =========================================================================

    def set_thickness_type(self, thickness_type: str):
        if thickness_type not in THICKNESS_TYPES:
            raise ValueError(f"thickness type must be one of {THICKNESS_TYPES}, got {thickness_type!r}")
        self._thickness_type = thickness_type
        self._output = None

    def set_thickness(self, thickness):
        """Thickness (tube diameter) per edge or per vertex; checked at inflate()."""
        self._thickness = np.array(thickness, dtype=float).reshape(-1)
        self._output = None

    def set_profile(self, profile: WireProfile):
        if not isinstance(profile, WireProfile):
            raise TypeError(f"expected a WireProfile, got {type(profile).__name__}")
        self._profile = profile
        self._output = None

    def with_refinement(self, scheme: str, order: int = 1):
        if scheme not in REFINEMENT_SCHEMES:
            raise ValueError(f"unknown refinement scheme {scheme!r}; expected one of {REFINEMENT_SCHEMES}")
        if int(order) != order or order < 0:
            raise ValueError(f"refinement order must be a non-negative integer, got {order}")
        self._refinement = (scheme, int(order))
        self._output = None

    def set_tolerance(self, rel: float):
        """Periodic matching tolerance, relative to the cell size."""
        if not rel > 0:
            raise ValueError(f"tolerance must be positive, got {rel}")
        self._tol_rel = float(rel)
        self._output = None

    # =========================================================================
    # Results
    # =========================================================================

    def _require_output(self) -> InflationOutput:
        if self._output is None:
            raise StateError("no inflation result; call inflate() first")
        return self._output

    def get_output(self) -> InflationOutput:
        return self._require_output()

    def get_vertices(self) -> np.ndarray:
        return self._require_output().vertices

    def get_faces(self) -> np.ndarray:
        return self._require_output().faces

    def get_face_sources(self) -> np.ndarray:
        return self._require_output().face_sources

    def get_cell_bbox(self) -> Tuple[np.ndarray, np.ndarray]:
        return self._require_output().bbox

    def get_periodic_face_pairs(self) -> np.ndarray:
        return self._require_output().periodic_face_pairs

    # =========================================================================
    # Inflation
    # =========================================================================

    def inflate(self) -> InflationOutput:
        """
        Run the pipeline.

        Raises:
            StateError: thickness never set
            ValidationError: thickness field of the wrong size or sign
            InflationError: the network cannot be inflated (no edges,
                connectivity missing, overlapping/crossing wires, wires too
                short for their junctions, no periodic cut)
        """
        self._output = None
        thickness = self._checked_thickness()
        try:
            output = self._run(thickness)
        except (TopologyError, GeometryError) as err:
            raise InflationError(f"invalid wire network: {err}") from err
        self._output = output
        return output

    def _checked_thickness(self) -> np.ndarray:
        network = self._network
        if not network.has_connectivity:
            raise InflationError("wire network connectivity has not been computed")
        if network.num_edges == 0:
            raise InflationError("wire network has no edges to inflate")
        if self._thickness is None:
            raise StateError("thickness has not been set")

        expected = network.num_edges if self._thickness_type == PER_EDGE else network.num_vertices
        if len(self._thickness) != expected:
            raise ValidationError(
                f"{self._thickness_type} thickness needs {expected} values, got {len(self._thickness)}"
            )
        if not np.all(np.isfinite(self._thickness)) or np.any(self._thickness < 0):
            raise ValidationError("thickness values must be finite and non-negative")
        return self._thickness.copy()

    def _end_radius(self, graph: PeriodicGraph, thickness: np.ndarray,
                    edge_idx: int, side: int, r_min: float) -> float:
        edge = graph.edges[edge_idx]
        if self._thickness_type == PER_EDGE:
            t = thickness[edge.source]
        else:
            vertex = edge.u if side == 0 else edge.v
            t = thickness[graph.vertex_sources[vertex]]
        return max(0.5 * float(t), r_min)

    def _check_class_thickness(self, graph: PeriodicGraph, thickness: np.ndarray, tol: float):
        """Warn when periodic copies of one wire (or node) carry different thickness."""
        if self._thickness_type == PER_EDGE:
            kind, classes = "edge", graph.edge_class
            source_of = [edge.source for edge in graph.edges]
        else:
            kind, classes = "vertex", graph.vertex_class
            source_of = graph.vertex_sources

        spread = np.zeros(len(source_of))
        np.maximum.at(spread, classes, thickness)
        low = np.full(len(source_of), np.inf)
        np.minimum.at(low, classes, thickness)
        spread -= low

        mixed = np.flatnonzero(spread > tol)
        if len(mixed) == 0:
            return
        c = int(mixed[0])
        logger.warning(
            "%d periodic %s class(es) have differing thickness; using the value of the "
            "lowest-index member (e.g. %s %d: %.6g, members range %.6g .. %.6g)",
            len(mixed), kind, kind, int(source_of[c]), float(thickness[source_of[c]]),
            float(low[c]), float(low[c] + spread[c]),
        )

    def _run(self, thickness: np.ndarray) -> InflationOutput:
        network = self._network
        logger.info("Inflating %d vertices / %d edges (%s, %d-sample profile)",
                    network.num_vertices, network.num_edges, self._thickness_type,
                    self._profile.num_samples)

        # Step 1: periodic quotient
        graph = build_periodic_graph(network)
        period, origin = graph.period, graph.origin
        tol = self._tol_rel * float(np.max(period))

        self._check_class_thickness(graph, thickness, tol)

        crossing = find_crossing_wires(graph, tol)
        if crossing:
            i, j = crossing[0]
            raise InflationError(
                f"wires {graph.edges[i].source} and {graph.edges[j].source} intersect "
                f"({len(crossing)} crossing pair(s))"
            )

        # Step 2: radii, offsets, rings
        r_min = MIN_RADIUS_REL * float(np.max(period))
        ends = graph.ends()
        radii: Dict[Tuple[int, int], float] = {}
        for u in range(graph.num_vertices):
            for end in ends[u]:
                radii[end] = self._end_radius(graph, thickness, end[0], end[1], r_min)

        offsets = np.zeros(graph.num_vertices)
        for u in range(graph.num_vertices):
            if not ends[u]:
                continue
            dirs = [graph.end_direction(e, side) for e, side in ends[u]]
            try:
                offsets[u] = compute_junction_offset(dirs, [radii[end] for end in ends[u]])
            except InflationError as err:
                raise InflationError(f"vertex {int(graph.vertex_sources[u])}: {err}") from err

        rings: Dict[Tuple[int, int], np.ndarray] = {}
        for idx, edge in enumerate(graph.edges):
            check_tube_clearance(edge.length, offsets[edge.u], offsets[edge.v], edge.source)
            d = edge.vector / edge.length
            frame = frame_for_direction(edge.vector)
            rings[(idx, 0)] = self._profile.place(offsets[edge.u] * d, None, radii[(idx, 0)], frame)
            rings[(idx, 1)] = self._profile.place(-offsets[edge.v] * d, None, radii[(idx, 1)], frame)

        # Step 3: junction patches (local coordinates)
        patches: Dict[int, JunctionPatch] = {}
        for u in range(graph.num_vertices):
            if not ends[u]:
                logger.debug("Vertex %d has no wires; skipped", int(graph.vertex_sources[u]))
                continue
            patches[u] = build_junction(
                [rings[end] for end in ends[u]],
                [graph.end_direction(e, side) for e, side in ends[u]],
                label=int(graph.vertex_sources[u]),
            )

        # Step 4: cut planes and junction placement in [c, c + P)
        verts = sorted(patches)
        lo = np.array([graph.positions[u] + patches[u].points.min(axis=0) for u in verts])
        hi = np.array([graph.positions[u] + patches[u].points.max(axis=0) for u in verts])
        cut = choose_cut_planes(lo, hi, origin, period)

        placed = {}
        for k, u in enumerate(verts):
            placed[u] = graph.positions[u] + wrap_into_domain(lo[k], cut, period)

        # Step 5: assemble junctions then clipped tubes
        mesh = _MeshAssembler()
        ring_ids: Dict[Tuple[int, int], np.ndarray] = {}
        for u in verts:
            patch = patches[u]
            ids = mesh.add_points(placed[u] + patch.points)
            mesh.add_faces(ids[patch.triangles], vertex_source(graph.vertex_sources[u]))
            for end, sl in zip(ends[u], patch.ring_slices):
                ring_ids[end] = ids[sl]

        for idx, edge in enumerate(graph.edges):
            self._emit_tube(mesh, graph, idx, rings, ring_ids, placed, cut, period)

        V, F, S, L = mesh.arrays()
        logger.debug("Assembled %d vertices, %d faces (%d junctions, %d tubes)",
                     len(V), len(F), len(patches), graph.num_edges)

        # Step 6: refinement
        if self._refinement is not None:
            scheme, order = self._refinement
            V, F, S, L = refine(V, F, S, L, scheme, order)

        # Step 7: periodic pairing and output
        pairs = pair_boundary_faces(V, F, L, period, tol)
        output = create_output(V, F, S, (cut, cut + period), pairs)
        logger.info("Inflated: %d vertices, %d faces, %d periodic face pairs",
                    output.num_vertices, output.num_faces, len(pairs))
        return output

    def _emit_tube(self, mesh: _MeshAssembler, graph: PeriodicGraph, idx: int,
                   rings, ring_ids, placed, cut: np.ndarray, period: np.ndarray):
        """Clip one tube body and add its pieces, glued to both junction rings."""
        edge = graph.edges[idx]
        start = placed[edge.u]
        body = build_tube_body(start + rings[(idx, 0)], start + edge.vector + rings[(idx, 1)])
        pieces = clip_tube(body, cut, period, PLANE_EPS_REL)

        end_image = np.round((start + edge.vector - placed[edge.v]) / period).astype(np.int64)
        glue = {}
        for j, vid in enumerate(body.ring_a):
            glue[vid] = (np.zeros(3, dtype=np.int64), int(ring_ids[(idx, 0)][j]))
        for j, vid in enumerate(body.ring_b):
            glue[vid] = (end_image, int(ring_ids[(idx, 1)][j]))

        table = body.table
        global_ids: Dict[Tuple[int, tuple], int] = {}
        for faces in pieces:
            image = piece_image(table, faces, cut, period)
            shift = -image * period

            triangles, labels = [], []
            for face in faces:
                if face.is_ring:
                    continue
                label = FREE_FACE
                if face.is_cap:
                    axis, value = face.kind[1], face.kind[2] + shift[face.kind[1]]
                    side = 0 if abs(value - cut[axis]) < abs(value - cut[axis] - period[axis]) else 1
                    label = 2 * axis + side
                for tri in triangulate_face(table, face):
                    triangles.append(tri)
                    labels.append(label)

            mapped = []
            for tri in triangles:
                row = []
                for vid in tri:
                    if vid in glue:
                        expected, gid = glue[vid]
                        if not np.array_equal(image, expected):
                            raise InflationError(
                                f"wire {edge.source}: tube piece does not meet its junction "
                                f"(image {image.tolist()} vs {expected.tolist()})"
                            )
                        row.append(gid)
                        continue
                    key = (vid, tuple(image.tolist()))
                    if key not in global_ids:
                        point = table.coords[vid] + shift
                        for axis, _ in table.planes.get(vid, ()):
                            lo, hi = cut[axis], cut[axis] + period[axis]
                            point[axis] = lo if abs(point[axis] - lo) < abs(point[axis] - hi) else hi
                        global_ids[key] = int(mesh.add_points(point)[0])
                    row.append(global_ids[key])
                mapped.append(row)

            if mapped:
                mesh.add_faces(mapped, edge_source(edge.source), labels)
