"""
Inflation Output Contract
=========================

Every successful PeriodicInflator.inflate() produces exactly one
InflationOutput conforming to this contract. Tests and validators read the
arrays from it, never from engine internals.
"""

from dataclasses import dataclass
from typing import List, Tuple

import numpy as np

from .errors import GeometryError


def canonical_face(face: List[int]) -> Tuple[tuple, int]:
    """
    Return canonical representation of a face cycle and its relative orientation.

    The canonical form:
        1. Starts at the minimum vertex index
        2. Goes in the direction that makes the second element smaller

    Args:
        face: list of vertex indices forming a cycle (e.g., [3, 1, 4])

    Returns:
        (canonical_tuple, orientation)
        - canonical_tuple: face vertices in canonical order
        - orientation: +1 if input matches canonical direction, -1 if reversed

    Two faces with the same canonical tuple are duplicates, whatever their
    orientation.
    """
    face = [int(v) for v in face]
    if len(face) < 3:
        raise ValueError(f"Face must have at least 3 vertices, got {len(face)}")

    min_idx = face.index(min(face))
    rotated = face[min_idx:] + face[:min_idx]
    reversed_rot = [rotated[0]] + rotated[1:][::-1]

    if tuple(rotated) < tuple(reversed_rot):
        return tuple(rotated), +1
    else:
        return tuple(reversed_rot), -1


@dataclass(frozen=True)
class InflationOutput:
    """
    Result of one inflation run.

    Fields:
        vertices : np.ndarray (N×3) float
            Vertex coordinates of the fundamental-domain mesh
        faces : np.ndarray (M×3) int
            Outward-oriented triangles
        face_sources : np.ndarray (M,) int
            Source tag per face (edge e → e, vertex v → -(v+1))
        bbox : (np.ndarray, np.ndarray)
            The emitted fundamental domain [c, c + P]
        periodic_face_pairs : np.ndarray (K×3) int
            Rows (axis, face on min plane, face on max plane)

    All arrays are read-only.
    """

    vertices: np.ndarray
    faces: np.ndarray
    face_sources: np.ndarray
    bbox: Tuple[np.ndarray, np.ndarray]
    periodic_face_pairs: np.ndarray

    @property
    def num_vertices(self) -> int:
        return len(self.vertices)

    @property
    def num_faces(self) -> int:
        return len(self.faces)


def validate_output(output: InflationOutput, strict: bool = True) -> Tuple[bool, List[str]]:
    """
    Validate an InflationOutput against the contract.

    Args:
        output: The output to validate
        strict: If True, raise on the first batch of errors

    Returns:
        (is_valid, list of error messages)
    """
    errors = []
    V, F, S = output.vertices, output.faces, output.face_sources

    if V.ndim != 2 or V.shape[1] != 3:
        errors.append(f"vertices must be (N, 3), got {V.shape}")
    if F.ndim != 2 or F.shape[1] != 3:
        errors.append(f"faces must be (M, 3), got {F.shape}")
    if S.ndim != 1 or len(S) != len(F):
        errors.append(f"face_sources must have one entry per face: {S.shape} vs {len(F)} faces")

    if errors and strict:
        raise GeometryError(f"Output contract violation: {errors}")

    if len(F) > 0 and not errors:
        if F.min() < 0 or F.max() >= len(V):
            errors.append(f"face index out of bounds [0, {len(V) - 1}]")
        repeated = (F[:, 0] == F[:, 1]) | (F[:, 1] == F[:, 2]) | (F[:, 0] == F[:, 2])
        if np.any(repeated):
            errors.append(f"Face {int(np.argmax(repeated))}: has repeated vertices")

    if not np.all(np.isfinite(V)):
        errors.append("vertices contain non-finite coordinates")

    lo, hi = output.bbox
    if np.any(np.asarray(hi) <= np.asarray(lo)):
        errors.append(f"degenerate bbox: {lo} .. {hi}")

    if errors and strict:
        raise GeometryError(f"Output contract violation: {errors}")

    return (len(errors) == 0, errors)


def create_output(vertices, faces, face_sources, bbox,
                  periodic_face_pairs=None) -> InflationOutput:
    """
    Helper to create a contract-compliant, read-only InflationOutput.

    Raises:
        GeometryError: if the arrays violate the contract
    """
    V = np.array(vertices, dtype=float).reshape(-1, 3)
    F = np.array(faces, dtype=np.int64).reshape(-1, 3)
    S = np.array(face_sources, dtype=np.int64).reshape(-1)
    lo = np.array(bbox[0], dtype=float)
    hi = np.array(bbox[1], dtype=float)
    if periodic_face_pairs is None:
        pairs = np.zeros((0, 3), dtype=np.int64)
    else:
        pairs = np.array(periodic_face_pairs, dtype=np.int64).reshape(-1, 3)

    for arr in (V, F, S, lo, hi, pairs):
        arr.flags.writeable = False

    output = InflationOutput(V, F, S, (lo, hi), pairs)
    validate_output(output, strict=True)
    return output
