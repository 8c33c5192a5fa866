"""
Guard and Edge Case Tests for lattice_inflator
==============================================

Tests for the output contract, face keys, source tags and small guards.
Separated from the stage tests to keep those focused on geometry.

Run: python -m pytest tests/core/test_guards.py -v
"""

import logging

import numpy as np
import pytest

from lattice_inflator import setup_logging
from lattice_inflator.spec.constants import decode_source, edge_source, vertex_source
from lattice_inflator.spec.errors import (
    GeometryError,
    InflationError,
    LatticeError,
    ParseError,
    StateError,
    TopologyError,
    ValidationError,
)
from lattice_inflator.spec.structures import canonical_face, create_output, validate_output

TRI_V = [[0, 0, 0], [1, 0, 0], [0, 1, 0]]
UNIT_BBOX = ([0, 0, 0], [1, 1, 1])


# =============================================================================
# P1: canonical_face correctness
# =============================================================================

def test_canonical_face_rotation_invariant():
    """P1.1: Rotations of a cycle → same key, same orientation."""
    face = [3, 1, 4, 2]
    keys = [canonical_face(face[i:] + face[:i]) for i in range(4)]
    assert all(k == keys[0] for k in keys)


def test_canonical_face_reverse_orientation():
    """P1.2: Reversed cycle → same key, opposite orientation."""
    face = [5, 7, 9]
    key, sign = canonical_face(face)
    key_rev, sign_rev = canonical_face(face[::-1])
    assert key == key_rev
    assert sign == -sign_rev


def test_canonical_face_different_faces():
    """P1.3: Different vertex sets → different keys."""
    assert canonical_face([0, 1, 2])[0] != canonical_face([0, 1, 3])[0]


def test_canonical_face_too_short():
    """P1.4: Fewer than 3 vertices is not a face."""
    with pytest.raises(ValueError):
        canonical_face([1, 2])


# =============================================================================
# P2: Output contract
# =============================================================================

def test_create_output_read_only():
    """P2.1: All arrays are frozen and typed."""
    out = create_output(TRI_V, [[0, 1, 2]], [3], UNIT_BBOX)
    assert out.num_vertices == 3 and out.num_faces == 1
    assert out.faces.dtype == np.int64
    assert out.periodic_face_pairs.shape == (0, 3)
    for arr in (out.vertices, out.faces, out.face_sources, out.bbox[0], out.bbox[1]):
        with pytest.raises(ValueError):
            arr[0] = 0


@pytest.mark.parametrize("faces, sources, bbox", [
    ([[0, 1, 2]], [0, 1], UNIT_BBOX),         # source count mismatch
    ([[0, 1, 5]], [0], UNIT_BBOX),            # index out of range
    ([[0, 1, 1]], [0], UNIT_BBOX),            # repeated vertex
    ([[0, 1, 2]], [0], ([0, 0, 0], [1, 0, 1])),  # flat bbox
])
def test_create_output_rejects_bad_arrays(faces, sources, bbox):
    """P2.2: Contract violations raise GeometryError."""
    with pytest.raises(GeometryError):
        create_output(TRI_V, faces, sources, bbox)


def test_validate_output_non_strict_collects():
    """P2.3: Non-strict validation returns the error list."""
    out = create_output(TRI_V, [[0, 1, 2]], [0], UNIT_BBOX)
    ok, errors = validate_output(out, strict=False)
    assert ok and errors == []


# =============================================================================
# P3: Source tags and error kinds
# =============================================================================

@pytest.mark.parametrize("index", [0, 1, 17])
def test_source_tags_decode(index):
    """P3.1: Edge tags are non-negative, vertex tags negative."""
    assert decode_source(edge_source(index)) == ("edge", index)
    assert decode_source(vertex_source(index)) == ("vertex", index)
    assert vertex_source(index) < 0 <= edge_source(index)


def test_error_hierarchy():
    """P3.2: Input errors are ValueErrors, runtime failures RuntimeErrors."""
    for kind in (TopologyError, GeometryError, ParseError, ValidationError):
        assert issubclass(kind, LatticeError) and issubclass(kind, ValueError)
    for kind in (StateError, InflationError):
        assert issubclass(kind, LatticeError) and issubclass(kind, RuntimeError)


# =============================================================================
# P4: Logging setup
# =============================================================================

def test_setup_logging_replaces_handlers(tmp_path):
    """P4.1: Repeated setup keeps one console handler plus the file."""
    log_file = tmp_path / "run.log"
    setup_logging(logging.DEBUG)
    logger = setup_logging(logging.DEBUG, log_file=log_file)
    try:
        assert logger.name == "lattice_inflator"
        assert len(logger.handlers) == 2
        logging.getLogger("lattice_inflator.inflator").debug("hello")
        for handler in logger.handlers:
            handler.flush()
        assert "hello" in log_file.read_text(encoding="utf-8")
    finally:
        setup_logging(logging.WARNING)
