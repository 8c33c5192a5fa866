"""
Tests for the parameter layer
=============================

Formulas, orbit/modifier parsing, ParameterManager evaluation.

Run: python -m pytest tests/core/test_parameters.py -v
"""

import json

import numpy as np
import pytest

from lattice_inflator import ParameterManager
from lattice_inflator.parameters import evaluate_formula, formula_symbols, parse_modifiers, parse_orbits
from lattice_inflator.spec.constants import PER_EDGE, PER_VERTEX
from lattice_inflator.spec.errors import ParseError, ValidationError


def write_json(path, data):
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


# =============================================================================
# P1: Formulas
# =============================================================================

def test_numbers_pass_through():
    """P1.1: Plain numbers evaluate to themselves."""
    assert evaluate_formula(0.5) == 0.5
    assert evaluate_formula(3) == 3.0
    assert formula_symbols(2.0) == ()


@pytest.mark.parametrize("expr, variables, expected", [
    ("2 * pi", None, 2 * np.pi),
    ("sqrt(t) + 1", {"t": 4.0}, 3.0),
    ("max(a, b) - min(a, b)", {"a": 1.0, "b": 3.5}, 2.5),
    ("0.5 * t + 0.1", {"t": np.float64(0.8)}, 0.5),
    ("abs(x) * cos(0)", {"x": -2.0}, 2.0),
])
def test_formula_values(expr, variables, expected):
    """P1.2: Arithmetic and the known functions."""
    assert evaluate_formula(expr, variables) == pytest.approx(expected)


def test_sympy_names_are_plain_variables():
    """P1.3: E, I, beta are user variables, not sympy constants."""
    assert formula_symbols("E + beta * I") == ("E", "I", "beta")
    assert evaluate_formula("E + beta * I", {"E": 1.0, "I": 2.0, "beta": 0.5}) == pytest.approx(2.0)


@pytest.mark.parametrize("bad", ["0.5 *", "", "   ", "foo(2)", "t +* 3"])
def test_malformed_formulas(bad):
    """P1.4: Syntax errors and unknown functions raise ParseError."""
    with pytest.raises(ParseError):
        evaluate_formula(bad, {"t": 1.0})


@pytest.mark.parametrize("bad", [True, None, [1.0], {"a": 1}])
def test_non_numeric_literals(bad):
    """P1.5: Booleans and containers are not scalars."""
    with pytest.raises(ParseError):
        evaluate_formula(bad)


def test_unbound_variable():
    """P1.6: Missing binding raises ValidationError."""
    with pytest.raises(ValidationError, match="unbound"):
        evaluate_formula("0.5 * t")


@pytest.mark.parametrize("expr, variables", [
    ("sqrt(x)", {"x": -1.0}),
    ("1 / x", {"x": 0.0}),
])
def test_non_real_results(expr, variables):
    """P1.7: Complex or infinite results raise ValidationError."""
    with pytest.raises(ValidationError):
        evaluate_formula(expr, variables)


# =============================================================================
# P2: Orbits and modifiers
# =============================================================================

def test_missing_orbit_keys_give_singletons(cube):
    """P2.1: No orbit description → every element is its own orbit."""
    orbits = parse_orbits({}, cube)
    assert orbits.vertex_orbits == [[v] for v in range(8)]
    assert orbits.edge_orbits == [[e] for e in range(12)]
    assert orbits.for_kind("edge") is orbits.edge_orbits


@pytest.mark.parametrize("data, error, message", [
    ({"edge_orbits": [[0, 1], [1, 2]]}, ValidationError, "appears in orbits"),
    ({"edge_orbits": [[0, 99]]}, ValidationError, "out of range"),
    ({"edge_orbits": [[0, "1"]]}, ParseError, "non-integer"),
    ({"edge_orbits": [[0, True]]}, ParseError, "non-integer"),
    ({"edge_orbits": [[]]}, ParseError, "non-empty"),
    ({"edge_orbits": {"0": [0]}}, ParseError, "list"),
    ({"face_orbits": [[0]]}, ParseError, "unknown"),
])
def test_invalid_orbits(cube, data, error, message):
    """P2.2: Orbit descriptions are checked against the network."""
    with pytest.raises(error, match=message):
        parse_orbits(data, cube)


@pytest.mark.parametrize("data, error, message", [
    ({"thickness": {"rules": [{"orbit": 12}]}}, ValidationError, "out of range"),
    ({"thickness": {"rules": [{"orbit": 0}, {"orbit": 0, "value": 1.0}]}}, ValidationError, "already"),
    ({"thickness": {"rules": [{"orbit": 0, "width": 1.0}]}}, ParseError, "unknown"),
    ({"thickness": {"rules": [{"value": 1.0}]}}, ParseError, "missing 'orbit'"),
    ({"thickness": {"type": "face_orbit"}}, ParseError, "thickness type"),
    ({"thickness": {"rules": [{"orbit": 0, "value": "0.5 *"}]}}, ParseError, "value"),
    ({"vertex_offset": {"rules": [{"orbit": 0}]}}, ParseError, "exactly one"),
    ({"vertex_offset": {"rules": [{"orbit": 0, "offset": [0, 0]}]}}, ParseError, "3 scalars"),
    ({"colour": {}}, ParseError, "unknown"),
])
def test_invalid_modifiers(cube, data, error, message):
    """P2.3: Modifier structure and orbit references are validated at load time."""
    orbits = parse_orbits({}, cube)
    with pytest.raises(error, match=message):
        parse_modifiers(data, orbits)


def test_vertex_orbit_type(cube):
    """P2.4: "vertex_orbit" thickness rules select PER_VERTEX."""
    orbits = parse_orbits({}, cube)
    modifiers = parse_modifiers({"thickness": {"type": "vertex_orbit", "rules": [{"orbit": 7}]}}, orbits)
    assert modifiers.thickness_type == PER_VERTEX


# =============================================================================
# P3: ParameterManager
# =============================================================================

def test_default_manager(cube):
    """P3.1: Uniform thickness, zero offsets."""
    manager = ParameterManager.create_default(cube, 0.5)
    assert manager.get_thickness_type() == PER_EDGE
    assert np.allclose(manager.evaluate_thickness(), 0.5)
    assert manager.evaluate_thickness().shape == (12,)
    assert np.allclose(manager.evaluate_offset(), np.zeros((8, 3)))
    assert manager.get_variable_names() == []

    per_vertex = ParameterManager.create_default(cube, 0.5, PER_VERTEX)
    assert per_vertex.evaluate_thickness().shape == (8,)

    with pytest.raises(ValueError):
        ParameterManager.create_default(cube, 0.5, "per_face")


def test_brick5_orbit_offset_from_files(brick5, tmp_path):
    """P3.2: One edge orbit with a constant offset → base + offset everywhere."""
    orbit_file = write_json(tmp_path / "brick5.orbit", {"edge_orbits": [list(range(brick5.num_edges))]})
    modifier_file = write_json(tmp_path / "brick5.modifier", {
        "thickness": {"type": "edge_orbit", "rules": [{"orbit": 0, "offset": 0.1}]},
    })

    manager = ParameterManager.create_from_setting_file(brick5, 0.5, orbit_file, modifier_file)
    thickness = manager.evaluate_thickness()

    assert thickness.shape == (540,)
    assert np.allclose(thickness, 0.6), f"Expected 0.6 everywhere, got {np.unique(thickness)}"


def test_per_index_and_uncovered_elements(cube):
    """P3.3: per_index steps along the orbit; uncovered edges keep the base."""
    manager = ParameterManager.create(
        cube, 0.5,
        orbits={"edge_orbits": [[3, 1, 2]]},
        modifiers={"thickness": {"rules": [{"orbit": 0, "value": 0.2, "per_index": 0.01}]}},
    )
    t = manager.evaluate_thickness()
    assert t[3] == pytest.approx(0.20)
    assert t[1] == pytest.approx(0.21)
    assert t[2] == pytest.approx(0.22)
    assert t[0] == pytest.approx(0.5)


def test_formula_thickness(cube):
    """P3.4: Formula scalars are evaluated with caller variables."""
    manager = ParameterManager.create(
        cube, 0.5,
        modifiers={"thickness": {"rules": [{"orbit": 0, "value": "0.4 * s", "scale": "k"}]}},
    )
    assert manager.get_variable_names() == ["k", "s"]
    t = manager.evaluate_thickness({"s": 1.5, "k": 2.0})
    assert t[0] == pytest.approx(1.2)
    assert np.allclose(t[1:], 0.5)

    with pytest.raises(ValidationError, match="unbound"):
        manager.evaluate_thickness({"s": 1.5})


def test_negative_thickness_rejected(cube):
    """P3.5: Rules producing a negative thickness fail at evaluation."""
    manager = ParameterManager.create(
        cube, 0.5, modifiers={"thickness": {"rules": [{"orbit": 4, "offset": -1.0}]}})
    with pytest.raises(ValidationError, match="negative"):
        manager.evaluate_thickness()


def test_invalid_base_thickness(cube):
    """P3.6: Base thickness must be a non-negative number."""
    for bad in (-0.1, float("nan"), "thick"):
        with pytest.raises(ValidationError):
            ParameterManager.create_default(cube, bad)


def test_vertex_offsets_accumulate(cube):
    """P3.7: Absolute and cell-relative offsets on one orbit add up."""
    manager = ParameterManager.create(
        cube, 0.5,
        orbits={"vertex_orbits": [[0, 7]]},
        modifiers={"vertex_offset": {"rules": [
            {"orbit": 0, "offset": [0.1, 0.0, 0.0]},
            {"orbit": 0, "offset_percentages": [0.0, 0.02, "f"]},
        ]}},
    )
    offset = manager.evaluate_offset({"f": 0.01})
    assert offset.shape == (8, 3)
    assert np.allclose(offset[0], [0.1, 0.1, 0.05])
    assert np.allclose(offset[7], [0.1, 0.1, 0.05])
    assert np.allclose(offset[1:7], 0.0)


def test_bad_setting_files(cube, tmp_path):
    """P3.8: Missing or malformed files raise ParseError."""
    good = write_json(tmp_path / "ok.modifier", {})
    broken = tmp_path / "broken.orbit"
    broken.write_text("{not json", encoding="utf-8")
    not_object = write_json(tmp_path / "list.orbit", [[0, 1]])

    with pytest.raises(ParseError, match="cannot read"):
        ParameterManager.create_from_setting_file(cube, 0.5, tmp_path / "missing.orbit", good)
    with pytest.raises(ParseError, match="malformed"):
        ParameterManager.create_from_setting_file(cube, 0.5, broken, good)
    with pytest.raises(ParseError, match="JSON object"):
        ParameterManager.create_from_setting_file(cube, 0.5, not_object, good)


def test_evaluation_is_repeatable(cube):
    """P3.9: Same variables → same arrays (no hidden state)."""
    manager = ParameterManager.create(
        cube, 0.5, modifiers={"thickness": {"rules": [{"orbit": 2, "value": "t"}]}})
    a = manager.evaluate_thickness({"t": 0.3})
    b = manager.evaluate_thickness({"t": 0.7})
    c = manager.evaluate_thickness({"t": 0.3})
    assert np.array_equal(a, c)
    assert b[2] == pytest.approx(0.7)
