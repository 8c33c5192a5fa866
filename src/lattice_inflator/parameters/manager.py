"""
Parameter Manager
=================

Turns orbit + modifier descriptions into per-element fields:

    evaluate_thickness(vars) → (E,) or (V,) thickness field
    evaluate_offset(vars)    → (V, 3) vertex offsets

Evaluation is stateless: the manager holds only the parsed, validated rules
and the network's sizes, so repeated calls with the same variables return
the same arrays.

Usage:
    manager = ParameterManager.create_from_setting_file(
        network, 0.5, "brick5.orbit", "brick5.modifier")
    network.offset_vertices(manager.evaluate_offset())
    inflator.set_thickness_type(manager.get_thickness_type())
    inflator.set_thickness(manager.evaluate_thickness())

Jan 2026
"""

import logging
from typing import Dict, List, Optional

import numpy as np

from ..spec.constants import PER_EDGE, PER_VERTEX, THICKNESS_TYPES
from ..spec.errors import ValidationError
from .formula import evaluate_formula, formula_symbols
from .modifiers import Modifiers, load_modifiers, parse_modifiers
from .orbits import Orbits, load_orbits, parse_orbits

logger = logging.getLogger(__name__)


class ParameterManager:
    """Orbit-driven thickness and offset fields for one wire network."""

    def __init__(self, network, base_thickness: float, orbits: Orbits, modifiers: Modifiers):
        try:
            base = float(base_thickness)
        except (TypeError, ValueError) as err:
            raise ValidationError(f"base thickness must be a number, got {base_thickness!r}") from err
        if not np.isfinite(base) or base < 0:
            raise ValidationError(f"base thickness must be a non-negative number, got {base_thickness!r}")

        self._base = base
        self._orbits = orbits
        self._modifiers = modifiers
        self._num_vertices = network.num_vertices
        self._num_edges = network.num_edges
        self._cell_size = np.array(network.cell_size, dtype=float)

    # =========================================================================
    # Construction
    # =========================================================================

    @classmethod
    def create(cls, network, base_thickness: float, orbits: Optional[dict] = None,
               modifiers: Optional[dict] = None) -> "ParameterManager":
        """Build from in-memory orbit/modifier dicts (same validation as files)."""
        parsed_orbits = parse_orbits(orbits or {}, network)
        parsed_modifiers = parse_modifiers(modifiers or {}, parsed_orbits)
        return cls(network, base_thickness, parsed_orbits, parsed_modifiers)

    @classmethod
    def create_from_setting_file(cls, network, base_thickness: float,
                                 orbit_file, modifier_file) -> "ParameterManager":
        """Build from an orbit JSON file and a modifier JSON file."""
        orbits = load_orbits(orbit_file, network)
        modifiers = load_modifiers(modifier_file, orbits)
        logger.info("Loaded %d thickness rule(s), %d offset rule(s) from %s",
                    len(modifiers.thickness_rules), len(modifiers.offset_rules), modifier_file)
        return cls(network, base_thickness, orbits, modifiers)

    @classmethod
    def create_default(cls, network, base_thickness: float,
                       thickness_type: str = PER_EDGE) -> "ParameterManager":
        """Uniform base thickness, no offsets."""
        if thickness_type not in THICKNESS_TYPES:
            raise ValueError(f"thickness type must be one of {THICKNESS_TYPES}, got {thickness_type!r}")
        orbits = parse_orbits({}, network)
        return cls(network, base_thickness, orbits, Modifiers(thickness_type=thickness_type))

    # =========================================================================
    # Queries
    # =========================================================================

    def get_thickness_type(self) -> str:
        return self._modifiers.thickness_type

    @property
    def base_thickness(self) -> float:
        return self._base

    def get_variable_names(self) -> List[str]:
        """Every free variable used by any rule, sorted."""
        names = set()
        for rule in self._modifiers.thickness_rules + self._modifiers.offset_rules:
            for scalar in rule.scalars():
                names.update(formula_symbols(scalar))
        return sorted(names)

    # =========================================================================
    # Evaluation
    # =========================================================================

    def evaluate_thickness(self, variables: Optional[Dict[str, float]] = None) -> np.ndarray:
        """
        Thickness field for the current thickness type.

        Returns:
            (E,) for PER_EDGE, (V,) for PER_VERTEX

        Raises:
            ValidationError: unbound formula variable or a negative thickness
        """
        if self.get_thickness_type() == PER_VERTEX:
            n, orbits = self._num_vertices, self._orbits.vertex_orbits
        else:
            n, orbits = self._num_edges, self._orbits.edge_orbits

        thickness = np.full(n, self._base)
        for rule in self._modifiers.thickness_rules:
            value = self._base if rule.value is None else evaluate_formula(rule.value, variables)
            scale = evaluate_formula(rule.scale, variables)
            offset = evaluate_formula(rule.offset, variables)
            per_index = evaluate_formula(rule.per_index, variables)
            for i, element in enumerate(orbits[rule.orbit]):
                thickness[element] = value * scale + offset + per_index * i

        if np.any(thickness < 0):
            bad = int(np.argmax(thickness < 0))
            raise ValidationError(f"negative thickness {thickness[bad]:.6g} at element {bad}")
        return thickness

    def evaluate_offset(self, variables: Optional[Dict[str, float]] = None) -> np.ndarray:
        """(V, 3) vertex offsets; zero where no rule applies."""
        offset = np.zeros((self._num_vertices, 3))
        for rule in self._modifiers.offset_rules:
            vector = np.array([evaluate_formula(s, variables) for s in rule.vector])
            if rule.relative:
                vector = vector * self._cell_size
            members = self._orbits.vertex_orbits[rule.orbit]
            offset[members] += vector
        return offset
