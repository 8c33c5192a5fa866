"""
Modifier rules: how orbits change thickness and vertex positions.

FORMAT:
    {
      "thickness": {
        "type": "edge_orbit" | "vertex_orbit",
        "rules": [{"orbit": 0, "value": 0.4, "scale": 1.0,
                   "offset": 0.1, "per_index": 0.0}, ...]
      },
      "vertex_offset": {
        "rules": [{"orbit": 0, "offset": [dx, dy, dz]},
                  {"orbit": 1, "offset_percentages": [fx, fy, fz]}, ...]
      }
    }

Every scalar may be a number or a formula string (see formula.py).

THICKNESS of the element at position i of its orbit:
    (value if given else base) * scale + offset + per_index * i

Elements of orbits without a rule keep the base thickness. Offset rules on
the same orbit add up; two thickness rules on the same orbit are an error.
"""

from dataclasses import dataclass
from typing import Optional, Tuple, Union

from ..spec.constants import ORBIT_KIND_TO_THICKNESS_TYPE, PER_EDGE
from ..spec.errors import ParseError, ValidationError
from .formula import formula_symbols
from .orbits import Orbits, load_json

Scalar = Union[float, int, str]

THICKNESS_RULE_KEYS = {"orbit", "value", "scale", "offset", "per_index"}
OFFSET_RULE_KEYS = {"orbit", "offset", "offset_percentages"}


@dataclass(frozen=True)
class ThicknessRule:
    orbit: int
    value: Optional[Scalar] = None
    scale: Scalar = 1.0
    offset: Scalar = 0.0
    per_index: Scalar = 0.0

    def scalars(self):
        return [s for s in (self.value, self.scale, self.offset, self.per_index) if s is not None]


@dataclass(frozen=True)
class OffsetRule:
    orbit: int
    vector: Tuple[Scalar, Scalar, Scalar]
    relative: bool = False      # True: fractions of the cell size per axis

    def scalars(self):
        return list(self.vector)


@dataclass(frozen=True)
class Modifiers:
    thickness_type: str = PER_EDGE
    thickness_rules: Tuple[ThicknessRule, ...] = ()
    offset_rules: Tuple[OffsetRule, ...] = ()


def _scalar(rule: dict, key: str, where: str, default=None):
    value = rule.get(key, default)
    if value is None:
        return None
    # Parses formulas now so syntax errors surface at load time
    try:
        formula_symbols(value)
    except ParseError as err:
        raise ParseError(f"{where}.{key}: {err}") from err
    return value


def _orbit_index(rule: dict, where: str, n_orbits: int) -> int:
    if "orbit" not in rule:
        raise ParseError(f"{where}: missing 'orbit'")
    orbit = rule["orbit"]
    if isinstance(orbit, bool) or not isinstance(orbit, int):
        raise ParseError(f"{where}.orbit must be an integer, got {orbit!r}")
    if orbit < 0 or orbit >= n_orbits:
        raise ValidationError(f"{where}.orbit {orbit} out of range [0, {n_orbits - 1}]")
    return orbit


def _rule_list(section: dict, name: str) -> list:
    rules = section.get("rules", [])
    if not isinstance(rules, list) or not all(isinstance(r, dict) for r in rules):
        raise ParseError(f"'{name}.rules' must be a list of objects")
    return rules


def _parse_thickness(section, orbits: Orbits):
    if not isinstance(section, dict):
        raise ParseError("'thickness' must be an object")
    unknown = set(section) - {"type", "rules"}
    if unknown:
        raise ParseError(f"unknown keys in 'thickness': {sorted(unknown)}")

    kind = section.get("type", "edge_orbit")
    if kind not in ORBIT_KIND_TO_THICKNESS_TYPE:
        raise ParseError(f"thickness type must be one of {sorted(ORBIT_KIND_TO_THICKNESS_TYPE)}, got {kind!r}")
    thickness_type = ORBIT_KIND_TO_THICKNESS_TYPE[kind]
    n_orbits = len(orbits.for_kind("edge" if kind == "edge_orbit" else "vertex"))

    rules = []
    seen = set()
    for k, raw in enumerate(_rule_list(section, "thickness")):
        where = f"thickness.rules[{k}]"
        unknown = set(raw) - THICKNESS_RULE_KEYS
        if unknown:
            raise ParseError(f"{where}: unknown keys {sorted(unknown)}")
        orbit = _orbit_index(raw, where, n_orbits)
        if orbit in seen:
            raise ValidationError(f"{where}: orbit {orbit} already has a thickness rule")
        seen.add(orbit)
        rules.append(ThicknessRule(
            orbit=orbit,
            value=_scalar(raw, "value", where),
            scale=_scalar(raw, "scale", where, 1.0),
            offset=_scalar(raw, "offset", where, 0.0),
            per_index=_scalar(raw, "per_index", where, 0.0),
        ))
    return thickness_type, tuple(rules)


def _parse_offsets(section, orbits: Orbits):
    if not isinstance(section, dict):
        raise ParseError("'vertex_offset' must be an object")
    unknown = set(section) - {"rules"}
    if unknown:
        raise ParseError(f"unknown keys in 'vertex_offset': {sorted(unknown)}")

    n_orbits = len(orbits.vertex_orbits)
    rules = []
    for k, raw in enumerate(_rule_list(section, "vertex_offset")):
        where = f"vertex_offset.rules[{k}]"
        unknown = set(raw) - OFFSET_RULE_KEYS
        if unknown:
            raise ParseError(f"{where}: unknown keys {sorted(unknown)}")
        orbit = _orbit_index(raw, where, n_orbits)

        has_abs, has_rel = "offset" in raw, "offset_percentages" in raw
        if has_abs == has_rel:
            raise ParseError(f"{where}: give exactly one of 'offset' or 'offset_percentages'")
        key = "offset" if has_abs else "offset_percentages"
        vector = raw[key]
        if not isinstance(vector, list) or len(vector) != 3:
            raise ParseError(f"{where}.{key} must be a list of 3 scalars")
        vector = tuple(_scalar({key: x}, key, where) for x in vector)
        rules.append(OffsetRule(orbit=orbit, vector=vector, relative=has_rel))
    return tuple(rules)


def parse_modifiers(data: dict, orbits: Orbits) -> Modifiers:
    """
    Validate a modifier description against the orbits.

    Raises:
        ParseError: wrong structure, unknown keys, malformed formulas
        ValidationError: orbit reference out of range or duplicated thickness rule
    """
    if not isinstance(data, dict):
        raise ParseError("modifier description must be a JSON object")
    unknown = set(data) - {"thickness", "vertex_offset"}
    if unknown:
        raise ParseError(f"unknown modifier keys: {sorted(unknown)}")

    thickness_type, thickness_rules = PER_EDGE, ()
    if "thickness" in data:
        thickness_type, thickness_rules = _parse_thickness(data["thickness"], orbits)

    offset_rules = ()
    if "vertex_offset" in data:
        offset_rules = _parse_offsets(data["vertex_offset"], orbits)

    return Modifiers(thickness_type, thickness_rules, offset_rules)


def load_modifiers(path, orbits: Orbits) -> Modifiers:
    return parse_modifiers(load_json(path, "modifier"), orbits)
