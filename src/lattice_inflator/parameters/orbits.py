"""
Symmetry orbits of a wire network.

An orbit is a list of vertex (or edge) indices that share parameters.
Orbit descriptions come from a JSON file or an in-memory dict:

    {"vertex_orbits": [[0, 2, 4], [1, 3]], "edge_orbits": [[0, 1, 2, ...]]}

A missing key means every element is its own orbit. Elements may be left out
of all orbits (they keep the base parameters) but may not appear twice.
"""

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List

from ..spec.errors import ParseError, ValidationError

logger = logging.getLogger(__name__)

ORBIT_KEYS = ("vertex_orbits", "edge_orbits")


@dataclass(frozen=True)
class Orbits:
    vertex_orbits: List[List[int]]
    edge_orbits: List[List[int]]

    def for_kind(self, kind: str) -> List[List[int]]:
        """Orbits for "vertex" or "edge"."""
        if kind == "vertex":
            return self.vertex_orbits
        if kind == "edge":
            return self.edge_orbits
        raise ValueError(f"unknown orbit kind: {kind!r}")


def load_json(path, what: str) -> dict:
    """Read a JSON object from disk; any failure is a ParseError."""
    try:
        with open(Path(path), "r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as err:
        raise ParseError(f"cannot read {what} file {path}: {err}") from err
    except json.JSONDecodeError as err:
        raise ParseError(f"malformed {what} file {path}: {err}") from err
    if not isinstance(data, dict):
        raise ParseError(f"{what} file {path} must contain a JSON object")
    return data


def _parse_orbit_list(raw, key: str, n_elements: int) -> List[List[int]]:
    if not isinstance(raw, list):
        raise ParseError(f"'{key}' must be a list of index lists")

    owner = {}
    orbits = []
    for k, orbit in enumerate(raw):
        if not isinstance(orbit, list) or not orbit:
            raise ParseError(f"'{key}'[{k}] must be a non-empty list of indices")
        members = []
        for idx in orbit:
            if isinstance(idx, bool) or not isinstance(idx, int):
                raise ParseError(f"'{key}'[{k}] contains a non-integer index {idx!r}")
            if idx < 0 or idx >= n_elements:
                raise ValidationError(f"'{key}'[{k}]: index {idx} out of range [0, {n_elements - 1}]")
            if idx in owner:
                raise ValidationError(f"'{key}': index {idx} appears in orbits {owner[idx]} and {k}")
            owner[idx] = k
            members.append(idx)
        orbits.append(members)

    if len(owner) < n_elements:
        logger.debug("'%s' covers %d of %d elements", key, len(owner), n_elements)
    return orbits


def parse_orbits(data: dict, network) -> Orbits:
    """
    Validate an orbit description against a network.

    Raises:
        ParseError: wrong structure or non-integer indices
        ValidationError: out-of-range index or an element in two orbits
    """
    if not isinstance(data, dict):
        raise ParseError("orbit description must be a JSON object")
    unknown = set(data) - set(ORBIT_KEYS)
    if unknown:
        raise ParseError(f"unknown orbit keys: {sorted(unknown)}")

    if "vertex_orbits" in data:
        vertex_orbits = _parse_orbit_list(data["vertex_orbits"], "vertex_orbits", network.num_vertices)
    else:
        vertex_orbits = [[v] for v in range(network.num_vertices)]

    if "edge_orbits" in data:
        edge_orbits = _parse_orbit_list(data["edge_orbits"], "edge_orbits", network.num_edges)
    else:
        edge_orbits = [[e] for e in range(network.num_edges)]

    return Orbits(vertex_orbits, edge_orbits)


def load_orbits(path, network) -> Orbits:
    return parse_orbits(load_json(path, "orbit"), network)
