"""
Cross-Section Profiles
======================

A WireProfile is a closed 2D loop swept along every wire. It is immutable:
the backing array is read-only and place() always returns a fresh ring, so
one profile instance can be shared by any number of engines and threads.

CONTRACT:
    - at least 3 samples
    - counter-clockwise (clockwise input is reversed on construction)
    - strictly convex
    - origin strictly inside
    - unit scale: thickness t places the loop scaled by t / 2

Jan 2026
"""

from functools import lru_cache
from typing import Optional, Tuple

import numpy as np

from ..spec.constants import EPS_ZERO, MIN_PROFILE_SAMPLES, PROFILE_CONVEX_TOL
from ..spec.errors import GeometryError


def frame_for_direction(direction) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Deterministic orthonormal frame (n, u, w) for a wire direction.

    n is ±direction, with the sign chosen so that its largest-magnitude
    component is positive: a direction and its reverse share one frame.
    u is built against the coordinate axis least aligned with n, w = n × u.

    Returns:
        (n, u, w), right-handed
    """
    d = np.asarray(direction, dtype=float)
    norm = np.linalg.norm(d)
    if norm < EPS_ZERO:
        raise GeometryError("cannot build a frame for a zero-length direction")
    n = d / norm

    k = int(np.argmax(np.abs(n)))
    if n[k] < 0:
        n = -n

    axis = np.zeros(3)
    axis[int(np.argmin(np.abs(n)))] = 1.0
    u = np.cross(n, axis)
    u /= np.linalg.norm(u)
    w = np.cross(n, u)
    return n, u, w


class WireProfile:
    """
    Immutable 2D cross-section loop.

    Usage:
        profile = WireProfile.create_isotropic(8)
        ring = profile.place(center, normal, radius)   # (N, 3), fresh array
    """

    def __init__(self, loop):
        loop = np.array(loop, dtype=float)
        if loop.ndim != 2 or loop.shape[1] != 2:
            raise ValueError(f"profile loop must be (N, 2), got shape {loop.shape}")
        if len(loop) < MIN_PROFILE_SAMPLES:
            raise ValueError(f"profile needs at least {MIN_PROFILE_SAMPLES} samples, got {len(loop)}")
        if not np.all(np.isfinite(loop)):
            raise ValueError("profile loop contains non-finite samples")

        # Shoelace: negative area means clockwise
        x, y = loop[:, 0], loop[:, 1]
        area = 0.5 * float(np.sum(x * np.roll(y, -1) - np.roll(x, -1) * y))
        if abs(area) < EPS_ZERO:
            raise ValueError("profile loop has zero area")
        if area < 0:
            loop = loop[::-1].copy()

        # Strict convexity: every turn is a left turn
        edges = np.roll(loop, -1, axis=0) - loop
        turns = edges[:, 0] * np.roll(edges, -1, axis=0)[:, 1] - edges[:, 1] * np.roll(edges, -1, axis=0)[:, 0]
        scale = float(np.max(np.linalg.norm(loop, axis=1))) ** 2
        if np.any(turns <= PROFILE_CONVEX_TOL * scale):
            raise ValueError("profile loop must be strictly convex")

        # Origin strictly left of every edge
        side = edges[:, 0] * (-loop[:, 1]) - edges[:, 1] * (-loop[:, 0])
        if np.any(side <= PROFILE_CONVEX_TOL * scale):
            raise ValueError("profile loop must contain the origin strictly inside")

        loop.flags.writeable = False
        self._loop = loop

    @classmethod
    def create_isotropic(cls, num_samples: int) -> "WireProfile":
        """Regular N-gon inscribed in the unit circle (cached per N)."""
        if int(num_samples) != num_samples or num_samples < MIN_PROFILE_SAMPLES:
            raise ValueError(f"isotropic profile needs an integer >= {MIN_PROFILE_SAMPLES} samples, "
                             f"got {num_samples}")
        return _isotropic_profile(int(num_samples))

    @property
    def loop(self) -> np.ndarray:
        """Read-only (N, 2) samples."""
        return self._loop

    @property
    def num_samples(self) -> int:
        return len(self._loop)

    def place(self, center, normal, radius: float,
              frame: Optional[Tuple[np.ndarray, np.ndarray, np.ndarray]] = None) -> np.ndarray:
        """
        Place the loop in 3D.

        Args:
            center: ring center
            normal: plane normal (ignored when frame is given)
            radius: scale applied to the unit loop
            frame: optional (n, u, w) from frame_for_direction()

        Returns:
            (N, 3) fresh array, counter-clockwise about frame n
        """
        if frame is None:
            frame = frame_for_direction(normal)
        _, u, w = frame
        center = np.asarray(center, dtype=float)
        return center + radius * (np.outer(self._loop[:, 0], u) + np.outer(self._loop[:, 1], w))

    def __eq__(self, other):
        if not isinstance(other, WireProfile):
            return NotImplemented
        return self._loop.shape == other._loop.shape and np.array_equal(self._loop, other._loop)

    def __hash__(self):
        return hash(self._loop.tobytes())

    def __repr__(self):
        return f"WireProfile(num_samples={self.num_samples})"


@lru_cache(maxsize=None)
def _isotropic_profile(num_samples: int) -> WireProfile:
    angles = 2.0 * np.pi * np.arange(num_samples) / num_samples
    return WireProfile(np.column_stack([np.cos(angles), np.sin(angles)]))
