from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Tuple

import numpy as np

Point3D = Tuple[float, float, float]


@dataclass(frozen=True)
class Plane:
    """Oriented plane ``normal . x + d = 0``; the normal side is the plus half-space."""

    normal: Point3D
    d: float

    @property
    def is_degenerate(self) -> bool:
        nx, ny, nz = self.normal
        return nx == 0.0 and ny == 0.0 and nz == 0.0

    def distance(self, point) -> float:
        nx, ny, nz = self.normal
        return nx * point[0] + ny * point[1] + nz * point[2] + self.d

    def distances(self, points: np.ndarray) -> np.ndarray:
        return np.asarray(points, dtype=np.float64) @ np.asarray(self.normal, dtype=np.float64) + self.d

    def __str__(self) -> str:
        nx, ny, nz = self.normal
        return f"(n=({nx:.3f}, {ny:.3f}, {nz:.3f}), d={self.d:.3f})"


ZERO_PLANE = Plane((0.0, 0.0, 0.0), 0.0)


def plane_from_points(a, b, c) -> Plane:
    """Plane through three points, wound so that ``a, b, c`` is counter-clockwise seen from plus.

    A degenerate triangle yields ``ZERO_PLANE``.
    """
    ux, uy, uz = b[0] - a[0], b[1] - a[1], b[2] - a[2]
    vx, vy, vz = c[0] - a[0], c[1] - a[1], c[2] - a[2]
    nx = uy * vz - uz * vy
    ny = uz * vx - ux * vz
    nz = ux * vy - uy * vx
    mag = math.sqrt(nx * nx + ny * ny + nz * nz)
    if mag == 0:
        return ZERO_PLANE
    nx, ny, nz = nx / mag, ny / mag, nz / mag
    d = -(nx * a[0] + ny * a[1] + nz * a[2])
    return Plane((float(nx), float(ny), float(nz)), float(d))


def snap_distances(distances: np.ndarray, precision: float) -> np.ndarray:
    snapped = np.array(distances, dtype=np.float64, copy=True)
    snapped[np.abs(snapped) <= precision] = 0.0
    return snapped


def _normalized(v: np.ndarray) -> np.ndarray:
    # row-wise; zero-length rows are left as they are
    mag = np.linalg.norm(v, axis=-1, keepdims=True)
    return np.divide(v, mag, out=np.array(v, dtype=np.float64, copy=True), where=mag > 0)


def lerp_position(a: np.ndarray, b: np.ndarray, t: float) -> np.ndarray:
    return a * (1.0 - t) + b * t


def lerp_normal(a: np.ndarray, b: np.ndarray, t: float) -> np.ndarray:
    return _normalized(a * (1.0 - t) + b * t)


def lerp_tangent(a: np.ndarray, b: np.ndarray, t: float) -> np.ndarray:
    # all four components, w included, are blended then normalized together
    return _normalized(a * (1.0 - t) + b * t)


def lerp_uv(a: np.ndarray, b: np.ndarray, t: float) -> np.ndarray:
    return a * (1.0 - t) + b * t
