"""Triangle/plane classification and clipping.

A triangle is classified from the signed distances of its three vertices to
the plane, after snapping every distance within ``precision`` of the plane to
exactly zero:

    all zero          -> ZERO   (kept on the node owning the plane)
    all >= 0          -> PLUS
    all <= 0          -> MINUS
    anything else     -> SPLIT

A split triangle is replaced by two triangles when one vertex lies on the
plane (one new vertex on the opposite edge) and by three triangles otherwise
(two new vertices on the edges leaving the vertex that is alone on its side).
Winding order of the source triangle is preserved in every piece.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Sequence, Tuple

import numpy as np

from .buffer import NewVertex
from .geometry import Plane, snap_distances

Triangle = Tuple[int, int, int]
IndicesList = List[List[int]]


class Side(str, Enum):
    ZERO = "zero"
    PLUS = "plus"
    MINUS = "minus"
    SPLIT = "split"


@dataclass
class ClipResult:
    side: Side
    zero: List[Triangle] = field(default_factory=list)
    plus: List[Triangle] = field(default_factory=list)
    minus: List[Triangle] = field(default_factory=list)
    new_vertices: List[NewVertex] = field(default_factory=list)

    @property
    def triangle_count(self) -> int:
        return len(self.zero) + len(self.plus) + len(self.minus)


def classify_distances(distances: Sequence[float]) -> Side:
    d0, d1, d2 = distances
    if d0 == 0 and d1 == 0 and d2 == 0:
        return Side.ZERO
    if d0 >= 0 and d1 >= 0 and d2 >= 0:
        return Side.PLUS
    if d0 <= 0 and d1 <= 0 and d2 <= 0:
        return Side.MINUS
    return Side.SPLIT


def split_cost(distances: Sequence[float]) -> int:
    """0 if the triangle is not cut, 1 for a cut into two, 2 for a cut into three."""
    if classify_distances(distances) is not Side.SPLIT:
        return 0
    return 1 if 0 in distances else 2


def _lerp_factor(d_from: float, d_to: float) -> float:
    a = abs(d_from)
    return a / (a + abs(d_to))


def clip_triangle(triangle: Sequence[int], distances: Sequence[float], first_new_index: int) -> ClipResult:
    """Clip one triangle given its already-snapped vertex distances."""
    tri = (int(triangle[0]), int(triangle[1]), int(triangle[2]))
    dist = [float(d) for d in distances]
    side = classify_distances(dist)
    if side is Side.ZERO:
        return ClipResult(side, zero=[tri])

    zeros = [k for k in range(3) if dist[k] == 0]
    if len(zeros) == 2:
        # touches the plane along an edge; the remaining vertex decides
        other = next(k for k in range(3) if k not in zeros)
        side = Side.PLUS if dist[other] > 0 else Side.MINUS
    if side is Side.PLUS:
        return ClipResult(side, plus=[tri])
    if side is Side.MINUS:
        return ClipResult(side, minus=[tri])

    if len(zeros) == 1:
        on = zeros[0]
        o1 = (on + 1) % 3
        o2 = (on + 2) % 3
        n = first_new_index
        request = NewVertex(tri[o1], tri[o2], _lerp_factor(dist[o1], dist[o2]))
        first = (tri[on], tri[o1], n)
        second = (tri[on], n, tri[o2])
        if dist[o1] > 0:
            return ClipResult(Side.SPLIT, plus=[first], minus=[second], new_vertices=[request])
        return ClipResult(Side.SPLIT, plus=[second], minus=[first], new_vertices=[request])

    positive = [d > 0 for d in dist]
    if positive[0] == positive[1]:
        alone = 2
    elif positive[0] == positive[2]:
        alone = 1
    else:
        alone = 0
    o1 = (alone + 1) % 3
    o2 = (alone + 2) % 3
    n0 = first_new_index
    n1 = first_new_index + 1
    requests = [
        NewVertex(tri[alone], tri[o1], _lerp_factor(dist[alone], dist[o1])),
        NewVertex(tri[alone], tri[o2], _lerp_factor(dist[alone], dist[o2])),
    ]
    cap = [(tri[alone], n0, n1)]
    quad = [(n1, n0, tri[o2]), (tri[o2], n0, tri[o1])]
    if dist[alone] > 0:
        return ClipResult(Side.SPLIT, plus=cap, minus=quad, new_vertices=requests)
    return ClipResult(Side.SPLIT, plus=quad, minus=cap, new_vertices=requests)


def classify_and_clip(
    plane: Plane,
    precision: float,
    triangle: Sequence[int],
    positions: np.ndarray,
    first_new_index: int | None = None,
) -> ClipResult:
    """Classify ``triangle`` against ``plane`` and clip it if it straddles.

    New vertex indices start at ``first_new_index``, which defaults to the
    number of rows in ``positions``.
    """
    if first_new_index is None:
        first_new_index = len(positions)
    pts = np.asarray(positions)[list(triangle)]
    distances = snap_distances(plane.distances(pts), precision)
    return clip_triangle(triangle, distances, first_new_index)


def _snapped_triangle_distances(indices: np.ndarray, plane: Plane, positions: np.ndarray, precision: float) -> np.ndarray:
    tris = indices.reshape(-1, 3)
    dist = plane.distances(positions[tris.ravel()]).reshape(-1, 3)
    return snap_distances(dist, precision)


def plane_cost(groups: Sequence[Sequence[int]], plane: Plane, positions: np.ndarray, precision: float) -> int:
    """Sum of ``split_cost`` over every triangle of ``groups``."""
    cost = 0
    for group in groups:
        if not group:
            continue
        dist = _snapped_triangle_distances(np.asarray(group, dtype=np.int64), plane, positions, precision)
        straddles = ~np.all(dist >= 0, axis=1) & ~np.all(dist <= 0, axis=1)
        touching = np.any(dist == 0, axis=1)
        cost += int(np.count_nonzero(straddles & touching)) + 2 * int(np.count_nonzero(straddles & ~touching))
    return cost


@dataclass
class SplitResult:
    zero: IndicesList
    plus: IndicesList
    minus: IndicesList
    new_vertices: List[NewVertex]


def split_groups(
    groups: Sequence[Sequence[int]],
    plane: Plane,
    positions: np.ndarray,
    precision: float,
    first_new_index: int,
) -> SplitResult:
    """Partition every group's triangles into zero/plus/minus lists, in source order."""
    result = SplitResult([], [], [], [])
    for group in groups:
        zero: List[int] = []
        plus: List[int] = []
        minus: List[int] = []
        if group:
            tris = np.asarray(group, dtype=np.int64).reshape(-1, 3)
            dist = _snapped_triangle_distances(tris, plane, positions, precision)
            for tri, d in zip(tris.tolist(), dist.tolist()):
                clipped = clip_triangle(tri, d, first_new_index + len(result.new_vertices))
                for t in clipped.zero:
                    zero.extend(t)
                for t in clipped.plus:
                    plus.extend(t)
                for t in clipped.minus:
                    minus.extend(t)
                result.new_vertices.extend(clipped.new_vertices)
        result.zero.append(zero)
        result.plus.append(plus)
        result.minus.append(minus)
    return result
