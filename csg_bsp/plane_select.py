from __future__ import annotations

import random
from typing import Sequence, Tuple

import numpy as np

from .clip import plane_cost
from .geometry import Plane, plane_from_points
from .node import BSPNode


def triangle_at(groups: Sequence[Sequence[int]], triangle: int) -> Tuple[int, int, int]:
    """Vertex indices of the ``triangle``-th triangle counted across all groups."""
    offset = triangle * 3
    for group in groups:
        if offset < len(group):
            return group[offset], group[offset + 1], group[offset + 2]
        offset -= len(group)
    raise IndexError(f"Triangle {triangle} out of range.")


def candidate_plane(node: BSPNode, positions: np.ndarray, triangle: int) -> Plane:
    a, b, c = triangle_at(node.indices, triangle)
    return plane_from_points(positions[a], positions[b], positions[c])


def choose_plane(
    node: BSPNode,
    positions: np.ndarray,
    candidate_count: int,
    precision: float,
    rng: random.Random | None = None,
) -> Plane | None:
    """Sample up to ``candidate_count`` triangle planes and keep the cheapest split.

    Sampling stops at the first candidate that cuts nothing. Returns ``None``
    when every sampled triangle was degenerate.
    """
    rng = rng or random.Random()
    count = node.triangle_count
    if count == 0:
        return None

    best: Plane | None = None
    best_cost = None
    for _ in range(candidate_count):
        candidate = candidate_plane(node, positions, rng.randrange(count))
        if candidate.is_degenerate:
            continue
        cost = plane_cost(node.indices, candidate, positions, precision)
        if best_cost is None or cost < best_cost:
            best, best_cost = candidate, cost
            if cost == 0:
                break
    return best
