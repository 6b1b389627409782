from __future__ import annotations

from dataclasses import dataclass
import threading
from typing import Iterable, List, Sequence

import numpy as np

from .geometry import lerp_normal, lerp_position, lerp_tangent, lerp_uv


@dataclass(frozen=True)
class NewVertex:
    """Request for a vertex on the segment ``index_a -> index_b`` at fraction ``t``."""

    index_a: int
    index_b: int
    t: float


def _as_attribute(values, width: int, name: str, count: int | None) -> np.ndarray | None:
    if values is None:
        return None
    arr = np.asarray(values, dtype=np.float64)
    if arr.size == 0:
        return None
    if arr.ndim != 2 or arr.shape[1] != width:
        raise ValueError(f"{name} must have shape (n, {width}), got {arr.shape}.")
    if count is not None and arr.shape[0] != count:
        raise ValueError(f"{name} has {arr.shape[0]} entries, expected {count}.")
    return arr


class GeometryBuffer:
    """Append-only vertex attribute storage shared by every node of a tree.

    Arrays are over-allocated and grown by doubling; the public accessors
    return views trimmed to ``vertex_count``.
    """

    def __init__(
        self,
        positions,
        normals,
        tangents=None,
        uvs=None,
    ) -> None:
        pos = _as_attribute(positions, 3, "positions", None)
        if pos is None:
            pos = np.zeros((0, 3), dtype=np.float64)
        count = pos.shape[0]
        nrm = _as_attribute(normals, 3, "normals", count)
        if nrm is None and count:
            raise ValueError("normals are required.")
        if nrm is None:
            nrm = np.zeros((0, 3), dtype=np.float64)

        self._count = count
        self._positions = pos.copy()
        self._normals = nrm.copy()
        tan = _as_attribute(tangents, 4, "tangents", count)
        uv = _as_attribute(uvs, 2, "uvs", count)
        self._tangents = tan.copy() if tan is not None else None
        self._uvs = uv.copy() if uv is not None else None
        self._frozen = False
        self.lock = threading.RLock()

    @property
    def vertex_count(self) -> int:
        return self._count

    @property
    def has_tangents(self) -> bool:
        return self._tangents is not None

    @property
    def has_uvs(self) -> bool:
        return self._uvs is not None

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def positions(self) -> np.ndarray:
        return self._positions[: self._count]

    @property
    def normals(self) -> np.ndarray:
        return self._normals[: self._count]

    @property
    def tangents(self) -> np.ndarray | None:
        return None if self._tangents is None else self._tangents[: self._count]

    @property
    def uvs(self) -> np.ndarray | None:
        return None if self._uvs is None else self._uvs[: self._count]

    def freeze(self) -> None:
        self._frozen = True

    def _grow(self, needed: int) -> None:
        capacity = self._positions.shape[0]
        if needed <= capacity:
            return
        new_capacity = max(needed, capacity * 2, 16)

        def grown(arr: np.ndarray) -> np.ndarray:
            out = np.zeros((new_capacity, arr.shape[1]), dtype=arr.dtype)
            out[: self._count] = arr[: self._count]
            return out

        self._positions = grown(self._positions)
        self._normals = grown(self._normals)
        if self._tangents is not None:
            self._tangents = grown(self._tangents)
        if self._uvs is not None:
            self._uvs = grown(self._uvs)

    def append(self, new_vertices: Sequence[NewVertex]) -> range:
        """Interpolate and append the requested vertices, in order.

        Returns the range of indices assigned to them.
        """
        with self.lock:
            if self._frozen:
                raise RuntimeError("GeometryBuffer is frozen; no vertices can be added after the build.")
            start = self._count
            if not new_vertices:
                return range(start, start)

            ia = np.fromiter((v.index_a for v in new_vertices), dtype=np.int64, count=len(new_vertices))
            ib = np.fromiter((v.index_b for v in new_vertices), dtype=np.int64, count=len(new_vertices))
            if ia.max() >= start or ib.max() >= start or min(ia.min(), ib.min()) < 0:
                raise IndexError("New vertex request references a vertex outside the buffer.")
            t = np.fromiter((v.t for v in new_vertices), dtype=np.float64, count=len(new_vertices))[:, None]

            end = start + len(new_vertices)
            self._grow(end)
            self._positions[start:end] = lerp_position(self._positions[ia], self._positions[ib], t)
            self._normals[start:end] = lerp_normal(self._normals[ia], self._normals[ib], t)
            if self._tangents is not None:
                self._tangents[start:end] = lerp_tangent(self._tangents[ia], self._tangents[ib], t)
            if self._uvs is not None:
                self._uvs[start:end] = lerp_uv(self._uvs[ia], self._uvs[ib], t)
            self._count = end
            return range(start, end)

    def check_indices(self, indices: Iterable[int]) -> List[int]:
        """Return the indices that do not reference a vertex of this buffer."""
        return [i for i in indices if not 0 <= i < self._count]
