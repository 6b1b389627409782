from typing import List, Sequence

import numpy as np
import pytest

from csg_bsp.mesh import MeshInput


def face_normal(a, b, c) -> np.ndarray:
    n = np.cross(np.subtract(b, a), np.subtract(c, a))
    mag = np.linalg.norm(n)
    return n / mag if mag else np.array([0.0, 0.0, 1.0])


def triangle_soup(groups: Sequence[Sequence[Sequence[Sequence[float]]]], with_uvs: bool = False) -> MeshInput:
    """Mesh with unshared vertices: ``groups[g][t]`` is the three corner points of triangle ``t``."""
    positions: List[Sequence[float]] = []
    normals: List[np.ndarray] = []
    mesh = MeshInput(np.zeros((0, 3)), np.zeros((0, 3)))
    for g, triangles in enumerate(groups):
        indices: List[int] = []
        for tri in triangles:
            n = face_normal(*tri)
            for point in tri:
                indices.append(len(positions))
                positions.append(point)
                normals.append(n)
        mesh.add_group(f"group{g}", indices)
    mesh.positions = np.asarray(positions, dtype=np.float64).reshape(-1, 3)
    mesh.normals = np.asarray(normals, dtype=np.float64).reshape(-1, 3)
    if with_uvs:
        mesh.uvs = mesh.positions[:, :2].copy()
    return mesh


def triangle_area(a, b, c) -> float:
    return 0.5 * float(np.linalg.norm(np.cross(np.subtract(b, a), np.subtract(c, a))))


def total_area(positions: np.ndarray, groups) -> float:
    area = 0.0
    for group in groups:
        for j in range(0, len(group), 3):
            area += triangle_area(positions[group[j]], positions[group[j + 1]], positions[group[j + 2]])
    return area


@pytest.fixture
def stacked_mesh() -> MeshInput:
    """Four horizontal triangles at z=0..3, two material groups."""
    def tri(z):
        return [(0.0, 0.0, z), (1.0, 0.0, z), (0.0, 1.0, z)]

    return triangle_soup([[tri(0.0), tri(2.0)], [tri(1.0), tri(3.0)]])


@pytest.fixture
def crossing_mesh() -> MeshInput:
    """A horizontal and a vertical quad cutting through each other."""
    floor = [
        [(-1.0, -1.0, 0.0), (1.0, -1.0, 0.0), (1.0, 1.0, 0.0)],
        [(-1.0, -1.0, 0.0), (1.0, 1.0, 0.0), (-1.0, 1.0, 0.0)],
    ]
    wall = [
        [(0.0, -1.0, -1.0), (0.0, 1.0, -1.0), (0.0, 1.0, 1.0)],
        [(0.0, -1.0, -1.0), (0.0, 1.0, 1.0), (0.0, -1.0, 1.0)],
    ]
    return triangle_soup([floor, wall], with_uvs=True)
