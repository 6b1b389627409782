from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Sequence, Tuple

import numpy as np
import trimesh

TRIANGLES = "triangles"


@dataclass
class MaterialGroup:
    name: str
    indices: List[int]
    material: object = None
    topology: str = TRIANGLES

    @property
    def triangle_count(self) -> int:
        return len(self.indices) // 3


@dataclass
class MeshInput:
    """Vertex attributes plus one index list per material group, as handed to the builder."""

    positions: np.ndarray
    normals: np.ndarray
    tangents: np.ndarray | None = None
    uvs: np.ndarray | None = None
    groups: List[MaterialGroup] = field(default_factory=list)

    @property
    def vertex_count(self) -> int:
        return len(self.positions)

    @property
    def indices_count(self) -> int:
        return sum(len(group.indices) for group in self.groups)

    @property
    def triangle_count(self) -> int:
        return sum(group.triangle_count for group in self.groups)

    def add_group(self, name: str, indices: Sequence[int], material: object = None, topology: str = TRIANGLES) -> MaterialGroup:
        group = MaterialGroup(name, [int(i) for i in indices], material=material, topology=topology)
        self.groups.append(group)
        return group


@dataclass
class FlatMesh:
    """Renderable result of flattening a tree: shared vertex arrays and per-group indices."""

    positions: np.ndarray
    normals: np.ndarray
    tangents: np.ndarray | None
    uvs: np.ndarray | None
    groups: List[List[int]]
    group_names: List[str]
    materials: List[object]

    @property
    def vertex_count(self) -> int:
        return len(self.positions)

    @property
    def indices_count(self) -> int:
        return sum(len(group) for group in self.groups)

    @property
    def triangle_count(self) -> int:
        return self.indices_count // 3


def _material_name(material, fallback: str) -> str:
    name = getattr(material, "name", None)
    return str(name) if name else fallback


def _uvs_of(geom: trimesh.Trimesh) -> np.ndarray | None:
    uv = getattr(geom.visual, "uv", None)
    if uv is None or len(uv) != len(geom.vertices):
        return None
    return np.asarray(uv, dtype=np.float64)


def mesh_from_parts(parts: Sequence[Tuple[str, trimesh.Trimesh, np.ndarray | None]]) -> MeshInput:
    """Concatenate meshes into one vertex buffer, one material group per part.

    Each part is ``(group_name, mesh, transform)``; a 4x4 ``transform`` is
    applied to positions and, through its inverse transpose, to normals;
    a mirroring transform also reverses the face winding.
    UVs are kept only when every part carries them.
    """
    positions: List[np.ndarray] = []
    normals: List[np.ndarray] = []
    uvs: List[np.ndarray | None] = []
    result = MeshInput(np.zeros((0, 3)), np.zeros((0, 3)))
    offset = 0

    for name, geom, transform in parts:
        verts = np.asarray(geom.vertices, dtype=np.float64)
        nrms = np.asarray(geom.vertex_normals, dtype=np.float64)
        faces = np.asarray(geom.faces, dtype=np.int64)
        if transform is not None:
            verts = trimesh.transformations.transform_points(verts, transform)
            linear = np.asarray(transform, dtype=np.float64)[:3, :3]
            nrms = nrms @ np.linalg.inv(linear)
            mag = np.linalg.norm(nrms, axis=1, keepdims=True)
            nrms = np.divide(nrms, mag, out=np.zeros_like(nrms), where=mag > 0)
            if np.linalg.det(linear) < 0:
                # mirrored instance: keep the faces wound counter-clockwise from outside
                faces = faces[:, ::-1]
        positions.append(verts)
        normals.append(nrms)
        uvs.append(_uvs_of(geom))

        faces = faces + offset
        material = getattr(geom.visual, "material", None)
        result.add_group(name, faces.ravel().tolist(), material=material)
        offset += len(verts)

    if positions:
        result.positions = np.vstack(positions)
        result.normals = np.vstack(normals)
        if all(uv is not None for uv in uvs):
            result.uvs = np.vstack(uvs)
    return result


def load_mesh(path: Path) -> MeshInput:
    """Load any file trimesh understands; every geometry instance becomes a material group."""
    scene = trimesh.load(str(path), force="scene")
    parts = []
    names_seen: Dict[str, int] = {}
    for node_name in scene.graph.nodes_geometry:
        transform, geom_name = scene.graph[node_name]
        geom = scene.geometry[geom_name]
        if not isinstance(geom, trimesh.Trimesh) or len(geom.faces) == 0:
            continue
        base = _material_name(getattr(geom.visual, "material", None), geom_name)
        seen = names_seen.get(base, 0)
        names_seen[base] = seen + 1
        parts.append((base if not seen else f"{base}.{seen}", geom, transform))
    if not parts:
        raise ValueError(f"No triangle geometry found in {path}.")
    return mesh_from_parts(parts)


PRIMITIVES = ("box", "icosphere", "cylinder", "two_boxes")


def primitive_mesh(name: str) -> MeshInput:
    if name == "box":
        return mesh_from_parts([("box", trimesh.creation.box(extents=(1.0, 1.0, 1.0)), None)])
    if name == "icosphere":
        return mesh_from_parts([("icosphere", trimesh.creation.icosphere(subdivisions=2, radius=1.0), None)])
    if name == "cylinder":
        return mesh_from_parts([("cylinder", trimesh.creation.cylinder(radius=0.5, height=2.0, sections=24), None)])
    if name == "two_boxes":
        # two overlapping boxes as separate material groups
        shift = trimesh.transformations.translation_matrix((0.5, 0.25, 0.0))
        return mesh_from_parts(
            [
                ("box_a", trimesh.creation.box(extents=(1.0, 1.0, 1.0)), None),
                ("box_b", trimesh.creation.box(extents=(1.0, 1.0, 1.0)), shift),
            ]
        )
    raise ValueError(f"Unknown primitive {name!r}; expected one of {', '.join(PRIMITIVES)}.")
