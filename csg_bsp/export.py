from __future__ import annotations

import json
from pathlib import Path
import struct
from typing import Dict, List

import numpy as np
from trimesh.visual.material import PBRMaterial, SimpleMaterial

from .mesh import FlatMesh

ARRAY_BUFFER = 34962
ELEMENT_ARRAY_BUFFER = 34963
FLOAT = 5126
UNSIGNED_INT = 5125

PALETTE: List[List[float]] = [
    [0.70, 0.70, 0.72, 1.0],
    [0.62, 0.79, 0.90, 1.0],
    [0.18, 0.43, 0.20, 1.0],
    [0.92, 0.90, 0.87, 1.0],
    [0.80, 0.45, 0.25, 1.0],
    [0.55, 0.40, 0.70, 1.0],
]


def _material_json(name: str, slot: int, material: object = None) -> Dict[str, object]:
    """glTF material for a group: the source appearance when known, else a palette colour."""
    color = PALETTE[slot % len(PALETTE)]
    metallic = 0.0
    roughness = 0.85
    double_sided = False
    if isinstance(material, SimpleMaterial):
        material = material.to_pbr()
    if isinstance(material, PBRMaterial):
        if material.baseColorFactor is not None:
            # trimesh keeps colours as uint8 RGBA
            color = [float(c) / 255.0 for c in np.asarray(material.baseColorFactor).ravel()[:4]]
        if material.metallicFactor is not None:
            metallic = float(material.metallicFactor)
        if material.roughnessFactor is not None:
            roughness = float(material.roughnessFactor)
        double_sided = bool(material.doubleSided)
    return {
        "name": name,
        "pbrMetallicRoughness": {
            "baseColorFactor": color,
            "metallicFactor": metallic,
            "roughnessFactor": roughness,
        },
        "doubleSided": double_sided,
    }


def _gltf_tangents(tangents: np.ndarray) -> np.ndarray:
    # glTF wants a unit xyz and a handedness w of exactly +1 or -1
    tan = np.asarray(tangents, dtype=np.float64)
    xyz = tan[:, :3]
    mag = np.linalg.norm(xyz, axis=1, keepdims=True)
    xyz = np.divide(xyz, mag, out=np.zeros_like(xyz), where=mag > 0)
    w = np.where(tan[:, 3:4] < 0, -1.0, 1.0)
    return np.hstack([xyz, w]).astype(np.float32)


def write_glb(mesh: FlatMesh, output_path: Path, name: str = "bsp") -> None:
    """Write a flattened mesh as GLB: one shared vertex buffer, one primitive per non-empty group."""
    output_path.parent.mkdir(parents=True, exist_ok=True)
    if mesh.triangle_count == 0:
        raise ValueError("No geometry found to export.")

    binary = bytearray()
    buffer_views: List[Dict[str, object]] = []
    accessors: List[Dict[str, object]] = []

    def append_blob(data: bytes, target: int) -> int:
        offset = len(binary)
        binary.extend(data)
        while len(binary) % 4:
            binary.append(0)
        buffer_views.append({"buffer": 0, "byteOffset": offset, "byteLength": len(data), "target": target})
        return len(buffer_views) - 1

    def add_accessor(arr: np.ndarray, component_type: int, value_type: str, target: int, bounds: bool = False) -> int:
        accessor: Dict[str, object] = {
            "bufferView": append_blob(arr.tobytes(), target),
            "componentType": component_type,
            "count": int(arr.shape[0]),
            "type": value_type,
        }
        if bounds:
            accessor["min"] = [float(v) for v in np.min(arr, axis=0)]
            accessor["max"] = [float(v) for v in np.max(arr, axis=0)]
        accessors.append(accessor)
        return len(accessors) - 1

    attributes = {
        "POSITION": add_accessor(np.asarray(mesh.positions, dtype=np.float32), FLOAT, "VEC3", ARRAY_BUFFER, bounds=True),
        "NORMAL": add_accessor(np.asarray(mesh.normals, dtype=np.float32), FLOAT, "VEC3", ARRAY_BUFFER),
    }
    if mesh.tangents is not None:
        attributes["TANGENT"] = add_accessor(_gltf_tangents(mesh.tangents), FLOAT, "VEC4", ARRAY_BUFFER)
    if mesh.uvs is not None:
        attributes["TEXCOORD_0"] = add_accessor(np.asarray(mesh.uvs, dtype=np.float32), FLOAT, "VEC2", ARRAY_BUFFER)

    materials: List[Dict[str, object]] = []
    primitives: List[Dict[str, object]] = []
    for slot, (group_name, indices) in enumerate(zip(mesh.group_names, mesh.groups)):
        if not indices:
            continue
        idx_arr = np.asarray(indices, dtype=np.uint32)
        primitives.append(
            {
                "attributes": dict(attributes),
                "indices": add_accessor(idx_arr, UNSIGNED_INT, "SCALAR", ELEMENT_ARRAY_BUFFER),
                "material": len(materials),
            }
        )
        materials.append(_material_json(group_name, slot, mesh.materials[slot]))

    gltf = {
        "asset": {"version": "2.0", "generator": "csg-bsp/csg_bsp.export.py"},
        "scene": 0,
        "scenes": [{"nodes": [0]}],
        "nodes": [{"mesh": 0, "name": name}],
        "meshes": [{"name": name, "primitives": primitives}],
        "materials": materials,
        "buffers": [{"byteLength": len(binary)}],
        "bufferViews": buffer_views,
        "accessors": accessors,
    }

    json_chunk = json.dumps(gltf, separators=(",", ":"), ensure_ascii=True).encode("utf-8")
    while len(json_chunk) % 4:
        json_chunk += b" "

    bin_chunk = bytes(binary)
    while len(bin_chunk) % 4:
        bin_chunk += b"\x00"

    total_len = 12 + 8 + len(json_chunk) + 8 + len(bin_chunk)
    with output_path.open("wb") as fh:
        fh.write(struct.pack("<4sII", b"glTF", 2, total_len))
        fh.write(struct.pack("<I4s", len(json_chunk), b"JSON"))
        fh.write(json_chunk)
        fh.write(struct.pack("<I4s", len(bin_chunk), b"BIN\x00"))
        fh.write(bin_chunk)
