import numpy as np
import pytest
import trimesh
from trimesh.visual.material import PBRMaterial

from csg_bsp.export import write_glb
from csg_bsp.mesh import load_mesh, mesh_from_parts, primitive_mesh
from csg_bsp.tree import BuildConfig, build_tree


def test_primitives():
    box = primitive_mesh("box")
    assert len(box.groups) == 1
    assert box.triangle_count == 12
    assert box.normals.shape == box.positions.shape

    pair = primitive_mesh("two_boxes")
    assert [g.name for g in pair.groups] == ["box_a", "box_b"]
    assert min(pair.groups[1].indices) == 8
    assert pair.positions[8:, 0].max() == pytest.approx(1.0)

    with pytest.raises(ValueError):
        primitive_mesh("teapot")


def test_transform_rotates_normals():
    box = trimesh.creation.box(extents=(1.0, 1.0, 1.0))
    rotation = trimesh.transformations.rotation_matrix(np.pi / 2, (0.0, 0.0, 1.0))
    scale = np.diag([3.0, 1.0, 1.0, 1.0])
    mesh = mesh_from_parts([("box", box, scale @ rotation)])
    assert np.allclose(np.linalg.norm(mesh.normals, axis=1), 1.0)
    assert mesh.positions[:, 0].max() == pytest.approx(1.5)


def test_load_mesh_from_file(tmp_path):
    path = tmp_path / "box.ply"
    trimesh.creation.box(extents=(2.0, 2.0, 2.0)).export(str(path))
    mesh = load_mesh(path)
    assert mesh.triangle_count == 12
    assert np.abs(mesh.positions).max() == pytest.approx(1.0)


def test_written_glb_loads_back_with_one_group_per_primitive(tmp_path):
    tree = build_tree(primitive_mesh("two_boxes"), BuildConfig(seed=1))
    path = tmp_path / "pair.glb"
    write_glb(tree.compute_mesh(), path)
    mesh = load_mesh(path)
    assert len(mesh.groups) == 2


def test_load_mesh_without_triangles(tmp_path):
    path = tmp_path / "points.ply"
    trimesh.PointCloud(np.random.default_rng(0).random((10, 3))).export(str(path))
    with pytest.raises(ValueError):
        load_mesh(path)


def test_mirrored_transform_keeps_faces_outward():
    box = trimesh.creation.box(extents=(1.0, 1.0, 1.0))
    mesh = mesh_from_parts([("box", box, np.diag([-1.0, 1.0, 1.0, 1.0]))])
    faces = np.asarray(mesh.groups[0].indices).reshape(-1, 3)
    tris = mesh.positions[faces]
    face_normals = np.cross(tris[:, 1] - tris[:, 0], tris[:, 2] - tris[:, 0])
    # box is centred on the origin, so outward faces point away from it
    assert (np.einsum("ij,ij->i", face_normals, tris.mean(axis=1)) > 0).all()
    assert (np.einsum("ij,ij->i", mesh.normals[faces[:, 0]], face_normals) > 0).all()


def test_group_material_survives_build_and_export(tmp_path):
    box = trimesh.creation.box(extents=(1.0, 1.0, 1.0))
    box.visual = trimesh.visual.TextureVisuals(
        material=PBRMaterial(name="red_paint", baseColorFactor=[255, 0, 0, 255], metallicFactor=0.25, roughnessFactor=0.5)
    )
    source = tmp_path / "red.glb"
    box.export(str(source))

    mesh = load_mesh(source)
    assert [g.name for g in mesh.groups] == ["red_paint"]
    tree = build_tree(mesh, BuildConfig(seed=1))
    path = tmp_path / "red_bsp.glb"
    write_glb(tree.compute_mesh(), path)

    scene = trimesh.load(str(path), force="scene")
    (geom,) = scene.geometry.values()
    material = geom.visual.material
    assert material.name == "red_paint"
    assert np.asarray(material.baseColorFactor).tolist() == [255, 0, 0, 255]
    assert material.metallicFactor == pytest.approx(0.25)
    assert material.roughnessFactor == pytest.approx(0.5)
