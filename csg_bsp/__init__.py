"""BSP tree builder and re-flattener for triangulated meshes."""

from .buffer import GeometryBuffer, NewVertex
from .clip import ClipResult, Side, classify_and_clip
from .geometry import Plane, plane_from_points
from .mesh import FlatMesh, MaterialGroup, MeshInput
from .node import BSPNode, TreeInvariantError
from .plane_select import choose_plane
from .tree import BSPTree, BuildConfig, DegeneratePlaneError, UnsupportedTopologyError, build_tree

__all__ = [
    "BSPNode",
    "BSPTree",
    "BuildConfig",
    "ClipResult",
    "DegeneratePlaneError",
    "FlatMesh",
    "GeometryBuffer",
    "MaterialGroup",
    "MeshInput",
    "NewVertex",
    "Plane",
    "Side",
    "TreeInvariantError",
    "UnsupportedTopologyError",
    "build_tree",
    "choose_plane",
    "classify_and_clip",
    "plane_from_points",
]
