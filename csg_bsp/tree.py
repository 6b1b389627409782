"""BSP tree construction.

``build_tree`` copies the input mesh into a ``GeometryBuffer`` and a root
``BSPNode``, then splits nodes until each holds at most
``max_triangles_in_leaves`` triangles. A node whose sampled candidate planes
are all degenerate is left un-split, flagged ``degenerate`` and reported;
every other branch is still built.

Each child node receives its own ``random.Random`` seeded from its parent's
generator, so a seeded build picks the same planes whether it runs on one
thread or on several.
"""

from __future__ import annotations

from collections import deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass, fields
import logging
import random
import time
from typing import Any, Dict, List, Tuple

from .buffer import GeometryBuffer
from .clip import split_groups
from .mesh import TRIANGLES, FlatMesh, MeshInput
from .node import BSPNode, IndicesList
from .plane_select import choose_plane

logger = logging.getLogger(__name__)

ON_DEGENERATE_CHOICES = ("leaf", "raise")


class UnsupportedTopologyError(ValueError):
    pass


class DegeneratePlaneError(RuntimeError):
    def __init__(self, nodes: List[BSPNode]) -> None:
        self.nodes = nodes
        super().__init__(
            f"No valid splitting plane for {len(nodes)} node(s). "
            "Try to increase precision or the number of candidates."
        )


@dataclass(frozen=True)
class BuildConfig:
    max_triangles_in_leaves: int = 1
    candidate_count: int = 5
    precision: float = 1e-6
    seed: int | None = None
    workers: int = 1
    on_degenerate: str = "leaf"

    def __post_init__(self) -> None:
        if int(self.max_triangles_in_leaves) < 1:
            raise ValueError("max_triangles_in_leaves must be a positive integer.")
        if int(self.candidate_count) < 1:
            raise ValueError("candidate_count must be a positive integer.")
        if not float(self.precision) > 0:
            raise ValueError("precision must be a positive float.")
        if int(self.workers) < 1:
            raise ValueError("workers must be a positive integer.")
        if self.on_degenerate not in ON_DEGENERATE_CHOICES:
            raise ValueError(f"on_degenerate must be one of {ON_DEGENERATE_CHOICES}, got {self.on_degenerate!r}.")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BuildConfig":
        known = {f.name for f in fields(cls)}
        return cls(**{key: value for key, value in data.items() if key in known})

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class BSPTree:
    def __init__(
        self,
        root: BSPNode,
        buffer: GeometryBuffer,
        group_names: List[str],
        materials: List[object],
        config: BuildConfig,
    ) -> None:
        self.root = root
        self.buffer = buffer
        self.group_names = group_names
        self.materials = materials
        self.config = config
        self.degenerate_nodes: List[BSPNode] = []
        self.build_ms = 0.0

    @property
    def complete(self) -> bool:
        return not self.degenerate_nodes

    @property
    def depth(self) -> int:
        return self.root.depth

    @property
    def node_count(self) -> int:
        return sum(1 for _ in self.root.iter_nodes())

    @property
    def leaf_count(self) -> int:
        return sum(1 for _ in self.root.iter_leaves())

    @property
    def triangle_count(self) -> int:
        return self.root.subtree_triangle_count()

    def flatten(self) -> IndicesList:
        return self.root.flatten()

    def compute_mesh(self) -> FlatMesh:
        """Flattened indices paired with copies of the vertex attributes."""
        tangents = self.buffer.tangents
        uvs = self.buffer.uvs
        return FlatMesh(
            positions=self.buffer.positions.copy(),
            normals=self.buffer.normals.copy(),
            tangents=None if tangents is None else tangents.copy(),
            uvs=None if uvs is None else uvs.copy(),
            groups=self.flatten(),
            group_names=list(self.group_names),
            materials=list(self.materials),
        )

    def print_string(self) -> str:
        return self.root.print_string()

    def __str__(self) -> str:
        return f"Depth: {self.depth}\n{self.root}"


def split_node(node: BSPNode, buffer: GeometryBuffer, config: BuildConfig, rng: random.Random) -> bool:
    """Choose a plane for ``node`` and split it. Returns False if no plane was found."""
    plane = choose_plane(node, buffer.positions, config.candidate_count, config.precision, rng)
    if plane is None:
        return False
    # clip and append atomically so concurrent splits never hand out the same new indices
    with buffer.lock:
        result = split_groups(node.indices, plane, buffer.positions, config.precision, buffer.vertex_count)
        buffer.append(result.new_vertices)
    node.set_split(plane, result.zero, result.plus, result.minus)
    return True


Pending = Tuple[BSPNode, random.Random]


def _process(node: BSPNode, rng: random.Random, tree: BSPTree) -> List[Pending]:
    config = tree.config
    if node.triangle_count <= config.max_triangles_in_leaves:
        return []
    if not split_node(node, tree.buffer, config, rng):
        node.degenerate = True
        tree.degenerate_nodes.append(node)
        logger.warning(
            "Impossible to compute a plane at depth %d (%d triangles). "
            "Try to increase precision or number of candidates.",
            node.depth_from_root,
            node.triangle_count,
        )
        return []
    plus_rng = random.Random(rng.getrandbits(64))
    minus_rng = random.Random(rng.getrandbits(64))
    return [(node.plus, plus_rng), (node.minus, minus_rng)]


def _build_subtree(node: BSPNode, rng: random.Random, tree: BSPTree) -> None:
    stack: List[Pending] = [(node, rng)]
    while stack:
        current, current_rng = stack.pop()
        # reversed so the plus child is built first
        stack.extend(reversed(_process(current, current_rng, tree)))


def _build_parallel(tree: BSPTree, rng: random.Random) -> None:
    workers = tree.config.workers
    frontier = deque([(tree.root, rng)])
    while frontier and len(frontier) < workers * 2:
        node, node_rng = frontier.popleft()
        frontier.extend(_process(node, node_rng, tree))
    logger.debug("Building %d subtrees on %d workers", len(frontier), workers)
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [pool.submit(_build_subtree, node, node_rng, tree) for node, node_rng in frontier]
        for future in futures:
            future.result()
    # workers finish in any order; report degenerate nodes as a sequential build would
    order = {id(node): position for position, node in enumerate(tree.root.iter_nodes())}
    tree.degenerate_nodes.sort(key=lambda node: order[id(node)])


def _validate_input(mesh: MeshInput, buffer: GeometryBuffer) -> None:
    if not mesh.groups:
        raise ValueError("Mesh has no material groups.")
    for group in mesh.groups:
        if group.topology != TRIANGLES:
            raise UnsupportedTopologyError(
                f"Material group {group.name!r} uses {group.topology!r} topology; only triangles are supported."
            )
        if buffer.check_indices(group.indices):
            raise ValueError(f"Material group {group.name!r} references vertices outside 0..{buffer.vertex_count - 1}.")


def build_tree(mesh: MeshInput, config: BuildConfig | None = None, rng: random.Random | None = None) -> BSPTree:
    config = config or BuildConfig()
    buffer = GeometryBuffer(mesh.positions, mesh.normals, mesh.tangents, mesh.uvs)
    _validate_input(mesh, buffer)

    root = BSPNode([list(group.indices) for group in mesh.groups])
    tree = BSPTree(
        root,
        buffer,
        group_names=[group.name for group in mesh.groups],
        materials=[group.material for group in mesh.groups],
        config=config,
    )
    rng = rng or random.Random(config.seed)

    start = time.perf_counter()
    if config.workers > 1:
        _build_parallel(tree, rng)
    else:
        _build_subtree(root, rng, tree)
    buffer.freeze()
    tree.build_ms = (time.perf_counter() - start) * 1000.0

    logger.info(
        "BSP tree created in %.1f ms: depth=%d nodes=%d triangles=%d->%d vertices=%d->%d",
        tree.build_ms,
        tree.depth,
        tree.node_count,
        mesh.triangle_count,
        tree.triangle_count,
        len(mesh.positions),
        buffer.vertex_count,
    )
    if tree.degenerate_nodes and config.on_degenerate == "raise":
        raise DegeneratePlaneError(tree.degenerate_nodes)
    return tree
