from __future__ import annotations

from pathlib import Path
from typing import Dict, List

from .mesh import FlatMesh, MeshInput
from .node import TreeInvariantError
from .tree import BSPTree


def validate_tree(tree: BSPTree) -> Dict[str, object]:
    """Check every structural invariant of a built tree and return its statistics."""
    config = tree.config
    group_count = len(tree.group_names)
    vertex_count = tree.buffer.vertex_count

    node_count = 0
    leaf_count = 0
    max_leaf_triangles = 0
    on_plane_triangles = 0
    for node in tree.root.iter_nodes():
        node_count += 1
        if (node.plane is None) != node.is_leaf or (node.plus is None) != (node.minus is None):
            raise TreeInvariantError("Leaf must have neither plane nor children; internal nodes need both.")
        if node.group_count != group_count:
            raise TreeInvariantError(f"Node has {node.group_count} groups, tree has {group_count}.")
        for i, group in enumerate(node.indices):
            if len(group) % 3:
                raise TreeInvariantError(f"Group {i} holds {len(group)} indices, not a multiple of 3.")
            if tree.buffer.check_indices(group):
                raise TreeInvariantError(f"Group {i} references a vertex outside 0..{vertex_count - 1}.")
        if node.is_leaf:
            leaf_count += 1
            max_leaf_triangles = max(max_leaf_triangles, node.triangle_count)
            if node.triangle_count > config.max_triangles_in_leaves and not node.degenerate:
                raise TreeInvariantError(
                    f"Leaf holds {node.triangle_count} triangles, limit is {config.max_triangles_in_leaves}."
                )
        else:
            on_plane_triangles += node.triangle_count

    flat = tree.flatten()
    return {
        "depth": tree.depth,
        "nodes": node_count,
        "leaves": leaf_count,
        "degenerate_leaves": len(tree.degenerate_nodes),
        "complete": tree.complete,
        "max_leaf_triangles": max_leaf_triangles,
        "on_plane_triangles": on_plane_triangles,
        "triangles": sum(len(group) for group in flat) // 3,
        "vertices": vertex_count,
        "group_triangles": {name: len(group) // 3 for name, group in zip(tree.group_names, flat)},
        "build_ms": tree.build_ms,
    }


def describe_mesh(mesh: MeshInput | FlatMesh) -> List[str]:
    return [
        f"indices count: {mesh.indices_count}",
        f"group count: {len(mesh.groups)}",
        f"vertices count: {len(mesh.positions)}",
        f"normals count: {len(mesh.normals)}",
        f"tangents count: {0 if mesh.tangents is None else len(mesh.tangents)}",
        f"uv count: {0 if mesh.uvs is None else len(mesh.uvs)}",
    ]


def write_summary(
    summary_path: Path,
    config: Dict[str, object],
    source: MeshInput,
    metrics: Dict[str, object],
    outputs: Dict[str, Path],
    tree_dump: str | None = None,
) -> None:
    summary_path.parent.mkdir(parents=True, exist_ok=True)

    lines = [
        "BSP Tree - Summary",
        "",
        "Parameters",
        f"max_triangles_in_leaves: {config['max_triangles_in_leaves']}",
        f"candidate_count: {config['candidate_count']}",
        f"precision: {config['precision']}",
        f"seed: {config.get('seed')}",
        f"workers: {config.get('workers', 1)}",
        "",
        "Input mesh",
        *describe_mesh(source),
        "",
        "Tree",
        f"Build time: {float(metrics['build_ms']):.1f} ms",
        f"Depth: {metrics['depth']}",
        f"Nodes: {metrics['nodes']}",
        f"Leaves: {metrics['leaves']}",
        f"Largest leaf: {metrics['max_leaf_triangles']} triangles",
        f"On-plane triangles: {metrics['on_plane_triangles']}",
        f"Triangles: {source.triangle_count} -> {metrics['triangles']}",
        f"Vertices: {source.vertex_count} -> {metrics['vertices']}",
    ]
    for name, count in metrics["group_triangles"].items():
        lines.append(f"  {name}: {count} triangles")

    if metrics["complete"]:
        lines.append("All nodes split down to the leaf threshold.")
    else:
        lines.append(f"Degenerate leaves: {metrics['degenerate_leaves']} (no valid splitting plane found).")

    lines.extend(["", "Outputs"])
    for label, path in outputs.items():
        lines.append(f"{label}: {path}")

    if tree_dump:
        lines.extend(["", "Tree dump", tree_dump])

    summary_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
