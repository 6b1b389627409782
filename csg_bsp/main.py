from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Any, Dict

from .export import write_glb
from .mesh import MeshInput, load_mesh, primitive_mesh
from .tree import BuildConfig, DegeneratePlaneError, build_tree
from .validate import describe_mesh, validate_tree, write_summary

DEFAULT_CONFIG_PATH = Path(__file__).resolve().with_name("config.json")
PRIMITIVE_PREFIX = "primitive:"


def _load_config(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as fh:
        return json.load(fh)


def _apply_overrides(config: Dict[str, Any], args: argparse.Namespace) -> Dict[str, Any]:
    updated = dict(config)
    mapping = {
        "max_triangles_in_leaves": "max_triangles_in_leaves",
        "candidates": "candidate_count",
        "precision": "precision",
        "seed": "seed",
        "workers": "workers",
    }

    for arg_name, key in mapping.items():
        value = getattr(args, arg_name)
        if value is not None:
            updated[key] = value

    if args.strict:
        updated["on_degenerate"] = "raise"
    return updated


def _read_input(source: str) -> MeshInput:
    if source.startswith(PRIMITIVE_PREFIX):
        return primitive_mesh(source[len(PRIMITIVE_PREFIX):])
    return load_mesh(Path(source))


def _output_stem(source: str) -> str:
    if source.startswith(PRIMITIVE_PREFIX):
        return source[len(PRIMITIVE_PREFIX):]
    return Path(source).stem


def build_once(config: Dict[str, Any], source: str, out_dir: Path, print_tree: bool = False) -> Dict[str, Any]:
    out_dir.mkdir(parents=True, exist_ok=True)
    stem = _output_stem(source)
    paths = {
        "glb": out_dir / f"{stem}_bsp.glb",
        "summary": out_dir / f"{stem}_summary.txt",
    }

    mesh = _read_input(source)
    for line in describe_mesh(mesh):
        print(f"[in] {line}")

    build_config = BuildConfig.from_dict(config)
    tree = build_tree(mesh, build_config)
    metrics = validate_tree(tree)
    flat = tree.compute_mesh()
    write_glb(flat, paths["glb"], name=stem)

    tree_dump = tree.print_string()
    write_summary(
        paths["summary"],
        build_config.to_dict(),
        mesh,
        metrics,
        outputs={"BSP GLB": paths["glb"], "Summary TXT": paths["summary"]},
        tree_dump=tree_dump if print_tree else None,
    )

    print(f"[ok] BSP tree created in: {metrics['build_ms']:.1f} ms")
    print(
        f"[ok] depth={metrics['depth']}, nodes={metrics['nodes']}, leaves={metrics['leaves']}, "
        f"triangles={mesh.triangle_count}->{metrics['triangles']}, vertices={mesh.vertex_count}->{metrics['vertices']}"
    )
    if not metrics["complete"]:
        print(f"[warn] {metrics['degenerate_leaves']} node(s) left un-split: no valid splitting plane found.")
    if print_tree:
        print(tree_dump)
    print(f"[ok] glb: {paths['glb']}")
    print(f"[ok] summary: {paths['summary']}")

    return {"paths": paths, "metrics": metrics, "tree": tree}


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Build a BSP tree from a triangle mesh and write it back out")
    parser.add_argument("command", choices=("build",))
    parser.add_argument("input", help="Mesh file path, or primitive:<box|icosphere|cylinder|two_boxes>.")
    parser.add_argument("--config", default=str(DEFAULT_CONFIG_PATH))
    parser.add_argument("--out-dir", default=str(Path.cwd() / "out"), help="Defaults to ./out in the working directory.")

    parser.add_argument("--max-triangles-in-leaves", dest="max_triangles_in_leaves", type=int, default=None)
    parser.add_argument("--candidates", type=int, default=None)
    parser.add_argument("--precision", type=float, default=None)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--workers", type=int, default=None)
    parser.add_argument("--strict", action="store_true", help="Fail when a node cannot be split.")
    parser.add_argument("--print-tree", dest="print_tree", action="store_true")
    parser.add_argument("-v", "--verbose", action="store_true")

    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO, format="[%(levelname)s] %(name)s: %(message)s")

    config = _apply_overrides(_load_config(Path(args.config)), args)
    try:
        build_once(config, args.input, Path(args.out_dir), print_tree=args.print_tree)
    except DegeneratePlaneError as exc:
        print(f"[fail] {exc}")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
