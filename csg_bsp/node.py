from __future__ import annotations

from typing import Dict, Iterator, List, Optional
import weakref

from .geometry import Plane

IndicesList = List[List[int]]


class TreeInvariantError(AssertionError):
    """Raised when a node's index storage breaks a structural invariant."""


def _check_lists(lists: IndicesList, where: str) -> None:
    for i, indices in enumerate(lists):
        if len(indices) % 3:
            raise TreeInvariantError(f"{where}: group {i} has {len(indices)} indices, not a multiple of 3.")


class BSPNode:
    """Node of a BSP tree.

    A leaf stores every triangle of its region. An internal node stores only
    the triangles lying on its plane and owns a ``plus`` and a ``minus`` child.
    Indices are grouped by material group, one list per group, three indices
    per triangle.
    """

    def __init__(self, indices: IndicesList, parent: "BSPNode | None" = None) -> None:
        _check_lists(indices, "BSPNode")
        self.indices: IndicesList = indices
        self.plane: Optional[Plane] = None
        self.plus: Optional[BSPNode] = None
        self.minus: Optional[BSPNode] = None
        self.degenerate = False
        self._parent = weakref.ref(parent) if parent is not None else None

    @property
    def parent(self) -> "BSPNode | None":
        return self._parent() if self._parent is not None else None

    @property
    def is_leaf(self) -> bool:
        return self.plus is None and self.minus is None

    @property
    def is_root(self) -> bool:
        return self.parent is None

    @property
    def group_count(self) -> int:
        return len(self.indices)

    @property
    def indices_count(self) -> int:
        return sum(len(group) for group in self.indices)

    @property
    def triangle_count(self) -> int:
        count = self.indices_count
        if count % 3:
            raise TreeInvariantError(f"Node holds {count} indices, not a multiple of 3.")
        return count // 3

    def __getitem__(self, group: int) -> List[int]:
        return self.indices[group]

    @property
    def depth(self) -> int:
        """Height of the subtree rooted here; a leaf has depth 1."""
        return self._depths()[id(self)]

    def _depths(self) -> Dict[int, int]:
        depths: Dict[int, int] = {}
        stack = [(self, False)]
        while stack:
            node, expanded = stack.pop()
            if node.is_leaf:
                depths[id(node)] = 1
            elif expanded:
                depths[id(node)] = 1 + max(depths[id(node.plus)], depths[id(node.minus)])
            else:
                stack.append((node, True))
                stack.append((node.plus, False))
                stack.append((node.minus, False))
        return depths

    @property
    def depth_from_root(self) -> int:
        depth = 1
        node = self.parent
        while node is not None:
            depth += 1
            node = node.parent
        return depth

    def set_split(self, plane: Plane, zero: IndicesList, plus: IndicesList, minus: IndicesList) -> None:
        """Turn this leaf into an internal node. Only valid once per node."""
        if not self.is_leaf or self.plane is not None:
            raise TreeInvariantError("Node has already been split.")
        for name, lists in (("zero", zero), ("plus", plus), ("minus", minus)):
            if len(lists) != self.group_count:
                raise TreeInvariantError(
                    f"Split produced {len(lists)} {name} groups for a node with {self.group_count} groups."
                )
        self.plane = plane
        self.indices = zero
        self.plus = BSPNode(plus, parent=self)
        self.minus = BSPNode(minus, parent=self)

    def iter_nodes(self) -> Iterator["BSPNode"]:
        """Depth-first, on-plane node before its plus then minus subtree."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            if not node.is_leaf:
                stack.append(node.minus)
                stack.append(node.plus)

    def iter_leaves(self) -> Iterator["BSPNode"]:
        return (node for node in self.iter_nodes() if node.is_leaf)

    def subtree_triangle_count(self) -> int:
        return sum(node.triangle_count for node in self.iter_nodes())

    def flatten(self) -> IndicesList:
        """Per-group indices of the whole subtree: own, then plus, then minus."""
        out: IndicesList = [[] for _ in range(self.group_count)]
        for node in self.iter_nodes():
            if node.group_count != len(out):
                raise TreeInvariantError(
                    f"Node has {node.group_count} groups, tree has {len(out)}."
                )
            for i, group in enumerate(node.indices):
                out[i].extend(group)
        return out

    def _describe(self, depth: int) -> str:
        text = f"Depth: {depth} | Inds: {self.indices_count} | Tris: {self.triangle_count}"
        if not self.is_leaf:
            text += f" | Plane: {self.plane}"
        if self.degenerate:
            text += " | degenerate"
        return text

    def __str__(self) -> str:
        return self._describe(self.depth)

    def __repr__(self) -> str:
        return f"BSPNode({self})"

    def print_string(self, prefix: str = "", child_prefix: str = "") -> str:
        """Indented dump of the subtree; ``|-> `` marks plus children and ``+-> `` minus children."""
        depths = self._depths()
        lines: List[str] = []
        stack = [(self, prefix, child_prefix)]
        while stack:
            node, head, tail = stack.pop()
            lines.append(head + node._describe(depths[id(node)]))
            if not node.is_leaf:
                stack.append((node.minus, tail + "+-> ", tail + "    "))
                stack.append((node.plus, tail + "|-> ", tail + "|   "))
        return "\n".join(lines)
