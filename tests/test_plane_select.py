import random

import numpy as np
import pytest

from csg_bsp.clip import plane_cost
from csg_bsp.node import BSPNode
from csg_bsp.plane_select import choose_plane, triangle_at


class CountingRandom(random.Random):
    def __init__(self, seed=None):
        super().__init__(seed)
        self.draws = 0

    def randrange(self, *args, **kwargs):
        self.draws += 1
        return super().randrange(*args, **kwargs)


class ScriptedRandom(random.Random):
    def __init__(self, picks):
        super().__init__(0)
        self.picks = list(picks)

    def randrange(self, *args, **kwargs):
        return self.picks.pop(0)


def test_triangle_at_walks_across_groups():
    groups = [[0, 1, 2], [], [3, 4, 5, 6, 7, 8]]
    assert triangle_at(groups, 0) == (0, 1, 2)
    assert triangle_at(groups, 1) == (3, 4, 5)
    assert triangle_at(groups, 2) == (6, 7, 8)
    with pytest.raises(IndexError):
        triangle_at(groups, 3)


def test_zero_cost_candidate_stops_sampling(stacked_mesh):
    node = BSPNode([list(g.indices) for g in stacked_mesh.groups])
    rng = CountingRandom(7)
    plane = choose_plane(node, stacked_mesh.positions, candidate_count=5, precision=1e-6, rng=rng)
    assert plane is not None
    assert rng.draws == 1
    assert plane_cost(node.indices, plane, stacked_mesh.positions, 1e-6) == 0


def test_all_degenerate_candidates_give_none():
    positions = np.array([(0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (2.0, 0.0, 0.0), (0.0, 1.0, 0.0), (0.0, 2.0, 0.0), (0.0, 3.0, 0.0)])
    node = BSPNode([[0, 1, 2, 3, 4, 5]])
    rng = CountingRandom(1)
    assert choose_plane(node, positions, candidate_count=4, precision=1e-6, rng=rng) is None
    assert rng.draws == 4


def test_lowest_cost_candidate_wins(crossing_mesh):
    node = BSPNode([list(g.indices) for g in crossing_mesh.groups])
    positions = crossing_mesh.positions
    # triangle 0 lies in the floor (cuts both wall triangles), triangle 2 in the wall (cuts both floor triangles)
    floor_plane = choose_plane(node, positions, 1, 1e-6, ScriptedRandom([0]))
    assert plane_cost(node.indices, floor_plane, positions, 1e-6) > 0

    rng = ScriptedRandom([0, 2, 1, 3])
    best = choose_plane(node, positions, 4, 1e-6, rng)
    costs = [plane_cost(node.indices, choose_plane(node, positions, 1, 1e-6, ScriptedRandom([i])), positions, 1e-6) for i in range(4)]
    assert plane_cost(node.indices, best, positions, 1e-6) == min(costs)


def test_empty_node_has_no_plane():
    assert choose_plane(BSPNode([[]]), np.zeros((0, 3)), 5, 1e-6, random.Random(0)) is None
