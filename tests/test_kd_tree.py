"""
Tests for KD-Tree Implementation

This module tests the KD-tree against brute-force nearest neighbor search
and checks the structural invariants after construction and mutation.

Test Categories:
1. Construction (build invariant, count preservation, parent links)
2. Insertion, exact search and removal
3. K-nearest neighbors vs brute force, ties, edge cases
4. Traversal and tree printing
5. Degenerate input (known performance edge case)
6. Timezone scenarios on real coordinates

Run with: pytest tests/test_kd_tree.py -v
"""

from collections import Counter

import pytest
import numpy as np

import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent))

from nearest_tz.geometry.kd_tree import (
    KdTree,
    KdNode,
    Neighbor,
    InvalidPointError,
    collect_subtree,
    brute_force_k_nearest,
    random_sphere_points,
    validate_kdtree
)
from nearest_tz.geometry.spatial_point import SpatialPoint, compare_on_axis
from nearest_tz.geometry.tree_printer import render_tree, EMPTY_TREE
from nearest_tz.data_models import Location


def multiset(points):
    """Point multiset, keyed by coordinates."""
    return Counter(p.as_tuple() for p in points)


def assert_build_invariant(tree: KdTree):
    """Every lesser point routes <= 0 at its ancestor, every greater point > 0."""
    for node in tree.nodes():
        if node.lesser is not None:
            below = [node.lesser.point] + collect_subtree(node.lesser)
            for p in below:
                assert compare_on_axis(node.depth, node.k, p, node.point) <= 0
                assert p.coordinate(node.axis) <= node.point.coordinate(node.axis)
        if node.greater is not None:
            below = [node.greater.point] + collect_subtree(node.greater)
            for p in below:
                assert compare_on_axis(node.depth, node.k, p, node.point) > 0
                assert p.coordinate(node.axis) >= node.point.coordinate(node.axis)


def assert_links(tree: KdTree):
    """Children point back to their parent and sit one level deeper."""
    if tree.root is not None:
        assert tree.root.parent is None
        assert tree.root.depth == 0
    for node in tree.nodes():
        for child in (node.lesser, node.greater):
            if child is not None:
                assert child.parent is node
                assert child.depth == node.depth + 1


@pytest.fixture
def sphere_points():
    return random_sphere_points(200, seed=11)


class TestKdTreeConstruction:
    """Tests for KD-tree construction."""

    def test_build_empty(self):
        tree = KdTree([])
        assert tree.root is None
        assert len(tree) == 0
        assert tree.is_empty()
        assert KdTree().root is None

    def test_build_single_point(self):
        p = SpatialPoint(5.0, 3.0, 1.0)
        tree = KdTree([p])
        assert tree.root.point == p
        assert tree.root.is_leaf()
        assert len(tree) == 1

    def test_build_splits_at_middle_index(self):
        points = [SpatialPoint(float(x), 0.0, 0.0) for x in (4, 1, 3, 2)]
        tree = KdTree(points)
        # sorted x: 1, 2, 3, 4 -> index len // 2 = 2
        assert tree.root.point == SpatialPoint(3.0, 0.0, 0.0)

    def test_build_invariant_random(self, sphere_points):
        tree = KdTree(sphere_points)
        assert_build_invariant(tree)
        assert_links(tree)

    def test_build_invariant_with_axis_ties(self):
        points = [SpatialPoint(float(x), float(y), 0.0) for x in range(4) for y in range(4)]
        tree = KdTree(points)
        assert_build_invariant(tree)

    def test_count_preservation(self, sphere_points):
        points = sphere_points + sphere_points[:10]
        tree = KdTree(points)
        assert len(tree) == len(points)
        assert multiset(tree) == multiset(points)

    def test_build_does_not_mutate_input(self):
        points = [SpatialPoint(float(x), 0.0, 0.0) for x in (3, 1, 2)]
        KdTree(points)
        assert [p.x for p in points] == [3.0, 1.0, 2.0]

    def test_balanced_height(self, sphere_points):
        tree = KdTree(sphere_points)
        # 200 points fit in 8 levels when split at the median
        assert tree.height() <= 9

    def test_build_from_numpy_array(self, sphere_points):
        tree = KdTree(np.array(sphere_points, dtype=object))
        assert len(tree) == len(sphere_points)
        assert multiset(tree) == multiset(sphere_points)
        assert_build_invariant(tree)

        empty = KdTree(np.array([], dtype=object))
        assert empty.is_empty()
        assert len(empty) == 0

    def test_none_point_rejected(self):
        with pytest.raises(InvalidPointError):
            KdTree([SpatialPoint(1.0, 1.0, 1.0), None])

    def test_unsupported_dimensionality(self):
        with pytest.raises(ValueError):
            KdTree([], k=4)

    def test_two_dimensional_tree(self):
        points = [SpatialPoint.from_xy(x, y) for x, y in [(0, 0), (3, 4), (1, 1), (5, 2)]]
        tree = KdTree(points, k=2)
        assert all(node.axis in (0, 1) for node in tree.nodes())
        nearest = tree.nearest_neighbor(SpatialPoint.from_xy(1.2, 0.9))
        assert nearest.point == SpatialPoint.from_xy(1, 1)


class TestInsertSearchRemove:
    """Tests for insertion, exact search and removal."""

    def test_insert_into_empty(self):
        tree = KdTree()
        p = SpatialPoint(1.0, 2.0, 3.0)
        assert tree.insert(p) is True
        assert tree.root.point == p
        assert tree.root.depth == 0
        assert len(tree) == 1

    def test_insert_keeps_invariant(self, sphere_points):
        tree = KdTree(sphere_points[:100])
        for p in sphere_points[100:]:
            tree.insert(p)
        assert len(tree) == 200
        assert_build_invariant(tree)
        assert_links(tree)
        assert multiset(tree) == multiset(sphere_points)

    def test_insert_none_raises_without_mutation(self, sphere_points):
        tree = KdTree(sphere_points[:20])
        before = multiset(tree)
        with pytest.raises(InvalidPointError):
            tree.insert(None)
        with pytest.raises(ValueError):
            tree.insert(None)
        assert multiset(tree) == before
        assert len(tree) == 20

    def test_exact_search_finds_every_point(self, sphere_points):
        tree = KdTree(sphere_points)
        for p in sphere_points:
            node = tree.exact_search(p)
            assert isinstance(node, KdNode)
            assert node.point == p
            assert p in tree

    def test_exact_search_absent(self, sphere_points):
        tree = KdTree(sphere_points)
        missing = SpatialPoint(0.0, 0.0, 0.0)
        assert tree.exact_search(missing) is None
        assert not tree.contains(missing)
        assert None not in tree

    def test_remove_absent_returns_false(self, sphere_points):
        tree = KdTree(sphere_points[:30])
        before = multiset(tree)
        assert tree.remove(SpatialPoint(0.0, 0.0, 0.0)) is False
        assert multiset(tree) == before
        assert len(tree) == 30

    def test_remove_none_raises(self):
        tree = KdTree([SpatialPoint(1.0, 1.0, 1.0)])
        with pytest.raises(InvalidPointError):
            tree.remove(None)
        assert len(tree) == 1

    def test_insert_then_remove_round_trips(self, sphere_points):
        tree = KdTree(sphere_points[:50])
        original = multiset(tree)
        extra = SpatialPoint.from_lat_lon(12.0, 34.0)
        tree.insert(extra)
        assert extra in tree
        assert tree.remove(extra) is True
        assert extra not in tree
        assert multiset(tree) == original
        assert_build_invariant(tree)
        assert_links(tree)

    def test_remove_root(self, sphere_points):
        tree = KdTree(sphere_points[:40])
        root_point = tree.root.point
        assert tree.remove(root_point)
        assert root_point not in tree
        assert len(tree) == 39
        assert tree.root.parent is None
        assert tree.root.depth == 0
        assert_build_invariant(tree)
        assert_links(tree)

    def test_remove_everything(self, sphere_points):
        points = sphere_points[:60]
        tree = KdTree(points)
        for i, p in enumerate(points):
            assert tree.remove(p)
            remaining = points[i + 1:]
            assert multiset(tree) == multiset(remaining)
        assert tree.root is None
        assert len(tree) == 0

    def test_remove_one_duplicate(self):
        dup = SpatialPoint(1.0, 1.0, 1.0)
        tree = KdTree([dup, dup, dup, SpatialPoint(0.0, 0.0, 0.0)])
        assert tree.remove(dup)
        assert multiset(tree)[dup.as_tuple()] == 2
        assert len(tree) == 3

    def test_remove_leaf(self):
        points = [SpatialPoint(float(x), 0.0, 0.0) for x in (1, 2, 3)]
        tree = KdTree(points)
        assert tree.remove(SpatialPoint(3.0, 0.0, 0.0))
        assert tree.root.greater is None
        assert tree.root.lesser.point == SpatialPoint(1.0, 0.0, 0.0)


class TestKNearestNeighbors:
    """Tests for k-nearest neighbors queries."""

    def test_empty_tree(self):
        assert KdTree().k_nearest_neighbors(SpatialPoint(0.0, 0.0, 0.0), 3) == []

    def test_nearest_neighbor_empty_raises(self):
        with pytest.raises(ValueError):
            KdTree().nearest_neighbor(SpatialPoint(0.0, 0.0, 0.0))

    def test_none_query_raises(self, sphere_points):
        tree = KdTree(sphere_points)
        with pytest.raises(InvalidPointError):
            tree.k_nearest_neighbors(None, 1)

    def test_k_zero_or_negative(self, sphere_points):
        tree = KdTree(sphere_points)
        assert tree.k_nearest_neighbors(sphere_points[0], 0) == []
        assert tree.k_nearest_neighbors(sphere_points[0], -2) == []

    def test_round_trip_distance_zero(self, sphere_points):
        tree = KdTree(sphere_points)
        for p in sphere_points:
            result = tree.k_nearest_neighbors(p, 1)
            assert len(result) == 1
            assert result[0].point == p
            assert np.isclose(result[0].distance, 0.0)

    def test_results_sorted_by_distance(self, sphere_points):
        tree = KdTree(sphere_points)
        results = tree.k_nearest_neighbors(SpatialPoint.from_lat_lon(10.0, 10.0), 15)
        distances = [r.distance for r in results]
        assert distances == sorted(distances)
        assert all(isinstance(r, Neighbor) for r in results)

    def test_matches_brute_force_for_every_k(self):
        points = random_sphere_points(30, seed=5)
        queries = random_sphere_points(10, seed=6)
        tree = KdTree(points)

        for query in queries:
            for k in range(0, len(points) + 1):
                kd = tree.k_nearest_neighbors(query, k)
                bf = brute_force_k_nearest(points, query, k)
                assert len(kd) == len(bf) == k
                assert np.allclose([n.distance for n in kd], [n.distance for n in bf], rtol=1e-10)
                assert multiset(n.point for n in kd) == multiset(n.point for n in bf)

    def test_k_greater_than_n(self):
        points = [SpatialPoint(0.0, 0.0, 0.0), SpatialPoint(1.0, 1.0, 1.0)]
        tree = KdTree(points)
        assert len(tree.k_nearest_neighbors(SpatialPoint(0.0, 0.0, 0.0), 10)) == 2

    def test_matches_brute_force_large(self):
        points = random_sphere_points(3000, seed=21)
        queries = random_sphere_points(40, seed=22)
        tree = KdTree(points)
        for query in queries:
            for k in (1, 7):
                kd = [n.distance for n in tree.k_nearest_neighbors(query, k)]
                bf = [n.distance for n in brute_force_k_nearest(points, query, k)]
                assert np.allclose(kd, bf, rtol=1e-10)

    def test_matches_brute_force_after_mutation(self, sphere_points):
        tree = KdTree(sphere_points[:120])
        for p in sphere_points[120:]:
            tree.insert(p)
        for p in sphere_points[:40]:
            tree.remove(p)
        remaining = sphere_points[40:]
        for query in random_sphere_points(20, seed=99):
            kd = [n.distance for n in tree.k_nearest_neighbors(query, 3)]
            bf = [n.distance for n in brute_force_k_nearest(remaining, query, 3)]
            assert np.allclose(kd, bf, rtol=1e-10)

    def test_ties_are_all_returned(self):
        """Duplicates tied with the k-th distance grow the result."""
        dup = SpatialPoint(5.0, 5.0, 5.0)
        points = [dup] * 5 + [SpatialPoint(0.0, 0.0, 0.0), SpatialPoint(9.0, 9.0, 9.0)]
        tree = KdTree(points)
        results = tree.k_nearest_neighbors(dup, 1)
        assert len(results) == 5
        assert all(r.distance == 0.0 for r in results)

    def test_equidistant_points_tie(self):
        points = [
            SpatialPoint(1.0, 0.0, 0.0),
            SpatialPoint(-1.0, 0.0, 0.0),
            SpatialPoint(0.0, 1.0, 0.0),
            SpatialPoint(0.0, -1.0, 0.0),
            SpatialPoint(5.0, 5.0, 5.0),
        ]
        tree = KdTree(points)
        results = tree.k_nearest_neighbors(SpatialPoint(0.0, 0.0, 0.0), 2)
        assert len(results) == 4
        assert {r.point for r in results} == set(points[:4])

    def test_payload_is_returned(self):
        berlin = Location.create(52.52, 13.405, "Europe/Berlin")
        tree = KdTree([berlin])
        result = tree.nearest_neighbor(Location.create(52.0, 13.0))
        assert result.point.timezone == "Europe/Berlin"

    def test_validate_kdtree(self):
        assert validate_kdtree(n_points=300, n_queries=30, seed=3)


class TestTimezoneScenarios:
    """Nearest neighbor on real city coordinates."""

    @pytest.fixture
    def tree(self):
        return KdTree([
            Location.create(52.52, 13.405, "Europe/Berlin"),
            Location.create(48.85, 2.35, "Europe/Paris"),
        ])

    def test_closest_city_within_threshold(self, tree):
        result = tree.k_nearest_neighbors(Location.create(50.0, 5.0), 1)
        assert len(result) == 1
        assert result[0].point.timezone == "Europe/Paris"
        assert result[0].distance < 400

    def test_other_hemisphere_exceeds_threshold(self, tree):
        result = tree.k_nearest_neighbors(Location.create(-33.87, 151.21), 1)
        assert len(result) == 1
        assert result[0].distance > 10000

    def test_both_cities_ranked(self, tree):
        result = tree.k_nearest_neighbors(Location.create(50.0, 5.0), 2)
        assert [r.point.timezone for r in result] == ["Europe/Paris", "Europe/Berlin"]


class TestTraversal:
    """Tests for iteration order and tree printing."""

    @pytest.fixture
    def line_tree(self):
        return KdTree([SpatialPoint(float(x), 0.0, 0.0) for x in (1, 2, 3)])

    def test_forward_iteration(self, line_tree):
        assert [p.x for p in line_tree] == [3.0, 2.0, 1.0]

    def test_reverse_iteration(self, line_tree):
        assert [p.x for p in reversed(line_tree)] == [1.0, 2.0, 3.0]

    def test_iteration_covers_all_points(self, sphere_points):
        tree = KdTree(sphere_points)
        assert multiset(tree) == multiset(reversed(tree)) == multiset(sphere_points)

    def test_render_empty(self):
        assert render_tree(KdTree()) == EMPTY_TREE
        assert str(KdTree()) == "Tree has no nodes."

    def test_render_structure(self, line_tree):
        assert str(line_tree).splitlines() == [
            "└── depth=0 id=(2.0, 0.0, 0.0)",
            "    ├── [left] depth=1 id=(1.0, 0.0, 0.0)",
            "    └── [right] depth=1 id=(3.0, 0.0, 0.0)",
        ]

    def test_render_lists_every_node(self, sphere_points):
        tree = KdTree(sphere_points[:50])
        assert len(render_tree(tree).splitlines()) == 50


class TestDegenerateInput:
    """
    Known performance edge case: points that tie on the splitting axes
    produce a chain instead of a balanced tree. Results stay correct.
    """

    def test_identical_points_form_a_chain(self):
        dup = SpatialPoint(1.0, 2.0, 3.0)
        tree = KdTree()
        for _ in range(1100):
            tree.insert(dup)
        assert tree.height() == 1100
        results = tree.k_nearest_neighbors(SpatialPoint(1.0, 2.0, 3.5), 1)
        assert len(results) == 1100

    def test_sorted_colinear_insertion_is_linear(self):
        points = [SpatialPoint(float(i), 0.0, 0.0) for i in range(1100)]
        tree = KdTree()
        for p in points:
            tree.insert(p)
        assert tree.height() == len(points)

        query = SpatialPoint(600.4, 0.0, 0.0)
        kd = tree.k_nearest_neighbors(query, 3)
        assert [n.point.x for n in kd] == [600.0, 601.0, 599.0]

        assert tree.remove(SpatialPoint(0.0, 0.0, 0.0))
        assert len(tree) == len(points) - 1

    def test_bulk_build_of_duplicates(self):
        dup = SpatialPoint(4.0, 4.0, 4.0)
        tree = KdTree([dup] * 1100)
        assert len(tree) == 1100
        assert multiset(tree) == {dup.as_tuple(): 1100}


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
