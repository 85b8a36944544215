"""
KD-Tree Implementation for Nearest Timezone Search

This module provides a 3D KD-tree over points projected from latitude and
longitude onto the Earth sphere. It is the spatial index behind the timezone
filler: build once from all labeled locations, then answer one
k-nearest-neighbors query per unlabeled location.

Key Features:
- Balanced bulk construction ("median of points")
- Insertion, exact lookup and removal with subtree rebuild
- K-nearest neighbors query with hyperplane pruning (ties at the k-th
  distance are all returned)
- Traversal in both directions and a printable tree dump
- Brute-force baseline for comparison

Complexity Analysis:
- Build: O(n log² n) (one sort per level)
- Insert / exact search: O(depth)
- Remove: O(m log m) where m is the size of the removed node's subtree
- K-Nearest Neighbors: O(k log n) average, O(n) worst case
- Space: O(n)

Construction does not guard against skew: duplicate-heavy input or repeated
insertion of points sharing the same coordinates degrade the tree towards a
linked list. Every walk is iterative, so a skewed tree is slow but never
exhausts the recursion limit.

Thread safety:
    Queries only read node structure. A tree that is no longer mutated can
    be shared by any number of threads. insert/remove must be serialized by
    the caller.

Reference:
    Bentley, J. L. (1975). Multidimensional binary search trees used for
    associative searching. Communications of the ACM, 18(9), 509-517.
"""

from bisect import insort
from dataclasses import dataclass, field
from itertools import count
from typing import Iterator, List, Optional, Sequence, Set, Tuple
import weakref

import numpy as np

from .spatial_point import (
    SpatialPoint,
    AXIS_KEYS,
    compare_on_axis,
)
from .tree_printer import render_tree


class InvalidPointError(ValueError):
    """Raised when None is passed where a point is required."""


@dataclass(eq=False)
class KdNode:
    """
    A node in the KD-tree.

    Nodes compare and hash by identity: two nodes holding equal points are
    still different nodes.

    Attributes:
        point: The point stored at this node
        k: Dimensionality of the tree
        depth: Depth of the node (root = 0)
        lesser: Subtree of points routed to the lower side of the axis
        greater: Subtree of points routed to the upper side of the axis
    """
    point: SpatialPoint
    k: int = 3
    depth: int = 0
    lesser: Optional['KdNode'] = field(default=None, repr=False)
    greater: Optional['KdNode'] = field(default=None, repr=False)
    _parent_ref: Optional[weakref.ReferenceType] = field(
        default=None, init=False, repr=False
    )

    @property
    def parent(self) -> Optional['KdNode']:
        """Parent node; held weakly, the parent owns its children."""
        if self._parent_ref is None:
            return None
        return self._parent_ref()

    @parent.setter
    def parent(self, node: Optional['KdNode']) -> None:
        self._parent_ref = weakref.ref(node) if node is not None else None

    @property
    def axis(self) -> int:
        """Splitting axis: 0 for x, 1 for y, 2 for z."""
        return self.depth % self.k

    def is_leaf(self) -> bool:
        return self.lesser is None and self.greater is None

    def __str__(self):
        return f"k={self.k} depth={self.depth} id={self.point}"


@dataclass(frozen=True)
class Neighbor:
    """
    A search result.

    Attributes:
        point: The stored point (with whatever payload it carries)
        distance: Euclidean distance to the query point
    """
    point: SpatialPoint
    distance: float


class KdTree:
    """
    KD-Tree over 3D points with nearest neighbor queries.

    The splitting axis cycles x, y, z with depth. A point is routed to the
    lesser side of a node when it compares <= 0 to the node's point on the
    node's axis (ties on the axis fall back to the full x, y, z ordering),
    otherwise to the greater side. Construction, insertion, lookup and the
    search descent all use that same rule.

    Example:
        >>> tree = KdTree([SpatialPoint(0, 0, 0), SpatialPoint(1, 1, 1)])
        >>> tree.k_nearest_neighbors(SpatialPoint(0.9, 1, 1), k=1)[0].distance
        0.1...

    Attributes:
        root: Root node, None for an empty tree
        k: Number of dimensions used for splitting (3 for sphere points)
    """

    def __init__(self, points: Optional[Sequence[SpatialPoint]] = None, k: int = 3):
        """
        Build a KD-tree from a sequence of points.

        Args:
            points: Points to index; None or empty creates an empty tree
            k: Number of splitting dimensions, 1 to 3

        Complexity:
            Time: O(n log² n)
            Space: O(n)
        """
        if k not in (1, 2, 3):
            raise ValueError(f"Unsupported dimensionality k={k}, expected 1, 2 or 3")
        self.k = k
        self.root: Optional[KdNode] = None
        self._size = 0

        if points is not None and len(points) > 0:
            if any(p is None for p in points):
                raise InvalidPointError("Cannot build a tree containing None points")
            self.root = self._build(list(points), depth=0)
            self._size = len(points)

    def __len__(self) -> int:
        return self._size

    def is_empty(self) -> bool:
        return self.root is None

    def _build(self, points: List[SpatialPoint], depth: int) -> Optional[KdNode]:
        """
        Build a balanced subtree from a list of points.

        At each level, we:
        1. Sort the points by the splitting axis for the level
        2. Take the point at index len // 2 as the node's point
        3. Route every other point with the node comparison rule
           (points equal on the axis may sit on either side of the median
           after sorting, so their position in the list is not used)
        4. Build both halves one level deeper

        Args:
            points: Points for this subtree (consumed)
            depth: Depth of the subtree root

        Returns:
            Root node of the subtree, or None if points is empty
        """
        if not points:
            return None

        k = self.k
        root: Optional[KdNode] = None
        # (points, depth, parent, is_lesser)
        pending: List[Tuple[List[SpatialPoint], int, Optional[KdNode], bool]] = [
            (points, depth, None, True)
        ]

        while pending:
            items, level, parent, is_lesser = pending.pop()

            items.sort(key=AXIS_KEYS[level % k])
            median_pos = len(items) // 2
            node = KdNode(items[median_pos], k, level)

            less: List[SpatialPoint] = []
            more: List[SpatialPoint] = []
            for i, p in enumerate(items):
                if i == median_pos:
                    continue
                if compare_on_axis(level, k, p, node.point) <= 0:
                    less.append(p)
                else:
                    more.append(p)

            if parent is None:
                root = node
            else:
                node.parent = parent
                if is_lesser:
                    parent.lesser = node
                else:
                    parent.greater = node

            if more:
                pending.append((more, level + 1, node, False))
            if less:
                pending.append((less, level + 1, node, True))

        return root

    def insert(self, point: SpatialPoint) -> bool:
        """
        Add a point to the tree. The tree can hold equal points.

        No rebalancing is done; the new point always becomes a leaf.

        Args:
            point: Point to add

        Returns:
            True once the point is attached

        Raises:
            InvalidPointError: if point is None
        """
        if point is None:
            raise InvalidPointError("Cannot insert None into a KdTree")

        if self.root is None:
            self.root = KdNode(point, self.k, 0)
            self._size = 1
            return True

        node = self.root
        while True:
            if compare_on_axis(node.depth, node.k, point, node.point) <= 0:
                if node.lesser is None:
                    child = KdNode(point, self.k, node.depth + 1)
                    child.parent = node
                    node.lesser = child
                    break
                node = node.lesser
            else:
                if node.greater is None:
                    child = KdNode(point, self.k, node.depth + 1)
                    child.parent = node
                    node.greater = child
                    break
                node = node.greater

        self._size += 1
        return True

    def exact_search(self, point: SpatialPoint) -> Optional[KdNode]:
        """
        Locate the first node holding a point equal to `point`.

        Args:
            point: Point to look for

        Returns:
            The node, or None when the point is not in the tree

        Raises:
            InvalidPointError: if point is None
        """
        if point is None:
            raise InvalidPointError("Cannot search for None in a KdTree")

        node = self.root
        while node is not None:
            if node.point == point:
                return node
            if compare_on_axis(node.depth, node.k, point, node.point) <= 0:
                node = node.lesser
            else:
                node = node.greater
        return None

    def contains(self, point: SpatialPoint) -> bool:
        """Does the tree hold a point equal to `point`."""
        return self.exact_search(point) is not None

    def __contains__(self, point) -> bool:
        if point is None:
            return False
        return self.contains(point)

    def remove(self, point: SpatialPoint) -> bool:
        """
        Remove the first occurrence of a point.

        The removed node's subtree is rebuilt in place from the remaining
        points, at the same depth, and linked back where the node was.

        Args:
            point: Point to remove

        Returns:
            True if a point was removed, False if it was not found

        Raises:
            InvalidPointError: if point is None

        Complexity:
            Time: O(m log² m) where m is the size of the node's subtree
        """
        if point is None:
            raise InvalidPointError("Cannot remove None from a KdTree")

        node = self.exact_search(point)
        if node is None:
            return False

        replacement = self._build(collect_subtree(node), node.depth)
        parent = node.parent

        if parent is None:
            self.root = replacement
        elif parent.lesser is node:
            parent.lesser = replacement
        else:
            parent.greater = replacement

        if replacement is not None:
            replacement.parent = parent

        node.lesser = None
        node.greater = None
        node.parent = None
        self._size -= 1
        return True

    def _entry_leaf(self, query: SpatialPoint) -> Optional[KdNode]:
        """Last node reached by routing `query` down from the root."""
        leaf = None
        node = self.root
        while node is not None:
            leaf = node
            if compare_on_axis(node.depth, node.k, query, node.point) <= 0:
                node = node.lesser
            else:
                node = node.greater
        return leaf

    def k_nearest_neighbors(self, query: SpatialPoint, k: int) -> List[Neighbor]:
        """
        Find the k nearest neighbors to a query point.

        The search routes the query down to a leaf, then walks back up to
        the root. Every node on the way is scored, and the branch not taken
        is explored only if its splitting plane is within the current worst
        retained distance.

        Points tied at exactly the k-th distance are all returned, so the
        result can be longer than k.

        Args:
            query: Query point
            k: Number of neighbors to find

        Returns:
            List of Neighbor, ordered by distance then by point

        Raises:
            InvalidPointError: if query is None

        Complexity:
            Time: O(k log n) average, O(n) worst case
            Space: O(k) for results plus O(visited) for bookkeeping
        """
        if query is None:
            raise InvalidPointError("Cannot search neighbors of None")

        if self.root is None or k <= 0:
            return []

        search = _NeighborSearch(query, k)
        node = self._entry_leaf(query)
        while node is not None:
            if node not in search.examined:
                search.explore(node)
            node = node.parent

        return search.results()

    def nearest_neighbor(self, query: SpatialPoint) -> Neighbor:
        """
        Find the nearest neighbor to a query point.

        Args:
            query: Query point

        Returns:
            The closest Neighbor (the smallest point wins exact ties)

        Raises:
            ValueError: if the tree is empty
        """
        if self.root is None:
            raise ValueError("Cannot query empty tree")
        return self.k_nearest_neighbors(query, 1)[0]

    def __iter__(self) -> Iterator[SpatialPoint]:
        """Points from the greater side to the lesser side."""
        stack: List[Tuple[KdNode, bool]] = []
        if self.root is not None:
            stack.append((self.root, False))
        while stack:
            node, expanded = stack.pop()
            if expanded:
                yield node.point
                continue
            if node.lesser is not None:
                stack.append((node.lesser, False))
            stack.append((node, True))
            if node.greater is not None:
                stack.append((node.greater, False))

    def __reversed__(self) -> Iterator[SpatialPoint]:
        """Points from the lesser side to the greater side."""
        stack: List[Tuple[KdNode, bool]] = []
        if self.root is not None:
            stack.append((self.root, False))
        while stack:
            node, expanded = stack.pop()
            if expanded:
                yield node.point
                continue
            if node.greater is not None:
                stack.append((node.greater, False))
            stack.append((node, True))
            if node.lesser is not None:
                stack.append((node.lesser, False))

    def nodes(self) -> Iterator[KdNode]:
        """All nodes, pre-order, lesser side first."""
        stack = [self.root] if self.root is not None else []
        while stack:
            node = stack.pop()
            yield node
            if node.greater is not None:
                stack.append(node.greater)
            if node.lesser is not None:
                stack.append(node.lesser)

    def height(self) -> int:
        """Number of levels, 0 for an empty tree."""
        return max((node.depth + 1 for node in self.nodes()), default=0)

    def __str__(self):
        return render_tree(self)


def collect_subtree(node: Optional[KdNode]) -> List[SpatialPoint]:
    """
    Points held below `node`, not including the node itself.

    Lesser subtree first, then greater, each pre-order.
    """
    points: List[SpatialPoint] = []
    if node is None:
        return points

    stack = [child for child in (node.greater, node.lesser) if child is not None]
    while stack:
        current = stack.pop()
        points.append(current.point)
        if current.greater is not None:
            stack.append(current.greater)
        if current.lesser is not None:
            stack.append(current.lesser)
    return points


class _NeighborSearch:
    """
    State of a single k-nearest-neighbors query.

    Results are kept sorted by (distance, point, insertion order); the
    insertion order keeps entries for equal points distinct.
    """

    def __init__(self, query: SpatialPoint, k: int):
        self.query = query
        self.k = k
        self.examined: Set[KdNode] = set()
        self._best: List[Tuple[float, SpatialPoint, int]] = []
        self._order = count()

    def worst_distance(self) -> float:
        """Pruning radius: infinite until k results are retained."""
        if len(self._best) < self.k:
            return float('inf')
        return self._best[-1][0]

    def score(self, node: KdNode) -> None:
        distance = node.point.euclidean_distance(self.query)
        entry = (distance, node.point, next(self._order))

        if len(self._best) < self.k:
            insort(self._best, entry)
            return

        worst = self._best[-1][0]
        if distance < worst:
            insort(self._best, entry)
            # Keep everything tied with the new k-th distance
            kth = self._best[self.k - 1][0]
            while len(self._best) > self.k and self._best[-1][0] > kth:
                self._best.pop()
        elif distance == worst:
            insort(self._best, entry)

    def explore(self, start: KdNode) -> None:
        """Score `start` and every branch below it that survives pruning."""
        query = self.query
        self.examined.add(start)
        # (node, parent whose splitting plane guards it, is_lesser)
        pending: List[Tuple[KdNode, Optional[KdNode], bool]] = [(start, None, True)]

        while pending:
            node, guard, is_lesser = pending.pop()

            if guard is not None:
                axis = guard.axis
                plane = guard.point.coordinate(axis)
                worst = self.worst_distance()
                if is_lesser:
                    intersects = query.coordinate(axis) - worst <= plane
                else:
                    intersects = query.coordinate(axis) + worst >= plane
                if not intersects:
                    continue

            self.score(node)

            if node.greater is not None and node.greater not in self.examined:
                self.examined.add(node.greater)
                pending.append((node.greater, node, False))
            if node.lesser is not None and node.lesser not in self.examined:
                self.examined.add(node.lesser)
                pending.append((node.lesser, node, True))

    def results(self) -> List[Neighbor]:
        return [Neighbor(point, distance) for distance, point, _ in self._best]


def brute_force_k_nearest(
    points: Sequence[SpatialPoint],
    query: SpatialPoint,
    k: int
) -> List[Neighbor]:
    """
    Brute-force k nearest neighbors (baseline).

    Computes the distance to every point and keeps the k smallest, plus any
    point tied with the k-th distance. Used for correctness testing and
    benchmarking against the KD-tree.

    Args:
        points: Candidate points
        query: Query point
        k: Number of neighbors

    Returns:
        List of Neighbor ordered by distance then by point

    Complexity:
        Time: O(n log n) for the sort
        Space: O(n) for the distance array
    """
    if query is None:
        raise InvalidPointError("Cannot search neighbors of None")
    if k <= 0 or len(points) == 0:
        return []

    coords = points_to_array(points)
    target = np.array(query.as_tuple(), dtype=np.float64)
    distances = np.sqrt(np.sum((coords - target) ** 2, axis=1))

    ranked = sorted(
        range(len(points)),
        key=lambda i: (distances[i], points[i])
    )
    kth = distances[ranked[min(k, len(points)) - 1]]

    return [
        Neighbor(points[i], float(distances[i]))
        for i in ranked
        if distances[i] <= kth
    ]


def points_to_array(points: Sequence[SpatialPoint]) -> np.ndarray:
    """
    Stack points into an array for vectorized operations.

    Returns:
        np.ndarray: Shape (n, 3) array of (x, y, z) coordinates
    """
    return np.array([p.as_tuple() for p in points], dtype=np.float64).reshape(-1, 3)


def random_sphere_points(n: int, seed: Optional[int] = None) -> List[SpatialPoint]:
    """
    Points spread uniformly over the Earth sphere.

    Latitude is drawn as arcsin of a uniform variable so that points do not
    bunch up at the poles.
    """
    rng = np.random.default_rng(seed)
    latitudes = np.degrees(np.arcsin(rng.uniform(-1.0, 1.0, n)))
    longitudes = rng.uniform(-180.0, 180.0, n)
    return [
        SpatialPoint.from_lat_lon(float(lat), float(lon))
        for lat, lon in zip(latitudes, longitudes)
    ]


def validate_kdtree(n_points: int = 1000, n_queries: int = 100, seed: int = 42) -> bool:
    """
    Validate KD-tree correctness against brute force.

    Generates random sphere points and queries, then verifies that the
    KD-tree returns the same neighbor distances as brute force for k = 1
    and k = 5.

    Args:
        n_points: Number of random data points
        n_queries: Number of random query points
        seed: Random seed for reproducibility

    Returns:
        True if all queries match, False otherwise

    Example:
        >>> assert validate_kdtree(1000, 100, seed=42)
    """
    points = random_sphere_points(n_points, seed=seed)
    queries = random_sphere_points(n_queries, seed=seed + 1)

    tree = KdTree(points)

    all_match = True
    for query in queries:
        for k in (1, 5):
            kd_dists = [n.distance for n in tree.k_nearest_neighbors(query, k)]
            bf_dists = [n.distance for n in brute_force_k_nearest(points, query, k)]

            if len(kd_dists) != len(bf_dists) or not np.allclose(kd_dists, bf_dists, rtol=1e-10):
                print(f"Mismatch (k={k}): KD-tree={kd_dists}, brute force={bf_dists}")
                all_match = False

    return all_match


if __name__ == "__main__":
    print("Validating KD-tree implementation...")
    if validate_kdtree():
        print("✓ KD-tree validation passed!")
    else:
        print("✗ KD-tree validation failed!")

    print("\nDemo:")
    cities = {
        "Berlin": (52.52, 13.405),
        "Paris": (48.85, 2.35),
        "Madrid": (40.42, -3.70),
        "Rome": (41.90, 12.50),
        "Warsaw": (52.23, 21.01),
    }
    points = [SpatialPoint.from_lat_lon(lat, lon) for lat, lon in cities.values()]
    tree = KdTree(points)
    print(tree)

    query = SpatialPoint.from_lat_lon(50.0, 5.0)
    for neighbor in tree.k_nearest_neighbors(query, k=2):
        print(f"  {neighbor.point}  {neighbor.distance:.1f} km")
