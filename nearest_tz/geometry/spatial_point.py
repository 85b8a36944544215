"""
Spatial Point Model

Points are stored as 3D Cartesian coordinates on a sphere of fixed radius.
Projecting (latitude, longitude) onto the sphere lets the KD-tree work with
plain Euclidean (chord) distances, which are monotonic with great-circle
distance.

Projection:
    x = R * cos(lat) * cos(lon)
    y = R * cos(lat) * sin(lon)
    z = R * sin(lat)

Equality, hashing and ordering only look at (x, y, z). Any payload carried by
a subclass (timezone, original coordinates, ...) is ignored.
"""

from dataclasses import dataclass
from functools import total_ordering
from operator import attrgetter
import math


EARTH_RADIUS_KM = 6371

X_AXIS = 0
Y_AXIS = 1
Z_AXIS = 2


@total_ordering
@dataclass(frozen=True, eq=False)
class SpatialPoint:
    """
    An immutable point in 3D space.

    Attributes:
        x: X coordinate
        y: Y coordinate
        z: Z coordinate

    Example:
        >>> p = SpatialPoint.from_lat_lon(0.0, 90.0)
        >>> round(p.y)
        6371
    """
    x: float
    y: float
    z: float

    @classmethod
    def from_xy(cls, x: float, y: float) -> "SpatialPoint":
        """Create a point on the z = 0 plane."""
        return cls(float(x), float(y), 0.0)

    @classmethod
    def from_lat_lon(
        cls,
        latitude: float,
        longitude: float,
        radius: float = EARTH_RADIUS_KM
    ) -> "SpatialPoint":
        """
        Project degrees of latitude/longitude onto a sphere of given radius.

        Args:
            latitude: Latitude in degrees
            longitude: Longitude in degrees
            radius: Sphere radius (kilometers for the Earth)

        Returns:
            SpatialPoint with the projected coordinates
        """
        x, y, z = project(latitude, longitude, radius)
        return SpatialPoint(x, y, z)

    def coordinate(self, axis: int) -> float:
        """Return the coordinate used by the given splitting axis."""
        if axis == X_AXIS:
            return self.x
        if axis == Y_AXIS:
            return self.y
        return self.z

    def euclidean_distance(self, other: "SpatialPoint") -> float:
        """Exact Euclidean distance to another point."""
        return math.sqrt(
            (self.x - other.x) ** 2
            + (self.y - other.y) ** 2
            + (self.z - other.z) ** 2
        )

    def as_tuple(self):
        return (self.x, self.y, self.z)

    def __eq__(self, other):
        if not isinstance(other, SpatialPoint):
            return NotImplemented
        return self.x == other.x and self.y == other.y and self.z == other.z

    def __hash__(self):
        return hash((self.x, self.y, self.z))

    def __lt__(self, other):
        if not isinstance(other, SpatialPoint):
            return NotImplemented
        return compare_points(self, other) < 0

    def __str__(self):
        return f"({self.x}, {self.y}, {self.z})"


def project(latitude: float, longitude: float, radius: float = EARTH_RADIUS_KM):
    """Return the (x, y, z) projection of a latitude/longitude pair."""
    lat = math.radians(latitude)
    lon = math.radians(longitude)
    return (
        radius * math.cos(lat) * math.cos(lon),
        radius * math.cos(lat) * math.sin(lon),
        radius * math.sin(lat),
    )


def _compare(a: float, b: float) -> int:
    if a < b:
        return -1
    if a > b:
        return 1
    return 0


def compare_x(p1: SpatialPoint, p2: SpatialPoint) -> int:
    return _compare(p1.x, p2.x)


def compare_y(p1: SpatialPoint, p2: SpatialPoint) -> int:
    return _compare(p1.y, p2.y)


def compare_z(p1: SpatialPoint, p2: SpatialPoint) -> int:
    return _compare(p1.z, p2.z)


AXIS_COMPARATORS = (compare_x, compare_y, compare_z)

# Sort keys matching the comparators, for list.sort
AXIS_KEYS = (attrgetter("x"), attrgetter("y"), attrgetter("z"))


def compare_points(p1: SpatialPoint, p2: SpatialPoint) -> int:
    """
    Total order over points: x, then y, then z.

    Returns:
        -1, 0 or 1
    """
    for comparator in AXIS_COMPARATORS:
        result = comparator(p1, p2)
        if result != 0:
            return result
    return 0


def compare_on_axis(depth: int, k: int, p1: SpatialPoint, p2: SpatialPoint) -> int:
    """
    Compare two points on the splitting axis of a node at `depth`.

    Points equal on the axis fall back to the full point ordering, so a
    point is always routed to the same side of a node no matter whether it
    was placed by construction, insertion or repair.

    Args:
        depth: Depth of the node whose axis is used
        k: Dimensionality of the tree
        p1: Point being routed
        p2: Point stored at the node

    Returns:
        -1, 0 or 1
    """
    result = AXIS_COMPARATORS[depth % k](p1, p2)
    if result != 0:
        return result
    return compare_points(p1, p2)
