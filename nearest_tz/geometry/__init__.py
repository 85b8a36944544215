"""
Geometry Module for Nearest Timezone Search

This module provides the spatial index used by the timezone filler:
- Spatial point model (latitude/longitude projected onto the Earth sphere)
- 3D KD-tree with insertion, removal and k-nearest-neighbor search
- Tree printer for debugging

The KD-tree is the only algorithmic part of the pipeline; everything else
reads records, shards work and writes files around it.
"""

from .spatial_point import (
    SpatialPoint,
    EARTH_RADIUS_KM,
    compare_points,
    compare_on_axis
)
from .kd_tree import (
    KdTree,
    KdNode,
    Neighbor,
    InvalidPointError,
    brute_force_k_nearest
)
from .tree_printer import render_tree

__all__ = [
    'SpatialPoint',
    'EARTH_RADIUS_KM',
    'compare_points',
    'compare_on_axis',
    'KdTree',
    'KdNode',
    'Neighbor',
    'InvalidPointError',
    'brute_force_k_nearest',
    'render_tree'
]
