"""
Geometry primitives for single-view calibration.

Classes:
    CoordinateFrame: Relative (0..1) or image-plane frame tag.
    Point2D: Frame-tagged 2D coordinate.
    LineSegment: Ordered pair of 2D points.
    Vector3D: Immutable 3D vector.
    Transform: Immutable 4x4 homogeneous transform.

Standalone Functions:
    line_intersection: Intersect the lines through two segments.
    nearest_rotation: Project a 3x3 matrix onto SO(3).
"""

from .primitives import (
    CoordinateFrame,
    LineSegment,
    Point2D,
    Vector3D,
    line_intersection,
)
from .transform import Transform, nearest_rotation

__all__ = [
    # Classes
    "CoordinateFrame",
    "LineSegment",
    "Point2D",
    "Vector3D",
    "Transform",
    # Standalone functions
    "line_intersection",
    "nearest_rotation",
]
