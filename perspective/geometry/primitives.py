"""
Geometry Primitives Module.

Frame-tagged 2D points, line segments and 3D vectors used throughout the
calibration engine.

Coordinate Frames:
==================

Relative frame:
    - Origin at the top-left image corner
    - x to the right, y downwards
    - Both axes span [0, 1] regardless of image size

Image-plane frame:
    - Origin at the image centre
    - x to the right, y upwards
    - The longer image dimension spans [-1, 1]

For an image with aspect ratio r = width / height:

    landscape (r >= 1):  x_ip = 2x - 1          y_ip = (1 - 2y) / r
    portrait  (r <  1):  x_ip = (2x - 1) * r    y_ip = 1 - 2y

A Point2D always carries the frame it is expressed in, and arithmetic
between points in different frames raises CoordinateFrameError.

Line-Line Intersection:
=======================
For lines through (x1, y1)-(x2, y2) and (x3, y3)-(x4, y4):

    D  = (x1 - x2)(y3 - y4) - (y1 - y2)(x3 - x4)
    Px = ((x1 y2 - y1 x2)(x3 - x4) - (x1 - x2)(x3 y4 - y3 x4)) / D
    Py = ((x1 y2 - y1 x2)(y3 - y4) - (y1 - y2)(x3 y4 - y3 x4)) / D

D = 0 means the lines are parallel.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Sequence, Tuple

import numpy as np

from ..errors import CoordinateFrameError, DegenerateLinesError, DegenerateVectorError


DEFAULT_LINE_EPSILON = 1e-8
DEFAULT_VECTOR_EPSILON = 1e-12


class CoordinateFrame(Enum):
    """Frame a 2D coordinate is expressed in."""
    RELATIVE = "relative"
    IMAGE_PLANE = "image_plane"


def _aspect_ratio(image_width: float, image_height: float) -> float:
    if image_width <= 0 or image_height <= 0:
        raise ValueError(
            f"Image size must be positive, got {image_width}x{image_height}"
        )
    return image_width / image_height


# =============================================================================
# 2D points and segments
# =============================================================================

@dataclass(frozen=True)
class Point2D:
    """
    A 2D coordinate tagged with its coordinate frame.

    Attributes:
        x: Horizontal coordinate.
        y: Vertical coordinate.
        frame: Frame the coordinate is expressed in.

    Example:
        >>> p = Point2D(0.75, 0.25)
        >>> p.to_image_plane(1920, 1080)
        Point2D(x=0.5, y=0.28125, frame=<CoordinateFrame.IMAGE_PLANE: 'image_plane'>)
    """

    x: float
    y: float
    frame: CoordinateFrame = CoordinateFrame.RELATIVE

    def _check_frame(self, other: "Point2D") -> None:
        if self.frame is not other.frame:
            raise CoordinateFrameError(
                f"Cannot combine {self.frame.value} and {other.frame.value} points"
            )

    def __add__(self, other: "Point2D") -> "Point2D":
        self._check_frame(other)
        return Point2D(self.x + other.x, self.y + other.y, self.frame)

    def __sub__(self, other: "Point2D") -> "Point2D":
        self._check_frame(other)
        return Point2D(self.x - other.x, self.y - other.y, self.frame)

    def scaled(self, factor: float) -> "Point2D":
        return Point2D(self.x * factor, self.y * factor, self.frame)

    def dot(self, other: "Point2D") -> float:
        self._check_frame(other)
        return self.x * other.x + self.y * other.y

    @property
    def length(self) -> float:
        return math.hypot(self.x, self.y)

    def distance_to(self, other: "Point2D") -> float:
        return (self - other).length

    def to_image_plane(self, image_width: float, image_height: float) -> "Point2D":
        """
        Convert to the image-plane frame.

        Args:
            image_width: Image width (pixels).
            image_height: Image height (pixels).

        Returns:
            Point2D: Same point in image-plane coordinates.
        """
        if self.frame is CoordinateFrame.IMAGE_PLANE:
            return self

        aspect = _aspect_ratio(image_width, image_height)
        if aspect >= 1.0:
            x = -1.0 + 2.0 * self.x
            y = (1.0 - 2.0 * self.y) / aspect
        else:
            x = (-1.0 + 2.0 * self.x) * aspect
            y = 1.0 - 2.0 * self.y
        return Point2D(x, y, CoordinateFrame.IMAGE_PLANE)

    def to_relative(self, image_width: float, image_height: float) -> "Point2D":
        """Convert to the relative (0..1, top-left origin) frame."""
        if self.frame is CoordinateFrame.RELATIVE:
            return self

        aspect = _aspect_ratio(image_width, image_height)
        if aspect >= 1.0:
            x = (self.x + 1.0) / 2.0
            y = (1.0 - self.y * aspect) / 2.0
        else:
            x = (self.x / aspect + 1.0) / 2.0
            y = (1.0 - self.y) / 2.0
        return Point2D(x, y, CoordinateFrame.RELATIVE)

    def to_array(self) -> np.ndarray:
        return np.array([self.x, self.y], dtype=np.float64)

    @classmethod
    def from_pixels(
        cls,
        u: float,
        v: float,
        image_width: float,
        image_height: float,
    ) -> "Point2D":
        """Create a relative-frame point from pixel coordinates."""
        _aspect_ratio(image_width, image_height)
        return cls(u / image_width, v / image_height, CoordinateFrame.RELATIVE)

    @classmethod
    def image_plane(cls, x: float, y: float) -> "Point2D":
        """Shorthand for an image-plane point."""
        return cls(x, y, CoordinateFrame.IMAGE_PLANE)


@dataclass(frozen=True)
class LineSegment:
    """
    Ordered pair of points marking a line in the image.

    Both end points must share a coordinate frame.
    """

    start: Point2D
    end: Point2D

    def __post_init__(self):
        if self.start.frame is not self.end.frame:
            raise CoordinateFrameError("Line segment end points use different frames")

    @property
    def frame(self) -> CoordinateFrame:
        return self.start.frame

    @property
    def length(self) -> float:
        return self.start.distance_to(self.end)

    def to_image_plane(self, image_width: float, image_height: float) -> "LineSegment":
        return LineSegment(
            self.start.to_image_plane(image_width, image_height),
            self.end.to_image_plane(image_width, image_height),
        )

    @classmethod
    def from_tuples(
        cls,
        start: Tuple[float, float],
        end: Tuple[float, float],
        frame: CoordinateFrame = CoordinateFrame.RELATIVE,
    ) -> "LineSegment":
        return cls(Point2D(start[0], start[1], frame), Point2D(end[0], end[1], frame))


def line_intersection(
    line1: LineSegment,
    line2: LineSegment,
    epsilon: float = DEFAULT_LINE_EPSILON,
) -> Point2D:
    """
    Intersect the infinite lines through two segments.

    Args:
        line1: First segment.
        line2: Second segment.
        epsilon: Minimum segment length and minimum |denominator|.

    Returns:
        Point2D: Intersection, in the frame of the input segments.

    Raises:
        DegenerateLinesError: If a segment is shorter than epsilon or the
            lines are parallel.
        CoordinateFrameError: If the segments use different frames.

    Example:
        >>> a = LineSegment.from_tuples((0, 0), (1, 1))
        >>> b = LineSegment.from_tuples((0, 1), (1, 0))
        >>> line_intersection(a, b)
        Point2D(x=0.5, y=0.5, frame=<CoordinateFrame.RELATIVE: 'relative'>)
    """
    if line1.frame is not line2.frame:
        raise CoordinateFrameError("Cannot intersect segments from different frames")

    for index, line in enumerate((line1, line2)):
        if line.length < epsilon:
            raise DegenerateLinesError(
                f"Segment {index + 1} is too short ({line.length:.3g})"
            )

    x1, y1 = line1.start.x, line1.start.y
    x2, y2 = line1.end.x, line1.end.y
    x3, y3 = line2.start.x, line2.start.y
    x4, y4 = line2.end.x, line2.end.y

    denom = (x1 - x2) * (y3 - y4) - (y1 - y2) * (x3 - x4)
    if abs(denom) < epsilon:
        raise DegenerateLinesError("Lines are parallel")

    t1 = x1 * y2 - y1 * x2
    t2 = x3 * y4 - y3 * x4

    px = (t1 * (x3 - x4) - (x1 - x2) * t2) / denom
    py = (t1 * (y3 - y4) - (y1 - y2) * t2) / denom
    return Point2D(px, py, line1.frame)


# =============================================================================
# 3D vectors
# =============================================================================

@dataclass(frozen=True)
class Vector3D:
    """Immutable 3D vector."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def __add__(self, other: "Vector3D") -> "Vector3D":
        return Vector3D(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: "Vector3D") -> "Vector3D":
        return Vector3D(self.x - other.x, self.y - other.y, self.z - other.z)

    def __mul__(self, scalar: float) -> "Vector3D":
        return Vector3D(self.x * scalar, self.y * scalar, self.z * scalar)

    __rmul__ = __mul__

    def __neg__(self) -> "Vector3D":
        return Vector3D(-self.x, -self.y, -self.z)

    @property
    def length(self) -> float:
        return math.sqrt(self.x * self.x + self.y * self.y + self.z * self.z)

    def normalized(self, epsilon: float = DEFAULT_VECTOR_EPSILON) -> "Vector3D":
        """
        Unit vector in the same direction.

        Raises:
            DegenerateVectorError: If the length is below epsilon.
        """
        length = self.length
        if length < epsilon:
            raise DegenerateVectorError(f"Cannot normalize vector of length {length:.3g}")
        return Vector3D(self.x / length, self.y / length, self.z / length)

    def dot(self, other: "Vector3D") -> float:
        return self.x * other.x + self.y * other.y + self.z * other.z

    def cross(self, other: "Vector3D") -> "Vector3D":
        return Vector3D(
            self.y * other.z - self.z * other.y,
            self.z * other.x - self.x * other.z,
            self.x * other.y - self.y * other.x,
        )

    def to_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=np.float64)

    @classmethod
    def from_array(cls, values: Sequence[float]) -> "Vector3D":
        values = np.asarray(values, dtype=np.float64).flatten()
        if values.shape != (3,):
            raise ValueError(f"Expected 3 components, got {values.shape}")
        return cls(float(values[0]), float(values[1]), float(values[2]))
