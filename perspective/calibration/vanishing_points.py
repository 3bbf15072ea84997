"""
Vanishing Point Resolver Module.

Turns pairs of user-drawn line segments into vanishing points in
image-plane coordinates, and estimates the principal point from three
vanishing points.

Mathematical Background:
========================

Vanishing Points:
-----------------
Parallel 3D lines project to image lines that converge at a single image
point, the vanishing point of their common direction. Two segments per
direction are enough: the vanishing point is the intersection of the two
infinite lines through them.

Line intersections are computed in the relative frame and converted to
image-plane coordinates afterwards. The conversion is affine, so the
order does not change the result.

Principal Point as Orthocenter:
-------------------------------
For three mutually orthogonal directions with vanishing points A, B, C,
the principal point is the orthocenter H of triangle ABC. With side
lengths a = |BC|, b = |CA|, c = |AB|, the law of cosines gives

    cos(A) = (b^2 + c^2 - a^2) / (2bc)     sin(A) = sqrt(1 - cos^2(A))

and H has barycentric coordinates (tan A : tan B : tan C):

    H = (tan A * A + tan B * B + tan C * C) / (tan A + tan B + tan C)

A right angle at a vertex puts H on that vertex; a collinear triangle
makes every sine vanish and has no orthocenter.
"""

import math
from dataclasses import dataclass
from typing import List, Sequence

from ..errors import DegenerateLinesError, DegenerateTriangleError, VanishingPointError
from ..geometry import CoordinateFrame, LineSegment, Point2D, line_intersection
from ..utils.logger import get_logger
from .settings import DEFAULT_TOLERANCES, Tolerances

logger = get_logger(__name__)


@dataclass(frozen=True)
class VanishingPointControlState:
    """
    Two line segments converging to one vanishing point.

    Attributes:
        first: First segment (relative frame).
        second: Second segment (relative frame).
    """

    first: LineSegment
    second: LineSegment

    def __post_init__(self):
        for segment in (self.first, self.second):
            if segment.frame is not CoordinateFrame.RELATIVE:
                raise ValueError("Control lines must be given in the relative frame")

    def vanishing_point(
        self,
        image_width: float,
        image_height: float,
        tolerances: Tolerances = DEFAULT_TOLERANCES,
    ) -> Point2D:
        """Intersection of the two lines, in image-plane coordinates."""
        relative = line_intersection(self.first, self.second, tolerances.line_epsilon)
        return relative.to_image_plane(image_width, image_height)


def compute_vanishing_points(
    control_states: Sequence[VanishingPointControlState],
    image_width: float,
    image_height: float,
    tolerances: Tolerances = DEFAULT_TOLERANCES,
) -> List[Point2D]:
    """
    Compute one vanishing point per control state.

    The whole batch fails on the first degenerate pair; partial results
    are never returned.

    Args:
        control_states: Line pairs, one per vanishing point.
        image_width: Image width (pixels).
        image_height: Image height (pixels).
        tolerances: Degeneracy thresholds.

    Returns:
        List[Point2D]: Vanishing points in image-plane coordinates.

    Raises:
        VanishingPointError: Naming the index of the failing control state.
    """
    vanishing_points = []

    for index, state in enumerate(control_states):
        try:
            point = state.vanishing_point(image_width, image_height, tolerances)
        except DegenerateLinesError as e:
            logger.debug(f"Control state {index} is degenerate: {e}")
            raise VanishingPointError(index, e) from e
        vanishing_points.append(point)

    return vanishing_points


def triangle_orthocenter(
    A: Point2D,
    B: Point2D,
    C: Point2D,
    tolerances: Tolerances = DEFAULT_TOLERANCES,
) -> Point2D:
    """
    Orthocenter of triangle ABC.

    Args:
        A, B, C: Triangle vertices, all in the same frame.
        tolerances: triangle_epsilon guards side lengths and the sine
            radical; right_angle_epsilon detects right angles.

    Returns:
        Point2D: Orthocenter in the frame of the inputs.

    Raises:
        DegenerateTriangleError: For collinear or zero-size triangles.

    Example:
        >>> h = triangle_orthocenter(Point2D.image_plane(0, 0),
        ...                          Point2D.image_plane(1, 0),
        ...                          Point2D.image_plane(0.5, math.sqrt(3) / 2))
        >>> round(h.x, 6), round(h.y, 6)
        (0.5, 0.288675)
    """
    a = B.distance_to(C)
    b = C.distance_to(A)
    c = A.distance_to(B)

    if min(a, b, c) < tolerances.triangle_epsilon:
        raise DegenerateTriangleError(
            f"Triangle has a vanishing side (a={a:.3g}, b={b:.3g}, c={c:.3g})"
        )

    cosines = (
        (b * b + c * c - a * a) / (2.0 * b * c),
        (c * c + a * a - b * b) / (2.0 * c * a),
        (a * a + b * b - c * c) / (2.0 * a * b),
    )
    vertices = (A, B, C)

    weights = []
    for vertex, cos_angle in zip(vertices, cosines):
        sin_squared = 1.0 - cos_angle * cos_angle
        if sin_squared < tolerances.triangle_epsilon:
            raise DegenerateTriangleError("Vanishing points are (nearly) collinear")
        if abs(cos_angle) < tolerances.right_angle_epsilon:
            return vertex
        weights.append(math.sqrt(sin_squared) / cos_angle)

    total = sum(weights)
    if abs(total) < tolerances.triangle_epsilon:
        raise DegenerateTriangleError("Orthocenter weights cancel out")

    x = sum(w * v.x for w, v in zip(weights, vertices)) / total
    y = sum(w * v.y for w, v in zip(weights, vertices)) / total
    return Point2D(x, y, A.frame)
