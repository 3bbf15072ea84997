"""
Vanishing-Point Calibration Solver Module.

Recovers focal length, rotation and translation of a pinhole camera from
two (or three) vanishing points of mutually orthogonal world directions.

Mathematical Background:
========================

Focal Length:
-------------
Let Fu, Fv be the vanishing points of two orthogonal directions and P the
principal point (all image-plane coordinates). With Puv the orthogonal
projection of P onto the line FuFv:

    f^2 = |Fv - Puv| * |Fu - Puv| - |P - Puv|^2

f^2 <= 0 means no pinhole camera can produce the configuration.

Rotation:
---------
The camera-space directions of the two vanishing points are

    OFu = (Fu - P, -f)      OFv = (Fv - P, -f)

and the rotation from the vanishing-point basis to camera space has the
columns

    u = OFu / |OFu|,   v = OFv / |OFv|,   w = u x v

The user's axis assignment (e.g. first VP = +X, second VP = -Z) becomes a
signed permutation matrix A with rows axis1, axis2, axis1 x axis2, so the
world -> camera rotation is R = [u v w] A.

Translation:
------------
The origin control point O is back-projected to a fixed default distance:

    k = tan(fov_h / 2) / d_h = 1 / f
    t = 10 * (k (Ox - Px), k (Oy - Py), -1)

A reference distance rescales t so that two handle points on a line
parallel to the reference axis end up the requested length apart.

Stages:
=======
    TWO_VANISHING_POINTS -> FOCAL_LENGTH_KNOWN -> ROTATION_KNOWN
        -> TRANSLATION_KNOWN -> COMPLETE

Any failure moves the solver to FAILED and stamps the raised error with
the last stage reached.
"""

import math
from enum import Enum
from typing import List, Optional, Tuple

import numpy as np

from ..errors import (
    CalibrationError,
    DegenerateLinesError,
    DegenerateReferenceDistanceError,
    InvalidAxisAssignmentError,
    NonPositiveFocalLengthSquaredError,
)
from ..geometry import Point2D, Transform, Vector3D, nearest_rotation
from ..utils.logger import LoggerMixin, get_logger
from .camera_parameters import CameraParameters, build_camera_parameters
from .intrinsics import RelativeIntrinsics, compute_field_of_view, relative_focal_length_from_fov
from .settings import (
    DEFAULT_TOLERANCES,
    Axis,
    CalibrationSettings,
    ReferenceDistanceHandles,
    Tolerances,
)
from .vanishing_points import triangle_orthocenter

logger = get_logger(__name__)

DEFAULT_TRANSLATION_DISTANCE = 10.0

__all__ = [
    "CalibrationStage",
    "VanishingPointSolver",
    "axis_assignment_matrix",
    "calibrate_from_vanishing_points",
    "compute_camera_rotation_matrix",
    "compute_field_of_view",
    "compute_focal_length",
    "compute_translation_vector",
    "reference_handle_positions",
]


class CalibrationStage(Enum):
    """Progress of a vanishing point calibration."""
    TWO_VANISHING_POINTS = "two_vanishing_points"
    FOCAL_LENGTH_KNOWN = "focal_length_known"
    ROTATION_KNOWN = "rotation_known"
    TRANSLATION_KNOWN = "translation_known"
    COMPLETE = "complete"
    FAILED = "failed"


# =============================================================================
# Focal length and rotation
# =============================================================================

def compute_focal_length(
    Fu: Point2D,
    Fv: Point2D,
    P: Point2D,
    tolerances: Tolerances = DEFAULT_TOLERANCES,
) -> float:
    """
    Relative focal length from two orthogonal vanishing points.

    Args:
        Fu: First vanishing point (image-plane).
        Fv: Second vanishing point (image-plane).
        P: Principal point (image-plane).
        tolerances: line_epsilon guards coincident vanishing points.

    Returns:
        float: Relative focal length f > 0.

    Raises:
        NonPositiveFocalLengthSquaredError: If f^2 <= 0.
        DegenerateLinesError: If the vanishing points coincide.
        CoordinateFrameError: If the points use different frames.

    Example:
        >>> compute_focal_length(Point2D.image_plane(-1, 0),
        ...                      Point2D.image_plane(1, 0),
        ...                      Point2D.image_plane(0, 0))
        1.0
    """
    direction = Fv - Fu
    length = direction.length
    if length < tolerances.line_epsilon:
        raise DegenerateLinesError("Vanishing points coincide")

    direction = direction.scaled(1.0 / length)
    Puv = Fu + direction.scaled((P - Fu).dot(direction))

    f_squared = Fv.distance_to(Puv) * Fu.distance_to(Puv) - P.distance_to(Puv) ** 2
    if f_squared <= 0.0:
        raise NonPositiveFocalLengthSquaredError(f_squared)

    return math.sqrt(f_squared)


def compute_camera_rotation_matrix(
    Fu: Point2D,
    Fv: Point2D,
    f: float,
    P: Point2D,
    tolerances: Tolerances = DEFAULT_TOLERANCES,
) -> Transform:
    """
    Rotation from the vanishing-point basis to camera space.

    Args:
        Fu: First vanishing point (image-plane).
        Fv: Second vanishing point (image-plane).
        f: Relative focal length.
        P: Principal point (image-plane).
        tolerances: vector_epsilon for normalization, orthogonality_epsilon
            for the u.v check.

    Returns:
        Transform: Rotation-only transform with columns u, v, u x v.
    """
    OFu = Vector3D(Fu.x - P.x, Fu.y - P.y, -f)
    OFv = Vector3D(Fv.x - P.x, Fv.y - P.y, -f)

    u = OFu.normalized(tolerances.vector_epsilon)
    v = OFv.normalized(tolerances.vector_epsilon)
    w = u.cross(v)

    R = np.column_stack([u.to_array(), v.to_array(), w.to_array()])

    if abs(u.dot(v)) > tolerances.orthogonality_epsilon:
        logger.warning(
            f"Vanishing directions not orthogonal (u.v = {u.dot(v):.3g}), "
            f"re-orthonormalizing"
        )
        R = nearest_rotation(R)

    return Transform.from_rotation_translation(R)


def axis_assignment_matrix(
    first_axis: Axis,
    second_axis: Axis,
    tolerances: Tolerances = DEFAULT_TOLERANCES,
) -> np.ndarray:
    """
    Signed permutation mapping world axes to the vanishing-point basis.

    Rows are the first axis, the second axis and their cross product.

    Raises:
        InvalidAxisAssignmentError: If the axes are equal or opposite.
    """
    first = Axis.parse(first_axis).vector
    second = Axis.parse(second_axis).vector
    third = first.cross(second)

    if third.length < tolerances.vector_epsilon:
        raise InvalidAxisAssignmentError(
            f"Vanishing point axes must be perpendicular, got "
            f"{Axis.parse(first_axis).value} and {Axis.parse(second_axis).value}"
        )

    A = np.vstack([first.to_array(), second.to_array(), third.to_array()])
    if abs(np.linalg.det(A) - 1.0) > tolerances.orthogonality_epsilon:
        raise InvalidAxisAssignmentError(f"Axis matrix is not a rotation:\n{A}")
    return A


# =============================================================================
# Translation and reference distance
# =============================================================================

def compute_translation_vector(
    origin: Point2D,
    principal_point: Point2D,
    horizontal_fov: float,
    image_width: int,
    image_height: int,
    distance: float = DEFAULT_TRANSLATION_DISTANCE,
) -> np.ndarray:
    """
    Translation placing the world origin on the ray through ``origin``.

    Args:
        origin: Origin control point (image-plane).
        principal_point: Principal point (image-plane).
        horizontal_fov: Horizontal field of view (radians).
        image_width: Image width (pixels).
        image_height: Image height (pixels).
        distance: Default depth of the origin.

    Returns:
        np.ndarray: World origin in camera space (3,).
    """
    k = 1.0 / relative_focal_length_from_fov(image_width, image_height, horizontal_fov)
    return distance * np.array([
        k * (origin.x - principal_point.x),
        k * (origin.y - principal_point.y),
        -1.0,
    ])


def _closest_parameter_on_line(
    line_point: np.ndarray,
    line_direction: np.ndarray,
    ray_origin: np.ndarray,
    ray_direction: np.ndarray,
    epsilon: float,
) -> float:
    # Closest points between two lines, parameter along the first
    w0 = line_point - ray_origin
    b = line_direction @ ray_direction
    d = line_direction @ w0
    e = ray_direction @ w0
    denom = 1.0 - b * b
    if abs(denom) < epsilon:
        raise DegenerateReferenceDistanceError(
            "Reference handle ray is parallel to the reference axis"
        )
    return (b * e - d) / denom


def reference_handle_positions(
    view_transform: Transform,
    intrinsics: RelativeIntrinsics,
    handles: ReferenceDistanceHandles,
    axis: Axis,
    tolerances: Tolerances = DEFAULT_TOLERANCES,
) -> Tuple[Vector3D, Vector3D, Vector3D]:
    """
    World positions of the reference distance control points.

    The anchor is the intersection of its viewing ray with the plane
    through the world origin perpendicular to ``axis``. Each handle is the
    point on the line through the anchor along ``axis`` closest to its
    viewing ray.

    Returns:
        Tuple[Vector3D, Vector3D, Vector3D]: Anchor, first and second handle.

    Raises:
        DegenerateReferenceDistanceError: If a ray is parallel to the plane
            or to the reference line.
    """
    R = view_transform.rotation
    camera_center = -R.T @ view_transform.translation
    normal = Axis.parse(axis).vector.to_array()

    anchor_ray = R.T @ intrinsics.bearing(handles.anchor)
    denom = normal @ anchor_ray
    if abs(denom) < tolerances.reference_distance_epsilon:
        raise DegenerateReferenceDistanceError(
            "Anchor ray is parallel to the reference plane"
        )
    anchor = camera_center + anchor_ray * (-(normal @ camera_center) / denom)

    positions = [Vector3D.from_array(anchor)]
    for handle in (handles.first_handle, handles.second_handle):
        ray = R.T @ intrinsics.bearing(handle)
        s = _closest_parameter_on_line(
            anchor, normal, camera_center, ray, tolerances.reference_distance_epsilon
        )
        positions.append(Vector3D.from_array(anchor + s * normal))

    return positions[0], positions[1], positions[2]


# =============================================================================
# Solver
# =============================================================================

class VanishingPointSolver(LoggerMixin):
    """
    Staged vanishing point calibration.

    The solver walks through the stages of CalibrationStage; ``stage``
    reflects the last stage reached, or FAILED after an error.

    Example:
        >>> solver = VanishingPointSolver(settings, 1920, 1080)
        >>> params = solver.solve(vp1, vp2, None, origin)
        >>> solver.stage
        <CalibrationStage.COMPLETE: 'complete'>
    """

    def __init__(
        self,
        settings: Optional[CalibrationSettings] = None,
        image_width: int = 1,
        image_height: int = 1,
        tolerances: Tolerances = DEFAULT_TOLERANCES,
    ):
        if image_width <= 0 or image_height <= 0:
            raise ValueError(
                f"Image size must be positive, got {image_width}x{image_height}"
            )
        self.settings = settings or CalibrationSettings()
        self.image_width = image_width
        self.image_height = image_height
        self.tolerances = tolerances
        self.stage = CalibrationStage.TWO_VANISHING_POINTS

    def _to_image_plane(self, point: Point2D) -> Point2D:
        return point.to_image_plane(self.image_width, self.image_height)

    def principal_point(
        self,
        vanishing_points: List[Point2D],
    ) -> Point2D:
        """Override from the settings, orthocenter of three VPs, or centre."""
        if self.settings.principal_point is not None:
            return self._to_image_plane(self.settings.principal_point)
        if len(vanishing_points) == 3:
            return triangle_orthocenter(*vanishing_points, tolerances=self.tolerances)
        return Point2D.image_plane(0.0, 0.0)

    def solve(
        self,
        vp1: Point2D,
        vp2: Point2D,
        vp3: Optional[Point2D],
        origin: Point2D,
        reference_handles: Optional[ReferenceDistanceHandles] = None,
    ) -> CameraParameters:
        """
        Run the full calibration.

        Args:
            vp1: First vanishing point.
            vp2: Second vanishing point.
            vp3: Optional third vanishing point (principal point estimate).
            origin: Origin control point.
            reference_handles: Optional reference distance control points.

        Returns:
            CameraParameters: Calibrated camera.

        Raises:
            CalibrationError: With ``stage`` set to the last stage reached.
        """
        self.stage = CalibrationStage.TWO_VANISHING_POINTS
        try:
            return self._solve(vp1, vp2, vp3, origin, reference_handles)
        except CalibrationError as e:
            e.stage = self.stage
            self.logger.warning(f"Calibration failed after {self.stage.value}: {e}")
            self.stage = CalibrationStage.FAILED
            raise

    def _solve(self, vp1, vp2, vp3, origin, reference_handles) -> CameraParameters:
        settings = self.settings
        tol = self.tolerances

        vanishing_points = [self._to_image_plane(vp1), self._to_image_plane(vp2)]
        if vp3 is not None:
            vanishing_points.append(self._to_image_plane(vp3))
        Fu, Fv = vanishing_points[0], vanishing_points[1]

        P = self.principal_point(vanishing_points)
        f = compute_focal_length(Fu, Fv, P, tol)
        self.logger.debug(f"Focal length {f:.6f}, principal point ({P.x:.4f}, {P.y:.4f})")
        self.stage = CalibrationStage.FOCAL_LENGTH_KNOWN

        camera_rotation = compute_camera_rotation_matrix(Fu, Fv, f, P, tol)
        axes = axis_assignment_matrix(settings.first_axis, settings.second_axis, tol)
        rotation = camera_rotation.rotation @ axes
        self.stage = CalibrationStage.ROTATION_KNOWN

        intrinsics = RelativeIntrinsics(f, P, self.image_width, self.image_height)
        translation = compute_translation_vector(
            self._to_image_plane(origin), P, intrinsics.horizontal_fov,
            self.image_width, self.image_height,
        )

        if settings.reference_distance_axis is not None:
            if reference_handles is None:
                self.logger.warning(
                    "Reference distance axis set without handles, keeping default scale"
                )
            else:
                translation = translation * self._reference_scale(
                    Transform.from_rotation_translation(rotation, translation),
                    intrinsics,
                    reference_handles,
                )
        self.stage = CalibrationStage.TRANSLATION_KNOWN

        params = build_camera_parameters(
            rotation, translation, f, P,
            self.image_width, self.image_height,
            vanishing_points=vanishing_points,
            tolerances=tol,
        )
        if settings.scale is not None:
            params = params.scaled(settings.scale)
        if settings.origin_offset is not None:
            params = params.with_origin_at(settings.origin_offset)

        self.stage = CalibrationStage.COMPLETE
        return params

    def _reference_scale(
        self,
        view_transform: Transform,
        intrinsics: RelativeIntrinsics,
        handles: ReferenceDistanceHandles,
    ) -> float:
        _, first, second = reference_handle_positions(
            view_transform,
            intrinsics,
            handles,
            self.settings.reference_distance_axis,
            self.tolerances,
        )
        default_distance = (second - first).length
        if default_distance < self.tolerances.reference_distance_epsilon:
            raise DegenerateReferenceDistanceError(
                f"Reference handles coincide (distance {default_distance:.3g})"
            )
        scale = self.settings.reference_distance / default_distance
        self.logger.debug(f"Reference distance scale {scale:.6f}")
        return scale


def calibrate_from_vanishing_points(
    vp1: Point2D,
    vp2: Point2D,
    vp3: Optional[Point2D],
    origin: Point2D,
    settings: Optional[CalibrationSettings],
    image_width: int,
    image_height: int,
    reference_handles: Optional[ReferenceDistanceHandles] = None,
    tolerances: Tolerances = DEFAULT_TOLERANCES,
) -> CameraParameters:
    """
    Calibrate a camera from two or three vanishing points.

    Points may be given in the relative or the image-plane frame.

    Args:
        vp1: First vanishing point (direction of settings.first_axis).
        vp2: Second vanishing point (direction of settings.second_axis).
        vp3: Optional third vanishing point; with three points the
            principal point is their orthocenter unless overridden.
        origin: Image position of the world origin.
        settings: Axis assignment and optional overrides.
        image_width: Image width (pixels).
        image_height: Image height (pixels).
        reference_handles: Control points for the reference distance.
        tolerances: Numeric thresholds.

    Returns:
        CameraParameters: Calibrated camera.

    Raises:
        CalibrationError: With ``stage`` set to the last stage reached.
    """
    solver = VanishingPointSolver(settings, image_width, image_height, tolerances)
    return solver.solve(vp1, vp2, vp3, origin, reference_handles)
