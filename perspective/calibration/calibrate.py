"""
Calibration entry point.

Two interchangeable strategies recover a CameraParameters record from a
single image:

    VANISHING_POINTS: two or three pairs of control lines plus an origin
                      control point (focal length and pose unknown)
    P3P:              three world/image correspondences with known
                      intrinsics (pose unknown)

Usage:
    >>> inputs = VanishingPointInputs(control_states, origin, 1920, 1080)
    >>> params = calibrate(CalibrationMode.VANISHING_POINTS, inputs, settings)
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence, Union

import numpy as np

from ..geometry import CoordinateFrame, Point2D
from ..utils.logger import LoggerMixin, log_function_call
from .camera_parameters import CameraParameters, build_camera_parameters
from .intrinsics import relative_focal_length_from_fov
from .p3p import solve_p3p
from .settings import (
    DEFAULT_TOLERANCES,
    CalibrationSettings,
    ReferenceDistanceHandles,
    Tolerances,
)
from .vanishing_point_solver import calibrate_from_vanishing_points
from .vanishing_points import VanishingPointControlState, compute_vanishing_points


class CalibrationMode(Enum):
    """Calibration strategy."""
    VANISHING_POINTS = "vanishing_points"
    P3P = "p3p"


@dataclass(frozen=True)
class VanishingPointInputs:
    """
    Control points for a vanishing point calibration.

    Attributes:
        control_states: Two or three line pairs (relative frame).
        origin: Image position of the world origin.
        image_width: Image width (pixels).
        image_height: Image height (pixels).
        reference_handles: Optional reference distance control points.
    """

    control_states: Sequence[VanishingPointControlState]
    origin: Point2D
    image_width: int
    image_height: int
    reference_handles: Optional[ReferenceDistanceHandles] = None

    def __post_init__(self):
        if len(self.control_states) not in (2, 3):
            raise ValueError(
                f"Expected 2 or 3 control states, got {len(self.control_states)}"
            )
        object.__setattr__(self, "control_states", tuple(self.control_states))


@dataclass(frozen=True, eq=False)
class P3PInputs:
    """
    Correspondences for a P3P calibration.

    Exactly one of ``focal_length`` (relative) and ``field_of_view``
    (horizontal, radians) must be given.

    Attributes:
        world_points: (3, 3) world points.
        image_points: Their image positions (relative or image-plane).
        image_width: Image width (pixels).
        image_height: Image height (pixels).
        focal_length: Relative focal length.
        field_of_view: Horizontal field of view (radians).
        principal_point: Principal point, falls back to the settings
            override and then the image centre.
        validation_world_points: Optional (N, 3) extra world points.
        validation_image_points: Their image positions.
    """

    world_points: np.ndarray
    image_points: Sequence[Point2D]
    image_width: int
    image_height: int
    focal_length: Optional[float] = None
    field_of_view: Optional[float] = None
    principal_point: Optional[Point2D] = None
    validation_world_points: Optional[np.ndarray] = None
    validation_image_points: Optional[Sequence[Point2D]] = None

    def __post_init__(self):
        if (self.focal_length is None) == (self.field_of_view is None):
            raise ValueError("Give exactly one of focal_length and field_of_view")
        if len(self.image_points) != 3:
            raise ValueError(f"Expected 3 image points, got {len(self.image_points)}")

    def relative_focal_length(self) -> float:
        if self.focal_length is not None:
            return float(self.focal_length)
        return relative_focal_length_from_fov(
            self.image_width, self.image_height, self.field_of_view
        )


CalibrationInputs = Union[VanishingPointInputs, P3PInputs]


class CameraCalibrator(LoggerMixin):
    """
    Runs calibration requests with fixed settings and tolerances.

    Each call works on its own intermediate values, so one calibrator can
    serve any number of requests.

    Example:
        >>> calibrator = CameraCalibrator(settings)
        >>> params = calibrator.calibrate(CalibrationMode.P3P, p3p_inputs)
    """

    def __init__(
        self,
        settings: Optional[CalibrationSettings] = None,
        tolerances: Tolerances = DEFAULT_TOLERANCES,
    ):
        self.settings = settings or CalibrationSettings()
        self.tolerances = tolerances

    def calibrate(
        self,
        mode: Union[CalibrationMode, str],
        inputs: CalibrationInputs,
    ) -> CameraParameters:
        """
        Calibrate with the given strategy.

        Raises:
            CalibrationError: Any solver failure.
            ValueError: If the inputs do not match the mode.
        """
        mode = CalibrationMode(mode)

        if mode is CalibrationMode.VANISHING_POINTS:
            if not isinstance(inputs, VanishingPointInputs):
                raise ValueError("Vanishing point mode needs VanishingPointInputs")
            return self.from_vanishing_points(inputs)

        if not isinstance(inputs, P3PInputs):
            raise ValueError("P3P mode needs P3PInputs")
        return self.from_p3p(inputs)

    def from_vanishing_points(self, inputs: VanishingPointInputs) -> CameraParameters:
        vanishing_points = compute_vanishing_points(
            inputs.control_states,
            inputs.image_width,
            inputs.image_height,
            self.tolerances,
        )
        self.logger.debug(f"Calibrating from {len(vanishing_points)} vanishing points")

        vp3 = vanishing_points[2] if len(vanishing_points) == 3 else None
        return calibrate_from_vanishing_points(
            vanishing_points[0],
            vanishing_points[1],
            vp3,
            inputs.origin,
            self.settings,
            inputs.image_width,
            inputs.image_height,
            reference_handles=inputs.reference_handles,
            tolerances=self.tolerances,
        )

    def from_p3p(self, inputs: P3PInputs) -> CameraParameters:
        w, h = inputs.image_width, inputs.image_height

        def to_image_plane(points):
            if points is None:
                return None
            return [p.to_image_plane(w, h) for p in points]

        principal_point = inputs.principal_point or self.settings.principal_point
        if principal_point is None:
            principal_point = Point2D(0.0, 0.0, CoordinateFrame.IMAGE_PLANE)
        principal_point = principal_point.to_image_plane(w, h)

        f = inputs.relative_focal_length()
        pose = solve_p3p(
            inputs.world_points,
            to_image_plane(inputs.image_points),
            f,
            principal_point,
            validation_world_points=inputs.validation_world_points,
            validation_image_points=to_image_plane(inputs.validation_image_points),
            refine_iterations=self.settings.refine_iterations,
            tolerances=self.tolerances,
        )
        self.logger.debug(f"P3P pose error {pose.reprojection_error:.3g}")

        return build_camera_parameters(
            pose.rotation,
            pose.translation,
            f,
            principal_point,
            w,
            h,
            tolerances=self.tolerances,
        )


@log_function_call()
def calibrate(
    mode: Union[CalibrationMode, str],
    inputs: CalibrationInputs,
    settings: Optional[CalibrationSettings] = None,
    tolerances: Tolerances = DEFAULT_TOLERANCES,
) -> CameraParameters:
    """
    Calibrate a camera from a single image.

    Args:
        mode: VANISHING_POINTS or P3P (enum or its value).
        inputs: VanishingPointInputs or P3PInputs matching the mode.
        settings: Axis assignment and optional overrides.
        tolerances: Numeric thresholds.

    Returns:
        CameraParameters: Calibrated camera.

    Raises:
        CalibrationError: Any solver failure, never a partial result.
    """
    return CameraCalibrator(settings, tolerances).calibrate(mode, inputs)
