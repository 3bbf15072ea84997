"""
Single-view camera calibration.

This package recovers a pinhole camera's focal length, principal point,
rotation and translation from one photograph, either from vanishing
points of user-marked parallel lines or from three known world points.

Classes:
    CameraParameters: Immutable calibration result.
    CameraCalibrator: Runs calibration requests with fixed settings.
    CalibrationSettings: Axis assignment and optional overrides.
    Tolerances: Numeric thresholds for degeneracy checks.
    VanishingPointControlState: Two control lines for one vanishing point.
    VanishingPointSolver: Staged vanishing point calibration.
    PoseEstimate: Pose selected by the P3P solver.

Standalone Functions:
    calibrate: Entry point for both strategies.
    compute_vanishing_points: Control lines to image-plane vanishing points.
    triangle_orthocenter: Principal point from three vanishing points.
    calibrate_from_vanishing_points: Vanishing point calibration.
    compute_focal_length: Focal length from two vanishing points.
    compute_field_of_view: Field of view for a relative focal length.
    solve_p3p: Lambda Twist perspective-three-point pose.
    solve_cubic / solve_quadratic: Closed-form real polynomial roots.

Example Usage:
    >>> from perspective.calibration import (
    ...     CalibrationMode, VanishingPointInputs, calibrate,
    ... )
    >>> inputs = VanishingPointInputs(control_states, origin, 1920, 1080)
    >>> params = calibrate(CalibrationMode.VANISHING_POINTS, inputs)
    >>> params.horizontal_field_of_view
"""

from .calibrate import (
    CalibrationMode,
    CameraCalibrator,
    P3PInputs,
    VanishingPointInputs,
    calibrate,
)
from .camera_parameters import CameraParameters, build_camera_parameters
from .intrinsics import (
    RelativeIntrinsics,
    compute_field_of_view,
    relative_focal_length_from_fov,
)
from .p3p import PoseEstimate, bearing_vectors, p3p_candidates, solve_p3p
from .polynomial import solve_cubic, solve_quadratic
from .settings import (
    DEFAULT_TOLERANCES,
    Axis,
    CalibrationSettings,
    ReferenceDistanceHandles,
    Tolerances,
    load_calibration_settings,
)
from .vanishing_point_solver import (
    CalibrationStage,
    VanishingPointSolver,
    axis_assignment_matrix,
    calibrate_from_vanishing_points,
    compute_camera_rotation_matrix,
    compute_focal_length,
    compute_translation_vector,
    reference_handle_positions,
)
from .vanishing_points import (
    VanishingPointControlState,
    compute_vanishing_points,
    triangle_orthocenter,
)

__all__ = [
    # Classes
    "Axis",
    "CalibrationMode",
    "CalibrationSettings",
    "CalibrationStage",
    "CameraCalibrator",
    "CameraParameters",
    "P3PInputs",
    "PoseEstimate",
    "ReferenceDistanceHandles",
    "RelativeIntrinsics",
    "Tolerances",
    "VanishingPointControlState",
    "VanishingPointInputs",
    "VanishingPointSolver",
    "DEFAULT_TOLERANCES",
    # Standalone functions
    "axis_assignment_matrix",
    "bearing_vectors",
    "build_camera_parameters",
    "calibrate",
    "calibrate_from_vanishing_points",
    "compute_camera_rotation_matrix",
    "compute_field_of_view",
    "compute_focal_length",
    "compute_translation_vector",
    "compute_vanishing_points",
    "load_calibration_settings",
    "p3p_candidates",
    "reference_handle_positions",
    "relative_focal_length_from_fov",
    "solve_cubic",
    "solve_p3p",
    "solve_quadratic",
    "triangle_orthocenter",
]
