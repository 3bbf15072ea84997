"""
Error taxonomy for the calibration engine.

Every failure raised by a solver is recoverable: it aborts the current
calibration call and is handed back to the caller, which decides how to
prompt the user (add clearer control lines, pick other world points, ...).

Hierarchy:
    CalibrationError (ValueError)
    ├── DegenerateGeometryError
    │   ├── DegenerateLinesError
    │   ├── DegenerateTriangleError
    │   ├── DegenerateVectorError
    │   └── DegenerateReferenceDistanceError
    ├── VanishingPointError
    ├── NonPositiveFocalLengthSquaredError
    ├── InvalidAxisAssignmentError
    └── P3PError
        ├── CollinearWorldPointsError
        ├── NoRealRootsError
        └── AllCandidatesBehindCameraError

    CoordinateFrameError (ValueError)
"""

from typing import Optional


class CalibrationError(ValueError):
    """Base class for all calibration failures."""

    def __init__(self, message: str):
        super().__init__(message)
        # Set by the vanishing point solver to the stage that failed
        self.stage = None


class CoordinateFrameError(ValueError):
    """Points expressed in different coordinate frames were mixed."""


# =============================================================================
# Degenerate geometry
# =============================================================================

class DegenerateGeometryError(CalibrationError):
    """Inputs are too close to a singular configuration."""


class DegenerateLinesError(DegenerateGeometryError):
    """A segment is too short or the two lines are parallel."""


class DegenerateTriangleError(DegenerateGeometryError):
    """Vanishing point triangle is collinear or has a vanishing side."""


class DegenerateVectorError(DegenerateGeometryError):
    """Attempted to normalize a (near) zero-length vector."""


class DegenerateReferenceDistanceError(DegenerateGeometryError):
    """Reference distance handles coincide under the default scale."""


# =============================================================================
# Vanishing point calibration
# =============================================================================

class VanishingPointError(CalibrationError):
    """
    A vanishing point could not be computed from its control lines.

    Attributes:
        index: Index of the failing control state.
        cause: Underlying degenerate-lines error.
    """

    def __init__(self, index: int, cause: Optional[Exception] = None):
        message = f"Vanishing point {index} could not be computed"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)
        self.index = index
        self.cause = cause


class NonPositiveFocalLengthSquaredError(CalibrationError):
    """Vanishing points and principal point imply f^2 <= 0."""

    def __init__(self, f_squared: float):
        super().__init__(
            f"Inconsistent vanishing point configuration (f^2 = {f_squared:.6g})"
        )
        self.f_squared = f_squared


class InvalidAxisAssignmentError(CalibrationError):
    """The two vanishing point axes do not span a valid basis."""


# =============================================================================
# Perspective-3-point
# =============================================================================

class P3PError(CalibrationError):
    """Base class for P3P pose solver failures."""


class CollinearWorldPointsError(P3PError):
    """The three world points are (nearly) collinear."""


class NoRealRootsError(P3PError):
    """The Lambda Twist polynomials produced no real solution."""


class AllCandidatesBehindCameraError(P3PError):
    """Every candidate pose placed a point behind the camera."""
