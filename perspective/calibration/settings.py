"""
Calibration settings and numeric tolerances.

Tolerances are explicit values handed to every solver function instead of
magic numbers buried in the math, so each stage can be exercised in
isolation with its own thresholds.
"""

from dataclasses import dataclass, fields
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import numpy as np

from ..geometry import CoordinateFrame, Point2D, Vector3D
from ..utils.config_loader import DEFAULT_CONFIG_FILE, get_nested, load_config
from ..utils.logger import setup_logger_from_config


class Axis(Enum):
    """Signed world axis a vanishing direction is assigned to."""
    POSITIVE_X = "+x"
    NEGATIVE_X = "-x"
    POSITIVE_Y = "+y"
    NEGATIVE_Y = "-y"
    POSITIVE_Z = "+z"
    NEGATIVE_Z = "-z"

    @property
    def vector(self) -> Vector3D:
        sign = -1.0 if self.value.startswith("-") else 1.0
        index = "xyz".index(self.value[1])
        components = [0.0, 0.0, 0.0]
        components[index] = sign
        return Vector3D(*components)

    @classmethod
    def parse(cls, value: Union[str, "Axis"]) -> "Axis":
        """
        Parse an axis name.

        Accepts 'x', '+x', '-x', 'X', 'positive_x', 'negative_x' and enum
        instances.

        Raises:
            ValueError: For unknown names.
        """
        if isinstance(value, cls):
            return value

        name = str(value).strip().lower()
        if name.startswith("positive_"):
            name = "+" + name[len("positive_"):]
        elif name.startswith("negative_"):
            name = "-" + name[len("negative_"):]
        elif len(name) == 1:
            name = "+" + name

        for axis in cls:
            if axis.value == name:
                return axis
        raise ValueError(f"Unknown axis: {value}. Valid: {[a.value for a in cls]}")


@dataclass(frozen=True)
class Tolerances:
    """
    Numeric thresholds for degeneracy checks.

    Attributes:
        line_epsilon: Minimum segment length and line-intersection
            denominator.
        vector_epsilon: Minimum length of a vector that gets normalized.
        triangle_epsilon: Minimum squared sine of a vanishing point
            triangle angle, and minimum side length.
        right_angle_epsilon: |cos| below which a triangle angle counts as
            right.
        orthogonality_epsilon: Allowed drift of a rotation from SO(3)
            before it is re-orthonormalized.
        collinearity_epsilon: Minimum sine of the angle at P1 between the
            P3P world points.
        polynomial_epsilon: Relative threshold for leading coefficients
            and discriminants in the closed-form root solvers.
        depth_epsilon: Minimum accepted P3P depth.
        depth_residual_epsilon: Largest residual of the P3P distance
            equations (unit-scaled world) for a depth triple to count as
            a solution.
        reference_distance_epsilon: Minimum handle distance under the
            default scale.
    """

    line_epsilon: float = 1e-8
    vector_epsilon: float = 1e-12
    triangle_epsilon: float = 1e-9
    right_angle_epsilon: float = 1e-12
    orthogonality_epsilon: float = 1e-6
    collinearity_epsilon: float = 1e-6
    polynomial_epsilon: float = 1e-12
    depth_epsilon: float = 1e-10
    depth_residual_epsilon: float = 1e-6
    reference_distance_epsilon: float = 1e-10

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]]) -> "Tolerances":
        """Build from the ``tolerances`` section of a config dict."""
        config = config or {}
        known = {f.name for f in fields(cls)}
        unknown = set(config) - known
        if unknown:
            raise ValueError(f"Unknown tolerance keys: {sorted(unknown)}")
        return cls(**{key: float(value) for key, value in config.items()})


DEFAULT_TOLERANCES = Tolerances()


@dataclass(frozen=True)
class ReferenceDistanceHandles:
    """
    Control points used to fix the scene scale.

    The anchor lies on the world plane through the origin perpendicular to
    the reference axis; both handles lie on the line through the anchor
    parallel to the reference axis.

    Attributes:
        anchor: Image position of the anchor point.
        first_handle: Image position of the first handle.
        second_handle: Image position of the second handle.
    """

    anchor: Point2D
    first_handle: Point2D
    second_handle: Point2D


@dataclass(frozen=True)
class CalibrationSettings:
    """
    User settings for a calibration request.

    Attributes:
        first_axis: World axis of the first vanishing point.
        second_axis: World axis of the second vanishing point.
        principal_point: Optional principal point override. Ignored when
            None, in which case the orthocenter of three vanishing points
            (or the image centre) is used.
        reference_distance_axis: Optional world axis the reference
            distance is measured along.
        reference_distance: Real-world length between the two reference
            handles.
        origin_offset: Optional world coordinates assigned to the origin
            control point.
        scale: Optional custom scale dividing the default translation.
        refine_iterations: Gauss-Newton iterations for P3P depths.
    """

    first_axis: Axis = Axis.POSITIVE_X
    second_axis: Axis = Axis.POSITIVE_Y
    principal_point: Optional[Point2D] = None
    reference_distance_axis: Optional[Axis] = None
    reference_distance: float = 1.0
    origin_offset: Optional[Tuple[float, float, float]] = None
    scale: Optional[float] = None
    refine_iterations: int = 5

    def __post_init__(self):
        object.__setattr__(self, "first_axis", Axis.parse(self.first_axis))
        object.__setattr__(self, "second_axis", Axis.parse(self.second_axis))
        if self.reference_distance_axis is not None:
            object.__setattr__(
                self, "reference_distance_axis", Axis.parse(self.reference_distance_axis)
            )
        if self.reference_distance <= 0:
            raise ValueError(
                f"reference_distance must be positive, got {self.reference_distance}"
            )
        if self.scale is not None and self.scale <= 0:
            raise ValueError(f"scale must be positive, got {self.scale}")
        if self.refine_iterations < 0:
            raise ValueError("refine_iterations must be >= 0")

    @property
    def third_axis(self) -> Vector3D:
        """Third world axis, first x second."""
        return self.first_axis.vector.cross(self.second_axis.vector)

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]]) -> "CalibrationSettings":
        """
        Build from the ``calibration`` section of a config dict.

        Expected layout::

            vanishing_point_axes: ["+x", "+y"]
            principal_point: null | {x: 0.5, y: 0.5, frame: relative}
            reference_distance: {axis: null | "+z", value: 1.0}
            origin_offset: null | [x, y, z]
            scale: null | float
            p3p: {refine_iterations: 5}
        """
        config = config or {}
        axes = config.get("vanishing_point_axes", ["+x", "+y"])
        if len(axes) != 2:
            raise ValueError(f"Expected two vanishing point axes, got {axes}")

        principal_point = None
        pp_config = config.get("principal_point")
        if pp_config is not None:
            frame = CoordinateFrame(pp_config.get("frame", CoordinateFrame.RELATIVE.value))
            principal_point = Point2D(float(pp_config["x"]), float(pp_config["y"]), frame)

        origin_offset = config.get("origin_offset")
        if origin_offset is not None:
            origin_offset = tuple(float(v) for v in np.asarray(origin_offset).flatten())
            if len(origin_offset) != 3:
                raise ValueError(f"origin_offset needs 3 values, got {origin_offset}")

        scale = config.get("scale")
        reference_axis = get_nested(config, "reference_distance.axis")

        return cls(
            first_axis=Axis.parse(axes[0]),
            second_axis=Axis.parse(axes[1]),
            principal_point=principal_point,
            reference_distance_axis=Axis.parse(reference_axis) if reference_axis else None,
            reference_distance=float(get_nested(config, "reference_distance.value", 1.0)),
            origin_offset=origin_offset,
            scale=float(scale) if scale is not None else None,
            refine_iterations=int(get_nested(config, "p3p.refine_iterations", 5)),
        )


def load_calibration_settings(
    config_path: Union[str, Path] = DEFAULT_CONFIG_FILE,
    overrides: Optional[Dict[str, Any]] = None,
) -> Tuple[CalibrationSettings, Tolerances]:
    """
    Load settings and tolerances from a YAML file.

    A ``logging`` section, when present, configures the package logger.

    Args:
        config_path: Config file path.
        overrides: Optional nested overrides merged on top.

    Returns:
        Tuple[CalibrationSettings, Tolerances]
    """
    config = load_config(config_path, overrides)
    if "logging" in config:
        setup_logger_from_config(config["logging"])
    settings = CalibrationSettings.from_config(config.get("calibration"))
    tolerances = Tolerances.from_config(config.get("tolerances"))
    return settings, tolerances
