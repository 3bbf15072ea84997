"""
Camera Parameters Assembly Module.

Combines a solver's rotation and translation with the intrinsics into the
immutable CameraParameters record handed to renderers and exporters.

Mathematical Background:
========================

View transform (world -> camera) and camera transform (camera -> world):

    V = | R  t |        C = V^(-1) = | R^T  -R^T t |
        | 0  1 |                     |  0      1   |

The camera position in world space is the translation of C.

Projection matrix (OpenGL style, unit aspect because image-plane units
are isotropic), with the principal point shifting the image centre:

    | f  0  -Px            0           |
    | 0  f  -Py            0           |
    | 0  0  (n+F)/(n-F)    2nF/(n-F)   |
    | 0  0  -1             0           |

so that a world point W maps to the image plane as

    p = P + f * (Qx / -Qz, Qy / -Qz),    Q = V W
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Sequence, Tuple

import numpy as np
from scipy.spatial.transform import Rotation

from ..geometry import CoordinateFrame, Point2D, Transform, Vector3D, nearest_rotation
from ..utils.logger import get_logger
from .intrinsics import RelativeIntrinsics, compute_field_of_view
from .settings import DEFAULT_TOLERANCES, Tolerances

logger = get_logger(__name__)


@dataclass(frozen=True)
class CameraParameters:
    """
    Result of a successful calibration.

    Attributes:
        principal_point: Principal point (image-plane frame).
        horizontal_field_of_view: Horizontal FOV (radians).
        vertical_field_of_view: Vertical FOV (radians).
        relative_focal_length: Focal length in image-plane units.
        view_transform: World -> camera transform.
        camera_transform: Camera -> world transform.
        image_width: Image width (pixels).
        image_height: Image height (pixels).
        vanishing_points: Vanishing points used (empty for P3P).
    """

    principal_point: Point2D
    horizontal_field_of_view: float
    vertical_field_of_view: float
    relative_focal_length: float
    view_transform: Transform
    camera_transform: Transform
    image_width: int
    image_height: int
    vanishing_points: Tuple[Point2D, ...] = field(default_factory=tuple)

    @property
    def intrinsics(self) -> RelativeIntrinsics:
        return RelativeIntrinsics(
            self.relative_focal_length,
            self.principal_point,
            self.image_width,
            self.image_height,
        )

    @property
    def rotation(self) -> np.ndarray:
        """World -> camera rotation."""
        return self.view_transform.rotation

    @property
    def translation(self) -> np.ndarray:
        """World origin in camera space."""
        return self.view_transform.translation

    @property
    def camera_position(self) -> Vector3D:
        """Camera centre in world space."""
        return Vector3D.from_array(self.camera_transform.translation)

    def camera_orientation(self) -> Rotation:
        """Camera -> world rotation as a scipy Rotation."""
        return Rotation.from_matrix(self.camera_transform.rotation)

    def rotation_quaternion(self) -> np.ndarray:
        """Camera -> world rotation as (w, x, y, z)."""
        x, y, z, w = self.camera_orientation().as_quat()
        return np.array([w, x, y, z])

    def euler_angles(self, seq: str = "xyz", degrees: bool = True) -> np.ndarray:
        """Camera -> world rotation as Euler angles."""
        return self.camera_orientation().as_euler(seq, degrees=degrees)

    def projection_matrix(self, near: float = 0.01, far: float = 10.0) -> np.ndarray:
        """
        4x4 OpenGL-style projection with principal point offset.

        Args:
            near: Near clipping distance.
            far: Far clipping distance.

        Returns:
            np.ndarray: 4x4 projection matrix.
        """
        if not 0.0 < near < far:
            raise ValueError(f"Expected 0 < near < far, got near={near}, far={far}")

        f = self.relative_focal_length
        P = np.zeros((4, 4), dtype=np.float64)
        P[0, 0] = f
        P[1, 1] = f
        P[0, 2] = -self.principal_point.x
        P[1, 2] = -self.principal_point.y
        P[2, 2] = (near + far) / (near - far)
        P[2, 3] = 2.0 * near * far / (near - far)
        P[3, 2] = -1.0
        return P

    def project(self, world_point: Vector3D) -> Point2D:
        """
        Project a world point to image-plane coordinates.

        Raises:
            ValueError: If the point is behind the camera.
        """
        camera_point = self.view_transform.transform_point(world_point)
        return self.intrinsics.project(camera_point.to_array())

    def project_relative(self, world_point: Vector3D) -> Point2D:
        """Project a world point to relative (0..1) image coordinates."""
        return self.project(world_point).to_relative(self.image_width, self.image_height)

    def with_view_transform(self, view_transform: Transform) -> "CameraParameters":
        return CameraParameters(
            principal_point=self.principal_point,
            horizontal_field_of_view=self.horizontal_field_of_view,
            vertical_field_of_view=self.vertical_field_of_view,
            relative_focal_length=self.relative_focal_length,
            view_transform=view_transform,
            camera_transform=view_transform.inverted(),
            image_width=self.image_width,
            image_height=self.image_height,
            vanishing_points=self.vanishing_points,
        )

    def scaled(self, scale: float) -> "CameraParameters":
        """
        Change world units so that ``scale`` current units become one.

        Only the translation changes; it is divided by ``scale``.
        """
        if scale <= 0:
            raise ValueError(f"Scale must be positive, got {scale}")
        view = self.view_transform
        return self.with_view_transform(view.with_translation(view.translation / scale))

    def with_origin_at(self, coordinates: Sequence[float]) -> "CameraParameters":
        """
        Re-label world coordinates so the current origin sits at
        ``coordinates``.
        """
        offset = np.asarray(coordinates, dtype=np.float64).flatten()
        shift = Transform.from_translation(-offset)
        return self.with_view_transform(self.view_transform @ shift)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert to dictionary for export collaborators.
        """
        return {
            "principal_point": {
                "x": self.principal_point.x,
                "y": self.principal_point.y,
            },
            "horizontal_field_of_view": self.horizontal_field_of_view,
            "vertical_field_of_view": self.vertical_field_of_view,
            "relative_focal_length": self.relative_focal_length,
            "camera_transform": {"rows": self.camera_transform.to_rows()},
            "view_transform": {"rows": self.view_transform.to_rows()},
            "image_width": self.image_width,
            "image_height": self.image_height,
            "vanishing_points": [
                {"x": p.x, "y": p.y} for p in self.vanishing_points
            ],
        }


def build_camera_parameters(
    rotation: np.ndarray,
    translation: Sequence[float],
    relative_focal_length: float,
    principal_point: Point2D,
    image_width: int,
    image_height: int,
    vanishing_points: Sequence[Point2D] = (),
    tolerances: Tolerances = DEFAULT_TOLERANCES,
) -> CameraParameters:
    """
    Assemble CameraParameters from solver output.

    The rotation is checked against SO(3) and re-orthonormalized when
    numeric drift exceeds ``tolerances.orthogonality_epsilon``.

    Args:
        rotation: 3x3 world -> camera rotation.
        translation: World origin in camera space (3,).
        relative_focal_length: Focal length in image-plane units.
        principal_point: Principal point (image-plane or relative frame).
        image_width: Image width (pixels).
        image_height: Image height (pixels).
        vanishing_points: Vanishing points used by the solver.
        tolerances: Numeric thresholds.

    Returns:
        CameraParameters: Immutable calibration result.
    """
    if relative_focal_length <= 0:
        raise ValueError(f"Focal length must be positive, got {relative_focal_length}")

    view_transform = Transform.from_rotation_translation(rotation, translation)
    if not view_transform.is_orthonormal(tolerances.orthogonality_epsilon):
        logger.warning("Rotation drifted from SO(3), re-orthonormalizing")
        view_transform = Transform.from_rotation_translation(
            nearest_rotation(rotation), translation
        )

    if principal_point.frame is not CoordinateFrame.IMAGE_PLANE:
        principal_point = principal_point.to_image_plane(image_width, image_height)

    return CameraParameters(
        principal_point=principal_point,
        horizontal_field_of_view=compute_field_of_view(
            image_width, image_height, relative_focal_length, vertical=False
        ),
        vertical_field_of_view=compute_field_of_view(
            image_width, image_height, relative_focal_length, vertical=True
        ),
        relative_focal_length=relative_focal_length,
        view_transform=view_transform,
        camera_transform=view_transform.inverted(),
        image_width=image_width,
        image_height=image_height,
        vanishing_points=tuple(vanishing_points),
    )
