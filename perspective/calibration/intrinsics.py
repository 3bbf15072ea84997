"""
Relative Camera Intrinsics Module.

Mathematical Background:
========================

The calibration engine works in image-plane units, where the longer image
dimension spans [-1, 1]. The focal length expressed in the same units is
the *relative* focal length f.

Camera space is right-handed, looking down -Z with +Y up. A camera-space
point Q projects to the image plane as

    p = P + f * (Qx / -Qz, Qy / -Qz)

where P is the principal point. The inverse ray through an image point p
is

    r = normalize(px - Px, py - Py, -f)

Field of View:
==============
With aspect ratio r = width / height and the half extent d of the image
along the requested axis (in image-plane units):

    landscape (r >= 1):  d_h = 1      d_v = 1 / r
    portrait  (r <  1):  d_h = r      d_v = 1

    fov = 2 * atan(d / f)
"""

import math
from dataclasses import dataclass

import numpy as np

from ..geometry import CoordinateFrame, Point2D, Vector3D


def _half_extents(image_width: float, image_height: float):
    if image_width <= 0 or image_height <= 0:
        raise ValueError(
            f"Image size must be positive, got {image_width}x{image_height}"
        )
    aspect = image_width / image_height
    if aspect >= 1.0:
        return 1.0, 1.0 / aspect
    return aspect, 1.0


def compute_field_of_view(
    image_width: float,
    image_height: float,
    relative_focal_length: float,
    vertical: bool = False,
) -> float:
    """
    Field of view for a relative focal length.

    Args:
        image_width: Image width (pixels).
        image_height: Image height (pixels).
        relative_focal_length: Focal length in image-plane units.
        vertical: Vertical instead of horizontal FOV.

    Returns:
        float: Field of view in radians.

    Example:
        >>> math.degrees(compute_field_of_view(1920, 1080, 1.0))
        90.0
    """
    half_width, half_height = _half_extents(image_width, image_height)
    d = half_height if vertical else half_width
    return 2.0 * math.atan(d / relative_focal_length)


def relative_focal_length_from_fov(
    image_width: float,
    image_height: float,
    field_of_view: float,
    vertical: bool = False,
) -> float:
    """Inverse of compute_field_of_view."""
    if not 0.0 < field_of_view < math.pi:
        raise ValueError(f"Field of view must be in (0, pi), got {field_of_view}")
    half_width, half_height = _half_extents(image_width, image_height)
    d = half_height if vertical else half_width
    return d / math.tan(0.5 * field_of_view)


@dataclass(frozen=True)
class RelativeIntrinsics:
    """
    Pinhole intrinsics in image-plane units.

    Attributes:
        focal_length: Relative focal length.
        principal_point: Principal point (image-plane frame).
        image_width: Image width in pixels.
        image_height: Image height in pixels.
    """

    focal_length: float
    principal_point: Point2D
    image_width: int
    image_height: int

    def __post_init__(self):
        if self.focal_length <= 0:
            raise ValueError(f"Focal length must be positive, got {self.focal_length}")
        if self.principal_point.frame is not CoordinateFrame.IMAGE_PLANE:
            object.__setattr__(
                self,
                "principal_point",
                self.principal_point.to_image_plane(self.image_width, self.image_height),
            )

    @property
    def horizontal_fov(self) -> float:
        return compute_field_of_view(
            self.image_width, self.image_height, self.focal_length, vertical=False
        )

    @property
    def vertical_fov(self) -> float:
        return compute_field_of_view(
            self.image_width, self.image_height, self.focal_length, vertical=True
        )

    def to_image_plane(self, point: Point2D) -> Point2D:
        return point.to_image_plane(self.image_width, self.image_height)

    def project(self, point_camera: np.ndarray) -> Point2D:
        """
        Project a camera-space point (camera looks down -Z).

        Returns:
            Point2D: Image-plane projection.

        Raises:
            ValueError: If the point is not in front of the camera.
        """
        X, Y, Z = np.asarray(point_camera, dtype=np.float64).flatten()
        if Z >= 0.0:
            raise ValueError(f"Point is behind the camera (z = {Z:.4g})")
        return Point2D.image_plane(
            self.principal_point.x + self.focal_length * X / -Z,
            self.principal_point.y + self.focal_length * Y / -Z,
        )

    def bearing(self, point: Point2D) -> np.ndarray:
        """Unit ray from the camera centre through an image point."""
        point = self.to_image_plane(point)
        ray = np.array([
            point.x - self.principal_point.x,
            point.y - self.principal_point.y,
            -self.focal_length,
        ])
        return ray / np.linalg.norm(ray)

    def unproject(self, point: Point2D, depth: float) -> Vector3D:
        """
        Back-project an image point to the camera-space point at -Z = depth.
        """
        point = self.to_image_plane(point)
        scale = depth / self.focal_length
        return Vector3D(
            (point.x - self.principal_point.x) * scale,
            (point.y - self.principal_point.y) * scale,
            -depth,
        )
