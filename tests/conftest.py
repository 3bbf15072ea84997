"""
Shared fixtures: a synthetic pinhole camera looking at the world origin.

The camera sits at (-4, -5, 3) and looks at the origin with world +Z up,
so both the +X and +Y world directions point away from it and their
vanishing points are well defined.
"""

import numpy as np
import pytest


IMAGE_WIDTH = 1920
IMAGE_HEIGHT = 1080


def look_at_rotation(position, target=(0.0, 0.0, 0.0), up=(0.0, 0.0, 1.0)):
    """World -> camera rotation for a camera looking down -Z at target."""
    position = np.asarray(position, dtype=float)
    forward = np.asarray(target, dtype=float) - position
    forward /= np.linalg.norm(forward)
    right = np.cross(forward, up)
    right /= np.linalg.norm(right)
    camera_up = np.cross(right, forward)
    return np.vstack([right, camera_up, -forward])


class SyntheticCamera:
    """Pinhole camera in image-plane units."""

    def __init__(self, R, t, focal_length, principal_point=(0.0, 0.0),
                 width=IMAGE_WIDTH, height=IMAGE_HEIGHT):
        self.R = np.asarray(R, dtype=float)
        self.t = np.asarray(t, dtype=float)
        self.f = focal_length
        self.pp = np.asarray(principal_point, dtype=float)
        self.width = width
        self.height = height

    def project(self, X):
        """World point(s) -> image-plane coordinates (N, 2)."""
        Q = np.atleast_2d(X) @ self.R.T + self.t
        return self.pp + self.f * Q[:, :2] / -Q[:, 2:3]

    def image_plane_point(self, X):
        from perspective.geometry import Point2D

        x, y = self.project(X)[0]
        return Point2D.image_plane(x, y)

    def relative_point(self, X):
        return self.image_plane_point(X).to_relative(self.width, self.height)

    def segment(self, A, B):
        from perspective.geometry import LineSegment

        return LineSegment(self.relative_point(A), self.relative_point(B))

    def control_state(self, direction, offsets):
        """Two control lines along ``direction`` through the given offsets."""
        from perspective.calibration import VanishingPointControlState

        direction = np.asarray(direction, dtype=float)
        lines = [
            self.segment(np.asarray(o, dtype=float), np.asarray(o, dtype=float) + direction)
            for o in offsets
        ]
        return VanishingPointControlState(lines[0], lines[1])

    def vanishing_point(self, direction):
        from perspective.geometry import Point2D

        d = self.R @ np.asarray(direction, dtype=float)
        x, y = self.pp + self.f * d[:2] / -d[2]
        return Point2D.image_plane(x, y)


@pytest.fixture
def vp_camera():
    """Camera for vanishing point scenes, principal point at the centre."""
    position = np.array([-4.0, -5.0, 3.0])
    R = look_at_rotation(position)
    return SyntheticCamera(R, -R @ position, focal_length=1.2)


@pytest.fixture
def vp_camera_offset_pp():
    """Same pose with the principal point off centre."""
    position = np.array([-4.0, -5.0, 3.0])
    R = look_at_rotation(position)
    return SyntheticCamera(R, -R @ position, focal_length=1.2,
                           principal_point=(0.05, -0.03))


@pytest.fixture
def vp_control_states(vp_camera):
    """Control lines along world +X and +Y."""
    x_state = vp_camera.control_state([1, 0, 0], [[0, 0, 0], [0, 0, 1]])
    y_state = vp_camera.control_state([0, 1, 0], [[0, 0, 0], [0, 0, 1]])
    return [x_state, y_state]


@pytest.fixture
def p3p_camera():
    """Camera for P3P scenes."""
    from scipy.spatial.transform import Rotation

    R = Rotation.from_euler("xyz", [20, -30, 10], degrees=True).as_matrix()
    t = np.array([0.2, -0.1, -6.0])
    return SyntheticCamera(R, t, focal_length=1.5, principal_point=(0.05, -0.02))


@pytest.fixture
def p3p_world_points():
    """Three non-collinear world points and one validation point."""
    return (
        np.array([
            [0.0, 0.0, 0.0],
            [1.0, 0.0, 0.0],
            [0.0, 1.0, 0.0],
        ]),
        np.array([[1.0, 1.0, 0.5]]),
    )


@pytest.fixture
def make_camera():
    """Factory for custom synthetic cameras."""
    return SyntheticCamera
