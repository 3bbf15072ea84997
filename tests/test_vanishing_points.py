"""
Tests for the vanishing point resolver.

Test Coverage:
- Control lines of a synthetic camera converge at the true vanishing point
- Batch failure names the failing control state
- Orthocenter: equilateral, right-angled and collinear triangles
"""

import math

import numpy as np
import pytest


# =============================================================================
# Test compute_vanishing_points
# =============================================================================

class TestComputeVanishingPoints:
    """Tests for line pairs -> vanishing points."""

    def test_matches_synthetic_camera(self, vp_camera, vp_control_states):
        """Intersections equal the projections of the world axes."""
        from perspective.calibration import compute_vanishing_points

        vps = compute_vanishing_points(vp_control_states, 1920, 1080)

        for vp, axis in zip(vps, ([1, 0, 0], [0, 1, 0])):
            expected = vp_camera.vanishing_point(axis)
            assert np.allclose(vp.to_array(), expected.to_array())

    def test_results_are_image_plane(self, vp_control_states):
        from perspective.calibration import compute_vanishing_points
        from perspective.geometry import CoordinateFrame

        vps = compute_vanishing_points(vp_control_states, 1920, 1080)

        assert len(vps) == 2
        assert all(vp.frame is CoordinateFrame.IMAGE_PLANE for vp in vps)

    def test_failure_names_index(self, vp_control_states):
        """A parallel pair fails the whole batch with its index."""
        from perspective.calibration import (
            VanishingPointControlState,
            compute_vanishing_points,
        )
        from perspective.errors import DegenerateLinesError, VanishingPointError
        from perspective.geometry import LineSegment

        parallel = VanishingPointControlState(
            LineSegment.from_tuples((0.1, 0.1), (0.4, 0.2)),
            LineSegment.from_tuples((0.1, 0.5), (0.4, 0.6)),
        )
        states = [vp_control_states[0], parallel, vp_control_states[1]]

        with pytest.raises(VanishingPointError) as exc_info:
            compute_vanishing_points(states, 1920, 1080)

        assert exc_info.value.index == 1
        assert isinstance(exc_info.value.cause, DegenerateLinesError)

    def test_control_lines_must_be_relative(self):
        from perspective.calibration import VanishingPointControlState
        from perspective.geometry import CoordinateFrame, LineSegment

        frame = CoordinateFrame.IMAGE_PLANE
        with pytest.raises(ValueError):
            VanishingPointControlState(
                LineSegment.from_tuples((0, 0), (1, 0), frame),
                LineSegment.from_tuples((0, 1), (1, 0), frame),
            )


# =============================================================================
# Test triangle_orthocenter
# =============================================================================

class TestTriangleOrthocenter:
    """Tests for the principal point estimate."""

    def test_equilateral_is_centroid(self):
        """Orthocenter of an equilateral triangle equals its centroid."""
        from perspective.calibration import triangle_orthocenter
        from perspective.geometry import Point2D

        A = Point2D.image_plane(-1.0, -0.5)
        B = Point2D.image_plane(1.0, -0.5)
        C = Point2D.image_plane(0.0, -0.5 + math.sqrt(3.0))

        H = triangle_orthocenter(A, B, C)

        assert np.isclose(H.x, (A.x + B.x + C.x) / 3.0)
        assert np.isclose(H.y, (A.y + B.y + C.y) / 3.0)

    def test_right_angle_vertex(self):
        """A right angle puts the orthocenter on that vertex."""
        from perspective.calibration import triangle_orthocenter
        from perspective.geometry import Point2D

        A = Point2D.image_plane(0.0, 0.0)
        B = Point2D.image_plane(1.0, 0.0)
        C = Point2D.image_plane(0.0, 1.0)

        H = triangle_orthocenter(A, B, C)

        assert np.isclose(H.x, 0.0)
        assert np.isclose(H.y, 0.0)

    def test_obtuse_triangle(self):
        """Obtuse triangles have the orthocenter outside."""
        from perspective.calibration import triangle_orthocenter
        from perspective.geometry import Point2D

        # Altitudes: x = 1 from C, and from A perpendicular to BC
        A = Point2D.image_plane(0.0, 0.0)
        B = Point2D.image_plane(4.0, 0.0)
        C = Point2D.image_plane(1.0, 1.0)

        H = triangle_orthocenter(A, B, C)

        # Altitude from A: direction perpendicular to BC = (-3, 1) -> (1, 3)
        assert np.isclose(H.x, 1.0)
        assert np.isclose(H.y, 3.0)

    def test_recovers_principal_point(self, vp_camera_offset_pp):
        """Three orthogonal vanishing points give the principal point."""
        from perspective.calibration import triangle_orthocenter

        vps = [vp_camera_offset_pp.vanishing_point(axis) for axis in np.eye(3)]

        H = triangle_orthocenter(*vps)

        assert np.allclose(H.to_array(), vp_camera_offset_pp.pp)

    def test_collinear_raises(self):
        """Collinear vanishing points fail instead of producing NaN."""
        from perspective.calibration import triangle_orthocenter
        from perspective.errors import DegenerateTriangleError
        from perspective.geometry import Point2D

        with pytest.raises(DegenerateTriangleError):
            triangle_orthocenter(
                Point2D.image_plane(0.0, 0.0),
                Point2D.image_plane(1.0, 1.0),
                Point2D.image_plane(2.0, 2.0),
            )

    def test_coincident_vertices_raise(self):
        from perspective.calibration import triangle_orthocenter
        from perspective.errors import DegenerateTriangleError
        from perspective.geometry import Point2D

        p = Point2D.image_plane(0.3, 0.3)
        with pytest.raises(DegenerateTriangleError):
            triangle_orthocenter(p, p, Point2D.image_plane(1.0, 0.0))
