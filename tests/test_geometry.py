"""
Tests for geometry primitives.

Test Coverage:
- Frame conversions: relative <-> image-plane for landscape and portrait
- Frame safety: mixing frames raises
- Line intersection: known scenario, zero-length and parallel segments
- Vector3D: normalization, cross product
- Transform: inverse, composition order, immutability
"""

import numpy as np
import pytest


# =============================================================================
# Test Point2D
# =============================================================================

class TestPoint2D:
    """Tests for frame-tagged 2D points."""

    def test_landscape_to_image_plane(self):
        """Relative point maps to the centred, y-up frame."""
        from perspective.geometry import CoordinateFrame, Point2D

        p = Point2D(0.75, 0.25).to_image_plane(1920, 1080)

        assert p.frame is CoordinateFrame.IMAGE_PLANE
        assert np.isclose(p.x, 0.5)
        # (1 - 2 * 0.25) / (16 / 9)
        assert np.isclose(p.y, 0.28125)

    def test_portrait_to_image_plane(self):
        """The longer (vertical) dimension spans [-1, 1] for portrait images."""
        from perspective.geometry import Point2D

        p = Point2D(0.75, 0.25).to_image_plane(1080, 1920)

        assert np.isclose(p.x, 0.5 * 1080 / 1920)
        assert np.isclose(p.y, 0.5)

    def test_image_centre(self):
        """Relative (0.5, 0.5) is the image-plane origin."""
        from perspective.geometry import Point2D

        p = Point2D(0.5, 0.5).to_image_plane(640, 480)

        assert np.isclose(p.x, 0.0)
        assert np.isclose(p.y, 0.0)

    @pytest.mark.parametrize("size", [(1920, 1080), (1080, 1920), (500, 500)])
    def test_conversion_is_invertible(self, size):
        """to_relative undoes to_image_plane."""
        from perspective.geometry import Point2D

        original = Point2D(0.13, 0.87)
        back = original.to_image_plane(*size).to_relative(*size)

        assert np.isclose(back.x, original.x)
        assert np.isclose(back.y, original.y)
        assert back.frame is original.frame

    def test_conversion_to_same_frame_is_noop(self):
        """Converting to the current frame returns the point unchanged."""
        from perspective.geometry import Point2D

        p = Point2D.image_plane(0.1, -0.2)

        assert p.to_image_plane(100, 50) is p

    def test_mixing_frames_raises(self):
        """Arithmetic across frames is rejected."""
        from perspective.errors import CoordinateFrameError
        from perspective.geometry import Point2D

        with pytest.raises(CoordinateFrameError):
            Point2D(0.5, 0.5) - Point2D.image_plane(0.0, 0.0)

    def test_from_pixels(self):
        """Pixel coordinates become relative coordinates."""
        from perspective.geometry import CoordinateFrame, Point2D

        p = Point2D.from_pixels(960, 270, 1920, 1080)

        assert p.frame is CoordinateFrame.RELATIVE
        assert np.isclose(p.x, 0.5)
        assert np.isclose(p.y, 0.25)

    def test_invalid_image_size(self):
        """Non-positive image sizes are rejected."""
        from perspective.geometry import Point2D

        with pytest.raises(ValueError):
            Point2D(0.5, 0.5).to_image_plane(0, 100)


# =============================================================================
# Test Line Intersection
# =============================================================================

class TestLineIntersection:
    """Tests for line_intersection."""

    def test_diagonals_intersect_at_centre(self):
        """[(0,0),(1,1)] x [(0,1),(1,0)] -> (0.5, 0.5)."""
        from perspective.geometry import LineSegment, line_intersection

        line1 = LineSegment.from_tuples((0, 0), (1, 1))
        line2 = LineSegment.from_tuples((0, 1), (1, 0))

        p = line_intersection(line1, line2)

        assert np.isclose(p.x, 0.5)
        assert np.isclose(p.y, 0.5)

    def test_intersection_outside_segments(self):
        """Lines are extended beyond the segment end points."""
        from perspective.geometry import LineSegment, line_intersection

        line1 = LineSegment.from_tuples((0, 0), (1, 0))
        line2 = LineSegment.from_tuples((3, 1), (3, 2))

        p = line_intersection(line1, line2)

        assert np.isclose(p.x, 3.0)
        assert np.isclose(p.y, 0.0)

    def test_zero_length_segment(self):
        """A degenerate segment never yields a numeric result."""
        from perspective.errors import DegenerateLinesError
        from perspective.geometry import LineSegment, line_intersection

        line1 = LineSegment.from_tuples((0.3, 0.3), (0.3, 0.3))
        line2 = LineSegment.from_tuples((0, 1), (1, 0))

        with pytest.raises(DegenerateLinesError):
            line_intersection(line1, line2)

    def test_parallel_segments(self):
        """Parallel lines have no intersection."""
        from perspective.errors import DegenerateLinesError
        from perspective.geometry import LineSegment, line_intersection

        line1 = LineSegment.from_tuples((0, 0), (1, 1))
        line2 = LineSegment.from_tuples((0, 1), (1, 2))

        with pytest.raises(DegenerateLinesError):
            line_intersection(line1, line2)

    def test_degenerate_is_calibration_error(self):
        """Degenerate lines are reported through the engine's error base."""
        from perspective.errors import CalibrationError, DegenerateLinesError

        assert issubclass(DegenerateLinesError, CalibrationError)
        assert issubclass(DegenerateLinesError, ValueError)

    def test_result_keeps_frame(self):
        """Image-plane segments intersect in the image-plane frame."""
        from perspective.geometry import (
            CoordinateFrame,
            LineSegment,
            line_intersection,
        )

        frame = CoordinateFrame.IMAGE_PLANE
        line1 = LineSegment.from_tuples((-1, 0), (1, 0), frame)
        line2 = LineSegment.from_tuples((0.2, -1), (0.2, 1), frame)

        p = line_intersection(line1, line2)

        assert p.frame is frame
        assert np.isclose(p.x, 0.2)

    def test_segment_frames_must_match(self):
        """A segment cannot mix frames."""
        from perspective.errors import CoordinateFrameError
        from perspective.geometry import LineSegment, Point2D

        with pytest.raises(CoordinateFrameError):
            LineSegment(Point2D(0, 0), Point2D.image_plane(1, 1))


# =============================================================================
# Test Vector3D
# =============================================================================

class TestVector3D:
    """Tests for Vector3D."""

    def test_normalized_has_unit_length(self):
        from perspective.geometry import Vector3D

        v = Vector3D(3.0, 4.0, 12.0).normalized()

        assert np.isclose(v.length, 1.0)
        assert np.allclose(v.to_array(), np.array([3, 4, 12]) / 13.0)

    def test_normalize_zero_vector_raises(self):
        """Normalizing a zero vector fails instead of producing NaN."""
        from perspective.errors import DegenerateVectorError
        from perspective.geometry import Vector3D

        with pytest.raises(DegenerateVectorError):
            Vector3D(0.0, 0.0, 0.0).normalized()

    def test_cross_product(self):
        """x cross y = z."""
        from perspective.geometry import Vector3D

        z = Vector3D(1, 0, 0).cross(Vector3D(0, 1, 0))

        assert z == Vector3D(0, 0, 1)

    def test_arithmetic(self):
        from perspective.geometry import Vector3D

        a = Vector3D(1, 2, 3)
        b = Vector3D(4, 5, 6)

        assert a + b == Vector3D(5, 7, 9)
        assert b - a == Vector3D(3, 3, 3)
        assert 2 * a == Vector3D(2, 4, 6)
        assert a.dot(b) == 32.0
        assert -a == Vector3D(-1, -2, -3)

    def test_from_array_shape_check(self):
        from perspective.geometry import Vector3D

        with pytest.raises(ValueError):
            Vector3D.from_array([1.0, 2.0])


# =============================================================================
# Test Transform
# =============================================================================

@pytest.fixture
def rigid_transform():
    """Rotation of 90 degrees about Z plus a translation."""
    from perspective.geometry import Transform

    R = np.array([
        [0.0, -1.0, 0.0],
        [1.0, 0.0, 0.0],
        [0.0, 0.0, 1.0],
    ])
    return Transform.from_rotation_translation(R, [1.0, 2.0, 3.0])


class TestTransform:
    """Tests for the immutable 4x4 transform."""

    def test_transform_point(self, rigid_transform):
        from perspective.geometry import Vector3D

        p = rigid_transform.transform_point(Vector3D(1.0, 0.0, 0.0))

        assert np.allclose(p.to_array(), [1.0, 3.0, 3.0])

    def test_inverse_roundtrip(self, rigid_transform):
        """T^-1 T = I."""
        identity = rigid_transform.inverted() @ rigid_transform

        assert np.allclose(identity.matrix, np.eye(4))

    def test_inverse_closed_form(self, rigid_transform):
        """Rigid inverse matches the general matrix inverse."""
        expected = np.linalg.inv(rigid_transform.matrix)

        assert np.allclose(rigid_transform.inverted().matrix, expected)

    def test_left_multiplied_applies_self_first(self, rigid_transform):
        """a.left_multiplied(b) == b @ a."""
        from perspective.geometry import Transform, Vector3D

        shift = Transform.from_translation([0.0, 0.0, 10.0])
        composed = rigid_transform.left_multiplied(shift)

        p = composed.transform_point(Vector3D(1.0, 0.0, 0.0))

        assert composed == shift @ rigid_transform
        assert np.allclose(p.to_array(), [1.0, 3.0, 13.0])

    def test_is_immutable(self, rigid_transform):
        """Neither the matrix copy nor the internal array can change it."""
        m = rigid_transform.matrix
        m[0, 3] = 100.0

        assert rigid_transform.translation[0] == 1.0
        with pytest.raises(ValueError):
            rigid_transform._matrix[0, 3] = 100.0

    def test_orthonormality_check(self, rigid_transform):
        from perspective.geometry import Transform

        skewed = Transform.from_rotation_translation(np.diag([1.0, 1.0, 1.1]))

        assert rigid_transform.is_orthonormal()
        assert not skewed.is_orthonormal()
        assert skewed.orthonormalized().is_orthonormal()

    def test_nearest_rotation_keeps_proper_rotation(self):
        """Re-orthonormalization returns det = +1."""
        from perspective.geometry import nearest_rotation

        noisy = np.eye(3) + 1e-3 * np.array([
            [0.0, 1.0, 0.0],
            [0.5, 0.0, 0.2],
            [0.0, 0.3, 0.0],
        ])
        R = nearest_rotation(noisy)

        assert np.allclose(R.T @ R, np.eye(3))
        assert np.isclose(np.linalg.det(R), 1.0)

    def test_transform_points_batch(self, rigid_transform):
        points = np.array([[0.0, 0.0, 0.0], [1.0, 0.0, 0.0]])

        out = rigid_transform.transform_points(points)

        assert out.shape == (2, 3)
        assert np.allclose(out[0], [1.0, 2.0, 3.0])

    def test_invalid_shape(self):
        from perspective.geometry import Transform

        with pytest.raises(ValueError):
            Transform(np.eye(3))
