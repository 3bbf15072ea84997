"""
Rigid 4x4 Transform Module.

Mathematical Background:
========================

A rigid body transformation consists of a rotation R (3x3 orthonormal
matrix) and a translation t:

    T = | R   t |        P_B = R * P_A + t
        | 0   1 |

The inverse, using R^(-1) = R^T:

    T^(-1) = | R^T  -R^T * t |
             |  0       1    |

Two flavours are used by the calibration engine:
    - view transform:   world -> camera
    - camera transform: camera -> world (inverse of the view transform)

Composition follows matrix multiplication: (A @ B) applies B first, so
``b.left_multiplied(a)`` is ``a @ b``.
"""

from typing import List, Optional, Sequence

import numpy as np

from .primitives import Vector3D


DEFAULT_ORTHONORMALITY_TOLERANCE = 1e-6


def nearest_rotation(matrix: np.ndarray) -> np.ndarray:
    """
    Project a 3x3 matrix onto the closest proper rotation.

    Uses the SVD polar decomposition M = U S V^T -> R = U D V^T, with D
    flipping the last axis when needed so that det(R) = +1.

    Args:
        matrix: 3x3 matrix with small numeric drift.

    Returns:
        np.ndarray: 3x3 rotation matrix.
    """
    U, _, Vt = np.linalg.svd(np.asarray(matrix, dtype=np.float64))
    D = np.eye(3)
    D[2, 2] = np.sign(np.linalg.det(U @ Vt)) or 1.0
    return U @ D @ Vt


class Transform:
    """
    Immutable 4x4 homogeneous transform.

    Attributes:
        matrix: Copy of the underlying 4x4 matrix.

    Example:
        >>> T = Transform.from_rotation_translation(np.eye(3), [1, 2, 3])
        >>> T.transform_point(Vector3D(0, 0, 0))
        Vector3D(x=1.0, y=2.0, z=3.0)
    """

    __slots__ = ("_matrix",)

    def __init__(self, matrix: Optional[np.ndarray] = None):
        if matrix is None:
            matrix = np.eye(4)
        matrix = np.array(matrix, dtype=np.float64)
        if matrix.shape != (4, 4):
            raise ValueError(f"Transform must be 4x4, got {matrix.shape}")
        matrix.setflags(write=False)
        self._matrix = matrix

    @classmethod
    def identity(cls) -> "Transform":
        return cls()

    @classmethod
    def from_rotation_translation(
        cls,
        R: np.ndarray,
        t: Optional[Sequence[float]] = None,
    ) -> "Transform":
        """
        Build from a 3x3 rotation and a translation vector.

        Args:
            R: 3x3 rotation matrix.
            t: Translation (3,), zero if omitted.

        Returns:
            Transform: The homogeneous transform [R | t].
        """
        R = np.asarray(R, dtype=np.float64)
        if R.shape != (3, 3):
            raise ValueError(f"R must be 3x3, got {R.shape}")

        T = np.eye(4, dtype=np.float64)
        T[:3, :3] = R
        if t is not None:
            t = np.asarray(t, dtype=np.float64).flatten()
            if t.shape != (3,):
                raise ValueError(f"t must be (3,), got {t.shape}")
            T[:3, 3] = t
        return cls(T)

    @classmethod
    def from_translation(cls, t: Sequence[float]) -> "Transform":
        return cls.from_rotation_translation(np.eye(3), t)

    @property
    def matrix(self) -> np.ndarray:
        return self._matrix.copy()

    @property
    def rotation(self) -> np.ndarray:
        """3x3 rotation block."""
        return self._matrix[:3, :3].copy()

    @property
    def translation(self) -> np.ndarray:
        """Translation column (3,)."""
        return self._matrix[:3, 3].copy()

    def with_translation(self, t: Sequence[float]) -> "Transform":
        """Copy of this transform with the translation column replaced."""
        T = self.matrix
        T[:3, 3] = np.asarray(t, dtype=np.float64).flatten()
        return Transform(T)

    def inverted(self) -> "Transform":
        """
        Inverse transform.

        Rigid transforms use the closed form [R^T | -R^T t]; anything else
        falls back to a general matrix inverse.
        """
        if self.is_rigid():
            R_inv = self.rotation.T
            return Transform.from_rotation_translation(R_inv, -R_inv @ self.translation)
        return Transform(np.linalg.inv(self._matrix))

    def left_multiplied(self, other: "Transform") -> "Transform":
        """Return ``other @ self`` (self is applied first)."""
        return Transform(other._matrix @ self._matrix)

    def __matmul__(self, other: "Transform") -> "Transform":
        if not isinstance(other, Transform):
            return NotImplemented
        return Transform(self._matrix @ other._matrix)

    def transform_point(self, point: Vector3D) -> Vector3D:
        p = self._matrix @ np.append(point.to_array(), 1.0)
        return Vector3D.from_array(p[:3] / p[3])

    def transform_points(self, points: np.ndarray) -> np.ndarray:
        """
        Apply to an array of points.

        Args:
            points: (N, 3) or (3,) points.

        Returns:
            np.ndarray: Transformed points with the input shape.
        """
        points = np.atleast_2d(np.asarray(points, dtype=np.float64))
        transformed = points @ self._matrix[:3, :3].T + self._matrix[:3, 3]
        return transformed.squeeze()

    def is_orthonormal(self, tolerance: float = DEFAULT_ORTHONORMALITY_TOLERANCE) -> bool:
        """Check R^T R = I and det(R) = +1 within tolerance."""
        R = self._matrix[:3, :3]
        return bool(
            np.allclose(R.T @ R, np.eye(3), atol=tolerance)
            and abs(np.linalg.det(R) - 1.0) < tolerance
        )

    def is_rigid(self, tolerance: float = DEFAULT_ORTHONORMALITY_TOLERANCE) -> bool:
        bottom = np.array([0.0, 0.0, 0.0, 1.0])
        return bool(
            np.allclose(self._matrix[3], bottom, atol=tolerance)
            and self.is_orthonormal(tolerance)
        )

    def orthonormalized(self) -> "Transform":
        """Copy with the rotation block projected onto SO(3)."""
        return Transform.from_rotation_translation(
            nearest_rotation(self.rotation), self.translation
        )

    def to_rows(self) -> List[List[float]]:
        return [[float(v) for v in row] for row in self._matrix]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Transform):
            return NotImplemented
        return bool(np.array_equal(self._matrix, other._matrix))

    def __hash__(self) -> int:
        return hash(self._matrix.tobytes())

    def __repr__(self) -> str:
        return f"Transform({np.array2string(self._matrix, precision=4)})"
