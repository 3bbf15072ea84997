"""
Lambda Twist P3P Pose Solver Module.

Recovers the pose of a calibrated camera from three world points and their
image projections.

Mathematical Background:
========================

Depth Constraints:
------------------
With unit bearings y_i (camera looks down -Z) and unknown depths l_i, the
camera-space points are Q_i = l_i y_i. Rigid motion preserves distances:

    l1^2 + l2^2 + b12 l1 l2 = a12        b_ij = -2 y_i . y_j
    l1^2 + l3^2 + b13 l1 l3 = a13        a_ij = |X_i - X_j|^2
    l2^2 + l3^2 + b23 l2 l3 = a23

Eliminating the right-hand sides gives two homogeneous quadratic forms
L^T D1 L = 0 and L^T D2 L = 0 with

    D1 = a23 M12 - a12 M23,      D2 = a23 M13 - a13 M23

The Twist:
----------
Some member D0 = D1 + g D2 of the pencil is singular, where g solves the
cubic

    det(D1 + g D2) = c3 g^3 + c2 g^2 + c1 g + c0 = 0

    c3 = det(D2)              c2 = tr(adj(D2) D1)
    c1 = tr(adj(D1) D2)       c0 = det(D1)

A singular indefinite D0 = s0 e0 e0^T + s1 e1 e1^T factors into two planes
(e0 +- sqrt(-s1/s0) e1) . L = 0, each a linear relation l1 = w0 l2 + w1 l3.
Substituting into a13 (eq12) - a12 (eq13) gives a quadratic in
tau = l3 / l2; eq23 then fixes the scale.

Pose:
-----
Depths are polished with a fixed number of Gauss-Newton steps. Triples
that still violate the distance equations are not solutions and are
dropped; if real triples exist but none is all-positive, every solution
is behind the camera. The rotation is read off the difference frames

    R = [Q1 - Q2, Q3 - Q1, n_Q] [X1 - X2, X3 - X1, n_X]^(-1)

and t = mean(Q) - R mean(X).

Reference:
    Persson, Nordberg. "Lambda Twist: An Accurate Fast Robust Perspective
    Three Point (P3P) Solver", ECCV 2018.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

from ..errors import (
    AllCandidatesBehindCameraError,
    CollinearWorldPointsError,
    CoordinateFrameError,
    NoRealRootsError,
)
from ..geometry import CoordinateFrame, Point2D, Transform, nearest_rotation
from ..utils.logger import get_logger
from .polynomial import solve_cubic, solve_quadratic
from .settings import DEFAULT_TOLERANCES, Tolerances

logger = get_logger(__name__)

ImagePoints = Union[Sequence[Point2D], np.ndarray]


@dataclass(frozen=True, eq=False)
class PoseEstimate:
    """
    Selected P3P pose.

    Attributes:
        rotation: World -> camera rotation (3x3).
        translation: World origin in camera space (3,).
        depths: Distances from the camera centre to the three world points.
        reprojection_error: RMS image-plane error on the input points.
        validation_error: RMS error on the validation points, if any.
    """

    rotation: np.ndarray
    translation: np.ndarray
    depths: np.ndarray
    reprojection_error: float
    validation_error: Optional[float] = None

    @property
    def view_transform(self) -> Transform:
        return Transform.from_rotation_translation(self.rotation, self.translation)

    def __iter__(self):
        # Allows ``R, t = solve_p3p(...)``
        return iter((self.rotation, self.translation))


# =============================================================================
# Input helpers
# =============================================================================

def _image_points_array(points: ImagePoints) -> np.ndarray:
    if isinstance(points, np.ndarray):
        arr = np.asarray(points, dtype=np.float64)
    else:
        for p in points:
            if p.frame is not CoordinateFrame.IMAGE_PLANE:
                raise CoordinateFrameError(
                    "P3P image points must be in the image-plane frame"
                )
        arr = np.array([[p.x, p.y] for p in points], dtype=np.float64)

    if arr.ndim != 2 or arr.shape[1] != 2:
        raise ValueError(f"Image points must be (N, 2), got {arr.shape}")
    return arr


def bearing_vectors(
    image_points: ImagePoints,
    focal_length: float,
    principal_point: Optional[Point2D] = None,
) -> np.ndarray:
    """
    Unit rays through image-plane points.

    Args:
        image_points: (N, 2) array or image-plane Point2D sequence.
        focal_length: Relative focal length.
        principal_point: Principal point (image-plane), centre if None.

    Returns:
        np.ndarray: (N, 3) unit bearings with negative z.
    """
    if focal_length <= 0:
        raise ValueError(f"Focal length must be positive, got {focal_length}")
    pp = principal_point or Point2D.image_plane(0.0, 0.0)
    if pp.frame is not CoordinateFrame.IMAGE_PLANE:
        raise CoordinateFrameError("Principal point must be in the image-plane frame")

    pts = _image_points_array(image_points)
    rays = np.column_stack([
        pts[:, 0] - pp.x,
        pts[:, 1] - pp.y,
        np.full(len(pts), -focal_length),
    ])
    return rays / np.linalg.norm(rays, axis=1, keepdims=True)


def reprojection_error(
    rotation: np.ndarray,
    translation: np.ndarray,
    world_points: np.ndarray,
    image_points: np.ndarray,
    focal_length: float,
    principal_point: Point2D,
) -> float:
    """
    RMS image-plane distance between projected and observed points.

    Points behind the camera make the error infinite.
    """
    Q = np.atleast_2d(world_points) @ rotation.T + translation
    if np.any(Q[:, 2] >= 0.0):
        return float("inf")

    projected = np.column_stack([
        principal_point.x + focal_length * Q[:, 0] / -Q[:, 2],
        principal_point.y + focal_length * Q[:, 1] / -Q[:, 2],
    ])
    residuals = projected - np.atleast_2d(image_points)
    return float(np.sqrt(np.mean(np.sum(residuals ** 2, axis=1))))


# =============================================================================
# Lambda Twist core
# =============================================================================

def _adjugate(M: np.ndarray) -> np.ndarray:
    r0, r1, r2 = M
    return np.column_stack([np.cross(r1, r2), np.cross(r2, r0), np.cross(r0, r1)])


def _check_collinearity(X: np.ndarray, tolerances: Tolerances) -> None:
    d12 = X[1] - X[0]
    d13 = X[2] - X[0]
    n12 = np.linalg.norm(d12)
    n13 = np.linalg.norm(d13)
    if min(n12, n13) < tolerances.vector_epsilon:
        raise CollinearWorldPointsError("Two world points coincide")

    sine = np.linalg.norm(np.cross(d12, d13)) / (n12 * n13)
    if sine < tolerances.collinearity_epsilon:
        raise CollinearWorldPointsError(
            f"World points are collinear (sin = {sine:.3g})"
        )


def _depth_residuals(
    depths: np.ndarray,
    a: Tuple[float, float, float],
    b: Tuple[float, float, float],
) -> np.ndarray:
    a12, a13, a23 = a
    b12, b13, b23 = b
    l1, l2, l3 = depths
    return np.array([
        l1 * l1 + l2 * l2 + b12 * l1 * l2 - a12,
        l1 * l1 + l3 * l3 + b13 * l1 * l3 - a13,
        l2 * l2 + l3 * l3 + b23 * l2 * l3 - a23,
    ])


def _refine_depths(
    depths: np.ndarray,
    a: Tuple[float, float, float],
    b: Tuple[float, float, float],
    iterations: int,
) -> np.ndarray:
    """Fixed-count Gauss-Newton on the three distance equations."""
    b12, b13, b23 = b

    l = depths.copy()
    r = _depth_residuals(l, a, b)
    for _ in range(iterations):
        l1, l2, l3 = l
        J = np.array([
            [2 * l1 + b12 * l2, 2 * l2 + b12 * l1, 0.0],
            [2 * l1 + b13 * l3, 0.0, 2 * l3 + b13 * l1],
            [0.0, 2 * l2 + b23 * l3, 2 * l3 + b23 * l2],
        ])
        try:
            step = np.linalg.solve(J, r)
        except np.linalg.LinAlgError:
            break
        candidate = l - step
        r_new = _depth_residuals(candidate, a, b)
        if np.linalg.norm(r_new) >= np.linalg.norm(r):
            break
        l, r = candidate, r_new
    return l


def _pose_from_depths(
    X: np.ndarray,
    bearings: np.ndarray,
    depths: np.ndarray,
) -> Tuple[np.ndarray, np.ndarray]:
    Q = bearings * depths[:, None]

    def frame(P):
        e1 = P[0] - P[1]
        e2 = P[2] - P[0]
        return np.column_stack([e1, e2, np.cross(e1, e2)])

    R = nearest_rotation(frame(Q) @ np.linalg.inv(frame(X)))
    t = Q.mean(axis=0) - R @ X.mean(axis=0)
    return R, t


def _ordered_roots(D1: np.ndarray, D2: np.ndarray, epsilon: float) -> List[float]:
    c3 = np.linalg.det(D2)
    c2 = np.trace(_adjugate(D2) @ D1)
    c1 = np.trace(_adjugate(D1) @ D2)
    c0 = np.linalg.det(D1)
    roots = solve_cubic(c3, c2, c1, c0, epsilon)
    logger.debug(f"Twist cubic roots: {roots}")

    def indefiniteness(g):
        sigma = np.linalg.eigvalsh(D1 + g * D2)
        sigma = sigma[np.argsort(-np.abs(sigma))]
        if sigma[0] == 0.0:
            return np.inf
        return sigma[1] / sigma[0]

    # Most clearly indefinite pencil member first
    return sorted(roots, key=indefiniteness)


def p3p_candidates(
    world_points: np.ndarray,
    bearings: np.ndarray,
    refine_iterations: int = 5,
    tolerances: Tolerances = DEFAULT_TOLERANCES,
) -> List[Tuple[np.ndarray, np.ndarray, np.ndarray]]:
    """
    All physically valid P3P poses (up to four).

    Args:
        world_points: (3, 3) world points.
        bearings: (3, 3) unit bearings (camera looks down -Z).
        refine_iterations: Gauss-Newton steps on the depths.
        tolerances: collinearity, polynomial and depth thresholds.

    Returns:
        List of (rotation, translation, depths), every depth positive.

    Raises:
        CollinearWorldPointsError: Degenerate world points.
        NoRealRootsError: No real depth solution exists.
        AllCandidatesBehindCameraError: Every solution has a non-positive
            depth.
    """
    X = np.asarray(world_points, dtype=np.float64)
    y = np.asarray(bearings, dtype=np.float64)
    if X.shape != (3, 3) or y.shape != (3, 3):
        raise ValueError(
            f"Expected (3, 3) world points and bearings, got {X.shape} and {y.shape}"
        )

    _check_collinearity(X, tolerances)

    # Work at unit scale, rescale depths and translation at the end
    scale = max(
        np.linalg.norm(X[1] - X[0]),
        np.linalg.norm(X[2] - X[0]),
        np.linalg.norm(X[2] - X[1]),
    )
    Xn = X / scale

    a12 = float(np.sum((Xn[0] - Xn[1]) ** 2))
    a13 = float(np.sum((Xn[0] - Xn[2]) ** 2))
    a23 = float(np.sum((Xn[1] - Xn[2]) ** 2))
    b12 = float(-2.0 * y[0] @ y[1])
    b13 = float(-2.0 * y[0] @ y[2])
    b23 = float(-2.0 * y[1] @ y[2])
    a = (a12, a13, a23)
    b = (b12, b13, b23)

    D1 = np.array([
        [a23, 0.5 * a23 * b12, 0.0],
        [0.5 * a23 * b12, a23 - a12, -0.5 * a12 * b23],
        [0.0, -0.5 * a12 * b23, -a12],
    ])
    D2 = np.array([
        [a23, 0.0, 0.5 * a23 * b13],
        [0.0, -a13, -0.5 * a13 * b23],
        [0.5 * a23 * b13, -0.5 * a13 * b23, a23 - a13],
    ])

    roots = _ordered_roots(D1, D2, tolerances.polynomial_epsilon)
    if not roots:
        raise NoRealRootsError("Twist cubic has no real root")

    found_real = False
    depth_sets: List[np.ndarray] = []

    for g in roots:
        sigma, E = np.linalg.eigh(D1 + g * D2)
        order = np.argsort(-np.abs(sigma))
        sigma, E = sigma[order], E[:, order]
        if abs(sigma[0]) < tolerances.polynomial_epsilon:
            continue

        v = np.sqrt(max(0.0, -sigma[1] / sigma[0]))

        for s in (v, -v):
            denom = s * E[0, 1] - E[0, 0]
            if abs(denom) < tolerances.polynomial_epsilon:
                continue
            w2 = 1.0 / denom
            w0 = (E[1, 0] - s * E[1, 1]) * w2
            w1 = (E[2, 0] - s * E[2, 1]) * w2

            taus = solve_quadratic(
                (a13 - a12) * w1 * w1 - a12 * b13 * w1 - a12,
                a13 * b12 * w1 - a12 * b13 * w0 + 2.0 * (a13 - a12) * w0 * w1,
                (a13 - a12) * w0 * w0 + a13 * b12 * w0 + a13,
                tolerances.polynomial_epsilon,
            )
            for tau in taus:
                norm = tau * (b23 + tau) + 1.0
                if norm <= 0.0:
                    continue
                l2 = np.sqrt(a23 / norm)
                l3 = tau * l2
                l1 = w0 * l2 + w1 * l3
                depths = _refine_depths(np.array([l1, l2, l3]), a, b, refine_iterations)

                # A clamped (definite) pencil member cuts the conic off the solution set
                residual = np.linalg.norm(_depth_residuals(depths, a, b))
                if residual > tolerances.depth_residual_epsilon:
                    continue

                found_real = True
                if np.all(depths > tolerances.depth_epsilon):
                    depth_sets.append(depths)

        if depth_sets:
            break

    if not depth_sets:
        if found_real:
            raise AllCandidatesBehindCameraError(
                "Every P3P solution places a point behind the camera"
            )
        raise NoRealRootsError("No real depth solution")

    candidates = []
    kept: List[np.ndarray] = []
    for depths in depth_sets:
        if any(np.allclose(depths, other, atol=1e-9) for other in kept):
            continue
        kept.append(depths)
        R, t = _pose_from_depths(Xn, y, depths)
        candidates.append((R, t * scale, depths * scale))

    logger.debug(f"P3P produced {len(candidates)} candidate poses")
    return candidates


# =============================================================================
# Public solver
# =============================================================================

def solve_p3p(
    world_points: np.ndarray,
    image_points: ImagePoints,
    focal_length: float,
    principal_point: Optional[Point2D] = None,
    validation_world_points: Optional[np.ndarray] = None,
    validation_image_points: Optional[ImagePoints] = None,
    refine_iterations: int = 5,
    tolerances: Tolerances = DEFAULT_TOLERANCES,
) -> PoseEstimate:
    """
    Solve the perspective-three-point problem.

    Three correspondences admit up to four poses. The one with the
    smallest reprojection error on the validation correspondences is
    returned when they are supplied, otherwise the one with the smallest
    error on the input points; remaining ties go to the first candidate.

    Args:
        world_points: (3, 3) non-collinear world points.
        image_points: Their image-plane projections.
        focal_length: Relative focal length.
        principal_point: Principal point (image-plane), centre if None.
        validation_world_points: Optional (N, 3) extra world points.
        validation_image_points: Their image-plane projections.
        refine_iterations: Gauss-Newton steps on the depths.
        tolerances: Numeric thresholds.

    Returns:
        PoseEstimate: The selected pose.

    Raises:
        P3PError: CollinearWorldPointsError, NoRealRootsError or
            AllCandidatesBehindCameraError.

    Example:
        >>> pose = solve_p3p(X, uv, focal_length=1.5)
        >>> R, t = pose
    """
    pp = principal_point or Point2D.image_plane(0.0, 0.0)
    X = np.asarray(world_points, dtype=np.float64)
    uv = _image_points_array(image_points)
    if X.shape != (3, 3) or uv.shape != (3, 2):
        raise ValueError(
            f"Expected 3 world and 3 image points, got {X.shape} and {uv.shape}"
        )

    validation = None
    if validation_world_points is not None or validation_image_points is not None:
        if validation_world_points is None or validation_image_points is None:
            raise ValueError("Validation world and image points must be given together")
        val_X = np.atleast_2d(np.asarray(validation_world_points, dtype=np.float64))
        val_uv = _image_points_array(validation_image_points)
        if val_X.shape[1] != 3 or len(val_X) != len(val_uv):
            raise ValueError(
                f"Validation points mismatch: {val_X.shape} and {val_uv.shape}"
            )
        validation = (val_X, val_uv)

    bearings = bearing_vectors(uv, focal_length, pp)
    candidates = p3p_candidates(X, bearings, refine_iterations, tolerances)

    scored = []
    for index, (R, t, depths) in enumerate(candidates):
        input_error = reprojection_error(R, t, X, uv, focal_length, pp)
        validation_error = None
        if validation is not None:
            validation_error = reprojection_error(
                R, t, validation[0], validation[1], focal_length, pp
            )
            key = (validation_error, input_error, index)
        else:
            key = (input_error, index)
        scored.append((key, PoseEstimate(R, t, depths, input_error, validation_error)))

    best = min(scored, key=lambda item: item[0])[1]
    logger.debug(
        f"Selected pose with reprojection error {best.reprojection_error:.3g}"
        + (f", validation error {best.validation_error:.3g}"
           if best.validation_error is not None else "")
    )
    return best
