"""
Closed-form real roots of low degree polynomials.

No iteration is involved, so execution time is bounded and results are
reproducible bit for bit. Repeated roots are reported once.

Cubic (Cardano / trigonometric form):
=====================================
a x^3 + b x^2 + c x + d = 0 is normalized and depressed with
x = t - B/3 into

    t^3 + p t + q = 0,    p = C - B^2/3,    q = 2B^3/27 - BC/3 + D

and the discriminant  delta = (q/2)^2 + (p/3)^3  selects the case:

    delta > 0   one real root      t = u - p / (3u),  u = cbrt(-q/2 - sign(q) sqrt(delta))
    delta = 0   double root        t1 = 3q/p,  t2 = -3q/(2p)
    delta < 0   three real roots   t_k = 2 sqrt(-p/3) cos(phi/3 - 2 pi k / 3)
"""

import math
from typing import List

import numpy as np

DEFAULT_POLYNOMIAL_EPSILON = 1e-12


def solve_quadratic(
    a: float,
    b: float,
    c: float,
    epsilon: float = DEFAULT_POLYNOMIAL_EPSILON,
) -> List[float]:
    """
    Real roots of a x^2 + b x + c = 0, ascending.

    Uses the cancellation-free form r1 = (-b - sign(b) sqrt(D)) / 2a,
    r2 = c / (a r1).

    Args:
        a, b, c: Coefficients.
        epsilon: Relative threshold for a vanishing leading coefficient
            and for a zero discriminant.

    Returns:
        List[float]: 0, 1 or 2 distinct real roots.
    """
    scale = max(abs(a), abs(b), abs(c))
    if scale == 0.0:
        return []

    if abs(a) <= epsilon * scale:
        if abs(b) <= epsilon * scale:
            return []
        return [-c / b]

    discriminant = b * b - 4.0 * a * c
    tolerance = epsilon * max(b * b, abs(4.0 * a * c))
    if discriminant < -tolerance:
        return []
    if abs(discriminant) <= tolerance:
        return [-b / (2.0 * a)]

    sqrt_d = math.sqrt(discriminant)
    q = -0.5 * (b + math.copysign(sqrt_d, b))
    r1 = q / a
    r2 = c / q if q != 0.0 else -r1
    return sorted({r1, r2})


def solve_cubic(
    a: float,
    b: float,
    c: float,
    d: float,
    epsilon: float = DEFAULT_POLYNOMIAL_EPSILON,
) -> List[float]:
    """
    Real roots of a x^3 + b x^2 + c x + d = 0, ascending.

    Falls back to solve_quadratic when the leading coefficient vanishes.

    Args:
        a, b, c, d: Coefficients.
        epsilon: Relative threshold for degenerate leading coefficients
            and for the discriminant.

    Returns:
        List[float]: 0 to 3 distinct real roots.

    Example:
        >>> [round(r, 9) for r in solve_cubic(1, -6, 11, -6)]   # (x-1)(x-2)(x-3)
        [1.0, 2.0, 3.0]
    """
    scale = max(abs(a), abs(b), abs(c), abs(d))
    if scale == 0.0:
        return []
    if abs(a) <= epsilon * scale:
        return solve_quadratic(b, c, d, epsilon)

    B, C, D = b / a, c / a, d / a
    shift = B / 3.0
    p = C - B * B / 3.0
    q = 2.0 * B ** 3 / 27.0 - B * C / 3.0 + D

    half_q = q / 2.0
    third_p = p / 3.0
    delta = half_q * half_q + third_p ** 3
    magnitude = max(half_q * half_q, abs(third_p) ** 3)

    p_scale = max(B * B, abs(C))
    q_scale = max(abs(B) ** 3, abs(B * C), abs(D))
    if abs(p) <= epsilon * p_scale and abs(q) <= epsilon * q_scale:
        # p = q = 0: triple root
        roots = [-shift]
    elif abs(delta) <= epsilon * magnitude:
        # One simple and one double root
        roots = [3.0 * q / p - shift, -1.5 * q / p - shift]
    elif delta > 0.0:
        u = float(np.cbrt(-half_q - math.copysign(math.sqrt(delta), half_q)))
        t = u - p / (3.0 * u) if u != 0.0 else 0.0
        roots = [t - shift]
    else:
        r = 2.0 * math.sqrt(-third_p)
        cos_arg = (3.0 * q) / (2.0 * p) * math.sqrt(-3.0 / p)
        phi = math.acos(min(1.0, max(-1.0, cos_arg)))
        roots = [
            r * math.cos(phi / 3.0 - 2.0 * math.pi * k / 3.0) - shift
            for k in range(3)
        ]

    return sorted(set(roots))
