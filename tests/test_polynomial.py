"""
Tests for the closed-form polynomial root solvers.
"""

import numpy as np
import pytest


class TestSolveQuadratic:
    """Tests for solve_quadratic."""

    def test_two_roots(self):
        from perspective.calibration import solve_quadratic

        # (x - 1)(x - 3)
        assert np.allclose(solve_quadratic(1.0, -4.0, 3.0), [1.0, 3.0])

    def test_double_root_reported_once(self):
        from perspective.calibration import solve_quadratic

        assert solve_quadratic(1.0, -2.0, 1.0) == [1.0]

    def test_no_real_roots(self):
        from perspective.calibration import solve_quadratic

        assert solve_quadratic(1.0, 0.0, 1.0) == []

    def test_linear_fallback(self):
        """A vanishing leading coefficient degrades to a linear equation."""
        from perspective.calibration import solve_quadratic

        assert np.allclose(solve_quadratic(0.0, 2.0, -4.0), [2.0])

    def test_small_root_without_cancellation(self):
        """Roots of very different magnitude are both accurate."""
        from perspective.calibration import solve_quadratic

        # (x - 1e-8)(x - 1e8)
        roots = solve_quadratic(1.0, -(1e8 + 1e-8), 1.0)

        assert np.isclose(roots[0], 1e-8, rtol=1e-10, atol=0.0)
        assert np.isclose(roots[1], 1e8)

    def test_constant_polynomial(self):
        from perspective.calibration import solve_quadratic

        assert solve_quadratic(0.0, 0.0, 5.0) == []
        assert solve_quadratic(0.0, 0.0, 0.0) == []


class TestSolveCubic:
    """Tests for solve_cubic."""

    def test_three_real_roots(self):
        from perspective.calibration import solve_cubic

        # (x - 1)(x - 2)(x - 3)
        assert np.allclose(solve_cubic(1.0, -6.0, 11.0, -6.0), [1.0, 2.0, 3.0])

    def test_one_real_root(self):
        from perspective.calibration import solve_cubic

        # x^3 - 1 has a single real root
        assert np.allclose(solve_cubic(1.0, 0.0, 0.0, -1.0), [1.0])

    def test_double_root(self):
        from perspective.calibration import solve_cubic

        # (x - 1)^2 (x - 2)
        roots = solve_cubic(1.0, -4.0, 5.0, -2.0)

        assert np.allclose(roots, [1.0, 2.0])

    def test_triple_root(self):
        from perspective.calibration import solve_cubic

        # (x - 2)^3
        assert np.allclose(solve_cubic(1.0, -6.0, 12.0, -8.0), [2.0])

    def test_degenerates_to_quadratic(self):
        from perspective.calibration import solve_cubic

        assert np.allclose(solve_cubic(0.0, 1.0, -4.0, 3.0), [1.0, 3.0])

    def test_roots_are_sorted(self):
        from perspective.calibration import solve_cubic

        # -2 (x + 1)(x - 0.5)(x - 4)
        coeffs = -2.0 * np.poly([-1.0, 0.5, 4.0])
        roots = solve_cubic(*coeffs)

        assert roots == sorted(roots)
        assert np.allclose(roots, [-1.0, 0.5, 4.0])

    @pytest.mark.parametrize("roots", [
        (-3.0, 0.25, 7.0),
        (-0.1, 0.0, 0.1),
        (10.0, 20.0, 30.0),
    ])
    def test_agrees_with_numpy(self, roots):
        """Closed form matches numpy's eigenvalue based roots."""
        from perspective.calibration import solve_cubic

        coeffs = np.poly(roots)

        assert np.allclose(solve_cubic(*coeffs), np.sort(np.roots(coeffs).real))

    def test_deterministic(self):
        """Repeated calls give bit-identical results."""
        from perspective.calibration import solve_cubic

        first = solve_cubic(1.3, -2.7, 0.4, 0.9)
        second = solve_cubic(1.3, -2.7, 0.4, 0.9)

        assert first == second
