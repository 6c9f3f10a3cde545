########################################################################################
##
##                                  TESTS FOR
##                                 'jacobian.py'
##
########################################################################################

# IMPORTS ==============================================================================

import numpy as np
import pytest

from oefpil.errors import ConstraintEvaluationError
from oefpil.jacobian import JacobianEvaluator, constraint_matrices, split_blocks


# HELPERS ==============================================================================

def _line(mu, beta):
    return beta[0] + beta[1] * mu[0] - mu[1]


def _line_diff_mu(mu, beta):
    return [beta[1] * np.ones_like(mu[0]), -np.ones_like(mu[1])]


def _line_diff_beta(mu, beta):
    return np.column_stack([np.ones_like(mu[0]), mu[0]])


def _smooth(mu, beta):
    """Nonlinear row-wise constraint with closed-form derivatives."""
    return (
        beta[0] * mu[0] ** 2
        + beta[1] * np.sin(mu[1])
        - 0.1 * np.exp(beta[0] * mu[0])
    )


def _smooth_diff_mu(mu, beta):
    return [
        2.0 * beta[0] * mu[0] - 0.1 * beta[0] * np.exp(beta[0] * mu[0]),
        beta[1] * np.cos(mu[1]),
    ]


def _smooth_diff_beta(mu, beta):
    return np.column_stack([
        mu[0] ** 2 - 0.1 * mu[0] * np.exp(beta[0] * mu[0]),
        np.sin(mu[1]),
    ])


MU = [np.array([0.5, 1.0, 1.5]), np.array([0.2, 0.7, 1.1])]
BETA = np.array([0.8, 2.0])


# TESTS ================================================================================

class TestFiniteDifferences:

    def test_shapes(self):
        B1, B2, b = constraint_matrices(_smooth, MU, BETA)
        assert B1.shape == (3, 6)
        assert B2.shape == (3, 2)
        assert b.shape == (3,)

    def test_constraint_value(self):
        _, _, b = constraint_matrices(_smooth, MU, BETA)
        np.testing.assert_allclose(b, _smooth(MU, BETA))

    def test_matches_analytic_derivatives(self):
        B1, B2, _ = constraint_matrices(_smooth, MU, BETA, delta=1e-4)
        B1_exact = np.hstack([np.diag(d) for d in _smooth_diff_mu(MU, BETA)])
        B2_exact = _smooth_diff_beta(MU, BETA)
        np.testing.assert_allclose(B1, B1_exact, atol=1e-6)
        np.testing.assert_allclose(B2, B2_exact, atol=1e-6)

    def test_error_is_second_order_in_step(self):
        B1_exact = np.hstack([np.diag(d) for d in _smooth_diff_mu(MU, BETA)])
        B2_exact = _smooth_diff_beta(MU, BETA)

        def error(delta):
            B1, B2, _ = constraint_matrices(_smooth, MU, BETA, delta=delta)
            return max(np.abs(B1 - B1_exact).max(), np.abs(B2 - B2_exact).max())

        # shrinking the step tenfold shrinks the error about a hundredfold
        assert error(1e-3) / error(1e-4) > 30.0

    def test_row_wise_constraint_gives_diagonal_blocks(self):
        B1, _, _ = constraint_matrices(_smooth, MU, BETA)
        for j in range(2):
            block = B1[:, 3 * j:3 * (j + 1)]
            np.testing.assert_array_equal(block, np.diag(np.diag(block)))

    def test_linear_constraint_exact(self):
        B1, B2, _ = constraint_matrices(_line, MU, [1.0, 3.0], delta=1e-3)
        np.testing.assert_allclose(B1, np.hstack([3.0 * np.eye(3), -np.eye(3)]), atol=1e-9)
        np.testing.assert_allclose(B2, np.column_stack([np.ones(3), MU[0]]), atol=1e-9)

    def test_parallel_matches_sequential(self):
        serial = constraint_matrices(_smooth, MU, BETA)
        parallel = constraint_matrices(_smooth, MU, BETA, workers=4)
        np.testing.assert_array_equal(serial.B1, parallel.B1)
        np.testing.assert_array_equal(serial.B2, parallel.B2)
        np.testing.assert_array_equal(serial.b, parallel.b)

    def test_real_part_only(self):
        fun = lambda mu, beta: beta[0] * mu[0] + 1e-3j
        B1, B2, b = constraint_matrices(fun, [np.array([1.0, 2.0])], [2.0])
        assert not np.iscomplexobj(B1)
        assert not np.iscomplexobj(B2)
        np.testing.assert_allclose(b, [2.0, 4.0])


class TestAnalyticDerivatives:

    def test_diagonal_expansion(self):
        ev = JacobianEvaluator(
            _line, m=3, n=2, delta=1e-6,
            fun_diff_mu=_line_diff_mu, fun_diff_beta=_line_diff_beta,
        )
        B1, B2, b = ev(np.concatenate(MU), [1.0, 3.0])
        np.testing.assert_array_equal(B1, np.hstack([3.0 * np.eye(3), -np.eye(3)]))
        np.testing.assert_array_equal(B2, np.column_stack([np.ones(3), MU[0]]))

    def test_analytic_matches_finite_differences(self):
        fd = constraint_matrices(_smooth, MU, BETA, delta=1e-5)
        an = constraint_matrices(
            _smooth, MU, BETA,
            fun_diff_mu=_smooth_diff_mu, fun_diff_beta=_smooth_diff_beta,
        )
        np.testing.assert_allclose(fd.B1, an.B1, atol=1e-7)
        np.testing.assert_allclose(fd.B2, an.B2, atol=1e-7)

    def test_scalar_block_broadcast(self):
        ev = JacobianEvaluator(
            _line, m=3, n=2, delta=1e-6,
            fun_diff_mu=lambda mu, beta: [beta[1], -1.0],
        )
        B1, _, _ = ev(np.concatenate(MU), [1.0, 3.0])
        np.testing.assert_array_equal(B1, np.hstack([3.0 * np.eye(3), -np.eye(3)]))

    def test_wrong_number_of_blocks(self):
        ev = JacobianEvaluator(
            _line, m=3, n=2, delta=1e-6,
            fun_diff_mu=lambda mu, beta: [np.ones(3)],
        )
        with pytest.raises(ConstraintEvaluationError, match="blocks"):
            ev(np.concatenate(MU), [1.0, 3.0])

    def test_wrong_beta_shape(self):
        ev = JacobianEvaluator(
            _line, m=3, n=2, delta=1e-6,
            fun_diff_beta=lambda mu, beta: np.ones((3, 3)),
        )
        with pytest.raises(ConstraintEvaluationError, match="fun_diff_beta"):
            ev(np.concatenate(MU), [1.0, 3.0])

    def test_callback_exception_is_wrapped(self):
        def broken(mu, beta):
            raise RuntimeError("no derivative")

        ev = JacobianEvaluator(_line, m=3, n=2, delta=1e-6, fun_diff_mu=broken)
        with pytest.raises(ConstraintEvaluationError) as info:
            ev(np.concatenate(MU), [1.0, 3.0])
        assert isinstance(info.value.__cause__, RuntimeError)


class TestConstraintFailures:

    def test_non_finite_perturbation_identified(self):
        def fun(mu, beta):
            if beta[0] > 1.0:
                return np.full(mu[0].shape, np.nan)
            return beta[0] * mu[0] - mu[1]

        with pytest.raises(ConstraintEvaluationError) as info:
            constraint_matrices(fun, MU, [1.0])
        err = info.value
        assert err.target == "beta"
        assert err.index == 0
        assert err.sign == +1
        assert "beta[0]" in str(err)

    def test_non_finite_latent_perturbation_identified(self):
        def fun(mu, beta):
            return beta[0] * np.log(mu[0]) - mu[1]

        mu = [np.array([1.0, 0.0]), np.array([0.0, 1.0])]
        with pytest.raises(ConstraintEvaluationError) as info:
            constraint_matrices(fun, mu, [1.0])
        # the base point is already invalid
        assert info.value.target is None

    def test_exception_is_wrapped(self):
        def fun(mu, beta):
            raise ZeroDivisionError("bad model")

        with pytest.raises(ConstraintEvaluationError, match="ZeroDivisionError") as info:
            constraint_matrices(fun, MU, BETA)
        assert isinstance(info.value.__cause__, ZeroDivisionError)

    def test_wrong_length(self):
        fun = lambda mu, beta: np.zeros(mu[0].size + 1)
        with pytest.raises(ConstraintEvaluationError, match="shape"):
            constraint_matrices(fun, MU, BETA)

    def test_is_value_error(self):
        fun = lambda mu, beta: np.zeros(mu[0].size + 1)
        with pytest.raises(ValueError):
            constraint_matrices(fun, MU, BETA)


def test_split_blocks():
    blocks = split_blocks(np.arange(6.0), 3, 2)
    np.testing.assert_array_equal(blocks[0], [0.0, 1.0, 2.0])
    np.testing.assert_array_equal(blocks[1], [3.0, 4.0, 5.0])
