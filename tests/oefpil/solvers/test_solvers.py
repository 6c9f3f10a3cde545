########################################################################################
##
##                                  TESTS FOR
##                  'solvers/direct.py', 'solvers/svd.py', 'solvers/qr.py'
##
########################################################################################

# IMPORTS ==============================================================================

import unittest

import numpy as np
import pytest

from oefpil.errors import FactorizationError
from oefpil.solvers import (
    DirectSolver,
    QRSolver,
    Solver,
    SolverStep,
    SVDSolver,
    available_solvers,
    get_solver,
)


# HELPERS ==============================================================================

def _problem(m=6, n=2, p=2, seed=7):
    """Random well-conditioned linearized problem."""
    rng = np.random.default_rng(seed)
    B1 = rng.normal(size=(m, n * m))
    B2 = rng.normal(size=(m, p))
    b = rng.normal(size=m)
    residuals = 0.1 * rng.normal(size=n * m)
    A = rng.normal(size=(n * m, n * m))
    U = A @ A.T / (n * m) + np.eye(n * m)
    return B1, B2, b, residuals, U


SOLVERS = [DirectSolver, SVDSolver, QRSolver]


# TESTS ================================================================================

class TestSolverAgreement(unittest.TestCase):
    """
    The three update rules solve the same linearized problem
    """

    def setUp(self):
        self.problem = _problem()
        self.steps = {cls.name: cls().step(*self.problem) for cls in SOLVERS}


    def test_beta_delta(self):
        ref = self.steps["oefpilvw"].beta_delta
        for name in ("oefpil", "oefpilrs2"):
            np.testing.assert_allclose(self.steps[name].beta_delta, ref, rtol=1e-9, atol=1e-12)


    def test_mu_delta(self):
        ref = self.steps["oefpilvw"].mu_delta
        for name in ("oefpil", "oefpilrs2"):
            np.testing.assert_allclose(self.steps[name].mu_delta, ref, rtol=1e-9, atol=1e-12)


    def test_covariance(self):
        ref = self.steps["oefpilvw"].beta_covariance
        for name in ("oefpil", "oefpilrs2"):
            np.testing.assert_allclose(self.steps[name].beta_covariance, ref, rtol=1e-9, atol=1e-14)


    def test_linearized_constraint_satisfied(self):
        B1, B2, b, residuals, U = self.problem
        for step in self.steps.values():
            # b + B1 (mu_new - mu) + B2 dbeta = 0 with mu_new - mu = mu_delta
            lin = b + B1 @ step.mu_delta + B2 @ step.beta_delta
            np.testing.assert_allclose(lin, 0.0, atol=1e-10)


    def test_covariance_symmetric_positive(self):
        for step in self.steps.values():
            C = step.beta_covariance
            np.testing.assert_allclose(C, C.T, atol=1e-14)
            self.assertTrue(np.all(np.linalg.eigvalsh(C) > 0.0))


    def test_covariance_is_negative_q22(self):
        for step in self.steps.values():
            np.testing.assert_array_equal(step.beta_covariance, -step.Q22)


class TestSolverFailures:

    @pytest.mark.parametrize("cls", [SVDSolver, QRSolver])
    def test_rank_deficient_parameters(self, cls):
        B1, B2, b, residuals, U = _problem()
        # second parameter does not enter the constraint
        B2 = np.column_stack([B2[:, 0], np.zeros(B2.shape[0])])
        with pytest.raises(FactorizationError) as info:
            cls().step(B1, B2, b, residuals, U)
        assert info.value.matrix == "E = inv(LM)*B2"

    @pytest.mark.parametrize("cls", SOLVERS)
    def test_singular_constraint_derivative(self, cls):
        B1, B2, b, residuals, U = _problem()
        B1[2, :] = 0.0
        with pytest.raises(FactorizationError) as info:
            cls().step(B1, B2, b, residuals, U)
        assert info.value.matrix == "B1*U*B1'"

    @pytest.mark.parametrize("cls", SOLVERS)
    def test_more_parameters_than_constraints(self, cls):
        B1, _, b, residuals, U = _problem(m=2)
        B2 = np.ones((2, 3))
        with pytest.raises(FactorizationError, match="3 parameters"):
            cls().step(B1, B2, b, residuals, U)

    def test_factorization_error_is_linalg_error(self):
        B1, B2, b, residuals, U = _problem()
        B1[0, :] = 0.0
        with pytest.raises(np.linalg.LinAlgError):
            SVDSolver().step(B1, B2, b, residuals, U)


class TestRegistry:

    def test_default(self):
        assert isinstance(get_solver(), SVDSolver)

    @pytest.mark.parametrize("name, cls", [
        ("oefpil", SVDSolver),
        ("oefpilrs1", SVDSolver),
        ("OEFPILRS1", SVDSolver),
        ("svd", SVDSolver),
        ("oefpilrs2", QRSolver),
        ("qr", QRSolver),
        ("oefpilvw", DirectSolver),
        ("direct", DirectSolver),
    ])
    def test_names(self, name, cls):
        assert isinstance(get_solver(name), cls)

    def test_unknown_falls_back_to_qr(self):
        with pytest.warns(UserWarning, match="Unknown estimation method"):
            solver = get_solver("newton")
        assert isinstance(solver, QRSolver)

    def test_instance_passes_through(self):
        solver = DirectSolver()
        assert get_solver(solver) is solver

    def test_available(self):
        assert available_solvers() == ["oefpil", "oefpilrs2", "oefpilvw"]

    def test_base_step_not_implemented(self):
        with pytest.raises(NotImplementedError):
            Solver().step(*_problem())

    def test_callable(self):
        step = QRSolver()(*_problem())
        assert isinstance(step, SolverStep)
