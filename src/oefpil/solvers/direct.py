#########################################################################################
##
##                     DIRECT NORMAL-EQUATION UPDATE (OEFPILVW)
##                               (solvers/direct.py)
##
#########################################################################################

# IMPORTS ===============================================================================

import numpy as np

from ._solver import Solver, SolverStep, MATRIX_M


# SOLVERS ===============================================================================

class DirectSolver(Solver):
    """Straightforward solution of the linearized problem via normal equations.

    With ``z = -(b + B1 r)`` and ``M = B1 U B1'``:

    .. math::

        \\Delta\\beta = (B_2^T M^{-1} B_2)^{-1} B_2^T M^{-1} z

        \\lambda = M^{-1} (z - B_2 \\Delta\\beta)

        \\Delta\\mu = r + U B_1^T \\lambda

    and the parameter covariance is ``(B2' M^-1 B2)^-1``.

    Note
    ----
    Forming ``B2' M^-1 B2`` squares the condition number of the problem.
    Prefer the factorized variants for badly scaled parameters.
    """

    name = "oefpilvw"
    aliases = ("direct",)


    def step(self, B1, B2, b, residuals, U):
        self._check_parameters(B2)
        p = B2.shape[1]

        z = -(b + B1 @ residuals)
        UB1t = U @ B1.T
        M = B1 @ UB1t

        Minv_B2 = self._solve_pos(M, B2, MATRIX_M)
        Minv_z = self._solve_pos(M, z, MATRIX_M)

        #normal matrix of the parameter step
        N = B2.T @ Minv_B2
        beta_delta = self._solve_pos(N, B2.T @ Minv_z, "B2'*inv(M)*B2")

        lam = self._solve_pos(M, z - B2 @ beta_delta, MATRIX_M)
        mu_delta = residuals + UB1t @ lam

        Ubeta = self._solve_pos(N, np.eye(p), "B2'*inv(M)*B2")

        return SolverStep(
            mu_delta=mu_delta,
            beta_delta=beta_delta,
            Q22=-Ubeta,
            factors={"M": M, "N": N, "lambda": lam},
        )
