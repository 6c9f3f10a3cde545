#########################################################################################
##
##                     CHOLESKY + QR FACTORIZED UPDATE (OEFPILRS2)
##                                 (solvers/qr.py)
##
#########################################################################################

# IMPORTS ===============================================================================

import numpy as np
import scipy.linalg as sla

from ._solver import Solver, SolverStep, MATRIX_M, MATRIX_E
from ..errors import FactorizationError


# SOLVERS ===============================================================================

class QRSolver(Solver):
    """Update rule based on an economy QR decomposition.

    Factorizes ``M = B1 U B1' = LM LM'`` and ``E = LM^-1 B2 = QE RE``.  With
    ``u = B1 r + b``, ``v = LM^-1 u`` and ``w = QE' v`` the updates are

    .. math::

        \\Delta\\mu = r - U B_1^T LM^{-T} (v - Q_E w), \\quad
        \\Delta\\beta = -R_E^{-1} w

    and the parameter covariance is ``RE^-1 RE^-T``.

    Note
    ----
    Unrecognized method names resolve to this solver, see
    :func:`oefpil.solvers.get_solver`.
    """

    name = "oefpilrs2"
    aliases = ("qr", "factorized-qr")


    def step(self, B1, B2, b, residuals, U):
        self._check_parameters(B2)
        p = B2.shape[1]

        M = B1 @ U @ B1.T
        LM = self._cholesky(M, MATRIX_M)
        E = sla.solve_triangular(LM, B2, lower=True)

        QE, RE = sla.qr(E, mode="economic")
        diag = np.abs(np.diag(RE))
        if diag.min() <= self._rank_tolerance(E, diag.max()):
            raise FactorizationError(
                MATRIX_E, f"rank deficient, |diag(RE)| = {diag.tolist()}"
            )

        REi = sla.solve_triangular(RE, np.eye(p), lower=False)
        Q22 = -REi @ REi.T

        u = B1 @ residuals + b
        v = sla.solve_triangular(LM, u, lower=True)
        w = QE.T @ v
        vw = v - QE @ w
        LMvw = sla.solve_triangular(LM.T, vw, lower=False)

        mu_delta = residuals - U @ (B1.T @ LMvw)
        beta_delta = -sla.solve_triangular(RE[:p, :], w, lower=False)

        return SolverStep(
            mu_delta=mu_delta,
            beta_delta=beta_delta,
            Q22=Q22,
            factors={"M": M, "LM": LM, "E": E, "QE": QE, "RE": RE},
        )
