#########################################################################################
##
##                   CHOLESKY + SVD FACTORIZED UPDATE (OEFPIL, OEFPILRS1)
##                                 (solvers/svd.py)
##
#########################################################################################

# IMPORTS ===============================================================================

import numpy as np
import scipy.linalg as sla

from ._solver import Solver, SolverStep, MATRIX_M, MATRIX_E
from ..errors import FactorizationError


# SOLVERS ===============================================================================

class SVDSolver(Solver):
    """Default update rule, avoiding explicit normal equations.

    Factorizes ``M = B1 U B1' = LM LM'`` and decomposes
    ``E = LM^-1 B2 = UE SE VE'``.  With ``F = VE diag(1/SE)`` and
    ``G = LM'^-1 UE[:, :p]`` the blocks of the inverse of the linearized
    system are

    .. math::

        Q_{11} = LM^{-T} LM^{-1} - G G^T, \\quad Q_{21} = F G^T, \\quad Q_{22} = -F F^T

    and with ``u = B1 r + b`` the updates read
    ``dmu = r - U B1' Q11 u`` and ``dbeta = -Q21 u``.

    References
    ----------
    .. [1] Charvatova Campbell, A., Slesinger, R., Klapetek, P., Chvostekova,
           M., Hajzokova, L., Witkovsky, V. and Wimmer, G. (2023). "Locally
           best linear unbiased estimation of regression curves specified by
           nonlinear constraints on the model parameters". AMCTMT 2023.
    """

    name = "oefpil"
    aliases = ("oefpilrs1", "svd", "factorized-svd")


    def step(self, B1, B2, b, residuals, U):
        self._check_parameters(B2)
        m, p = B2.shape

        M = B1 @ U @ B1.T
        LM = self._cholesky(M, MATRIX_M)
        E = sla.solve_triangular(LM, B2, lower=True)

        try:
            UE, SE, VEt = sla.svd(E, full_matrices=False)
        except (np.linalg.LinAlgError, ValueError) as exc:
            raise FactorizationError(MATRIX_E, f"SVD did not converge ({exc})") from exc

        if SE.size < p or SE[-1] <= self._rank_tolerance(E, SE[0]):
            raise FactorizationError(
                MATRIX_E, f"rank deficient, singular values {SE.tolist()}"
            )

        F = VEt.T / SE
        G = sla.solve_triangular(LM.T, UE[:, :p], lower=False)
        Q21 = F @ G.T
        LMi = sla.solve_triangular(LM, np.eye(m), lower=True)
        Q11 = LMi.T @ LMi - G @ G.T
        Q22 = -F @ F.T

        u = B1 @ residuals + b
        mu_delta = residuals - U @ (B1.T @ (Q11 @ u))
        beta_delta = -Q21 @ u

        return SolverStep(
            mu_delta=mu_delta,
            beta_delta=beta_delta,
            Q22=Q22,
            factors={
                "M": M, "LM": LM, "E": E,
                "UE": UE, "SE": SE, "VE": VEt.T,
                "Q11": Q11, "Q21": Q21,
            },
        )
