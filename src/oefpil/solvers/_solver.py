#########################################################################################
##
##                         BASE CLASS FOR THE LINEARIZED SOLVE STEP
##                                (solvers/_solver.py)
##
#########################################################################################

# IMPORTS ===============================================================================

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np
import scipy.linalg as sla

from ..errors import FactorizationError


# LABELS ================================================================================

MATRIX_M = "B1*U*B1'"
MATRIX_E = "E = inv(LM)*B2"


# STEP RESULT ===========================================================================

@dataclass
class SolverStep:
    """Output of one linearized solve.

    Attributes
    ----------
    mu_delta : np.ndarray, shape (n*m,)
        Update of the stacked latent values.
    beta_delta : np.ndarray, shape (p,)
        Update of the parameters.
    Q22 : np.ndarray, shape (p, p)
        Lower-right block of the inverse of the linearized system; the
        parameter covariance is ``-Q22`` for every variant.
    factors : dict
        Variant specific intermediate matrices, kept for diagnostics.
    """

    mu_delta: np.ndarray
    beta_delta: np.ndarray
    Q22: np.ndarray
    factors: dict = field(default_factory=dict)


    @property
    def beta_covariance(self) -> np.ndarray:
        """Parameter covariance ``Ubeta = -Q22``."""
        return -self.Q22


# BASE SOLVER ===========================================================================

class Solver:
    """Base class of the update rules of the OEFPIL iteration.

    Every pass of the iteration linearizes the constraint around the current
    iterate, ``fun(mu + dmu, beta + dbeta) ~ b + B1 dmu + B2 dbeta``, and
    solves the resulting constrained generalized least squares problem for
    the new iterate.  Subclasses implement :meth:`step` with a particular
    factorization; they are stateless and factorize afresh on every call.

    Attributes
    ----------
    name : str
        Canonical method name.
    aliases : tuple[str]
        Alternative method names accepted by :func:`oefpil.solvers.get_solver`.
    """

    name = None
    aliases = ()


    def step(
        self,
        B1: np.ndarray,
        B2: np.ndarray,
        b: np.ndarray,
        residuals: np.ndarray,
        U: np.ndarray,
    ) -> SolverStep:
        """Compute the updates of the latent values and parameters.

        Parameters
        ----------
        B1 : np.ndarray, shape (m, n*m)
            Constraint derivative with respect to the latent values.
        B2 : np.ndarray, shape (m, p)
            Constraint derivative with respect to the parameters.
        b : np.ndarray, shape (m,)
            Constraint value at the current iterate.
        residuals : np.ndarray, shape (n*m,)
            Observations minus current latent values.
        U : np.ndarray, shape (n*m, n*m)
            Uncertainty matrix.

        Returns
        -------
        SolverStep
        """
        raise NotImplementedError


    def __call__(self, B1, B2, b, residuals, U) -> SolverStep:
        return self.step(B1, B2, b, residuals, U)


    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


    # SHARED FACTORIZATIONS =============================================================

    @staticmethod
    def _cholesky(A: np.ndarray, label: str) -> np.ndarray:
        """Lower Cholesky factor of *A*."""
        try:
            return sla.cholesky(A, lower=True)
        except (np.linalg.LinAlgError, ValueError) as exc:
            raise FactorizationError(label, f"not positive definite ({exc})") from exc


    @staticmethod
    def _solve_pos(A: np.ndarray, B: np.ndarray, label: str) -> np.ndarray:
        """Solve ``A X = B`` for a symmetric positive definite *A*."""
        try:
            return sla.solve(A, B, assume_a="pos")
        except (np.linalg.LinAlgError, ValueError) as exc:
            raise FactorizationError(label, f"singular or indefinite ({exc})") from exc


    @staticmethod
    def _rank_tolerance(A: np.ndarray, largest: float) -> float:
        return max(A.shape) * np.finfo(float).eps * largest


    @staticmethod
    def _check_parameters(B2: np.ndarray) -> None:
        m, p = B2.shape
        if p > m:
            raise FactorizationError(
                MATRIX_E, f"{p} parameters cannot be identified from {m} constraints"
            )
