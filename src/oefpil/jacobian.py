#########################################################################################
##
##                           CONSTRAINT JACOBIAN EVALUATION
##                                   (jacobian.py)
##
##         Evaluates the constraint residual b = fun(mu, beta) and its partial
##         derivatives B1 = dfun/dmu and B2 = dfun/dbeta, either by central finite
##         differences or from analytic derivative callbacks.
##
#########################################################################################

# IMPORTS ===============================================================================

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, NamedTuple

import numpy as np

from .errors import ConstraintEvaluationError
from .utils.logger import LoggerManager


logger = LoggerManager().get_logger(__name__)


# CONTAINERS ============================================================================

class ConstraintMatrices(NamedTuple):
    """Linearization of the constraint at the current iterate.

    Attributes
    ----------
    B1 : np.ndarray, shape (m, n*m)
        Derivative with respect to the stacked latent values.
    B2 : np.ndarray, shape (m, p)
        Derivative with respect to the parameters.
    b : np.ndarray, shape (m,)
        Constraint value.
    """

    B1: np.ndarray
    B2: np.ndarray
    b: np.ndarray


# HELPERS ===============================================================================

def split_blocks(vector: np.ndarray, m: int, n: int) -> list[np.ndarray]:
    """Split a stacked length-``n*m`` vector into ``n`` blocks of length ``m``."""
    return [vector[j * m:(j + 1) * m].copy() for j in range(n)]


def evaluate_constraint(
    fun: Callable[..., Any],
    mu_blocks: list[np.ndarray],
    beta: np.ndarray,
    m: int,
    target: str | None = None,
    index: int | None = None,
    sign: int | None = None,
) -> np.ndarray:
    """Call ``fun(mu_blocks, beta)`` and validate the result.

    The returned array keeps a complex dtype if the function produced one;
    callers take the real part once the derivatives are assembled.

    Raises
    ------
    ConstraintEvaluationError
        If *fun* raises, returns a result of the wrong length or returns
        non-finite values.  The perturbation (*target*, *index*, *sign*) is
        attached to the error.
    """
    try:
        value = fun(mu_blocks, beta)
    except ConstraintEvaluationError:
        raise
    except Exception as exc:
        raise ConstraintEvaluationError(
            f"constraint function raised {type(exc).__name__}: {exc}",
            target, index, sign,
        ) from exc

    value = np.asarray(value)
    if value.dtype == object:
        raise ConstraintEvaluationError(
            "constraint function returned a non-numeric result", target, index, sign
        )
    if value.ndim == 0 and m == 1:
        value = value.reshape(1)
    value = value.reshape(-1) if value.size == m else value

    if value.shape != (m,):
        raise ConstraintEvaluationError(
            f"constraint function returned shape {np.shape(value)}, expected ({m},)",
            target, index, sign,
        )
    if not np.all(np.isfinite(value)):
        bad = np.flatnonzero(~np.isfinite(value))
        raise ConstraintEvaluationError(
            f"constraint function returned non-finite values at rows {bad.tolist()}",
            target, index, sign,
        )
    return value


# EVALUATOR =============================================================================

class JacobianEvaluator:
    """Builds ``(B1, B2, b)`` for a constraint ``fun(mu, beta) = 0``.

    Parameters
    ----------
    fun : callable
        ``fun(mu, beta)`` with ``mu`` a list of ``n`` length-``m`` arrays and
        ``beta`` a length-``p`` array; returns a length-``m`` array.
    m : int
        Number of sample points.
    n : int
        Number of measured quantities.
    delta : float
        Central finite-difference step.
    fun_diff_mu : callable, optional
        Analytic derivative with respect to the latent values.  Returns, for
        each block, the length-``m`` vector of derivatives of the row-wise
        constraint with respect to that block's own values; it is expanded
        into a diagonal ``(m, m)`` block of ``B1``.
    fun_diff_beta : callable, optional
        Analytic derivative with respect to the parameters, shape ``(m, p)``.
    workers : int, optional
        Thread pool size for the finite-difference columns.  The constraint
        function must then be safe to call concurrently.

    Notes
    -----
    Each finite-difference column costs two constraint evaluations, so a
    full numerical Jacobian costs ``2*(n*m + p)`` evaluations.  All returned
    matrices keep the real part only.
    """

    def __init__(
        self,
        fun: Callable[..., Any],
        m: int,
        n: int,
        delta: float,
        fun_diff_mu: Callable[..., Any] | None = None,
        fun_diff_beta: Callable[..., Any] | None = None,
        workers: int | None = None,
    ):
        if not callable(fun):
            raise TypeError("fun must be callable")
        self.fun = fun
        self.m = int(m)
        self.n = int(n)
        self.delta = float(delta)
        self.fun_diff_mu = fun_diff_mu
        self.fun_diff_beta = fun_diff_beta
        self.workers = workers


    def __call__(self, mu: np.ndarray, beta: np.ndarray) -> ConstraintMatrices:
        """Evaluate ``(B1, B2, b)`` at the stacked latent values *mu* and *beta*."""
        mu = np.asarray(mu, dtype=float).reshape(-1)
        beta = np.asarray(beta, dtype=float).reshape(-1)
        mu_blocks = split_blocks(mu, self.m, self.n)

        b = evaluate_constraint(self.fun, mu_blocks, beta, self.m)

        if self.fun_diff_mu is None:
            B1 = self._finite_difference(mu, beta, "mu")
        else:
            B1 = self._analytic_mu(mu_blocks, beta)

        if self.fun_diff_beta is None:
            B2 = self._finite_difference(mu, beta, "beta")
        else:
            B2 = self._analytic_beta(mu_blocks, beta)

        return ConstraintMatrices(
            B1=np.real(B1).astype(float),
            B2=np.real(B2).astype(float),
            b=np.real(b).astype(float),
        )


    # FINITE DIFFERENCES ================================================================

    def _column(self, mu: np.ndarray, beta: np.ndarray, target: str, i: int) -> np.ndarray:
        """Central difference along component *i* of *target*."""
        if target == "mu":
            plus, minus = mu.copy(), mu.copy()
            plus[i] += self.delta
            minus[i] -= self.delta
            f_plus = evaluate_constraint(
                self.fun, split_blocks(plus, self.m, self.n), beta, self.m, "mu", i, +1
            )
            f_minus = evaluate_constraint(
                self.fun, split_blocks(minus, self.m, self.n), beta, self.m, "mu", i, -1
            )
        else:
            mu_blocks = split_blocks(mu, self.m, self.n)
            plus, minus = beta.copy(), beta.copy()
            plus[i] += self.delta
            minus[i] -= self.delta
            f_plus = evaluate_constraint(self.fun, mu_blocks, plus, self.m, "beta", i, +1)
            f_minus = evaluate_constraint(self.fun, mu_blocks, minus, self.m, "beta", i, -1)
        return (f_plus - f_minus) / (2.0 * self.delta)


    def _finite_difference(self, mu: np.ndarray, beta: np.ndarray, target: str) -> np.ndarray:
        size = mu.size if target == "mu" else beta.size
        indices = range(size)

        if self.workers is not None and self.workers > 1 and size > 1:
            with ThreadPoolExecutor(max_workers=self.workers) as pool:
                columns = list(pool.map(
                    lambda i: self._column(mu, beta, target, i), indices
                ))
        else:
            columns = [self._column(mu, beta, target, i) for i in indices]

        return np.column_stack(columns)


    # ANALYTIC DERIVATIVES ==============================================================

    def _analytic_mu(self, mu_blocks: list[np.ndarray], beta: np.ndarray) -> np.ndarray:
        try:
            derivs = self.fun_diff_mu(mu_blocks, beta)
        except Exception as exc:
            raise ConstraintEvaluationError(
                f"fun_diff_mu raised {type(exc).__name__}: {exc}"
            ) from exc

        derivs = [np.asarray(d).reshape(-1) for d in derivs]
        if len(derivs) != self.n:
            raise ConstraintEvaluationError(
                f"fun_diff_mu returned {len(derivs)} blocks, expected {self.n}"
            )

        blocks = []
        for j, d in enumerate(derivs):
            if d.size == 1 and self.m > 1:
                # scalar derivative shared by all sample points
                d = np.full(self.m, d[0])
            if d.size != self.m:
                raise ConstraintEvaluationError(
                    f"fun_diff_mu block {j} has {d.size} entries, expected {self.m}"
                )
            if not np.all(np.isfinite(d)):
                raise ConstraintEvaluationError(
                    f"fun_diff_mu block {j} contains non-finite values"
                )
            blocks.append(np.diag(d))
        return np.hstack(blocks)


    def _analytic_beta(self, mu_blocks: list[np.ndarray], beta: np.ndarray) -> np.ndarray:
        try:
            B2 = np.asarray(self.fun_diff_beta(mu_blocks, beta))
        except Exception as exc:
            raise ConstraintEvaluationError(
                f"fun_diff_beta raised {type(exc).__name__}: {exc}"
            ) from exc

        p = beta.size
        if B2.ndim == 1 and B2.size == self.m * p:
            B2 = B2.reshape(self.m, p, order="F")
        if B2.shape != (self.m, p):
            raise ConstraintEvaluationError(
                f"fun_diff_beta returned shape {B2.shape}, expected {(self.m, p)}"
            )
        if not np.all(np.isfinite(B2)):
            raise ConstraintEvaluationError("fun_diff_beta returned non-finite values")
        return B2


# FUNCTIONAL API ========================================================================

def constraint_matrices(
    fun: Callable[..., Any],
    mu,
    beta,
    delta: float = float(np.finfo(float).eps ** (1.0 / 3.0)),
    fun_diff_mu: Callable[..., Any] | None = None,
    fun_diff_beta: Callable[..., Any] | None = None,
    workers: int | None = None,
) -> ConstraintMatrices:
    """Evaluate ``(B1, B2, b)`` for latent values given as ``n`` blocks.

    Example
    -------
    .. code-block:: python

        fun = lambda mu, beta: beta[0] + beta[1] * mu[0] - mu[1]
        B1, B2, b = constraint_matrices(fun, [mu1, mu2], [-0.0651, 1.0744], delta=1e-8)
    """
    blocks = [np.asarray(v, dtype=float).reshape(-1) for v in mu]
    m, n = blocks[0].size, len(blocks)
    evaluator = JacobianEvaluator(
        fun, m, n, delta,
        fun_diff_mu=fun_diff_mu,
        fun_diff_beta=fun_diff_beta,
        workers=workers,
    )
    return evaluator(np.concatenate(blocks), np.asarray(beta, dtype=float))
