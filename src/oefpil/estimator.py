#########################################################################################
##
##                   OEFPIL ESTIMATOR FOR NONLINEAR ERRORS-IN-VARIABLES MODELS
##                                  (estimator.py)
##
##         Optimum Estimate of Function Parameters by Iterated Linearization:
##         observations X = mu + error with known covariance U, and the latent
##         values mu and parameters beta subject to fun(mu, beta) = 0.
##
#########################################################################################

# IMPORTS ===============================================================================

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping

import numpy as np
import scipy.linalg as sla

from .criteria import evaluate_criterion, resolve_criterion
from .data import ObservationData, normalize_initial_values, normalize_parameters
from .errors import FactorizationError
from .jacobian import ConstraintMatrices, JacobianEvaluator, evaluate_constraint, split_blocks
from .options import EstimatorOptions
from .results import EstimatorResult
from .solvers import SolverStep, get_solver
from .uncertainty import as_dense, build_uncertainty_matrix
from .utils.logger import LoggerManager


logger = LoggerManager().get_logger(__name__)

# Criterion value reported before the first pass
_INITIAL_CRITERION = 100.0


__all__ = [
    "IterationState",
    "OEFPIL",
    "oefpil",
]


# ITERATION STATE =======================================================================

@dataclass(frozen=True)
class IterationState:
    """Snapshot of the iteration after a pass.

    A new instance is produced by every call of :meth:`OEFPIL.iterate`; the
    arrays of a state are never modified afterwards.

    Attributes
    ----------
    mu : np.ndarray, shape (n*m,)
        Stacked latent values.
    beta : np.ndarray, shape (p,)
        Parameters.
    residuals : np.ndarray, shape (n*m,)
        Observations minus ``mu``.
    weighted_residuals : np.ndarray, shape (n*m,)
        ``L^-1 residuals``.
    funcvals : np.ndarray or None
        Constraint value at ``(mu, beta)``; ``None`` before the first pass.
    iteration : int
        Number of completed passes.
    criterion : float
        Convergence criterion of the last pass.
    step : SolverStep or None
        Update computed in the last pass.
    matrices : ConstraintMatrices or None
        Linearization ``(B1, B2, b)`` used in the last pass.
    """

    mu: np.ndarray
    beta: np.ndarray
    residuals: np.ndarray
    weighted_residuals: np.ndarray
    funcvals: np.ndarray | None = None
    iteration: int = 0
    criterion: float = _INITIAL_CRITERION
    step: SolverStep | None = None
    matrices: ConstraintMatrices | None = None


# ESTIMATOR =============================================================================

class OEFPIL:
    """Iterated linearization estimator for nonlinear errors-in-variables models.

    The ``n`` measured quantities ``X1 .. Xn`` observed at ``m`` sample points
    are modelled as ``X = mu + error`` with ``cov(X) = U``.  The unknown true
    values ``mu`` and the parameters ``beta`` have to satisfy the ``m``
    constraints ``fun(mu, beta) = 0``.  Every pass linearizes the constraint
    at the current iterate and solves the linearized generalized least
    squares problem with the configured update rule.

    Parameters
    ----------
    data : array_like, sequence of array_like or ObservationData
        ``(m, n)`` matrix or ``[x1, ..., xn]``.
    fun : callable
        ``fun(mu, beta) -> (m,)`` with ``mu`` a list of ``n`` arrays.
    beta0 : array_like
        Initial parameter values (required).
    uncertainty : optional
        Uncertainty matrix or block specification, see
        :func:`oefpil.uncertainty.build_uncertainty_matrix`.  Identity if
        omitted.
    mu0 : optional
        Initial latent values, same layout as *data*.  Defaults to the
        observations.
    options : EstimatorOptions or mapping, optional
        Control parameters.
    **option_overrides
        Individual option fields overriding *options*.

    Notes
    -----
    The loop ends when the criterion is at or below ``tolerance`` or after
    ``max_iterations`` passes.  Reaching the iteration limit is not an
    error; inspect :attr:`EstimatorResult.status`.  Factorization failures
    and invalid constraint evaluations abort the fit immediately.

    Example
    -------
    .. code-block:: python

        fun = lambda mu, beta: beta[0] + beta[1] * mu[0] - mu[1]

        est = OEFPIL([x, y], fun, beta0=[0.0, 1.0], uncertainty=[Ux, Uy])
        result = est.fit()
        result.display()
    """

    def __init__(
        self,
        data,
        fun: Callable[..., Any],
        beta0,
        uncertainty=None,
        mu0=None,
        options: EstimatorOptions | Mapping[str, Any] | None = None,
        **option_overrides,
    ):
        if not callable(fun):
            raise TypeError("fun must be callable")

        opts = EstimatorOptions.from_mapping(options)
        if option_overrides:
            opts = EstimatorOptions.from_mapping(
                {**_as_dict(opts), **option_overrides}
            )
        self.options = opts
        self.fun = fun

        self.data = data if isinstance(data, ObservationData) else ObservationData(data)
        m, n = self.data.m, self.data.n

        self.beta0 = normalize_parameters(beta0)
        self.mu0 = normalize_initial_values(mu0, self.data)
        self.observations = self.data.vector

        self.U = build_uncertainty_matrix(uncertainty, m, n, sparse=opts.sparse)
        self._U = as_dense(self.U)
        self.L = self._cholesky_uncertainty(self._U)

        self.solver = get_solver(opts.method)
        self.criterion = resolve_criterion(opts.criterion)
        self.jacobian = JacobianEvaluator(
            fun, m, n, opts.delta,
            fun_diff_mu=opts.fun_diff_mu,
            fun_diff_beta=opts.fun_diff_beta,
            workers=opts.workers,
        )

        logger.debug(
            "OEFPIL setup: m=%d, n=%d, p=%d, method=%s, criterion=%s, "
            "tol=%g, maxit=%d, delta=%g",
            m, n, self.beta0.size, self.solver.name, self.criterion,
            opts.tolerance, opts.max_iterations, opts.delta,
        )


    # SETUP =============================================================================

    @staticmethod
    def _cholesky_uncertainty(U: np.ndarray) -> np.ndarray:
        if not np.allclose(U, U.T, rtol=1e-10, atol=1e-10 * np.abs(U).max()):
            raise FactorizationError("U", "uncertainty matrix is not symmetric")
        try:
            return sla.cholesky(U, lower=True)
        except (np.linalg.LinAlgError, ValueError) as exc:
            raise FactorizationError("U", f"not positive definite ({exc})") from exc


    def _weight(self, residuals: np.ndarray) -> np.ndarray:
        return sla.solve_triangular(self.L, residuals, lower=True)


    # ITERATION =========================================================================

    def initial_state(self) -> IterationState:
        """State before the first pass."""
        residuals = self.observations - self.mu0
        return IterationState(
            mu=self.mu0.copy(),
            beta=self.beta0.copy(),
            residuals=residuals,
            weighted_residuals=self._weight(residuals),
        )


    def iterate(self, state: IterationState) -> IterationState:
        """One pass: linearize, solve, update and evaluate the criterion."""
        iteration = state.iteration + 1

        matrices = self.jacobian(state.mu, state.beta)

        try:
            step = self.solver.step(
                matrices.B1, matrices.B2, matrices.b, state.residuals, self._U
            )
        except FactorizationError as err:
            logger.error("iteration %d: %s", iteration, err)
            raise FactorizationError(err.matrix, err.reason, iteration) from err

        mu = state.mu + step.mu_delta
        beta = state.beta + step.beta_delta
        residuals = self.observations - mu
        weighted = self._weight(residuals)

        funcvals = np.real(evaluate_constraint(
            self.fun, split_blocks(mu, self.data.m, self.data.n), beta, self.data.m
        )).astype(float)

        crit = evaluate_criterion(
            self.criterion, funcvals, weighted,
            step.mu_delta, step.beta_delta, mu, beta,
        )

        logger.debug(
            "iteration %3d: criterion=%.6e, |dbeta|=%.3e, beta=%s",
            iteration, crit, np.linalg.norm(step.beta_delta), beta,
        )

        return IterationState(
            mu=mu,
            beta=beta,
            residuals=residuals,
            weighted_residuals=weighted,
            funcvals=funcvals,
            iteration=iteration,
            criterion=crit,
            step=step,
            matrices=matrices,
        )


    def should_continue(self, state: IterationState) -> bool:
        """True while the criterion exceeds the tolerance and passes remain."""
        return (
            state.criterion > self.options.tolerance
            and state.iteration < self.options.max_iterations
        )


    def status(self, state: IterationState) -> str:
        """Terminal status of *state*."""
        if state.criterion <= self.options.tolerance:
            return "converged"
        if np.isnan(state.criterion):
            return "undefined_criterion"
        return "max_iterations"


    # FIT ===============================================================================

    def fit(self) -> EstimatorResult:
        """Run the iteration to termination and assemble the result.

        Returns
        -------
        EstimatorResult

        Raises
        ------
        FactorizationError
            If ``B1 U B1'`` or ``E`` cannot be factorized.
        ConstraintEvaluationError
            If the constraint (or a derivative callback) fails.
        """
        tic = time.perf_counter()

        # the first pass always runs
        state = self.iterate(self.initial_state())
        while self.should_continue(state):
            state = self.iterate(state)

        elapsed = time.perf_counter() - tic
        status = self.status(state)

        if status == "converged":
            logger.info(
                "OEFPIL (%s) converged after %d iterations, criterion=%.3e",
                self.solver.name, state.iteration, state.criterion,
            )
        elif status == "undefined_criterion":
            logger.warning(
                "OEFPIL (%s) stopped after %d iterations: criterion is NaN",
                self.solver.name, state.iteration,
            )
        else:
            logger.warning(
                "OEFPIL (%s) reached max_iterations=%d, criterion=%.3e > tol=%.3e",
                self.solver.name, state.iteration, state.criterion,
                self.options.tolerance,
            )

        result = self._assemble(state, elapsed, status)

        if self.options.verbose:
            result.display()
        if self.options.plot:
            result.plot()

        return result


    def _assemble(self, state: IterationState, elapsed: float, status: str) -> EstimatorResult:
        step = state.step
        B1, B2, b = state.matrices

        return EstimatorResult(
            data=self.data,
            U=self.U,
            fun=self.fun,
            mu=split_blocks(state.mu, self.data.m, self.data.n),
            beta=state.beta,
            Ubeta=step.beta_covariance,
            options=self.options,
            mu_delta=step.mu_delta,
            beta_delta=step.beta_delta,
            residuals=state.residuals,
            weighted_residuals=state.weighted_residuals,
            funcvals=state.funcvals,
            matrices={"L": self.L, "B1": B1, "B2": B2, "b": b},
            factors=step.factors,
            method=self.solver.name,
            crit=state.criterion,
            iterations=state.iteration,
            elapsed=elapsed,
            status=status,
        )


    def __repr__(self) -> str:
        return (
            f"OEFPIL(m={self.data.m}, n={self.data.n}, p={self.beta0.size}, "
            f"method={self.solver.name!r}, criterion={self.criterion!r})"
        )


# HELPERS ===============================================================================

def _as_dict(options: EstimatorOptions) -> dict:
    # shallow: callbacks must not be deep-copied
    return {name: getattr(options, name) for name in options.__dataclass_fields__}


# FUNCTIONAL API ========================================================================

def oefpil(data, U, fun, mu0=None, beta0=None, options=None, **kwargs) -> EstimatorResult:
    """Estimate a nonlinear errors-in-variables model in one call.

    Parameters
    ----------
    data : array_like or sequence of array_like
        ``(m, n)`` measurements or ``[x1, ..., xn]``.
    U : optional
        Uncertainty matrix or block specification; ``None`` for identity.
    fun : callable
        Constraint ``fun(mu, beta)``.
    mu0 : optional
        Initial latent values; ``None`` starts from the observations.
    beta0 : array_like
        Initial parameter values.
    options : EstimatorOptions or mapping, optional
        Control parameters; the original option names (``maxit``, ``tol``,
        ``funDiff_mu``, ...) are accepted in a mapping.
    **kwargs
        Individual option overrides.

    Returns
    -------
    EstimatorResult

    Example
    -------
    .. code-block:: python

        result = oefpil(
            [x, y], [Ux, Uy],
            lambda mu, beta: beta[0] + beta[1] * mu[0] - mu[1],
            mu0=[x, y], beta0=[0.0, 1.0],
            options={"criterion": "parameterdifferences"},
        )
    """
    if beta0 is None:
        raise ValueError("The starting values of the parameter vector beta must be specified.")
    return OEFPIL(data, fun, beta0, uncertainty=U, mu0=mu0, options=options, **kwargs).fit()
