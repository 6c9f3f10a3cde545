#########################################################################################
##
##                              ESTIMATION RESULT CONTAINER
##                                   (results.py)
##
#########################################################################################

# IMPORTS ===============================================================================

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

import numpy as np
from scipy.stats import norm

from .data import ObservationData
from .options import EstimatorOptions


# HELPERS ===============================================================================

def coverage_factor(alpha: float | None) -> float:
    """Two-sided standard normal quantile ``norm.ppf(1 - alpha/2)``."""
    if alpha is None:
        return float("nan")
    return float(norm.ppf(1.0 - alpha / 2.0))


def standard_errors(Ubeta: np.ndarray) -> np.ndarray:
    """Square roots of the covariance diagonal (negative rounding clipped to zero)."""
    return np.sqrt(np.maximum(np.diag(Ubeta), 0.0))


def p_values(beta: np.ndarray, ubeta: np.ndarray) -> np.ndarray:
    """Two-sided p-values ``2 * Phi(-|beta / ubeta|)``."""
    with np.errstate(divide="ignore", invalid="ignore"):
        return 2.0 * norm.cdf(-np.abs(beta / ubeta))


def _fmt(value: float) -> str:
    return f"{value:>12.6g}" if np.isfinite(value) else f"{'N/A':>12}"


# RESULT ================================================================================

@dataclass
class EstimatorResult:
    """Result of an OEFPIL fit.

    The derived statistics (standard errors, coverage factor, confidence
    bounds, p-values, residual sums of squares and the correlation matrix)
    are computed once on construction.

    Attributes
    ----------
    data : ObservationData
        Observations the fit was computed from.
    U : np.ndarray
        Uncertainty matrix of the stacked observations.
    fun : callable
        Constraint function.
    mu : list[np.ndarray]
        Estimated latent values, one length-``m`` block per quantity.
    beta : np.ndarray
        Estimated parameters.
    Ubeta : np.ndarray
        Parameter covariance matrix (``-Q22`` of the last iteration).
    options : EstimatorOptions
        Options used for the fit.
    mu_delta, beta_delta : np.ndarray
        Updates of the last iteration.
    residuals : np.ndarray
        Observations minus estimated latent values (stacked).
    weighted_residuals : np.ndarray
        ``L^-1 residuals`` with ``L`` the lower Cholesky factor of ``U``.
    funcvals : np.ndarray
        Constraint function at the estimate.
    matrices : dict
        ``L``, ``B1``, ``B2`` and ``b`` of the last iteration.
    factors : dict
        Intermediate factorization of the last iteration.
    method : str
        Solver variant.
    crit : float
        Final value of the convergence criterion.
    iterations : int
        Number of iterations performed.
    elapsed : float
        Wall time of the iteration in seconds.
    status : str
        ``"converged"``, ``"max_iterations"`` or ``"undefined_criterion"``.
    """

    data: ObservationData
    U: np.ndarray
    fun: Callable[..., Any]
    mu: list
    beta: np.ndarray
    Ubeta: np.ndarray
    options: EstimatorOptions
    mu_delta: np.ndarray
    beta_delta: np.ndarray
    residuals: np.ndarray
    weighted_residuals: np.ndarray
    funcvals: np.ndarray
    matrices: dict
    method: str
    crit: float
    iterations: int
    elapsed: float
    status: str
    factors: dict = field(default_factory=dict)


    def __post_init__(self) -> None:
        self.beta = np.asarray(self.beta, dtype=float)
        self.Ubeta = np.asarray(self.Ubeta, dtype=float)

        self.ubeta = standard_errors(self.Ubeta)
        self.coverage_factor = coverage_factor(self.options.alpha)
        self.lower = self.beta - self.coverage_factor * self.ubeta
        self.upper = self.beta + self.coverage_factor * self.ubeta
        self.pvalues = p_values(self.beta, self.ubeta)

        self.funcrit = float(np.linalg.norm(self.funcvals) / np.sqrt(self.data.m))
        self.rss = float(self.residuals @ self.residuals)
        self.wrss = float(self.weighted_residuals @ self.weighted_residuals)

        with np.errstate(divide="ignore", invalid="ignore"):
            corr = self.Ubeta / np.outer(self.ubeta, self.ubeta)
        corr[~np.isfinite(corr)] = 0.0
        np.fill_diagonal(corr, 1.0)
        self.correlation = corr


    # PROPERTIES ========================================================================

    @property
    def converged(self) -> bool:
        """True if the criterion reached the tolerance."""
        return self.status == "converged"


    @property
    def m(self) -> int:
        return self.data.m


    @property
    def n(self) -> int:
        return self.data.n


    @property
    def p(self) -> int:
        return self.beta.size


    @property
    def mu_matrix(self) -> np.ndarray:
        """Estimated latent values as an ``(m, n)`` matrix."""
        return np.column_stack(self.mu)


    @property
    def param_names(self) -> list[str]:
        return [f"beta_{i + 1}" for i in range(self.p)]


    # TABLES ============================================================================

    def parameter_table(self) -> dict:
        """Estimated parameters as a column dictionary.

        Keys are ``name``, ``estimate``, ``std``, ``factor``, ``lower``,
        ``upper`` and ``pval``; each value has one entry per parameter.
        """
        return {
            "name": self.param_names,
            "estimate": self.beta.copy(),
            "std": self.ubeta.copy(),
            "factor": np.full(self.p, self.coverage_factor),
            "lower": self.lower.copy(),
            "upper": self.upper.copy(),
            "pval": self.pvalues.copy(),
        }


    def info_table(self) -> dict:
        """Convergence summary."""
        return {
            "m": self.m,
            "p": self.p,
            "iterations": self.iterations,
            "criterion": self.crit,
            "function": self.funcrit,
            "rss": self.rss,
            "wrss": self.wrss,
        }


    # DISPLAY ===========================================================================

    def display(self) -> None:
        """Print the convergence summary and the parameter table."""
        W = 92
        line = "-" * W
        fun_name = getattr(self.fun, "__name__", repr(self.fun))

        print(line)
        print(f"    OEFPIL ESTIMATION METHOD = {self.method}")
        print(f"    fun = {fun_name}")
        print(line)

        info = self.info_table()
        print(f"  {'m':>6} {'p':>4} {'ITERATIONS':>11} {'CRITERION':>12} "
              f"{'FUNCTION':>12} {'RSS':>12} {'wRSS':>12}  STATUS")
        print(f"  {info['m']:>6d} {info['p']:>4d} {info['iterations']:>11d} "
              f"{_fmt(info['criterion'])} {_fmt(info['function'])} "
              f"{_fmt(info['rss'])} {_fmt(info['wrss'])}  {self.status}")
        print(line)

        table = self.parameter_table()
        print(f"  {'':<10} {'ESTIMATE':>12} {'STD':>12} {'FACTOR':>12} "
              f"{'LOWER':>12} {'UPPER':>12} {'PVAL':>12}")
        for i, name in enumerate(table["name"]):
            print(f"  {name:<10} {_fmt(table['estimate'][i])} {_fmt(table['std'][i])} "
                  f"{_fmt(table['factor'][i])} {_fmt(table['lower'][i])} "
                  f"{_fmt(table['upper'][i])} {_fmt(table['pval'][i])}")
        print(line)


    def plot(self):
        """Draw the diagnostic figures, see :func:`oefpil.plotting.plot_fit`."""
        from .plotting import plot_fit

        return plot_fit(self)


    def __repr__(self) -> str:
        return (
            f"EstimatorResult({self.status.upper()}, method={self.method!r}, "
            f"iterations={self.iterations}, crit={self.crit:.4g}, beta={self.beta})"
        )
