#########################################################################################
##
##                               CONVERGENCE CRITERIA
##                                  (criteria.py)
##
#########################################################################################

# IMPORTS ===============================================================================

from __future__ import annotations

import warnings

import numpy as np

from .options import CRITERIA
from .utils.logger import LoggerManager


logger = LoggerManager().get_logger(__name__)


# CRITERIA ==============================================================================

def function_criterion(funcvals: np.ndarray) -> float:
    """``||fun(mu, beta)|| / sqrt(m)``"""
    funcvals = np.asarray(funcvals, dtype=float)
    return float(np.linalg.norm(funcvals) / np.sqrt(funcvals.size))


def weighted_residuals_criterion(weighted_residuals: np.ndarray) -> float:
    """``||L^-1 r|| / sqrt(n*m)`` with ``L`` the lower Cholesky factor of ``U``."""
    weighted_residuals = np.asarray(weighted_residuals, dtype=float)
    return float(np.linalg.norm(weighted_residuals) / np.sqrt(weighted_residuals.size))


def parameter_differences_criterion(
    mu_delta: np.ndarray,
    beta_delta: np.ndarray,
    mu: np.ndarray,
    beta: np.ndarray,
) -> float:
    """``||[dmu; dbeta] ./ [mu; beta]|| / sqrt(n*m + p)``

    The steps are taken relative to the updated values.  A zero component
    makes the ratio undefined: the division is carried out anyway, the
    result is ``inf`` or ``nan``, and a ``RuntimeWarning`` is issued.
    """
    steps = np.concatenate([np.ravel(mu_delta), np.ravel(beta_delta)])
    values = np.concatenate([np.ravel(mu), np.ravel(beta)])

    zeros = np.flatnonzero(values == 0.0)
    if zeros.size:
        msg = (
            f"parameterdifferences criterion divides by zero at stacked "
            f"components {zeros.tolist()}; criterion is not finite"
        )
        logger.warning(msg)
        warnings.warn(msg, RuntimeWarning, stacklevel=3)

    with np.errstate(divide="ignore", invalid="ignore"):
        ratio = steps / values
    return float(np.linalg.norm(ratio) / np.sqrt(values.size))


# DISPATCH ==============================================================================

def resolve_criterion(name: str) -> str:
    """Canonical criterion name; unknown names fall back to ``"function"``."""
    key = str(name).lower()
    if key in CRITERIA:
        return key
    if key != "default":
        msg = f"Unknown convergence criterion '{name}', using 'function'"
        logger.warning(msg)
        warnings.warn(msg, UserWarning, stacklevel=3)
    return "function"


def evaluate_criterion(
    name: str,
    funcvals: np.ndarray,
    weighted_residuals: np.ndarray,
    mu_delta: np.ndarray,
    beta_delta: np.ndarray,
    mu: np.ndarray,
    beta: np.ndarray,
) -> float:
    """Evaluate the criterion *name* (already resolved) for one iteration."""
    if name == "weightedresiduals":
        return weighted_residuals_criterion(weighted_residuals)
    if name == "parameterdifferences":
        return parameter_differences_criterion(mu_delta, beta_delta, mu, beta)
    return function_criterion(funcvals)
