#########################################################################################
##
##                                ESTIMATOR OPTIONS
##                                  (options.py)
##
#########################################################################################

# IMPORTS ===============================================================================

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any, Callable, Mapping

import numpy as np


# CONSTANTS =============================================================================

CRITERIA = ("function", "weightedresiduals", "parameterdifferences")

# Original option names accepted by ``EstimatorOptions.from_mapping``
_ALIASES = {
    "maxit": "max_iterations",
    "tol": "tolerance",
    "isPlot": "plot",
    "isSparse": "sparse",
    "funDiff_mu": "fun_diff_mu",
    "funDiff_beta": "fun_diff_beta",
}


# OPTIONS ===============================================================================

@dataclass
class EstimatorOptions:
    """Control parameters of the OEFPIL iteration.

    Parameters
    ----------
    criterion : str
        Convergence criterion, one of ``"function"`` (default),
        ``"weightedresiduals"`` or ``"parameterdifferences"``.  ``"default"``
        is an alias of ``"function"``; unknown names fall back to
        ``"function"`` with a warning when the criterion is evaluated.
    max_iterations : int
        Maximum number of linearization passes.
    tolerance : float
        The loop stops once the criterion drops to or below this value.
    delta : float
        Step of the central finite differences, ``eps ** (1/3)`` by default.
    alpha : float or None
        Significance level for the confidence bounds, ``norm.ppf(1 - alpha/2)``
        is the coverage factor.  ``None`` disables the bounds.
    method : str or Solver
        Solver variant, see :func:`oefpil.solvers.get_solver`.
    fun_diff_mu : callable, optional
        ``fun_diff_mu(mu, beta)`` returning a sequence of ``n`` length-``m``
        arrays, the derivative of the constraint with respect to each block.
    fun_diff_beta : callable, optional
        ``fun_diff_beta(mu, beta)`` returning the ``(m, p)`` derivative with
        respect to the parameters.
    workers : int, optional
        Evaluate the finite-difference columns on a thread pool of this size.
    verbose : bool
        Print the result tables after fitting.
    plot : bool
        Draw the diagnostic figures after fitting.
    sparse : bool
        Assemble block-specified uncertainty matrices as ``scipy.sparse``.
    """

    criterion: str = "function"
    max_iterations: int = 100
    tolerance: float = 1e-10
    delta: float = float(np.finfo(float).eps ** (1.0 / 3.0))
    alpha: float | None = 0.05
    method: Any = "oefpil"
    fun_diff_mu: Callable[..., Any] | None = None
    fun_diff_beta: Callable[..., Any] | None = None
    workers: int | None = None
    verbose: bool = False
    plot: bool = False
    sparse: bool = False


    def __post_init__(self) -> None:
        self.criterion = str(self.criterion).lower()
        if isinstance(self.method, str):
            self.method = self.method.lower()

        if isinstance(self.max_iterations, bool) or int(self.max_iterations) != self.max_iterations:
            raise ValueError(f"max_iterations must be an integer, got {self.max_iterations!r}")
        self.max_iterations = int(self.max_iterations)
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be positive, got {self.max_iterations}")

        self.tolerance = float(self.tolerance)
        if not self.tolerance > 0.0:
            raise ValueError(f"tolerance must be positive, got {self.tolerance}")

        self.delta = float(self.delta)
        if not (np.isfinite(self.delta) and self.delta > 0.0):
            raise ValueError(f"delta must be a positive finite step, got {self.delta}")

        if self.alpha is not None:
            self.alpha = float(self.alpha)
            if not 0.0 < self.alpha < 1.0:
                raise ValueError(f"alpha must lie in (0, 1), got {self.alpha}")

        for name in ("fun_diff_mu", "fun_diff_beta"):
            fn = getattr(self, name)
            if fn is not None and not callable(fn):
                raise TypeError(f"{name} must be callable or None")

        if self.workers is not None:
            self.workers = int(self.workers)
            if self.workers < 1:
                raise ValueError(f"workers must be >= 1, got {self.workers}")


    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any] | None) -> "EstimatorOptions":
        """Build options from a dict, accepting the original option names.

        ``maxit``, ``tol``, ``isPlot``, ``isSparse``, ``funDiff_mu`` and
        ``funDiff_beta`` are translated to the field names; any other
        unknown key raises ``ValueError``.
        """
        if mapping is None:
            return cls()
        if isinstance(mapping, cls):
            return mapping.replace()

        fields = {f.name for f in dataclasses.fields(cls)}
        kwargs = {}
        for key, value in mapping.items():
            name = _ALIASES.get(key, key)
            if name not in fields:
                raise ValueError(f"Unknown estimator option '{key}'")
            kwargs[name] = value
        return cls(**kwargs)


    def replace(self, **changes) -> "EstimatorOptions":
        """Return a validated copy with *changes* applied."""
        return dataclasses.replace(self, **changes)
