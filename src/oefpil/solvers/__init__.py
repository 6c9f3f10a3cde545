#########################################################################################
##
##                          SOLVER REGISTRY (solvers/__init__.py)
##
#########################################################################################

# IMPORTS ===============================================================================

import warnings

from ._solver import Solver, SolverStep
from .direct import DirectSolver
from .svd import SVDSolver
from .qr import QRSolver

from ..utils.logger import LoggerManager


logger = LoggerManager().get_logger(__name__)


# REGISTRY ==============================================================================

SOLVERS = (SVDSolver, QRSolver, DirectSolver)

DEFAULT_SOLVER = SVDSolver

# Unrecognized method names resolve to this solver
FALLBACK_SOLVER = QRSolver

_LOOKUP = {
    key: cls
    for cls in SOLVERS
    for key in (cls.name,) + tuple(cls.aliases)
}


def available_solvers() -> list[str]:
    """Canonical names of the available update rules."""
    return [cls.name for cls in SOLVERS]


def get_solver(method: str | None = None) -> Solver:
    """Return a solver instance for *method* (case-insensitive).

    ============================================  ==========================
    method                                        update rule
    ============================================  ==========================
    ``oefpil`` (default), ``oefpilrs1``, ``svd``  :class:`SVDSolver`
    ``oefpilrs2``, ``qr``                         :class:`QRSolver`
    ``oefpilvw``, ``direct``                      :class:`DirectSolver`
    ============================================  ==========================

    Any other name falls back to :class:`QRSolver` with a warning.
    """
    if method is None:
        return DEFAULT_SOLVER()

    if isinstance(method, Solver):
        return method

    cls = _LOOKUP.get(str(method).lower())
    if cls is None:
        msg = (
            f"Unknown estimation method '{method}', falling back to "
            f"'{FALLBACK_SOLVER.name}'. Available: {available_solvers()}"
        )
        logger.warning(msg)
        warnings.warn(msg, UserWarning, stacklevel=2)
        cls = FALLBACK_SOLVER
    return cls()


__all__ = [
    "Solver",
    "SolverStep",
    "DirectSolver",
    "SVDSolver",
    "QRSolver",
    "available_solvers",
    "get_solver",
]
