#########################################################################################
##
##                                  ESTIMATOR ERRORS
##                                    (errors.py)
##
#########################################################################################

# IMPORTS ===============================================================================

import numpy as np


# EXCEPTIONS ============================================================================

class OEFPILError(Exception):
    """Base class for all estimator failures."""


class FactorizationError(OEFPILError, np.linalg.LinAlgError):
    """A matrix factorization or solve failed during estimation.

    Parameters
    ----------
    matrix : str
        Label of the offending matrix, e.g. ``"U"`` or ``"B1*U*B1'"``.
    reason : str
        What went wrong.
    iteration : int, optional
        Iteration in which the failure occurred (``None`` before the loop).
    """

    def __init__(self, matrix: str, reason: str, iteration: int | None = None):
        self.matrix = matrix
        self.reason = reason
        self.iteration = iteration
        where = "" if iteration is None else f" (iteration {iteration})"
        super().__init__(f"Factorization of {matrix} failed{where}: {reason}")


class ConstraintEvaluationError(OEFPILError, ValueError):
    """The constraint function (or a derivative callback) failed.

    Raised when the callback raises, returns non-finite values or returns an
    array of the wrong shape.

    Parameters
    ----------
    message : str
        Description of the failure.
    target : str, optional
        Perturbed quantity, ``"mu"`` or ``"beta"``; ``None`` for the
        unperturbed evaluation.
    index : int, optional
        Flat index of the perturbed component.
    sign : int, optional
        Direction of the perturbation, ``+1`` or ``-1``.
    """

    def __init__(
        self,
        message: str,
        target: str | None = None,
        index: int | None = None,
        sign: int | None = None,
    ):
        self.target = target
        self.index = index
        self.sign = sign
        if target is not None and index is not None:
            direction = "+" if (sign or 1) > 0 else "-"
            message = f"{message} [perturbation {direction}delta of {target}[{index}]]"
        super().__init__(message)
