#########################################################################################
##
##                              OBSERVATION DATA CONTAINER
##                                     (data.py)
##
#########################################################################################

# IMPORTS ===============================================================================

from __future__ import annotations

import warnings
from typing import Sequence

import numpy as np

from .utils.logger import LoggerManager


logger = LoggerManager().get_logger(__name__)


# HELPERS ===============================================================================

def _is_block_sequence(values) -> bool:
    return isinstance(values, (list, tuple))


def _as_matrix(values, what: str) -> np.ndarray:
    """Normalize an (m, n) array or a sequence of n length-m vectors to (m, n).

    A list is always read as a sequence of quantities, never as a list of
    matrix rows.  Pass ``np.asarray(rows)`` for row-wise data.
    """
    if isinstance(values, np.ndarray) and values.ndim == 2:
        return np.array(values, dtype=float)

    if isinstance(values, np.ndarray) and values.ndim == 1:
        # a single measured quantity
        return np.array(values, dtype=float).reshape(-1, 1)

    if isinstance(values, (list, tuple)):
        if len(values) == 0:
            raise ValueError(f"{what} must contain at least one quantity")
        columns = [np.asarray(v, dtype=float).reshape(-1) for v in values]
        sizes = {c.size for c in columns}
        if len(sizes) != 1:
            raise ValueError(
                f"{what} vectors must share the same length, got sizes {sorted(sizes)}"
            )
        if (
            len(columns) > columns[0].size
            and all(_is_block_sequence(v) for v in values)
        ):
            msg = (
                f"{what} given as a list of {len(columns)} lists of length "
                f"{columns[0].size} is read as {len(columns)} quantities at "
                f"{columns[0].size} points; pass np.asarray({what}) for an "
                f"(m, n) matrix of rows"
            )
            logger.warning(msg)
            warnings.warn(msg, UserWarning, stacklevel=3)
        return np.column_stack(columns)

    raise TypeError(
        f"{what} must be an (m, n) array or a sequence of n vectors, "
        f"got {type(values).__name__}"
    )


# CLASS =================================================================================

class ObservationData:
    """Canonical container for the measured quantities.

    Holds ``n`` measured quantities observed at ``m`` sample points.  The
    stacked vector used by the linear algebra is column-major: first all
    ``m`` values of quantity 1, then quantity 2, and so on.

    Parameters
    ----------
    data : array_like or sequence of array_like
        Either an ``(m, n)`` array with one column per quantity, or a
        sequence ``[x1, x2, ..., xn]`` of length-``m`` vectors.  Nested
        lists are read as the sequence form; a list of rows that looks
        transposed (more lists than entries per list) triggers a warning.
    names : sequence of str, optional
        Quantity labels used for plotting, ``x1 .. xn`` by default.

    Example
    -------
    .. code-block:: python

        obs = ObservationData([x, y])
        obs.m, obs.n        # (13, 2)
        obs.vector          # concatenation of x and y
        obs.split(obs.vector)[1] is y-like
    """

    def __init__(self, data, names: Sequence[str] | None = None):
        matrix = _as_matrix(data, "data")

        m, n = matrix.shape
        if m < 1 or n < 1:
            raise ValueError(f"data must have at least one row and one column, got {matrix.shape}")
        if not np.all(np.isfinite(matrix)):
            raise ValueError("data must contain finite values only")

        if names is None:
            names = [f"x{j + 1}" for j in range(n)]
        names = [str(s) for s in names]
        if len(names) != n:
            raise ValueError(f"expected {n} names, got {len(names)}")

        matrix.setflags(write=False)
        self.matrix = matrix
        self.names = names


    @property
    def m(self) -> int:
        """Number of sample points."""
        return self.matrix.shape[0]


    @property
    def n(self) -> int:
        """Number of measured quantities."""
        return self.matrix.shape[1]


    @property
    def size(self) -> int:
        return self.matrix.size


    @property
    def vector(self) -> np.ndarray:
        """Column-major stacked observations, length ``n*m``."""
        return self.matrix.flatten(order="F")


    @property
    def blocks(self) -> list[np.ndarray]:
        """Observations as a list of ``n`` length-``m`` vectors."""
        return self.split(self.vector)


    def split(self, vector: np.ndarray) -> list[np.ndarray]:
        """Split a stacked length-``n*m`` vector into ``n`` blocks."""
        v = np.asarray(vector).reshape(-1)
        if v.size != self.size:
            raise ValueError(f"expected a vector of length {self.size}, got {v.size}")
        return [v[j * self.m:(j + 1) * self.m].copy() for j in range(self.n)]


    def stack(self, blocks) -> np.ndarray:
        """Stack an ``(m, n)`` matrix or ``n`` blocks into a length-``n*m`` vector."""
        matrix = _as_matrix(blocks, "blocks")
        if matrix.shape != self.matrix.shape:
            raise ValueError(
                f"expected shape {self.matrix.shape}, got {matrix.shape}"
            )
        return matrix.flatten(order="F")


    def __repr__(self) -> str:
        return f"ObservationData(m={self.m}, n={self.n}, names={self.names})"


# INITIAL VALUES ========================================================================

def normalize_initial_values(mu0, data: ObservationData) -> np.ndarray:
    """Stacked initial latent values; ``None`` starts from the observations."""
    if mu0 is None:
        return data.vector
    mu = data.stack(mu0)
    if not np.all(np.isfinite(mu)):
        raise ValueError("mu0 must contain finite values only")
    return mu


def normalize_parameters(beta0) -> np.ndarray:
    """Initial parameter vector as a 1-D float array."""
    if beta0 is None:
        raise ValueError("The starting values of the parameter vector beta must be specified.")
    beta = np.array(beta0, dtype=float).reshape(-1)
    if beta.size == 0:
        raise ValueError("beta0 must contain at least one parameter")
    if not np.all(np.isfinite(beta)):
        raise ValueError("beta0 must contain finite values only")
    return beta
