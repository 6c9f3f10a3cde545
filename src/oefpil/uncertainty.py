#########################################################################################
##
##                            UNCERTAINTY MATRIX ASSEMBLY
##                                 (uncertainty.py)
##
#########################################################################################

# IMPORTS ===============================================================================

from __future__ import annotations

import numpy as np
import scipy.sparse as sp

from .utils.logger import LoggerManager


logger = LoggerManager().get_logger(__name__)


# HELPERS ===============================================================================

def _is_block_sequence(U) -> bool:
    return isinstance(U, (list, tuple))


def _block(value, m: int, default: str, label: str) -> np.ndarray:
    """Expand a single (m, m) block specification.

    ``None`` becomes the identity (``default="eye"``) or zeros
    (``default="zeros"``), a scalar ``s`` becomes ``s * eye(m)`` and a
    length-``m`` vector becomes a diagonal block.
    """
    if value is None:
        return np.eye(m) if default == "eye" else np.zeros((m, m))

    if sp.issparse(value):
        value = value.toarray()
    arr = np.asarray(value, dtype=float)

    if arr.ndim == 0:
        return float(arr) * np.eye(m)

    if arr.ndim == 1 or (arr.ndim == 2 and 1 in arr.shape and arr.size == m and m > 1):
        arr = arr.reshape(-1)
        if arr.size != m:
            raise ValueError(f"Block {label} has {arr.size} entries, expected {m}")
        return np.diag(arr)

    if arr.shape != (m, m):
        raise ValueError(f"Block {label} has shape {arr.shape}, expected {(m, m)}")
    return arr


def _is_block_entry(entry) -> bool:
    """True if *entry* can stand for a whole block inside a row of blocks.

    Arrays and sparse matrices qualify, lists only as nested (matrix) lists.
    A flat list of numbers is a matrix row, not a vector block.
    """
    if entry is None or sp.issparse(entry):
        return True
    if isinstance(entry, np.ndarray):
        return entry.ndim >= 1
    if _is_block_sequence(entry):
        try:
            return np.ndim(entry) >= 2
        except ValueError:
            # ragged
            return False
    return False


def _is_block_row(row, n: int) -> bool:
    """True for a row of n blocks, as opposed to one matrix block given as a list.

    Scalar blocks are allowed next to at least one array, ``None`` or matrix
    list entry; a row of numbers only is a row of a single block.
    """
    if not (_is_block_sequence(row) and len(row) == n):
        return False
    blocks = [_is_block_entry(entry) for entry in row]
    scalars = [np.isscalar(entry) for entry in row]
    return any(blocks) and all(b or s for b, s in zip(blocks, scalars))


def _is_nested(U, n: int) -> bool:
    """True for an (n, n) nested block specification."""
    return n > 1 and len(U) == n and all(_is_block_row(row, n) for row in U)


# ASSEMBLY ==============================================================================

def build_uncertainty_matrix(U, m: int, n: int, sparse: bool = False):
    """Assemble the ``(n*m, n*m)`` uncertainty matrix of the stacked observations.

    Parameters
    ----------
    U : None, array_like or nested sequence
        * ``None`` -- identity.
        * ``(n*m, n*m)`` array -- used as is.
        * ``[U11, U22, ..., Unn]`` -- block-diagonal matrix.
        * ``[[U11, U12, ...], [U21, U22, ...], ...]`` -- full block matrix;
          only the upper blocks ``Uij`` (``i < j``) are read, the lower ones
          are set to ``Uij.T``.
        * ``[U]`` -- the single matrix ``U``.

        Inside a block specification a ``None`` diagonal block becomes
        ``eye(m)``, a ``None`` off-diagonal block becomes zeros, a scalar
        ``s`` becomes ``s * eye(m)`` and a length-``m`` vector becomes a
        diagonal block.  Blocks may be given as nested lists; a list of
        rows of numbers is read as one matrix block, so vector blocks of a
        nested specification must be arrays.
    m : int
        Number of sample points.
    n : int
        Number of measured quantities.
    sparse : bool
        Return a ``scipy.sparse.csr_array`` instead of a dense array.

    Returns
    -------
    numpy.ndarray or scipy.sparse.csr_array

    Raises
    ------
    ValueError
        If the specification does not match ``m`` and ``n``.
    """
    N = n * m

    if U is None:
        return sp.csr_array(sp.eye(N)) if sparse else np.eye(N)

    if not _is_block_sequence(U):
        full = U.toarray() if sp.issparse(U) else np.asarray(U, dtype=float)
        if full.shape != (N, N):
            raise ValueError(
                f"Incorrect dimensions of U matrix: got {full.shape}, expected {(N, N)}"
            )
        return sp.csr_array(full) if sparse else full

    if len(U) == 1 and not _is_block_sequence(U[0]) and np.ndim(U[0]) == 2:
        return build_uncertainty_matrix(U[0], m, n, sparse=sparse)

    if len(U) == 1 and _is_block_row(U[0], n):
        # row cell {U11, U22, ...}
        U = list(U[0])

    full = np.zeros((N, N))

    if _is_nested(U, n):
        for i in range(n):
            full[i * m:(i + 1) * m, i * m:(i + 1) * m] = _block(
                U[i][i], m, "eye", f"U[{i}][{i}]"
            )
        for i in range(n):
            for j in range(i + 1, n):
                upper = _block(U[i][j], m, "zeros", f"U[{i}][{j}]")
                lower = U[j][i]
                if lower is not None and not np.allclose(
                    _block(lower, m, "zeros", f"U[{j}][{i}]"), upper.T
                ):
                    logger.debug(
                        "U[%d][%d] replaced by the transpose of U[%d][%d]", j, i, i, j
                    )
                full[i * m:(i + 1) * m, j * m:(j + 1) * m] = upper
                full[j * m:(j + 1) * m, i * m:(i + 1) * m] = upper.T

    elif len(U) == n:
        for j in range(n):
            full[j * m:(j + 1) * m, j * m:(j + 1) * m] = _block(
                U[j], m, "eye", f"U[{j}]"
            )

    else:
        raise ValueError(
            f"Incorrect dimensions of U matrix: expected {n} diagonal blocks or "
            f"an ({n} x {n}) block specification, got {len(U)} entries"
        )

    return sp.csr_array(full) if sparse else full


def as_dense(U) -> np.ndarray:
    """Dense float copy of *U*; scipy sparse input is densified."""
    if sp.issparse(U):
        logger.debug("densifying sparse uncertainty matrix of shape %s", U.shape)
        return U.toarray().astype(float)
    return np.array(U, dtype=float)
