# compliant/kernel/sparse.py
"""Small helpers over scipy.sparse CSR matrices (the internal representation)."""

from typing import Optional

import numpy as np
import scipy.sparse as sp


def empty(rows: int = 0, cols: int = 0) -> sp.csr_matrix:
    """All-zero CSR matrix of the given shape (0×0 means "no contribution")."""
    return sp.csr_matrix((rows, cols), dtype=float)


def identity(size: int) -> sp.csr_matrix:
    return sp.identity(size, dtype=float, format="csr")


def is_zero(m: Optional[sp.spmatrix]) -> bool:
    """True for None, zero-extent matrices, and matrices with no nonzero value."""
    if m is None:
        return True
    if m.shape[0] == 0 or m.shape[1] == 0:
        return True
    return m.count_nonzero() == 0


def shift_right(offset: int, size: int, total: int) -> sp.csr_matrix:
    """
    Selection matrix picking `size` entries at `offset` out of a vector of `total`.

    >>> shift_right(1, 2, 4).toarray()
    array([[0., 1., 0., 0.],
           [0., 0., 1., 0.]])
    """
    rows = np.arange(size)
    cols = rows + offset
    data = np.ones(size)
    return sp.csr_matrix((data, (rows, cols)), shape=(size, total))


def prune(m: sp.spmatrix, tolerance: float = 0.0) -> sp.csr_matrix:
    """CSR copy of `m` without entries whose magnitude is <= tolerance."""
    out = sp.csr_matrix(m, dtype=float, copy=True)
    if tolerance > 0.0:
        out.data[np.abs(out.data) <= tolerance] = 0.0
    out.eliminate_zeros()
    return out


def congruence(J: sp.spmatrix, K: sp.spmatrix) -> sp.csr_matrix:
    """Jᵀ·K·J, the pull-back of K through J."""
    return sp.csr_matrix(J.T @ K @ J)
