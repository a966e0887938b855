# compliant/state.py
"""
STATE ACCESSOR: Between Host Storage and Flat Arrays
====================================================

PURPOSE:
--------
This is the single place where the assembly touches host data:

    vector(state, id)             state storage → flat numpy copy
    set_vector(state, id, data)   flat segment  → state storage
    convert(matrix)               host matrix   → scipy.sparse.csr_matrix

Host matrices may be None ("no contribution"), dense arrays / nested
lists, or any scipy.sparse format. `convert` keeps the stored pattern
and values of sparse input as they are; dense input stores its nonzero
entries.
"""

import numbers
from typing import Optional, Tuple

import numpy as np
import scipy.sparse as sp

from .kernel.errors import AssemblyError
from .kernel.sparse import empty
from .scene import MechanicalState, VecId


def vector(state: MechanicalState, vec_id: VecId) -> np.ndarray:
    """
    Copy of the `vec_id` vector of `state`.

    The result has `state.size` entries, except for an unset CONSTRAINT
    vector which is empty.
    """
    data = np.array(state.read(vec_id), dtype=float, copy=True).reshape(-1)
    if data.shape[0] not in (0, state.size):
        raise AssemblyError(
            f"{state.name}: {vec_id.value} has {data.shape[0]} entries, expected {state.size}"
        )
    return data


def set_vector(state: MechanicalState, vec_id: VecId, data) -> None:
    """Write a segment of exactly `state.size` entries into `state`."""
    data = np.asarray(data, dtype=float).reshape(-1)
    if data.shape[0] != state.size:
        raise AssemblyError(
            f"{state.name}: cannot write {data.shape[0]} entries into "
            f"{vec_id.value} of size {state.size}"
        )
    state.write(vec_id, data)


def convert(matrix, shape: Optional[Tuple[int, int]] = None) -> sp.csr_matrix:
    """
    Convert a host matrix to the internal CSR representation.

    Parameters:
    -----------
    matrix : None, array-like or scipy.sparse matrix
        None yields an all-zero matrix of `shape` (0×0 if not given)
    shape : (int, int), optional
        Used only for None input

    Returns:
    --------
    scipy.sparse.csr_matrix
        An independent copy; modifying it never affects the host data

    Examples:
    ---------
    >>> convert([[0.0, 2.0], [0.0, 0.0]]).nnz
    1
    >>> convert(None, (2, 3)).shape
    (2, 3)
    """
    if matrix is None:
        return empty(*(shape or (0, 0)))
    if sp.issparse(matrix):
        return sp.csr_matrix(matrix, dtype=float, copy=True)
    if isinstance(matrix, (np.ndarray, list, tuple, numbers.Number)):
        return sp.csr_matrix(np.atleast_2d(np.asarray(matrix, dtype=float)))
    raise TypeError(f"cannot convert {type(matrix).__name__} to a sparse matrix")
