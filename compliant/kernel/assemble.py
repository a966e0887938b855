# compliant/kernel/assemble.py
"""
ASSEMBLY: Block Scatter-Add into Global Sparse Matrices
=======================================================

PURPOSE:
--------
This module handles the placement of local blocks into global matrices.
It is the scatter-add operation that builds H, C, P, J and the global
vectors from per-state data.

The key insight: placement doesn't care where a block comes from.
It just needs:
- The global shape
- For each block: its (row, column) offset and the block itself

Blocks are accumulated as COO triplets and summed when converted to CSR,
so two contributions landing on the same entry add up instead of
overwriting each other. This is what makes pulled-back stiffness from
several mapped states accumulate correctly on shared master columns.

USAGE:
------
    builder = BlockAssembler((size_m, size_m))
    for offset, block in contributions:
        builder.add(offset, offset, block)
    H = builder.tocsr()

    builder.reset((size_c, size_c))   # reuse the scratch for the next matrix
"""

from typing import List, Optional, Tuple

import numpy as np
import scipy.sparse as sp

from .errors import AssemblyError
from .sparse import is_zero


class BlockAssembler:
    """
    Scratch triplet buffer for one global sparse matrix.

    One instance belongs to one assembly call. `reset()` discards every
    stored triplet, so nothing leaks from one matrix into the next even
    when the blocks have different sizes.

    Examples:
    ---------
    >>> import numpy as np
    >>> builder = BlockAssembler((3, 3))
    >>> builder.add(0, 0, np.eye(2))
    >>> builder.add(1, 1, np.eye(2))
    >>> builder.tocsr().toarray()
    array([[1., 0., 0.],
           [0., 2., 0.],
           [0., 0., 1.]])
    """

    def __init__(self, shape: Tuple[int, int]):
        self.reset(shape)

    def reset(self, shape: Optional[Tuple[int, int]] = None) -> None:
        if shape is not None:
            self.shape = (int(shape[0]), int(shape[1]))
        self._rows: List[np.ndarray] = []
        self._cols: List[np.ndarray] = []
        self._data: List[np.ndarray] = []

    def add(self, row: int, col: int, block) -> None:
        """
        Add `block` with its top-left corner at (row, col).

        Parameters:
        -----------
        row, col : int
            Global offsets of the block
        block : scipy.sparse matrix or np.ndarray
            Local contribution; all-zero blocks are skipped

        Raises:
        -------
        AssemblyError
            If the block does not fit in the global shape
        """
        if not sp.issparse(block):
            block = sp.coo_matrix(np.atleast_2d(np.asarray(block, dtype=float)))
        if is_zero(block):
            return

        rows, cols = block.shape
        if row < 0 or col < 0 or row + rows > self.shape[0] or col + cols > self.shape[1]:
            raise AssemblyError(
                f"block {block.shape} at ({row}, {col}) does not fit in {self.shape}"
            )

        coo = block.tocoo()
        self._rows.append(coo.row.astype(np.int64) + row)
        self._cols.append(coo.col.astype(np.int64) + col)
        self._data.append(coo.data.astype(float))

    def tocsr(self) -> sp.csr_matrix:
        """Sum all stored triplets into a CSR matrix (duplicates add up)."""
        if not self._data:
            return sp.csr_matrix(self.shape, dtype=float)
        rows = np.concatenate(self._rows)
        cols = np.concatenate(self._cols)
        data = np.concatenate(self._data)
        return sp.coo_matrix((data, (rows, cols)), shape=self.shape).tocsr()


def assemble_global_matrix(
    shape: Tuple[int, int],
    contributions: List[Tuple[int, int, sp.spmatrix]]
) -> sp.csr_matrix:
    """
    Assemble a global sparse matrix from (row, col, block) contributions.

    Example (block diagonal):
    -------------------------
    >>> import numpy as np
    >>> M = assemble_global_matrix((3, 3), [(0, 0, np.eye(1)), (1, 1, 2 * np.eye(2))])
    >>> M.diagonal()
    array([1., 2., 2.])
    """
    builder = BlockAssembler(shape)
    for row, col, block in contributions:
        builder.add(row, col, block)
    return builder.tocsr()


def assemble_global_vector(
    size: int,
    contributions: List[Tuple[int, np.ndarray]]
) -> np.ndarray:
    """
    Assemble a global dense vector from (offset, local vector) contributions.

    Same scatter-add logic as the matrix version: overlapping contributions
    add up.

    >>> assemble_global_vector(4, [(0, np.array([1.0, 2.0])), (3, np.array([5.0]))])
    array([1., 2., 0., 5.])
    """
    out = np.zeros(size, dtype=float)
    for offset, local in contributions:
        local = np.asarray(local, dtype=float)
        if offset < 0 or offset + local.shape[0] > size:
            raise AssemblyError(
                f"vector of size {local.shape[0]} at {offset} does not fit in {size}"
            )
        out[offset:offset + local.shape[0]] += local
    return out
