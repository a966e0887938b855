# compliant/mapping.py
"""
Mappings: output state as a (locally linearized) function of input states.

A mapping exposes one Jacobian block per input, rows = output size and
columns = that input's size, and optionally one geometric stiffness block
per input (the derivative of Jᵀ·f with respect to that input).
"""

import logging
from typing import Callable, List, Optional, Sequence

import numpy as np
import scipy.sparse as sp

from .scene import MechanicalState, VecId

logger = logging.getLogger(__name__)


class Mapping:
    """Base mapping from ordered `inputs` to one `output` state."""

    def __init__(self, inputs: Sequence[MechanicalState], output: MechanicalState):
        self.inputs = list(inputs)
        self.output = output

    def apply(self) -> np.ndarray:
        """Compute the output position from the inputs and store it."""
        raise NotImplementedError

    def jacobians(self) -> list:
        """One host matrix per input, shape (output.size, input.size)."""
        raise NotImplementedError

    def geometric_stiffness(self) -> list:
        """One host matrix (or None) per input."""
        return [None] * len(self.inputs)


class LinearMapping(Mapping):
    """
    Constant linear mapping: out = Σ_i J_i · in_i.

    Parameters:
    -----------
    inputs : list of MechanicalState
    output : MechanicalState
    blocks : list
        One Jacobian block per input (dense array or scipy.sparse)
    stiffness : list, optional
        One geometric stiffness block (or None) per input
    """

    def __init__(self, inputs, output, blocks, stiffness=None):
        super().__init__(inputs, output)
        if len(blocks) != len(self.inputs):
            raise ValueError(f"{len(blocks)} Jacobian blocks for {len(self.inputs)} inputs")
        self.blocks = list(blocks)
        self.stiffness = list(stiffness) if stiffness is not None else [None] * len(self.inputs)
        if len(self.stiffness) != len(self.inputs):
            raise ValueError(f"{len(self.stiffness)} stiffness blocks for {len(self.inputs)} inputs")

    def apply(self) -> np.ndarray:
        out = np.zeros(self.output.size)
        for state, block in zip(self.inputs, self.blocks):
            out += np.asarray(block @ state.read(VecId.POSITION)).reshape(-1)
        self.output.write(VecId.POSITION, out)
        return out

    def jacobians(self) -> list:
        return list(self.blocks)

    def geometric_stiffness(self) -> list:
        return list(self.stiffness)


class ValueMapping(Mapping):
    """
    A general mapping whose value and Jacobian are supplied from outside:
    f(x) = value, df(x) = jacobian.

    The Jacobian is given row-major in a single flat vector: for each
    output row, the entries of that row for every input, inputs in order.
    In other words, the row-major flattening of [J_1 | J_2 | ... | J_n].

    An optional `callback(mapping)` runs at the start of `apply()`; it is
    where user code updates `value` and `jacobian` for the current
    configuration.

    A jacobian of the wrong length is treated as zero (with a warning
    unless it is empty); a value of the wrong length is resized to the
    output size.
    """

    def __init__(self, inputs, output, value=None, jacobian=None,
                 callback: Optional[Callable[["ValueMapping"], None]] = None):
        super().__init__(inputs, output)
        self.value = np.zeros(output.size) if value is None else np.asarray(value, dtype=float)
        self.jacobian = np.zeros(0) if jacobian is None else np.asarray(jacobian, dtype=float)
        self.callback = callback

    def apply(self) -> np.ndarray:
        if self.callback is not None:
            self.callback(self)

        value = np.asarray(self.value, dtype=float).reshape(-1)
        if value.shape[0] != self.output.size:
            logger.warning(
                "apply: size for 'value' (%d) does not match output %s (%d), auto-resizing",
                value.shape[0], self.output.name, self.output.size,
            )
            resized = np.zeros(self.output.size)
            n = min(value.shape[0], self.output.size)
            resized[:n] = value[:n]
            value = resized
            self.value = value

        self.output.write(VecId.POSITION, value)
        return value

    def jacobians(self) -> List[sp.csr_matrix]:
        rows = self.output.size
        cols = [state.size for state in self.inputs]
        matrix = np.asarray(self.jacobian, dtype=float).reshape(-1)

        if matrix.shape[0] != rows * sum(cols):
            # an empty jacobian is silently treated as zero
            if matrix.shape[0]:
                logger.warning(
                    "jacobians: incorrect jacobian size for %s (%d, expected %d), treating as zero",
                    self.output.name, matrix.shape[0], rows * sum(cols),
                )
            return [sp.csr_matrix((rows, c), dtype=float) for c in cols]

        full = matrix.reshape(rows, sum(cols))
        bounds = np.cumsum([0] + cols)
        # csr_matrix of a dense block only stores its nonzero entries
        return [sp.csr_matrix(full[:, start:stop]) for start, stop in zip(bounds[:-1], bounds[1:])]
