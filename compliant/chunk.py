# compliant/chunk.py
"""Per-state data fetched during the traversal."""

from dataclasses import dataclass, field
from typing import Dict, Optional

import numpy as np
import scipy.sparse as sp

from .kernel.sparse import empty
from .scene import MechanicalState


@dataclass
class MappedBlock:
    """Jacobian block of a mapped state w.r.t. one input, with the matching geometric stiffness."""
    J: sp.csr_matrix
    K: sp.csr_matrix = field(default_factory=empty)


@dataclass(eq=False)
class Chunk:
    """
    Everything the assembly needs to know about one mechanical state.

    Attributes:
    -----------
    offset, size : int
        Block of the state in the global system; offset is None until the
        bottom-up pass allocates it (master offset for master states,
        compliant offset otherwise)
    M, K, C, P : csr_matrix
        Local mass, stiffness, compliance and projection matrices
    map : dict
        Input state → MappedBlock, in mapping input order; empty for
        unmapped states
    f, v, phi, lambda_ : np.ndarray
        Force, velocity, constraint value and multiplier vectors
    damping : float
        Uniform damping coefficient
    mechanical : bool
        False for auxiliary states kept out of the system
    mapped : bool
        True when a mapping drives the state, even one without inputs
    vertex : int
        Arena index of the state in the assembly graph
    """
    state: Optional[MechanicalState] = None
    vertex: int = -1
    offset: Optional[int] = None
    size: int = 0

    M: sp.csr_matrix = field(default_factory=empty)
    K: sp.csr_matrix = field(default_factory=empty)
    C: sp.csr_matrix = field(default_factory=empty)
    P: sp.csr_matrix = field(default_factory=empty)

    map: Dict[MechanicalState, MappedBlock] = field(default_factory=dict)

    f: np.ndarray = field(default_factory=lambda: np.zeros(0))
    v: np.ndarray = field(default_factory=lambda: np.zeros(0))
    phi: np.ndarray = field(default_factory=lambda: np.zeros(0))
    lambda_: np.ndarray = field(default_factory=lambda: np.zeros(0))

    damping: float = 0.0
    mechanical: bool = True
    mapped: bool = False

    @property
    def master(self) -> bool:
        return self.mechanical and not (self.mapped or self.map)

    @property
    def compliant(self) -> bool:
        return self.mechanical and self.phi.shape[0] > 0

    def check(self) -> bool:
        """True when every block has a shape consistent with `size`."""
        n = self.size
        square = (0, 0), (n, n)

        for m in (self.M, self.K, self.C, self.P):
            if m.shape not in square:
                return False
        if self.f.shape[0] not in (0, n) or self.v.shape[0] not in (0, n):
            return False

        if self.phi.shape[0] not in (0, n):
            return False
        if self.lambda_.shape[0] not in (0, self.phi.shape[0]):
            return False

        for state, block in self.map.items():
            if block.J.shape != (n, state.size):
                return False
            if block.K.shape not in ((0, 0), (state.size, state.size)):
                return False
        return True

    def debug(self) -> None:
        name = self.state.name if self.state is not None else "?"
        print(f"chunk {name} (vertex {self.vertex})")
        print(f"  offset: {self.offset}, size: {self.size}")
        print(f"  mechanical: {self.mechanical}, master: {self.master}, compliant: {self.compliant}")
        print(f"  M nnz: {self.M.nnz}, K nnz: {self.K.nnz}, C nnz: {self.C.nnz}, P nnz: {self.P.nnz}")
        for state, block in self.map.items():
            print(f"  mapped from {state.name}: J {block.J.shape} nnz {block.J.nnz}, K nnz {block.K.nnz}")
        print(f"  f: {self.f}")
        print(f"  v: {self.v}")
        if self.compliant:
            print(f"  phi: {self.phi}")
            print(f"  lambda: {self.lambda_}")
        if self.damping:
            print(f"  damping: {self.damping}")
