# compliant/system.py
"""
SYSTEM BUILDER: The Assembled KKT-Style System
==============================================

PURPOSE:
--------
Combine the chunks and the processor output into global matrices and
vectors, all numbered by the master / compliant offsets:

    H  (size_m × size_m)   dynamics: mass, stiffness, damping
    P  (size_m × size_m)   projection of the master coordinates
    J  (size_c × size_m)   full Jacobian of the constraints
    C  (size_c × size_c)   compliance of the constraints
    f, v    (size_m)       master forces / velocities
    phi, lambda_ (size_c)  constraint values / multipliers

A solver typically forms the saddle-point system

    [ H   -Jᵀ ] [ x ]   [ f   ]
    [ J    C  ] [ λ ] = [ phi ]

(projected by P), which is why this is called a compliant, KKT-style system.

DYNAMICS BLOCK:
---------------
Each mechanical state contributes

    D = m_factor·M + k_factor·K - b_factor·damping·I

Master states place D on their diagonal block. Mapped states pull D back
to master coordinates with their full Jacobian, Fullᵀ·D·Full, and each
mapping geometric stiffness K_i is pulled back through its input,
k_factor·Full(A_i)ᵀ·K_i·Full(A_i). Congruence keeps H symmetric when
all local blocks are.
"""

import logging
from dataclasses import dataclass, field
from typing import Tuple

import numpy as np
import scipy.sparse as sp

from .chunk import Chunk
from .config import CONFIG, AssemblyConfig, MechanicalParams
from .kernel.assemble import BlockAssembler
from .kernel.errors import AssemblyError
from .kernel.graph import AssemblyGraph
from .kernel.offsets import OffsetTable
from .kernel.sparse import congruence, empty, identity, is_zero
from .process import ProcessResult
from .scene import MechanicalState, VecId
from .state import set_vector, vector

logger = logging.getLogger(__name__)


@dataclass
class AssembledSystem:
    """
    One assembled system, owned by the caller.

    Independent of the visitor that produced it: clearing or re-running
    the visitor does not change an existing AssembledSystem.
    """
    size_m: int
    size_c: int
    dt: float
    H: sp.csr_matrix
    P: sp.csr_matrix
    J: sp.csr_matrix
    C: sp.csr_matrix
    f: np.ndarray
    v: np.ndarray
    phi: np.ndarray
    lambda_: np.ndarray
    master: Tuple[MechanicalState, ...] = field(default_factory=tuple)
    compliant: Tuple[MechanicalState, ...] = field(default_factory=tuple)

    def check(self) -> bool:
        """True when every member has the shape implied by size_m / size_c."""
        m, n = self.size_m, self.size_c
        return (self.H.shape == (m, m) and self.P.shape == (m, m)
                and self.J.shape == (n, m) and self.C.shape == (n, n)
                and self.f.shape == (m,) and self.v.shape == (m,)
                and self.phi.shape == (n,) and self.lambda_.shape == (n,))

    def debug(self) -> None:
        print(f"assembled system: size_m={self.size_m}, size_c={self.size_c}, dt={self.dt}")
        print(f"  master: {[s.name for s in self.master]}")
        print(f"  compliant: {[s.name for s in self.compliant]}")
        print("H:")
        print(self.H.toarray())
        print("P:")
        print(self.P.toarray())
        if self.size_c:
            print("J:")
            print(self.J.toarray())
            print("C:")
            print(self.C.toarray())
            print(f"phi: {self.phi}")
            print(f"lambda: {self.lambda_}")
        print(f"f: {self.f}")
        print(f"v: {self.v}")


def dynamics(chunk: Chunk, params: MechanicalParams) -> sp.csr_matrix:
    """m·M + k·K - b·damping·I for one chunk, as a size × size matrix."""
    n = chunk.size
    D = empty(n, n)
    if not is_zero(chunk.M):
        D = D + params.m_factor * chunk.M
    if not is_zero(chunk.K):
        D = D + params.k_factor * chunk.K
    if chunk.damping and params.b_factor:
        D = D - (params.b_factor * chunk.damping) * identity(n)
    return sp.csr_matrix(D)


def assemble(
    graph: AssemblyGraph,
    result: ProcessResult,
    params: MechanicalParams = None,
    config: AssemblyConfig = CONFIG
) -> AssembledSystem:
    """
    Build the global system from a populated graph and its processed result.

    Pure: chunks and the graph are only read.

    Raises:
    -------
    AssemblyError
        If a block does not fit at its offset
    """
    params = params or MechanicalParams()
    m, n = result.size_m, result.size_c

    builder = BlockAssembler((m, m))
    f = np.zeros(m)
    v = np.zeros(m)

    # master dynamics, forces, velocities
    for vertex, offset, size in result.master:
        chunk = graph.chunk(vertex)
        builder.add(offset, offset, dynamics(chunk, params))
        if chunk.f.shape[0]:
            f[offset:offset + size] = chunk.f
        if chunk.v.shape[0]:
            v[offset:offset + size] = chunk.v

    # mapped dynamics and mapping stiffness, pulled back to master coordinates
    for vertex in range(len(graph)):
        chunk = graph.chunk(vertex)
        if chunk is None or not chunk.mechanical:
            continue

        if not chunk.master:
            D = dynamics(chunk, params)
            Jc = result.full.get(vertex)
            if not is_zero(D) and not is_zero(Jc):
                builder.add(0, 0, congruence(Jc, D))

        for state, block in chunk.map.items():
            if is_zero(block.K) or not params.k_factor:
                continue
            Js = result.full.get(graph.find(state))
            if not is_zero(Js):
                builder.add(0, 0, params.k_factor * congruence(Js, block.K))

    H = builder.tocsr()

    # projection, identity where a master state has none
    builder.reset((m, m))
    for vertex, offset, size in result.master:
        chunk = graph.chunk(vertex)
        builder.add(offset, offset, chunk.P if chunk.P.shape == (size, size) else identity(size))
    P = builder.tocsr()

    # compliance
    builder.reset((n, n))
    for vertex, offset, size in result.compliant:
        builder.add(offset, offset, graph.chunk(vertex).C)
    C = builder.tocsr()

    # constraint Jacobian
    builder.reset((n, m))
    phi = np.zeros(n)
    lambda_ = np.zeros(n)
    for vertex, offset, size in result.compliant:
        chunk = graph.chunk(vertex)
        builder.add(offset, 0, result.full[vertex])
        phi[offset:offset + size] = chunk.phi
        if chunk.lambda_.shape[0]:
            lambda_[offset:offset + size] = chunk.lambda_
    J = builder.tocsr()

    system = AssembledSystem(
        size_m=m, size_c=n, dt=params.dt,
        H=H, P=P, J=J, C=C,
        f=f, v=v, phi=phi, lambda_=lambda_,
        master=tuple(graph.vertices[vertex].state for vertex in result.master.vertices()),
        compliant=tuple(graph.vertices[vertex].state for vertex in result.compliant.vertices()),
    )
    if not system.check():
        raise AssemblyError("assembled system has inconsistent shapes")

    logger.info("assembled system: size_m=%d, size_c=%d, H nnz=%d, J nnz=%d",
                m, n, H.nnz, J.nnz)
    return system


def gather(graph: AssemblyGraph, table: OffsetTable, vec_id: VecId) -> np.ndarray:
    """Read the `vec_id` vector of every state in `table` into one global vector."""
    out = np.zeros(table.total)
    for vertex, _, size in table:
        data = vector(graph.vertices[vertex].state, vec_id)
        if data.shape[0]:
            out[table.segment(vertex)] = data[:size]
    return out


def distribute(graph: AssemblyGraph, table: OffsetTable, vec_id: VecId, data) -> None:
    """
    Scatter a global vector back into the `vec_id` vector of every state in `table`.

    Left inverse of `gather` for the same table and vector id.
    """
    data = np.asarray(data, dtype=float).reshape(-1)
    if data.shape[0] != table.total:
        raise AssemblyError(
            f"cannot distribute a vector of size {data.shape[0]} over {table.total} dofs"
        )
    for vertex in table.vertices():
        set_vector(graph.vertices[vertex].state, vec_id, data[table.segment(vertex)])
