# compliant/visitor.py
"""
ASSEMBLY VISITOR: Two-Phase Traversal of the Scene
==================================================

PURPOSE:
--------
Sending the visitor through a scene fetches data; the actual system
assembly is performed afterwards with `assemble()`:

    top-down   for each node's state, on first visit: fetch mass,
               stiffness, compliance, projection, mapping Jacobians,
               force, velocity, constraint values, multipliers and
               damping into a Chunk; add a graph vertex and one edge
               per mapping input
    bottom-up  allocate the state's global offset: masters in the
               master table, compliant states in the compliant table,
               in post-order

USAGE:
------
    visitor = AssemblyVisitor(MechanicalParams.implicit_euler(dt))
    visitor.execute(root)
    system = visitor.assemble()

    # ... a solver computes new velocities x and multipliers lam ...
    visitor.distribute_master(VecId.VELOCITY, x)
    visitor.distribute_compliant(VecId.LAMBDA, lam)

    visitor.clear()   # before the next time step

A visitor is single-threaded and not reentrant: one traversal at a time,
with `clear()` in between.
"""

import logging
from typing import Dict, List, Optional

import numpy as np
import scipy.sparse as sp

from .chunk import Chunk, MappedBlock
from .config import CONFIG, AssemblyConfig, MechanicalParams
from .kernel.errors import AssemblyError
from .kernel.graph import AssemblyGraph
from .kernel.offsets import OffsetTable
from .kernel.sparse import empty, identity, prune
from .process import ProcessResult, process
from .scene import MechanicalState, Node, VecId, walk
from .state import convert, vector
from .system import AssembledSystem, assemble, distribute, gather

logger = logging.getLogger(__name__)


class AssemblyVisitor:
    """
    Collects per-state data during a traversal and assembles the global system.

    Parameters:
    -----------
    params : MechanicalParams, optional
        Integration factors applied when assembling H
    config : AssemblyConfig, optional
        Global assembly settings (defaults to `compliant.config.CONFIG`)
    lagrange : VecId
        Vector slot the multipliers are read from and distributed to
    """

    def __init__(self, params: Optional[MechanicalParams] = None,
                 config: Optional[AssemblyConfig] = None,
                 lagrange: VecId = VecId.LAMBDA):
        self.params = params or MechanicalParams()
        self.config = config or CONFIG
        self.lagrange = lagrange

        self.graph = AssemblyGraph()
        self.master = OffsetTable()
        self.compliant = OffsetTable()
        self.start_node: Optional[Node] = None

    # ------------------------------------------------------------------
    # traversal

    def execute(self, root: Node) -> "AssemblyVisitor":
        """Walk the hierarchy below `root` (top-down then bottom-up)."""
        self.start_node = root
        walk(root, self)
        return self

    def top_down(self, node: Node) -> bool:
        if node.state is not None:
            self.fill_prefix(node)
        return True

    def bottom_up(self, node: Node) -> None:
        if node.state is not None:
            self.fill_postfix(node)

    def fill_prefix(self, node: Node) -> None:
        """Fetch the chunk of the node's state, unless another node already did."""
        state = node.state
        index = self.graph.vertex(state)
        if self.graph.chunk(index) is not None:
            logger.debug("%s: state %s already fetched, keeping first visit", node.name, state.name)
            return

        chunk = Chunk(state=state, vertex=index, size=state.size, mechanical=state.mechanical)
        self.graph.attach(index, chunk)

        if not chunk.mechanical:
            logger.debug("%s: skipping non-mechanical state %s", node.name, state.name)
            return

        chunk.M = self.mass(node)
        chunk.K = self.stiff(node)
        chunk.C = self.compliance(node)
        chunk.P = self.proj(node)
        chunk.map = self.mapping(node)
        chunk.mapped = node.mapping is not None and node.mapping.output is state

        chunk.f = self.force(node)
        chunk.v = self.vel(node)
        chunk.phi = self.phi(node)
        chunk.lambda_ = self.lambda_(node) if chunk.compliant else np.zeros(0)
        chunk.damping = self.damping(node)

        for source, block in chunk.map.items():
            self.graph.add_edge(self.graph.vertex(source), index, block)

        if self.config.check_chunks and not chunk.check():
            raise AssemblyError(f"{node.name}: inconsistent chunk for state {state.name}")

    def fill_postfix(self, node: Node) -> None:
        """Allocate the global offsets of the node's state (once)."""
        index = self.graph.find(node.state)
        chunk = self.graph.chunk(index) if index is not None else None
        if chunk is None or index in self.master or index in self.compliant:
            return

        if chunk.master:
            chunk.offset = self.master.append(index, chunk.size)
        if chunk.compliant:
            offset = self.compliant.append(index, chunk.phi.shape[0])
            if not chunk.master:
                chunk.offset = offset

    def clear(self) -> None:
        """Forget everything fetched, ready for the next traversal."""
        self.graph.clear()
        self.master.clear()
        self.compliant.clear()
        self.start_node = None

    @property
    def chunks(self) -> List[Chunk]:
        return [vertex.chunk for vertex in self.graph.vertices if vertex.chunk is not None]

    def chunk(self, state: MechanicalState) -> Optional[Chunk]:
        index = self.graph.find(state)
        return self.graph.chunk(index) if index is not None else None

    # ------------------------------------------------------------------
    # node-level fetchers

    def mass(self, node: Node) -> sp.csr_matrix:
        size = node.state.size
        res = empty(size, size)
        for mass in node.masses:
            res = res + self._block(node, "mass", mass.matrix, (size, size))
        return sp.csr_matrix(res)

    def stiff(self, node: Node) -> sp.csr_matrix:
        size = node.state.size
        res = empty(size, size)
        for ff in node.forcefields:
            if not ff.is_compliance:
                res = res + self._block(node, "stiffness", ff.matrix, (size, size))
        return sp.csr_matrix(res)

    def compliance(self, node: Node) -> sp.csr_matrix:
        size = node.state.size
        res = empty(size, size)
        for ff in node.forcefields:
            if ff.is_compliance:
                res = res + self._block(node, "compliance", ff.matrix, (size, size))
        return sp.csr_matrix(res)

    def proj(self, node: Node) -> sp.csr_matrix:
        res = identity(node.state.size)
        for constraint in node.constraints:
            res = constraint.project(res)
        return sp.csr_matrix(res)

    def mapping(self, node: Node) -> Dict[MechanicalState, MappedBlock]:
        """Input state → (Jacobian, geometric stiffness), empty for unmapped states."""
        mapping = node.mapping
        if mapping is None:
            return {}
        if mapping.output is not node.state:
            logger.warning("%s: mapping output %s is not the node state, ignoring it",
                           node.name, mapping.output.name)
            return {}

        size = node.state.size
        jacobians = mapping.jacobians()
        stiffness = mapping.geometric_stiffness()

        res = {}
        for source, J, K in zip(mapping.inputs, jacobians, stiffness):
            J = self._block(node, "jacobian", J, (size, source.size))
            K = self._block(node, "mapping stiffness", K, (source.size, source.size))
            block = MappedBlock(prune(J, self.config.zero_tolerance), K)
            if source in res:
                res[source] = MappedBlock(res[source].J + block.J, res[source].K + block.K)
            else:
                res[source] = block
        return res

    def force(self, node: Node) -> np.ndarray:
        return vector(node.state, VecId.FORCE)

    def vel(self, node: Node) -> np.ndarray:
        return vector(node.state, VecId.VELOCITY)

    def phi(self, node: Node) -> np.ndarray:
        if not node.state.has(VecId.CONSTRAINT):
            return np.zeros(0)
        return vector(node.state, VecId.CONSTRAINT)

    def lambda_(self, node: Node) -> np.ndarray:
        return vector(node.state, self.lagrange)

    def damping(self, node: Node) -> float:
        return float(sum(d.value for d in node.dampings))

    def _block(self, node: Node, what: str, matrix, shape) -> sp.csr_matrix:
        # wrongly sized user blocks count as no contribution
        block = convert(matrix, shape)
        if block.shape != shape:
            logger.warning("%s: %s block is %s, expected %s, treating as zero",
                           node.name, what, block.shape, shape)
            return empty(*shape)
        return block

    # ------------------------------------------------------------------
    # system

    def process(self) -> ProcessResult:
        """Sizes, offsets and full Jacobians of the fetched graph."""
        return process(self.graph, self.master, self.compliant, self.config)

    def assemble(self) -> AssembledSystem:
        """Build the assembled system (the visitor must have been sent first)."""
        return assemble(self.graph, self.process(), self.params, self.config)

    def gather_master(self, vec_id: VecId) -> np.ndarray:
        return gather(self.graph, self.master, vec_id)

    def gather_compliant(self, vec_id: Optional[VecId] = None) -> np.ndarray:
        return gather(self.graph, self.compliant, vec_id or self.lagrange)

    def distribute_master(self, vec_id: VecId, data) -> None:
        """Write a size_m vector back into the `vec_id` slot of every master state."""
        distribute(self.graph, self.master, vec_id, data)

    def distribute_compliant(self, vec_id: Optional[VecId], data) -> None:
        """Write a size_c vector back into every compliant state (default: multipliers)."""
        distribute(self.graph, self.compliant, vec_id or self.lagrange, data)

    def debug(self) -> None:
        start = self.start_node.name if self.start_node is not None else None
        print(f"assembly visitor: start node {start}, {len(self.graph)} vertices, "
              f"{len(self.graph.edges)} edges")
        for chunk in self.chunks:
            chunk.debug()
        print(f"edges: {self.graph.pairs()}")
        print(f"master offsets: {self.master.entries} (total {self.master.total})")
        print(f"compliant offsets: {self.compliant.entries} (total {self.compliant.total})")
