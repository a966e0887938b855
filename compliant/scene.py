# compliant/scene.py
"""
SCENE: Minimal Host Hierarchy for the Assembly
==============================================

PURPOSE:
--------
The assembly only needs a few things from the scene it runs on:

    - a tree of nodes, walked top-down then bottom-up
    - at most one mechanical state per node, with named vectors
    - per node: mass, force fields (stiffness or compliance),
      projective constraints, uniform damping,
      and the mapping that drives the node's state (if any)

This module provides exactly that, as plain Python objects. A state can be
shared by several nodes; the assembly fetches it only once.

USAGE:
------
    root = Node("root")
    body = root.create_child("body", state=MechanicalState("body", 3))
    body.add_mass(Mass.uniform(3, 1.0))

    spring = body.create_child("spring", state=MechanicalState("spring", 1))
    spring.set_mapping(LinearMapping([body.state], spring.state, [[1.0, 0.0, 0.0]]))
    spring.add_forcefield(ForceField([[0.01]], is_compliance=True))
    spring.state.write(VecId.CONSTRAINT, [0.05])
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional

import numpy as np
import scipy.sparse as sp


class VecId(Enum):
    """Named vector slots of a mechanical state."""
    POSITION = "position"
    VELOCITY = "velocity"
    FORCE = "force"
    CONSTRAINT = "constraint"   # phi: constraint values of a compliant state
    LAMBDA = "lambda"           # constraint multipliers


class MechanicalState:
    """
    Owner of the generalized-coordinate vectors of one body / particle set.

    Parameters:
    -----------
    name : str
        Label used in logs and debug output
    size : int
        Number of scalar degrees of freedom
    mechanical : bool
        False for auxiliary states (e.g. a picking cursor) that must stay
        out of the assembled system

    Unset POSITION, VELOCITY, FORCE and LAMBDA vectors read as zeros.
    An unset CONSTRAINT vector reads as empty: the state is then not
    compliant.
    """

    def __init__(self, name: str, size: int, mechanical: bool = True,
                 position=None, velocity=None, force=None, constraint=None):
        if size < 0:
            raise ValueError(f"state size must be non-negative, got {size}")
        self.name = name
        self.size = int(size)
        self.mechanical = mechanical
        self._vectors: Dict[VecId, np.ndarray] = {}

        for vec_id, data in ((VecId.POSITION, position), (VecId.VELOCITY, velocity),
                             (VecId.FORCE, force), (VecId.CONSTRAINT, constraint)):
            if data is not None:
                self.write(vec_id, data)

    def has(self, vec_id: VecId) -> bool:
        return vec_id in self._vectors

    def read(self, vec_id: VecId) -> np.ndarray:
        data = self._vectors.get(vec_id)
        if data is None:
            if vec_id is VecId.CONSTRAINT:
                return np.zeros(0)
            return np.zeros(self.size)
        return data.copy()

    def write(self, vec_id: VecId, data) -> None:
        data = np.asarray(data, dtype=float).reshape(-1)
        if data.shape[0] != self.size:
            raise ValueError(
                f"{self.name}: {vec_id.value} vector has {data.shape[0]} entries, "
                f"state size is {self.size}"
            )
        self._vectors[vec_id] = data.copy()

    def reset(self, vec_id: VecId) -> None:
        self._vectors.pop(vec_id, None)

    def __repr__(self):
        return f"MechanicalState({self.name!r}, size={self.size})"


@dataclass
class Mass:
    """Mass matrix of a node's state, in any host matrix format."""
    matrix: object

    @classmethod
    def uniform(cls, size: int, value: float) -> "Mass":
        return cls(value * sp.identity(size, format="csr"))


@dataclass
class ForceField:
    """
    Linearized force field acting on a node's state.

    A regular force field provides its stiffness matrix K = df/dx.
    A compliance force field (`is_compliance=True`) instead provides
    the compliance matrix C relating multipliers to constraint values.
    """
    matrix: object
    is_compliance: bool = False


@dataclass
class UniformDamping:
    """Damping coefficient applied uniformly to every dof of a node's state."""
    value: float


class ProjectiveConstraint:
    """Base class: restricts master coordinates through a projection matrix."""

    def project(self, P: sp.csr_matrix) -> sp.csr_matrix:
        raise NotImplementedError


class FixedConstraint(ProjectiveConstraint):
    """Removes the listed degrees of freedom (rows and columns of P)."""

    def __init__(self, indices: Iterable[int]):
        self.indices = sorted(set(int(i) for i in indices))

    def project(self, P: sp.csr_matrix) -> sp.csr_matrix:
        mask = np.ones(P.shape[0])
        mask[self.indices] = 0.0
        D = sp.diags(mask, format="csr")
        return sp.csr_matrix(D @ P @ D)


class Node:
    """
    One node of the scene hierarchy.

    A node owns at most one mechanical state. Its components describe the
    dynamics of that state; its mapping, if any, computes the state from
    states owned by other (usually ancestor) nodes.
    """

    def __init__(self, name: str, state: Optional[MechanicalState] = None,
                 mapping=None, damping: float = 0.0):
        self.name = name
        self.state = state
        self.mapping = mapping
        self.masses: List[Mass] = []
        self.forcefields: List[ForceField] = []
        self.constraints: List[ProjectiveConstraint] = []
        self.dampings: List[UniformDamping] = []
        self.children: List["Node"] = []
        if damping:
            self.add_damping(UniformDamping(damping))

    def add_child(self, node: "Node") -> "Node":
        self.children.append(node)
        return node

    def create_child(self, name: str, **kwargs) -> "Node":
        return self.add_child(Node(name, **kwargs))

    def add_mass(self, mass: Mass) -> Mass:
        self.masses.append(mass)
        return mass

    def add_forcefield(self, forcefield: ForceField) -> ForceField:
        self.forcefields.append(forcefield)
        return forcefield

    def add_constraint(self, constraint: ProjectiveConstraint) -> ProjectiveConstraint:
        self.constraints.append(constraint)
        return constraint

    def add_damping(self, damping: UniformDamping) -> UniformDamping:
        self.dampings.append(damping)
        return damping

    @property
    def damping(self) -> float:
        """Total uniform damping coefficient of the node."""
        return float(sum(d.value for d in self.dampings))

    def set_mapping(self, mapping) -> None:
        self.mapping = mapping

    def execute(self, visitor) -> None:
        """Send `visitor` through the subtree rooted at this node."""
        walk(self, visitor)

    def __repr__(self):
        return f"Node({self.name!r})"


def walk(node: Node, visitor) -> None:
    """
    Pre-order / post-order walk of a node hierarchy.

    `visitor.top_down(node)` runs before any descendant is visited,
    `visitor.bottom_up(node)` after all of them. A top-down callback
    returning False prunes the subtree (bottom-up still runs on the node).

    The walk keeps its own stack, so the depth of the hierarchy is not
    bounded by the interpreter's recursion limit.
    """
    # (node, iterator over the children not yet entered)
    def enter(current: Node):
        if visitor.top_down(current) is False:
            return current, iter(())
        return current, iter(current.children)

    stack = [enter(node)]
    while stack:
        current, pending = stack[-1]
        child = next(pending, None)
        if child is None:
            stack.pop()
            visitor.bottom_up(current)
        else:
            stack.append(enter(child))
