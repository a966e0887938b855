# compliant - Compliant (KKT-style) system assembly over a scene hierarchy
"""
COMPLIANT: Assembly of Regularized KKT Systems
==============================================

This package provides:
- a two-phase traversal that fetches per-state data from a scene
- composition of mapping Jacobians into full Jacobians against the
  master (unmapped) coordinates
- assembly of the global H, P, J, C matrices and f, v, phi, lambda vectors
- scattering of solved global vectors back onto the states

ARCHITECTURE:
-------------
    kernel/         Scene-agnostic core (offsets, graph, block assembly)
    scene.py        Minimal host: nodes, mechanical states, components
    mapping.py      Linear and value/jacobian mappings
    state.py        State accessor and matrix conversion
    chunk.py        Per-state data record
    visitor.py      Traversal controller (AssemblyVisitor)
    process.py      Full Jacobians and final offsets
    system.py       AssembledSystem and the system builder
    config.py       MechanicalParams, AssemblyConfig
"""

from .config import CONFIG, AssemblyConfig, MechanicalParams
from .kernel import AssemblyError
from .scene import (
    FixedConstraint, ForceField, Mass, MechanicalState, Node,
    ProjectiveConstraint, UniformDamping, VecId, walk,
)
from .mapping import LinearMapping, Mapping, ValueMapping
from .chunk import Chunk, MappedBlock
from .system import AssembledSystem
from .visitor import AssemblyVisitor

__version__ = "0.2.0"
