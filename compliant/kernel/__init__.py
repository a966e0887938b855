# compliant/kernel - Scene-agnostic assembly plumbing
"""
KERNEL: THE SCENE-AGNOSTIC FOUNDATION
=====================================

This package contains the pieces of the assembly that know nothing about
nodes, mappings or mechanical states:

- OffsetTable: running-total allocation of global blocks
- AssemblyGraph: index-addressed graph of states and mapping edges
- BlockAssembler: scatter-add of local blocks into global sparse matrices
- sparse helpers: selection matrices, pruning, congruence transforms

The traversal and the system builder sit on top of it.
"""

from .errors import AssemblyError
from .offsets import OffsetTable
from .graph import AssemblyGraph, Edge, Vertex
from .assemble import BlockAssembler, assemble_global_matrix, assemble_global_vector

__all__ = [
    'AssemblyError', 'OffsetTable', 'AssemblyGraph', 'Edge', 'Vertex',
    'BlockAssembler', 'assemble_global_matrix', 'assemble_global_vector',
]
