# compliant/process.py
"""
GLOBAL PROCESSOR: Full Jacobians Against the Master Coordinates
===============================================================

PURPOSE:
--------
After the traversal, every mapped state only knows its Jacobian with
respect to its direct inputs. The solver needs each of them expressed
against the global master vector (size_m entries). This module composes
the edge Jacobians along the graph (chain rule):

    Full(master A)  = selection of A's block in the master vector
    Full(mapped B)  = Σ_i  J_{B,A_i} · Full(A_i)

Sums over several inputs accumulate on shared master columns, so two
paths reaching the same master both contribute (diamond case).
Vertices are processed in topological order: every input's full
Jacobian exists before it is used.

EXAMPLE (chain A → B → C):
--------------------------
    Full(A) = I
    Full(B) = Jab · I
    Full(C) = Jbc · Full(B) = Jbc · Jab
"""

import logging
from dataclasses import dataclass
from typing import Dict

import scipy.sparse as sp

from .config import CONFIG, AssemblyConfig
from .kernel.errors import AssemblyError
from .kernel.graph import AssemblyGraph
from .kernel.offsets import OffsetTable
from .kernel.sparse import empty, is_zero, prune, shift_right

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessResult:
    """
    Sizes, offsets and full Jacobians consumed by the system builder.

    Attributes:
    -----------
    size_m, size_c : int
        Total master / compliant widths
    full : Dict[int, csr_matrix]
        Vertex index → full Jacobian (size × size_m), for every
        mechanical state reachable in the graph
    master, compliant : OffsetTable
        Frozen offset tables
    """
    size_m: int
    size_c: int
    full: Dict[int, sp.csr_matrix]
    master: OffsetTable
    compliant: OffsetTable


def process(
    graph: AssemblyGraph,
    master: OffsetTable,
    compliant: OffsetTable,
    config: AssemblyConfig = CONFIG
) -> ProcessResult:
    """
    Compute sizes and full Jacobians for a populated graph.

    Parameters:
    -----------
    graph : AssemblyGraph
        Vertices carry the chunks fetched during the traversal
    master, compliant : OffsetTable
        Offset tables filled by the bottom-up pass
    config : AssemblyConfig
        `zero_tolerance` bounds the entries kept in composed Jacobians

    Returns:
    --------
    ProcessResult

    Raises:
    -------
    AssemblyError
        If offsets are inconsistent with the chunks, a composed Jacobian
        has the wrong shape, or the graph has a cycle
    """
    master = master.freeze()
    compliant = compliant.freeze()
    size_m = master.total
    size_c = compliant.total

    _check_tables(graph, master, compliant)

    full: Dict[int, sp.csr_matrix] = {}
    for vertex, offset, size in master:
        full[vertex] = shift_right(offset, size, size_m)

    for v in graph.topological_order():
        chunk = graph.chunk(v)
        if chunk is None or not chunk.mechanical or chunk.master:
            continue

        acc = empty(chunk.size, size_m)
        for edge in graph.in_edges(v):
            source = graph.chunk(edge.source)
            if source is None:
                logger.warning(
                    "mapping input %s of %s was never visited, treating its Jacobian as zero",
                    graph.vertices[edge.source].state.name, chunk.state.name,
                )
                continue
            if edge.source not in full or is_zero(edge.block.J):
                continue
            acc = acc + edge.block.J @ full[edge.source]

        acc = prune(acc, config.zero_tolerance)
        if acc.shape != (chunk.size, size_m):
            raise AssemblyError(
                f"full Jacobian of {chunk.state.name} is {acc.shape}, "
                f"expected {(chunk.size, size_m)}"
            )
        full[v] = acc

    logger.debug("processed %d vertices: size_m=%d, size_c=%d", len(graph), size_m, size_c)
    return ProcessResult(size_m, size_c, full, master, compliant)


def _check_tables(graph: AssemblyGraph, master: OffsetTable, compliant: OffsetTable) -> None:
    for vertex, _, size in master:
        chunk = graph.chunk(vertex)
        if chunk is None or not chunk.master or chunk.size != size:
            raise AssemblyError(f"master offset table entry for vertex {vertex} does not match its chunk")
    for vertex, _, size in compliant:
        chunk = graph.chunk(vertex)
        if chunk is None or not chunk.compliant or chunk.phi.shape[0] != size:
            raise AssemblyError(f"compliant offset table entry for vertex {vertex} does not match its chunk")

    for vertex in range(len(graph)):
        chunk = graph.chunk(vertex)
        if chunk is None:
            continue
        if chunk.master and vertex not in master:
            raise AssemblyError(f"master state {chunk.state.name} was never allocated an offset")
        if chunk.compliant and vertex not in compliant:
            raise AssemblyError(f"compliant state {chunk.state.name} was never allocated an offset")
