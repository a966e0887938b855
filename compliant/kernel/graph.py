# compliant/kernel/graph.py
"""
ASSEMBLY GRAPH: States and the Mappings Between Them
====================================================

PURPOSE:
--------
The mapping relations of a scene form a directed acyclic graph:

    vertex  = one mechanical state (plus the chunk of data fetched for it)
    edge    = input state → output state, carrying the Jacobian block

States are registered in an arena: the first time a state is seen it gets
the next dense integer id, and everything else (chunks, offsets, edges)
is addressed by that id. Edges are plain index pairs, so a graph can be
printed or compared in a test without touching the states themselves.

The graph is rebuilt from scratch on every traversal.

ORDERING:
---------
Jacobian composition needs every input to be processed before its
outputs. `topological_order()` provides that order; ties are broken by
vertex id, so the result only depends on the order states were first
visited.
"""

import heapq
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from .errors import AssemblyError


@dataclass
class Vertex:
    """A registered state and the chunk fetched for it (None until visited)."""
    state: Any
    chunk: Optional[Any] = None


@dataclass(frozen=True)
class Edge:
    """Mapping relation from vertex `source` (input) to vertex `target` (output)."""
    source: int
    target: int
    block: Any


class AssemblyGraph:
    """
    Index-addressed directed graph of states.

    Examples:
    ---------
    >>> g = AssemblyGraph()
    >>> a, b = g.vertex("a"), g.vertex("b")
    >>> g.add_edge(a, b, block=None)
    >>> g.pairs()
    [(0, 1)]
    >>> g.topological_order()
    [0, 1]
    """

    def __init__(self):
        self.vertices: List[Vertex] = []
        self.edges: List[Edge] = []
        self._index: Dict[int, int] = {}
        self._in: List[List[int]] = []
        self._out: List[List[int]] = []

    def vertex(self, state) -> int:
        """Id of `state`, registering it on first sight."""
        key = id(state)
        found = self._index.get(key)
        if found is not None:
            return found
        index = len(self.vertices)
        self._index[key] = index
        self.vertices.append(Vertex(state))
        self._in.append([])
        self._out.append([])
        return index

    def find(self, state) -> Optional[int]:
        return self._index.get(id(state))

    def chunk(self, index: int):
        return self.vertices[index].chunk

    def attach(self, index: int, chunk) -> None:
        if self.vertices[index].chunk is not None:
            raise AssemblyError(f"vertex {index} already holds a chunk")
        self.vertices[index].chunk = chunk

    def add_edge(self, source: int, target: int, block) -> None:
        if source == target:
            raise AssemblyError(f"vertex {source} cannot map onto itself")
        self._out[source].append(len(self.edges))
        self._in[target].append(len(self.edges))
        self.edges.append(Edge(source, target, block))

    def in_edges(self, index: int) -> List[Edge]:
        return [self.edges[e] for e in self._in[index]]

    def out_edges(self, index: int) -> List[Edge]:
        return [self.edges[e] for e in self._out[index]]

    def pairs(self) -> List[Tuple[int, int]]:
        return [(e.source, e.target) for e in self.edges]

    def topological_order(self) -> List[int]:
        """
        Vertex ids ordered so that every edge goes from an earlier to a later id.

        Kahn's algorithm with a min-heap of ready vertices.

        Raises:
        -------
        AssemblyError
            If the mapping relations contain a cycle
        """
        pending = [len(incoming) for incoming in self._in]
        ready = [v for v, count in enumerate(pending) if count == 0]
        heapq.heapify(ready)

        order = []
        while ready:
            v = heapq.heappop(ready)
            order.append(v)
            for e in self._out[v]:
                target = self.edges[e].target
                pending[target] -= 1
                if pending[target] == 0:
                    heapq.heappush(ready, target)

        if len(order) != len(self.vertices):
            stuck = [v for v, count in enumerate(pending) if count > 0]
            raise AssemblyError(f"mapping graph has a cycle through vertices {stuck}")
        return order

    def clear(self) -> None:
        self.vertices.clear()
        self.edges.clear()
        self._index.clear()
        self._in.clear()
        self._out.clear()

    def __len__(self) -> int:
        return len(self.vertices)
