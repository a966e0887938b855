# compliant/kernel/offsets.py
"""
OFFSET TABLES: Global Degree of Freedom Allocation
==================================================

PURPOSE:
--------
This module maps a visited state (by its vertex index) to the position of
its block in a global vector. There are two independent numberings:

    master     one block per unmapped, mechanical state   → size_m
    compliant  one block per constrained state (phi)      → size_c

Unlike a fixed DOF-per-node layout, every state has its own width, so
offsets are allocated with a running total: the n-th block starts where
the (n-1)-th one ends. Insertion order (the bottom-up traversal order),
not any key order, decides the layout.

USAGE:
------
    table = OffsetTable()
    table.append(vertex=0, size=3)   # → 0
    table.append(vertex=4, size=2)   # → 3
    table.total                      # → 5
    table.indices(4)                 # → [3, 4]
"""

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Tuple

from .errors import AssemblyError


@dataclass
class OffsetTable:
    """
    Running-total allocator of global blocks, addressed by vertex index.

    Attributes:
    -----------
    entries : List[Tuple[int, int, int]]
        (vertex, offset, size) in allocation order
    total : int
        Sum of all allocated sizes (size of the global vector)
    frozen : bool
        Once frozen, no further allocation is accepted

    Examples:
    ---------
    >>> table = OffsetTable()
    >>> table.append(2, 3)
    0
    >>> table.append(5, 1)
    3
    >>> table.offset(5), table.size(5), table.total
    (3, 1, 4)
    """
    entries: List[Tuple[int, int, int]] = field(default_factory=list)
    total: int = 0
    frozen: bool = False
    _lookup: Dict[int, int] = field(default_factory=dict, repr=False)

    def append(self, vertex: int, size: int) -> int:
        """
        Allocate a block of `size` entries for `vertex` at the end of the table.

        Returns:
        --------
        int
            Offset of the new block
        """
        if self.frozen:
            raise AssemblyError("cannot allocate in a frozen offset table")
        if vertex in self._lookup:
            raise AssemblyError(f"vertex {vertex} already has an offset")
        if size < 0:
            raise AssemblyError(f"negative block size {size} for vertex {vertex}")

        offset = self.total
        self._lookup[vertex] = len(self.entries)
        self.entries.append((vertex, offset, size))
        self.total += size
        return offset

    def offset(self, vertex: int) -> int:
        return self.entries[self._lookup[vertex]][1]

    def size(self, vertex: int) -> int:
        return self.entries[self._lookup[vertex]][2]

    def indices(self, vertex: int) -> List[int]:
        """
        All global indices of a vertex block.

        >>> table = OffsetTable()
        >>> _ = table.append(0, 2); _ = table.append(1, 3)
        >>> table.indices(1)
        [2, 3, 4]
        """
        _, offset, size = self.entries[self._lookup[vertex]]
        return list(range(offset, offset + size))

    def segment(self, vertex: int) -> slice:
        _, offset, size = self.entries[self._lookup[vertex]]
        return slice(offset, offset + size)

    def vertices(self) -> List[int]:
        return [vertex for vertex, _, _ in self.entries]

    def check(self) -> None:
        """Verify blocks are contiguous and add up to `total`."""
        expected = 0
        for vertex, offset, size in self.entries:
            if offset != expected:
                raise AssemblyError(
                    f"vertex {vertex} starts at {offset}, expected {expected}"
                )
            expected += size
        if expected != self.total:
            raise AssemblyError(
                f"offset table adds up to {expected}, expected total {self.total}"
            )

    def freeze(self) -> "OffsetTable":
        """Return a checked, read-only copy of this table."""
        self.check()
        return OffsetTable(
            entries=list(self.entries),
            total=self.total,
            frozen=True,
            _lookup=dict(self._lookup),
        )

    def clear(self) -> None:
        if self.frozen:
            raise AssemblyError("cannot clear a frozen offset table")
        self.entries.clear()
        self._lookup.clear()
        self.total = 0

    def __contains__(self, vertex: int) -> bool:
        return vertex in self._lookup

    def __iter__(self) -> Iterator[Tuple[int, int, int]]:
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)
