# tests/test_kernel.py
"""
KERNEL TESTS: Offsets, Graph, Block Assembly
============================================

The kernel knows nothing about scenes. These tests exercise it directly
with plain integers and small matrices.
"""

import pytest
import numpy as np
import scipy.sparse as sp

from compliant.kernel import (
    AssemblyError, AssemblyGraph, BlockAssembler, OffsetTable,
    assemble_global_matrix, assemble_global_vector,
)
from compliant.kernel.sparse import congruence, is_zero, prune, shift_right


# ---------------------------------------------------------------------------
# offsets

def test_offsets_are_running_totals():
    table = OffsetTable()
    assert table.append(7, 3) == 0
    assert table.append(2, 1) == 3
    assert table.append(5, 2) == 4

    assert table.total == 6
    assert table.offset(2) == 3
    assert table.size(5) == 2
    assert table.indices(5) == [4, 5]
    assert table.vertices() == [7, 2, 5]
    assert 7 in table and 3 not in table


def test_offsets_reject_double_allocation():
    table = OffsetTable()
    table.append(0, 2)
    with pytest.raises(AssemblyError):
        table.append(0, 2)


def test_frozen_table_is_read_only():
    table = OffsetTable()
    table.append(0, 2)
    frozen = table.freeze()

    with pytest.raises(AssemblyError):
        frozen.append(1, 1)

    # the source table keeps growing, the frozen copy does not follow it
    table.append(1, 1)
    assert frozen.total == 2
    assert table.total == 3


def test_clear_resets_table():
    table = OffsetTable()
    table.append(0, 4)
    table.clear()
    assert table.total == 0
    assert len(table) == 0
    assert table.append(0, 1) == 0


# ---------------------------------------------------------------------------
# graph

def test_graph_registers_states_once():
    g = AssemblyGraph()
    a, b = object(), object()
    assert g.vertex(a) == 0
    assert g.vertex(b) == 1
    assert g.vertex(a) == 0
    assert g.find(b) == 1
    assert g.find(object()) is None
    assert len(g) == 2


def test_topological_order_follows_edges():
    g = AssemblyGraph()
    states = [object() for _ in range(4)]
    ids = [g.vertex(s) for s in states]

    # 3 → 1 → 0, 3 → 2 → 0 (inputs registered after their outputs)
    g.add_edge(ids[1], ids[0], block=None)
    g.add_edge(ids[2], ids[0], block=None)
    g.add_edge(ids[3], ids[1], block=None)
    g.add_edge(ids[3], ids[2], block=None)

    order = g.topological_order()
    position = {v: i for i, v in enumerate(order)}
    for source, target in g.pairs():
        assert position[source] < position[target]
    assert order == [3, 1, 2, 0]


def test_cycle_is_fatal():
    g = AssemblyGraph()
    a, b = g.vertex("a"), g.vertex("b")
    g.add_edge(a, b, block=None)
    g.add_edge(b, a, block=None)
    with pytest.raises(AssemblyError):
        g.topological_order()


def test_in_and_out_edges():
    g = AssemblyGraph()
    a, b, c = (g.vertex(object()) for _ in range(3))
    g.add_edge(a, c, block="ac")
    g.add_edge(b, c, block="bc")

    assert [e.block for e in g.in_edges(c)] == ["ac", "bc"]
    assert [e.target for e in g.out_edges(a)] == [c]
    assert g.in_edges(a) == []


# ---------------------------------------------------------------------------
# block assembly

def test_overlapping_blocks_accumulate():
    builder = BlockAssembler((3, 3))
    builder.add(0, 0, np.ones((2, 2)))
    builder.add(1, 1, np.ones((2, 2)))

    expected = np.array([
        [1.0, 1.0, 0.0],
        [1.0, 2.0, 1.0],
        [0.0, 1.0, 1.0],
    ])
    np.testing.assert_array_equal(builder.tocsr().toarray(), expected)


def test_block_outside_shape_is_fatal():
    builder = BlockAssembler((2, 2))
    with pytest.raises(AssemblyError):
        builder.add(1, 1, np.eye(2))


def test_reset_discards_previous_triplets():
    builder = BlockAssembler((2, 2))
    builder.add(0, 0, 5 * np.eye(2))
    builder.reset((3, 1))
    builder.add(2, 0, np.array([[1.0]]))

    out = builder.tocsr()
    assert out.shape == (3, 1)
    np.testing.assert_array_equal(out.toarray().ravel(), [0.0, 0.0, 1.0])


def test_empty_builder_gives_zero_matrix():
    out = BlockAssembler((0, 4)).tocsr()
    assert out.shape == (0, 4)
    assert out.nnz == 0


def test_assemble_global_matrix_and_vector():
    M = assemble_global_matrix((2, 3), [(0, 1, sp.csr_matrix([[2.0, 0.0], [0.0, 3.0]]))])
    np.testing.assert_array_equal(M.toarray(), [[0.0, 2.0, 0.0], [0.0, 0.0, 3.0]])

    F = assemble_global_vector(3, [(0, [1.0, 1.0]), (1, [1.0, 1.0])])
    np.testing.assert_array_equal(F, [1.0, 2.0, 1.0])

    with pytest.raises(AssemblyError):
        assemble_global_vector(2, [(1, [1.0, 1.0])])


# ---------------------------------------------------------------------------
# sparse helpers

def test_shift_right_selects_block():
    S = shift_right(2, 2, 5)
    x = np.arange(5.0)
    np.testing.assert_array_equal(S @ x, [2.0, 3.0])


def test_prune_drops_small_entries():
    m = sp.csr_matrix([[1.0, 1e-15], [0.0, -2.0]])
    assert prune(m, 1e-12).nnz == 2
    assert prune(m).nnz == 3


def test_is_zero():
    assert is_zero(None)
    assert is_zero(sp.csr_matrix((0, 0)))
    assert is_zero(sp.csr_matrix((3, 3)))
    assert not is_zero(sp.identity(2, format="csr"))


def test_congruence_is_symmetric():
    J = sp.csr_matrix([[1.0, 2.0, 0.0], [0.0, 1.0, -1.0]])
    K = sp.csr_matrix([[2.0, 1.0], [1.0, 3.0]])
    H = congruence(J, K).toarray()
    np.testing.assert_allclose(H, H.T)
    np.testing.assert_allclose(H, J.toarray().T @ K.toarray() @ J.toarray())


def test_segment_slices_a_global_vector():
    table = OffsetTable()
    table.append(4, 2)
    table.append(9, 3)

    x = np.arange(5.0)
    np.testing.assert_array_equal(x[table.segment(9)], [2.0, 3.0, 4.0])
    assert table.segment(4) == slice(0, 2)
