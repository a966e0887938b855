# tests/test_traversal.py
"""
TRAVERSAL TESTS: Fetching, Shared States, Offsets, Reuse
========================================================
"""

import logging
import sys

import pytest
import numpy as np

from compliant import (
    AssemblyError, AssemblyVisitor, Chunk, ForceField, LinearMapping, Mass,
    MechanicalState, Node, VecId, walk,
)


class Recorder:
    """Visitor that only records the callback order."""

    def __init__(self):
        self.calls = []

    def top_down(self, node):
        self.calls.append(("down", node.name))
        return node.name != "pruned"

    def bottom_up(self, node):
        self.calls.append(("up", node.name))


def test_walk_is_pre_then_post_order():
    root = Node("root")
    a = root.create_child("a")
    a.create_child("a1")
    root.create_child("b")

    recorder = Recorder()
    walk(root, recorder)
    assert recorder.calls == [
        ("down", "root"), ("down", "a"), ("down", "a1"), ("up", "a1"),
        ("up", "a"), ("down", "b"), ("up", "b"), ("up", "root"),
    ]


def test_walk_prunes_subtree():
    root = Node("root")
    pruned = root.create_child("pruned")
    pruned.create_child("hidden")

    recorder = Recorder()
    root.execute(recorder)
    assert ("down", "hidden") not in recorder.calls
    assert ("up", "pruned") in recorder.calls


def test_offsets_follow_post_order():
    """
    Layout:
        A (2)
        ├── B (1)
        └── C (3)

    Post-order is B, C, A, so offsets are B=0, C=1, A=4.
    """
    a = Node("A", state=MechanicalState("A", 2))
    b = a.create_child("B", state=MechanicalState("B", 1))
    c = a.create_child("C", state=MechanicalState("C", 3))

    visitor = AssemblyVisitor().execute(a)

    assert visitor.chunk(b.state).offset == 0
    assert visitor.chunk(c.state).offset == 1
    assert visitor.chunk(a.state).offset == 4
    assert visitor.master.total == 6
    assert [visitor.graph.vertices[v].state.name for v in visitor.master.vertices()] == ["B", "C", "A"]


def test_chunk_contents():
    body = Node("body", state=MechanicalState("body", 2, force=[1.0, 2.0], velocity=[3.0, 4.0]),
                damping=0.5)
    body.add_mass(Mass.uniform(2, 4.0))
    body.add_forcefield(ForceField(-np.eye(2)))
    body.add_forcefield(ForceField(-np.eye(2)))

    visitor = AssemblyVisitor().execute(body)
    chunk = visitor.chunk(body.state)

    assert isinstance(chunk, Chunk)
    assert chunk.master and not chunk.compliant
    assert chunk.size == 2
    np.testing.assert_array_equal(chunk.M.toarray(), 4.0 * np.eye(2))
    np.testing.assert_array_equal(chunk.K.toarray(), -2.0 * np.eye(2))
    np.testing.assert_array_equal(chunk.P.toarray(), np.eye(2))
    np.testing.assert_array_equal(chunk.f, [1.0, 2.0])
    np.testing.assert_array_equal(chunk.v, [3.0, 4.0])
    assert chunk.damping == 0.5
    assert chunk.map == {}
    assert chunk.check()


def test_fetched_vectors_are_copies():
    body = Node("body", state=MechanicalState("body", 2, velocity=[1.0, 1.0]))
    visitor = AssemblyVisitor().execute(body)

    body.state.write(VecId.VELOCITY, [9.0, 9.0])
    np.testing.assert_array_equal(visitor.chunk(body.state).v, [1.0, 1.0])
    np.testing.assert_array_equal(visitor.assemble().v, [1.0, 1.0])


def test_shared_state_first_visit_wins():
    """
    WHAT IS THIS TEST?
    ==================
    The same state appears under two nodes with different masses. It must
    be fetched once (from the first node reached top-down) and allocated
    once.
    """
    shared = MechanicalState("shared", 2)
    root = Node("root")
    first = root.create_child("first", state=shared)
    first.add_mass(Mass.uniform(2, 1.0))
    second = root.create_child("second", state=shared)
    second.add_mass(Mass.uniform(2, 5.0))

    visitor = AssemblyVisitor().execute(root)
    system = visitor.assemble()

    assert len(visitor.chunks) == 1
    assert system.size_m == 2
    np.testing.assert_array_equal(system.H.toarray(), np.eye(2))


def test_non_mechanical_state_is_skipped_but_children_are_visited():
    body = Node("body", state=MechanicalState("body", 2))
    mouse = body.create_child("mouse", state=MechanicalState("mouse", 3, mechanical=False))
    mouse.add_mass(Mass.uniform(3, 1.0))
    below = mouse.create_child("below", state=MechanicalState("below", 1))

    visitor = AssemblyVisitor().execute(body)
    system = visitor.assemble()

    chunk = visitor.chunk(mouse.state)
    assert chunk is not None and not chunk.mechanical
    assert chunk.M.shape == (0, 0)
    assert visitor.chunk(below.state).master
    assert system.size_m == 2 + 1


def test_mapping_onto_non_mechanical_output_is_ignored():
    body = Node("body", state=MechanicalState("body", 2))
    cursor = body.create_child("cursor", state=MechanicalState("cursor", 1, mechanical=False,
                                                               constraint=[1.0]))
    cursor.set_mapping(LinearMapping([body.state], cursor.state, [[[1.0, 0.0]]]))

    visitor = AssemblyVisitor().execute(body)
    system = visitor.assemble()

    assert visitor.graph.edges == []
    assert system.size_c == 0


def test_mapping_with_foreign_output_is_ignored(caplog):
    body = Node("body", state=MechanicalState("body", 2))
    other = MechanicalState("other", 1)
    child = body.create_child("child", state=MechanicalState("child", 1))
    child.set_mapping(LinearMapping([body.state], other, [[[1.0, 0.0]]]))

    with caplog.at_level(logging.WARNING, logger="compliant"):
        visitor = AssemblyVisitor().execute(body)

    assert "not the node state" in caplog.text
    assert visitor.chunk(child.state).master


def test_wrongly_sized_block_is_treated_as_zero(caplog):
    body = Node("body", state=MechanicalState("body", 3))
    body.add_mass(Mass(np.eye(2)))

    with caplog.at_level(logging.WARNING, logger="compliant"):
        system = AssemblyVisitor().execute(body).assemble()

    assert "treating as zero" in caplog.text
    assert system.size_m == 3
    assert system.H.nnz == 0


def test_clear_allows_reuse():
    body = Node("body", state=MechanicalState("body", 2))
    body.add_mass(Mass.uniform(2, 1.0))

    visitor = AssemblyVisitor()
    visitor.execute(body)
    first = visitor.assemble()

    visitor.clear()
    assert len(visitor.graph) == 0
    assert visitor.master.total == 0
    assert visitor.start_node is None

    body.masses[0] = Mass.uniform(2, 3.0)
    visitor.execute(body)
    second = visitor.assemble()

    np.testing.assert_array_equal(first.H.toarray(), np.eye(2))
    np.testing.assert_array_equal(second.H.toarray(), 3.0 * np.eye(2))


def test_traversal_without_clear_does_not_refetch():
    body = Node("body", state=MechanicalState("body", 2))
    visitor = AssemblyVisitor()
    visitor.execute(body)
    visitor.execute(body)
    assert visitor.master.total == 2


def test_mapping_cycle_is_fatal():
    a = Node("a", state=MechanicalState("a", 1))
    b = a.create_child("b", state=MechanicalState("b", 1))
    b.set_mapping(LinearMapping([a.state], b.state, [[[1.0]]]))
    a.set_mapping(LinearMapping([b.state], a.state, [[[1.0]]]))
    # keep one constraint so the cycle matters
    b.state.write(VecId.CONSTRAINT, [0.0])

    visitor = AssemblyVisitor().execute(a)
    with pytest.raises(AssemblyError):
        visitor.assemble()


def test_debug_output(capsys):
    body = Node("body", state=MechanicalState("body", 1))
    body.add_mass(Mass.uniform(1, 1.0))
    visitor = AssemblyVisitor().execute(body)

    visitor.debug()
    visitor.assemble().debug()

    out = capsys.readouterr().out
    assert "chunk body" in out
    assert "size_m=1" in out


def test_scene_deeper_than_recursion_limit():
    """
    WHAT IS THIS TEST?
    ==================
    A chain of identity mappings nested deeper than the interpreter's
    recursion limit. The walk must not recurse, and the constraint at the
    bottom must still see the root's dof through the whole chain.
    """
    depth = sys.getrecursionlimit() + 10

    root = Node("root", state=MechanicalState("root", 1))
    root.add_mass(Mass.uniform(1, 2.0))

    node = root
    for i in range(depth):
        child = node.create_child(f"n{i}", state=MechanicalState(f"n{i}", 1))
        child.set_mapping(LinearMapping([node.state], child.state, [[[1.0]]]))
        node = child
    node.add_forcefield(ForceField([[0.01]], is_compliance=True))
    node.state.write(VecId.CONSTRAINT, [0.3])

    recorder = Recorder()
    walk(root, recorder)
    assert len(recorder.calls) == 2 * (depth + 1)
    assert recorder.calls[0] == ("down", "root")
    assert recorder.calls[-1] == ("up", "root")

    system = AssemblyVisitor().execute(root).assemble()
    assert system.size_m == 1
    assert system.size_c == 1
    np.testing.assert_allclose(system.H.toarray(), [[2.0]])
    np.testing.assert_allclose(system.J.toarray(), [[1.0]])
    np.testing.assert_allclose(system.C.toarray(), [[0.01]])
    np.testing.assert_allclose(system.phi, [0.3])
