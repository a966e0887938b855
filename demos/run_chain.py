#!/usr/bin/env python3
"""
RUN_CHAIN: Stiffness Pulled Back Through a Mapping Chain
========================================================

Two particles (master) → their relative position (mapped) → its first
component (mapped again). A spring acts on the last state only; the
assembled H shows it pulled back onto the particles' coordinates:

    H = M + Fullᵀ · K · Full,   Full = J2 · J1

Run with:
    python demos/run_chain.py
"""

import sys
from pathlib import Path

import numpy as np

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from compliant import AssemblyVisitor, ForceField, LinearMapping, Mass, MechanicalState, Node


def print_header(text: str):
    """Print a formatted section header."""
    print("\n" + "=" * 60)
    print(f"  {text}")
    print("=" * 60)


def main():
    print_header("MAPPING CHAIN")

    k = 100.0  # N/m

    particles = Node("particles", state=MechanicalState("particles", 4))  # (x1, y1, x2, y2)
    particles.add_mass(Mass.uniform(4, 1.0))

    # relative position: x2 - x1, y2 - y1
    J1 = np.array([
        [-1.0, 0.0, 1.0, 0.0],
        [0.0, -1.0, 0.0, 1.0],
    ])
    relative = particles.create_child("relative", state=MechanicalState("relative", 2))
    relative.set_mapping(LinearMapping([particles.state], relative.state, [J1]))

    # horizontal component only
    J2 = np.array([[1.0, 0.0]])
    horizontal = relative.create_child("horizontal", state=MechanicalState("horizontal", 1))
    horizontal.set_mapping(LinearMapping([relative.state], horizontal.state, [J2]))
    horizontal.add_forcefield(ForceField([[-k]]))

    visitor = AssemblyVisitor().execute(particles)
    result = visitor.process()
    system = visitor.assemble()

    print_header("FULL JACOBIANS")
    for index, full in sorted(result.full.items()):
        name = visitor.graph.vertices[index].state.name
        print(f"\n{name}:")
        print(full.toarray())

    print_header("H")
    print(system.H.toarray())

    expected = np.eye(4) - k * (J2 @ J1).T @ (J2 @ J1)
    assert np.allclose(system.H.toarray(), expected)
    print("\n✓ H matches M + Fullᵀ·K·Full")


if __name__ == "__main__":
    main()
