#!/usr/bin/env python3
"""
RUN_PENDULUM: A Point Mass on a Compliant Rod
=============================================

This demo shows a complete assembly workflow:
1. Build a scene: one particle and a distance constraint
2. Compute the constraint value and Jacobian with a ValueMapping
3. Send the assembly visitor and assemble the system
4. Print H, J, C, phi

The rod is a soft constraint (compliance C instead of a hard constraint),
so the result is the regularized KKT system a compliant solver consumes.

Run with:
    python demos/run_pendulum.py
"""

import logging
import sys
from pathlib import Path

import numpy as np

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from compliant import (
    AssemblyVisitor, FixedConstraint, ForceField, Mass, MechanicalParams,
    MechanicalState, Node, ValueMapping, VecId,
)
from compliant.logging_config import setup_logging


def print_header(text: str):
    """Print a formatted section header."""
    print("\n" + "=" * 60)
    print(f"  {text}")
    print("=" * 60)


def main():
    setup_logging(logging.INFO)

    print_header("COMPLIANT PENDULUM")

    # =========================================================================
    # STEP 1: SCENE
    # =========================================================================
    print_header("STEP 1: Build Scene")

    length = 1.0        # m
    mass = 2.0          # kg
    compliance = 1e-4   # m/N
    dt = 0.01           # s

    root = Node("root")

    particle = root.create_child(
        "particle",
        state=MechanicalState("particle", 3, position=[0.8, -0.7, 0.0], velocity=[0.0, 0.0, 0.0]),
        damping=0.1,
    )
    particle.add_mass(Mass.uniform(3, mass))
    particle.add_constraint(FixedConstraint([2]))   # planar motion
    particle.state.write(VecId.FORCE, [0.0, -9.81 * mass, 0.0])

    rod = particle.create_child("rod", state=MechanicalState("rod", 1))

    def distance(mapping):
        x = mapping.inputs[0].read(VecId.POSITION)
        d = np.linalg.norm(x)
        mapping.value = [d - length]
        mapping.jacobian = x / d

    mapping = ValueMapping([particle.state], rod.state, callback=distance)
    rod.set_mapping(mapping)
    rod.add_forcefield(ForceField([[compliance]], is_compliance=True))

    print(f"\nParticle: m = {mass} kg at {particle.state.read(VecId.POSITION)}")
    print(f"Rod:      L = {length} m, compliance = {compliance:.0e} m/N")

    # =========================================================================
    # STEP 2: MAPPING
    # =========================================================================
    print_header("STEP 2: Apply Mapping")

    phi = mapping.apply()
    rod.state.write(VecId.CONSTRAINT, phi)
    print(f"\nConstraint violation phi = {phi[0]:+.6f} m")

    # =========================================================================
    # STEP 3: ASSEMBLY
    # =========================================================================
    print_header("STEP 3: Assemble")

    visitor = AssemblyVisitor(MechanicalParams.implicit_euler(dt))
    visitor.execute(root)
    system = visitor.assemble()

    print(f"\nsize_m = {system.size_m}, size_c = {system.size_c}")

    # =========================================================================
    # STEP 4: RESULTS
    # =========================================================================
    print_header("STEP 4: Assembled System")
    system.debug()

    visitor.clear()
    print("\n✓ Assembly complete")


if __name__ == "__main__":
    main()
