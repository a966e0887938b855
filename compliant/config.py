# compliant/config.py
"""
Assembly configuration and defaults.
"""

from dataclasses import dataclass


@dataclass
class MechanicalParams:
    """
    Factors of the integration scheme the system is assembled for.

    The dynamics block of a state is

        m_factor·M + k_factor·K + b_factor·B,   with B = -damping·I

    where K is the force derivative df/dx and B the damping derivative
    df/dv. The consuming solver picks the factors.
    """

    dt: float = 0.01
    m_factor: float = 1.0
    k_factor: float = 1.0
    b_factor: float = 0.0

    @classmethod
    def implicit_euler(cls, dt: float) -> "MechanicalParams":
        """Factors of backward Euler on velocities: H = M - dt·B - dt²·K."""
        return cls(dt=dt, m_factor=1.0, k_factor=-dt * dt, b_factor=-dt)


@dataclass
class AssemblyConfig:
    """Global assembly configuration."""

    # Composed Jacobian entries with magnitude <= this are dropped
    zero_tolerance: float = 0.0

    # Verify chunk block shapes right after fetching
    check_chunks: bool = True

    # Root logger of the package
    logger_name: str = "compliant"


# Global config instance
CONFIG = AssemblyConfig()
