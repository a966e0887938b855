# compliant/kernel/errors.py
"""Errors raised by the assembly kernel."""


class AssemblyError(RuntimeError):
    """
    Raised when the assembly bookkeeping is inconsistent.

    Offsets that do not add up, Jacobians with the wrong column count,
    a cycle in the mapping graph: these are programming errors, not
    recoverable conditions, and abort the current assembly.
    """
    pass
