"""Jacobi stream function / vorticity solver for flow in a box with slots.

Modes:
------
Irrotational (reynolds=None) - Laplace equation for psi only
Vortical (reynolds given)     - vorticity transport coupled to Poisson for psi
"""

from .datastructures import (
    RE_STABILITY_LIMIT,
    Parameters,
    Metrics,
    TimeSeries,
    CFDSolverFields,
)
from .exceptions import (
    CFDError,
    GeometryError,
    NonFiniteResidualError,
    ReynoldsStabilityError,
)
from .solver import CFDSolver, SolverState

__all__ = [
    # Solver
    "CFDSolver",
    "SolverState",
    # Data structures
    "Parameters",
    "Metrics",
    "TimeSeries",
    "CFDSolverFields",
    "RE_STABILITY_LIMIT",
    # Errors
    "CFDError",
    "GeometryError",
    "NonFiniteResidualError",
    "ReynoldsStabilityError",
]
