"""Linear programming oracle for MIP Optimizer."""

from .simplex import LPOracle, RelaxationResult, SimplexOracle, Tableau, simplex_solve, solve_relaxation
from .utils import LinearRow, build_standard_form

__all__ = [
    "LPOracle",
    "LinearRow",
    "RelaxationResult",
    "SimplexOracle",
    "Tableau",
    "build_standard_form",
    "simplex_solve",
    "solve_relaxation",
]
