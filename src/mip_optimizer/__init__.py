"""MIP Optimizer: LP-based branch-and-bound and branch-and-cut on a numpy simplex."""

from .errors import InvalidInputError, OracleFailure
from .lp import solve_relaxation
from .mip import solve_branch_and_bound, solve_branch_and_cut
from .schemas import (
    BranchAndBoundOptions,
    BranchAndCutOptions,
    IntegerSpec,
    LinearConstraint,
    MIPProblem,
    MIPResult,
    SolveOptions,
)

__all__ = [
    "BranchAndBoundOptions",
    "BranchAndCutOptions",
    "IntegerSpec",
    "InvalidInputError",
    "LinearConstraint",
    "MIPProblem",
    "MIPResult",
    "OracleFailure",
    "SolveOptions",
    "solve_branch_and_bound",
    "solve_branch_and_cut",
    "solve_relaxation",
]
