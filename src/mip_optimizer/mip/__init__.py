"""Mixed-integer programming engines for MIP Optimizer."""

from .branch_and_bound import BranchAndBoundSolver, solve_branch_and_bound
from .branch_and_cut import BranchAndCutSolver, solve_branch_and_cut
from .cuts import Cut, CutContext, CutType, is_minimal_cover, make_cut, minimal_cover, select_cuts
from .fractional import fractional_part, is_integer_feasible, select_branching_variable
from .node import Frontier, Node, NodePool
from .reference import solve_with_ortools
from .validation import validate_problem

__all__ = [
    "BranchAndBoundSolver",
    "BranchAndCutSolver",
    "Cut",
    "CutContext",
    "CutType",
    "Frontier",
    "Node",
    "NodePool",
    "fractional_part",
    "is_integer_feasible",
    "is_minimal_cover",
    "make_cut",
    "minimal_cover",
    "select_branching_variable",
    "select_cuts",
    "solve_branch_and_bound",
    "solve_branch_and_cut",
    "solve_with_ortools",
    "validate_problem",
]
