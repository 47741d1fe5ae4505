"""OR-Tools CBC baseline used to cross-check the in-house engines."""

from __future__ import annotations

import math
import time
from typing import Any, List

from ..errors import OracleFailure
from ..schemas import MIPProblem, MIPResult
from .validation import validate_problem


def solve_with_ortools(problem: MIPProblem) -> MIPResult:
    try:
        from ortools.linear_solver import pywraplp
    except ImportError as exc:  # pragma: no cover - optional dependency
        raise ImportError("ortools is not installed; install the 'ortools' extra") from exc

    validate_problem(problem)
    solver = pywraplp.Solver.CreateSolver("CBC")
    if solver is None:
        raise OracleFailure("Failed to create OR-Tools CBC solver")

    integer = set(problem.integer_spec.integer_indices())
    variables: List[Any] = []
    for idx, (lo, hi) in enumerate(problem.variable_bounds()):
        lb = lo if math.isfinite(lo) else -solver.infinity()
        ub = hi if math.isfinite(hi) else solver.infinity()
        if idx in integer:
            variables.append(solver.IntVar(lb, ub, f"x{idx}"))
        else:
            variables.append(solver.NumVar(lb, ub, f"x{idx}"))

    for cons in problem.constraints:
        lhs = solver.Sum(coef * var for coef, var in zip(cons.coefficients, variables) if coef != 0.0)
        if cons.cmp == "<=":
            solver.Add(lhs <= cons.rhs)
        elif cons.cmp == ">=":
            solver.Add(lhs >= cons.rhs)
        else:
            solver.Add(lhs == cons.rhs)

    objective = solver.Sum(coef * var for coef, var in zip(problem.objective, variables))
    objective += problem.objective_constant
    if problem.sense == "max":
        solver.Maximize(objective)
    else:
        solver.Minimize(objective)

    start = time.perf_counter()
    result_status = solver.Solve()
    elapsed = time.perf_counter() - start
    status_map = {
        pywraplp.Solver.OPTIMAL: "optimal",
        pywraplp.Solver.INFEASIBLE: "infeasible",
        pywraplp.Solver.UNBOUNDED: "unbounded",
    }
    status = status_map.get(result_status)
    if status is None:
        raise OracleFailure(f"OR-Tools returned status {result_status}")

    nodes = solver.nodes() if hasattr(solver, "nodes") else 0
    if status != "optimal":
        sign = 1.0 if problem.sense == "min" else -1.0
        return MIPResult(
            status=status,
            solution=None,
            objective_value=None,
            best_bound=sign * (math.inf if status == "infeasible" else -math.inf),
            relative_gap=math.inf,
            nodes_explored=nodes,
            elapsed_time=elapsed,
            message=f"OR-Tools returned status {status}",
        )

    value = solver.Objective().Value()
    return MIPResult(
        status="optimal",
        solution=[var.solution_value() for var in variables],
        objective_value=value,
        best_bound=solver.Objective().BestBound(),
        relative_gap=0.0,
        nodes_explored=nodes,
        elapsed_time=elapsed,
        message="Solved via OR-Tools CBC",
    )
