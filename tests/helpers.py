import itertools
import math
import random
from typing import List, Optional, Tuple

from mip_optimizer.schemas import IntegerSpec, LinearConstraint, MIPProblem


def is_feasible(problem: MIPProblem, x, tol: float = 1e-6) -> bool:
    for (lo, hi), value in zip(problem.variable_bounds(), x):
        if value < lo - tol or value > hi + tol:
            return False
    for cons in problem.constraints:
        lhs = sum(a * v for a, v in zip(cons.coefficients, x))
        if cons.cmp == "<=" and lhs > cons.rhs + tol:
            return False
        if cons.cmp == ">=" and lhs < cons.rhs - tol:
            return False
        if cons.cmp == "==" and abs(lhs - cons.rhs) > tol:
            return False
    return True


def integer_points(problem: MIPProblem) -> List[Tuple[int, ...]]:
    """Every feasible point of a bounded pure-integer problem."""
    ranges = [range(math.ceil(lo), math.floor(hi) + 1) for lo, hi in problem.variable_bounds()]
    return [point for point in itertools.product(*ranges) if is_feasible(problem, point)]


def enumerate_optimum(problem: MIPProblem) -> Optional[float]:
    values = [problem.evaluate(point) for point in integer_points(problem)]
    if not values:
        return None
    return max(values) if problem.sense == "max" else min(values)


def make_knapsack() -> MIPProblem:
    return MIPProblem(
        name="knapsack",
        sense="max",
        objective=[3.0, 4.0, 5.0, 6.0],
        constraints=[LinearConstraint(coefficients=[5.0, 3.0, 4.0, 2.0], cmp="<=", rhs=7.0, name="capacity")],
        integer_spec=IntegerSpec.all_binary(4),
    )


def make_textbook_ip() -> MIPProblem:
    """LP optimum (2.4, 2.4) with value 4.8; integer optimum 4."""
    return MIPProblem(
        name="textbook",
        sense="max",
        objective=[1.0, 1.0],
        constraints=[
            LinearConstraint(coefficients=[-1.0, 1.0], cmp="<=", rhs=1.0),
            LinearConstraint(coefficients=[3.0, 2.0], cmp="<=", rhs=12.0),
            LinearConstraint(coefficients=[2.0, 3.0], cmp="<=", rhs=12.0),
        ],
        upper_bounds=[10.0, 10.0],
        integer_spec=IntegerSpec.all_integer(2),
    )


def make_random_ip(seed: int, sense: str = "max") -> MIPProblem:
    """Small bounded pure-integer program; the origin is always feasible."""
    rng = random.Random(seed)
    n = 3
    constraints = [
        LinearConstraint(
            coefficients=[float(rng.randint(1, 6)) for _ in range(n)],
            cmp="<=",
            rhs=float(rng.randint(5, 15)) + 0.5,
        )
        for _ in range(2)
    ]
    objective = [float(rng.randint(1, 9)) for _ in range(n)]
    if sense == "min":
        objective = [-c for c in objective]
    return MIPProblem(
        name=f"random-{seed}",
        sense=sense,
        objective=objective,
        constraints=constraints,
        upper_bounds=[4.0] * n,
        integer_spec=IntegerSpec.all_integer(n),
    )
