from __future__ import annotations

import math

from ..errors import InvalidInputError
from ..schemas import MIPProblem


def validate_problem(problem: MIPProblem) -> None:
    """Raise :class:`InvalidInputError` describing the first malformed piece of ``problem``."""
    n = problem.dimension
    if n == 0:
        raise InvalidInputError("Objective has no coefficients; the problem needs at least one variable.")
    if not all(math.isfinite(c) for c in problem.objective):
        raise InvalidInputError("Objective contains non-finite coefficients.")
    if not math.isfinite(problem.objective_constant):
        raise InvalidInputError("Objective constant is not finite.")

    for idx, cons in enumerate(problem.constraints):
        label = f"Constraint {idx}" + (f" '{cons.name}'" if cons.name else "")
        if len(cons.coefficients) != n:
            raise InvalidInputError(
                f"{label} has {len(cons.coefficients)} coefficients but the objective has {n}."
            )
        if not all(math.isfinite(c) for c in cons.coefficients) or not math.isfinite(cons.rhs):
            raise InvalidInputError(f"{label} contains non-finite values.")

    for label, values in (("lower_bounds", problem.lower_bounds), ("upper_bounds", problem.upper_bounds)):
        if values is not None and len(values) != n:
            raise InvalidInputError(f"{label} has {len(values)} entries but the objective has {n}.")
        for idx, value in enumerate(values or []):
            if value is not None and math.isnan(value):
                raise InvalidInputError(f"{label}[{idx}] is NaN.")

    for idx, value in enumerate(problem.lower_bounds or []):
        if value is not None and value == math.inf:
            raise InvalidInputError(f"lower_bounds[{idx}] is +inf; variable {idx} has no feasible value.")
    for idx, value in enumerate(problem.upper_bounds or []):
        if value is not None and value == -math.inf:
            raise InvalidInputError(f"upper_bounds[{idx}] is -inf; variable {idx} has no feasible value.")

    if problem.lower_bounds is not None and problem.upper_bounds is not None:
        for idx, (lo, hi) in enumerate(zip(problem.lower_bounds, problem.upper_bounds)):
            if lo is not None and hi is not None and lo > hi:
                raise InvalidInputError(f"Variable {idx} has lower bound {lo} above upper bound {hi}.")

    spec = problem.integer_spec
    for idx in spec.integer:
        if not 0 <= idx < n:
            raise InvalidInputError(f"Integer index {idx} is out of range for {n} variables.")
    integer_set = set(spec.integer)
    for idx in spec.binary:
        if not 0 <= idx < n:
            raise InvalidInputError(f"Binary index {idx} is out of range for {n} variables.")
        if idx not in integer_set:
            raise InvalidInputError(f"Binary index {idx} is not listed among the integer indices.")
