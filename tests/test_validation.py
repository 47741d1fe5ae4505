import math

import pytest

from mip_optimizer.errors import InvalidInputError
from mip_optimizer.mip import BranchAndBoundSolver, BranchAndCutSolver
from mip_optimizer.mip.validation import validate_problem
from mip_optimizer.schemas import IntegerSpec, LinearConstraint, MIPProblem


def make_problem(**overrides) -> MIPProblem:
    data = dict(
        objective=[1.0, 1.0],
        constraints=[LinearConstraint(coefficients=[1.0, 1.0], cmp="<=", rhs=3.0, name="cap")],
        integer_spec=IntegerSpec(integer=[0, 1]),
    )
    data.update(overrides)
    return MIPProblem(**data)


def test_valid_problem_passes():
    validate_problem(make_problem())


@pytest.mark.parametrize(
    "overrides, fragment",
    [
        ({"objective": []}, "at least one variable"),
        ({"objective": [1.0, float("nan")]}, "non-finite"),
        ({"constraints": [LinearConstraint(coefficients=[1.0], rhs=1.0, name="short")]}, "'short'"),
        ({"constraints": [LinearConstraint(coefficients=[1.0, float("inf")], rhs=1.0)]}, "non-finite"),
        ({"upper_bounds": [1.0]}, "upper_bounds"),
        ({"lower_bounds": [2.0, 0.0], "upper_bounds": [1.0, 1.0]}, "above upper bound"),
        ({"integer_spec": IntegerSpec(integer=[2])}, "out of range"),
        ({"integer_spec": IntegerSpec(integer=[0], binary=[1])}, "not listed"),
        ({"lower_bounds": [0.0, math.inf]}, r"lower_bounds\[1\] is \+inf"),
        ({"upper_bounds": [-math.inf, 1.0]}, r"upper_bounds\[0\] is -inf"),
    ],
)
def test_malformed_problems_are_rejected(overrides, fragment):
    with pytest.raises(InvalidInputError, match=fragment):
        validate_problem(make_problem(**overrides))


def test_solvers_validate_on_construction():
    bad = make_problem(upper_bounds=[1.0])
    with pytest.raises(InvalidInputError):
        BranchAndBoundSolver(bad)
    with pytest.raises(ValueError):
        BranchAndCutSolver(bad)
