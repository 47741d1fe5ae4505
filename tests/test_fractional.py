import pytest

from mip_optimizer.mip.fractional import (
    fractional_deviation,
    fractional_part,
    is_integer_feasible,
    select_branching_variable,
)
from mip_optimizer.schemas import IntegerSpec


def test_fractional_part_uses_floor():
    assert fractional_part(2.25) == pytest.approx(0.25)
    assert fractional_part(-0.4) == pytest.approx(0.6)
    assert fractional_part(3.0) == 0.0


def test_fractional_deviation():
    assert list(fractional_deviation([0.9, 1.5, 2.0], [0, 1, 2])) == pytest.approx([0.1, 0.5, 0.0])


def test_integer_feasibility_respects_tolerance():
    spec = IntegerSpec(integer=[0])
    assert is_integer_feasible([2.0000001, 0.5], spec, tolerance=1e-6)
    assert not is_integer_feasible([2.01, 0.5], spec, tolerance=1e-6)


def test_binary_values_must_round_to_zero_or_one():
    spec = IntegerSpec(integer=[0], binary=[0])
    assert is_integer_feasible([1.0], spec)
    assert not is_integer_feasible([2.0], spec)


def test_most_fractional_variable_is_selected():
    spec = IntegerSpec.all_integer(3)
    assert select_branching_variable([0.1, 2.45, 3.7], spec) == 1


def test_ties_go_to_lowest_index():
    spec = IntegerSpec.all_integer(3)
    assert select_branching_variable([1.0, 0.5, 3.5], spec) == 1


def test_continuous_variables_are_never_selected():
    spec = IntegerSpec(integer=[1])
    assert select_branching_variable([0.5, 2.0], spec) is None
