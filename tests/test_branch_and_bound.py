import math

import numpy as np
import pytest

from helpers import enumerate_optimum, is_feasible, make_knapsack, make_random_ip, make_textbook_ip
from mip_optimizer.errors import OracleFailure
from mip_optimizer.lp.simplex import SimplexOracle
from mip_optimizer.mip import BranchAndBoundSolver, BranchAndCutSolver, solve_branch_and_bound
from mip_optimizer.schemas import BranchAndBoundOptions, BranchAndCutOptions, IntegerSpec, LinearConstraint, MIPProblem


class RecordingOracle:
    """Delegates to the simplex oracle and remembers every bound vector it was given."""

    def __init__(self, fail_after=None):
        self.inner = SimplexOracle()
        self.bounds = []
        self.fail_after = fail_after

    def solve(self, objective, rows, bounds, integer_mask=None, want_tableau=False):
        if self.fail_after is not None and len(self.bounds) >= self.fail_after:
            raise OracleFailure("simulated breakdown")
        self.bounds.append(list(bounds))
        return self.inner.solve(objective, rows, bounds, integer_mask, want_tableau)


def test_knapsack_optimum():
    result = solve_branch_and_bound(make_knapsack())

    assert result.status == "optimal"
    assert result.objective_value == pytest.approx(11.0)
    assert result.solution == pytest.approx([0.0, 0.0, 1.0, 1.0])
    assert result.best_bound == pytest.approx(11.0, rel=1e-3)
    assert result.relative_gap <= 1e-4


def test_integral_root_terminates_without_branching():
    problem = MIPProblem(
        objective=[1.0],
        constraints=[
            LinearConstraint(coefficients=[1.0], cmp=">=", rhs=3.0),
            LinearConstraint(coefficients=[1.0], cmp="<=", rhs=3.0),
        ],
        integer_spec=IntegerSpec(integer=[0]),
    )
    result = solve_branch_and_bound(problem)

    assert result.status == "optimal"
    assert result.objective_value == pytest.approx(3.0)
    assert result.nodes_explored == 1
    assert result.nodes_created == 1


def test_no_integer_between_bounds_is_infeasible():
    problem = MIPProblem(
        objective=[1.0],
        constraints=[
            LinearConstraint(coefficients=[1.0], cmp=">=", rhs=2.1),
            LinearConstraint(coefficients=[1.0], cmp="<=", rhs=2.9),
        ],
        integer_spec=IntegerSpec(integer=[0]),
    )
    result = solve_branch_and_bound(problem)

    assert result.status == "infeasible"
    assert result.solution is None
    assert result.objective_value is None
    assert result.nodes_explored == 1


def test_crossing_child_bounds_are_dropped():
    problem = MIPProblem(
        objective=[1.0],
        lower_bounds=[2.1],
        upper_bounds=[2.9],
        integer_spec=IntegerSpec(integer=[0]),
    )
    result = solve_branch_and_bound(problem)

    assert result.status == "infeasible"
    assert result.lp_solves == 1


def test_maximisation_reports_true_sign():
    problem = MIPProblem(
        sense="max",
        objective=[3.0, 2.0],
        objective_constant=1.0,
        constraints=[LinearConstraint(coefficients=[2.0, 2.0], cmp="<=", rhs=3.0)],
        integer_spec=IntegerSpec.all_binary(2),
    )
    result = solve_branch_and_bound(problem)

    assert result.status == "optimal"
    assert result.objective_value == pytest.approx(4.0)
    assert result.solution == pytest.approx([1.0, 0.0])
    assert result.best_bound >= result.objective_value - 1e-9
    assert result.incumbent_history[-1] == pytest.approx(4.0)


def test_unbounded_root():
    problem = MIPProblem(sense="max", objective=[1.0], integer_spec=IntegerSpec(integer=[0]))
    result = solve_branch_and_bound(problem)

    assert result.status == "unbounded"
    assert result.solution is None


def test_textbook_ip():
    result = solve_branch_and_bound(make_textbook_ip())

    assert result.status == "optimal"
    assert result.objective_value == pytest.approx(4.0)
    assert is_feasible(make_textbook_ip(), result.solution)


@pytest.mark.parametrize("strategy", ["best_bound", "depth_first", "breadth_first"])
@pytest.mark.parametrize("seed", range(4))
def test_strategies_match_enumeration(strategy, seed):
    problem = make_random_ip(seed)
    options = BranchAndBoundOptions(node_selection=strategy, relative_gap_tolerance=0.0)
    result = solve_branch_and_bound(problem, options)

    assert result.status == "optimal"
    assert result.objective_value == pytest.approx(enumerate_optimum(problem), abs=1e-6)
    assert is_feasible(problem, result.solution)
    assert all(math.isclose(v, round(v)) for v in result.solution)


@pytest.mark.parametrize("seed", range(4))
def test_minimisation_matches_enumeration(seed):
    problem = make_random_ip(seed, sense="min")
    result = solve_branch_and_bound(problem, BranchAndBoundOptions(relative_gap_tolerance=0.0))

    assert result.status == "optimal"
    assert result.objective_value == pytest.approx(enumerate_optimum(problem), abs=1e-6)


@pytest.mark.parametrize("strategy", ["best_bound", "depth_first", "breadth_first"])
def test_incumbent_history_is_monotone(strategy):
    problem = make_random_ip(7)
    result = solve_branch_and_bound(problem, BranchAndBoundOptions(node_selection=strategy))

    history = result.incumbent_history
    assert history
    assert all(later > earlier for earlier, later in zip(history, history[1:]))
    assert history[-1] == pytest.approx(result.objective_value)


def test_node_limit_keeps_sound_bound():
    problem = make_knapsack()
    result = solve_branch_and_bound(problem, BranchAndBoundOptions(max_nodes=1))

    assert result.status == "node_limit"
    assert result.limit_reached
    assert result.nodes_explored == 1
    # upper bound of a maximisation problem never undercuts the true optimum
    assert result.best_bound >= enumerate_optimum(problem) - 1e-9


def test_time_limit():
    result = solve_branch_and_bound(make_knapsack(), BranchAndBoundOptions(time_limit=1e-9))

    assert result.status == "time_limit"
    assert result.nodes_explored == 0


def make_close_call_knapsack(objective_constant: float = 0.0) -> MIPProblem:
    """
    Depth-first dives into ``x1 = 0`` and finds 88 at once, while the ``x1 = 1``
    sibling still has an LP bound of 89 and only contains 87.
    """
    return MIPProblem(
        name="close-call",
        sense="max",
        objective=[50.0, 49.0, 38.0],
        objective_constant=objective_constant,
        constraints=[LinearConstraint(coefficients=[5.0, 5.0, 4.0], cmp="<=", rhs=9.0)],
        integer_spec=IntegerSpec.all_binary(3),
    )


def test_gap_tolerance_stops_early():
    problem = make_close_call_knapsack()
    exact = solve_branch_and_bound(
        problem, BranchAndBoundOptions(node_selection="depth_first", relative_gap_tolerance=0.0)
    )
    loose = solve_branch_and_bound(
        problem, BranchAndBoundOptions(node_selection="depth_first", relative_gap_tolerance=0.05)
    )

    assert exact.status == "optimal"
    assert exact.objective_value == pytest.approx(88.0)
    assert exact.relative_gap == 0.0

    assert loose.status == "optimal"
    assert loose.objective_value == pytest.approx(88.0)
    assert loose.best_bound == pytest.approx(89.0)
    assert 0.0 < loose.relative_gap <= 0.05
    assert loose.relative_gap == pytest.approx(1.0 / 88.0)
    assert loose.nodes_explored == 2
    assert loose.nodes_explored < exact.nodes_explored


def test_gap_is_absolute_when_incumbent_is_zero():
    # same search shifted so the incumbent is worth exactly 0 and the open bound 1
    problem = make_close_call_knapsack(objective_constant=-88.0)
    result = solve_branch_and_bound(
        problem, BranchAndBoundOptions(node_selection="depth_first", relative_gap_tolerance=1.5)
    )

    assert result.status == "optimal"
    assert result.objective_value == 0.0
    assert result.best_bound == pytest.approx(1.0)
    assert result.relative_gap == pytest.approx(1.0)
    assert result.nodes_explored == 2

    tight = solve_branch_and_bound(
        problem, BranchAndBoundOptions(node_selection="depth_first", relative_gap_tolerance=0.5)
    )
    assert tight.nodes_explored > 2
    assert tight.objective_value == 0.0



def test_branching_children_partition_integers():
    oracle = RecordingOracle()
    solver = BranchAndBoundSolver(make_knapsack(), BranchAndBoundOptions(max_nodes=1), oracle)
    solver.solve()

    # root solve, then the ceiling child and the floor child of the first branch
    root, up, down = oracle.bounds[:3]
    var = next(i for i, (a, b) in enumerate(zip(up, down)) if a != b)
    for k in range(-2, 4):
        in_up = up[var][0] <= k <= up[var][1]
        in_down = down[var][0] <= k <= down[var][1]
        in_root = root[var][0] <= k <= root[var][1]
        assert in_up + in_down == int(in_root)


def test_oracle_failure_prunes_node():
    oracle = RecordingOracle(fail_after=1)
    result = solve_branch_and_bound(make_knapsack(), oracle=oracle)

    assert result.status == "infeasible"
    assert result.oracle_failures == 2


def test_oracle_failure_at_root():
    result = solve_branch_and_bound(make_knapsack(), oracle=RecordingOracle(fail_after=0))

    assert result.status == "infeasible"
    assert result.oracle_failures == 1
    assert result.message


def test_repeated_solves_are_independent():
    solver = BranchAndBoundSolver(make_knapsack())
    first = solver.solve()
    second = solver.solve()

    assert first.objective_value == second.objective_value
    assert first.nodes_explored == second.nodes_explored
    assert np.allclose(first.solution, second.solution)


@pytest.mark.parametrize(
    "solver_class, options",
    [
        (BranchAndBoundSolver, BranchAndBoundOptions(node_selection="depth_first", relative_gap_tolerance=0.0)),
        (
            BranchAndCutSolver,
            BranchAndCutOptions(node_selection="depth_first", relative_gap_tolerance=0.0, max_cutting_rounds=0),
        ),
    ],
)
def test_prune_tolerance_is_shared_by_both_engines(solver_class, options):
    class LenientSolver(solver_class):
        prune_tolerance = 2.0

    problem = make_close_call_knapsack()
    strict = solver_class(problem, options).solve()
    lenient = LenientSolver(problem, options).solve()

    # the sibling bound of 89 is within 2 of the incumbent 88, so it is pruned unexplored
    assert strict.nodes_explored == 4
    assert lenient.nodes_explored == 3
    assert lenient.objective_value == pytest.approx(88.0)
