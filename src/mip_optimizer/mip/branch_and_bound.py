from __future__ import annotations

import logging
import math
import time
from typing import List, Mapping, Optional, Sequence, Tuple

import numpy as np

from .fractional import is_integer_feasible, select_branching_variable
from .node import Frontier, Node, NodePool
from .validation import validate_problem
from ..errors import OracleFailure
from ..lp.simplex import LPOracle, RelaxationResult, SimplexOracle
from ..lp.utils import LinearRow
from ..schemas import BranchAndBoundOptions, MIPProblem, MIPResult, MIPStatus

logger = logging.getLogger(__name__)


class BranchAndBoundSolver:
    """
    LP-based branch-and-bound for mixed-integer linear programs.

    The search always minimises; a ``max`` problem is solved on the negated
    objective and every reported value is negated back. One instance owns the
    frontier, incumbent and counters of a solve; ``solve`` resets them.
    """

    # a node whose bound is within this of the incumbent cannot improve it
    prune_tolerance = 1e-9

    def __init__(
        self,
        problem: MIPProblem,
        options: BranchAndBoundOptions | None = None,
        oracle: LPOracle | None = None,
    ) -> None:
        validate_problem(problem)
        self.problem = problem
        self.options = options or self._default_options()
        self.oracle = oracle or SimplexOracle(self.options.lp)

        self._sign = 1.0 if problem.sense == "min" else -1.0
        self._objective = self._sign * np.asarray(problem.objective, dtype=float)
        self._constant = self._sign * problem.objective_constant
        self._rows: List[LinearRow] = [
            LinearRow(np.asarray(cons.coefficients, dtype=float), cons.cmp, cons.rhs, cons.name or f"c{idx}")
            for idx, cons in enumerate(problem.constraints)
        ]
        self._base_bounds = problem.variable_bounds()
        self._integer_spec = problem.integer_spec
        self._integer_indices = problem.integer_spec.integer_indices()
        self._integer_mask = np.zeros(problem.dimension, dtype=bool)
        self._integer_mask[self._integer_indices] = True
        self._binary_mask = np.zeros(problem.dimension, dtype=bool)
        self._binary_mask[problem.integer_spec.binary] = True
        self._reset()

    @staticmethod
    def _default_options() -> BranchAndBoundOptions:
        return BranchAndBoundOptions()

    @property
    def wants_tableau(self) -> bool:
        return False

    def _reset(self) -> None:
        self._pool = NodePool()
        self._frontier = Frontier(self._pool, self.options.node_selection)
        self._incumbent: Optional[np.ndarray] = None
        self._incumbent_value = math.inf
        self._incumbent_history: List[float] = []
        self._best_bound = -math.inf
        self._nodes_explored = 0
        self._lp_solves = 0
        self._oracle_failures = 0

    # ------------------------------------------------------------------ search

    def solve(self) -> MIPResult:
        self._reset()
        start = time.perf_counter()

        root_lp = self._solve_lp({}, ())
        if root_lp.status == "unbounded":
            return self._result("unbounded", start, "LP relaxation unbounded; MILP appears unbounded.")
        if not self._accept(root_lp, "root"):
            return self._result("infeasible", start, "Root LP relaxation is infeasible.")

        root = Node(
            handle=self._pool.next_handle(),
            depth=0,
            bound=root_lp.objective_value + self._constant,
            lp_result=root_lp,
        )
        root = self._refine(root)
        if root is None:
            return self._result("infeasible", start, "Root LP relaxation became infeasible after cutting.")
        self._best_bound = root.bound
        self._frontier.push(root)

        limits = self.options
        status: Optional[MIPStatus] = None
        message = ""
        while self._frontier:
            if self._nodes_explored >= limits.max_nodes:
                status, message = "node_limit", f"Reached node limit ({limits.max_nodes})."
                break
            if time.perf_counter() - start > limits.time_limit:
                status, message = "time_limit", f"Reached time limit ({limits.time_limit}s)."
                break

            popped = self._frontier.pop()
            self._nodes_explored += 1
            self._pool.release(popped.handle)
            node = self._refine(popped)
            if node is None:
                logger.debug("Node %d infeasible after cutting", popped.handle)
                continue

            if self._incumbent is not None and node.bound >= self._incumbent_value - self.prune_tolerance:
                logger.debug("Node %d pruned by bound %.6g", node.handle, node.bound)
                continue

            x = node.lp_result.x
            if is_integer_feasible(x, self._integer_spec, limits.integer_feasibility_tolerance):
                self._update_incumbent(node)
                if self._gap_closed():
                    status, message = "optimal", "Relative gap within tolerance."
                    break
                continue

            self._best_bound = self._global_bound(node.bound)
            if self._gap_closed():
                status, message = "optimal", "Relative gap within tolerance."
                break

            self._branch(node)

        if status is None:
            if self._incumbent is None:
                return self._result("infeasible", start, "No feasible integer assignment found.")
            self._best_bound = self._incumbent_value
            return self._result("optimal", start, f"Search exhausted after {self._nodes_explored} nodes.")

        if status != "optimal":
            self._best_bound = self._global_bound()
        return self._result(status, start, message)

    def _refine(self, node: Node) -> Optional[Node]:
        """Hook run on the root and on every popped node before the prune checks."""
        return node

    def _branch(self, node: Node) -> None:
        tolerance = self.options.integer_feasibility_tolerance
        var = select_branching_variable(node.lp_result.x, self._integer_spec, tolerance)
        if var is None:
            # binary variable rounding outside {0, 1}; bounds make this unreachable
            logger.warning("Node %d has no fractional variable to branch on; dropping it", node.handle)
            return

        value = float(node.lp_result.x[var])
        lo, hi = self._node_bounds(node.bound_overrides)[var]
        # ceiling child first so depth-first search dives into the floor child
        children = ((math.ceil(value), hi), (lo, math.floor(value)))
        for bounds in children:
            child = self._create_child(node, var, bounds)
            if child is not None:
                self._frontier.push(child)
        logger.debug("Branched node %d on x%d = %.6g", node.handle, var, value)

    def _create_child(self, parent: Node, var: int, bounds: Tuple[float, float]) -> Optional[Node]:
        lo, hi = bounds
        if lo > hi:
            return None
        handle = self._pool.next_handle(parent.handle)
        overrides = dict(parent.bound_overrides)
        overrides[var] = (float(lo), float(hi))
        lp = self._solve_lp(overrides, parent.extra_constraints)
        if not self._accept(lp, f"node {handle}"):
            return None
        return Node(
            handle=handle,
            depth=parent.depth + 1,
            bound=max(lp.objective_value + self._constant, parent.bound),
            lp_result=lp,
            bound_overrides=overrides,
            extra_constraints=parent.extra_constraints,
            parent=parent.handle,
            branched_variable=var,
        )

    # -------------------------------------------------------------- LP access

    def _node_bounds(self, overrides: Mapping[int, Tuple[float, float]]) -> List[Tuple[float, float]]:
        bounds = list(self._base_bounds)
        for idx, (lo, hi) in overrides.items():
            base_lo, base_hi = bounds[idx]
            bounds[idx] = (max(base_lo, lo), min(base_hi, hi))
        return bounds

    def _solve_lp(
        self, overrides: Mapping[int, Tuple[float, float]], extra: Sequence[LinearRow]
    ) -> RelaxationResult:
        self._lp_solves += 1
        rows = self._rows + list(extra)
        try:
            return self.oracle.solve(
                self._objective,
                rows,
                self._node_bounds(overrides),
                self._integer_mask,
                want_tableau=self.wants_tableau,
            )
        except (OracleFailure, np.linalg.LinAlgError, FloatingPointError) as exc:
            return RelaxationResult(
                status="numerical_error", x=None, objective_value=None, iterations=0, message=str(exc)
            )

    def _accept(self, result: RelaxationResult, label: str) -> bool:
        if result.feasible:
            return True
        if result.status != "infeasible":
            self._oracle_failures += 1
            logger.warning("LP oracle failed at %s (%s): %s; treating as infeasible", label, result.status, result.message)
        return False

    # ---------------------------------------------------------- bookkeeping

    def _update_incumbent(self, node: Node) -> None:
        x = np.array(node.lp_result.x, dtype=float)
        x[self._integer_indices] = np.round(x[self._integer_indices])
        value = float(self._objective @ x) + self._constant
        if self._incumbent is not None and value >= self._incumbent_value:
            return
        self._incumbent = x
        self._incumbent_value = value
        self._incumbent_history.append(self._sign * value)
        self._best_bound = self._global_bound()
        logger.info("New incumbent %.6g at node %d (depth %d)", self._sign * value, node.handle, node.depth)

    def _global_bound(self, popped_bound: float = math.inf) -> float:
        bound = min(self._frontier.min_bound(), popped_bound, self._incumbent_value)
        return bound if math.isfinite(bound) else self._best_bound

    def _gap(self) -> float:
        if self._incumbent is None:
            return math.inf
        diff = self._incumbent_value - self._best_bound
        if self._incumbent_value == 0.0:
            return max(diff, 0.0)
        return max(diff / abs(self._incumbent_value), 0.0)

    def _gap_closed(self) -> bool:
        return self._gap() <= self.options.relative_gap_tolerance

    def _result(self, status: MIPStatus, start: float, message: str = "") -> MIPResult:
        elapsed = time.perf_counter() - start
        if status in ("infeasible", "unbounded"):
            best_bound = self._sign * (math.inf if status == "infeasible" else -math.inf)
            gap = math.inf
        else:
            best_bound = self._sign * self._best_bound
            gap = 0.0 if self._incumbent is not None and status == "optimal" and not self._frontier else self._gap()
        has_incumbent = self._incumbent is not None and status != "infeasible"
        logger.info(
            "Search finished: status=%s nodes=%d lp_solves=%d elapsed=%.3fs",
            status,
            self._nodes_explored,
            self._lp_solves,
            elapsed,
        )
        return MIPResult(
            status=status,
            solution=[float(v) for v in self._incumbent] if has_incumbent else None,
            objective_value=self._sign * self._incumbent_value if has_incumbent else None,
            best_bound=best_bound,
            relative_gap=gap,
            nodes_explored=self._nodes_explored,
            elapsed_time=elapsed,
            nodes_created=self._pool.created,
            lp_solves=self._lp_solves,
            oracle_failures=self._oracle_failures,
            incumbent_history=list(self._incumbent_history),
            message=message,
            **self._extra_stats(),
        )

    def _extra_stats(self) -> dict:
        return {}


def solve_branch_and_bound(
    problem: MIPProblem,
    options: BranchAndBoundOptions | None = None,
    oracle: LPOracle | None = None,
) -> MIPResult:
    """Solve ``problem`` by branch-and-bound; a fresh solver object per call."""
    return BranchAndBoundSolver(problem, options, oracle).solve()
