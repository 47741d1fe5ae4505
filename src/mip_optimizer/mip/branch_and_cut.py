from __future__ import annotations

import dataclasses
import logging
from collections import Counter
from typing import List, Optional

from .branch_and_bound import BranchAndBoundSolver
from .cuts import Cut, CutContext, CutType, build_generators, select_cuts
from .fractional import is_integer_feasible
from .node import Node
from ..lp.simplex import LPOracle
from ..schemas import BranchAndCutOptions, MIPProblem, MIPResult

logger = logging.getLogger(__name__)


class BranchAndCutSolver(BranchAndBoundSolver):
    """
    Branch-and-bound with a bounded cutting-plane loop at every node.

    The root is cut before it enters the frontier; every other node is cut when
    it is popped. Cuts are inherited by the node's children only.
    """

    options: BranchAndCutOptions

    def __init__(
        self,
        problem: MIPProblem,
        options: BranchAndCutOptions | None = None,
        oracle: LPOracle | None = None,
    ) -> None:
        super().__init__(problem, options, oracle)
        self.generators = build_generators(self.options)

    @staticmethod
    def _default_options() -> BranchAndCutOptions:
        return BranchAndCutOptions()

    @property
    def wants_tableau(self) -> bool:
        return self.options.enable_gomory_cuts or self.options.enable_mir_cuts

    def _reset(self) -> None:
        super()._reset()
        self._cuts_by_type: Counter = Counter()
        self._cutting_rounds = 0
        self._root_cutting_rounds = 0

    def _refine(self, node: Node) -> Optional[Node]:
        if node.refined or self.options.max_cutting_rounds == 0 or not self.generators:
            return node
        if self._incumbent is not None and node.bound >= self._incumbent_value - self.prune_tolerance:
            return node

        opts = self.options
        extra = list(node.extra_constraints)
        lp = node.lp_result
        bound = node.bound
        bounds = self._node_bounds(node.bound_overrides)

        for round_idx in range(opts.max_cutting_rounds):
            if is_integer_feasible(lp.x, self._integer_spec, opts.integer_feasibility_tolerance):
                break

            ctx = CutContext(
                x=lp.x,
                rows=self._rows + extra,
                bounds=bounds,
                integer_mask=self._integer_mask,
                binary_mask=self._binary_mask,
                tableau=lp.tableau,
                tolerance=opts.integer_feasibility_tolerance,
            )
            candidates: List[Cut] = []
            for generator in self.generators:
                candidates.extend(generator.generate(ctx))
            cuts = select_cuts(candidates, lp.x, opts.cut_violation_tolerance, opts.max_cuts_per_round)
            if not cuts:
                break

            self._cutting_rounds += 1
            if node.depth == 0:
                self._root_cutting_rounds += 1
            logger.debug(
                "Node %d round %d: %d of %d candidate cuts added",
                node.handle,
                round_idx + 1,
                len(cuts),
                len(candidates),
            )

            resolved = self._solve_lp(node.bound_overrides, extra + cuts)
            if resolved.status == "infeasible":
                self._record(cuts)
                return None
            if not self._accept(resolved, f"node {node.handle} cutting round {round_idx + 1}"):
                break

            self._record(cuts)
            extra.extend(cuts)
            lp = resolved
            bound = max(resolved.objective_value + self._constant, bound)

        return dataclasses.replace(
            node,
            extra_constraints=tuple(extra),
            lp_result=lp,
            bound=bound,
            refined=True,
        )

    def _record(self, cuts: List[Cut]) -> None:
        self._cuts_by_type.update(cut.kind.value for cut in cuts)

    def _extra_stats(self) -> dict:
        return {
            "cuts_generated": sum(self._cuts_by_type.values()),
            "cutting_rounds": self._cutting_rounds,
            "root_cutting_rounds": self._root_cutting_rounds,
            "cuts_by_type": {kind.value: self._cuts_by_type.get(kind.value, 0) for kind in CutType},
        }


def solve_branch_and_cut(
    problem: MIPProblem,
    options: BranchAndCutOptions | None = None,
    oracle: LPOracle | None = None,
) -> MIPResult:
    return BranchAndCutSolver(problem, options, oracle).solve()
