#!/usr/bin/env python3
import logging
import time

from mip_optimizer.mip import solve_branch_and_bound, solve_branch_and_cut
from mip_optimizer.schemas import BranchAndBoundOptions, BranchAndCutOptions
from scripts.generate_instances import generate_random_integer_program, generate_random_knapsack


def main() -> None:
    logging.basicConfig(level=logging.WARNING, format="%(levelname)s %(name)s: %(message)s")
    cases = []
    for seed in range(3):
        cases.append(generate_random_knapsack(12, 2, seed))
        cases.append(generate_random_integer_program(4, 3, seed))

    engines = [
        ("bb", solve_branch_and_bound, BranchAndBoundOptions(time_limit=60.0)),
        ("bc", solve_branch_and_cut, BranchAndCutOptions(time_limit=60.0)),
    ]

    print("name,engine,status,objective,nodes,lp_solves,cuts,time_ms")
    for problem in cases:
        for label, solve, options in engines:
            start = time.perf_counter()
            result = solve(problem, options)
            elapsed_ms = (time.perf_counter() - start) * 1000
            print(
                f"{problem.name},{label},{result.status},{result.objective_value},"
                f"{result.nodes_explored},{result.lp_solves},{result.cuts_generated},{elapsed_ms:.2f}"
            )


if __name__ == "__main__":
    main()
