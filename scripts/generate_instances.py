#!/usr/bin/env python3
import argparse
import json
import random
from pathlib import Path
from typing import List, Optional

from mip_optimizer.schemas import IntegerSpec, LinearConstraint, MIPProblem


def generate_random_knapsack(num_items: int, num_rows: int = 1, seed: Optional[int] = None) -> MIPProblem:
    """Multi-row 0-1 knapsack: maximise value subject to ``num_rows`` capacity rows."""
    rng = random.Random(seed)
    constraints: List[LinearConstraint] = []
    for j in range(num_rows):
        weights = [float(rng.randint(2, 20)) for _ in range(num_items)]
        capacity = float(int(sum(weights) * rng.uniform(0.3, 0.6)))
        constraints.append(LinearConstraint(coefficients=weights, cmp="<=", rhs=capacity, name=f"cap{j}"))
    values = [float(rng.randint(1, 30)) for _ in range(num_items)]
    return MIPProblem(
        name=f"knapsack-{num_items}x{num_rows}",
        sense="max",
        objective=values,
        constraints=constraints,
        integer_spec=IntegerSpec.all_binary(num_items),
    )


def generate_random_integer_program(num_vars: int, num_constraints: int, seed: Optional[int] = None) -> MIPProblem:
    """Bounded general-integer program with mixed-sign objective."""
    rng = random.Random(seed)
    constraints = [
        LinearConstraint(
            coefficients=[float(rng.randint(1, 9)) for _ in range(num_vars)],
            cmp="<=",
            rhs=float(rng.randint(num_vars * 4, num_vars * 12)),
            name=f"c{j}",
        )
        for j in range(num_constraints)
    ]
    return MIPProblem(
        name=f"random-ip-{num_vars}x{num_constraints}",
        sense="max",
        objective=[float(rng.randint(1, 10)) for _ in range(num_vars)],
        constraints=constraints,
        upper_bounds=[10.0] * num_vars,
        integer_spec=IntegerSpec.all_integer(num_vars),
    )


def main() -> None:
    parser = argparse.ArgumentParser(description="Generate random MIP instances.")
    parser.add_argument("--kind", choices=["knapsack", "integer"], default="knapsack")
    parser.add_argument("--vars", type=int, default=10, help="Number of variables")
    parser.add_argument("--constraints", type=int, default=1, help="Number of constraints")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("--count", type=int, default=1, help="Number of instances")
    parser.add_argument("--out", type=Path, default=None, help="Optional output file")
    args = parser.parse_args()

    generate = generate_random_knapsack if args.kind == "knapsack" else generate_random_integer_program
    instances = [generate(args.vars, args.constraints, (args.seed or 0) + idx) for idx in range(args.count)]
    payload = [instance.model_dump() for instance in instances]

    if args.out:
        Path(args.out).write_text(json.dumps(payload, indent=2))
    else:
        print(json.dumps(payload, indent=2))


if __name__ == "__main__":
    main()
