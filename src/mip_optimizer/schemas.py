from __future__ import annotations

import math
from typing import Dict, List, Literal, Optional, Sequence, Tuple

from pydantic import BaseModel, Field

Sense = Literal["min", "max"]
Cmp = Literal["<=", ">=", "=="]
PivotRule = Literal["dantzig", "bland"]
NodeSelection = Literal["best_bound", "depth_first", "breadth_first"]
LPStatus = Literal["optimal", "infeasible", "unbounded", "iteration_limit", "numerical_error"]
MIPStatus = Literal["optimal", "infeasible", "unbounded", "node_limit", "time_limit"]


class LinearConstraint(BaseModel):
    coefficients: List[float]
    cmp: Cmp = "<="
    rhs: float = 0.0
    name: str = ""

    @classmethod
    def canonical(
        cls, coefficients: Sequence[float], constant: float = 0.0, equality: bool = False, name: str = ""
    ) -> "LinearConstraint":
        """Build ``coefficients . x + constant <= 0`` (or ``== 0``)."""
        return cls(coefficients=list(coefficients), cmp="==" if equality else "<=", rhs=-constant, name=name)


class IntegerSpec(BaseModel):
    integer: List[int] = Field(default_factory=list)
    binary: List[int] = Field(default_factory=list)

    @classmethod
    def all_integer(cls, dimension: int) -> "IntegerSpec":
        return cls(integer=list(range(dimension)))

    @classmethod
    def all_binary(cls, dimension: int) -> "IntegerSpec":
        indices = list(range(dimension))
        return cls(integer=indices, binary=list(indices))

    def integer_indices(self) -> List[int]:
        return sorted(set(self.integer) | set(self.binary))


class MIPProblem(BaseModel):
    name: str = "problem"
    sense: Sense = "min"
    objective: List[float]
    objective_constant: float = 0.0
    constraints: List[LinearConstraint] = Field(default_factory=list)
    lower_bounds: List[float | None] | None = None
    upper_bounds: List[float | None] | None = None
    integer_spec: IntegerSpec = Field(default_factory=IntegerSpec)

    @property
    def dimension(self) -> int:
        return len(self.objective)

    def variable_bounds(self) -> List[Tuple[float, float]]:
        """Per-variable ``(lo, hi)``; missing lower bounds default to 0, binaries are clamped to [0, 1]."""
        n = self.dimension
        lowers = self.lower_bounds if self.lower_bounds is not None else [0.0] * n
        uppers = self.upper_bounds if self.upper_bounds is not None else [None] * n
        binary = set(self.integer_spec.binary)
        bounds: List[Tuple[float, float]] = []
        for idx in range(n):
            lo = -math.inf if lowers[idx] is None else float(lowers[idx])
            hi = math.inf if uppers[idx] is None else float(uppers[idx])
            if idx in binary:
                lo, hi = max(lo, 0.0), min(hi, 1.0)
            bounds.append((lo, hi))
        return bounds

    def evaluate(self, x: Sequence[float]) -> float:
        return float(sum(c * v for c, v in zip(self.objective, x)) + self.objective_constant)


class SolveOptions(BaseModel):
    max_iters: int = Field(10_000, gt=0)
    tol: float = Field(1e-9, gt=0)
    pivot_rule: PivotRule = "dantzig"


class BranchAndBoundOptions(BaseModel):
    node_selection: NodeSelection = "best_bound"
    max_nodes: int = Field(10_000, gt=0)
    time_limit: float = Field(300.0, gt=0)
    relative_gap_tolerance: float = Field(1e-4, ge=0)
    integer_feasibility_tolerance: float = Field(1e-6, gt=0, lt=0.5)
    lp: SolveOptions = Field(default_factory=SolveOptions)


class BranchAndCutOptions(BranchAndBoundOptions):
    max_cutting_rounds: int = Field(5, ge=0)
    enable_gomory_cuts: bool = True
    enable_mir_cuts: bool = True
    enable_cover_cuts: bool = True
    cut_violation_tolerance: float = Field(1e-6, gt=0)
    max_cuts_per_round: int = Field(50, gt=0)


class LPSolution(BaseModel):
    status: LPStatus
    objective_value: Optional[float]
    x: List[float] | None
    iterations: int
    message: str = ""


class MIPResult(BaseModel):
    status: MIPStatus
    solution: List[float] | None
    objective_value: Optional[float]
    best_bound: float
    relative_gap: float
    nodes_explored: int
    elapsed_time: float
    nodes_created: int = 0
    lp_solves: int = 0
    oracle_failures: int = 0
    incumbent_history: List[float] = Field(default_factory=list)
    cuts_generated: int = 0
    cutting_rounds: int = 0
    root_cutting_rounds: int = 0
    cuts_by_type: Dict[str, int] = Field(default_factory=dict)
    message: str = ""

    @property
    def limit_reached(self) -> bool:
        return self.status in ("node_limit", "time_limit")
