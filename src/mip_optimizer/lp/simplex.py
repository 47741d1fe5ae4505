from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence, Set, Tuple

import numpy as np

from .utils import LinearRow, StandardForm, build_standard_form
from ..schemas import LPSolution, LPStatus, MIPProblem, SolveOptions

logger = logging.getLogger(__name__)

# consecutive degenerate pivots tolerated before switching to Bland's rule
_DEGENERATE_PIVOT_LIMIT = 50


@dataclass
class Tableau:
    """Final simplex tableau ``B^-1 A`` with per-column metadata from the standard form."""

    rows: np.ndarray
    rhs: np.ndarray
    basis: List[int]
    column_types: np.ndarray
    column_map: np.ndarray
    column_offset: np.ndarray
    column_affine: np.ndarray
    column_integral: np.ndarray

    def nonbasic_mask(self) -> np.ndarray:
        mask = np.ones(self.rows.shape[1], dtype=bool)
        mask[self.basis] = False
        return mask & (self.column_types != "artificial")


@dataclass
class RelaxationResult:
    status: LPStatus
    x: Optional[np.ndarray]
    objective_value: Optional[float]
    iterations: int
    tableau: Optional[Tableau] = None
    message: str = ""

    @property
    def feasible(self) -> bool:
        return self.status == "optimal"


class LPOracle(Protocol):
    def solve(
        self,
        objective: Sequence[float],
        rows: Sequence[LinearRow],
        bounds: Sequence[Tuple[float, float]],
        integer_mask: Optional[Sequence[bool]] = None,
        want_tableau: bool = False,
    ) -> RelaxationResult:
        ...


class SimplexOracle:
    """LP oracle backed by :func:`simplex_solve`; stateless between calls."""

    def __init__(self, options: SolveOptions | None = None) -> None:
        self.options = options or SolveOptions()

    def solve(
        self,
        objective: Sequence[float],
        rows: Sequence[LinearRow],
        bounds: Sequence[Tuple[float, float]],
        integer_mask: Optional[Sequence[bool]] = None,
        want_tableau: bool = False,
    ) -> RelaxationResult:
        return simplex_solve(objective, rows, bounds, self.options, integer_mask, want_tableau)


def simplex_solve(
    objective: Sequence[float],
    rows: Sequence[LinearRow],
    bounds: Sequence[Tuple[float, float]],
    opts: SolveOptions,
    integer_mask: Optional[Sequence[bool]] = None,
    want_tableau: bool = False,
) -> RelaxationResult:
    """
    Naive primal simplex with Phase I/II for ``min objective . x``.
    Bland's rule is used on request, or once pivots stall on a degenerate vertex.
    """

    try:
        form = build_standard_form(objective, rows, bounds, integer_mask)
    except ValueError as exc:
        return RelaxationResult(status="infeasible", x=None, objective_value=None, iterations=0, message=str(exc))

    use_bland = opts.pivot_rule == "bland"
    iterations = 0

    phase1 = _phase_I(form, use_bland, opts)
    iterations += phase1.get("iterations", 0)
    if phase1["status"] == "infeasible":
        return RelaxationResult(
            status="infeasible", x=None, objective_value=None, iterations=iterations, message="Infeasible."
        )
    if phase1["status"] == "iteration_limit":
        return RelaxationResult(
            status="iteration_limit",
            x=None,
            objective_value=None,
            iterations=iterations,
            message="Hit iteration limit in Phase I.",
        )
    if phase1["status"] != "feasible":
        return RelaxationResult(
            status="numerical_error",
            x=None,
            objective_value=None,
            iterations=iterations,
            message="Phase I detected unbounded auxiliary problem.",
        )

    basis = _drive_out_artificials(form, phase1["basis"], opts.tol)

    remaining_iters = max(opts.max_iters - iterations, 1)
    phase2 = _run_simplex(
        form.A,
        form.b,
        form.c,
        basis,
        opts,
        use_bland,
        max_iterations=remaining_iters,
        forbidden=set(form.artificial_indices),
    )
    iterations += phase2.get("iterations", 0)
    status = phase2["status"]

    if status == "iteration_limit":
        return RelaxationResult(
            status="iteration_limit",
            x=None,
            objective_value=None,
            iterations=iterations,
            message="Hit iteration limit in Phase II.",
        )
    if status == "unbounded":
        return RelaxationResult(
            status="unbounded", x=None, objective_value=None, iterations=iterations, message="Unbounded."
        )

    x = _reconstruct_original_solution(form, phase2["x"])
    objective_value = form.objective_constant - phase2["objective"]
    if not np.all(np.isfinite(x)) or not np.isfinite(objective_value):
        return RelaxationResult(
            status="numerical_error",
            x=None,
            objective_value=None,
            iterations=iterations,
            message="Non-finite values in simplex solution.",
        )

    tableau = _build_tableau(form, phase2["basis"]) if want_tableau else None
    return RelaxationResult(
        status="optimal",
        x=x,
        objective_value=float(objective_value),
        iterations=iterations,
        tableau=tableau,
    )


def solve_relaxation(problem: MIPProblem, options: SolveOptions | None = None) -> LPSolution:
    """Solve the LP relaxation of ``problem`` (integrality dropped) in its own sense."""
    opts = options or SolveOptions()
    sign = 1.0 if problem.sense == "min" else -1.0
    rows = [
        LinearRow(np.asarray(cons.coefficients, dtype=float), cons.cmp, cons.rhs, cons.name)
        for cons in problem.constraints
    ]
    result = simplex_solve(
        sign * np.asarray(problem.objective, dtype=float), rows, problem.variable_bounds(), opts
    )
    if not result.feasible:
        return LPSolution(
            status=result.status,
            objective_value=None,
            x=None,
            iterations=result.iterations,
            message=result.message,
        )
    return LPSolution(
        status="optimal",
        objective_value=sign * result.objective_value + problem.objective_constant,
        x=[float(v) for v in result.x],
        iterations=result.iterations,
    )


def _phase_I(form: StandardForm, use_bland: bool, opts: SolveOptions) -> Dict[str, Any]:
    A, b, basis = form.A, form.b, form.basis
    artificial = set(form.artificial_indices)
    if not artificial or A.shape[0] == 0:
        return {
            "status": "feasible",
            "basis": basis.copy(),
            "iterations": 0,
        }

    c_phase1 = np.zeros(A.shape[1])
    for idx in artificial:
        c_phase1[idx] = -1.0  # maximise => drives artificials to zero

    result = _run_simplex(
        A,
        b,
        c_phase1,
        basis.copy(),
        opts,
        use_bland,
        max_iterations=opts.max_iters,
        forbidden=None,
    )

    if result["status"] != "optimal":
        return result

    x = result["x"]
    sum_artificial = float(sum(x[idx] for idx in artificial))
    if sum_artificial > max(opts.tol, 1e-7):
        return {
            "status": "infeasible",
            "basis": result["basis"],
            "iterations": result["iterations"],
        }

    return {
        "status": "feasible",
        "basis": result["basis"],
        "iterations": result["iterations"],
    }


def _drive_out_artificials(form: StandardForm, basis: List[int], tol: float) -> List[int]:
    """Pivot zero-level artificials out of the basis so Phase II cannot move them."""
    artificial = set(form.artificial_indices)
    basis = basis.copy()
    if not artificial or not any(col in artificial for col in basis):
        return basis

    A = form.A
    for row_idx in range(len(basis)):
        if basis[row_idx] not in artificial:
            continue
        B = A[:, basis]
        try:
            tableau_row = np.linalg.solve(B, A)[row_idx]
        except np.linalg.LinAlgError:
            tableau_row = np.linalg.lstsq(B, A, rcond=None)[0][row_idx]
        for j in range(A.shape[1]):
            if j in basis or j in artificial:
                continue
            if abs(tableau_row[j]) > max(tol, 1e-7):
                basis[row_idx] = j
                break
        # otherwise the row is redundant and the artificial stays at zero
    return basis


def _run_simplex(
    A: np.ndarray,
    b: np.ndarray,
    c: np.ndarray,
    basis: List[int],
    opts: SolveOptions,
    use_bland: bool,
    max_iterations: Optional[int],
    forbidden: Optional[Set[int]],
) -> Dict[str, Any]:
    basis = basis.copy()
    forbidden = set() if forbidden is None else set(forbidden)
    tol = opts.tol
    m, n = A.shape
    iterations = 0
    degenerate_streak = 0
    max_iter = max_iterations if max_iterations is not None else opts.max_iters
    max_iter = max(max_iter, 1)

    if m == 0:
        positive_indices = [j for j in range(n) if j not in forbidden and c[j] > tol]
        if positive_indices:
            return {
                "status": "unbounded",
                "basis": basis.copy(),
                "iterations": iterations,
                "x": np.zeros(n),
                "objective": np.inf,
            }
        return {
            "status": "optimal",
            "basis": basis.copy(),
            "iterations": iterations,
            "x": np.zeros(n),
            "objective": 0.0,
        }

    while True:
        B = A[:, basis]
        try:
            xB = np.linalg.solve(B, b)
        except np.linalg.LinAlgError:
            xB = np.linalg.lstsq(B, b, rcond=None)[0]
        xB[np.abs(xB) < tol] = 0.0
        if np.any(xB < -tol):
            xB = np.maximum(xB, 0.0)

        try:
            y = np.linalg.solve(B.T, c[basis])
        except np.linalg.LinAlgError:
            y = np.linalg.lstsq(B.T, c[basis], rcond=None)[0]
        reduced = c - A.T @ y
        reduced[np.abs(reduced) < tol] = 0.0
        reduced[basis] = 0.0

        entering_candidates = []
        for j in range(n):
            if j in basis or j in forbidden:
                continue
            if reduced[j] > tol:
                entering_candidates.append((j, reduced[j]))

        if not entering_candidates:
            x = np.zeros(n)
            x[basis] = xB
            return {
                "status": "optimal",
                "basis": basis.copy(),
                "iterations": iterations,
                "x": x,
                "objective": float(c[basis] @ xB),
            }

        if iterations >= max_iter:
            return {
                "status": "iteration_limit",
                "basis": basis.copy(),
                "iterations": iterations,
            }

        if use_bland:
            entering = min(j for j, _ in entering_candidates)
        else:
            entering = max(entering_candidates, key=lambda item: item[1])[0]

        try:
            d = np.linalg.solve(B, A[:, entering])
        except np.linalg.LinAlgError:
            d = np.linalg.lstsq(B, A[:, entering], rcond=None)[0]
        d[np.abs(d) < tol] = 0.0

        ratios: List[Tuple[float, int]] = []
        for idx, value in enumerate(d):
            if value > tol:
                ratios.append((xB[idx] / value, idx))
        if not ratios:
            return {
                "status": "unbounded",
                "basis": basis.copy(),
                "iterations": iterations,
            }

        if use_bland:
            theta, pivot_row = min(ratios, key=lambda item: (item[0], basis[item[1]]))
        else:
            theta, pivot_row = min(ratios, key=lambda item: item[0])

        if theta <= tol:
            degenerate_streak += 1
            if not use_bland and degenerate_streak > _DEGENERATE_PIVOT_LIMIT:
                logger.debug("Switching to Bland's rule after %d degenerate pivots", degenerate_streak)
                use_bland = True
        else:
            degenerate_streak = 0

        basis[pivot_row] = entering
        iterations += 1


def _build_tableau(form: StandardForm, basis: List[int]) -> Tableau:
    A, b = form.A, form.b
    if A.shape[0] == 0:
        rows = np.zeros((0, A.shape[1]))
        rhs = np.zeros(0)
    else:
        B = A[:, basis]
        try:
            rows = np.linalg.solve(B, A)
            rhs = np.linalg.solve(B, b)
        except np.linalg.LinAlgError:
            rows = np.linalg.lstsq(B, A, rcond=None)[0]
            rhs = np.linalg.lstsq(B, b, rcond=None)[0]
        rows[np.abs(rows) < 1e-12] = 0.0
    return Tableau(
        rows=rows,
        rhs=rhs,
        basis=list(basis),
        column_types=np.array(form.col_types),
        column_map=form.column_map,
        column_offset=form.column_offset,
        column_affine=form.column_affine,
        column_integral=form.column_integral,
    )


def _reconstruct_original_solution(form: StandardForm, x_std: np.ndarray) -> np.ndarray:
    x = form.offsets.copy()
    for i, parts in enumerate(form.components):
        for idx, coef in parts:
            x[i] += coef * x_std[idx]
    x[np.abs(x) < 1e-12] = 0.0
    return x
