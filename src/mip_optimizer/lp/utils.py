from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

_ZERO = 1e-12


@dataclass(eq=False, frozen=True)
class LinearRow:
    """A row ``coefficients . x  cmp  rhs`` over the original variables."""

    coefficients: np.ndarray
    cmp: str
    rhs: float
    name: str = ""

    def activity(self, x: Sequence[float]) -> float:
        return float(np.dot(self.coefficients, x))

    def violation(self, x: Sequence[float]) -> float:
        """Positive when ``x`` violates the row."""
        lhs = self.activity(x)
        if self.cmp == "<=":
            return lhs - self.rhs
        if self.cmp == ">=":
            return self.rhs - lhs
        return abs(lhs - self.rhs)


@dataclass
class StandardForm:
    A: np.ndarray
    b: np.ndarray
    c: np.ndarray
    basis: List[int]
    col_names: List[str]
    col_types: List[str]
    artificial_indices: List[int]
    components: List[List[Tuple[int, float]]]
    offsets: np.ndarray
    objective_constant: float
    column_map: np.ndarray
    column_offset: np.ndarray
    column_affine: np.ndarray
    column_integral: np.ndarray
    row_names: List[str]


def is_integral(value: float, tol: float = 1e-9) -> bool:
    return math.isfinite(value) and abs(value - round(value)) <= tol


def build_standard_form(
    objective: Sequence[float],
    rows: Sequence[LinearRow],
    bounds: Sequence[Tuple[float, float]],
    integer_mask: Optional[Sequence[bool]] = None,
) -> StandardForm:
    """
    Convert ``min objective . x`` subject to ``rows`` and variable ``bounds`` into
    standard form Ay = b, y >= 0 with slacks/artificial vars, maximising c . y.

    Each column also records an affine map back to the original variables,
    ``y_j = column_map[j] . x + column_offset[j]``, and whether it takes integer
    values at every integer point. Free-variable splits have no such map.
    """

    n = len(objective)
    int_mask = np.zeros(n, dtype=bool) if integer_mask is None else np.asarray(integer_mask, dtype=bool)

    col_names: List[str] = []
    col_types: List[str] = []
    col_maps: List[np.ndarray] = []
    col_offsets: List[float] = []
    col_affine: List[bool] = []
    col_integral: List[bool] = []
    artificial_indices: List[int] = []

    components: List[List[Tuple[int, float]]] = []
    offsets = np.zeros(n)

    def add_column(name: str, col_type: str, expr: Optional[np.ndarray], offset: float, integral: bool) -> int:
        col_names.append(name)
        col_types.append(col_type)
        col_maps.append(np.zeros(n) if expr is None else np.asarray(expr, dtype=float))
        col_offsets.append(offset)
        col_affine.append(expr is not None)
        col_integral.append(integral)
        return len(col_names) - 1

    # Structural variables derived from original variables
    bound_rows: List[LinearRow] = []
    for i, (lb, ub) in enumerate(bounds):
        lb = None if lb is None or np.isneginf(lb) else float(lb)
        ub = None if ub is None or np.isposinf(ub) else float(ub)
        if lb is not None and ub is not None and lb > ub + _ZERO:
            raise ValueError(f"Variable x{i} has inconsistent bounds (lb {lb} > ub {ub}).")

        if lb is None:
            # Free variable -> split into difference of non-negative variables
            idx_pos = add_column(f"x{i}__pos", "structural", None, 0.0, False)
            idx_neg = add_column(f"x{i}__neg", "structural", None, 0.0, False)
            components.append([(idx_pos, 1.0), (idx_neg, -1.0)])
        else:
            unit = np.zeros(n)
            unit[i] = 1.0
            idx = add_column(f"x{i}", "structural", unit, -lb, bool(int_mask[i]) and is_integral(lb))
            components.append([(idx, 1.0)])
            offsets[i] = lb

        if ub is not None:
            unit = np.zeros(n)
            unit[i] = 1.0
            bound_rows.append(LinearRow(unit, "<=", ub, f"bound_x{i}_ub"))

    objective_raw = np.zeros(len(col_names))
    objective_constant = 0.0
    for i, coef in enumerate(objective):
        if coef == 0.0:
            continue
        objective_constant += coef * offsets[i]
        for idx, comp in components[i]:
            objective_raw[idx] += coef * comp

    entries: List[Dict[int, float]] = []
    rhs_values: List[float] = []
    basis: List[int] = []
    row_names: List[str] = []

    for k, row in enumerate(list(rows) + bound_rows):
        name = row.name or f"r{k}"
        a = np.asarray(row.coefficients, dtype=float)
        coeff_entries: Dict[int, float] = {}
        shift = 0.0
        for i in np.flatnonzero(a):
            shift += a[i] * offsets[i]
            for idx, comp in components[i]:
                coeff_entries[idx] = coeff_entries.get(idx, 0.0) + a[i] * comp
        rhs_value = row.rhs - shift

        cmp = row.cmp
        sign = 1.0
        if rhs_value < 0:
            coeff_entries = {idx: -val for idx, val in coeff_entries.items()}
            rhs_value = -rhs_value
            sign = -1.0
            if cmp == "<=":
                cmp = ">="
            elif cmp == ">=":
                cmp = "<="
        if abs(rhs_value) <= _ZERO:
            rhs_value = 0.0

        support = np.flatnonzero(a)
        integral = (
            bool(np.all(int_mask[support]))
            and all(is_integral(v) for v in a[support])
            and is_integral(row.rhs)
        )

        if cmp == "<=":
            # slack = sign * (rhs - a.x)
            idx_slack = add_column(f"slack_{name}", "slack", -sign * a, sign * row.rhs, integral)
            coeff_entries[idx_slack] = 1.0
            basis.append(idx_slack)
        elif cmp == ">=":
            # surplus = sign * (a.x - rhs)
            idx_surplus = add_column(f"surplus_{name}", "surplus", sign * a, -sign * row.rhs, integral)
            coeff_entries[idx_surplus] = -1.0
            idx_art = add_column(f"artificial_{name}", "artificial", np.zeros(n), 0.0, True)
            coeff_entries[idx_art] = 1.0
            basis.append(idx_art)
            artificial_indices.append(idx_art)
        else:  # equality
            idx_art = add_column(f"artificial_{name}", "artificial", np.zeros(n), 0.0, True)
            coeff_entries[idx_art] = 1.0
            basis.append(idx_art)
            artificial_indices.append(idx_art)

        entries.append(coeff_entries)
        rhs_values.append(rhs_value)
        row_names.append(name)

    num_cols = len(col_names)
    A = np.zeros((len(entries), num_cols), dtype=float)
    for r, coeff_entries in enumerate(entries):
        for idx, value in coeff_entries.items():
            A[r, idx] = value
    b = np.array(rhs_values, dtype=float)

    c_raw = np.zeros(num_cols)
    c_raw[: objective_raw.size] = objective_raw

    return StandardForm(
        A=A,
        b=b,
        c=-c_raw,
        basis=basis,
        col_names=col_names,
        col_types=col_types,
        artificial_indices=artificial_indices,
        components=components,
        offsets=offsets,
        objective_constant=objective_constant,
        column_map=np.array(col_maps, dtype=float).reshape(num_cols, n),
        column_offset=np.array(col_offsets, dtype=float),
        column_affine=np.array(col_affine, dtype=bool),
        column_integral=np.array(col_integral, dtype=bool),
        row_names=row_names,
    )
