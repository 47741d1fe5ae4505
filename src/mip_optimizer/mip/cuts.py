"""
Cutting planes for the branch-and-cut engine.

Every generator states its inequality over some non-negative columns ``y``
(simplex tableau columns, or variables shifted by their lower bound) and then
substitutes each column's affine map ``y_j = map_j . x + offset_j`` to obtain a
row over the original variables. Cuts are only valid for the node they were
derived at and its descendants.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Protocol, Sequence, Tuple

import numpy as np

from .fractional import fractional_part
from ..lp.simplex import Tableau
from ..lp.utils import LinearRow, is_integral
from ..schemas import BranchAndCutOptions

logger = logging.getLogger(__name__)

_COEF_ZERO = 1e-12
_MAX_DYNAMISM = 1e8
_RHS_RELAX = 1e-9
_PARALLEL_COSINE = 0.9999
# fractional parts this close to 0 or 1 produce numerically useless cuts
_MIN_FRACTION = 1e-4


class CutType(str, Enum):
    GOMORY = "gomory"
    MIR = "mir"
    COVER = "cover"


@dataclass(eq=False, frozen=True)
class Cut(LinearRow):
    kind: CutType = CutType.GOMORY
    source: int = -1

    @property
    def norm(self) -> float:
        return float(np.linalg.norm(self.coefficients))

    def efficacy(self, x: Sequence[float]) -> float:
        norm = self.norm
        return self.violation(x) / norm if norm > 0 else 0.0


@dataclass
class CutContext:
    x: np.ndarray
    rows: Sequence[LinearRow]
    bounds: Sequence[Tuple[float, float]]
    integer_mask: np.ndarray
    binary_mask: np.ndarray
    tableau: Optional[Tableau] = None
    tolerance: float = 1e-6


class CutGenerator(Protocol):
    kind: CutType

    def generate(self, ctx: CutContext) -> List[Cut]:
        ...


def make_cut(pi: Sequence[float], pi0: float, kind: CutType, source: int = -1) -> Optional[Cut]:
    """
    Build the row ``pi . x >= pi0`` as ``-pi . x <= -pi0``.

    Returns ``None`` for an empty row or one whose coefficient range is too wide
    to be trusted. The right-hand side is loosened slightly.
    """
    pi = np.array(pi, dtype=float)
    if not np.all(np.isfinite(pi)) or not math.isfinite(pi0):
        return None
    pi[np.abs(pi) < _COEF_ZERO] = 0.0
    magnitudes = np.abs(pi[pi != 0.0])
    if magnitudes.size == 0:
        return None
    if magnitudes.max() / magnitudes.min() > _MAX_DYNAMISM:
        logger.debug("Discarding %s cut from source %d: dynamism too large", kind.value, source)
        return None
    rhs = -pi0 + _RHS_RELAX * (1.0 + abs(pi0))
    return Cut(-pi, "<=", float(rhs), f"{kind.value}_{source}", kind=kind, source=source)


def _to_original_space(
    coefs: np.ndarray, rhs: float, maps: np.ndarray, offsets: np.ndarray
) -> Tuple[np.ndarray, float]:
    """Rewrite ``coefs . y <= rhs`` as ``pi . x >= pi0`` using ``y = maps x + offsets``."""
    lhs = coefs @ maps
    shift = float(coefs @ offsets)
    return -lhs, -(rhs - shift)


# --------------------------------------------------------------------- Gomory


class GomoryCutGenerator:
    """Gomory fractional cuts from rows of the optimal tableau."""

    kind = CutType.GOMORY

    def generate(self, ctx: CutContext) -> List[Cut]:
        tableau = ctx.tableau
        if tableau is None:
            return []
        nonbasic = tableau.nonbasic_mask()
        cuts: List[Cut] = []
        for r, basic in enumerate(tableau.basis):
            if tableau.column_types[basic] != "structural" or not tableau.column_integral[basic]:
                continue
            f0 = fractional_part(float(tableau.rhs[r]))
            if f0 < max(ctx.tolerance, _MIN_FRACTION) or f0 > 1.0 - max(ctx.tolerance, _MIN_FRACTION):
                continue
            row = np.where(nonbasic, tableau.rows[r], 0.0)
            support = np.flatnonzero(row)
            if support.size == 0:
                continue
            if not np.all(tableau.column_integral[support]) or not np.all(tableau.column_affine[support]):
                continue

            fracs = np.zeros_like(row)
            for j in support:
                fracs[j] = fractional_part(float(row[j]))
            # sum f_j y_j >= f0, i.e. -f . y <= -f0
            pi, pi0 = _to_original_space(-fracs, -f0, tableau.column_map, tableau.column_offset)
            cut = make_cut(pi, pi0, self.kind, r)
            if cut is not None:
                cuts.append(cut)
        return cuts


# ------------------------------------------------------------------------ MIR


def mir_inequality(
    coefs: Sequence[float], rhs: float, integer_mask: Sequence[bool]
) -> Optional[Tuple[np.ndarray, float]]:
    """
    Mixed-integer rounding of ``coefs . y <= rhs`` with ``y >= 0``.

    Returns ``(g, floor(rhs))`` describing ``g . y <= floor(rhs)``, or ``None``
    when ``rhs`` is (nearly) integral.
    """
    a = np.asarray(coefs, dtype=float)
    mask = np.asarray(integer_mask, dtype=bool)
    f = fractional_part(rhs)
    if f < _MIN_FRACTION or f > 1.0 - _MIN_FRACTION:
        return None
    g = np.zeros_like(a)
    for j, value in enumerate(a):
        if value == 0.0:
            continue
        if mask[j]:
            fj = fractional_part(value)
            g[j] = math.floor(value) + max(0.0, fj - f) / (1.0 - f)
        else:
            g[j] = min(0.0, value) / (1.0 - f)
    return g, float(math.floor(rhs))


class MIRCutGenerator:
    """
    MIR cuts from tableau rows and from the node's inequality rows.

    Each base row is tried with the scaling factors 1 and the absolute
    coefficients of its integer columns; the most efficacious result is kept.
    """

    kind = CutType.MIR

    def generate(self, ctx: CutContext) -> List[Cut]:
        cuts: List[Cut] = []
        for source, (coefs, rhs, mask, maps, offsets) in enumerate(self._base_rows(ctx)):
            cut = self._best_scaled(coefs, rhs, mask, maps, offsets, ctx.x, source)
            if cut is not None:
                cuts.append(cut)
        return cuts

    def _best_scaled(self, coefs, rhs, mask, maps, offsets, x, source) -> Optional[Cut]:
        deltas = {1.0}
        deltas.update(abs(float(v)) for v in coefs[mask] if abs(v) > _COEF_ZERO)
        best: Optional[Cut] = None
        best_efficacy = 0.0
        for delta in sorted(deltas):
            rounded = mir_inequality(coefs / delta, rhs / delta, mask)
            if rounded is None:
                continue
            g, beta = rounded
            pi, pi0 = _to_original_space(g, beta, maps, offsets)
            cut = make_cut(pi, pi0, self.kind, source)
            if cut is None:
                continue
            efficacy = cut.efficacy(x)
            if efficacy > best_efficacy:
                best, best_efficacy = cut, efficacy
        return best

    def _base_rows(self, ctx: CutContext) -> Iterable[tuple]:
        tableau = ctx.tableau
        if tableau is not None:
            usable = tableau.column_types != "artificial"
            for r, basic in enumerate(tableau.basis):
                if tableau.column_types[basic] == "artificial":
                    continue
                if not tableau.column_integral[basic]:
                    continue
                if is_integral(float(tableau.rhs[r]), ctx.tolerance):
                    continue
                coefs = np.where(usable, tableau.rows[r], 0.0)
                support = np.flatnonzero(coefs)
                if not np.all(tableau.column_affine[support]):
                    continue
                yield coefs, float(tableau.rhs[r]), tableau.column_integral, tableau.column_map, tableau.column_offset

        n = ctx.x.size
        lower = np.array([lo for lo, _ in ctx.bounds], dtype=float)
        for row in ctx.rows:
            orientations = {"<=": (1.0,), ">=": (-1.0,), "==": (1.0, -1.0)}[row.cmp]
            a = np.asarray(row.coefficients, dtype=float)
            support = np.flatnonzero(a)
            if support.size == 0 or not np.all(np.isfinite(lower[support])):
                continue
            if not np.any(ctx.integer_mask[support]):
                continue
            # x = lb + z with z >= 0
            shifted_lower = np.where(np.isfinite(lower), lower, 0.0)
            mask = ctx.integer_mask & np.array([is_integral(v) for v in shifted_lower])
            for orient in orientations:
                coefs = orient * a
                rhs = orient * row.rhs - float(coefs @ shifted_lower)
                yield coefs, rhs, mask, np.eye(n), -shifted_lower


# ---------------------------------------------------------------------- cover


def minimal_cover(
    weights: Sequence[float], capacity: float, x: Optional[Sequence[float]] = None
) -> Optional[List[int]]:
    """
    Greedy minimal cover of the knapsack ``weights . z <= capacity``.

    Items are taken by LP value (descending, when ``x`` is given), then weight
    (descending), then index, until their weight exceeds ``capacity``; a single
    removal pass, least attractive item first, then makes the cover minimal.
    Returns sorted item indices, or ``None`` when all items fit together.
    """
    w = [float(v) for v in weights]
    values = [0.0] * len(w) if x is None else [float(v) for v in x]
    order = sorted(range(len(w)), key=lambda j: (-values[j], -w[j], j))

    cover: List[int] = []
    total = 0.0
    for j in order:
        cover.append(j)
        total += w[j]
        if total > capacity:
            break
    else:
        return None

    for j in reversed(list(cover)):
        if total - w[j] > capacity:
            cover.remove(j)
            total -= w[j]
    return sorted(cover)


def is_minimal_cover(weights: Sequence[float], cover: Iterable[int], capacity: float) -> bool:
    items = list(cover)
    total = sum(float(weights[j]) for j in items)
    if total <= capacity:
        return False
    return all(total - float(weights[j]) <= capacity for j in items)


class CoverCutGenerator:
    """Minimal cover inequalities from 0-1 knapsack rows."""

    kind = CutType.COVER

    def generate(self, ctx: CutContext) -> List[Cut]:
        cuts: List[Cut] = []
        n = ctx.x.size
        for source, row in enumerate(ctx.rows):
            knapsack = self._as_knapsack(row, ctx.binary_mask)
            if knapsack is None:
                continue
            support, weights, capacity = knapsack
            cover = minimal_cover(weights, capacity, ctx.x[support])
            if cover is None:
                continue
            items = support[cover]
            if float(np.sum(ctx.x[items])) <= len(items) - 1 + ctx.tolerance:
                continue
            pi = np.zeros(n)
            pi[items] = -1.0
            cut = make_cut(pi, -(len(items) - 1.0), self.kind, source)
            if cut is not None:
                cuts.append(cut)
        return cuts

    @staticmethod
    def _as_knapsack(row: LinearRow, binary_mask: np.ndarray):
        if row.cmp == "<=":
            a, b = np.asarray(row.coefficients, dtype=float), row.rhs
        elif row.cmp == ">=":
            a, b = -np.asarray(row.coefficients, dtype=float), -row.rhs
        else:
            return None
        support = np.flatnonzero(a)
        if support.size < 2 or b <= 0:
            return None
        if not np.all(binary_mask[support]) or np.any(a[support] <= 0):
            return None
        return support, a[support], b


# ------------------------------------------------------------------ selection


def select_cuts(
    cuts: Sequence[Cut], x: Sequence[float], violation_tolerance: float, max_cuts: int
) -> List[Cut]:
    """Most efficacious violated cuts first, skipping near-parallel duplicates."""
    x = np.asarray(x, dtype=float)
    violated = [cut for cut in cuts if cut.violation(x) > violation_tolerance]
    violated.sort(key=lambda cut: -cut.efficacy(x))

    selected: List[Cut] = []
    for cut in violated:
        if len(selected) >= max_cuts:
            break
        unit = cut.coefficients / cut.norm
        if any(float(unit @ kept.coefficients) / kept.norm > _PARALLEL_COSINE for kept in selected):
            continue
        selected.append(cut)
    return selected


def build_generators(options: BranchAndCutOptions) -> List[CutGenerator]:
    generators: List[CutGenerator] = []
    if options.enable_gomory_cuts:
        generators.append(GomoryCutGenerator())
    if options.enable_mir_cuts:
        generators.append(MIRCutGenerator())
    if options.enable_cover_cuts:
        generators.append(CoverCutGenerator())
    return generators
