# nelder_mead.py
# Nelder–Mead simplex method (Nocedal & Wright, Numerical Optimization,
# 2nd ed., ch. 9) with the oriented restart of C. T. Kelley, "Detection and
# remediation of stagnation in the Nelder–Mead algorithm using a sufficient
# decrease condition", SIAM J. Optim. 10(1), 1999.
from __future__ import annotations

import dataclasses
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np
import scipy.linalg as la

from .blocks.aux import EPS, Model, NelderMeadConfig, _as_float_array, budget_reached
from .blocks.trace import NELDER_MEAD_COLUMNS, IterationLogger
from .stats import ExecutionStats, Status

Vertex = List  # [point (np.ndarray), value (float)]


@dataclass
class SimplexGradient:
    """Solution of Vᵀ ϕ = δ, or a flag that the system was singular."""

    phi: np.ndarray
    singular: bool = False


def simplex_gradient(pairs: List[Vertex]) -> SimplexGradient:
    """
    Simplex gradient from the edges leaving the best vertex.

    V has columns x_j - x_1 and δ_j = f_j - f_1 (j = 2..n+1). A singular or
    non-finite system is reported instead of raised.
    """
    x1, f1 = pairs[0]
    n = x1.size
    V = np.column_stack([p[0] - x1 for p in pairs[1:]])
    d = np.array([p[1] - f1 for p in pairs[1:]], dtype=float)
    try:
        phi = la.solve(V.T, d)
    except (la.LinAlgError, ValueError):
        return SimplexGradient(np.zeros(n), singular=True)
    if not np.all(np.isfinite(phi)):
        return SimplexGradient(np.zeros(n), singular=True)
    return SimplexGradient(phi)


def _sign(v: float) -> float:
    # sign(0) = +1 keeps restarted edges non-degenerate
    return -1.0 if v < 0 else 1.0


@dataclass
class NelderMeadState:
    pairs: List[Vertex]
    fk: float
    restarts: int = 0
    iter: int = 0
    elapsed_time: float = 0.0
    diam: float = float("inf")
    start_time: float = field(default_factory=time.time)

    @property
    def best(self) -> Vertex:
        return self.pairs[0]

    @property
    def worst(self) -> Vertex:
        return self.pairs[-1]


class NelderMeadSolver:
    """
    Nelder–Mead with optional oriented restart.

    Coefficients are expressed as affine weights on the worst vertex:
    the trial point is ``x_cen * (1 - c) + c * x_worst`` with ``c`` one of
    ``ref`` (-1), ``exp`` (-2), ``ocn`` (-1/2) or ``icn`` (1/2).
    """

    name = "nelder_mead"

    def __init__(
        self,
        model: Model,
        x: Optional[np.ndarray] = None,
        config: Optional[NelderMeadConfig] = None,
        **options,
    ):
        cfg = dataclasses.replace(config) if config is not None else NelderMeadConfig()
        self.cfg = cfg.update(**options)
        self.model = model
        self.n = model.variable_count()
        self.x0 = model.starting_point() if x is None else _as_float_array(x).ravel().copy()
        if self.x0.size != self.n:
            raise ValueError(f"x has {self.x0.size} entries, expected n={self.n}")
        self.vertices = self._initial_vertices()
        self.log = IterationLogger(NELDER_MEAD_COLUMNS, verbose=self.cfg.verbose)
        self.state: Optional[NelderMeadState] = None

    # -------------------------------------------------------------------------
    # Initial simplex
    # -------------------------------------------------------------------------
    def _initial_vertices(self) -> List[np.ndarray]:
        n = self.n
        given = self.cfg.vertices
        if given is not None and len(given) > 0:
            if len(given) < n + 1:
                raise ValueError(
                    "Invalid Simplex : The number of initial vertices is less than n + 1"
                )
            if len(given) > n + 1:
                raise ValueError(
                    "Invalid Simplex : The number of initial vertices is greater than n + 1"
                )
            vertices = [_as_float_array(v).ravel().copy() for v in given]
            for v in vertices:
                if v.size != n:
                    raise ValueError(
                        f"Invalid Simplex : vertex has {v.size} entries, expected n={n}"
                    )
            return vertices

        vertices = [self.x0.copy() for _ in range(n + 1)]
        for j in range(n):
            xt = vertices[j + 1]
            xt[j] += 0.05 * xt[j] if xt[j] != 0 else EPS ** 0.25
        return vertices

    def initial_state(self) -> NelderMeadState:
        pairs = [[v.copy(), self.model.obj(v)] for v in self.vertices]
        pairs.sort(key=lambda p: p[1])
        st = NelderMeadState(pairs=pairs, fk=float(np.mean([p[1] for p in pairs])))
        st.diam = float(np.linalg.norm(st.worst[0] - st.best[0]))
        return st

    # -------------------------------------------------------------------------
    # One iteration
    # -------------------------------------------------------------------------
    def _trial(self, x_cen: np.ndarray, coef: float, x_worst: np.ndarray) -> np.ndarray:
        return x_cen * (1 - coef) + coef * x_worst

    def iterate(self, st: NelderMeadState) -> Dict:
        cfg = self.cfg
        obj = self.model.obj
        pairs = st.pairs
        n = self.n

        shrink = True
        step = "shrink"
        x_cen = sum(p[0] for p in pairs[:n]) / n
        x_worst = pairs[n][0]
        x_ref = self._trial(x_cen, cfg.ref, x_worst)
        f_ref = obj(x_ref)

        # Reflection
        if pairs[0][1] <= f_ref < pairs[n - 1][1]:
            pairs[n] = [x_ref, f_ref]
            shrink = False
            step = "reflection"
        # Expansion
        elif f_ref < pairs[0][1]:
            x_exp = self._trial(x_cen, cfg.exp, x_worst)
            f_exp = obj(x_exp)
            if f_exp < f_ref:
                pairs[n] = [x_exp, f_exp]
                step = "expansion"
            else:
                pairs[n] = [x_ref, f_ref]
                step = "reflection"
            shrink = False
        # Contraction
        elif f_ref >= pairs[n - 1][1]:
            if f_ref < pairs[n][1]:
                x_ocn = self._trial(x_cen, cfg.ocn, x_worst)
                f_ocn = obj(x_ocn)
                if f_ocn <= f_ref:
                    pairs[n] = [x_ocn, f_ocn]
                    shrink = False
                    step = "outside contraction"
            else:
                x_icn = self._trial(x_cen, cfg.icn, x_worst)
                f_icn = obj(x_icn)
                if f_icn < pairs[n][1]:
                    pairs[n] = [x_icn, f_icn]
                    shrink = False
                    step = "inside contraction"

        # the accepted trial may be the new best vertex
        pairs.sort(key=lambda p: p[1])

        reshape = True
        if cfg.oriented_restart and st.restarts < cfg.max_restart:
            fk1 = float(np.mean([p[1] for p in pairs]))
            x_best = pairs[0][0]
            sigma_minus = min(float(np.linalg.norm(p[0] - x_best)) for p in pairs[1:])
            grad = simplex_gradient(pairs)
            if sigma_minus == 0.0:
                # repeated vertices: a restart of radius 0 would collapse the simplex
                degenerate = False
            elif grad.singular:
                degenerate = True
            else:
                df = fk1 - st.fk
                degenerate = df >= -cfg.alpha * float(grad.phi @ grad.phi) and df < 0

            if degenerate:
                for j in range(1, n + 1):
                    y = x_best.copy()
                    y[j - 1] += _sign(grad.phi[j - 1]) * sigma_minus / 2
                    pairs[j] = [y, obj(y)]
                st.restarts += 1
                reshape = False
                step = "oriented restart"
                logging.debug(
                    f"[NelderMead] oriented restart #{st.restarts} at iter {st.iter} "
                    f"(σ₋={sigma_minus:.3e}, singular={grad.singular})"
                )
            st.fk = fk1

        if shrink and reshape:
            x_best = pairs[0][0]
            for j in range(1, n + 1):
                x_trial = (pairs[j][0] + x_best) / 2
                pairs[j] = [x_trial, obj(x_trial)]

        pairs.sort(key=lambda p: p[1])
        st.iter += 1
        st.diam = float(np.linalg.norm(st.worst[0] - st.best[0]))
        return {"step": step, "shrink": shrink and reshape, "restarted": not reshape}

    # -------------------------------------------------------------------------
    # Driver
    # -------------------------------------------------------------------------
    def _tired(self, st: NelderMeadState) -> bool:
        return (
            budget_reached(self.model.evaluation_count(), self.cfg.max_eval)
            or (self.cfg.max_time >= 0 and st.elapsed_time > self.cfg.max_time)
            or budget_reached(st.iter, self.cfg.max_iter)
        )

    def _row(self, st: NelderMeadState, status: Optional[str] = None) -> None:
        self.log.row(
            iter=st.iter,
            nf=self.model.evaluation_count(),
            f=st.best[1],
            diam=st.diam,
            status=status,
        )

    def solve(self) -> ExecutionStats:
        self.log = IterationLogger(NELDER_MEAD_COLUMNS, verbose=self.cfg.verbose)
        st = self.state = self.initial_state()
        st.start_time = time.time()
        self._row(st)

        optimal = st.diam < self.cfg.tol
        tired = self._tired(st)
        while not (optimal or tired):
            info = self.iterate(st)
            self._row(st, info["step"])
            st.elapsed_time = time.time() - st.start_time
            optimal = st.diam < self.cfg.tol
            tired = self._tired(st)

        if optimal:
            status = Status.ACCEPTABLE
        elif tired:
            if budget_reached(self.model.evaluation_count(), self.cfg.max_eval):
                status = Status.MAX_EVAL
            elif self.cfg.max_time >= 0 and st.elapsed_time > self.cfg.max_time:
                status = Status.MAX_TIME
            else:
                status = Status.MAX_ITER
        else:
            status = Status.UNKNOWN
        logging.debug(f"[NelderMead] stop: {status.value} after {st.iter} iterations")

        x_best, f_best = st.best
        return ExecutionStats(
            status=status,
            solution=x_best.copy(),
            objective=f_best,
            iter=st.iter,
            elapsed_time=st.elapsed_time,
            solver=self.name,
            neval_obj=self.model.neval_obj,
            neval_cons=self.model.neval_cons,
            restarts=st.restarts,
            history=self.log.history,
        )


def nelder_mead(
    model: Model,
    x: Optional[np.ndarray] = None,
    *,
    config: Optional[NelderMeadConfig] = None,
    **options,
) -> ExecutionStats:
    """Run :class:`NelderMeadSolver` on ``model`` and return its stats."""
    return NelderMeadSolver(model, x, config=config, **options).solve()
