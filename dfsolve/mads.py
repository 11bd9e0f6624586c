# mads.py
# Orthogonal Mesh Adaptive Direct Search with random polling directions.
# - Poll set [H, -H], H = qᵀq I - 2 q qᵀ rebuilt from a fresh q every iteration
# - Success-run mesh law: Δ ← Δ·4^seq on success, Δ ← Δ / 2^(-1/seq) on failure
# - Constraints through the quadratic-penalty merit φ = f + μ P, μ doubled on
#   failed polls at infeasible incumbents
from __future__ import annotations

import dataclasses
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, Optional

import numpy as np

from .blocks.aux import EPS, MADSConfig, Model, _as_float_array, budget_reached
from .blocks.directions import DirectionSource, make_source, poll_point
from .blocks.penalty import Penalty
from .blocks.trace import MADS_COLUMNS, IterationLogger
from .stats import ExecutionStats, Status


@dataclass
class MADSState:
    """Incumbent and mesh parameters, mutated once per poll."""

    x: np.ndarray
    fx: float
    Px: float
    phi: float
    delta: float
    penalty: Penalty
    q: np.ndarray
    ftol: float
    seq: int = 0
    iter: int = 0
    elapsed_time: float = 0.0
    dfx: float = float("inf")  # poll slope estimate (see MADSConfig.estimate_slope)
    decrease: bool = False
    status: str = ""
    start_time: float = field(default_factory=time.time)

    @property
    def mu(self) -> float:
        return self.penalty.mu


class MADSSolver:
    """
    OrthoMADS following Abramson, Audet, Dennis & Le Digabel (SIAM J. Optim.
    20(2), 2009), with Gaussian vectors in place of the Halton sequence.

    Parameters
    ----------
    model : Model
        Problem to minimise.
    x : array_like, optional
        Starting point; defaults to ``model.starting_point()``.
    config : MADSConfig, optional
        Options; keyword ``options`` override its fields.
    source : DirectionSource, optional
        Provider of ``next_gaussian_vector(n)``; built from
        ``config.directions`` and ``config.seed``.
    """

    name = "mads"

    def __init__(
        self,
        model: Model,
        x: Optional[np.ndarray] = None,
        config: Optional[MADSConfig] = None,
        source: Optional[DirectionSource] = None,
        **options,
    ):
        self.model = model
        cfg = dataclasses.replace(config) if config is not None else MADSConfig()
        self.cfg = cfg.update(**options)
        self.x0 = model.starting_point() if x is None else _as_float_array(x).ravel().copy()
        if self.x0.size != model.variable_count():
            raise ValueError(
                f"x has {self.x0.size} entries, expected n={model.variable_count()}"
            )
        self.source = (
            source if source is not None else make_source(self.cfg.seed, self.cfg.directions)
        )
        self.max_eval = (
            200 * model.variable_count() if self.cfg.max_eval is None else int(self.cfg.max_eval)
        )
        self.penalty = Penalty(model)
        self.log = IterationLogger(MADS_COLUMNS, verbose=self.cfg.verbose)
        self.state: Optional[MADSState] = None
        self._xt = np.empty_like(self.x0)

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------
    def initial_state(self) -> MADSState:
        cfg = self.cfg
        x = self.x0.copy()
        self.penalty = Penalty(self.model)
        fx, Px, phi = self.penalty.evaluate(x)
        lvar, uvar, _, _ = self.model.bounds()
        delta = float(min(1.0, np.min(uvar - lvar) / 10))
        return MADSState(
            x=x,
            fx=fx,
            Px=Px,
            phi=phi,
            delta=delta,
            penalty=self.penalty,
            q=self.source.next_gaussian_vector(x.size),
            ftol=cfg.atol + abs(fx) * cfg.rtol,
        )

    def _satisfied(self, st: MADSState) -> bool:
        cfg = self.cfg
        small = cfg.stop_with_small_step and st.delta <= cfg.steptol
        return small or (not st.decrease and st.dfx <= st.ftol)

    def _tired(self, st: MADSState) -> bool:
        return (
            budget_reached(self.model.evaluation_count(), self.max_eval)
            or (self.cfg.max_time >= 0 and st.elapsed_time > self.cfg.max_time)
            or budget_reached(st.iter, self.cfg.max_iter)
        )

    # -------------------------------------------------------------------------
    # One iteration
    # -------------------------------------------------------------------------
    def poll(self, st: MADSState) -> Dict:
        """Poll the 2n directions, update incumbent, mesh and penalty."""
        cfg = self.cfg
        n = st.x.size
        xt = self._xt
        delta_old = st.delta

        st.decrease = False
        st.status = "No decrease"
        best_x = None
        bestf, bestP, bestphi = st.fx, st.Px, st.phi
        if cfg.estimate_slope:
            st.dfx = 0.0

        for s in (1, -1):
            for i in range(n):
                poll_point(st.x, st.q, i, s, st.delta, out=xt)
                ft, Pt, phit = self.penalty.evaluate(xt)
                if cfg.estimate_slope:
                    st.dfx = max(st.dfx, abs(ft - st.fx) / max(st.delta, EPS))
                if phit < bestphi:
                    st.decrease = True
                    st.status = f"Decrease at i = {i + 1}, s = {s}"
                    best_x = xt.copy()
                    bestf, bestP, bestphi = ft, Pt, phit
                    if not cfg.greedy:
                        break
            if st.decrease and not cfg.greedy:
                break

        if st.decrease:
            st.x = best_x
            st.fx, st.Px = bestf, bestP
            st.seq = max(st.seq + 1, 1)
            st.delta *= 4.0 ** st.seq
        else:
            st.seq = min(st.seq - 1, -1)
            st.delta /= 2.0 ** (-1.0 / st.seq)
            if st.Px > 0:
                self.penalty.increase()
        st.iter += 1
        if not cfg.stop_with_small_step:
            st.delta = max(EPS, st.delta)

        st.q = self.source.next_gaussian_vector(n)
        st.phi = self.penalty.merit(st.fx, st.Px)
        return {
            "accepted": st.decrease,
            "delta_old": delta_old,
            "delta": st.delta,
            "seq": st.seq,
            "mu": st.mu,
        }

    # -------------------------------------------------------------------------
    # Driver
    # -------------------------------------------------------------------------
    def _row(self, st: MADSState, status: Optional[str] = None) -> None:
        self.log.row(
            iter=st.iter,
            nf=self.model.evaluation_count(),
            f=st.fx,
            P=st.Px,
            delta=st.delta,
            mu=st.mu,
            status=status,
            decrease=st.decrease,
        )

    def _final_status(self, st: MADSState, tired: bool) -> Status:
        cfg = self.cfg
        if cfg.stop_with_small_step and st.delta <= cfg.steptol:
            return Status.SMALL_STEP
        if st.dfx <= st.ftol:
            return Status.STALLED
        if tired:
            if budget_reached(self.model.evaluation_count(), self.max_eval):
                return Status.MAX_EVAL
            if self.cfg.max_time >= 0 and st.elapsed_time > cfg.max_time:
                return Status.MAX_TIME
            return Status.MAX_ITER
        return Status.UNKNOWN

    def solve(self) -> ExecutionStats:
        self.log = IterationLogger(MADS_COLUMNS, verbose=self.cfg.verbose)
        st = self.state = self.initial_state()
        st.start_time = time.time()
        self._row(st)

        satisfied = self._satisfied(st)
        tired = self._tired(st)
        while not (satisfied or tired):
            self.poll(st)
            self._row(st, st.status)
            satisfied = self._satisfied(st)
            st.elapsed_time = time.time() - st.start_time
            tired = self._tired(st)

        status = self._final_status(st, tired)
        logging.debug(f"[MADS] stop: {status.value} after {st.iter} iterations")
        return ExecutionStats(
            status=status,
            solution=st.x.copy(),
            objective=st.fx,
            primal_feas=st.Px,
            iter=st.iter,
            elapsed_time=st.elapsed_time,
            solver=self.name,
            neval_obj=self.model.neval_obj,
            neval_cons=self.model.neval_cons,
            history=self.log.history,
        )


def mads(
    model: Model,
    x: Optional[np.ndarray] = None,
    *,
    config: Optional[MADSConfig] = None,
    source: Optional[DirectionSource] = None,
    **options,
) -> ExecutionStats:
    """Run :class:`MADSSolver` on ``model`` and return its stats."""
    return MADSSolver(model, x, config=config, source=source, **options).solve()
