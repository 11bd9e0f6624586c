"""
Quadratic-penalty merit function for the pattern-search solver.

A trial point is compared through the scalar merit

    φ(x) = f(x) + μ · P(x),

where P(x) ≥ 0 is the squared violation of the variable bounds and of the
general constraints:

    P(x) = Σ_i max(0, x_i - u_i, l_i - x_i)²
         + Σ_j max(0, c_j(x) - ucon_j, lcon_j - c_j(x))².

P(x) = 0 exactly when x is feasible. The weight μ starts at 1 and is doubled
by the solver whenever a poll fails at an infeasible incumbent, up to 1/eps.

Notes
-----
- Unconstrained models (no finite bound, no constraint) short-circuit to 0
  without touching the constraint counter.
- Constraint values are obtained through ``Model.cons`` so that every
  evaluation is counted.
"""

from __future__ import annotations

import logging
from typing import Tuple

import numpy as np

from .aux import EPS, Model


def _squared_excess(v: np.ndarray, lo: np.ndarray, hi: np.ndarray) -> float:
    viol_lo = np.clip(lo - v, 0.0, np.inf)
    viol_hi = np.clip(v - hi, 0.0, np.inf)
    return float(np.sum(np.maximum(viol_lo, viol_hi) ** 2))


def constraint_violation(model: Model, x: np.ndarray) -> float:
    """Squared bound + constraint violation P(x)."""
    if model.unconstrained():
        return 0.0
    lvar, uvar, lcon, ucon = model.bounds()
    p = _squared_excess(x, lvar, uvar)
    if model.constraint_count() > 0:
        p += _squared_excess(model.cons(x), lcon, ucon)
    return p


class Penalty:
    """
    Adaptive penalty weight μ and the merit φ = f + μ P.

    Parameters
    ----------
    model : Model
        Problem whose objective and constraints are evaluated.
    mu : float
        Initial weight (≥ 1).

    Attributes
    ----------
    mu_max : float
        Upper cap 1/eps on the weight.
    """

    def __init__(self, model: Model, mu: float = 1.0):
        if mu < 1.0:
            raise ValueError(f"Penalty weight must be >= 1, got {mu}")
        self.model = model
        self.mu = float(mu)
        self.mu_max = 1.0 / EPS

    def violation(self, x: np.ndarray) -> float:
        return constraint_violation(self.model, x)

    def merit(self, f: float, P: float) -> float:
        return f + self.mu * P

    def evaluate(self, x: np.ndarray) -> Tuple[float, float, float]:
        """Objective, violation and merit at x (one objective evaluation)."""
        f = self.model.obj(x)
        P = self.violation(x)
        return f, P, self.merit(f, P)

    def increase(self) -> float:
        mu = min(2.0 * self.mu, self.mu_max)
        if mu != self.mu:
            logging.debug(f"[Penalty] μ: {self.mu:.3e} -> {mu:.3e}")
        self.mu = mu
        return self.mu
