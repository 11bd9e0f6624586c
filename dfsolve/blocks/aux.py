# aux.py
# Shared infrastructure for the direct-search solvers: problem model with
# evaluation counters, solver configuration, small array helpers.

from __future__ import annotations

# =========================
# Standard library
# =========================
import dataclasses
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence, Tuple

# =========================
# Third-party
# =========================
import numpy as np

EPS = float(np.finfo(float).eps)


# ======================================
# Global configuration
# ======================================
@dataclass
class SolverConfig:
    """
    Options shared by every solver.

    Notes
    -----
    • A negative budget (max_eval, max_time, max_iter) disables that limit.
    • ``atol``/``rtol`` build the function tolerance ``atol + |f(x0)| * rtol``.
    """

    # ---------------- Tolerances ----------------
    atol: float = float(np.sqrt(EPS))
    rtol: float = float(np.sqrt(EPS))

    # ---------------- Budgets ----------------
    max_eval: Optional[int] = -1
    max_time: float = 30.0
    max_iter: int = -1

    # ---------------- Output ----------------
    verbose: bool = False

    def update(self, **options) -> "SolverConfig":
        """Override fields in place; unknown names are rejected."""
        names = {f.name for f in dataclasses.fields(self)}
        for key, val in options.items():
            if key not in names:
                raise ValueError(
                    f"Unknown option '{key}' for {type(self).__name__}"
                )
            setattr(self, key, val)
        return self


@dataclass
class MADSConfig(SolverConfig):
    """Orthogonal pattern search options."""

    max_eval: Optional[int] = None  # None -> 200 * n
    greedy: bool = False  # scan all 2n directions instead of stopping early
    stop_with_small_step: bool = False
    steptol: float = 1e-8
    estimate_slope: bool = False  # track max |ft - fx| / Δ over the poll
    seed: Optional[int] = None
    directions: str = "gaussian"  # {"gaussian","halton"}


@dataclass
class NelderMeadConfig(SolverConfig):
    """Nelder–Mead options (coefficients follow Nocedal & Wright, ch. 9)."""

    tol: float = float(np.sqrt(EPS))  # stop when ‖x_best - x_worst‖ < tol
    ref: float = -1.0
    exp: float = -2.0
    ocn: float = -0.5
    icn: float = 0.5
    oriented_restart: bool = True
    max_restart: int = 3
    alpha: float = 1e-4  # sufficient-decrease coefficient
    vertices: Optional[Sequence[Sequence[float]]] = None


# ======================================
# Helpers
# ======================================
def _as_float_array(a) -> np.ndarray:
    return np.asarray(a, dtype=float)


def _bound_vec(v, m: int, fill: float, name: str) -> np.ndarray:
    if v is None:
        return np.full(m, fill, dtype=float)
    a = np.asarray(v, dtype=float).ravel()
    if a.size == 1 and m != 1:
        a = np.full(m, float(a[0]))
    if a.size != m:
        raise ValueError(f"{name} has {a.size} entries, expected {m}")
    return a.copy()


def budget_reached(count: float, limit: Optional[float]) -> bool:
    """``count >= limit >= 0``; a negative or missing limit never triggers."""
    return limit is not None and limit >= 0 and count >= limit


# ======================================
# Problem model
# ======================================
class Model:
    """
    Objective, constraints and bounds of a derivative-free problem.

        minimize f(x)  s.t.  lvar <= x <= uvar,  lcon <= c(x) <= ucon

    Constraints can be given as one vector-valued callable ``c`` (with
    ``lcon``/``ucon``), and/or as lists of scalar callables ``c_ineq``
    (meaning c(x) <= 0) and ``c_eq`` (meaning c(x) == 0). They are stacked in
    that order.

    Every call to :meth:`obj` and :meth:`cons` bumps ``neval_obj`` and
    ``neval_cons``; solvers never evaluate the callables directly.
    """

    __slots__ = (
        "name",
        "n",
        "m",
        "f",
        "c",
        "cI_funcs",
        "cE_funcs",
        "m_vec",
        "x0",
        "lvar",
        "uvar",
        "lcon",
        "ucon",
        "neval_obj",
        "neval_cons",
    )

    def __init__(
        self,
        f: Callable,
        x0=None,
        *,
        n: Optional[int] = None,
        lvar=None,
        uvar=None,
        c: Optional[Callable] = None,
        lcon=None,
        ucon=None,
        ncon: Optional[int] = None,
        c_ineq: Optional[List[Callable]] = None,
        c_eq: Optional[List[Callable]] = None,
        name: str = "generic",
    ):
        if not callable(f):
            raise ValueError("Objective function f must be callable")
        if c is not None and not callable(c):
            raise ValueError("Constraint function c must be callable")
        if c_ineq is not None and not all(callable(ci) for ci in c_ineq):
            raise ValueError("All inequality constraints must be callable")
        if c_eq is not None and not all(callable(ce) for ce in c_eq):
            raise ValueError("All equality constraints must be callable")

        if x0 is None:
            if n is None:
                raise ValueError("Either x0 or n must be given")
            x0 = np.zeros(int(n))
        x0 = _as_float_array(x0).ravel()
        if n is None:
            n = x0.size
        if n <= 0:
            raise ValueError(f"Number of variables n must be positive, got {n}")
        if x0.size != n:
            raise ValueError(f"x0 has {x0.size} entries, expected n={n}")

        self.name = name
        self.n = int(n)
        self.f = f
        self.c = c
        self.cI_funcs = list(c_ineq or [])
        self.cE_funcs = list(c_eq or [])
        self.x0 = x0.copy()
        self.lvar = _bound_vec(lvar, self.n, -np.inf, "lvar")
        self.uvar = _bound_vec(uvar, self.n, np.inf, "uvar")
        if np.any(self.lvar > self.uvar):
            raise ValueError("lvar must not exceed uvar")

        # vector constraint block: its size comes from ncon or the bounds
        if c is not None:
            if ncon is None:
                for b in (lcon, ucon):
                    if b is not None:
                        ncon = np.asarray(b, dtype=float).size
                        break
            if ncon is None:
                raise ValueError("ncon (or lcon/ucon) is required with c")
            self.m_vec = int(ncon)
        else:
            self.m_vec = 0
        mI, mE = len(self.cI_funcs), len(self.cE_funcs)
        self.m = self.m_vec + mI + mE

        lc = _bound_vec(lcon, self.m_vec, -np.inf, "lcon")
        uc = _bound_vec(ucon, self.m_vec, np.inf, "ucon")
        self.lcon = np.concatenate([lc, np.full(mI, -np.inf), np.zeros(mE)])
        self.ucon = np.concatenate([uc, np.zeros(mI), np.zeros(mE)])
        if np.any(self.lcon > self.ucon):
            raise ValueError("lcon must not exceed ucon")

        self.neval_obj = 0
        self.neval_cons = 0

    # ---------- evaluation ----------
    def obj(self, x: np.ndarray) -> float:
        self.neval_obj += 1
        return float(self.f(x))

    def cons(self, x: np.ndarray) -> np.ndarray:
        if self.m == 0:
            raise ValueError(f"Model '{self.name}' has no constraints")
        self.neval_cons += 1
        parts = []
        if self.c is not None:
            parts.append(_as_float_array(self.c(x)).ravel())
        if self.cI_funcs:
            parts.append(np.array([ci(x) for ci in self.cI_funcs], dtype=float))
        if self.cE_funcs:
            parts.append(np.array([ce(x) for ce in self.cE_funcs], dtype=float))
        cx = np.concatenate(parts)
        if cx.size != self.m:
            raise ValueError(
                f"Constraint vector has {cx.size} entries, expected {self.m}"
            )
        return cx

    # ---------- interface ----------
    def bounds(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
        return self.lvar, self.uvar, self.lcon, self.ucon

    def variable_count(self) -> int:
        return self.n

    def constraint_count(self) -> int:
        return self.m

    def starting_point(self) -> np.ndarray:
        return self.x0.copy()

    def evaluation_count(self) -> int:
        return self.neval_obj

    def unconstrained(self) -> bool:
        return (
            self.m == 0
            and not np.isfinite(self.lvar).any()
            and not np.isfinite(self.uvar).any()
        )

    def reset_counters(self) -> None:
        self.neval_obj = 0
        self.neval_cons = 0

    def counters(self) -> Dict[str, int]:
        return {"neval_obj": self.neval_obj, "neval_cons": self.neval_cons}

    def __repr__(self) -> str:
        return f"Model(name={self.name!r}, n={self.n}, m={self.m})"
