"""
Direction sources and orthogonal poll geometry for OrthoMADS.

Each iteration draws a vector q ∈ R^n and polls along the 2n columns of
[H, -H] with the Householder-type basis

    H = (qᵀq) I - 2 q qᵀ,      Hᵀ H = (qᵀq)² I.

Column i of s·Δ·H is formed on the fly:

    x + s Δ H e_i = x - 2 s Δ q_i q + s Δ (qᵀq) e_i,

so H itself is never stored.

Sources implement ``next_gaussian_vector(n)``:
- ``GaussianSource``: numpy ``Generator`` normals (random OrthoMADS variant).
- ``HaltonSource``: scrambled Halton points pushed through the normal
  quantile, a deterministic low-discrepancy alternative.
"""

from __future__ import annotations

from typing import Optional, Protocol

import numpy as np
from scipy.stats import norm, qmc


class DirectionSource(Protocol):
    def next_gaussian_vector(self, n: int) -> np.ndarray: ...


class GaussianSource:
    """Re-seedable standard-normal source."""

    def __init__(self, seed: Optional[int] = None):
        self.seed = seed
        self.rng = np.random.default_rng(seed)

    def reseed(self, seed: Optional[int] = None) -> None:
        self.seed = seed
        self.rng = np.random.default_rng(seed)

    def next_gaussian_vector(self, n: int) -> np.ndarray:
        return self.rng.standard_normal(n)


class HaltonSource:
    """Scrambled Halton sequence mapped to N(0, 1) through Φ⁻¹."""

    def __init__(self, seed: Optional[int] = None):
        self.seed = seed
        self._engine: Optional[qmc.Halton] = None

    def reseed(self, seed: Optional[int] = None) -> None:
        self.seed = seed
        self._engine = None

    def next_gaussian_vector(self, n: int) -> np.ndarray:
        if self._engine is None or self._engine.d != n:
            self._engine = qmc.Halton(d=n, scramble=True, seed=self.seed)
        u = self._engine.random(1)[0]
        # keep Φ⁻¹ finite at the open ends
        u = np.clip(u, 1e-12, 1.0 - 1e-12)
        return norm.ppf(u)


def make_source(seed: Optional[int] = None, kind: str = "gaussian") -> DirectionSource:
    if kind == "gaussian":
        return GaussianSource(seed)
    if kind == "halton":
        return HaltonSource(seed)
    raise ValueError(f"Unknown direction source '{kind}'")


# ------------------------------------------------------------------ #
# Poll geometry
# ------------------------------------------------------------------ #
def poll_point(x: np.ndarray, q: np.ndarray, i: int, s: int, delta: float,
               out: Optional[np.ndarray] = None) -> np.ndarray:
    """x + s·Δ·H e_i without building H (written into ``out`` if given)."""
    if out is None:
        out = np.empty_like(x)
    np.subtract(x, (2 * s * delta * q[i]) * q, out=out)
    out[i] += float(q @ q) * s * delta
    return out


def householder_basis(q: np.ndarray) -> np.ndarray:
    """Dense H = (qᵀq) I - 2 q qᵀ; only used for inspection and tests."""
    q = np.asarray(q, dtype=float)
    return float(q @ q) * np.eye(q.size) - 2.0 * np.outer(q, q)
