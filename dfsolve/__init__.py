# dfsolve: derivative-free solvers
# - mads         : orthogonal mesh adaptive direct search (random directions)
# - nelder_mead  : Nelder–Mead simplex with oriented restart
from __future__ import annotations

from typing import Optional

import numpy as np

from .blocks.aux import MADSConfig, Model, NelderMeadConfig, SolverConfig
from .blocks.directions import GaussianSource, HaltonSource
from .blocks.penalty import Penalty, constraint_violation
from .mads import MADSSolver, MADSState, mads
from .nelder_mead import NelderMeadSolver, NelderMeadState, nelder_mead
from .stats import ExecutionStats, Status

__version__ = "0.1.0"

SOLVERS = {
    "mads": mads,
    "nelder_mead": nelder_mead,
}


def solve(model: Model, method: str = "mads", x: Optional[np.ndarray] = None,
          **options) -> ExecutionStats:
    """Dispatch to one of :data:`SOLVERS` by name."""
    try:
        runner = SOLVERS[method]
    except KeyError:
        raise ValueError(
            f"Unknown method '{method}', expected one of {sorted(SOLVERS)}"
        ) from None
    return runner(model, x, **options)


__all__ = [
    "ExecutionStats",
    "GaussianSource",
    "HaltonSource",
    "MADSConfig",
    "MADSSolver",
    "MADSState",
    "Model",
    "NelderMeadConfig",
    "NelderMeadSolver",
    "NelderMeadState",
    "Penalty",
    "SOLVERS",
    "SolverConfig",
    "Status",
    "constraint_violation",
    "mads",
    "nelder_mead",
    "solve",
]
