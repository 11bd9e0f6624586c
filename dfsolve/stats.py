from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

import numpy as np


class Status(Enum):
    """Termination reasons shared by all solvers."""

    ACCEPTABLE = "acceptable"
    SMALL_STEP = "small_step"
    STALLED = "stalled"
    MAX_EVAL = "max_eval"
    MAX_TIME = "max_time"
    MAX_ITER = "max_iter"
    UNKNOWN = "unknown"


STATUS_MESSAGES: Dict[Status, str] = {
    Status.ACCEPTABLE: "solved to within acceptable tolerances",
    Status.SMALL_STEP: "step too small",
    Status.STALLED: "stalled",
    Status.MAX_EVAL: "maximum number of function evaluations",
    Status.MAX_TIME: "maximum elapsed time",
    Status.MAX_ITER: "maximum iteration",
    Status.UNKNOWN: "unknown",
}


@dataclass
class ExecutionStats:
    """Outcome of one solver run."""

    status: Status
    solution: np.ndarray
    objective: float
    iter: int
    elapsed_time: float
    primal_feas: Optional[float] = None
    solver: str = ""
    neval_obj: int = 0
    neval_cons: int = 0
    restarts: Optional[int] = None
    history: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def status_message(self) -> str:
        return STATUS_MESSAGES[self.status]

    @property
    def success(self) -> bool:
        return self.status in (Status.ACCEPTABLE, Status.SMALL_STEP, Status.STALLED)

    def summary(self) -> str:
        lines = [
            f"Execution stats ({self.solver}): {self.status_message}",
            f"  status          : {self.status.value}",
            f"  objective       : {self.objective:.8e}",
        ]
        if self.primal_feas is not None:
            lines.append(f"  primal feas.    : {self.primal_feas:.2e}")
        lines += [
            f"  solution        : {np.array2string(np.asarray(self.solution), precision=6)}",
            f"  iterations      : {self.iter}",
            f"  #f / #c         : {self.neval_obj} / {self.neval_cons}",
            f"  elapsed time    : {self.elapsed_time:.3f}s",
        ]
        if self.restarts is not None:
            lines.append(f"  restarts        : {self.restarts}")
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.summary()
