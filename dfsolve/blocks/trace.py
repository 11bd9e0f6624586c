# trace.py
# Iteration trace shared by the solvers: fixed-width rows kept in memory
# and sent to the logging module.

import logging
import time
from typing import Any, Dict, List, Optional, Sequence, Tuple

Column = Tuple[str, str, str]  # (key, header, format spec)

MADS_COLUMNS: Tuple[Column, ...] = (
    ("iter", "k", ">5d"),
    ("nf", "#f", ">6d"),
    ("f", "f(x)", ">13.6e"),
    ("P", "P(x)", ">9.2e"),
    ("delta", "Δ", ">9.2e"),
    ("mu", "μ", ">9.2e"),
    ("status", "status", "<s"),
)

NELDER_MEAD_COLUMNS: Tuple[Column, ...] = (
    ("iter", "k", ">5d"),
    ("nf", "#f", ">6d"),
    ("f", "f(x)", ">13.6e"),
    ("diam", "‖x₁ - xₙ₊₁‖", ">12.4e"),
    ("status", "status", "<s"),
)


class IterationLogger:
    """Per-iteration trace: rows are kept in ``history`` and sent to logging.

    Rows go out at INFO when ``verbose`` and at DEBUG otherwise; a header is
    repeated every ``header_every`` rows. Nothing here feeds back into the
    solvers.
    """

    def __init__(self, columns: Sequence[Column], verbose: bool = False,
                 header_every: int = 20):
        self.columns = tuple(columns)
        self.level = logging.INFO if verbose else logging.DEBUG
        self.header_every = int(header_every)
        self.history: List[Dict[str, Any]] = []
        self.t0 = time.perf_counter()
        self._rows_since_header: Optional[int] = None

    def _width(self, spec: str) -> int:
        digits = "".join(ch for ch in spec if ch.isdigit() or ch == ".")
        head = digits.split(".")[0]
        return int(head) if head else 8

    def _cell(self, value: Any, spec: str) -> str:
        w = self._width(spec)
        if value is None:
            return " " * w
        try:
            return format(value, spec)
        except (TypeError, ValueError):
            return f"{str(value):>{w}}"

    def header(self) -> str:
        cells = []
        for _, title, spec in self.columns:
            w = self._width(spec)
            cells.append(f"{title:<{w}}" if spec.startswith("<") else f"{title:>{w}}")
        line = "  ".join(cells)
        logging.log(self.level, line)
        self._rows_since_header = 0
        return line

    def row(self, **values: Any) -> str:
        record = {key: values.get(key) for key, _, _ in self.columns}
        record.update(values)
        record["time"] = time.perf_counter() - self.t0
        self.history.append(record)

        if self._rows_since_header is None or self._rows_since_header >= self.header_every:
            self.header()
        line = "  ".join(self._cell(record[key], spec) for key, _, spec in self.columns)
        logging.log(self.level, line.rstrip())
        self._rows_since_header += 1
        return line
