# branin.py
# Small runs of the derivative-free solvers on Rosenbrock and Branin.
# Run from the repository root:  python -m dfsolve.examples.branin

import logging
import math

import numpy as np

from dfsolve import Model, Status, mads, nelder_mead

# ---------------------------
# Test problems
# ---------------------------

def rosenbrock(x: np.ndarray, a: float = 1.0, b: float = 100.0) -> float:
    """
    Rosenbrock function in 2D:
        f(x, y) = (a - x)^2 + b (y - x^2)^2
    Global min at (x, y) = (a, a^2), f = 0
    """
    x1, x2 = x
    return (a - x1) ** 2 + b * (x2 - x1 ** 2) ** 2


def branin(x: np.ndarray) -> float:
    """
    Branin (2D) on domain x1 in [-5, 10], x2 in [0, 15].
    Standard form (global minima ~ 0.397887 at three points).
    """
    x1, x2 = x
    a = 1.0
    b = 5.1 / (4.0 * math.pi ** 2)
    c = 5.0 / math.pi
    r = 6.0
    s = 10.0
    t = 1.0 / (8.0 * math.pi)
    return a * (x2 - b * x1 ** 2 + c * x1 - r) ** 2 + s * (1 - t) * math.cos(x1) + s


# keep inside a circle:  x1^2 + x2^2 - R^2 <= 0
def circle_ineq(R: float):
    def g(x: np.ndarray) -> float:
        return x[0] ** 2 + x[1] ** 2 - R ** 2
    return g


def run(name: str, model: Model, solver, **options):
    print("=" * 80)
    print(f"{name}: x0={model.starting_point()}")
    model.reset_counters()
    stats = solver(model, **options)
    print(stats.summary())
    if stats.status not in (Status.ACCEPTABLE, Status.SMALL_STEP):
        print(f"-> stopped on budget: {stats.status.value}")
    return stats


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    np.set_printoptions(precision=6, suppress=True)

    rb = Model(rosenbrock, np.array([-1.2, 1.0]), name="rosenbrock")
    run("Rosenbrock (nelder_mead)", rb, nelder_mead, tol=1e-8, max_eval=5000)
    run("Rosenbrock (mads)", rb, mads, seed=0, max_eval=4000,
        stop_with_small_step=True, steptol=1e-10)

    br = Model(branin, np.array([3.0, 0.5]), lvar=[-5.0, 0.0], uvar=[10.0, 15.0],
               c_ineq=[circle_ineq(3.0)], name="branin-circle")
    run("Branin + circle g<=0 (mads)", br, mads, seed=1, greedy=True, verbose=True,
        max_eval=2000)
