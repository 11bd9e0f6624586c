import logging
import time

import numpy as np
import pytest

from dfsolve import MADSConfig, MADSSolver, Model, Status, mads
from dfsolve.blocks.aux import EPS


def _weighted_quadratic(x):
    return 2.0 * (x[0] - 3.0) ** 2 + (x[1] - 3.0) ** 2


def test_quadratic_1d_converges(quad1d):
    stats = mads(quad1d, seed=0, max_eval=4000)
    assert abs(stats.solution[0] - 3.0) < 1e-2
    assert stats.primal_feas == 0.0
    assert all(row["P"] == 0.0 for row in stats.history)
    assert stats.status == Status.MAX_EVAL


def test_default_budget_is_200n(quad1d):
    solver = MADSSolver(quad1d, seed=0)
    assert solver.max_eval == 200
    stats = solver.solve()
    assert stats.status == Status.MAX_EVAL
    # a poll spends at most 2n = 2 evaluations
    assert 200 <= stats.neval_obj <= 201


def test_max_iter_zero_returns_initial_point(quad1d):
    stats = mads(quad1d, max_iter=0)
    assert stats.status == Status.MAX_ITER
    assert stats.iter == 0
    np.testing.assert_array_equal(stats.solution, [0.0])
    assert stats.objective == 9.0
    assert stats.primal_feas == 0.0
    assert quad1d.neval_obj == 1
    assert len(stats.history) == 1


def test_max_eval_one_stops_after_initial_evaluation(rosen):
    stats = mads(rosen, max_eval=1)
    assert stats.status == Status.MAX_EVAL
    assert stats.iter == 0
    assert stats.neval_obj == 1


def test_evaluation_counter_non_decreasing_and_bounded(rosen):
    stats = mads(rosen, seed=4, max_eval=150)
    counts = [row["nf"] for row in stats.history]
    assert counts == sorted(counts)
    assert stats.status == Status.MAX_EVAL
    assert 150 <= stats.neval_obj <= 150 + 2 * rosen.n - 1


def test_mesh_grows_on_success_and_shrinks_on_failure(rosen):
    stats = mads(rosen, seed=11, max_eval=600)
    rows = stats.history
    assert any(r["decrease"] for r in rows[1:])
    assert any(not r["decrease"] for r in rows[1:])
    for prev, cur in zip(rows, rows[1:]):
        if cur["decrease"]:
            assert cur["delta"] > prev["delta"]
        else:
            assert cur["delta"] < prev["delta"] or cur["delta"] == EPS
        assert cur["delta"] >= EPS


def test_opportunistic_stops_at_first_improvement(fixed_source):
    m = Model(_weighted_quadratic, np.zeros(2))
    stats = mads(m, source=fixed_source([1.0, 0.0]), max_iter=1)
    # H = diag(-1, 1): (-1, 0) is worse, (0, 1) improves
    np.testing.assert_allclose(stats.solution, [0.0, 1.0])
    assert m.neval_obj == 1 + 2
    assert stats.history[-1]["delta"] == 4.0


def test_greedy_scans_every_direction(fixed_source):
    m = Model(_weighted_quadratic, np.zeros(2))
    stats = mads(m, source=fixed_source([1.0, 0.0]), max_iter=1, greedy=True)
    np.testing.assert_allclose(stats.solution, [1.0, 0.0])
    assert stats.objective == 17.0
    assert m.neval_obj == 1 + 4


def test_success_run_mesh_law(fixed_source):
    # always improving: every poll succeeds and seq keeps growing
    m = Model(lambda x: -x[0], np.zeros(1))
    solver = MADSSolver(m, source=fixed_source([1.0]), max_iter=3)
    stats = solver.solve()
    deltas = [r["delta"] for r in stats.history]
    assert deltas == [1.0, 4.0, 64.0, 64.0 * 4.0 ** 3]
    assert solver.state.seq == 3


def test_failure_doubles_penalty_when_infeasible(fixed_source):
    # x <= 0 enforced by the bound; the objective pulls to the right
    m = Model(lambda x: -10.0 * x[0], np.array([5.0]), uvar=[0.0])
    stats = mads(m, source=fixed_source([1.0]), max_iter=1)
    row = stats.history[-1]
    assert not row["decrease"]
    assert row["mu"] == 2.0
    assert row["delta"] == 0.5
    np.testing.assert_array_equal(stats.solution, [5.0])
    assert stats.primal_feas == 25.0


def test_penalty_unchanged_when_feasible(fixed_source):
    m = Model(lambda x: 0.0, np.array([0.0]), uvar=[1.0])
    stats = mads(m, source=fixed_source([1.0]), max_iter=4)
    assert all(r["mu"] == 1.0 for r in stats.history)


def test_small_step_stopping(quad1d):
    stats = mads(quad1d, seed=2, stop_with_small_step=True, steptol=1e-3, max_eval=-1)
    assert stats.status == Status.SMALL_STEP
    assert stats.history[-1]["delta"] <= 1e-3
    assert stats.objective < 9.0


def test_initial_mesh_from_bounds():
    m = Model(lambda x: x @ x, np.zeros(2), lvar=[-1.0, -0.5], uvar=[1.0, 0.5])
    stats = mads(m, max_iter=0)
    assert stats.history[0]["delta"] == pytest.approx(0.1)


def test_bound_constrained_quadratic():
    m = Model(lambda x: (x[0] - 3.0) ** 2, np.array([0.0]), uvar=[2.0])
    stats = mads(m, seed=5, max_eval=1000)
    assert abs(stats.solution[0] - 2.0) < 2e-2
    assert stats.primal_feas < 1e-3


def test_inequality_constrained_quadratic():
    m = Model(
        lambda x: (x[0] - 2.0) ** 2 + (x[1] - 2.0) ** 2,
        np.zeros(2),
        c_ineq=[lambda x: x[0] + x[1] - 2.0],
    )
    stats = mads(m, seed=8, max_eval=3000, greedy=True)
    assert np.linalg.norm(stats.solution - 1.0) < 0.15
    assert stats.primal_feas < 1e-2
    # one constraint evaluation per objective evaluation
    assert m.neval_cons == m.neval_obj


# ---------------------------------------------------------------------------
# The stagnation test compares a poll slope estimate against the function
# tolerance. By default the estimate is never updated, so "stalled" cannot
# occur; estimate_slope=True turns the estimate on.
# ---------------------------------------------------------------------------
def test_stalled_is_unreachable_by_default():
    m = Model(lambda x: 1.0, np.zeros(2))
    stats = mads(m, seed=0)
    assert stats.status == Status.MAX_EVAL
    assert stats.iter > 1


def test_stalled_with_slope_estimate():
    m = Model(lambda x: 1.0, np.zeros(2))
    stats = mads(m, seed=0, estimate_slope=True)
    assert stats.status == Status.STALLED
    assert stats.iter == 1
    assert m.neval_obj == 1 + 4


def test_seed_reproducibility(rosen):
    a = mads(rosen, seed=123, max_eval=200)
    rosen.reset_counters()
    b = mads(rosen, seed=123, max_eval=200)
    np.testing.assert_array_equal(a.solution, b.solution)
    assert a.iter == b.iter


def test_halton_directions(rosen):
    stats = mads(rosen, seed=0, directions="halton", max_eval=2000)
    assert stats.objective < rosen.obj(np.array([-1.2, 1.0]))


def test_options_do_not_mutate_config(quad1d):
    cfg = MADSConfig(greedy=True)
    solver = MADSSolver(quad1d, config=cfg, max_iter=2)
    assert solver.cfg.max_iter == 2 and solver.cfg.greedy
    assert cfg.max_iter == -1


def test_invalid_arguments(quad1d):
    with pytest.raises(ValueError):
        mads(quad1d, x=np.zeros(2))
    with pytest.raises(ValueError):
        mads(quad1d, tol=1e-3)


def test_trace_rows_logged_when_verbose(quad1d, caplog):
    with caplog.at_level(logging.INFO):
        mads(quad1d, seed=0, max_iter=3, verbose=True)
    text = caplog.text
    assert "f(x)" in text and "Δ" in text
    assert "Decrease" in text or "No decrease" in text


def test_repeated_solve_starts_fresh():
    m = Model(lambda x: -10.0 * x[0], np.array([5.0]), uvar=[0.0])
    solver = MADSSolver(m, seed=0, max_iter=3)
    a = solver.solve()
    assert a.history[-1]["mu"] > 1.0
    b = solver.solve()
    assert b.history[0]["mu"] == 1.0
    assert len(a.history) == 4
    assert len(b.history) == 4
    assert b.history is not a.history


def test_time_budget():
    def slow(x):
        time.sleep(0.005)
        return (x[0] - 3.0) ** 2

    m = Model(slow, np.array([0.0]))
    stats = mads(m, seed=0, max_time=0.01, max_eval=-1)
    assert stats.status == Status.MAX_TIME
    assert stats.elapsed_time > 0.01
    assert stats.iter >= 1
