import datetime as _dt
import math

import numpy as np
import pytest

from config import EngineSettings
from models import DriftProjectionParams, GoalTargetParams, LifeEvent, RetirementParams
from sampler import BoxMullerSampler, CentralLimitSampler
from simulation import DriftProjectionSimulator, GoalTargetSimulator, RetirementSimulator
from tests.helpers import is_non_decreasing


def _goal_params(**overrides) -> GoalTargetParams:
    data = dict(
        current_wealth=500_000,
        monthly_sip=10_000,
        years=10,
        inflation_rate=6,
        is_inflation_adjusted=False,
        risk_profile="balanced",
        scenario="base",
        target_amount=3_000_000,
        num_simulations=300,
    )
    data.update(overrides)
    return GoalTargetParams(**data)


# ---------------------------------------------------------------------------
# Retirement
# ---------------------------------------------------------------------------

def test_retirement_example_scenario(retirement_params):
    result = RetirementSimulator(retirement_params, sampler=BoxMullerSampler(seed=1)).run()

    assert math.isfinite(result.success_rate)
    assert 0.0 <= result.success_rate <= 100.0
    assert len(result.simulations) <= 50
    for path in result.simulations:
        assert len(path) == retirement_params.forecast_years + 1
        assert [point.year for point in path] == list(range(30, 71))
        assert all(point.corpus >= 0 for point in path)


def test_retirement_without_savings_is_always_ruined():
    params = RetirementParams(
        current_age=30,
        retirement_age=40,
        current_corpus=0,
        monthly_contribution=0,
        monthly_expenses=1_000,
        expected_return=10,
        inflation=6,
        volatility=15,
        num_simulations=100,
        forecast_years=20,
    )

    result = RetirementSimulator(params, sampler=BoxMullerSampler(seed=2)).run()

    assert result.success_rate == 0.0
    assert all(point.corpus == 0 for path in result.simulations for point in path)


def test_retirement_without_expenses_never_fails():
    params = RetirementParams(
        current_age=50,
        retirement_age=55,
        current_corpus=100_000,
        monthly_contribution=1_000,
        monthly_expenses=0,
        expected_return=6,
        inflation=3,
        volatility=5,
        num_simulations=50,
        forecast_years=10,
    )

    result = RetirementSimulator(params, sampler=BoxMullerSampler(seed=3)).run()

    assert result.success_rate == 100.0


def test_retirement_retains_configured_number_of_paths(retirement_params):
    settings = EngineSettings(retained_paths=5)

    result = RetirementSimulator(retirement_params, sampler=BoxMullerSampler(seed=4), settings=settings).run()

    assert len(result.simulations) == 5


def test_retirement_progress_cadence(retirement_params):
    progress = []

    RetirementSimulator(retirement_params, sampler=BoxMullerSampler(seed=5)).run(progress=progress.append)

    assert progress == [0, 25, 50, 75]


def test_retirement_paths_start_from_current_corpus(retirement_params):
    result = RetirementSimulator(retirement_params, sampler=BoxMullerSampler(seed=6)).run()

    assert all(path[0].corpus == 1_000_000 for path in result.simulations)


def test_retirement_overflowing_corpus_is_reported_not_raised():
    params = RetirementParams(
        current_age=30,
        retirement_age=90,
        current_corpus=1e10,
        monthly_contribution=1_000,
        monthly_expenses=1_000,
        expected_return=1e300,
        inflation=6,
        volatility=0,
        num_simulations=5,
        forecast_years=3,
    )

    result = RetirementSimulator(params, sampler=BoxMullerSampler(seed=1)).run()

    assert result.success_rate == 100.0
    assert all(math.isinf(path[-1].corpus) for path in result.simulations)


# ---------------------------------------------------------------------------
# Goal target
# ---------------------------------------------------------------------------

def test_goal_bands_are_ordered_and_cover_every_year():
    params = _goal_params()

    result = GoalTargetSimulator(params, sampler=CentralLimitSampler(seed=1)).run(start_year=2030)

    assert [band.year for band in result.chart_data] == list(range(2030, 2041))
    for band in result.chart_data:
        assert 0 <= band.p10 <= band.p50 <= band.p90
        assert band.target == params.target_amount
    assert 0.0 <= result.success_probability <= 100.0
    assert result.p50_final == result.chart_data[-1].p50


def test_goal_first_year_is_current_wealth():
    result = GoalTargetSimulator(_goal_params(), sampler=CentralLimitSampler(seed=2)).run()

    first = result.chart_data[0]
    assert first.p10 == first.p50 == first.p90 == 500_000


@pytest.mark.parametrize("scenario", ["bear", "base", "bull"])
@pytest.mark.parametrize("sampler_cls", [CentralLimitSampler, BoxMullerSampler])
def test_goal_already_reached_succeeds(scenario, sampler_cls):
    params = _goal_params(
        current_wealth=1_000_000,
        monthly_sip=0,
        years=1,
        scenario=scenario,
        target_amount=100_000,
    )

    result = GoalTargetSimulator(params, sampler=sampler_cls(seed=9)).run()

    assert result.success_probability == 100.0


def test_goal_inflation_adjusts_target_and_snapshots():
    params = _goal_params(is_inflation_adjusted=True, years=5)
    nominal = _goal_params(is_inflation_adjusted=False, years=5)

    real_result = GoalTargetSimulator(params, sampler=CentralLimitSampler(seed=3)).run()
    nominal_result = GoalTargetSimulator(nominal, sampler=CentralLimitSampler(seed=3)).run()

    for y, band in enumerate(real_result.chart_data):
        assert band.target == pytest.approx(3_000_000 / 1.06 ** y)
        assert band.p50 == pytest.approx(nominal_result.chart_data[y].p50 / 1.06 ** y)


def test_goal_wealth_is_floored_at_zero():
    params = _goal_params(current_wealth=10_000, monthly_sip=-50_000, years=3)

    simulator = GoalTargetSimulator(params, sampler=CentralLimitSampler(seed=4))
    snapshots = simulator.simulate_snapshots()

    assert np.all(snapshots >= 0)
    assert np.all(snapshots[:, 1:] == 0)


def test_goal_progress_is_non_decreasing():
    progress = []

    GoalTargetSimulator(_goal_params(), sampler=CentralLimitSampler(seed=5)).run(progress=progress.append)

    assert progress == [0, 33, 67]
    assert is_non_decreasing(progress)


# ---------------------------------------------------------------------------
# Drift projection
# ---------------------------------------------------------------------------

def test_life_event_adds_exactly_its_amount_on_its_day(drift_params, history):
    day = 45
    event_date = history[-1].date + _dt.timedelta(days=day)
    with_event = drift_params.model_copy(
        update={"life_events": [LifeEvent(date=event_date, amount=100_000, category="INCOME")]}
    )

    baseline = DriftProjectionSimulator(drift_params, sampler=BoxMullerSampler(seed=21)).simulate_paths()
    shifted = DriftProjectionSimulator(with_event, sampler=BoxMullerSampler(seed=21)).simulate_paths()

    assert np.array_equal(baseline[:, :day], shifted[:, :day])
    assert np.allclose(shifted[:, day] - baseline[:, day], 100_000, rtol=0, atol=1e-6)


def test_drift_projection_output_shape(drift_params, history):
    event_date = history[-1].date + _dt.timedelta(days=45)
    params = drift_params.model_copy(
        update={"life_events": [LifeEvent(date=event_date, amount=25_000, category="INCOME")]}
    )

    points = DriftProjectionSimulator(params, sampler=BoxMullerSampler(seed=1)).run()

    assert len(points) == math.ceil(365 / 30)
    assert points[0].date == "2024-02-29"
    assert points[1].date == "2024-03-30"
    for point in points:
        assert 0 <= point.bear <= point.base <= point.bull
    markers = [point.event_marker for point in points]
    assert markers[1] == "INCOME"
    assert markers.count("INCOME") == 1
    assert markers.count(None) == len(points) - 1


def test_drift_expense_floors_paths_at_zero(drift_params, history):
    event_date = history[-1].date + _dt.timedelta(days=10)
    params = drift_params.model_copy(
        update={"life_events": [LifeEvent(date=event_date, amount=1e12, category="EXPENSE")]}
    )

    paths = DriftProjectionSimulator(params, sampler=BoxMullerSampler(seed=2)).simulate_paths()

    assert np.all(paths >= 0)
    assert np.all(paths[:, 10:] == 0)


def test_drift_without_history_returns_empty(history):
    params = DriftProjectionParams(history=history[:1])

    assert DriftProjectionSimulator(params, sampler=BoxMullerSampler(seed=1)).run() == []


def test_drift_uses_default_parameters_for_degenerate_history(history):
    params = DriftProjectionParams(history=history[:2], years_to_project=1, num_simulations=10)
    simulator = DriftProjectionSimulator(params, sampler=BoxMullerSampler(seed=1))

    estimate = simulator.estimate()
    points = simulator.run()

    assert not estimate.from_history
    assert len(points) == 13


def test_drift_same_seed_is_reproducible(drift_params):
    a = DriftProjectionSimulator(drift_params, sampler=BoxMullerSampler(seed=8)).run()
    b = DriftProjectionSimulator(drift_params, sampler=BoxMullerSampler(seed=8)).run()

    assert [p.to_wire() for p in a] == [p.to_wire() for p in b]
