import datetime as _dt

import pytest

from config import EngineSettings
from models import DriftProjectionParams, HistoryPoint, RetirementParams


@pytest.fixture
def settings() -> EngineSettings:
    return EngineSettings()


@pytest.fixture
def retirement_params() -> RetirementParams:
    return RetirementParams(
        current_age=30,
        retirement_age=60,
        current_corpus=1_000_000,
        monthly_contribution=20_000,
        monthly_expenses=50_000,
        expected_return=10,
        inflation=6,
        volatility=15,
        num_simulations=200,
        forecast_years=40,
    )


@pytest.fixture
def history() -> list[HistoryPoint]:
    start = _dt.date(2024, 1, 1)
    values = [1_000_000 * (1.0004 ** i) * (1.01 if i % 2 else 0.99) for i in range(60)]
    return [
        HistoryPoint(date=start + _dt.timedelta(days=i), value=value)
        for i, value in enumerate(values)
    ]


@pytest.fixture
def drift_params(history) -> DriftProjectionParams:
    return DriftProjectionParams(history=history, years_to_project=1, num_simulations=40)
