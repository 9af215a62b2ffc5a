"""
General wealth projection with preset return scenarios and black-swan shocks.

These run in-process and are independent of the compute-unit protocol; they
reuse the same sampler and sort-and-index percentiles as the strategies.
"""

from typing import Dict, List, Optional, Sequence

import numpy as np
from loguru import logger
from pydantic import BaseModel, Field

from aggregation import percentile, summary_statistics
from constants import MONTHS_PER_YEAR
from sampler import BoxMullerSampler, GaussianSampler

PERCENTILE_FRACTIONS = {
    "p5": 0.05,
    "p10": 0.10,
    "p25": 0.25,
    "p50": 0.50,
    "p75": 0.75,
    "p90": 0.90,
    "p95": 0.95,
}

# Monthly chance of a black-swan month (~1% a year) and its return range.
BLACK_SWAN_MONTHLY_PROBABILITY = 0.001
BLACK_SWAN_MIN_DROP = 0.15
BLACK_SWAN_EXTRA_DROP = 0.15


class Scenario(BaseModel):
    name: str
    expected_return: float
    volatility: float
    description: str = ""


class BlackSwanEvent(BaseModel):
    name: str
    impact: float = Field(..., ge=-1.0, le=0.0, description="Fractional drop, e.g. -0.52.")
    recovery_years: float
    probability: float = Field(..., ge=0.0, le=1.0, description="Annual probability.")


PRESET_SCENARIOS: List[Scenario] = [
    Scenario(name="Conservative", expected_return=0.08, volatility=0.10, description="Debt-heavy, low risk"),
    Scenario(name="Balanced", expected_return=0.11, volatility=0.14, description="Mixed equity-debt"),
    Scenario(name="Aggressive", expected_return=0.14, volatility=0.20, description="Equity-heavy growth"),
    Scenario(name="Index Only", expected_return=0.12, volatility=0.15, description="Broad index benchmark"),
]

BLACK_SWAN_EVENTS: List[BlackSwanEvent] = [
    BlackSwanEvent(name="2008 Financial Crisis", impact=-0.52, recovery_years=4, probability=0.05),
    BlackSwanEvent(name="COVID-19 Crash", impact=-0.38, recovery_years=0.5, probability=0.03),
    BlackSwanEvent(name="Tech Bubble Burst", impact=-0.45, recovery_years=3, probability=0.04),
    BlackSwanEvent(name="Currency Crisis", impact=-0.30, recovery_years=2, probability=0.06),
    BlackSwanEvent(name="Hyperinflation", impact=-0.60, recovery_years=5, probability=0.02),
    BlackSwanEvent(name="1997 Asian Financial Crisis", impact=-0.35, recovery_years=2.5, probability=0.04),
    BlackSwanEvent(name="Eurozone Debt Crisis (2011)", impact=-0.25, recovery_years=1.5, probability=0.05),
    BlackSwanEvent(name="Flash Crash (2010)", impact=-0.10, recovery_years=0.1, probability=0.08),
    BlackSwanEvent(name="Geopolitical Shock (War)", impact=-0.28, recovery_years=1, probability=0.06),
]


class PercentileSet(BaseModel):
    p5: float
    p10: float
    p25: float
    p50: float
    p75: float
    p90: float
    p95: float


class YearlyPercentiles(PercentileSet):
    year: int


class WealthStatistics(BaseModel):
    mean: float
    std: float
    min: float
    max: float


class WealthProjection(BaseModel):
    percentiles: PercentileSet
    success_probability: float = Field(..., ge=0.0, le=100.0)
    yearly_paths: List[YearlyPercentiles]
    statistics: WealthStatistics


def _percentile_set(values: Sequence[float]) -> Dict[str, float]:
    return {key: percentile(values, fraction) for key, fraction in PERCENTILE_FRACTIONS.items()}


def run_wealth_projection(
    current_principal: float,
    monthly_contribution: float,
    years: int,
    target_wealth: float,
    expected_return: float = 0.12,
    volatility: float = 0.15,
    include_black_swan: bool = False,
    iterations: int = 1000,
    sampler: Optional[GaussianSampler] = None,
) -> WealthProjection:
    """
    Monthly projection of a lump sum plus contributions.

    With ``include_black_swan`` any month may, with a small probability, be
    replaced by a crash of 15% to 30%. Wealth never goes below zero.
    """
    if iterations <= 0:
        raise ValueError("iterations must be positive")
    sampler = sampler or BoxMullerSampler()
    monthly_mean = expected_return / MONTHS_PER_YEAR
    monthly_vol = volatility / np.sqrt(MONTHS_PER_YEAR)
    months = years * MONTHS_PER_YEAR

    yearly = np.empty((iterations, years + 1))
    successes = 0
    for i in range(iterations):
        shocks = sampler.sample(months).tolist()
        if include_black_swan:
            triggers = sampler.uniform(months).tolist()
            severities = sampler.uniform(months).tolist()
        wealth = current_principal
        yearly[i, 0] = wealth

        for m in range(months):
            period_return = monthly_mean + monthly_vol * shocks[m]
            if include_black_swan and triggers[m] < BLACK_SWAN_MONTHLY_PROBABILITY:
                period_return = -BLACK_SWAN_MIN_DROP - severities[m] * BLACK_SWAN_EXTRA_DROP
            wealth = max(0.0, wealth * (1 + period_return) + monthly_contribution)
            if (m + 1) % MONTHS_PER_YEAR == 0:
                yearly[i, (m + 1) // MONTHS_PER_YEAR] = wealth

        if wealth >= target_wealth:
            successes += 1

    final_wealths = yearly[:, -1]
    yearly_paths = [
        YearlyPercentiles(year=y, **_percentile_set(yearly[:, y])) for y in range(years + 1)
    ]
    return WealthProjection(
        percentiles=PercentileSet(**_percentile_set(final_wealths)),
        success_probability=successes / iterations * 100.0,
        yearly_paths=yearly_paths,
        statistics=WealthStatistics(**summary_statistics(final_wealths)),
    )


def compare_scenarios(
    current_principal: float,
    monthly_contribution: float,
    years: int,
    target_wealth: float,
    scenarios: Sequence[Scenario] = PRESET_SCENARIOS,
    iterations: int = 1000,
    seed: Optional[int] = None,
) -> Dict[str, WealthProjection]:
    results: Dict[str, WealthProjection] = {}
    for scenario in scenarios:
        logger.debug(f"Projecting scenario '{scenario.name}'")
        results[scenario.name] = run_wealth_projection(
            current_principal,
            monthly_contribution,
            years,
            target_wealth,
            expected_return=scenario.expected_return,
            volatility=scenario.volatility,
            iterations=iterations,
            sampler=BoxMullerSampler(seed=seed),
        )
    return results


def calculate_recovery_path(
    current_principal: float,
    monthly_contribution: float,
    black_swan_event: BlackSwanEvent,
    years: int = 10,
    iterations: int = 1000,
    sampler: Optional[GaussianSampler] = None,
) -> List[YearlyPercentiles]:
    """Yearly bands after a crash, targeting a return to the pre-crash value."""
    post_crash_value = current_principal * (1 + black_swan_event.impact)
    projection = run_wealth_projection(
        post_crash_value,
        monthly_contribution,
        years,
        current_principal,
        expected_return=0.12,
        volatility=0.15,
        iterations=iterations,
        sampler=sampler,
    )
    return projection.yearly_paths
