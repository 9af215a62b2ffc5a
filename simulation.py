import datetime as _dt
from typing import Callable, List, Optional, Tuple

import numpy as np
import pandas as pd
from loguru import logger

from aggregation import downsample_indices, percentile_bands, success_share
from cashflows import EventMap, build_event_map, event_marker
from config import EngineSettings
from constants import MONTHS_PER_YEAR, P10, P50, P90
from estimator import DriftEstimate, estimate_drift
from models import (
    DriftProjectionParams,
    GoalTargetParams,
    GoalTargetResult,
    PathPoint,
    PercentileBand,
    ProjectionPoint,
    RetirementParams,
    RetirementResult,
    SamplerName,
    SimulatedPath,
)
from sampler import GaussianSampler, make_sampler
from utils import _generate_seed_from_timestamp

ProgressCallback = Callable[[int], None]


class MonteCarloStrategy:
    """
    Common shape of the three simulators: for each simulation draw the path's
    shocks from the injected sampler, step wealth forward, apply cashflows,
    floor at zero and record the path.
    """

    kind: str = "ABSTRACT"
    default_sampler: SamplerName = "box_muller"
    progress_setting: str = "retirement_progress_interval"

    def __init__(
        self,
        params,
        sampler: Optional[GaussianSampler] = None,
        settings: Optional[EngineSettings] = None,
        seed: Optional[int] = None,
    ):
        self.params = params
        self.settings = settings or EngineSettings()
        if sampler is None:
            seed = seed if seed is not None else _generate_seed_from_timestamp()
            sampler = make_sampler(self.default_sampler, seed)
        self.sampler = sampler
        logger.debug(
            f"{self.kind} simulator initialized with {self.sampler.name} sampler (seed: {self.sampler.seed})"
        )

    @property
    def progress_interval(self) -> int:
        return getattr(self.settings, self.progress_setting)

    def _report_progress(
        self, progress: Optional[ProgressCallback], sim: int, total: int
    ) -> None:
        if progress is not None and sim % self.progress_interval == 0:
            progress(round(sim / total * 100))


class RetirementSimulator(MonteCarloStrategy):
    """Yearly accumulation until retirement, then inflation-indexed drawdown."""

    kind = "RETIREMENT"
    default_sampler = "box_muller"
    progress_setting = "retirement_progress_interval"

    params: RetirementParams

    def _expense_at_retirement(self) -> float:
        p = self.params
        years_to_retirement = p.retirement_age - p.current_age
        return p.monthly_expenses * (1 + p.inflation / 100) ** years_to_retirement

    def _run_single_path(self, expense_at_retirement: float) -> Tuple[List[float], bool]:
        p = self.params
        growth = self.settings.contribution_growth_rate
        inflation = p.inflation / 100
        shocks = self.sampler.sample(p.forecast_years).tolist()

        corpus = max(0.0, p.current_corpus)
        trajectory = [corpus]
        ruined = False

        for year in range(1, p.forecast_years + 1):
            age = p.current_age + year
            market_return = p.expected_return / 100 + (p.volatility / 100) * shocks[year - 1]
            corpus *= 1 + market_return

            if age < p.retirement_age:
                corpus += p.monthly_contribution * MONTHS_PER_YEAR * (1 + growth) ** year
            else:
                corpus -= (
                    expense_at_retirement
                    * MONTHS_PER_YEAR
                    * (1 + inflation) ** (age - p.retirement_age)
                )

            if corpus < 0:
                corpus = 0.0
                ruined = True
            trajectory.append(corpus)

        return trajectory, ruined

    def _to_path(self, trajectory: List[float], ruined: bool) -> SimulatedPath:
        start_age = self.params.current_age
        return SimulatedPath(
            points=[
                PathPoint(year=start_age + offset, corpus=float(np.round(value)))
                for offset, value in enumerate(trajectory)
            ],
            ruined=ruined,
        )

    def run(self, progress: Optional[ProgressCallback] = None) -> RetirementResult:
        p = self.params
        expense_at_retirement = self._expense_at_retirement()
        retained: List[SimulatedPath] = []
        successful_paths = 0

        for sim in range(p.num_simulations):
            trajectory, ruined = self._run_single_path(expense_at_retirement)
            if not ruined:
                successful_paths += 1
            # Paths beyond the retained ones only feed the success rate.
            if sim < self.settings.retained_paths:
                retained.append(self._to_path(trajectory, ruined))
            self._report_progress(progress, sim, p.num_simulations)

        success_rate = successful_paths / p.num_simulations * 100.0
        logger.debug(
            f"Retirement: {successful_paths}/{p.num_simulations} paths survived ({success_rate:.2f}%)."
        )
        return RetirementResult(
            simulations=[path.points for path in retained],
            success_rate=success_rate,
        )


class GoalTargetSimulator(MonteCarloStrategy):
    """Monthly accumulation towards a target, reported as yearly percentile bands."""

    kind = "GOAL_TARGET"
    # Historical output of this strategy came from the six-uniform approximation.
    default_sampler = "central_limit"
    progress_setting = "goal_progress_interval"

    params: GoalTargetParams

    def _deflator(self, years: float) -> float:
        p = self.params
        if not p.is_inflation_adjusted:
            return 1.0
        return (1 + p.inflation_rate / 100) ** years

    def target_for_year(self, year: int) -> float:
        return self.params.target_amount / self._deflator(year)

    def simulate_snapshots(self, progress: Optional[ProgressCallback] = None) -> np.ndarray:
        """(simulations x years+1) matrix of yearly wealth, deflated if requested."""
        p = self.params
        assumption = self.settings.return_assumption(p.risk_profile, p.scenario)
        monthly_mean = assumption.mean / MONTHS_PER_YEAR
        monthly_vol = assumption.std_dev / np.sqrt(MONTHS_PER_YEAR)
        months = p.years * MONTHS_PER_YEAR

        snapshots = np.empty((p.num_simulations, p.years + 1))
        for sim in range(p.num_simulations):
            shocks = self.sampler.sample(months).tolist()
            wealth = max(0.0, p.current_wealth)
            snapshots[sim, 0] = wealth

            for m in range(1, months + 1):
                monthly_return = monthly_mean + monthly_vol * shocks[m - 1]
                wealth = wealth * (1 + monthly_return) + p.monthly_sip
                if wealth < 0:
                    wealth = 0.0
                if m % MONTHS_PER_YEAR == 0:
                    snapshots[sim, m // MONTHS_PER_YEAR] = wealth / self._deflator(
                        m / MONTHS_PER_YEAR
                    )

            self._report_progress(progress, sim, p.num_simulations)
        return snapshots

    def run(
        self,
        progress: Optional[ProgressCallback] = None,
        start_year: Optional[int] = None,
    ) -> GoalTargetResult:
        p = self.params
        start_year = start_year if start_year is not None else _dt.date.today().year
        snapshots = self.simulate_snapshots(progress)
        bands = percentile_bands(snapshots, (P10, P50, P90))

        chart_data = [
            PercentileBand(
                year=start_year + y,
                p10=float(bands[P10][y]),
                p50=float(bands[P50][y]),
                p90=float(bands[P90][y]),
                target=self.target_for_year(y),
            )
            for y in range(p.years + 1)
        ]
        success_probability = success_share(snapshots[:, -1], self.target_for_year(p.years))
        logger.debug(
            f"Goal target: {success_probability:.2f}% of paths reach the target after {p.years} years."
        )
        return GoalTargetResult(
            chart_data=chart_data,
            success_probability=success_probability,
            p50_final=chart_data[-1].p50 if chart_data else 0.0,
        )


class DriftProjectionSimulator(MonteCarloStrategy):
    """Daily projection from the latest historical value using estimated drift."""

    kind = "DRIFT_PROJECTION"
    default_sampler = "box_muller"
    progress_setting = "drift_progress_interval"

    params: DriftProjectionParams

    @property
    def has_history(self) -> bool:
        return len(self.params.history) > 1

    @property
    def start_date(self) -> _dt.date:
        return self.params.history[-1].date

    @property
    def days(self) -> int:
        return self.params.years_to_project * self.settings.days_per_year

    def estimate(self) -> DriftEstimate:
        return estimate_drift([point.value for point in self.params.history], self.settings)

    def event_map(self) -> EventMap:
        return build_event_map(self.start_date, self.params.life_events)

    def simulate_paths(self, progress: Optional[ProgressCallback] = None) -> np.ndarray:
        """
        Full-resolution (simulations x days) matrix; ``paths[s, d]`` is the
        wealth after day ``d``'s return and the cashflows scheduled at offset
        ``d``.
        """
        if not self.has_history:
            raise ValueError("Drift projection needs at least two history points.")
        p = self.params
        estimate = self.estimate()
        event_map = self.event_map()
        days = self.days
        drift = estimate.mean
        start_value = p.history[-1].value

        paths = np.empty((p.num_simulations, days))
        for sim in range(p.num_simulations):
            shocks = (self.sampler.sample(days) * estimate.volatility).tolist()
            values = [0.0] * days
            value = start_value
            for d in range(days):
                value = value * (1 + drift + shocks[d])
                if d in event_map:
                    value += event_map[d]
                if value < 0:
                    value = 0.0
                values[d] = value
            paths[sim] = values
            self._report_progress(progress, sim, p.num_simulations)
        return paths

    def run(self, progress: Optional[ProgressCallback] = None) -> List[ProjectionPoint]:
        if not self.has_history:
            logger.warning("Drift projection requested with fewer than two history points.")
            return []

        step = self.settings.downsample_step_days
        paths = self.simulate_paths(progress)
        event_map = self.event_map()
        sample_days = list(downsample_indices(self.days, step))
        bands = percentile_bands(paths[:, sample_days], (P10, P50, P90))
        start = pd.Timestamp(self.start_date)

        return [
            ProjectionPoint(
                date=(start + pd.Timedelta(days=d)).strftime("%Y-%m-%d"),
                bear=float(bands[P10][i]),
                base=float(bands[P50][i]),
                bull=float(bands[P90][i]),
                event_marker=event_marker(event_map, d, step),
            )
            for i, d in enumerate(sample_days)
        ]


STRATEGIES = {
    RetirementSimulator.kind: RetirementSimulator,
    GoalTargetSimulator.kind: GoalTargetSimulator,
    DriftProjectionSimulator.kind: DriftProjectionSimulator,
}
