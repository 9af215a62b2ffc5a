from typing import Optional, Sequence

import numpy as np
import pandas as pd
from loguru import logger
from pydantic import BaseModel

from config import EngineSettings


class DriftEstimate(BaseModel):
    """Per-day drift and volatility of a value series' log-returns."""

    mean: float
    volatility: float
    sample_size: int
    from_history: bool


def log_returns(values: Sequence[float]) -> pd.Series:
    """``ln(v[i] / v[i-1])`` for consecutive pairs where both values are positive."""
    series = pd.Series(values, dtype=float)
    previous = series.shift(1)
    usable = (previous > 0) & (series > 0)
    return np.log(series[usable] / previous[usable])


def estimate_drift(
    values: Sequence[float], settings: Optional[EngineSettings] = None
) -> DriftEstimate:
    """
    Estimates drift (mean log-return) and volatility (population standard
    deviation) from a chronological series. Falls back to the configured
    defaults when there are too few usable returns.
    """
    settings = settings or EngineSettings()
    returns = log_returns(values)

    if len(returns) < settings.min_history_returns:
        logger.warning(
            f"Only {len(returns)} usable log-returns in history; "
            f"using default daily drift {settings.default_daily_drift} "
            f"and volatility {settings.default_daily_volatility}."
        )
        return DriftEstimate(
            mean=settings.default_daily_drift,
            volatility=settings.default_daily_volatility,
            sample_size=len(returns),
            from_history=False,
        )

    mean = float(returns.mean())
    volatility = float(np.std(returns.to_numpy(), ddof=0))
    logger.debug(
        f"Estimated daily drift {mean:.6f} and volatility {volatility:.6f} from {len(returns)} returns."
    )
    return DriftEstimate(
        mean=mean, volatility=volatility, sample_size=len(returns), from_history=True
    )
