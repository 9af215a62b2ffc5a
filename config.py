import os
import json
from typing import Any, Dict
from pydantic import BaseModel, Field, field_validator, ValidationInfo
from loguru import logger

from constants import (
    DAYS_PER_YEAR,
    DEFAULT_DAILY_DRIFT,
    DEFAULT_DAILY_VOLATILITY,
    DOWNSAMPLE_STEP_DAYS,
    RETAINED_PATHS,
)


class ConfigurationError(Exception):
    """Raised when the settings file cannot be loaded or parsed."""


class ReturnAssumption(BaseModel):
    """Annual mean return and standard deviation, as decimals."""

    mean: float = Field(..., description="Annual mean return (0.10 = 10%).")
    std_dev: float = Field(..., description="Annual standard deviation of returns.")


def _default_risk_profiles() -> Dict[str, ReturnAssumption]:
    return {
        "conservative": ReturnAssumption(mean=0.07, std_dev=0.10),
        "balanced": ReturnAssumption(mean=0.10, std_dev=0.15),
        "aggressive": ReturnAssumption(mean=0.14, std_dev=0.22),
    }


def _default_scenario_adjustments() -> Dict[str, ReturnAssumption]:
    return {
        "bear": ReturnAssumption(mean=-0.04, std_dev=0.05),
        "base": ReturnAssumption(mean=0.0, std_dev=0.0),
        "bull": ReturnAssumption(mean=0.04, std_dev=-0.02),
    }


class EngineSettings(BaseModel):
    """Tunables shared by every simulation strategy and the compute unit."""

    retained_paths: int = Field(
        RETAINED_PATHS,
        ge=0,
        description="Number of full retirement paths returned for charting.",
    )
    retirement_progress_interval: int = Field(50, gt=0)
    goal_progress_interval: int = Field(100, gt=0)
    drift_progress_interval: int = Field(50, gt=0)

    contribution_growth_rate: float = Field(
        0.05,
        ge=0.0,
        description="Yearly growth of pre-retirement contributions (rising income).",
    )

    days_per_year: int = Field(DAYS_PER_YEAR, gt=0)
    downsample_step_days: int = Field(DOWNSAMPLE_STEP_DAYS, gt=0)

    default_daily_drift: float = Field(DEFAULT_DAILY_DRIFT)
    default_daily_volatility: float = Field(DEFAULT_DAILY_VOLATILITY, ge=0.0)
    min_history_returns: int = Field(
        2,
        ge=1,
        description="Fewer usable log-returns than this falls back to the default drift/volatility.",
    )

    risk_profiles: Dict[str, ReturnAssumption] = Field(
        default_factory=_default_risk_profiles
    )
    scenario_adjustments: Dict[str, ReturnAssumption] = Field(
        default_factory=_default_scenario_adjustments
    )

    log_level: str = Field("INFO")

    model_config = {"validate_assignment": True}

    @field_validator("downsample_step_days")
    @classmethod
    def check_downsample_step(cls, v: int, info: ValidationInfo) -> int:
        days_per_year = info.data.get("days_per_year", DAYS_PER_YEAR)
        if v > days_per_year:
            logger.warning(
                f"Downsample step of {v} days is longer than a year; projections will have very few points."
            )
        return v

    @field_validator("default_daily_volatility")
    @classmethod
    def check_default_volatility(cls, v: float) -> float:
        if v > 0.05:
            logger.warning(
                f"Default daily volatility ({v * 100:.1f}%) is relatively high."
            )
        return v

    def return_assumption(self, risk_profile: str, scenario: str) -> ReturnAssumption:
        """Risk-profile mean/std dev shifted by the market scenario adjustment."""
        try:
            base = self.risk_profiles[risk_profile]
        except KeyError:
            raise ValueError(f"Unknown risk profile: {risk_profile}") from None
        try:
            shift = self.scenario_adjustments[scenario]
        except KeyError:
            raise ValueError(f"Unknown market scenario: {scenario}") from None
        return ReturnAssumption(
            mean=base.mean + shift.mean, std_dev=base.std_dev + shift.std_dev
        )


def load_settings_from_json(file_path: str) -> Dict[str, Any]:
    """Loads and returns the settings dictionary from a JSON file."""
    if not os.path.exists(file_path):
        raise ConfigurationError(f"Settings file not found at: {file_path}")

    try:
        with open(file_path, "r", encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigurationError(
            f"Error parsing JSON file '{file_path}': {e}"
        ) from e
    except Exception as e:
        raise ConfigurationError(
            f"Unexpected error reading settings file '{file_path}': {e}"
        ) from e
