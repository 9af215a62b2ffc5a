# constants.py

MONTHS_PER_YEAR: int = 12
DAYS_PER_YEAR: int = 365
SMALL_EPSILON: float = 1e-6

# Defaults mirrored by EngineSettings and the request parameter models
DEFAULT_RETIREMENT_SIMULATIONS: int = 500
DEFAULT_FORECAST_YEARS: int = 40
DEFAULT_GOAL_SIMULATIONS: int = 1000
DEFAULT_PROJECTION_SIMULATIONS: int = 500
DEFAULT_PROJECTION_YEARS: int = 10
RETAINED_PATHS: int = 50
DOWNSAMPLE_STEP_DAYS: int = 30

# Fallback daily drift / volatility when history is too short (~12% / ~16% annualised)
DEFAULT_DAILY_DRIFT: float = 0.0003
DEFAULT_DAILY_VOLATILITY: float = 0.01

# Percentile fractions reported by the three strategies
P10: float = 0.10
P50: float = 0.50
P90: float = 0.90

INCOME_MARKER: str = "INCOME"
EXPENSE_MARKER: str = "EXPENSE"
