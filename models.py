import datetime as _dt
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter
from pydantic.alias_generators import to_camel

from constants import (
    DEFAULT_FORECAST_YEARS,
    DEFAULT_GOAL_SIMULATIONS,
    DEFAULT_PROJECTION_SIMULATIONS,
    DEFAULT_PROJECTION_YEARS,
    DEFAULT_RETIREMENT_SIMULATIONS,
    EXPENSE_MARKER,
)

SamplerName = Literal["box_muller", "central_limit"]
RiskProfile = Literal["conservative", "balanced", "aggressive"]
MarketScenario = Literal["bear", "base", "bull"]
EventMarker = Literal["INCOME", "EXPENSE"]


class WireModel(BaseModel):
    """Base for everything that crosses the compute-unit boundary.

    Attributes are snake_case in Python and camelCase on the wire; both
    spellings are accepted on input.
    """

    model_config = {
        "alias_generator": to_camel,
        "validate_by_name": True,
        "validate_by_alias": True,
    }

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class FrozenWireModel(WireModel):
    model_config = {**WireModel.model_config, "frozen": True}


# ---------------------------------------------------------------------------
# Parameter models
# ---------------------------------------------------------------------------

class RetirementParams(FrozenWireModel):
    current_age: int = Field(..., ge=0)
    retirement_age: int = Field(..., ge=0)
    current_corpus: float = Field(..., description="Invested corpus today.")
    monthly_contribution: float = Field(
        ..., description="Monthly contribution until retirement."
    )
    monthly_expenses: float = Field(
        ..., description="Monthly expenses in today's money, drawn after retirement."
    )
    expected_return: float = Field(..., description="Expected annual return, in %.")
    inflation: float = Field(..., description="Annual inflation, in %.")
    volatility: float = Field(..., ge=0.0, description="Annual volatility, in %.")
    num_simulations: int = Field(DEFAULT_RETIREMENT_SIMULATIONS, gt=0)
    forecast_years: int = Field(DEFAULT_FORECAST_YEARS, ge=0)


class GoalTargetParams(FrozenWireModel):
    current_wealth: float
    monthly_sip: float = Field(..., description="Fixed monthly contribution.")
    years: int = Field(..., ge=0, description="Goal horizon in years.")
    inflation_rate: float = Field(..., description="Annual inflation, in %.")
    is_inflation_adjusted: bool = False
    risk_profile: RiskProfile = "balanced"
    scenario: MarketScenario = "base"
    target_amount: float
    num_simulations: int = Field(DEFAULT_GOAL_SIMULATIONS, gt=0)


class HistoryPoint(FrozenWireModel):
    date: _dt.date
    value: float


class LifeEvent(FrozenWireModel):
    """A dated cashflow outside the market process.

    ``EXPENSE`` events always reduce wealth by ``abs(amount)``; any other
    category applies ``amount`` with its own sign.
    """

    date: _dt.date
    amount: float
    category: str = "INCOME"

    @property
    def signed_amount(self) -> float:
        if self.category.upper() == EXPENSE_MARKER:
            return -abs(self.amount)
        return self.amount


class DriftProjectionParams(FrozenWireModel):
    history: List[HistoryPoint] = Field(
        default_factory=list, description="Chronological value series."
    )
    life_events: List[LifeEvent] = Field(default_factory=list)
    years_to_project: int = Field(DEFAULT_PROJECTION_YEARS, ge=0)
    num_simulations: int = Field(DEFAULT_PROJECTION_SIMULATIONS, gt=0)


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------

class _RequestBase(FrozenWireModel):
    seed: Optional[int] = Field(
        None, description="Seed for the random source; generated and logged when absent."
    )
    sampler: Optional[SamplerName] = Field(
        None, description="Overrides the default Gaussian algorithm for this kind."
    )


class RetirementRequest(_RequestBase):
    kind: Literal["RETIREMENT"] = "RETIREMENT"
    params: RetirementParams


class GoalTargetRequest(_RequestBase):
    kind: Literal["GOAL_TARGET"] = "GOAL_TARGET"
    params: GoalTargetParams


class DriftProjectionRequest(_RequestBase):
    kind: Literal["DRIFT_PROJECTION"] = "DRIFT_PROJECTION"
    params: DriftProjectionParams


SimulationRequest = Annotated[
    Union[RetirementRequest, GoalTargetRequest, DriftProjectionRequest],
    Field(discriminator="kind"),
]

_request_adapter: TypeAdapter = TypeAdapter(SimulationRequest)


def parse_request(payload: Any) -> Union[RetirementRequest, GoalTargetRequest, DriftProjectionRequest]:
    """Validate a wire dict into a typed request; typed requests pass through."""
    if isinstance(payload, (RetirementRequest, GoalTargetRequest, DriftProjectionRequest)):
        return payload
    return _request_adapter.validate_python(payload)


# ---------------------------------------------------------------------------
# Result models
# ---------------------------------------------------------------------------

class PathPoint(WireModel):
    year: int
    corpus: float


class SimulatedPath(WireModel):
    """One retirement run. Only ``points`` travels to the caller."""

    points: List[PathPoint]
    ruined: bool = False


class RetirementResult(WireModel):
    simulations: List[List[PathPoint]]
    success_rate: float = Field(..., ge=0.0, le=100.0)


class PercentileBand(WireModel):
    year: int
    p10: float
    p50: float
    p90: float
    target: float


class GoalTargetResult(WireModel):
    chart_data: List[PercentileBand]
    success_probability: float = Field(..., ge=0.0, le=100.0)
    p50_final: float


class ProjectionPoint(WireModel):
    date: str
    bear: float
    base: float
    bull: float
    event_marker: Optional[EventMarker] = None


# ---------------------------------------------------------------------------
# Compute-unit messages
# ---------------------------------------------------------------------------

class ProgressMessage(WireModel):
    type: Literal["PROGRESS"] = "PROGRESS"
    progress: int = Field(..., ge=0, le=100)
    request_id: Optional[str] = None


class CompletionMessage(WireModel):
    type: Literal["COMPLETE"] = "COMPLETE"
    result: Any
    request_id: Optional[str] = None


class ErrorMessage(WireModel):
    type: Literal["ERROR"] = "ERROR"
    error: str
    request_id: Optional[str] = None


WorkerMessage = Annotated[
    Union[ProgressMessage, CompletionMessage, ErrorMessage],
    Field(discriminator="type"),
]

_message_adapter: TypeAdapter = TypeAdapter(WorkerMessage)


def parse_message(payload: Any) -> Union[ProgressMessage, CompletionMessage, ErrorMessage]:
    return _message_adapter.validate_python(payload)
