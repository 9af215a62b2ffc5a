import sys
import datetime as _dt
import hashlib
from typing import Any, Optional

from loguru import logger

from models import (
    DriftProjectionRequest,
    GoalTargetRequest,
    GoalTargetResult,
    RetirementRequest,
    RetirementResult,
)


def _generate_seed_from_timestamp() -> int:
    ts = _dt.datetime.now(_dt.timezone.utc).isoformat()
    return int.from_bytes(hashlib.sha256(ts.encode()).digest()[:8], "big") % (2**32 - 1)


def configure_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """Replaces loguru's default sink with a coloured stderr sink and an optional file."""
    logger.remove()
    logger.add(
        sys.stderr,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        ),
        level=level,
        colorize=True,
    )
    if log_file:
        logger.add(
            log_file,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {message}",
            level=level,
            rotation="10 MB",
        )


def log_request_parameters(request: Any) -> None:
    """Logs the input parameters of a simulation request."""
    logger.info(f"--- Input Parameters For {request.kind} Request ---")
    if isinstance(request, DriftProjectionRequest):
        p = request.params
        if p.history:
            logger.info(
                f"History: {len(p.history)} points from {p.history[0].date} to {p.history[-1].date}"
            )
        else:
            logger.info("History: none")
        logger.info(f"Life Events: {len(p.life_events)}")
        for event in p.life_events:
            logger.info(f"  - {event.date} {event.category}: {event.signed_amount:,.2f}")
        logger.info(f"Years To Project: {p.years_to_project}")
        logger.info(f"Num Simulations: {p.num_simulations}")
    else:
        for key, value in request.params.model_dump().items():
            label = key.replace("_", " ").title()
            if isinstance(value, float) and key in (
                "expected_return",
                "inflation",
                "volatility",
                "inflation_rate",
            ):
                logger.info(f"{label}: {value:.2f}%")
            elif isinstance(value, (float, int)) and not isinstance(value, bool) and any(
                kw in key for kw in ["corpus", "contribution", "expenses", "wealth", "sip", "amount"]
            ):
                logger.info(f"{label}: {value:,.2f}")
            else:
                logger.info(f"{label}: {value}")
    logger.info(f"Sampler Override: {request.sampler or 'default'}")
    logger.info("--- End of Input Parameters ---")


def log_simulation_results(request: Any, result: Any) -> None:
    """Logs the headline numbers of a finished request."""
    if isinstance(request, RetirementRequest) and isinstance(result, RetirementResult):
        logger.info(
            f"Retirement success rate: {result.success_rate:.2f}% "
            f"({request.params.num_simulations} sims, {len(result.simulations)} paths retained)"
        )
    elif isinstance(request, GoalTargetRequest) and isinstance(result, GoalTargetResult):
        logger.info(
            f"Goal success probability: {result.success_probability:.2f}%, "
            f"median final wealth: {result.p50_final:,.2f}"
        )
    elif isinstance(request, DriftProjectionRequest):
        if result:
            last = result[-1]
            logger.info(
                f"Projection to {last.date}: bear {last.bear:,.2f} | base {last.base:,.2f} | bull {last.bull:,.2f}"
            )
        else:
            logger.info("Projection produced no points (insufficient history).")
