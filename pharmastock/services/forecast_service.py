from sqlalchemy.orm import Session

from pharmastock.config import settings
from pharmastock.schemas.forecast import BatchError, ForecastRun
from pharmastock.services.forecast_engine import forecast_all
from pharmastock.services.usage_aggregator import group_by_batch
from pharmastock.services.usage_service import fetch_usage_rows


def run_forecast(db: Session, alpha: float | None = None) -> ForecastRun:
    """Fetch joined usage rows, group them per batch and smooth each series.

    Malformed rows fail only their own batch; they are reported in ``errors``.
    """
    row_errors: list[BatchError] = []
    groups = group_by_batch(fetch_usage_rows(db), errors=row_errors)
    run = forecast_all(groups, alpha if alpha is not None else settings.FORECAST_ALPHA)
    run.errors = row_errors + run.errors
    return run
