import logging

from pharmastock.exceptions import InvalidInput
from pharmastock.schemas.forecast import BatchError, ForecastResult, ForecastRun
from pharmastock.services.usage_aggregator import RawSeries, SortedSeries, sort_series

logger = logging.getLogger(__name__)

DEFAULT_ALPHA = 0.4


def _check_alpha(alpha: float) -> None:
    if not 0 < alpha <= 1:
        raise InvalidInput(f"Smoothing factor must be in (0, 1], got {alpha}")


def exponential_smoothing(series: SortedSeries, alpha: float = DEFAULT_ALPHA) -> float:
    """Simple exponential smoothing over per-event usage quantities.

    Seeded with the first record. Days without a logged event are absent from the series
    rather than counted as zero usage, so sparse logging biases the estimate upward.
    """
    if not isinstance(series, SortedSeries):
        raise InvalidInput("Forecasting requires a date-sorted series")
    if not series.rows:
        raise InvalidInput(f"Usage series for batch {series.batch_id} is empty")
    _check_alpha(alpha)

    smoothed = series.rows[0].quantity_used
    for row in series.rows[1:]:
        smoothed = alpha * row.quantity_used + (1 - alpha) * smoothed
    return smoothed


def estimate_stockout_days(current_stock: float, forecast: float) -> float | None:
    if forecast <= 0:
        return None
    return current_stock / forecast


def forecast_batch(series: SortedSeries, alpha: float = DEFAULT_ALPHA) -> ForecastResult:
    value = exponential_smoothing(series, alpha)
    # Batch and product columns repeat on every joined row
    head = series.rows[0]
    return ForecastResult(
        batch_id=series.batch_id,
        forecast=value,
        name=head.product_name,
        strength=head.strength,
        batch_number=head.batch_number,
        reorder_threshold=head.reorder_threshold,
        supplier_lead_time=head.supplier_lead_time,
        initial_stock=head.initial_stock,
        current_stock=head.current_stock,
        quantity_used_total=sum(r.quantity_used for r in series.rows),
        estimated_stockout_days=estimate_stockout_days(head.current_stock, value),
        dates=[r.date for r in series.rows],
    )


def forecast_all(groups: dict[int, RawSeries], alpha: float = DEFAULT_ALPHA) -> ForecastRun:
    """Forecast every batch. A batch that fails is reported in ``errors``; the rest still run."""
    _check_alpha(alpha)
    run = ForecastRun(alpha=alpha)
    for batch_id, raw in groups.items():
        try:
            run.results.append(forecast_batch(sort_series(raw), alpha))
        except InvalidInput as e:
            logger.warning("Forecast failed for batch %s: %s", batch_id, e)
            run.errors.append(BatchError(batch_id=batch_id, error=str(e)))
    return run
