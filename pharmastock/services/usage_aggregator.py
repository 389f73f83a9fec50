"""Group joined usage rows into one time series per batch.

Rows come back in whatever order the query produced. ``group_by_batch`` keeps that
order untouched and returns :class:`RawSeries`; only :func:`sort_series` produces the
date-ordered :class:`SortedSeries` that the forecast engine accepts.
"""

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from pharmastock.exceptions import InvalidInput
from pharmastock.schemas.forecast import BatchError
from pharmastock.schemas.usage_log import UsageRow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RawSeries:
    batch_id: int
    rows: tuple[UsageRow, ...]


@dataclass(frozen=True)
class SortedSeries:
    batch_id: int
    rows: tuple[UsageRow, ...]


def normalize_row(row: Any) -> UsageRow:
    """Coerce a mapping, SQLAlchemy row or object into a :class:`UsageRow`."""
    if isinstance(row, UsageRow):
        return row
    if hasattr(row, "_mapping"):
        row = row._mapping
    try:
        if isinstance(row, Mapping):
            return UsageRow.model_validate(dict(row))
        return UsageRow.model_validate(row, from_attributes=True)
    except ValidationError as e:
        raise InvalidInput(f"Malformed usage row: {e}") from e


def _read_batch_id(row: Any) -> int | None:
    if hasattr(row, "_mapping"):
        row = row._mapping
    value = row.get("batch_id") if isinstance(row, Mapping) else getattr(row, "batch_id", None)
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def group_by_batch(rows: Iterable[Any], errors: list[BatchError] | None = None) -> dict[int, RawSeries]:
    """Group rows per batch.

    Without ``errors`` a malformed row raises :class:`InvalidInput`. With it, the row is
    recorded there and its whole batch is left out, so the other batches still forecast.
    """
    grouped: dict[int, list[UsageRow]] = {}
    failed: set[int] = set()
    for raw in rows:
        try:
            row = normalize_row(raw)
        except InvalidInput as e:
            if errors is None:
                raise
            batch_id = _read_batch_id(raw)
            logger.warning("Skipping usage row for batch %s: %s", batch_id, e)
            errors.append(BatchError(batch_id=batch_id, error=str(e)))
            if batch_id is not None:
                failed.add(batch_id)
            continue
        grouped.setdefault(row.batch_id, []).append(row)
    return {
        batch_id: RawSeries(batch_id, tuple(items))
        for batch_id, items in grouped.items()
        if batch_id not in failed
    }


def sort_series(series: RawSeries) -> SortedSeries:
    # sorted() is stable, so same-day rows keep query order
    return SortedSeries(series.batch_id, tuple(sorted(series.rows, key=lambda r: r.date)))
