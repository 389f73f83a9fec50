from datetime import date

from pydantic import BaseModel


class ForecastResult(BaseModel):
    batch_id: int
    forecast: float
    name: str
    strength: str
    batch_number: str
    reorder_threshold: float
    supplier_lead_time: float
    initial_stock: float
    current_stock: float
    quantity_used_total: float
    estimated_stockout_days: float | None
    dates: list[date]


class BatchError(BaseModel):
    batch_id: int | None  # None when the row was too malformed to read its batch
    error: str


class ForecastRun(BaseModel):
    alpha: float
    results: list[ForecastResult] = []
    errors: list[BatchError] = []


class NarrativeOut(BaseModel):
    narrative: str
