import json
from datetime import date, datetime

from pydantic import BaseModel, field_validator


class BatchSnapshotEntry(BaseModel):
    batch_id: int
    product_id: int
    batch_number: str
    current_stock: float
    initial_stock: float
    expiry_date: date | None = None
    product_name: str
    strength: str = ""
    reorder_threshold: float = 0
    supplier_lead_time: float = 0

    model_config = {"frozen": True}


class SnapshotOut(BaseModel):
    id: int
    snapshot_type: str
    snapshot_date: datetime
    batch_count: int = 0

    model_config = {"from_attributes": True}


class StoredSnapshot(BaseModel):
    id: int
    snapshot_type: str
    snapshot_date: datetime
    entries: list[BatchSnapshotEntry]

    @field_validator("entries", mode="before")
    @classmethod
    def parse_entries(cls, v):
        if isinstance(v, str):
            return json.loads(v)
        return v

    @classmethod
    def from_row(cls, row) -> "StoredSnapshot":
        return cls(
            id=row.id,
            snapshot_type=row.snapshot_type,
            snapshot_date=row.snapshot_date,
            entries=row.snapshot_data,
        )


# --- Change set ---

class AddedBatch(BaseModel):
    batch_id: int
    product_name: str
    batch_number: str
    initial_stock: float


class RemovedBatch(BaseModel):
    batch_id: int
    product_name: str
    batch_number: str
    last_stock: float


class StockChange(BaseModel):
    batch_id: int
    product_name: str
    batch_number: str
    previous_stock: float
    current_stock: float
    used: float


class ChangeSet(BaseModel):
    added: list[AddedBatch] = []
    removed: list[RemovedBatch] = []
    stock_changes: list[StockChange] = []


# --- Weekly report ---

class ReportPeriod(BaseModel):
    start: datetime
    end: datetime


class UsageTotal(BaseModel):
    batch_id: int
    product_name: str
    batch_number: str
    total_used: float


class WeeklyReport(BaseModel):
    period: ReportPeriod
    inventory_changes: ChangeSet
    usage_summary: list[UsageTotal]
    expiring_soon: list[BatchSnapshotEntry]
