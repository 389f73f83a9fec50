from datetime import date, datetime

from pydantic import BaseModel, Field


class UsageLogCreate(BaseModel):
    batch_id: int
    quantity_used: int = Field(gt=0)
    usage_date: date | None = None  # defaults to today (UTC)
    note: str = ""


class UsageLogOut(BaseModel):
    id: int
    batch_id: int
    product_id: int
    usage_date: date
    quantity_used: int
    note: str
    created_at: datetime

    model_config = {"from_attributes": True}


class UsageRow(BaseModel):
    """One joined usage x batch x product row, normalized for the forecasting pipeline.

    Some drivers hand numeric columns back as text; lax validation coerces them here so
    nothing downstream has to care.
    """

    batch_id: int
    product_id: int
    date: date
    quantity_used: float
    batch_number: str
    current_stock: float
    initial_stock: float
    expiry_date: date | None = None
    product_name: str
    strength: str = ""
    reorder_threshold: float = 0
    supplier_lead_time: float = 0

    model_config = {"from_attributes": True, "frozen": True}
