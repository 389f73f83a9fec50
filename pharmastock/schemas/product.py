from datetime import date, datetime

from pydantic import BaseModel, Field


# --- Batch schemas ---

class BatchCreate(BaseModel):
    product_id: int
    batch_number: str
    initial_stock: int = Field(ge=0)
    current_stock: int | None = Field(default=None, ge=0)  # defaults to initial_stock
    expiry_date: date | None = None


class BatchUpdate(BaseModel):
    batch_number: str | None = None
    current_stock: int | None = Field(default=None, ge=0)
    expiry_date: date | None = None


class BatchOut(BaseModel):
    id: int
    product_id: int
    batch_number: str
    initial_stock: int
    current_stock: int
    expiry_date: date | None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# --- Product schemas ---

class ProductCreate(BaseModel):
    product_name: str
    strength: str = ""
    reorder_threshold: int = Field(default=0, ge=0)
    supplier_lead_time: int = Field(default=0, ge=0)


class ProductUpdate(BaseModel):
    product_name: str | None = None
    strength: str | None = None
    reorder_threshold: int | None = Field(default=None, ge=0)
    supplier_lead_time: int | None = Field(default=None, ge=0)


class ProductOut(BaseModel):
    id: int
    product_name: str
    strength: str
    reorder_threshold: int
    supplier_lead_time: int
    batches: list[BatchOut] = []
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}
