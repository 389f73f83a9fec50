from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from pharmastock.config import settings
from pharmastock.database import get_db
from pharmastock.schemas.product import (
    BatchCreate,
    BatchOut,
    BatchUpdate,
    ProductCreate,
    ProductOut,
    ProductUpdate,
)
from pharmastock.services import product_service

router = APIRouter(prefix="/products", tags=["Products"])
batch_router = APIRouter(prefix="/batches", tags=["Batches"])


@router.post("", response_model=ProductOut, status_code=201)
def create_product(data: ProductCreate, db: Session = Depends(get_db)):
    return product_service.create_product(db, data)


@router.get("", response_model=list[ProductOut])
def list_products(skip: int = 0, limit: int = 100, name: str | None = None, db: Session = Depends(get_db)):
    return product_service.list_products(db, skip=skip, limit=limit, name=name)


@router.get("/{product_id}", response_model=ProductOut)
def get_product(product_id: int, db: Session = Depends(get_db)):
    product = product_service.get_product(db, product_id)
    if not product:
        raise HTTPException(404, "Product not found")
    return product


@router.patch("/{product_id}", response_model=ProductOut)
def update_product(product_id: int, data: ProductUpdate, db: Session = Depends(get_db)):
    product = product_service.update_product(db, product_id, data)
    if not product:
        raise HTTPException(404, "Product not found")
    return product


@router.delete("/{product_id}", status_code=204)
def delete_product(product_id: int, db: Session = Depends(get_db)):
    if not product_service.delete_product(db, product_id):
        raise HTTPException(404, "Product not found")


# --- Batch endpoints ---

@batch_router.post("", response_model=BatchOut, status_code=201)
def create_batch(data: BatchCreate, db: Session = Depends(get_db)):
    try:
        batch = product_service.create_batch(db, data)
    except ValueError as e:
        raise HTTPException(400, str(e))
    if not batch:
        raise HTTPException(404, "Product not found")
    return batch


@batch_router.get("", response_model=list[BatchOut])
def list_batches(product_id: int | None = None, skip: int = 0, limit: int = 100, db: Session = Depends(get_db)):
    return product_service.list_batches(db, product_id=product_id, skip=skip, limit=limit)


@batch_router.get("/expiring", response_model=list[BatchOut])
def expiring_batches(
    days: int = Query(default=settings.EXPIRY_WINDOW_DAYS, ge=0, le=365),
    db: Session = Depends(get_db),
):
    return product_service.get_expiring(db, days=days)


@batch_router.get("/low-stock", response_model=list[BatchOut])
def low_stock(db: Session = Depends(get_db)):
    return product_service.get_low_stock(db)


@batch_router.get("/{batch_id}", response_model=BatchOut)
def get_batch(batch_id: int, db: Session = Depends(get_db)):
    batch = product_service.get_batch(db, batch_id)
    if not batch:
        raise HTTPException(404, "Batch not found")
    return batch


@batch_router.patch("/{batch_id}", response_model=BatchOut)
def update_batch(batch_id: int, data: BatchUpdate, db: Session = Depends(get_db)):
    try:
        batch = product_service.update_batch(db, batch_id, data)
    except ValueError as e:
        raise HTTPException(400, str(e))
    if not batch:
        raise HTTPException(404, "Batch not found")
    return batch


@batch_router.delete("/{batch_id}", status_code=204)
def delete_batch(batch_id: int, db: Session = Depends(get_db)):
    if not product_service.delete_batch(db, batch_id):
        raise HTTPException(404, "Batch not found")
