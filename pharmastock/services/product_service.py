from datetime import date, datetime, timedelta, timezone

from sqlalchemy.orm import Session

from pharmastock.models.product import Batch, Product
from pharmastock.schemas.product import BatchCreate, BatchUpdate, ProductCreate, ProductUpdate


def create_product(db: Session, data: ProductCreate) -> Product:
    product = Product(**data.model_dump())
    db.add(product)
    db.commit()
    db.refresh(product)
    return product


def get_product(db: Session, product_id: int) -> Product | None:
    return db.query(Product).filter(Product.id == product_id).first()


def list_products(db: Session, skip: int = 0, limit: int = 100, name: str | None = None) -> list[Product]:
    q = db.query(Product)
    if name:
        q = q.filter(Product.product_name.ilike(f"%{name}%"))
    return q.order_by(Product.id).offset(skip).limit(limit).all()


def update_product(db: Session, product_id: int, data: ProductUpdate) -> Product | None:
    product = get_product(db, product_id)
    if not product:
        return None
    for field, value in data.model_dump(exclude_unset=True).items():
        setattr(product, field, value)
    db.commit()
    db.refresh(product)
    return product


def delete_product(db: Session, product_id: int) -> bool:
    product = get_product(db, product_id)
    if not product:
        return False
    db.delete(product)
    db.commit()
    return True


# --- Batch service ---

def create_batch(db: Session, data: BatchCreate) -> Batch | None:
    product = get_product(db, data.product_id)
    if not product:
        return None
    if get_batch_by_number(db, data.batch_number):
        raise ValueError(f"Batch number {data.batch_number} already exists")
    current = data.initial_stock if data.current_stock is None else data.current_stock
    if current > data.initial_stock:
        raise ValueError(f"Current stock {current} exceeds initial stock {data.initial_stock}")
    batch = Batch(
        product_id=product.id,
        batch_number=data.batch_number,
        initial_stock=data.initial_stock,
        current_stock=current,
        expiry_date=data.expiry_date,
    )
    db.add(batch)
    db.commit()
    db.refresh(batch)
    return batch


def get_batch(db: Session, batch_id: int) -> Batch | None:
    return db.query(Batch).filter(Batch.id == batch_id).first()


def get_batch_by_number(db: Session, batch_number: str) -> Batch | None:
    return db.query(Batch).filter(Batch.batch_number == batch_number).first()


def list_batches(db: Session, product_id: int | None = None, skip: int = 0, limit: int = 100) -> list[Batch]:
    q = db.query(Batch)
    if product_id is not None:
        q = q.filter(Batch.product_id == product_id)
    return q.order_by(Batch.id).offset(skip).limit(limit).all()


def update_batch(db: Session, batch_id: int, data: BatchUpdate) -> Batch | None:
    batch = get_batch(db, batch_id)
    if not batch:
        return None
    update_data = data.model_dump(exclude_unset=True)
    number = update_data.get("batch_number")
    if number and number != batch.batch_number and get_batch_by_number(db, number):
        raise ValueError(f"Batch number {number} already exists")
    for field, value in update_data.items():
        setattr(batch, field, value)
    db.commit()
    db.refresh(batch)
    return batch


def delete_batch(db: Session, batch_id: int) -> bool:
    batch = get_batch(db, batch_id)
    if not batch:
        return False
    db.delete(batch)
    db.commit()
    return True


def get_expiring(db: Session, days: int = 30, today: date | None = None) -> list[Batch]:
    today = today or datetime.now(timezone.utc).date()
    return (
        db.query(Batch)
        .filter(Batch.expiry_date.is_not(None))
        .filter(Batch.expiry_date >= today, Batch.expiry_date <= today + timedelta(days=days))
        .order_by(Batch.expiry_date)
        .all()
    )


def get_low_stock(db: Session) -> list[Batch]:
    """Batches at or below their product's reorder threshold."""
    return (
        db.query(Batch)
        .join(Product, Batch.product_id == Product.id)
        .filter(Batch.current_stock <= Product.reorder_threshold)
        .order_by(Batch.current_stock)
        .all()
    )
