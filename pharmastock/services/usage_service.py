from datetime import date, datetime, timezone

from sqlalchemy import func
from sqlalchemy.orm import Session

from pharmastock.exceptions import InvalidInput
from pharmastock.models.product import Batch, Product
from pharmastock.models.usage_log import UsageLog
from pharmastock.schemas.snapshot import UsageTotal
from pharmastock.schemas.usage_log import UsageLogCreate


def log_usage(db: Session, data: UsageLogCreate) -> UsageLog | None:
    batch = db.query(Batch).filter(Batch.id == data.batch_id).first()
    if not batch:
        return None
    if data.quantity_used > batch.current_stock:
        raise InvalidInput(
            f"Insufficient stock. Current: {batch.current_stock}, requested usage: {data.quantity_used}"
        )
    batch.current_stock -= data.quantity_used
    log = UsageLog(
        batch_id=batch.id,
        product_id=batch.product_id,
        usage_date=data.usage_date or datetime.now(timezone.utc).date(),
        quantity_used=data.quantity_used,
        note=data.note,
    )
    db.add(log)
    db.commit()
    db.refresh(log)
    return log


def list_usage_logs(db: Session, batch_id: int | None = None, limit: int = 100) -> list[UsageLog]:
    q = db.query(UsageLog)
    if batch_id is not None:
        q = q.filter(UsageLog.batch_id == batch_id)
    return q.order_by(UsageLog.usage_date.desc(), UsageLog.id.desc()).limit(limit).all()


def fetch_usage_rows(db: Session) -> list:
    """Joined usage x batch x product rows, in insertion order of the usage log."""
    return (
        db.query(
            UsageLog.batch_id,
            UsageLog.product_id,
            UsageLog.usage_date.label("date"),
            UsageLog.quantity_used,
            Batch.batch_number,
            Batch.current_stock,
            Batch.initial_stock,
            Batch.expiry_date,
            Product.product_name,
            Product.strength,
            Product.reorder_threshold,
            Product.supplier_lead_time,
        )
        .join(Batch, UsageLog.batch_id == Batch.id)
        .join(Product, UsageLog.product_id == Product.id)
        .order_by(UsageLog.id)
        .all()
    )


def usage_totals(db: Session, start: date, end: date) -> list[UsageTotal]:
    """Per-batch usage for records dated within ``[start, end]`` inclusive."""
    results = (
        db.query(
            UsageLog.batch_id,
            Batch.batch_number,
            Product.product_name,
            func.sum(UsageLog.quantity_used).label("total_used"),
        )
        .join(Batch, UsageLog.batch_id == Batch.id)
        .join(Product, UsageLog.product_id == Product.id)
        .filter(UsageLog.usage_date >= start, UsageLog.usage_date <= end)
        .group_by(UsageLog.batch_id, Batch.batch_number, Product.product_name)
        .order_by(UsageLog.batch_id)
        .all()
    )
    return [
        UsageTotal(
            batch_id=r.batch_id,
            product_name=r.product_name,
            batch_number=r.batch_number,
            total_used=float(r.total_used),
        )
        for r in results
    ]
