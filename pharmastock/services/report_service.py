from collections.abc import Sequence
from datetime import date, datetime, timedelta, timezone

from sqlalchemy.orm import Session, selectinload

from pharmastock.config import settings
from pharmastock.exceptions import InsufficientData
from pharmastock.models.product import Product
from pharmastock.schemas.snapshot import (
    BatchSnapshotEntry,
    ReportPeriod,
    StoredSnapshot,
    UsageTotal,
    WeeklyReport,
)
from pharmastock.services import snapshot_service, usage_service
from pharmastock.services.snapshot_differ import diff_snapshots


def inventory_summary(db: Session, today: date | None = None) -> dict:
    today = today or datetime.now(timezone.utc).date()
    products = db.query(Product).options(selectinload(Product.batches)).all()
    batches = [b for p in products for b in p.batches]

    low_stock = [
        b for p in products for b in p.batches if b.current_stock <= p.reorder_threshold
    ]
    expired = [b for b in batches if b.expiry_date and b.expiry_date < today]

    return {
        "total_products": len(products),
        "total_batches": len(batches),
        "total_units_in_stock": sum(b.current_stock for b in batches),
        "low_stock_count": len(low_stock),
        "low_stock_items": [
            {
                "batch_id": b.id,
                "batch_number": b.batch_number,
                "product_name": b.product.product_name,
                "current_stock": b.current_stock,
                "reorder_threshold": b.product.reorder_threshold,
            }
            for b in low_stock
        ],
        "expired_count": len(expired),
        "by_product": _group_by_product(products),
    }


def _group_by_product(products: list[Product]) -> list[dict]:
    return [
        {
            "product_id": p.id,
            "product_name": p.product_name,
            "strength": p.strength,
            "batch_count": len(p.batches),
            "total_units": sum(b.current_stock for b in p.batches),
        }
        for p in products
    ]


# --- Weekly report ---

def order_snapshots(snapshots: Sequence[StoredSnapshot | None]) -> tuple[StoredSnapshot, StoredSnapshot]:
    """Return ``(previous, current)`` by capture date, whatever order they arrived in."""
    present = [s for s in snapshots if s is not None]
    if len(present) < 2:
        raise InsufficientData(
            f"Weekly report needs two snapshots, found {len(present)}"
        )
    latest = sorted(present, key=lambda s: (s.snapshot_date, s.id), reverse=True)[:2]
    return latest[1], latest[0]


def expiring_entries(
    entries: Sequence[BatchSnapshotEntry], today: date, window_days: int
) -> list[BatchSnapshotEntry]:
    horizon = today + timedelta(days=window_days)
    return [e for e in entries if e.expiry_date is not None and today <= e.expiry_date <= horizon]


def compose_weekly_report(
    previous: StoredSnapshot,
    current: StoredSnapshot,
    usage_totals: list[UsageTotal],
    today: date,
    expiry_window_days: int = 30,
) -> WeeklyReport:
    return WeeklyReport(
        period=ReportPeriod(start=previous.snapshot_date, end=current.snapshot_date),
        inventory_changes=diff_snapshots(previous.entries, current.entries),
        usage_summary=usage_totals,
        expiring_soon=expiring_entries(current.entries, today, expiry_window_days),
    )


def weekly_report(db: Session, today: date | None = None, expiry_window_days: int | None = None) -> WeeklyReport:
    previous, current = order_snapshots(snapshot_service.latest_weekly_pair(db))
    totals = usage_service.usage_totals(
        db, start=previous.snapshot_date.date(), end=current.snapshot_date.date()
    )
    return compose_weekly_report(
        previous,
        current,
        totals,
        today=today or datetime.now(timezone.utc).date(),
        expiry_window_days=expiry_window_days if expiry_window_days is not None else settings.EXPIRY_WINDOW_DAYS,
    )
