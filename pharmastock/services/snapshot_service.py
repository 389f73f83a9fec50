import json
import logging
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from pharmastock.models.product import Batch, Product
from pharmastock.models.snapshot import InventorySnapshot, SnapshotType
from pharmastock.schemas.snapshot import BatchSnapshotEntry, SnapshotOut, StoredSnapshot

logger = logging.getLogger(__name__)


def build_entries(db: Session) -> list[BatchSnapshotEntry]:
    rows = (
        db.query(
            Batch.id.label("batch_id"),
            Batch.product_id,
            Batch.batch_number,
            Batch.current_stock,
            Batch.initial_stock,
            Batch.expiry_date,
            Product.product_name,
            Product.strength,
            Product.reorder_threshold,
            Product.supplier_lead_time,
        )
        .join(Product, Batch.product_id == Product.id)
        .order_by(Batch.id)
        .all()
    )
    return [BatchSnapshotEntry.model_validate(dict(r._mapping)) for r in rows]


def capture_snapshot(
    db: Session, kind: SnapshotType | str, captured_at: datetime | None = None
) -> InventorySnapshot:
    """Freeze the current state of every batch under ``kind``. Invoked by the external scheduler."""
    kind = SnapshotType(kind)
    entries = build_entries(db)
    snapshot = InventorySnapshot(
        snapshot_type=kind.value,
        snapshot_data=json.dumps([e.model_dump(mode="json") for e in entries]),
        snapshot_date=captured_at or datetime.now(timezone.utc).replace(tzinfo=None),
    )
    db.add(snapshot)
    db.commit()
    db.refresh(snapshot)
    logger.info("Captured %s snapshot %s with %d batches", kind.value, snapshot.id, len(entries))
    return snapshot


def latest_of_kind(db: Session, kind: SnapshotType | str) -> StoredSnapshot | None:
    row = (
        db.query(InventorySnapshot)
        .filter(InventorySnapshot.snapshot_type == SnapshotType(kind).value)
        .order_by(InventorySnapshot.snapshot_date.desc(), InventorySnapshot.id.desc())
        .first()
    )
    return StoredSnapshot.from_row(row) if row else None


def latest_weekly_pair(db: Session) -> list[StoredSnapshot | None]:
    """Most recent week_start and week_end captures. Either may be missing."""
    return [latest_of_kind(db, SnapshotType.WEEK_START), latest_of_kind(db, SnapshotType.WEEK_END)]


def get_snapshot(db: Session, snapshot_id: int) -> StoredSnapshot | None:
    row = db.query(InventorySnapshot).filter(InventorySnapshot.id == snapshot_id).first()
    return StoredSnapshot.from_row(row) if row else None


def list_snapshots(db: Session, kind: str | None = None, limit: int = 50) -> list[SnapshotOut]:
    q = db.query(InventorySnapshot)
    if kind:
        q = q.filter(InventorySnapshot.snapshot_type == kind)
    rows = q.order_by(InventorySnapshot.snapshot_date.desc(), InventorySnapshot.id.desc()).limit(limit).all()
    return [
        SnapshotOut(
            id=r.id,
            snapshot_type=r.snapshot_type,
            snapshot_date=r.snapshot_date,
            batch_count=len(json.loads(r.snapshot_data or "[]")),
        )
        for r in rows
    ]
