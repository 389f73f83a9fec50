import hmac

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from pharmastock.config import settings
from pharmastock.database import get_db
from pharmastock.models.snapshot import SnapshotType
from pharmastock.schemas.snapshot import SnapshotOut, StoredSnapshot
from pharmastock.services import snapshot_service

router = APIRouter(prefix="/snapshots", tags=["Snapshots"])
jobs_router = APIRouter(prefix="/jobs", tags=["Jobs"])


@router.get("", response_model=list[SnapshotOut])
def list_snapshots(
    kind: SnapshotType | None = None,
    limit: int = Query(default=50, ge=1, le=500),
    db: Session = Depends(get_db),
):
    return snapshot_service.list_snapshots(db, kind=kind.value if kind else None, limit=limit)


@router.get("/{snapshot_id}", response_model=StoredSnapshot)
def get_snapshot(snapshot_id: int, db: Session = Depends(get_db)):
    snapshot = snapshot_service.get_snapshot(db, snapshot_id)
    if not snapshot:
        raise HTTPException(404, "Snapshot not found")
    return snapshot


@jobs_router.post("/capture-snapshot", response_model=SnapshotOut, status_code=201)
def capture_snapshot(
    kind: SnapshotType,
    key: str = Query(default=""),
    db: Session = Depends(get_db),
):
    """External scheduler hook: freeze every batch under the given checkpoint kind."""
    if not settings.SNAPSHOT_JOB_KEY:
        raise HTTPException(503, "SNAPSHOT_JOB_KEY is not configured")
    if not hmac.compare_digest(key, settings.SNAPSHOT_JOB_KEY):
        raise HTTPException(401, "Invalid job key")
    snapshot = snapshot_service.capture_snapshot(db, kind)
    return SnapshotOut(
        id=snapshot.id,
        snapshot_type=snapshot.snapshot_type,
        snapshot_date=snapshot.snapshot_date,
        batch_count=len(StoredSnapshot.from_row(snapshot).entries),
    )
