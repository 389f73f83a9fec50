from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from pharmastock.database import get_db
from pharmastock.schemas.usage_log import UsageLogCreate, UsageLogOut
from pharmastock.services import usage_service

router = APIRouter(prefix="/usage-logs", tags=["Usage Logs"])


@router.post("", response_model=UsageLogOut, status_code=201)
def log_usage(data: UsageLogCreate, db: Session = Depends(get_db)):
    """Record stock consumed from a batch and decrement its current stock."""
    try:
        log = usage_service.log_usage(db, data)
    except ValueError as e:
        raise HTTPException(400, str(e))
    if not log:
        raise HTTPException(404, "Batch not found")
    return log


@router.get("", response_model=list[UsageLogOut])
def list_usage_logs(
    batch_id: int | None = None,
    limit: int = Query(default=100, ge=1, le=1000),
    db: Session = Depends(get_db),
):
    return usage_service.list_usage_logs(db, batch_id=batch_id, limit=limit)
