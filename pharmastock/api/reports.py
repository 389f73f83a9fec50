from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from pharmastock.database import get_db
from pharmastock.schemas.forecast import ForecastRun
from pharmastock.schemas.snapshot import WeeklyReport
from pharmastock.services import forecast_service, report_service

router = APIRouter(prefix="/reports", tags=["Reports"])
forecast_router = APIRouter(prefix="/forecasts", tags=["Forecasts"])


@router.get("/inventory")
def inventory_report(db: Session = Depends(get_db)):
    return report_service.inventory_summary(db)


@router.get("/weekly", response_model=WeeklyReport)
def weekly_report(
    today: date | None = Query(None, description="Reference date for the expiry window"),
    expiry_window_days: int | None = Query(None, ge=0, le=365),
    db: Session = Depends(get_db),
):
    """Compare the latest week_start and week_end snapshots. 409 when either is missing."""
    return report_service.weekly_report(db, today=today, expiry_window_days=expiry_window_days)


@forecast_router.get("", response_model=ForecastRun)
def forecasts(alpha: float | None = Query(None, gt=0, le=1), db: Session = Depends(get_db)):
    return forecast_service.run_forecast(db, alpha=alpha)
