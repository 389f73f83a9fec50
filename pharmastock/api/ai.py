import logging

from fastapi import APIRouter, Depends, Query, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pharmastock.config import settings
from pharmastock.database import get_db
from pharmastock.exceptions import InsufficientData, InvalidInput
from pharmastock.schemas.forecast import NarrativeOut
from pharmastock.services import forecast_service, narrative_service, report_service
from pharmastock.services.event_stream import error_events, narrative_events, sse_response
from pharmastock.services.narrative_service import NarrativeClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", tags=["AI"])


def get_narrative_client(request: Request) -> NarrativeClient:
    """Dependency: the app-wide narrative client created in the lifespan."""
    return request.app.state.narrative_client


def _stream(request: Request, narrator: NarrativeClient, messages: list[dict]):
    tokens = narrator.stream(messages)
    return sse_response(narrative_events(tokens, settings.SSE_HEARTBEAT_SECONDS, request.is_disconnected))


@router.get("/forecast")
async def stream_forecast(
    request: Request,
    alpha: float | None = Query(None, gt=0, le=1),
    db: Session = Depends(get_db),
    narrator: NarrativeClient = Depends(get_narrative_client),
):
    """Stream a narrative of the per-batch usage forecast as server-sent events."""
    try:
        run = await run_in_threadpool(forecast_service.run_forecast, db, alpha)
    except (SQLAlchemyError, InvalidInput) as e:
        logger.error("Forecast data unavailable: %s", e)
        return sse_response(error_events(f"Error: {e}"))
    return _stream(request, narrator, narrative_service.forecast_messages(run))


@router.get("/forecast/summary", response_model=NarrativeOut)
async def forecast_summary(
    alpha: float | None = Query(None, gt=0, le=1),
    db: Session = Depends(get_db),
    narrator: NarrativeClient = Depends(get_narrative_client),
):
    run = await run_in_threadpool(forecast_service.run_forecast, db, alpha)
    return NarrativeOut(narrative=await narrator.complete(narrative_service.forecast_messages(run)))


@router.get("/weekly-report")
async def stream_weekly_report(
    request: Request,
    db: Session = Depends(get_db),
    narrator: NarrativeClient = Depends(get_narrative_client),
):
    """Stream a narrative of the latest weekly snapshot comparison."""
    try:
        report = await run_in_threadpool(report_service.weekly_report, db)
    except (SQLAlchemyError, InsufficientData) as e:
        logger.error("Weekly report unavailable: %s", e)
        return sse_response(error_events(f"Error: {e}"))
    return _stream(request, narrator, narrative_service.report_messages(report))


@router.get("/weekly-report/summary", response_model=NarrativeOut)
async def weekly_report_summary(
    db: Session = Depends(get_db),
    narrator: NarrativeClient = Depends(get_narrative_client),
):
    report = await run_in_threadpool(report_service.weekly_report, db)
    return NarrativeOut(narrative=await narrator.complete(narrative_service.report_messages(report)))
