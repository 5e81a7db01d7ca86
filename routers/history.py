from datetime import datetime
from typing import List, Optional

import pytz
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from db.database import get_db
from env import APP_TIMEZONE
from interfaces.productModels import MessageResponse, ProductResponse, StatsResponse
from logger_manager import log_info, log_error
from routers.dependencies import get_orchestrator
from services.enrichment_service import EnrichmentOrchestrator
from services.scan_history import clear_scan_history, delete_scan, get_scan_history
from services.stats_service import METRICS, build_daily_stats, build_weekly_stats
from utils.analysis_utils import format_product_response

router = APIRouter()


@router.get("", response_model=List[ProductResponse])
def read_scan_history(
    limit: Optional[int] = None,
    db: Session = Depends(get_db),
    orchestrator: EnrichmentOrchestrator = Depends(get_orchestrator),
):
    """Scanned products, newest first."""
    log_info("Read scan history endpoint called")
    products = get_scan_history(db, limit=limit)
    return [format_product_response(product, orchestrator.get_states(product.id, product)) for product in products]


@router.get("/stats", response_model=StatsResponse)
def read_stats(
    metric: Optional[str] = None,
    timezone: Optional[str] = None,
    db: Session = Depends(get_db),
):
    """Daily totals over the trailing 7 days, for one metric or all of them."""
    log_info(f"Stats endpoint called for metric: {metric or 'all'}")
    zone_name = timezone or APP_TIMEZONE
    try:
        zone = pytz.timezone(zone_name)
    except pytz.UnknownTimeZoneError:
        raise HTTPException(status_code=400, detail=f"Unknown timezone: {zone_name}")

    products = get_scan_history(db, ascending=True)
    now = datetime.now(tz=pytz.utc)
    if metric is None:
        metrics = build_weekly_stats(products, now=now, tz=zone)
    else:
        if metric not in METRICS:
            raise HTTPException(status_code=400, detail=f"Unknown metric {metric}, expected one of {', '.join(METRICS)}")
        metrics = {metric: build_daily_stats(products, metric, now=now, tz=zone)}
    return StatsResponse(metrics=metrics, timezone=zone_name, generated_at=now)


@router.delete("/{product_id}", response_model=MessageResponse)
async def delete_scan_entry(
    product_id: int,
    db: Session = Depends(get_db),
    orchestrator: EnrichmentOrchestrator = Depends(get_orchestrator),
):
    log_info(f"Delete scan endpoint called for product {product_id}")
    if not delete_scan(db, product_id):
        log_error(f"Product {product_id} not found for deletion")
        raise HTTPException(status_code=404, detail=f"Product {product_id} not found")
    cancelled = orchestrator.discard(product_id)
    return MessageResponse(message="Scan deleted", details={"id": product_id, "cancelled_enrichments": cancelled})


@router.delete("", response_model=MessageResponse)
async def clear_history(
    db: Session = Depends(get_db),
    orchestrator: EnrichmentOrchestrator = Depends(get_orchestrator),
):
    log_info("Clear scan history endpoint called")
    deleted = clear_scan_history(db)
    cancelled = orchestrator.discard_all()
    return MessageResponse(message="Scan history cleared", details={"deleted": deleted, "cancelled_enrichments": cancelled})
