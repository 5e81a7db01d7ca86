import asyncio

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from db.database import get_db
from interfaces.enrichmentModels import EnrichmentField, EnrichmentStatusResponse
from interfaces.productModels import FindBarcodeResponse, LegacyProductRecord, LookupStatus, ProductResponse
from logger_manager import log_info, log_error
from routers.dependencies import get_orchestrator
from services.enrichment_service import EnrichmentOrchestrator
from services.scan_history import get_product, record_scan
from utils.analysis_utils import format_product_response, to_legacy_record
from utils.exceptions import NotFoundError
from utils.fetch_data import lookup_product
from utils.ingredient_utils import normalize_ingredients

router = APIRouter()


def _load_product(db: Session, product_id: int):
    product = get_product(db, product_id)
    if not product:
        raise HTTPException(status_code=404, detail=f"Product {product_id} not found")
    return product


def _status_response(product_id: int, states) -> EnrichmentStatusResponse:
    return EnrichmentStatusResponse(
        record_id=product_id,
        summary=states[EnrichmentField.SUMMARY],
        explanations=states[EnrichmentField.EXPLANATIONS],
        risk_score=states[EnrichmentField.RISK_SCORE],
    )


@router.get("/find_barcode", response_model=FindBarcodeResponse)
async def find_product_by_barcode(barcode_number: str):
    """Endpoint to find product data using a barcode number, without recording a scan."""
    log_info(f"Find product by barcode endpoint called for barcode: {barcode_number}")
    result = await lookup_product(barcode_number)
    if result.status == LookupStatus.NOT_FOUND:
        raise HTTPException(status_code=404, detail=f"Product not found for barcode: {barcode_number}")
    if result.status == LookupStatus.TRANSPORT_ERROR:
        raise HTTPException(status_code=502, detail=f"Product lookup failed, please retry: {result.reason}")
    return FindBarcodeResponse(
        found=True,
        barcode=result.barcode,
        product=result.attributes,
        ingredients=normalize_ingredients(result.attributes.ingredients_text),
    )


@router.post("/scan/{barcode}", response_model=ProductResponse, status_code=201)
async def scan_product(
    barcode: str,
    enrich: bool = True,
    db: Session = Depends(get_db),
    orchestrator: EnrichmentOrchestrator = Depends(get_orchestrator),
):
    """Look up a scanned barcode, append it to the history and start enrichment."""
    log_info(f"Scan endpoint called for barcode: {barcode}")
    result = await lookup_product(barcode)
    if result.status == LookupStatus.NOT_FOUND:
        raise HTTPException(status_code=404, detail=f"Product not found for barcode: {barcode}")
    if result.status == LookupStatus.TRANSPORT_ERROR:
        raise HTTPException(status_code=502, detail=f"Product lookup failed, please retry: {result.reason}")

    product = record_scan(db, result.barcode, result.attributes)
    if enrich:
        orchestrator.request_all(product.id)
    return format_product_response(product, orchestrator.get_states(product.id, product))


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product_by_id(
    product_id: int,
    enrich: bool = True,
    db: Session = Depends(get_db),
    orchestrator: EnrichmentOrchestrator = Depends(get_orchestrator),
):
    """
    Product detail. Viewing a product requests every enrichment field that is
    not_requested or failed; succeeded and pending fields are left alone.
    """
    product = _load_product(db, product_id)
    if enrich:
        orchestrator.request_all(product_id)
    return format_product_response(product, orchestrator.get_states(product_id, product))


@router.get("/{product_id}/legacy", response_model=LegacyProductRecord)
async def get_legacy_product(
    product_id: int,
    db: Session = Depends(get_db),
    orchestrator: EnrichmentOrchestrator = Depends(get_orchestrator),
):
    """Product in the sentinel-valued layout used by older mobile clients."""
    product = _load_product(db, product_id)
    return to_legacy_record(product, orchestrator.get_states(product_id, product))


@router.get("/{product_id}/enrichment", response_model=EnrichmentStatusResponse)
async def get_enrichment_status(
    product_id: int,
    db: Session = Depends(get_db),
    orchestrator: EnrichmentOrchestrator = Depends(get_orchestrator),
):
    product = _load_product(db, product_id)
    return _status_response(product_id, orchestrator.get_states(product_id, product))


@router.post("/{product_id}/enrichment/{field}", response_model=EnrichmentStatusResponse)
async def request_enrichment(
    product_id: int,
    field: EnrichmentField,
    regenerate: bool = False,
    wait: bool = False,
    db: Session = Depends(get_db),
    orchestrator: EnrichmentOrchestrator = Depends(get_orchestrator),
):
    """
    Request one enrichment field. A pending field is not requested twice and
    `regenerate=true` replaces a succeeded one. With `wait=true` the response
    is sent once the field reached its final state; a record deleted meanwhile
    answers 404.
    """
    log_info(f"Enrichment of {field.value} requested for product {product_id}")
    try:
        task = orchestrator.request(product_id, field, regenerate=regenerate)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    if wait and task is not None:
        # a task cancelled by deleting the record must not cancel this request
        await asyncio.wait({task})
        if not task.cancelled() and task.exception() is not None:
            log_error(f"Enrichment task for product {product_id} ended with an error: {task.exception()}",
                      task.exception())
    db.expire_all()
    product = _load_product(db, product_id)
    return _status_response(product_id, orchestrator.get_states(product_id, product))
