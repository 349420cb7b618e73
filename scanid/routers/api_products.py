from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.config import settings
from ..crud.product_barcodes import bulk_generate_product_barcodes, generate_product_barcode
from ..db.session import get_db
from ..deps.auth import require_api_key
from ..schemas.barcode import (
    BarcodeGenerateIn,
    BarcodeGenerateOut,
    BarcodeMode,
    BulkBarcodeGenerateIn,
    BulkBarcodeGenerateOut,
)

router = APIRouter(prefix="/api/v1/products", tags=["products"], dependencies=[Depends(require_api_key)])


@router.post("/barcodes/bulk-generate", response_model=BulkBarcodeGenerateOut)
async def api_bulk_generate(payload: BulkBarcodeGenerateIn, db: Session = Depends(get_db)):
    return await bulk_generate_product_barcodes(
        db,
        organization_id=payload.organization_id,
        mode=payload.mode or BarcodeMode(settings.BARCODE_DEFAULT_MODE),
        product_ids=payload.product_ids,
        limit=payload.limit,
        start_sequence=payload.start_sequence,
        max_probes=settings.BARCODE_MAX_PROBES,
        retries=settings.BARCODE_ALLOCATION_RETRIES,
    )


@router.post("/{product_id}/barcode", response_model=BarcodeGenerateOut, status_code=201)
async def api_generate(product_id: int, payload: BarcodeGenerateIn, db: Session = Depends(get_db)):
    return await generate_product_barcode(
        db,
        organization_id=payload.organization_id,
        product_id=product_id,
        mode=payload.mode or BarcodeMode(settings.BARCODE_DEFAULT_MODE),
        force=payload.force,
        start_sequence=payload.start_sequence,
        max_probes=settings.BARCODE_MAX_PROBES,
        retries=settings.BARCODE_ALLOCATION_RETRIES,
    )
