from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from ..core.barcodes import (
    compute_ean13_check_digit,
    is_valid_ean13,
    resolve_barcode_render_spec,
    select_primary_barcode_value,
)
from ..deps.auth import require_api_key
from ..schemas.barcode import (
    BarcodeRenderSpec,
    BarcodeValidationOut,
    CheckDigitIn,
    CheckDigitOut,
    PrimaryBarcodeIn,
    PrimaryBarcodeOut,
)

router = APIRouter(prefix="/api/v1/barcodes", tags=["barcodes"], dependencies=[Depends(require_api_key)])


@router.get("/render", response_model=BarcodeRenderSpec)
def api_render(value: str = Query(...)):
    return resolve_barcode_render_spec(value)


@router.get("/validate", response_model=BarcodeValidationOut)
def api_validate(value: str = Query(...)):
    return {"value": value, "valid": is_valid_ean13(value)}


@router.post("/check-digit", response_model=CheckDigitOut)
def api_check_digit(payload: CheckDigitIn):
    # InvalidBarcodeFormat propagates to the barcode error handler (422).
    check_digit = compute_ean13_check_digit(payload.digits)
    return {"digits": payload.digits, "check_digit": check_digit, "barcode": payload.digits + check_digit}


@router.post("/primary", response_model=PrimaryBarcodeOut)
def api_primary(payload: PrimaryBarcodeIn):
    value = select_primary_barcode_value(payload.values)
    return {"value": value, "render": resolve_barcode_render_spec(value) if value else None}
