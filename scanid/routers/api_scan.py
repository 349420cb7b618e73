from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.scanning import normalize_scan_value, resolve_scan_result, should_submit_from_key
from ..crud.scan_lookup import lookup_scan_products
from ..db.session import get_db
from ..deps.auth import require_api_key
from ..schemas.scan import (
    ScanLookupIn,
    ScanNormalizeIn,
    ScanNormalizeOut,
    ScanResolvedResult,
    ScanSubmitIn,
    ScanSubmitOut,
)

router = APIRouter(prefix="/api/v1/scan", tags=["scan"], dependencies=[Depends(require_api_key)])
logger = logging.getLogger("scanid.scan")


def _normalize(value: str | None, remove_spaces: bool | None = None, strip_non_printable: bool | None = None) -> str:
    return normalize_scan_value(
        value,
        remove_spaces=settings.SCAN_REMOVE_SPACES if remove_spaces is None else remove_spaces,
        strip_non_printable=settings.SCAN_STRIP_NON_PRINTABLE if strip_non_printable is None else strip_non_printable,
    )


@router.post("/normalize", response_model=ScanNormalizeOut)
def api_normalize(payload: ScanNormalizeIn):
    return {"value": _normalize(payload.value, payload.remove_spaces, payload.strip_non_printable)}


@router.post("/submit", response_model=ScanSubmitOut)
def api_submit(payload: ScanSubmitIn):
    normalized = _normalize(payload.value)
    supports_tab = settings.SCAN_TAB_SUBMIT_ENABLED if payload.supports_tab_submit is None else payload.supports_tab_submit
    min_length = (
        settings.SCAN_TAB_SUBMIT_MIN_LENGTH if payload.tab_submit_min_length is None else payload.tab_submit_min_length
    )
    trigger = should_submit_from_key(payload.key, normalized, supports_tab, min_length)
    return {"normalized_value": normalized, "trigger": trigger, "submit": trigger is not None}


@router.post("/lookup", response_model=ScanResolvedResult)
def api_lookup(payload: ScanLookupIn, db: Session = Depends(get_db)):
    query = _normalize(payload.query)
    lookup = lookup_scan_products(
        db,
        payload.organization_id,
        payload.query,
        limit=settings.SCAN_LOOKUP_LIMIT,
        remove_spaces=settings.SCAN_REMOVE_SPACES,
        strip_non_printable=settings.SCAN_STRIP_NON_PRINTABLE,
    )
    result = resolve_scan_result(payload.context, payload.trigger, query, lookup)
    logger.info(
        "scan.resolved",
        extra={
            "extra_data": {
                "organization_id": payload.organization_id,
                "context": payload.context.value,
                "trigger": payload.trigger.value,
                "kind": result.kind,
            }
        },
    )
    return result
