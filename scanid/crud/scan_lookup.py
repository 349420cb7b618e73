"""Catalog lookup backing the scan resolver.

Matching order: exact barcode, exact pack barcode, case-insensitive exact SKU,
then a ranked substring search over name, SKU and barcodes. Only the first
three produce an exact match; the resolver decides what to do with the rest.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from ..core.scanning import normalize_scan_value
from ..models.catalog import Product, ProductBarcode, ProductPack
from ..schemas.scan import ScanLookupItem, ScanLookupResult, ScanMatchType, ScanProductType

logger = logging.getLogger("scanid.lookup")

DEFAULT_LOOKUP_LIMIT = 10


def _to_item(product: Product, match_type: ScanMatchType) -> ScanLookupItem:
    return ScanLookupItem(
        id=str(product.id),
        sku=product.sku,
        name=product.name,
        match_type=match_type,
        type=ScanProductType.BUNDLE if product.is_bundle else ScanProductType.PRODUCT,
        primary_image=product.primary_image,
    )


def _like_pattern(needle: str) -> str:
    escaped = needle.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _exact(product: Product, match_type: ScanMatchType) -> ScanLookupResult:
    return ScanLookupResult(exact_match=True, items=(_to_item(product, match_type),))


def lookup_scan_products(
    db: Session,
    organization_id: str,
    query: str | None,
    limit: int = DEFAULT_LOOKUP_LIMIT,
    *,
    remove_spaces: bool = True,
    strip_non_printable: bool = True,
) -> ScanLookupResult:
    """Find catalog items for a scanned or typed query.

    The normalization flags must match the ones used to build the echoed
    input, otherwise the resolver reports a different string than was searched.
    """

    normalized = normalize_scan_value(query, remove_spaces=remove_spaces, strip_non_printable=strip_non_printable)
    trimmed = (query or "").strip()
    exact_needle = normalized or trimmed
    if not exact_needle:
        return ScanLookupResult(exact_match=False, items=())

    live = (Product.organization_id == organization_id, Product.is_deleted.is_(False))

    stmt = (
        select(Product)
        .join(ProductBarcode, ProductBarcode.product_id == Product.id)
        .where(ProductBarcode.organization_id == organization_id, ProductBarcode.value == exact_needle, *live)
    )
    product = db.execute(stmt).scalars().first()
    if product:
        return _exact(product, ScanMatchType.BARCODE)

    stmt = (
        select(Product)
        .join(ProductPack, ProductPack.product_id == Product.id)
        .where(ProductPack.organization_id == organization_id, ProductPack.pack_barcode == exact_needle, *live)
    )
    product = db.execute(stmt).scalars().first()
    if product:
        return _exact(product, ScanMatchType.BARCODE)

    stmt = select(Product).where(func.lower(Product.sku) == exact_needle.lower(), *live).order_by(Product.id)
    product = db.execute(stmt).scalars().first()
    if product:
        return _exact(product, ScanMatchType.SKU)

    # Names legitimately contain spaces, so fuzzy matching uses the trimmed
    # text; barcode columns are compared against the normalized form.
    fuzzy_needle = trimmed or exact_needle
    barcode_needle = normalized or fuzzy_needle
    fuzzy_pattern = _like_pattern(fuzzy_needle)
    barcode_pattern = _like_pattern(barcode_needle)

    stmt = (
        select(Product)
        .where(
            *live,
            or_(
                Product.name.ilike(fuzzy_pattern, escape="\\"),
                Product.sku.ilike(fuzzy_pattern, escape="\\"),
                Product.barcodes.any(ProductBarcode.value.ilike(barcode_pattern, escape="\\")),
                Product.packs.any(ProductPack.pack_barcode.ilike(barcode_pattern, escape="\\")),
            ),
        )
        .order_by(Product.name, Product.id)
        .limit(limit)
    )
    products = db.execute(stmt).scalars().all()

    barcode_lower = barcode_needle.lower()
    fuzzy_lower = fuzzy_needle.lower()
    items = []
    for product in products:
        if any(barcode_lower in (barcode.value or "").lower() for barcode in product.barcodes):
            match_type = ScanMatchType.BARCODE
        elif fuzzy_lower in (product.sku or "").lower():
            match_type = ScanMatchType.SKU
        else:
            match_type = ScanMatchType.NAME
        items.append(_to_item(product, match_type))

    logger.debug(
        "scan.lookup",
        extra={"extra_data": {"organization_id": organization_id, "candidates": len(items)}},
    )
    return ScanLookupResult(exact_match=False, items=tuple(items))
