"""Assign generated barcodes to catalog products.

The allocator only reports a value that was free when it looked. A run stages
every insert in one transaction and flushes each as it goes. When the unique
constraint rejects a value because another writer got there first, the whole
run rolls back and starts again from the sequence after the one that lost, so
a run either assigns every barcode or none.

Session work happens in Starlette's threadpool, one step at a time, so the
event loop never blocks on the database and the session is never used from
two threads at once.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Sequence

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from ..core.barcodes import DEFAULT_MAX_PROBES, BarcodeAllocation, TakenPredicate, allocate_generated_barcode
from ..core.errors import BarcodeAllocationConflict, ProductBarcodeExists, ProductNotFound
from ..models.catalog import Product, ProductBarcode
from ..schemas.barcode import BarcodeMode

logger = logging.getLogger("scanid.product_barcodes")

DEFAULT_ALLOCATION_RETRIES = 3
BULK_LIMIT_MAX = 5_000


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z")


def barcode_is_taken(db: Session, organization_id: str, value: str) -> bool:
    stmt = select(ProductBarcode.id).where(
        ProductBarcode.organization_id == organization_id,
        ProductBarcode.value == value,
    )
    return db.execute(stmt).first() is not None


def make_taken_predicate(db: Session, organization_id: str) -> TakenPredicate:
    """Wrap the synchronous existence check as the allocator's async predicate."""

    async def is_taken(candidate: str) -> bool:
        return await run_in_threadpool(barcode_is_taken, db, organization_id, candidate)

    return is_taken


def _existing_barcodes(db: Session, organization_id: str, product_id: int) -> list[str]:
    product = db.get(Product, product_id)
    if not product or product.organization_id != organization_id or product.is_deleted:
        raise ProductNotFound("Product not found", product_id=product_id)
    return [barcode.value for barcode in product.barcodes]


def _bulk_candidates(
    db: Session, organization_id: str, product_ids: Sequence[int] | None, limit: int
) -> list[tuple[int, bool]]:
    stmt = select(Product).where(Product.organization_id == organization_id, Product.is_deleted.is_(False))
    unique_ids = sorted(set(product_ids or []))
    if unique_ids:
        stmt = stmt.where(Product.id.in_(unique_ids))
    stmt = stmt.order_by(Product.name, Product.id).limit(limit)
    return [(product.id, bool(product.barcodes)) for product in db.execute(stmt).scalars().all()]


def _stage_barcode(db: Session, organization_id: str, product_id: int, value: str, replace_existing: bool) -> None:
    if replace_existing:
        db.execute(
            delete(ProductBarcode).where(
                ProductBarcode.organization_id == organization_id,
                ProductBarcode.product_id == product_id,
            )
        )
    db.add(
        ProductBarcode(
            organization_id=organization_id,
            product_id=product_id,
            value=value,
            created_at=_utcnow(),
        )
    )
    db.flush()


async def _assign_generated_barcodes(
    db: Session,
    *,
    organization_id: str,
    product_ids: Sequence[int],
    mode: BarcodeMode,
    replace_existing: bool,
    start_sequence: int | None,
    max_probes: int,
    retries: int,
    is_taken: TakenPredicate,
    cancel_event: asyncio.Event | None = None,
) -> list[BarcodeAllocation]:
    sequence = start_sequence
    for attempt in range(retries + 1):
        allocations: list[BarcodeAllocation] = []
        next_sequence = sequence
        allocation: BarcodeAllocation | None = None
        try:
            for product_id in product_ids:
                allocation = await allocate_generated_barcode(
                    organization_id,
                    mode,
                    is_taken,
                    start_sequence=next_sequence,
                    max_probes=max_probes,
                    cancel_event=cancel_event,
                )
                await run_in_threadpool(
                    _stage_barcode, db, organization_id, product_id, allocation.value, replace_existing
                )
                allocations.append(allocation)
                next_sequence = allocation.sequence + 1
            await run_in_threadpool(db.commit)
        except IntegrityError:
            await run_in_threadpool(db.rollback)
            logger.info(
                "barcode.allocation_conflict",
                extra={
                    "extra_data": {
                        "organization_id": organization_id,
                        "value": allocation.value if allocation else None,
                        "staged": len(allocations),
                        "attempt": attempt + 1,
                    }
                },
            )
            sequence = allocation.sequence + 1 if allocation else sequence
            continue
        except BaseException:
            await run_in_threadpool(db.rollback)
            raise
        return allocations

    raise BarcodeAllocationConflict(
        "Generated barcode kept colliding with concurrent writes",
        organization_id=organization_id,
        product_ids=list(product_ids),
        retries=retries,
    )


async def generate_product_barcode(
    db: Session,
    *,
    organization_id: str,
    product_id: int,
    mode: BarcodeMode | str = BarcodeMode.EAN13,
    force: bool = False,
    start_sequence: int | None = None,
    max_probes: int = DEFAULT_MAX_PROBES,
    retries: int = DEFAULT_ALLOCATION_RETRIES,
    is_taken: TakenPredicate | None = None,
    cancel_event: asyncio.Event | None = None,
) -> dict[str, object]:
    """Generate a barcode for one product.

    A product that already has barcodes is rejected unless ``force`` is set,
    in which case the old values are replaced by the generated one. The old
    values survive any failed attempt.
    """

    mode = BarcodeMode(mode)
    before = await run_in_threadpool(_existing_barcodes, db, organization_id, product_id)
    if before and not force:
        raise ProductBarcodeExists("Product already has a barcode", product_id=product_id, barcodes=before)

    (allocation,) = await _assign_generated_barcodes(
        db,
        organization_id=organization_id,
        product_ids=[product_id],
        mode=mode,
        replace_existing=bool(before),
        start_sequence=start_sequence,
        max_probes=max_probes,
        retries=retries,
        is_taken=is_taken or make_taken_predicate(db, organization_id),
        cancel_event=cancel_event,
    )
    logger.info(
        "product.barcode_generated",
        extra={
            "extra_data": {
                "organization_id": organization_id,
                "product_id": product_id,
                "mode": mode.value,
                "replaced": before,
            }
        },
    )
    return {"product_id": product_id, "value": allocation.value, "mode": mode, "barcodes": [allocation.value]}


async def bulk_generate_product_barcodes(
    db: Session,
    *,
    organization_id: str,
    mode: BarcodeMode | str = BarcodeMode.EAN13,
    product_ids: list[int] | None = None,
    limit: int = 500,
    start_sequence: int | None = None,
    max_probes: int = DEFAULT_MAX_PROBES,
    retries: int = DEFAULT_ALLOCATION_RETRIES,
    is_taken: TakenPredicate | None = None,
    cancel_event: asyncio.Event | None = None,
) -> dict[str, object]:
    """Give every live product without a barcode a generated one.

    All products in the run are written in a single transaction; if any of
    them cannot be assigned, none are.
    """

    mode = BarcodeMode(mode)
    limit = min(max(limit, 1), BULK_LIMIT_MAX)
    pending = await run_in_threadpool(_bulk_candidates, db, organization_id, product_ids, limit)
    targets = [product_id for product_id, has_barcode in pending if not has_barcode]

    if targets:
        await _assign_generated_barcodes(
            db,
            organization_id=organization_id,
            product_ids=targets,
            mode=mode,
            replace_existing=False,
            start_sequence=start_sequence,
            max_probes=max_probes,
            retries=retries,
            is_taken=is_taken or make_taken_predicate(db, organization_id),
            cancel_event=cancel_event,
        )

    skipped = len(pending) - len(targets)
    logger.info(
        "product.barcodes_bulk_generated",
        extra={
            "extra_data": {
                "organization_id": organization_id,
                "mode": mode.value,
                "generated": len(targets),
                "skipped": skipped,
            }
        },
    )
    return {
        "scanned_count": len(pending),
        "generated_count": len(targets),
        "skipped_count": skipped,
        "updated_product_ids": targets,
    }
