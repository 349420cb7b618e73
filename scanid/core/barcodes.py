"""Barcode codec and allocation helpers.

Check digits, render-format selection and candidate construction are pure.
``resolve_unique_generated_barcode`` is the only coroutine: it probes
candidates one at a time through an injected ``is_taken`` callable and never
persists anything itself. Two concurrent allocations can both see the same
candidate as free; the catalog's ``(organization_id, value)`` constraint is
what makes the value unique, and callers retry from the next sequence when an
insert loses that race.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
import re
import time
from typing import Awaitable, Callable, Iterable, NamedTuple

from ..schemas.barcode import BarcodeMode, BarcodeRenderSpec
from .errors import BarcodeAllocationCancelled, BarcodeAllocationExhausted, InvalidBarcodeFormat

__all__ = [
    "BarcodeAllocation",
    "DEFAULT_MAX_PROBES",
    "TakenPredicate",
    "allocate_generated_barcode",
    "build_generated_barcode_candidate",
    "compute_ean13_check_digit",
    "is_valid_ean13",
    "normalize_barcode_value",
    "resolve_barcode_render_spec",
    "resolve_unique_generated_barcode",
    "select_primary_barcode_value",
    "sequence_capacity",
]

logger = logging.getLogger("scanid.barcodes")

TakenPredicate = Callable[[str], Awaitable[bool]]

# GS1 reserves 20-29 for in-store numbering, so generated EANs never clash
# with manufacturer-assigned GTINs.
INTERNAL_EAN_PREFIX = "29"
CODE128_PREFIX = "BZ"
ORG_HASH_LENGTH = 4
EAN_SEQUENCE_LENGTH = 6
CODE128_SEQUENCE_LENGTH = 8
DEFAULT_MAX_PROBES = 10_000

_TWELVE_DIGITS_RE = re.compile(r"[0-9]{12}")
_THIRTEEN_DIGITS_RE = re.compile(r"[0-9]{13}")
_WHITESPACE_RE = re.compile(r"\s+")

_SEQUENCE_LENGTHS = {
    BarcodeMode.EAN13: EAN_SEQUENCE_LENGTH,
    BarcodeMode.CODE128: CODE128_SEQUENCE_LENGTH,
}


class BarcodeAllocation(NamedTuple):
    value: str
    sequence: int
    probes: int


def normalize_barcode_value(value: str | None) -> str:
    """Drop every whitespace character from a stored barcode value."""

    return _WHITESPACE_RE.sub("", value or "")


def compute_ean13_check_digit(digits12: str) -> str:
    """Return the EAN-13 check digit for a 12-digit body.

    Weights run 1,3,1,3... from the leftmost digit. Anything other than exactly
    twelve ASCII digits raises ``InvalidBarcodeFormat``; nothing is padded.
    """

    if not isinstance(digits12, str) or not _TWELVE_DIGITS_RE.fullmatch(digits12):
        raise InvalidBarcodeFormat(
            "EAN-13 check digit requires exactly 12 digits",
            value=digits12 if isinstance(digits12, str) else repr(digits12),
        )
    total = sum(int(digit) * (3 if index % 2 else 1) for index, digit in enumerate(digits12))
    return str((10 - total % 10) % 10)


def is_valid_ean13(code: str) -> bool:
    if not isinstance(code, str) or not _THIRTEEN_DIGITS_RE.fullmatch(code):
        return False
    return compute_ean13_check_digit(code[:12]) == code[12]


def resolve_barcode_render_spec(value: str) -> BarcodeRenderSpec:
    """Pick the symbology a value should be printed with.

    Valid EAN-13 values render as EAN-13; everything else (SKUs, alphanumerics,
    EAN-looking strings with a bad checksum) falls back to CODE128.
    """

    if is_valid_ean13(value):
        return BarcodeRenderSpec(symbology="ean13", text=value)
    return BarcodeRenderSpec(symbology="code128", text=value)


def select_primary_barcode_value(values: Iterable[str | None]) -> str:
    """Choose the value to print on labels: first valid EAN-13, else the first value."""

    normalized = [cleaned for cleaned in (normalize_barcode_value(value) for value in values) if cleaned]
    if not normalized:
        return ""
    for value in normalized:
        if is_valid_ean13(value):
            return value
    return normalized[0]


def sequence_capacity(mode: BarcodeMode | str) -> int:
    """Number of distinct sequences a mode can encode before wrapping."""

    return 10 ** _SEQUENCE_LENGTHS[BarcodeMode(mode)]


def _hash_to_digits(value: str, length: int) -> str:
    # Each hex nibble of the SHA-1 digest folds into one decimal digit.
    digest = hashlib.sha1(value.encode("utf-8")).hexdigest()
    return "".join(str(int(nibble, 16) % 10) for nibble in digest[:length])


def build_generated_barcode_candidate(
    organization_id: str,
    mode: BarcodeMode | str,
    sequence: int,
) -> str:
    """Build the deterministic candidate for ``sequence``.

    EAN13: ``29`` + 4-digit organization hash + 6-digit sequence + check digit.
    CODE128: ``BZ`` + 4-digit organization hash + 8-digit sequence.

    Sequences are reduced modulo the mode's capacity, so distinct sequences
    give distinct candidates within one capacity window.
    """

    mode = BarcodeMode(mode)
    org_hash = _hash_to_digits(organization_id, ORG_HASH_LENGTH)
    width = _SEQUENCE_LENGTHS[mode]
    encoded = str(int(sequence) % 10**width).zfill(width)

    if mode is BarcodeMode.EAN13:
        body = f"{INTERNAL_EAN_PREFIX}{org_hash}{encoded}"
        return f"{body}{compute_ean13_check_digit(body)}"
    return f"{CODE128_PREFIX}{org_hash}{encoded}"


def _default_start_sequence() -> int:
    return time.time_ns() // 1_000_000


async def allocate_generated_barcode(
    organization_id: str,
    mode: BarcodeMode | str,
    is_taken: TakenPredicate,
    *,
    start_sequence: int | None = None,
    max_probes: int = DEFAULT_MAX_PROBES,
    cancel_event: asyncio.Event | None = None,
) -> BarcodeAllocation:
    """Probe candidates sequentially and return the first free one with its sequence.

    Exactly one ``is_taken`` call is outstanding at a time and sequences only
    ever increase, so a fixed start and a fixed taken-set always produce the
    same probe order. ``cancel_event`` is checked before each probe.
    """

    mode = BarcodeMode(mode)
    if max_probes < 1:
        raise ValueError("max_probes must be at least 1")
    if start_sequence is None:
        start_sequence = _default_start_sequence()

    for attempt in range(max_probes):
        if cancel_event is not None and cancel_event.is_set():
            raise BarcodeAllocationCancelled(
                "Barcode allocation was cancelled",
                organization_id=organization_id,
                mode=mode.value,
                probes=attempt,
            )
        sequence = start_sequence + attempt
        candidate = build_generated_barcode_candidate(organization_id, mode, sequence)
        if not await is_taken(candidate):
            logger.debug(
                "barcode.allocated",
                extra={
                    "extra_data": {
                        "organization_id": organization_id,
                        "mode": mode.value,
                        "sequence": sequence,
                        "probes": attempt + 1,
                    }
                },
            )
            return BarcodeAllocation(value=candidate, sequence=sequence, probes=attempt + 1)

    logger.warning(
        "barcode.allocation_exhausted",
        extra={
            "extra_data": {
                "organization_id": organization_id,
                "mode": mode.value,
                "start_sequence": start_sequence,
                "max_probes": max_probes,
            }
        },
    )
    raise BarcodeAllocationExhausted(
        f"No free {mode.value} barcode after {max_probes} probes",
        organization_id=organization_id,
        mode=mode.value,
        start_sequence=start_sequence,
        max_probes=max_probes,
    )


async def resolve_unique_generated_barcode(
    organization_id: str,
    mode: BarcodeMode | str,
    is_taken: TakenPredicate,
    *,
    start_sequence: int | None = None,
    max_probes: int = DEFAULT_MAX_PROBES,
    cancel_event: asyncio.Event | None = None,
) -> str:
    """Return a candidate that ``is_taken`` reported free at probe time."""

    allocation = await allocate_generated_barcode(
        organization_id,
        mode,
        is_taken,
        start_sequence=start_sequence,
        max_probes=max_probes,
        cancel_event=cancel_event,
    )
    return allocation.value
