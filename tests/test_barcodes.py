import asyncio
import os
import random
import re
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))

from scanid.core.barcodes import (
    allocate_generated_barcode,
    build_generated_barcode_candidate,
    compute_ean13_check_digit,
    is_valid_ean13,
    normalize_barcode_value,
    resolve_barcode_render_spec,
    resolve_unique_generated_barcode,
    select_primary_barcode_value,
    sequence_capacity,
)
from scanid.core.errors import (
    BarcodeAllocationCancelled,
    BarcodeAllocationExhausted,
    BarcodeError,
    InvalidBarcodeFormat,
)
from scanid.schemas.barcode import BarcodeMode, BarcodeRenderSpec

EAN13_RE = re.compile(r"^\d{13}$")


class RecordingTakenSet:
    """In-memory stand-in for the catalog's taken-barcode check."""

    def __init__(self, taken=()):
        self.taken = set(taken)
        self.probes = []

    async def __call__(self, candidate: str) -> bool:
        self.probes.append(candidate)
        return candidate in self.taken


# ---- check digit and validation


def test_check_digit_matches_reference_example():
    assert compute_ean13_check_digit("590123412345") == "7"
    assert is_valid_ean13("5901234123457") is True


def test_check_digit_of_all_zero_body_is_zero():
    assert compute_ean13_check_digit("000000000000") == "0"


def test_check_digit_round_trips_for_random_bodies():
    rng = random.Random(1234)
    for _ in range(200):
        body = "".join(rng.choice("0123456789") for _ in range(12))
        digit = compute_ean13_check_digit(body)
        assert len(digit) == 1 and digit in "0123456789"
        assert is_valid_ean13(body + digit)


@pytest.mark.parametrize(
    "digits",
    ["", "59012341234", "5901234123457", "59012341234a", " 90123412345", "５９０１２３４１２３４５", "590123412345\n"],
)
def test_check_digit_rejects_malformed_input(digits):
    with pytest.raises(InvalidBarcodeFormat):
        compute_ean13_check_digit(digits)


def test_invalid_format_is_a_value_error():
    with pytest.raises(ValueError):
        compute_ean13_check_digit(None)  # type: ignore[arg-type]
    assert issubclass(InvalidBarcodeFormat, BarcodeError)


@pytest.mark.parametrize(
    "code",
    ["5901234123458", "590123412345", "59012341234570", "590123412345A", "", "590 1234123457", "SKU-ABC-001"],
)
def test_is_valid_ean13_rejects_without_raising(code):
    assert is_valid_ean13(code) is False


def test_is_valid_ean13_tolerates_non_strings():
    assert is_valid_ean13(None) is False  # type: ignore[arg-type]
    assert is_valid_ean13(5901234123457) is False  # type: ignore[arg-type]


# ---- render spec


def test_valid_ean13_renders_as_ean13():
    assert resolve_barcode_render_spec("5901234123457") == BarcodeRenderSpec(symbology="ean13", text="5901234123457")


def test_other_values_fall_back_to_code128():
    assert resolve_barcode_render_spec("SKU-ABC-001") == BarcodeRenderSpec(symbology="code128", text="SKU-ABC-001")
    # right length, wrong checksum
    assert resolve_barcode_render_spec("5901234123458").symbology == "code128"
    assert resolve_barcode_render_spec("").symbology == "code128"


# ---- primary value selection


def test_primary_value_prefers_first_valid_ean13():
    values = ["SKU-1", " 4006381333931 ", "5901234123457"]
    assert select_primary_barcode_value(values) == "4006381333931"


def test_primary_value_falls_back_to_first_non_empty():
    assert select_primary_barcode_value(["  ", "ABC 123", "XYZ"]) == "ABC123"
    assert select_primary_barcode_value([]) == ""
    assert select_primary_barcode_value([None, ""]) == ""


def test_normalize_barcode_value_drops_whitespace():
    assert normalize_barcode_value(" 590 1234\t123457\n") == "5901234123457"
    assert normalize_barcode_value(None) == ""


# ---- candidate construction


def test_candidate_is_deterministic():
    first = build_generated_barcode_candidate("org-1", BarcodeMode.EAN13, 42)
    second = build_generated_barcode_candidate("org-1", "EAN13", 42)
    assert first == second


def test_ean13_candidates_are_valid_and_in_store_prefixed():
    for sequence in (0, 1, 99, 123456, 999999):
        candidate = build_generated_barcode_candidate("org-1", BarcodeMode.EAN13, sequence)
        assert EAN13_RE.match(candidate)
        assert is_valid_ean13(candidate)
        assert candidate.startswith("29")
        assert candidate[6:12] == str(sequence).zfill(6)


def test_ean13_candidates_are_distinct_per_sequence():
    candidates = {build_generated_barcode_candidate("org-1", BarcodeMode.EAN13, seq) for seq in range(5000)}
    assert len(candidates) == 5000


def test_organization_prefix_depends_on_organization_only():
    a0 = build_generated_barcode_candidate("org-a", BarcodeMode.EAN13, 0)
    a9 = build_generated_barcode_candidate("org-a", BarcodeMode.EAN13, 9)
    assert a0[:6] == a9[:6]
    assert re.fullmatch(r"29\d{4}", a0[:6])


def test_sequences_wrap_at_mode_capacity():
    capacity = sequence_capacity(BarcodeMode.EAN13)
    assert capacity == 10**6
    assert build_generated_barcode_candidate("org-1", "EAN13", capacity + 5) == build_generated_barcode_candidate(
        "org-1", "EAN13", 5
    )
    assert build_generated_barcode_candidate("org-1", "EAN13", -1) == build_generated_barcode_candidate(
        "org-1", "EAN13", capacity - 1
    )


def test_code128_candidates():
    candidate = build_generated_barcode_candidate("org-1", BarcodeMode.CODE128, 17)
    assert re.fullmatch(r"BZ\d{4}00000017", candidate)
    assert resolve_barcode_render_spec(candidate).symbology == "code128"
    assert sequence_capacity("CODE128") == 10**8


def test_unknown_mode_is_rejected():
    with pytest.raises(ValueError):
        build_generated_barcode_candidate("org-1", "UPC", 1)


# ---- uniqueness resolution


def test_resolve_unique_skips_taken_candidates():
    taken = RecordingTakenSet(
        [
            build_generated_barcode_candidate("org-1", BarcodeMode.EAN13, 100),
            build_generated_barcode_candidate("org-1", BarcodeMode.EAN13, 101),
        ]
    )

    resolved = asyncio.run(resolve_unique_generated_barcode("org-1", BarcodeMode.EAN13, taken, start_sequence=100))

    assert resolved not in taken.taken
    assert EAN13_RE.match(resolved)
    assert resolved == build_generated_barcode_candidate("org-1", BarcodeMode.EAN13, 102)


def test_probe_order_is_sequential_and_increasing():
    expected = [build_generated_barcode_candidate("org-1", "EAN13", seq) for seq in range(7, 11)]
    taken = RecordingTakenSet(expected[:3])

    allocation = asyncio.run(allocate_generated_barcode("org-1", "EAN13", taken, start_sequence=7))

    assert taken.probes == expected
    assert allocation.value == expected[3]
    assert allocation.sequence == 10
    assert allocation.probes == 4


def test_free_first_candidate_needs_one_probe():
    taken = RecordingTakenSet()
    value = asyncio.run(resolve_unique_generated_barcode("org-2", "CODE128", taken, start_sequence=0))
    assert taken.probes == [value]


def test_exhausted_probes_raise_instead_of_looping():
    always_taken = RecordingTakenSet()

    async def is_taken(candidate):
        await always_taken(candidate)
        return True

    with pytest.raises(BarcodeAllocationExhausted) as excinfo:
        asyncio.run(
            resolve_unique_generated_barcode("org-1", "EAN13", is_taken, start_sequence=0, max_probes=25)
        )

    assert len(always_taken.probes) == 25
    assert excinfo.value.details["max_probes"] == 25
    assert excinfo.value.details["organization_id"] == "org-1"


def test_max_probes_must_be_positive():
    with pytest.raises(ValueError):
        asyncio.run(resolve_unique_generated_barcode("org-1", "EAN13", RecordingTakenSet(), max_probes=0))


def test_cancellation_is_checked_before_each_probe():
    cancel = asyncio.Event()
    probes = []

    async def is_taken(candidate):
        probes.append(candidate)
        if len(probes) == 3:
            cancel.set()
        return True

    with pytest.raises(BarcodeAllocationCancelled) as excinfo:
        asyncio.run(
            resolve_unique_generated_barcode("org-1", "EAN13", is_taken, start_sequence=0, cancel_event=cancel)
        )

    assert len(probes) == 3
    assert excinfo.value.details["probes"] == 3


def test_already_cancelled_allocation_never_probes():
    cancel = asyncio.Event()
    cancel.set()
    taken = RecordingTakenSet()

    with pytest.raises(BarcodeAllocationCancelled):
        asyncio.run(resolve_unique_generated_barcode("org-1", "EAN13", taken, start_sequence=0, cancel_event=cancel))

    assert taken.probes == []


def test_default_start_sequence_uses_clock(monkeypatch):
    from scanid.core import barcodes

    monkeypatch.setattr(barcodes, "_default_start_sequence", lambda: 555)
    value = asyncio.run(resolve_unique_generated_barcode("org-1", "EAN13", RecordingTakenSet()))

    assert value == build_generated_barcode_candidate("org-1", "EAN13", 555)
