import os
import sys
from pathlib import Path

import pytest
from pydantic import ValidationError

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("DATA_DIR", str(ROOT / "data"))

from scanid.core.scanning import normalize_scan_value, resolve_scan_result, should_submit_from_key
from scanid.schemas.scan import (
    ScanContext,
    ScanExact,
    ScanLookupItem,
    ScanLookupResult,
    ScanMatchType,
    ScanMultiple,
    ScanNotFound,
    ScanProductType,
    ScanSubmitTrigger,
)


def _item(item_id: str, name: str = "Milk", match_type: ScanMatchType = ScanMatchType.BARCODE) -> ScanLookupItem:
    return ScanLookupItem(id=item_id, name=name, sku=f"SKU-{item_id}", match_type=match_type)


# ---- normalize_scan_value


def test_normalize_removes_all_whitespace_by_default():
    assert normalize_scan_value(" 590\t1234\n123457 ") == "5901234123457"


def test_normalize_keeps_leading_zeros():
    assert normalize_scan_value("  00 0123  ") == "000123"


def test_normalize_strips_scanner_framing_characters():
    assert normalize_scan_value("\u0002ABC-123\u0003\n") == "ABC-123"
    assert normalize_scan_value("AB\x7fC\x9f") == "ABC"


def test_normalize_preserves_internal_spaces_when_requested():
    assert normalize_scan_value("  00 0123  ", remove_spaces=False) == "00 0123"
    assert normalize_scan_value(" 590\t1234 ", remove_spaces=False, strip_non_printable=False) == "590\t1234"


def test_normalize_without_stripping_still_trims_control_whitespace():
    assert normalize_scan_value("\nABC\r\n", strip_non_printable=False) == "ABC"
    assert normalize_scan_value("A\x02B", strip_non_printable=False) == "A\x02B"


@pytest.mark.parametrize("raw", [None, "", "   ", "\x00\x1f"])
def test_normalize_empty_inputs_return_empty_string(raw):
    assert normalize_scan_value(raw) == ""


# ---- should_submit_from_key


def test_enter_always_submits_even_when_empty():
    assert should_submit_from_key("Enter", "", False, 4) is ScanSubmitTrigger.ENTER
    assert should_submit_from_key("Enter", "000123", supports_tab_submit=False) is ScanSubmitTrigger.ENTER


def test_tab_requires_opt_in_and_minimum_length():
    assert should_submit_from_key("Tab", "ab", True, 4) is None
    assert should_submit_from_key("Tab", "abcd", True, 4) is ScanSubmitTrigger.TAB
    assert should_submit_from_key("Tab", "abcd", False, 4) is None
    assert should_submit_from_key("Tab", "7", True, 1) is ScanSubmitTrigger.TAB


def test_tab_min_length_defaults_to_four():
    assert should_submit_from_key("Tab", "abc", True) is None
    assert should_submit_from_key("Tab", "abcd", True) is ScanSubmitTrigger.TAB


@pytest.mark.parametrize("key", ["a", "Escape", "enter", "ArrowDown", ""])
def test_other_keys_never_submit(key):
    assert should_submit_from_key(key, "5901234123457", True, 0) is None


# ---- resolve_scan_result


def test_exact_match_with_single_item_resolves_exact():
    item = _item("1")
    lookup = ScanLookupResult(exact_match=True, items=[item])

    result = resolve_scan_result(ScanContext.POS, ScanSubmitTrigger.ENTER, "5901234123457", lookup)

    assert isinstance(result, ScanExact)
    assert result.kind == "exact"
    assert result.item == item
    assert result.context is ScanContext.POS
    assert result.trigger is ScanSubmitTrigger.ENTER
    assert result.input == "5901234123457"


def test_multiple_items_keep_supplied_order():
    first, second = _item("2", "Bread"), _item("1", "Apple")
    lookup = ScanLookupResult(exact_match=False, items=[first, second])

    result = resolve_scan_result("stockCount", "tab", "br", lookup)

    assert isinstance(result, ScanMultiple)
    assert result.items == (first, second)
    assert result.context is ScanContext.STOCK_COUNT
    assert result.trigger is ScanSubmitTrigger.TAB


def test_exact_flag_with_several_items_is_not_trusted():
    lookup = ScanLookupResult(exact_match=True, items=[_item("1"), _item("2")])

    result = resolve_scan_result(ScanContext.GLOBAL, ScanSubmitTrigger.ENTER, "x", lookup)

    assert isinstance(result, ScanMultiple)
    assert len(result.items) == 2


def test_exact_flag_without_items_resolves_not_found():
    lookup = ScanLookupResult(exact_match=True, items=[])

    result = resolve_scan_result(ScanContext.LINE_PICKER, ScanSubmitTrigger.ENTER, "missing", lookup)

    assert isinstance(result, ScanNotFound)
    assert result.kind == "notFound"
    assert result.input == "missing"


def test_empty_lookup_resolves_not_found():
    result = resolve_scan_result(ScanContext.COMMAND_PANEL, ScanSubmitTrigger.ENTER, "", ScanLookupResult())
    assert isinstance(result, ScanNotFound)


def test_resolved_results_serialize_with_kind_tag():
    item = _item("9", match_type=ScanMatchType.SKU)
    result = resolve_scan_result("pos", "enter", "SKU-9", ScanLookupResult(exact_match=True, items=[item]))

    payload = result.model_dump(mode="json")

    assert payload["kind"] == "exact"
    assert payload["context"] == "pos"
    assert payload["item"]["match_type"] == "sku"
    assert payload["item"]["type"] == ScanProductType.PRODUCT.value


def test_multiple_outcome_rejects_empty_items():
    with pytest.raises(ValidationError):
        ScanMultiple(context=ScanContext.GLOBAL, trigger=ScanSubmitTrigger.ENTER, input="x", items=[])


def test_unknown_context_is_rejected():
    with pytest.raises(ValueError):
        resolve_scan_result("warehouse", "enter", "x", ScanLookupResult())
