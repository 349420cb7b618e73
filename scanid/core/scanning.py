"""Scanner input helpers.

A keyboard-wedge scanner types its payload like a very fast user and finishes
with Enter or Tab. These helpers turn that keystroke stream into a query:

* ``normalize_scan_value`` cleans the captured buffer,
* ``should_submit_from_key`` decides whether a key press ends the scan,
* ``resolve_scan_result`` classifies what the lookup service found.

All three are pure and safe to call from any request concurrently.
"""

from __future__ import annotations

import re

from ..schemas.scan import (
    ScanContext,
    ScanExact,
    ScanLookupResult,
    ScanMultiple,
    ScanNotFound,
    ScanSubmitTrigger,
)

__all__ = [
    "DEFAULT_TAB_SUBMIT_MIN_LENGTH",
    "normalize_scan_value",
    "resolve_scan_result",
    "should_submit_from_key",
]

DEFAULT_TAB_SUBMIT_MIN_LENGTH = 4

# C0 controls plus DEL and the C1 block. Scanners emit STX/ETX framing and
# stray CR/LF that must never reach a lookup.
_NON_PRINTABLE_RE = re.compile(r"[\x00-\x1f\x7f-\x9f]")
_WHITESPACE_RE = re.compile(r"\s+")


def normalize_scan_value(
    raw: str | None,
    *,
    remove_spaces: bool = True,
    strip_non_printable: bool = True,
) -> str:
    """Return the cleaned scan buffer.

    Control characters go first, then the ends are trimmed, then (by default)
    every remaining whitespace run is removed outright. Leading zeros are kept.
    """

    value = "" if raw is None else str(raw)
    if strip_non_printable:
        value = _NON_PRINTABLE_RE.sub("", value)
    value = value.strip()
    if remove_spaces:
        value = _WHITESPACE_RE.sub("", value)
    return value


def should_submit_from_key(
    key: str,
    normalized_value: str,
    supports_tab_submit: bool = False,
    tab_submit_min_length: int = DEFAULT_TAB_SUBMIT_MIN_LENGTH,
) -> ScanSubmitTrigger | None:
    """Map a key press to a submit trigger, or ``None`` for ordinary typing.

    Enter always submits, even on an empty buffer; the caller decides what an
    empty submission means. Tab submits only on surfaces that opted in and only
    once the buffer is long enough to be a scan rather than field navigation.
    """

    if key == "Enter":
        return ScanSubmitTrigger.ENTER
    if key == "Tab" and supports_tab_submit and len(normalized_value or "") >= tab_submit_min_length:
        return ScanSubmitTrigger.TAB
    return None


def resolve_scan_result(
    context: ScanContext | str,
    trigger: ScanSubmitTrigger | str,
    query: str,
    lookup: ScanLookupResult,
) -> ScanExact | ScanMultiple | ScanNotFound:
    """Classify a lookup response into exactly one outcome."""

    context = ScanContext(context)
    trigger = ScanSubmitTrigger(trigger)
    items = lookup.items

    if lookup.exact_match and len(items) == 1:
        return ScanExact(context=context, trigger=trigger, input=query, item=items[0])
    if items:
        return ScanMultiple(context=context, trigger=trigger, input=query, items=items)
    return ScanNotFound(context=context, trigger=trigger, input=query)
