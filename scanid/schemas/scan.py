"""Value types passed between scan input handling, lookup and resolution."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ScanContext(str, Enum):
    """UI surface a scan happened in. Carried through for routing only."""

    GLOBAL = "global"
    COMMAND_PANEL = "commandPanel"
    STOCK_COUNT = "stockCount"
    POS = "pos"
    LINE_PICKER = "linePicker"


class ScanSubmitTrigger(str, Enum):
    ENTER = "enter"
    TAB = "tab"


class ScanMatchType(str, Enum):
    BARCODE = "barcode"
    SKU = "sku"
    NAME = "name"


class ScanProductType(str, Enum):
    PRODUCT = "product"
    BUNDLE = "bundle"


class ScanLookupItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    sku: str
    match_type: ScanMatchType
    type: ScanProductType = ScanProductType.PRODUCT
    primary_image: Optional[str] = None


class ScanLookupResult(BaseModel):
    """What the lookup service found.

    ``exact_match`` is advisory: the resolver only honours it when exactly one
    item came back.
    """

    model_config = ConfigDict(frozen=True)

    exact_match: bool = False
    items: tuple[ScanLookupItem, ...] = ()


class ScanExact(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["exact"] = "exact"
    context: ScanContext
    trigger: ScanSubmitTrigger
    input: str
    item: ScanLookupItem


class ScanMultiple(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["multiple"] = "multiple"
    context: ScanContext
    trigger: ScanSubmitTrigger
    input: str
    items: tuple[ScanLookupItem, ...] = Field(min_length=1)


class ScanNotFound(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["notFound"] = "notFound"
    context: ScanContext
    trigger: ScanSubmitTrigger
    input: str


ScanResolvedResult = Annotated[Union[ScanExact, ScanMultiple, ScanNotFound], Field(discriminator="kind")]


# ---- request/response bodies for the scan API


class ScanNormalizeIn(BaseModel):
    value: Optional[str] = None
    remove_spaces: Optional[bool] = None
    strip_non_printable: Optional[bool] = None


class ScanNormalizeOut(BaseModel):
    value: str


class ScanSubmitIn(BaseModel):
    key: str
    value: Optional[str] = None
    supports_tab_submit: Optional[bool] = None
    tab_submit_min_length: Optional[int] = Field(default=None, ge=0)


class ScanSubmitOut(BaseModel):
    normalized_value: str
    trigger: Optional[ScanSubmitTrigger] = None
    submit: bool


class ScanLookupIn(BaseModel):
    organization_id: str = Field(min_length=1)
    query: Optional[str] = None
    context: ScanContext = ScanContext.GLOBAL
    trigger: ScanSubmitTrigger = ScanSubmitTrigger.ENTER
