from __future__ import annotations

from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class BarcodeMode(str, Enum):
    """Generation schemes understood by the allocator."""

    EAN13 = "EAN13"
    CODE128 = "CODE128"


BarcodeSymbology = Literal["ean13", "code128"]


class BarcodeRenderSpec(BaseModel):
    """How a stored value should be drawn. Recomputed on every render."""

    model_config = ConfigDict(frozen=True)

    symbology: BarcodeSymbology
    text: str


class BarcodeValidationOut(BaseModel):
    value: str
    valid: bool


class CheckDigitIn(BaseModel):
    digits: str


class CheckDigitOut(BaseModel):
    digits: str
    check_digit: str
    barcode: str


class PrimaryBarcodeIn(BaseModel):
    values: list[str] = Field(default_factory=list)


class PrimaryBarcodeOut(BaseModel):
    value: str
    render: Optional[BarcodeRenderSpec] = None


class BarcodeGenerateIn(BaseModel):
    organization_id: str = Field(min_length=1)
    mode: Optional[BarcodeMode] = None
    force: bool = False
    start_sequence: Optional[int] = Field(default=None, ge=0)


class BarcodeGenerateOut(BaseModel):
    product_id: int
    value: str
    mode: BarcodeMode
    barcodes: list[str]


class BulkBarcodeGenerateIn(BaseModel):
    organization_id: str = Field(min_length=1)
    mode: Optional[BarcodeMode] = None
    product_ids: Optional[list[int]] = None
    limit: int = 500
    start_sequence: Optional[int] = Field(default=None, ge=0)


class BulkBarcodeGenerateOut(BaseModel):
    scanned_count: int
    generated_count: int
    skipped_count: int
    updated_product_ids: list[int] = Field(default_factory=list)
