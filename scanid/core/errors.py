from __future__ import annotations

from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette import status
from starlette.exceptions import HTTPException as StarletteHTTPException


class BarcodeError(Exception):
    """Base class for barcode codec and allocation failures."""

    code = "barcode_error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class InvalidBarcodeFormat(BarcodeError, ValueError):
    """Raised when fixed-length input to the check digit routine is malformed."""

    code = "invalid_barcode_format"
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class BarcodeAllocationExhausted(BarcodeError):
    """Every probed candidate was already taken.

    This is a capacity problem for the organization's numbering space, not a
    bug, so the HTTP layer reports it with its own operator-facing message.
    """

    code = "barcode_allocation_exhausted"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    operator_message = (
        "No free barcode values were found for this organization. "
        "The generated numbering space is saturated; assign barcodes manually or switch generation mode."
    )


class BarcodeAllocationCancelled(BarcodeError):
    """Allocation stopped because the caller signalled cancellation."""

    code = "barcode_allocation_cancelled"
    status_code = status.HTTP_409_CONFLICT


class CatalogError(Exception):
    """Base class for catalog-side failures raised by the product services."""

    code = "catalog_error"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ProductNotFound(CatalogError):
    code = "product_not_found"
    status_code = status.HTTP_404_NOT_FOUND


class ProductBarcodeExists(CatalogError):
    code = "product_barcode_exists"
    status_code = status.HTTP_409_CONFLICT


class BarcodeAllocationConflict(CatalogError):
    """Inserts kept losing to concurrent writers after every allowed retry."""

    code = "barcode_allocation_conflict"
    status_code = status.HTTP_409_CONFLICT


class ErrorEnvelope(JSONResponse):
    def __init__(
        self,
        *,
        status_code: int,
        code: str,
        message: str,
        details: Any | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        payload: dict[str, Any] = {"code": code, "message": message}
        if details is not None:
            payload["details"] = details
        super().__init__(payload, status_code=status_code, headers=headers)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail
    message = detail if isinstance(detail, str) else "Error"
    details = detail if isinstance(detail, dict) else None
    return ErrorEnvelope(
        status_code=exc.status_code,
        code="http_error",
        message=message,
        details=details,
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc):  # type: ignore[override]
    from fastapi.encoders import jsonable_encoder
    from fastapi.exceptions import RequestValidationError

    if isinstance(exc, RequestValidationError):
        return ErrorEnvelope(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            code="validation_error",
            message="Validation failed",
            details={"errors": jsonable_encoder(exc.errors())},
        )
    raise exc


async def barcode_error_handler(request: Request, exc: BarcodeError):
    message = exc.operator_message if isinstance(exc, BarcodeAllocationExhausted) else exc.message
    return ErrorEnvelope(
        status_code=exc.status_code,
        code=exc.code,
        message=message,
        details=exc.details or None,
    )


async def catalog_error_handler(request: Request, exc: CatalogError):
    return ErrorEnvelope(
        status_code=exc.status_code,
        code=exc.code,
        message=exc.message,
        details=exc.details or None,
    )
