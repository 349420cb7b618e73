"""Application factory and top-level wiring for the scan identity service.

Configuration, the request-id middleware, the API routers and the error
handlers meet here. Tables are created on startup rather than at import so
tests can point the session dependency at their own engine first.
"""

from __future__ import annotations

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import settings
from .core.errors import (
    BarcodeError,
    CatalogError,
    barcode_error_handler,
    catalog_error_handler,
    http_exception_handler,
    validation_exception_handler,
)
from .db.session import Base, engine
from .middlewares import RequestIdMiddleware

# Importing the models registers them with the metadata used by create_all.
from .models import catalog as _catalog  # noqa: F401

app = FastAPI(title=settings.APP_NAME)

app.add_middleware(RequestIdMiddleware)

# ---------- Routers ----------
from .routers import api_scan as api_scan_router  # noqa: E402

app.include_router(api_scan_router.router)

from .routers import api_barcodes as api_barcodes_router  # noqa: E402

app.include_router(api_barcodes_router.router)

from .routers import api_products as api_products_router  # noqa: E402

app.include_router(api_products_router.router)

# ---------- Exception handling ----------
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(BarcodeError, barcode_error_handler)
app.add_exception_handler(CatalogError, catalog_error_handler)


@app.on_event("startup")
def _create_tables() -> None:
    Base.metadata.create_all(bind=engine)


__all__ = ["app"]
