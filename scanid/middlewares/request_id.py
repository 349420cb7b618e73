from __future__ import annotations

import logging
import re
import time
from contextvars import ContextVar
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

request_id_ctx_var: ContextVar[str | None] = ContextVar("request_id", default=None)
principal_ctx_var: ContextVar[str | None] = ContextVar("principal_id", default=None)
logger = logging.getLogger("scanid.request")

# Scanner stations forward ids from their own logs; anything else is replaced.
_REQUEST_ID_RE = re.compile(r"[A-Za-z0-9._:-]{1,64}")


def resolve_request_id(candidate: str | None) -> str:
    """Keep a caller-supplied id when it is safe to echo and log, else mint one."""

    candidate = (candidate or "").strip()
    if _REQUEST_ID_RE.fullmatch(candidate):
        return candidate
    return uuid4().hex


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Tag each request with a correlation id and log how it finished."""

    def __init__(self, app, header_name: str = "X-Request-ID") -> None:  # type: ignore[override]
        super().__init__(app)
        self.header_name = header_name

    def _fields(self, request: Request, started: float, **extra) -> dict[str, object]:
        fields: dict[str, object] = {
            "method": request.method,
            "path": request.url.path,
            "duration_ms": round((time.perf_counter() - started) * 1000, 2),
        }
        principal = getattr(request.state, "principal", None)
        if principal:
            fields["principal"] = principal
        fields.update(extra)
        return fields

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = resolve_request_id(request.headers.get(self.header_name))
        request.state.request_id = request_id
        tokens = (request_id_ctx_var.set(request_id), principal_ctx_var.set(None))
        started = time.perf_counter()
        try:
            try:
                response = await call_next(request)
            except Exception:
                logger.exception("request.failed", extra={"extra_data": self._fields(request, started)})
                raise
            fields = self._fields(request, started, status=response.status_code)
            level = logging.WARNING if response.status_code >= 500 else logging.INFO
            logger.log(level, "request.completed", extra={"extra_data": fields})
        finally:
            request_id_ctx_var.reset(tokens[0])
            principal_ctx_var.reset(tokens[1])

        response.headers[self.header_name] = request_id
        response.headers.setdefault("X-Response-Time", f"{fields['duration_ms']:.2f}ms")
        return response
