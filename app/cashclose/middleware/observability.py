from __future__ import annotations

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.cashclose.core.context import get_request_context
from app.cashclose.core.db_timing import begin_query_timing, current_query_time_ms, end_query_timing
from app.cashclose.core.logging import log_json
from app.cashclose.core.metrics import metrics

logger = logging.getLogger("cashclose.request")


def _route_template(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


def request_log_payload(
    *,
    request: Request,
    response: Response | None,
    latency_ms: float,
    query_time_ms: float | None,
) -> dict:
    context = get_request_context(request)
    return {
        "event": "http_request",
        "trace_id": getattr(request.state, "trace_id", ""),
        "user_id": context.user_id,
        "role": context.role,
        "route": _route_template(request),
        "method": request.method,
        "status_code": getattr(response, "status_code", 500),
        "latency_ms": round(latency_ms, 2),
        "db_time_ms": round(query_time_ms, 2) if query_time_ms is not None else None,
        "error_code": getattr(request.state, "error_code", None),
        "error_class": getattr(request.state, "error_class", None),
    }


class ObservabilityMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()
        token = begin_query_timing()
        response: Response | None = None
        try:
            response = await call_next(request)
            return response
        finally:
            latency_ms = (time.perf_counter() - started) * 1000
            payload = request_log_payload(
                request=request,
                response=response,
                latency_ms=latency_ms,
                query_time_ms=current_query_time_ms(),
            )
            end_query_timing(token)
            log_json(logger, payload)
            metrics.record_http_request(
                route=payload["route"],
                method=payload["method"],
                status_code=payload["status_code"],
                latency_ms=latency_ms,
            )
