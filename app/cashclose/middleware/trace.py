import re
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

TRACE_HEADER = "X-Trace-ID"

# trace ids end up in audit_events.trace_id and log lines
_TRACE_ID_PATTERN = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def accepted_trace_id(value: str | None) -> str:
    candidate = (value or "").strip()
    if _TRACE_ID_PATTERN.match(candidate):
        return candidate
    return uuid.uuid4().hex


class TraceIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        request.state.trace_id = accepted_trace_id(request.headers.get(TRACE_HEADER))
        response = await call_next(request)
        response.headers[TRACE_HEADER] = request.state.trace_id
        return response
