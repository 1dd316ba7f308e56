from __future__ import annotations

from contextvars import ContextVar, Token

# Accumulated SQL time for the current request; None outside a request.
_query_time_ms: ContextVar[float | None] = ContextVar("query_time_ms", default=None)


def begin_query_timing() -> Token:
    return _query_time_ms.set(0.0)


def end_query_timing(token: Token) -> None:
    _query_time_ms.reset(token)


def record_query_time(delta_ms: float) -> None:
    current = _query_time_ms.get()
    if current is not None:
        _query_time_ms.set(current + delta_ms)


def current_query_time_ms() -> float | None:
    return _query_time_ms.get()
