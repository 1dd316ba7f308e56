from pydantic import BaseModel


class ApiErrorResponse(BaseModel):
    code: str
    message: str
    details: dict | None = None
    trace_id: str | None = None


ERROR_RESPONSES = {
    401: {"model": ApiErrorResponse, "description": "Missing or invalid bearer token"},
    403: {"model": ApiErrorResponse, "description": "Actor lacks the required capability"},
    409: {"model": ApiErrorResponse, "description": "Conflicting closure state"},
    422: {"model": ApiErrorResponse, "description": "Invalid request"},
    503: {"model": ApiErrorResponse, "description": "Sales ledger or database unavailable"},
}
