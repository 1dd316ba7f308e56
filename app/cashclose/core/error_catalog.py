from dataclasses import dataclass
from fastapi import status


@dataclass(frozen=True)
class ErrorDefinition:
    code: str
    message: str
    status_code: int


class ErrorCatalog:
    INVALID_TOKEN = ErrorDefinition("INVALID_TOKEN", "Invalid token", status.HTTP_401_UNAUTHORIZED)
    PERMISSION_DENIED = ErrorDefinition(
        "PERMISSION_DENIED",
        "Permission denied",
        status.HTTP_403_FORBIDDEN,
    )
    INVALID_PERIOD = ErrorDefinition(
        "INVALID_PERIOD",
        "Closure period is invalid",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    LEDGER_UNAVAILABLE = ErrorDefinition(
        "LEDGER_UNAVAILABLE",
        "Sales ledger unavailable",
        status.HTTP_503_SERVICE_UNAVAILABLE,
    )
    NEGATIVE_STOCK_DETECTED = ErrorDefinition(
        "NEGATIVE_STOCK_DETECTED",
        "Products with negative stock must be corrected before closing",
        status.HTTP_409_CONFLICT,
    )
    CLOSURE_ALREADY_PENDING = ErrorDefinition(
        "CLOSURE_ALREADY_PENDING",
        "A pending closure already exists for this scope",
        status.HTTP_409_CONFLICT,
    )
    CLOSURE_NOT_FOUND = ErrorDefinition(
        "CLOSURE_NOT_FOUND",
        "Closure not found",
        status.HTTP_404_NOT_FOUND,
    )
    INVALID_TRANSITION = ErrorDefinition(
        "INVALID_TRANSITION",
        "Closure status does not allow this transition",
        status.HTTP_409_CONFLICT,
    )
    MISSING_REJECTION_REASON = ErrorDefinition(
        "MISSING_REJECTION_REASON",
        "Rejection reason is required",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    DISCREPANCY_CONFIRMATION_REQUIRED = ErrorDefinition(
        "DISCREPANCY_CONFIRMATION_REQUIRED",
        "Significant difference must be confirmed before submitting",
        status.HTTP_409_CONFLICT,
    )
    CASH_COUNT_MISMATCH = ErrorDefinition(
        "CASH_COUNT_MISMATCH",
        "Cash amount does not match the denomination count",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    INVALID_DENOMINATION_QUANTITY = ErrorDefinition(
        "INVALID_DENOMINATION_QUANTITY",
        "Denomination quantity must be a non-negative integer",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    INVALID_THEORETICAL_SNAPSHOT = ErrorDefinition(
        "INVALID_THEORETICAL_SNAPSHOT",
        "Theoretical snapshot is inconsistent",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    CLOSURE_IMMUTABLE = ErrorDefinition(
        "CLOSURE_IMMUTABLE",
        "Finalized closures cannot be modified",
        status.HTTP_409_CONFLICT,
    )
    DB_UNAVAILABLE = ErrorDefinition(
        "DB_UNAVAILABLE",
        "Database unavailable",
        status.HTTP_503_SERVICE_UNAVAILABLE,
    )
    LOCK_TIMEOUT = ErrorDefinition(
        "LOCK_TIMEOUT",
        "Lock wait timeout",
        status.HTTP_409_CONFLICT,
    )
    VALIDATION_ERROR = ErrorDefinition(
        "VALIDATION_ERROR",
        "Validation error",
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
    INTERNAL_ERROR = ErrorDefinition(
        "INTERNAL_ERROR",
        "Internal server error",
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    IDEMPOTENCY_KEY_REUSED_WITH_DIFFERENT_PAYLOAD = ErrorDefinition(
        "IDEMPOTENCY_KEY_REUSED_WITH_DIFFERENT_PAYLOAD",
        "Idempotency key reused with different payload",
        status.HTTP_409_CONFLICT,
    )
    IDEMPOTENCY_REQUEST_IN_PROGRESS = ErrorDefinition(
        "IDEMPOTENCY_REQUEST_IN_PROGRESS",
        "Idempotency request already in progress",
        status.HTTP_409_CONFLICT,
    )
    IDEMPOTENCY_REPLAY = ErrorDefinition(
        "IDEMPOTENCY_REPLAY",
        "Idempotent replay",
        status.HTTP_200_OK,
    )


class AppError(Exception):
    def __init__(self, error: ErrorDefinition, details: object | None = None):
        self.error = error
        self.details = details
        super().__init__(error.message)
