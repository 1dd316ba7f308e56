from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from app.cashclose.core.error_catalog import AppError, ErrorCatalog


class ScopeType(str, Enum):
    STORE = "STORE"
    CASHIER = "CASHIER"


class ClosureStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


STORE_SCOPE_KEY = "store"


@dataclass(frozen=True)
class Scope:
    """Aggregation boundary: the whole store or one cashier's transactions."""

    type: ScopeType
    cashier_id: str | None = None

    @classmethod
    def store_wide(cls) -> "Scope":
        return cls(type=ScopeType.STORE)

    @classmethod
    def cashier(cls, cashier_id: str) -> "Scope":
        return cls(type=ScopeType.CASHIER, cashier_id=cashier_id)

    @property
    def is_store_wide(self) -> bool:
        return self.type == ScopeType.STORE

    @property
    def key(self) -> str:
        if self.is_store_wide:
            return STORE_SCOPE_KEY
        return f"cashier:{self.cashier_id}"


def resolve_scope(scope_type: str | ScopeType | None, cashier_id: str | None) -> Scope:
    if not scope_type:
        raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "scope is required"})
    try:
        resolved = ScopeType(str(getattr(scope_type, "value", scope_type)).upper())
    except ValueError as exc:
        raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "unknown scope"}) from exc
    if resolved == ScopeType.STORE:
        if cashier_id:
            raise AppError(
                ErrorCatalog.VALIDATION_ERROR,
                details={"message": "cashier_id is not allowed for store scope"},
            )
        return Scope.store_wide()
    cashier_id = (cashier_id or "").strip()
    if not cashier_id:
        raise AppError(ErrorCatalog.VALIDATION_ERROR, details={"message": "cashier_id is required for cashier scope"})
    return Scope.cashier(cashier_id)
