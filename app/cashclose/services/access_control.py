from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from app.cashclose.core.error_catalog import AppError, ErrorCatalog
from app.cashclose.core.scope import Scope


class Capability(str, Enum):
    SUBMIT_OWN = "SUBMIT_OWN"
    SUBMIT_ANY = "SUBMIT_ANY"
    REVIEW = "REVIEW"
    VIEW_ALL = "VIEW_ALL"


ROLE_CAPABILITIES: dict[str, frozenset[Capability]] = {
    "CASHIER": frozenset({Capability.SUBMIT_OWN}),
    "SUPERVISOR": frozenset(
        {Capability.SUBMIT_OWN, Capability.SUBMIT_ANY, Capability.REVIEW, Capability.VIEW_ALL}
    ),
    "MANAGER": frozenset(Capability),
    "ADMIN": frozenset(Capability),
}


def capabilities_for_role(role: str | None) -> frozenset[Capability]:
    return ROLE_CAPABILITIES.get((role or "").strip().upper(), frozenset())


@dataclass(frozen=True)
class Actor:
    user_id: str
    username: str
    role: str
    display_name: str
    capabilities: frozenset[Capability] = field(default_factory=frozenset)

    @classmethod
    def from_token(cls, token_data) -> "Actor":
        return cls(
            user_id=token_data.sub,
            username=token_data.username,
            role=token_data.role,
            display_name=token_data.full_name or token_data.username,
            capabilities=capabilities_for_role(token_data.role),
        )

    def has(self, capability: Capability) -> bool:
        return capability in self.capabilities


class AccessPolicy:
    def can_submit(self, scope: Scope, actor: Actor) -> bool:
        if actor.has(Capability.SUBMIT_ANY):
            return True
        return (
            actor.has(Capability.SUBMIT_OWN)
            and not scope.is_store_wide
            and scope.cashier_id == actor.user_id
        )

    def can_review(self, actor: Actor) -> bool:
        return actor.has(Capability.REVIEW)

    def can_view(self, scope: Scope, actor: Actor) -> bool:
        if actor.has(Capability.VIEW_ALL):
            return True
        return not scope.is_store_wide and scope.cashier_id == actor.user_id

    def ensure_can_submit(self, scope: Scope, actor: Actor) -> None:
        if not self.can_submit(scope, actor):
            raise AppError(ErrorCatalog.PERMISSION_DENIED, details={"capability": "SUBMIT", "scope": scope.key})

    def ensure_can_review(self, actor: Actor) -> None:
        if not self.can_review(actor):
            raise AppError(ErrorCatalog.PERMISSION_DENIED, details={"capability": Capability.REVIEW.value})

    def ensure_can_view(self, scope: Scope, actor: Actor) -> None:
        if not self.can_view(scope, actor):
            raise AppError(ErrorCatalog.PERMISSION_DENIED, details={"capability": "VIEW", "scope": scope.key})
