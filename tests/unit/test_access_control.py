import pytest

from app.cashclose.core.error_catalog import AppError, ErrorCatalog
from app.cashclose.core.scope import Scope, resolve_scope
from app.cashclose.core.security import TokenData
from app.cashclose.services.access_control import AccessPolicy, Actor, Capability, capabilities_for_role


def _actor(user_id: str, role: str) -> Actor:
    return Actor.from_token(TokenData(sub=user_id, role=role, username=user_id))


def test_role_capabilities():
    assert capabilities_for_role("cashier") == frozenset({Capability.SUBMIT_OWN})
    assert Capability.REVIEW in capabilities_for_role("SUPERVISOR")
    assert capabilities_for_role("ADMIN") == frozenset(Capability)
    assert capabilities_for_role(None) == frozenset()


def test_actor_display_name_falls_back_to_username():
    actor = Actor.from_token(TokenData(sub="u-1", role="CASHIER", username="jdoe"))
    assert actor.display_name == "jdoe"
    named = Actor.from_token(TokenData(sub="u-1", role="CASHIER", username="jdoe", full_name="Jane Doe"))
    assert named.display_name == "Jane Doe"


def test_cashier_submits_only_own_scope():
    policy = AccessPolicy()
    cashier = _actor("cashier-1", "CASHIER")

    assert policy.can_submit(Scope.cashier("cashier-1"), cashier)
    assert not policy.can_submit(Scope.cashier("cashier-2"), cashier)
    assert not policy.can_submit(Scope.store_wide(), cashier)
    assert not policy.can_review(cashier)
    with pytest.raises(AppError) as excinfo:
        policy.ensure_can_submit(Scope.store_wide(), cashier)
    assert excinfo.value.error.code == ErrorCatalog.PERMISSION_DENIED.code


def test_supervisor_submits_and_reviews_any_scope():
    policy = AccessPolicy()
    supervisor = _actor("sup-1", "SUPERVISOR")

    assert policy.can_submit(Scope.store_wide(), supervisor)
    assert policy.can_view(Scope.cashier("cashier-9"), supervisor)
    policy.ensure_can_review(supervisor)


def test_resolve_scope():
    assert resolve_scope("store", None) == Scope.store_wide()
    assert resolve_scope("CASHIER", " cashier-1 ").key == "cashier:cashier-1"
    for scope_type, cashier_id in ((None, None), ("CASHIER", ""), ("STORE", "cashier-1"), ("REGION", None)):
        with pytest.raises(AppError):
            resolve_scope(scope_type, cashier_id)
