# Authorization decisions for role and ownership checks.

import pytest

from common.auth_utils import TokenClaims
from common.guard import Allow, Deny, DenyReason, Role, authorize, is_admin

ADMIN = TokenClaims(subject_id=1, username="root", email="root@storefront.io", role="Admin")
USER = TokenClaims(subject_id=7, username="alice", email="alice@storefront.io", role="User")


@pytest.mark.parametrize("required_role", [None, "Admin", "User", "Auditor"])
@pytest.mark.parametrize("owner_id", [None, 1, 7, 12345])
def test_admin_is_always_allowed(required_role, owner_id) -> None:
    assert authorize(ADMIN, required_role=required_role, resource_owner_id=owner_id) == Allow()


def test_user_without_requirements_is_allowed() -> None:
    assert authorize(USER) == Allow()


def test_user_missing_role_is_denied() -> None:
    assert authorize(USER, required_role=Role.admin.value) == Deny(DenyReason.ROLE_MISMATCH)


def test_user_with_matching_role_is_allowed() -> None:
    assert authorize(USER, required_role=Role.user.value) == Allow()


def test_user_touching_foreign_resource_is_denied() -> None:
    assert authorize(USER, resource_owner_id=8) == Deny(DenyReason.NOT_OWNER)


def test_user_touching_own_resource_is_allowed() -> None:
    assert authorize(USER, resource_owner_id=7) == Allow()


def test_role_is_checked_before_ownership() -> None:
    decision = authorize(USER, required_role="Admin", resource_owner_id=8)
    assert decision == Deny(DenyReason.ROLE_MISMATCH)


def test_is_admin() -> None:
    assert is_admin(ADMIN)
    assert not is_admin(USER)
