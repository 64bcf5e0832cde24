# common/guard.py
"""
Authorization decisions shared by every service.

`authorize` is the single place where role and ownership rules live. Endpoints
call it with the decoded token claims and, when relevant, the role an operation
needs and the id of the user that owns the resource being touched.
"""
import enum
from dataclasses import dataclass
from typing import Optional, Union

from common.auth_utils import TokenClaims


class Role(str, enum.Enum):
    admin = "Admin"
    user = "User"


class DenyReason(str, enum.Enum):
    ROLE_MISMATCH = "RoleMismatch"
    NOT_OWNER = "NotOwner"


@dataclass(frozen=True)
class Allow:
    pass


@dataclass(frozen=True)
class Deny:
    reason: DenyReason


Decision = Union[Allow, Deny]


def is_admin(claims: TokenClaims) -> bool:
    return claims.role == Role.admin.value


def authorize(
    claims: TokenClaims,
    required_role: Optional[str] = None,
    resource_owner_id: Optional[int] = None,
) -> Decision:
    # Admins pass every role and ownership check.
    if is_admin(claims):
        return Allow()
    if required_role is not None and claims.role != required_role:
        return Deny(DenyReason.ROLE_MISMATCH)
    if resource_owner_id is not None and claims.subject_id != resource_owner_id:
        return Deny(DenyReason.NOT_OWNER)
    return Allow()
