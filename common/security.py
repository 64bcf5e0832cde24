# common/security.py
import logging
from typing import Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer

from common.auth_utils import TokenClaims, TokenCodec
from common.errors import AuthError, AuthErrorKind, Forbidden
from common.guard import Decision, Deny, Role, authorize
from common.settings import get_settings

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)


def get_token_codec() -> TokenCodec:
    return TokenCodec.from_settings(get_settings())


def get_current_claims(
    token: Optional[str] = Depends(oauth2_scheme),
    codec: TokenCodec = Depends(get_token_codec),
) -> TokenClaims:
    """Resolve the bearer token of the request into verified claims."""
    if not token:
        raise AuthError(AuthErrorKind.MISSING, "Authorization token is missing")
    return codec.verify(token)


def enforce(decision: Decision, claims: TokenClaims) -> None:
    if isinstance(decision, Deny):
        logger.info("Denied %s (id=%s): %s", claims.username, claims.subject_id, decision.reason.value)
        raise Forbidden()


def require_role(role: Role):
    """Dependency factory that only lets callers with `role` (or Admin) through."""

    def dependency(claims: TokenClaims = Depends(get_current_claims)) -> TokenClaims:
        enforce(authorize(claims, required_role=role.value), claims)
        return claims

    return dependency


require_admin = require_role(Role.admin)


def ensure_owner(claims: TokenClaims, owner_id: int) -> None:
    enforce(authorize(claims, resource_owner_id=owner_id), claims)
