# Shared helpers for API endpoint tests: bearer tokens signed with the test
# secret, so the products, payments and logs services can be called without
# going through the users service.

from common.auth_utils import TokenClaims, TokenCodec
from common.settings import get_settings


def issue_token(subject_id: int = 1, username: str = "alice", role: str = "User") -> str:
    codec = TokenCodec.from_settings(get_settings())
    claims = TokenClaims(
        subject_id=subject_id,
        username=username,
        email=f"{username}@storefront.io",
        role=role,
    )
    return codec.issue(claims)


def auth_headers(subject_id: int = 1, username: str = "alice", role: str = "User") -> dict:
    return {"Authorization": f"Bearer {issue_token(subject_id, username, role)}"}


def admin_headers() -> dict:
    return auth_headers(subject_id=99, username="root", role="Admin")
