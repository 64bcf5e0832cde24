# common/auth_utils.py
import hashlib
import hmac
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import jwt

from common.errors import AuthError, AuthErrorKind, ConfigError

ALGORITHM = "HS256"
PBKDF2_ITERATIONS = 260_000


def hash_password(password: str) -> str:
    """Hash a password with a random salt, returns `pbkdf2_sha256$<iterations>$<salt>$<hash>`."""
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), PBKDF2_ITERATIONS)
    return f"pbkdf2_sha256${PBKDF2_ITERATIONS}${salt}${digest.hex()}"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Check a password against a hash produced by hash_password."""
    try:
        scheme, iterations, salt, expected = hashed_password.split("$")
    except ValueError:
        return False
    if scheme != "pbkdf2_sha256":
        return False
    digest = hashlib.pbkdf2_hmac("sha256", plain_password.encode(), salt.encode(), int(iterations))
    return hmac.compare_digest(digest.hex(), expected)


@dataclass(frozen=True)
class TokenClaims:
    subject_id: int
    username: str
    email: str
    role: str


def _utc_clock() -> datetime:
    return datetime.now(timezone.utc)


class TokenCodec:
    """Issues and verifies signed, time-bounded access tokens."""

    def __init__(
        self,
        secret: Optional[str],
        issuer: str,
        audience: str,
        lifetime_minutes: int,
        clock: Callable[[], datetime] = _utc_clock,
    ):
        self.secret = secret
        self.issuer = issuer
        self.audience = audience
        self.lifetime = timedelta(minutes=lifetime_minutes)
        self.clock = clock

    @classmethod
    def from_settings(cls, settings) -> "TokenCodec":
        return cls(
            secret=settings.JWT_SECRET_KEY,
            issuer=settings.JWT_ISSUER,
            audience=settings.JWT_AUDIENCE,
            lifetime_minutes=settings.JWT_EXPIRE_MINUTES,
        )

    def _require_secret(self) -> str:
        if not self.secret:
            raise ConfigError("JWT signing secret is not configured")
        return self.secret

    def expires_at(self, now: datetime) -> datetime:
        return now + self.lifetime

    def issue(self, claims: TokenClaims, now: Optional[datetime] = None) -> str:
        secret = self._require_secret()
        issued_at = now or self.clock()
        payload = {
            "sub": str(claims.subject_id),
            "username": claims.username,
            "email": claims.email,
            "role": claims.role,
            "iss": self.issuer,
            "aud": self.audience,
            "iat": int(issued_at.timestamp()),
            "exp": int(self.expires_at(issued_at).timestamp()),
        }
        return jwt.encode(payload, secret, algorithm=ALGORITHM)

    def verify(self, token: str, now: Optional[datetime] = None) -> TokenClaims:
        secret = self._require_secret()
        try:
            # Expiry is checked against our own clock below.
            payload = jwt.decode(
                token,
                secret,
                algorithms=[ALGORITHM],
                audience=self.audience,
                issuer=self.issuer,
                options={
                    "require": ["exp", "sub", "iss", "aud"],
                    "verify_exp": False,
                    "verify_iat": False,
                },
            )
        except jwt.InvalidSignatureError as exc:
            raise AuthError(AuthErrorKind.BAD_SIGNATURE) from exc
        except jwt.InvalidTokenError as exc:
            raise AuthError(AuthErrorKind.MALFORMED) from exc

        current = now or self.clock()
        try:
            expires = int(payload["exp"])
            claims = TokenClaims(
                subject_id=int(payload["sub"]),
                username=payload["username"],
                email=payload["email"],
                role=payload["role"],
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise AuthError(AuthErrorKind.MALFORMED) from exc

        if current.timestamp() >= expires:
            raise AuthError(AuthErrorKind.EXPIRED, "Token has expired")
        return claims
