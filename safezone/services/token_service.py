"""JWT issuing and verification for access and refresh tokens."""

import hashlib
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, NamedTuple, Optional
from uuid import UUID, uuid4

import jwt
import structlog
from pydantic import BaseModel

from safezone.config import Settings
from safezone.errors import InvalidTokenError
from safezone.models.user import User

logger = structlog.get_logger(__name__)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


@dataclass(frozen=True)
class TokenContext:
    """Signing parameters for one class of token."""

    token_type: str
    secret: str
    issuer: str
    audience: str
    lifetime: timedelta

    def __post_init__(self):
        if not self.secret:
            raise ValueError(f"{self.token_type} token secret is not configured")


class TokenClaims(BaseModel):
    """Verified claims of an access or refresh token."""

    user_id: UUID
    username: str
    email: Optional[str] = None
    token_type: str
    token_id: Optional[str] = None
    issued_at: datetime
    expires_at: datetime


class IssuedRefreshToken(NamedTuple):
    token: str
    token_id: str
    expires_at: datetime


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenService:
    """Creates and verifies signed, time-boxed tokens.

    Access and refresh tokens use independent secrets, so a token of one class
    never verifies as the other; the ``type`` claim is checked as well.
    """

    def __init__(
        self,
        access: TokenContext,
        refresh: TokenContext,
        algorithm: str = "HS256",
        clock: Callable[[], datetime] = _utcnow,
    ):
        if access.secret == refresh.secret:
            logger.warning("jwt_secrets_shared", note="access and refresh tokens share a signing secret")
        self.access = access
        self.refresh = refresh
        self.algorithm = algorithm
        self.clock = clock

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenService":
        return cls(
            access=TokenContext(
                token_type=ACCESS_TOKEN_TYPE,
                secret=settings.jwt_secret,
                issuer=settings.jwt_issuer,
                audience=settings.jwt_audience,
                lifetime=timedelta(minutes=settings.jwt_expires_minutes),
            ),
            refresh=TokenContext(
                token_type=REFRESH_TOKEN_TYPE,
                secret=settings.jwt_refresh_secret,
                issuer=settings.jwt_refresh_issuer,
                audience=settings.jwt_refresh_audience,
                lifetime=timedelta(days=settings.jwt_refresh_expires_days),
            ),
            algorithm=settings.jwt_algorithm,
        )

    @property
    def access_expires_in(self) -> int:
        """Access token lifetime in seconds."""
        return int(self.access.lifetime.total_seconds())

    def _encode(self, context: TokenContext, claims: dict) -> tuple[str, datetime]:
        now = self.clock()
        expires_at = now + context.lifetime
        payload = {
            **claims,
            "type": context.token_type,
            "iss": context.issuer,
            "aud": context.audience,
            "iat": now,
            "exp": expires_at,
        }
        return jwt.encode(payload, context.secret, algorithm=self.algorithm), expires_at

    def issue_access(self, user: User) -> str:
        """Create a signed access token.

        Args:
            user: User whose id, username and email go into the claims

        Returns:
            Encoded JWT string
        """
        token, _ = self._encode(
            self.access,
            {"sub": str(user.id), "username": user.username, "email": user.email},
        )
        logger.debug("access_token_issued", user_id=str(user.id))
        return token

    def issue_refresh(self, user: User) -> IssuedRefreshToken:
        """Create a signed refresh token with a fresh correlation id.

        Args:
            user: User the token belongs to

        Returns:
            The token, its ``jti`` token id, and its expiry
        """
        token_id = str(uuid4())
        token, expires_at = self._encode(
            self.refresh,
            {"sub": str(user.id), "username": user.username, "jti": token_id},
        )
        logger.debug("refresh_token_issued", user_id=str(user.id), token_id=token_id)
        return IssuedRefreshToken(token=token, token_id=token_id, expires_at=expires_at)

    def _verify(self, context: TokenContext, token: str) -> TokenClaims:
        try:
            payload = jwt.decode(
                token,
                context.secret,
                algorithms=[self.algorithm],
                audience=context.audience,
                issuer=context.issuer,
                options={"require": ["exp", "iat", "sub", "iss", "aud"]},
            )
        except jwt.PyJWTError as e:
            logger.info("token_rejected", token_type=context.token_type, reason=type(e).__name__)
            raise InvalidTokenError() from e

        if payload.get("type") != context.token_type:
            logger.info("token_rejected", token_type=context.token_type, reason="WrongTokenType")
            raise InvalidTokenError()
        if context.token_type == REFRESH_TOKEN_TYPE and not payload.get("jti"):
            raise InvalidTokenError()

        try:
            return TokenClaims(
                user_id=payload["sub"],
                username=payload.get("username", ""),
                email=payload.get("email"),
                token_type=payload["type"],
                token_id=payload.get("jti"),
                issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
                expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
            )
        except (ValueError, TypeError) as e:
            raise InvalidTokenError() from e

    def verify_access(self, token: str) -> TokenClaims:
        """Verify an access token.

        Raises:
            InvalidTokenError: Bad signature, expiry, issuer, audience or type
        """
        return self._verify(self.access, token)

    def verify_refresh(self, token: str) -> TokenClaims:
        """Verify a refresh token.

        Raises:
            InvalidTokenError: Bad signature, expiry, issuer, audience or type
        """
        return self._verify(self.refresh, token)

    @staticmethod
    def decode_unverified(token: str) -> Optional[dict]:
        """Read claims without checking the signature; None if undecodable."""
        try:
            return jwt.decode(token, options={"verify_signature": False})
        except jwt.PyJWTError:
            return None

    @staticmethod
    def digest(token: str) -> str:
        """SHA-256 hex digest of the full token string, used for storage lookups."""
        return hashlib.sha256(token.encode("utf-8")).hexdigest()
