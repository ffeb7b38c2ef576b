"""Authentication orchestration: registration, login, token rotation, logout.

State lives entirely in the stores; nothing about users or sessions is cached
here, so every call sees the current lockout and revocation status.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
from uuid import UUID

import structlog

from safezone.errors import (
    AccountInactiveError,
    AccountLockedError,
    ConflictError,
    ExpiredTokenError,
    HashingError,
    IncorrectPasswordError,
    InvalidCredentialsError,
    InvalidTokenError,
    NotFoundError,
    SafezoneError,
    StorageError,
)
from safezone.models.audit import AuthEventMetadata, AuthEventType, RequestContext
from safezone.models.auth import AuthResponse
from safezone.models.user import User
from safezone.services.audit_service import AuditLog
from safezone.services.password_hasher import PasswordHasher
from safezone.services.token_service import TokenService
from safezone.storage.protocols import CredentialStore, SessionLedger

logger = structlog.get_logger(__name__)

DEFAULT_MAX_LOGIN_ATTEMPTS = 5
DEFAULT_LOCKOUT_MINUTES = 15

# Failures that are the server's fault rather than the client's.
INFRASTRUCTURE_ERRORS = (StorageError, HashingError)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuthService:
    """Coordinates the credential store, session ledger, hasher, tokens and audit log."""

    def __init__(
        self,
        users: CredentialStore,
        sessions: SessionLedger,
        audit: AuditLog,
        hasher: PasswordHasher,
        tokens: TokenService,
        max_login_attempts: int = DEFAULT_MAX_LOGIN_ATTEMPTS,
        lockout_minutes: int = DEFAULT_LOCKOUT_MINUTES,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.users = users
        self.sessions = sessions
        self.audit = audit
        self.hasher = hasher
        self.tokens = tokens
        self.max_login_attempts = max_login_attempts
        self.lockout_duration = timedelta(minutes=lockout_minutes)
        self.clock = clock

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _issue_session(self, user: User) -> AuthResponse:
        """Issue an access/refresh pair and record the refresh token."""
        access_token = self.tokens.issue_access(user)
        refresh = self.tokens.issue_refresh(user)
        await self.sessions.insert_record(
            user.id, refresh.token_id, self.tokens.digest(refresh.token), refresh.expires_at
        )
        return AuthResponse(
            user=user.profile(),
            access_token=access_token,
            refresh_token=refresh.token,
            expires_in=self.tokens.access_expires_in,
        )

    async def _audit_infrastructure_failure(
        self,
        event_type: AuthEventType,
        error: SafezoneError,
        *,
        user_id: Optional[UUID] = None,
        context: Optional[RequestContext] = None,
        metadata: Optional[AuthEventMetadata] = None,
    ) -> None:
        logger.error(
            "auth_operation_failed",
            event_type=event_type.value,
            user_id=str(user_id) if user_id else None,
            error=error.detail or error.message,
            error_type=type(error).__name__,
        )
        metadata = metadata or AuthEventMetadata()
        metadata.reason = type(error).__name__
        await self.audit.record(
            event_type,
            False,
            user_id=user_id,
            context=context,
            error_message=error.message,
            metadata=metadata,
        )

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    async def register(
        self,
        username: str,
        email: str,
        password: str,
        *,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        phone: Optional[str] = None,
        context: Optional[RequestContext] = None,
    ) -> AuthResponse:
        """Create an account and sign it in.

        Raises:
            ConflictError: If the username or email is already registered
            HashingError, StorageError: On infrastructure failure
        """
        try:
            existing = await self.users.find_conflict(username, email)
            if existing is not None:
                field = "username" if existing.username == username else "email"
                raise ConflictError(f"User with this {field} already exists", field=field)

            password_hash = self.hasher.hash(password)
            user = await self.users.insert_user(
                username=username,
                email=email,
                password_hash=password_hash,
                first_name=first_name,
                last_name=last_name,
                phone=phone,
            )
        except ConflictError as e:
            logger.info("registration_rejected", reason="conflict", field=e.field)
            await self.audit.record(
                AuthEventType.REGISTER,
                False,
                context=context,
                error_message=e.message,
                metadata=AuthEventMetadata(username=username, email=email, reason="conflict"),
            )
            raise
        except INFRASTRUCTURE_ERRORS as e:
            await self._audit_infrastructure_failure(
                AuthEventType.REGISTER,
                e,
                context=context,
                metadata=AuthEventMetadata(username=username, email=email),
            )
            raise

        try:
            response = await self._issue_session(user)
        except INFRASTRUCTURE_ERRORS as e:
            # Without a session the new account would be unusable; undo it.
            await self._discard_user(user)
            await self._audit_infrastructure_failure(
                AuthEventType.REGISTER,
                e,
                context=context,
                metadata=AuthEventMetadata(username=username, email=email),
            )
            raise

        await self.audit.record(
            AuthEventType.REGISTER,
            True,
            user_id=user.id,
            context=context,
            metadata=AuthEventMetadata(username=username, email=email),
        )
        logger.info("user_registered", user_id=str(user.id), username=user.username)
        return response

    async def _discard_user(self, user: User) -> None:
        try:
            await self.users.delete_user(user.id)
            logger.warning("registration_rolled_back", user_id=str(user.id))
        except StorageError as e:
            logger.error(
                "registration_rollback_failed",
                user_id=str(user.id),
                error=e.detail or e.message,
            )

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    async def login(
        self, identifier: str, password: str, context: Optional[RequestContext] = None
    ) -> AuthResponse:
        """Authenticate by username or email and issue a token pair.

        The client-facing error for an unknown identifier and a wrong password
        is the same ``InvalidCredentialsError``; only the audit log tells them
        apart.

        Raises:
            InvalidCredentialsError: Unknown identifier or wrong password
            AccountLockedError: Locked, or this failure reached the lockout threshold
            AccountInactiveError: Account deactivated
        """
        try:
            return await self._login(identifier, password, context)
        except INFRASTRUCTURE_ERRORS as e:
            await self._audit_infrastructure_failure(
                AuthEventType.FAILED_LOGIN,
                e,
                context=context,
                metadata=AuthEventMetadata(identifier=identifier),
            )
            raise

    async def _login(
        self, identifier: str, password: str, context: Optional[RequestContext]
    ) -> AuthResponse:
        now = self.clock()
        user = await self.users.find_by_identifier(identifier)

        if user is None:
            self.hasher.verify_dummy(password)
            await self.audit.record(
                AuthEventType.FAILED_LOGIN,
                False,
                context=context,
                error_message="User not found",
                metadata=AuthEventMetadata(identifier=identifier, reason="unknown_identifier"),
            )
            logger.info("login_failed", reason="unknown_identifier")
            raise InvalidCredentialsError()

        if user.is_locked(now):
            await self.audit.record(
                AuthEventType.FAILED_LOGIN,
                False,
                user_id=user.id,
                context=context,
                error_message="Account locked",
                metadata=AuthEventMetadata(
                    identifier=identifier,
                    reason="locked",
                    locked_until=user.locked_until,
                ),
            )
            logger.info("login_failed", user_id=str(user.id), reason="locked")
            raise AccountLockedError(locked_until=user.locked_until)

        if not user.is_active:
            await self.audit.record(
                AuthEventType.FAILED_LOGIN,
                False,
                user_id=user.id,
                context=context,
                error_message="Account inactive",
                metadata=AuthEventMetadata(identifier=identifier, reason="inactive"),
            )
            logger.info("login_failed", user_id=str(user.id), reason="inactive")
            raise AccountInactiveError()

        if not self.hasher.verify(password, user.password_hash):
            updated = await self.users.record_failed_login(
                user.id, now, self.max_login_attempts, now + self.lockout_duration
            )
            attempts = (
                updated.failed_login_attempts if updated else user.failed_login_attempts + 1
            )
            locked = updated is not None and updated.is_locked(now)
            await self.audit.record(
                AuthEventType.FAILED_LOGIN,
                False,
                user_id=user.id,
                context=context,
                error_message="Invalid password",
                metadata=AuthEventMetadata(
                    identifier=identifier,
                    reason="invalid_password",
                    failed_attempts=attempts,
                    locked_until=updated.locked_until if locked else None,
                ),
            )
            if locked:
                logger.warning(
                    "account_locked",
                    user_id=str(user.id),
                    failed_attempts=attempts,
                    locked_until=updated.locked_until.isoformat(),
                )
                raise AccountLockedError(locked_until=updated.locked_until)
            logger.info(
                "login_failed",
                user_id=str(user.id),
                reason="invalid_password",
                failed_attempts=attempts,
            )
            raise InvalidCredentialsError()

        updated = await self.users.update_user(
            user.id, failed_login_attempts=0, locked_until=None, last_login=now
        )
        user = updated or user
        response = await self._issue_session(user)

        await self.audit.record(
            AuthEventType.LOGIN,
            True,
            user_id=user.id,
            context=context,
            metadata=AuthEventMetadata(identifier=identifier),
        )
        logger.info("user_logged_in", user_id=str(user.id), username=user.username)
        return response

    # ------------------------------------------------------------------
    # Refresh
    # ------------------------------------------------------------------

    async def refresh(
        self, refresh_token: str, context: Optional[RequestContext] = None
    ) -> AuthResponse:
        """Exchange a refresh token for a new pair, revoking the presented one.

        Forged, unknown, revoked and already-rotated tokens are all reported
        as ``InvalidTokenError``.

        Raises:
            InvalidTokenError: Token fails verification or has no active record
            ExpiredTokenError: The stored record has expired
        """
        try:
            return await self._refresh(refresh_token, context)
        except INFRASTRUCTURE_ERRORS as e:
            await self._audit_infrastructure_failure(
                AuthEventType.TOKEN_REFRESH, e, context=context
            )
            raise

    async def _refresh_rejected(
        self,
        reason: str,
        context: Optional[RequestContext],
        user_id: Optional[UUID] = None,
        token_id: Optional[str] = None,
    ) -> None:
        await self.audit.record(
            AuthEventType.TOKEN_REFRESH,
            False,
            user_id=user_id,
            context=context,
            error_message="Invalid refresh token",
            metadata=AuthEventMetadata(reason=reason, token_id=token_id),
        )
        logger.info(
            "refresh_rejected",
            reason=reason,
            user_id=str(user_id) if user_id else None,
            token_id=token_id,
        )

    async def _refresh(
        self, refresh_token: str, context: Optional[RequestContext]
    ) -> AuthResponse:
        now = self.clock()
        try:
            claims = self.tokens.verify_refresh(refresh_token)
        except InvalidTokenError:
            await self._refresh_rejected("verification_failed", context)
            raise

        record = await self.sessions.find_active_record(
            claims.token_id, self.tokens.digest(refresh_token)
        )
        if record is None or record.user_id != claims.user_id:
            await self._refresh_rejected(
                "no_active_record", context, user_id=claims.user_id, token_id=claims.token_id
            )
            raise InvalidTokenError()

        if record.expires_at <= now:
            await self._refresh_rejected(
                "record_expired", context, user_id=claims.user_id, token_id=claims.token_id
            )
            raise ExpiredTokenError()

        user = await self.users.find_by_id(record.user_id)
        if user is None or not user.is_active:
            await self._refresh_rejected(
                "user_unavailable", context, user_id=record.user_id, token_id=claims.token_id
            )
            raise InvalidTokenError()

        access_token = self.tokens.issue_access(user)
        new_refresh = self.tokens.issue_refresh(user)
        rotated = await self.sessions.rotate_record(
            record.id,
            user.id,
            new_refresh.token_id,
            self.tokens.digest(new_refresh.token),
            new_refresh.expires_at,
        )
        if rotated is None:
            await self._refresh_rejected(
                "concurrent_rotation", context, user_id=user.id, token_id=claims.token_id
            )
            raise InvalidTokenError()

        await self.audit.record(
            AuthEventType.TOKEN_REFRESH,
            True,
            user_id=user.id,
            context=context,
            metadata=AuthEventMetadata(token_id=new_refresh.token_id),
        )
        logger.info("access_token_refreshed", user_id=str(user.id), token_id=new_refresh.token_id)
        return AuthResponse(
            user=user.profile(),
            access_token=access_token,
            refresh_token=new_refresh.token,
            expires_in=self.tokens.access_expires_in,
        )

    # ------------------------------------------------------------------
    # Logout
    # ------------------------------------------------------------------

    async def logout(
        self,
        user_id: UUID,
        refresh_token: Optional[str] = None,
        context: Optional[RequestContext] = None,
    ) -> bool:
        """Revoke the presented refresh token; never fails the caller.

        The token is decoded without verification, only to find its id; the
        revocation is scoped to ``user_id``.

        Returns:
            Whether a matching record was revoked
        """
        revoked = False
        token_id = None
        if refresh_token:
            claims = self.tokens.decode_unverified(refresh_token)
            if claims and claims.get("jti"):
                token_id = str(claims["jti"])
                try:
                    revoked = await self.sessions.revoke_token_id(user_id, token_id)
                except StorageError as e:
                    logger.error(
                        "logout_revoke_failed",
                        user_id=str(user_id),
                        token_id=token_id,
                        error=e.detail or e.message,
                    )

        await self.audit.record(
            AuthEventType.LOGOUT,
            True,
            user_id=user_id,
            context=context,
            metadata=AuthEventMetadata(token_id=token_id, extra={"revoked": revoked}),
        )
        logger.info("user_logged_out", user_id=str(user_id), revoked=revoked)
        return revoked

    # ------------------------------------------------------------------
    # Password-confirmed account operations
    # ------------------------------------------------------------------

    async def _confirm_password(
        self,
        event_type: AuthEventType,
        user_id: UUID,
        password: str,
        context: Optional[RequestContext],
        error_message: str,
        client_message: str,
    ) -> User:
        user = await self.users.find_by_id(user_id)
        if user is None:
            await self.audit.record(
                event_type,
                False,
                context=context,
                error_message="User not found",
                metadata=AuthEventMetadata(extra={"user_id": str(user_id)}),
            )
            raise NotFoundError("User not found")

        if not self.hasher.verify(password, user.password_hash):
            await self.audit.record(
                event_type,
                False,
                user_id=user.id,
                context=context,
                error_message=error_message,
            )
            logger.info(
                "password_confirmation_failed", user_id=str(user.id), event_type=event_type.value
            )
            raise IncorrectPasswordError(client_message)
        return user

    async def change_password(
        self,
        user_id: UUID,
        current_password: str,
        new_password: str,
        context: Optional[RequestContext] = None,
    ) -> int:
        """Replace the password and revoke every refresh token of the user.

        Returns:
            Number of sessions revoked

        Raises:
            IncorrectPasswordError: Current password did not verify
            NotFoundError: The user no longer exists
        """
        try:
            user = await self._confirm_password(
                AuthEventType.PASSWORD_CHANGE,
                user_id,
                current_password,
                context,
                "Invalid current password",
                "Current password is incorrect",
            )
            await self.users.update_user(user.id, password_hash=self.hasher.hash(new_password))
            revoked = await self.sessions.revoke_all_for_user(user.id)
        except INFRASTRUCTURE_ERRORS as e:
            await self._audit_infrastructure_failure(
                AuthEventType.PASSWORD_CHANGE, e, user_id=user_id, context=context
            )
            raise

        await self.audit.record(
            AuthEventType.PASSWORD_CHANGE,
            True,
            user_id=user.id,
            context=context,
            metadata=AuthEventMetadata(extra={"sessions_revoked": revoked}),
        )
        logger.info("password_changed", user_id=str(user.id), sessions_revoked=revoked)
        return revoked

    async def delete_account(
        self, user_id: UUID, password: str, context: Optional[RequestContext] = None
    ) -> None:
        """Delete the account after re-verifying its password.

        Sessions are revoked before the row is deleted. The success event is
        written without a user id because the user row no longer exists; the
        former id, username and email are kept in its metadata.

        Raises:
            IncorrectPasswordError: Password did not verify
            NotFoundError: The user no longer exists
        """
        try:
            user = await self._confirm_password(
                AuthEventType.ACCOUNT_DELETION,
                user_id,
                password,
                context,
                "Invalid password",
                "Password is incorrect",
            )
            await self.sessions.revoke_all_for_user(user.id)
            await self.users.delete_user(user.id)
        except INFRASTRUCTURE_ERRORS as e:
            await self._audit_infrastructure_failure(
                AuthEventType.ACCOUNT_DELETION, e, user_id=user_id, context=context
            )
            raise

        await self.audit.record(
            AuthEventType.ACCOUNT_DELETION,
            True,
            context=context,
            metadata=AuthEventMetadata(
                username=user.username,
                email=user.email,
                extra={"user_id": str(user.id)},
            ),
        )
        logger.info("account_deleted", user_id=str(user.id), username=user.username)

    # ------------------------------------------------------------------
    # Access token authentication
    # ------------------------------------------------------------------

    async def authenticate(self, access_token: str) -> User:
        """Resolve a bearer access token to a current, active user.

        Raises:
            InvalidTokenError: Token invalid or its user no longer exists
            AccountInactiveError: The user has been deactivated
        """
        claims = self.tokens.verify_access(access_token)
        user = await self.users.find_by_id(claims.user_id)
        if user is None:
            logger.warning("token_user_not_found", user_id=str(claims.user_id))
            raise InvalidTokenError()
        if not user.is_active:
            logger.warning("token_user_inactive", user_id=str(user.id))
            raise AccountInactiveError()
        return user
