"""Authenticator - registration, login, refresh-token exchange, token verification"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
import logging
import uuid

from sqlalchemy.orm import Session

from payment_ledger.core.exceptions import (
    DuplicateEmailError,
    InvalidCredentialsError,
    RefreshTokenInvalidError,
)
from payment_ledger.core.security import PasswordHasher, TokenIssuer, check_password_strength
from payment_ledger.models.user import User
from payment_ledger.services.credential_store import CredentialStore, credential_store

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthResult:
    access_token: str
    refresh_token: str
    user_id: uuid.UUID


class Authenticator:
    """Issue and check credentials for ledger users."""

    def __init__(
        self,
        token_issuer: TokenIssuer,
        password_hasher: PasswordHasher,
        store: CredentialStore = credential_store,
        revoke_on_refresh: bool = False,
    ) -> None:
        self.tokens = token_issuer
        self.hasher = password_hasher
        self.store = store
        self.revoke_on_refresh = revoke_on_refresh

    def _issue(self, db: Session, user_id: uuid.UUID, now: Optional[datetime] = None) -> AuthResult:
        """Mint an access token and persist a fresh refresh token (not committed)"""
        now = now or datetime.now(timezone.utc)
        access_token = self.tokens.create_access_token(user_id, now=now)
        refresh_token = self.tokens.create_refresh_token()
        self.store.store_refresh_token(
            db,
            user_id=user_id,
            token=refresh_token,
            expires_at=self.tokens.refresh_token_expiry(now),
        )
        return AuthResult(access_token=access_token, refresh_token=refresh_token, user_id=user_id)

    def register(
        self,
        db: Session,
        email: str,
        password: str,
        full_name: Optional[str] = None,
    ) -> AuthResult:
        """
        Create an account and open a session for it

        Args:
            db: Database session
            email: Account email, must be unused
            password: Plain text password, must pass the admission policy
            full_name: Optional display name

        Returns:
            Access token, refresh token and the new user id

        Raises:
            DuplicateEmailError: If the email already has an account
            WeakPasswordError: If the password breaks a policy rule
        """
        if self.store.find_user_by_email(db, email) is not None:
            raise DuplicateEmailError()

        check_password_strength(password)
        password_hash = self.hasher.hash(password)

        try:
            user = self.store.create_user(db, email, password_hash, full_name)
            logger.info("User created with email: %s", email)
            result = self._issue(db, user.id)
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info("Stored refresh token for user: %s", email)
        return result

    def login(self, db: Session, email: str, password: str) -> AuthResult:
        """
        Check an email/password pair and open a session

        Unknown email and wrong password raise the same error so the caller
        cannot tell which accounts exist.
        """
        logger.info("Attempting to log in user with email: %s", email)
        user = self.store.find_user_by_email(db, email)
        if user is None:
            raise InvalidCredentialsError(reason=f"no account for {email}")

        if not self.hasher.verify(password, user.password_hash):
            raise InvalidCredentialsError(reason=f"password mismatch for {email}")

        try:
            result = self._issue(db, user.id)
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info("User authenticated: %s", email)
        return result

    def refresh(self, db: Session, refresh_token: str) -> AuthResult:
        """
        Exchange a live refresh token for a new token pair

        The presented token stays valid until its own expiry unless
        ``revoke_on_refresh`` is set, in which case it is deleted in the same
        transaction that stores its replacement.

        Raises:
            RefreshTokenInvalidError: If the token is unknown or expired
        """
        now = datetime.now(timezone.utc)
        user: Optional[User] = self.store.find_user_by_valid_refresh_token(db, refresh_token, now=now)
        if user is None:
            raise RefreshTokenInvalidError(reason="unknown or expired refresh token")

        try:
            # Losing a race for the same token means another request consumed it.
            if self.revoke_on_refresh and not self.store.delete_refresh_token(db, refresh_token):
                raise RefreshTokenInvalidError(reason="refresh token already consumed")
            result = self._issue(db, user.id, now=now)
            db.commit()
        except Exception:
            db.rollback()
            raise

        logger.info("Refreshed session for user: %s", user.id)
        return result

    def verify(self, access_token: str) -> uuid.UUID:
        """Resolve the user id carried by an access token (no store access)"""
        return self.tokens.verify_access_token(access_token)
