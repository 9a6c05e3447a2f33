"""Credential store - data access for users and refresh tokens

Pure persistence: no policy lives here. Writes are flushed, never committed;
the calling service owns the transaction.
"""

from datetime import datetime, timezone
from typing import Optional
import logging
import uuid

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from payment_ledger.core.exceptions import DuplicateEmailError, ResourceNotFoundError
from payment_ledger.models.security import RefreshToken
from payment_ledger.models.user import User

logger = logging.getLogger(__name__)


class CredentialStore:
    """Users and refresh tokens"""

    @staticmethod
    def create_user(
        db: Session,
        email: str,
        password_hash: str,
        full_name: Optional[str] = None,
    ) -> User:
        """
        Insert a new user

        Args:
            db: Database session
            email: Unique email
            password_hash: Encoded password hash
            full_name: Optional display name

        Returns:
            The flushed user (id assigned)

        Raises:
            DuplicateEmailError: If the email is already registered
        """
        user = User(email=email, password_hash=password_hash, full_name=full_name)
        db.add(user)
        try:
            db.flush()
        except IntegrityError as exc:
            db.rollback()
            logger.info("Duplicate registration rejected at insert for %s: %s", email, exc.orig)
            raise DuplicateEmailError() from exc
        return user

    @staticmethod
    def find_user_by_email(db: Session, email: str) -> Optional[User]:
        """Get user by email (exact match)"""
        return db.query(User).filter(User.email == email).first()

    @staticmethod
    def get_user(db: Session, user_id: uuid.UUID) -> Optional[User]:
        """Get user by ID"""
        return db.get(User, user_id)

    @staticmethod
    def store_refresh_token(
        db: Session,
        user_id: uuid.UUID,
        token: str,
        expires_at: datetime,
    ) -> RefreshToken:
        record = RefreshToken(user_id=user_id, token=token, expires_at=expires_at)
        db.add(record)
        db.flush()
        return record

    @staticmethod
    def find_user_by_valid_refresh_token(
        db: Session,
        token: str,
        now: Optional[datetime] = None,
    ) -> Optional[User]:
        """
        Resolve the owner of a refresh token that has not yet expired

        Args:
            db: Database session
            token: Opaque refresh token
            now: Reference instant, defaults to the current time

        Returns:
            Owning user, or None if the token is unknown or expired
        """
        now = now or datetime.now(timezone.utc)
        return (
            db.query(User)
            .join(RefreshToken, RefreshToken.user_id == User.id)
            .filter(RefreshToken.token == token, RefreshToken.expires_at > now)
            .first()
        )

    @staticmethod
    def delete_refresh_token(db: Session, token: str) -> bool:
        result = db.execute(delete(RefreshToken).where(RefreshToken.token == token))
        return result.rowcount > 0

    @staticmethod
    def update_profile(
        db: Session,
        user_id: uuid.UUID,
        full_name: Optional[str] = None,
        email: Optional[str] = None,
    ) -> User:
        """
        Change display name and/or email of one user

        Raises:
            ResourceNotFoundError: If the user does not exist
            DuplicateEmailError: If the new email belongs to another account
        """
        user = db.get(User, user_id)
        if not user:
            raise ResourceNotFoundError("User")

        if email is not None and email != user.email:
            owner = CredentialStore.find_user_by_email(db, email)
            if owner is not None:
                raise DuplicateEmailError()
            user.email = email
        if full_name is not None:
            user.full_name = full_name

        try:
            db.flush()
        except IntegrityError as exc:
            db.rollback()
            raise DuplicateEmailError() from exc
        return user


# Singleton instance
credential_store = CredentialStore()
