"""Security utilities - password policy, Argon2 hashing, access/refresh tokens"""

from datetime import datetime, timedelta, timezone
from typing import Optional
import logging
import secrets
import uuid

from argon2 import PasswordHasher as _Argon2
from argon2.exceptions import HashingError, InvalidHashError, VerificationError
from jose import ExpiredSignatureError, JWTError, jwt

from payment_ledger.config import settings
from payment_ledger.core.exceptions import PasswordHashingError, TokenInvalidError, WeakPasswordError

logger = logging.getLogger(__name__)

PASSWORD_MIN_LENGTH = 8


def check_password_strength(password: str) -> None:
    """
    Apply the registration password policy.

    Every rule is checked on its own; the first failing one is reported.

    Raises:
        WeakPasswordError: naming the rule that failed
    """
    if len(password) < PASSWORD_MIN_LENGTH:
        raise WeakPasswordError(
            "min_length", f"Password must be at least {PASSWORD_MIN_LENGTH} characters"
        )
    if not any(c.isupper() for c in password):
        raise WeakPasswordError("uppercase", "Password must contain at least one uppercase letter")
    if not any(c.islower() for c in password):
        raise WeakPasswordError("lowercase", "Password must contain at least one lowercase letter")
    if not any(c.isdigit() for c in password):
        raise WeakPasswordError("digit", "Password must contain at least one digit")
    if not any(not c.isalnum() for c in password):
        raise WeakPasswordError("special", "Password must contain at least one special character")


class PasswordHasher:
    """Argon2id hashing with a fresh random salt per call"""

    def __init__(
        self,
        time_cost: int = settings.ARGON2_TIME_COST,
        memory_cost: int = settings.ARGON2_MEMORY_COST,
        parallelism: int = settings.ARGON2_PARALLELISM,
    ):
        self._argon2 = _Argon2(
            time_cost=time_cost,
            memory_cost=memory_cost,
            parallelism=parallelism,
        )

    def hash(self, password: str) -> str:
        """
        Hash a password

        Args:
            password: Plain text password

        Returns:
            str: Encoded Argon2 hash (parameters and salt included)

        Raises:
            PasswordHashingError: If the hash could not be computed
        """
        try:
            return self._argon2.hash(password)
        except HashingError as exc:
            logger.error("Password hashing failed: %s", exc)
            raise PasswordHashingError() from exc

    def verify(self, password: str, hashed_password: str) -> bool:
        """
        Verify a password against its hash

        A mismatch or an unparsable hash is a normal negative outcome.
        """
        try:
            return self._argon2.verify(hashed_password, password)
        except (VerificationError, InvalidHashError):
            return False


class TokenIssuer:
    """Signs and verifies access tokens, mints opaque refresh tokens"""

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        access_token_ttl: timedelta = timedelta(minutes=15),
        refresh_token_ttl: timedelta = timedelta(hours=1),
        leeway_seconds: int = 10,
    ):
        if not secret_key:
            raise ValueError("Token secret must not be empty")
        self._secret_key = secret_key
        self.algorithm = algorithm
        self.access_token_ttl = access_token_ttl
        self.refresh_token_ttl = refresh_token_ttl
        self.leeway_seconds = leeway_seconds

    @classmethod
    def from_settings(cls) -> "TokenIssuer":
        return cls(
            secret_key=settings.SECRET_KEY,
            algorithm=settings.ALGORITHM,
            access_token_ttl=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
            refresh_token_ttl=timedelta(minutes=settings.REFRESH_TOKEN_EXPIRE_MINUTES),
            leeway_seconds=settings.ACCESS_TOKEN_LEEWAY_SECONDS,
        )

    def create_access_token(self, user_id: uuid.UUID, now: Optional[datetime] = None) -> str:
        """
        Create JWT access token

        Args:
            user_id: Subject of the token
            now: Issuance instant, defaults to the current time

        Returns:
            str: Encoded JWT token
        """
        issued_at = now or datetime.now(timezone.utc)
        claims = {
            "sub": str(user_id),
            "iat": int(issued_at.timestamp()),
            "exp": int((issued_at + self.access_token_ttl).timestamp()),
        }
        return jwt.encode(claims, self._secret_key, algorithm=self.algorithm)

    def verify_access_token(self, token: str) -> uuid.UUID:
        """
        Decode and verify JWT token

        Args:
            token: JWT token string

        Returns:
            UUID: The token subject

        Raises:
            TokenInvalidError: For any signature, algorithm, expiry or payload problem
        """
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[self.algorithm],
                options={
                    "leeway": self.leeway_seconds,
                    "require_exp": True,
                    "require_iat": True,
                    "require_sub": True,
                },
            )
        except ExpiredSignatureError as exc:
            raise TokenInvalidError(reason=f"expired: {exc}") from exc
        except JWTError as exc:
            raise TokenInvalidError(reason=f"undecodable: {exc}") from exc

        try:
            return uuid.UUID(payload["sub"])
        except (KeyError, TypeError, ValueError) as exc:
            raise TokenInvalidError(reason="subject is not a user id") from exc

    @staticmethod
    def create_refresh_token() -> str:
        """Opaque, unguessable refresh token"""
        return secrets.token_urlsafe(48)

    def refresh_token_expiry(self, now: Optional[datetime] = None) -> datetime:
        return (now or datetime.now(timezone.utc)) + self.refresh_token_ttl
