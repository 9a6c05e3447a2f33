"""API dependencies - authenticator wiring and bearer-token resolution"""

from functools import lru_cache
from typing import Optional
import uuid

from fastapi import Depends, Header

from payment_ledger.config import settings
from payment_ledger.core.exceptions import TokenInvalidError
from payment_ledger.core.security import PasswordHasher, TokenIssuer
from payment_ledger.services.auth_service import Authenticator


@lru_cache()
def get_authenticator() -> Authenticator:
    """Process-wide authenticator built once from settings"""
    return Authenticator(
        token_issuer=TokenIssuer.from_settings(),
        password_hasher=PasswordHasher(),
        revoke_on_refresh=settings.REVOKE_REFRESH_TOKEN_ON_ROTATION,
    )


def _extract_token(authorization: Optional[str]) -> str:
    """Accept ``Bearer <token>`` or the bare token"""
    if not authorization or not authorization.strip():
        raise TokenInvalidError(reason="missing Authorization header")

    parts = authorization.strip().split()
    if len(parts) == 1:
        return parts[0]
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    raise TokenInvalidError(reason="malformed Authorization header")


async def get_current_user_id(
    authorization: Optional[str] = Header(None),
    authenticator: Authenticator = Depends(get_authenticator),
) -> uuid.UUID:
    """
    Resolve the caller's user id from the access token

    Args:
        authorization: Raw Authorization header
        authenticator: Token verifier

    Returns:
        The authenticated user id

    Raises:
        TokenInvalidError: If the header is absent, malformed or the token is invalid
    """
    return authenticator.verify(_extract_token(authorization))
