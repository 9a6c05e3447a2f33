"""Authentication routes"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from payment_ledger.core.database import get_db
from payment_ledger.schemas.user import (
    RegisterRequest,
    LoginRequest,
    RefreshTokenRequest,
    AuthResponse,
)
from payment_ledger.services.auth_service import Authenticator, AuthResult
from payment_ledger.api.deps import get_authenticator

router = APIRouter()


def _to_response(result: AuthResult, authenticator: Authenticator) -> AuthResponse:
    return AuthResponse(
        access_token=result.access_token,
        refresh_token=result.refresh_token,
        user_id=result.user_id,
        token_type="bearer",
        expires_in=int(authenticator.tokens.access_token_ttl.total_seconds()),
    )


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(
    body: RegisterRequest,
    db: Session = Depends(get_db),
    authenticator: Authenticator = Depends(get_authenticator),
):
    """
    Register a new account and return its first token pair

    Args:
        body: Email, password and optional display name
        db: Database session

    Returns:
        Access token, refresh token and user id
    """
    result = authenticator.register(db, body.email, body.password, body.full_name)
    return _to_response(result, authenticator)


@router.post("/login", response_model=AuthResponse, status_code=status.HTTP_200_OK)
def login(
    body: LoginRequest,
    db: Session = Depends(get_db),
    authenticator: Authenticator = Depends(get_authenticator),
):
    """
    Login endpoint - authenticate user and return a token pair

    Args:
        body: Email and password
        db: Database session

    Returns:
        Access token, refresh token and user id
    """
    result = authenticator.login(db, body.email, body.password)
    return _to_response(result, authenticator)


@router.post("/refresh", response_model=AuthResponse)
def refresh_token(
    body: RefreshTokenRequest,
    db: Session = Depends(get_db),
    authenticator: Authenticator = Depends(get_authenticator),
):
    """Exchange a refresh token for a new token pair"""
    result = authenticator.refresh(db, body.refresh_token)
    return _to_response(result, authenticator)
