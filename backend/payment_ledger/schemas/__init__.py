"""Pydantic schemas for API validation"""

from payment_ledger.schemas.user import (
    RegisterRequest,
    LoginRequest,
    RefreshTokenRequest,
    AuthResponse,
    UserResponse,
    UserUpdate,
    DepositRequest,
    BalanceResponse,
)
from payment_ledger.schemas.transfer import TransferCreate, TransferCreatedResponse, TransferResponse
from payment_ledger.schemas.response import ErrorResponse, HealthResponse

__all__ = [
    "RegisterRequest", "LoginRequest", "RefreshTokenRequest", "AuthResponse",
    "UserResponse", "UserUpdate", "DepositRequest", "BalanceResponse",
    "TransferCreate", "TransferCreatedResponse", "TransferResponse",
    "ErrorResponse", "HealthResponse"
]
