"""User and authentication schemas"""

from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional
from datetime import datetime
from decimal import Decimal
from uuid import UUID


class RegisterRequest(BaseModel):
    """Registration schema

    The password policy is enforced by the authenticator, not here, so that a
    weak password is reported with the specific rule it broke.
    """
    email: EmailStr
    password: str = Field(..., max_length=256)
    full_name: Optional[str] = Field(None, max_length=255)

    @field_validator('full_name')
    @classmethod
    def strip_full_name(cls, v):
        """Treat blank names as absent"""
        if v is None:
            return v
        v = v.strip()
        return v or None


class LoginRequest(BaseModel):
    """User login schema"""
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=256)


class RefreshTokenRequest(BaseModel):
    """Refresh token exchange request"""
    refresh_token: str = Field(..., min_length=1, max_length=255)


class AuthResponse(BaseModel):
    """Token pair returned by register, login and refresh"""
    access_token: str
    refresh_token: str
    user_id: UUID
    token_type: str = "bearer"
    expires_in: int


class UserResponse(BaseModel):
    """User response schema"""
    id: UUID
    email: str
    full_name: Optional[str]
    balance: Decimal
    status: str
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class UserUpdate(BaseModel):
    """Profile update; omitted fields are left unchanged"""
    full_name: Optional[str] = Field(None, max_length=255)
    email: Optional[EmailStr] = None


class DepositRequest(BaseModel):
    """Credit the caller's own account"""
    amount: Decimal = Field(..., max_digits=19, decimal_places=4)


class BalanceResponse(BaseModel):
    """Balance after a deposit"""
    user_id: UUID
    balance: Decimal
