"""Custom exception classes for the application"""

from typing import Optional, Dict, Any


class BaseAPIException(Exception):
    """Base exception for all API errors"""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


# Authentication Errors
#
# Every subclass has a fixed public message. The concrete cause goes into
# ``reason``, which is logged but never rendered to the caller.
class AuthenticationError(BaseAPIException):
    """Base authentication error"""
    def __init__(self, message: str = "Authentication failed", reason: Optional[str] = None):
        super().__init__(message, status_code=401)
        self.reason = reason or message


class InvalidCredentialsError(AuthenticationError):
    """Unknown email or wrong password"""
    def __init__(self, reason: Optional[str] = None):
        super().__init__("Invalid credentials", reason=reason)


class TokenInvalidError(AuthenticationError):
    """Access token is missing, malformed, forged or expired"""
    def __init__(self, reason: Optional[str] = None):
        super().__init__("Invalid token", reason=reason)


class RefreshTokenInvalidError(AuthenticationError):
    """Refresh token is unknown or expired"""
    def __init__(self, reason: Optional[str] = None):
        super().__init__("Invalid refresh token", reason=reason)


class UnauthorizedTransferError(AuthenticationError):
    """Caller tried to act on another account"""
    def __init__(self, reason: Optional[str] = None):
        super().__init__("Unauthorized", reason=reason)


# Resource Errors
class ResourceNotFoundError(BaseAPIException):
    """Resource not found"""
    def __init__(self, resource: str):
        super().__init__(f"{resource} not found", status_code=404)


class ResourceAlreadyExistsError(BaseAPIException):
    """Resource already exists"""
    def __init__(self, resource: str):
        super().__init__(f"{resource} already exists", status_code=409)


class DuplicateEmailError(ResourceAlreadyExistsError):
    """An account is already registered with this email"""
    def __init__(self):
        super().__init__("User")


# Validation Errors
class ValidationError(BaseAPIException):
    """Validation error"""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, status_code=422, details=details)


class WeakPasswordError(ValidationError):
    """Password does not satisfy the admission policy"""
    def __init__(self, rule: str, message: str):
        super().__init__(message, details={"rule": rule})
        self.rule = rule


class InvalidAmountError(ValidationError):
    """Monetary amount must be strictly positive"""
    def __init__(self):
        super().__init__("Amount must be greater than zero")


# Business Logic Errors
class BusinessLogicError(BaseAPIException):
    """Business logic error"""
    def __init__(self, message: str):
        super().__init__(message, status_code=400)


class InsufficientFundsError(BusinessLogicError):
    """Sender balance does not cover the transfer"""
    def __init__(self):
        super().__init__("Insufficient funds")


# System Errors
class DatabaseError(BaseAPIException):
    """Database operation failed"""
    def __init__(self, message: str = "Database operation failed"):
        super().__init__(message, status_code=500)


class TransferFailedError(DatabaseError):
    """Transfer was rolled back because the store rejected it"""
    def __init__(self):
        super().__init__("Failed to transfer amount")


class PasswordHashingError(BaseAPIException):
    """Password could not be hashed"""
    def __init__(self, message: str = "Unable to hash password"):
        super().__init__(message, status_code=500)
