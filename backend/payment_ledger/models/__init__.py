"""Database models"""

from payment_ledger.models.user import User
from payment_ledger.models.security import RefreshToken
from payment_ledger.models.transfer import Transfer
from payment_ledger.models.audit import AuditEvent

__all__ = ["User", "RefreshToken", "Transfer", "AuditEvent"]
