"""User model"""

from decimal import Decimal
import uuid

from sqlalchemy import Column, String, DateTime, Numeric, Uuid, Index, CheckConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from payment_ledger.core.database import Base


class User(Base):
    """Account holder: credentials plus the ledger balance"""

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    full_name = Column(String(255), nullable=True)
    # Written only by the ledger service after creation.
    balance = Column(Numeric(19, 4), default=Decimal("0"), server_default="0", nullable=False)
    status = Column(String(20), default="active", server_default="active", nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    refresh_tokens = relationship("RefreshToken", back_populates="user", cascade="all, delete-orphan")

    __table_args__ = (
        Index('idx_users_email', 'email'),
        CheckConstraint("status IN ('active', 'inactive')", name='chk_user_status'),
    )

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}')>"
