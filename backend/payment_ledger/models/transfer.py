"""Transfer model - append-only record of committed fund movements"""

import uuid

from sqlalchemy import Column, Text, DateTime, ForeignKey, Numeric, Uuid, Index, CheckConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from payment_ledger.core.database import Base


class Transfer(Base):
    """One committed movement of funds between two users"""

    __tablename__ = "transfers"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    sender_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    recipient_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    amount = Column(Numeric(19, 4), nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    sender = relationship("User", foreign_keys=[sender_id])
    recipient = relationship("User", foreign_keys=[recipient_id])

    __table_args__ = (
        Index('idx_transfers_sender_id', 'sender_id'),
        Index('idx_transfers_recipient_id', 'recipient_id'),
        CheckConstraint('sender_id != recipient_id', name='different_users'),
    )

    def __repr__(self):
        return f"<Transfer(id={self.id}, sender_id={self.sender_id}, recipient_id={self.recipient_id}, amount={self.amount})>"
