"""Transfer schemas"""

from pydantic import AliasChoices, BaseModel, Field
from typing import Optional
from datetime import datetime
from decimal import Decimal
from uuid import UUID


class TransferCreate(BaseModel):
    """Transfer request"""
    sender_id: UUID
    receiver_id: UUID
    amount: Decimal = Field(..., max_digits=19, decimal_places=4)
    description: Optional[str] = Field(None, max_length=500)


class TransferCreatedResponse(BaseModel):
    """Identifier of the committed transfer"""
    transfer_id: UUID
    message: str = "Transaction successful"


class TransferResponse(BaseModel):
    """Transfer record as seen by one of its parties"""
    id: UUID
    sender_id: UUID
    receiver_id: UUID = Field(validation_alias=AliasChoices("receiver_id", "recipient_id"))
    amount: Decimal
    description: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
