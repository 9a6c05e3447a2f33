"""Ledger service - atomic transfers, deposits and transfer lookup"""

from decimal import Decimal, InvalidOperation
from typing import Dict, Iterator, Optional
import logging
import uuid

from prometheus_client import Counter
from sqlalchemy import or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from payment_ledger.config import settings
from payment_ledger.core.exceptions import (
    BaseAPIException,
    DatabaseError,
    InsufficientFundsError,
    InvalidAmountError,
    ResourceNotFoundError,
    TransferFailedError,
    UnauthorizedTransferError,
    ValidationError,
)
from payment_ledger.models.transfer import Transfer
from payment_ledger.models.user import User
from payment_ledger.services.audit_service import audit_service

logger = logging.getLogger(__name__)

TRANSFER_OUTCOMES = Counter(
    "ledger_transfers_total",
    "Transfer attempts by outcome",
    ["outcome"],
)

MONEY_QUANTUM = Decimal("0.0001")
MAX_INTEGER_DIGITS = 15


def _to_amount(amount) -> Decimal:
    """Coerce to an exact, strictly positive amount with at most four decimals"""
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError("Amount is not a number") from exc

    if not value.is_finite() or value <= 0:
        raise InvalidAmountError()
    # Numeric(19, 4) holds at most 15 integer digits
    if value.adjusted() >= MAX_INTEGER_DIGITS:
        raise ValidationError("Amount is too large")
    if value != value.quantize(MONEY_QUANTUM):
        raise ValidationError("Amount supports at most 4 decimal places")
    return value


class LedgerService:
    """Moves funds between users; sole writer of ``User.balance``."""

    def __init__(self, allow_overdraft: bool = True, stream_batch_size: int = 100):
        self.allow_overdraft = allow_overdraft
        self.stream_batch_size = stream_batch_size

    @staticmethod
    def _lock_accounts(db: Session, *user_ids: uuid.UUID) -> Dict[uuid.UUID, User]:
        """
        Row-lock the given users for the rest of the transaction

        Locks are taken in id order so two transfers touching the same pair of
        accounts cannot deadlock each other.
        """
        rows = (
            db.query(User)
            .filter(User.id.in_(user_ids))
            .order_by(User.id)
            .with_for_update()
            .populate_existing()
            .all()
        )
        accounts = {row.id: row for row in rows}
        for user_id in user_ids:
            if user_id not in accounts:
                raise ResourceNotFoundError("Account")
        return accounts

    @staticmethod
    def _adjust_balance(db: Session, user_id: uuid.UUID, delta: Decimal) -> None:
        result = db.execute(
            update(User)
            .where(User.id == user_id)
            .values(balance=User.balance + delta)
        )
        if result.rowcount != 1:
            raise ResourceNotFoundError("Account")

    @staticmethod
    def _record_transfer(
        db: Session,
        sender_id: uuid.UUID,
        receiver_id: uuid.UUID,
        amount: Decimal,
        description: Optional[str],
    ) -> Transfer:
        record = Transfer(
            sender_id=sender_id,
            recipient_id=receiver_id,
            amount=amount,
            description=description,
        )
        db.add(record)
        db.flush()
        return record

    def transfer(
        self,
        db: Session,
        caller_id: uuid.UUID,
        sender_id: uuid.UUID,
        receiver_id: uuid.UUID,
        amount,
        description: Optional[str] = None,
    ) -> uuid.UUID:
        """
        Move ``amount`` from sender to receiver as one atomic unit

        Debit, credit and the transfer record are issued in a single
        transaction; any failure rolls all three back.

        Args:
            db: Database session
            caller_id: Authenticated user making the request
            sender_id: Account to debit, must be the caller's own
            receiver_id: Account to credit
            amount: Positive fixed-point amount
            description: Optional free text

        Returns:
            The id of the committed transfer

        Raises:
            UnauthorizedTransferError: If the caller is not the sender
            InvalidAmountError: If the amount is zero or negative
            ValidationError: If sender and receiver are the same account
            ResourceNotFoundError: If either account does not exist
            InsufficientFundsError: If overdraft is disabled and funds are short
            TransferFailedError: If the store rejected any step
        """
        if caller_id != sender_id:
            TRANSFER_OUTCOMES.labels("unauthorized").inc()
            logger.warning("Unauthorized transaction attempt by user: %s", caller_id)
            raise UnauthorizedTransferError(
                reason=f"caller {caller_id} attempted to debit account {sender_id}"
            )

        amount = _to_amount(amount)
        if sender_id == receiver_id:
            raise ValidationError("Sender and receiver must be different accounts")

        logger.info("Starting transfer of %s from %s to %s", amount, sender_id, receiver_id)
        try:
            accounts = self._lock_accounts(db, sender_id, receiver_id)
            if not self.allow_overdraft and accounts[sender_id].balance < amount:
                raise InsufficientFundsError()

            self._adjust_balance(db, sender_id, -amount)
            self._adjust_balance(db, receiver_id, amount)
            record = self._record_transfer(db, sender_id, receiver_id, amount, description)
            audit_service.log_event(
                db,
                user_id=caller_id,
                action="transfer",
                entity_type="transfer",
                entity_id=record.id,
                changes={"sender_id": sender_id, "receiver_id": receiver_id, "amount": amount},
            )
            transfer_id = record.id
            db.commit()
        except BaseAPIException:
            db.rollback()
            TRANSFER_OUTCOMES.labels("rejected").inc()
            raise
        except SQLAlchemyError as exc:
            db.rollback()
            TRANSFER_OUTCOMES.labels("failed").inc()
            logger.error("Transfer from %s to %s rolled back: %s", sender_id, receiver_id, exc)
            raise TransferFailedError() from exc
        except Exception:
            db.rollback()
            TRANSFER_OUTCOMES.labels("failed").inc()
            raise

        TRANSFER_OUTCOMES.labels("committed").inc()
        logger.info("Transaction successful with id: %s", transfer_id)
        return transfer_id

    @staticmethod
    def get_transfer(db: Session, caller_id: uuid.UUID, transfer_id: uuid.UUID) -> Transfer:
        """
        Fetch a transfer the caller took part in

        A transfer between other users is reported exactly like a missing one.
        """
        record = (
            db.query(Transfer)
            .filter(
                Transfer.id == transfer_id,
                or_(Transfer.sender_id == caller_id, Transfer.recipient_id == caller_id),
            )
            .first()
        )
        if record is None:
            raise ResourceNotFoundError("Transfer")
        return record

    def list_transfers(self, db: Session, caller_id: uuid.UUID) -> Iterator[Transfer]:
        """Stream every transfer the caller sent or received, batch by batch"""
        query = (
            db.query(Transfer)
            .filter(or_(Transfer.sender_id == caller_id, Transfer.recipient_id == caller_id))
            .yield_per(self.stream_batch_size)
        )
        for record in query:
            yield record

    def deposit(self, db: Session, caller_id: uuid.UUID, amount) -> Decimal:
        """Credit the caller's own account and return the new balance"""
        amount = _to_amount(amount)
        try:
            self._lock_accounts(db, caller_id)
            self._adjust_balance(db, caller_id, amount)
            balance = db.query(User.balance).filter(User.id == caller_id).scalar()
            audit_service.log_event(
                db,
                user_id=caller_id,
                action="deposit",
                entity_type="user",
                entity_id=caller_id,
                changes={"amount": amount, "balance": balance},
            )
            db.commit()
        except BaseAPIException:
            db.rollback()
            raise
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Deposit for %s rolled back: %s", caller_id, exc)
            raise DatabaseError("Failed to update user balance") from exc

        logger.info("User balance updated successfully for user: %s. New balance: %s", caller_id, balance)
        return balance

    @staticmethod
    def get_balance(db: Session, caller_id: uuid.UUID) -> Decimal:
        balance = db.query(User.balance).filter(User.id == caller_id).scalar()
        if balance is None:
            raise ResourceNotFoundError("Account")
        return balance


# Singleton instance
ledger_service = LedgerService(
    allow_overdraft=settings.ALLOW_OVERDRAFT,
    stream_batch_size=settings.TRANSFER_STREAM_BATCH_SIZE,
)
