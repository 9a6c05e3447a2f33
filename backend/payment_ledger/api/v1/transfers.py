"""Transfer routes - create, fetch and stream transfers"""

import asyncio
import logging
import uuid

from fastapi import APIRouter, Depends, status
from fastapi.responses import StreamingResponse
from starlette.concurrency import run_in_threadpool
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from payment_ledger.config import settings
from payment_ledger.core.database import get_db, get_session_factory
from payment_ledger.schemas.transfer import TransferCreate, TransferCreatedResponse, TransferResponse
from payment_ledger.services.ledger_service import ledger_service
from payment_ledger.api.deps import get_current_user_id

logger = logging.getLogger(__name__)

router = APIRouter()

# Comment frames sent while a slow scan has nothing to report
KEEPALIVE_INTERVAL = settings.TRANSFER_STREAM_KEEPALIVE_SECONDS
_END = object()


@router.post("", response_model=TransferCreatedResponse, status_code=status.HTTP_201_CREATED)
def create_transfer(
    body: TransferCreate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """
    Move funds from the caller's account to another account

    Args:
        body: Sender, receiver, amount and optional description
        user_id: Authenticated user id, must equal the sender
        db: Database session

    Returns:
        Id of the committed transfer
    """
    transfer_id = ledger_service.transfer(
        db,
        caller_id=user_id,
        sender_id=body.sender_id,
        receiver_id=body.receiver_id,
        amount=body.amount,
        description=body.description,
    )
    return TransferCreatedResponse(transfer_id=transfer_id)


@router.get("/{transfer_id}", response_model=TransferResponse)
def get_transfer(
    transfer_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Return one transfer the caller sent or received"""
    record = ledger_service.get_transfer(db, user_id, transfer_id)
    return TransferResponse.model_validate(record)


@router.get("")
def list_transfers(
    user_id: uuid.UUID = Depends(get_current_user_id),
    session_factory: sessionmaker = Depends(get_session_factory)
):
    """
    Stream the caller's transfers as server-sent events

    The stream owns its session: it is opened when the first event is
    produced and closed when the scan ends or the client goes away. While
    a fetch is outstanding a keep-alive comment is sent every
    KEEPALIVE_INTERVAL seconds.
    """

    async def event_stream():
        db = session_factory()
        records = ledger_service.list_transfers(db, user_id)
        pending = None
        try:
            while True:
                if pending is None:
                    pending = asyncio.ensure_future(run_in_threadpool(next, records, _END))
                done, _ = await asyncio.wait({pending}, timeout=KEEPALIVE_INTERVAL)
                if not done:
                    yield ": keep-alive\n\n"
                    continue
                record, pending = pending.result(), None
                if record is _END:
                    break
                payload = TransferResponse.model_validate(record).model_dump_json()
                yield f"data: {payload}\n\n"
        except SQLAlchemyError as exc:
            logger.error("Failed to retrieve transactions for %s: %s", user_id, exc)
            yield "event: error\ndata: Failed to retrieve transactions\n\n"
        finally:
            try:
                # A fetch still running in the threadpool must finish before the session closes
                if pending is not None and not pending.done():
                    await asyncio.wait({pending})
            finally:
                db.close()

    return StreamingResponse(event_stream(), media_type="text/event-stream")
