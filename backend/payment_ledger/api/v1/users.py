"""User profile and deposit routes"""

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from payment_ledger.core.database import get_db
from payment_ledger.core.exceptions import ResourceNotFoundError
from payment_ledger.schemas.user import UserResponse, UserUpdate, DepositRequest, BalanceResponse
from payment_ledger.services.credential_store import credential_store
from payment_ledger.services.ledger_service import ledger_service
from payment_ledger.api.deps import get_current_user_id

router = APIRouter()


@router.get("/me", response_model=UserResponse)
def get_my_profile(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """
    Get current user profile

    Args:
        user_id: Authenticated user id
        db: Database session

    Returns:
        User profile including balance
    """
    user = credential_store.get_user(db, user_id)
    if not user:
        raise ResourceNotFoundError("User")
    return UserResponse.model_validate(user)


@router.put("/me", response_model=UserResponse)
def update_my_profile(
    body: UserUpdate,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Change display name and/or email of the current user"""
    user = credential_store.update_profile(db, user_id, full_name=body.full_name, email=body.email)
    db.commit()
    db.refresh(user)
    return UserResponse.model_validate(user)


@router.post("/me/deposit", response_model=BalanceResponse)
def deposit(
    body: DepositRequest,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: Session = Depends(get_db)
):
    """Credit the current user's account"""
    balance = ledger_service.deposit(db, user_id, body.amount)
    return BalanceResponse(user_id=user_id, balance=balance)
