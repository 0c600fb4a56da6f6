from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from finspace import models
from finspace.core.database import get_db
from finspace.core.deps import get_current_user
from finspace.schemas import AccountCreate, AccountOut, AccountUpdate
from finspace.services import ReferenceDataService


router = APIRouter(prefix="/accounts", tags=["accounts"])


@router.get("", response_model=list[AccountOut])
def list_accounts(
    type: Optional[models.AccountType] = Query(None, description="Filter by account type"),
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    return ReferenceDataService(db).list_accounts(current_user.id, type=type)


@router.post("", response_model=AccountOut, status_code=201)
def create_account(payload: AccountCreate, db: Session = Depends(get_db), current_user = Depends(get_current_user)):
    return ReferenceDataService(db).create_account(current_user.id, payload.model_dump())


@router.get("/{account_id}", response_model=AccountOut)
def get_account(account_id: int, db: Session = Depends(get_db), current_user = Depends(get_current_user)):
    return ReferenceDataService(db).get_account(current_user.id, account_id)


@router.patch("/{account_id}", response_model=AccountOut)
def update_account(
    account_id: int,
    payload: AccountUpdate,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    svc = ReferenceDataService(db)
    row = svc.get_account(current_user.id, account_id)
    patch = payload.model_dump(exclude_unset=True, exclude_none=True)
    return svc.update_account(row, patch)


@router.delete("/{account_id}", status_code=204)
def delete_account(account_id: int, db: Session = Depends(get_db), current_user = Depends(get_current_user)):
    svc = ReferenceDataService(db)
    svc.delete_account(svc.get_account(current_user.id, account_id))
    return None
