from __future__ import annotations

import math
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from pydantic import ValidationError
from sqlalchemy.orm import Session

from finspace import models
from finspace.core.config import settings
from finspace.core.database import get_db
from finspace.core.deps import get_current_user
from finspace.schemas import (
    GeneratedInstance,
    RecurringInstancesOut,
    RecurringTransactionCreate,
    TransactionCreate,
    TransactionFilters,
    TransactionOut,
    TransactionUpdate,
)
from finspace.services import TransactionService


router = APIRouter(prefix="/transactions", tags=["transactions"])


@router.get("", response_model=list[TransactionOut])
def list_transactions(
    response: Response,
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    category_id: Optional[int] = Query(None),
    space_id: Optional[int] = Query(None),
    account_id: Optional[int] = Query(None),
    type: Optional[models.TxnType] = Query(None),
    min_amount: Optional[str] = Query(None, description="Accepts 100.50 or 100,50"),
    max_amount: Optional[str] = Query(None, description="Accepts 100.50 or 100,50"),
    search: Optional[str] = Query(None, description="Case-insensitive match on description"),
    page: int = Query(1, ge=1),
    page_size: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    try:
        filters = TransactionFilters(
            start_date=start_date,
            end_date=end_date,
            category_id=category_id,
            space_id=space_id,
            account_id=account_id,
            type=type,
            min_amount=min_amount,
            max_amount=max_amount,
            search=search,
        )
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=[err["msg"] for err in exc.errors()])

    rows, total = TransactionService(db).search(current_user.id, filters, page=page, page_size=page_size)
    response.headers["X-Total-Count"] = str(total)
    response.headers["X-Total-Pages"] = str(math.ceil(total / page_size) if total else 0)
    return rows


@router.post("", response_model=TransactionOut, status_code=201)
def create_transaction(payload: TransactionCreate, db: Session = Depends(get_db), current_user = Depends(get_current_user)):
    return TransactionService(db).create(current_user.id, payload)


# /recurring must be registered before /{txn_id}
@router.get("/recurring", response_model=RecurringInstancesOut)
def upcoming_recurring(
    days: int = Query(settings.RECURRING_LOOKAHEAD_DAYS, ge=1, le=366),
    limit: int = Query(settings.MAX_PAGE_SIZE, ge=1, le=1000),
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    instances = TransactionService(db).upcoming(current_user.id, days)
    return RecurringInstancesOut(
        instances=instances[:limit],
        total=len(instances),
        has_more=len(instances) > limit,
    )


@router.post("/recurring", response_model=TransactionOut, status_code=201)
def create_recurring_transaction(
    payload: RecurringTransactionCreate,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    if not payload.is_recurrent:
        raise HTTPException(status_code=400, detail="Recurring transactions must have is_recurrent set")
    return TransactionService(db).create(current_user.id, payload)


@router.get("/{txn_id}", response_model=TransactionOut)
def get_transaction(txn_id: int, db: Session = Depends(get_db), current_user = Depends(get_current_user)):
    return TransactionService(db).get(current_user.id, txn_id)


@router.patch("/{txn_id}", response_model=TransactionOut)
def update_transaction(
    txn_id: int,
    payload: TransactionUpdate,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    return TransactionService(db).update(current_user.id, txn_id, payload)


@router.delete("/{txn_id}", status_code=204)
def delete_transaction(txn_id: int, db: Session = Depends(get_db), current_user = Depends(get_current_user)):
    TransactionService(db).delete(current_user.id, txn_id)
    return None


@router.get("/{txn_id}/occurrences", response_model=list[GeneratedInstance])
def transaction_occurrences(
    txn_id: int,
    count: int = Query(settings.RECURRENCE_INSTANCE_COUNT, ge=1, le=1000),
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    return TransactionService(db).occurrences(current_user.id, txn_id, count)
