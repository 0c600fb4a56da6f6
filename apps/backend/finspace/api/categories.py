from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from finspace import models
from finspace.core.database import get_db
from finspace.core.deps import get_current_user
from finspace.schemas import CategoryCreate, CategoryOut, CategoryUpdate
from finspace.services import ReferenceDataService


router = APIRouter(prefix="/categories", tags=["categories"])


@router.get("", response_model=list[CategoryOut])
def list_categories(
    type: Optional[models.TxnType] = Query(None, description="Only categories usable for this transaction type"),
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    return ReferenceDataService(db).list_categories(current_user.id, type=type)


@router.post("", response_model=CategoryOut, status_code=201)
def create_category(payload: CategoryCreate, db: Session = Depends(get_db), current_user = Depends(get_current_user)):
    return ReferenceDataService(db).create_category(current_user.id, payload.model_dump())


@router.get("/{category_id}", response_model=CategoryOut)
def get_category(category_id: int, db: Session = Depends(get_db), current_user = Depends(get_current_user)):
    return ReferenceDataService(db).get_visible_category(current_user.id, category_id)


@router.patch("/{category_id}", response_model=CategoryOut)
def update_category(
    category_id: int,
    payload: CategoryUpdate,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    patch = payload.model_dump(exclude_unset=True)
    return ReferenceDataService(db).update_category(current_user.id, category_id, patch)


@router.delete("/{category_id}", status_code=204)
def delete_category(category_id: int, db: Session = Depends(get_db), current_user = Depends(get_current_user)):
    ReferenceDataService(db).delete_category(current_user.id, category_id)
    return None
