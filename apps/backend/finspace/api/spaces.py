from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from finspace.core.database import get_db
from finspace.core.deps import get_current_user
from finspace.schemas import SpaceCreate, SpaceOut, SpaceUpdate
from finspace.services import ReferenceDataService


router = APIRouter(prefix="/spaces", tags=["spaces"])


@router.get("", response_model=list[SpaceOut])
def list_spaces(db: Session = Depends(get_db), current_user = Depends(get_current_user)):
    return ReferenceDataService(db).list_spaces(current_user.id)


@router.post("", response_model=SpaceOut, status_code=201)
def create_space(payload: SpaceCreate, db: Session = Depends(get_db), current_user = Depends(get_current_user)):
    return ReferenceDataService(db).create_space(current_user.id, payload.name)


@router.get("/{space_id}", response_model=SpaceOut)
def get_space(space_id: int, db: Session = Depends(get_db), current_user = Depends(get_current_user)):
    return ReferenceDataService(db).get_space(current_user.id, space_id)


@router.patch("/{space_id}", response_model=SpaceOut)
def rename_space(
    space_id: int,
    payload: SpaceUpdate,
    db: Session = Depends(get_db),
    current_user = Depends(get_current_user),
):
    svc = ReferenceDataService(db)
    row = svc.get_space(current_user.id, space_id)
    return svc.rename_space(row, payload.name)


@router.delete("/{space_id}", status_code=204)
def delete_space(space_id: int, db: Session = Depends(get_db), current_user = Depends(get_current_user)):
    svc = ReferenceDataService(db)
    svc.delete_space(svc.get_space(current_user.id, space_id))
    return None
