from __future__ import annotations

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from finspace import models

logger = logging.getLogger(__name__)


class ReferenceDataService:
    """Spaces, accounts and categories owned by a user."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def _commit_or_conflict(self, detail: str) -> None:
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise HTTPException(status_code=409, detail=detail)

    def _in_use(self, column, value: int) -> bool:
        return (
            self.db.query(models.Transaction.id)
            .filter(column == value)
            .first()
            is not None
        )

    # ---- Spaces ----------------------------------------------------------
    def list_spaces(self, user_id: int) -> list[models.Space]:
        return (
            self.db.query(models.Space)
            .filter(models.Space.user_id == user_id)
            .order_by(models.Space.name)
            .all()
        )

    def get_space(self, user_id: int, space_id: int) -> models.Space:
        row = (
            self.db.query(models.Space)
            .filter(models.Space.id == space_id, models.Space.user_id == user_id)
            .first()
        )
        if not row:
            raise HTTPException(status_code=404, detail="Space not found")
        return row

    def create_space(self, user_id: int, name: str) -> models.Space:
        exists = (
            self.db.query(models.Space)
            .filter(models.Space.user_id == user_id, models.Space.name == name)
            .first()
        )
        if exists:
            raise HTTPException(status_code=409, detail="Space with same name already exists for user")
        row = models.Space(user_id=user_id, name=name)
        self.db.add(row)
        self._commit_or_conflict("Space with same name already exists for user")
        self.db.refresh(row)
        logger.info("Created space %s for user %s", row.id, user_id)
        return row

    def rename_space(self, row: models.Space, name: str) -> models.Space:
        if name == row.name:
            return row
        row.name = name
        self._commit_or_conflict("Space with same name already exists for user")
        self.db.refresh(row)
        return row

    def delete_space(self, row: models.Space) -> None:
        if self._in_use(models.Transaction.space_id, row.id):
            raise HTTPException(status_code=409, detail="Space still has transactions")
        self.db.delete(row)
        self.db.commit()
        logger.info("Deleted space %s", row.id)

    # ---- Accounts --------------------------------------------------------
    def list_accounts(self, user_id: int, *, type: Optional[models.AccountType] = None) -> list[models.Account]:
        q = self.db.query(models.Account).filter(models.Account.user_id == user_id)
        if type is not None:
            q = q.filter(models.Account.type == type)
        return q.order_by(models.Account.name).all()

    def get_account(self, user_id: int, account_id: int) -> models.Account:
        row = (
            self.db.query(models.Account)
            .filter(models.Account.id == account_id, models.Account.user_id == user_id)
            .first()
        )
        if not row:
            raise HTTPException(status_code=404, detail="Account not found")
        return row

    def create_account(self, user_id: int, payload: dict) -> models.Account:
        exists = (
            self.db.query(models.Account)
            .filter(models.Account.user_id == user_id, models.Account.name == payload["name"])
            .first()
        )
        if exists:
            raise HTTPException(status_code=409, detail="Account with same name already exists for user")
        row = models.Account(user_id=user_id, **payload)
        self.db.add(row)
        self._commit_or_conflict("Account with same name already exists for user")
        self.db.refresh(row)
        logger.info("Created account %s for user %s", row.id, user_id)
        return row

    def update_account(self, row: models.Account, patch: dict) -> models.Account:
        if not patch:
            return row
        for key, value in patch.items():
            setattr(row, key, value)
        self._commit_or_conflict("Account with same name already exists for user")
        self.db.refresh(row)
        return row

    def delete_account(self, row: models.Account) -> None:
        if self._in_use(models.Transaction.account_id, row.id):
            raise HTTPException(status_code=409, detail="Account still has transactions")
        self.db.delete(row)
        self.db.commit()
        logger.info("Deleted account %s", row.id)

    # ---- Categories ------------------------------------------------------
    def list_categories(self, user_id: int, *, type: Optional[models.TxnType] = None) -> list[models.Category]:
        q = self.db.query(models.Category).filter(
            or_(models.Category.user_id == user_id, models.Category.user_id.is_(None))
        )
        if type is not None:
            # Categories without a type apply to both
            q = q.filter(or_(models.Category.type == type, models.Category.type.is_(None)))
        return q.order_by(models.Category.sort_order, models.Category.name).all()

    def get_visible_category(self, user_id: int, category_id: int) -> models.Category:
        row = (
            self.db.query(models.Category)
            .filter(
                models.Category.id == category_id,
                or_(models.Category.user_id == user_id, models.Category.user_id.is_(None)),
            )
            .first()
        )
        if not row:
            raise HTTPException(status_code=404, detail="Category not found")
        return row

    def create_category(self, user_id: int, payload: dict) -> models.Category:
        exists = (
            self.db.query(models.Category)
            .filter(models.Category.user_id == user_id, models.Category.name == payload["name"])
            .first()
        )
        if exists:
            raise HTTPException(status_code=409, detail="Category with same name already exists for user")
        row = models.Category(user_id=user_id, is_default=False, **payload)
        self.db.add(row)
        self._commit_or_conflict("Category with same name already exists for user")
        self.db.refresh(row)
        return row

    def update_category(self, user_id: int, category_id: int, patch: dict) -> models.Category:
        row = self.get_visible_category(user_id, category_id)
        if row.is_system:
            raise HTTPException(status_code=403, detail="System categories cannot be edited")
        if "name" in patch and patch["name"] is None:
            raise HTTPException(status_code=400, detail="name must not be null")
        if not patch:
            return row
        new_type = patch.get("type")
        if new_type is not None and new_type != row.type:
            mismatched = (
                self.db.query(models.Transaction.id)
                .filter(models.Transaction.category_id == row.id, models.Transaction.type != new_type)
                .first()
            )
            if mismatched is not None:
                raise HTTPException(status_code=409, detail="Category type conflicts with its transactions")
        for key, value in patch.items():
            setattr(row, key, value)
        self._commit_or_conflict("Category with same name already exists for user")
        self.db.refresh(row)
        logger.info("Updated category %s for user %s", row.id, user_id)
        return row

    def delete_category(self, user_id: int, category_id: int) -> None:
        row = self.get_visible_category(user_id, category_id)
        if row.is_system:
            raise HTTPException(status_code=403, detail="System categories cannot be deleted")
        if self._in_use(models.Transaction.category_id, row.id):
            raise HTTPException(status_code=409, detail="Category still has transactions")
        self.db.delete(row)
        self.db.commit()
