from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any

from fastapi import HTTPException
from sqlalchemy.orm import Session

from finspace import models
from finspace.schemas import (
    GeneratedInstance,
    RecurrenceConfig,
    TransactionCreate,
    TransactionFilters,
    TransactionTemplate,
    TransactionUpdate,
)
from finspace.services.recurrence_service import (
    build_generated_instance,
    generate_recurring_transaction_instances,
    occurrences_between,
    parse_recurrence_pattern,
    stringify_recurrence_pattern,
    validate_recurrence_config,
)

logger = logging.getLogger(__name__)


class TransactionService:
    """Transaction CRUD plus expansion of recurring transactions."""

    def __init__(self, db: Session) -> None:
        self.db = db

    # ---- Queries ---------------------------------------------------------
    def search(
        self,
        user_id: int,
        filters: TransactionFilters,
        *,
        page: int = 1,
        page_size: int = 10,
    ) -> tuple[list[models.Transaction], int]:
        q = self.db.query(models.Transaction).filter(models.Transaction.user_id == user_id)
        if filters.start_date is not None:
            q = q.filter(models.Transaction.date >= filters.start_date)
        if filters.end_date is not None:
            q = q.filter(models.Transaction.date <= filters.end_date)
        if filters.category_id is not None:
            q = q.filter(models.Transaction.category_id == filters.category_id)
        if filters.space_id is not None:
            q = q.filter(models.Transaction.space_id == filters.space_id)
        if filters.account_id is not None:
            q = q.filter(models.Transaction.account_id == filters.account_id)
        if filters.type is not None:
            q = q.filter(models.Transaction.type == filters.type)
        if filters.min_amount is not None:
            q = q.filter(models.Transaction.amount >= filters.min_amount)
        if filters.max_amount is not None:
            q = q.filter(models.Transaction.amount <= filters.max_amount)
        if filters.search:
            q = q.filter(models.Transaction.description.icontains(filters.search, autoescape=True))

        total = q.count()
        rows = (
            q.order_by(models.Transaction.date.desc(), models.Transaction.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return rows, total

    def get(self, user_id: int, txn_id: int) -> models.Transaction:
        row = (
            self.db.query(models.Transaction)
            .filter(models.Transaction.id == txn_id, models.Transaction.user_id == user_id)
            .first()
        )
        if not row:
            raise HTTPException(status_code=404, detail="Transaction not found")
        return row

    # ---- Validation helpers ---------------------------------------------
    def _ensure_references(
        self,
        user_id: int,
        *,
        space_id: int,
        account_id: int,
        category_id: int,
        txn_type: models.TxnType,
    ) -> None:
        space = self.db.get(models.Space, space_id)
        if not space or space.user_id != user_id:
            raise HTTPException(status_code=400, detail="Space not found for user")
        account = self.db.get(models.Account, account_id)
        if not account or account.user_id != user_id:
            raise HTTPException(status_code=400, detail="Account not found for user")
        category = self.db.get(models.Category, category_id)
        if not category or category.user_id not in (None, user_id):
            raise HTTPException(status_code=400, detail="Category not found for user")
        if category.type is not None and category.type != txn_type:
            raise HTTPException(status_code=400, detail="Category type does not match transaction type")

    def _encode_recurrence(self, config: RecurrenceConfig | None) -> str:
        if config is None:
            raise HTTPException(
                status_code=400,
                detail={"message": "Invalid recurrence configuration", "errors": ["recurrence is required for recurrent transactions"]},
            )
        result = validate_recurrence_config(config)
        if not result.is_valid:
            logger.warning("Rejected recurrence configuration %s: %s", config, result.errors)
            raise HTTPException(
                status_code=400,
                detail={"message": "Invalid recurrence configuration", "errors": result.errors},
            )
        return stringify_recurrence_pattern(config)

    # ---- Commands --------------------------------------------------------
    def create(self, user_id: int, payload: TransactionCreate) -> models.Transaction:
        self._ensure_references(
            user_id,
            space_id=payload.space_id,
            account_id=payload.account_id,
            category_id=payload.category_id,
            txn_type=payload.type,
        )
        pattern = self._encode_recurrence(payload.recurrence) if payload.is_recurrent else None
        row = models.Transaction(
            user_id=user_id,
            amount=payload.amount,
            date=payload.date,
            description=payload.description,
            category_id=payload.category_id,
            space_id=payload.space_id,
            account_id=payload.account_id,
            type=payload.type,
            is_recurrent=payload.is_recurrent,
            recurrence_pattern=pattern,
        )
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        logger.info("Created transaction %s for user %s (recurrent=%s)", row.id, user_id, row.is_recurrent)
        return row

    def update(self, user_id: int, txn_id: int, payload: TransactionUpdate) -> models.Transaction:
        row = self.get(user_id, txn_id)
        changes: dict[str, Any] = {name: getattr(payload, name) for name in payload.model_fields_set}
        if not changes:
            return row

        recurrence_changed = "recurrence" in changes
        config = changes.pop("recurrence", None)
        for key in ("amount", "date", "description", "category_id", "space_id", "account_id", "type", "is_recurrent"):
            if key in changes and changes[key] is None:
                raise HTTPException(status_code=400, detail=f"{key} must not be null")

        if {"space_id", "account_id", "category_id", "type"} & changes.keys():
            self._ensure_references(
                user_id,
                space_id=changes.get("space_id", row.space_id),
                account_id=changes.get("account_id", row.account_id),
                category_id=changes.get("category_id", row.category_id),
                txn_type=changes.get("type", row.type),
            )

        is_recurrent = changes.get("is_recurrent", row.is_recurrent)
        if not is_recurrent:
            changes["recurrence_pattern"] = None
        elif recurrence_changed or not row.recurrence_pattern:
            changes["recurrence_pattern"] = self._encode_recurrence(config)

        for key, value in changes.items():
            setattr(row, key, value)
        self.db.commit()
        self.db.refresh(row)
        return row

    def delete(self, user_id: int, txn_id: int) -> None:
        row = self.get(user_id, txn_id)
        self.db.delete(row)
        self.db.commit()
        logger.info("Deleted transaction %s for user %s", txn_id, user_id)

    # ---- Recurrence ------------------------------------------------------
    @staticmethod
    def template_for(row: models.Transaction) -> TransactionTemplate:
        return TransactionTemplate(
            amount=row.amount,
            description=row.description,
            type=row.type,
            date=row.date,
            category_id=row.category_id,
            space_id=row.space_id,
            account_id=row.account_id,
        )

    def _config_for(self, row: models.Transaction) -> RecurrenceConfig | None:
        if not row.is_recurrent:
            return None
        config = parse_recurrence_pattern(row.recurrence_pattern)
        if config is None:
            logger.warning("Transaction %s has an unreadable recurrence pattern", row.id)
        return config

    def occurrences(self, user_id: int, txn_id: int, count: int) -> list[GeneratedInstance]:
        row = self.get(user_id, txn_id)
        config = self._config_for(row)
        if config is None:
            raise HTTPException(status_code=400, detail="Transaction is not recurrent")
        return generate_recurring_transaction_instances(self.template_for(row), config, row.id, count)

    def upcoming(self, user_id: int, days: int, *, now: datetime | None = None) -> list[GeneratedInstance]:
        """Instances of every recurring transaction due in ``(now, now + days]``."""
        window_start = now or models.now_local_naive()
        window_end = window_start + timedelta(days=days)
        rows = (
            self.db.query(models.Transaction)
            .filter(models.Transaction.user_id == user_id, models.Transaction.is_recurrent.is_(True))
            .order_by(models.Transaction.id)
            .all()
        )
        instances: list[GeneratedInstance] = []
        for row in rows:
            config = self._config_for(row)
            if config is None:
                continue
            template = self.template_for(row)
            for position, scheduled in occurrences_between(row.date, config, window_start, window_end):
                instances.append(build_generated_instance(template, scheduled, row.id, position))
        instances.sort(key=lambda inst: (inst.scheduled_date, str(inst.id)))
        return instances
