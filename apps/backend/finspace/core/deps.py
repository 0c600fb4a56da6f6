from __future__ import annotations

import logging

from fastapi import Depends
from sqlalchemy.orm import Session

from finspace.core.database import get_db
from finspace import models
from finspace.seed import DEMO_EMAIL, seed

logger = logging.getLogger(__name__)


def get_current_user(db: Session = Depends(get_db)) -> models.User:
    """Single-user mode: the oldest user owns every request.

    An empty database gets the demo user and its starter data first. Tests
    override this dependency to act as someone else.
    """
    user = db.query(models.User).order_by(models.User.id).first()
    if user is None:
        seed(db)
        user = db.query(models.User).filter_by(email=DEMO_EMAIL).one()
        logger.info("Seeded demo user %s for an empty database", user.id)
    return user
