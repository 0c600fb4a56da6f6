from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from .core.database import SessionLocal, init_db
from .models import Account, AccountType, Category, Space, TxnType, User

logger = logging.getLogger(__name__)

DEMO_EMAIL = "demo@example.com"

# (name, type, icon, color, sort_order)
SYSTEM_CATEGORIES = [
    ("Salário", TxnType.INCOME, "💰", "#10B981", "01"),
    ("Freelance", TxnType.INCOME, "💻", "#3B82F6", "02"),
    ("Investimentos", TxnType.INCOME, "📈", "#8B5CF6", "03"),
    ("Aluguéis", TxnType.INCOME, "🏠", "#F59E0B", "04"),
    ("Vendas", TxnType.INCOME, "🛍️", "#EF4444", "05"),
    ("Outros", TxnType.INCOME, "💡", "#6B7280", "06"),
    ("Alimentação", TxnType.EXPENSE, "🍽️", "#EF4444", "10"),
    ("Transporte", TxnType.EXPENSE, "🚗", "#F59E0B", "11"),
    ("Moradia", TxnType.EXPENSE, "🏠", "#8B5CF6", "12"),
    ("Saúde", TxnType.EXPENSE, "🏥", "#10B981", "13"),
    ("Educação", TxnType.EXPENSE, "📚", "#3B82F6", "14"),
    ("Lazer", TxnType.EXPENSE, "🎮", "#EC4899", "15"),
    ("Compras", TxnType.EXPENSE, "🛒", "#F97316", "16"),
    ("Impostos", TxnType.EXPENSE, "📄", "#6B7280", "17"),
    ("Investimentos", TxnType.EXPENSE, "💎", "#8B5CF6", "18"),
    ("Outros", TxnType.EXPENSE, "❓", "#6B7280", "19"),
]


def seed_system_categories(db: Session) -> int:
    """Insert missing system categories; returns how many were added."""
    added = 0
    for name, txn_type, icon, color, sort_order in SYSTEM_CATEGORIES:
        exists = (
            db.query(Category)
            .filter(Category.user_id.is_(None), Category.name == name, Category.type == txn_type)
            .first()
        )
        if exists:
            continue
        db.add(
            Category(
                user_id=None,
                name=name,
                type=txn_type,
                icon=icon,
                color=color,
                is_default=True,
                sort_order=sort_order,
            )
        )
        added += 1
    return added


def seed(db: Session | None = None) -> None:
    """Idempotent demo data: one user with a space, an account and the system categories."""
    owns_session = db is None
    if owns_session:
        init_db()
        db = SessionLocal()
    try:
        user = db.query(User).filter_by(email=DEMO_EMAIL).first()
        if not user:
            user = User(email=DEMO_EMAIL, name="Demo", is_active=True)
            db.add(user)
            db.flush()

        if not db.query(Space).filter_by(user_id=user.id, name="Pessoal").first():
            db.add(Space(user_id=user.id, name="Pessoal"))
        if not db.query(Account).filter_by(user_id=user.id, name="Conta Corrente").first():
            db.add(Account(user_id=user.id, name="Conta Corrente", type=AccountType.CHECKING))

        added = seed_system_categories(db)
        db.commit()
        logger.info("Seed finished for %s (%d new categories)", DEMO_EMAIL, added)
    except Exception:
        db.rollback()
        raise
    finally:
        if owns_session:
            db.close()


if __name__ == "__main__":
    from .core.logging import configure_logging

    configure_logging()
    seed()
