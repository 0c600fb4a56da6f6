"""
Services package

Business logic used by the API routers.
"""

from .reference_service import ReferenceDataService
from .transaction_service import TransactionService

__all__ = [
    "ReferenceDataService",
    "TransactionService",
]
