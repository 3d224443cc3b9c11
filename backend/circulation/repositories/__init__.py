"""
Módulo de repositórios - acesso a dados.
"""

from circulation.repositories.base import BaseRepository
from circulation.repositories.borrower import BorrowerRepository
from circulation.repositories.book import BookTitleRepository, BookCopyRepository
from circulation.repositories.loan import LoanRepository, OverdueRecordRepository
from circulation.repositories.reservation import ReservationRepository
from circulation.repositories.notification import SqlNotificationHistoryRepository
from circulation.repositories.unit_of_work import SqlAlchemyUnitOfWork
from circulation.repositories.memory import MemoryStore, MemoryUnitOfWork

__all__ = [
    "BaseRepository",
    "BorrowerRepository",
    "BookTitleRepository",
    "BookCopyRepository",
    "LoanRepository",
    "OverdueRecordRepository",
    "ReservationRepository",
    "SqlNotificationHistoryRepository",
    "SqlAlchemyUnitOfWork",
    "MemoryStore",
    "MemoryUnitOfWork",
]
