"""
Models SQLAlchemy da aplicação.

Importar todos os models aqui para que o Alembic detecte as mudanças.
"""

from circulation.models.enums import (
    CopyStatus,
    ReservationStatus,
    NotificationType,
    JobStatus,
)
from circulation.models.borrower import Borrower
from circulation.models.book import BookTitle, BookCopy
from circulation.models.loan import Loan, OverdueRecord
from circulation.models.reservation import Reservation
from circulation.models.notification import NotificationHistory

__all__ = [
    "CopyStatus",
    "ReservationStatus",
    "NotificationType",
    "JobStatus",
    "Borrower",
    "BookTitle",
    "BookCopy",
    "Loan",
    "OverdueRecord",
    "Reservation",
    "NotificationHistory",
]
