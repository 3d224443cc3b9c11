"""
Módulo de serviços - lógica de negócio do núcleo de circulação.
"""

from circulation.services.inventory import InventoryLedger
from circulation.services.loan import LoanManager
from circulation.services.notification import NotificationDispatcher
from circulation.services.reservation import ReservationQueue

__all__ = [
    "InventoryLedger",
    "LoanManager",
    "NotificationDispatcher",
    "ReservationQueue",
]
