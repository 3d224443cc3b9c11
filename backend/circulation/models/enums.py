"""
Enums utilizados nos models e no núcleo de circulação.
"""

import enum


class CopyStatus(str, enum.Enum):
    """Status de uma cópia física do livro."""
    AVAILABLE = "AVAILABLE"
    BORROWED = "BORROWED"
    RESERVED = "RESERVED"
    MAINTENANCE = "MAINTENANCE"


class ReservationStatus(str, enum.Enum):
    """
    Status de uma reserva de título.

    Fluxo típico:
        PENDING -> NOTIFIED -> FULFILLED (retirou o livro)
        NOTIFIED -> EXPIRED (não retirou dentro do prazo)
        PENDING/NOTIFIED -> CANCELLED (cancelada)
    """
    PENDING = "PENDING"        # Na fila, aguardando cópia
    NOTIFIED = "NOTIFIED"      # Cópia separada e usuário avisado
    FULFILLED = "FULFILLED"    # Convertida em empréstimo
    EXPIRED = "EXPIRED"        # Prazo de retirada vencido
    CANCELLED = "CANCELLED"    # Cancelada

    @classmethod
    def active(cls) -> tuple["ReservationStatus", ...]:
        """Status que ocupam posição na fila."""
        return (cls.PENDING, cls.NOTIFIED)


class NotificationType(str, enum.Enum):
    """Tipos de job de notificação."""
    RESERVATION_AVAILABLE = "RESERVATION_AVAILABLE"
    OVERDUE_REMINDER = "OVERDUE_REMINDER"


class JobStatus(str, enum.Enum):
    """Status de um job na fila de notificações."""
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
