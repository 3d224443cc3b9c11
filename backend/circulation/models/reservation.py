"""
Model de reserva de livros.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import ForeignKey, DateTime, Index, Integer, Uuid, Enum as SQLEnum, text
from sqlalchemy.orm import Mapped, mapped_column

from circulation.db.session import Base
from circulation.models.base import UUIDMixin, TimestampMixin
from circulation.models.enums import ReservationStatus


class Reservation(Base, UUIDMixin, TimestampMixin):
    """
    Reserva de um título de livro por um leitor.

    Fluxo de estados:
        1. PENDING: Leitor entra na fila de espera
        2. NOTIFIED: Cópia separada, leitor avisado, prazo de retirada corre
        3. FULFILLED: Leitor retirou o livro (criou empréstimo)
        4. EXPIRED: Não retirou a tempo
        5. CANCELLED: Reserva cancelada

    Regras de negócio:
        - Reserva é por título (book_title_id), não por cópia
        - Só é permitida quando nenhuma cópia do título está AVAILABLE
        - Posições das reservas PENDING/NOTIFIED de um título são 1..N

    Attributes:
        id: UUID único da reserva
        borrower_id: FK para o leitor
        book_title_id: FK para o título reservado
        reserved_at: Entrada na fila
        notified_at: Momento da promoção para NOTIFIED
        expires_at: Limite para retirada (quando NOTIFIED)
        status: Status atual da reserva
        queue_position: Posição na fila (1 = próximo a ser atendido)
    """
    __tablename__ = "reservations"

    borrower_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False),
        ForeignKey("borrowers.id", ondelete="RESTRICT"),
        nullable=False,
    )
    book_title_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False),
        ForeignKey("book_titles.id", ondelete="RESTRICT"),
        nullable=False,
    )
    reserved_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    notified_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )
    status: Mapped[ReservationStatus] = mapped_column(
        SQLEnum(ReservationStatus, name="reservation_status"),
        nullable=False,
        default=ReservationStatus.PENDING,
    )
    queue_position: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        Index("ix_reservations_borrower_id", "borrower_id"),
        # Fila de um título (ordenada por posição)
        Index("ix_reservations_title_queue", "book_title_id", "status", "queue_position"),
        # Reservas NOTIFIED que podem expirar
        Index("ix_reservations_expires", "status", "expires_at"),
        # Um leitor tem no máximo uma reserva ativa por título
        Index(
            "uq_reservations_borrower_title_active",
            "borrower_id",
            "book_title_id",
            unique=True,
            postgresql_where=text("status IN ('PENDING', 'NOTIFIED')"),
        ),
    )

    def __repr__(self) -> str:
        return f"<Reservation {self.id} - {self.status.value} #{self.queue_position}>"
