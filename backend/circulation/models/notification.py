"""
Model de histórico de entregas de notificação.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, Index, Integer, String, Text, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from circulation.db.session import Base
from circulation.models.base import UUIDMixin
from circulation.models.enums import NotificationType


class NotificationHistory(Base, UUIDMixin):
    """
    Uma tentativa de entrega concluída (sucesso ou falha).

    Os jobs em si não são alterados; o estado final de uma notificação
    é reconstruído a partir deste histórico.

    Attributes:
        job_id: ID do job na fila
        job_type: RESERVATION_AVAILABLE ou OVERDUE_REMINDER
        borrower_id: Leitor destinatário
        subject_id: Título (reserva) ou empréstimo (atraso) referenciado
        recipient: Endereço de envio (null se o leitor não foi encontrado)
        subject: Assunto renderizado
        attempt: Número da tentativa (1..max_attempts)
        sent_at: Momento da tentativa
        success: Se a entrega foi aceita pelo transporte
        error_message: Motivo da falha
    """
    __tablename__ = "notification_history"

    job_id: Mapped[str] = mapped_column(String(64), nullable=False)
    job_type: Mapped[NotificationType] = mapped_column(
        SQLEnum(NotificationType, name="notification_type"),
        nullable=False,
    )
    borrower_id: Mapped[str] = mapped_column(String(64), nullable=False)
    subject_id: Mapped[str] = mapped_column(String(64), nullable=False)
    recipient: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    subject: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    attempt: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    sent_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_notification_history_job_id", "job_id"),
        Index("ix_notification_history_borrower", "borrower_id", "sent_at"),
    )

    def __repr__(self) -> str:
        outcome = "ok" if self.success else "failed"
        return f"<NotificationHistory {self.job_id} #{self.attempt} {outcome}>"
