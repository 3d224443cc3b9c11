"""
Schemas Pydantic para jobs e histórico de notificação.
"""

from datetime import datetime
from typing import Any

from pydantic import Field

from circulation.core.ids import BorrowerId, JobId, LoanId, TitleId
from circulation.models.enums import JobStatus, NotificationType
from circulation.schemas.base import BaseSchema


class NotificationJob(BaseSchema):
    """
    Instrução de entrega enfileirada.

    subject_id aponta para um título (RESERVATION_AVAILABLE) ou para um
    empréstimo (OVERDUE_REMINDER). attempts conta as tentativas já feitas
    por um worker interrompido antes de devolver o job à fila.
    """
    id: JobId
    type: NotificationType
    borrower_id: BorrowerId
    subject_id: str
    enqueued_at: datetime
    max_attempts: int = Field(3, ge=1)
    attempts: int = Field(0, ge=0)

    @property
    def title_id(self) -> TitleId | None:
        if self.type == NotificationType.RESERVATION_AVAILABLE:
            return TitleId(self.subject_id)
        return None

    @property
    def loan_id(self) -> LoanId | None:
        if self.type == NotificationType.OVERDUE_REMINDER:
            return LoanId(self.subject_id)
        return None

    def to_payload(self) -> dict[str, Any]:
        """Formato de troca: {type, borrower_id, title_id | loan_id, enqueued_at}."""
        key = "title_id" if self.type == NotificationType.RESERVATION_AVAILABLE else "loan_id"
        return {
            "type": self.type.value,
            "borrower_id": str(self.borrower_id),
            key: self.subject_id,
            "enqueued_at": self.enqueued_at.isoformat(),
        }

    @classmethod
    def from_payload(
        cls,
        job_id: str,
        payload: dict[str, Any],
        max_attempts: int,
        attempts: int = 0,
    ) -> "NotificationJob":
        """
        Reconstrói o job a partir do formato de troca.

        Raises:
            KeyError: campo obrigatório ausente
            ValueError: valor inválido (pydantic.ValidationError)
        """
        key = "title_id" if payload["type"] == NotificationType.RESERVATION_AVAILABLE.value else "loan_id"
        return cls(
            id=job_id,
            type=payload["type"],
            borrower_id=payload["borrower_id"],
            subject_id=payload[key],
            enqueued_at=payload["enqueued_at"],
            max_attempts=max_attempts,
            attempts=attempts,
        )


class JobStatusInfo(BaseSchema):
    """Situação de um job na fila."""
    id: JobId
    status: JobStatus
    attempts: int
    max_attempts: int


class NotificationHistoryRecord(BaseSchema):
    """Uma tentativa de entrega concluída."""
    id: str
    job_id: JobId
    job_type: NotificationType
    borrower_id: BorrowerId
    subject_id: str
    recipient: str | None = None
    subject: str | None = None
    attempt: int = 1
    sent_at: datetime
    success: bool
    error_message: str | None = None


class OutboundMessage(BaseSchema):
    """Mensagem renderizada entregue ao transporte."""
    to: str
    subject: str
    body: str
    job_id: JobId | None = None
