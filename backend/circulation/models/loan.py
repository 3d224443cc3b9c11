"""
Models de empréstimo e de registro de atraso.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import ForeignKey, Integer, DateTime, Index, Uuid, func, text
from sqlalchemy.orm import Mapped, mapped_column

from circulation.db.session import Base
from circulation.models.base import UUIDMixin, TimestampMixin


class Loan(Base, UUIDMixin, TimestampMixin):
    """
    Empréstimo de uma cópia de livro para um leitor.

    Regras de negócio:
        - Prazo padrão: 14 dias (LOAN_PERIOD_DAYS)
        - No máximo um empréstimo aberto (returned_at NULL) por cópia
        - Nunca é removido; a devolução apenas preenche returned_at

    Attributes:
        id: UUID único do empréstimo
        borrower_id: FK para o leitor
        book_copy_id: FK para a cópia física emprestada
        borrowed_at: Data/hora do empréstimo
        due_at: Data/hora limite de devolução
        returned_at: Data/hora da devolução efetiva (null se não devolvido)
    """
    __tablename__ = "loans"

    borrower_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False),
        ForeignKey("borrowers.id", ondelete="RESTRICT"),
        nullable=False,
    )
    book_copy_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False),
        ForeignKey("book_copies.id", ondelete="RESTRICT"),
        nullable=False,
    )
    borrowed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    due_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )
    returned_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    __table_args__ = (
        Index("ix_loans_borrower_id", "borrower_id"),
        Index("ix_loans_book_copy_id", "book_copy_id"),
        # Buscar empréstimos abertos de um leitor (contagem do limite)
        Index("ix_loans_borrower_open", "borrower_id", "returned_at"),
        # Buscar empréstimos atrasados
        Index("ix_loans_overdue", "due_at", "returned_at"),
        # Uma cópia só pode ter um empréstimo aberto
        Index(
            "uq_loans_open_copy",
            "book_copy_id",
            unique=True,
            postgresql_where=text("returned_at IS NULL"),
        ),
    )

    def __repr__(self) -> str:
        status = "returned" if self.returned_at else "open"
        return f"<Loan {self.id} - {status}>"


class OverdueRecord(Base, UUIDMixin):
    """
    Registro de devolução em atraso.

    Attributes:
        loan_id: FK para o empréstimo devolvido com atraso
        overdue_days: Dias inteiros de atraso na devolução
        recorded_at: Momento do registro
    """
    __tablename__ = "overdue_records"

    loan_id: Mapped[str] = mapped_column(
        Uuid(as_uuid=False),
        ForeignKey("loans.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    overdue_days: Mapped[int] = mapped_column(Integer, nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<OverdueRecord loan={self.loan_id} days={self.overdue_days}>"
